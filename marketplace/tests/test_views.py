"""
View tests: auth flow, dashboard dispatch, role checks and the main
vendor/supplier actions
"""
from unittest import mock

from botocore.exceptions import EndpointConnectionError
from django.contrib.auth import get_user_model
from django.contrib.messages import get_messages
from django.urls import reverse

from aws_config import CART_ITEMS_TABLE, GROUP_ORDERS_TABLE, MATERIALS_TABLE, ORDERS_TABLE
from aws_lib.dynamodb_client import DynamoDBClient
from aws_lib.exceptions import BackendError
from marketplace import group_orders, services
from marketplace.views import BACKEND_DOWN

from .utils import MarketplaceTestCase, TestDataFactory

User = get_user_model()


def message_texts(response):
    return [str(m) for m in get_messages(response.wsgi_request)]


class AuthViewTests(MarketplaceTestCase):

    def test_signup_creates_user_and_profile(self):
        response = self.client.post(reverse("signup"), {
            "full_name": "Ravi Kumar",
            "role": "vendor",
            "business_name": "Ravi Chaat Corner",
            "location": "Pune",
            "email": "Ravi@Example.com",
            "password": "jeera-rice-2024",
        })

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)
        user = User.objects.get(username="ravi@example.com")
        profile = services.get_profile(user.pk)
        self.assertEqual(profile["role"], "vendor")
        self.assertEqual(profile["business_name"], "Ravi Chaat Corner")

    def test_signup_rejects_short_password_and_duplicate_email(self):
        TestDataFactory.create_user("vendor")
        existing = User.objects.get()
        response = self.client.post(reverse("signup"), {
            "full_name": "Someone",
            "role": "vendor",
            "email": existing.email,
            "password": "123",
        })

        self.assertEqual(response.status_code, 200)
        self.assertIn("email", response.context["form"].errors)
        self.assertIn("password", response.context["form"].errors)
        self.assertEqual(User.objects.count(), 1)

    def test_signup_removes_user_when_profile_write_fails(self):
        with mock.patch.object(services, "create_profile", side_effect=BackendError("down")):
            response = self.client.post(reverse("signup"), {
                "full_name": "Ravi Kumar",
                "role": "supplier",
                "email": "ravi@example.com",
                "password": "jeera-rice-2024",
            })

        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(username="ravi@example.com").exists())
        self.assertIn(BACKEND_DOWN, message_texts(response))

    def test_login_with_email(self):
        user = TestDataFactory.create_user("vendor")
        response = self.client.post(reverse("login"), {
            "username": user.email,
            "password": "masala-chai-77",
        })

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)
        self.assertIn("Welcome back! You have been successfully signed in.", message_texts(response))

    def test_login_with_mixed_case_email_used_at_signup(self):
        self.client.post(reverse("signup"), {
            "full_name": "Ravi Kumar",
            "role": "vendor",
            "email": "Ravi@Example.com",
            "password": "jeera-rice-2024",
        })
        self.client.logout()

        response = self.client.post(reverse("login"), {
            "username": "Ravi@Example.com",
            "password": "jeera-rice-2024",
        })

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)

    def test_signup_rejects_common_password(self):
        response = self.client.post(reverse("signup"), {
            "full_name": "Ravi Kumar",
            "role": "vendor",
            "email": "ravi@example.com",
            "password": "password",
        })

        self.assertEqual(response.status_code, 200)
        self.assertIn("password", response.context["form"].errors)
        self.assertFalse(User.objects.exists())

    def test_signup_removes_user_when_backend_is_unreachable(self):
        table = mock.MagicMock()
        table.put_item.side_effect = EndpointConnectionError(
            endpoint_url="https://dynamodb.us-east-1.amazonaws.com"
        )
        resource = mock.MagicMock()
        resource.Table.return_value = table
        with mock.patch.object(services, "ddb", DynamoDBClient()), \
                mock.patch.object(DynamoDBClient, "resource", new_callable=mock.PropertyMock,
                                  return_value=resource):
            response = self.client.post(reverse("signup"), {
                "full_name": "Ravi Kumar",
                "role": "vendor",
                "email": "ravi@example.com",
                "password": "jeera-rice-2024",
            })

        self.assertEqual(response.status_code, 200)
        self.assertFalse(User.objects.filter(username="ravi@example.com").exists())
        self.assertIn(BACKEND_DOWN, message_texts(response))

    def test_anonymous_user_is_sent_to_login(self):
        response = self.client.get(reverse("dashboard"))
        self.assertRedirects(
            response, f"{reverse('login')}?next={reverse('dashboard')}", fetch_redirect_response=False
        )


class DashboardDispatchTests(MarketplaceTestCase):

    def test_vendor_sees_catalog(self):
        supplier = TestDataFactory.create_user("supplier")
        TestDataFactory.create_material(supplier, name="Cumin")
        vendor = TestDataFactory.create_user("vendor")
        self.client.force_login(vendor)

        response = self.client.get(reverse("dashboard"))

        self.assertTemplateUsed(response, "vendor_dashboard.html")
        self.assertEqual([m["name"] for m in response.context["materials"]], ["Cumin"])

    def test_vendor_search(self):
        supplier = TestDataFactory.create_user("supplier")
        TestDataFactory.create_material(supplier, name="Cumin")
        TestDataFactory.create_material(supplier, name="Paneer", description="Fresh cottage cheese")
        self.client.force_login(TestDataFactory.create_user("vendor"))

        response = self.client.get(reverse("dashboard"), {"search": "cheese"})
        self.assertEqual([m["name"] for m in response.context["materials"]], ["Paneer"])

    def test_supplier_sees_own_materials_and_orders(self):
        supplier = TestDataFactory.create_user("supplier")
        material = TestDataFactory.create_material(supplier)
        services.place_order(TestDataFactory.create_user("vendor").pk, material["id"], 2)
        self.client.force_login(supplier)

        response = self.client.get(reverse("dashboard"), {"tab": "orders"})

        self.assertTemplateUsed(response, "supplier_dashboard.html")
        self.assertEqual(len(response.context["materials"]), 1)
        self.assertEqual(response.context["orders"][0]["next_statuses"], ["confirmed", "cancelled"])

    def test_missing_profile(self):
        user = User.objects.create_user(username="ghost@test.com", password="x")
        self.client.force_login(user)
        response = self.client.get(reverse("dashboard"))
        self.assertTemplateUsed(response, "profile_missing.html")

    def test_unknown_role(self):
        user = User.objects.create_user(username="admin@test.com", password="x")
        services.create_profile(user.pk, "Admin", "admin")
        self.client.force_login(user)
        response = self.client.get(reverse("dashboard"))
        self.assertTemplateUsed(response, "unknown_role.html")

    def test_backend_failure_shows_message(self):
        self.client.force_login(TestDataFactory.create_user("vendor"))
        with mock.patch.object(services, "list_catalog", side_effect=BackendError("down")):
            response = self.client.get(reverse("dashboard"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.context["materials"], [])
        self.assertIn(BACKEND_DOWN, message_texts(response))


class RoleRestrictionTests(MarketplaceTestCase):

    def test_supplier_cannot_use_cart(self):
        self.client.force_login(TestDataFactory.create_user("supplier"))
        response = self.client.get(reverse("cart"))

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)
        self.assertIn("This page is only available to vendors.", message_texts(response))

    def test_vendor_cannot_add_materials(self):
        self.client.force_login(TestDataFactory.create_user("vendor"))
        response = self.client.post(reverse("add_material"), {
            "name": "Salt", "price": "10", "stock": "5", "unit": "kg",
        })

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)
        self.assertEqual(self.ddb.rows(MATERIALS_TABLE), [])


class VendorActionTests(MarketplaceTestCase):

    def setUp(self):
        super().setUp()
        self.supplier = TestDataFactory.create_user("supplier")
        self.material = TestDataFactory.create_material(self.supplier, stock=20)
        self.vendor = TestDataFactory.create_user("vendor")
        self.client.force_login(self.vendor)

    def test_place_order_message(self):
        response = self.client.post(reverse("place_order", args=[self.material["id"]]), {"quantity": 3})

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)
        self.assertIn("Successfully ordered 3 kg of Turmeric Powder", message_texts(response))
        self.assertEqual(len(self.ddb.rows(ORDERS_TABLE)), 1)

    def test_place_order_over_stock_shows_error(self):
        response = self.client.post(reverse("place_order", args=[self.material["id"]]), {"quantity": 21})

        self.assertIn("Only 20 kg of Turmeric Powder in stock", message_texts(response))
        self.assertEqual(self.ddb.rows(ORDERS_TABLE), [])

    def test_place_order_requires_post(self):
        response = self.client.get(reverse("place_order", args=[self.material["id"]]))
        self.assertEqual(response.status_code, 405)

    def test_cart_flow(self):
        self.client.post(reverse("add_to_cart", args=[self.material["id"]]), {"quantity": 2})
        response = self.client.get(reverse("cart"))
        self.assertEqual(response.context["summary"]["total_amount"], 400)

        response = self.client.post(reverse("cart_checkout"))

        self.assertRedirects(response, reverse("vendor_orders"), fetch_redirect_response=False)
        self.assertIn("Checkout successful! 1 orders placed successfully", message_texts(response))
        self.assertEqual(self.ddb.rows(CART_ITEMS_TABLE), [])

    def test_empty_cart_checkout(self):
        response = self.client.post(reverse("cart_checkout"))
        self.assertRedirects(response, reverse("cart"), fetch_redirect_response=False)
        self.assertIn("Your cart is empty", message_texts(response))

    def test_cart_quantity_zero_removes_item(self):
        row = services.add_to_cart(self.vendor.pk, self.material["id"], 2)
        self.client.post(reverse("update_cart_item", args=[row["id"]]), {"quantity": 0})
        self.assertEqual(self.ddb.rows(CART_ITEMS_TABLE), [])

    def test_create_and_join_group_order(self):
        response = self.client.post(reverse("create_group_order", args=[self.material["id"]]), {
            "min_quantity": 10,
            "discounted_price": "180",
            "expiry_days": 7,
        })
        self.assertRedirects(response, f"{reverse('dashboard')}?tab=group-orders",
                             fetch_redirect_response=False)
        group = self.ddb.rows(GROUP_ORDERS_TABLE)[0]

        other = TestDataFactory.create_user("vendor")
        self.client.force_login(other)
        response = self.client.post(reverse("join_group_order", args=[group["id"]]), {"quantity": 9})

        self.assertIn("You joined the group order and unlocked the group price!", message_texts(response))

    def test_group_price_above_list_price_is_rejected(self):
        response = self.client.post(reverse("create_group_order", args=[self.material["id"]]), {
            "min_quantity": 10,
            "discounted_price": "250",
            "expiry_days": 7,
        })
        self.assertEqual(response.status_code, 200)
        self.assertIn("discounted_price", response.context["form"].errors)
        self.assertEqual(self.ddb.rows(GROUP_ORDERS_TABLE), [])

    def test_rejoining_shows_error(self):
        group = group_orders.create_group_order(self.vendor.pk, self.material, min_quantity=50)
        response = self.client.post(reverse("join_group_order", args=[group["id"]]))
        self.assertIn(group_orders.ALREADY_JOINED, message_texts(response))


class SupplierActionTests(MarketplaceTestCase):

    def setUp(self):
        super().setUp()
        self.supplier = TestDataFactory.create_user("supplier")
        self.client.force_login(self.supplier)

    def test_add_material(self):
        response = self.client.post(reverse("add_material"), {
            "name": "Garam Masala", "price": "350.50", "stock": "40", "unit": "kg",
        })

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)
        row = self.ddb.rows(MATERIALS_TABLE)[0]
        self.assertEqual(row["price"], 350.5)
        self.assertEqual(row["supplier_id"], str(self.supplier.pk))

    def test_edit_keeps_name(self):
        material = TestDataFactory.create_material(self.supplier, price=100)
        self.client.post(reverse("edit_material", args=[material["id"]]), {
            "name": "Renamed", "price": "110", "stock": "12", "unit": "kg",
        })

        row = self.material_row(material["id"])
        self.assertEqual(row["name"], "Turmeric Powder")
        self.assertEqual(row["price"], 110)
        self.assertEqual(row["stock"], 12)

    def test_cannot_edit_other_suppliers_material(self):
        other = TestDataFactory.create_user("supplier")
        material = TestDataFactory.create_material(other)
        response = self.client.get(reverse("edit_material", args=[material["id"]]))

        self.assertRedirects(response, reverse("dashboard"), fetch_redirect_response=False)
        self.assertIn("Material not found", message_texts(response))

    def test_update_order_status(self):
        material = TestDataFactory.create_material(self.supplier)
        order, _ = services.place_order(TestDataFactory.create_user("vendor").pk, material["id"], 1)

        response = self.client.post(reverse("update_order_status", args=[order["id"]]),
                                    {"status": "confirmed"})

        self.assertRedirects(response, f"{reverse('dashboard')}?tab=orders",
                             fetch_redirect_response=False)
        self.assertEqual(self.ddb.get(ORDERS_TABLE, {"id": order["id"]})["status"], "confirmed")


class AnalyticsViewTests(MarketplaceTestCase):

    def setUp(self):
        super().setUp()
        self.client.force_login(TestDataFactory.create_user("vendor"))

    def test_data_endpoint(self):
        supplier = TestDataFactory.create_user("supplier")
        TestDataFactory.create_material(supplier, name="Onions", price=40)

        response = self.client.get(reverse("analytics_data"))

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["stats"]["materials_tracked"], 1)
        self.assertEqual(data["latest_prices"][0]["name"], "Onions")

    def test_data_endpoint_when_backend_is_down(self):
        with mock.patch("marketplace.analytics.load_dashboard", side_effect=BackendError("down")):
            response = self.client.get(reverse("analytics_data"))
        self.assertEqual(response.status_code, 503)

    def test_page_renders(self):
        response = self.client.get(reverse("analytics"))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "analytics-data")
