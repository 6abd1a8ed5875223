import logging

from django.contrib import messages
from django.contrib.auth import get_user_model, login
from django.contrib.auth import views as auth_views
from django.contrib.auth.decorators import login_required
from django.http import JsonResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.views.decorators.http import require_POST

from aws_lib.exceptions import BackendError

from . import analytics, group_orders, services
from .decorators import load_profile, role_required
from .exceptions import MarketplaceError
from .forms import (
    CartQuantityForm,
    GroupOrderForm,
    MaterialForm,
    OrderStatusForm,
    QuantityForm,
    RatingForm,
    SignInForm,
    SignUpForm,
)
from .models import GroupOrderStatus, Role

logger = logging.getLogger(__name__)

BACKEND_DOWN = "The marketplace is unavailable right now. Please try again."


def report(request, exc):
    """Show a domain or backend failure as an error message."""
    if isinstance(exc, BackendError):
        logger.error("Backend failure on %s: %s", request.path, exc)
        messages.error(request, BACKEND_DOWN)
    else:
        messages.error(request, str(exc))


def dashboard_tab(tab):
    return f"{reverse('dashboard')}?tab={tab}"


# landing & auth
def index(request):
    if request.user.is_authenticated:
        return redirect("dashboard")
    return render(request, "index.html")


class SignInView(auth_views.LoginView):
    template_name = "login.html"
    authentication_form = SignInForm
    redirect_authenticated_user = True

    def form_valid(self, form):
        messages.success(self.request, "Welcome back! You have been successfully signed in.")
        return super().form_valid(form)


def signup(request):
    """
    Creates the auth user and its marketplace profile. A failed
    profile write removes the user again.
    """
    if request.method == "POST":
        form = SignUpForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            user = get_user_model().objects.create_user(
                username=data["email"],
                email=data["email"],
                password=data["password"],
            )
            try:
                services.create_profile(
                    user.pk,
                    data["full_name"],
                    data["role"],
                    business_name=data["business_name"],
                    location=data["location"],
                )
            except BackendError as exc:
                user.delete()
                report(request, exc)
            else:
                login(request, user)
                messages.success(request, "Account created! Welcome to Spice Source Hub.")
                return redirect("dashboard")
    else:
        form = SignUpForm()

    return render(request, "signup.html", {"form": form})


# dashboard
@login_required
def dashboard(request):
    """
    Sends vendors and suppliers to their own dashboard.
    """
    try:
        profile = load_profile(request)
    except BackendError as exc:
        report(request, exc)
        return render(request, "profile_missing.html", status=503)

    if not profile:
        return render(request, "profile_missing.html")
    if profile.get("role") == Role.VENDOR:
        return vendor_dashboard(request, profile)
    if profile.get("role") == Role.SUPPLIER:
        return supplier_dashboard(request, profile)
    return render(request, "unknown_role.html")


def vendor_dashboard(request, profile):
    search = request.GET.get("search", "")
    try:
        materials = services.list_catalog(search)
        open_group_orders = group_orders.list_open_group_orders(request.user.pk)
    except BackendError as exc:
        report(request, exc)
        materials, open_group_orders = [], []

    for go in open_group_orders:
        go["discount"] = group_orders.discount_percentage(go["material"]["price"], go["current_price"])

    return render(request, "vendor_dashboard.html", {
        "materials": materials,
        "group_orders": open_group_orders,
        "search": search,
        "tab": request.GET.get("tab", "materials"),
        "quantity_form": QuantityForm(),
    })


def supplier_dashboard(request, profile):
    supplier_id = request.user.pk
    try:
        materials = services.list_supplier_materials(supplier_id)
        orders = services.list_supplier_orders(supplier_id)
        ratings, average = services.list_supplier_ratings(supplier_id)
        unlocked = group_orders.list_supplier_group_orders(supplier_id)
    except BackendError as exc:
        report(request, exc)
        materials, orders, ratings, average, unlocked = [], [], [], None, []

    for o in orders:
        o["next_statuses"] = services.allowed_transitions(o.get("status"))

    return render(request, "supplier_dashboard.html", {
        "materials": materials,
        "orders": orders,
        "ratings": ratings,
        "average_rating": average,
        "group_orders": unlocked,
        "tab": request.GET.get("tab", "materials"),
    })


# individual orders (vendor)
@role_required(Role.VENDOR)
@require_POST
def place_order(request, material_id):
    form = QuantityForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Please enter a valid quantity.")
        return redirect("dashboard")

    quantity = form.cleaned_data["quantity"]
    try:
        order, material = services.place_order(request.user.pk, material_id, quantity)
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
    else:
        messages.success(
            request,
            f"Successfully ordered {quantity} {material['unit']} of {material['name']}",
        )
    return redirect("dashboard")


@role_required(Role.VENDOR)
def vendor_orders(request):
    """Shows the vendor's orders, newest first."""
    try:
        orders = services.list_vendor_orders(request.user.pk)
        rated = services.rated_order_ids(request.user.pk)
    except BackendError as exc:
        report(request, exc)
        orders, rated = [], set()

    status = request.GET.get("status")
    if status:
        orders = [o for o in orders if o.get("status") == status]

    return render(request, "orders_list.html", {
        "orders": orders,
        "rated": rated,
        "status": status,
    })


@role_required(Role.VENDOR)
def rate_order(request, order_id):
    if request.method == "POST":
        form = RatingForm(request.POST)
        if form.is_valid():
            try:
                services.rate_order(
                    request.user.pk,
                    order_id,
                    form.cleaned_data["stars"],
                    form.cleaned_data["review"],
                )
            except (MarketplaceError, BackendError) as exc:
                report(request, exc)
            else:
                messages.success(request, "Thanks for rating your supplier!")
            return redirect("vendor_orders")
    else:
        form = RatingForm()

    return render(request, "rate_order.html", {"form": form, "order_id": order_id})


# cart (vendor)
@role_required(Role.VENDOR)
def cart(request):
    try:
        items = services.list_cart(request.user.pk)
    except BackendError as exc:
        report(request, exc)
        items = []

    return render(request, "cart.html", {
        "items": items,
        "summary": services.cart_summary(items),
    })


@role_required(Role.VENDOR)
@require_POST
def add_to_cart(request, material_id):
    form = QuantityForm(request.POST)
    quantity = form.cleaned_data["quantity"] if form.is_valid() else 1
    try:
        services.add_to_cart(request.user.pk, material_id, quantity)
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
    else:
        messages.success(request, "Added to cart")
    return redirect("dashboard")


@role_required(Role.VENDOR)
@require_POST
def update_cart_item(request, item_id):
    form = CartQuantityForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Please enter a valid quantity.")
        return redirect("cart")

    try:
        row = services.update_cart_quantity(request.user.pk, item_id, form.cleaned_data["quantity"])
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
    else:
        if row is None:
            messages.success(request, "Item removed from cart")
    return redirect("cart")


@role_required(Role.VENDOR)
@require_POST
def remove_cart_item(request, item_id):
    try:
        services.remove_from_cart(request.user.pk, item_id)
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
    else:
        messages.success(request, "Item removed from cart")
    return redirect("cart")


@role_required(Role.VENDOR)
@require_POST
def cart_checkout(request):
    try:
        result = services.checkout(request.user.pk)
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
        return redirect("cart")

    messages.success(request, f"Checkout successful! {len(result['orders'])} orders placed successfully")
    return redirect("vendor_orders")


# group orders
@role_required(Role.VENDOR)
def create_group_order(request, material_id):
    try:
        material = services.get_material(material_id)
    except BackendError as exc:
        report(request, exc)
        return redirect("dashboard")
    if not material:
        messages.error(request, "Material not found")
        return redirect("dashboard")

    if request.method == "POST":
        form = GroupOrderForm(request.POST, material=material)
        if form.is_valid():
            data = form.cleaned_data
            try:
                group_orders.create_group_order(
                    request.user.pk,
                    material,
                    min_quantity=data["min_quantity"],
                    discounted_price=data["discounted_price"],
                    expiry_days=data["expiry_days"],
                    description=data["description"],
                )
            except BackendError as exc:
                report(request, exc)
            else:
                messages.success(request, "Group order created! It is now live and accepting participants")
                return redirect(dashboard_tab("group-orders"))
    else:
        form = GroupOrderForm(material=material)

    return render(request, "create_group_order.html", {"form": form, "material": material})


@role_required(Role.VENDOR)
@require_POST
def join_group_order(request, group_order_id):
    form = QuantityForm(request.POST)
    quantity = form.cleaned_data["quantity"] if form.is_valid() else 1
    try:
        group_order = group_orders.join_group_order(request.user.pk, group_order_id, quantity)
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
    else:
        if group_order.get("status") == GroupOrderStatus.UNLOCKED:
            messages.success(request, "You joined the group order and unlocked the group price!")
        else:
            messages.success(request, "You have successfully joined the group order")
    return redirect(dashboard_tab("group-orders"))


@login_required
@require_POST
def checkout_group_order(request, group_order_id):
    try:
        orders = group_orders.checkout_group_order(request.user.pk, group_order_id)
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
    else:
        messages.success(request, f"Group order placed: {len(orders)} orders created")
    return redirect("dashboard")


# materials & orders (supplier)
@role_required(Role.SUPPLIER)
def add_material(request):
    if request.method == "POST":
        form = MaterialForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            try:
                services.add_material(
                    request.user.pk,
                    data["name"],
                    data["price"],
                    data["stock"],
                    data["unit"],
                    description=data["description"],
                )
            except BackendError as exc:
                report(request, exc)
            else:
                messages.success(request, "Material added! It is now in the catalog")
                return redirect("dashboard")
    else:
        form = MaterialForm()

    return render(request, "add_material.html", {"form": form})


@role_required(Role.SUPPLIER)
def edit_material(request, material_id):
    try:
        material = services.get_material(material_id)
    except BackendError as exc:
        report(request, exc)
        return redirect("dashboard")
    if not material or material.get("supplier_id") != str(request.user.pk):
        messages.error(request, "Material not found")
        return redirect("dashboard")

    initial = {
        "name": material["name"],
        "description": material.get("description") or "",
        "price": material["price"],
        "stock": material["stock"],
        "unit": material["unit"],
    }
    if request.method == "POST":
        form = MaterialForm(request.POST, initial=initial)
        if form.is_valid():
            data = form.cleaned_data
            try:
                services.update_material(
                    request.user.pk,
                    material_id,
                    data["price"],
                    data["stock"],
                    data["unit"],
                    description=data["description"],
                )
            except (MarketplaceError, BackendError) as exc:
                report(request, exc)
            else:
                messages.success(request, "Material updated")
                return redirect("dashboard")
    else:
        form = MaterialForm(initial=initial)

    return render(request, "edit_material.html", {"form": form, "material": material})


@role_required(Role.SUPPLIER)
@require_POST
def update_order_status(request, order_id):
    form = OrderStatusForm(request.POST)
    if not form.is_valid():
        messages.error(request, "Unknown order status")
        return redirect(dashboard_tab("orders"))

    status = form.cleaned_data["status"]
    try:
        services.update_order_status(request.user.pk, order_id, status)
    except (MarketplaceError, BackendError) as exc:
        report(request, exc)
    else:
        messages.success(request, f"Order status changed to {status}")
    return redirect(dashboard_tab("orders"))


# analytics
@login_required
def analytics_view(request):
    try:
        payload = analytics.load_dashboard()
    except BackendError as exc:
        report(request, exc)
        payload = analytics.build_dashboard([], [])
    return render(request, "analytics.html", {"data": payload})


@login_required
def analytics_data(request):
    try:
        payload = analytics.load_dashboard()
    except BackendError as exc:
        logger.error("Analytics data failed: %s", exc)
        return JsonResponse({"error": BACKEND_DOWN}, status=503)
    return JsonResponse(payload)
