"""
Test utilities: an in-memory stand-in for the DynamoDB tables and
factories for creating test data
"""
import copy
import json
import random
import string
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase

from aws_config import MATERIALS_TABLE, PRICE_HISTORY_TABLE, TABLE_KEYS
from aws_lib.dynamodb_client import DynamoDBClient
from aws_lib.exceptions import ConditionFailed
from marketplace import services

User = get_user_model()


class InMemoryDynamoDB(DynamoDBClient):
    """
    DynamoDBClient whose tables are dicts. Numbers are stored as Decimal
    and read back through the real deserializer, conditions use the same
    (attribute, op, value) tuples as the real client.
    """

    def __init__(self):
        super().__init__()
        self.tables = {}

    def _table(self, table):
        return self.tables.setdefault(table, {})

    def _key_value(self, table, key):
        return key[TABLE_KEYS[table]]

    def _matches(self, item, conditions):
        item = self._deserialize(item or {})
        for attribute, op, *rest in conditions or []:
            value = self._deserialize(rest[0]) if rest else None
            present = attribute in item
            current = item.get(attribute)
            if op == "exists":
                ok = present if value in (None, True) else not present
            elif op == "not_contains":
                ok = not present or value not in current
            elif not present:
                ok = False
            elif op == "eq":
                ok = current == value
            elif op == "ne":
                ok = current != value
            elif op == "gt":
                ok = current > value
            elif op == "gte":
                ok = current >= value
            elif op == "lt":
                ok = current < value
            elif op == "lte":
                ok = current <= value
            elif op == "contains":
                ok = value in current
            else:
                raise ValueError(f"Unsupported condition operator: {op}")
            if not ok:
                return False
        return True

    def put(self, table, item, conditions=None):
        key_value = item[TABLE_KEYS[table]]
        if conditions and not self._matches(self._table(table).get(key_value), conditions):
            raise ConditionFailed(f"{table}.put_item: condition not met")
        self._table(table)[key_value] = self._convert_to_decimal(copy.deepcopy(item))
        return {}

    def get(self, table, key):
        item = self._table(table).get(self._key_value(table, key))
        return self._deserialize(copy.deepcopy(item)) if item else {}

    def scan(self, table, conditions=None):
        return [
            self._deserialize(copy.deepcopy(item))
            for item in self._table(table).values()
            if self._matches(item, conditions)
        ]

    def update(self, table, key, set_values=None, add_values=None,
               append_values=None, conditions=None):
        key_value = self._key_value(table, key)
        existing = self._table(table).get(key_value)
        if conditions and not self._matches(existing, conditions):
            raise ConditionFailed(f"{table}.update_item: condition not met")

        item = copy.deepcopy(existing) if existing else dict(key)
        for attribute, value in (set_values or {}).items():
            item[attribute] = self._convert_to_decimal(value)
        for attribute, value in (append_values or {}).items():
            item[attribute] = item.get(attribute, []) + self._convert_to_decimal(list(value))
        for attribute, value in (add_values or {}).items():
            item[attribute] = item.get(attribute, Decimal(0)) + self._convert_to_decimal(value)
        self._table(table)[key_value] = item
        return self._deserialize(copy.deepcopy(item))

    def delete(self, table, key, conditions=None):
        key_value = self._key_value(table, key)
        existing = self._table(table).get(key_value)
        if conditions and not self._matches(existing, conditions):
            raise ConditionFailed(f"{table}.delete_item: condition not met")
        self._table(table).pop(key_value, None)
        return {}

    def rows(self, table):
        return self.scan(table)


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=8):
        return ''.join(random.choices(string.ascii_lowercase + string.digits, k=length))

    @staticmethod
    def create_user(role="vendor", full_name=None, password="masala-chai-77"):
        """Create an auth user with a marketplace profile"""
        email = f"{role}_{TestDataFactory.random_string()}@test.com"
        user = User.objects.create_user(username=email, email=email, password=password)
        services.create_profile(user.pk, full_name or f"Test {role.title()}", role)
        return user

    @staticmethod
    def create_material(supplier, name="Turmeric Powder", price=200, stock=50,
                        unit="kg", description="Ground turmeric"):
        return services.add_material(supplier.pk, name, price, stock, unit, description=description)

    @staticmethod
    def add_price_point(material, price, date):
        services.ddb.put(PRICE_HISTORY_TABLE, {
            "id": services.new_id(),
            "material_id": material["id"],
            "supplier_id": material["supplier_id"],
            "price": price,
            "date": date,
            "created_at": date,
        })


class MarketplaceTestCase(TestCase):
    """
    Swaps the DynamoDB, SQS and SNS clients for in-memory doubles.
    """

    def setUp(self):
        super().setUp()
        self.ddb = InMemoryDynamoDB()
        self.sqs = mock.MagicMock()
        self.sns = mock.MagicMock()
        patches = [
            mock.patch.object(services, "ddb", self.ddb),
            mock.patch.object(services, "sqs", self.sqs),
            mock.patch.object(services, "sns", self.sns),
            mock.patch.object(services, "sqs_queue_url", return_value="https://sqs.test/orders"),
            mock.patch.object(services, "sns_topic_arn", return_value="arn:aws:sns:test:market"),
        ]
        for patcher in patches:
            patcher.start()
            self.addCleanup(patcher.stop)

    def material_row(self, material_id):
        return self.ddb.get(MATERIALS_TABLE, {"id": material_id})

    def sent_order_ids(self):
        return [
            json.loads(c.args[1])["order_id"]
            for c in self.sqs.send_message.call_args_list
        ]
