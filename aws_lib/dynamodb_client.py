import logging
from decimal import Decimal
from functools import reduce

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import BotoCoreError, ClientError

from .base_client import AWSBaseClient
from .exceptions import BackendError, ConditionFailed

logger = logging.getLogger(__name__)


def _attr_condition(attribute, op, value=None):
    """Translate one (attribute, op, value) tuple into a boto3 condition."""
    attr = Attr(attribute)
    if op == "eq":
        return attr.eq(value)
    if op == "ne":
        return attr.ne(value)
    if op == "gt":
        return attr.gt(value)
    if op == "gte":
        return attr.gte(value)
    if op == "lt":
        return attr.lt(value)
    if op == "lte":
        return attr.lte(value)
    if op == "contains":
        return attr.contains(value)
    if op == "not_contains":
        return ~attr.contains(value)
    if op == "exists":
        return attr.exists() if value in (None, True) else attr.not_exists()
    raise ValueError(f"Unsupported condition operator: {op}")


class DynamoDBClient(AWSBaseClient):
    def __init__(self):
        super().__init__("dynamodb")

    def _deserialize(self, value):
        """Convert DynamoDB data into plain Python types."""
        if isinstance(value, dict):
            return {k: self._deserialize(v) for k, v in value.items()}
        if isinstance(value, (list, set)):
            return [self._deserialize(v) for v in value]
        if isinstance(value, Decimal):
            return int(value) if value % 1 == 0 else float(value)
        return value

    def _convert_to_decimal(self, data):
        """Recursively convert numbers to Decimal, DynamoDB rejects floats."""
        if isinstance(data, dict):
            return {k: self._convert_to_decimal(v) for k, v in data.items()}
        if isinstance(data, list):
            return [self._convert_to_decimal(v) for v in data]
        if isinstance(data, bool):
            return data
        if isinstance(data, (int, float)):
            return Decimal(str(data))
        return data

    def _build_condition(self, conditions):
        if not conditions:
            return None
        parts = [
            _attr_condition(*self._convert_to_decimal(list(c)))
            for c in conditions
        ]
        return reduce(lambda a, b: a & b, parts)

    def _call(self, table, action, **kwargs):
        tbl = self.resource.Table(table)
        try:
            return getattr(tbl, action)(**kwargs)
        except ClientError as exc:
            code = exc.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                raise ConditionFailed(f"{table}.{action}: condition not met") from exc
            logger.error("DynamoDB %s on %s failed: %s", action, table, exc)
            raise BackendError(str(exc)) from exc
        except BotoCoreError as exc:
            # connection, credential and timeout failures
            logger.error("DynamoDB %s on %s unreachable: %s", action, table, exc)
            raise BackendError(str(exc)) from exc

# CRUD

    def put(self, table, item, conditions=None):
        params = {"Item": self._convert_to_decimal(item)}
        condition = self._build_condition(conditions)
        if condition is not None:
            params["ConditionExpression"] = condition
        return self._call(table, "put_item", **params)

    def get(self, table, key):
        resp = self._call(table, "get_item", Key=key)
        item = resp.get("Item")
        return self._deserialize(item) if item else {}

    def scan(self, table, conditions=None):
        """
        Return every item in the table matching all `conditions`.

        Filtering happens on the server; pages are followed until
        LastEvaluatedKey is exhausted.
        """
        params = {}
        condition = self._build_condition(conditions)
        if condition is not None:
            params["FilterExpression"] = condition

        items = []
        while True:
            resp = self._call(table, "scan", **params)
            items.extend(resp.get("Items", []))
            last_key = resp.get("LastEvaluatedKey")
            if not last_key:
                break
            params["ExclusiveStartKey"] = last_key
        return [self._deserialize(i) for i in items]

    def update(self, table, key, set_values=None, add_values=None,
               append_values=None, conditions=None):
        """
        Apply a single UpdateItem and return the item as stored afterwards.

        set_values overwrite attributes, add_values are numeric increments and
        append_values extend list attributes. Raises ConditionFailed when a
        condition does not hold, leaving the item untouched.
        """
        clauses = []
        names = {}
        values = {}

        def placeholder(attribute, value):
            # boto3 reserves #n/:v for the condition expression it builds
            idx = len(names)
            names[f"#u{idx}"] = attribute
            values[f":u{idx}"] = self._convert_to_decimal(value)
            return f"#u{idx}", f":u{idx}"

        for attribute, value in (set_values or {}).items():
            n, v = placeholder(attribute, value)
            clauses.append(f"{n} = {v}")
        for attribute, value in (append_values or {}).items():
            n, v = placeholder(attribute, list(value))
            values[":empty"] = []
            clauses.append(f"{n} = list_append(if_not_exists({n}, :empty), {v})")

        expression = ""
        if clauses:
            expression = "SET " + ", ".join(clauses)
        add_clauses = []
        for attribute, value in (add_values or {}).items():
            n, v = placeholder(attribute, value)
            add_clauses.append(f"{n} {v}")
        if add_clauses:
            expression = f"{expression} ADD {', '.join(add_clauses)}".strip()

        params = {
            "Key": key,
            "UpdateExpression": expression,
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ReturnValues": "ALL_NEW",
        }
        condition = self._build_condition(conditions)
        if condition is not None:
            params["ConditionExpression"] = condition

        resp = self._call(table, "update_item", **params)
        return self._deserialize(resp.get("Attributes", {}))

    def delete(self, table, key, conditions=None):
        """
        Delete an item from the DynamoDB table.
        """
        params = {"Key": key}
        condition = self._build_condition(conditions)
        if condition is not None:
            params["ConditionExpression"] = condition
        return self._call(table, "delete_item", **params)
