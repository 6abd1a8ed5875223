"""
Marketplace operations on top of the hosted DynamoDB tables.

Every read a user triggers is filtered down to the rows that user owns
(vendor_id / supplier_id conditions), and every write that depends on the
current state of a row is a conditional write.
"""
import json
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone

from botocore.exceptions import BotoCoreError, ClientError

from aws_config import (
    CART_ITEMS_TABLE,
    MATERIALS_TABLE,
    ORDER_SUMMARY_LOGS_TABLE,
    ORDERS_TABLE,
    PRICE_HISTORY_TABLE,
    PROFILES_TABLE,
    RATINGS_TABLE,
    get_sns_topic_arn,
    get_sqs_url,
)
from aws_lib.dynamodb_client import DynamoDBClient
from aws_lib.exceptions import BackendError, ConditionFailed
from aws_lib.sns_client import SNSClient
from aws_lib.sqs_client import SQSClient

from .exceptions import CartError, MarketplaceError, OrderError, RatingError
from .models import (
    LOW_STOCK_THRESHOLD,
    ORDER_TRANSITIONS,
    OrderStatus,
    OrderType,
)

logger = logging.getLogger(__name__)

CART_WRITE_ATTEMPTS = 3

# AWS client initialization
ddb = DynamoDBClient()     # DynamoDB wrapper
sqs = SQSClient()          # SQS wrapper
sns = SNSClient()          # SNS wrapper


# utility helpers for sqs and sns
def sqs_queue_url():
    """Retrieve SQS queue URL."""
    try:
        url = get_sqs_url()
    except (BotoCoreError, ClientError) as exc:
        raise BackendError(str(exc)) from exc
    if not url:
        raise RuntimeError("SQS queue URL is not configured.")
    return url


def sns_topic_arn():
    """Retrieve SNS topic ARN."""
    try:
        arn = get_sns_topic_arn()
    except (BotoCoreError, ClientError) as exc:
        raise BackendError(str(exc)) from exc
    if not arn:
        raise RuntimeError("SNS topic ARN is not configured.")
    return arn


def now_iso():
    return datetime.now(timezone.utc).isoformat()


def new_id():
    return str(uuid.uuid4())


def format_amount(value):
    """150.0 -> '150', 12.5 -> '12.5'"""
    return f"{float(value):.2f}".rstrip("0").rstrip(".")


def notify(message, subject=None):
    """Publish a marketplace notification; the triggering write has already happened."""
    try:
        sns.publish(sns_topic_arn(), message, subject=subject)
    except (BackendError, RuntimeError):
        logger.exception("Could not publish notification: %s", message)


# profiles
def get_profile(user_id):
    profile = ddb.get(PROFILES_TABLE, {"user_id": str(user_id)})
    return profile or None


def create_profile(user_id, full_name, role, business_name="", location="", phone=None):
    timestamp = now_iso()
    profile = {
        "user_id": str(user_id),
        "full_name": full_name.strip(),
        "role": role,
        "business_name": business_name or None,
        "location": location or "",
        "phone": phone,
        "created_at": timestamp,
        "updated_at": timestamp,
    }
    ddb.put(PROFILES_TABLE, profile, conditions=[("user_id", "exists", False)])
    logger.info("Created %s profile for user %s", role, user_id)
    return profile


# catalog
def get_material(material_id):
    return ddb.get(MATERIALS_TABLE, {"id": material_id}) or None


def material_lookup():
    """Map material id -> material for joining onto other rows."""
    return {m["id"]: m for m in ddb.scan(MATERIALS_TABLE)}


def search_materials(materials, term):
    """Case-insensitive match on name or description."""
    term = (term or "").strip().lower()
    if not term:
        return list(materials)
    return [
        m for m in materials
        if term in m.get("name", "").lower()
        or term in (m.get("description") or "").lower()
    ]


def list_catalog(search=None):
    """Materials vendors can buy right now (stock > 0)."""
    materials = ddb.scan(MATERIALS_TABLE, conditions=[("stock", "gt", 0)])
    materials = search_materials(materials, search)
    return sorted(materials, key=lambda m: m.get("name", "").lower())


def list_supplier_materials(supplier_id):
    materials = ddb.scan(MATERIALS_TABLE, conditions=[("supplier_id", "eq", str(supplier_id))])
    return sorted(materials, key=lambda m: m.get("name", "").lower())


def record_price(material, price):
    point = {
        "id": new_id(),
        "material_id": material["id"],
        "supplier_id": material["supplier_id"],
        "price": price,
        "date": now_iso(),
        "created_at": now_iso(),
    }
    ddb.put(PRICE_HISTORY_TABLE, point)
    return point


def alert_low_stock(material):
    if material["stock"] < LOW_STOCK_THRESHOLD:
        notify(
            f"Low stock alert: {material['name']} has {material['stock']} {material['unit']} left",
            subject="Low Stock Alert",
        )


def add_material(supplier_id, name, price, stock, unit, description=""):
    timestamp = now_iso()
    material = {
        "id": new_id(),
        "supplier_id": str(supplier_id),
        "name": name.strip(),
        "description": description or None,
        "price": price,
        "stock": stock,
        "unit": unit,
        "created_at": timestamp,
        "updated_at": timestamp,
    }
    ddb.put(MATERIALS_TABLE, material)
    record_price(material, price)
    alert_low_stock(material)
    logger.info("Supplier %s added material %s", supplier_id, material["id"])
    return material


def update_material(supplier_id, material_id, price, stock, unit, description=""):
    """Edit one of the supplier's own materials. The name is immutable."""
    material = get_material(material_id)
    if not material or material["supplier_id"] != str(supplier_id):
        raise MarketplaceError("Material not found")

    try:
        updated = ddb.update(
            MATERIALS_TABLE,
            {"id": material_id},
            set_values={
                "price": price,
                "stock": stock,
                "unit": unit,
                "description": description or None,
                "updated_at": now_iso(),
            },
            conditions=[("supplier_id", "eq", str(supplier_id))],
        )
    except ConditionFailed as exc:
        raise MarketplaceError("Material not found") from exc

    if float(material["price"]) != float(price):
        record_price(updated, price)
    alert_low_stock(updated)
    return updated


# orders
def enqueue_order_event(order):
    """Hand the order to the async processor; the order row is already stored."""
    try:
        sqs.send_message(
            sqs_queue_url(),
            json.dumps({"event": "order_placed", "order_id": order["id"]})
        )
    except (BackendError, RuntimeError):
        logger.exception("Could not enqueue order %s", order["id"])


def create_order(vendor_id, supplier_id, material_id, quantity, unit_price,
                 order_type=OrderType.INDIVIDUAL, group_order_id=None):
    timestamp = now_iso()
    order = {
        "id": new_id(),
        "vendor_id": str(vendor_id),
        "supplier_id": supplier_id,
        "material_id": material_id,
        "quantity": quantity,
        "total_price": round(float(unit_price) * quantity, 2),
        "status": OrderStatus.PENDING.value,
        "type": str(order_type),
        "created_at": timestamp,
        "updated_at": timestamp,
    }
    if group_order_id:
        order["group_order_id"] = group_order_id
    ddb.put(ORDERS_TABLE, order)
    enqueue_order_event(order)
    return order


def place_order(vendor_id, material_id, quantity=1):
    if quantity < 1:
        raise OrderError("Quantity must be at least 1")

    material = get_material(material_id)
    if not material:
        raise OrderError("Material not found")
    if quantity > material.get("stock", 0):
        raise OrderError(
            f"Only {material.get('stock', 0)} {material['unit']} of {material['name']} in stock"
        )

    order = create_order(
        vendor_id,
        material["supplier_id"],
        material_id,
        quantity,
        material["price"],
    )
    logger.info("Vendor %s ordered %s x %s", vendor_id, quantity, material_id)
    return order, material


def _with_materials(orders):
    lookup = material_lookup()
    for o in orders:
        o["material"] = lookup.get(o.get("material_id"))
        o["material_name"] = (o["material"] or {}).get("name", "Unknown")
    return sorted(orders, key=lambda o: o.get("created_at", ""), reverse=True)


def list_vendor_orders(vendor_id):
    orders = ddb.scan(ORDERS_TABLE, conditions=[("vendor_id", "eq", str(vendor_id))])
    return _with_materials(orders)


def list_supplier_orders(supplier_id):
    orders = ddb.scan(ORDERS_TABLE, conditions=[("supplier_id", "eq", str(supplier_id))])
    return _with_materials(orders)


def allowed_transitions(status):
    return list(ORDER_TRANSITIONS.get(str(status), ()))


def update_order_status(supplier_id, order_id, status):
    order = ddb.get(ORDERS_TABLE, {"id": order_id})
    if not order or order.get("supplier_id") != str(supplier_id):
        raise OrderError("Order not found")

    current = order.get("status", OrderStatus.PENDING)
    if status not in allowed_transitions(current):
        raise OrderError(f"Cannot change an order from {current} to {status}")

    try:
        updated = ddb.update(
            ORDERS_TABLE,
            {"id": order_id},
            set_values={"status": status, "updated_at": now_iso()},
            conditions=[
                ("supplier_id", "eq", str(supplier_id)),
                ("status", "eq", current),
            ],
        )
    except ConditionFailed as exc:
        raise OrderError("This order was changed meanwhile, please refresh") from exc

    logger.info("Order %s moved %s -> %s", order_id, current, status)
    return updated


# cart
def _cart_rows(vendor_id):
    return ddb.scan(CART_ITEMS_TABLE, conditions=[("vendor_id", "eq", str(vendor_id))])


def list_cart(vendor_id):
    """Cart rows with their material attached; rows whose material is gone are left out."""
    items = []
    for row in _cart_rows(vendor_id):
        material = get_material(row["material_id"])
        if not material:
            continue
        row["material"] = material
        row["line_total"] = round(float(material["price"]) * row["quantity"], 2)
        items.append(row)
    return sorted(items, key=lambda i: i.get("created_at", ""))


def cart_summary(items):
    return {
        "total_amount": round(sum(i["line_total"] for i in items), 2),
        "total_quantity": sum(i["quantity"] for i in items),
        "distinct_materials": len(items),
    }


def cart_item_id(vendor_id, material_id):
    """A vendor has at most one cart row per material."""
    return f"{vendor_id}:{material_id}"


def add_to_cart(vendor_id, material_id, quantity=1):
    """
    Add to the vendor's cart row for this material, creating it if needed.

    Both the create and the merge are conditional on the row being as it
    was read; a lost race is retried against the fresh row.
    """
    if quantity < 1:
        raise CartError("Quantity must be at least 1")
    material = get_material(material_id)
    if not material or material.get("stock", 0) <= 0:
        raise CartError("This material is out of stock")

    vendor_id = str(vendor_id)
    item_id = cart_item_id(vendor_id, material_id)
    for _ in range(CART_WRITE_ATTEMPTS):
        row = ddb.get(CART_ITEMS_TABLE, {"id": item_id})
        try:
            if row:
                return ddb.update(
                    CART_ITEMS_TABLE,
                    {"id": item_id},
                    set_values={"quantity": min(row["quantity"] + quantity, material["stock"])},
                    conditions=[
                        ("vendor_id", "eq", vendor_id),
                        ("quantity", "eq", row["quantity"]),
                    ],
                )
            row = {
                "id": item_id,
                "vendor_id": vendor_id,
                "material_id": material_id,
                "quantity": min(quantity, material["stock"]),
                "created_at": now_iso(),
            }
            ddb.put(CART_ITEMS_TABLE, row, conditions=[("id", "exists", False)])
            return row
        except ConditionFailed:
            logger.info("Cart row %s changed while adding, retrying", item_id)
    raise CartError("Your cart changed meanwhile, please try again")


def remove_from_cart(vendor_id, item_id):
    try:
        ddb.delete(
            CART_ITEMS_TABLE,
            {"id": item_id},
            conditions=[("vendor_id", "eq", str(vendor_id))],
        )
    except ConditionFailed as exc:
        raise CartError("Cart item not found") from exc


def update_cart_quantity(vendor_id, item_id, quantity):
    """Set a cart row's quantity; zero or less removes it, stock caps it."""
    row = ddb.get(CART_ITEMS_TABLE, {"id": item_id})
    if not row or row.get("vendor_id") != str(vendor_id):
        raise CartError("Cart item not found")

    if quantity <= 0:
        remove_from_cart(vendor_id, item_id)
        return None

    material = get_material(row["material_id"])
    if material:
        quantity = min(quantity, material.get("stock", quantity))
    try:
        return ddb.update(
            CART_ITEMS_TABLE,
            {"id": item_id},
            set_values={"quantity": quantity},
            conditions=[("vendor_id", "eq", str(vendor_id))],
        )
    except ConditionFailed as exc:
        raise CartError("Cart item not found") from exc


def checkout(vendor_id):
    """
    Turn the vendor's cart into one individual order per item.

    Items are grouped by supplier, a summary line is logged for the vendor
    and the cart is emptied.
    """
    items = list_cart(vendor_id)
    if not items:
        raise CartError("Your cart is empty")

    by_supplier = defaultdict(list)
    for item in items:
        by_supplier[item["material"]["supplier_id"]].append(item)

    orders = []
    for supplier_id, supplier_items in by_supplier.items():
        for item in supplier_items:
            orders.append(create_order(
                vendor_id,
                supplier_id,
                item["material_id"],
                item["quantity"],
                item["material"]["price"],
            ))

    total = round(sum(o["total_price"] for o in orders), 2)
    summary = f"Checkout completed: {len(items)} items, Total: ₹{format_amount(total)}"
    ddb.put(ORDER_SUMMARY_LOGS_TABLE, {
        "id": new_id(),
        "vendor_id": str(vendor_id),
        "order_id": orders[0]["id"],
        "summary": summary,
        "created_at": now_iso(),
    })

    for row in _cart_rows(vendor_id):
        ddb.delete(CART_ITEMS_TABLE, {"id": row["id"]})

    logger.info("Vendor %s checked out %d orders across %d suppliers",
                vendor_id, len(orders), len(by_supplier))
    return {"orders": orders, "total": total, "summary": summary}


# ratings
def rate_order(vendor_id, order_id, stars, review=""):
    order = ddb.get(ORDERS_TABLE, {"id": order_id})
    if not order or order.get("vendor_id") != str(vendor_id):
        raise RatingError("Order not found")
    if order.get("status") != OrderStatus.DELIVERED:
        raise RatingError("Only delivered orders can be rated")
    if not 1 <= stars <= 5:
        raise RatingError("Stars must be between 1 and 5")

    # one rating per order: the rating row is keyed by the order id
    rating = {
        "id": order_id,
        "order_id": order_id,
        "vendor_id": str(vendor_id),
        "supplier_id": order["supplier_id"],
        "stars": stars,
        "review": review or None,
        "created_at": now_iso(),
    }
    try:
        ddb.put(RATINGS_TABLE, rating, conditions=[("id", "exists", False)])
    except ConditionFailed as exc:
        raise RatingError("You have already rated this order") from exc
    return rating


def list_supplier_ratings(supplier_id):
    ratings = ddb.scan(RATINGS_TABLE, conditions=[("supplier_id", "eq", str(supplier_id))])
    ratings.sort(key=lambda r: r.get("created_at", ""), reverse=True)
    average = round(sum(r["stars"] for r in ratings) / len(ratings), 1) if ratings else None
    return ratings, average


def rated_order_ids(vendor_id):
    ratings = ddb.scan(RATINGS_TABLE, conditions=[("vendor_id", "eq", str(vendor_id))])
    return {r["order_id"] for r in ratings}
