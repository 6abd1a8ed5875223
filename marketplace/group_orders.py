"""
Group orders: vendors pool demand for one material until the pooled
quantity reaches the minimum and the discounted price unlocks.

    open --(total_quantity >= min_quantity)--> unlocked --(checkout)--> ordered
    open --(expires_at passed)--> expired

Join and checkout are single conditional updates, so two vendors racing
on the same group order cannot both win a step that only one may take.
"""
import logging
from datetime import datetime, timedelta, timezone

from aws_config import GROUP_ORDERS_TABLE
from aws_lib.exceptions import ConditionFailed

from . import services
from .exceptions import GroupOrderError
from .models import GroupOrderStatus, OrderType

logger = logging.getLogger(__name__)

DEFAULT_MIN_QUANTITY = 100
DEFAULT_EXPIRY_DAYS = 7
DEFAULT_DISCOUNT = 0.9

ALREADY_JOINED = "You are already part of this group order"
NOT_OPEN = "This group order is no longer open"
NOT_CHECKOUTABLE = "This group order has already been checked out or is not yet unlocked"


def default_discounted_price(material):
    return round(float(material["price"]) * DEFAULT_DISCOUNT, 2)


def discount_percentage(list_price, discounted_price):
    list_price = float(list_price)
    if list_price <= 0:
        return 0
    return round((list_price - float(discounted_price)) / list_price * 100)


def progress_percent(group_order):
    minimum = group_order.get("min_quantity") or 1
    return round(min(group_order.get("total_quantity", 0) / minimum, 1) * 100)


def get_group_order(group_order_id):
    group_order = services.ddb.get(GROUP_ORDERS_TABLE, {"id": group_order_id})
    if not group_order:
        raise GroupOrderError("Group order not found")
    return group_order


def create_group_order(vendor_id, material, min_quantity=DEFAULT_MIN_QUANTITY,
                       discounted_price=None, expiry_days=DEFAULT_EXPIRY_DAYS,
                       description=""):
    """Start a group order; the creator is its first participant with one unit."""
    if discounted_price is None:
        discounted_price = default_discounted_price(material)

    vendor_id = str(vendor_id)
    created = datetime.now(timezone.utc)
    group_order = {
        "id": services.new_id(),
        "material_id": material["id"],
        "supplier_id": material["supplier_id"],
        "created_by": vendor_id,
        "min_quantity": min_quantity,
        "current_price": discounted_price,
        "total_quantity": 1,
        "participants": [vendor_id],
        "contributions": [{"vendor_id": vendor_id, "quantity": 1}],
        "status": GroupOrderStatus.OPEN.value,
        "description": description or None,
        "expires_at": (created + timedelta(days=expiry_days)).isoformat(),
        "created_at": created.isoformat(),
        "updated_at": created.isoformat(),
    }
    services.ddb.put(GROUP_ORDERS_TABLE, group_order)
    logger.info("Vendor %s opened group order %s for material %s",
                vendor_id, group_order["id"], material["id"])
    return group_order


def _decorate(group_order, materials, viewer_id):
    group_order["material"] = materials.get(group_order["material_id"])
    group_order["progress"] = progress_percent(group_order)
    group_order["participant_count"] = len(group_order.get("participants", []))
    group_order["joined"] = viewer_id in group_order.get("participants", [])
    return group_order


def list_open_group_orders(viewer_id):
    """Open, unexpired group orders whose material still exists."""
    rows = services.ddb.scan(GROUP_ORDERS_TABLE, conditions=[
        ("status", "eq", GroupOrderStatus.OPEN.value),
        ("expires_at", "gt", services.now_iso()),
    ])
    materials = services.material_lookup()
    decorated = [_decorate(g, materials, str(viewer_id)) for g in rows]
    decorated = [g for g in decorated if g["material"]]
    return sorted(decorated, key=lambda g: g["expires_at"])


def list_supplier_group_orders(supplier_id, status=GroupOrderStatus.UNLOCKED):
    rows = services.ddb.scan(GROUP_ORDERS_TABLE, conditions=[
        ("supplier_id", "eq", str(supplier_id)),
        ("status", "eq", str(status)),
    ])
    materials = services.material_lookup()
    return [_decorate(g, materials, str(supplier_id)) for g in rows]


def join_group_order(vendor_id, group_order_id, quantity=1):
    """
    Add the vendor's quantity to an open group order.

    Unlocks the discounted price once the pooled quantity reaches the
    minimum. Returns the group order as stored after the join.
    """
    vendor_id = str(vendor_id)
    if quantity < 1:
        raise GroupOrderError("Quantity must be at least 1")

    group_order = get_group_order(group_order_id)
    if vendor_id in group_order.get("participants", []):
        raise GroupOrderError(ALREADY_JOINED)

    timestamp = services.now_iso()
    try:
        updated = services.ddb.update(
            GROUP_ORDERS_TABLE,
            {"id": group_order_id},
            set_values={"updated_at": timestamp},
            append_values={
                "participants": [vendor_id],
                "contributions": [{"vendor_id": vendor_id, "quantity": quantity}],
            },
            add_values={"total_quantity": quantity},
            conditions=[
                ("status", "eq", GroupOrderStatus.OPEN.value),
                ("expires_at", "gt", timestamp),
                ("participants", "not_contains", vendor_id),
            ],
        )
    except ConditionFailed as exc:
        latest = get_group_order(group_order_id)
        if vendor_id in latest.get("participants", []):
            raise GroupOrderError(ALREADY_JOINED) from exc
        raise GroupOrderError(NOT_OPEN) from exc

    logger.info("Vendor %s joined group order %s with %s",
                vendor_id, group_order_id, quantity)

    if updated["total_quantity"] >= updated["min_quantity"]:
        updated = _unlock(updated)
    return updated


def _unlock(group_order):
    try:
        unlocked = services.ddb.update(
            GROUP_ORDERS_TABLE,
            {"id": group_order["id"]},
            set_values={
                "status": GroupOrderStatus.UNLOCKED.value,
                "updated_at": services.now_iso(),
            },
            conditions=[("status", "eq", GroupOrderStatus.OPEN.value)],
        )
    except ConditionFailed:
        # a concurrent join got there first
        return get_group_order(group_order["id"])

    logger.info("Group order %s unlocked at %s units", unlocked["id"], unlocked["total_quantity"])
    services.notify(
        f"Group order {unlocked['id']} reached {unlocked['total_quantity']} units "
        f"and unlocked the price of ₹{services.format_amount(unlocked['current_price'])}",
        subject="Group order unlocked",
    )
    return unlocked


def checkout_group_order(user_id, group_order_id):
    """
    Place one group-priced order per contribution of an unlocked group order.

    Only participants and the material's supplier may check out, and only
    once: the unlocked -> ordered step is conditional.
    """
    user_id = str(user_id)
    group_order = get_group_order(group_order_id)
    if user_id not in group_order.get("participants", []) and user_id != group_order.get("supplier_id"):
        raise GroupOrderError("Only participants or the supplier can check out this group order")

    try:
        services.ddb.update(
            GROUP_ORDERS_TABLE,
            {"id": group_order_id},
            set_values={
                "status": GroupOrderStatus.ORDERED.value,
                "updated_at": services.now_iso(),
            },
            conditions=[("status", "eq", GroupOrderStatus.UNLOCKED.value)],
        )
    except ConditionFailed as exc:
        raise GroupOrderError(NOT_CHECKOUTABLE) from exc

    contributions = group_order.get("contributions") or [
        {"vendor_id": p, "quantity": 1} for p in group_order.get("participants", [])
    ]
    orders = [
        services.create_order(
            c["vendor_id"],
            group_order["supplier_id"],
            group_order["material_id"],
            c["quantity"],
            group_order["current_price"],
            order_type=OrderType.GROUP,
            group_order_id=group_order_id,
        )
        for c in contributions
    ]

    logger.info("Group order %s checked out into %d orders", group_order_id, len(orders))
    services.notify(
        f"Group order {group_order_id} has been placed for {len(orders)} participants",
        subject="Group order placed",
    )
    return orders


def expire_group_orders(now=None):
    """Close open group orders whose expiry has passed. Returns how many were closed."""
    now = now or services.now_iso()
    stale = services.ddb.scan(GROUP_ORDERS_TABLE, conditions=[
        ("status", "eq", GroupOrderStatus.OPEN.value),
        ("expires_at", "lte", now),
    ])
    expired = 0
    for group_order in stale:
        try:
            services.ddb.update(
                GROUP_ORDERS_TABLE,
                {"id": group_order["id"]},
                set_values={"status": GroupOrderStatus.EXPIRED.value, "updated_at": now},
                conditions=[("status", "eq", GroupOrderStatus.OPEN.value)],
            )
        except ConditionFailed:
            logger.info("Group order %s changed before it could expire", group_order["id"])
            continue
        expired += 1
    if expired:
        logger.info("Expired %d group orders", expired)
    return expired
