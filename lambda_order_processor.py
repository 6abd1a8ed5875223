import json
import logging

from aws_config import MATERIALS_TABLE, ORDERS_TABLE
from aws_lib.exceptions import ConditionFailed
from marketplace import services
from marketplace.group_orders import expire_group_orders
from marketplace.models import OrderStatus

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def lambda_handler(event, context):
    records = event.get("Records", [])
    logger.info("Received %d records", len(records))

    processed = 0
    for record in records:
        order_id = None
        try:
            body = json.loads(record["body"])
            order_id = body.get("order_id")
            if body.get("event") != "order_placed" or not order_id:
                logger.warning("Skipping message without an order_placed event: %s", body)
                continue

            process_order(order_id)
            processed += 1
        except Exception:
            logger.exception("Error processing record %s", record.get("messageId"))
            if order_id:
                cancel_order(order_id)

    expired = expire_group_orders()
    return {
        "statusCode": 200,
        "body": json.dumps({"processed": processed, "expired_group_orders": expired}),
    }


def process_order(order_id):
    """
    Reserve stock for a freshly placed order.

    The order is marked as reserved before stock is taken, so a redelivered
    SQS message cannot take the stock twice. An order whose stock cannot be
    reserved is cancelled.
    """
    order = services.ddb.get(ORDERS_TABLE, {"id": order_id})
    if not order:
        raise ValueError(f"Order {order_id} not found")
    if order.get("status") != OrderStatus.PENDING:
        logger.info("Order %s is %s, nothing to reserve", order_id, order.get("status"))
        return order.get("status")

    try:
        services.ddb.update(
            ORDERS_TABLE,
            {"id": order_id},
            set_values={"stock_reserved": True},
            conditions=[("stock_reserved", "exists", False)],
        )
    except ConditionFailed:
        logger.info("Order %s already reserved its stock", order_id)
        return order["status"]

    material = services.ddb.get(MATERIALS_TABLE, {"id": order["material_id"]})
    if not material:
        logger.warning("Material %s for order %s is gone", order["material_id"], order_id)
        cancel_order(order_id)
        return OrderStatus.CANCELLED.value

    quantity = order["quantity"]
    try:
        material = services.ddb.update(
            MATERIALS_TABLE,
            {"id": material["id"]},
            set_values={"updated_at": services.now_iso()},
            add_values={"stock": -quantity},
            conditions=[("stock", "gte", quantity)],
        )
    except ConditionFailed:
        logger.info("Not enough %s for order %s, needed %s", material["name"], order_id, quantity)
        cancel_order(order_id)
        return OrderStatus.CANCELLED.value

    # Low stock SNS alert
    services.alert_low_stock(material)

    logger.info("Order %s reserved %s %s of %s", order_id, quantity, material["unit"], material["name"])
    return order["status"]


def cancel_order(order_id):
    try:
        services.ddb.update(
            ORDERS_TABLE,
            {"id": order_id},
            set_values={"status": OrderStatus.CANCELLED.value, "updated_at": services.now_iso()},
            conditions=[("status", "eq", OrderStatus.PENDING.value)],
        )
    except ConditionFailed:
        logger.info("Order %s is no longer pending, not cancelling", order_id)
        return
    logger.info("Order %s cancelled", order_id)
