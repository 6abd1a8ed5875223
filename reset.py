# reset.py: wipe every marketplace table and the order queue, then seed demo data
import logging
from datetime import datetime, timedelta, timezone

from aws_config import (
    DEFAULT_QUEUE_NAME,
    MATERIALS_TABLE,
    PRICE_HISTORY_TABLE,
    PROFILES_TABLE,
    TABLE_KEYS,
    dynamodb_resource,
    get_sqs_url,
)
from aws_lib.dynamodb_client import DynamoDBClient
from aws_lib.sqs_client import SQSClient

logger = logging.getLogger("reset")

DEMO_SUPPLIER_ID = "demo-supplier"

# name, unit, price history (oldest first), stock
DEMO_MATERIALS = [
    ("Turmeric Powder", "kg", [180, 185, 178, 190], 120),
    ("Red Chilli", "kg", [240, 260, 300, 280], 80),
    ("Onions", "kg", [30, 32, 45, 38], 500),
    ("Mustard Oil", "l", [150, 150, 152, 151], 60),
    ("Paneer", "kg", [320, 330, 335, 340], 25),
    ("Pav Buns", "dozen", [40, 40, 42, 42], 200),
]


def clear_tables(ddb):
    for table_name, key_name in TABLE_KEYS.items():
        table = ddb.Table(table_name)
        logger.info("Clearing table: %s", table_name)

        items = []
        response = table.scan()
        items.extend(response.get("Items", []))
        while "LastEvaluatedKey" in response:
            response = table.scan(ExclusiveStartKey=response["LastEvaluatedKey"])
            items.extend(response.get("Items", []))

        with table.batch_writer() as batch:
            for item in items:
                batch.delete_item(Key={key_name: item[key_name]})
        logger.info("Cleared %d items from %s", len(items), table_name)


def clear_queue(sqs, queue_url):
    logger.info("Clearing SQS queue: %s", DEFAULT_QUEUE_NAME)
    drained = 0
    while True:
        messages = sqs.receive_messages(queue_url, max_messages=10)
        if not messages:
            break
        for m in messages:
            sqs.delete_message(queue_url, m["ReceiptHandle"])
        drained += len(messages)
    logger.info("SQS queue cleared, %d messages dropped", drained)


def seed(client):
    now = datetime.now(timezone.utc)
    client.put(PROFILES_TABLE, {
        "user_id": DEMO_SUPPLIER_ID,
        "full_name": "Demo Spice Traders",
        "role": "supplier",
        "business_name": "Demo Spice Traders",
        "location": "Mumbai",
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    })

    for index, (name, unit, prices, stock) in enumerate(DEMO_MATERIALS):
        material_id = f"demo-material-{index}"
        client.put(MATERIALS_TABLE, {
            "id": material_id,
            "supplier_id": DEMO_SUPPLIER_ID,
            "name": name,
            "description": f"Demo {name.lower()}",
            "price": prices[-1],
            "stock": stock,
            "unit": unit,
            "created_at": now.isoformat(),
            "updated_at": now.isoformat(),
        })
        for week, price in enumerate(prices):
            date = now - timedelta(weeks=len(prices) - week - 1)
            client.put(PRICE_HISTORY_TABLE, {
                "id": f"{material_id}-{week}",
                "material_id": material_id,
                "supplier_id": DEMO_SUPPLIER_ID,
                "price": price,
                "date": date.isoformat(),
                "created_at": date.isoformat(),
            })
    logger.info("Seeded %d demo materials", len(DEMO_MATERIALS))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    clear_tables(dynamodb_resource())
    clear_queue(SQSClient(), get_sqs_url())
    seed(DynamoDBClient())
