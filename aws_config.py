# aws_config.py
import os

import boto3
from botocore.config import Config

from sns_utils import find_sns_topic_arn

# -----------------------------
# AWS region & boto3 config
# -----------------------------
AWS_REGION = os.getenv("AWS_REGION", "us-east-1")

boto3_config = Config(
    region_name=AWS_REGION,
    retries={"max_attempts": 3, "mode": "standard"}
)

# -----------------------------
# DynamoDB tables
# -----------------------------
PROFILES_TABLE = os.getenv("DDB_PROFILES_TABLE", "Profiles")
MATERIALS_TABLE = os.getenv("DDB_MATERIALS_TABLE", "Materials")
ORDERS_TABLE = os.getenv("DDB_ORDERS_TABLE", "Orders")
GROUP_ORDERS_TABLE = os.getenv("DDB_GROUP_ORDERS_TABLE", "GroupOrders")
CART_ITEMS_TABLE = os.getenv("DDB_CART_ITEMS_TABLE", "CartItems")
PRICE_HISTORY_TABLE = os.getenv("DDB_PRICE_HISTORY_TABLE", "PriceHistory")
RATINGS_TABLE = os.getenv("DDB_RATINGS_TABLE", "Ratings")
ORDER_SUMMARY_LOGS_TABLE = os.getenv("DDB_ORDER_SUMMARY_LOGS_TABLE", "OrderSummaryLogs")

# table name -> partition key
TABLE_KEYS = {
    PROFILES_TABLE: "user_id",
    MATERIALS_TABLE: "id",
    ORDERS_TABLE: "id",
    GROUP_ORDERS_TABLE: "id",
    CART_ITEMS_TABLE: "id",
    PRICE_HISTORY_TABLE: "id",
    RATINGS_TABLE: "id",
    ORDER_SUMMARY_LOGS_TABLE: "id",
}

# -----------------------------
# AWS clients/resources
# -----------------------------
def dynamodb_resource():
    return boto3.resource("dynamodb", region_name=AWS_REGION, config=boto3_config)

def sqs_client():
    return boto3.client("sqs", region_name=AWS_REGION, config=boto3_config)

def sns_client():
    return boto3.client("sns", region_name=AWS_REGION, config=boto3_config)

# -----------------------------
# SQS & SNS configuration
# -----------------------------
DEFAULT_QUEUE_NAME = os.getenv("SQS_ORDER_QUEUE_NAME", "spicehub-orders-queue")
DEFAULT_SNS_TOPIC_NAME = os.getenv("SNS_MARKET_TOPIC_NAME", "spicehub-market-notifications")

def get_sqs_url():
    sqs = sqs_client()
    try:
        resp = sqs.get_queue_url(QueueName=DEFAULT_QUEUE_NAME)
        return resp["QueueUrl"]
    except sqs.exceptions.QueueDoesNotExist:
        # Queue does not exist → create it
        resp = sqs.create_queue(
            QueueName=DEFAULT_QUEUE_NAME,
            Attributes={
                "DelaySeconds": "0",
                "MessageRetentionPeriod": "86400"  # 1 day
            }
        )
        return resp["QueueUrl"]

def get_sns_topic_arn():
    arn = find_sns_topic_arn(DEFAULT_SNS_TOPIC_NAME, region=AWS_REGION)
    if arn:
        return arn
    # Topic does not exist → create it
    resp = sns_client().create_topic(Name=DEFAULT_SNS_TOPIC_NAME)
    return resp["TopicArn"]
