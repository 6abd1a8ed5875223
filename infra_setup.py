# infra_setup.py
import logging

from botocore.exceptions import ClientError

from aws_config import (
    DEFAULT_QUEUE_NAME,
    DEFAULT_SNS_TOPIC_NAME,
    TABLE_KEYS,
    dynamodb_resource,
    sns_client,
    sqs_client,
)

logger = logging.getLogger("infra_setup")

# Initialize AWS clients/resources
ddb = dynamodb_resource()
sqs = sqs_client()
sns = sns_client()


# --- DynamoDB Tables ---
def create_table(table_name, partition_key):
    """Create a DynamoDB table if it doesn't exist."""
    try:
        table = ddb.Table(table_name)
        table.load()
        logger.info("Table '%s' already exists.", table_name)
    except ClientError as exc:
        if exc.response["Error"]["Code"] != "ResourceNotFoundException":
            raise
        table = ddb.create_table(
            TableName=table_name,
            AttributeDefinitions=[{"AttributeName": partition_key, "AttributeType": "S"}],
            KeySchema=[{"AttributeName": partition_key, "KeyType": "HASH"}],
            BillingMode="PAY_PER_REQUEST"
        )
        table.wait_until_exists()
        logger.info("Created table '%s' successfully.", table_name)


# --- SQS Queue ---
def create_queue(queue_name):
    resp = sqs.create_queue(QueueName=queue_name)
    logger.info("Created queue '%s': %s", queue_name, resp["QueueUrl"])
    return resp["QueueUrl"]


# --- SNS Topic ---
def create_topic(topic_name):
    resp = sns.create_topic(Name=topic_name)
    logger.info("Created SNS topic '%s': %s", topic_name, resp["TopicArn"])
    return resp["TopicArn"]


# --- Main setup ---
if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    for name, key in TABLE_KEYS.items():
        create_table(name, key)

    QUEUE_URL = create_queue(DEFAULT_QUEUE_NAME)
    TOPIC_ARN = create_topic(DEFAULT_SNS_TOPIC_NAME)

    logger.info("Infrastructure setup completed successfully.")
    logger.info("Orders Queue URL: %s", QUEUE_URL)
    logger.info("SNS Topic ARN: %s", TOPIC_ARN)
