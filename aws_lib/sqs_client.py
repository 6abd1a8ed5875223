import logging

from botocore.exceptions import BotoCoreError, ClientError

from .base_client import AWSBaseClient
from .exceptions import BackendError

logger = logging.getLogger(__name__)


class SQSClient(AWSBaseClient):
    def __init__(self):
        super().__init__("sqs")

    def send_message(self, queue_url, body):
        try:
            return self.client.send_message(
                QueueUrl=queue_url,
                MessageBody=body
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("SQS send to %s failed: %s", queue_url, exc)
            raise BackendError(str(exc)) from exc

    def receive_messages(self, queue_url, max_messages=1):
        try:
            resp = self.client.receive_message(
                QueueUrl=queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=5
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("SQS receive from %s failed: %s", queue_url, exc)
            raise BackendError(str(exc)) from exc
        return resp.get("Messages", [])

    def delete_message(self, queue_url, receipt_handle):
        try:
            return self.client.delete_message(QueueUrl=queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as exc:
            logger.error("SQS delete on %s failed: %s", queue_url, exc)
            raise BackendError(str(exc)) from exc
