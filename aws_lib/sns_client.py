import logging

from botocore.exceptions import BotoCoreError, ClientError

from .base_client import AWSBaseClient
from .exceptions import BackendError

logger = logging.getLogger(__name__)


class SNSClient(AWSBaseClient):
    def __init__(self):
        super().__init__("sns")

    def publish(self, topic_arn, message, subject=None):
        params = {"TopicArn": topic_arn, "Message": message}
        if subject:
            params["Subject"] = subject
        try:
            return self.client.publish(**params)
        except (BotoCoreError, ClientError) as exc:
            logger.error("SNS publish to %s failed: %s", topic_arn, exc)
            raise BackendError(str(exc)) from exc
