import boto3


def find_sns_topic_arn(topic_name: str, region: str = "us-east-1"):
    """
    Look up a marketplace topic's ARN by its exact name.
    Returns None when no topic with that name exists in the region.
    """
    pages = boto3.client("sns", region_name=region).get_paginator("list_topics").paginate()
    for page in pages:
        for topic in page.get("Topics", []):
            # arn:aws:sns:<region>:<account>:<name>
            if topic["TopicArn"].rsplit(":", 1)[-1] == topic_name:
                return topic["TopicArn"]
    return None
