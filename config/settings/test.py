"""
Test settings for Spice Source Hub.
Fast, isolated testing environment; DynamoDB/SQS/SNS are replaced in the tests.
"""

from .base import *  # noqa: F403

DEBUG = False

SECRET_KEY = "test-secret-key"

ALLOWED_HOSTS = ["testserver"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# Fast password hashing for tests
PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

LOGGING["loggers"]["marketplace"]["level"] = "CRITICAL"  # noqa: F405
LOGGING["loggers"]["aws_lib"]["level"] = "CRITICAL"  # noqa: F405
