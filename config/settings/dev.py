"""
Development settings for Spice Source Hub.
"""

from .base import *  # noqa: F403

DEBUG = True

SECRET_KEY = SECRET_KEY or "dev-only-insecure-key"  # noqa: F405

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "0.0.0.0"]

LOGGING["handlers"]["console"]["formatter"] = "simple"  # noqa: F405
