import logging

from aws_lib.exceptions import BackendError

from .decorators import load_profile

logger = logging.getLogger(__name__)


def profile(request):
    """Expose the signed-in user's profile to the navbar."""
    if not getattr(request, "user", None) or not request.user.is_authenticated:
        return {"profile": None}
    try:
        return {"profile": load_profile(request)}
    except BackendError:
        logger.warning("Profile lookup failed for user %s", request.user.pk)
        return {"profile": None}
