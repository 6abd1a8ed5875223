from functools import wraps

from django.contrib import messages
from django.contrib.auth.decorators import login_required
from django.shortcuts import redirect

from . import services


def load_profile(request):
    """Fetch the signed-in user's profile once per request."""
    if not hasattr(request, "profile"):
        request.profile = services.get_profile(request.user.pk)
    return request.profile


def role_required(role):
    """
    Only let users whose profile has `role` through; others go back to
    their dashboard.
    """
    def decorator(view):
        @login_required
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            profile = load_profile(request)
            if not profile or profile.get("role") != role:
                messages.error(request, f"This page is only available to {role}s.")
                return redirect("dashboard")
            return view(request, *args, **kwargs)
        return wrapper
    return decorator
