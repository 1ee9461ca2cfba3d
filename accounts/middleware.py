import logging

from django.conf import settings
from django.contrib.auth import logout
from django.utils import timezone

logger = logging.getLogger(__name__)


class InactivityLogoutMiddleware:
    """
    Signs a user out once SESSION_INACTIVITY_TIMEOUT seconds pass without a
    request. Every request from a signed-in user resets the timer.
    """
    SESSION_KEY = '_last_activity'

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if request.user.is_authenticated:
            now = int(timezone.now().timestamp())
            last_activity = request.session.get(self.SESSION_KEY)
            timeout = settings.SESSION_INACTIVITY_TIMEOUT

            if last_activity is not None and now - last_activity > timeout:
                logger.info(f"Signing out {request.user} after {now - last_activity}s of inactivity.")
                logout(request)
            else:
                request.session[self.SESSION_KEY] = now

        return self.get_response(request)
