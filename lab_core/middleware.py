# lab_core/middleware.py

from django.contrib.auth.models import AnonymousUser
from django.utils.deprecation import MiddlewareMixin

from .signals import set_current_request


def client_ip(request):
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR") or None


class CurrentUserMiddleware(MiddlewareMixin):
    """
    Makes request.user and the client address available to model signals.

    Must run after AuthenticationMiddleware and tolerate anonymous requests.
    JWT-authenticated API calls resolve the user later, inside DRF;
    AuditContextMixin refreshes the context there.
    """

    def process_request(self, request):
        user = getattr(request, "user", None)

        if user is None or isinstance(user, AnonymousUser):
            set_current_request(None, client_ip(request))
        else:
            set_current_request(user, client_ip(request))

        return None

    def process_response(self, request, response):
        set_current_request(None)
        return response
