import logging
from functools import wraps

import jwt
from django.contrib.auth import get_user_model
from django.http import JsonResponse

from accounts.tokens import decode_access_token

logger = logging.getLogger("django_quiz")

User = get_user_model()


def get_bearer_token(request):
    auth_header = request.headers.get('Authorization', '')
    parts = auth_header.split(' ')

    if len(parts) != 2 or parts[0].lower() != 'bearer' or not parts[1]:
        return None

    return parts[1]


def get_user_from_token(token):
    """
    Return the active user named by a valid token, or None if the token is bad or the user is gone.
    """
    try:
        claims = decode_access_token(token)
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected token: {e}")
        return None

    return User.objects.filter(pk=claims['id'], is_active=True).first()


def token_required(view_func):
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        token = get_bearer_token(request)

        if token is None:
            return JsonResponse({"error": "Authentication required"}, status=401)

        user = get_user_from_token(token)

        if user is None:
            return JsonResponse({"error": "Invalid token"}, status=403)

        request.user = user
        return view_func(request, *args, **kwargs)
    return wrapper


def optional_token(view_func):
    # anonymous callers pass through with request.user left as set by the middleware
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        token = get_bearer_token(request)

        if token is not None:
            user = get_user_from_token(token)

            if user is None:
                return JsonResponse({"error": "Invalid token"}, status=403)

            request.user = user

        return view_func(request, *args, **kwargs)
    return wrapper
