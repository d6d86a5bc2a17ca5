import logging

from django.contrib.auth import authenticate
from django.db import IntegrityError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from accounts.forms import RegisterForm, LoginForm
from accounts.tokens import make_access_token
from accounts.utils import InvalidJSONBody, load_json_body


logger = logging.getLogger("django_quiz")


@csrf_exempt
@require_POST
def register(request):
    try:
        post_data = load_json_body(request)
    except InvalidJSONBody:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    form = RegisterForm(post_data)

    if not form.is_valid():
        form_errors_dict = dict(form.errors)

        if any(error.code == "duplicate_email" for error in form.errors.as_data().get("email", [])):
            return JsonResponse({"error": "Email already exists"}, status=400)

        return JsonResponse({"error": "Validation error", "form_errors": form_errors_dict}, status=400)

    try:
        user = form.save()
    except IntegrityError as e:
        logger.error(e)
        return JsonResponse({"error": "Email already exists"}, status=400)
    except Exception as e:
        logger.error(f"Registration error: {e}")
        return JsonResponse({"error": "Error registering user"}, status=500)

    logger.info(f"Registered user {user.pk}")
    return JsonResponse({"message": "User registered successfully"}, status=201)


@csrf_exempt
@require_POST
def login(request):
    try:
        post_data = load_json_body(request)
    except InvalidJSONBody:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    form = LoginForm(post_data)

    if not form.is_valid():
        return JsonResponse({"error": "Invalid credentials"}, status=401)

    user = authenticate(request, email=form.cleaned_data["email"], password=form.cleaned_data["password"])

    if user is None:
        return JsonResponse({"error": "Invalid credentials"}, status=401)

    token = make_access_token(user)

    return JsonResponse({"token": token, "id": user.pk, "email": user.email})
