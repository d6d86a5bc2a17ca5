import json
from datetime import datetime, timedelta, timezone

import jwt
from django.conf import settings
from django.contrib.auth import authenticate
from django.test import TestCase, Client, RequestFactory
from django.contrib.auth.models import AnonymousUser, User
from django.http import JsonResponse
from django.urls import reverse

from accounts.decorators import token_required, optional_token
from accounts.forms import RegisterForm
from accounts.tokens import make_access_token, decode_access_token


def echo_user(request):
    return JsonResponse({"user": request.user.pk if request.user.is_authenticated else None})


class AccountsTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.test_user = User.objects.create_user(username='test@example.com', email='test@example.com',
                                                 password='password')

    def setUp(self):
        self.client = Client()
        self.factory = RequestFactory()

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_register_success(self):
        response = self.post_json(reverse("register"), {"email": "New@Example.com", "password": "secret123"})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["message"], "User registered successfully")

        user = User.objects.get(email="new@example.com")
        self.assertNotEqual(user.password, "secret123")
        self.assertTrue(user.check_password("secret123"))

    def test_register_duplicate_email(self):
        response = self.post_json(reverse("register"), {"email": "TEST@example.com", "password": "secret123"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Email already exists")
        self.assertEqual(User.objects.filter(email__iexact="test@example.com").count(), 1)

    def test_register_invalid_form(self):
        response = self.post_json(reverse("register"), {"email": "not-an-email", "password": "x"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Validation error")
        self.assertIn("email", response.json()["form_errors"])
        self.assertIn("password", response.json()["form_errors"])

    def test_register_invalid_json(self):
        response = self.client.post(reverse("register"), data="nope", content_type='application/json')
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid JSON")

    def test_register_get_not_allowed(self):
        response = self.client.get(reverse("register"))
        self.assertEqual(response.status_code, 405)

    def test_login_success(self):
        response = self.post_json(reverse("login"), {"email": "test@example.com", "password": "password"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["id"], self.test_user.pk)
        self.assertEqual(body["email"], "test@example.com")
        self.assertEqual(decode_access_token(body["token"])["id"], self.test_user.pk)

    def test_login_wrong_password(self):
        response = self.post_json(reverse("login"), {"email": "test@example.com", "password": "wrong"})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Invalid credentials")

    def test_login_unknown_email(self):
        response = self.post_json(reverse("login"), {"email": "nobody@example.com", "password": "password"})
        self.assertEqual(response.status_code, 401)

    def test_backend_authenticates_by_email_case_insensitive(self):
        self.assertEqual(authenticate(email="TEST@example.com", password="password"), self.test_user)
        self.assertIsNone(authenticate(email="test@example.com", password="wrong"))

    def test_backend_rejects_inactive_user(self):
        User.objects.filter(pk=self.test_user.pk).update(is_active=False)
        self.assertIsNone(authenticate(email="test@example.com", password="password"))

    def test_register_form_lowercases_email(self):
        form = RegisterForm({"email": "Mixed@Example.com", "password": "secret123"})
        self.assertTrue(form.is_valid())
        self.assertEqual(form.cleaned_data["email"], "mixed@example.com")

    def test_token_required_without_header(self):
        request = self.factory.get("/")
        response = token_required(echo_user)(request)
        self.assertEqual(response.status_code, 401)

    def test_token_required_with_expired_token(self):
        expired = jwt.encode(
            {"id": self.test_user.pk, "email": self.test_user.email,
             "exp": datetime.now(tz=timezone.utc) - timedelta(hours=1)},
            settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

        request = self.factory.get("/", HTTP_AUTHORIZATION=f"Bearer {expired}")
        response = token_required(echo_user)(request)
        self.assertEqual(response.status_code, 403)

    def test_token_required_with_token_for_deleted_user(self):
        user = User.objects.create_user(username='gone@example.com', email='gone@example.com', password='gone123')
        token = make_access_token(user)
        user.delete()

        request = self.factory.get("/", HTTP_AUTHORIZATION=f"Bearer {token}")
        response = token_required(echo_user)(request)
        self.assertEqual(response.status_code, 403)

    def test_token_required_with_valid_token(self):
        request = self.factory.get("/", HTTP_AUTHORIZATION=f"Bearer {make_access_token(self.test_user)}")
        response = token_required(echo_user)(request)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(json.loads(response.content)["user"], self.test_user.pk)

    def test_optional_token_without_header(self):
        request = self.factory.get("/")
        request.user = AnonymousUser()
        response = optional_token(echo_user)(request)

        self.assertEqual(response.status_code, 200)
        self.assertIsNone(json.loads(response.content)["user"])

    def test_optional_token_with_bad_token(self):
        request = self.factory.get("/", HTTP_AUTHORIZATION="Bearer garbage")
        response = optional_token(echo_user)(request)
        self.assertEqual(response.status_code, 403)
