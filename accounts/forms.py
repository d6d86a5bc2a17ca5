from django import forms
from django.contrib.auth.models import User


class RegisterForm(forms.Form):
    email = forms.EmailField(max_length=150)
    password = forms.CharField(min_length=6, max_length=128, strip=False)

    def clean_email(self):
        email = self.cleaned_data["email"].lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError("Email already exists", code="duplicate_email")
        return email

    def save(self):
        # email doubles as the username
        return User.objects.create_user(
            username=self.cleaned_data["email"],
            email=self.cleaned_data["email"],
            password=self.cleaned_data["password"],
        )


class LoginForm(forms.Form):
    email = forms.CharField(max_length=254)
    password = forms.CharField(strip=False)
