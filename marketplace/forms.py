from django import forms
from django.contrib.auth import get_user_model, password_validation
from django.contrib.auth.forms import AuthenticationForm

from .group_orders import (
    DEFAULT_EXPIRY_DAYS,
    DEFAULT_MIN_QUANTITY,
    default_discounted_price,
)
from .models import OrderStatus, Role, Unit


class SignInForm(AuthenticationForm):
    """
    Email + password sign in. Accounts use the email as username.
    """
    username = forms.EmailField(label="Email", widget=forms.EmailInput(attrs={"autofocus": True}))

    def clean_username(self):
        # usernames are stored lowercased at sign up
        return self.cleaned_data["username"].lower()


class SignUpForm(forms.Form):
    """
    Form used to create a vendor or supplier account.
    """
    full_name = forms.CharField(max_length=150)
    role = forms.ChoiceField(choices=Role.choices, initial=Role.VENDOR, label="I am a")
    business_name = forms.CharField(max_length=150, required=False, label="Business Name (Optional)")
    location = forms.CharField(max_length=150, required=False)
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput, min_length=6)

    def clean_full_name(self):
        full_name = self.cleaned_data["full_name"].strip()
        if not full_name:
            raise forms.ValidationError("Please enter your full name.")
        return full_name

    def clean_email(self):
        email = self.cleaned_data["email"].lower()
        if get_user_model().objects.filter(username=email).exists():
            raise forms.ValidationError("An account with this email already exists.")
        return email

    def clean_password(self):
        password = self.cleaned_data["password"]
        password_validation.validate_password(password)
        return password


class MaterialForm(forms.Form):
    """
    Form used for adding or editing a catalog material.
    """
    name = forms.CharField(max_length=150)
    description = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False)
    price = forms.DecimalField(min_value=0, max_digits=10, decimal_places=2)
    stock = forms.IntegerField(min_value=0)
    unit = forms.ChoiceField(choices=Unit.choices, initial=Unit.KG)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)

        # When editing, the material name is immutable
        if "initial" in kwargs and kwargs["initial"].get("name"):
            self.fields["name"].disabled = True


class QuantityForm(forms.Form):
    """Quantity for ordering, adding to the cart or joining a group order."""
    quantity = forms.IntegerField(min_value=1, initial=1)


class CartQuantityForm(forms.Form):
    # zero removes the item
    quantity = forms.IntegerField(min_value=0)


class GroupOrderForm(forms.Form):
    """
    Form used to start a group order for one material.
    """
    min_quantity = forms.IntegerField(min_value=10, initial=DEFAULT_MIN_QUANTITY,
                                      help_text="Minimum total quantity needed to activate the group order")
    discounted_price = forms.DecimalField(min_value=0, max_digits=10, decimal_places=2)
    expiry_days = forms.IntegerField(min_value=1, max_value=30, initial=DEFAULT_EXPIRY_DAYS,
                                     label="Expires in (days)")
    description = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False,
                                  label="Description (Optional)")

    def __init__(self, *args, material=None, **kwargs):
        """
        The material's list price bounds the discounted price.
        """
        super().__init__(*args, **kwargs)
        self.material = material
        if material:
            self.fields["discounted_price"].initial = default_discounted_price(material)
            self.fields["discounted_price"].label = f"Discounted Price per {material['unit']}"

    def clean_discounted_price(self):
        price = self.cleaned_data["discounted_price"]
        if self.material and price > float(self.material["price"]):
            raise forms.ValidationError("The group price cannot be above the list price.")
        return price


class OrderStatusForm(forms.Form):
    status = forms.ChoiceField(choices=OrderStatus.choices)


class RatingForm(forms.Form):
    stars = forms.TypedChoiceField(choices=[(i, i) for i in range(1, 6)], coerce=int)
    review = forms.CharField(widget=forms.Textarea(attrs={"rows": 3}), required=False)
