"""Form schemas.

HTML forms post strings; each schema validates them and converts to the
types the API expects. ``validate_form`` turns pydantic errors into a
``{field: message}`` mapping the templates can show next to inputs.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    ValidationInfo,
)

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]{2,}$")
PHONE_REGEX = re.compile(r"^(\+33|0)[1-9]\d{8}$")
OTP_REGEX = re.compile(r"^\d{6}$")

F = TypeVar("F", bound=BaseModel)


class Form(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


def _check_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not value:
        raise ValueError("Email is required")
    if not EMAIL_REGEX.match(value):
        raise ValueError("Invalid email format")
    return value


def password_errors(password: str) -> List[str]:
    errors = []
    if len(password) < 8:
        errors.append("Password must be at least 8 characters")
    if not re.search(r"[a-z]", password):
        errors.append("Password must include one lowercase letter")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must include one uppercase letter")
    if not re.search(r"[0-9]", password):
        errors.append("Password must include one number")
    return errors


def _numeric(value: Any, label: str, positive: bool = False, integer: bool = False,
             minimum: Optional[float] = None) -> Decimal:
    try:
        number = Decimal(str(value).strip().replace(",", "."))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{label} must be a valid number")
    if not number.is_finite():
        raise ValueError(f"{label} must be a valid number")
    if integer and number != number.to_integral_value():
        raise ValueError(f"{label} must be a whole number")
    if positive and number <= 0:
        raise ValueError(f"{label} must be positive")
    if minimum is not None and number < Decimal(str(minimum)):
        raise ValueError(f"{label} must be at least {minimum}")
    return number


def _int_ids(values: Any) -> List[int]:
    if values is None:
        return []
    if isinstance(values, (str, int)):
        values = [values]
    ids = []
    for v in values:
        try:
            ids.append(int(str(v).strip()))
        except ValueError:
            continue
    return [i for i in ids if i > 0]


# --- auth -----------------------------------------------------------------


class LoginForm(Form):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            raise ValueError("Password is required")
        if len(value) < 6:
            raise ValueError("Password must be at least 6 characters")
        return value


class RegisterForm(Form):
    first_name: str
    last_name: str
    email: str
    password: str
    confirm_password: str
    company: Optional[str] = None
    phone: Optional[str] = None
    accepted_terms: bool = Field(default=False, validate_default=True)

    @field_validator("company", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("first_name", "last_name")
    @classmethod
    def check_name(cls, value: str) -> str:
        if len(value) < 2:
            raise ValueError("Must be at least 2 characters")
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        errors = password_errors(value)
        if errors:
            raise ValueError(" ".join(errors))
        return value

    @field_validator("phone")
    @classmethod
    def check_phone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        compact = re.sub(r"\s", "", value)
        if not PHONE_REGEX.match(compact):
            raise ValueError("Invalid phone number")
        return compact

    @field_validator("accepted_terms", mode="before")
    @classmethod
    def check_terms(cls, value: Any) -> bool:
        accepted = value in (True, "on", "true", "1", "yes")
        if not accepted:
            raise ValueError("You must accept the terms of use")
        return True

    @field_validator("confirm_password")
    @classmethod
    def check_confirmation(cls, value: str, info: ValidationInfo) -> str:
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords do not match")
        return value

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"confirm_password", "accepted_terms"})


class OtpForm(Form):
    user_id: int = Field(gt=0)
    otp: str

    @field_validator("otp")
    @classmethod
    def check_otp(cls, value: str) -> str:
        if not OTP_REGEX.match(value):
            raise ValueError("The code must be exactly 6 digits")
        return value


class ForgotPasswordForm(Form):
    email: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)


class ResetPasswordForm(Form):
    token: str = Field(min_length=1)
    password: str
    confirm_password: str

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        errors = password_errors(value)
        if errors:
            raise ValueError(" ".join(errors))
        return value

    @field_validator("confirm_password")
    @classmethod
    def check_confirmation(cls, value: str, info: ValidationInfo) -> str:
        if "password" in info.data and value != info.data["password"]:
            raise ValueError("Passwords do not match")
        return value


class ProfileForm(Form):
    first_name: str = Field(min_length=2)
    last_name: str = Field(min_length=2)
    company: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("company", "phone", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


# --- admin ----------------------------------------------------------------


class ProductForm(Form):
    name: str = Field(min_length=2, max_length=255)
    description: Optional[str] = None
    short_description: Optional[str] = None
    sku: Optional[str] = None
    price: Decimal
    sale_price: Optional[Decimal] = None
    stock_quantity: int = 0
    manage_stock: bool = False
    in_stock: bool = False
    is_featured: bool = False
    is_active: bool = False
    brand_id: Optional[int] = None
    category_ids: List[int] = Field(default_factory=list)

    @field_validator("description", "short_description", "sku", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("price", mode="before")
    @classmethod
    def check_price(cls, value: Any) -> Decimal:
        if value is None or str(value).strip() == "":
            raise ValueError("Price is required and must be a valid number")
        return _numeric(value, "Price", positive=True)

    @field_validator("sale_price", mode="before")
    @classmethod
    def check_sale_price(cls, value: Any) -> Optional[Decimal]:
        if _blank_to_none(value) is None:
            return None
        return _numeric(value, "Sale price", positive=True)

    @field_validator("stock_quantity", mode="before")
    @classmethod
    def check_stock(cls, value: Any) -> int:
        if value is None or str(value).strip() == "":
            raise ValueError("Stock quantity is required and must be a valid number")
        return int(_numeric(value, "Stock quantity", integer=True, minimum=0))

    @field_validator("brand_id", mode="before")
    @classmethod
    def check_brand(cls, value: Any) -> Optional[int]:
        if _blank_to_none(value) is None:
            return None
        return int(_numeric(value, "Brand", positive=True, integer=True))

    @field_validator("category_ids", mode="before")
    @classmethod
    def check_categories(cls, value: Any) -> List[int]:
        return _int_ids(value)

    @field_validator("manage_stock", "in_stock", "is_featured", "is_active", mode="before")
    @classmethod
    def check_checkbox(cls, value: Any) -> bool:
        return value in (True, "on", "true", "1", "yes")

    def to_payload(self) -> Dict[str, Any]:
        data = self.model_dump()
        data["price"] = float(self.price)
        data["sale_price"] = float(self.sale_price) if self.sale_price is not None else None
        return data


class BrandForm(Form):
    name: str = Field(min_length=2, max_length=255)
    description: Optional[str] = None
    logo_url: Optional[str] = None
    website_url: Optional[str] = None
    is_active: bool = False
    is_featured: bool = False

    @field_validator("description", "logo_url", "website_url", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("is_active", "is_featured", mode="before")
    @classmethod
    def check_checkbox(cls, value: Any) -> bool:
        return value in (True, "on", "true", "1", "yes")


class CategoryForm(Form):
    name: str = Field(min_length=2, max_length=255)
    description: Optional[str] = None
    parent_id: Optional[int] = Field(default=None, gt=0)
    sort_order: int = Field(default=0, ge=0)
    is_active: bool = False

    @field_validator("description", "parent_id", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("sort_order", mode="before")
    @classmethod
    def check_sort_order(cls, value: Any) -> Any:
        return 0 if value is None or str(value).strip() == "" else value

    @field_validator("is_active", mode="before")
    @classmethod
    def check_checkbox(cls, value: Any) -> bool:
        return value in (True, "on", "true", "1", "yes")


class BulkDeleteForm(Form):
    ids: List[int]

    @field_validator("ids", mode="before")
    @classmethod
    def check_ids(cls, value: Any) -> List[int]:
        ids = _int_ids(value)
        if not ids:
            raise ValueError("Select at least one item to delete")
        return ids


# --- helpers --------------------------------------------------------------


def form_data(source: Any, list_fields: Tuple[str, ...] = ()) -> Dict[str, Any]:
    """Flatten a werkzeug MultiDict, keeping ``list_fields`` as lists."""
    if hasattr(source, "getlist"):
        data = {k: source.get(k) for k in source.keys()}
        for name in list_fields:
            data[name] = source.getlist(name)
        return data
    return dict(source or {})


def validate_form(schema: Type[F], data: Mapping[str, Any]) -> Tuple[Optional[F], Dict[str, str]]:
    try:
        return schema.model_validate(dict(data)), {}
    except ValidationError as exc:
        errors: Dict[str, str] = {}
        for err in exc.errors():
            field = ".".join(str(p) for p in err["loc"]) or "__all__"
            message = err["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, "):]
            errors.setdefault(field, message)
        return None, errors
