"""
auth/schemas.py -- Validation schemas for the sign-in and sign-up forms.

The schemas are pydantic v2 models with custom error messages, so a failed
parse can be shown field-by-field next to the form inputs. Field aliases match
the form keys (confirmPassword) while attributes stay snake_case.

validate_form() is the only entry point the actions use. It never raises for
bad input: it returns (value, {}) on success and (None, errors) on failure,
where errors maps each form key to its list of human-readable violations.

Cross-field rules (password confirmation) are evaluated on the raw input on
every call, not only when the single-field rules passed, so a mismatch is
always reported on confirmPassword.
"""

from collections.abc import Mapping
from typing import Any, ClassVar, TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError

MIN_PASSWORD_LENGTH = 6

FormT = TypeVar("FormT", bound="FormSchema")


def _require_email(value: str) -> str:
    # Both checks always run, so an empty email fails twice.
    messages = []
    if not value:
        messages.append("Email is required")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        messages.append("Invalid email format")
    if messages:
        raise PydanticCustomError("email_invalid", messages[0], {"also": messages[1:]})
    return value


class FormSchema(BaseModel):
    """Base for form schemas. Subclasses list their form keys in FIELDS."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    FIELDS: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def cross_field_violations(cls, data: Mapping[str, str]) -> dict[str, list[str]]:
        """Return violations that involve more than one field."""
        return {}


class SignInForm(FormSchema):
    FIELDS = ("email", "password")

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _require_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("password_required", "Password is required")
        return value


class SignUpForm(FormSchema):
    FIELDS = ("email", "password", "confirmPassword")

    email: str
    password: str
    confirm_password: str = Field(alias="confirmPassword")

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _require_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if len(value) < MIN_PASSWORD_LENGTH:
            raise PydanticCustomError(
                "password_too_short",
                "Password must be at least {min_length} characters",
                {"min_length": MIN_PASSWORD_LENGTH},
            )
        return value

    @field_validator("confirm_password")
    @classmethod
    def check_confirm_password(cls, value: str) -> str:
        if not value:
            raise PydanticCustomError("confirm_required", "Please confirm your password")
        return value

    @classmethod
    def cross_field_violations(cls, data: Mapping[str, str]) -> dict[str, list[str]]:
        if data.get("password") != data.get("confirmPassword"):
            return {"confirmPassword": ["Passwords don't match"]}
        return {}


def form_values(form: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, str]:
    """Pull the named keys out of submitted form data as strings.

    Missing or None values become "" so the schema reports them as required
    rather than as type errors.
    """
    values: dict[str, str] = {}
    for key in fields:
        raw = form.get(key)
        values[key] = "" if raw is None else str(raw)
    return values


def _field_errors(exc: ValidationError, schema: type[FormSchema]) -> dict[str, list[str]]:
    """Flatten a pydantic ValidationError into {form_key: [messages]}."""
    aliases = {name: (info.alias or name) for name, info in schema.model_fields.items()}
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        loc = err["loc"]
        key = str(loc[0]) if loc else "form"
        key = aliases.get(key, key)
        messages = errors.setdefault(key, [])
        messages.append(err["msg"])
        # A validator reports follow-on violations of the same field in ctx["also"].
        messages.extend(err.get("ctx", {}).get("also", ()))
    return errors


def validate_form(schema: type[FormT], form: Mapping[str, Any]) -> tuple[FormT | None, dict[str, list[str]]]:
    """Validate submitted form data against a schema without raising.

    Returns (parsed_value, {}) when every rule passes, else (None, errors).
    """
    data = form_values(form, schema.FIELDS)
    try:
        value = schema.model_validate(data)
    except ValidationError as exc:
        value = None
        errors = _field_errors(exc, schema)
    else:
        errors = {}

    for key, messages in schema.cross_field_violations(data).items():
        errors.setdefault(key, []).extend(messages)

    if errors:
        return None, errors
    return value, {}
