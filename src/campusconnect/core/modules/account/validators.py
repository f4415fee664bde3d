import re

from campusconnect.core.modules.session.models import PrincipalKind
from campusconnect.errors import ValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# (min, max) password length per kind
PASSWORD_LIMITS = {
    PrincipalKind.MEMBER: (6, 72),
    PrincipalKind.ADMINISTRATOR: (8, 72),
}


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address, raising if it is malformed."""
    value = email.strip().lower()
    if not EMAIL_RE.fullmatch(value):
        raise ValidationError("Please enter a valid email address.")
    return value


def validate_password(password: str, kind: PrincipalKind) -> None:
    """Validate password length for the given principal kind.

    Raises:
        ValidationError: If password doesn't meet requirements
    """
    min_length, max_length = PASSWORD_LIMITS[kind]
    # bcrypt only accepts up to 72 bytes
    if len(password) < min_length or len(password.encode("utf-8")) > max_length:
        raise ValidationError(f"Password must be between {min_length} and {max_length} characters long")


def validate_name(value: str, label: str, min_length: int, max_length: int) -> str:
    name = value.strip()
    if not min_length <= len(name) <= max_length:
        raise ValidationError(f"{label} must be between {min_length} and {max_length} characters long")
    return name


def normalize_admin_code(code: str) -> str:
    return code.strip().upper()


def normalize_student_id(student_id: str) -> str:
    """Trim and upper-case a student ID, raising if its length is out of range."""
    value = student_id.strip().upper()
    if not 3 <= len(value) <= 10:
        raise ValidationError("Please enter a valid student ID.")
    return value
