from decimal import Decimal, InvalidOperation
from typing import Optional

from ..services.errors import ValidationFailed

ADDRESS_REQUIRED_FIELDS = ("full_name", "phone", "address_line1", "city", "state", "postal_code")


def ensure_positive_int(value, field: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationFailed(f"{field} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be an integer")
    if number < 1:
        raise ValidationFailed(f"{field} must be >= 1")
    return number


def ensure_amount(value, field: str) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationFailed(f"{field} must be a number")
    if amount <= 0:
        raise ValidationFailed(f"{field} must be > 0")
    return amount.quantize(Decimal("0.01"))


def normalize_address(data: Optional[dict], kind: str) -> dict:
    if not isinstance(data, dict):
        raise ValidationFailed(f"{kind} address is required")
    missing = [f for f in ADDRESS_REQUIRED_FIELDS if not str(data.get(f) or "").strip()]
    if missing:
        raise ValidationFailed(f"{kind} address missing: {', '.join(missing)}")
    address = {f: str(data[f]).strip() for f in ADDRESS_REQUIRED_FIELDS}
    address["address_line2"] = str(data.get("address_line2") or "").strip() or None
    address["country"] = str(data.get("country") or "India").strip()
    address["type"] = kind
    return address
