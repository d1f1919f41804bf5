from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from .errors import ValidationError


# Maximum ticket price: $9,999.99 (999,999 cents)
# No instant game comes close; this rejects unit mix-ups (dollars keyed as cents twice)
MAX_TICKET_PRICE_CENTS = 999_999

# Largest pack printed by any commission we support
MAX_TICKETS_PER_BOOK = 10_000

# Aggregate report amounts: $99,999,999.99
MAX_REPORT_CENTS = 9_999_999_999

BPS_DENOMINATOR = 10_000


def coerce_int(field: str, value: Any) -> int:
    """
    Strict integer coercion for operator-supplied values.

    Accepts ints (not bools) and plain digit strings. Rejects floats,
    decimals and scientific notation so "12.5" never silently becomes 12.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_optional_int(field: str, value: Any) -> int | None:
    if value is None:
        return None
    return coerce_int(field, value)


def parse_money_cents(field: str, value: Any) -> int:
    """
    Parse a dollar amount ("5", "5.00", Decimal("5.00")) into integer cents.

    Amounts with more than two decimal places are rejected rather than rounded.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a dollar amount")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a dollar amount")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a dollar amount")
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValidationError(f"{field} cannot have fractions of a cent")
    return int(cents)


def parse_rate_bps(field: str, value: Any) -> int:
    """
    Parse a commission rate given as a fraction ("0.05") into basis points (500).
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a decimal rate")
    try:
        rate = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a decimal rate")
    if not rate.is_finite():
        raise ValidationError(f"{field} must be a decimal rate")
    bps = rate * BPS_DENOMINATOR
    if bps != bps.to_integral_value():
        raise ValidationError(f"{field} supports at most 4 decimal places (whole basis points)")
    return int(bps)


def apply_rate_bps(amount_cents: int, rate_bps: int) -> int:
    """amount * rate, rounded half-up to the cent."""
    raw = Decimal(amount_cents) * Decimal(rate_bps) / Decimal(BPS_DENOMINATOR)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_display(cents: int | None) -> str:
    if cents is None:
        return "-"
    sign = "-" if cents < 0 else ""
    return f"{sign}${abs(cents) / 100:,.2f}"


def require_text(field: str, value: Any, *, max_length: int) -> str:
    if value is None:
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if text == "":
        raise ValidationError(f"{field} cannot be blank")
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(field: str, value: Any, *, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if text == "":
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def enforce_rules_game(patch: dict) -> None:
    """
    Business rules for game terms. Keep these small and centralized.
    """
    if "ticket_price_cents" in patch:
        price = patch["ticket_price_cents"]
        if price <= 0:
            raise ValidationError("ticket_price_cents must be > 0")
        if price > MAX_TICKET_PRICE_CENTS:
            raise ValidationError(
                f"ticket_price_cents cannot exceed {MAX_TICKET_PRICE_CENTS} (${MAX_TICKET_PRICE_CENTS / 100:,.2f})"
            )

    if "tickets_per_book" in patch:
        size = patch["tickets_per_book"]
        if size <= 0:
            raise ValidationError("tickets_per_book must be > 0")
        if size > MAX_TICKETS_PER_BOOK:
            raise ValidationError(f"tickets_per_book cannot exceed {MAX_TICKETS_PER_BOOK}")

    if "commission_rate_bps" in patch:
        bps = patch["commission_rate_bps"]
        if bps < 0 or bps >= BPS_DENOMINATOR:
            raise ValidationError("commission_rate_bps must be >= 0 and < 10000 (rate below 100%)")


def enforce_rules_online_report(patch: dict) -> None:
    # Terminal totals are reported as non-negative aggregates
    for key in ("total_sales_cents", "payouts_cents", "commission_cents"):
        value = patch.get(key)
        if value is None:
            raise ValidationError(f"{key} is required")
        if value < 0:
            raise ValidationError(f"{key} must be >= 0")
        if value > MAX_REPORT_CENTS:
            raise ValidationError(f"{key} cannot exceed {MAX_REPORT_CENTS}")
