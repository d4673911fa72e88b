from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# largest value a signed 64-bit INTEGER column holds
MAX_CENTS = 2**63 - 1


class AmountTooLargeError(ValueError):
    pass


def to_cents(value) -> int:
    """Convert a decimal amount (number or numeric string) to integer cents."""
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc
    if not amount.is_finite():
        raise ValueError("Invalid amount")
    if amount.adjusted() > 17:
        raise AmountTooLargeError("Amount is too large.")
    scaled = amount * 100
    if abs(scaled) >= MAX_CENTS:
        raise AmountTooLargeError("Amount is too large.")
    return int(scaled.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_half_up(value: float, places: int) -> float:
    quantum = Decimal(1).scaleb(-places)
    rounded = float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))
    # normalise -0.0
    return rounded + 0.0


def from_cents(cents: float) -> float:
    """Cents (integer sums or fractional averages) to a 2-place currency figure."""
    return round_half_up(cents / 100, 2)


def format_signed_amount(cents: int) -> str:
    sign = "+" if cents > 0 else "-"
    return f"{sign}${abs(cents) / 100:.2f}"
