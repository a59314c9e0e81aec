"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

# Longest symbols first so "R$" is not consumed as "$".
CURRENCY_SYMBOLS = (
    ("R$", "BRL"),
    ("USD", "USD"),
    ("EUR", "EUR"),
    ("GBP", "GBP"),
    ("BRL", "BRL"),
    ("$", "USD"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
)

_HUNDRED = Decimal(100)


def parse_amount(amount_str: str, european: bool = False) -> tuple[int, str]:
    """Parse an amount string into signed minor units.

    Handles various formats:
    - "123.45" / "1,234.56" (US)
    - "123,45" / "1.234,56" (European, when ``european`` is set)
    - "-$123.45", "$-123.45", "€ 12,00"
    - "(123.45)" and "123.45-" (negative)

    Args:
        amount_str: Amount string
        european: Treat comma as the decimal separator

    Returns:
        Tuple of (amount in minor units, ISO currency hint or "")

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if not amount_str or not amount_str.strip():
        raise ValueError("empty amount")

    amount_str = amount_str.strip()

    currency = ""
    for symbol, code in CURRENCY_SYMBOLS:
        if symbol in amount_str:
            currency = code
            amount_str = amount_str.replace(symbol, "")
            break

    amount_str = amount_str.strip()

    # Handle sign markers: leading minus, trailing minus, parentheses
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1].strip()
    if amount_str.startswith("-"):
        is_negative = True
        amount_str = amount_str[1:]
    elif amount_str.endswith("-"):
        is_negative = True
        amount_str = amount_str[:-1]
    elif amount_str.startswith("+"):
        amount_str = amount_str[1:]

    amount_str = amount_str.replace(" ", "").replace(" ", "")

    if european:
        amount_str = amount_str.replace(".", "").replace(",", ".")
    else:
        amount_str = amount_str.replace(",", "")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(f"invalid number: {amount_str!r}")
    if not amount.is_finite():
        raise ValueError(f"invalid number: {amount_str!r}")

    minor = int((amount * _HUNDRED).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return (-minor if is_negative else minor), currency


def parse_debit_credit(debit_str: str, credit_str: str, european: bool = False) -> tuple[int, str]:
    """Resolve separate debit/credit columns into one signed amount.

    A debit that parses to a nonzero value wins and is forced negative;
    otherwise a nonzero credit is forced positive. Unparseable values are
    treated as absent.

    Returns:
        Tuple of (amount in minor units, ISO currency hint or "")
    """
    if debit_str and debit_str.strip():
        try:
            minor, currency = parse_amount(debit_str, european)
        except ValueError:
            minor, currency = 0, ""
        if minor != 0:
            return -abs(minor), currency

    if credit_str and credit_str.strip():
        try:
            minor, currency = parse_amount(credit_str, european)
        except ValueError:
            minor, currency = 0, ""
        if minor != 0:
            return abs(minor), currency

    return 0, ""
