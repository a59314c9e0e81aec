"""Merchant name normalization and the built-in merchant catalog."""

# Checked in order; the first matching prefix is stripped.
DESCRIPTION_PREFIXES = (
    "COMPRAS C.DEB ",
    "COMPRA ",
    "PURCHASE ",
    "POS ",
    "DEBIT CARD ",
    "PAGAMENTO ",
    "PAG*",
)

MAX_REFERENCE_DIGITS = 6

# System merchants as (match pattern, clean name). Patterns use SQL LIKE
# wildcards, which the matchers strip.
DEFAULT_MERCHANTS = (
    # Supermarkets
    ("%PINGO DOCE%", "Pingo Doce"),
    ("%CONTINENTE%", "Continente"),
    ("%LIDL%", "Lidl"),
    ("%ALDI%", "Aldi"),
    ("%MERCADONA%", "Mercadona"),
    ("%MINIPRECO%", "Minipreço"),
    ("%INTERMARCHE%", "Intermarché"),
    # Food & drink
    ("%STARBUCKS%", "Starbucks"),
    ("%MCDONALD%", "McDonald's"),
    ("%BURGER KING%", "Burger King"),
    ("%PIZZA HUT%", "Pizza Hut"),
    ("%UBER EATS%", "Uber Eats"),
    ("%GLOVO%", "Glovo"),
    ("%BOLT FOOD%", "Bolt Food"),
    # Transport
    ("%UBER%", "Uber"),
    ("%FREE NOW%", "Free Now"),
    ("%RYANAIR%", "Ryanair"),
    ("%TAP AIR%", "TAP"),
    # Utilities
    ("%EPAL%", "EPAL"),
    ("%GALP%", "Galp"),
    ("%VODAFONE%", "Vodafone"),
    # Shopping
    ("%AMAZON%", "Amazon"),
    ("%ZARA%", "Zara"),
    ("%PRIMARK%", "Primark"),
    ("%IKEA%", "IKEA"),
    ("%WORTEN%", "Worten"),
    # Entertainment
    ("%NETFLIX%", "Netflix"),
    ("%SPOTIFY%", "Spotify"),
    ("%DISNEY PLUS%", "Disney+"),
    ("%PLAYSTATION%", "PlayStation"),
    ("%STEAM%", "Steam"),
    # Finance
    ("%REVOLUT%", "Revolut"),
    ("%PAYPAL%", "PayPal"),
)


def title_case(text: str) -> str:
    """Uppercase the first letter of each word and lowercase the rest."""
    return " ".join(word[0].upper() + word[1:].lower() for word in text.split())


def clean_description(description: str) -> str:
    """Perform basic cleanup on a raw bank description.

    Strips one known payment prefix, a trailing ``*1234`` style reference of
    up to six digits, and title-cases the remainder.

    Args:
        description: Raw description text

    Returns:
        Display-friendly merchant name
    """
    cleaned = description.strip()
    upper = cleaned.upper()

    for prefix in DESCRIPTION_PREFIXES:
        if upper.startswith(prefix):
            cleaned = cleaned[len(prefix):].strip()
            break

    idx = cleaned.rfind("*")
    if idx > 0:
        reference = cleaned[idx + 1:]
        if reference.isdigit() and len(reference) <= MAX_REFERENCE_DIGITS:
            cleaned = cleaned[:idx].strip()

    return title_case(cleaned)
