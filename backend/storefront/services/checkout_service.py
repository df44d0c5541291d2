# Overview: WhatsApp checkout handoff and price formatting.

from __future__ import annotations

from urllib.parse import quote

WHATSAPP_BASE_URL = "https://wa.me"
DEFAULT_WHATSAPP_PHONE = "573001234567"


def format_price(price: int | None) -> str:
    """
    Colombian peso display format: "$ 120.000".

    Thousands separated with ".", no decimals.
    """
    amount = int(round(price or 0))
    sign = "-" if amount < 0 else ""
    grouped = f"{abs(amount):,}".replace(",", ".")
    return f"{sign}$ {grouped}"


def default_message(product: dict) -> str:
    return f"¡Hola! Me interesa este producto: {product['name']} - {format_price(product.get('price'))}"


def generate_whatsapp_url(product: dict, message: str | None = None, *, phone: str | None = None) -> str:
    """
    Build the wa.me link that opens a chat with the store about product.

    phone: digits only, country code first; non-digits are stripped.
    """
    digits = "".join(ch for ch in (phone or DEFAULT_WHATSAPP_PHONE) if ch.isdigit())
    text = message or default_message(product)
    return f"{WHATSAPP_BASE_URL}/{digits}?text={quote(text, safe='')}"
