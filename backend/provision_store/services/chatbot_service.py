# Overview: Keyword-driven store assistant; read-only lookups plus chat history.

from __future__ import annotations

import logging
import re

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ChatMessage, Product
from ..money_utils import format_cents
from . import reporting_service
from .inventory_service import list_low_stock

logger = logging.getLogger(__name__)

STOCK_PATTERN = re.compile(r"stock (?:of |for )?(.+)|how (?:much|many) (.+)")
PRICE_PATTERN = re.compile(r"price (?:of |for )?(.+)|cost (?:of |for )?(.+)")

HELP_TEXT = """I can help you with:
• Check stock: "stock of rice" or "how much milk"
• Check prices: "price of bread"
• Sales stats: "total sales" or "revenue"
• Low stock alerts: "low stock items"
• Top products: "best selling products\""""

DEFAULT_TEXT = """I'm your store assistant! 😊 Try asking:
• "help" - see all commands
• "stock of rice" - check product stock
• "price of milk" - check product price
• "total sales" - view sales summary"""

LOOKUP_FAILED_TEXT = "Sorry, I couldn't look that up right now."


def _has_any(text: str, *keywords: str) -> bool:
    return any(k in text for k in keywords)


def _subject(match: re.Match | None) -> str | None:
    if not match:
        return None
    phrase = next((g for g in match.groups() if g), "")
    phrase = phrase.strip().rstrip("?!.").strip()
    return phrase or None


def resolve_intent(message: str) -> tuple[str, str | None]:
    """
    Map free text to (intent, subject).

    First keyword hit wins. "low stock" is checked before plain "stock" so
    the alert list is reachable.
    """
    text = message.lower()

    if "help" in text:
        return "help", None
    if _has_any(text, "low stock", "alert"):
        return "low_stock", None
    if _has_any(text, "stock", "how much", "how many"):
        subject = _subject(STOCK_PATTERN.search(text))
        return ("stock", subject) if subject else ("default", None)
    if _has_any(text, "price", "cost"):
        subject = _subject(PRICE_PATTERN.search(text))
        return ("price", subject) if subject else ("default", None)
    if _has_any(text, "sales", "revenue", "profit"):
        return "sales", None
    if _has_any(text, "top", "best", "popular"):
        return "top_products", None
    return "default", None


def find_product_by_name(phrase: str) -> Product | None:
    """First product whose name contains the phrase (case-insensitive)."""
    return (
        db.session.query(Product)
        .filter(func.lower(Product.name).contains(phrase.lower(), autoescape=True))
        .order_by(Product.id.asc())
        .first()
    )


def _money(cents: int) -> str:
    return format_cents(cents, current_app.config["CURRENCY_SYMBOL"])


def _stock_reply(phrase: str) -> str:
    product = find_product_by_name(phrase)
    if product is None:
        return f'Product "{phrase}" not found.'
    reply = f"{product.name}: {product.stock} units in stock. Minimum: {product.min_stock}"
    if product.is_low_stock:
        reply += " ⚠️ LOW STOCK ALERT!"
    return reply


def _price_reply(phrase: str) -> str:
    product = find_product_by_name(phrase)
    if product is None:
        return f'Product "{phrase}" not found.'
    return f"{product.name}: {_money(product.price_cents)} (Cost: {_money(product.cost_cents)})"


def _sales_reply() -> str:
    summary = reporting_service.sales_summary()
    return (
        "📊 Sales Summary:\n"
        f"Total Sales: {summary['sales_count']}\n"
        f"Total Revenue: {_money(summary['revenue_cents'])}\n"
        f"Total Profit: {_money(summary['profit_cents'])}"
    )


def _low_stock_reply() -> str:
    products = list_low_stock(db.session)
    if not products:
        return "✅ No low stock items!"
    return "⚠️ Low Stock Items:\n" + "\n".join(f"• {p.name}: {p.stock} units" for p in products)


def _top_products_reply() -> str:
    rows = reporting_service.top_products()
    if not rows:
        return "No sales data available yet."
    lines = [f"{i}. {row['product_name']}: {row['total_quantity']} units" for i, row in enumerate(rows, start=1)]
    return "🏆 Top Selling Products:\n" + "\n".join(lines)


def answer(message: str) -> str:
    intent, subject = resolve_intent(message)

    if intent == "help":
        return HELP_TEXT
    if intent == "low_stock":
        return _low_stock_reply()
    if intent == "stock":
        return _stock_reply(subject)
    if intent == "price":
        return _price_reply(subject)
    if intent == "sales":
        return _sales_reply()
    if intent == "top_products":
        return _top_products_reply()
    return DEFAULT_TEXT


def _record_exchange(message: str, response: str) -> None:
    # History is best effort: the reply still goes out if this write fails
    try:
        db.session.add(ChatMessage(message=message, response=response))
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Error saving chat history")


def handle_message(message: str) -> str:
    """Answer a chat message and store the exchange."""
    try:
        response = answer(message)
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Chatbot lookup failed")
        response = LOOKUP_FAILED_TEXT

    _record_exchange(message, response)
    return response


def recent_history(limit: int = 50) -> list[dict]:
    rows = (
        db.session.query(ChatMessage)
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(limit)
        .all()
    )
    return [row.to_dict() for row in rows]
