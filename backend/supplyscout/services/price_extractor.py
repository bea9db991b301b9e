"""
Price extraction from supplier replies.

WHAT: Pull a unit price out of free-text email bodies
WHY: Suppliers answer in prose ("We can do $450 per unit"), not forms
HOW: Ordered regex patterns; the first pattern that matches anywhere wins,
     and within a pattern the first match in the text wins

Known approximation: thousands separators are not understood ("$1,200" reads
as 1) and any dollar amount in the email can be picked up, e.g. a shipping fee
quoted before the unit price.
"""

import re

from ..utils.logger import get_logger

logger = get_logger(__name__)

_NUMBER = r'(\d+(?:\.\d{2})?)'

PRICE_PATTERNS: list[re.Pattern] = [
    re.compile(r'\$\s*' + _NUMBER, re.IGNORECASE),                             # $450, $ 1200.50
    re.compile(r'price[:\s]*\$?\s*' + _NUMBER, re.IGNORECASE),                 # Price: $450
    re.compile(_NUMBER + r'\s*(?:dollars?|usd)\b', re.IGNORECASE),             # 450 dollars, 450 USD
    re.compile(r'quote[:\s]*\$?\s*' + _NUMBER, re.IGNORECASE),                 # Quote: 450
    re.compile(r'cost[:\s]*\$?\s*' + _NUMBER, re.IGNORECASE),                  # Cost: 450
    re.compile(_NUMBER + r'\s*(?:/|per)\s*unit', re.IGNORECASE),               # 300 per unit
]


def extract_price(text: str | None) -> float | None:
    """
    Extract a unit price from natural language.

    Args:
        text: Email body (plain text or HTML-stripped)

    Returns:
        Price as float, or None if no pattern matched
    """
    if not text:
        return None

    for pattern in PRICE_PATTERNS:
        match = pattern.search(text)
        if match:
            try:
                price = float(match.group(1))
            except ValueError:
                continue
            logger.debug(f"Extracted price {price} using pattern {pattern.pattern!r}")
            return price

    logger.debug("No price found in text")
    return None
