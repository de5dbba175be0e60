"""Ordered CSS selector fallbacks for inconsistent listing markup."""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from bs4 import Tag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionStrategy:
    """
    One way of reading a field: a CSS selector plus an optional attribute.

    Without an attribute the element's text is used.
    """
    selector: str
    attribute: Optional[str] = None

    def extract(self, node: Tag) -> Optional[str]:
        """
        Apply the strategy to a parsed node.

        Args:
            node: BeautifulSoup document or element

        Returns:
            Stripped value, or None when nothing non-empty matched
        """
        element = node.select_one(self.selector)
        if element is None:
            return None

        if self.attribute:
            value = element.get(self.attribute)
            if isinstance(value, list):
                value = ' '.join(value)
        else:
            value = element.get_text(' ', strip=True)

        value = ' '.join((value or '').split())
        return value or None


def text(*selectors: str) -> List[ExtractionStrategy]:
    return [ExtractionStrategy(selector) for selector in selectors]


def attribute(name: str, *selectors: str) -> List[ExtractionStrategy]:
    return [ExtractionStrategy(selector, name) for selector in selectors]


def first_match(node: Tag, strategies: Sequence[ExtractionStrategy]) -> Optional[str]:
    """
    Return the value of the first strategy that yields one.

    Args:
        node: BeautifulSoup document or element
        strategies: Strategies in priority order

    Returns:
        First present value, or None
    """
    for strategy in strategies:
        value = strategy.extract(node)
        if value:
            logger.debug(f"Selector '{strategy.selector}' matched")
            return value
    return None


def all_matches(node: Tag, selectors: Sequence[str]) -> List[str]:
    """Texts of every element matched by the first selector that matches any."""
    for selector in selectors:
        values = [
            ' '.join(element.get_text(' ', strip=True).split())
            for element in node.select(selector)
        ]
        values = [value for value in values if value]
        if values:
            return values
    return []


def first_elements(node: Tag, selectors: Sequence[str]) -> List[Tag]:
    """Elements matched by the first selector that matches any."""
    for selector in selectors:
        elements = node.select(selector)
        if elements:
            return elements
    return []
