"""
Listing extraction from rendered HTML.

Turns captured page content into an ordered ``Sample`` of records. Cards
without both a name and a price element are skipped; an unparsable price
becomes 0 rather than dropping the record.
"""

import re
from typing import Optional, Protocol

from bs4 import BeautifulSoup

from .config import ExtractionConfig
from .models import Record, Sample


class ListingParser(Protocol):
    """Pure function from page content to records in page order."""

    def parse(self, content: str) -> Sample:
        ...


def parse_price(text: str, pattern: "re.Pattern[str]") -> int:
    """
    Extract an integer price from currency-formatted text.

    ``"¥ 12,800 (税込)"`` becomes 12800; text without a match becomes 0.
    """
    match = pattern.search(text)
    if not match:
        return 0
    digits = match.group(1).replace(",", "")
    try:
        return int(digits)
    except ValueError:
        return 0


class CardListingParser:
    """Parses listing cards with CSS selectors."""

    def __init__(self, config: Optional[ExtractionConfig] = None) -> None:
        self._config = config or ExtractionConfig()
        self._price_pattern = re.compile(self._config.price_pattern)

    @property
    def config(self) -> ExtractionConfig:
        return self._config

    def parse(self, content: str) -> Sample:
        if not content:
            return []

        soup = BeautifulSoup(content, "lxml")
        records: Sample = []

        for card in soup.select(self._config.card_selector):
            name_tag = card.select_one(self._config.name_selector)
            price_tag = card.select_one(self._config.price_selector)
            if name_tag is None or price_tag is None:
                continue

            name = name_tag.get_text().strip()
            if len(name) < self._config.min_name_length:
                continue

            price = parse_price(price_tag.get_text().strip(), self._price_pattern)
            records.append(Record(name=name, price=price))

        return records
