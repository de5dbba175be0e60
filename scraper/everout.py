"""Scraper for EverOut city event listings."""
import logging
import time
from dataclasses import replace
from typing import List, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from processor.models import ScrapedEvent
from scraper.selectors import (
    all_matches,
    attribute,
    first_elements,
    first_match,
    text,
)

logger = logging.getLogger(__name__)

HEADERS = {
    'User-Agent': (
        'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 '
        '(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36'
    ),
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.5',
    'Connection': 'keep-alive',
    'Upgrade-Insecure-Requests': '1',
}

# Listing page: day sections, each holding that day's events
DAY_SECTION_SELECTORS = ['.day-section', '.event-list-day', 'section.day']
DAY_HEADER = text('.day-header', '.date-header', 'h2')
ITEM_SELECTORS = ['.event-list-item', '.item-card', 'article.event']
ITEM_LINK = attribute('href', '.event-title a', 'h3 a', 'a.event-link', 'a[href]')
ITEM_NAME = text('.event-title', 'h3', 'a.event-link')
ITEM_TIME = text('.event-time', '.time', '.event-date-time')
ITEM_PRICE = text('.event-price', '.price', '.cost')
ITEM_IMAGE = attribute('src', 'img') + attribute('data-src', 'img')

# Top events page: a flat grid of cards
CARD_SELECTORS = ['.item-card']
CARD_LINK = attribute('href', 'a[href]')
CARD_IMAGE = attribute('src', 'img') + attribute('data-src', 'img')

# Detail pages; markup differs between listing types
DETAIL_NAME = text('h1', '.event-title')
DETAIL_LOCATION = text('.venue-name', '.location-name', '.venue', '.location')
DETAIL_DESCRIPTION = text('.event-description', '.description', '.event-details', '.details')
DETAIL_IMAGE = attribute(
    'src',
    '.event-image img',
    '.event-header img',
    '.event-header-image img',
    'article img',
    '.image img',
    '.event img',
    'img.event-image',
    'img.main-image',
)
DETAIL_CATEGORIES = ['.event-categories a', '.category-tags a', '.tags a']
DETAIL_DATE = text('.event-date', '.date')
DETAIL_TIME = text('.event-time', '.time')
DETAIL_PRICE = text('.event-price', '.price', '.cost')


class EverOutScraper:
    """Scraper for EverOut listing, top events and event detail pages."""

    LISTING_URL = "https://everout.com/seattle/events/"
    TOP_EVENTS_URL = "https://everout.com/seattle/top-events/"

    def __init__(
        self,
        timeout: int = 30,
        max_retries: int = 3,
        base_delay: float = 1,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the scraper.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            max_retries: Attempts per page before giving up (default: 3)
            base_delay: First retry delay in seconds, doubled each retry
            session: Optional requests session to reuse
        """
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)

    def fetch_html(self, url: str) -> str:
        """
        Fetch a page with retry logic.

        Args:
            url: Page URL

        Returns:
            HTML content as string

        Raises:
            requests.RequestException: If all retry attempts fail
        """
        for attempt in range(self.max_retries):
            try:
                logger.info(f"Fetching {url} (attempt {attempt + 1}/{self.max_retries})")
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                return response.text

            except requests.RequestException as e:
                if attempt < self.max_retries - 1:
                    # Calculate exponential backoff delay
                    delay = self.base_delay * (2 ** attempt)
                    logger.warning(
                        f"Request failed (attempt {attempt + 1}/{self.max_retries}): {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    time.sleep(delay)
                else:
                    logger.error(
                        f"All {self.max_retries} retry attempts failed for {url}. Last error: {e}"
                    )
                    raise

    def fetch_listing(self, url: Optional[str] = None) -> List[ScrapedEvent]:
        """
        Fetch the listing page and extract candidates, keeping their links.

        Args:
            url: Listing URL (default: LISTING_URL)

        Returns:
            List of ScrapedEvent candidates in page order
        """
        url = url or self.LISTING_URL
        candidates = self.parse_listing(self.fetch_html(url), url)
        logger.info(f"Found {len(candidates)} candidates on listing page {url}")
        return candidates

    def parse_listing(self, html_content: str, base_url: Optional[str] = None) -> List[ScrapedEvent]:
        """
        Parse day sections and their items from listing HTML.

        Args:
            html_content: Listing page HTML
            base_url: URL used to resolve relative links

        Returns:
            List of ScrapedEvent candidates
        """
        base_url = base_url or self.LISTING_URL
        soup = BeautifulSoup(html_content, 'html.parser')
        candidates = []

        sections = first_elements(soup, DAY_SECTION_SELECTORS)
        if not sections:
            logger.warning("No day sections found on listing page")

        for section in sections:
            date_text = first_match(section, DAY_HEADER) or ''

            for item in first_elements(section, ITEM_SELECTORS):
                try:
                    candidate = self._parse_listing_item(item, date_text, base_url)
                    if candidate:
                        candidates.append(candidate)
                except Exception as e:
                    logger.warning(f"Failed to parse listing item: {e}")
                    continue

        return candidates

    def _parse_listing_item(self, item, date_text: str, base_url: str) -> Optional[ScrapedEvent]:
        href = first_match(item, ITEM_LINK)
        if not href:
            logger.info("Skipping listing item - no link found")
            return None

        image = first_match(item, ITEM_IMAGE)
        return ScrapedEvent(
            link=urljoin(base_url, href),
            name=first_match(item, ITEM_NAME) or '',
            date_text=date_text,
            time_text=first_match(item, ITEM_TIME) or '',
            price_text=first_match(item, ITEM_PRICE) or '',
            image=urljoin(base_url, image) if image else ''
        )

    def fetch_top_event_cards(self, limit: int = 20, url: Optional[str] = None) -> List[ScrapedEvent]:
        """
        Fetch the top events page and extract its cards.

        Args:
            limit: Maximum number of cards to return (default: 20)
            url: Top events URL (default: TOP_EVENTS_URL)

        Returns:
            List of ScrapedEvent candidates with link and card image
        """
        url = url or self.TOP_EVENTS_URL
        html_content = self.fetch_html(url)
        cards = self.parse_top_event_cards(html_content, url)
        logger.info(f"Found {len(cards)} event cards, processing up to {limit}")
        return cards[:limit]

    def parse_top_event_cards(self, html_content: str, base_url: Optional[str] = None) -> List[ScrapedEvent]:
        base_url = base_url or self.TOP_EVENTS_URL
        soup = BeautifulSoup(html_content, 'html.parser')
        cards = []

        elements = first_elements(soup, CARD_SELECTORS)
        if not elements:
            logger.warning(f"No event cards found. HTML preview: {html_content[:500]!r}")

        for element in elements:
            href = first_match(element, CARD_LINK)
            if not href:
                logger.info("Skipping card - no link found")
                continue
            image = first_match(element, CARD_IMAGE)
            cards.append(ScrapedEvent(
                link=urljoin(base_url, href),
                image=urljoin(base_url, image) if image else ''
            ))

        return cards

    def scrape_detail(self, candidate: ScrapedEvent) -> ScrapedEvent:
        """
        Enrich a candidate from its detail page.

        Values already present on the candidate win, except the name,
        where the detail page heading is preferred.

        Args:
            candidate: Candidate from a listing or card

        Returns:
            New ScrapedEvent with detail fields filled in

        Raises:
            requests.RequestException: If the detail page cannot be fetched
        """
        html_content = self.fetch_html(candidate.link)
        return self.parse_detail(html_content, candidate)

    def parse_detail(self, html_content: str, candidate: ScrapedEvent) -> ScrapedEvent:
        soup = BeautifulSoup(html_content, 'html.parser')

        image = candidate.image
        if not image:
            detail_image = first_match(soup, DETAIL_IMAGE)
            image = urljoin(candidate.link, detail_image) if detail_image else ''

        detail = replace(
            candidate,
            name=first_match(soup, DETAIL_NAME) or candidate.name,
            location=candidate.location or first_match(soup, DETAIL_LOCATION) or '',
            details=candidate.details or first_match(soup, DETAIL_DESCRIPTION) or '',
            categories=candidate.categories or all_matches(soup, DETAIL_CATEGORIES),
            image=image,
            date_text=candidate.date_text or first_match(soup, DETAIL_DATE) or '',
            time_text=candidate.time_text or first_match(soup, DETAIL_TIME) or '',
            price_text=candidate.price_text or first_match(soup, DETAIL_PRICE) or ''
        )

        logger.info(
            f"Scraped details for {candidate.link}",
            extra={
                'event_name': detail.name,
                'has_location': bool(detail.location),
                'has_image': bool(detail.image),
            }
        )
        return detail
