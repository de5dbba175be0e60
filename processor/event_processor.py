"""Event processor for validating and normalizing scraped events."""
import logging
import re
from datetime import datetime
from typing import List, Optional

from processor.date_parser import parse_scraped_schedule
from processor.models import (
    DURATION_SINGLE,
    FORMAT_IN_PERSON,
    STATUS_PENDING,
    AttendanceSummary,
    Event,
    ScrapedEvent,
)
from processor.price_parser import parse_price_string

logger = logging.getLogger(__name__)

_NEWSLETTER_PROMPT = re.compile(r'Subscribe to our Newsletter.*?Done!', re.DOTALL)


class EventProcessor:
    """Processor turning scraped candidates into pending events."""

    MAX_NAME_LENGTH = 200
    MAX_DETAILS_LENGTH = 2000
    MAX_CATEGORIES = 3
    DEFAULT_LOCATION = 'Location TBD'

    def __init__(self, city: str = 'seattle'):
        """
        Initialize the processor.

        Args:
            city: City slug stamped on every processed event
        """
        self.city = city

    def process_events(
        self,
        scraped_events: List[ScrapedEvent],
        now: Optional[datetime] = None
    ) -> List[Event]:
        """
        Process and validate scraped events.

        Args:
            scraped_events: Raw candidates from the scraper
            now: Reference instant for date parsing

        Returns:
            List of normalized pending Event objects
        """
        processed_events = []

        for scraped in scraped_events:
            try:
                event = self.process_event(scraped, now)
                if event:
                    processed_events.append(event)
            except Exception as e:
                logger.warning(
                    f"Failed to process event '{scraped.link}': {e}"
                )
                continue

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{len(scraped_events)} total events"
        )
        return processed_events

    def process_event(
        self,
        scraped: ScrapedEvent,
        now: Optional[datetime] = None
    ) -> Optional[Event]:
        """
        Normalize a single scraped event.

        Args:
            scraped: Raw candidate
            now: Reference instant for date parsing

        Returns:
            Pending Event, or None if required fields are missing
        """
        if not self._validate_required_fields(scraped):
            return None

        name = self.clean_name(scraped.name)[:self.MAX_NAME_LENGTH]
        details = scraped.details.strip()[:self.MAX_DETAILS_LENGTH]

        start_date, end_date, times = parse_scraped_schedule(
            scraped.date_text,
            scraped.time_text,
            now
        )

        return Event(
            name=name,
            link=scraped.link.strip(),
            start_date=start_date,
            end_date=end_date,
            times=times,
            event_duration_type=DURATION_SINGLE,
            category=self.normalize_categories(scraped.categories),
            cost=parse_price_string(scraped.price_text),
            status=STATUS_PENDING,
            clicks=0,
            attendance_summary=AttendanceSummary(),
            location=self.clean_location(scraped.location) or self.DEFAULT_LOCATION,
            city=self.city,
            image=scraped.image.strip(),
            details=details,
            format=FORMAT_IN_PERSON
        )

    def _validate_required_fields(self, scraped: ScrapedEvent) -> bool:
        """
        Validate that the name and link are present.

        Args:
            scraped: Candidate to validate

        Returns:
            True if valid, False otherwise
        """
        if not scraped.link or not scraped.link.strip():
            logger.warning("Scraped event missing required field: link")
            return False

        if not self.clean_name(scraped.name):
            logger.warning(
                f"Scraped event '{scraped.link}' missing required field: name"
            )
            return False

        return True

    @staticmethod
    def clean_name(name: str) -> str:
        """Strip the newsletter sign-up text that leaks into page headings."""
        name = _NEWSLETTER_PROMPT.sub('', name or '')
        name = name.replace('Done!', '')
        return ' '.join(name.split())

    def clean_location(self, location: str) -> str:
        """Drop the "(City)" suffix the source appends to venue names."""
        location = re.sub(
            rf'\s*\({re.escape(self.city)}\)\s*',
            ' ',
            location or '',
            flags=re.IGNORECASE
        )
        return ' '.join(location.split())

    def normalize_categories(self, categories: List[str]) -> List[str]:
        """Lowercase, de-duplicate and cap the category tags."""
        normalized = []
        for category in categories or []:
            tag = ' '.join(category.lower().split())
            if tag and tag not in normalized:
                normalized.append(tag)
        return normalized[:self.MAX_CATEGORIES]
