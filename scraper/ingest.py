"""Scrape, deduplicate and queue new events for moderation."""
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional

from processor.event_processor import EventProcessor
from processor.models import Event, IngestResult, ScrapedEvent
from scraper.everout import EverOutScraper
from storage.event_repository import EventRepository

logger = logging.getLogger(__name__)


class EventIngestor:
    """
    Runs one scraper pass and writes new events to the pending queue.

    Candidates are handled one at a time. A candidate whose link is
    already stored is skipped before its detail page is fetched; a
    candidate that fails is logged and skipped without stopping the run.
    Failing to fetch the listing page itself raises.
    """

    def __init__(
        self,
        scraper: EverOutScraper,
        processor: EventProcessor,
        repository: EventRepository,
        run_deadline_seconds: Optional[float] = None,
        request_delay_seconds: float = 0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the ingestor.

        Args:
            scraper: Page fetcher and parser
            processor: Normalizer for scraped candidates
            repository: Event persistence
            run_deadline_seconds: Stop starting new items after this long
            request_delay_seconds: Pause between detail page requests
            clock: Monotonic clock, injectable for tests
        """
        self.scraper = scraper
        self.processor = processor
        self.repository = repository
        self.run_deadline_seconds = run_deadline_seconds
        self.request_delay_seconds = request_delay_seconds
        self.clock = clock

    def ingest_listing(self, now: Optional[datetime] = None) -> IngestResult:
        """
        Scrape the day-sectioned listing, writing each new event immediately.

        Args:
            now: Reference instant for date parsing (default: now)

        Returns:
            IngestResult for the run

        Raises:
            requests.RequestException: If the listing page cannot be fetched
        """
        started = self.clock()
        now = now or datetime.now()
        candidates = self.scraper.fetch_listing()
        result = IngestResult(found=len(candidates))

        for candidate in self._new_candidates(candidates, result, started):
            event = self._enrich(candidate, result, now)
            if event is None:
                continue

            try:
                self.repository.add_pending_event(event)
            except Exception as e:
                self._record_error(result, candidate, 'persist', e)
                continue

            result.added += 1
            result.events.append(event)
            logger.info(f"Added pending event {event.id}: {event.name}", extra={'link': event.link})

        self._log_summary('listing', result)
        return result

    def ingest_top_events(self, limit: int = 20, now: Optional[datetime] = None) -> IngestResult:
        """
        Scrape the top events grid and write all new events in one batch.

        Args:
            limit: Maximum number of cards to consider (default: 20)
            now: Reference instant for date parsing (default: now)

        Returns:
            IngestResult for the run

        Raises:
            requests.RequestException: If the top events page cannot be fetched
            botocore.exceptions.ClientError: If the batch write fails
        """
        started = self.clock()
        now = now or datetime.now()
        candidates = self.scraper.fetch_top_event_cards(limit=limit)
        result = IngestResult(found=len(candidates))

        events_to_add: List[Event] = []
        for candidate in self._new_candidates(candidates, result, started):
            event = self._enrich(candidate, result, now)
            if event is not None:
                events_to_add.append(event)

        if events_to_add:
            for index, event in enumerate(events_to_add, start=1):
                logger.info(f"{index}. {event.name} @ {event.location}")
            self.repository.add_pending_events(events_to_add)
            result.added = len(events_to_add)
            result.events.extend(events_to_add)

        self._log_summary('top events', result)
        return result

    def _new_candidates(self, candidates: List[ScrapedEvent], result: IngestResult, started: float):
        """
        Yield candidates whose links are not stored yet, honouring the deadline.

        Args:
            candidates: Candidates in page order
            result: Run result, updated with skips and errors
            started: Clock value at the start of the run
        """
        seen_links = set()

        for candidate in candidates:
            if self._deadline_passed(started):
                logger.warning(
                    f"Run deadline of {self.run_deadline_seconds}s reached, "
                    f"stopping before {candidate.link}"
                )
                result.errors.append(
                    f"Run deadline reached; {candidate.link} and later candidates not processed"
                )
                return

            if candidate.link in seen_links:
                logger.info(f"Skipping duplicate link in this run: {candidate.link}")
                result.skipped += 1
                continue
            seen_links.add(candidate.link)

            try:
                exists = self.repository.event_exists(candidate.link)
            except Exception as e:
                self._record_error(result, candidate, 'check', e)
                continue

            if exists:
                logger.info(f"Link already exists: {candidate.link}")
                result.skipped += 1
                continue

            logger.info(f"Link is new: {candidate.link}")
            yield candidate

    def _enrich(self, candidate: ScrapedEvent, result: IngestResult, now: datetime) -> Optional[Event]:
        """Fetch the detail page and normalize; None when the candidate is skipped."""
        if self.request_delay_seconds:
            time.sleep(self.request_delay_seconds)

        try:
            detail = self.scraper.scrape_detail(candidate)
            event = self.processor.process_event(detail, now)
        except Exception as e:
            self._record_error(result, candidate, 'scrape', e)
            return None

        if event is None:
            result.errors.append(f"{candidate.link}: missing required fields")
            logger.warning(f"Skipping {candidate.link}: missing required fields")
        return event

    def _deadline_passed(self, started: float) -> bool:
        if self.run_deadline_seconds is None:
            return False
        return self.clock() - started >= self.run_deadline_seconds

    @staticmethod
    def _record_error(result: IngestResult, candidate: ScrapedEvent, stage: str, error: Exception) -> None:
        message = f"{candidate.link}: {stage} failed: {error}"
        logger.error(
            f"Error processing event {candidate.link} during {stage}: {error}",
            extra={'error_type': type(error).__name__}
        )
        result.errors.append(message)

    @staticmethod
    def _log_summary(variant: str, result: IngestResult) -> None:
        logger.info(
            f"Scraper summary ({variant}): found {result.found}, "
            f"skipped {result.skipped}, added {result.added}",
            extra={
                'events_found': result.found,
                'events_skipped': result.skipped,
                'events_added': result.added,
                'errors': len(result.errors),
            }
        )
