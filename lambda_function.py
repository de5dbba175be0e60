"""AWS Lambda handlers for happns event ingestion, calendar feeds and reminders."""
import hmac
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from feeds.calendar_feed import CalendarFeedBuilder, FeedNotFoundError
from notifications.reminders import ReminderJob
from processor.event_processor import EventProcessor
from processor.models import IngestResult, event_to_document
from scraper.everout import EverOutScraper
from scraper.ingest import EventIngestor
from storage.document_store import DocumentStore
from storage.dynamodb_store import DynamoDBDocumentStore
from storage.event_repository import EventRepository

# Attributes every LogRecord has; anything else came from `extra=`
_STANDARD_RECORD_ATTRIBUTES = set(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any `extra` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRIBUTES and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Create new handler with JSON formatter
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    # Set log level
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for noisy in ('botocore', 'boto3', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@dataclass
class Settings:
    """Runtime configuration read from environment variables."""
    table_name: str
    region_name: Optional[str]
    endpoint_url: Optional[str]
    log_level: str
    cron_secret: str
    timeout_seconds: int
    max_retries: int
    run_deadline_seconds: Optional[float]
    request_delay_seconds: float
    top_events_limit: int
    city: str
    reminder_workers: int


class ConfigurationError(ValueError):
    """Raised when an environment variable holds an unusable value."""


def _env_number(name: str, default: str, cast=int):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'") from e


def load_settings() -> Settings:
    """
    Read configuration from environment variables.

    An empty or zero RUN_DEADLINE_SECONDS disables the run deadline.

    Raises:
        ConfigurationError: If a numeric variable cannot be parsed
    """
    deadline = None
    if os.environ.get('RUN_DEADLINE_SECONDS', '240'):
        deadline = _env_number('RUN_DEADLINE_SECONDS', '240', float) or None

    return Settings(
        table_name=os.environ.get('TABLE_NAME', 'happns-documents'),
        region_name=os.environ.get('AWS_REGION') or None,
        endpoint_url=os.environ.get('DYNAMODB_ENDPOINT_URL') or None,
        log_level=os.environ.get('LOG_LEVEL', 'INFO'),
        cron_secret=os.environ.get('CRON_SECRET', ''),
        timeout_seconds=_env_number('TIMEOUT_SECONDS', '30'),
        max_retries=_env_number('MAX_RETRIES', '3'),
        run_deadline_seconds=deadline,
        request_delay_seconds=_env_number('REQUEST_DELAY_SECONDS', '0', float),
        top_events_limit=_env_number('TOP_EVENTS_LIMIT', '20'),
        city=os.environ.get('SCRAPE_CITY', 'seattle'),
        reminder_workers=_env_number('REMINDER_WORKERS', '8')
    )


def _configure() -> Settings:
    """Set up logging and load settings for one invocation."""
    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    return load_settings()


def _configuration_error_response(e: ConfigurationError) -> Dict[str, Any]:
    logging.getLogger(__name__).error(
        f"Invalid configuration: {str(e)}",
        extra={'error_type': type(e).__name__}
    )
    return _json_response(500, {
        'success': False,
        'message': 'Invalid configuration',
        'error': str(e),
        'error_type': type(e).__name__
    })


def create_document_store(settings: Settings) -> DocumentStore:
    """Create the (not yet connected) document store for this invocation."""
    return DynamoDBDocumentStore(
        table_name=settings.table_name,
        region_name=settings.region_name,
        endpoint_url=settings.endpoint_url
    )


def _json_response(status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(payload, default=str)
    }


def _get_header(event: Dict[str, Any], name: str) -> Optional[str]:
    """Look up a request header case-insensitively."""
    headers = event.get('headers') or {}
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value
    return None


def is_authorized(event: Dict[str, Any], secret: str) -> bool:
    """
    Check the request carries "Authorization: Bearer <secret>".

    An unconfigured secret rejects every request.
    """
    if not secret:
        return False
    provided = _get_header(event, 'Authorization') or ''
    return hmac.compare_digest(provided.encode('utf-8'), f"Bearer {secret}".encode('utf-8'))


def _run_scraper(event: Dict[str, Any], variant: str) -> Dict[str, Any]:
    """
    Shared body of the two scraper handlers.

    Args:
        event: API Gateway or scheduler event
        variant: "listing" or "top-events"

    Returns:
        Response dict with statusCode and JSON body
    """
    logger = logging.getLogger(__name__)
    try:
        settings = _configure()
    except ConfigurationError as e:
        return _configuration_error_response(e)

    start_time = time.time()

    if not is_authorized(event, settings.cron_secret):
        logger.warning("Rejected scraper request with missing or invalid token")
        return _json_response(401, {'success': False, 'message': 'Unauthorized'})

    logger.info(
        "Scraper execution started",
        extra={
            'variant': variant,
            'table_name': settings.table_name,
            'timeout_seconds': settings.timeout_seconds
        }
    )

    try:
        with create_document_store(settings) as store:
            ingestor = EventIngestor(
                scraper=EverOutScraper(
                    timeout=settings.timeout_seconds,
                    max_retries=settings.max_retries
                ),
                processor=EventProcessor(city=settings.city),
                repository=EventRepository(store),
                run_deadline_seconds=settings.run_deadline_seconds,
                request_delay_seconds=settings.request_delay_seconds
            )

            if variant == 'top-events':
                result = ingestor.ingest_top_events(limit=settings.top_events_limit)
            else:
                result = ingestor.ingest_listing()

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Scraper execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _json_response(500, {
            'success': False,
            'message': 'Scraping failed',
            'error': str(e),
            'error_type': type(e).__name__
        })

    duration = time.time() - start_time
    logger.info(
        "Scraper execution completed successfully",
        extra={
            'duration_seconds': round(duration, 2),
            'events_found': result.found,
            'events_skipped': result.skipped,
            'events_added': result.added,
            'errors': result.errors
        }
    )
    return _json_response(200, _scrape_payload(result, duration))


def _scrape_payload(result: IngestResult, duration: float) -> Dict[str, Any]:
    return {
        'success': True,
        'message': f"Found {result.found} events, added {result.added} new events",
        'events': [event_to_document(event) for event in result.events],
        'statistics': {
            'events_found': result.found,
            'events_skipped': result.skipped,
            'events_added': result.added,
            'duration_seconds': round(duration, 2)
        },
        'errors': result.errors
    }


def scrape_events_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Scrape the day-sectioned listing, writing each new event as it is found.

    Args:
        event: API Gateway or scheduler event with an Authorization header
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    return _run_scraper(event, 'listing')


def scrape_top_events_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Scrape the top events grid and queue new events in one batch."""
    return _run_scraper(event, 'top-events')


def calendar_feed_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Serve a user's bookmarked events as an .ics download.

    Args:
        event: API Gateway event with a userId query parameter
        context: Lambda context object

    Returns:
        text/calendar response, or a JSON error (400, 404, 500)
    """
    logger = logging.getLogger(__name__)
    try:
        settings = _configure()
    except ConfigurationError as e:
        return _configuration_error_response(e)

    params = event.get('queryStringParameters') or {}
    user_id = (params.get('userId') or '').strip()
    if not user_id:
        return _json_response(400, {'error': 'Missing user ID'})

    try:
        with create_document_store(settings) as store:
            feed = CalendarFeedBuilder(EventRepository(store)).build_user_feed(user_id)
    except FeedNotFoundError as e:
        logger.info(f"No calendar feed for user {user_id}: {e}")
        return _json_response(404, {'error': str(e)})
    except Exception as e:
        logger.error(
            f"Failed to build calendar feed for user {user_id}: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _json_response(500, {'error': 'Failed to build calendar feed'})

    return {
        'statusCode': 200,
        'headers': {
            'Content-Type': 'text/calendar',
            'Content-Disposition': 'attachment; filename="events.ics"'
        },
        'body': feed.decode('utf-8')
    }


def send_reminders_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Scheduled every 24 hours: remind users of events starting within a day.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    logger = logging.getLogger(__name__)
    try:
        settings = _configure()
    except ConfigurationError as e:
        return _configuration_error_response(e)

    start_time = time.time()
    logger.info("Reminder job started")

    try:
        with create_document_store(settings) as store:
            job = ReminderJob(EventRepository(store), max_workers=settings.reminder_workers)
            result = job.run()
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Reminder job failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _json_response(500, {
            'message': 'Reminder job failed',
            'error': str(e),
            'error_type': type(e).__name__
        })

    duration = time.time() - start_time
    logger.info(
        "Reminder job completed",
        extra={
            'duration_seconds': round(duration, 2),
            'reminders_sent': result.reminders_sent,
            'errors': result.errors
        }
    )
    return _json_response(200, {
        'message': 'Reminders sent',
        'statistics': {
            'users_processed': result.users_processed,
            'reminders_sent': result.reminders_sent,
            'duration_seconds': round(duration, 2)
        },
        'errors': result.errors
    })
