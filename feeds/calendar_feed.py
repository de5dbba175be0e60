"""iCalendar feed of a user's bookmarked events."""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from urllib.parse import urlencode
from zoneinfo import ZoneInfo

import icalendar

from processor.models import Event
from storage.event_repository import EventRepository

logger = logging.getLogger(__name__)

FEED_TIMEZONE = ZoneInfo('America/Los_Angeles')
FEED_NAME = 'happns'
EVENT_PAGE_URL = 'https://ithappns.com/events/{event_id}'
GOOGLE_CALENDAR_URL = 'https://www.google.com/calendar/render'
DEFAULT_EVENT_DURATION = timedelta(hours=2)


class FeedNotFoundError(Exception):
    """Raised when a user has nothing to put in a feed."""


def _combine(date_text: str, time_text: str) -> Optional[datetime]:
    try:
        parsed = datetime.strptime(f"{date_text} {time_text or '00:00'}", '%Y-%m-%d %H:%M')
    except (TypeError, ValueError):
        return None
    return parsed.replace(tzinfo=FEED_TIMEZONE)


def event_start_datetime(event: Event) -> Optional[datetime]:
    """
    Start of the event's first day in the feed timezone.

    An empty start time means the start of the day.
    """
    if not event.times:
        return None
    return _combine(event.start_date, event.times[0].start_time)


def event_end_datetime(event: Event) -> Optional[datetime]:
    """
    End of the event in the feed timezone.

    Uses the end date with the first time slot's end time. An empty end
    time gives DEFAULT_EVENT_DURATION after the start, and an end that is
    not after the start (e.g. "9 pm - 2 am") rolls over to the next day.
    """
    start = event_start_datetime(event)
    if start is None:
        return None

    end_time = event.times[0].end_time
    if not end_time:
        return start + DEFAULT_EVENT_DURATION

    end = _combine(event.end_date, end_time)
    if end is not None and end <= start:
        end += timedelta(days=1)
    return end


def build_calendar(events: List[Event], name: str = FEED_NAME) -> icalendar.Calendar:
    """
    Build a VCALENDAR with one VEVENT per event that has valid dates and times.

    Args:
        events: Events to export
        name: Calendar display name

    Returns:
        icalendar.Calendar
    """
    calendar = icalendar.Calendar()
    calendar.add('prodid', '-//happns//calendar feed//EN')
    calendar.add('version', '2.0')
    calendar.add('x-wr-calname', name)
    calendar.add('x-wr-timezone', FEED_TIMEZONE.key)

    stamp = datetime.now(timezone.utc)
    for event in events:
        start = event_start_datetime(event)
        end = event_end_datetime(event)
        if start is None or end is None:
            logger.error(
                f"Skipping event {event.id or 'unknown'} due to invalid dates or times",
                extra={'start_date': event.start_date, 'end_date': event.end_date}
            )
            continue

        entry = icalendar.Event()
        entry.add('uid', f"{event.id}@ithappns.com")
        entry.add('dtstamp', stamp)
        entry.add('dtstart', start)
        entry.add('dtend', end)
        entry.add('summary', event.name or 'No Title')
        entry.add(
            'description',
            f"view this event on happns: {EVENT_PAGE_URL.format(event_id=event.id)}"
            f"\n\n{event.details or 'no details'}"
        )
        entry.add('location', event.location or 'Location not specified')
        if event.link:
            entry.add('url', event.link)
        calendar.add_component(entry)

    return calendar


def google_calendar_link(event: Event) -> Optional[str]:
    """
    Build an "add to Google Calendar" link for an event.

    Returns:
        URL, or None when the event's dates or times are invalid
    """
    start = event_start_datetime(event)
    end = event_end_datetime(event)
    if start is None or end is None:
        return None

    def utc_stamp(value: datetime) -> str:
        return value.astimezone(timezone.utc).strftime('%Y%m%dT%H%M%SZ')

    params = {
        'action': 'TEMPLATE',
        'text': event.name,
        'dates': f"{utc_stamp(start)}/{utc_stamp(end)}",
        'details': event.details,
        'location': event.location,
        'sf': 'true',
        'output': 'xml',
    }
    return f"{GOOGLE_CALENDAR_URL}?{urlencode(params)}"


class CalendarFeedBuilder:
    """Builds the .ics feed for one user's bookmarks."""

    def __init__(self, repository: EventRepository):
        self.repository = repository

    def build_user_feed(self, user_id: str) -> bytes:
        """
        Render the user's bookmarked events as iCalendar data.

        Args:
            user_id: User whose bookmarks are exported

        Returns:
            iCalendar bytes

        Raises:
            FeedNotFoundError: If the user has no bookmarks, or none of
                them point at an existing event
        """
        event_ids = self.repository.get_bookmarked_event_ids(user_id)
        if not event_ids:
            raise FeedNotFoundError('No events found for user')

        events = self.repository.get_events(event_ids)
        if not events:
            raise FeedNotFoundError('No valid events found for user')

        logger.info(f"Building calendar feed for user {user_id} with {len(events)} events")
        return build_calendar(events).to_ical()
