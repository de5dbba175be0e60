"""Classification and ordering of events relative to a reference date."""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple, Union

from processor.models import (
    DURATION_EXTENDED,
    DURATION_MULTI,
    DURATION_SINGLE,
    DURATION_TYPES,
    Event,
    TimeSlot,
)

logger = logging.getLogger(__name__)

Reference = Union[datetime, date]

MULTI_DAY_MAX_DAYS = 7
DEFAULT_TOP_N = 8

DURATION_ORDER = {name: index for index, name in enumerate(DURATION_TYPES)}


@dataclass
class EventBuckets:
    """Event lists shown on a city page."""
    today: List[Event] = field(default_factory=list)
    tomorrow: List[Event] = field(default_factory=list)
    upcoming: List[Event] = field(default_factory=list)
    top: List[Event] = field(default_factory=list)


def parse_event_date(value: str) -> Optional[date]:
    """Parse an ISO calendar date, returning None when it is not one."""
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def event_window(event: Event) -> Optional[Tuple[date, date]]:
    """Return the inclusive (start, end) window, or None if either date is invalid."""
    start = parse_event_date(event.start_date)
    end = parse_event_date(event.end_date)
    if start is None or end is None:
        return None
    return start, end


def _reference_date(now: Reference) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


def is_happening_today(event: Event, now: Reference) -> bool:
    window = event_window(event)
    if window is None:
        return False
    return window[0] <= _reference_date(now) <= window[1]


def is_happening_tomorrow(event: Event, now: Reference) -> bool:
    window = event_window(event)
    if window is None:
        return False
    tomorrow = _reference_date(now) + timedelta(days=1)
    return window[0] <= tomorrow <= window[1]


def is_upcoming(event: Event, now: Reference) -> bool:
    """True while the event has not fully concluded."""
    window = event_window(event)
    if window is None:
        return False
    return window[1] >= _reference_date(now)


def is_future(event: Event, now: Reference) -> bool:
    """True if the event has not started yet."""
    window = event_window(event)
    if window is None:
        return False
    return window[0] > _reference_date(now)


def is_past(event: Event, now: Reference) -> bool:
    window = event_window(event)
    if window is None:
        return False
    return window[1] < _reference_date(now)


def _filter_events(
    events: List[Event],
    now: Reference,
    predicate: Callable[[Event, Reference], bool]
) -> List[Event]:
    """
    Apply a window predicate, skipping events with unparseable dates.

    Args:
        events: Events to filter
        now: Reference instant
        predicate: Window predicate

    Returns:
        Events matching the predicate, in their original order
    """
    matched = []
    for event in events:
        if event_window(event) is None:
            logger.warning(
                f"Skipping event '{event.name}' ({event.id or 'no id'}) with invalid "
                f"dates: start={event.start_date!r} end={event.end_date!r}"
            )
            continue
        if predicate(event, now):
            matched.append(event)
    return matched


def get_events_happening_today(events: List[Event], now: Reference) -> List[Event]:
    return _filter_events(events, now, is_happening_today)


def get_events_happening_tomorrow(events: List[Event], now: Reference) -> List[Event]:
    return _filter_events(events, now, is_happening_tomorrow)


def get_upcoming_events(events: List[Event], now: Reference) -> List[Event]:
    return _filter_events(events, now, is_upcoming)


def get_future_events(events: List[Event], now: Reference) -> List[Event]:
    return _filter_events(events, now, is_future)


def get_past_events(events: List[Event], now: Reference) -> List[Event]:
    return _filter_events(events, now, is_past)


def classify_duration_type(event: Event) -> str:
    """
    Derive the duration type from the event window.

    One day is single, up to MULTI_DAY_MAX_DAYS is multi, anything longer
    is extended. Events with invalid dates keep their declared type.
    """
    window = event_window(event)
    if window is None:
        return event.event_duration_type or DURATION_SINGLE

    days = (window[1] - window[0]).days + 1
    if days <= 1:
        return DURATION_SINGLE
    if days <= MULTI_DAY_MAX_DAYS:
        return DURATION_MULTI
    return DURATION_EXTENDED


def time_slot_for_date(event: Event, day: date) -> Optional[TimeSlot]:
    """
    Return the time slot for one day of the event.

    Multi-day events may carry fewer slots than days; the first slot is
    used whenever the day has no slot of its own.
    """
    if not event.times:
        return None

    start = parse_event_date(event.start_date)
    if start is not None:
        index = (day - start).days
        if 0 <= index < len(event.times):
            return event.times[index]

    return event.times[0]


def _date_sort_value(value: str) -> Tuple[bool, date]:
    # Invalid dates sort after every valid date
    parsed = parse_event_date(value)
    return parsed is None, parsed or date.max


def sort_by_date_and_name(events: List[Event]) -> List[Event]:
    """Sort by start date, then case-insensitive name."""
    return sorted(
        events,
        key=lambda event: (_date_sort_value(event.start_date), event.name.casefold())
    )


def sort_by_date_type_and_name(events: List[Event]) -> List[Event]:
    """Sort by start date, then single/multi/extended, then name."""
    return sorted(
        events,
        key=lambda event: (
            _date_sort_value(event.start_date),
            DURATION_ORDER.get(classify_duration_type(event), len(DURATION_ORDER)),
            event.name.casefold(),
        )
    )


def sort_past_events(events: List[Event]) -> List[Event]:
    """Most recently ended first, then name."""
    by_name = sorted(events, key=lambda event: event.name.casefold())
    return sorted(
        by_name,
        key=lambda event: parse_event_date(event.end_date) or date.min,
        reverse=True
    )


def sort_by_clicks(events: List[Event]) -> List[Event]:
    """Sort by clicks, most clicked first. Ties keep their order."""
    return sorted(events, key=lambda event: event.clicks or 0, reverse=True)


def sort_by_clicks_top_n(events: List[Event], n: int = DEFAULT_TOP_N) -> List[Event]:
    """
    Return the n most clicked events.

    Args:
        events: Candidate events
        n: Number of events to keep

    Returns:
        At most n events, ordered by clicks descending
    """
    if n <= 0:
        return []
    return sort_by_clicks(events)[:n]


def get_event_buckets(
    events: List[Event],
    now: Reference,
    top_n: int = DEFAULT_TOP_N
) -> EventBuckets:
    """
    Split events into the today, tomorrow, upcoming and top lists.

    Args:
        events: Approved events for one city
        now: Reference instant
        top_n: Size of the top list

    Returns:
        EventBuckets with each list sorted for display
    """
    upcoming = sort_by_date_and_name(get_upcoming_events(events, now))
    return EventBuckets(
        today=sort_by_date_type_and_name(get_events_happening_today(events, now)),
        tomorrow=sort_by_date_type_and_name(get_events_happening_tomorrow(events, now)),
        upcoming=upcoming,
        top=sort_by_clicks_top_n(upcoming, top_n),
    )
