"""Date and time parsing for scraped listings, plus display formatting."""
import logging
import re
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from processor.models import TimeSlot

logger = logging.getLogger(__name__)

INVALID_TIME = 'Invalid time'
INVALID_DATE = 'Invalid date'

# Listing pages omit the year, e.g. "Monday Dec 25"
DATE_FORMATS = [
    '%A %b %d',
    '%A %B %d',
    '%a %b %d',
    '%a %B %d',
    '%b %d',
    '%B %d',
]

DATE_FORMATS_WITH_YEAR = [
    '%Y-%m-%d',
    '%A %B %d %Y',
    '%A %b %d %Y',
    '%B %d %Y',
    '%b %d %Y',
    '%m/%d/%Y',
]

TIME_FORMATS = [
    '%I:%M %p',
    '%I:%M%p',
    '%I %p',
    '%I%p',
    '%H:%M',
]

_ORDINAL_SUFFIX = re.compile(r'(\d+)(st|nd|rd|th)\b', re.IGNORECASE)
_MERIDIEM = re.compile(r'(?<![a-z])([ap])\.?m\.?$', re.IGNORECASE)
_CLOCK_TIME = re.compile(r'(\d{1,2}):(\d{2})')


def parse_scraped_date(date_text: str, now: Optional[datetime] = None) -> Tuple[str, str]:
    """
    Parse a scraped day header into ISO start and end dates.

    The year is taken from ``now``; dates scraped in December for early
    January are stamped with the current year.

    Args:
        date_text: Free-text date (e.g. "Monday Dec 25", "Today")
        now: Reference instant (default: current local time)

    Returns:
        Tuple of (start_date, end_date); both fall back to today's date
        if the text cannot be parsed
    """
    now = now or datetime.now()
    today = now.date() if isinstance(now, datetime) else now
    fallback = today.isoformat()

    cleaned = _clean_date_text(date_text)
    if not cleaned:
        logger.warning("Empty scraped date, using today's date")
        return fallback, fallback

    relative = {'today': today, 'tonight': today, 'tomorrow': today + timedelta(days=1)}
    if cleaned.lower() in relative:
        iso = relative[cleaned.lower()].isoformat()
        return iso, iso

    for fmt in DATE_FORMATS_WITH_YEAR:
        try:
            iso = datetime.strptime(cleaned, fmt).date().isoformat()
            return iso, iso
        except ValueError:
            continue

    for fmt in DATE_FORMATS:
        try:
            # Parse with the year attached so Feb 29 resolves in leap years
            parsed = datetime.strptime(f"{cleaned} {today.year}", f"{fmt} %Y")
        except ValueError:
            continue

        if parsed.month < today.month:
            logger.warning(
                f"Scraped date '{date_text}' is in an earlier month than today; "
                f"keeping year {today.year}"
            )
        iso = parsed.date().isoformat()
        return iso, iso

    logger.warning(f"Could not parse scraped date '{date_text}', using today's date")
    return fallback, fallback


def _clean_date_text(date_text: str) -> str:
    if not date_text:
        return ''
    text = date_text.replace(',', ' ')
    text = _ORDINAL_SUFFIX.sub(r'\1', text)
    text = re.sub(r'\bsept\b', 'Sep', text, flags=re.IGNORECASE)
    return ' '.join(text.split())


def to_24_hour(time_text: str) -> str:
    """
    Convert a clock time such as "7:30 pm" to "19:30".

    Args:
        time_text: Time in 12-hour or 24-hour form

    Returns:
        Time as "HH:mm"

    Raises:
        ValueError: If no known format matches
    """
    cleaned = ' '.join(time_text.lower().split())
    cleaned = cleaned.replace('a.m.', 'am').replace('p.m.', 'pm')

    if cleaned == 'noon':
        return '12:00'
    if cleaned == 'midnight':
        return '00:00'

    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).strftime('%H:%M')
        except ValueError:
            continue

    raise ValueError(f"unrecognized time '{time_text}'")


def parse_time_range(time_text: str) -> TimeSlot:
    """
    Parse "7:30 pm" or "7:30 pm - 9:30 pm" into a 24-hour TimeSlot.

    A start time without am/pm takes the end time's meridiem, so
    "7 - 9 pm" becomes 19:00-21:00. A missing end time stays empty.

    Args:
        time_text: Scraped time text

    Returns:
        TimeSlot; empty strings if the text cannot be parsed
    """
    try:
        text = (time_text or '').replace('–', '-').replace('—', '-').strip()
        if not text:
            return TimeSlot('', '')

        if '-' in text:
            start_text, end_text = (part.strip() for part in text.split('-', 1))
        else:
            start_text, end_text = text, ''

        end_meridiem = _MERIDIEM.search(end_text)
        if end_meridiem and not _MERIDIEM.search(start_text) and start_text.lower() not in ('noon', 'midnight'):
            start_text = f"{start_text} {end_meridiem.group(1)}m"

        start_time = to_24_hour(start_text)
        end_time = to_24_hour(end_text) if end_text else ''
        return TimeSlot(start_time, end_time)

    except ValueError as e:
        logger.warning(f"Failed to parse time range '{time_text}': {e}")
        return TimeSlot('', '')


def parse_scraped_schedule(
    date_text: str,
    time_text: str,
    now: Optional[datetime] = None
) -> Tuple[str, str, List[TimeSlot]]:
    """
    Combine scraped date and time text into the canonical event schedule.

    Args:
        date_text: Day header text
        time_text: Time or time range text
        now: Reference instant for the implicit year

    Returns:
        Tuple of (start_date, end_date, times)
    """
    start_date, end_date = parse_scraped_date(date_text, now)
    return start_date, end_date, [parse_time_range(time_text)]


def format_event_time(time_str: str) -> str:
    """
    Format "HH:mm" (or "HH:mm - HH:mm") for display as "h:mm AM".

    Returns INVALID_TIME instead of raising on malformed or out-of-range input.
    """
    if not isinstance(time_str, str):
        return INVALID_TIME

    if ' - ' in time_str:
        start, end = time_str.split(' - ', 1)
        return f"{_format_clock(start)} - {_format_clock(end)}"

    return _format_clock(time_str)


def _format_clock(value: str) -> str:
    match = _CLOCK_TIME.fullmatch(value.strip())
    if not match:
        return INVALID_TIME

    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return INVALID_TIME

    suffix = 'AM' if hour < 12 else 'PM'
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def format_event_date(start_date: str, end_date: str) -> str:
    """Format an event window as "Sat, Sep 14" or "Sat, Sep 14 - Sun, Sep 15"."""
    try:
        start = date.fromisoformat(start_date)
        end = date.fromisoformat(end_date)
    except (TypeError, ValueError):
        return INVALID_DATE

    if start == end:
        return _format_day(start)
    return f"{_format_day(start)} - {_format_day(end)}"


def _format_day(day: date) -> str:
    return f"{day:%a}, {day:%b} {day.day}"
