"""Data models for event normalization and ingestion."""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


DURATION_SINGLE = 'single'
DURATION_MULTI = 'multi'
DURATION_EXTENDED = 'extended'
DURATION_TYPES = (DURATION_SINGLE, DURATION_MULTI, DURATION_EXTENDED)

STATUS_PENDING = 'pending'
STATUS_APPROVED = 'approved'
STATUS_REJECTED = 'rejected'
EVENT_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

COST_SINGLE = 'single'
COST_RANGE = 'range'
COST_MINIMUM = 'minimum'

ATTENDANCE_YES = 'yes'
ATTENDANCE_MAYBE = 'maybe'
ATTENDANCE_NO = 'no'
ATTENDANCE_STATUSES = (ATTENDANCE_YES, ATTENDANCE_MAYBE, ATTENDANCE_NO)

FORMAT_IN_PERSON = 'in-person'

Number = Union[int, float]


@dataclass
class TimeSlot:
    """Start and end time of one day of an event, as 24-hour "HH:mm"."""
    start_time: str = ''
    end_time: str = ''


@dataclass
class Cost:
    """Tagged price: single value, [min, max] range or minimum."""
    type: str
    value: Union[Number, List[Number]]


@dataclass
class AttendanceSummary:
    """Denormalized attendance counters."""
    yes_count: int = 0
    maybe_count: int = 0
    no_count: int = 0


@dataclass
class Event:
    """Canonical event record."""
    name: str
    link: str
    start_date: str
    end_date: str
    times: List[TimeSlot] = field(default_factory=lambda: [TimeSlot()])
    id: str = ''
    event_duration_type: str = DURATION_SINGLE
    category: List[str] = field(default_factory=list)
    cost: Cost = field(default_factory=lambda: Cost(COST_SINGLE, 0))
    status: Optional[str] = None
    clicks: int = 0
    attendance_summary: AttendanceSummary = field(default_factory=AttendanceSummary)
    location: str = ''
    neighborhood: str = ''
    city: str = ''
    gmaps: str = ''
    image: str = ''
    details: str = ''
    format: str = FORMAT_IN_PERSON


@dataclass
class ScrapedEvent:
    """Raw event candidate extracted from listing and detail pages."""
    link: str
    name: str = ''
    date_text: str = ''
    time_text: str = ''
    price_text: str = ''
    location: str = ''
    details: str = ''
    categories: List[str] = field(default_factory=list)
    image: str = ''


@dataclass
class IngestResult:
    """Result of a scraper ingestion run."""
    found: int = 0
    skipped: int = 0
    added: int = 0
    events: List[Event] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


@dataclass
class ReminderResult:
    """Result of a reminder job run."""
    users_processed: int = 0
    reminders_sent: int = 0
    errors: List[str] = field(default_factory=list)


def event_to_document(event: Event) -> Dict[str, Any]:
    """
    Convert an Event to its stored document shape (camelCase keys).

    Args:
        event: Event to convert

    Returns:
        Document dictionary
    """
    document = {
        'id': event.id,
        'name': event.name,
        'link': event.link,
        'startDate': event.start_date,
        'endDate': event.end_date,
        'times': [
            {'startTime': slot.start_time, 'endTime': slot.end_time}
            for slot in event.times
        ],
        'eventDurationType': event.event_duration_type,
        'category': list(event.category),
        'cost': {'type': event.cost.type, 'value': _copy_value(event.cost.value)},
        'clicks': event.clicks,
        'attendanceSummary': {
            'yesCount': event.attendance_summary.yes_count,
            'maybeCount': event.attendance_summary.maybe_count,
            'noCount': event.attendance_summary.no_count,
        },
        'location': event.location,
        'neighborhood': event.neighborhood,
        'city': event.city,
        'gmaps': event.gmaps,
        'image': event.image,
        'details': event.details,
        'format': event.format,
    }

    # Approved production events omit status
    if event.status:
        document['status'] = event.status

    return document


def event_from_document(doc_id: str, data: Dict[str, Any]) -> Event:
    """
    Build an Event from a stored document, filling defaults for missing fields.

    Args:
        doc_id: Document identifier
        data: Document dictionary

    Returns:
        Event object
    """
    times = [
        TimeSlot(
            start_time=slot.get('startTime') or '',
            end_time=slot.get('endTime') or '',
        )
        for slot in (data.get('times') or [])
        if isinstance(slot, dict)
    ]
    summary = data.get('attendanceSummary') or {}
    category = data.get('category') or []
    if isinstance(category, str):
        category = [category]

    return Event(
        id=doc_id,
        name=data.get('name') or '',
        link=data.get('link') or '',
        start_date=data.get('startDate') or '',
        end_date=data.get('endDate') or '',
        times=times or [TimeSlot()],
        event_duration_type=data.get('eventDurationType') or DURATION_SINGLE,
        category=list(category),
        cost=_cost_from_document(data.get('cost')),
        status=data.get('status'),
        clicks=int(data.get('clicks') or 0),
        attendance_summary=AttendanceSummary(
            yes_count=int(summary.get('yesCount') or 0),
            maybe_count=int(summary.get('maybeCount') or 0),
            no_count=int(summary.get('noCount') or 0),
        ),
        location=data.get('location') or '',
        neighborhood=data.get('neighborhood') or '',
        city=data.get('city') or '',
        gmaps=data.get('gmaps') or '',
        image=data.get('image') or '',
        details=data.get('details') or '',
        format=data.get('format') or FORMAT_IN_PERSON,
    )


def _cost_from_document(raw: Any) -> Cost:
    # Older documents stored cost as a bare number
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return Cost(COST_SINGLE, raw)
    if isinstance(raw, dict) and raw.get('type'):
        return Cost(raw['type'], _copy_value(raw.get('value', 0)))
    return Cost(COST_SINGLE, 0)


def _copy_value(value):
    if isinstance(value, (list, tuple)):
        return list(value)
    return value
