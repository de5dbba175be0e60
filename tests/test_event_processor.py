"""Unit tests for EventProcessor."""
from datetime import datetime

from processor.event_processor import EventProcessor
from processor.models import Cost, ScrapedEvent, TimeSlot


NOW = datetime(2024, 9, 1, 12, 0)


def scraped(**overrides):
    """Build a complete scraped candidate, overriding selected fields."""
    fields = dict(
        link='https://everout.com/seattle/events/jazz-night/e1234/',
        name='Jazz Night',
        date_text='Saturday Sep 14',
        time_text='7:30 pm - 10 pm',
        price_text='$15-$25',
        location='The Royal Room (Seattle)',
        details='An evening of live jazz.',
        categories=['Music', 'Jazz'],
        image='https://cdn.everout.com/jazz.jpg'
    )
    fields.update(overrides)
    return ScrapedEvent(**fields)


class TestEventProcessor:
    """Test cases for EventProcessor class."""

    def test_process_event_valid(self):
        """Test processing a complete candidate."""
        processor = EventProcessor()

        event = processor.process_event(scraped(), NOW)

        assert event.name == 'Jazz Night'
        assert event.link == 'https://everout.com/seattle/events/jazz-night/e1234/'
        assert event.start_date == '2024-09-14'
        assert event.end_date == '2024-09-14'
        assert event.times == [TimeSlot('19:30', '22:00')]
        assert event.cost == Cost('range', [15, 25])
        assert event.location == 'The Royal Room'
        assert event.category == ['music', 'jazz']
        assert event.image == 'https://cdn.everout.com/jazz.jpg'
        assert event.details == 'An evening of live jazz.'

    def test_process_event_defaults(self):
        """Test that processed events start pending with zeroed counters."""
        processor = EventProcessor(city='portland')

        event = processor.process_event(scraped(), NOW)

        assert event.status == 'pending'
        assert event.event_duration_type == 'single'
        assert event.clicks == 0
        assert event.attendance_summary.yes_count == 0
        assert event.city == 'portland'
        assert event.format == 'in-person'
        assert event.id == ''

    def test_process_event_missing_link(self):
        """Test that a candidate without a link is rejected."""
        processor = EventProcessor()

        assert processor.process_event(scraped(link='  '), NOW) is None

    def test_process_event_missing_name(self):
        """Test that a candidate whose name is only newsletter text is rejected."""
        processor = EventProcessor()

        candidate = scraped(name='Subscribe to our Newsletter for updates Done!')

        assert processor.process_event(candidate, NOW) is None

    def test_process_event_unparseable_fields_are_soft(self):
        """Test that bad date, time and price text still yield an event."""
        processor = EventProcessor()

        event = processor.process_event(
            scraped(date_text='???', time_text='late', price_text='donation', location=''),
            NOW
        )

        assert event.start_date == '2024-09-01'
        assert event.times == [TimeSlot('', '')]
        assert event.cost == Cost('single', 0)
        assert event.location == 'Location TBD'

    def test_process_event_truncates_long_fields(self):
        """Test that long names and details are truncated."""
        processor = EventProcessor()

        event = processor.process_event(scraped(name='A' * 300, details='B' * 3000), NOW)

        assert len(event.name) == 200
        assert len(event.details) == 2000

    def test_process_events_multiple_valid_and_invalid(self):
        """Test processing a mix of valid and invalid candidates."""
        processor = EventProcessor()

        candidates = [
            scraped(name='Valid Event 1'),
            scraped(name=''),
            scraped(name='Valid Event 2', link='https://everout.com/seattle/events/other/e2/'),
        ]

        processed = processor.process_events(candidates, NOW)

        assert [event.name for event in processed] == ['Valid Event 1', 'Valid Event 2']

    def test_process_events_isolates_failures(self):
        """Test that a candidate raising during processing is skipped."""
        processor = EventProcessor()

        broken = scraped()
        broken.details = None

        processed = processor.process_events([broken, scraped(name='Fine')], NOW)

        assert [event.name for event in processed] == ['Fine']

    def test_clean_name(self):
        """Test stripping newsletter text from headings."""
        assert EventProcessor.clean_name(
            'Jazz Night Subscribe to our Newsletter\nGet weekly picks Done!'
        ) == 'Jazz Night'
        assert EventProcessor.clean_name('  Open   Mic  ') == 'Open Mic'

    def test_clean_location(self):
        """Test that the city suffix is removed case-insensitively."""
        processor = EventProcessor()

        assert processor.clean_location('Neumos (SEATTLE)') == 'Neumos'
        assert processor.clean_location('Tacoma Dome (Tacoma)') == 'Tacoma Dome (Tacoma)'

    def test_normalize_categories(self):
        """Test category normalization and capping."""
        processor = EventProcessor()

        assert processor.normalize_categories(
            ['Music', 'music', ' Live  Shows ', '', 'Comedy', 'Film']
        ) == ['music', 'live shows', 'comedy']
