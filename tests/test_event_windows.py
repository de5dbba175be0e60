"""Unit tests for date-window classification and ordering."""
from datetime import date, datetime, timedelta

import pytest

from processor.event_windows import (
    classify_duration_type,
    get_event_buckets,
    get_events_happening_today,
    get_events_happening_tomorrow,
    get_future_events,
    get_past_events,
    get_upcoming_events,
    is_future,
    is_happening_today,
    is_happening_tomorrow,
    is_past,
    is_upcoming,
    sort_by_clicks,
    sort_by_clicks_top_n,
    sort_by_date_and_name,
    sort_by_date_type_and_name,
    sort_past_events,
    time_slot_for_date,
)
from processor.models import TimeSlot


NOW = datetime(2025, 6, 1, 10, 0)


class TestWindowPredicates:
    """Test cases for the window predicates."""

    def test_single_day_event_today(self, make_event):
        """Test an event starting tonight at 19:00 when it is 10:00."""
        event = make_event(start_date='2025-06-01', times=[TimeSlot('19:00', '21:00')])
        assert is_happening_today(event, NOW)
        assert not is_happening_tomorrow(event, NOW)
        assert is_upcoming(event, NOW)
        assert not is_future(event, NOW)
        assert not is_past(event, NOW)
        assert classify_duration_type(event) == 'single'

    def test_multi_day_event_covers_today_and_tomorrow(self, make_event):
        event = make_event(start_date='2025-05-30', end_date='2025-06-03')
        assert is_happening_today(event, NOW)
        assert is_happening_tomorrow(event, NOW)
        assert is_upcoming(event, NOW)

    def test_event_ending_yesterday_is_past(self, make_event):
        event = make_event(start_date='2025-05-28', end_date='2025-05-31')
        assert is_past(event, NOW)
        assert not is_upcoming(event, NOW)
        assert not is_happening_today(event, NOW)

    def test_accepts_plain_date(self, make_event):
        event = make_event(start_date='2025-06-02')
        assert is_happening_tomorrow(event, date(2025, 6, 1))
        assert is_future(event, date(2025, 6, 1))

    @pytest.mark.parametrize('start_date,end_date', [
        ('not-a-date', '2025-06-01'),
        ('2025-06-01', 'June 3'),
        ('2025-02-30', '2025-03-01'),
    ])
    def test_invalid_dates_match_nothing(self, make_event, start_date, end_date):
        """Test that invalid dates never match and never raise."""
        event = make_event(start_date=start_date, end_date=end_date)
        assert not is_happening_today(event, NOW)
        assert not is_happening_tomorrow(event, NOW)
        assert not is_upcoming(event, NOW)
        assert not is_future(event, NOW)
        assert not is_past(event, NOW)

    def test_upcoming_is_exactly_today_or_future(self, make_event):
        """For valid events, upcoming holds exactly when today or future holds."""
        base = date(2025, 5, 25)
        for start_offset in range(14):
            for length in range(4):
                start = base + timedelta(days=start_offset)
                event = make_event(
                    start_date=start.isoformat(),
                    end_date=(start + timedelta(days=length)).isoformat()
                )
                expected = is_happening_today(event, NOW) or is_future(event, NOW)
                assert is_upcoming(event, NOW) == expected
                assert is_upcoming(event, NOW) != is_past(event, NOW)


class TestFilters:
    """Test cases for the list filters."""

    @pytest.fixture
    def events(self, make_event):
        return [
            make_event(name='Past', start_date='2025-05-20', end_date='2025-05-21'),
            make_event(name='Today', start_date='2025-06-01'),
            make_event(name='Tomorrow', start_date='2025-06-02'),
            make_event(name='Later', start_date='2025-06-10'),
            make_event(name='Broken', start_date='someday'),
        ]

    def test_filters(self, events):
        def names(matched):
            return [event.name for event in matched]

        assert names(get_events_happening_today(events, NOW)) == ['Today']
        assert names(get_events_happening_tomorrow(events, NOW)) == ['Tomorrow']
        assert names(get_upcoming_events(events, NOW)) == ['Today', 'Tomorrow', 'Later']
        assert names(get_future_events(events, NOW)) == ['Tomorrow', 'Later']
        assert names(get_past_events(events, NOW)) == ['Past']

    def test_invalid_event_is_logged(self, events, caplog):
        with caplog.at_level('WARNING', logger='processor.event_windows'):
            get_upcoming_events(events, NOW)
        assert any('Broken' in record.message for record in caplog.records)


class TestDurationAndSlots:
    """Test cases for duration classification and per-day time slots."""

    @pytest.mark.parametrize('end_date,expected', [
        ('2025-06-01', 'single'),
        ('2025-06-02', 'multi'),
        ('2025-06-07', 'multi'),
        ('2025-06-08', 'extended'),
        ('2025-08-31', 'extended'),
    ])
    def test_classify_duration_type(self, make_event, end_date, expected):
        event = make_event(start_date='2025-06-01', end_date=end_date)
        assert classify_duration_type(event) == expected

    def test_invalid_dates_keep_declared_type(self, make_event):
        event = make_event(start_date='tbd', event_duration_type='extended')
        assert classify_duration_type(event) == 'extended'

    def test_time_slot_for_date(self, make_event):
        event = make_event(
            start_date='2025-06-01',
            end_date='2025-06-03',
            times=[TimeSlot('10:00', '12:00'), TimeSlot('13:00', '15:00')]
        )
        assert time_slot_for_date(event, date(2025, 6, 2)) == TimeSlot('13:00', '15:00')
        # No slot of its own, falls back to the first
        assert time_slot_for_date(event, date(2025, 6, 3)) == TimeSlot('10:00', '12:00')

    def test_time_slot_for_date_without_times(self, make_event):
        event = make_event()
        event.times = []
        assert time_slot_for_date(event, date(2025, 6, 1)) is None


class TestSorting:
    """Test cases for event ordering."""

    def test_sort_by_date_and_name(self, make_event):
        events = [
            make_event(name='zebra', start_date='2025-06-02'),
            make_event(name='Broken', start_date='n/a'),
            make_event(name='Apple', start_date='2025-06-02'),
            make_event(name='early', start_date='2025-06-01'),
        ]
        assert [e.name for e in sort_by_date_and_name(events)] == ['early', 'Apple', 'zebra', 'Broken']

    def test_sort_by_date_type_and_name(self, make_event):
        events = [
            make_event(name='Festival', start_date='2025-06-01', end_date='2025-06-20'),
            make_event(name='Weekend', start_date='2025-06-01', end_date='2025-06-02'),
            make_event(name='Show', start_date='2025-06-01'),
        ]
        assert [e.name for e in sort_by_date_type_and_name(events)] == ['Show', 'Weekend', 'Festival']

    def test_sort_past_events(self, make_event):
        events = [
            make_event(name='Old', start_date='2025-01-01'),
            make_event(name='b-recent', start_date='2025-05-30'),
            make_event(name='A-recent', start_date='2025-05-30'),
        ]
        assert [e.name for e in sort_past_events(events)] == ['A-recent', 'b-recent', 'Old']

    def test_sort_by_clicks_is_stable(self, make_event):
        events = [
            make_event(name='a', clicks=5),
            make_event(name='b', clicks=10),
            make_event(name='c', clicks=5),
        ]
        assert [e.name for e in sort_by_clicks(events)] == ['b', 'a', 'c']

    def test_top_n(self, make_event):
        events = [make_event(name=f"e{i}", clicks=i) for i in range(12)]
        top = sort_by_clicks_top_n(events)
        assert len(top) == 8
        assert [e.clicks for e in top] == [11, 10, 9, 8, 7, 6, 5, 4]
        assert len(sort_by_clicks_top_n(events[:3], 8)) == 3
        assert sort_by_clicks_top_n(events, 0) == []


class TestEventBuckets:
    """Test cases for get_event_buckets."""

    def test_buckets(self, make_event):
        events = [
            make_event(name='Past', start_date='2025-05-01', clicks=100),
            make_event(name='Today', start_date='2025-06-01', clicks=3),
            make_event(name='Tomorrow', start_date='2025-06-02', clicks=7),
            make_event(name='Later', start_date='2025-06-09', clicks=1),
        ]

        buckets = get_event_buckets(events, NOW, top_n=2)

        assert [e.name for e in buckets.today] == ['Today']
        assert [e.name for e in buckets.tomorrow] == ['Tomorrow']
        assert [e.name for e in buckets.upcoming] == ['Today', 'Tomorrow', 'Later']
        # Past events never make the top list
        assert [e.name for e in buckets.top] == ['Tomorrow', 'Today']
