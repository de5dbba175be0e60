"""Shared fixtures for the test suite."""
import pytest

from processor.models import Event, TimeSlot
from storage.event_repository import EventRepository
from storage.memory_store import InMemoryDocumentStore


@pytest.fixture
def make_event():
    """Factory for Event objects with sensible defaults."""
    def _make_event(
        name='Test Event',
        start_date='2025-06-01',
        end_date=None,
        times=None,
        link=None,
        **kwargs
    ):
        slug = name.lower().replace(' ', '-')
        return Event(
            name=name,
            link=link or f"https://everout.com/seattle/events/{slug}/e1/",
            start_date=start_date,
            end_date=end_date or start_date,
            times=times or [TimeSlot('19:00', '21:00')],
            **kwargs
        )
    return _make_event


@pytest.fixture
def memory_store():
    """Connected in-memory document store."""
    with InMemoryDocumentStore() as store:
        yield store


@pytest.fixture
def repository(memory_store):
    """EventRepository backed by the in-memory store."""
    return EventRepository(memory_store)
