"""Unit tests for EventRepository on the in-memory store."""
from unittest.mock import patch

import pytest

from storage.document_store import DocumentNotFoundError
from storage.event_repository import EVENTS, PENDING_EVENTS


class TestEvents:
    """Test cases for the public event collection."""

    def test_event_exists_checks_both_collections(self, repository, make_event):
        published = repository.add_event(make_event(name='Published'))
        queued = repository.add_pending_event(make_event(name='Queued'))

        assert repository.event_exists(published.link)
        assert repository.event_exists(queued.link)
        assert not repository.event_exists('https://everout.com/seattle/events/other/e9/')

    def test_event_exists_compares_exact_links(self, repository, make_event):
        """Test that query strings and trailing slashes make links distinct."""
        event = repository.add_pending_event(make_event(link='https://everout.com/e/1/'))

        assert not repository.event_exists(event.link + '?utm_source=x')
        assert not repository.event_exists('https://everout.com/e/1')

    def test_add_event_publishes_without_status(self, repository, memory_store, make_event):
        event = repository.add_event(make_event(status='pending'))

        assert event.id
        assert event.status is None
        assert 'status' not in memory_store.get(EVENTS, event.id)

    def test_get_events_skips_missing(self, repository, make_event):
        event = repository.add_event(make_event())

        assert [e.id for e in repository.get_events(['missing', event.id])] == [event.id]

    def test_list_events_by_city(self, repository, make_event):
        repository.add_event(make_event(name='Seattle Show', city='seattle'))
        repository.add_event(make_event(name='Portland Show', city='portland'))

        assert [e.name for e in repository.list_events('seattle')] == ['Seattle Show']
        assert len(repository.list_events()) == 2

    def test_record_click(self, repository, make_event):
        event = repository.add_event(make_event())

        repository.record_click(event.id)
        repository.record_click(event.id)

        assert repository.get_event(event.id).clicks == 2

    def test_record_click_missing_event(self, repository):
        with pytest.raises(DocumentNotFoundError):
            repository.record_click('ghost')


class TestModerationQueue:
    """Test cases for the pending events queue."""

    def test_add_pending_event(self, repository, memory_store, make_event):
        event = repository.add_pending_event(make_event())

        stored = memory_store.get(PENDING_EVENTS, event.id)
        assert stored['id'] == event.id
        assert stored['status'] == 'pending'
        assert stored['link'] == event.link

    def test_add_pending_event_failure_leaves_no_id(self, repository, memory_store, make_event):
        event = make_event()

        with patch.object(memory_store, 'set', side_effect=RuntimeError("unavailable")):
            with pytest.raises(RuntimeError):
                repository.add_pending_event(event)

        assert event.id == ''

    def test_add_pending_events_batch(self, repository, make_event):
        events = repository.add_pending_events([make_event(name='A'), make_event(name='B')])

        assert len({event.id for event in events}) == 2
        assert sorted(e.name for e in repository.list_pending_events('pending')) == ['A', 'B']

    def test_add_pending_events_empty(self, repository, memory_store):
        with patch.object(memory_store, 'batch_set') as batch_set:
            assert repository.add_pending_events([]) == []
        batch_set.assert_not_called()

    def test_approve_pending_event(self, repository, memory_store, make_event):
        event = repository.add_pending_event(make_event(name='Approve Me'))

        approved = repository.approve_pending_event(event.id)

        assert approved.status == 'approved'
        assert repository.get_pending_event(event.id).status == 'approved'
        published = memory_store.get(EVENTS, event.id)
        assert published['name'] == 'Approve Me'
        assert 'status' not in published

    def test_reject_pending_event(self, repository, memory_store, make_event):
        event = repository.add_pending_event(make_event())

        repository.reject_pending_event(event.id)

        assert repository.list_pending_events('rejected')[0].id == event.id
        assert memory_store.get(EVENTS, event.id) is None

    def test_set_pending_status_validation(self, repository, make_event):
        event = repository.add_pending_event(make_event())

        with pytest.raises(ValueError):
            repository.set_pending_status(event.id, 'published')
        with pytest.raises(DocumentNotFoundError):
            repository.set_pending_status('ghost', 'approved')


class TestUserRecords:
    """Test cases for bookmarks, attendance and notifications."""

    def test_bookmarks(self, repository):
        repository.bookmark_event('u1', 'e1')
        repository.bookmark_event('u1', 'e2')
        repository.bookmark_event('u2', 'e3')
        repository.remove_bookmark('u1', 'e1')

        assert repository.get_bookmarked_event_ids('u1') == ['e2']
        assert repository.get_bookmarked_event_ids('nobody') == []

    def test_set_attendance_adjusts_summary(self, repository, make_event):
        event = repository.add_event(make_event())

        repository.set_attendance('u1', event, 'yes')
        repository.set_attendance('u2', event, 'maybe')
        repository.set_attendance('u1', event, 'maybe')
        repository.set_attendance('u1', event, 'maybe')

        summary = repository.get_event(event.id).attendance_summary
        assert (summary.yes_count, summary.maybe_count, summary.no_count) == (0, 2, 0)

        repository.set_attendance('u2', event, None)

        summary = repository.get_event(event.id).attendance_summary
        assert summary.maybe_count == 1
        assert repository.get_attendance('u2', ['yes', 'maybe', 'no']) == []

    def test_set_attendance_rejects_unknown_status(self, repository, make_event):
        event = repository.add_event(make_event())

        with pytest.raises(ValueError):
            repository.set_attendance('u1', event, 'interested')

    def test_get_attendance_filters_statuses(self, repository, make_event):
        going = repository.add_event(make_event(name='Going'))
        skipping = repository.add_event(make_event(name='Skipping'))

        repository.set_attendance('u1', going, 'yes')
        repository.set_attendance('u1', skipping, 'no')

        assert repository.get_attendance('u1', ['yes', 'maybe']) == [going.id]

    def test_notifications(self, repository):
        generated = repository.add_notification('u1', {'message': 'hi'})
        repository.add_notification('u1', {'message': 'fixed'}, notification_id='reminder-e1')

        assert repository.notification_exists('u1', generated)
        assert repository.notification_exists('u1', 'reminder-e1')
        assert not repository.notification_exists('u2', 'reminder-e1')

    def test_list_user_ids(self, repository, memory_store):
        memory_store.set('users', 'u1', {'name': 'Ada'})
        memory_store.set('users', 'u2', {'name': 'Grace'})

        assert sorted(repository.list_user_ids()) == ['u1', 'u2']
