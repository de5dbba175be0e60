"""Event persistence on top of a DocumentStore."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from processor.models import (
    ATTENDANCE_STATUSES,
    EVENT_STATUSES,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Event,
    event_from_document,
    event_to_document,
)
from storage.document_store import DocumentStore, new_document_id, subcollection

logger = logging.getLogger(__name__)

EVENTS = 'events'
PENDING_EVENTS = 'pending-events'
USERS = 'users'
USER_BOOKMARKS = 'user-bookmarks'
USER_ATTENDANCE = 'user-attendance'
NOTIFICATIONS = 'notifications'

_SUMMARY_FIELDS = {
    'yes': 'attendanceSummary.yesCount',
    'maybe': 'attendanceSummary.maybeCount',
    'no': 'attendanceSummary.noCount',
}


class EventRepository:
    """Reads and writes events, moderation state and per-user records."""

    def __init__(self, store: DocumentStore):
        """
        Initialize the repository.

        Args:
            store: Connected document store
        """
        self.store = store

    # Events

    def event_exists(self, link: str) -> bool:
        """
        Check whether an event with this exact link is already stored.

        Both the public collection and the moderation queue are checked.
        Links are compared as-is, so query strings make links distinct.

        Args:
            link: Canonical source URL

        Returns:
            True if found in either collection
        """
        if self.store.query(EVENTS, 'link', link):
            return True
        return bool(self.store.query(PENDING_EVENTS, 'link', link))

    def get_event(self, event_id: str) -> Optional[Event]:
        data = self.store.get(EVENTS, event_id)
        return event_from_document(event_id, data) if data is not None else None

    def get_events(self, event_ids: Iterable[str]) -> List[Event]:
        """Resolve ids to events, silently dropping ids with no document."""
        events = []
        for event_id in event_ids:
            event = self.get_event(event_id)
            if event is None:
                logger.info(f"Event {event_id} no longer exists")
                continue
            events.append(event)
        return events

    def list_events(self, city: Optional[str] = None) -> List[Event]:
        if city:
            documents = self.store.query(EVENTS, 'city', city)
        else:
            documents = self.store.list(EVENTS)
        return [event_from_document(doc.id, doc.data) for doc in documents]

    def add_event(self, event: Event) -> Event:
        """Write a curator-submitted event straight to the public collection."""
        event.status = None
        document = event_to_document(event)
        document['id'] = new_document_id()

        self.store.set(EVENTS, document['id'], document)
        event.id = document['id']
        logger.info(f"Added event {event.id}: {event.name}")
        return event

    def record_click(self, event_id: str) -> None:
        self.store.increment(EVENTS, event_id, 'clicks')

    # Moderation queue

    def add_pending_event(self, event: Event) -> Event:
        """
        Write one event to the moderation queue.

        Args:
            event: Normalized event; its id is overwritten

        Returns:
            The event with its new id, once the write has completed
        """
        event.status = event.status or STATUS_PENDING
        document = event_to_document(event)
        document['id'] = new_document_id()

        self.store.set(PENDING_EVENTS, document['id'], document)
        event.id = document['id']
        logger.info(f"Added pending event {event.id}: {event.link}")
        return event

    def add_pending_events(self, events: List[Event]) -> List[Event]:
        """
        Write several events to the moderation queue in one batch.

        Ids are assigned only after the batch write succeeds.

        Args:
            events: Normalized events

        Returns:
            The events with their new ids
        """
        if not events:
            return []

        entries = []
        for event in events:
            event.status = event.status or STATUS_PENDING
            document = event_to_document(event)
            document['id'] = new_document_id()
            entries.append((document['id'], document))

        self.store.batch_set(PENDING_EVENTS, entries)

        for event, (doc_id, _) in zip(events, entries):
            event.id = doc_id
        logger.info(f"Added {len(events)} pending events in one batch")
        return events

    def get_pending_event(self, event_id: str) -> Optional[Event]:
        data = self.store.get(PENDING_EVENTS, event_id)
        return event_from_document(event_id, data) if data is not None else None

    def list_pending_events(self, status: Optional[str] = None) -> List[Event]:
        if status:
            documents = self.store.query(PENDING_EVENTS, 'status', status)
        else:
            documents = self.store.list(PENDING_EVENTS)
        return [event_from_document(doc.id, doc.data) for doc in documents]

    def set_pending_status(self, event_id: str, status: str) -> None:
        """
        Change the moderation status of a queued event.

        Raises:
            ValueError: If the status is not pending, approved or rejected
            DocumentNotFoundError: If the queued event does not exist
        """
        if status not in EVENT_STATUSES:
            raise ValueError(f"Invalid event status '{status}'")
        self.store.update(PENDING_EVENTS, event_id, {'status': status})
        logger.info(f"Set pending event {event_id} status to {status}")

    def approve_pending_event(self, event_id: str) -> Event:
        """
        Approve a queued event and publish it under the same id.

        Raises:
            DocumentNotFoundError: If the queued event does not exist
        """
        self.set_pending_status(event_id, STATUS_APPROVED)
        event = self.get_pending_event(event_id)

        published = event_to_document(event)
        published.pop('status', None)
        self.store.set(EVENTS, event_id, published)
        logger.info(f"Published approved event {event_id}: {event.name}")

        event.status = STATUS_APPROVED
        return event

    def reject_pending_event(self, event_id: str) -> None:
        self.set_pending_status(event_id, STATUS_REJECTED)

    # Users

    def list_user_ids(self) -> List[str]:
        return [doc.id for doc in self.store.list(USERS)]

    def bookmark_event(self, user_id: str, event_id: str) -> None:
        self.store.set(
            subcollection(USERS, user_id, USER_BOOKMARKS),
            event_id,
            {'eventId': event_id, 'createdAt': _utc_now_iso()}
        )

    def remove_bookmark(self, user_id: str, event_id: str) -> None:
        self.store.delete(subcollection(USERS, user_id, USER_BOOKMARKS), event_id)

    def get_bookmarked_event_ids(self, user_id: str) -> List[str]:
        documents = self.store.list(subcollection(USERS, user_id, USER_BOOKMARKS))
        return [doc.id for doc in documents]

    def set_attendance(self, user_id: str, event: Event, status: Optional[str]) -> None:
        """
        Record (or clear, with None) a user's attendance and adjust the counters.

        The summary on the event document is updated after the per-user
        record, so the two are eventually consistent.

        Raises:
            ValueError: If status is not yes, maybe, no or None
        """
        if status is not None and status not in ATTENDANCE_STATUSES:
            raise ValueError(f"Invalid attendance status '{status}'")

        collection = subcollection(USERS, user_id, USER_ATTENDANCE)
        previous = self.store.get(collection, event.id)
        previous_status = previous.get('status') if previous else None
        if previous_status == status:
            return

        if status is None:
            self.store.delete(collection, event.id)
        else:
            self.store.set(collection, event.id, {
                'status': status,
                'eventName': event.name,
                'startDate': event.start_date,
                'updatedAt': _utc_now_iso(),
            })

        if previous_status in _SUMMARY_FIELDS:
            self.store.increment(EVENTS, event.id, _SUMMARY_FIELDS[previous_status], -1)
        if status is not None:
            self.store.increment(EVENTS, event.id, _SUMMARY_FIELDS[status], 1)

    def get_attendance(self, user_id: str, statuses: Iterable[str]) -> List[str]:
        """Return ids of events the user marked with one of the statuses."""
        documents = self.store.query(
            subcollection(USERS, user_id, USER_ATTENDANCE),
            'status',
            list(statuses),
            op='in'
        )
        return [doc.id for doc in documents]

    def notification_exists(self, user_id: str, notification_id: str) -> bool:
        collection = subcollection(USERS, user_id, NOTIFICATIONS)
        return self.store.get(collection, notification_id) is not None

    def add_notification(
        self,
        user_id: str,
        notification: Dict[str, Any],
        notification_id: Optional[str] = None
    ) -> str:
        """Write a notification, generating an id unless one is given."""
        collection = subcollection(USERS, user_id, NOTIFICATIONS)
        if notification_id is None:
            return self.store.add(collection, notification)
        self.store.set(collection, notification_id, notification)
        return notification_id


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
