"""Scheduled reminders for events users plan to attend."""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Optional

from feeds.calendar_feed import event_start_datetime
from processor.models import ATTENDANCE_MAYBE, ATTENDANCE_YES, ReminderResult
from storage.event_repository import EventRepository

logger = logging.getLogger(__name__)


class ReminderJob:
    """
    Sends a notification for every "yes"/"maybe" event starting within a day.

    Users are processed concurrently and the run waits for all of them.
    Notification ids are derived from the event and its start date, so a
    rerun does not send the same reminder twice.
    """

    REMINDER_WINDOW = timedelta(hours=24)
    REMINDER_STATUSES = (ATTENDANCE_YES, ATTENDANCE_MAYBE)

    def __init__(self, repository: EventRepository, max_workers: int = 8):
        """
        Initialize the job.

        Args:
            repository: Event persistence
            max_workers: Number of users processed in parallel
        """
        self.repository = repository
        self.max_workers = max_workers

    def run(self, now: Optional[datetime] = None) -> ReminderResult:
        """
        Send reminders to all users.

        Args:
            now: Timezone-aware reference instant (default: current UTC time)

        Returns:
            ReminderResult with per-user errors collected
        """
        now = now or datetime.now(timezone.utc)
        user_ids = self.repository.list_user_ids()
        result = ReminderResult()

        if not user_ids:
            logger.info("No users found.")
            return result

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self.send_user_reminders, user_id, now): user_id
                for user_id in user_ids
            }
            for future in as_completed(futures):
                user_id = futures[future]
                try:
                    result.reminders_sent += future.result()
                    result.users_processed += 1
                except Exception as e:
                    logger.error(
                        f"Error sending reminders to user {user_id}: {e}",
                        extra={'error_type': type(e).__name__},
                        exc_info=True
                    )
                    result.errors.append(f"{user_id}: {e}")

        logger.info(
            f"Sent {result.reminders_sent} reminders to {result.users_processed} users",
            extra={'errors': len(result.errors)}
        )
        return result

    def send_user_reminders(self, user_id: str, now: datetime) -> int:
        """
        Write reminders for one user's events starting within the window.

        Args:
            user_id: User to notify
            now: Timezone-aware reference instant

        Returns:
            Number of new reminders written
        """
        event_ids = self.repository.get_attendance(user_id, self.REMINDER_STATUSES)
        if not event_ids:
            logger.debug(f"No upcoming events for user: {user_id}")
            return 0

        window_end = now + self.REMINDER_WINDOW
        sent = 0
        for event in self.repository.get_events(event_ids):
            start = event_start_datetime(event)
            if start is None or not (now <= start <= window_end):
                continue

            notification_id = f"reminder-{event.id}-{event.start_date}"
            if self.repository.notification_exists(user_id, notification_id):
                continue

            self.repository.add_notification(
                user_id,
                {
                    'message': f'Reminder: "{event.name}" is happening soon!',
                    'date': now.isoformat(),
                    'link': f"/events/{event.id}",
                    'isRead': False,
                },
                notification_id=notification_id
            )
            sent += 1

        return sent
