"""SQLAlchemy-backed reads and writes used by the reminder jobs."""
import logging

from pydantic import BaseModel, ConfigDict
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from models import db, User, UserPreference, Task, CalendarEvent
from services.reminder_errors import StoreError

logger = logging.getLogger(__name__)


class Recipient(BaseModel):
    """Contact data for the owner of a scheduled item."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    display_name: str
    preferences: dict = {}


class ReminderStore:
    def __init__(self, session=None):
        self.session = session or db.session

    def _fail(self, action, exc):
        self.session.rollback()
        logger.error("Reminder store %s failed: %s", action, exc)
        raise StoreError(f"Failed to {action}") from exc

    def fetch_calendar_candidates(self, now, lookahead, status='scheduled', one_shot=True):
        """Events with reminders on that start within `lookahead` and have not ended yet."""
        try:
            query = self.session.query(CalendarEvent).filter(
                CalendarEvent.reminder_enabled.is_(True),
                CalendarEvent.status == status,
                CalendarEvent.start_time <= now + lookahead,
                CalendarEvent.end_time > now,
            )
            if one_shot:
                query = query.filter(or_(CalendarEvent.reminder_sent.is_(False), CalendarEvent.reminder_sent.is_(None)))
            return query.order_by(CalendarEvent.start_time.asc()).all()
        except SQLAlchemyError as exc:
            self._fail('fetch calendar events', exc)

    def fetch_task_candidates(self, user_id, now, lookahead, excluded_statuses=('completed',)):
        """Open tasks for one user due on or before the last day of the lookahead window."""
        last_day = (now + lookahead).date()
        try:
            query = self.session.query(Task).filter(
                Task.user_id == user_id,
                Task.due_date <= last_day,
            )
            if excluded_statuses:
                query = query.filter(Task.status.notin_(list(excluded_statuses)))
            return query.order_by(Task.due_date.asc(), Task.title.asc()).all()
        except SQLAlchemyError as exc:
            self._fail('fetch tasks', exc)

    def get_recipient(self, user_id):
        if not user_id:
            return None
        try:
            user = self.session.get(User, user_id)
            if not user:
                return None
            prefs = self.session.query(UserPreference).filter_by(user_id=user_id).first()
        except SQLAlchemyError as exc:
            self._fail('fetch user preferences', exc)
        preferences = prefs.preferences if prefs else None
        if preferences is not None and not isinstance(preferences, dict):
            # Loaded settings then report the transport as not configured.
            logger.warning("Ignoring malformed preferences for user %s", user_id)
            preferences = None
        return Recipient(
            user_id=user.id,
            email=user.email,
            display_name=user.display_name(),
            preferences=preferences or {},
        )

    def list_reminder_user_ids(self):
        """Users that have a preferences row; the task scheduler filters by transport config."""
        try:
            rows = self.session.query(UserPreference.user_id).order_by(UserPreference.user_id.asc()).all()
        except SQLAlchemyError as exc:
            self._fail('list users', exc)
        return [row[0] for row in rows]

    def mark_event_reminded(self, event_id, sent_at):
        try:
            self.session.query(CalendarEvent).filter(CalendarEvent.id == event_id).update(
                {'reminder_sent': True, 'last_reminder_sent': sent_at},
                synchronize_session=False,
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(f"mark event {event_id} reminded", exc)

    def mark_tasks_reminded(self, task_ids, sent_at):
        """Stamp every task in the batch with one UPDATE statement."""
        if not task_ids:
            return 0
        try:
            updated = self.session.query(Task).filter(Task.id.in_(list(task_ids))).update(
                {'last_reminder_sent': sent_at},
                synchronize_session=False,
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail('mark tasks reminded', exc)
        return updated
