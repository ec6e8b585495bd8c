"""
Reminder runs: scan -> gate -> compose -> send -> mark.

Each run is stateless apart from the store. The clock, store, transport
factory and policy are passed in so callers (routes, the scheduler, tests)
decide what "now" is and where mail goes.

Calendar events are sent one email per event; a failed send is logged and the
loop moves on. Tasks are batched into one email per recipient; a failed send
fails the whole run and no task is marked.
"""
import logging
from datetime import datetime

from services.mail_transport import build_transport, from_address
from services.reminder_composer import compose_event_reminder, compose_task_digest, compose_test_email
from services.reminder_errors import (
    ConfigurationError,
    RecipientNotFoundError,
    StoreError,
    TransportError,
)
from services.reminder_gate import select_events_to_remind, select_tasks_to_remind
from services.reminder_settings import ReminderPolicy, load_email_template, load_smtp_config

logger = logging.getLogger(__name__)


def _resolve_recipient(store, user_id):
    if not user_id:
        raise ConfigurationError('user_id is required')
    recipient = store.get_recipient(user_id)
    if not recipient:
        raise RecipientNotFoundError('User preferences not found')
    return recipient


def _validate_address(value, field_name):
    if not isinstance(value, str):
        raise ConfigurationError(f'{field_name} must be a valid email address')
    address = value.strip()
    if not address or '@' not in address or any(ch.isspace() for ch in address):
        raise ConfigurationError(f'{field_name} must be a valid email address')
    return address


def run_calendar_reminders(store, transport_factory=build_transport, policy=None, clock=datetime.now):
    policy = policy or ReminderPolicy()
    now = clock()
    logger.info("Checking for calendar reminders...")

    events = store.fetch_calendar_candidates(
        now,
        policy.calendar_lookahead,
        status=policy.calendar_status,
        one_shot=policy.calendar_one_shot,
    )
    eligible = select_events_to_remind(events, now, policy.calendar_cooldown)
    logger.info("Found %s events to check, %s due for a reminder", len(events), len(eligible))

    stats = {'checked': len(events), 'eligible': len(eligible), 'sent': 0, 'failed': 0, 'skipped': 0}
    senders = {}
    for event in eligible:
        if event.user_id not in senders:
            try:
                recipient = _resolve_recipient(store, event.user_id)
                config = load_smtp_config(recipient.preferences, default_timeout=policy.email_timeout)
                senders[event.user_id] = (recipient, config, transport_factory(config))
            except (ConfigurationError, RecipientNotFoundError) as exc:
                logger.warning("Skipping calendar reminders for user %s: %s", event.user_id, exc.message)
                senders[event.user_id] = None
        sender = senders[event.user_id]
        if sender is None:
            stats['skipped'] += 1
            continue
        recipient, config, transport = sender

        message = compose_event_reminder(event, recipient, policy)
        try:
            transport.send(from_address(config), recipient.email, message.subject, message.html, message.text)
        except TransportError as exc:
            stats['failed'] += 1
            logger.error("Error sending reminder for event %s: %s", event.id, exc.details or exc.message)
            continue
        stats['sent'] += 1

        try:
            store.mark_event_reminded(event.id, clock())
            logger.info("Marked reminder as sent for event %s", event.id)
        except StoreError as exc:
            logger.error("Reminder for event %s was sent but not marked: %s", event.id, exc.message)

    logger.info(
        "Calendar reminder stats checked=%s eligible=%s sent=%s failed=%s skipped=%s",
        stats['checked'],
        stats['eligible'],
        stats['sent'],
        stats['failed'],
        stats['skipped'],
    )
    return {
        'success': True,
        'reminders_sent': stats['sent'],
        'message': f"Processed {stats['sent']} calendar reminders",
        **stats,
    }


def run_task_reminders(
    user_id,
    store,
    transport_factory=build_transport,
    policy=None,
    clock=datetime.now,
    test_mode=False,
    test_email=None,
):
    """Send one digest of upcoming tasks to a user; test mode never stamps tasks."""
    policy = policy or ReminderPolicy()
    now = clock()

    recipient = _resolve_recipient(store, user_id)
    config = load_smtp_config(recipient.preferences, default_timeout=policy.email_timeout)
    to_addr = recipient.email
    if test_mode and test_email not in (None, ''):
        to_addr = _validate_address(test_email, 'test_email')

    candidates = store.fetch_task_candidates(
        user_id,
        now,
        policy.task_lookahead,
        excluded_statuses=policy.task_excluded_statuses,
    )
    tasks = select_tasks_to_remind(
        candidates,
        now,
        policy.task_lookahead,
        cooldown=None if test_mode else policy.task_cooldown,
        excluded_statuses=policy.task_excluded_statuses,
    )
    if not tasks:
        logger.info("No upcoming tasks to remind for user %s", user_id)
        return {'message': 'No upcoming tasks found', 'tasks_count': 0, 'recipient': to_addr}

    message = compose_task_digest(tasks, recipient, now, policy, template=load_email_template(recipient.preferences))
    transport = transport_factory(config)
    transport.send(from_address(config), to_addr, message.subject, message.html, message.text)
    logger.info("Task reminder email sent to %s (tasks=%s test_mode=%s)", to_addr, len(tasks), test_mode)

    if not test_mode:
        try:
            store.mark_tasks_reminded([task.id for task in tasks], clock())
        except StoreError as exc:
            logger.error("Task reminders for user %s were sent but not marked: %s", user_id, exc.message)

    return {
        'message': 'Task reminders sent successfully',
        'tasks_count': len(tasks),
        'recipient': to_addr,
    }


def run_all_task_reminders(store, transport_factory=build_transport, policy=None, clock=datetime.now):
    """Scheduler entry point: one task digest per user with an enabled transport."""
    policy = policy or ReminderPolicy()
    stats = {'users': 0, 'sent': 0, 'no_tasks': 0, 'skipped_config': 0, 'errors': 0}
    for user_id in store.list_reminder_user_ids():
        stats['users'] += 1
        try:
            result = run_task_reminders(user_id, store, transport_factory, policy, clock)
        except ConfigurationError:
            stats['skipped_config'] += 1
            continue
        except (RecipientNotFoundError, StoreError, TransportError) as exc:
            stats['errors'] += 1
            logger.error("Task reminders for user %s failed: %s", user_id, exc.details or exc.message)
            continue
        if result['tasks_count']:
            stats['sent'] += 1
        else:
            stats['no_tasks'] += 1
    logger.info(
        "Task reminder stats users=%s sent=%s no_tasks=%s skipped_config=%s errors=%s",
        stats['users'],
        stats['sent'],
        stats['no_tasks'],
        stats['skipped_config'],
        stats['errors'],
    )
    return stats


def send_test_email(user_id, test_email, store, transport_factory=build_transport, policy=None, clock=datetime.now):
    policy = policy or ReminderPolicy()
    to_addr = _validate_address(test_email, 'test_email')
    recipient = _resolve_recipient(store, user_id)
    config = load_smtp_config(recipient.preferences, default_timeout=policy.email_timeout)
    message = compose_test_email(recipient, clock(), policy)
    transport_factory(config).send(from_address(config), to_addr, message.subject, message.html, message.text)
    logger.info("Test email sent to %s for user %s", to_addr, user_id)
    return {'message': 'Test email sent successfully', 'recipient': to_addr}
