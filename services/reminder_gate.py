"""
Eligibility rules applied between scanning and sending.

Calendar events become due at `start_time - reminder_minutes_before` and are
held back while their last reminder is inside the cooldown window. Tasks are
due when they fall in the lookahead window, are not in an excluded status and
have not been reminded within the cooldown.
"""
from datetime import timedelta

CALENDAR_COOLDOWN = timedelta(hours=1)
TASK_COOLDOWN = timedelta(days=1)
DEFAULT_REMINDER_MINUTES = 15


def reminder_time_for(event):
    minutes = event.reminder_minutes_before
    if minutes is None:
        minutes = DEFAULT_REMINDER_MINUTES
    return event.start_time - timedelta(minutes=minutes)


def cooldown_elapsed(last_sent, now, cooldown):
    """`cooldown=None` disables the check (preview sends that never persist a marker)."""
    if last_sent is None or cooldown is None:
        return True
    return last_sent < now - cooldown


def is_event_due_for_reminder(event, now, cooldown=CALENDAR_COOLDOWN):
    if now < reminder_time_for(event):
        return False
    return cooldown_elapsed(event.last_reminder_sent, now, cooldown)


def is_task_due_for_reminder(task, now, lookahead, cooldown=TASK_COOLDOWN, excluded_statuses=('completed',)):
    if task.status in excluded_statuses:
        return False
    if task.due_date is None or task.due_date > (now + lookahead).date():
        return False
    return cooldown_elapsed(task.last_reminder_sent, now, cooldown)


def select_events_to_remind(events, now, cooldown=CALENDAR_COOLDOWN):
    return [event for event in events if is_event_due_for_reminder(event, now, cooldown)]


def select_tasks_to_remind(tasks, now, lookahead, cooldown=TASK_COOLDOWN, excluded_statuses=('completed',)):
    return [
        task for task in tasks
        if is_task_due_for_reminder(task, now, lookahead, cooldown, excluded_statuses)
    ]
