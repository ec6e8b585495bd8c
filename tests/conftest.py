import os
from datetime import datetime, timedelta

# Must be set before `app` is imported anywhere.
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['BOOTSTRAP_JOBS_ON_IMPORT'] = '0'
os.environ['ENABLE_REMINDER_JOBS'] = '0'

import pytest

from models import db, User, UserPreference, Task, CalendarEvent
from services.reminder_errors import TransportError
from services.reminder_store import ReminderStore

NOW = datetime(2026, 10, 19, 9, 0, 0)

SMTP_CONFIG = {
    'enabled': True,
    'host': 'smtp.example.com',
    'port': '587',
    'username': 'lab@example.com',
    'password': 'secret',
    'from_email': 'lab@example.com',
    'use_tls': True,
}


class FakeTransport:
    def __init__(self, fail_for=None):
        self.sent = []
        self.attempts = []
        self.fail_for = set(fail_for or [])

    def send(self, from_addr, to_addr, subject, html_body, text_body=None):
        self.attempts.append(to_addr)
        if '*' in self.fail_for or to_addr in self.fail_for or subject in self.fail_for:
            raise TransportError('Failed to send email', details='550 mailbox unavailable')
        self.sent.append({
            'from': from_addr,
            'to': to_addr,
            'subject': subject,
            'html': html_body,
            'text': text_body,
        })


@pytest.fixture
def flask_app():
    import app as app_module

    app_module.app.config['TESTING'] = True
    with app_module.app.app_context():
        db.drop_all()
        db.create_all()
        yield app_module.app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def store(flask_app):
    return ReminderStore()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return lambda: NOW


def make_user(email='ada@example.com', smtp_config=SMTP_CONFIG, template=None, first_name=None, last_name=None):
    user = User(email=email, first_name=first_name, last_name=last_name)
    db.session.add(user)
    db.session.flush()
    preferences = {}
    if smtp_config is not None:
        preferences['smtpConfig'] = dict(smtp_config)
    if template is not None:
        preferences['emailTemplate'] = template
    db.session.add(UserPreference(user_id=user.id, preferences=preferences))
    db.session.commit()
    return user


def make_event(user, starts_in=timedelta(minutes=10), **overrides):
    start = NOW + starts_in
    fields = {
        'user_id': user.id,
        'title': 'Group meeting',
        'start_time': start,
        'end_time': start + timedelta(hours=1),
        'event_type': 'meeting',
        'status': 'scheduled',
        'reminder_enabled': True,
        'reminder_minutes_before': 15,
        'reminder_sent': False,
    }
    fields.update(overrides)
    event = CalendarEvent(**fields)
    db.session.add(event)
    db.session.commit()
    return event


def make_task(user, due_in_days=1, **overrides):
    fields = {
        'user_id': user.id,
        'title': 'Calibrate pipettes',
        'priority': 'medium',
        'status': 'pending',
        'assignee': 'Ada',
        'category': 'maintenance',
        'due_date': (NOW + timedelta(days=due_in_days)).date(),
    }
    fields.update(overrides)
    task = Task(**fields)
    db.session.add(task)
    db.session.commit()
    return task


def reload(instance):
    db.session.expire_all()
    return db.session.get(type(instance), instance.id)
