import json
import sys

import pytest

import send_reminders
from conftest import NOW, FakeTransport, make_event, make_task, make_user, reload


@pytest.fixture
def outbox(monkeypatch):
    transport = FakeTransport()
    monkeypatch.setattr(send_reminders, 'build_transport', lambda config: transport)
    monkeypatch.setattr(send_reminders, '_now', lambda: NOW)
    return transport


def test_run_job_calendar(flask_app, outbox):
    event = make_event(make_user())
    result = send_reminders.run_job('calendar')
    assert result['reminders_sent'] == 1
    assert reload(event).reminder_sent is True


def test_run_job_all_tasks(flask_app, outbox):
    make_task(make_user())
    result = send_reminders.run_job('tasks')
    assert result['sent'] == 1
    assert outbox.sent[0]['subject'] == 'Task Reminders - 1 upcoming task'


def test_main_prints_error_for_unknown_user(flask_app, outbox, monkeypatch, capsys):
    monkeypatch.setattr(sys, 'argv', ['send_reminders.py', 'tasks', '--user-id', 'missing'])
    assert send_reminders.main() == 1
    assert json.loads(capsys.readouterr().out) == {'error': 'User preferences not found'}


def test_main_rejects_test_email_without_user(monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['send_reminders.py', 'tasks', '--test-email', 'qa@example.com'])
    with pytest.raises(SystemExit):
        send_reminders.main()
