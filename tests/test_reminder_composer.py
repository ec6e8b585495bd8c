from datetime import datetime, date
from types import SimpleNamespace

from services.reminder_composer import (
    compose_event_reminder,
    compose_task_digest,
    event_subject,
    render_event_reminder,
    render_task_digest,
    task_subject,
)
from services.reminder_settings import ReminderPolicy

NOW = datetime(2026, 10, 19, 9, 0)
POLICY = ReminderPolicy(app_url='https://eln.example.com', lab_name='Kapelczak Laboratory')
RECIPIENT = SimpleNamespace(display_name='Ada Lovelace', email='ada@example.com')


def _event(**overrides):
    fields = dict(
        title='Mass spec booking',
        description='<p>Bring <strong>samples</strong></p>',
        start_time=datetime(2026, 10, 19, 14, 30),
        end_time=datetime(2026, 10, 19, 15, 45),
        event_type='booking',
        location='Room 204',
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def _task(title, **overrides):
    fields = dict(
        title=title,
        description=None,
        due_date=date(2026, 10, 21),
        priority='high',
        status='in_progress',
        category='experiments',
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_event_reminder_contains_details():
    html = render_event_reminder(_event(), 'Ada', POLICY.app_url, POLICY.lab_name)
    assert 'Mass spec booking' in html
    assert 'Monday, October 19, 2026' in html
    assert '02:30 PM - 03:45 PM' in html
    assert 'Room 204' in html
    assert '#ec4899' in html
    assert '<strong>samples</strong>' in html
    assert 'https://eln.example.com/calendar' in html


def test_event_reminder_omits_optional_sections():
    html = render_event_reminder(_event(location=None, description=None), 'Ada', POLICY.app_url, POLICY.lab_name)
    assert 'Location:' not in html
    assert 'border-top:1px solid #e5e7eb' not in html


def test_event_reminder_unknown_type_is_gray():
    html = render_event_reminder(_event(event_type='calibration'), 'Ada', POLICY.app_url, POLICY.lab_name)
    assert '#6b7280' in html
    assert 'Calibration' in html


def test_event_reminder_escapes_untrusted_fields():
    event = _event(title='<script>x()</script>', location='<b>Lab</b>', description='<img src=x onerror=alert(1)>')
    html = render_event_reminder(event, '<Ada>', POLICY.app_url, POLICY.lab_name)
    assert '<script>' not in html
    assert '&lt;script&gt;' in html
    assert '&lt;b&gt;Lab&lt;/b&gt;' in html
    assert 'onerror' not in html
    assert 'Hello &lt;Ada&gt;' in html


def test_event_composition_is_deterministic():
    first = compose_event_reminder(_event(), RECIPIENT, POLICY)
    second = compose_event_reminder(_event(), RECIPIENT, POLICY)
    assert first == second
    assert first.subject == 'Reminder: Mass spec booking'
    assert 'Mass spec booking' in first.text


def test_subjects():
    assert event_subject(_event(title='Lab\r\nBcc: x@example.com')) == 'Reminder: Lab Bcc: x@example.com'
    assert task_subject(1) == 'Task Reminders - 1 upcoming task'
    assert task_subject(2) == 'Task Reminders - 2 upcoming tasks'


def test_task_digest_renders_one_card_per_task():
    tasks = [_task('Order reagents'), _task('Clean hood', priority='low', status='pending', description='<p>Use ethanol</p>')]
    html = render_task_digest(tasks, 'Ada', NOW, POLICY.app_url, POLICY.lab_name)
    assert html.count('class="task-item"') == 2
    assert 'Order reagents' in html
    assert 'Clean hood' in html
    assert '10/21/2026' in html
    assert '#fee2e2' in html  # high priority badge
    assert 'In Progress' in html
    assert '<p>Use ethanol</p>' in html
    assert 'Hello Ada,' in html
    assert '2026 Kapelczak Laboratory' in html
    assert '{{' not in html


def test_task_digest_uses_custom_template_block():
    template = '<h1>Hi {{user_name}}</h1><ul>{{#tasks}}<li>placeholder</li>{{/tasks}}</ul><a href="{{app_url}}">x</a>'
    html = render_task_digest([_task('Order reagents')], 'Ada', NOW, POLICY.app_url, POLICY.lab_name, template=template)
    assert html.startswith('<h1>Hi Ada</h1><ul>')
    assert 'placeholder' not in html
    assert 'Order reagents' in html
    assert 'href="https://eln.example.com"' in html


def test_task_digest_appends_cards_when_template_has_no_block():
    html = render_task_digest([_task('Order reagents')], 'Ada', NOW, POLICY.app_url, POLICY.lab_name, template='<p>Hi</p>')
    assert html.startswith('<p>Hi</p>')
    assert 'Order reagents' in html


def test_task_digest_is_deterministic():
    tasks = [_task('Order reagents')]
    assert compose_task_digest(tasks, RECIPIENT, NOW, POLICY) == compose_task_digest(tasks, RECIPIENT, NOW, POLICY)
