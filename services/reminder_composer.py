"""
HTML rendering for reminder emails.

Rendering is pure: the same item, recipient, clock value and settings always
produce byte-identical output. Timestamps are formatted as stored (server
local time); no timezone conversion happens here.
"""
import re

from markupsafe import escape
from pydantic import BaseModel, ConfigDict

from text_helpers import html_to_plain_text, sanitize_rich_text

DATE_FORMAT = '%A, %B %d, %Y'
SHORT_DATE_FORMAT = '%m/%d/%Y'
TIME_FORMAT = '%I:%M %p'

EVENT_TYPE_COLORS = {
    'meeting': '#3b82f6',
    'maintenance': '#f97316',
    'experiment': '#22c55e',
    'training': '#a855f7',
    'booking': '#ec4899',
}
DEFAULT_EVENT_COLOR = '#6b7280'

# (background, text)
PRIORITY_COLORS = {
    'high': ('#fee2e2', '#991b1b'),
    'medium': ('#fef9c3', '#854d0e'),
    'low': ('#dcfce7', '#166534'),
}
STATUS_COLORS = {
    'pending': ('#f3f4f6', '#374151'),
    'in_progress': ('#dbeafe', '#1e40af'),
    'completed': ('#dcfce7', '#166534'),
}
DEFAULT_BADGE_COLORS = ('#f3f4f6', '#1f2937')

TASKS_BLOCK_PATTERN = re.compile(r"\{\{#tasks\}\}.*?\{\{/tasks\}\}", re.DOTALL)

DEFAULT_TASK_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Task Reminder</title>
    <style>
        body { font-family: Arial, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5; }
        .container { max-width: 600px; margin: 0 auto; background-color: white; border-radius: 8px; overflow: hidden; }
        .header { background-color: #3B82F6; color: white; padding: 20px; text-align: center; }
        .content { padding: 30px; }
        .task-item { background-color: #f8f9fa; border-left: 4px solid #dc3545; padding: 15px; margin: 15px 0; border-radius: 4px; }
        .footer { background-color: #f8f9fa; padding: 20px; text-align: center; color: #666; font-size: 12px; }
        .btn { display: inline-block; background-color: #3B82F6; color: white; padding: 12px 24px; text-decoration: none; border-radius: 4px; margin: 10px 0; }
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>Task Reminder</h1>
            <p>{{lab_name}}</p>
        </div>
        <div class="content">
            <h2>Hello {{user_name}},</h2>
            <p>You have upcoming tasks that require your attention:</p>
            {{#tasks}}{{/tasks}}
            <p>Please review and complete these tasks before their due dates.</p>
            <a href="{{app_url}}/tasks" class="btn">View All Tasks</a>
        </div>
        <div class="footer">
            <p>&copy; {{current_year}} {{lab_name}}. All rights reserved.</p>
            <p>This is an automated reminder. Please do not reply to this email.</p>
        </div>
    </div>
</body>
</html>"""


class ReminderMessage(BaseModel):
    """One composed email; lives only for the duration of a send."""
    model_config = ConfigDict(frozen=True)

    subject: str
    html: str
    text: str


def _header_safe(value):
    return " ".join(str(value or "").split())


def _label(value):
    return str(value or "").replace('_', ' ').strip().title()


def _badge(label, colors):
    background, color = colors
    return (
        f'<span style="display:inline-block;padding:2px 10px;border-radius:999px;'
        f'font-size:12px;font-weight:600;background:{background};color:{color};">{escape(label)}</span>'
    )


def format_time_range(start, end):
    start_str = start.strftime(TIME_FORMAT) if start else 'No time'
    end_str = end.strftime(TIME_FORMAT) if end else ''
    return f"{start_str}{(' - ' + end_str) if end_str else ''}"


def event_subject(event):
    return f"Reminder: {_header_safe(event.title)}"


def task_subject(count):
    return f"Task Reminders - {count} upcoming task{'s' if count != 1 else ''}"


def render_event_reminder(event, recipient_name, app_url, lab_name):
    color = EVENT_TYPE_COLORS.get((event.event_type or '').lower(), DEFAULT_EVENT_COLOR)
    type_badge = _badge(_label(event.event_type or 'other'), (color, '#ffffff'))
    day_label = event.start_time.strftime(DATE_FORMAT)
    time_block = format_time_range(event.start_time, event.end_time)

    location_html = ''
    if event.location:
        location_html = (
            '<div style="font-size:14px;color:#4b5563;margin-top:8px;">'
            f'<strong>Location:</strong> {escape(event.location)}</div>'
        )
    description_html = ''
    description = sanitize_rich_text(event.description)
    if description:
        description_html = (
            '<div style="font-size:14px;color:#374151;margin-top:12px;border-top:1px solid #e5e7eb;padding-top:12px;">'
            f'{description}</div>'
        )

    return f"""<!doctype html>
<html>
  <body style="margin:0;padding:0;background:#ffffff;font-family:Arial, Helvetica, sans-serif;color:#121926;">
    <div style="max-width:640px;margin:0 auto;padding:20px;">
      <div style="font-size:13px;color:#6b6f76;margin-bottom:4px;">{escape(lab_name)}</div>
      <div style="font-size:24px;font-weight:800;margin-bottom:16px;">Upcoming Event Reminder</div>
      <p style="font-size:15px;">Hello {escape(recipient_name)},</p>
      <div style="display:flex;background:#f7f8fb;border-radius:12px;margin-bottom:12px;">
        <div style="width:6px;background:{color};border-radius:12px 0 0 12px;"></div>
        <div style="padding:14px 16px;">
          <div style="font-size:18px;font-weight:700;color:#121926;margin-bottom:6px;">{escape(event.title)}</div>
          <div style="margin-bottom:8px;">{type_badge}</div>
          <div style="font-size:14px;color:#4c6fff;">{day_label}</div>
          <div style="font-size:14px;color:#6b6f76;">{time_block}</div>
          {location_html}
          {description_html}
        </div>
      </div>
      <a href="{escape(app_url)}/calendar" style="display:inline-block;background:#3B82F6;color:#ffffff;padding:10px 20px;text-decoration:none;border-radius:4px;">View Calendar</a>
      <div style="color:#98a2b3;font-size:11px;margin-top:16px;">This is an automated reminder. Please do not reply to this email.</div>
    </div>
  </body>
</html>
"""


def render_task_card(task):
    priority = (task.priority or 'medium').lower()
    status = (task.status or 'pending').lower()
    due = task.due_date.strftime(SHORT_DATE_FORMAT) if task.due_date else 'No due date'
    description = sanitize_rich_text(task.description)
    description_html = f'<div style="margin-top:8px;">{description}</div>' if description else ''
    return f"""
        <div class="task-item">
          <h3>{escape(task.title)}</h3>
          <p><strong>Due Date:</strong> {due}</p>
          <p>{_badge(_label(priority), PRIORITY_COLORS.get(priority, DEFAULT_BADGE_COLORS))} {_badge(_label(status), STATUS_COLORS.get(status, DEFAULT_BADGE_COLORS))}</p>
          <p><strong>Category:</strong> {escape(task.category or 'General')}</p>
          {description_html}
        </div>
    """


def render_task_digest(tasks, recipient_name, now, app_url, lab_name, template=None):
    """Fill the recipient's template (or the built-in one) with one card per task."""
    cards = ''.join(render_task_card(task) for task in tasks)
    body = template or DEFAULT_TASK_TEMPLATE
    replacements = {
        '{{user_name}}': str(escape(recipient_name)),
        '{{current_year}}': str(now.year),
        '{{app_url}}': str(escape(app_url)),
        '{{lab_name}}': str(escape(lab_name)),
    }
    for placeholder, value in replacements.items():
        body = body.replace(placeholder, value)
    if TASKS_BLOCK_PATTERN.search(body):
        body = TASKS_BLOCK_PATTERN.sub(lambda _m: cards, body)
    else:
        body = body + cards
    return body


def compose_event_reminder(event, recipient, policy):
    html = render_event_reminder(event, recipient.display_name, policy.app_url, policy.lab_name)
    return ReminderMessage(subject=event_subject(event), html=html, text=html_to_plain_text(html))


def compose_task_digest(tasks, recipient, now, policy, template=None):
    html = render_task_digest(tasks, recipient.display_name, now, policy.app_url, policy.lab_name, template=template)
    return ReminderMessage(subject=task_subject(len(tasks)), html=html, text=html_to_plain_text(html))


def compose_test_email(recipient, now, policy):
    html = f"""<!doctype html>
<html>
  <body style="font-family:Arial, Helvetica, sans-serif;color:#121926;">
    <h2>Email configuration test</h2>
    <p>Hello {escape(recipient.display_name)},</p>
    <p>Your {escape(policy.lab_name)} email settings are working. Task and calendar reminders will be delivered to this address.</p>
    <p style="color:#98a2b3;font-size:11px;">Sent {now.strftime(DATE_FORMAT)} at {now.strftime(TIME_FORMAT)}</p>
  </body>
</html>
"""
    return ReminderMessage(subject='Test Email - Reminder Configuration', html=html, text=html_to_plain_text(html))
