import uuid
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _new_id():
    return str(uuid.uuid4())


class User(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    email = db.Column(db.String(255), unique=True, nullable=False)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    preference = db.relationship('UserPreference', backref='user', uselist=False, cascade="all, delete-orphan")
    tasks = db.relationship('Task', backref='owner', lazy=True, cascade="all, delete-orphan")
    calendar_events = db.relationship('CalendarEvent', backref='owner', lazy=True, cascade="all, delete-orphan")

    def display_name(self):
        full = " ".join(part for part in (self.first_name, self.last_name) if part)
        if full:
            return full
        if self.email and '@' in self.email:
            return self.email.split('@')[0]
        return 'User'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }


class UserPreference(db.Model):
    """
    Per-user settings blob. `preferences` carries the email transport
    (`smtpConfig`) and an optional custom task email template (`emailTemplate`).
    """
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False, unique=True)
    preferences = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'preferences': self.preferences or {},
        }


class Task(db.Model):
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)  # Stored as HTML
    priority = db.Column(db.String(10), default='medium')  # low | medium | high
    status = db.Column(db.String(20), default='pending')  # pending | in_progress | completed
    assignee = db.Column(db.String(120), nullable=False, default='')
    category = db.Column(db.String(80), nullable=False, default='general')
    due_date = db.Column(db.Date, nullable=False)
    last_reminder_sent = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'description': self.description,
            'priority': self.priority,
            'status': self.status,
            'assignee': self.assignee,
            'category': self.category,
            'due_date': self.due_date.isoformat() if self.due_date else None,
            'last_reminder_sent': self.last_reminder_sent.isoformat() if self.last_reminder_sent else None,
        }


class CalendarEvent(db.Model):
    """
    Lab calendar entry (meeting, instrument booking, experiment run...).
    All timestamps are stored naive and read in server local time.
    """
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)  # Stored as HTML
    start_time = db.Column(db.DateTime, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    event_type = db.Column(db.String(20), default='meeting')  # meeting | maintenance | experiment | training | booking
    location = db.Column(db.String(200), nullable=True)
    attendees = db.Column(db.JSON, nullable=True)
    status = db.Column(db.String(20), default='scheduled')  # scheduled | completed | cancelled
    reminder_enabled = db.Column(db.Boolean, default=True)
    reminder_minutes_before = db.Column(db.Integer, default=15)
    reminder_sent = db.Column(db.Boolean, default=False)
    last_reminder_sent = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'title': self.title,
            'description': self.description,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'event_type': self.event_type,
            'location': self.location,
            'attendees': self.attendees or [],
            'status': self.status,
            'reminder_enabled': self.reminder_enabled,
            'reminder_minutes_before': self.reminder_minutes_before,
            'reminder_sent': self.reminder_sent,
            'last_reminder_sent': self.last_reminder_sent.isoformat() if self.last_reminder_sent else None,
        }
