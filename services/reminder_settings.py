"""
Typed settings for the reminder jobs.

Recipient transport settings arrive as a loosely-typed JSON blob on
`UserPreference.preferences`; they are validated here into `SmtpConfig`
before anything touches the network.
"""
from datetime import timedelta
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from services.reminder_errors import ConfigurationError

DEFAULT_FROM_NAME = 'Kapelczak Laboratory'
DEFAULT_SEND_TIMEOUT = 30


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ["1", "true", "yes", "on"]


class SmtpConfig(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    provider: Literal['smtp', 'emailjs'] = 'smtp'
    enabled: bool = False
    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    from_email: Optional[str] = None
    from_name: str = DEFAULT_FROM_NAME
    use_tls: bool = True
    service_id: Optional[str] = None
    template_id: Optional[str] = None
    timeout: float = DEFAULT_SEND_TIMEOUT

    @field_validator('port', mode='before')
    @classmethod
    def _blank_port_uses_default(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return 587
        return v

    @field_validator('port')
    @classmethod
    def _port_in_range(cls, v):
        if not 0 < v < 65536:
            raise ValueError('port must be between 1 and 65535')
        return v

    @model_validator(mode='after')
    def _check_required_fields(self):
        if not self.from_email and self.username and '@' in self.username:
            self.from_email = self.username
        if not self.enabled:
            return self
        if self.provider == 'smtp':
            missing = [name for name in ('host', 'from_email') if not getattr(self, name)]
        else:
            missing = [name for name in ('username', 'service_id', 'template_id') if not getattr(self, name)]
        if missing:
            raise ValueError(f"{self.provider} transport requires: {', '.join(missing)}")
        return self


def _as_dict(preferences):
    return preferences if isinstance(preferences, dict) else {}


def _format_validation_error(exc):
    parts = []
    for err in exc.errors():
        loc = '.'.join(str(p) for p in err.get('loc', ()) if p != '__root__')
        msg = err.get('msg', 'invalid value')
        parts.append(f"{loc}: {msg}" if loc else msg)
    return '; '.join(parts)


def load_smtp_config(preferences, default_timeout=None):
    """Validate the `smtpConfig` entry of a preferences blob or raise ConfigurationError.

    `default_timeout` applies when the blob does not set its own `timeout`.
    """
    raw = _as_dict(preferences).get('smtpConfig')
    if not raw:
        raise ConfigurationError('Email reminders are not configured')
    if not isinstance(raw, dict):
        raise ConfigurationError('Invalid email configuration')
    if default_timeout is not None and raw.get('timeout') in (None, ''):
        raw = {**raw, 'timeout': default_timeout}
    try:
        config = SmtpConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError('Invalid email configuration', details=_format_validation_error(exc)) from exc
    if not config.enabled:
        raise ConfigurationError('Email reminders are disabled')
    return config


def load_email_template(preferences):
    template = _as_dict(preferences).get('emailTemplate')
    if isinstance(template, str) and template.strip():
        return template
    return None


class ReminderPolicy(BaseModel):
    """Windows and status rules for one reminder run."""
    model_config = ConfigDict(frozen=True)

    task_lookahead: timedelta = timedelta(days=3)
    task_cooldown: timedelta = timedelta(days=1)
    task_excluded_statuses: Tuple[str, ...] = ('completed',)
    calendar_lookahead: timedelta = timedelta(hours=24)
    calendar_cooldown: timedelta = timedelta(hours=1)
    calendar_status: str = 'scheduled'
    calendar_one_shot: bool = True
    email_timeout: float = DEFAULT_SEND_TIMEOUT
    app_url: str = 'http://localhost:5000'
    lab_name: str = DEFAULT_FROM_NAME

    @field_validator('task_lookahead', 'task_cooldown', 'calendar_lookahead', 'calendar_cooldown')
    @classmethod
    def _non_negative(cls, v):
        if v < timedelta(0):
            raise ValueError('windows must not be negative')
        return v

    @field_validator('email_timeout')
    @classmethod
    def _positive_timeout(cls, v):
        if v <= 0:
            raise ValueError('email timeout must be positive')
        return v

    @classmethod
    def from_config(cls, config):
        """Build a policy from a Flask config mapping (values may still be env strings)."""
        try:
            return cls(
                task_lookahead=timedelta(days=int(config.get('TASK_REMINDER_LOOKAHEAD_DAYS', 3))),
                task_cooldown=timedelta(hours=int(config.get('TASK_REMINDER_COOLDOWN_HOURS', 24))),
                calendar_lookahead=timedelta(hours=int(config.get('CALENDAR_REMINDER_LOOKAHEAD_HOURS', 24))),
                calendar_cooldown=timedelta(minutes=int(config.get('CALENDAR_REMINDER_COOLDOWN_MINUTES', 60))),
                calendar_one_shot=parse_bool(config.get('CALENDAR_REMINDER_ONE_SHOT'), default=True),
                email_timeout=float(config.get('EMAIL_SEND_TIMEOUT', DEFAULT_SEND_TIMEOUT)),
                app_url=(config.get('APP_URL') or 'http://localhost:5000').rstrip('/'),
                lab_name=config.get('LAB_NAME') or DEFAULT_FROM_NAME,
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError('Invalid reminder settings', details=str(exc)) from exc
