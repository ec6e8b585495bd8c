import os
from datetime import datetime

from dotenv import load_dotenv
from flask import Flask, request, jsonify

load_dotenv()

from models import db
from apscheduler.schedulers.background import BackgroundScheduler
from services.mail_transport import build_transport
from services.reminder_errors import ReminderError
from services.reminder_jobs import (
    run_all_task_reminders,
    run_calendar_reminders,
    run_task_reminders,
    send_test_email,
)
from services.reminder_settings import ReminderPolicy, parse_bool
from services.reminder_store import ReminderStore

app = Flask(__name__)
app.config['SQLALCHEMY_DATABASE_URI'] = os.environ.get('DATABASE_URL', 'sqlite:///eln.db')
app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')
app.config['APP_URL'] = os.environ.get('APP_URL', 'http://localhost:5000')
app.config['LAB_NAME'] = os.environ.get('LAB_NAME', 'Kapelczak Laboratory')
app.config['TASK_REMINDER_LOOKAHEAD_DAYS'] = int(os.environ.get('TASK_REMINDER_LOOKAHEAD_DAYS', 3))
app.config['TASK_REMINDER_COOLDOWN_HOURS'] = int(os.environ.get('TASK_REMINDER_COOLDOWN_HOURS', 24))
app.config['CALENDAR_REMINDER_LOOKAHEAD_HOURS'] = int(os.environ.get('CALENDAR_REMINDER_LOOKAHEAD_HOURS', 24))
app.config['CALENDAR_REMINDER_COOLDOWN_MINUTES'] = int(os.environ.get('CALENDAR_REMINDER_COOLDOWN_MINUTES', 60))
app.config['CALENDAR_REMINDER_ONE_SHOT'] = parse_bool(os.environ.get('CALENDAR_REMINDER_ONE_SHOT'), default=True)
app.config['CALENDAR_REMINDER_INTERVAL_MINUTES'] = int(os.environ.get('CALENDAR_REMINDER_INTERVAL_MINUTES', 5))
app.config['TASK_REMINDER_HOUR'] = int(os.environ.get('TASK_REMINDER_HOUR', 7))
app.config['EMAIL_SEND_TIMEOUT'] = float(os.environ.get('EMAIL_SEND_TIMEOUT', 30))

db.init_app(app)
scheduler = None

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
}

with app.app_context():
    db.create_all()


def _now():
    """Server local time, naive, matching how timestamps are stored."""
    return datetime.now()


def _policy():
    return ReminderPolicy.from_config(app.config)


@app.after_request
def _add_cors_headers(response):
    for key, value in CORS_HEADERS.items():
        response.headers.setdefault(key, value)
    return response


@app.errorhandler(ReminderError)
def _handle_reminder_error(exc):
    if exc.status_code >= 500:
        app.logger.error("Reminder run failed: %s (%s)", exc.message, exc.details)
    else:
        app.logger.info("Reminder request rejected: %s", exc.message)
    return jsonify(exc.to_dict()), exc.status_code


def _optional_str(value):
    return value is None or isinstance(value, str)


def _preflight():
    return '', 204


@app.route('/health')
def health_check():
    return jsonify({'status': 'healthy'})


@app.route('/api/calendar-reminders/send', methods=['POST', 'OPTIONS'])
def send_calendar_reminders():
    if request.method == 'OPTIONS':
        return _preflight()
    try:
        result = run_calendar_reminders(ReminderStore(), build_transport, _policy(), clock=_now)
    except ReminderError:
        raise
    except Exception as e:
        app.logger.exception("Error in send-calendar-reminders")
        return jsonify({'error': str(e)}), 500
    return jsonify(result)


@app.route('/api/task-reminders/send', methods=['POST', 'OPTIONS'])
def send_task_reminders():
    if request.method == 'OPTIONS':
        return _preflight()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    user_id = data.get('user_id')
    if not isinstance(user_id, str) or not user_id.strip():
        return jsonify({'error': 'user_id is required'}), 400
    if not _optional_str(data.get('test_email')):
        return jsonify({'error': 'test_email must be a valid email address'}), 400
    try:
        result = run_task_reminders(
            user_id.strip(),
            ReminderStore(),
            build_transport,
            _policy(),
            clock=_now,
            test_mode=parse_bool(data.get('test_mode')),
            test_email=data.get('test_email'),
        )
    except ReminderError:
        raise
    except Exception as e:
        app.logger.exception("Error in send-task-reminders")
        return jsonify({'error': str(e)}), 500
    return jsonify(result)


@app.route('/api/test-email', methods=['POST', 'OPTIONS'])
def test_email_configuration():
    if request.method == 'OPTIONS':
        return _preflight()
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    if not _optional_str(data.get('test_email')):
        return jsonify({'error': 'test_email must be a valid email address'}), 400
    try:
        result = send_test_email(
            data.get('user_id'),
            data.get('test_email'),
            ReminderStore(),
            build_transport,
            _policy(),
            clock=_now,
        )
    except ReminderError:
        raise
    except Exception as e:
        app.logger.exception("Error in test-email")
        return jsonify({'error': str(e)}), 500
    return jsonify(result)


def _scheduled_calendar_reminders():
    with app.app_context():
        try:
            run_calendar_reminders(ReminderStore(), build_transport, _policy(), clock=_now)
        except Exception as e:
            app.logger.error(f"Scheduled calendar reminders failed: {e}")


def _scheduled_task_reminders():
    with app.app_context():
        try:
            run_all_task_reminders(ReminderStore(), build_transport, _policy(), clock=_now)
        except Exception as e:
            app.logger.error(f"Scheduled task reminders failed: {e}")


def _start_scheduler():
    """Start background scheduler for calendar and task reminders."""
    global scheduler
    if os.environ.get('ENABLE_REMINDER_JOBS', '1') != '1':
        return
    if scheduler and scheduler.running:
        return
    # Avoid double-start in Flask debug reloader
    if app.debug and os.environ.get('WERKZEUG_RUN_MAIN') != 'true':
        return
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        _scheduled_calendar_reminders,
        'interval',
        minutes=app.config['CALENDAR_REMINDER_INTERVAL_MINUTES'],
        id='calendar_reminders',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        _scheduled_task_reminders,
        'cron',
        hour=app.config['TASK_REMINDER_HOUR'],
        minute=0,
        id='task_reminders',
        replace_existing=True,
    )
    scheduler.start()


# Start scheduler on process startup (not request-dependent).
# Can be disabled for tooling/scripts that only need app context.
if os.environ.get('BOOTSTRAP_JOBS_ON_IMPORT', '1') == '1':
    try:
        _start_scheduler()
    except Exception as e:
        app.logger.error(f"Error starting scheduler on startup: {e}")


if __name__ == '__main__':
    app.run(host='0.0.0.0', debug=True)
