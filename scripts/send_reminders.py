import argparse
import json
import os

# One-off runs from cron must not start the in-process scheduler.
os.environ.setdefault("BOOTSTRAP_JOBS_ON_IMPORT", "0")

from app import app, _now, _policy
from services.mail_transport import build_transport
from services.reminder_errors import ReminderError
from services.reminder_jobs import run_all_task_reminders, run_calendar_reminders, run_task_reminders
from services.reminder_store import ReminderStore


def run_job(job: str, user_id=None, test_email=None) -> dict:
    store = ReminderStore()
    if job == "calendar":
        return run_calendar_reminders(store, build_transport, _policy(), clock=_now)
    if user_id:
        return run_task_reminders(
            user_id,
            store,
            build_transport,
            _policy(),
            clock=_now,
            test_mode=bool(test_email),
            test_email=test_email,
        )
    return run_all_task_reminders(store, build_transport, _policy(), clock=_now)


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a reminder job once and print the result.")
    parser.add_argument("job", choices=["calendar", "tasks"], help="Which reminder run to execute.")
    parser.add_argument("--user-id", default=None, help="Limit the task run to a single user")
    parser.add_argument(
        "--test-email",
        default=None,
        help="Send the task digest to this address without marking tasks (requires --user-id).",
    )
    args = parser.parse_args()

    if args.test_email and not args.user_id:
        parser.error("--test-email requires --user-id")

    with app.app_context():
        try:
            result = run_job(args.job, args.user_id, args.test_email)
        except ReminderError as exc:
            print(json.dumps(exc.to_dict(), indent=2))
            return 1

    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
