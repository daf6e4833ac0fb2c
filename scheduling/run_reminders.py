"""Run one reminder dispatch pass and exit.

Usage:
    python -m scheduling.run_reminders

Intended for cron-style schedulers that cannot call the HTTP trigger.
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from scheduling.database import SessionLocal, ensure_appointment_schema
from scheduling.models import appointment, department, notification, profile, timeslot  # noqa: F401
from scheduling.services.reminders import dispatch_reminders


def main() -> int:
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    db = SessionLocal()
    try:
        ensure_appointment_schema()
        result = dispatch_reminders(db)
    except SQLAlchemyError as exc:
        print(f"Reminder run failed: {exc}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"Processed {result.processed} reminders")
    return 0


if __name__ == "__main__":
    sys.exit(main())
