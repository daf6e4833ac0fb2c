from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from scheduling.core import config

connect_args = {'check_same_thread': False} if config.DATABASE_URL.startswith('sqlite') else {}

engine = create_engine(config.DATABASE_URL, echo=config.SQL_ECHO, connect_args=connect_args)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_timeslot_schema_checked = False
_appointment_schema_checked = False


def _apply_migration_steps(table_name: str, migration_steps: list[tuple[str, str]], index_statements: list[str]) -> None:
    inspector = inspect(engine)

    if table_name not in inspector.get_table_names():
        return

    existing_columns = {column['name'] for column in inspector.get_columns(table_name)}

    with engine.begin() as connection:
        for column_name, statement in migration_steps:
            if column_name not in existing_columns:
                connection.execute(text(statement))
        for statement in index_statements:
            connection.execute(text(statement))


def ensure_timeslot_schema() -> None:
    global _timeslot_schema_checked

    if _timeslot_schema_checked:
        return

    with _schema_lock:
        if _timeslot_schema_checked:
            return

        _apply_migration_steps(
            'timeslots',
            [
                ('is_available', 'ALTER TABLE timeslots ADD COLUMN is_available BOOLEAN NOT NULL DEFAULT TRUE'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_timeslots_department_available_start '
                'ON timeslots(department_id, is_available, start_time)',
            ],
        )

        _timeslot_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        _apply_migration_steps(
            'appointments',
            [
                ('notified_30min', 'ALTER TABLE appointments ADD COLUMN notified_30min BOOLEAN NOT NULL DEFAULT FALSE'),
                ('notified_10min', 'ALTER TABLE appointments ADD COLUMN notified_10min BOOLEAN NOT NULL DEFAULT FALSE'),
                ('department_notes', 'ALTER TABLE appointments ADD COLUMN department_notes TEXT'),
                ('school_notes', 'ALTER TABLE appointments ADD COLUMN school_notes TEXT'),
                ('rating', 'ALTER TABLE appointments ADD COLUMN rating INTEGER'),
            ],
            [
                'CREATE INDEX IF NOT EXISTS idx_appointments_status_timeslot ON appointments(status, timeslot_id)',
                "CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_timeslot "
                "ON appointments(timeslot_id) WHERE status = 'active'",
            ],
        )

        _appointment_schema_checked = True
