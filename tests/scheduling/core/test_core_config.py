from datetime import date, datetime, time

import pytest

from scheduling.core import config
from scheduling.core.errors import (
    CancellationWindowClosedError,
    IntegrityGuardError,
    InvalidTransitionError,
    SlotHasHistoryError,
    SlotNoLongerAvailableError,
    StateConflictError,
    ValidationError,
)
from scheduling.core.timeutils import format_local_time, local_to_utc, local_zone


def test_validate_runtime_config_rejects_default_secrets_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError, match='JWT_SECRET_KEY'):
        config.validate_runtime_config()

    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'real-secret')
    monkeypatch.setattr(config, 'REMINDER_TRIGGER_SECRET', '')

    with pytest.raises(RuntimeError, match='REMINDER_TRIGGER_SECRET'):
        config.validate_runtime_config()


def test_validate_runtime_config_allows_development_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'development')

    config.validate_runtime_config()


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (ValidationError(), 400),
        (SlotNoLongerAvailableError(), 409),
        (CancellationWindowClosedError(2), 409),
        (SlotHasHistoryError(), 409),
    ],
)
def test_errors_carry_status_codes(error, status_code) -> None:
    assert error.status_code == status_code
    assert str(error) == error.detail


def test_error_families() -> None:
    assert isinstance(InvalidTransitionError('completed', 'cancel'), StateConflictError)
    assert isinstance(SlotHasHistoryError(), IntegrityGuardError)
    assert InvalidTransitionError('no-show', 'rate').detail == 'Cannot rate an appointment that is no-show.'


def test_local_time_round_trip() -> None:
    zone = local_zone('America/Sao_Paulo')

    stored = local_to_utc(date(2026, 3, 2), time(8, 0), zone)

    assert stored == datetime(2026, 3, 2, 11, 0)
    assert format_local_time(stored, zone=zone) == '08:00'
