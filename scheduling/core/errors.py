"""Typed errors raised by the scheduling services.

Each family maps to one HTTP status so the API layer can render an actionable
message without inspecting the concrete error class.
"""


class SchedulingError(Exception):
    status_code = 400
    default_detail = 'Scheduling request failed.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(SchedulingError):
    status_code = 400
    default_detail = 'Invalid input.'


class InvalidRangeError(ValidationError):
    default_detail = 'End time must be after start time.'


class InvalidDurationError(ValidationError):
    default_detail = 'Slot duration must be at least 1 minute.'


class NoSlotsGeneratedError(ValidationError):
    default_detail = 'No slots could be generated for the given range and duration.'


class NotFoundError(SchedulingError):
    status_code = 404
    default_detail = 'Not found.'


class DepartmentNotFoundError(NotFoundError):
    default_detail = 'Department not found.'


class SlotNotFoundError(NotFoundError):
    default_detail = 'Time slot not found.'


class AppointmentNotFoundError(NotFoundError):
    default_detail = 'Appointment not found.'


class StateConflictError(SchedulingError):
    status_code = 409
    default_detail = 'The record changed; reload it and try again.'


class SlotNoLongerAvailableError(StateConflictError):
    default_detail = 'This time slot is no longer available.'


class SlotInPastError(StateConflictError):
    default_detail = 'Only future time slots can be booked.'


class InvalidTransitionError(StateConflictError):
    def __init__(self, current_status: str, action: str):
        self.current_status = current_status
        self.action = action
        super().__init__(f'Cannot {action} an appointment that is {current_status}.')


class CancellationWindowClosedError(StateConflictError):
    def __init__(self, lead_hours: int):
        self.lead_hours = lead_hours
        super().__init__(f'Cancellation requires at least {lead_hours} hours notice.')


class AppointmentAlreadyStartedError(StateConflictError):
    default_detail = 'This appointment has already started and can no longer be cancelled.'


class AppointmentNotStartedError(StateConflictError):
    default_detail = 'This appointment has not started yet.'


class IntegrityGuardError(SchedulingError):
    status_code = 409
    default_detail = 'The record cannot be removed.'


class SlotHasHistoryError(IntegrityGuardError):
    default_detail = 'This time slot has appointment history and cannot be deleted.'
