from __future__ import annotations


class ScheduleError(Exception):
    pass


class ScheduleValidationError(ScheduleError, ValueError):
    """Input breaks a documented precondition; nothing was written."""


class ScheduleStateConflictError(ScheduleError):
    """The persisted schedule no longer permits the requested transition."""


class SchedulePersistenceError(ScheduleError):
    """The database failed; the schedule was left as it was."""


class ScheduleNotFoundError(ScheduleError, LookupError):
    pass
