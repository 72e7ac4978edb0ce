class SchedulerError(Exception):
    """Base class for scheduling errors raised by the service layer."""


class NotFoundError(SchedulerError):
    """Ward, interview type or appointment does not exist (in this ward)."""


class ValidationError(SchedulerError):
    """Required booking or search input is missing or invalid."""


class UpstreamCalendarError(SchedulerError):
    """A call to a member's external calendar failed."""


class SlotConflictError(SchedulerError):
    """The requested slot is already held by a scheduled appointment."""


class AssistantError(SchedulerError):
    """The language model call failed after retries."""
