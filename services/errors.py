"""
Error taxonomy for the scheduling engine.

Every expected outcome (validation, conflict, policy, not found) is a
``SchedulingError`` carrying a stable machine ``code`` and the HTTP status
the blueprints answer with. Infrastructure failures that survive the retry
loop surface as ``StorageUnavailable`` without business detail.
"""


class SchedulingError(Exception):
    code = "SCHEDULING_ERROR"
    http_status = 400

    def __init__(self, message: str = None, **details):
        self.message = message or self.default_message()
        self.details = details
        super().__init__(self.message)

    def default_message(self) -> str:
        return self.code.replace("_", " ").capitalize()

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


# ---------- Validation ----------
class ValidationError(SchedulingError):
    code = "VALIDATION_ERROR"
    http_status = 400


# ---------- Not found ----------
class NotFound(SchedulingError):
    code = "NOT_FOUND"
    http_status = 404


# ---------- Conflicts (expected contention, never logged as errors) ----------
class ConflictError(SchedulingError):
    code = "CONFLICT"
    http_status = 409


class SlotUnavailable(ConflictError):
    code = "SLOT_UNAVAILABLE"

    def default_message(self) -> str:
        return "Slot is no longer available"


class DuplicateBooking(ConflictError):
    code = "DUPLICATE_BOOKING"

    def default_message(self) -> str:
        return "You already have a booking for this time"


class CapacityExceeded(ConflictError):
    code = "CAPACITY_EXCEEDED"

    def default_message(self) -> str:
        return "Slot is at maximum capacity"


class AlreadyWaitlisted(ConflictError):
    code = "ALREADY_WAITLISTED"

    def default_message(self) -> str:
        return "You are already on the waitlist for this resource and date"


class BookingNotCancellable(ConflictError):
    code = "BOOKING_NOT_CANCELLABLE"

    def default_message(self) -> str:
        return "Booking not cancellable"


# ---------- Policy ----------
class CancellationWindowClosed(SchedulingError):
    code = "CANCELLATION_WINDOW_CLOSED"
    http_status = 403

    def __init__(self, required_notice_hours: int):
        super().__init__(
            f"Cancellation must be made at least {required_notice_hours} hours before the booking",
            required_notice_hours=required_notice_hours,
        )


# ---------- Infrastructure ----------
class StorageUnavailable(SchedulingError):
    code = "STORAGE_UNAVAILABLE"
    http_status = 503

    def default_message(self) -> str:
        return "Service temporarily unavailable, please retry"
