"""Domain errors.

Learn: Errors raised before any state changes (bad credential, unknown
event, duplicate attendance) go back to the caller. Errors raised after
a Store commit (broadcast delivery) are only logged — the real-time
channel is best-effort notification on top of the database.

Being a member of a room twice, or leaving a room you aren't in, is a
no-op rather than an error, so there is no exception for it.
"""


class CheckinError(Exception):
    """Base class for all check-in errors."""

    code = "INTERNAL_SERVER_ERROR"


# ─── Real-time ───────────────────────────────────────────


class AuthenticationFailure(CheckinError):
    """Bad or missing credential when opening a real-time connection."""

    code = "UNAUTHENTICATED"


class RoomNotFound(CheckinError):
    """Join requested for an event id the Store does not know."""

    code = "ROOM_NOT_FOUND"

    def __init__(self, room_id: str):
        super().__init__(f"Event not found: {room_id}")
        self.room_id = room_id


class BroadcastDeliveryFailure(CheckinError):
    """A notification could not be queued for one connection."""

    code = "DELIVERY_FAILED"

    def __init__(self, connection_id: str, reason: str):
        super().__init__(f"Delivery to {connection_id} failed: {reason}")
        self.connection_id = connection_id
        self.reason = reason


# ─── Store ───────────────────────────────────────────────


class EventNotFound(CheckinError):
    code = "NOT_FOUND"

    def __init__(self, event_id: str):
        super().__init__("Event not found")
        self.event_id = event_id


class AlreadyAttending(CheckinError):
    code = "ALREADY_ATTENDING"

    def __init__(self):
        super().__init__("You are already attending this event")


class NotAttending(CheckinError):
    code = "NOT_ATTENDING"

    def __init__(self):
        super().__init__("You are not attending this event")


# ─── Accounts ────────────────────────────────────────────


class UserExists(CheckinError):
    code = "USER_EXISTS"

    def __init__(self):
        super().__init__("User with this email already exists")


class InvalidCredentials(CheckinError):
    code = "INVALID_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid email or password")


class InvalidInput(CheckinError):
    code = "INVALID_INPUT"
