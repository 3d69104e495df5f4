"""Internal error taxonomy for the relay.

None of these ever reach the wire with detail: the router and the serve loop
collapse every one of them into a bare ``{"type": "error"}`` frame (or a
policy-violation close before accept). ``kind`` exists for logs and tests.
"""


class RelayError(Exception):
    kind = "relay_error"


class MalformedFrame(RelayError):
    kind = "malformed_frame"


class UnknownMessageKind(RelayError):
    kind = "unknown_message_kind"


class SchemaViolation(RelayError):
    kind = "schema_violation"


class ConnectionRateExceeded(RelayError):
    kind = "connection_rate_exceeded"


class SourceRateExceeded(RelayError):
    kind = "source_rate_exceeded"


class OriginRejected(RelayError):
    kind = "origin_rejected"


class RoomConflict(RelayError):
    kind = "room_conflict"


class RoomNotFound(RelayError):
    kind = "room_not_found"


class RoomFull(RelayError):
    kind = "room_full"


class SelfJoin(RelayError):
    kind = "self_join"


class NotInRoom(RelayError):
    kind = "not_in_room"


class AlreadyInRoom(RelayError):
    kind = "already_in_room"
