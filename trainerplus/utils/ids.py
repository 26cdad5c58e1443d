import uuid

from trainerplus.services.errors import CoreError, ErrorKind


def parse_uuid(value, field: str = "id", kind: ErrorKind = ErrorKind.BAD_REQUEST) -> str:
    """Return the canonical string form of a UUID or raise a typed failure."""
    try:
        return str(uuid.UUID(str(value)))
    except (TypeError, ValueError, AttributeError):
        raise CoreError(kind, f"invalid {field}")
