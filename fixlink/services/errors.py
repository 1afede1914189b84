class FixLinkError(ValueError):
    """Base class for user-visible booking-core errors."""

    kind = "error"


class FixLinkValidationError(FixLinkError):
    kind = "validation_error"


class FixLinkNotFoundError(FixLinkError):
    kind = "not_found"


class FixLinkPermissionError(FixLinkError):
    kind = "forbidden"


class FixLinkStateError(FixLinkError):
    kind = "invalid_state"


class FixLinkConflictError(FixLinkError):
    kind = "conflict"
