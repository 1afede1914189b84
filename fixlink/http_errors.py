from fastapi import HTTPException

from fixlink.services.errors import (
    FixLinkConflictError,
    FixLinkError,
    FixLinkNotFoundError,
    FixLinkPermissionError,
    FixLinkStateError,
)


def raise_http_error(exc: FixLinkError) -> None:
    detail = {"kind": exc.kind, "message": str(exc)}
    if isinstance(exc, FixLinkNotFoundError):
        raise HTTPException(status_code=404, detail=detail)
    if isinstance(exc, FixLinkPermissionError):
        raise HTTPException(status_code=403, detail=detail)
    if isinstance(exc, (FixLinkStateError, FixLinkConflictError)):
        raise HTTPException(status_code=409, detail=detail)
    raise HTTPException(status_code=400, detail=detail)
