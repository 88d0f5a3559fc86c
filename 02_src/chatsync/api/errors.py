"""Mapping of engine errors to HTTP responses."""

from fastapi import HTTPException

from ..errors import DirectoryError, TransportFailure, Unauthorized


def to_http_exception(error: Exception) -> HTTPException:
    """Translate an engine exception into an HTTPException."""
    if isinstance(error, HTTPException):
        return error
    if isinstance(error, Unauthorized):
        return HTTPException(status_code=401, detail=str(error) or "unauthorized")
    if isinstance(error, DirectoryError):
        status = error.status_code if error.status_code and error.status_code < 500 else 502
        return HTTPException(status_code=status, detail=str(error))
    if isinstance(error, TransportFailure):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, ValueError):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
