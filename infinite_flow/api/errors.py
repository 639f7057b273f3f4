"""
Content API — Result → HTTP translation
"""
from typing import Any, Callable

from fastapi import HTTPException, status
from fastapi.encoders import jsonable_encoder

from infinite_flow.core.result import ErrorKind, Result

STATUS_FOR_KIND = {
    ErrorKind.CONFIGURATION: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.EXTERNAL: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.PARTIAL: status.HTTP_502_BAD_GATEWAY,
}


def raise_for_result(result: Result, serialize: Callable[[Any], Any] | None = None) -> Any:
    """
    Return result.data, or raise the HTTPException for a failed result.
    When a failure carries data (e.g. the re-fetched list after a failed reorder)
    and `serialize` is given, it is included in the error body.
    """
    if result.success:
        return result.data

    code = STATUS_FOR_KIND.get(result.kind, status.HTTP_500_INTERNAL_SERVER_ERROR)
    detail: Any = result.error or "Operation failed."
    if serialize is not None and result.data is not None:
        detail = {"message": detail, "data": jsonable_encoder(serialize(result.data))}
    raise HTTPException(status_code=code, detail=detail)
