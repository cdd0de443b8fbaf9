"""
api/outcomes.py -- Map store Results onto HTTP responses.

Every store operation that can be denied returns a vault.models.Result. Route
handlers call unwrap() to get the value on FOUND, or an HTTPException with the
shared error envelope otherwise:

  NOT_FOUND   -> 404 not_found
  DENIED      -> 403 forbidden
  CONFLICT    -> 409 conflict
  STORE_ERROR -> 503 store_unavailable
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException

from api.models import ErrorDetail
from vault.models import Outcome, Result

_HTTP_FOR_OUTCOME: dict[Outcome, tuple[int, str]] = {
    Outcome.NOT_FOUND: (404, "not_found"),
    Outcome.DENIED: (403, "forbidden"),
    Outcome.CONFLICT: (409, "conflict"),
    Outcome.STORE_ERROR: (503, "store_unavailable"),
}


def unwrap(result: Result) -> Any:
    """Return result.value on FOUND; raise the matching HTTPException otherwise."""
    if result.ok:
        return result.value
    status_code, code = _HTTP_FOR_OUTCOME[result.outcome]
    raise HTTPException(
        status_code=status_code,
        detail=ErrorDetail(code=code, message=result.message or "Request failed.").model_dump(exclude_none=True),
    )
