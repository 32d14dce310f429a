"""Response envelope helpers.

Every body has the shape ``{success, message, data?, error?, timestamp}``;
``data`` and ``error`` are left out when there is nothing to report.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _envelope(success: bool, message: str, data: Any = None, error: Any = None) -> dict:
    body = {
        "success": success,
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    if data is not None:
        body["data"] = jsonable_encoder(data)
    if error is not None:
        body["error"] = jsonable_encoder(error)
    return body


def success_response(message: str, data: Any = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=_envelope(True, message, data=data))


def error_response(message: str, error: Any = None, status_code: int = 500, headers: dict = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=_envelope(False, message, error=error), headers=headers)
