from datetime import datetime
from typing import Any, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def _envelope(ok: bool, message: str, data: Any, errors: Any) -> dict:
    return {"success": ok, "message": message, "data": data, "errors": errors}


def success(data: Optional[Any] = None, message: str = "OK") -> dict:
    """Success envelope; models, Decimals and datetimes are encoded here."""
    return jsonable_encoder(_envelope(True, message, data, None))


def error_response(status_code: int, message: str, errors=None, data=None) -> JSONResponse:
    body = _envelope(False, message, data, errors or [])
    body["error"] = message
    body["timestamp"] = datetime.utcnow().isoformat() + "Z"
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))
