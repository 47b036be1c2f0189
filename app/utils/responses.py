from typing import Any, Optional

from fastapi.responses import JSONResponse


def api_response(
    message: Optional[str] = None,
    data: Any = None,
    status_code: int = 200,
    success: bool = True,
    **extra,
) -> JSONResponse:
    """Shared envelope: {success, message?, data?, ...extra}."""
    content = {"success": success}
    if message is not None:
        content["message"] = message
    if data is not None:
        content["data"] = data
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)
