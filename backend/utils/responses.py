from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

# One-time codes and their delivery status must never be cached by proxies
NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

def no_store_json(data: Any, status_code: int = 200):
    """Return JSONResponse with no-store caching headers."""
    return JSONResponse(content=jsonable_encoder(data), status_code=status_code, headers=NO_STORE_HEADERS)
