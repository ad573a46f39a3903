"""Hello endpoint."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(prefix="/hello", tags=["Hello"])


@router.get("/{name}", response_class=PlainTextResponse)
async def hello(name: str) -> PlainTextResponse:
    """Greet ``name``, inserted verbatim into a plain text body."""
    return PlainTextResponse(f"Hello {name}\n", status_code=200)
