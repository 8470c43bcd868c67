"""Error envelope shared by the global exception handler."""

from typing import Any

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Body of unhandled-error responses.

    Format: { "error": { "code": str, "message": str, "detail": object | null } }
    """

    error: ErrorDetail

    @classmethod
    def build(cls, code: str, message: str, detail: dict[str, Any] | None = None) -> dict[str, Any]:
        """Serialized envelope, ready for a JSONResponse."""
        return cls(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump()
