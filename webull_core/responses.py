"""
API Response Envelope Handling

Provides:
- Envelope parsing for ``{success, data, code, message}`` bodies
- Error extraction into ApiError
- Success/failure detection
- Pagination metadata on list endpoints
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from loguru import logger

from .errors import ApiError, SerializationError
from .transport import HttpResponse

UNKNOWN_ERROR_CODE = "unknown"
UNKNOWN_ERROR_MESSAGE = "Unknown error"
NO_DATA_CODE = "no_data"
NO_DATA_MESSAGE = "Response did not contain data"

T = TypeVar("T")


class ApiEnvelope:
    """
    Wrapper for the JSON envelope around every payload.

    Args:
        success: Envelope success flag.
        data: Decoded payload (any JSON value), or None if absent.
        code: Optional error code.
        message: Optional error message.

    Example:
        >>> env = ApiEnvelope.from_response(resp)
        >>> if env.is_ok():
        ...     print(env.get_output())
        ... else:
        ...     env.print_error()
    """

    def __init__(
        self,
        success: bool,
        data: Any = None,
        code: Optional[str] = None,
        message: Optional[str] = None,
    ) -> None:
        self.success = success
        self.data = data
        self.code = code
        self.message = message

    @classmethod
    def from_dict(cls, body: Any) -> "ApiEnvelope":
        """
        Parse a decoded JSON body.

        Raises:
            SerializationError: If body is not an envelope object.
        """
        if not isinstance(body, dict):
            raise SerializationError(f"Expected JSON object envelope, got {type(body).__name__}")
        if "success" not in body:
            raise SerializationError("Envelope missing 'success' field")
        code = body.get("code")
        return cls(
            success=bool(body["success"]),
            data=body.get("data"),
            code=None if code is None else str(code),
            message=body.get("message"),
        )

    @classmethod
    def from_response(cls, resp: HttpResponse) -> "ApiEnvelope":
        return cls.from_dict(resp.json())

    # =========================================================================
    # Public Properties
    # =========================================================================

    @property
    def error_code(self) -> str:
        return self.code or UNKNOWN_ERROR_CODE

    @property
    def error_message(self) -> str:
        return self.message or UNKNOWN_ERROR_MESSAGE

    # =========================================================================
    # Public Methods
    # =========================================================================

    def is_ok(self) -> bool:
        return self.success

    def get_output(self) -> Any:
        """
        Return the payload of a successful envelope.

        Raises:
            ApiError: With the envelope's code/message if success is false,
                or the "no data" error if the payload is absent.
        """
        if not self.success:
            raise ApiError(self.error_code, self.error_message)
        if self.data is None:
            raise ApiError(NO_DATA_CODE, NO_DATA_MESSAGE)
        return self.data

    def print_error(self) -> None:
        """Log error details."""
        logger.error(f"API error: code={self.error_code}, message={self.error_message}")

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": self.success}
        if self.data is not None:
            out["data"] = self.data
        if self.code is not None:
            out["code"] = self.code
        if self.message is not None:
            out["message"] = self.message
        return out

    def __bool__(self) -> bool:
        return self.is_ok()

    def __repr__(self) -> str:
        if self.success:
            return f"ApiEnvelope(success=True, data={type(self.data).__name__})"
        return f"ApiEnvelope(success=False, code={self.code!r}, message={self.message!r})"


@dataclass
class Pagination:
    """Page position reported next to a list payload."""
    page: int
    page_size: int
    total: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @classmethod
    def from_dict(cls, data: Any) -> "Pagination":
        if not isinstance(data, dict):
            raise SerializationError(f"Expected pagination object, got {type(data).__name__}")
        try:
            return cls(
                page=int(data["page"]),
                page_size=int(data["page_size"]),
                total=int(data["total"]),
                total_pages=int(data["total_pages"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Invalid pagination: {e}") from e

    def to_dict(self) -> Dict[str, int]:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "total_pages": self.total_pages,
        }


@dataclass
class Page(Generic[T]):
    """One page of a list endpoint."""
    items: List[T] = field(default_factory=list)
    pagination: Optional[Pagination] = None

    @property
    def has_next(self) -> bool:
        return self.pagination is not None and self.pagination.has_next

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


class PaginatedEnvelope(ApiEnvelope):
    """
    Envelope whose payload is an array, with an optional ``pagination`` object.

    Example:
        >>> env = PaginatedEnvelope.from_response(resp)
        >>> page = env.get_page()
        >>> page.pagination.total_pages
    """

    def __init__(
        self,
        success: bool,
        data: Any = None,
        code: Optional[str] = None,
        message: Optional[str] = None,
        pagination: Optional[Pagination] = None,
    ) -> None:
        super().__init__(success, data, code, message)
        self.pagination = pagination

    @classmethod
    def from_dict(cls, body: Any) -> "PaginatedEnvelope":
        envelope = super().from_dict(body)
        raw = body.get("pagination")
        if raw is not None:
            envelope.pagination = Pagination.from_dict(raw)
        return envelope

    def get_page(self) -> Page[Any]:
        """
        Return the raw items with their pagination.

        Raises:
            ApiError: As for ``get_output``.
            SerializationError: If the payload is not an array.
        """
        data = self.get_output()
        if not isinstance(data, list):
            raise SerializationError(f"Expected JSON array, got {type(data).__name__}")
        return Page(list(data), self.pagination)

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.pagination is not None:
            out["pagination"] = self.pagination.to_dict()
        return out
