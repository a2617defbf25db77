"""
Response envelopes shared by every subcategory route.

Each body carries ``success``, ``message`` and an ISO ``timestamp``. The admin
UI reads camelCase pagination keys, the storefront reads snake_case, so the
pagination block carries both.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from datetime import datetime


class PaginationMeta(BaseModel):
    """Pagination metadata"""
    page: int = Field(ge=1, description="Current page number")
    per_page: int = Field(ge=1, description="Items per page")
    total_items: int = Field(ge=0, description="Total number of items")

    @property
    def total_pages(self) -> int:
        return -(-self.total_items // self.per_page)

    def as_dict(self) -> Dict[str, Any]:
        total_pages = self.total_pages
        return {
            "page": self.page,
            "per_page": self.per_page,
            "limit": self.per_page,
            "total": self.total_items,
            "total_items": self.total_items,
            "total_pages": total_pages,
            "totalPages": total_pages,
            "has_next": self.page < total_pages,
            "has_prev": self.page > 1,
        }


def _envelope(success: bool, message: str, **body: Any) -> Dict[str, Any]:
    return {
        "success": success,
        "message": message,
        **body,
        "timestamp": datetime.utcnow().isoformat(),
    }


def success_response(
    data: Any = None,
    message: str = "Operation successful",
    meta: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    return _envelope(True, message, data=data, meta=meta)


def error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Body of every non-2xx answer; ``error_code`` names the exception class"""
    return _envelope(False, message, error_code=error_code, details=details)


def paginated_response(
    data: List[Any],
    page: int,
    per_page: int,
    total_items: int,
    message: str = "Data retrieved successfully"
) -> Dict[str, Any]:
    meta = PaginationMeta(page=page, per_page=per_page, total_items=total_items)
    return _envelope(True, message, data=data, pagination=meta.as_dict())
