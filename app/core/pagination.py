"""
Pagination Utility

Pages through lists that have already been filtered in memory (patient
visibility depends on the viewer and the clock, so it can't be pushed down
into the SQL query).
"""

from typing import Callable, Generic, TypeVar, List, Optional, Sequence
from pydantic import BaseModel, ConfigDict, Field
from math import ceil


T = TypeVar("T")


class PaginationParams(BaseModel):
    """Pagination parameters for API requests."""

    page: int = Field(default=1, ge=1, description="Page number (starts at 1)")
    page_size: int = Field(default=10, ge=1, le=100, description="Items per page")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


class PageInfo(BaseModel):
    """Pagination metadata."""

    total_items: int = Field(description="Total number of items")
    total_pages: int = Field(description="Total number of pages")
    current_page: int = Field(description="Current page number")
    page_size: int = Field(description="Items per page")
    has_next: bool = Field(description="Whether there is a next page")
    has_previous: bool = Field(description="Whether there is a previous page")
    next_page: Optional[int] = Field(default=None, description="Next page number")
    previous_page: Optional[int] = Field(
        default=None, description="Previous page number"
    )


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response wrapper."""

    model_config = ConfigDict(from_attributes=True)

    items: List[T] = Field(description="List of items for current page")
    page_info: PageInfo = Field(description="Pagination metadata")


class Paginator:
    """Utility class for slicing filtered result lists into pages."""

    @staticmethod
    def paginate(
        items: Sequence,
        params: PaginationParams,
        transform: Optional[Callable] = None,
    ) -> PaginatedResponse:
        """
        Paginate an in-memory sequence.

        Args:
            items: Full, already filtered and ordered sequence
            params: Pagination parameters
            transform: Optional callable applied to each item on the page

        Returns:
            PaginatedResponse: Paginated result with metadata

        Example:
            >>> params = PaginationParams(page=2, page_size=10)
            >>> result = Paginator.paginate(patients, params, to_schema)
        """
        page_items = list(items[params.skip : params.skip + params.limit])
        if transform:
            page_items = [transform(item) for item in page_items]

        page_info = Paginator.create_page_info(
            total_items=len(items), page=params.page, page_size=params.page_size
        )
        return PaginatedResponse(items=page_items, page_info=page_info)

    @staticmethod
    def create_page_info(total_items: int, page: int, page_size: int) -> PageInfo:
        """
        Create PageInfo from raw values.

        Args:
            total_items: Total number of items
            page: Current page number
            page_size: Items per page

        Returns:
            PageInfo: Pagination metadata
        """
        total_pages = ceil(total_items / page_size) if total_items > 0 else 0
        has_next = page < total_pages
        has_previous = page > 1

        return PageInfo(
            total_items=total_items,
            total_pages=total_pages,
            current_page=page,
            page_size=page_size,
            has_next=has_next,
            has_previous=has_previous,
            next_page=page + 1 if has_next else None,
            previous_page=page - 1 if has_previous else None,
        )


def get_pagination_params(page: int = 1, page_size: int = 10) -> PaginationParams:
    """
    Dependency for pagination parameters.

    Usage in route:
        @router.get("/patients")
        async def list_patients(
            pagination: PaginationParams = Depends(get_pagination_params)
        ):
            ...
    """
    return PaginationParams(page=page, page_size=page_size)
