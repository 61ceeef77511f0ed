"""Paging and sorting parameters for list queries."""

import math
from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

from .errors import ValidationError

DESCENDING_MARKER = "-"
MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class Metadata:
    current_page: int
    page_size: int
    first_page: int
    last_page: int
    total_records: int


def resolve_sort(requested: str, allow_list: Sequence[str]) -> Tuple[str, str]:
    """
    Split a sort key such as ``-created_at`` into ``("created_at", "DESC")``.

    The column must appear in ``allow_list``; anything else is rejected rather
    than falling back to a default, since the column name ends up in ORDER BY.
    """
    if requested.startswith(DESCENDING_MARKER):
        column, direction = requested[len(DESCENDING_MARKER):], "DESC"
    else:
        column, direction = requested, "ASC"

    if not column or column not in allow_list:
        raise ValidationError({"sort": "invalid sort value"})
    return column, direction


def calculate_metadata(total: int, page: int, page_size: int) -> Metadata:
    # current_page is not clamped: a page past the end yields an empty result set
    last_page = max(1, math.ceil(total / page_size))
    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=last_page,
        total_records=total,
    )


@dataclass(frozen=True)
class Filters:
    page: int = 1
    page_size: int = 20
    sort: str = "id"
    sort_safelist: Tuple[str, ...] = field(default=("id",))

    @property
    def limit(self) -> int:
        return self.page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def validate(self) -> Tuple[str, str]:
        """Check every field and return the resolved ``(column, direction)``."""
        errors: Dict[str, str] = {}

        if self.page < 1:
            errors["page"] = "must be greater than zero"
        elif self.page > MAX_PAGE:
            errors["page"] = f"must be a maximum of {MAX_PAGE}"

        if self.page_size < 1:
            errors["page_size"] = "must be greater than zero"
        elif self.page_size > MAX_PAGE_SIZE:
            errors["page_size"] = f"must be a maximum of {MAX_PAGE_SIZE}"

        resolved = ("", "")
        try:
            resolved = resolve_sort(self.sort, self.sort_safelist)
        except ValidationError as exc:
            errors.update(exc.errors)

        if errors:
            raise ValidationError(errors)
        return resolved
