"""Page requests, page windows and sort orderings.

A listing is only pageable over a total order, so every ordering produced
here ends with ``_id`` as the tie-breaker. ObjectIds grow with creation
time, which keeps the tie-breaker consistent with ``created_at``.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from videotube.config import settings
from videotube.errors import InvalidArgument
from videotube.pipeline.predicates import get_path

ASC = 1
DESC = -1

SortKeys = Tuple[Tuple[str, int], ...]


def _coerce_positive(value: Any, default: int) -> int:
    if value is None or isinstance(value, bool):
        return default
    text = str(value).strip()
    try:
        number = int(text)
    except ValueError:
        # "3.0" or "2.5" truncate like an integer parse would
        try:
            real = float(text)
        except ValueError:
            return default
        if not math.isfinite(real):
            return default
        number = int(real)
    return number if number >= 1 else default


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    page_size: int = 10

    @classmethod
    def from_params(cls, page: Any = None, page_size: Any = None) -> "PageRequest":
        """Build a request from raw query values.

        Absent, non-numeric or non-positive values fall back to page 1 and
        ``settings.DEFAULT_PAGE_SIZE``; page_size is capped at
        ``settings.MAX_PAGE_SIZE``.
        """
        size = _coerce_positive(page_size, settings.DEFAULT_PAGE_SIZE)
        return cls(
            page=_coerce_positive(page, 1),
            page_size=min(size, settings.MAX_PAGE_SIZE),
        )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size

    def resolve(self, total: int) -> "PageInfo":
        return PageInfo(
            total=total,
            page=self.page,
            page_size=self.page_size,
            total_pages=math.ceil(total / self.page_size) if total else 0,
        )

    def window(self, items: Sequence[Any]) -> List[Any]:
        return list(items[self.skip:self.skip + self.limit])


@dataclass(frozen=True)
class PageInfo:
    total: int
    page: int
    page_size: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1 and self.total_pages > 0


@dataclass
class Page:
    items: List[Dict[str, Any]]
    total: int
    page: int
    page_size: int
    total_pages: int
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_info(cls, items: List[Dict[str, Any]], info: PageInfo) -> "Page":
        return cls(
            items=items,
            total=info.total,
            page=info.page,
            page_size=info.page_size,
            total_pages=info.total_pages,
        )

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


def _sort_value(value: Any) -> tuple:
    # Missing values sort before everything else in ascending order
    if value is None:
        return (0, 0)
    return (1, value)


def sort_documents(docs: Iterable[Dict[str, Any]], keys: SortKeys) -> List[Dict[str, Any]]:
    """Stable multi-key sort, applied from the last key to the first"""
    result = list(docs)
    for field_name, direction in reversed(tuple(keys)):
        result.sort(
            key=lambda d: _sort_value(get_path(d, field_name)),
            reverse=direction == DESC,
        )
    return result


def parse_direction(sort_type: Optional[str], default: int = DESC) -> int:
    if sort_type is None or sort_type == "":
        return default
    normalized = str(sort_type).strip().lower()
    if normalized in ("asc", "ascending", "1"):
        return ASC
    if normalized in ("desc", "descending", "-1"):
        return DESC
    raise InvalidArgument("sort_type must be 'asc' or 'desc'")


def ordering(
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
    allowed: Iterable[str] = ("created_at",),
    default_field: str = "created_at",
    default_direction: int = DESC,
) -> SortKeys:
    """Translate user sort parameters into a stable sort key tuple"""
    if not sort_by:
        field_name = default_field
        direction = parse_direction(sort_type, default_direction)
    else:
        if sort_by not in allowed:
            raise InvalidArgument(f"Cannot sort by '{sort_by}'")
        field_name = sort_by
        direction = parse_direction(sort_type, DESC)
    if field_name == "_id":
        return ((field_name, direction),)
    return ((field_name, direction), ("_id", direction))
