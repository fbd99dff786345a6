from dataclasses import dataclass
from typing import Any, Optional

from hanjul.errors import ValidationError


def _as_int(value: Any, field_name: str) -> int:
    """Coerce form/JSON input to int; bools and fractional numbers are rejected."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer.")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{field_name} must be an integer.")
    if isinstance(value, str) and value.strip():
        try:
            return int(value.strip())
        except ValueError:
            pass
    raise ValidationError(f"{field_name} must be an integer.")


class TextValidator:
    """Checks for required free-text fields."""

    @staticmethod
    def require(text: Optional[str], field_name: str) -> str:
        if text is None or not str(text).strip():
            raise ValidationError(f"{field_name} cannot be empty.")
        return str(text)


class PageValidator:

    @staticmethod
    def normalize_total_pages(value: Any) -> Optional[int]:
        """Catalog page counts: missing or 0 means unknown, negatives are invalid."""
        if value is None or value == "":
            return None
        pages = _as_int(value, "pageCount")
        if pages < 0:
            raise ValidationError("pageCount cannot be negative.")
        return pages or None

    @staticmethod
    def check_range(start_page: int, end_page: int, total_pages: Optional[int]) -> None:
        if start_page < 1:
            raise ValidationError("startPage must be at least 1.")
        if start_page > end_page:
            raise ValidationError(f"startPage ({start_page}) cannot be after endPage ({end_page}).")
        if total_pages and end_page > total_pages:
            raise ValidationError(f"endPage ({end_page}) cannot exceed the book's {total_pages} pages.")


@dataclass(frozen=True)
class SessionInput:
    """A validated 'save reading session' request.

    Built once at the boundary; the page bound that depends on the book is
    checked separately with ``check_against``.
    """
    start_page: int
    end_page: int
    reflection: str

    @classmethod
    def parse(cls, start_page: Any, end_page: Any, reflection: Optional[str]) -> "SessionInput":
        start = _as_int(start_page, "startPage")
        end = _as_int(end_page, "endPage")
        PageValidator.check_range(start, end, None)
        text = TextValidator.require(reflection, "reflection")
        return cls(start_page=start, end_page=end, reflection=text)

    def check_against(self, total_pages: Optional[int]) -> None:
        PageValidator.check_range(self.start_page, self.end_page, total_pages)
