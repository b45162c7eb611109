"""
Filter map and search query models.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode


FILTER_MAP_SOURCES = ("page", "cache", "default")


@dataclass
class FilterMap:
    """
    Translation table between filter URL parameters and their names.

    ``params`` maps a marketplace filter key (as used in listing URLs) to
    its display name. ``base_query`` holds search API parameters that the
    marketplace page resolved for the filter URL itself; it is None when
    the page could not be used.
    """

    params: Dict[str, str]
    base_query: Optional[Dict[str, str]] = None
    source: str = "page"

    def keys(self) -> List[str]:
        return list(self.params.keys())

    def validate(self) -> bool:
        """Validate filter map data."""
        if not isinstance(self.params, dict):
            raise ValueError("Filter map params must be a dictionary")

        if self.source not in FILTER_MAP_SOURCES:
            raise ValueError(f"Filter map source must be one of: {FILTER_MAP_SOURCES}")

        if self.base_query is not None and not isinstance(self.base_query, dict):
            raise ValueError("Filter map base query must be a dictionary")

        return True


@dataclass
class ExtractionResult:
    """Outcome of pulling the embedded configuration out of a page."""

    config: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.config is not None

    @classmethod
    def failure(cls, error: str) -> "ExtractionResult":
        return cls(config=None, error=error)


@dataclass
class ApiQuery:
    """A normalized query against the marketplace search API."""

    base_url: str
    params: List[Tuple[str, str]]
    referer: str
    warnings: List[str] = field(default_factory=list)

    @property
    def url(self) -> str:
        if not self.params:
            return self.base_url
        return f"{self.base_url}?{urlencode(self.params)}"

    def param_names(self) -> List[str]:
        return [name for name, _ in self.params]

    def get(self, name: str) -> Optional[str]:
        for param_name, value in self.params:
            if param_name == name:
                return value
        return None
