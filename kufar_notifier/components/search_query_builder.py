"""
Translation of saved filter URLs into search API queries.
"""

from typing import List, Tuple
from urllib.parse import parse_qsl, urlparse

from ..models.config import DEFAULT_SEARCH_API_URL
from ..models.parameter_map import ApiQuery, FilterMap
from ..utils.logging import get_logger

logger = get_logger("search.query_builder")

# page size, sort order, pagination cursor, free-text query and its
# "search in titles only" switch
RESULT_CONTROL_PARAMETERS = ("size", "sort", "cursor", "query", "ot")

DEFAULT_PAGE_SIZE = 30


class SearchQueryBuilder:
    """Builds normalized search API queries from filter URLs."""

    def __init__(self, api_url: str = DEFAULT_SEARCH_API_URL, page_size: int = DEFAULT_PAGE_SIZE):
        self.api_url = api_url
        self.page_size = page_size

    def allowed_parameters(self, filter_map: FilterMap) -> List[str]:
        return list(RESULT_CONTROL_PARAMETERS) + [
            key for key in filter_map.keys() if key not in RESULT_CONTROL_PARAMETERS
        ]

    def build(self, filter_url: str, filter_map: FilterMap) -> ApiQuery:
        """
        Build the API query for ``filter_url``.

        Parameters the backend does not know about are dropped, the page
        size is pinned, and parameters the marketplace page resolved for the
        URL are appended as-is.
        """
        allowed = set(self.allowed_parameters(filter_map))
        query_string = urlparse(filter_url).query

        params: List[Tuple[str, str]] = []
        dropped = []
        for name, value in parse_qsl(query_string, keep_blank_values=True):
            if name == "size":
                continue
            if name in allowed:
                params.append((name, value))
            else:
                dropped.append(name)

        warnings = []
        if filter_map.base_query is None:
            warnings.append(
                "filter URL path could not be translated; "
                "only query string parameters are used"
            )
        else:
            present = {name for name, _ in params}
            for name, value in filter_map.base_query.items():
                if name != "size" and name not in present:
                    params.append((name, value))

        params.append(("size", str(self.page_size)))

        api_query = ApiQuery(
            base_url=self.api_url,
            params=params,
            referer=filter_url,
            warnings=warnings,
        )

        if dropped:
            logger.debug(
                "Dropped unsupported filter parameters",
                extra={"url": filter_url, "parameters": sorted(set(dropped))},
            )

        if warnings:
            logger.warning(
                "Check this URL",
                extra={"url": filter_url, "api_url": api_query.url, "warnings": warnings},
            )

        return api_query
