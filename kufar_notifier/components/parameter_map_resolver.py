"""
Filter map resolution for marketplace search URLs.

The marketplace embeds its Next.js application state in every listing
page. The state carries either a ready-made map of filter URL parameters
or the raw reference table the map is derived from. The parameter
table is cached per host for the process lifetime; the query block the
page resolves for a filter path is cached per path.
"""

import json
from dataclasses import replace
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests

from ..models.parameter_map import ExtractionResult, FilterMap
from ..utils.error_handling import (
    ErrorCategory,
    ErrorSeverity,
    GracefulDegradation,
    get_degradation_manager,
    get_error_tracker,
)
from ..utils.logging import get_logger
from .default_parameters_map import DEFAULT_PARAMETERS_MAP
from .http_client import MarketplaceHttpClient, PayloadDecodeError, decode_body
from .parameter_map_cache import ParameterMapCache

logger = get_logger("parameter_map.resolver")

APP_CONFIG_START = '<script id="__NEXT_DATA__" type="application/json">'
APP_CONFIG_END = "</script>"

PAGE_HEADERS = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,"
        "image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.9"
    ),
    "Accept-Encoding": "gzip, deflate",
    "Accept-Language": "en-US,en;q=0.9,ru;q=0.8,fr;q=0.7",
    "Cache-Control": "no-cache",
    "Cookie": "fullscreen_cookie=1",
    "Dnt": "1",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_3) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/81.0.4044.129 Safari/537.36"
    ),
}

MAX_LOGGED_CONTENT = 2000


def host_key(url: str) -> str:
    """Cache key for a search URL: its host without scheme, path or ``www.``."""
    host = urlparse(url).netloc.lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def path_key(url: str) -> str:
    """Key for the page query of a search URL: host plus path, query string ignored."""
    path = urlparse(url).path.rstrip("/")
    return f"{host_key(url)}{path}"


class ResolutionFailed(Exception):
    """The listing page could not be turned into a filter map."""

    def __init__(self, reason: str, content: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.content = content


class AppConfigExtractor:
    """Pulls the embedded application state out of a listing page."""

    def __init__(self, start_marker: str = APP_CONFIG_START, end_marker: str = APP_CONFIG_END):
        self.start_marker = start_marker
        self.end_marker = end_marker

    def locate(self, page_html: str) -> Optional[str]:
        """Return the text between the markers, or None if they are missing."""
        if not page_html:
            return None

        start = page_html.find(self.start_marker)
        if start < 0:
            return None
        start += len(self.start_marker)

        end = page_html.find(self.end_marker, start)
        if end < 0:
            return None

        blob = page_html[start:end].strip()
        return blob or None

    def extract(self, page_html: str) -> ExtractionResult:
        blob = self.locate(page_html)
        if blob is None:
            return ExtractionResult.failure("configuration markers not found")

        try:
            config = json.loads(blob)
        except ValueError as e:
            return ExtractionResult.failure(f"configuration is not valid JSON: {e}")

        if not isinstance(config, dict):
            return ExtractionResult.failure("configuration is not an object")

        return ExtractionResult(config=config)


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def build_filter_map(app_config: Dict[str, Any]) -> Optional[FilterMap]:
    """
    Derive the filter map from the embedded application state.

    A pre-built ``parametersMap`` wins; otherwise the reference table is
    folded into ``{url_name: name}``. Returns None if neither is usable.
    """
    filters = _dig(app_config, "props", "initialState", "filters")

    params = _dig(filters, "parametersMap")
    if not isinstance(params, dict) or not params:
        refs = _dig(filters, "filtersData", "metadata", "parameters", "refs")
        if isinstance(refs, dict):
            refs = list(refs.values())
        if not isinstance(refs, list):
            return None

        params = {}
        for ref in refs:
            if isinstance(ref, dict) and ref.get("url_name"):
                params[str(ref["url_name"])] = str(ref.get("name", ref["url_name"]))

        if not params:
            return None

    base_query = None
    page_query = app_config.get("query")
    if isinstance(page_query, dict):
        base_query = {
            str(name): str(value)
            for name, value in page_query.items()
            if isinstance(value, (str, int, float)) and not isinstance(value, bool)
        }

    return FilterMap(
        params={str(key): str(value) for key, value in params.items()},
        base_query=base_query,
        source="page",
    )


class ParameterMapResolver:
    """Resolves the filter map that applies to a search URL."""

    def __init__(
        self,
        http_client: MarketplaceHttpClient,
        cache: ParameterMapCache,
        listings_referer: str = "https://www.kufar.by/listings",
        default_map: Optional[Dict[str, str]] = None,
        extractor: Optional[AppConfigExtractor] = None,
        degradation: Optional[GracefulDegradation] = None,
    ):
        self.http_client = http_client
        self.cache = cache
        self.listings_referer = listings_referer
        self.default_map = dict(default_map or DEFAULT_PARAMETERS_MAP)
        self.extractor = extractor or AppConfigExtractor()
        self.degradation = degradation or get_degradation_manager()

    def default_filter_map(self) -> FilterMap:
        return FilterMap(params=dict(self.default_map), base_query=None, source="default")

    def resolve(self, search_url: str) -> FilterMap:
        """
        Resolve the filter map for ``search_url``.

        The host's parameter table is fetched once and cached; the page
        query is fetched once per filter path, because region, category
        and deal type live in the path. Never raises: any failure yields
        the cached table without a page query, or the built-in default
        map when the host was never resolved. The default map is not
        cached so the next cycle tries the page again.
        """
        host = host_key(search_url)
        path = path_key(search_url)

        cached = self.cache.get(host)
        if cached is not None and self.cache.has_base_query(path):
            return replace(
                cached, base_query=self.cache.get_base_query(path), source="cache"
            )

        try:
            page_map = self._load_page(search_url)
        except ResolutionFailed as e:
            return self._fallback(search_url, e, cached)

        self.cache.set(host, page_map)
        self.cache.set_base_query(path, page_map.base_query)
        self.degradation.restore_component(self._component_name(host))
        logger.info(
            "Filter map resolved",
            extra={
                "host": host,
                "path": path,
                "parameters": len(page_map.params),
                "has_base_query": page_map.base_query is not None,
            },
        )
        if cached is not None:
            return replace(cached, base_query=page_map.base_query, source="cache")
        return page_map

    def _load_page(self, search_url: str) -> FilterMap:
        page_html = None
        try:
            response = self.http_client.fetch(
                search_url, {**PAGE_HEADERS, "Referer": self.listings_referer}
            )
            if not response.ok:
                raise ResolutionFailed(
                    f"status code is {response.status_code}",
                    str(response.header_summary()),
                )

            page_html = decode_body(response)
            extraction = self.extractor.extract(page_html)
            if not extraction.ok:
                raise ResolutionFailed(extraction.error, page_html)

            filter_map = build_filter_map(extraction.config)
            if filter_map is None:
                raise ResolutionFailed("no filter map in configuration", page_html)
            return filter_map

        except (requests.RequestException, PayloadDecodeError) as e:
            raise ResolutionFailed(str(e), page_html) from e

    def _component_name(self, host: str) -> str:
        return f"parameter_map_resolver:{host}"

    def _fallback(
        self, search_url: str, failure: ResolutionFailed, cached: Optional[FilterMap]
    ) -> FilterMap:
        if cached is not None:
            message = "Cannot read page query, using cached parameters without it"
        else:
            message = "Falling back to default filter map"

        logger.error(
            "Cannot extract filter map from the page",
            extra={
                "url": search_url,
                "reason": failure.reason,
                "content": (failure.content or "")[:MAX_LOGGED_CONTENT],
            },
        )
        get_error_tracker().record_error(
            component="parameter_map.resolver",
            category=ErrorCategory.RESOLUTION,
            severity=ErrorSeverity.LOW,
            message=f"{message}: {failure.reason}",
            exception=failure.__cause__ or failure,
            context={"url": search_url},
        )

        if cached is not None:
            # the page query stays unresolved so the next cycle retries it
            return replace(cached, base_query=None, source="cache")

        self.degradation.degrade_component(
            self._component_name(host_key(search_url)),
            failure.reason,
            "Using built-in default filter map",
            ErrorSeverity.LOW,
        )
        return self.default_filter_map()
