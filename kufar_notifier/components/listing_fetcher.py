"""
Listing retrieval from the marketplace search API.
"""

import json
import logging
from typing import List, Optional

import requests

from ..models.listing import Listing
from ..models.parameter_map import ApiQuery
from ..utils.error_handling import ErrorCategory, ErrorSeverity, get_error_tracker
from .http_client import MarketplaceHttpClient, PayloadDecodeError, decode_body

logger = logging.getLogger("kufar_notifier.listing.fetcher")

API_HEADERS = {
    "accept": "*/*",
    "accept-encoding": "gzip, deflate",
    "accept-language": "en-US,en;q=0.9,ru;q=0.8,fr;q=0.7,de;q=0.6",
    "cache-control": "no-cache",
    "content-type": "application/json",
    "pragma": "no-cache",
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
    "x-segmentation": "routing=web_re;platform=web;application=ad_view",
}


class ListingFetcher:
    """Executes search API queries and decodes the listings they return."""

    def __init__(self, http_client: MarketplaceHttpClient):
        self.http_client = http_client

    def fetch(self, api_query: ApiQuery, referer_url: str) -> List[Listing]:
        """
        Run ``api_query`` and return its listings in response order.

        Any failure (network, non-200, undecodable body) is logged and
        yields an empty list so the subscriber is only skipped this cycle.
        """
        url = api_query.url
        headers = {**API_HEADERS, "referer": referer_url}

        try:
            response = self.http_client.fetch(url, headers)
        except requests.RequestException as e:
            self._record_failure(url, ErrorCategory.NETWORK, f"Request failed: {e}", e)
            return []

        if not response.ok:
            logger.error(
                f"Status code is {response.status_code} for {url}, "
                f"response headers: {response.header_summary()}"
            )
            self._record_failure(
                url, ErrorCategory.NETWORK, f"Status code is {response.status_code}"
            )
            return []

        try:
            payload = json.loads(decode_body(response))
        except (PayloadDecodeError, ValueError) as e:
            self._record_failure(url, ErrorCategory.PARSING, f"Cannot decode listings: {e}", e)
            return []

        ads = payload.get("ads") if isinstance(payload, dict) else None
        if not isinstance(ads, list):
            logger.info(f"No ads in response for {url}")
            return []

        listings = []
        for ad in ads:
            try:
                listings.append(Listing.from_api(ad))
            except ValueError as e:
                logger.warning(f"Skipping malformed ad from {url}: {e}")

        logger.info(f"Fetched {len(listings)} listings from {url}")
        return listings

    def _record_failure(
        self,
        url: str,
        category: ErrorCategory,
        message: str,
        exception: Optional[Exception] = None,
    ) -> None:
        logger.error(f"Can't get the items by the url = {url}: {message}")
        get_error_tracker().record_error(
            component="listing.fetcher",
            category=category,
            severity=ErrorSeverity.MEDIUM,
            message=message,
            exception=exception,
            context={"url": url},
        )
