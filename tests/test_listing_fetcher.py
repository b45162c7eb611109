"""
Unit tests for the listing fetcher and the HTTP transport it uses.
"""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from kufar_notifier.components.http_client import (
    MarketplaceHttpClient,
    PayloadDecodeError,
    decode_body,
    decompress_body,
)
from kufar_notifier.components.listing_fetcher import ListingFetcher
from kufar_notifier.models.parameter_map import ApiQuery

from helpers import gzip_json, make_ad, make_response

REFERER = "https://re.kufar.by/l/minsk?cur=USD"


@pytest.fixture
def api_query():
    return ApiQuery(
        base_url="https://cre-api.kufar.by/ads-search/v1/engine/v1/search/rendered-paginated",
        params=[("cur", "USD"), ("size", "30")],
        referer=REFERER,
    )


class TestBodyDecoding:
    """Test transparent decompression and charset decoding."""

    def test_plain_body_passes_through(self):
        assert decompress_body(b'{"ads": []}') == b'{"ads": []}'

    def test_gzip_body_is_decompressed(self):
        assert json.loads(decompress_body(gzip_json({"ads": []}))) == {"ads": []}

    def test_zlib_body_is_decompressed(self):
        import zlib

        assert decompress_body(zlib.compress(b'{"ads": []}')) == b'{"ads": []}'

    def test_corrupt_gzip_raises(self):
        with pytest.raises(PayloadDecodeError):
            decompress_body(b"\x1f\x8b\x08garbage")

    def test_charset_from_content_type(self):
        response = make_response(
            body="квартира".encode("cp1251"),
            headers={"Content-Type": "text/html; charset=windows-1251"},
        )

        assert decode_body(response) == "квартира"

    def test_undecodable_body_raises(self):
        with pytest.raises(PayloadDecodeError):
            decode_body(make_response(body=b"\xff\xfe\xfa"))


class TestMarketplaceHttpClient:
    """Test the GET wrapper."""

    @patch("requests.Session.get")
    def test_returns_response_without_raising(self, mock_get):
        mock_response = Mock()
        mock_response.status_code = 404
        mock_response.content = b"not found"
        mock_response.headers = {"Content-Type": "text/plain"}
        mock_get.return_value = mock_response

        response = MarketplaceHttpClient(timeout=5).fetch("https://re.kufar.by/l", {"a": "b"})

        assert response.status_code == 404
        assert response.ok is False
        assert response.body == b"not found"
        mock_get.assert_called_once_with("https://re.kufar.by/l", headers={"a": "b"}, timeout=5)

    def test_header_summary_keeps_interesting_headers(self):
        response = make_response(
            status_code=500,
            headers={"Content-Type": "text/html", "Set-Cookie": "secret", "Server": "nginx"},
        )

        assert response.header_summary() == {"content-type": "text/html", "server": "nginx"}


class TestListingFetcher:
    """Test cases for ListingFetcher."""

    def setup_method(self):
        self.http_client = Mock()
        self.fetcher = ListingFetcher(self.http_client)

    def test_fetches_listings_in_response_order(self, api_query):
        self.http_client.fetch.return_value = make_response(
            body=json.dumps({"ads": [make_ad(1), make_ad(2), make_ad(3)]}).encode()
        )

        listings = self.fetcher.fetch(api_query, REFERER)

        assert [listing.kufar_id for listing in listings] == ["1", "2", "3"]

    def test_sends_referer_and_static_headers(self, api_query):
        self.http_client.fetch.return_value = make_response(body=b'{"ads": []}')

        self.fetcher.fetch(api_query, REFERER)

        url, headers = self.http_client.fetch.call_args[0]
        assert url == api_query.url
        assert headers["referer"] == REFERER
        assert headers["x-segmentation"].startswith("routing=web_re")

    def test_gzip_payload_is_decoded(self, api_query):
        self.http_client.fetch.return_value = make_response(
            body=gzip_json({"ads": [make_ad(7)]})
        )

        listings = self.fetcher.fetch(api_query, REFERER)

        assert len(listings) == 1
        assert listings[0].kufar_id == "7"

    @pytest.mark.parametrize("status_code", [400, 403, 429, 500, 502])
    def test_non_200_yields_empty(self, api_query, status_code):
        self.http_client.fetch.return_value = make_response(
            status_code=status_code, body=b'{"ads": [{"ad_id": 1}]}'
        )

        assert self.fetcher.fetch(api_query, REFERER) == []

    def test_network_error_yields_empty(self, api_query):
        self.http_client.fetch.side_effect = requests.Timeout("timed out")

        assert self.fetcher.fetch(api_query, REFERER) == []

    def test_malformed_json_yields_empty(self, api_query):
        self.http_client.fetch.return_value = make_response(body=b"<html>oops</html>")

        assert self.fetcher.fetch(api_query, REFERER) == []

    def test_missing_ads_field_yields_empty(self, api_query):
        self.http_client.fetch.return_value = make_response(body=b'{"total": 0}')

        assert self.fetcher.fetch(api_query, REFERER) == []

    def test_non_object_payload_yields_empty(self, api_query):
        self.http_client.fetch.return_value = make_response(body=b"[1, 2, 3]")

        assert self.fetcher.fetch(api_query, REFERER) == []

    def test_malformed_ads_are_skipped(self, api_query):
        ads = [make_ad(1), {"subject": "no id"}, make_ad(3, ad_link=None), "junk", make_ad(4)]
        self.http_client.fetch.return_value = make_response(
            body=json.dumps({"ads": ads}).encode()
        )

        listings = self.fetcher.fetch(api_query, REFERER)

        assert [listing.kufar_id for listing in listings] == ["1", "4"]
