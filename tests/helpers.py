"""
Builders for marketplace payloads and HTTP responses used across tests.
"""

import gzip
import json

from kufar_notifier.components.http_client import HttpResponse

SEARCH_URL = (
    "https://re.kufar.by/l/minsk/kupit/kvartiru"
    "?cur=USD&prc=r%3A0%2C80000&rms=v.or%3A1%2C2&utm_source=ad"
)


def make_ad(ad_id=1001, **overrides):
    """Search API ``ads`` element."""
    ad = {
        "ad_id": ad_id,
        "ad_link": f"https://re.kufar.by/vi/{ad_id}",
        "subject": "2-комнатная квартира, Немига",
        "price_byn": "19500000",
        "price_usd": "6500000",
        "list_time": "2024-05-01T10:15:30Z",
        "company_ad": False,
        "phone": "375291234567",
        "images": [{"id": "123456789", "yams_storage": True}],
        "account_parameters": [{"p": "contact_person", "v": "Иван"}],
        "ad_parameters": [
            {"p": "rooms", "v": "2"},
            {"p": "address", "v": "Минск, ул. Немига 3"},
            {"p": "coordinates", "v": [27.5536, 53.9045]},
        ],
    }
    ad.update(overrides)
    return ad


def make_response(status_code=200, body=b"", headers=None, url="https://re.kufar.by/"):
    return HttpResponse(
        url=url,
        status_code=status_code,
        body=body,
        headers=headers or {"Content-Type": "application/json; charset=utf-8"},
    )


def gzip_json(payload) -> bytes:
    return gzip.compress(json.dumps(payload).encode("utf-8"))
