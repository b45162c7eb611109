"""
Listing data models for the Kufar notifier.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from dateutil import parser as date_parser


def _parameters_by_name(entries: Any) -> Dict[str, Any]:
    """Fold a marketplace ``[{"p": name, "v": value}, ...]`` list into a dict."""
    if not isinstance(entries, list):
        return {}

    result = {}
    for entry in entries:
        if isinstance(entry, dict) and "p" in entry:
            result[entry["p"]] = entry.get("v")
    return result


def _minor_units(value: Any) -> int:
    """Parse a price in minor units; anything unparseable counts as zero."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _coordinates(value: Any) -> Optional[Tuple[float, float]]:
    """
    Parse coordinates into a (latitude, longitude) pair.

    The marketplace sends ``[longitude, latitude]``.
    """
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    try:
        longitude, latitude = float(value[0]), float(value[1])
    except (TypeError, ValueError):
        return None
    return latitude, longitude


@dataclass
class ListingImage:
    """Image reference attached to a listing."""

    id: str
    yams_storage: bool = False


@dataclass
class Listing:
    """A classified ad as returned by the search API."""

    kufar_id: str
    ad_link: str
    subject: Optional[str] = None
    price_byn: int = 0
    price_usd: int = 0
    rooms: Optional[str] = None
    list_time: Optional[datetime] = None
    images: List[ListingImage] = field(default_factory=list)
    contact_name: Optional[str] = None
    company_ad: bool = False
    phone: Optional[str] = None
    coordinates: Optional[Tuple[float, float]] = None
    address: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, ad: Dict[str, Any]) -> "Listing":
        """
        Build a listing from one element of the search API ``ads`` array.

        Raises:
            ValueError: If the ad has no id or link.
        """
        if not isinstance(ad, dict):
            raise ValueError("Listing payload must be an object")

        if ad.get("ad_id") in (None, ""):
            raise ValueError("Listing has no ad_id")

        ad_parameters = _parameters_by_name(ad.get("ad_parameters"))
        account_parameters = _parameters_by_name(ad.get("account_parameters"))

        list_time = None
        if ad.get("list_time"):
            try:
                list_time = date_parser.isoparse(str(ad["list_time"]))
            except ValueError:
                list_time = None

        images = []
        for image in ad.get("images") or []:
            if isinstance(image, dict) and image.get("id"):
                images.append(
                    ListingImage(
                        id=str(image["id"]),
                        yams_storage=bool(image.get("yams_storage", False)),
                    )
                )

        rooms = ad.get("rooms")
        if rooms is None:
            rooms = ad_parameters.get("rooms")

        raw = dict(ad)
        raw["kufar_id"] = str(raw.pop("ad_id"))

        listing = cls(
            kufar_id=raw["kufar_id"],
            ad_link=_text(ad.get("ad_link")) or "",
            subject=_text(ad.get("subject")),
            price_byn=_minor_units(ad.get("price_byn")),
            price_usd=_minor_units(ad.get("price_usd")),
            rooms=_text(rooms),
            list_time=list_time,
            images=images,
            contact_name=_text(
                account_parameters.get("contact_person")
                or account_parameters.get("name")
            ),
            company_ad=bool(ad.get("company_ad", False)),
            phone=_text(ad.get("phone")),
            coordinates=_coordinates(
                ad.get("coordinates") or ad_parameters.get("coordinates")
            ),
            address=_text(ad_parameters.get("address") or ad.get("address")),
            raw=raw,
        )
        listing.validate()
        return listing

    @property
    def cover_image(self) -> Optional[ListingImage]:
        return self.images[0] if self.images else None

    def to_document(self) -> Dict[str, Any]:
        """Persisted form of the listing, keyed by ``kufar_id``."""
        document = dict(self.raw)
        document["kufar_id"] = self.kufar_id
        return document

    def validate(self) -> bool:
        """Validate the listing data."""
        if not self.kufar_id or not self.kufar_id.strip():
            raise ValueError("Listing id cannot be empty")

        if not self.ad_link:
            raise ValueError(f"Listing {self.kufar_id} has no ad link")

        if self.price_byn < 0 or self.price_usd < 0:
            raise ValueError("Price cannot be negative")

        return True
