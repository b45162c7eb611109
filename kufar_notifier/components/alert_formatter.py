"""
Alert formatting for listing notifications.

Turns a listing into the HTML message, cover image and map point that the
Telegram dispatcher sends.
"""

import html
import re
from datetime import datetime
from typing import List, Optional

from dateutil import tz

from ..models.alert import FormattedAlert, Venue
from ..models.listing import Listing, ListingImage

PHONE_PATTERN = re.compile(r"(375)(29|25|33|44)(\d{3})(\d{2})(\d{2})")

YAMS_IMAGE_URL = "https://yams.kufar.by/api/v1/kufar-ads/images/{type}/{name}?rule=gallery"
LEGACY_IMAGE_URL = "https://cache1.kufar.by/gallery/{type}/{name}"


def format_phone(phone: str) -> str:
    """
    Rewrite a Belarusian mobile number as ``+375 (29) 123-45-67``.

    Anything that does not match the national pattern is returned as is.
    """
    return PHONE_PATTERN.sub(r"+\1 (\2) \3-\4-\5", phone.strip(), count=1)


def format_price(minor_units: int) -> str:
    """Render an amount stored in minor units, e.g. 12345 -> '123.45'."""
    sign = "-" if minor_units < 0 else ""
    whole, cents = divmod(abs(int(minor_units)), 100)
    return f"{sign}{whole}.{cents:02d}"


def format_timestamp(moment: datetime, timezone_name: str = "Europe/Minsk") -> str:
    """Render a timestamp as ``M/D/YYYY, h:mm:ss AM`` in the given timezone."""
    zone = tz.gettz(timezone_name)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=tz.UTC)
    local = moment.astimezone(zone)

    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    return (
        f"{local.month}/{local.day}/{local.year}, "
        f"{hour}:{local.minute:02d}:{local.second:02d} {meridiem}"
    )


def image_url(image: ListingImage) -> str:
    """Public URL of a listing image; the storage flag selects the host."""
    image_type = image.id[:2]
    name = f"{image.id}.jpg"
    template = YAMS_IMAGE_URL if image.yams_storage else LEGACY_IMAGE_URL
    return template.format(type=image_type, name=name)


class AlertFormatter:
    """Formats listings into notification messages."""

    def __init__(self, timezone_name: str = "Europe/Minsk"):
        """
        Initialize the alert formatter.

        Args:
            timezone_name: Timezone used to display listing creation times
        """
        self.timezone_name = timezone_name

    def format_alert(self, listing: Listing) -> FormattedAlert:
        """
        Format a listing into an alert.

        Args:
            listing: The listing to format

        Returns:
            FormattedAlert: Alert ready for delivery
        """
        title = listing.subject or f"Объявление {listing.kufar_id}"

        cover = listing.cover_image
        alert = FormattedAlert(
            title=title,
            message=self._create_message(listing),
            link_url=listing.ad_link,
            photo_url=image_url(cover) if cover else None,
            venue=self._create_venue(listing, title),
        )

        alert.validate()
        return alert

    def _create_message(self, listing: Listing) -> str:
        lines: List[str] = []

        if listing.subject:
            lines.append(f"<b>{html.escape(listing.subject)}</b>")
            lines.append("")

        lines.append(
            f"💵 ${format_price(listing.price_usd)}, "
            f"или {format_price(listing.price_byn)} руб."
        )
        if listing.rooms:
            lines.append(f"🚪 Комнаты: {html.escape(listing.rooms)}")
        if listing.list_time:
            lines.append(f"🌟 {format_timestamp(listing.list_time, self.timezone_name)}")
        lines.append("")

        contact = html.escape(listing.contact_name or "Без имени")
        lines.append(f"👤 {contact}" + (" ⚠️ Агент" if listing.company_ad else ""))
        lines.extend(self._phone_lines(listing.phone))

        return "\n".join(lines)

    def _phone_lines(self, phone: Optional[str]) -> List[str]:
        if not phone:
            return ["📵 Телефон не указан"]

        return [
            f"📱 {html.escape(format_phone(number))}"
            for number in phone.split(",")
            if number.strip()
        ] or ["📵 Телефон не указан"]

    def _create_venue(self, listing: Listing, title: str) -> Optional[Venue]:
        if listing.coordinates is None:
            return None

        latitude, longitude = listing.coordinates
        return Venue(
            latitude=latitude,
            longitude=longitude,
            title=title,
            address=listing.address or title,
        )
