"""
Message dispatching components for the Kufar notifier.

This module delivers formatted listing alerts through the Telegram Bot API
with retry logic. A recipient that blocked the bot is reported as
forbidden and never retried.
"""

import time
from abc import abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional
import logging
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..interfaces import IMessageDispatcher
from ..models.alert import FormattedAlert
from ..models.delivery import DeliveryResult, DeliveryStatus
from ..models.listing import Listing
from .alert_formatter import AlertFormatter


logger = logging.getLogger("kufar_notifier.message.dispatcher")

FORBIDDEN_ERROR_CODE = 403
MAX_ERROR_MESSAGE_LENGTH = 500
VIEW_BUTTON_TEXT = "View"


class TelegramApiError(Exception):
    """Telegram rejected a request."""

    def __init__(self, message: str, error_code: Optional[int] = None):
        super().__init__(message)
        self.error_code = error_code

    @property
    def retriable(self) -> bool:
        return self.error_code is None or self.error_code == 429 or self.error_code >= 500


class TelegramForbiddenError(TelegramApiError):
    """The recipient blocked the bot or the chat no longer exists."""

    def __init__(self, message: str):
        super().__init__(message, FORBIDDEN_ERROR_CODE)

    @property
    def retriable(self) -> bool:
        return False


def _truncate(message: str) -> str:
    if len(message) <= MAX_ERROR_MESSAGE_LENGTH:
        return message
    return message[: MAX_ERROR_MESSAGE_LENGTH - 3] + "..."


class BaseMessageDispatcher(IMessageDispatcher):
    """Base class for message dispatchers with common retry logic."""

    def __init__(self, max_retries: int = 2, retry_delay: float = 1.0):
        """
        Initialize base dispatcher.

        Args:
            max_retries: Maximum number of retry attempts
            retry_delay: Initial delay between retries in seconds
        """
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry configuration."""
        session = requests.Session()

        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            # sends are not idempotent; only the outer loop retries them
            allowed_methods=["HEAD", "GET"],
            raise_on_status=False,
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        return session

    def send_alert(self, recipient_id: str, alert: FormattedAlert) -> DeliveryResult:
        """
        Send alert with retry logic.

        Args:
            recipient_id: Chat that receives the alert
            alert: Formatted alert to send

        Returns:
            DeliveryResult: Result of delivery attempt
        """
        start_time = datetime.now()
        last_error = None
        last_code = None

        for attempt in range(self.max_retries + 1):
            try:
                logger.info(
                    f"Attempting to send alert to {recipient_id} "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )

                self._send_message(recipient_id, alert)

                delivery_time = datetime.now()
                logger.info(
                    f"Alert sent to {recipient_id} in "
                    f"{(delivery_time - start_time).total_seconds():.2f}s"
                )
                result = DeliveryResult(
                    success=True, delivery_time=delivery_time, error_message=None
                )
                result.validate()
                return result

            except TelegramForbiddenError as e:
                logger.warning(f"Recipient {recipient_id} blocked the bot: {e}")
                return self._failure(
                    str(e), DeliveryStatus.FORBIDDEN, FORBIDDEN_ERROR_CODE
                )

            except requests.ReadTimeout as e:
                # the message may have been delivered; resend next cycle at most
                last_error = str(e)
                logger.warning(f"Send attempt {attempt + 1} timed out: {last_error}")
                break

            except (TelegramApiError, requests.RequestException, ValueError) as e:
                last_error = str(e)
                last_code = getattr(e, "error_code", None)
                logger.warning(f"Send attempt {attempt + 1} failed: {last_error}")

                if isinstance(e, TelegramApiError) and not e.retriable:
                    break

                # Don't sleep after the last attempt
                if attempt < self.max_retries:
                    sleep_time = self.retry_delay * (2**attempt)
                    logger.info(f"Retrying in {sleep_time:.1f} seconds...")
                    time.sleep(sleep_time)

        error_msg = f"Failed to deliver to {recipient_id}. Last error: {last_error}"
        logger.error(error_msg)
        return self._failure(error_msg, DeliveryStatus.FAILED, last_code)

    def _failure(
        self, message: str, status: DeliveryStatus, error_code: Optional[int]
    ) -> DeliveryResult:
        result = DeliveryResult(
            success=False,
            delivery_time=datetime.now(),
            error_message=_truncate(message),
            status=status,
            error_code=error_code,
        )
        result.validate()
        return result

    @abstractmethod
    def _send_message(self, recipient_id: str, alert: FormattedAlert) -> None:
        """
        Platform-specific message sending implementation.

        Raises:
            TelegramForbiddenError: If the recipient can no longer be messaged
            TelegramApiError: If the platform rejected the message
        """
        pass

    @abstractmethod
    def test_connection(self) -> bool:
        """Test connection to the messaging platform."""
        pass


class TelegramDispatcher(BaseMessageDispatcher):
    """Telegram Bot API message dispatcher."""

    def __init__(
        self,
        bot_token: str,
        formatter: Optional[AlertFormatter] = None,
        api_base_url: str = "https://api.telegram.org",
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: int = 30,
    ):
        """
        Initialize Telegram dispatcher.

        Args:
            bot_token: Telegram bot token
            formatter: Formatter turning listings into alerts
            api_base_url: Bot API root, overridable for local Bot API servers
            max_retries: Maximum number of retry attempts
            retry_delay: Initial delay between retries in seconds
            timeout: Per-request timeout in seconds
        """
        super().__init__(max_retries, retry_delay)
        self.bot_token = bot_token
        self.formatter = formatter or AlertFormatter()
        self.base_url = f"{api_base_url.rstrip('/')}/bot{bot_token}"
        self.timeout = timeout

    def dispatch(self, recipient_id: str, listing: Listing) -> DeliveryResult:
        """Format ``listing`` and deliver it to ``recipient_id``."""
        try:
            alert = self.formatter.format_alert(listing)
        except ValueError as e:
            logger.error(f"Cannot format listing {listing.kufar_id}: {e}")
            return self._failure(
                f"Cannot format listing: {e}", DeliveryStatus.FAILED, None
            )

        return self.send_alert(recipient_id, alert)

    def _send_message(self, recipient_id: str, alert: FormattedAlert) -> None:
        """Send the listing message, then its map point if it has one."""
        reply_markup = {
            "inline_keyboard": [[{"text": VIEW_BUTTON_TEXT, "url": alert.link_url}]]
        }

        if alert.photo_url and alert.fits_caption:
            self._call(
                "sendPhoto",
                {
                    "chat_id": recipient_id,
                    "photo": alert.photo_url,
                    "caption": alert.message,
                    "parse_mode": "HTML",
                    "reply_markup": reply_markup,
                },
            )
        else:
            self._call(
                "sendMessage",
                {
                    "chat_id": recipient_id,
                    "text": alert.message,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": alert.photo_url is None,
                    "reply_markup": reply_markup,
                },
            )

        if alert.venue is not None:
            self._send_venue(recipient_id, alert, reply_markup)

        logger.info(f"Message sent to Telegram chat {recipient_id}")

    def _send_venue(
        self, recipient_id: str, alert: FormattedAlert, reply_markup: Dict[str, Any]
    ) -> None:
        venue = alert.venue
        try:
            self._call(
                "sendVenue",
                {
                    "chat_id": recipient_id,
                    "latitude": venue.latitude,
                    "longitude": venue.longitude,
                    "title": venue.title,
                    "address": venue.address,
                    "reply_markup": reply_markup,
                },
            )
        except TelegramForbiddenError:
            raise
        except (TelegramApiError, requests.RequestException) as e:
            # the listing itself was delivered; a lost map point is not resent
            logger.warning(f"Venue for {alert.link_url} not sent to {recipient_id}: {e}")

    def _call(self, method: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.session.post(
            f"{self.base_url}/{method}", json=payload, timeout=self.timeout
        )

        try:
            result = response.json()
        except ValueError:
            result = {}
        if not isinstance(result, dict):
            result = {}

        error_code = result.get("error_code", response.status_code)
        description = result.get("description") or f"HTTP {response.status_code}"

        if response.status_code == FORBIDDEN_ERROR_CODE or error_code == FORBIDDEN_ERROR_CODE:
            raise TelegramForbiddenError(f"Telegram API error: {description}")

        if response.status_code != 200 or not result.get("ok"):
            raise TelegramApiError(f"Telegram API error: {description}", error_code)

        return result

    def test_connection(self) -> bool:
        """Test connection to Telegram Bot API."""
        try:
            url = f"{self.base_url}/getMe"
            response = self.session.get(url, timeout=10)
            response.raise_for_status()

            result = response.json()
            if not isinstance(result, dict):
                result = {}
            if result.get("ok"):
                bot_info = result.get("result", {})
                logger.info(
                    f"Connected to Telegram bot: {bot_info.get('username', 'Unknown')}"
                )
                return True
            else:
                logger.error(
                    f"Telegram API error: {result.get('description', 'Unknown error')}"
                )
                return False

        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to connect to Telegram: {e}")
            return False
