"""
Telegram bot handler for subscription management.

Users subscribe by sending a Kufar search link with their filters
preselected; ``/start`` shows the current link and ``/stop`` clears it.
Sessions are stored under ``"<chat_id>:<user_id>"`` keys in the same
store the sync loop reads.
"""

import asyncio
import functools
import re
from typing import Optional

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from ..services.store import SQLiteStore
from ..utils.logging import get_logger

logger = get_logger("telegram_bot_handler")

KUFAR_LINK_PATTERN = re.compile(r"https://(\w+)\.kufar\.by/\S*", re.IGNORECASE)

START_TEXT = "Please, send a link from the Kufar.by with preselected filters."
CURRENT_LINK_TEXT = "Current link is:\n\n{url}"
STOP_TEXT = (
    "Sorry if you were insulted by this bot, "
    "I've just tried to make this world a bit better."
)
LINK_UPDATED_TEXT = "Thanks, the link has been updated."


def session_key(chat_id, user_id) -> str:
    return f"{chat_id}:{user_id}"


def extract_kufar_link(text: Optional[str]) -> Optional[str]:
    """First Kufar link in ``text``, or None."""
    if not text:
        return None
    match = KUFAR_LINK_PATTERN.search(text)
    return match.group(0) if match else None


class TelegramBotHandler:
    """Handles Telegram bot commands that manage a chat's saved search link."""

    def __init__(self, bot_token: str, store: SQLiteStore, application: Optional[Application] = None):
        """
        Initialize Telegram bot handler.

        Args:
            bot_token: Telegram bot token
            store: Session store shared with the sync loop
            application: Prebuilt application, mainly for tests
        """
        self.bot_token = bot_token
        self.store = store
        self.application = application or Application.builder().token(bot_token).build()

        self.is_polling = False

        self._setup_handlers()

        logger.info("Telegram bot handler initialized")

    def _setup_handlers(self) -> None:
        """Setup message and command handlers."""
        self.application.add_handler(CommandHandler("start", self._handle_start))
        self.application.add_handler(CommandHandler("stop", self._handle_stop))

        self.application.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, self._handle_message)
        )

        logger.info("Telegram bot handlers configured")

    async def start_polling(self) -> None:
        """Start polling for messages from Telegram."""
        if self.is_polling:
            logger.warning("Bot is already polling")
            return

        try:
            self.is_polling = True
            logger.info("Starting Telegram bot polling...")

            await self.application.initialize()
            await self.application.start()
            await self.application.updater.start_polling()

            logger.info("Telegram bot polling started successfully")

        except Exception as e:
            logger.error(f"Error starting bot polling: {e}")
            self.is_polling = False
            raise

    async def stop_polling(self) -> None:
        """Stop polling for messages."""
        if not self.is_polling:
            return

        try:
            self.is_polling = False
            logger.info("Stopping Telegram bot polling...")

            if self.application.updater:
                await self.application.updater.stop()

            await self.application.stop()
            await self.application.shutdown()

            logger.info("Telegram bot polling stopped")

        except Exception as e:
            logger.error(f"Error stopping bot polling: {e}")

    async def _run_store(self, func, *args):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    def _key_for(self, update: Update) -> Optional[str]:
        if not update.effective_user or not update.effective_chat:
            logger.warning("Received update without user or chat information")
            return None
        return session_key(update.effective_chat.id, update.effective_user.id)

    async def _handle_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /start command."""
        key = self._key_for(update)
        if key is None:
            return

        subscriber = await self._run_store(self.store.get_subscriber, key)
        if subscriber is not None and subscriber.is_active:
            text = CURRENT_LINK_TEXT.format(url=subscriber.url)
        else:
            text = START_TEXT

        await update.message.reply_text(text, disable_web_page_preview=True)

    async def _handle_stop(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /stop command."""
        key = self._key_for(update)
        if key is None:
            return

        await self._run_store(self.store.save_subscriber_url, key, None)
        logger.info("Subscription stopped", extra={"session": key})

        await update.message.reply_text(STOP_TEXT)

    async def _handle_message(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Save a Kufar link; other messages are ignored."""
        if not update.message or not update.message.text:
            return

        url = extract_kufar_link(update.message.text)
        if url is None:
            return

        key = self._key_for(update)
        if key is None:
            return

        await self._run_store(self.store.save_subscriber_url, key, url)
        logger.info("Subscription link updated", extra={"session": key, "url": url})

        await update.message.reply_text(LINK_UPDATED_TEXT)

    async def test_connection(self) -> bool:
        """
        Test connection to Telegram Bot API.

        Returns:
            True if connection test successful
        """
        try:
            bot_info = await self.application.bot.get_me()
            logger.info(f"Bot connection test successful. Bot: @{bot_info.username}")
            return True

        except Exception as e:
            logger.error(f"Bot connection test failed: {e}")
            return False

    def get_bot_info(self) -> dict:
        return {
            "is_polling": self.is_polling,
            "bot_token_valid": bool(self.bot_token and len(self.bot_token) > 10),
        }
