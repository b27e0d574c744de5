"""Telegram channel implementation using python-telegram-bot."""

from __future__ import annotations

import asyncio
import base64

from loguru import logger
from telegram import BotCommand, LinkPreviewOptions, Message, PhotoSize, Update
from telegram.constants import ChatAction
from telegram.error import BadRequest, RetryAfter, TelegramError, TimedOut
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from kagami.channels.album import MediaGroupBuffer
from kagami.config.schema import Config
from kagami.delivery.coordinator import DeliveryReport, MessageSender
from kagami.delivery.modes import RenderMode
from kagami.errors import DeliveryError, FormatError, TransportError
from kagami.llm.client import LLMClient, LLMClientError


# Recoverable network error patterns
RECOVERABLE_ERRORS = {
    "Timed out",
    "Connection reset",
    "Connection refused",
    "Connection aborted",
    "Network is unreachable",
    "Host is unreachable",
    "Name or service not known",
    "Temporary failure in name resolution",
    "Connect timeout",
    "Read timeout",
    "Write timeout",
    "Socket timeout",
}

# BadRequest descriptions caused by the markup rather than the request
FORMAT_ERRORS = (
    "can't parse entities",
    "can't parse message text",
    "can't find end of",
    "unsupported start tag",
    "unclosed start tag",
)

START_TEXT = (
    "Hi! I'm Kagami, your virtual mirror. What can I do for you today?\n\n"
    "You can send me:\n"
    "• Plain text to chat\n"
    "• A photo with a caption for a multimodal chat\n"
    "• An album of photos to analyse several images at once"
)

HELP_TEXT = (
    "🤖 *Kagami commands:*\n\n"
    "/start - Start chatting with Kagami\n"
    "/help - Show this help\n"
    "/l - Fetch the latest reply if something went wrong\n\n"
    "📝 *Usage:*\n"
    "• Send a text message to chat\n"
    "• Send a photo with a caption for multimodal chat\n"
    "• Send an album to analyse multiple images"
)

PHOTO_PROMPT = "What do you see in this image?"
ALBUM_PROMPT = "What do you see in these {count} images?"
NO_LATEST_TEXT = "There is no recent message available."
SORRY_TEXT = "Sorry, something went wrong while processing your request. Please try again later."


def _is_recoverable_error(err: Exception) -> bool:
    """Check if error is recoverable (network-related) and worth retrying."""
    if isinstance(err, BadRequest):
        return False
    if isinstance(err, (TimedOut, RetryAfter)):
        return True
    err_str = str(err).lower()
    # Check for recoverable Telegram error codes in message
    if isinstance(err, TelegramError):
        if any(code in err_str for code in ["429", "500", "502", "503", "504"]):
            return True
    # Check by error message patterns
    for pattern in RECOVERABLE_ERRORS:
        if pattern.lower() in err_str:
            return True
    return False


def _is_format_error(err: Exception) -> bool:
    """Check if Telegram rejected the message because of its markup."""
    if not isinstance(err, BadRequest):
        return False
    err_str = str(err).lower()
    return any(pattern in err_str for pattern in FORMAT_ERRORS)


async def _send_with_retry(bot, chat_id: int, text: str, **kwargs) -> None:
    """Send message with retry logic and exponential backoff."""
    max_retries = 3
    base_delay = 1.0  # seconds

    for attempt in range(max_retries):
        try:
            await bot.send_message(chat_id=chat_id, text=text, **kwargs)
            return
        except Exception as e:
            if not _is_recoverable_error(e) or attempt == max_retries - 1:
                raise
            delay = base_delay * (2 ** attempt)  # Exponential backoff
            logger.warning(f"Telegram send failed (attempt {attempt + 1}/{max_retries}), retrying in {delay}s: {e}")
            await asyncio.sleep(delay)


class TelegramTransport:
    """Sends to one Telegram chat, mapping errors onto the delivery taxonomy."""

    def __init__(self, bot, chat_id: int, timeout: float = 30.0):
        self.bot = bot
        self.chat_id = chat_id
        self.timeout = timeout

    async def send(self, text: str, mode: RenderMode) -> None:
        kwargs = {
            "link_preview_options": LinkPreviewOptions(is_disabled=True),
            "read_timeout": self.timeout,
            "write_timeout": self.timeout,
        }
        if mode.parse_mode:
            kwargs["parse_mode"] = mode.parse_mode
        try:
            await _send_with_retry(self.bot, chat_id=self.chat_id, text=text, **kwargs)
        except Exception as e:
            if _is_format_error(e):
                raise FormatError(str(e)) from e
            raise TransportError(str(e)) from e

    async def send_typing(self) -> None:
        await self.bot.send_chat_action(chat_id=self.chat_id, action=ChatAction.TYPING)


class TelegramChannel:
    """
    Telegram channel using long polling.

    Simple and reliable - no webhook/public IP needed.
    """

    name = "telegram"

    # Commands registered with Telegram's command menu
    BOT_COMMANDS = [
        BotCommand("start", "Start the bot"),
        BotCommand("help", "Show available commands"),
        BotCommand("l", "Resend the latest reply"),
    ]

    def __init__(self, config: Config, llm: LLMClient):
        self.config = config
        self.llm = llm
        self._app: Application | None = None
        self._running = False
        self._typing_tasks: dict[int, asyncio.Task] = {}  # chat_id -> typing loop task
        self._albums: MediaGroupBuffer[Message] = MediaGroupBuffer(
            self._on_album, wait=config.delivery.album_wait,
        )

    async def start(self) -> None:
        """Start the Telegram bot with long polling."""
        tg = self.config.telegram
        if not tg.token:
            logger.error("Telegram bot token not configured")
            return

        self._running = True

        builder = Application.builder().token(tg.token)
        if tg.proxy:
            builder = builder.proxy(tg.proxy).get_updates_proxy(tg.proxy)
        self._app = builder.build()

        # Handlers in one group: the first matching handler wins
        self._app.add_handler(CommandHandler("start", self._on_start))
        self._app.add_handler(CommandHandler("help", self._on_help))
        self._app.add_handler(CommandHandler("l", self._on_latest))
        self._app.add_handler(MessageHandler(filters.COMMAND, self._on_unknown_command))
        self._app.add_handler(MessageHandler(filters.PHOTO, self._on_photo))
        self._app.add_handler(MessageHandler(filters.TEXT, self._on_text))
        self._app.add_handler(MessageHandler(filters.ALL, self._on_unsupported))

        logger.info("Starting Telegram bot (polling mode)...")

        await self._app.initialize()
        await self._app.start()

        bot_info = await self._app.bot.get_me()
        logger.info(f"Telegram bot @{bot_info.username} connected")

        try:
            await self._app.bot.set_my_commands(self.BOT_COMMANDS)
            logger.debug("Telegram bot commands registered")
        except Exception as e:
            logger.warning(f"Failed to register bot commands: {e}")

        await self._app.updater.start_polling(
            allowed_updates=["message"],
            drop_pending_updates=True,  # Ignore old messages on startup
        )

        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        self._running = False

        for chat_id in list(self._typing_tasks):
            await self.stop_typing(chat_id)
        await self._albums.aclose()

        if self._app:
            logger.info("Stopping Telegram bot...")
            await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
            self._app = None

    async def deliver(self, chat_id: int, text: str) -> DeliveryReport | None:
        """Deliver a reply through the split/repair/fallback pipeline."""
        if not self._app:
            logger.warning("Telegram bot not running")
            return None

        await self.stop_typing(chat_id)
        sender = MessageSender(TelegramTransport(self._app.bot, chat_id), self.config.delivery)
        try:
            report = await sender.send_long(text)
        except DeliveryError as e:
            logger.error(f"Error sending Telegram message to {chat_id}: {e}")
            return None

        logger.info(f"Sent reply to {chat_id} ({report.status.value}, {report.total} chunks): {text[:100]!r}")
        return report

    def is_allowed(self, update: Update) -> bool:
        allow_from = self.config.telegram.allow_from
        user = update.effective_user
        if not allow_from:
            return True
        if user is None:
            return False
        return str(user.id) in allow_from or (user.username is not None and user.username in allow_from)

    # -- handlers -------------------------------------------------------------

    async def _on_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /start command."""
        if not update.message or not self.is_allowed(update):
            return
        await self._reply_plain(update.message.chat_id, START_TEXT)

    async def _on_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /help command."""
        if not update.message or not self.is_allowed(update):
            return
        await self.deliver(update.message.chat_id, HELP_TEXT)

    async def _on_latest(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle /l command - resend the latest assistant message."""
        if not update.message or not self.is_allowed(update):
            return
        chat_id = update.message.chat_id
        logger.info(f"Resend latest message requested by {chat_id}")

        await self.start_typing(chat_id)
        try:
            latest = await self.llm.latest()
        except LLMClientError as e:
            logger.error(f"Error fetching latest message: {e}")
            await self.stop_typing(chat_id)
            await self._reply_plain(chat_id, SORRY_TEXT)
            return

        if not latest:
            await self.stop_typing(chat_id)
            await self._reply_plain(chat_id, NO_LATEST_TEXT)
            return

        await self._reply_plain(chat_id, "Latest message:")
        await self.deliver(chat_id, latest)

    async def _on_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle plain text messages."""
        if not update.message or not update.message.text or not self.is_allowed(update):
            return
        message = update.message
        chat_id = message.chat_id
        logger.info(f"Message from {chat_id}: {message.text[:100]!r}")

        await self.start_typing(chat_id)
        try:
            reply = await self.llm.chat(message.text)
        except LLMClientError as e:
            logger.error(f"Error sending message to LLM API: {e}")
            await self._send_latest_fallback(chat_id)
            return
        await self.deliver(chat_id, reply)

    async def _on_photo(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle a photo, or buffer it when it belongs to an album."""
        if not update.message or not update.message.photo or not self.is_allowed(update):
            return
        message = update.message
        chat_id = message.chat_id

        if message.media_group_id:
            self._albums.add(f"{chat_id}:{message.media_group_id}", message)
            return

        logger.info(f"Photo message from {chat_id}")
        await self.start_typing(chat_id)
        try:
            image = await self._download_photo(message.photo[-1])
            reply = await self.llm.chat(message.caption or PHOTO_PROMPT, images=[image])
        except (LLMClientError, TelegramError) as e:
            logger.error(f"Error processing photo message: {e}")
            await self.stop_typing(chat_id)
            await self._reply_plain(chat_id, SORRY_TEXT)
            return
        await self.deliver(chat_id, reply)

    async def _on_album(self, key: str, messages: list[Message]) -> None:
        """Process a complete album collected by the media group buffer."""
        chat_id = messages[0].chat_id
        await self.start_typing(chat_id)
        try:
            images = [await self._download_photo(m.photo[-1]) for m in messages if m.photo]
            if not images:
                await self.stop_typing(chat_id)
                await self._reply_plain(chat_id, "Sorry, there were no images I could process in this album.")
                return
            caption = next((m.caption for m in messages if m.caption), None)
            reply = await self.llm.chat(caption or ALBUM_PROMPT.format(count=len(images)), images=images)
        except (LLMClientError, TelegramError) as e:
            logger.error(f"Error processing media group {key}: {e}")
            await self.stop_typing(chat_id)
            await self._reply_plain(chat_id, SORRY_TEXT)
            return
        await self.deliver(chat_id, reply)

    async def _on_unknown_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or not self.is_allowed(update):
            return
        logger.info(f"Unknown command from {update.message.chat_id}: {update.message.text!r}")
        await self._reply_plain(update.message.chat_id, "Sorry, I can only answer plain text messages.")

    async def _on_unsupported(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or not self.is_allowed(update):
            return
        logger.info(f"Unsupported message type from {update.message.chat_id}")
        await self._reply_plain(
            update.message.chat_id,
            "Sorry, I can only process text and images right now. "
            "Try a text message or a photo with a caption!",
        )

    # -- helpers --------------------------------------------------------------

    async def _send_latest_fallback(self, chat_id: int) -> None:
        """After an upstream failure, deliver the latest assistant message instead."""
        try:
            latest = await self.llm.latest()
        except LLMClientError as e:
            logger.error(f"Error sending fallback message: {e}")
            await self.stop_typing(chat_id)
            await self._reply_plain(chat_id, SORRY_TEXT)
            return

        fallback = (
            "Sorry, there was a technical problem. Here is the latest message "
            f"from the assistant:\n\n{latest or NO_LATEST_TEXT}"
        )
        await self.deliver(chat_id, fallback)

    async def _reply_plain(self, chat_id: int, text: str) -> None:
        if not self._app:
            return
        try:
            await _send_with_retry(self._app.bot, chat_id=chat_id, text=text)
        except Exception as e:
            logger.error(f"Error sending Telegram message to {chat_id}: {e}")

    async def _download_photo(self, photo: PhotoSize) -> str:
        """Download a photo and return it as a base64 data URL."""
        file = await self._app.bot.get_file(photo.file_id)
        data = await file.download_as_bytearray()
        encoded = base64.b64encode(bytes(data)).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"

    async def start_typing(self, chat_id: int) -> None:
        """Start sending 'typing...' indicator for a chat."""
        await self.stop_typing(chat_id)
        self._typing_tasks[chat_id] = asyncio.create_task(self._typing_loop(chat_id))

    async def stop_typing(self, chat_id: int) -> None:
        """Stop the typing indicator for a chat."""
        task = self._typing_tasks.pop(chat_id, None)
        if task and not task.done():
            task.cancel()

    async def _typing_loop(self, chat_id: int) -> None:
        """Repeatedly send 'typing' action until cancelled."""
        try:
            while self._app:
                await self._app.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Typing indicator stopped for {chat_id}: {e}")
