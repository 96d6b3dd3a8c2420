import os
import aiohttp
from datetime import datetime, timezone
import logging
import pytz
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()


def household_timezone():
    name = os.getenv("HOUSEHOLD_TIMEZONE", "UTC").strip() or "UTC"
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"Unknown HOUSEHOLD_TIMEZONE {name!r}, falling back to UTC")
        return pytz.utc


class TelegramNotifier:
    """Posts household activity to a Telegram chat when configured."""

    def __init__(self, bot_token=None, chat_id=None, tz=None):
        self.bot_token = (bot_token if bot_token is not None else os.getenv("TELEGRAM_BOT_TOKEN", "")).strip()
        self.chat_id = (chat_id if chat_id is not None else os.getenv("TELEGRAM_CHAT_ID", "")).strip()
        self.tz = tz or household_timezone()

        logger.info(f"Bot token present: {bool(self.bot_token)}")
        logger.info(f"Chat ID present: {bool(self.chat_id)}")
        if not self.enabled:
            logger.warning("Telegram configuration missing, notifications disabled")

        self.api_url = f"https://api.telegram.org/bot{self.bot_token}"
        self.send_message_url = f"{self.api_url}/sendMessage"

    @property
    def enabled(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def local_time(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(self.tz).strftime("%H:%M")

    def completion_message(self, user_name: str, chore_title: str, completed_at: datetime) -> str:
        return f"✅ {user_name} completed '{chore_title}' at {self.local_time(completed_at)}"

    async def send_message(self, text: str):
        if not self.enabled:
            logger.info(f"Would have sent Telegram message (bot not configured): {text}")
            return None

        async with aiohttp.ClientSession() as session:
            try:
                logger.info(f"Sending Telegram message to chat {self.chat_id}")
                async with session.post(
                    self.send_message_url,
                    json={
                        "chat_id": self.chat_id,
                        "text": text,
                        "parse_mode": "HTML"
                    }
                ) as response:
                    try:
                        result = await response.json()
                    except Exception as e:
                        logger.error(f"Error parsing response JSON: {str(e)}")
                        result = {}

                    if response.status == 200 and result.get('ok'):
                        logger.info("Telegram message sent successfully")
                    else:
                        logger.error(f"Telegram API error: {result}")
                    return result
            except aiohttp.ClientError as e:
                # Notifications never fail the request that triggered them
                logger.error(f"Telegram HTTP error: {str(e)}")
                return None

    async def notify_chore_completion(self, user_name: str, chore_title: str, completed_at: datetime):
        message = self.completion_message(user_name, chore_title, completed_at)
        logger.info(f"Notifying chore completion: {message}")
        await self.send_message(message)


telegram = TelegramNotifier()
