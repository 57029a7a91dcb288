import requests

from .config import TelegramSettings
from .logger import get_logger

logger = get_logger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot{token}/sendMessage"


class TelegramNotifier:
    """Sends status messages to every configured Telegram chat.

    ``notify`` never raises: a failing chat is logged and the remaining chats
    are still attempted.
    """

    def __init__(self, settings: TelegramSettings, session: requests.Session = None):
        self.settings = settings
        self.session = session or requests.Session()

    def notify(self, message: str) -> None:
        try:
            if not self.settings.is_enabled:
                logger.info(
                    "Telegram notifications are disabled. Define TELEGRAM_TOKEN and TELEGRAM_CHAT_IDS to enable."
                )
                return

            if not self.settings.chat_ids:
                logger.info("No chat IDs defined for Telegram notifications. Define TELEGRAM_CHAT_IDS to enable.")
                return

            text = f"{self.settings.message_prefix} {message}"
            url = TELEGRAM_API_URL.format(token=self.settings.token)

            for chat_id in self.settings.chat_ids:
                self._send(url, chat_id, text)
        except Exception as e:
            logger.error(f"An error occurred while sending Telegram notification: {e}")

    def _send(self, url: str, chat_id: str, text: str) -> None:
        try:
            response = self.session.get(
                url,
                params={"chat_id": chat_id, "text": text},
                timeout=self.settings.timeout,
            )
            response.raise_for_status()
        except Exception as e:
            # requests errors include the URL, which embeds the bot token.
            reason = str(e).replace(self.settings.token, "<REDACTED>")
            logger.error(f"Failed to send Telegram notification to chat {chat_id}: {reason}")
