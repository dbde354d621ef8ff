# ===== IMPORTS & DEPENDENCIES =====
import logging
from typing import Iterable, List

from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.helpers import escape_markdown

from freegames.config import TELEGRAM_REPOST_DAYS
from freegames.core.database import Database
from freegames.models.game import GameListing, TAG_TOP_PICK

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)


def announcement_key(listing: GameListing) -> str:
    """Key stored in the announcement history: '<platform>:<link>'."""
    return f"{listing['platform'].value}:{listing['link']}"


# ===== CORE BUSINESS LOGIC =====
class TelegramNotifier:
    """Announces new top-pick games to the configured Telegram chats."""

    def __init__(self, token: str, chat_ids: Iterable[str], db: Database,
                 repost_days: int = TELEGRAM_REPOST_DAYS):
        self.bot = Bot(token=token)
        self.chat_ids = list(chat_ids)
        self.db = db
        self.repost_days = repost_days
        logger.info(f"[{self.__class__.__name__}] Telegram notifier initialized for {len(self.chat_ids)} chats.")

    def _format_message_text(self, listing: GameListing) -> str:
        """Formats the text content for a game announcement."""
        lines = [
            "🎮 *New free game!* 🎮",
            f"\nTitle: *{escape_markdown(listing['title'])}*",
            f"Store: *{escape_markdown(listing['platform'].value)}*",
            f"Price: {escape_markdown(listing['price'])}",
        ]
        if listing.get('available_until'):
            lines.append(f"Free until: {escape_markdown(listing['available_until'])}")
        if listing.get('categories'):
            lines.append(f"Genres: {escape_markdown(', '.join(sorted(listing['categories'])))}")
        lines.append(f"\n[Get the game]({listing['link']})")
        return "\n".join(lines)

    def select_new(self, listings: Iterable[GameListing]) -> List[GameListing]:
        """Top-picks that were not announced within the repost window."""
        selected = []
        for listing in listings:
            if TAG_TOP_PICK not in listing['tags']:
                continue
            if self.db.is_game_posted_in_last_days(announcement_key(listing), days=self.repost_days):
                logger.info(f"ℹ️ Skipping notification for '{listing['title']}' (already sent recently).")
                continue
            selected.append(listing)
        return selected

    async def _send(self, listing: GameListing, chat_id: str) -> bool:
        message_text = self._format_message_text(listing)
        try:
            if listing.get('image'):
                await self.bot.send_photo(chat_id=chat_id, photo=listing['image'], caption=message_text,
                                          parse_mode=ParseMode.MARKDOWN)
            else:
                await self.bot.send_message(chat_id=chat_id, text=message_text, parse_mode=ParseMode.MARKDOWN,
                                            disable_web_page_preview=True)
            logger.info(f"[{self.__class__.__name__}] Notification for '{listing['title']}' sent to chat={chat_id}")
            return True
        except TelegramError as e:
            logger.error(f"[{self.__class__.__name__}] Telegram API error for chat={chat_id}: {e.message}")
            return False

    async def announce(self, listings: Iterable[GameListing]) -> int:
        """Sends every new top-pick to every chat. Returns the number of games announced."""
        to_announce = self.select_new(listings)
        if not to_announce or not self.chat_ids:
            return 0

        logger.info(f"--- Sending {len(to_announce)} notifications ---")
        announced = 0
        async with self.bot:
            for listing in to_announce:
                results = [await self._send(listing, chat_id) for chat_id in self.chat_ids]
                if any(results):
                    self.db.add_posted_game(announcement_key(listing))
                    announced += 1
        return announced
