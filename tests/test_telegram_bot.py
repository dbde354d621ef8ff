"""
Tests for the Telegram announcer: repost window and delivery bookkeeping.
"""

import pytest
from telegram.error import TelegramError

from freegames.core.database import Database
from freegames.core.telegram_bot import TelegramNotifier, announcement_key
from freegames.models.game import Platform


class FakeBot:
    """Records sends; raises for chats listed in `failing_chats`."""

    def __init__(self, failing_chats=()):
        self.failing_chats = set(failing_chats)
        self.sent = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def send_photo(self, chat_id, photo, caption, parse_mode):
        self._record(chat_id, "photo", caption)

    async def send_message(self, chat_id, text, parse_mode, disable_web_page_preview):
        self._record(chat_id, "message", text)

    def _record(self, chat_id, kind, text):
        if chat_id in self.failing_chats:
            raise TelegramError("Forbidden: bot was blocked by the user")
        self.sent.append((chat_id, kind, text))


@pytest.fixture
def db(tmp_path):
    return Database(str(tmp_path / "games.db"))


@pytest.fixture
def notifier(db):
    notifier = TelegramNotifier("123456:TEST-TOKEN", ["@channel", "42"], db)
    notifier.bot = FakeBot()
    return notifier


class TestSelection:

    def test_only_top_picks_are_announced(self, notifier, sample_listing):
        listings = [sample_listing("Pick", tags={"top-pick"}), sample_listing("Plain", tags={"always-free"})]
        assert [listing['title'] for listing in notifier.select_new(listings)] == ["Pick"]

    def test_recently_announced_games_are_skipped(self, notifier, db, sample_listing):
        pick = sample_listing("Pick", tags={"top-pick"})
        db.add_posted_game(announcement_key(pick))
        assert notifier.select_new([pick]) == []

    def test_key_includes_platform(self, sample_listing):
        listing = sample_listing("Pick", platform=Platform.GOG, link="https://www.gog.com/giveaway")
        assert announcement_key(listing) == "GOG:https://www.gog.com/giveaway"


class TestAnnounce:

    @pytest.mark.asyncio
    async def test_sends_to_every_chat_and_remembers(self, notifier, db, sample_listing):
        with_image = sample_listing("Pick_One", tags={"top-pick"}, image="https://img/one.jpg",
                                    available_until="Oct 23, 3:00 PM")
        without_image = sample_listing("Pick Two", tags={"top-pick"})

        assert await notifier.announce([with_image, without_image]) == 2

        kinds = [(chat, kind) for chat, kind, _ in notifier.bot.sent]
        assert kinds == [("@channel", "photo"), ("42", "photo"), ("@channel", "message"), ("42", "message")]
        assert "Pick\\_One" in notifier.bot.sent[0][2]
        assert "Oct 23, 3:00 PM" in notifier.bot.sent[0][2]
        assert db.is_game_posted_in_last_days(announcement_key(with_image))

        # A second run inside the window sends nothing
        assert await notifier.announce([with_image, without_image]) == 0

    @pytest.mark.asyncio
    async def test_partial_delivery_still_counts(self, notifier, db, sample_listing):
        notifier.bot = FakeBot(failing_chats={"42"})
        pick = sample_listing("Pick", tags={"top-pick"})

        assert await notifier.announce([pick]) == 1
        assert [chat for chat, _, _ in notifier.bot.sent] == ["@channel"]

    @pytest.mark.asyncio
    async def test_total_failure_is_not_remembered(self, notifier, db, sample_listing):
        notifier.bot = FakeBot(failing_chats={"@channel", "42"})
        pick = sample_listing("Pick", tags={"top-pick"})

        assert await notifier.announce([pick]) == 0
        assert not db.is_game_posted_in_last_days(announcement_key(pick))
