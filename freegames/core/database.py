# ===== IMPORTS & DEPENDENCIES =====
import json
import logging
import os
import sqlite3
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from freegames.models.game import GameListing, Platform, TAG_TOP_PICK, listing_to_dict
from freegames.utils.date_utils import parse_display_date

# ===== CONFIGURATION & CONSTANTS =====
logger = logging.getLogger(__name__)

# Columns that make up the stored listing; only these decide whether an upsert modified a row
PAYLOAD_COLUMNS = [
    'title', 'price', 'original_price', 'discount_percent', 'release_date',
    'available_until', 'image', 'tags', 'categories', 'features'
]
SET_COLUMNS = ('tags', 'categories', 'features')


def _platform_value(platform) -> str:
    return platform.value if isinstance(platform, Platform) else str(platform)


def _iso_or_none(text: str, now: datetime) -> Optional[str]:
    parsed = parse_display_date(text, now)
    return parsed.isoformat() if parsed else None


# ===== CORE BUSINESS LOGIC =====
class Database:
    """SQLite catalog of current listings plus the Telegram announcement history."""

    def __init__(self, db_path: str):
        self.db_path = db_path
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._create_tables()
        logger.info(f"[{self.__class__.__name__}] Database initialized at: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        """Returns a new database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _create_tables(self):
        """Creates required tables if they don't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS games (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    link TEXT NOT NULL,
                    platform TEXT NOT NULL,
                    price TEXT NOT NULL DEFAULT '',
                    original_price TEXT NOT NULL DEFAULT '',
                    discount_percent INTEGER,
                    release_date TEXT NOT NULL DEFAULT '',
                    available_until TEXT NOT NULL DEFAULT '',
                    image TEXT NOT NULL DEFAULT '',
                    tags TEXT NOT NULL DEFAULT '[]',
                    categories TEXT NOT NULL DEFAULT '[]',
                    features TEXT NOT NULL DEFAULT '[]',
                    expires_at TEXT,
                    released_at TEXT,
                    updated_at TEXT NOT NULL,
                    UNIQUE(link, platform)
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_games_platform ON games(platform)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_games_expires_at ON games(expires_at)")
            # Announcement history for the Telegram notifier
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS posted_games (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    game_url TEXT UNIQUE NOT NULL,
                    posted_date TEXT NOT NULL
                )
            """)
            conn.commit()
            logger.info(f"[{self.__class__.__name__}] Database tables verified/created.")

    # --- Row conversion ---

    def _payload(self, listing: GameListing) -> Dict[str, Any]:
        payload = {column: listing.get(column) for column in PAYLOAD_COLUMNS}
        for column in SET_COLUMNS:
            payload[column] = json.dumps(sorted(listing.get(column) or ()), ensure_ascii=False)
        for column in ('price', 'original_price', 'release_date', 'available_until', 'image'):
            payload[column] = payload[column] or ''
        return payload

    def _row_to_listing(self, row: sqlite3.Row) -> GameListing:
        listing = {column: row[column] for column in PAYLOAD_COLUMNS}
        for column in SET_COLUMNS:
            listing[column] = set(json.loads(row[column] or '[]'))
        listing['link'] = row['link']
        listing['platform'] = Platform(row['platform'])
        return GameListing(**listing)

    # --- Writes ---

    def _upsert_rows(self, cursor: sqlite3.Cursor, listings: Iterable[GameListing], now: datetime) -> Dict[str, int]:
        stats = {"matched": 0, "modified": 0, "inserted": 0}
        for listing in listings:
            platform = _platform_value(listing['platform'])
            payload = self._payload(listing)
            derived = {
                'expires_at': _iso_or_none(payload['available_until'], now),
                'released_at': _iso_or_none(payload['release_date'], now),
                'updated_at': now.isoformat(),
            }
            cursor.execute(
                f"SELECT {', '.join(PAYLOAD_COLUMNS)} FROM games WHERE link = ? AND platform = ?",
                (listing['link'], platform)
            )
            existing = cursor.fetchone()

            if existing is None:
                columns = ['link', 'platform'] + PAYLOAD_COLUMNS + list(derived)
                values = [listing['link'], platform] + [payload[c] for c in PAYLOAD_COLUMNS] + list(derived.values())
                cursor.execute(
                    f"INSERT INTO games ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                    values
                )
                stats["inserted"] += 1
                continue

            stats["matched"] += 1
            if all(existing[c] == payload[c] for c in PAYLOAD_COLUMNS):
                continue
            updates = {**payload, **derived}
            cursor.execute(
                f"UPDATE games SET {', '.join(f'{c} = ?' for c in updates)} WHERE link = ? AND platform = ?",
                list(updates.values()) + [listing['link'], platform]
            )
            stats["modified"] += 1
        return stats

    def _delete_tagged(self, conn: sqlite3.Connection, platform_value: str, tag: str) -> int:
        rows = conn.execute("SELECT id, tags FROM games WHERE platform = ?", (platform_value,)).fetchall()
        ids = [row['id'] for row in rows if tag in json.loads(row['tags'] or '[]')]
        conn.executemany("DELETE FROM games WHERE id = ?", [(row_id,) for row_id in ids])
        return len(ids)

    def upsert_many(self, listings: Iterable[GameListing], now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Inserts or updates listings keyed on (link, platform).
        Returns counts of matched (already present), modified and inserted rows;
        re-submitting an unchanged listing matches without modifying.
        """
        with self._get_connection() as conn:
            stats = self._upsert_rows(conn.cursor(), listings, now or datetime.now())
            conn.commit()
        logger.info(f"💾 [{self.__class__.__name__}] Upsert: {stats['inserted']} inserted, {stats['matched']} matched, {stats['modified']} modified.")
        return stats

    def replace_platform(self, platform, listings: Iterable[GameListing], clear_top_picks: bool = False,
                         full_refresh: bool = True, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Clears a platform's previous rows and writes `listings` in one transaction.
        On any database error nothing is committed, so the previous catalog
        stays in place, and the error is re-raised.
        """
        platform_value = _platform_value(platform)
        conn = self._get_connection()
        try:
            cleared = 0
            if clear_top_picks:
                cleared += self._delete_tagged(conn, platform_value, TAG_TOP_PICK)
            if full_refresh:
                cleared += conn.execute("DELETE FROM games WHERE platform = ?", (platform_value,)).rowcount
            stats = self._upsert_rows(conn.cursor(), listings, now or datetime.now())
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"❌ [{self.__class__.__name__}] Replacing {platform_value} games failed, rolled back: {e}")
            raise
        finally:
            conn.close()
        logger.info(f"💾 [{self.__class__.__name__}] Replaced {platform_value}: {cleared} cleared, "
                    f"{stats['inserted']} inserted, {stats['matched']} matched, {stats['modified']} modified.")
        return stats

    def delete_by_platform(self, platform) -> int:
        """Removes every listing of a platform. Returns the number of rows deleted."""
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM games WHERE platform = ?", (_platform_value(platform),))
            conn.commit()
            deleted = cursor.rowcount
        logger.info(f"[{self.__class__.__name__}] Deleted {deleted} {_platform_value(platform)} games.")
        return deleted

    def delete_by_platform_and_tag(self, platform, tag: str) -> int:
        """Removes the listings of a platform that carry `tag`."""
        platform_value = _platform_value(platform)
        with self._get_connection() as conn:
            deleted = self._delete_tagged(conn, platform_value, tag)
            conn.commit()
        logger.info(f"[{self.__class__.__name__}] Deleted {deleted} {platform_value} games tagged '{tag}'.")
        return deleted

    def delete_expired(self, now: Optional[datetime] = None) -> int:
        """Removes listings whose offer ended before `now`. Listings without a known end are kept."""
        now = (now or datetime.now()).replace(tzinfo=None)
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM games WHERE expires_at IS NOT NULL AND expires_at < ?",
                (now.isoformat(),)
            )
            conn.commit()
            deleted = cursor.rowcount
        if deleted:
            logger.info(f"[{self.__class__.__name__}] Swept {deleted} expired games.")
        return deleted

    # --- Reads ---

    def query_all(self, platform=None, tags: Optional[Iterable[str]] = None,
                  title_search: Optional[str] = None, limit: Optional[int] = None) -> List[GameListing]:
        """
        Returns listings newest release first (unknown dates last, then by title).
        `tags` keeps listings carrying all of them; `title_search` is a
        case-insensitive substring match.
        """
        clauses, params = [], []
        if platform is not None:
            clauses.append("platform = ?")
            params.append(_platform_value(platform))
        if title_search:
            clauses.append("LOWER(title) LIKE ?")
            params.append(f"%{title_search.lower()}%")
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._get_connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM games {where} ORDER BY released_at IS NULL, released_at DESC, title",
                params
            ).fetchall()

        listings = [self._row_to_listing(row) for row in rows]
        required = set(tags or ())
        if required:
            listings = [listing for listing in listings if required <= listing['tags']]
        return listings[:limit] if limit is not None else listings

    def count(self, platform=None) -> int:
        with self._get_connection() as conn:
            if platform is None:
                return conn.execute("SELECT COUNT(*) FROM games").fetchone()[0]
            return conn.execute("SELECT COUNT(*) FROM games WHERE platform = ?", (_platform_value(platform),)).fetchone()[0]

    def ping(self) -> bool:
        """True when the database file answers a trivial query."""
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error as e:
            logger.error(f"❌ [{self.__class__.__name__}] Database ping failed: {e}")
            return False

    def export_json(self, output_path: str) -> int:
        """Saves the whole catalog to a JSON file for the web front-end. Returns the number of games written."""
        games = [listing_to_dict(listing) for listing in self.query_all()]

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump({"updated_at": datetime.now().isoformat(), "count": len(games), "games": games},
                      f, ensure_ascii=False, indent=4)
        logger.info(f"✅ [{self.__class__.__name__}] Saved {len(games)} games to {output_path}")
        return len(games)

    # --- Announcement history ---

    def add_posted_game(self, game_key: str) -> None:
        """Records that a game was announced (or refreshes the date of an earlier announcement)."""
        posted_date = datetime.now().isoformat()
        with self._get_connection() as conn:
            try:
                conn.execute(
                    "INSERT INTO posted_games (game_url, posted_date) VALUES (?, ?) "
                    "ON CONFLICT(game_url) DO UPDATE SET posted_date = excluded.posted_date",
                    (game_key, posted_date)
                )
                conn.commit()
                logger.info(f"[{self.__class__.__name__}] Added posted game to DB: {game_key}")
            except sqlite3.Error as e:
                logger.error(f"[{self.__class__.__name__}] Error adding posted game to DB: {e}", exc_info=True)

    def is_game_posted_in_last_days(self, game_key: str, days: int = 30) -> bool:
        """Checks if a game has been announced in the last `days`."""
        threshold_date = (datetime.now() - timedelta(days=days)).isoformat()
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT 1 FROM posted_games WHERE game_url = ? AND posted_date >= ?",
                (game_key, threshold_date)
            )
            return cursor.fetchone() is not None
