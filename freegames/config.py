# ===== CONFIGURATION & CONSTANTS =====
import os

# --- General Settings ---
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CACHE_DIR = os.getenv("CACHE_DIR", "cache")
DEFAULT_CACHE_TTL = int(os.getenv("CACHE_TTL", "3600"))  # 1 hour in seconds
DATABASE_PATH = os.getenv("DATABASE_PATH", "data/games.db")
WEB_DATA_DIR = "web_data"
WEB_DATA_FILE = "free_games.json"

# --- Web Scraping & API Headers ---
BROWSER_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36'
COMMON_HEADERS = {
    'User-Agent': BROWSER_USER_AGENT,
    'Accept-Language': 'en-US,en;q=0.9',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    'Accept-Encoding': 'gzip, deflate, br',
    'Connection': 'keep-alive'
}

# --- Browser Session ---
BROWSER_HEADLESS = os.getenv("BROWSER_HEADLESS", "true").lower() == "true"
BROWSER_ARGS = [
    '--no-sandbox',
    '--disable-dev-shm-usage',
    '--disable-blink-features=AutomationControlled',
]
BROWSER_VIEWPORT = {'width': 1920, 'height': 1080}
NAVIGATION_TIMEOUT_MS = int(os.getenv("NAVIGATION_TIMEOUT_MS", "60000"))
RENDER_TIMEOUT_S = float(os.getenv("RENDER_TIMEOUT_S", "30"))
SHORT_RENDER_TIMEOUT_S = 10.0
CHILD_PAGE_SETTLE_S = 3.0
PAGE_SETTLE_S = 2.0

# --- Scraping Limits ---
PAGINATION_MAX_IDLE = int(os.getenv("PAGINATION_MAX_IDLE", "3"))
PAGINATION_MAX_PAGES = int(os.getenv("PAGINATION_MAX_PAGES", "20"))
MAX_ITEMS_PER_SUB_SCRAPE = int(os.getenv("MAX_ITEMS_PER_SUB_SCRAPE", "150"))
HIGHLY_DISCOUNTED_THRESHOLD = int(os.getenv("HIGHLY_DISCOUNTED_THRESHOLD", "75"))

# --- Category Enrichment ---
SEARCH_ENGINE_URL = os.getenv("SEARCH_ENGINE_URL", "https://html.duckduckgo.com/html/")
SEARCH_QUERY_TEMPLATE = "{title} video game genre type steam {platform} metacritic"
SEARCH_RESULT_LIMIT = 5
SEARCH_CACHE_TTL = DEFAULT_CACHE_TTL * 24 * 7  # genres rarely change
ENRICHMENT_CONCURRENCY = int(os.getenv("ENRICHMENT_CONCURRENCY", "4"))
SEARCH_SNIPPET_SELECTORS = ['.result__snippet', '.result__body', '.g', '.tF2Cxc', '.IsZvec']
SEARCH_PANEL_SELECTORS = ['.kp-blk', '.knowledge-panel', '.module__text']

# --- Trigger Server & Schedule ---
SERVER_HOST = os.getenv("HOST", "0.0.0.0")
SERVER_PORT = int(os.getenv("PORT", "5500"))
SCHEDULE_HOUR = int(os.getenv("SCHEDULE_HOUR", "11"))
SCHEDULE_MINUTE = int(os.getenv("SCHEDULE_MINUTE", "1"))
SCHEDULE_TIMEZONE = os.getenv("SCHEDULE_TIMEZONE", "America/New_York")

# --- Telegram Notifications ---
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_IDS = [chat_id.strip() for chat_id in os.getenv("TELEGRAM_CHAT_IDS", "").split(",") if chat_id.strip()]
TELEGRAM_REPOST_DAYS = 30

# --- Epic Games ---
EPIC_BASE_URL = "https://store.epicgames.com"
EPIC_FREE_GAMES_URL = "https://store.epicgames.com/en-US/free-games"
EPIC_ALWAYS_FREE_URL = "https://store.epicgames.com/en-US/browse?sortBy=relevancy&sortDir=DESC&priceTier=tierFree&category=Game&count=40"
EPIC_DISCOUNTED_URL = "https://store.epicgames.com/en-US/browse?sortBy=currentPrice&sortDir=ASC&priceTier=tierDiscouted&category=Game&count=40"
EPIC_FREE_GAMES_CONTAINER = "[data-component='FreeOfferCard'], .css-1myhtyb"
EPIC_BROWSE_CONTAINER = "section[data-testid='offers-grid'], ul.css-cnqlhg"
EPIC_NEXT_PAGE = "[data-testid='pagination-next-button'], button[aria-label='Next page']"

# --- Steam ---
STEAM_BASE_URL = "https://store.steampowered.com"
STEAM_FREE_TO_KEEP_URL = "https://store.steampowered.com/search/?maxprice=free&specials=1&supportedlang=english"
STEAM_DISCOUNTED_URL = "https://store.steampowered.com/search/?specials=1&sort_by=Price_ASC&category1=998&supportedlang=english"
STEAM_BUDGET_URL = "https://store.steampowered.com/search/?maxprice=5&specials=1&category1=998&supportedlang=english"
STEAM_RESULTS_CONTAINER = "#search_resultsRows"
STEAM_BUDGET_MAX_PRICE = 5.0

# --- GOG ---
GOG_BASE_URL = "https://www.gog.com"
GOG_HOME_URL = "https://www.gog.com/en/"
GOG_GIVEAWAY_URL = "https://www.gog.com/giveaway"
GOG_ALWAYS_FREE_URL = "https://www.gog.com/en/games?priceRange=0,0&hideDLCs=true"
GOG_DISCOUNTED_URL = "https://www.gog.com/en/games?discounted=true&order=desc:discount"
GOG_GIVEAWAY_HEADER = ".giveaway__content-header"
GOG_PRODUCT_TILE = "a.product-tile"
GOG_NEXT_PAGE = "[selenium-id='paginationNext']"
GOG_DISCOUNT_SCROLLS = 3
GOG_MAX_DISCOUNT_CARDS = 100

# --- Prime Gaming ---
PRIME_BASE_URL = "https://gaming.amazon.com"
PRIME_HOME_URL = "https://gaming.amazon.com/home"
PRIME_LUNA_URL = "https://luna.amazon.com/"
PRIME_CARD_SELECTOR = ".item-card__action"
PRIME_INCLUDE_IN_GAME_CONTENT = os.getenv("PRIME_INCLUDE_IN_GAME_CONTENT", "false").lower() == "true"
PRIME_INCLUDE_LUNA = os.getenv("PRIME_INCLUDE_LUNA", "false").lower() == "true"
PRIME_INITIAL_SETTLE_S = 10.0

# --- Genre & Feature Keywords ---
GENRE_KEYWORDS = [
    'Action', 'Adventure', 'Arcade', 'Battle Royale',
    'Casual', 'City Builder', 'Exploration', 'Fantasy', 'Fighting',
    'Horror', 'Indie', 'Management', 'Mystery', 'Platform', 'Platformer',
    'Point and Click', 'Puzzle', 'Racing', 'RPG', 'Role-Playing',
    'Sandbox', 'Shooter', 'Simulation', 'Sports', 'Stealth', 'Strategy',
    'Survival', 'Tower Defense', 'Turn-Based', 'Tactical', 'Roguelike',
    'Metroidvania', 'Visual Novel', 'Walking Simulator', 'Sci-Fi', 'Space',
    'Retro', 'Pixel Art', 'JRPG', 'Hack and Slash', "Beat 'em up"
]

FEATURE_KEYWORDS = [
    'Single-player', 'Single Player', 'Singleplayer',
    'Multiplayer', 'Multi-player', 'Online Multiplayer',
    'Co-op', 'Cooperative', 'Local Co-op', 'PvP', 'PvE',
    'Controller Support', 'Cloud Saves', 'Achievements',
    'DRM-Free', 'GOG Galaxy', 'Offline Play',
    'Cross-Platform', 'Steam Deck Verified'
]

# Baseline features when the search turns up none, keyed by platform value
DEFAULT_FEATURES = {
    "Epic": ['Cloud Saves'],
    "Steam": ['Cloud Saves'],
    "GOG": ['Cloud Saves', 'DRM-Free', 'Offline Play'],
    "Prime Gaming": ['Cloud Saves', 'Prime Exclusive'],
}
SINGLE_PLAYER_GENRES = {'RPG', 'Adventure', 'Puzzle', 'Strategy'}
MULTIPLAYER_GENRES = {
    "Epic": {'Shooter', 'Battle Royale'},
    "Steam": {'Shooter', 'Battle Royale'},
    "GOG": {'Shooter', 'Battle Royale'},
    "Prime Gaming": {'Shooter', 'Battle Royale', 'Sports', 'Racing'},
}

# Best-effort gazetteer: lower-case title fragment -> genres
TITLE_GENRE_GAZETTEER = {
    'witcher': ['RPG', 'Fantasy', 'Action', 'Open World'],
    'cyberpunk': ['RPG', 'Sci-Fi', 'Action', 'Open World'],
    "baldur's gate": ['RPG', 'Fantasy', 'Turn-Based', 'Strategy'],
    'divinity': ['RPG', 'Fantasy', 'Turn-Based', 'Strategy'],
    'hollow knight': ['Metroidvania', 'Platform', 'Indie', 'Action'],
    'stardew valley': ['Simulation', 'Farming', 'Indie', 'Casual'],
    'terraria': ['Sandbox', 'Adventure', 'Survival', 'Indie'],
    'disco elysium': ['RPG', 'Detective', 'Mystery', 'Narrative'],
    'hades': ['Roguelike', 'Action', 'Indie', 'Mythology'],
    'celeste': ['Platform', 'Indie', 'Pixel Art'],
    'dead cells': ['Roguelike', 'Metroidvania', 'Action', 'Indie'],
    'darkest dungeon': ['RPG', 'Roguelike', 'Strategy', 'Turn-Based'],
    'frostpunk': ['Strategy', 'Survival', 'City Builder'],
    'this war of mine': ['Survival', 'Strategy', 'War'],
    'papers please': ['Simulation', 'Indie', 'Dystopian'],
    'return of the obra dinn': ['Mystery', 'Puzzle', 'Investigation'],
    'outer wilds': ['Exploration', 'Space', 'Mystery', 'Puzzle'],
    'fallout': ['RPG', 'Post-Apocalyptic', 'Action', 'Open World'],
    'tomb raider': ['Action', 'Adventure', 'Puzzle', 'Platform'],
    'mass effect': ['RPG', 'Sci-Fi', 'Action', 'Space'],
    'star wars': ['Action', 'Adventure', 'Sci-Fi', 'Space'],
    'batman': ['Action', 'Adventure', 'Stealth', 'Superhero'],
    'assassin': ['Action', 'Adventure', 'Stealth', 'Open World'],
    'borderlands': ['Shooter', 'RPG', 'Looter', 'Co-op'],
    'bioshock': ['Shooter', 'RPG', 'Horror', 'Sci-Fi'],
    'dishonored': ['Stealth', 'Action', 'Immersive Sim'],
    'middle-earth': ['Action', 'RPG', 'Fantasy', 'Open World'],
    'need for speed': ['Racing', 'Arcade', 'Action'],
    'football manager': ['Sports', 'Simulation', 'Management'],
    'total war': ['Strategy', 'Turn-Based', 'Real-Time Strategy'],
    'ghostwire': ['Action', 'Horror', 'Supernatural'],
    'blasphemous': ['Metroidvania', 'Platform', 'Souls-like'],
    'dead space': ['Horror', 'Survival', 'Sci-Fi', 'Action'],
    'yakuza': ['Action', 'Adventure', "Beat 'em up", 'Crime'],
    'far cry': ['Shooter', 'Open World', 'Action', 'Adventure'],
    'doom': ['Shooter', 'Action', 'Horror', 'Sci-Fi'],
    'wolfenstein': ['Shooter', 'Action', 'Alternative History'],
    'metro': ['Shooter', 'Survival', 'Horror', 'Post-Apocalyptic'],
    'saints row': ['Action', 'Open World', 'Comedy', 'Crime'],
    'mafia': ['Action', 'Crime', 'Open World', 'Story'],
    'two point': ['Simulation', 'Management', 'Comedy', 'Casual'],
}
