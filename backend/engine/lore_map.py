"""Cultural knowledge tables: lore terms, ticker morphology and narrative categories.

The lore map relates well-known alpha symbols to the search terms and broader
concept tags that derivative tokens tend to borrow. Symbols without an entry
fall back to their own lowercase symbol.
"""
import re
from typing import Dict, List, Tuple

LORE_MAP: Dict[str, Dict[str, List[str]]] = {
    # dog / hat
    "WIF": {"terms": ["catwif", "babywif", "wifhat", "hat", "dogwif", "wif"],
            "concepts": ["dog", "hat", "wif", "dogwifhat"]},
    "BONK": {"terms": ["babybonk", "bonkwif", "megabonk", "bonk"],
             "concepts": ["bonk", "dog", "solana"]},
    "MYRO": {"terms": ["babymyro", "myrowif", "myro"],
             "concepts": ["myro", "dog", "solana"]},
    # cats
    "POPCAT": {"terms": ["popdog", "popelon", "pop", "cat"],
               "concepts": ["cat", "pop", "meme"]},
    "MEW": {"terms": ["babymew", "mewwif", "mew", "cat"],
            "concepts": ["cat", "mew", "solana"]},
    "NYAN": {"terms": ["nyancat", "nyan", "cat", "rainbow"],
             "concepts": ["cat", "nyan", "rainbow"]},
    # political
    "TRUMP": {"terms": ["maga", "america", "usa", "biden", "melania", "baron", "ivanka"],
              "concepts": ["trump", "maga", "political", "usa"]},
    "BODEN": {"terms": ["biden", "joe", "hunter", "kamala", "boden"],
              "concepts": ["political", "biden", "usa"]},
    "MAGA": {"terms": ["trump", "america", "usa", "republican", "maga"],
             "concepts": ["maga", "trump", "political"]},
    # ai / tech
    "AI16Z": {"terms": ["ai", "agent", "eliza", "degenai", "vc"],
              "concepts": ["ai", "agent", "tech"]},
    "GOAT": {"terms": ["goat", "ai", "terminal", "truth"],
             "concepts": ["ai", "goat", "terminal"]},
    # frogs
    "PEPE": {"terms": ["pepe", "frog", "rare", "feels"],
             "concepts": ["pepe", "frog", "meme"]},
    # elon / space
    "ELON": {"terms": ["doge", "spacex", "mars", "tesla", "musk", "x"],
             "concepts": ["elon", "space", "doge"]},
    "DOGE": {"terms": ["babydoge", "dogecoin", "doge", "shib", "elon"],
             "concepts": ["doge", "dog", "elon"]},
    # squirrel
    "PNUT": {"terms": ["peanut", "squirrel", "nut", "pnut"],
             "concepts": ["peanut", "squirrel", "viral"]},
    # anime
    "ANIME": {"terms": ["anime", "waifu", "nft", "otaku"],
              "concepts": ["anime", "waifu", "japan"]},
    "SOL": {"terms": ["solana", "sol", "phantom", "saga"],
            "concepts": ["solana", "layer1", "ecosystem"]},
}


def get_search_terms(symbol: str) -> List[str]:
    entry = LORE_MAP.get(symbol.upper())
    if entry:
        return list(entry["terms"])
    return [symbol.lower()]


def get_concepts(symbol: str) -> List[str]:
    entry = LORE_MAP.get(symbol.upper())
    if entry:
        return list(entry["concepts"])
    return [symbol.lower()]


# ── Compound ticker decomposition ──
# ALIENSCOPE -> ALIEN, SCOPE ; BABYPEPE -> PEPE ; AlienScope -> ALIEN, SCOPE

DECOMP_SUFFIXES = [
    "SCOPE", "COIN", "TOKEN", "SWAP", "PLAY", "GAME", "WORLD",
    "LAND", "ZONE", "CAT", "DOG", "HAT", "WIF", "INU", "DAO",
    "MOON", "PUMP", "STAR", "KING", "LORD", "APE", "BOY", "MAN",
]
DECOMP_PREFIXES = [
    "BABY", "MINI", "MICRO", "GIGA", "MEGA", "SUPER",
    "REAL", "TURBO", "CHAD", "FAT", "TINY", "DARK", "ULTRA",
]

_CAMEL_WORD = re.compile(r"[A-Z]+(?=[A-Z][a-z])|[A-Z][a-z]+|[a-z]+|[A-Z]+|\d+")


def camel_case_parts(symbol: str, min_len: int = 3) -> List[str]:
    """AlienScope -> ['ALIEN', 'SCOPE']; all-caps input stays whole."""
    parts = _CAMEL_WORD.findall(symbol or "")
    return [p.upper() for p in parts if len(p) >= min_len]


def decompose_symbol(symbol: str) -> List[str]:
    s = symbol.upper()
    parts: List[str] = []

    def add(part: str):
        if part and part != s and part not in parts:
            parts.append(part)

    for suffix in DECOMP_SUFFIXES:
        if s.endswith(suffix) and len(s) > len(suffix) + 2:
            root = s[: len(s) - len(suffix)]
            if len(root) >= 3:
                add(root)
                add(suffix)

    for prefix in DECOMP_PREFIXES:
        if s.startswith(prefix) and len(s) > len(prefix) + 2:
            root = s[len(prefix):]
            if len(root) >= 3:
                add(root)

    for part in camel_case_parts(symbol):
        add(part)
    return parts


# ── Ticker morphology ──

MORPH_PREFIXES = [
    "BABY", "MINI", "GIGA", "MEGA", "SUPER", "TURBO",
    "CHAD", "DARK", "EVIL", "BASED", "REAL", "FAT",
]
MORPH_SUFFIXES = [
    "CAT", "DOG", "INU", "WIF", "HAT", "AI",
    "KIN", "MOON", "PUMP", "COIN", "GF", "2",
]

# Curated counterparts derivative launchers reach for.
OPPOSITES: Dict[str, List[str]] = {
    "CAT": ["DOG"], "DOG": ["CAT"], "BULL": ["BEAR"], "BEAR": ["BULL"],
    "TRUMP": ["BIDEN", "KAMALA"], "BIDEN": ["TRUMP"], "ANGEL": ["DEVIL"],
    "PEPE": ["WOJAK"], "WOJAK": ["PEPE"], "GOOD": ["EVIL"], "MOON": ["SUN"],
}
COMPANIONS: Dict[str, List[str]] = {
    "WIF": ["DOGWIFHAT", "CATWIFHAT", "WIFHAT"],
    "BONK": ["BONKWIF", "BONKCAT"],
    "TRUMP": ["MELANIA", "BARRON", "MAGA"],
    "PEPE": ["PEPECOIN", "BRETT", "ANDY"],
    "BRETT": ["PEPE", "ANDY", "LANDWOLF"],
    "PNUT": ["FRED", "PEANUT"],
    "ELON": ["DOGE", "MARVIN"],
    "GOAT": ["FARTCOIN", "ZEREBRO"],
}

MAX_MORPH_VARIANTS = 30


def generate_ticker_variants(symbol: str) -> List[str]:
    """Plausible derivative tickers for an alpha symbol, most likely first."""
    s = symbol.upper()
    variants: List[str] = []

    def add(v: str):
        if v and v != s and v not in variants:
            variants.append(v)

    # curated counterparts first
    for opposite in OPPOSITES.get(s, []):
        add(opposite)
    for companion in COMPANIONS.get(s, []):
        add(companion)
    for suffix in MORPH_SUFFIXES:
        if not s.endswith(suffix):
            add(s + suffix)
    for prefix in MORPH_PREFIXES:
        if not s.startswith(prefix):
            add(prefix + s)
    return variants[:MAX_MORPH_VARIANTS]


# ── Description / name vocabulary ──

STOP_WORDS = frozenset({
    "the", "and", "for", "with", "that", "this", "from", "are", "was", "has",
    "have", "been", "will", "not", "but", "they", "their", "its", "all", "can",
    "more", "than", "into", "also", "just", "only", "your", "what", "when",
    "coin", "token", "tokens", "meme", "memecoin", "solana", "community",
    "first", "launch", "official", "here", "there", "about", "join", "telegram",
    "twitter", "website", "https", "http", "www", "pump", "moon", "holders",
    "based", "ever", "every", "most", "best", "real", "world", "time", "next",
    "going", "make", "like", "love", "people",
})

NAME_STOP_WORDS = frozenset({
    "the", "a", "an", "of", "dark", "evil", "mean", "baby", "mini", "based",
    "super", "real", "og", "little", "big", "bad", "mad", "wild", "holy",
    "ghost", "shadow", "alter", "turbo", "chad", "fat", "coin", "token",
})

_TICKER_PATTERN = re.compile(r"\$([A-Za-z][A-Za-z0-9]{1,11})")
_NON_WORD = re.compile(r"[^a-z0-9\s]")


def extract_tickers(text: str) -> List[str]:
    """'alter ego of $PIPPIN' -> ['PIPPIN']"""
    found: List[str] = []
    for match in _TICKER_PATTERN.findall(text or ""):
        ticker = match.upper()
        if ticker not in found:
            found.append(ticker)
    return found


def extract_keywords(text: str, min_len: int = 4, stop_words=STOP_WORDS) -> List[str]:
    words = _NON_WORD.sub(" ", (text or "").lower()).split()
    found: List[str] = []
    for w in words:
        if len(w) >= min_len and w not in stop_words and not w.isdigit() and w not in found:
            found.append(w)
    return found


# ── Narrative categories for Szn clustering ──
# Ordered by priority: specific narratives before generic ones.

NARRATIVE_CATEGORIES: List[Tuple[str, str, List[str]]] = [
    ("trump", "🇺🇸 Trump", ["trump", "maga", "melania", "barron", "donald"]),
    ("political", "🗳️ Political", ["biden", "kamala", "election", "president", "vote", "congress"]),
    ("elon", "🚀 Elon", ["elon", "musk", "tesla", "spacex", "doge"]),
    ("ai", "🤖 AI Agents", ["agent", "gpt", "llm", "neural", "eliza", "sentient", "ai"]),
    ("dogs", "🐶 Dogs", ["dog", "doge", "shib", "inu", "puppy", "pup", "bonk", "wif"]),
    ("cats", "🐱 Cats", ["cat", "kitty", "meow", "popcat", "mew", "nyan"]),
    ("frogs", "🐸 Frogs", ["pepe", "frog", "kek", "toad", "brett"]),
    ("aliens", "👽 Aliens", ["alien", "ufo", "area51", "extraterrestrial"]),
    ("anime", "🎌 Anime", ["anime", "waifu", "otaku", "manga", "chan", "kun"]),
    ("space", "🌌 Space", ["space", "mars", "rocket", "galaxy", "planet", "moon"]),
    ("food", "🍔 Food", ["pizza", "burger", "taco", "sushi", "coffee", "beer", "peanut"]),
    ("gaming", "🎮 Gaming", ["game", "gaming", "pixel", "arcade", "quest"]),
    ("animals", "🐾 Animals", ["monkey", "ape", "bear", "bull", "squirrel", "hippo", "penguin",
                               "goat", "bird", "fish", "hamster", "rabbit"]),
    ("memes", "😂 Memes", ["wojak", "chad", "based", "cope", "npc", "gigachad"]),
]

CATEGORY_LABELS: Dict[str, str] = {key: label for key, label, _ in NARRATIVE_CATEGORIES}
