import re
from typing import Optional

from models import Destination, TokenTransfer, Transaction
from utils import ZERO_ADDRESS


# ── Keyword tables ────────────────────────────────────────────────────────────
# Order matters: the first matching category wins.

BRIDGE_KEYWORDS = ("bridge",)

DAPP_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("DEX", ("swap", "dex", "uniswap", "camelot", "gmx", "balancer", "curve", "router")),
    ("Bridge", ("bridge", "hop", "stargate", "router", "across")),
    ("Lending", ("lend", "aave", "compound", "gearbox", "credit")),
    ("NFT Market", ("nft", "market", "opensea", "blur", "rarible", "trove")),
)
OTHER_CATEGORY = "Other"

STABLECOIN_SYMBOLS = frozenset({
    "usdc", "usdc.e", "usdt", "dai", "usde", "frax", "lusd", "gusd", "busd",
})

# Tickers like "USDC" or "WETH9"; a readable app name is preferred over these.
_TICKER_RE = re.compile(r"^[A-Z0-9]{2,8}$")

UNKNOWN_DESTINATION = "Unknown"


def match_keywords(text: str, terms: tuple[str, ...]) -> bool:
    lowered = text.lower()
    return any(term in lowered for term in terms)


# ── Destination ───────────────────────────────────────────────────────────────


def destination_candidates(dest: Optional[Destination]) -> list[str]:
    """Every human label the explorer attaches to a destination, tags first."""
    if dest is None:
        return []
    labels: list[Optional[str]] = []
    for tag in dest.public_tags + dest.watchlist_names:
        labels.extend((tag.display_name, tag.name))
    labels.extend((dest.metadata_name, dest.metadata_slug, dest.name, dest.hash))
    return [label for label in labels if label]


def is_bridge_tx(tx: Transaction) -> bool:
    return any(
        match_keywords(candidate, BRIDGE_KEYWORDS)
        for candidate in destination_candidates(tx.to)
    )


def resolve_destination(dest: Optional[Destination]) -> str:
    candidates = destination_candidates(dest)
    for candidate in candidates:
        if not _TICKER_RE.match(candidate):
            return candidate
    return candidates[0] if candidates else UNKNOWN_DESTINATION


def categorize_destination(name: str) -> str:
    for category, terms in DAPP_CATEGORIES:
        if match_keywords(name, terms):
            return category
    return OTHER_CATEGORY


# ── Tokens ────────────────────────────────────────────────────────────────────


def is_mint(transfer: TokenTransfer) -> bool:
    return transfer.from_address.lower() == ZERO_ADDRESS


def is_stablecoin(symbol: Optional[str]) -> bool:
    return bool(symbol) and symbol.lower() in STABLECOIN_SYMBOLS
