"""Pure folds from year-filtered records to insight fragments.

Every function here is deterministic in its inputs. Where two keys tie, the
one encountered first wins: counts live in insertion-ordered dicts and
``max`` returns the first maximal item.
"""

import math
from datetime import date
from typing import Any, Optional

from classifiers import (
    OTHER_CATEGORY,
    categorize_destination,
    is_bridge_tx,
    is_mint,
    is_stablecoin,
    resolve_destination,
)
from models import (
    BalancePoint,
    BiggestDay,
    DappDiversity,
    EthJourney,
    NftCollection,
    NftSnapshot,
    Streaks,
    TokenHabits,
    TokenTransfer,
    Transaction,
)
from utils import format_day, to_number

MINUTES_PER_TX = 2
NO_ACTIVITY = "No activity yet"
UNKNOWN_COLLECTION = "Unknown collection"

HOUR_BUCKETS: tuple[tuple[str, int], ...] = (
    ("00-05", 5),
    ("06-11", 11),
    ("12-17", 17),
    ("18-23", 23),
)


def _top_key(counts: dict) -> Optional[Any]:
    if not counts:
        return None
    return max(counts, key=counts.__getitem__)


# ── Volume & days ─────────────────────────────────────────────────────────────


def no_activity_label(year: int) -> str:
    return f"No {year} activity yet"


def total_volume_eth(txs: list[Transaction]) -> float:
    return sum(tx.value for tx in txs)


def biggest_day(txs: list[Transaction], year: int) -> BiggestDay:
    """Busiest UTC day by tx count. `minutes` is txs x 2, a rough proxy."""
    by_day: dict[date, int] = {}
    for tx in txs:
        day = tx.timestamp.date()
        by_day[day] = by_day.get(day, 0) + 1

    top = _top_key(by_day)
    if top is None:
        return BiggestDay(label=no_activity_label(year), txs=0, minutes=0)
    return BiggestDay(
        label=format_day(top),
        txs=by_day[top],
        minutes=by_day[top] * MINUTES_PER_TX,
    )


def summarize_volume(txs: list[Transaction], year: int) -> tuple[int, float, BiggestDay]:
    """(tx count, total ETH, biggest day)."""
    return len(txs), total_volume_eth(txs), biggest_day(txs, year)


def active_days(txs: list[Transaction]) -> list[date]:
    return sorted({tx.timestamp.date() for tx in txs})


def count_active_days(txs: list[Transaction]) -> int:
    return len(active_days(txs))


def longest_streak(days: list[date]) -> int:
    longest = 0
    current = 0
    prev: Optional[date] = None
    for day in days:
        if prev is not None and (day - prev).days == 1:
            current += 1
        else:
            current = 1
        longest = max(longest, current)
        prev = day
    return longest


def first_touch(txs: list[Transaction]) -> str:
    if not txs:
        return NO_ACTIVITY
    earliest = min(txs, key=lambda tx: tx.timestamp)
    return earliest.timestamp.date().isoformat()


def dominant_hour_bucket(txs: list[Transaction]) -> str:
    counts = {label: 0 for label, _ in HOUR_BUCKETS}
    for tx in txs:
        hour = tx.timestamp.hour
        for label, last_hour in HOUR_BUCKETS:
            if hour <= last_hour:
                counts[label] += 1
                break
    return _top_key(counts)


def summarize_streaks(txs: list[Transaction]) -> Streaks:
    return Streaks(
        longest_consecutive_days=longest_streak(active_days(txs)),
        dominant_hour_bucket=dominant_hour_bucket(txs),
    )


# ── Bridges & NFT mints ───────────────────────────────────────────────────────


def count_bridges(txs: list[Transaction]) -> int:
    return sum(1 for tx in txs if is_bridge_tx(tx))


def summarize_mints(transfers: list[TokenTransfer]) -> tuple[int, str]:
    """(mint count, most-minted collection)."""
    mints = [t for t in transfers if is_mint(t)]
    by_collection: dict[str, int] = {}
    for t in mints:
        key = t.token.name or t.token.address_hash or UNKNOWN_COLLECTION
        by_collection[key] = by_collection.get(key, 0) + 1
    return len(mints), _top_key(by_collection) or UNKNOWN_COLLECTION


# ── Token habits ──────────────────────────────────────────────────────────────


def summarize_token_habits(transfers: list[TokenTransfer]) -> TokenHabits:
    """Favourite ERC-20s by volume and by count, plus the first stablecoin seen.

    Buckets are keyed on the token contract. A self-transfer (sender equals
    receiver) is counted but moves no volume; otherwise the side matching
    the perspective address decides sent vs received.
    """
    buckets: dict[str, dict] = {}
    for t in transfers:
        symbol = t.token.symbol or t.token.address_hash or "Unknown"
        key = (t.token.address_hash or symbol).lower()
        bucket = buckets.setdefault(
            key, {"symbol": symbol, "sent": 0.0, "received": 0.0, "count": 0}
        )
        bucket["count"] += 1
        if t.from_address == t.to_address:
            continue
        if t.perspective and t.from_address == t.perspective:
            bucket["sent"] += t.amount
        elif t.perspective and t.to_address == t.perspective:
            bucket["received"] += t.amount

    if not buckets:
        return TokenHabits()

    def volume(b: dict) -> float:
        return b["sent"] + b["received"]

    tokens = list(buckets.values())
    top_volume = max(tokens, key=volume)
    top_count = max(tokens, key=lambda b: (b["count"], volume(b)))
    stable = next((b["symbol"] for b in tokens if is_stablecoin(b["symbol"])), "None")

    return TokenHabits(
        top_volume_symbol=top_volume["symbol"],
        top_volume_amount=round(volume(top_volume), 4),
        top_count_symbol=top_count["symbol"],
        top_count_transfers=top_count["count"],
        stable_preference=stable,
    )


# ── ETH journey ───────────────────────────────────────────────────────────────


def summarize_eth_journey(points: list[BalancePoint]) -> EthJourney:
    if not points:
        return EthJourney()

    ordered = sorted(points, key=lambda p: p.date)
    balances = [p.balance for p in ordered]
    start, end = balances[0], balances[-1]

    biggest_swing = 0.0
    for prev, cur in zip(balances, balances[1:]):
        swing = cur - prev
        if abs(swing) > abs(biggest_swing):
            biggest_swing = swing

    change = 0.0 if start == 0 else (end - start) / start * 100
    return EthJourney(
        start=round(start, 4),
        end=round(end, 4),
        peak=round(max(balances), 4),
        change_percent=round(change, 1),
        biggest_swing=round(biggest_swing, 4),
    )


# ── NFT holdings ──────────────────────────────────────────────────────────────


def _attribute(attributes, trait: str):
    for attr in attributes:
        if (attr.trait_type or "").lower() == trait:
            return attr
    return None


def summarize_nft_snapshot(collections: list[NftCollection]) -> NftSnapshot:
    held = [c for c in collections if c.amount > 0]
    event_city = "None"
    oldest_year: Optional[float] = None
    badge_count = 0

    for collection in held:
        for inst in collection.token_instances:
            if any("event" in t.lower() or "poap" in t.lower() for t in inst.tags):
                badge_count += 1

            city = _attribute(inst.attributes, "city")
            if city is not None and city.value and event_city == "None":
                event_city = str(city.value)

            year = _attribute(inst.attributes, "year")
            if year is not None and year.value:
                value = to_number(year.value, default=float("nan"))
                if not math.isnan(value) and (oldest_year is None or value < oldest_year):
                    oldest_year = value

    if oldest_year:
        oldest: int | float | str = int(oldest_year) if oldest_year.is_integer() else oldest_year
    else:
        oldest = "None"

    return NftSnapshot(
        collections_held=len(held),
        event_city=event_city,
        oldest_event_year=oldest,
        event_badge_count=badge_count,
    )


# ── Dapp diversity ────────────────────────────────────────────────────────────


def summarize_dapp_diversity(txs: list[Transaction]) -> DappDiversity:
    destinations: dict[str, int] = {}
    for tx in txs:
        dest = resolve_destination(tx.to)
        destinations[dest] = destinations.get(dest, 0) + 1

    categories: dict[str, int] = {}
    for dest in destinations:
        category = categorize_destination(dest)
        categories[category] = categories.get(category, 0) + 1

    return DappDiversity(
        unique_dapps=len(destinations),
        top_category=_top_key(categories) or OTHER_CATEGORY,
    )
