from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ── Upstream Records (normalized Blockscout items) ───────────────────────────


class AddressTag(BaseModel):
    display_name: Optional[str] = None
    name: Optional[str] = None


class Destination(BaseModel):
    """The `to` side of a transaction as described by the explorer."""

    hash: Optional[str] = None
    name: Optional[str] = None
    metadata_name: Optional[str] = None
    metadata_slug: Optional[str] = None
    public_tags: list[AddressTag] = []
    watchlist_names: list[AddressTag] = []


class Transaction(BaseModel):
    timestamp: datetime
    value: float = 0.0
    to: Optional[Destination] = None


class TokenInfo(BaseModel):
    symbol: Optional[str] = None
    name: Optional[str] = None
    address_hash: Optional[str] = None
    decimals: int = 18


class TokenTransfer(BaseModel):
    timestamp: datetime
    from_address: str = ""
    to_address: str = ""
    perspective: str = ""
    token: TokenInfo = TokenInfo()
    amount: float = 0.0


class BalancePoint(BaseModel):
    date: datetime
    balance: float = 0.0


class NftAttribute(BaseModel):
    trait_type: Optional[str] = None
    value: Any = None


class NftInstance(BaseModel):
    tags: list[str] = []
    attributes: list[NftAttribute] = []


class NftCollection(BaseModel):
    amount: float = 0.0
    token_instances: list[NftInstance] = []


# ── Insight Fragments ─────────────────────────────────────────────────────────


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class BiggestDay(CamelModel):
    label: str
    txs: int = 0
    minutes: int = Field(0, description="Heuristic: txs x 2, not measured time")


class TokenHabits(CamelModel):
    top_volume_symbol: str = "Unknown"
    top_volume_amount: float = 0.0
    top_count_symbol: str = "Unknown"
    top_count_transfers: int = 0
    stable_preference: str = "None"


class EthJourney(CamelModel):
    start: float = 0.0
    end: float = 0.0
    peak: float = 0.0
    change_percent: float = 0.0
    biggest_swing: float = 0.0


class NftSnapshot(CamelModel):
    collections_held: int = 0
    event_city: str = "None"
    oldest_event_year: Union[int, float, str] = "None"
    event_badge_count: int = 0


class Streaks(CamelModel):
    longest_consecutive_days: int = 0
    dominant_hour_bucket: str = Field(
        "00-05", description="Heuristic: busiest 6-hour UTC window by tx count"
    )


class DappDiversity(CamelModel):
    unique_dapps: int = 0
    top_category: str = "Other"


class Insights(CamelModel):
    address: str
    year: int
    total_transactions: int = 0
    total_volume_eth: float = 0.0
    biggest_day: BiggestDay
    nfts_minted: int = 0
    top_collection: str = "Unknown collection"
    bridge_count: int = 0
    gm_streak: int = 0
    first_touch: str
    mint_story: str
    token_habits: TokenHabits
    eth_journey: EthJourney
    nft_snapshot: NftSnapshot
    streaks: Streaks
    dapp_diversity: DappDiversity


# ── API Models ────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str
    version: str
