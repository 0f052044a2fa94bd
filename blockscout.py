import os
from typing import Any, Optional

import httpx

from models import (
    AddressTag,
    BalancePoint,
    Destination,
    NftAttribute,
    NftCollection,
    NftInstance,
    TokenInfo,
    TokenTransfer,
    Transaction,
)
from utils import parse_timestamp, scale_amount, to_number, wei_to_ether


# ── Blockscout v2 REST API ────────────────────────────────────────────────────
# Every list endpoint pages newest -> oldest via `next_page_params`.

BLOCKSCOUT_DEFAULT_BASE = "https://arbitrum.blockscout.com/api/v2"

NFT_TOKEN_TYPES = "ERC-721,ERC-1155"
FUNGIBLE_TOKEN_TYPES = "ERC-20"

# Cursor keys Blockscout hands back; anything else is dropped.
CURSOR_FIELDS = ("block_number", "index", "items_count")

ERROR_BODY_LIMIT = 200


class UpstreamError(RuntimeError):
    """A Blockscout stream could not be fetched."""

    def __init__(self, stream: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.stream = stream
        self.status = status


def sanitize_page_params(next_params: Optional[dict]) -> dict[str, float | int]:
    """Keep the known cursor fields, coerced to numbers."""
    params: dict[str, float | int] = {}
    if not isinstance(next_params, dict):
        return params
    for key in CURSOR_FIELDS:
        raw = next_params.get(key)
        if raw is None:
            continue
        number = to_number(raw)
        params[key] = int(number) if number.is_integer() else number
    return params


# ── Provider ──────────────────────────────────────────────────────────────────


class BlockscoutProvider:
    """Fetches the five activity streams for one address from Blockscout."""

    def __init__(
        self,
        api_base: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_tx_pages: Optional[int] = None,
        max_transfer_pages: Optional[int] = None,
        max_erc20_pages: Optional[int] = None,
    ):
        self.api_base = (
            api_base or os.getenv("BLOCKSCOUT_API_BASE", BLOCKSCOUT_DEFAULT_BASE)
        ).rstrip("/")
        self.api_key = os.getenv("BLOCKSCOUT_API_KEY", "")
        self.timeout = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
        self.transport = transport

        self.max_tx_pages = max_tx_pages or int(os.getenv("MAX_TX_PAGES", "10"))
        self.max_transfer_pages = max_transfer_pages or int(
            os.getenv("MAX_TRANSFER_PAGES", "10")
        )
        self.max_erc20_pages = max_erc20_pages or int(
            os.getenv("MAX_ERC20_PAGES", "8")
        )

    def client(self) -> httpx.AsyncClient:
        """One client per insights request, shared by all five streams."""
        return httpx.AsyncClient(
            base_url=self.api_base, transport=self.transport, timeout=self.timeout
        )

    # ── HTTP helpers ───────────────────────────────────────────────────────

    async def _api_call(
        self, client: httpx.AsyncClient, path: str, params: dict, stream: str
    ) -> dict:
        if self.api_key:
            params["apikey"] = self.api_key
        try:
            resp = await client.get(path, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(
                stream, f"Blockscout {stream} request failed: {e!r}"
            ) from e

        if not resp.is_success:
            raise UpstreamError(
                stream,
                f"Blockscout {stream} request failed ({resp.status_code}): "
                f"{resp.text[:ERROR_BODY_LIMIT]}",
                status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(
                stream, f"Blockscout {stream} returned invalid JSON"
            ) from e
        return data if isinstance(data, dict) else {}

    async def _paginate(
        self,
        client: httpx.AsyncClient,
        path: str,
        stream: str,
        year: int,
        max_pages: int,
        base_params: Optional[dict] = None,
    ) -> list[dict]:
        """Follow `next_page_params` until the year is exhausted or the cap hits.

        Items arrive newest first, so the first item older than `year` means
        nothing further (on this page or later ones) can belong to it.
        """
        collected: list[dict] = []
        cursor: dict = {}
        for _ in range(max_pages):
            params = {**(base_params or {}), **cursor}
            data = await self._api_call(client, path, params, stream)

            hit_older_year = False
            for item in data.get("items") or []:
                if not isinstance(item, dict):
                    continue
                ts = parse_timestamp(item.get("timestamp"))
                if ts is None:
                    continue
                if ts.year == year:
                    collected.append(item)
                elif ts.year < year:
                    hit_older_year = True
                    break

            next_params = data.get("next_page_params")
            if not next_params or hit_older_year:
                break
            cursor = sanitize_page_params(next_params)
        return collected

    # ── Stream retrievers ──────────────────────────────────────────────────

    async def get_transactions(
        self, client: httpx.AsyncClient, address: str, year: int
    ) -> list[Transaction]:
        items = await self._paginate(
            client,
            f"/addresses/{address}/transactions",
            "transactions",
            year,
            self.max_tx_pages,
        )
        return [tx for tx in map(parse_transaction, items) if tx is not None]

    async def get_nft_transfers(
        self, client: httpx.AsyncClient, address: str, year: int
    ) -> list[TokenTransfer]:
        items = await self._paginate(
            client,
            f"/addresses/{address}/token-transfers",
            "NFT transfers",
            year,
            self.max_transfer_pages,
            {"type": NFT_TOKEN_TYPES},
        )
        return _parse_transfers(items, address)

    async def get_erc20_transfers(
        self, client: httpx.AsyncClient, address: str, year: int
    ) -> list[TokenTransfer]:
        items = await self._paginate(
            client,
            f"/addresses/{address}/token-transfers",
            "ERC-20 transfers",
            year,
            self.max_erc20_pages,
            {"type": FUNGIBLE_TOKEN_TYPES},
        )
        return _parse_transfers(items, address)

    async def get_balance_history(
        self, client: httpx.AsyncClient, address: str
    ) -> list[BalancePoint]:
        data = await self._api_call(
            client,
            f"/addresses/{address}/coin-balance-history-by-day",
            {},
            "ETH balance history",
        )
        points = map(parse_balance_point, data.get("items") or [])
        return [p for p in points if p is not None]

    async def get_nft_collections(
        self, client: httpx.AsyncClient, address: str
    ) -> list[NftCollection]:
        data = await self._api_call(
            client,
            f"/addresses/{address}/nft/collections",
            {"type": NFT_TOKEN_TYPES},
            "NFT collections",
        )
        return [
            parse_nft_collection(c) for c in data.get("items") or [] if isinstance(c, dict)
        ]


# ── Record parsing ────────────────────────────────────────────────────────────
# Explorer payloads are semi-structured; missing fields fall back to defaults.


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _tags(raw: Any) -> list[AddressTag]:
    if not isinstance(raw, list):
        return []
    return [
        AddressTag(display_name=_text(t.get("display_name")), name=_text(t.get("name")))
        for t in raw
        if isinstance(t, dict)
    ]


def parse_destination(raw: Any) -> Optional[Destination]:
    if not isinstance(raw, dict):
        return None
    metadata = _dict(raw.get("metadata"))
    return Destination(
        hash=_text(raw.get("hash")),
        name=_text(raw.get("name")),
        metadata_name=_text(metadata.get("name")),
        metadata_slug=_text(metadata.get("slug")),
        public_tags=_tags(raw.get("public_tags")),
        watchlist_names=_tags(raw.get("watchlist_names")),
    )


def parse_transaction(raw: dict) -> Optional[Transaction]:
    ts = parse_timestamp(raw.get("timestamp"))
    if ts is None:
        return None
    return Transaction(
        timestamp=ts,
        value=wei_to_ether(raw.get("value")),
        to=parse_destination(raw.get("to")),
    )


def parse_token_transfer(raw: dict, queried_address: str = "") -> Optional[TokenTransfer]:
    ts = parse_timestamp(raw.get("timestamp"))
    if ts is None:
        return None

    token = _dict(raw.get("token"))
    decimals_raw = token.get("decimals")
    try:
        decimals = int(decimals_raw) if decimals_raw is not None else 18
    except (TypeError, ValueError):
        decimals = 18
    total = _dict(raw.get("total"))

    return TokenTransfer(
        timestamp=ts,
        from_address=str(_dict(raw.get("from")).get("hash") or "").lower(),
        to_address=str(_dict(raw.get("to")).get("hash") or "").lower(),
        perspective=str(raw.get("address_hash") or queried_address or "").lower(),
        token=TokenInfo(
            symbol=_text(token.get("symbol")),
            name=_text(token.get("name")),
            address_hash=_text(token.get("address_hash") or token.get("address")),
            decimals=decimals,
        ),
        amount=scale_amount(total.get("value"), decimals),
    )


def _parse_transfers(items: list[dict], queried_address: str) -> list[TokenTransfer]:
    transfers = (parse_token_transfer(i, queried_address) for i in items)
    return [t for t in transfers if t is not None]


def parse_balance_point(raw: dict) -> Optional[BalancePoint]:
    if not isinstance(raw, dict):
        return None
    date = parse_timestamp(raw.get("date") or raw.get("day") or raw.get("timestamp"))
    if date is None:
        return None
    value = raw.get("value") or raw.get("balance") or raw.get("coin_balance") or 0
    return BalancePoint(date=date, balance=wei_to_ether(value))


def parse_nft_collection(raw: dict) -> NftCollection:
    raw_instances = raw.get("token_instances")
    if not isinstance(raw_instances, list):
        raw_instances = []

    instances: list[NftInstance] = []
    for inst in raw_instances:
        metadata = _dict(_dict(inst).get("metadata"))
        tags = metadata.get("tags") or []
        attrs = metadata.get("attributes") or []
        instances.append(NftInstance(
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            attributes=[
                NftAttribute(trait_type=_text(a.get("trait_type")), value=a.get("value"))
                for a in attrs
                if isinstance(a, dict)
            ] if isinstance(attrs, list) else [],
        ))

    return NftCollection(
        amount=to_number(raw.get("amount")),
        token_instances=instances,
    )
