"""
Pytest fixtures for the insights service.

The upstream explorer is replaced by `FakeBlockscout`, an httpx MockTransport
handler that serves canned pages per stream and records every request.
"""

from __future__ import annotations

import httpx
import pytest

from blockscout import BlockscoutProvider
from insights_analyzer import InsightsAnalyzer

API_BASE = "https://blockscout.test/api/v2"
ADDRESS = "0x" + "ab" * 20
OTHER = "0x" + "cd" * 20
ZERO = "0x" + "00" * 20
PAGE_SIZE = 50

WEI = 10**18


def ts(day: str, hour: int = 12) -> str:
    """Blockscout-style timestamp for a YYYY-MM-DD day."""
    return f"{day}T{hour:02d}:00:00.000000Z"


def tx_item(day: str, hour: int = 12, value_wei: int = 0, to: dict | None = None) -> dict:
    return {
        "hash": f"0x{day.replace('-', '')}{hour:02d}",
        "timestamp": ts(day, hour),
        "value": str(value_wei),
        "to": to if to is not None else {"hash": OTHER},
    }


def transfer_item(
    day: str,
    sender: str,
    receiver: str,
    symbol: str | None = "TKN",
    value: int = 0,
    decimals: str | None = "18",
    token_address: str | None = "0x" + "11" * 20,
    name: str | None = None,
) -> dict:
    return {
        "timestamp": ts(day),
        "from": {"hash": sender},
        "to": {"hash": receiver},
        "token": {
            "symbol": symbol,
            "name": name,
            "decimals": decimals,
            "address_hash": token_address,
        },
        "total": {"value": str(value)},
    }


STREAM_PATHS = {
    "/transactions": "transactions",
    "/coin-balance-history-by-day": "history",
    "/nft/collections": "collections",
}


class FakeBlockscout:
    """Serves `pages[stream][n]` for the request whose cursor points at page n."""

    def __init__(self):
        self.pages: dict[str, list[list[dict]]] = {}
        self.endless: set[str] = set()
        self.failures: dict[str, tuple[int, str]] = {}
        self.requests: list[httpx.Request] = []

    def set_pages(self, stream: str, *pages: list[dict], endless: bool = False) -> None:
        self.pages[stream] = list(pages)
        if endless:
            self.endless.add(stream)

    def fail(self, stream: str, status: int = 500, body: str = "upstream exploded") -> None:
        self.failures[stream] = (status, body)

    def calls(self, stream: str) -> list[httpx.Request]:
        return [r for r in self.requests if self.stream_for(r) == stream]

    @staticmethod
    def stream_for(request: httpx.Request) -> str:
        path = request.url.path
        if path.endswith("/token-transfers"):
            token_type = request.url.params.get("type", "")
            return "erc20" if token_type == "ERC-20" else "nft"
        for suffix, stream in STREAM_PATHS.items():
            if path.endswith(suffix):
                return stream
        return "unknown"

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        stream = self.stream_for(request)

        if stream in self.failures:
            status, body = self.failures[stream]
            return httpx.Response(status, text=body)

        pages = self.pages.get(stream) or [[]]
        page_no = int(request.url.params.get("items_count", 0)) // PAGE_SIZE
        items = pages[min(page_no, len(pages) - 1)]

        has_next = stream in self.endless or page_no + 1 < len(pages)
        next_params = None
        if has_next:
            next_params = {
                "block_number": str(90_000_000 - page_no),
                "index": "7",
                "items_count": str(PAGE_SIZE * (page_no + 1)),
                "fee": "21000",
            }
        return httpx.Response(200, json={"items": items, "next_page_params": next_params})


@pytest.fixture
def fake_blockscout() -> FakeBlockscout:
    return FakeBlockscout()


@pytest.fixture
def provider(fake_blockscout, monkeypatch) -> BlockscoutProvider:
    monkeypatch.delenv("BLOCKSCOUT_API_KEY", raising=False)
    return BlockscoutProvider(
        api_base=API_BASE,
        transport=httpx.MockTransport(fake_blockscout.handler),
        max_tx_pages=10,
        max_transfer_pages=10,
        max_erc20_pages=8,
    )


@pytest.fixture
def analyzer(provider) -> InsightsAnalyzer:
    return InsightsAnalyzer(provider=provider)
