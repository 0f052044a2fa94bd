import asyncio
from typing import Optional

from blockscout import BlockscoutProvider, UpstreamError
from metrics import (
    count_active_days,
    count_bridges,
    first_touch,
    summarize_dapp_diversity,
    summarize_eth_journey,
    summarize_mints,
    summarize_nft_snapshot,
    summarize_streaks,
    summarize_token_habits,
    summarize_volume,
)
from models import BalancePoint, Insights, NftCollection, TokenTransfer, Transaction
from utils import validate_evm_address

STORY_TITLE = "Arbitrum Unwrapped"
STORY_SEPARATOR = " · "


def build_mint_story(year: int, total_txs: int, volume_eth: float, day_label: str) -> str:
    return STORY_SEPARATOR.join([
        f"{STORY_TITLE} {year}",
        f"{total_txs} txs",
        f"{volume_eth:.2f} ETH moved",
        f"Biggest day: {day_label}",
    ])


def build_insights(
    address: str,
    year: int,
    txs: list[Transaction],
    nft_transfers: list[TokenTransfer],
    erc20_transfers: list[TokenTransfer],
    balance_history: list[BalancePoint],
    nft_collections: list[NftCollection],
) -> Insights:
    """Fold year-filtered streams into one snapshot. No I/O."""
    total_txs, volume, day = summarize_volume(txs, year)
    nfts_minted, top_collection = summarize_mints(nft_transfers)

    return Insights(
        address=address,
        year=year,
        total_transactions=total_txs,
        total_volume_eth=round(volume, 4),
        biggest_day=day,
        nfts_minted=nfts_minted,
        top_collection=top_collection,
        bridge_count=count_bridges(txs),
        gm_streak=count_active_days(txs),
        first_touch=first_touch(txs),
        mint_story=build_mint_story(year, total_txs, volume, day.label),
        token_habits=summarize_token_habits(erc20_transfers),
        eth_journey=summarize_eth_journey(balance_history),
        nft_snapshot=summarize_nft_snapshot(nft_collections),
        streaks=summarize_streaks(txs),
        dapp_diversity=summarize_dapp_diversity(txs),
    )


class InsightsAnalyzer:
    """Orchestrates the five Blockscout streams into one yearly snapshot."""

    def __init__(self, provider: Optional[BlockscoutProvider] = None):
        self.provider = provider or BlockscoutProvider()

    async def analyze(self, address: str, year: int) -> Insights:
        address = validate_evm_address(address)
        provider = self.provider

        # ── Fetch all streams concurrently (fail fast) ─────────────────────
        async with provider.client() as client:
            tasks = [
                asyncio.ensure_future(provider.get_transactions(client, address, year)),
                asyncio.ensure_future(provider.get_nft_transfers(client, address, year)),
                asyncio.ensure_future(provider.get_erc20_transfers(client, address, year)),
                asyncio.ensure_future(provider.get_balance_history(client, address)),
                asyncio.ensure_future(provider.get_nft_collections(client, address)),
            ]
            try:
                txs, nft_transfers, erc20_transfers, history, collections = (
                    await asyncio.gather(*tasks)
                )
            except BaseException as e:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                if isinstance(e, UpstreamError):
                    print(f"  [!] {e.stream} failed for {address}: {e}")
                raise

        history = [p for p in history if p.date.year == year]

        return build_insights(
            address, year, txs, nft_transfers, erc20_transfers, history, collections
        )
