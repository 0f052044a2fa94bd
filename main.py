import asyncio
import io
import os
import time
from contextlib import asynccontextmanager
from typing import Literal, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from fastmcp import FastMCP

load_dotenv()

from blockscout import UpstreamError
from exports import to_csv, to_excel
from insights_analyzer import InsightsAnalyzer
from models import HealthResponse, Insights
from utils import validate_evm_address

VERSION = "1.0.0"
DEFAULT_YEAR = int(os.getenv("INSIGHTS_YEAR", "2025"))
REQUEST_TIMEOUT = float(os.getenv("INSIGHTS_TIMEOUT_SECONDS", "90"))
MIN_YEAR = 2015
MAX_YEAR = 2100


# ── MCP Server (mounted at /mcp) ─────────────────────────────────────────────

mcp = FastMCP(
    name="Wallet Unwrapped",
    instructions=(
        "Builds a yearly 'unwrapped' recap for an Arbitrum One wallet from Blockscout "
        "data: transaction volume, busiest day, NFT mints, bridges, streaks, token "
        "habits, ETH balance journey, NFT badges and dapp diversity."
    ),
)


@mcp.tool()
async def wallet_insights_mcp(address: str, year: Optional[int] = None) -> dict:
    """
    Compute the yearly recap for a wallet.

    Args:
        address: EVM address (0x + 40 hex characters).
        year:    Calendar year (UTC). Defaults to the configured year.

    Returns:
        The insights snapshot as a camelCase JSON object.
    """
    insights = await analyzer.analyze(address, year or DEFAULT_YEAR)
    return insights.model_dump(by_alias=True)


# Served at the mount root, so the endpoint is /mcp/.
mcp_app = mcp.http_app(path="/")


# ── Lifespan ──────────────────────────────────────────────────────────────────

analyzer: InsightsAnalyzer | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global analyzer
    analyzer = InsightsAnalyzer()
    print(f"  Blockscout: {analyzer.provider.api_base}")
    print("  Wallet Unwrapped ready")
    async with mcp_app.lifespan(app):
        yield
    print("  Shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Wallet Unwrapped",
    description=(
        "Yearly activity recap for an Arbitrum One wallet.\n\n"
        "Aggregates transactions, token transfers, balance history and NFT holdings "
        "from Blockscout and derives a fixed set of metrics.\n\n"
        "Exposes **REST** (`/insights`) and **MCP** (`/mcp`) endpoints."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/mcp", mcp_app)


# ── Info ──────────────────────────────────────────────────────────────────────


@app.get("/", tags=["Info"])
def root(request: Request):
    base = str(request.base_url).rstrip("/")
    return {
        "name": "Wallet Unwrapped",
        "version": VERSION,
        "default_year": DEFAULT_YEAR,
        "endpoints": {
            "docs": f"{base}/docs",
            "health": f"{base}/health",
            "insights": f"{base}/insights?address=0x...",
            "mcp": f"{base}/mcp/",
        },
    }


@app.get("/health", response_model=HealthResponse, tags=["Info"])
def health():
    return HealthResponse(status="ok", version=VERSION)


# ── Core: Wallet Insights ─────────────────────────────────────────────────────


@app.get("/insights", response_model=Insights, tags=["Wallet"])
async def wallet_insights(
    address: str = Query(..., description="EVM address, 0x + 40 hex characters"),
    year: int = Query(
        default=DEFAULT_YEAR, ge=MIN_YEAR, le=MAX_YEAR, description="Calendar year (UTC)"
    ),
    format: Literal["json", "csv", "excel"] = Query(
        default="json",
        description="Output format: json (default) | csv | excel",
    ),
):
    """
    Compute the yearly recap for a wallet.

    Fetches five Blockscout streams concurrently (transactions, NFT transfers,
    ERC-20 transfers, daily balance history, NFT collections). Any failing
    stream fails the whole request; there is no partial output.
    """
    try:
        address = validate_evm_address(address)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    start = time.time()

    try:
        insights = await asyncio.wait_for(
            analyzer.analyze(address, year), timeout=REQUEST_TIMEOUT
        )
    except UpstreamError as e:
        raise HTTPException(status_code=502, detail=str(e))
    except asyncio.TimeoutError:
        print(f"  [!] insights for {address} timed out after {REQUEST_TIMEOUT:.0f}s")
        raise HTTPException(status_code=504, detail="Timed out fetching insights")
    except Exception as e:
        print(f"  [!] insights for {address} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e) or "Failed to fetch insights")

    elapsed = int((time.time() - start) * 1000)
    print(f"  {address} {year}: {insights.total_transactions} txs in {elapsed}ms")
    short = address[:12]

    if format == "csv":
        return StreamingResponse(
            content=io.BytesIO(to_csv(insights)),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="unwrapped_{short}_{year}.csv"'
            },
        )

    if format == "excel":
        return StreamingResponse(
            content=io.BytesIO(to_excel(insights)),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={
                "Content-Disposition": f'attachment; filename="unwrapped_{short}_{year}.xlsx"'
            },
        )

    return insights


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("APP_ENV", "development") == "development",
    )
