"""
HTTP tests for the FastAPI app. The REST tests skip the lifespan and swap the
module-level analyzer for one wired to the fake upstream; the MCP test enters
the lifespan so the mounted session manager runs.
"""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

import main
from conftest import ADDRESS, WEI, tx_item


@pytest.fixture
def client(analyzer, monkeypatch) -> TestClient:
    monkeypatch.setattr(main, "analyzer", analyzer)
    return TestClient(main.app)


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "version": main.VERSION}


def test_root_lists_endpoints(client):
    body = client.get("/").json()
    assert body["name"] == "Wallet Unwrapped"
    assert body["endpoints"]["insights"].endswith("/insights?address=0x...")


def test_insights_invalid_address_is_400(client, fake_blockscout):
    resp = client.get("/insights", params={"address": "0xnothex"})
    assert resp.status_code == 400
    assert "Invalid address" in resp.json()["detail"]
    assert fake_blockscout.requests == []


def test_insights_missing_address_is_422(client):
    assert client.get("/insights").status_code == 422


@pytest.mark.parametrize("year", [1999, 3000])
def test_insights_year_out_of_range_is_422(client, year):
    resp = client.get("/insights", params={"address": ADDRESS, "year": year})
    assert resp.status_code == 422


def test_insights_returns_camel_case_json(client, fake_blockscout):
    fake_blockscout.set_pages("transactions", [tx_item("2025-08-08", value_wei=2 * WEI)])

    resp = client.get("/insights", params={"address": ADDRESS, "year": 2025})
    assert resp.status_code == 200
    body = resp.json()

    assert body["totalTransactions"] == 1
    assert body["totalVolumeEth"] == 2.0
    assert body["biggestDay"] == {"label": "Aug 08, 2025", "txs": 1, "minutes": 2}
    assert body["firstTouch"] == "2025-08-08"
    assert body["gmStreak"] == 1
    assert body["tokenHabits"]["stablePreference"] == "None"
    assert body["ethJourney"]["changePercent"] == 0
    assert body["nftSnapshot"]["oldestEventYear"] == "None"
    assert body["streaks"]["dominantHourBucket"] == "12-17"
    assert body["dappDiversity"]["uniqueDapps"] == 1
    assert body["mintStory"].startswith("Arbitrum Unwrapped 2025 · 1 txs · 2.00 ETH moved")


def test_insights_upstream_failure_is_502(client, fake_blockscout):
    fake_blockscout.fail("erc20", status=429, body="rate limited")

    resp = client.get("/insights", params={"address": ADDRESS})
    assert resp.status_code == 502
    assert "ERC-20 transfers" in resp.json()["detail"]
    assert "(429)" in resp.json()["detail"]


def test_insights_timeout_is_504(client, monkeypatch):
    monkeypatch.setattr(main, "REQUEST_TIMEOUT", 0.01)

    async def slow(address, year):
        await asyncio.sleep(1)

    monkeypatch.setattr(main.analyzer, "analyze", slow)
    assert client.get("/insights", params={"address": ADDRESS}).status_code == 504


def test_insights_csv_download(client, fake_blockscout):
    fake_blockscout.set_pages("transactions", [tx_item("2025-08-08")])

    resp = client.get("/insights", params={"address": ADDRESS, "format": "csv"})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="unwrapped_0xababababab_2025.csv"' in resp.headers["content-disposition"]
    assert "WALLET UNWRAPPED 2025" in resp.text


def test_insights_excel_download(client):
    resp = client.get("/insights", params={"address": ADDRESS, "format": "excel"})
    assert resp.status_code == 200
    assert resp.content[:2] == b"PK"
    assert resp.headers["content-disposition"].endswith('.xlsx"')


def test_insights_unknown_format_is_422(client):
    resp = client.get("/insights", params={"address": ADDRESS, "format": "pdf"})
    assert resp.status_code == 422


# ── MCP ───────────────────────────────────────────────────────────────────────

MCP_HEADERS = {"Accept": "application/json, text/event-stream"}


def _rpc_result(resp) -> dict:
    """JSON-RPC result from a plain JSON or a single-event SSE reply."""
    if resp.headers["content-type"].startswith("text/event-stream"):
        data = [line[len("data:"):] for line in resp.text.splitlines() if line.startswith("data:")]
        message = json.loads(data[-1])
    else:
        message = resp.json()
    assert "error" not in message, message
    return message["result"]


def test_mcp_tool_over_mounted_endpoint(analyzer, fake_blockscout, monkeypatch):
    monkeypatch.setattr(main, "InsightsAnalyzer", lambda: analyzer)
    fake_blockscout.set_pages("transactions", [tx_item("2025-08-08", value_wei=WEI)])

    with TestClient(main.app) as client:
        init = client.post("/mcp/", headers=MCP_HEADERS, json={
            "jsonrpc": "2.0",
            "id": 1,
            "method": "initialize",
            "params": {
                "protocolVersion": "2025-03-26",
                "capabilities": {},
                "clientInfo": {"name": "pytest", "version": "0"},
            },
        })
        assert init.status_code == 200
        assert _rpc_result(init)["serverInfo"]["name"] == "Wallet Unwrapped"

        headers = dict(MCP_HEADERS)
        session = init.headers.get("mcp-session-id")
        if session:
            headers["mcp-session-id"] = session
        client.post("/mcp/", headers=headers, json={
            "jsonrpc": "2.0", "method": "notifications/initialized",
        })

        call = client.post("/mcp/", headers=headers, json={
            "jsonrpc": "2.0",
            "id": 2,
            "method": "tools/call",
            "params": {
                "name": "wallet_insights_mcp",
                "arguments": {"address": ADDRESS, "year": 2025},
            },
        })
        assert call.status_code == 200
        result = _rpc_result(call)

    assert not result.get("isError")
    body = json.loads(result["content"][0]["text"])
    assert body["totalTransactions"] == 1
    assert body["totalVolumeEth"] == 1.0
    assert body["address"] == ADDRESS
