import csv
import io
from datetime import datetime, timezone

from models import Insights


def _generated() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _sections(insights: Insights) -> list[tuple[str, list[tuple[str, object]]]]:
    th = insights.token_habits
    ej = insights.eth_journey
    ns = insights.nft_snapshot
    return [
        ("ACTIVITY", [
            ("Total Transactions", insights.total_transactions),
            ("Total Volume (ETH)", f"{insights.total_volume_eth:.4f}"),
            ("Biggest Day", insights.biggest_day.label),
            ("Biggest Day Txs", insights.biggest_day.txs),
            ("Biggest Day Minutes (est.)", insights.biggest_day.minutes),
            ("Active Days", insights.gm_streak),
            ("Longest Streak (Days)", insights.streaks.longest_consecutive_days),
            ("Most Active Hours (UTC)", insights.streaks.dominant_hour_bucket),
            ("First Touch", insights.first_touch),
            ("Bridges", insights.bridge_count),
        ]),
        ("NFTS", [
            ("NFTs Minted", insights.nfts_minted),
            ("Top Collection", insights.top_collection),
            ("Collections Held", ns.collections_held),
            ("Event City", ns.event_city),
            ("Oldest Event Year", ns.oldest_event_year),
            ("Event / POAP Badges", ns.event_badge_count),
        ]),
        ("TOKEN HABITS", [
            ("Top Token by Volume", th.top_volume_symbol),
            ("Top Token Volume", f"{th.top_volume_amount:.4f}"),
            ("Top Token by Transfers", th.top_count_symbol),
            ("Top Token Transfers", th.top_count_transfers),
            ("Stablecoin Preference", th.stable_preference),
        ]),
        ("ETH JOURNEY", [
            ("Start (ETH)", f"{ej.start:.4f}"),
            ("End (ETH)", f"{ej.end:.4f}"),
            ("Peak (ETH)", f"{ej.peak:.4f}"),
            ("Change (%)", f"{ej.change_percent:.1f}"),
            ("Biggest Swing (ETH)", f"{ej.biggest_swing:+.4f}"),
        ]),
        ("DAPPS", [
            ("Unique Dapps", insights.dapp_diversity.unique_dapps),
            ("Top Category", insights.dapp_diversity.top_category),
        ]),
    ]


def to_csv(insights: Insights) -> bytes:
    """Export an insights snapshot to CSV."""
    out = io.StringIO()
    w = csv.writer(out)

    w.writerow([f"WALLET UNWRAPPED {insights.year}"])
    w.writerow(["Address", insights.address])
    w.writerow(["Generated", _generated()])
    w.writerow([])

    for title, rows in _sections(insights):
        w.writerow([title])
        for label, value in rows:
            w.writerow([label, value])
        w.writerow([])

    w.writerow(["STORY"])
    w.writerow([insights.mint_story])

    return out.getvalue().encode("utf-8")


def to_excel(insights: Insights) -> bytes:
    """Export an insights snapshot to a formatted Excel workbook."""
    import openpyxl
    from openpyxl.styles import Alignment, Font, PatternFill
    from openpyxl.utils import get_column_letter

    wb = openpyxl.Workbook()

    # ── Summary Sheet ─────────────────────────────────────────────────
    ws = wb.active
    ws.title = "Summary"

    accent = PatternFill(start_color="12aaff", end_color="12aaff", fill_type="solid")
    dark = PatternFill(start_color="213147", end_color="213147", fill_type="solid")
    white_bold = Font(bold=True, color="FFFFFF")
    bold = Font(bold=True)

    ws.merge_cells("A1:C1")
    ws["A1"] = f"Wallet Unwrapped {insights.year}"
    ws["A1"].font = Font(bold=True, size=16, color="FFFFFF")
    ws["A1"].fill = accent
    ws["A1"].alignment = Alignment(horizontal="center")

    rows = [
        ("Address", insights.address),
        ("Generated", _generated()),
        ("Story", insights.mint_story),
    ]
    for i, (label, value) in enumerate(rows, 3):
        ws[f"A{i}"] = label
        ws[f"A{i}"].font = bold
        ws[f"B{i}"] = value

    # ── Details Sheet ─────────────────────────────────────────────────
    ws2 = wb.create_sheet("Details")
    for col, h in enumerate(["Section", "Metric", "Value"], 1):
        cell = ws2.cell(row=1, column=col, value=h)
        cell.font = white_bold
        cell.fill = dark

    row = 2
    for title, metrics in _sections(insights):
        for label, value in metrics:
            ws2.cell(row=row, column=1, value=title.title())
            ws2.cell(row=row, column=2, value=label)
            ws2.cell(row=row, column=3, value=value)
            row += 1

    # Auto-fit column widths
    for sheet in [ws, ws2]:
        for col in sheet.columns:
            max_len = max(len(str(cell.value or "")) for cell in col)
            sheet.column_dimensions[get_column_letter(col[0].column)].width = min(max_len + 3, 60)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()
