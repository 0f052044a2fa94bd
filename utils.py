import re
from datetime import datetime, timezone
from typing import Any, Optional

EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def is_evm_address(address: str) -> bool:
    return bool(EVM_ADDRESS_RE.match(address or ""))


def validate_evm_address(address: str) -> str:
    """Return the trimmed address or raise ValueError."""
    address = (address or "").strip()
    if not is_evm_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return address


def to_number(value: Any, default: float = 0.0) -> float:
    """Lenient numeric coercion for explorer fields (strings, ints, None)."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def wei_to_ether(wei: int | str | None) -> float:
    try:
        return int(wei or 0) / 1e18
    except (TypeError, ValueError):
        return to_number(wei) / 1e18


def scale_amount(raw: int | str | None, decimals: Any) -> float:
    """Raw token units -> whole tokens. Falls back to 18 decimals."""
    try:
        places = int(decimals) if decimals is not None else 18
    except (TypeError, ValueError):
        places = 18
    return to_number(raw) / (10 ** places)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 explorer timestamp into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        try:
            ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def format_day(day: datetime) -> str:
    """Mar 04, 2025"""
    return day.strftime("%b %d, %Y")
