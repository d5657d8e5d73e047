"""时间工具：ISO-8601 UTC 时间戳与毫秒时间戳 (ISO-8601 UTC and epoch-millisecond helpers)"""
import time
from datetime import datetime, timezone


def utcnow_iso() -> str:
    """形如 2024-01-01T00:00:00.000Z 的 UTC 时间 (UTC time in JS toISOString form)"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_iso_ms(value: str | None) -> int | None:
    """ISO 时间转毫秒时间戳，无法解析时返回 None (ISO time to epoch ms, None if unparsable)"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
