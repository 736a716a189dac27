"""System prompt templates.

Templates may reference ``{{ placeholder }}`` values that are filled in
right before a conversation starts. The location placeholder needs a
network lookup, which is best-effort: it is bounded in time and falls
back to a fixed text.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOCATION_UNAVAILABLE = "Location unavailable"
DEFAULT_LOCATION_URL = "https://ipapi.co/json/"
DEFAULT_LOCATION_TIMEOUT = 5.0

LOCATION_KEYS = ("current_location", "当前地理位置")

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([^{}\s]+)\s*\}\}")


async def with_fallback(awaitable: Awaitable[T], timeout: float, fallback: T) -> T:
    """Await with a time bound, returning a fallback on timeout or failure.

    Args:
        awaitable: The lookup to run.
        timeout: Seconds to wait.
        fallback: Value returned when the lookup times out or fails.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.debug(f"Lookup timed out after {timeout}s, using fallback")
        return fallback
    except Exception as e:
        logger.debug(f"Lookup failed, using fallback: {e}")
        return fallback


def format_location(latitude: float, longitude: float, accuracy: float | None = None) -> str:
    """Format coordinates the way they appear in prompts."""
    text = f"lat {latitude:.6f}, lng {longitude:.6f}"
    if accuracy is not None:
        text += f" (±{round(accuracy)}m)"
    return text


async def lookup_location(
    url: str = DEFAULT_LOCATION_URL,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Look up the approximate location of this machine by IP.

    Raises on any failure; callers wrap it with ``with_fallback``.
    """
    async with httpx.AsyncClient(transport=http_transport) as client:
        response = await client.get(url)
        response.raise_for_status()
        data: dict[str, Any] = response.json()

    latitude = data.get("latitude", data.get("lat"))
    longitude = data.get("longitude", data.get("lon"))
    if latitude is None or longitude is None:
        raise ValueError("Location response has no coordinates")

    accuracy = data.get("accuracy")
    return format_location(float(latitude), float(longitude), accuracy)


async def get_current_location_text(
    timeout: float = DEFAULT_LOCATION_TIMEOUT,
    lookup: Callable[[], Awaitable[str]] | None = None,
) -> str:
    """Approximate location text, or "Location unavailable"."""
    return await with_fallback((lookup or lookup_location)(), timeout, LOCATION_UNAVAILABLE)


def _local_timezone_name(now: datetime) -> str:
    tzinfo = now.tzinfo
    if tzinfo is None:
        return "Unknown"
    key = getattr(tzinfo, "key", None)
    return key or now.tzname() or "Unknown"


async def resolve_system_prompt_template(
    template: str,
    *,
    now: datetime | None = None,
    location_lookup: Callable[[], Awaitable[str]] | None = None,
    timeout: float = DEFAULT_LOCATION_TIMEOUT,
) -> str:
    """Fill in the placeholders of a system prompt template.

    Unknown placeholders are left as they are.

    Args:
        template: Template text.
        now: Current time (defaults to local now).
        location_lookup: Location lookup to use instead of the IP lookup.
        timeout: Bound on the location lookup, in seconds.

    Returns:
        The resolved prompt, or "" for a blank template.
    """
    if not template.strip():
        return ""

    now = now or datetime.now().astimezone()
    current_time = now.strftime("%Y-%m-%d %H:%M:%S")

    replacements = {
        "current_time": current_time,
        "当前时间": current_time,
        "current_time_iso": now.isoformat(),
        "current_timezone": _local_timezone_name(now),
    }

    used_keys = set(_PLACEHOLDER_RE.findall(template))
    if used_keys.intersection(LOCATION_KEYS):
        location = await get_current_location_text(timeout=timeout, lookup=location_lookup)
        for key in LOCATION_KEYS:
            replacements[key] = location

    def substitute(match: re.Match) -> str:
        return replacements.get(match.group(1), match.group(0))

    return _PLACEHOLDER_RE.sub(substitute, template)
