from typing import Mapping, Optional


def header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup over a plain mapping."""
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def client_ip(headers: Mapping[str, str], peer: Optional[str]) -> Optional[str]:
    # first X-Forwarded-For entry is the original client
    forwarded = header(headers, "x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return peer or None
