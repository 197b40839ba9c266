"""
Cookie jar helpers.

The jar is a plain ordered dict of cookie name to value. Only the
``name=value`` pair in front of the first ``;`` of a Set-Cookie value is
kept; attributes (path, domain, HttpOnly, ...) are dropped.
"""

from typing import Iterable


def parse_set_cookie(values: Iterable[str]) -> dict[str, str]:
    """
    Build a cookie jar from Set-Cookie header values.

    Args:
        values: Raw Set-Cookie header values, one cookie per value

    Returns:
        Ordered mapping of cookie name to value; later duplicates overwrite
        earlier ones but keep the original position
    """
    jar: dict[str, str] = {}
    for raw in values:
        if not raw:
            continue
        pair = raw.split(";", 1)[0].strip()
        if "=" not in pair:
            continue
        name, value = pair.split("=", 1)
        name = name.strip()
        if not name:
            continue
        jar[name] = value.strip()
    return jar


def serialize_cookies(jar: dict[str, str]) -> str:
    """Serialize a cookie jar into a Cookie request header value."""
    return ";".join(f"{name}={value}" for name, value in jar.items())


def cookie_header_from_set_cookie(values: Iterable[str]) -> str:
    """Parse Set-Cookie values and serialize them as a Cookie header."""
    return serialize_cookies(parse_set_cookie(values))
