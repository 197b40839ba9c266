"""
Redirect walker for the login page.

Follows a bounded chain of redirects from a start URL until a terminal HTML
page is reached, carrying the session cookie along. The cookie jar is rebuilt
from every response that sets cookies; responses without Set-Cookie leave it
unchanged.
"""

import logging
from typing import Mapping, Optional
from urllib.parse import urljoin, urlsplit, urlunsplit

from .cookies import cookie_header_from_set_cookie
from .exceptions import (
    MaxRequestsReachedError,
    UnexpectedStatusError,
    UnsupportedContentTypeError,
)
from .models import LoginPage
from .transport import Transport

logger = logging.getLogger(__name__)

DEFAULT_MAX_HOPS = 4
TERMINAL_STATUSES = frozenset({200, 304})
HTML_MEDIA_TYPE = "text/html"


def normalize_url(url: str) -> str:
    """Give a URL without a path the root path ('http://host' -> 'http://host/')."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", parts.query, ""))


def same_host_location(current_url: str, location: str) -> str:
    """Resolve a Location header, keeping the scheme and host of the current URL."""
    current = urlsplit(current_url)
    target = urlsplit(urljoin(current_url, location))
    return urlunsplit((current.scheme, current.netloc, target.path or "/", target.query, ""))


async def follow_to_terminal_page(
    transport: Transport,
    start_url: str,
    headers: Optional[Mapping[str, str]] = None,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> LoginPage:
    """
    Walk the redirect chain starting at ``start_url``.

    Args:
        transport: Transport used for every request
        start_url: Absolute URL of the first request
        headers: Extra request headers (e.g. User-Agent); any Cookie header
            is replaced by the current jar
        max_hops: Maximum number of requests to issue

    Returns:
        LoginPage with the final address, serialized cookies and HTML

    Raises:
        UnsupportedContentTypeError: Terminal page is not text/html
        UnexpectedStatusError: Neither a redirect nor 200/304
        MaxRequestsReachedError: No terminal page within ``max_hops`` requests
        TransportFailureError: On connection-level failures
    """
    if max_hops < 1:
        raise ValueError(f"max_hops must be at least 1, got {max_hops}")

    base_headers = {
        key: value for key, value in (headers or {}).items() if key.lower() != "cookie"
    }
    url = normalize_url(start_url)
    cookies = ""

    for hop in range(max_hops):
        request_headers = dict(base_headers)
        if cookies:
            request_headers["Cookie"] = cookies
        response = await transport.get(url, headers=request_headers)

        if response.set_cookies:
            cookies = cookie_header_from_set_cookie(response.set_cookies)

        if response.is_redirect:
            if response.location:
                url = same_host_location(url, response.location)
            logger.debug("Hop %d redirected to %s", hop + 1, url)
            continue

        if response.status_code in TERMINAL_STATUSES:
            if response.media_type == HTML_MEDIA_TYPE:
                return LoginPage(address=url, cookies=cookies, html=response.text)
            raise UnsupportedContentTypeError(
                f'login page received a success status code "{response.status_code}" '
                f'from "{url}", but unsupported content-type '
                f'"{response.headers.get("content-type", "")}"',
                details={"url": url, "status_code": response.status_code,
                         "headers": dict(response.headers)},
            )

        raise UnexpectedStatusError(
            f'login page received a status code "{response.status_code}" '
            f'without a redirection from "{url}"',
            details={"url": url, "status_code": response.status_code,
                     "headers": dict(response.headers)},
        )

    raise MaxRequestsReachedError(
        f"login page maximum requests reached: {max_hops}",
        details={"url": url, "max_hops": max_hops},
    )
