"""
Login handshake against an HTML-form login page.

Steps, each depending on the previous one:

1. Follow the redirect chain to the login page and require a session cookie.
2. Extract the form around the password input.
3. Resolve the form action to an absolute URL and require method POST.
4. Require the token, username and password inputs and fill in credentials.
5. POST the form urlencoded; the answer must be a redirect that sets cookies.

Every failure raises a LoginError subclass (or a PageError from the walker and
extractor). Exactly one attempt is made per call; retrying is up to the caller.
"""

import json
import logging
import re
from dataclasses import asdict
from typing import Mapping, Optional, Sequence
from urllib.parse import urlencode, urljoin, urlsplit, urlunsplit

from .cookies import cookie_header_from_set_cookie
from .exceptions import (
    InvalidFormMethodError,
    LoginRequestNoCookieError,
    LoginRequestNoRedirectError,
    MissingFormActionError,
    MissingRequiredInputsError,
    MissingSessionCookieError,
)
from .form_extractor import extract_login_form
from .models import LoginForm, Session
from .session_walker import DEFAULT_MAX_HOPS, follow_to_terminal_page
from .transport import Transport

logger = logging.getLogger(__name__)

TOKEN_FIELD = "token"
USERNAME_FIELD = "username"
PASSWORD_FIELD = "password"
REQUIRED_INPUTS = (TOKEN_FIELD, USERNAME_FIELD, PASSWORD_FIELD)

ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)

POST_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml",
    "Cache-Control": "no-cache",
    "Content-Type": "application/x-www-form-urlencoded",
    "Pragma": "no-cache",
}


def _describe_form(form: LoginForm) -> str:
    return json.dumps(asdict(form), ensure_ascii=False)


def resolve_form_action(action: str, page_url: str) -> str:
    """
    Resolve a form action to an absolute URL.

    Args:
        action: The action as extracted from the form
        page_url: Address of the page holding the form

    Returns:
        ``action`` when already absolute; the same-origin path when it starts
        with '/'; otherwise ``action`` resolved against ``page_url``

    Raises:
        MissingFormActionError: If the action is empty or not submittable
    """
    action = (action or "").strip()
    if not action or action.lower().startswith("about:"):
        raise MissingFormActionError(
            f'login failed: undefined "action" in the form of "{page_url}"',
            details={"action": action, "page_url": page_url},
        )
    if ABSOLUTE_URL.match(action):
        return action
    if action.startswith("/"):
        page = urlsplit(page_url)
        target = urlsplit(action)
        return urlunsplit((page.scheme, page.netloc, target.path, target.query, ""))
    return urljoin(page_url, action)


def build_login_data(
    form: LoginForm,
    username: str,
    password: str,
    required: Sequence[str] = REQUIRED_INPUTS,
) -> dict[str, str]:
    """
    Build the POST data for the login form.

    Args:
        form: The extracted login form
        username: Value for the username input
        password: Value for the password input
        required: Input names that must be present in the form

    Returns:
        Mapping of input name to value with the credentials filled in

    Raises:
        MissingRequiredInputsError: Naming every required input that is absent
    """
    data = form.to_data()
    missing = [name for name in required if name not in data]
    if missing:
        names = ", ".join(f'"{name}"' for name in missing)
        raise MissingRequiredInputsError(
            f"login failed: the required inputs {names} are missing in the form inputs "
            f"{json.dumps([asdict(i) for i in form.inputs], ensure_ascii=False)}",
            missing=missing,
        )
    data[USERNAME_FIELD] = username
    data[PASSWORD_FIELD] = password
    return data


async def post_login_data(
    transport: Transport,
    url: str,
    data: Mapping[str, str],
    cookie: str,
    headers: Optional[Mapping[str, str]] = None,
) -> Session:
    """
    Submit the login form and derive the authenticated session.

    Args:
        transport: Transport used for the request
        url: Absolute URL the form posts to
        data: Form fields, sent application/x-www-form-urlencoded
        cookie: Serialized session cookie of the login page
        headers: Extra request headers (User-Agent, Referer, ...)

    Returns:
        Session with the redirect target and the cookies it set

    Raises:
        LoginRequestNoRedirectError: The response is not a redirect
        LoginRequestNoCookieError: The redirect sets no cookies
    """
    request_headers = {
        key: value for key, value in (headers or {}).items() if key.lower() != "cookie"
    }
    request_headers.update(POST_HEADERS)
    if cookie:
        request_headers["Cookie"] = cookie

    response = await transport.post(url, headers=request_headers, body=urlencode(dict(data)))

    if not response.is_redirect:
        raise LoginRequestNoRedirectError(
            f'login request received a status code "{response.status_code}" '
            f'without a redirection from "{url}"',
            details={"url": url, "status_code": response.status_code,
                     "headers": dict(response.headers)},
        )
    if not response.set_cookies:
        raise LoginRequestNoCookieError(
            f'login request response "{url}" has no set-cookie header',
            details={"url": url, "status_code": response.status_code,
                     "headers": dict(response.headers)},
        )

    location = response.location
    address = urljoin(url, location) if location else url
    return Session(address=address, cookies=cookie_header_from_set_cookie(response.set_cookies))


async def login(
    transport: Transport,
    url: str,
    username: str,
    password: str,
    headers: Optional[Mapping[str, str]] = None,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> Session:
    """
    Log in through the HTML login form reachable from ``url``.

    Args:
        transport: Transport used for every request
        url: Login entry URL (redirects are followed up to ``max_hops``)
        username: Account login
        password: Account password
        headers: Extra request headers, typically the User-Agent; not modified
        max_hops: Redirect budget for reaching the login page

    Returns:
        The authenticated Session

    Raises:
        LoginError: On any handshake precondition violation
        PageError: If the login page cannot be reached or has no form
        TransportFailureError: On connection-level failures
    """
    page = await follow_to_terminal_page(transport, url, headers=headers, max_hops=max_hops)
    if not page.cookies:
        raise MissingSessionCookieError(
            f'login failed: undefined "cookie" in the form page "{page.address}" '
            f"({len(page.html)} bytes)",
            details={"address": page.address},
        )
    logger.debug("Login page reached: %s", page.address)

    form = extract_login_form(page.html)
    post_url = resolve_form_action(form.action, page.address)

    if form.method.lower() != "post":
        raise InvalidFormMethodError(
            f'login failed: "method" must be "POST" in the form {_describe_form(form)}',
            details={"method": form.method, "action": form.action},
        )

    data = build_login_data(form, username, password)

    request_headers = {
        key: value for key, value in (headers or {}).items() if key.lower() != "referer"
    }
    request_headers["Referer"] = page.address

    session = await post_login_data(
        transport,
        post_url,
        data=data,
        cookie=page.cookies,
        headers=request_headers,
    )
    logger.debug("Logged in, session address: %s", session.address)
    return session
