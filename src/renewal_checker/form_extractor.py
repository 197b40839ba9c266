"""
Login form extraction.

Finds the form that encloses the password input of an HTML page and returns
its action, method and inputs the way a browser would resolve them.
"""

from typing import Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .exceptions import FormNotFoundError
from .models import FormInput, LoginForm

DEFAULT_ACTION = "about:blank"
DEFAULT_METHOD = "get"
FORM_METHODS = frozenset({"get", "post", "dialog"})
CHECKABLE_TYPES = frozenset({"checkbox", "radio"})
INPUT_TYPES = frozenset({
    "button", "checkbox", "color", "date", "datetime-local", "email", "file",
    "hidden", "image", "month", "number", "password", "radio", "range", "reset",
    "search", "submit", "tel", "text", "time", "url", "week",
})


def _get_attr_str(tag: Tag, attr: str, default: str = "") -> str:
    """Get an attribute as a string (bs4 returns lists for multi-valued attributes)."""
    value = tag.get(attr)
    if value is None:
        return default
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def _document_base(soup: BeautifulSoup, base_url: Optional[str]) -> Optional[str]:
    base = soup.find("base", href=True)
    if isinstance(base, Tag):
        href = _get_attr_str(base, "href").strip()
        if href:
            return urljoin(base_url, href) if base_url else href
    return base_url


def _is_password_input(tag: Tag) -> bool:
    return tag.name == "input" and _get_attr_str(tag, "type").strip().lower() == "password"


def _resolve_input(tag: Tag) -> FormInput:
    input_type = _get_attr_str(tag, "type").strip().lower()
    if input_type not in INPUT_TYPES:
        input_type = "text"
    value = tag.get("value")
    if value is None:
        resolved = "on" if input_type in CHECKABLE_TYPES else ""
    else:
        resolved = _get_attr_str(tag, "value")
    return FormInput(
        name=_get_attr_str(tag, "name"),
        type=input_type,
        value=resolved,
    )


def extract_login_form(html: str, base_url: Optional[str] = None) -> LoginForm:
    """
    Extract the login form from an HTML document.

    The login form is the nearest <form> ancestor of the first
    ``<input type="password">`` in document order.

    Args:
        html: The HTML document
        base_url: Optional URL of the page, used to resolve a relative action

    Returns:
        LoginForm with action, lower-cased method and all descendant inputs

    Raises:
        FormNotFoundError: If there is no password input, or it has no parent form
    """
    soup = BeautifulSoup(html or "", "html.parser")

    password = soup.find(_is_password_input)
    if password is None:
        raise FormNotFoundError(
            "login form extraction failed: input[type=password] not found",
            details={"html_length": len(html or "")},
        )

    form = password.find_parent("form")
    if form is None:
        raise FormNotFoundError(
            "login form extraction failed: parent form of input[type=password] not found",
            details={"html_length": len(html or "")},
        )

    action = _get_attr_str(form, "action").strip()
    if action:
        base = _document_base(soup, base_url)
        if base:
            action = urljoin(base, action)
    else:
        action = DEFAULT_ACTION

    method = _get_attr_str(form, "method").strip().lower()
    if method not in FORM_METHODS:
        method = DEFAULT_METHOD

    inputs = [_resolve_input(tag) for tag in form.find_all("input")]

    return LoginForm(action=action, method=method, inputs=inputs)
