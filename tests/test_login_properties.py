"""
Property-based tests for the login handshake.
"""

import asyncio
import re
from urllib.parse import parse_qs

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from renewal_checker.exceptions import (
    InvalidFormMethodError,
    LoginError,
    LoginRequestNoCookieError,
    LoginRequestNoRedirectError,
    MissingFormActionError,
    MissingRequiredInputsError,
    MissingSessionCookieError,
)
from renewal_checker.login import (
    REQUIRED_INPUTS,
    build_login_data,
    login,
    post_login_data,
    resolve_form_action,
)
from renewal_checker.models import FormInput, LoginForm, Session
from renewal_checker.transport import Transport


BASE_URL = "http://freenom.test"
USER_AGENT = {"User-Agent": "Mozilla/5.0"}

LOGIN_FORM = """<!DOCTYPE html>
<html><body>
  <form method="post" action="dologin.php">
    <input type="hidden" name="token" value="abc123" />
    <input type="text" name="username" />
    <input type="password" name="password" />
    <input type="checkbox" name="rememberme" />
  </form>
</body></html>"""


def run_async(coro):
    """Helper to run async code in tests."""
    return asyncio.run(coro)


def with_transport(handler, call):
    async def run():
        async with Transport(transport=httpx.MockTransport(handler)) as transport:
            return await call(transport)

    return run_async(run())


class FakeRegistrar:
    """
    Login page on /clientarea.php behind one redirect, posting to /dologin.php.

    Accepts ``alice``/``secret`` and answers with a redirect to /account.
    """

    def __init__(self, form_html: str = LOGIN_FORM, session_cookie: bool = True) -> None:
        self.form_html = form_html
        self.session_cookie = session_cookie
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "GET":
            if request.url.path == "/":
                return httpx.Response(302, headers={"location": "/clientarea.php"})
            headers = [("set-cookie", "WHMCSZ=init; path=/")] if self.session_cookie else []
            return httpx.Response(200, html=self.form_html, headers=headers)

        if request.url.path != "/dologin.php":
            return httpx.Response(404)
        if request.headers.get("content-type") != "application/x-www-form-urlencoded":
            return httpx.Response(403)
        if request.headers.get("cookie") != "WHMCSZ=init":
            return httpx.Response(403)
        form = {key: values[-1] for key, values in parse_qs(request.content.decode()).items()}
        if form.get("username") != "alice" or form.get("password") != "secret":
            return httpx.Response(200, html="<p>Login failed</p>")
        return httpx.Response(
            302,
            headers=[
                ("location", "/account"),
                ("set-cookie", "Session=Test; HttpOnly"),
                ("set-cookie", f"User={form['username']}; HttpOnly"),
            ],
        )


class TestLoginSuccessProperty:
    """A valid handshake yields the redirect address and the new cookies."""

    def test_login(self) -> None:
        registrar = FakeRegistrar()

        session = with_transport(
            registrar,
            lambda transport: login(transport, BASE_URL, "alice", "secret", headers=USER_AGENT),
        )

        assert session == Session(address=BASE_URL + "/account", cookies="Session=Test;User=alice")
        post = registrar.requests[-1]
        assert post.method == "POST"
        assert post.headers["referer"] == BASE_URL + "/clientarea.php"
        assert post.headers["user-agent"] == "Mozilla/5.0"
        body = parse_qs(post.content.decode())
        assert body == {
            "token": ["abc123"],
            "username": ["alice"],
            "password": ["secret"],
            "rememberme": ["on"],
        }

    def test_caller_headers_are_not_modified(self) -> None:
        headers = {"User-Agent": "Mozilla/5.0", "Referer": "http://other.test/"}

        with_transport(
            FakeRegistrar(),
            lambda transport: login(transport, BASE_URL, "alice", "secret", headers=headers),
        )

        assert headers == {"User-Agent": "Mozilla/5.0", "Referer": "http://other.test/"}

    def test_post_login_data(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.headers["cookie"] == "WMZ=wmz"
            assert request.headers["content-type"] == "application/x-www-form-urlencoded"
            return httpx.Response(
                302,
                headers=[
                    ("location", BASE_URL + "/account"),
                    ("set-cookie", "Session=Test; Domain=/; HttpOnly"),
                    ("set-cookie", "User=test; Domain=/; HttpOnly"),
                ],
            )

        session = with_transport(
            handler,
            lambda transport: post_login_data(
                transport,
                BASE_URL + "/dologin.php",
                data={"login": "test", "password": "password"},
                cookie="WMZ=wmz",
                headers=USER_AGENT,
            ),
        )

        assert session.address == BASE_URL + "/account"
        assert session.cookies == "Session=Test;User=test"


class TestLoginFailureProperty:
    """Every precondition violation raises its own LoginError subclass."""

    def test_missing_session_cookie(self) -> None:
        with pytest.raises(MissingSessionCookieError, match=r'undefined "cookie"'):
            with_transport(
                FakeRegistrar(session_cookie=False),
                lambda transport: login(transport, BASE_URL, "alice", "secret", headers=USER_AGENT),
            )

    def test_invalid_method(self) -> None:
        html = LOGIN_FORM.replace('method="post"', 'method="get"')

        with pytest.raises(InvalidFormMethodError) as exc_info:
            with_transport(
                FakeRegistrar(form_html=html),
                lambda transport: login(transport, BASE_URL, "alice", "secret", headers=USER_AGENT),
            )

        assert '"method" must be "POST"' in exc_info.value.message

    def test_missing_action(self) -> None:
        html = LOGIN_FORM.replace(' action="dologin.php"', "")

        with pytest.raises(MissingFormActionError):
            with_transport(
                FakeRegistrar(form_html=html),
                lambda transport: login(transport, BASE_URL, "alice", "secret", headers=USER_AGENT),
            )

    def test_missing_required_inputs(self) -> None:
        html = LOGIN_FORM.replace('name="token"', 'name="csrf"')

        with pytest.raises(MissingRequiredInputsError) as exc_info:
            with_transport(
                FakeRegistrar(form_html=html),
                lambda transport: login(transport, BASE_URL, "alice", "secret", headers=USER_AGENT),
            )

        assert exc_info.value.missing == ["token"]

    def test_wrong_credentials_no_redirect(self) -> None:
        with pytest.raises(LoginRequestNoRedirectError) as exc_info:
            with_transport(
                FakeRegistrar(),
                lambda transport: login(transport, BASE_URL, "alice", "wrong", headers=USER_AGENT),
            )

        assert re.search(r"received a status code.*without a redirection", exc_info.value.message)

    def test_redirect_without_cookie(self) -> None:
        with pytest.raises(LoginRequestNoCookieError):
            with_transport(
                lambda request: httpx.Response(302, headers={"location": "/text"}),
                lambda transport: post_login_data(
                    transport, BASE_URL, data={"login": "test"}, cookie="",
                ),
            )

    @pytest.mark.parametrize("error_class", [
        MissingSessionCookieError,
        MissingFormActionError,
        InvalidFormMethodError,
        LoginRequestNoRedirectError,
        LoginRequestNoCookieError,
    ])
    def test_errors_share_base(self, error_class) -> None:
        assert issubclass(error_class, LoginError)
        assert error_class("x").code == error_class.code_value.value


class TestRequiredInputsProperty:
    """MissingRequiredInputs names exactly the absent required inputs."""

    @given(present=st.sets(st.sampled_from(REQUIRED_INPUTS)))
    @settings(max_examples=50)
    def test_missing_inputs_named_exactly(self, present: set) -> None:
        form = LoginForm(
            action="/dologin.php",
            method="post",
            inputs=[FormInput(name=name, type="text") for name in sorted(present)]
            + [FormInput(name="extra", type="hidden", value="1")],
        )
        missing = [name for name in REQUIRED_INPUTS if name not in present]

        if missing:
            with pytest.raises(MissingRequiredInputsError) as exc_info:
                build_login_data(form, "user", "pass")
            assert exc_info.value.missing == missing
            for name in missing:
                assert f'"{name}"' in exc_info.value.message
        else:
            data = build_login_data(form, "user", "pass")
            assert data["username"] == "user"
            assert data["password"] == "pass"
            assert data["extra"] == "1"


class TestFormActionProperty:
    """Form actions resolve to absolute URLs."""

    PAGE = "https://my.freenom.com/account/clientarea.php?x=1"

    @given(segments=st.lists(
        st.text(alphabet=st.sampled_from("abcdefghij._-"), min_size=1, max_size=8),
        max_size=4,
    ))
    @settings(max_examples=100)
    def test_absolute_path_keeps_origin(self, segments: list[str]) -> None:
        path = "/" + "/".join(segments)
        resolved = resolve_form_action(path, self.PAGE)
        assert resolved == "https://my.freenom.com" + path

    def test_absolute_url_unchanged(self) -> None:
        assert resolve_form_action("http://other.test/login", self.PAGE) == "http://other.test/login"

    def test_relative_to_page(self) -> None:
        assert resolve_form_action("dologin.php", self.PAGE) == (
            "https://my.freenom.com/account/dologin.php"
        )

    @pytest.mark.parametrize("action", ["", "   ", "about:blank"])
    def test_empty_action(self, action: str) -> None:
        with pytest.raises(MissingFormActionError):
            resolve_form_action(action, self.PAGE)
