"""
Sign-up, login, password reset and Google sign-in.

Credential checks happen at the auth provider; these controllers only
validate what can be checked locally, run the request and route the user.
"""

import logging
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs, urlparse

from .auth import AuthClient, AuthError, Session
from .context import SessionContext
from .dashboard import Executor, Notifier, run_inline
from .preferences import Preferences
from .utils import log_action
from . import config

logger = logging.getLogger(__name__)

CALLBACK_PAGE = (b"<html><body><h3>Sign-in complete.</h3>"
                 b"<p>You can close this window and return to CredVault.</p></body></html>")


class SignInCancelled(AuthError):
    """The user left the screen while a browser sign-in was pending."""


class _CallbackHandler(BaseHTTPRequestHandler):
    """Captures the query string of the OAuth redirect."""

    def do_GET(self):
        parsed = urlparse(self.path)
        if parsed.path != self.server.callback_path:
            self.send_error(404)
            return
        self.server.oauth_params = {k: v[0] for k, v in parse_qs(parsed.query).items()}
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(CALLBACK_PAGE)))
        self.end_headers()
        self.wfile.write(CALLBACK_PAGE)

    def log_message(self, format, *args):
        logger.debug("OAuth callback: " + format % args)


def oauth_redirect_url(port: int = config.OAUTH_CALLBACK_PORT) -> str:
    return f"http://{config.OAUTH_CALLBACK_HOST}:{port}{config.OAUTH_CALLBACK_PATH}"


class OAuthCodeReceiver:
    """
    Loopback listener for the OAuth redirect.

    Calling the receiver binds the redirect port and blocks until the browser
    delivers the authorization code. The wait polls in short slices so that
    ``cancel()`` from another thread releases the port promptly.
    """

    def __init__(self, host: str = config.OAUTH_CALLBACK_HOST, port: int = config.OAUTH_CALLBACK_PORT,
                 path: str = config.OAUTH_CALLBACK_PATH,
                 timeout: float = config.OAUTH_CALLBACK_TIMEOUT_SECONDS,
                 poll_interval: float = config.OAUTH_CALLBACK_POLL_SECONDS):
        self.host = host
        self.port = port
        self.path = path
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.listening = threading.Event()
        self._cancelled = threading.Event()

    @property
    def redirect_url(self) -> str:
        return f"http://{self.host}:{self.port}{self.path}"

    def cancel(self) -> None:
        """Stop a pending wait; it raises SignInCancelled."""
        self._cancelled.set()

    def __call__(self) -> str:
        """
        Wait for the redirect and return the authorization code.

        Raises:
            SignInCancelled: If cancel() was called
            AuthError: On timeout, or if the provider redirected with an error
        """
        self._cancelled.clear()
        with HTTPServer((self.host, self.port), _CallbackHandler) as server:
            server.oauth_params = None
            server.callback_path = self.path
            # Port 0 binds a free port; report the real one.
            self.port = server.server_port
            self.listening.set()
            try:
                deadline = time.monotonic() + self.timeout
                while server.oauth_params is None:
                    if self._cancelled.is_set():
                        raise SignInCancelled("Sign-in cancelled")
                    remaining = deadline - time.monotonic()
                    if remaining <= 0:
                        raise AuthError("Timed out waiting for the sign-in redirect")
                    server.timeout = min(remaining, self.poll_interval)
                    server.handle_request()
                params: Dict[str, str] = server.oauth_params
            finally:
                self.listening.clear()

        if "error" in params:
            raise AuthError(params.get("error_description") or params["error"])
        if not params.get("code"):
            raise AuthError("Sign-in redirect carried no authorization code")
        return params["code"]


class AuthScreenController:
    """Behaviour shared by the login and sign-up screens."""

    google_error_message = "Error signing in with Google"

    def __init__(self, auth: AuthClient, session: SessionContext,
                 notifier: Optional[Notifier] = None,
                 navigate: Callable[[str], None] = lambda target: None,
                 open_url: Callable[[str], Any] = lambda url: None,
                 executor: Executor = run_inline,
                 code_receiver: Optional[Callable[[], str]] = None,
                 preferences: Optional[Preferences] = None,
                 redirect_to: str = config.REDIRECT_URL):
        """
        Args:
            auth: Client for the auth provider
            session: Receives the session on successful sign-in
            notifier: Receives success/error notifications
            navigate: Switches screens; called with a config.STATE_* value
            open_url: Opens a URL in the system browser
            executor: Runs provider requests off the UI thread
            code_receiver: Blocks until the OAuth redirect delivers a code;
                defaults to an OAuthCodeReceiver on the configured port
            preferences: Remembers the last email used to sign in
            redirect_to: Redirect URL for confirmation and reset emails
        """
        self.auth = auth
        self.session = session
        self.notifier = notifier or Notifier()
        self.navigate = navigate
        self.open_url = open_url
        self.executor = executor
        self.code_receiver = code_receiver or OAuthCodeReceiver()
        self.preferences = preferences
        self.redirect_to = redirect_to or None
        self.loading = False

    def _signed_in(self, session: Session, method: str) -> None:
        self.session.set_session(session)
        if self.preferences is not None and session.email:
            self.preferences.set("last_email", session.email)
        log_action("Login", f"user={session.user_id} method={method}")
        self.notifier.success("Logged in successfully!")
        self.navigate(config.STATE_MAIN_WINDOW)

    def cancel(self) -> None:
        """Abandon a browser sign-in that is still waiting for its redirect."""
        cancel = getattr(self.code_receiver, "cancel", None)
        if cancel is not None:
            cancel()

    def sign_in_with_google(self) -> None:
        """Open the provider's Google consent page and wait for the redirect."""
        redirect = getattr(self.code_receiver, "redirect_url", None) or oauth_redirect_url()
        try:
            url, verifier = self.auth.oauth_authorize_url(config.OAUTH_PROVIDER_GOOGLE, redirect)
        except AuthError as e:
            logger.error(f"Google login error: {e.message}")
            self.notifier.error(self.google_error_message)
            return

        self.loading = True
        self.open_url(url)

        def done(session: Session) -> None:
            self.loading = False
            self._signed_in(session, "google")

        def failed(error: Exception) -> None:
            self.loading = False
            if isinstance(error, SignInCancelled):
                logger.info("Google sign-in cancelled")
                return
            logger.error(f"Google login error: {error}")
            self.notifier.error(self.google_error_message)

        self.executor(lambda: self.auth.exchange_code_for_session(self.code_receiver(), verifier),
                      done, failed)


class LoginController(AuthScreenController):
    """Email/password login and password reset."""

    def login(self, email: str, password: str) -> None:
        self.loading = True

        def done(session: Session) -> None:
            self.loading = False
            self._signed_in(session, "password")

        def failed(error: Exception) -> None:
            self.loading = False
            logger.error(f"Login error: {error}")
            self.notifier.error("Invalid email or password")

        self.executor(lambda: self.auth.sign_in_with_password(email.strip(), password), done, failed)

    def reset_password(self, email: str) -> None:
        self.loading = True

        def done(_: Any) -> None:
            self.loading = False
            log_action("Password Reset Requested", f"email={email.strip()}")
            self.notifier.success("Password reset link sent to your email!")

        def failed(error: Exception) -> None:
            self.loading = False
            logger.error(f"Reset password error: {error}")
            self.notifier.error("Error sending reset link")

        self.executor(lambda: self.auth.reset_password_for_email(email.strip(), self.redirect_to),
                      done, failed)


class SignupController(AuthScreenController):
    """Account registration."""

    google_error_message = "Error signing up with Google"

    def sign_up(self, email: str, password: str, confirm_password: str) -> bool:
        """
        Register an account.

        Returns:
            True if a request was issued; a password mismatch issues nothing
        """
        if password != confirm_password:
            self.notifier.error("Passwords do not match")
            return False

        self.loading = True

        def done(_: Optional[Session]) -> None:
            self.loading = False
            log_action("Sign Up", f"email={email.strip()}")
            self.notifier.success("Account created successfully! "
                                  "Please check your email to verify your account.")
            self.navigate(config.STATE_LOGIN)

        def failed(error: Exception) -> None:
            self.loading = False
            message = error.message if isinstance(error, AuthError) else ""
            logger.error(f"Signup error: {error}")
            if "already" in message.lower():
                self.notifier.error("An account with this email already exists")
            else:
                self.notifier.error(message or "Error creating account")

        self.executor(lambda: self.auth.sign_up(email.strip(), password, self.redirect_to), done, failed)
        return True
