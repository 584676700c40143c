"""Fitbit OAuth 2.0 authorization-code flow with a loopback callback.

TokenClient talks to the token endpoint, ConsentServer runs the one-off
browser consent on localhost:3000, and AuthManager decides on each call
whether the stored token is used as is, refreshed, or replaced through
consent.
"""

import base64
import logging
import threading
import urllib.parse
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import requests

from fit2bsky.errors import (
    AuthEndpointError,
    AuthRefreshExpired,
    ConsentAborted,
    DecodeError,
    Fit2BskyError,
    NetworkError,
)
from fit2bsky.token_store import CredentialRecord

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://www.fitbit.com/oauth2/authorize"
TOKEN_URL = "https://api.fitbit.com/oauth2/token"
SCOPE = "weight"
AUTHORIZE_EXPIRES_IN = 604800
CONSENT_HOST = "localhost"
CONSENT_PORT = 3000
REQUEST_TIMEOUT = 30


class TokenClient:
    def __init__(self, credentials, token_url=TOKEN_URL, timeout=REQUEST_TIMEOUT):
        self.credentials = credentials
        self.token_url = token_url
        self.timeout = timeout

    def _get_headers(self):
        pair = f"{self.credentials.client_id}:{self.credentials.client_secret}"
        return {
            "Authorization": "Basic " + base64.b64encode(pair.encode("utf-8")).decode("ascii"),
            "Content-Type": "application/x-www-form-urlencoded",
        }

    def exchange_code(self, record, code):
        # Fitbit expects clientId in the body here even with Basic auth.
        data = {
            "clientId": self.credentials.client_id,
            "grant_type": "authorization_code",
            "code": code,
        }
        self._token_call(record, data, refreshing=False)

    def refresh(self, record):
        if not record.refresh_token:
            raise AuthRefreshExpired(None, "No refresh token stored")
        data = {
            "grant_type": "refresh_token",
            "refresh_token": record.refresh_token,
        }
        self._token_call(record, data, refreshing=True)

    def _token_call(self, record, data, refreshing):
        try:
            response = requests.post(self.token_url, headers=self._get_headers(), data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Token request failed: {e}") from e

        if not response.ok:
            logger.warning(f"Token endpoint returned {response.status_code} {response.reason}: {response.text}")

        try:
            payload = response.json()
        except ValueError as e:
            raise DecodeError(f"Token endpoint returned invalid JSON (HTTP {response.status_code})") from e
        if not isinstance(payload, dict):
            raise DecodeError(f"Unexpected token payload: {type(payload).__name__}")
        try:
            record.update(payload)
        except (TypeError, ValueError) as e:
            raise DecodeError(f"Malformed token payload: {e}") from e

        if not response.ok:
            if refreshing and response.status_code in (400, 401):
                raise AuthRefreshExpired(response.status_code, response.text)
            raise AuthEndpointError(response.status_code, response.text)
        if not record.access_token:
            raise DecodeError("Token response did not contain an access_token")


_SUCCESS_PAGE = """<html>
<head><title>Authentication Successful</title></head>
<body style="font-family: sans-serif; padding: 40px; text-align: center;">
<h1>Authentication Successful!</h1>
<p>You can close this window and return to your terminal.</p>
</body>
</html>"""

_MESSAGE_PAGE = """<html>
<head><title>{title}</title></head>
<body style="font-family: sans-serif; padding: 40px; text-align: center;">
<h1>{title}</h1>
<p>{message}</p>
</body>
</html>"""


class _ConsentHTTPServer(ThreadingHTTPServer):
    # Join handler threads on close so the success page is fully written.
    daemon_threads = False


class ConsentServer:
    """Short-lived local listener that brokers the first authorization code exchange."""

    def __init__(self, credentials, token_client, store, host=CONSENT_HOST, port=CONSENT_PORT):
        self.credentials = credentials
        self.token_client = token_client
        self.store = store
        self.host = host
        self.port = port
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._record = None

    def authorize_url(self):
        query = urllib.parse.urlencode({
            "response_type": "code",
            "client_id": self.credentials.client_id,
            "scope": SCOPE,
            "expires_in": AUTHORIZE_EXPIRES_IN,
        })
        return f"{AUTHORIZE_URL}?{query}"

    def run(self):
        self._done.clear()
        self._record = None

        try:
            httpd = _ConsentHTTPServer((self.host, self.port), self._create_handler_class())
        except OSError as e:
            raise ConsentAborted(f"Cannot listen on {self.host}:{self.port}: {e}") from e

        thread = threading.Thread(target=httpd.serve_forever, kwargs={"poll_interval": 0.2}, daemon=True)
        try:
            thread.start()
            print(f"Please access to http://localhost:{httpd.server_address[1]}/", flush=True)
            while not self._done.wait(0.5):
                if not thread.is_alive():
                    logger.error("Consent listener stopped unexpectedly")
                    break
        finally:
            if thread.is_alive():
                httpd.shutdown()
            httpd.server_close()

        record = self._record
        if record is None or not record.access_token:
            raise ConsentAborted("Consent finished without an access token")
        return record.access_token

    def complete(self, code):
        """Exchange a callback code and persist it; returns (status, html)."""
        with self._lock:
            if self._done.is_set():
                return 400, _MESSAGE_PAGE.format(title="Already Processed", message="Authorization already completed.")
            record = CredentialRecord()
            try:
                self.token_client.exchange_code(record, code)
                self.store.save(record)
            except Fit2BskyError as e:
                logger.warning(f"Authorization code exchange failed: {e}")
                return 502, _MESSAGE_PAGE.format(title="Authentication Failed", message="Please try again.")
            self._record = record
            self._done.set()
        logger.info("Fitbit authorization completed")
        return 200, _SUCCESS_PAGE

    def _create_handler_class(self):
        consent = self

        class CallbackHandler(BaseHTTPRequestHandler):
            timeout = 10

            def log_message(self, format, *args):
                logger.debug("%s - " + format, self.address_string(), *args)

            def do_GET(self):
                parsed = urllib.parse.urlparse(self.path)
                if parsed.path == "/":
                    self.send_response(307)
                    self.send_header("Location", consent.authorize_url())
                    self.end_headers()
                elif parsed.path == "/callback":
                    params = urllib.parse.parse_qs(parsed.query)
                    code = params.get("code", [""])[0]
                    if not code:
                        logger.warning("Callback request without code query")
                        self._send_html(400, _MESSAGE_PAGE.format(title="Invalid Request", message="Missing code query."))
                        return
                    status, page = consent.complete(code)
                    self._send_html(status, page)
                else:
                    self._send_html(404, _MESSAGE_PAGE.format(title="Not Found", message=parsed.path))

            def _send_html(self, status, content):
                body = content.encode("utf-8")
                self.send_response(status)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.send_header("Content-Length", str(len(body)))
                self.end_headers()
                self.wfile.write(body)

        return CallbackHandler


class AuthManager:
    """Hands out Fitbit access tokens: stored, refreshed, or freshly consented."""

    def __init__(self, store, token_client, consent):
        self.store = store
        self.token_client = token_client
        self.consent = consent

    def acquire(self, allow_refresh=False):
        record = self.store.load()
        if record is None or not record.access_token:
            logger.info("No stored Fitbit token, starting interactive consent")
            return self._bootstrap()

        if not allow_refresh:
            return record.access_token

        try:
            self.token_client.refresh(record)
        except (AuthEndpointError, DecodeError, NetworkError) as e:
            logger.warning(f"Token refresh failed, falling back to interactive consent: {e}")
            return self._bootstrap()

        self.store.save(record)
        logger.info("Fitbit access token refreshed")
        return record.access_token

    def _bootstrap(self):
        token = self.consent.run()
        if not token:
            raise ConsentAborted("Consent did not produce an access token")
        return token
