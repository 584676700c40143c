import logging
from datetime import datetime

import requests

from fit2bsky.config import DEFAULT_BSKY_HOST
from fit2bsky.errors import SinkError

logger = logging.getLogger(__name__)

ENDPOINT_CREATE_SESSION = "xrpc/com.atproto.server.createSession"
ENDPOINT_CREATE_RECORD = "xrpc/com.atproto.repo.createRecord"
POST_COLLECTION = "app.bsky.feed.post"
REQUEST_TIMEOUT = 30


class BlueskyClient:
    def __init__(self, host, handle, password):
        self.host = (host or DEFAULT_BSKY_HOST).rstrip("/")
        self.handle = handle
        self.password = password
        self.did = None
        self.access_jwt = None

    def _get_headers(self):
        headers = {"Content-Type": "application/json"}
        if self.access_jwt:
            headers["Authorization"] = f"Bearer {self.access_jwt}"
        return headers

    def _api_call(self, endpoint, data):
        url = f"{self.host}/{endpoint}"
        try:
            response = requests.post(url, headers=self._get_headers(), json=data, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise SinkError(f"Bluesky request failed: {e}") from e

        if not response.ok:
            raise SinkError(f"Bluesky {endpoint} failed with {response.status_code}: {response.text}")
        try:
            return response.json()
        except ValueError as e:
            raise SinkError(f"Bluesky {endpoint} returned invalid JSON") from e

    def login(self):
        logger.info(f"Logging in to {self.host} as {self.handle}...")
        session = self._api_call(ENDPOINT_CREATE_SESSION, {
            "identifier": self.handle,
            "password": self.password,
        })
        if "did" not in session or "accessJwt" not in session:
            raise SinkError("Bluesky session response missing did/accessJwt")
        self.did = session["did"]
        self.access_jwt = session["accessJwt"]

    def post(self, text):
        if not self.access_jwt:
            self.login()

        record = {
            "$type": POST_COLLECTION,
            "text": text,
            "createdAt": datetime.now().astimezone().isoformat(timespec="seconds"),
        }
        result = self._api_call(ENDPOINT_CREATE_RECORD, {
            "repo": self.did,
            "collection": POST_COLLECTION,
            "record": record,
        })
        uri = result.get("uri", "")
        logger.info(f"posted: {uri}")
        return uri
