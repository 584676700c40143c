import os
from dataclasses import dataclass, field

from fit2bsky.errors import ConfigError

ENV_PREFIX = "F2B_"
DEFAULT_BSKY_HOST = "https://bsky.social"


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str
    client_secret: str = field(repr=False)


@dataclass(frozen=True)
class Config:
    credentials: ClientCredentials
    bsky_host: str = DEFAULT_BSKY_HOST
    bsky_handle: str = ""
    bsky_password: str = field(default="", repr=False)
    sheet_id: str = ""
    sheet_name: str = ""

    @classmethod
    def from_env(cls, environ=None):
        """Build the configuration from F2B_* environment variables."""
        if environ is None:
            environ = os.environ

        def get(name, default=""):
            return environ.get(ENV_PREFIX + name, "").strip() or default

        missing = [ENV_PREFIX + name for name in ("CLIENT_ID", "CLIENT_SECRET") if not get(name)]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")

        return cls(
            credentials=ClientCredentials(get("CLIENT_ID"), get("CLIENT_SECRET")),
            bsky_host=get("BSKY_HOST", DEFAULT_BSKY_HOST).rstrip("/"),
            bsky_handle=get("BSKY_HANDLE"),
            bsky_password=get("BSKY_PASSWORD"),
            sheet_id=get("SHEET_ID"),
            sheet_name=get("SHEET_NAME"),
        )

    def require_bluesky(self):
        missing = []
        if not self.bsky_handle:
            missing.append(ENV_PREFIX + "BSKY_HANDLE")
        if not self.bsky_password:
            missing.append(ENV_PREFIX + "BSKY_PASSWORD")
        if missing:
            raise ConfigError(f"Bluesky credentials missing: {', '.join(missing)}")

    def require_sheet(self):
        if not self.sheet_id:
            raise ConfigError(f"{ENV_PREFIX}SHEET_ID is required to write to the spreadsheet")
