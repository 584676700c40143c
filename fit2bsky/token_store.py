import json
import logging
import os
import stat
import tempfile
from dataclasses import asdict, dataclass
from pathlib import Path

from fit2bsky.errors import TokenStoreCorrupt, TokenStoreUnreadable, TokenStoreUnwritable

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_PATH = ".token"
REQUIRED_FIELDS = ("access_token", "refresh_token")


@dataclass
class CredentialRecord:
    access_token: str = ""
    refresh_token: str = ""
    expires_in: int = 0
    token_type: str = ""
    user_id: str = ""

    def update(self, data):
        """Copy the known token fields present in a token endpoint payload."""
        for name in ("access_token", "refresh_token", "token_type", "user_id"):
            if name in data and data[name] is not None:
                setattr(self, name, str(data[name]))
        if data.get("expires_in") is not None:
            try:
                self.expires_in = int(data["expires_in"])
            except OverflowError as e:
                raise ValueError(f"expires_in out of range: {data['expires_in']}") from e

    def to_dict(self):
        return asdict(self)

    @classmethod
    def from_dict(cls, data):
        missing = [name for name in REQUIRED_FIELDS if name not in data]
        if missing:
            raise KeyError(", ".join(missing))
        record = cls()
        record.update(data)
        return record


class TokenStore:
    """Persists the Fitbit credential record as JSON in a single local file."""

    def __init__(self, path=DEFAULT_TOKEN_PATH):
        self.path = Path(path)

    def load(self):
        """Return the stored record, or None when no record has been saved yet."""
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise TokenStoreUnreadable(f"Cannot read {self.path}: {e}") from e

        try:
            data = json.loads(raw.decode("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("expected a JSON object")
            return CredentialRecord.from_dict(data)
        except KeyError as e:
            raise TokenStoreCorrupt(f"{self.path} is missing fields: {e}") from e
        except (TypeError, ValueError) as e:
            raise TokenStoreCorrupt(f"{self.path} is not a valid token file: {e}") from e

    def save(self, record):
        """Replace the stored record; the old file stays intact until the rename."""
        directory = self.path.parent
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=directory)
        except OSError as e:
            raise TokenStoreUnwritable(f"Cannot write {self.path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record.to_dict(), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            os.replace(tmp_name, self.path)
        except OSError as e:
            _discard(tmp_name)
            raise TokenStoreUnwritable(f"Cannot write {self.path}: {e}") from e
        except BaseException:
            _discard(tmp_name)
            raise

        logger.info(f"Token saved to {self.path}")


def _discard(name):
    try:
        os.unlink(name)
    except FileNotFoundError:
        pass
