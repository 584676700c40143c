"""Run the Fitbit consent flow on its own and rewrite the token file."""

import argparse
import logging
import sys

from fit2bsky.config import Config
from fit2bsky.oauth import CONSENT_PORT, ConsentServer, TokenClient
from fit2bsky.sync import LOG_FORMAT
from fit2bsky.token_store import DEFAULT_TOKEN_PATH, TokenStore

logger = logging.getLogger(__name__)


def main(argv=None):
    parser = argparse.ArgumentParser(prog="fit2bsky-auth", description="Authorize fit2bsky against Fitbit")
    parser.add_argument("--token-file", default=DEFAULT_TOKEN_PATH, help="Fitbit token file (default: .token)")
    parser.add_argument("--port", type=int, default=CONSENT_PORT, help="Local callback port (default: 3000)")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)

    print("--- Fitbit Initial Token Setup ---")
    try:
        config = Config.from_env()
        store = TokenStore(args.token_file)
        consent = ConsentServer(config.credentials, TokenClient(config.credentials), store, port=args.port)
        consent.run()
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    except Exception:
        logger.exception("Fitbit authorization failed")
        return 1

    print(f"Success! Token saved to {store.path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
