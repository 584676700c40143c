import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import date, datetime

from fit2bsky.bluesky import BlueskyClient
from fit2bsky.config import Config
from fit2bsky.errors import DateParseError
from fit2bsky.fitbit import FitbitClient, latest_reading
from fit2bsky.message import format_message
from fit2bsky.oauth import AuthManager, ConsentServer, TokenClient
from fit2bsky.sheet import write_cell
from fit2bsky.token_store import DEFAULT_TOKEN_PATH, TokenStore

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


@dataclass
class Context:
    """Everything one invocation needs, passed explicitly to each step."""

    config: Config
    store: TokenStore
    auth: AuthManager
    fitbit: FitbitClient


def build_context(config, token_path=DEFAULT_TOKEN_PATH):
    store = TokenStore(token_path)
    token_client = TokenClient(config.credentials)
    consent = ConsentServer(config.credentials, token_client, store)
    auth = AuthManager(store, token_client, consent)
    return Context(config=config, store=store, auth=auth, fitbit=FitbitClient(auth))


def parse_date(value):
    if not value:
        return date.today()
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as e:
        raise DateParseError(f"Invalid date {value!r}, expected YYYY-MM-DD") from e


def sync_weight(ctx, day, dry_run=False, cell=None):
    reading = latest_reading(ctx.fitbit.fetch_weight(day))
    text = format_message(reading)

    if dry_run:
        print(text)
        return text

    # The sheet write is repeatable, so it goes before the post.
    if cell:
        write_cell(ctx.config.sheet_id, cell, reading.weight, sheet_name=ctx.config.sheet_name)

    config = ctx.config
    BlueskyClient(config.bsky_host, config.bsky_handle, config.bsky_password).post(text)
    return text


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="fit2bsky",
        description="Post your weight data recorded on fitbit to bluesky",
    )
    parser.add_argument("--date", "-d", help="Date weight was recorded (e.g. 2006-01-02, default: today)")
    parser.add_argument("--dry-run", action="store_true", help="Only weight data acquisition is performed.")
    parser.add_argument("--sheet", "-s", action="store_true", help="Also write the weight to the spreadsheet")
    parser.add_argument("--cell", help="Spreadsheet cell to write the weight to (e.g. B2)")
    parser.add_argument("--token-file", default=DEFAULT_TOKEN_PATH, help="Fitbit token file (default: .token)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)
    if args.sheet and not args.cell:
        parser.error("--sheet requires --cell")
    return args


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        config = Config.from_env()
        day = parse_date(args.date)
        if not args.dry_run:
            config.require_bluesky()
            if args.sheet:
                config.require_sheet()

        ctx = build_context(config, args.token_file)
        sync_weight(ctx, day, dry_run=args.dry_run, cell=args.cell if args.sheet else None)
    except KeyboardInterrupt:
        logger.error("Interrupted")
        return 130
    except Exception:
        logger.exception("fit2bsky failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
