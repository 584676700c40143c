import logging

import google.auth
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from fit2bsky.errors import SinkError

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]


def cell_range(cell, sheet_name=""):
    return f"{sheet_name}!{cell}" if sheet_name else cell


def write_cell(sheet_id, cell, value, sheet_name=""):
    """Write a single value into one cell using Application Default Credentials."""
    target = cell_range(cell, sheet_name)
    try:
        credentials, _ = google.auth.default(scopes=SCOPES)
        service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        service.spreadsheets().values().update(
            spreadsheetId=sheet_id,
            range=target,
            valueInputOption="RAW",
            body={"values": [[value]]},
        ).execute()
    except (GoogleAuthError, HttpError) as e:
        raise SinkError(f"Failed to write {value} to {target}: {e}") from e

    logger.info(f"Wrote {value} to {target}")
