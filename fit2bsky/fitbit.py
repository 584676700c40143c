import logging
from dataclasses import dataclass

import requests

from fit2bsky.errors import DecodeError, EmptyReading, NetworkError, ResourceError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.fitbit.com"
ENDPOINT_WEIGHT = "1/user/-/body/log/weight/date/{date}.json"
REQUEST_TIMEOUT = 30


@dataclass
class WeightReading:
    date: str
    time: str
    weight: float
    bmi: float
    fat: float
    log_id: int
    source: str

    @classmethod
    def from_dict(cls, data):
        return cls(
            date=str(data["date"]),
            time=str(data.get("time", "")),
            weight=float(data["weight"]),
            bmi=float(data.get("bmi", 0.0)),
            fat=float(data.get("fat", 0.0)),
            log_id=int(data.get("logId", 0)),
            source=str(data.get("source", "")),
        )


class FitbitClient:
    def __init__(self, auth, base_url=API_BASE_URL, timeout=REQUEST_TIMEOUT):
        self.auth = auth
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def fetch_weight(self, day):
        """
        Fetches the body weight log for one calendar day.

        A non-success answer is retried exactly once with a refreshed token.
        """
        date_str = day.strftime("%Y-%m-%d")
        url = f"{self.base_url}/{ENDPOINT_WEIGHT.format(date=date_str)}"
        logger.info(f"Fetching weight for {date_str}...")

        headers = {"Authorization": "Bearer " + self.auth.acquire(allow_refresh=False)}
        response = self._get(url, headers)
        if not response.ok:
            logger.info(f"Fitbit returned {response.status_code}, refreshing token and retrying")
            response.close()
            headers["Authorization"] = "Bearer " + self.auth.acquire(allow_refresh=True)
            response = self._get(url, headers)
            if not response.ok:
                raise ResourceError(response.status_code, response.text)

        return self._decode(response)

    def _get(self, url, headers):
        try:
            return requests.get(url, headers=dict(headers), timeout=self.timeout)
        except requests.RequestException as e:
            raise NetworkError(f"Fitbit request failed: {e}") from e

    @staticmethod
    def _decode(response):
        try:
            items = response.json()["weight"]
            return [WeightReading.from_dict(item) for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Unexpected weight payload: {e}") from e


def latest_reading(readings):
    if not readings:
        raise EmptyReading("No weight data recorded for the requested date")
    return readings[0]
