"""Client for the AppsFlyer install-data (attribution verification) endpoint."""

import logging

import requests

from aflogcat.errors import AflogcatError

logger = logging.getLogger(__name__)


class AttributionError(AflogcatError):
    pass


class AttributionClient:
    def __init__(self, base_url: str, timeout: float = 10.0, session: requests.Session | None = None):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def install_data_url(self, app_id: str) -> str:
        return f"{self._base_url}/{app_id}"

    def fetch_install_data(self, app_id: str, dev_key: str, device_id: str) -> dict:
        """GET install data for one device. Raises AttributionError on transport or decode failure."""
        url = self.install_data_url(app_id)
        logger.info("Requesting install data for app %s, device %s", app_id, device_id)
        try:
            res = self._session.get(
                url,
                params={"devkey": dev_key, "device_id": device_id},
                headers={"accept": "application/json"},
                timeout=self._timeout,
            )
            payload = res.json()
        except requests.RequestException as e:
            raise AttributionError(f"Error fetching SDK data: {e}")
        except ValueError as e:
            raise AttributionError(f"Install data response is not JSON: {e}")
        if not isinstance(payload, dict):
            raise AttributionError("Install data response is not a JSON object")
        return payload
