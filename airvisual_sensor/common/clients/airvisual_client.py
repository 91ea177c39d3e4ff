import logging
from typing import Any, cast
from urllib.parse import quote, urlencode

import requests
from pydantic import SecretStr
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from airvisual_sensor.common.config.accessory import CityLocation, GpsLocation, Location

logger = logging.getLogger(__name__)


class AirVisualApiClient:
    """
    HTTP client for the AirVisual (IQAir) v2 API.

    Features:
    - Automatic retry logic for resilient API calls (5xx errors)
    - Secure API key management using Pydantic SecretStr
    - Session pooling for efficient connection reuse
    - Context manager support for proper resource cleanup
    """

    def __init__(self, base_url: str, api_key: SecretStr, timeout: float = 10):
        """
        Initialize the AirVisual API client.

        Args:
            base_url: API root (e.g. 'https://api.airvisual.com')
            api_key: AirVisual API key wrapped in SecretStr for secure handling
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

        self.session = requests.Session()

        # Retry up to 5 times on server errors with exponential backoff (1s, 2s, 4s, ...)
        retries = Retry(
            total=5,
            backoff_factor=1,
            allowed_methods=["GET"],
            status_forcelist=[500, 502, 503, 504],
        )

        adapter = HTTPAdapter(max_retries=retries)
        self.session.mount("http://", adapter=adapter)
        self.session.mount("https://", adapter=adapter)

        logger.info("AirVisualApiClient initialized with session pooling enabled")

    def build_url(self, location: Location) -> str:
        """
        Build the request URL for the configured location.

        The query string is encoded here rather than by requests so that spaces in
        city names become %20, slashes are escaped and the key is always the last
        parameter.

        Args:
            location: GPS, city or IP geolocation lookup

        Returns:
            Fully encoded request URL
        """
        if isinstance(location, GpsLocation):
            endpoint = "nearest_city"
            params = [("lat", location.latitude), ("lon", location.longitude)]
        elif isinstance(location, CityLocation):
            endpoint = "city"
            params = [("city", location.city), ("state", location.state), ("country", location.country)]
        else:
            endpoint = "nearest_city"
            params = []

        params.append(("key", self.api_key.get_secret_value()))

        return f"{self.base_url}/v2/{endpoint}?{urlencode(params, quote_via=quote)}"

    def get_current_conditions(self, location: Location) -> dict[str, Any]:
        """
        Retrieve the current weather and pollution for a location.

        AirVisual answers some failures (call limit, bad key, unknown city) with a
        4xx status and a JSON body carrying the provider status. Those bodies are
        returned as-is so the caller can classify the status.

        Args:
            location: GPS, city or IP geolocation lookup

        Returns:
            Dictionary containing the parsed JSON response

        Raises:
            requests.HTTPError: If the API returns an error status without a provider status body
            requests.RequestException: For network-related errors and malformed JSON
        """
        url = self.build_url(location)

        try:
            logger.info(f"Fetching current conditions using {location.kind} lookup")

            response = self.session.get(url, timeout=self.timeout)

            if not response.ok:
                body = self._provider_status_body(response)
                if body is not None:
                    logger.warning(
                        f"AirVisual API returned HTTP {response.status_code} with status '{body.get('status')}'"
                    )
                    return body

            response.raise_for_status()

            return cast(dict[str, Any], response.json())

        except requests.HTTPError as e:
            logger.error(f"HTTP error from AirVisual API: {e.response.status_code} - {self._redact(e)}")
            raise
        except requests.RequestException as e:
            logger.error(f"Network error while fetching current conditions: {self._redact(e)}")
            raise
        except Exception as e:
            logger.error(f"Unexpected error: {self._redact(e)}")
            raise

    @staticmethod
    def _provider_status_body(response: requests.Response) -> dict[str, Any] | None:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and "status" in body:
            return body
        return None

    def _redact(self, err: Exception) -> str:
        # requests puts the full URL, key included, into its error messages
        secret = self.api_key.get_secret_value()
        return str(err).replace(secret, "***") if secret else str(err)

    def __enter__(self):
        """Support using the client as a context manager."""
        return self

    def __exit__(self, exc_type, exc_value, exc_tb):
        """
        Clean up resources when exiting the context manager.

        Args:
            exc_type: Exception type if an error occurred, None otherwise
            exc_value: Exception instance if an error occurred, None otherwise
            exc_tb: Traceback object if an error occurred, None otherwise
        """
        if exc_type:
            logger.error(f"Context exited with error: {exc_type.__name__}: {exc_value}")

        self.close()

    def close(self) -> None:
        self.session.close()
        logger.info("Session closed and resources cleaned up")
