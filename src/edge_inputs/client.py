"""HTTP client for the NGINX Plus status API."""

from typing import Any, Optional, Union

import requests
import structlog
from requests.adapters import HTTPAdapter

from . import __version__

logger = structlog.get_logger()

MIN_RESPONSE_TIMEOUT = 1.0
DEFAULT_RESPONSE_TIMEOUT = 5.0


class NginxPlusAPIError(Exception):
    """Base exception for NGINX Plus status API errors."""
    pass


class NginxPlusContentTypeError(NginxPlusAPIError):
    """Status endpoint answered with something other than JSON."""
    pass


class NginxPlusDecodeError(NginxPlusAPIError):
    """Status document could not be decoded."""

    def __init__(self, message: str = "error while decoding JSON response"):
        super().__init__(message)


class NginxPlusClient:
    """Session-backed client fetching NGINX Plus status documents."""

    def __init__(
        self,
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
        tls_ca: Optional[str] = None,
        tls_cert: Optional[str] = None,
        tls_key: Optional[str] = None,
        insecure_skip_verify: bool = False,
    ):
        """Initialize NGINX Plus client.

        Args:
            response_timeout: Request timeout in seconds; anything under one
                second falls back to five seconds
            tls_ca: CA bundle used to verify the server certificate
            tls_cert: Client certificate for mutual TLS
            tls_key: Private key of the client certificate
            insecure_skip_verify: Skip server certificate verification

        Raises:
            ValueError: If a TLS key is given without a certificate
        """
        if response_timeout < MIN_RESPONSE_TIMEOUT:
            response_timeout = DEFAULT_RESPONSE_TIMEOUT
        self.timeout = response_timeout

        if tls_key and not tls_cert:
            raise ValueError("tls_key requires tls_cert")

        self.session = requests.Session()

        adapter = HTTPAdapter()
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"edge-inputs/{__version__}",
        })

        verify: Union[bool, str] = True
        if insecure_skip_verify:
            verify = False
        elif tls_ca:
            verify = tls_ca
        self.session.verify = verify

        if tls_cert:
            self.session.cert = (tls_cert, tls_key) if tls_key else tls_cert

    def get_status(self, url: str) -> dict[str, Any]:
        """Fetch and decode the status document at ``url``."""
        logger.debug("Requesting NGINX Plus status", url=url)

        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NginxPlusAPIError(f'error making HTTP request to "{url}": {e}') from e

        with response:
            if response.status_code != 200:
                raise NginxPlusAPIError(f"{url} returned HTTP status {response.status_code} {response.reason}")

            content_type = response.headers.get("Content-Type", "").split(";")[0].strip()
            if content_type != "application/json":
                raise NginxPlusContentTypeError(f"{url} returned unexpected content type {content_type}")

            try:
                data = response.json()
            except ValueError as e:
                raise NginxPlusDecodeError() from e

        if not isinstance(data, dict):
            raise NginxPlusDecodeError()

        logger.debug(
            "NGINX Plus status request successful",
            url=url,
            status_code=response.status_code,
            response_size=len(response.content),
        )

        return data

    def close(self) -> None:
        """Close the session."""
        self.session.close()
