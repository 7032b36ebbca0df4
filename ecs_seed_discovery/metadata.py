"""REST client for the ECS instance metadata service."""

from __future__ import annotations

import logging

import requests

from .config import MetadataConfig
from .exceptions import MetadataError, MetadataNotFoundError

logger = logging.getLogger(__name__)

METADATA_ROOT = "/latest/meta-data/"


class EcsMetadataClient:
    """Reads ``/latest/meta-data/<component>`` from the link-local metadata host."""

    def __init__(
        self,
        base_url: str = "http://100.100.100.200",
        connect_timeout: float = 2.0,
        read_timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        self._base = base_url.rstrip("/")
        self._timeout = (connect_timeout, read_timeout)
        self._session = session or requests.Session()
        # The metadata host is link-local; never route it through a proxy
        self._session.trust_env = False

    @classmethod
    def from_config(cls, config: MetadataConfig) -> EcsMetadataClient:
        return cls(config.base_url, config.connect_timeout, config.read_timeout)

    def get_metadata(self, component: str, retries: int = 0) -> str:
        """GET one metadata component.

        Transport errors and unexpected statuses are retried up to ``retries`` times;
        a 404 raises MetadataNotFoundError straight away.
        """
        url = f"{self._base}{METADATA_ROOT}{component}"
        attempts = 0

        while True:
            logger.debug("GET %s (attempt %d)", url, attempts + 1)
            try:
                resp = self._session.get(url, timeout=self._timeout)
            except requests.RequestException as exc:
                error = MetadataError(f"Request failed: {exc}", url=url)
                cause: Exception | None = exc
            else:
                if resp.status_code == 200:
                    return resp.text
                if resp.status_code == 404:
                    raise MetadataNotFoundError(f"Invalid metadata url {url}", url=url)
                error = MetadataError(f"HTTP {resp.status_code} on GET {url}", url=url)
                cause = None

            attempts += 1
            if attempts > retries:
                raise error from cause
            logger.debug("Retrying metadata request %s: %s", url, error)

    def get_zone_id(self, retries: int = 0) -> str:
        return self.get_metadata("zone-id", retries).strip()

    def get_private_ipv4(self, retries: int = 0) -> str:
        return self.get_metadata("private-ipv4", retries).strip()

    def get_public_ipv4(self, retries: int = 0) -> str:
        return self.get_metadata("public-ipv4", retries).strip()

    def close(self) -> None:
        self._session.close()
