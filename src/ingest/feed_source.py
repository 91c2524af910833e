"""Raw feed retrieval.

This module fetches aggregate bytes over HTTP(S), from S3 objects, or
from local files. Transport security is not what makes a feed trusted:
every payload is authenticated by the metadata validator afterwards.
"""

from __future__ import annotations

from pathlib import Path
from urllib.parse import unquote, urlparse

import boto3
import requests
from botocore.exceptions import BotoCoreError, ClientError

from core.errors import FeedFetchError, FeedStatusError
from core.logging_config import get_logger
from core.s3_uri import parse_s3_uri

_LOGGER = get_logger(__name__)


class FeedSource:
    """Fetch raw feed bytes with a bounded wait per request."""

    def __init__(
        self,
        timeout: float,
        insecure_transport: bool = False,
        session: requests.Session | None = None,
    ) -> None:
        """Create a feed source.

        Args:
            timeout: Seconds to wait for connect and for each read.
            insecure_transport: Skip TLS certificate verification.
            session: Optional preconfigured HTTP session.
        """
        self._timeout = timeout
        self._insecure_transport = insecure_transport
        self._session = session or requests.Session()
        if insecure_transport:
            _LOGGER.warning("insecure_transport_enabled")

    def fetch(self, url: str) -> bytes:
        """Fetch the bytes behind a feed URL.

        Args:
            url: ``http(s)://``, ``s3://``, ``file://`` URL or a local path.

        Returns:
            Raw response body.

        Raises:
            FeedStatusError: If an HTTP server answers with a non-200 status.
            FeedFetchError: If the transport fails or times out.
        """
        scheme = urlparse(url).scheme.lower()
        if scheme in ("http", "https"):
            data = self._fetch_http(url)
        elif scheme == "s3":
            data = self._fetch_s3(url)
        elif scheme in ("file", ""):
            data = _fetch_local(url)
        else:
            raise FeedFetchError(
                f"Unsupported feed URL scheme '{scheme}' in {url}. "
                "Use http(s)://, s3://, file:// or a local path."
            )
        _LOGGER.info("feed_fetched", url=url, size=len(data))
        return data

    def close(self) -> None:
        """Release pooled HTTP connections held by the session."""
        self._session.close()

    def _fetch_http(self, url: str) -> bytes:
        try:
            response = self._session.get(
                url,
                timeout=self._timeout,
                verify=not self._insecure_transport,
            )
        except requests.RequestException as error:
            raise FeedFetchError(f"Failed to fetch {url}: {error}.") from error
        if response.status_code != requests.codes.ok:
            raise FeedStatusError(
                f"Status code: {response.status_code} ({url})",
                status_code=response.status_code,
            )
        return response.content

    def _fetch_s3(self, url: str) -> bytes:
        location = parse_s3_uri(url)
        try:
            s3_client = boto3.session.Session().client("s3")
            response = s3_client.get_object(Bucket=location.bucket, Key=location.key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as error:
            raise FeedFetchError(
                f"Failed to fetch {url}: {error}. Check AWS credentials and the object key."
            ) from error


def _fetch_local(url: str) -> bytes:
    parsed = urlparse(url)
    path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(url)
    try:
        return path.expanduser().read_bytes()
    except OSError as error:
        raise FeedFetchError(f"Failed to read feed file {path}: {error}.") from error
