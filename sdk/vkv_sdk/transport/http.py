"""
HTTP storage transport.

Speaks the Riak-compatible HTTP key/value interface:
- GET  /types/{type}/buckets/{bucket}/keys/{key}       fetch
- PUT  /types/{type}/buckets/{bucket}/keys/{key}       store under key
- POST /types/{type}/buckets/{bucket}/keys             store, key generated

Siblings are announced with 300 Multiple Choices and a body listing
their vtags; each is then fetched with ?vtag=. Causal tokens travel in
the X-Riak-Vclock header and secondary indexes in x-riak-index-*_bin
headers, one percent-encoded value per comma-separated item.

Invariants:
    - Tokens are passed through byte-for-byte, never parsed
    - Every sibling of a 300 response carries that response's token
    - No retries; httpx failures surface as ConnectionError
    - Requests that cannot be built surface as TransportError
"""

from __future__ import annotations

import logging
from email.utils import parsedate_to_datetime
from typing import Optional
from urllib.parse import quote, unquote

import httpx

from ..config import ClientSettings
from ..errors import ConnectionError, TransportError
from ..objects import JSON_CONTENT_TYPE, StoredObject
from .base import FetchResponse, StoreResponse

logger = logging.getLogger(__name__)

VCLOCK_HEADER = "X-Riak-Vclock"
CLIENT_ID_HEADER = "X-Riak-ClientId"
INDEX_HEADER_PREFIX = "x-riak-index-"
INDEX_SUFFIX = "_bin"


class HttpTransport:
    """Storage transport over HTTP using httpx.

    Example:
        >>> transport = HttpTransport(ClientSettings(host="riak.local"))
        >>> transport.connect()
        >>> transport.fetch("users", "default", "u1")
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        *,
        http_transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            settings: Connection settings
            http_transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self._settings = settings or ClientSettings()
        self._http_transport = http_transport
        self._client: httpx.Client | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    @property
    def address(self) -> str:
        return self._settings.base_url

    def connect(self) -> None:
        """Open the HTTP client and ping the node."""
        if self._client is not None:
            return

        client = httpx.Client(
            base_url=self._settings.base_url,
            timeout=self._settings.timeout,
            headers={CLIENT_ID_HEADER: self._settings.client_id},
            transport=self._http_transport,
        )
        try:
            response = client.get("/ping")
        except httpx.HTTPError as e:
            client.close()
            raise ConnectionError(f"Failed to connect: {e}", address=self.address) from e

        if response.status_code != 200:
            client.close()
            raise ConnectionError(
                f"Ping returned {response.status_code}",
                address=self.address,
            )

        self._client = client
        logger.debug("Connected to %s", self.address)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _http(self) -> httpx.Client:
        if self._client is None:
            raise ConnectionError("Not connected", address=self.address)
        return self._client

    def _request(self, operation: str, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self._http().request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ConnectionError(f"{operation} failed: {e}", address=self.address) from e
        except (httpx.InvalidURL, ValueError) as e:
            # Request could not be built, e.g. a non-ASCII header name
            raise TransportError(f"{operation} request is invalid: {e}", operation=operation) from e

    @staticmethod
    def _keys_path(bucket: str, bucket_type: str) -> str:
        return f"/types/{quote(bucket_type, safe='')}/buckets/{quote(bucket, safe='')}/keys"

    def fetch(self, bucket: str, bucket_type: str, key: str) -> FetchResponse:
        """Fetch all siblings of a key."""
        url = f"{self._keys_path(bucket, bucket_type)}/{quote(key, safe='')}"
        response = self._request("fetch", "GET", url)

        if response.status_code == 404:
            return FetchResponse(not_found=True)

        if response.status_code == 200:
            return FetchResponse(values=[_stored_object(response)])

        if response.status_code == 300:
            token = response.headers.get(VCLOCK_HEADER, "").encode("ascii")
            values = []
            for vtag in _sibling_vtags(response.text):
                sibling = self._request("fetch", "GET", url, params={"vtag": vtag})
                if sibling.status_code != 200:
                    raise TransportError(
                        f"Fetching sibling {vtag} of '{key}' returned {sibling.status_code}",
                        operation="fetch",
                        status_code=sibling.status_code,
                    )
                values.append(_stored_object(sibling, causal_token=token))
            logger.debug("Fetched %d siblings of %s/%s/%s", len(values), bucket_type, bucket, key)
            return FetchResponse(values=values)

        raise TransportError(
            f"Fetch of '{key}' returned {response.status_code}",
            operation="fetch",
            status_code=response.status_code,
        )

    def store(
        self,
        bucket: str,
        bucket_type: str,
        key: Optional[str],
        content: StoredObject,
    ) -> StoreResponse:
        """Store a value, optionally under a generated key."""
        headers = {"Content-Type": content.content_type}
        if content.causal_token:
            headers[VCLOCK_HEADER] = content.causal_token.decode("ascii")
        for name, values in content.indexes.items():
            headers[f"{INDEX_HEADER_PREFIX}{name}{INDEX_SUFFIX}"] = ", ".join(
                quote(value, safe="") for value in sorted(values)
            )

        path = self._keys_path(bucket, bucket_type)
        params = {"returnbody": "true"}
        if key is None:
            response = self._request("store", "POST", path, params=params, headers=headers, content=content.value)
        else:
            url = f"{path}/{quote(key, safe='')}"
            response = self._request("store", "PUT", url, params=params, headers=headers, content=content.value)

        if response.status_code not in (200, 201, 204, 300):
            raise TransportError(
                f"Store of '{key}' returned {response.status_code}",
                operation="store",
                status_code=response.status_code,
            )

        if key is None:
            location = response.headers.get("Location")
            if not location:
                raise TransportError("Store response has no Location header", operation="store")
            key = unquote(location.rstrip("/").rsplit("/", 1)[-1])

        return StoreResponse(
            key=key,
            causal_token=response.headers.get(VCLOCK_HEADER, "").encode("ascii"),
        )


def _sibling_vtags(body: str) -> list[str]:
    """Parse the 'Siblings:' listing of a 300 response."""
    lines = [line.strip() for line in body.splitlines()]
    return [line for line in lines if line and line != "Siblings:"]


def _stored_object(response: httpx.Response, causal_token: bytes | None = None) -> StoredObject:
    if causal_token is None:
        causal_token = response.headers.get(VCLOCK_HEADER, "").encode("ascii")

    last_modified = None
    if "Last-Modified" in response.headers:
        try:
            last_modified = parsedate_to_datetime(response.headers["Last-Modified"])
        except (TypeError, ValueError):
            logger.debug("Unparseable Last-Modified: %s", response.headers["Last-Modified"])

    indexes: dict[str, frozenset[str]] = {}
    for header, raw in response.headers.items():
        header = header.lower()
        if not header.startswith(INDEX_HEADER_PREFIX):
            continue
        name = header[len(INDEX_HEADER_PREFIX):]
        if name.endswith(INDEX_SUFFIX):
            name = name[: -len(INDEX_SUFFIX)]
        values = frozenset(unquote(v.strip()) for v in raw.split(",") if v.strip())
        indexes[name] = indexes.get(name, frozenset()) | values

    return StoredObject(
        value=response.content,
        causal_token=causal_token,
        last_modified=last_modified,
        indexes=indexes,
        content_type=response.headers.get("Content-Type", JSON_CONTENT_TYPE),
    )
