"""
HTTP transport used by the backend client

The protocol code only needs three things from the network: posting an opaque
binary body and reading back the binary response, fetching a JSON document,
and downloading diagnosis key files. :class:`HttpTransport` provides them on
top of an ``httpx.AsyncClient``. Any object with the same coroutine methods can
be passed to the backend client instead.
"""

__copyright__ = """
    Copyright 2020 EPFL

    Licensed under the Apache License, Version 2.0 (the "License");
    you may not use this file except in compliance with the License.
    You may obtain a copy of the License at

        http://www.apache.org/licenses/LICENSE-2.0

    Unless required by applicable law or agreed to in writing, software
    distributed under the License is distributed on an "AS IS" BASIS,
    WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
    See the License for the specific language governing permissions and
    limitations under the License.
"""
__license__ = "Apache 2.0"

import asyncio
import logging
import tempfile
import uuid
from pathlib import Path

import httpx

from exposure_client.config import DEFAULT_TIMEOUT
from exposure_client.errors import DecodeError, TransportError

logger = logging.getLogger(__name__)

BINARY_CONTENT_TYPE = "application/x-protobuf"


class HttpTransport:
    """Transport fetch and download collaborator backed by httpx"""

    def __init__(self, client=None, timeout=DEFAULT_TIMEOUT, download_dir=None):
        """Create a transport

        Args:
            client (httpx.AsyncClient, optional): Client to send requests
                with. When omitted a new one is created and owned by this
                transport.
            timeout (float, optional): Request timeout in seconds of an owned
                client
            download_dir (str or Path, optional): Directory diagnosis key
                files are written to. It is created if missing. Default: a
                fresh temporary directory
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        if download_dir is None:
            download_dir = tempfile.mkdtemp(prefix="diagnosis-keys-")
        self.download_dir = Path(download_dir)
        self.download_dir.mkdir(parents=True, exist_ok=True)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method, url, body=None):
        logger.debug("%s %s", method, url)
        headers = {"Content-Type": BINARY_CONTENT_TYPE} if body is not None else None
        try:
            response = await self._client.request(
                method, url, content=body, headers=headers
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.warning("%s %s failed with status %d", method, url, status_code)
            raise TransportError(
                "{} {} returned {}".format(method, url, status_code),
                url=url,
                status_code=status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise TransportError(
                "{} {} failed: {}".format(method, url, exc), url=url
            ) from exc
        return response

    async def blob_fetch(self, url, method="GET", body=None):
        """Send a request with an optional binary body

        Args:
            url (str): Absolute URL
            method (str, optional): HTTP method. Default: GET
            body (bytes, optional): Raw request body

        Returns:
            bytes: The full binary response body

        Raises:
            TransportError: On network failures and non-2xx statuses
        """
        response = await self._request(method, url, body)
        return response.content

    async def fetch_json(self, url):
        """GET a JSON document

        Raises:
            TransportError: On network failures and non-2xx statuses
            DecodeError: If the body is not valid JSON
        """
        response = await self._request("GET", url)
        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError("Response of {} is not valid JSON".format(url)) from exc

    async def download_diagnosis_keys_files(self, url):
        """Download a diagnosis key batch and store it on disk

        Returns:
            list of str: The paths of the stored files. An empty batch yields no file.
        """
        content = await self.blob_fetch(url)
        if not content:
            return []

        path = self.download_dir / "{}.zip".format(uuid.uuid4().hex)
        # File writes block, keep them off the event loop
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, path.write_bytes, content)
        logger.debug("Stored %d bytes of diagnosis keys in %s", len(content), path)
        return [str(path)]
