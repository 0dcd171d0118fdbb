"""
Client of the exposure notification backend

Ties the protocol pieces together against the two backend services: the
retrieval server publishing diagnosis keys and the submission server accepting
key claims and encrypted uploads.
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

import logging

from exposure_client.config import DEFAULT_REGION, DEFAULT_TIMEOUT
from exposure_client.protocols.keyclaim import KeyClaimExchange
from exposure_client.protocols.signing import (
    TimeWindowSigner,
    format_hour,
    parse_hmac_key,
    utc_iso8601_date,
)
from exposure_client.protocols.upload import EncryptedUploadBuilder
from exposure_client.transport import HttpTransport

logger = logging.getLogger(__name__)


class BackendClient:
    """Reference client of the exposure notification backend.

    The configuration is fixed at construction, and no other state is kept
    between calls, so independent calls may run concurrently. Every upload
    draws its own nonce.

    Retrieval signatures are valid for the hour they are computed in. When a
    retrieval is rejected because the window rolled over, the caller retries
    by calling the same method again, which signs for the current window.
    """

    def __init__(
        self,
        retrieve_url,
        submit_url,
        hmac_key,
        region=DEFAULT_REGION,
        transport=None,
        random_bytes=None,
        timeout=DEFAULT_TIMEOUT,
    ):
        """Create a backend client

        Args:
            retrieve_url (str): Base URL of the retrieval server
            submit_url (str): Base URL of the submission server
            hmac_key (str): Shared retrieval secret, hex encoded
            region (str, optional): Region of the exposure configuration
            transport (optional): Transport collaborator, see
                :class:`exposure_client.transport.HttpTransport`. A new
                HttpTransport is created (and closed by :meth:`aclose`) when
                omitted
            random_bytes (callable, optional): Secure random source
                ``random_bytes(n)`` used for key pairs and nonces
            timeout (float, optional): Request timeout of a created transport

        Raises:
            InvalidArgument: If hmac_key is not valid hex
        """
        self.retrieve_url = retrieve_url.rstrip("/")
        self.submit_url = submit_url.rstrip("/")
        self.region = region
        self._signer = TimeWindowSigner(parse_hmac_key(hmac_key))

        self._owns_transport = transport is None
        self.transport = transport or HttpTransport(timeout=timeout)

        self._key_claim = KeyClaimExchange(
            self.transport, self.submit_url, random_bytes=random_bytes
        )
        self._uploader = EncryptedUploadBuilder(
            self.transport, self.submit_url, random_bytes=random_bytes
        )

    @classmethod
    def from_config(cls, config, transport=None, random_bytes=None):
        """Create a client from a :class:`exposure_client.config.BackendConfig`"""
        return cls(
            config.retrieve_url,
            config.submit_url,
            config.hmac_key,
            region=config.region,
            transport=transport,
            random_bytes=random_bytes,
            timeout=config.timeout,
        )

    def __repr__(self):
        return "BackendClient(retrieve_url={!r}, submit_url={!r})".format(
            self.retrieve_url, self.submit_url
        )

    async def aclose(self):
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    ################
    ### RETRIEVE ###
    ################

    async def retrieve_diagnosis_keys_by_day(self, date, now=None):
        """Download the diagnosis keys published for a UTC day

        Args:
            date (:obj:`datetime.date`): The day
            now (:obj:`datetime.datetime`, optional): Signing time. Defaults
                to the current time

        Returns:
            list of str: The downloaded diagnosis key files
        """
        request = utc_iso8601_date(date)
        signature = self._signer.sign_day(date, now=now)
        url = "{}/retrieve-day/{}/{}".format(self.retrieve_url, request, signature)
        return await self.transport.download_diagnosis_keys_files(url)

    async def retrieve_diagnosis_keys_by_hour(self, date, hour, now=None):
        """Download the diagnosis keys published for one hour of a UTC day

        Args:
            date (:obj:`datetime.date`): The day
            hour (int): The hour, 0 to 23
            now (:obj:`datetime.datetime`, optional): Signing time

        Returns:
            list of str: The downloaded diagnosis key files
        """
        request = utc_iso8601_date(date)
        signature = self._signer.sign_hour(date, hour, now=now)
        url = "{}/retrieve-hour/{}/{}/{}".format(
            self.retrieve_url, request, format_hour(hour), signature
        )
        return await self.transport.download_diagnosis_keys_files(url)

    async def get_exposure_configuration(self):
        """Fetch the exposure configuration document of the client's region"""
        url = "{}/config/{}/exposure.json".format(self.retrieve_url, self.region)
        return await self.transport.fetch_json(url)

    ##############
    ### SUBMIT ###
    ##############

    async def claim_one_time_code(self, code):
        """Exchange a one-time code for a submission key set

        Args:
            code (str): The one-time code entered by the user

        Returns:
            SubmissionKeySet: The keys to use with :meth:`report_diagnosis_keys`

        Raises:
            KeyClaimError: If the server rejected the code. The reason is to be
                shown to the user
        """
        result = await self._key_claim.claim(code)
        return result.unwrap()

    async def report_diagnosis_keys(self, key_set, keys):
        """Upload exposure keys, encrypted for the server

        Args:
            key_set (SubmissionKeySet): Result of :meth:`claim_one_time_code`
            keys ([ExposureKey]): The keys to report. May be empty

        Returns:
            UploadAcknowledgement: The server's answer
        """
        return await self._uploader.upload(key_set, keys)
