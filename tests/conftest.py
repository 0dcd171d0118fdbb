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

import hashlib
import hmac
import re

import httpx
import pytest
from Cryptodome.Random import get_random_bytes
from nacl.public import PrivateKey

from exposure_client import wire
from exposure_client.backend import BackendClient
from exposure_client.protocols.upload import (
    EncryptedEnvelope,
    decrypt_payload,
    deserialize_upload,
)
from exposure_client.transport import HttpTransport

RETRIEVE_URL = "https://retrieval.example.org"
SUBMIT_URL = "https://submission.example.org"
HMAC_KEY_HEX = "abc123"

VALID_CODE = "GOODCODE"
DIAGNOSIS_KEYS_ZIP = b"PK\x03\x04 diagnosis keys"
EXPOSURE_CONFIGURATION = {"minimumRiskScore": 1, "attenuationLevelValues": [1, 2, 3]}


class RecordingRandom:
    """Secure random source that remembers what it was asked for"""

    def __init__(self):
        self.calls = []

    def __call__(self, n):
        self.calls.append(n)
        return get_random_bytes(n)


class FakeBackend:
    """In-process stand-in for the retrieval and submission servers"""

    def __init__(self, valid_codes=(VALID_CODE,)):
        self.valid_codes = set(valid_codes)
        self.server_private_key = PrivateKey.generate()
        self.server_public_key = bytes(self.server_private_key.public_key)
        self.requests = []
        self.claimed_app_keys = []
        self.uploads = []
        self.upload_error = ""

    def paths(self):
        return [request.url.path for request in self.requests]

    def signature_for(self, message):
        key = bytes.fromhex(HMAC_KEY_HEX)
        return hmac.new(key, message.encode("ascii"), hashlib.sha256).hexdigest()

    def handle(self, request):
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/claim-key":
            return self.handle_claim(request)
        if request.method == "POST" and path == "/upload":
            return self.handle_upload(request)
        if request.method == "GET" and re.match(r"^/retrieve-(day|hour)/", path):
            return httpx.Response(200, content=DIAGNOSIS_KEYS_ZIP)
        if request.method == "GET" and re.match(r"^/config/\w+/exposure\.json$", path):
            return httpx.Response(200, json=EXPOSURE_CONFIGURATION)
        return httpx.Response(404)

    def handle_claim(self, request):
        claim = wire.decode(wire.KeyClaimRequest, request.content)
        response = wire.KeyClaimResponse()
        if claim.one_time_code in self.valid_codes:
            self.claimed_app_keys.append(bytes(claim.app_public_key))
            response.server_public_key = self.server_public_key
        else:
            response.error = "not found"
        return httpx.Response(200, content=wire.encode(response))

    def handle_upload(self, request):
        envelope = EncryptedEnvelope.decode(request.content)
        payload = decrypt_payload(
            envelope.payload,
            envelope.nonce,
            envelope.app_public_key,
            bytes(self.server_private_key),
        )
        self.uploads.append((envelope, deserialize_upload(payload)))
        response = wire.EncryptedUploadResponse(error=self.upload_error)
        return httpx.Response(200, content=wire.encode(response))


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def random_source():
    return RecordingRandom()


@pytest.fixture
def transport(backend, tmp_path):
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend.handle))
    return HttpTransport(client=client, download_dir=tmp_path)


@pytest.fixture
def client(transport, random_source):
    return BackendClient(
        RETRIEVE_URL,
        SUBMIT_URL,
        HMAC_KEY_HEX,
        transport=transport,
        random_bytes=random_source,
    )
