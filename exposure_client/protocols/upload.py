"""
End-to-end encrypted upload of temporary exposure keys

The keys are serialized into an ``Upload`` message, encrypted with a box
(X25519, XSalsa20 and Poly1305) from the app private key to the server public
key obtained by a key claim, and sent together with both public keys and the
nonce. Only the server holding the matching private key can read the keys.
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

import base64
import logging
import time
from dataclasses import dataclass

from Cryptodome.Random import get_random_bytes
from nacl.exceptions import CryptoError as NaclCryptoError
from nacl.public import Box, PrivateKey, PublicKey

from exposure_client import wire
from exposure_client.config import (
    LENGTH_BOX_KEY,
    LENGTH_KEY_DATA,
    LENGTH_NONCE,
    MAX_ROLLING_PERIOD,
)
from exposure_client.errors import CryptoError, InvalidArgument

logger = logging.getLogger(__name__)

#: Path of the upload endpoint, relative to the submission URL
UPLOAD_PATH = "/upload"


#####################
### EXPOSURE KEYS ###
#####################


@dataclass(frozen=True)
class ExposureKey:
    """A temporary exposure key as handed out by the platform

    ``key_data`` is kept in the base64 form the platform uses.
    """

    key_data: str
    rolling_start_number: int
    transmission_risk_level: int
    rolling_period: int = MAX_ROLLING_PERIOD

    def __post_init__(self):
        for name in ("rolling_start_number", "transmission_risk_level", "rolling_period"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise InvalidArgument("{} must be an integer".format(name))
        if not 0 <= self.rolling_start_number < 2 ** 32:
            raise InvalidArgument("Rolling start number must fit in 32 bits")
        if not 0 <= self.transmission_risk_level < 2 ** 8:
            raise InvalidArgument("Transmission risk level must fit in 8 bits")
        if not 0 < self.rolling_period <= MAX_ROLLING_PERIOD:
            raise InvalidArgument(
                "Rolling period must be between 1 and {}".format(MAX_ROLLING_PERIOD)
            )

    def raw_key_data(self):
        """Return the 16 raw key bytes

        Raises:
            InvalidArgument: If key_data is not base64 of 16 bytes
        """
        try:
            raw = base64.b64decode(self.key_data, validate=True)
        except (ValueError, TypeError) as exc:
            raise InvalidArgument("Exposure key data is not valid base64") from exc
        if len(raw) != LENGTH_KEY_DATA:
            raise InvalidArgument(
                "Exposure key data must be {} bytes".format(LENGTH_KEY_DATA)
            )
        return raw


def serialize_upload(keys, timestamp=None):
    """Encode exposure keys into an Upload message

    Args:
        keys ([ExposureKey]): Keys in the order they should be uploaded
        timestamp (int, optional): Upload time in seconds since the UNIX
            epoch. Defaults to the current time

    Returns:
        bytes: The encoded Upload
    """
    if timestamp is None:
        timestamp = time.time()

    upload = wire.Upload()
    upload.timestamp.seconds = int(timestamp)
    for key in keys:
        upload.keys.add(
            key_data=key.raw_key_data(),
            rolling_start_number=key.rolling_start_number,
            rolling_period=key.rolling_period,
            transmission_risk_level=key.transmission_risk_level,
        )
    return wire.encode(upload)


def deserialize_upload(data):
    """Decode an Upload message

    Returns:
        (timestamp, keys): Upload time in seconds and the list of ExposureKey

    Raises:
        DecodeError: If data is not an Upload
    """
    upload = wire.decode(wire.Upload, data)
    keys = [
        ExposureKey(
            key_data=base64.b64encode(key.key_data).decode("ascii"),
            rolling_start_number=key.rolling_start_number,
            transmission_risk_level=key.transmission_risk_level,
            rolling_period=key.rolling_period,
        )
        for key in upload.keys
    ]
    return upload.timestamp.seconds, keys


######################
### BOX ENCRYPTION ###
######################


def _box(peer_public_key, private_key):
    if len(peer_public_key) != LENGTH_BOX_KEY or len(private_key) != LENGTH_BOX_KEY:
        raise CryptoError("Box keys must be {} bytes".format(LENGTH_BOX_KEY))
    try:
        return Box(PrivateKey(private_key), PublicKey(peer_public_key))
    except (TypeError, ValueError, NaclCryptoError) as exc:
        raise CryptoError("Invalid box key") from exc


def encrypt_payload(payload, nonce, peer_public_key, private_key):
    """Box-encrypt a serialized payload

    Args:
        payload (bytes): Fully serialized plaintext
        nonce (bytes): 24 fresh random bytes, never used before with this key pair
        peer_public_key (bytes): The recipient's public key
        private_key (bytes): The sender's private key

    Returns:
        bytes: Authentication tag followed by the ciphertext. The nonce is
            not included.

    Raises:
        CryptoError: On wrong key or nonce lengths
    """
    if len(nonce) != LENGTH_NONCE:
        raise CryptoError("Nonce must be {} bytes".format(LENGTH_NONCE))
    box = _box(peer_public_key, private_key)
    try:
        return box.encrypt(bytes(payload), bytes(nonce)).ciphertext
    except (TypeError, ValueError, NaclCryptoError) as exc:
        raise CryptoError("Encryption failed") from exc


def decrypt_payload(ciphertext, nonce, peer_public_key, private_key):
    """Open a box produced by :func:`encrypt_payload`

    Either side can open the box: the server with (app public key, server
    private key), the app with (server public key, app private key).

    Raises:
        CryptoError: If the ciphertext was forged or the keys do not match
    """
    if len(nonce) != LENGTH_NONCE:
        raise CryptoError("Nonce must be {} bytes".format(LENGTH_NONCE))
    box = _box(peer_public_key, private_key)
    try:
        return box.decrypt(bytes(ciphertext), bytes(nonce))
    except (TypeError, ValueError, NaclCryptoError) as exc:
        raise CryptoError("Decryption failed") from exc


#######################
### UPLOAD ENVELOPE ###
#######################


@dataclass(frozen=True)
class EncryptedEnvelope:
    """The encrypted upload as sent to the server"""

    server_public_key: bytes
    app_public_key: bytes
    nonce: bytes
    payload: bytes

    def encode(self):
        request = wire.EncryptedUploadRequest(
            server_public_key=self.server_public_key,
            app_public_key=self.app_public_key,
            nonce=self.nonce,
            payload=self.payload,
        )
        return wire.encode(request)

    @classmethod
    def decode(cls, data):
        request = wire.decode(wire.EncryptedUploadRequest, data)
        return cls(
            server_public_key=bytes(request.server_public_key),
            app_public_key=bytes(request.app_public_key),
            nonce=bytes(request.nonce),
            payload=bytes(request.payload),
        )


@dataclass(frozen=True)
class UploadAcknowledgement:
    """The server's answer to an upload. An empty error means success."""

    error: str = ""

    @property
    def accepted(self):
        return not self.error

    @classmethod
    def decode(cls, data):
        response = wire.decode(wire.EncryptedUploadResponse, data)
        return cls(error=response.error)


class EncryptedUploadBuilder:
    """Encrypts and sends batches of exposure keys"""

    def __init__(self, transport, submit_url, random_bytes=None):
        """
        Args:
            transport: Object providing ``blob_fetch(url, method, body)``
            submit_url (str): Base URL of the submission server
            random_bytes (callable, optional): ``random_bytes(n)`` returning n
                cryptographically secure bytes. Default: pycryptodome's
                get_random_bytes
        """
        self.transport = transport
        self.submit_url = submit_url.rstrip("/")
        self.random_bytes = random_bytes or get_random_bytes

    def build_envelope(self, key_set, keys, timestamp=None):
        """Serialize, encrypt and package a batch of exposure keys

        Draws a new nonce on every call.

        Args:
            key_set (SubmissionKeySet): Keys obtained from a key claim
            keys ([ExposureKey]): The keys to upload, possibly empty
            timestamp (int, optional): Upload time, see :func:`serialize_upload`

        Returns:
            EncryptedEnvelope: The envelope ready for transmission
        """
        payload = serialize_upload(keys, timestamp=timestamp)

        nonce = bytes(self.random_bytes(LENGTH_NONCE))
        if len(nonce) != LENGTH_NONCE:
            raise CryptoError("Random source returned a short nonce")

        ciphertext = encrypt_payload(
            payload, nonce, key_set.server_public_key, key_set.client_private_key
        )
        return EncryptedEnvelope(
            server_public_key=key_set.server_public_key,
            app_public_key=key_set.client_public_key,
            nonce=nonce,
            payload=ciphertext,
        )

    async def upload(self, key_set, keys):
        """Encrypt and upload a batch of exposure keys

        Returns:
            UploadAcknowledgement: The decoded server answer

        Raises:
            InvalidArgument: If an exposure key is malformed
            CryptoError: If encryption fails
            TransportError: On network failures
            DecodeError: If the server answer cannot be decoded
        """
        keys = list(keys)
        envelope = self.build_envelope(key_set, keys)
        data = await self.transport.blob_fetch(
            self.submit_url + UPLOAD_PATH, "POST", envelope.encode()
        )

        acknowledgement = UploadAcknowledgement.decode(data)
        if acknowledgement.accepted:
            logger.info("Uploaded %d exposure keys", len(keys))
        else:
            logger.warning("Upload rejected by server: %s", acknowledgement.error)
        return acknowledgement
