"""
Key claim: exchange a one-time code for a submission key set

The app generates a fresh X25519 key pair, sends its public half together with
the one-time code handed out by a health authority, and receives the server's
public key in return. The resulting :class:`SubmissionKeySet` authorizes the
encrypted upload of exposure keys.
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
from dataclasses import dataclass

from Cryptodome.Random import get_random_bytes
from nacl.public import PrivateKey

from exposure_client import wire
from exposure_client.config import LENGTH_BOX_KEY
from exposure_client.errors import CryptoError, InvalidArgument, KeyClaimError

logger = logging.getLogger(__name__)

#: Path of the key claim endpoint, relative to the submission URL
CLAIM_KEY_PATH = "/claim-key"


####################
### KEY MATERIAL ###
####################


def _check_key_length(name, key):
    if not isinstance(key, bytes) or len(key) != LENGTH_BOX_KEY:
        raise CryptoError("{} must be {} bytes".format(name, LENGTH_BOX_KEY))


@dataclass(frozen=True, repr=False)
class SubmissionKeySet:
    """Client key pair bound to the server public key by a key claim

    Session-scoped key material: it is not logged and its repr hides the keys.
    All keys are raw 32-byte values. Use :meth:`to_base64` and
    :meth:`from_base64` to store it.
    """

    client_public_key: bytes
    client_private_key: bytes
    server_public_key: bytes

    def __post_init__(self):
        _check_key_length("Client public key", self.client_public_key)
        _check_key_length("Client private key", self.client_private_key)
        _check_key_length("Server public key", self.server_public_key)

    def __repr__(self):
        return "SubmissionKeySet(<redacted>)"

    def to_base64(self):
        """Return the key set as a dict of base64 strings"""
        return {
            "clientPublicKey": base64.b64encode(self.client_public_key).decode("ascii"),
            "clientPrivateKey": base64.b64encode(self.client_private_key).decode("ascii"),
            "serverPublicKey": base64.b64encode(self.server_public_key).decode("ascii"),
        }

    @classmethod
    def from_base64(cls, mapping):
        """Load a key set stored with :meth:`to_base64`

        Raises:
            CryptoError: If a key is missing, not base64 or of the wrong length
        """
        try:
            return cls(
                client_public_key=base64.b64decode(mapping["clientPublicKey"], validate=True),
                client_private_key=base64.b64decode(
                    mapping["clientPrivateKey"], validate=True
                ),
                server_public_key=base64.b64decode(mapping["serverPublicKey"], validate=True),
            )
        except (KeyError, ValueError, TypeError) as exc:
            raise CryptoError("Stored submission key set is malformed") from exc


def derive_keypair(seed):
    """Derive an X25519 box key pair from 32 random bytes

    The seed is used as the private key, exactly as a box key pair generator
    fed with these bytes would do.

    Args:
        seed (bytes): 32 bytes from a cryptographically secure source

    Returns:
        (public_key, private_key): Both raw 32-byte values

    Raises:
        CryptoError: If the seed has the wrong length
    """
    _check_key_length("Key pair seed", seed)
    try:
        private_key = PrivateKey(seed)
    except (TypeError, ValueError) as exc:
        raise CryptoError("Could not derive key pair") from exc
    return bytes(private_key.public_key), bytes(private_key)


####################
### CLAIM RESULT ###
####################


class ClaimResult:
    """Outcome of a key claim: either a key set or the server's reason"""

    def __init__(self, key_set=None, error=None):
        if (key_set is None) == (error is None):
            raise ValueError("Exactly one of key_set and error must be given")
        self.key_set = key_set
        self.error = error

    @classmethod
    def ok(cls, key_set):
        return cls(key_set=key_set)

    @classmethod
    def err(cls, reason):
        return cls(error=reason)

    @property
    def is_ok(self):
        return self.key_set is not None

    def unwrap(self):
        """Return the key set

        Raises:
            KeyClaimError: With the server's reason, if the claim was rejected
        """
        if not self.is_ok:
            raise KeyClaimError(self.error)
        return self.key_set

    def __repr__(self):
        if self.is_ok:
            return "ClaimResult.ok(<key set>)"
        return "ClaimResult.err({!r})".format(self.error)


#####################
### WIRE MESSAGES ###
#####################


def build_claim_request(code, public_key):
    """Serialize a key claim request

    Args:
        code (str): The one-time code as entered by the user
        public_key (bytes): The app's ephemeral public key

    Returns:
        bytes: The encoded KeyClaimRequest
    """
    request = wire.KeyClaimRequest(one_time_code=code, app_public_key=public_key)
    return wire.encode(request)


def parse_claim_response(data, public_key, private_key):
    """Interpret the server's answer to a key claim

    Args:
        data (bytes): The encoded KeyClaimResponse
        public_key (bytes): The app public key sent in the request
        private_key (bytes): The matching private key

    Returns:
        ClaimResult: err with the server's reason if the error field is set,
            ok with the submission key set otherwise

    Raises:
        DecodeError: If data is not a KeyClaimResponse
        CryptoError: If the server accepted the claim without a valid public key
    """
    response = wire.decode(wire.KeyClaimResponse, data)
    if response.error:
        return ClaimResult.err(response.error)

    server_public_key = bytes(response.server_public_key)
    if len(server_public_key) != LENGTH_BOX_KEY:
        raise CryptoError("Server returned an invalid public key")

    return ClaimResult.ok(
        SubmissionKeySet(
            client_public_key=public_key,
            client_private_key=private_key,
            server_public_key=server_public_key,
        )
    )


class KeyClaimExchange:
    """Claims submission key sets from the backend

    Each :meth:`claim` is an independent session with its own key pair.
    Nothing is cached between calls.
    """

    def __init__(self, transport, submit_url, random_bytes=None, derive=derive_keypair):
        """
        Args:
            transport: Object providing ``blob_fetch(url, method, body)``
            submit_url (str): Base URL of the submission server
            random_bytes (callable, optional): ``random_bytes(n)`` returning n
                cryptographically secure bytes. Default: pycryptodome's
                get_random_bytes
            derive (callable, optional): Pure function mapping a 32-byte seed
                to ``(public_key, private_key)``
        """
        self.transport = transport
        self.submit_url = submit_url.rstrip("/")
        self.random_bytes = random_bytes or get_random_bytes
        self.derive = derive

    async def claim(self, code):
        """Exchange a one-time code for a submission key set

        Args:
            code (str): The one-time code

        Returns:
            ClaimResult: The outcome reported by the server

        Raises:
            InvalidArgument: If the code is empty
            TransportError, DecodeError, CryptoError: See
                :func:`parse_claim_response` and the transport
        """
        if not isinstance(code, str) or not code.strip():
            raise InvalidArgument("One-time code must be a non-empty string")

        seed = bytes(self.random_bytes(LENGTH_BOX_KEY))
        public_key, private_key = self.derive(seed)

        body = build_claim_request(code, public_key)
        data = await self.transport.blob_fetch(
            self.submit_url + CLAIM_KEY_PATH, "POST", body
        )

        result = parse_claim_response(data, public_key, private_key)
        if result.is_ok:
            logger.info("One-time code claimed")
        else:
            logger.warning("Key claim rejected by server: %s", result.error)
        return result
