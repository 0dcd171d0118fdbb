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

import pytest
from nacl.bindings import crypto_scalarmult_base

from exposure_client import wire
from exposure_client.errors import CryptoError, DecodeError, InvalidArgument, KeyClaimError
from exposure_client.protocols.keyclaim import (
    ClaimResult,
    KeyClaimExchange,
    SubmissionKeySet,
    build_claim_request,
    derive_keypair,
    parse_claim_response,
)

from conftest import SUBMIT_URL, VALID_CODE

SEED = bytes(range(32))
SERVER_PUBLIC_KEY = bytes.fromhex("de9edb7d7b7dc1b4d35b61c2ece435373f8343c85b78674dadfc7e146f882b4f")


def claim_response(server_public_key=b"", error=""):
    response = wire.KeyClaimResponse(server_public_key=server_public_key, error=error)
    return wire.encode(response)


def make_key_set():
    public_key, private_key = derive_keypair(SEED)
    return SubmissionKeySet(
        client_public_key=public_key,
        client_private_key=private_key,
        server_public_key=SERVER_PUBLIC_KEY,
    )


###########################
### TEST KEY DERIVATION ###
###########################


def test_derive_keypair_uses_seed_as_private_key():
    public_key, private_key = derive_keypair(SEED)
    assert private_key == SEED
    assert public_key == crypto_scalarmult_base(SEED)


def test_derive_keypair_is_deterministic():
    assert derive_keypair(SEED) == derive_keypair(SEED)
    assert derive_keypair(SEED)[0] != derive_keypair(bytes(32))[0]


@pytest.mark.parametrize("seed", [b"", bytes(31), bytes(33), "0" * 32])
def test_derive_keypair_rejects_bad_seed(seed):
    with pytest.raises(CryptoError):
        derive_keypair(seed)


###############################
### TEST SUBMISSION KEY SET ###
###############################


def test_key_set_base64_storage():
    key_set = make_key_set()
    stored = key_set.to_base64()
    assert set(stored) == {"clientPublicKey", "clientPrivateKey", "serverPublicKey"}
    assert SubmissionKeySet.from_base64(stored) == key_set


def test_key_set_repr_hides_keys():
    key_set = make_key_set()
    text = repr(key_set)
    for key in (key_set.client_private_key, key_set.client_public_key):
        assert key.hex() not in text
        assert repr(key) not in text


def test_key_set_rejects_wrong_length():
    with pytest.raises(CryptoError):
        SubmissionKeySet(
            client_public_key=bytes(32),
            client_private_key=bytes(32),
            server_public_key=bytes(16),
        )


@pytest.mark.parametrize(
    "stored",
    [
        {},
        {"clientPublicKey": "!!", "clientPrivateKey": "!!", "serverPublicKey": "!!"},
        {"clientPublicKey": "AAAA", "clientPrivateKey": "AAAA", "serverPublicKey": "AAAA"},
    ],
)
def test_key_set_rejects_malformed_storage(stored):
    with pytest.raises(CryptoError):
        SubmissionKeySet.from_base64(stored)


#########################
### TEST CLAIM RESULT ###
#########################


def test_claim_result_ok():
    key_set = make_key_set()
    result = ClaimResult.ok(key_set)
    assert result.is_ok
    assert result.unwrap() is key_set


def test_claim_result_err():
    result = ClaimResult.err("code expired")
    assert not result.is_ok
    with pytest.raises(KeyClaimError) as excinfo:
        result.unwrap()
    assert excinfo.value.code == "code expired"


def test_claim_result_needs_exactly_one_branch():
    with pytest.raises(ValueError):
        ClaimResult()
    with pytest.raises(ValueError):
        ClaimResult(key_set=make_key_set(), error="not found")


##########################
### TEST WIRE MESSAGES ###
##########################


def test_build_claim_request():
    public_key, _ = derive_keypair(SEED)
    request = wire.decode(wire.KeyClaimRequest, build_claim_request("ABCD1234", public_key))
    assert request.one_time_code == "ABCD1234"
    assert request.app_public_key == public_key


def test_parse_successful_response():
    public_key, private_key = derive_keypair(SEED)
    data = claim_response(server_public_key=SERVER_PUBLIC_KEY)
    key_set = parse_claim_response(data, public_key, private_key).unwrap()
    assert key_set.server_public_key == SERVER_PUBLIC_KEY
    assert key_set.client_public_key == public_key
    assert key_set.client_private_key == private_key


def test_parse_error_response():
    public_key, private_key = derive_keypair(SEED)
    data = claim_response(server_public_key=SERVER_PUBLIC_KEY, error="code already used")
    result = parse_claim_response(data, public_key, private_key)
    assert not result.is_ok
    assert result.key_set is None
    assert result.error == "code already used"


def test_parse_response_without_server_key():
    public_key, private_key = derive_keypair(SEED)
    with pytest.raises(CryptoError):
        parse_claim_response(claim_response(), public_key, private_key)


def test_parse_malformed_response():
    public_key, private_key = derive_keypair(SEED)
    with pytest.raises(DecodeError):
        parse_claim_response(b"\x0a\x20\x01\x02", public_key, private_key)


def test_parse_response_with_invalid_utf8_error():
    public_key, private_key = derive_keypair(SEED)
    with pytest.raises(DecodeError):
        parse_claim_response(b"\x12\x02\xff\xfe", public_key, private_key)


###############################
### TEST KEY CLAIM SESSIONS ###
###############################


@pytest.mark.asyncio
async def test_claim_draws_one_seed(transport, backend, random_source):
    exchange = KeyClaimExchange(transport, SUBMIT_URL, random_bytes=random_source)
    result = await exchange.claim(VALID_CODE)

    assert result.is_ok
    assert random_source.calls == [32]
    assert backend.paths() == ["/claim-key"]
    assert backend.claimed_app_keys == [result.key_set.client_public_key]
    assert result.key_set.server_public_key == backend.server_public_key


@pytest.mark.asyncio
async def test_claims_are_independent_sessions(transport, backend, random_source):
    exchange = KeyClaimExchange(transport, SUBMIT_URL, random_bytes=random_source)
    first = (await exchange.claim(VALID_CODE)).unwrap()
    second = (await exchange.claim(VALID_CODE)).unwrap()

    assert first.client_private_key != second.client_private_key
    assert first.client_public_key != second.client_public_key
    assert len(backend.requests) == 2


@pytest.mark.asyncio
async def test_claim_uses_injected_derivation(transport, backend):
    seeds = []

    def derive(seed):
        seeds.append(seed)
        return derive_keypair(seed)

    exchange = KeyClaimExchange(
        transport, SUBMIT_URL, random_bytes=lambda n: SEED[:n], derive=derive
    )
    key_set = (await exchange.claim(VALID_CODE)).unwrap()
    assert seeds == [SEED]
    assert key_set.client_private_key == SEED


@pytest.mark.asyncio
async def test_claim_rejected_code(transport, backend):
    exchange = KeyClaimExchange(transport, SUBMIT_URL)
    result = await exchange.claim("BADCODE")
    assert not result.is_ok
    assert result.error == "not found"


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["", "   ", None])
async def test_claim_rejects_empty_code(transport, backend, code):
    exchange = KeyClaimExchange(transport, SUBMIT_URL)
    with pytest.raises(InvalidArgument):
        await exchange.claim(code)
    assert backend.requests == []
