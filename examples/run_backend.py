#!/usr/bin/env python3

""" Simple example/demo of the backend protocol

This demo runs the app side of the protocol against a simulated backend:
Bob downloads diagnosis keys, is diagnosed, claims a one-time code and
uploads his exposure keys. The simulated server decrypts the upload.
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
import base64
import secrets
from datetime import datetime, timezone

import httpx
from nacl.public import PrivateKey

from exposure_client import wire
from exposure_client.backend import BackendClient
from exposure_client.errors import KeyClaimError
from exposure_client.protocols.upload import (
    EncryptedEnvelope,
    ExposureKey,
    decrypt_payload,
    deserialize_upload,
)
from exposure_client.transport import HttpTransport

RETRIEVE_URL = "https://retrieval.example.org"
SUBMIT_URL = "https://submission.example.org"
HMAC_KEY = secrets.token_hex(32)
ONE_TIME_CODE = "KX7M2QPD"


class SimulatedServer:
    """
    Convenience class answering requests the way the backend would
    """

    def __init__(self):
        self.private_key = PrivateKey.generate()

    def __call__(self, request):
        path = request.url.path
        print("  [Server] {} {}".format(request.method, path))

        if path.startswith("/retrieve-"):
            return httpx.Response(200, content=b"PK\x03\x04 (zipped key export)")

        if path.startswith("/config/"):
            return httpx.Response(200, json={"minimumRiskScore": 1})

        if path == "/claim-key":
            claim = wire.decode(wire.KeyClaimRequest, request.content)
            response = wire.KeyClaimResponse()
            if claim.one_time_code == ONE_TIME_CODE:
                response.server_public_key = bytes(self.private_key.public_key)
            else:
                response.error = "not found"
            return httpx.Response(200, content=wire.encode(response))

        if path == "/upload":
            envelope = EncryptedEnvelope.decode(request.content)
            payload = decrypt_payload(
                envelope.payload,
                envelope.nonce,
                envelope.app_public_key,
                bytes(self.private_key),
            )
            timestamp, keys = deserialize_upload(payload)
            print("  [Server] Decrypted upload from {}:".format(timestamp))
            for key in keys:
                print("    - {} from interval {}".format(key.key_data, key.rolling_start_number))
            return httpx.Response(200, content=wire.encode(wire.EncryptedUploadResponse()))

        return httpx.Response(404)


def bobs_exposure_keys(today_interval, days=3):
    """
    Convenience function to make up Bob's temporary exposure keys
    """
    return [
        ExposureKey(
            key_data=base64.b64encode(secrets.token_bytes(16)).decode("ascii"),
            rolling_start_number=today_interval - 144 * day,
            transmission_risk_level=4,
        )
        for day in range(days)
    ]


async def main():
    server = SimulatedServer()

    async with httpx.AsyncClient(transport=httpx.MockTransport(server)) as http:
        app = BackendClient(
            RETRIEVE_URL, SUBMIT_URL, HMAC_KEY, transport=HttpTransport(client=http)
        )
        now = datetime.now(timezone.utc)

        ### Retrieval ###

        print("[Bob -> Server] Bob downloads today's diagnosis keys")
        files = await app.retrieve_diagnosis_keys_by_day(now.date())
        print("  * stored in {}".format(files))

        print("[Bob -> Server] Bob downloads the keys of the last hour")
        files = await app.retrieve_diagnosis_keys_by_hour(now.date(), now.hour)
        print("  * stored in {}\n".format(files))

        ### Diagnosis and reporting ###

        print("Bob is diagnosed with SARS-CoV-2 and receives a one-time code")
        print("[Bob -> Server] Bob first mistypes the code")
        try:
            await app.claim_one_time_code("KX7M2QPB")
            raise RuntimeError("Example code failed!")
        except KeyClaimError as exc:
            print("  * the app shows: Code {}".format(exc.code))

        print("[Bob -> Server] Bob claims the code")
        key_set = await app.claim_one_time_code(ONE_TIME_CODE)
        print("  * submission key set established\n")

        print("[Bob -> Server] Bob uploads his exposure keys")
        today_interval = int(now.timestamp()) // 600 // 144 * 144
        acknowledgement = await app.report_diagnosis_keys(
            key_set, bobs_exposure_keys(today_interval)
        )

        if acknowledgement.accepted:
            print("  * CORRECT: the server accepted Bob's keys")
        else:
            print("  * ERROR: the server rejected Bob's keys")
            raise RuntimeError("Example code failed!")


if __name__ == "__main__":
    asyncio.run(main())
