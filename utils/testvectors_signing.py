#!/usr/bin/env python3

""" Produces test vectors for the time-window retrieval signatures """

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

from datetime import date, datetime, timedelta, timezone

from exposure_client.protocols.signing import (
    parse_hmac_key,
    sign_time_window,
    time_window_message,
)

HMAC_KEY = "abc123"
REQUEST_DATE = date(2021, 3, 15)
SIGNING_TIME = datetime.fromtimestamp(1615819200, tz=timezone.utc)


def main():
    print("## Test vectors of time-window signatures ##")
    print("   Key (hex): {}\n".format(HMAC_KEY))
    key = parse_hmac_key(HMAC_KEY)
    for offset in range(2):
        now = SIGNING_TIME + timedelta(hours=offset)
        print("  * Signing time: {} ({})".format(now.isoformat(), int(now.timestamp())))
        for hour in [None, 0, 14]:
            message = time_window_message(REQUEST_DATE, hour=hour, now=now)
            signature = sign_time_window(REQUEST_DATE, key, hour=hour, now=now)
            print("    - {} -> {}".format(message, signature))


if __name__ == "__main__":
    main()
