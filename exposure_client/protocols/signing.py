"""
Time-window signatures authenticating diagnosis key retrieval requests
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

import binascii
import datetime
import hashlib
import hmac

from exposure_client.config import SECONDS_PER_WINDOW
from exposure_client.errors import InvalidArgument


#########################
### UTILITY FUNCTIONS ###
#########################


def hour_epoch_from_time(time=None):
    """Return the number of whole hours since the UNIX epoch

    Args:
        time (:obj:`datetime.datetime`, optional): An aware datetime.
            Defaults to the current time

    Returns:
        int: floor(unix seconds / 3600)

    Raises:
        InvalidArgument: If time is a naive datetime
    """
    if time is None:
        time = datetime.datetime.now(datetime.timezone.utc)
    if not isinstance(time, datetime.datetime) or time.utcoffset() is None:
        raise InvalidArgument("Signing time must be a timezone aware datetime")
    return int(time.timestamp()) // SECONDS_PER_WINDOW


def utc_iso8601_date(date):
    """Format the UTC calendar date of a request as YYYY-MM-DD

    Args:
        date (:obj:`datetime.date` or :obj:`datetime.datetime`): A calendar
            date, or an aware datetime which is converted to UTC first

    Raises:
        InvalidArgument: For naive datetimes and anything that is not a date
    """
    if isinstance(date, datetime.datetime):
        if date.utcoffset() is None:
            raise InvalidArgument("Request datetime must be timezone aware")
        date = date.astimezone(datetime.timezone.utc).date()
    elif not isinstance(date, datetime.date):
        raise InvalidArgument("Expected a date, got {!r}".format(date))
    return date.isoformat()


def format_hour(hour):
    """Format an hour of the day as two zero-padded digits

    Raises:
        InvalidArgument: If hour is not an integer in 0..23
    """
    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise InvalidArgument("Hour must be an integer between 0 and 23")
    return "{:02d}".format(hour)


def parse_hmac_key(hex_key):
    """Decode the shared retrieval secret

    Args:
        hex_key (str): The secret as a hex string

    Returns:
        bytes: The raw key

    Raises:
        InvalidArgument: If hex_key is empty or not valid hex
    """
    try:
        key = binascii.unhexlify(hex_key)
    except (ValueError, TypeError) as exc:
        raise InvalidArgument("HMAC key must be a hex string") from exc
    if not key:
        raise InvalidArgument("HMAC key must not be empty")
    return key


########################
### SIGNING MESSAGES ###
########################


def time_window_message(date, hour=None, now=None):
    """Build the canonical message signed for a retrieval request

    The message is ``<date>:<hour epoch>`` for a daily request and
    ``<date>:<hour>:<hour epoch>`` for an hourly one, where the hour epoch is
    the current number of hours since the UNIX epoch. The hour epoch binds
    the signature to a one-hour window.

    Args:
        date (:obj:`datetime.date`): The requested day
        hour (int, optional): The requested hour, for hourly requests
        now (:obj:`datetime.datetime`, optional): Signing time. Defaults to
            the current time

    Returns:
        str: The message
    """
    parts = [utc_iso8601_date(date)]
    if hour is not None:
        parts.append(format_hour(hour))
    parts.append(str(hour_epoch_from_time(now)))
    return ":".join(parts)


def sign_time_window(date, hmac_key, hour=None, now=None):
    """Compute the lowercase hex HMAC-SHA256 of a time-window message

    Args:
        date (:obj:`datetime.date`): The requested day
        hmac_key (bytes): The raw shared secret
        hour (int, optional): The requested hour, for hourly requests
        now (:obj:`datetime.datetime`, optional): Signing time

    Returns:
        str: 64 lowercase hex characters
    """
    message = time_window_message(date, hour=hour, now=now)
    return hmac.new(hmac_key, message.encode("ascii"), hashlib.sha256).hexdigest()


class TimeWindowSigner:
    """Signs retrieval requests with the shared backend secret

    A signature is only accepted by the server during the hour it was
    computed in. A request signed just before the hour rolls over may be
    rejected. Nothing is retried here: calling the signer again yields a
    signature for the new window.
    """

    def __init__(self, hmac_key):
        """
        Args:
            hmac_key (bytes): The raw shared secret, see :func:`parse_hmac_key`
        """
        if not isinstance(hmac_key, bytes) or not hmac_key:
            raise InvalidArgument("HMAC key must be non-empty bytes")
        self._hmac_key = hmac_key

    def __repr__(self):
        return "TimeWindowSigner(<secret>)"

    def sign_day(self, date, now=None):
        """Signature of a request for a whole day of diagnosis keys"""
        return sign_time_window(date, self._hmac_key, now=now)

    def sign_hour(self, date, hour, now=None):
        """Signature of a request for a single hour of diagnosis keys"""
        return sign_time_window(date, self._hmac_key, hour=hour, now=now)
