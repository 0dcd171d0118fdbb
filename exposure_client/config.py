"""
Global constants and construction inputs shared by the backend client.
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

import os
from dataclasses import dataclass

from exposure_client.errors import InvalidArgument


#: Length of the retrieval signature validity window in seconds (one hour)
SECONDS_PER_WINDOW = 60 * 60

#: Length of X25519 public and private keys in bytes
LENGTH_BOX_KEY = 32

#: Length of the box nonce in bytes
LENGTH_NONCE = 24

#: Length of a temporary exposure key in bytes
LENGTH_KEY_DATA = 16

#: Number of 10 minute intervals a temporary exposure key is valid for
MAX_ROLLING_PERIOD = 144

#: Region whose exposure configuration is fetched when none is given
DEFAULT_REGION = "ON"

#: Timeout of a single HTTP request in seconds
DEFAULT_TIMEOUT = 30.0

#: Environment variables read by :meth:`BackendConfig.from_environ`
ENV_RETRIEVE_URL = "EXPOSURE_RETRIEVE_URL"
ENV_SUBMIT_URL = "EXPOSURE_SUBMIT_URL"
ENV_HMAC_KEY = "EXPOSURE_HMAC_KEY"
ENV_REGION = "EXPOSURE_REGION"
ENV_TIMEOUT = "EXPOSURE_TIMEOUT"


@dataclass(frozen=True)
class BackendConfig:
    """Construction inputs of a backend client. Immutable once created.

    The HMAC key is the shared retrieval secret as a hex string.
    """

    retrieve_url: str
    submit_url: str
    hmac_key: str
    region: str = DEFAULT_REGION
    timeout: float = DEFAULT_TIMEOUT

    def __repr__(self):
        return "BackendConfig(retrieve_url={!r}, submit_url={!r}, region={!r})".format(
            self.retrieve_url, self.submit_url, self.region
        )

    @classmethod
    def from_environ(cls, environ=None):
        """Load the configuration from environment variables

        Args:
            environ (dict, optional): Mapping to read from. Defaults to os.environ

        Returns:
            BackendConfig: the loaded configuration

        Raises:
            InvalidArgument: if a required variable is missing or the timeout
                is not a positive number
        """
        if environ is None:
            environ = os.environ

        values = {}
        for name in (ENV_RETRIEVE_URL, ENV_SUBMIT_URL, ENV_HMAC_KEY):
            value = environ.get(name, "").strip()
            if not value:
                raise InvalidArgument("Missing required setting {}".format(name))
            values[name] = value

        region = environ.get(ENV_REGION, "").strip() or DEFAULT_REGION

        timeout = DEFAULT_TIMEOUT
        if environ.get(ENV_TIMEOUT):
            try:
                timeout = float(environ[ENV_TIMEOUT])
            except ValueError as exc:
                raise InvalidArgument("{} must be a number".format(ENV_TIMEOUT)) from exc
            if timeout <= 0:
                raise InvalidArgument("{} must be positive".format(ENV_TIMEOUT))

        return cls(
            retrieve_url=values[ENV_RETRIEVE_URL],
            submit_url=values[ENV_SUBMIT_URL],
            hmac_key=values[ENV_HMAC_KEY],
            region=region,
            timeout=timeout,
        )
