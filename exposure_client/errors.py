"""
Errors raised by the backend client.

Every failure surfaces as a subclass of :class:`BackendError`. Errors caused
by an underlying library exception keep it as ``__cause__``.
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


class BackendError(Exception):
    """Base class of all backend client errors"""


class InvalidArgument(BackendError, ValueError):
    """A caller passed a malformed date, hour, key or setting"""


class KeyClaimError(BackendError):
    """The server rejected a one-time code

    The server-provided reason is kept verbatim in :attr:`code` so that it can
    be shown to the end user.
    """

    def __init__(self, code):
        super().__init__(code)
        self.code = code


class TransportError(BackendError):
    """Network or HTTP failure while talking to the backend"""

    def __init__(self, message, url=None, status_code=None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class DecodeError(BackendError):
    """A response could not be decoded"""


class CryptoError(BackendError):
    """Key derivation, encryption or decryption failed"""
