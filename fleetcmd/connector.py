"""Interfaces for datagram transport between clients and vehicles."""

from __future__ import annotations

import abc
import enum
import queue


class AuthMethod(enum.IntEnum):
    """Mechanisms vehicles use to authenticate clients."""

    NONE = 0  # Unauthenticated; used for handshake messages.
    GCM = 1  # Authenticated and encrypted with AES-GCM-ECDH.
    HMAC = 2  # Authenticated with HMAC-SHA256-ECDH.


BUFFER_SIZE = 5
"""Number of inbound messages that can be queued."""

MAX_RESPONSE_LENGTH = 100_000
"""Maximum byte length of responses that connectors must support."""


class Connector(abc.ABC):
    """Sends and receives raw datagrams from a vehicle.

    A connector may be used as a context manager, which closes it on exit.
    """

    @property
    @abc.abstractmethod
    def vin(self) -> str:
        """The vehicle identification number of the connected vehicle."""

    @abc.abstractmethod
    def receive(self) -> queue.Queue:
        """Return the queue on which datagrams sent by the vehicle arrive.

        ``None`` is placed on the queue once the connection closes.
        """

    @abc.abstractmethod
    def send(self, buffer: bytes) -> None:
        """Send a buffer to the vehicle, raising on failure."""

    @abc.abstractmethod
    def close(self) -> None:
        """Terminate the connection; repeated calls must be harmless."""

    @abc.abstractmethod
    def preferred_auth_method(self) -> AuthMethod:
        """The authentication method a dispatcher should use."""

    @abc.abstractmethod
    def retry_interval(self) -> float:
        """Recommended wait in seconds between transmission attempts."""

    @abc.abstractmethod
    def allowed_latency(self) -> float:
        """Maximum delay in seconds between a request and a clock-syncing response."""

    def __enter__(self) -> "Connector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class FleetAPIConnector(Connector):
    """A connector that can also send commands to the Fleet API."""

    @abc.abstractmethod
    def send_fleet_api_command(self, endpoint: str, command) -> bytes:
        """POST a command to a Fleet API endpoint and return the response body."""

    @abc.abstractmethod
    def wakeup(self, timeout: float | None = None) -> None:
        """Wake the vehicle, waiting up to ``timeout`` seconds."""