"""Framing and addressing helpers for talking to vehicles over BLE."""

from __future__ import annotations

import hashlib
import re
import time
from collections.abc import Iterator
from dataclasses import dataclass

from fleetcmd import log

MAX_BLE_MESSAGE_SIZE = 1024
RX_TIMEOUT = 1.0
MAX_LATENCY = 4.0
RETRY_INTERVAL = 1.0
MAX_ADAPTER_INDEX = 15

VEHICLE_SERVICE_UUID = "00000211-b2d1-43f0-9b88-960cebf8b91e"
TO_VEHICLE_UUID = "00000212-b2d1-43f0-9b88-960cebf8b91e"
FROM_VEHICLE_UUID = "00000213-b2d1-43f0-9b88-960cebf8b91e"

_ADAPTER_RE = re.compile(r"hci([+-]?[0-9]+)")


class AdapterIDError(ValueError):
    """Raised when a Bluetooth adapter ID is invalid."""

    may_have_succeeded = False
    temporary = False

    def __init__(self, message: str = "the bluetooth adapter ID is invalid") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class ScanResult:
    """A BLE advertisement seen during a scan."""

    address: str
    local_name: str
    rssi: int
    connectable: bool


def vehicle_local_name(vin: str) -> str:
    """Return the BLE local name a vehicle advertises for ``vin``."""
    digest = hashlib.sha1(vin.encode()).digest()
    return f"S{digest[:8].hex()}C"


def parse_adapter_id(adapter_id: str | None) -> int | None:
    """Return the adapter index for an ID of the form ``hciN``.

    An empty or missing ID selects the default adapter and yields ``None``.
    """
    if not adapter_id:
        return None
    match = _ADAPTER_RE.fullmatch(adapter_id)
    if match is None:
        raise AdapterIDError()
    index = int(match.group(1))
    if not 0 <= index <= MAX_ADAPTER_INDEX:
        raise AdapterIDError()
    return index


def encode_frame(buffer: bytes) -> bytes:
    """Prefix ``buffer`` with its two-byte big-endian length."""
    log.debug("TX: %s", bytes(buffer).hex())
    return (len(buffer) & 0xFFFF).to_bytes(2, "big") + bytes(buffer)


def split_blocks(frame: bytes, block_length: int) -> Iterator[bytes]:
    """Yield ``frame`` in pieces of at most ``block_length`` bytes."""
    if block_length <= 0:
        raise ValueError("block length must be positive")
    for start in range(0, len(frame), block_length):
        yield frame[start:start + block_length]


class FrameAssembler:
    """Reassembles length-prefixed messages from BLE notification chunks."""

    def __init__(self, rx_timeout: float = RX_TIMEOUT) -> None:
        self.rx_timeout = rx_timeout
        self._buffer = bytearray()
        self._last_rx: float | None = None

    def feed(self, chunk: bytes, now: float | None = None) -> list[bytes]:
        """Add a chunk and return every message it completes.

        Pending data is discarded if more than ``rx_timeout`` seconds passed
        since the previous chunk, or if a frame announces an oversize length.
        """
        if now is None:
            now = time.monotonic()
        if self._last_rx is None or now - self._last_rx > self.rx_timeout:
            self._buffer.clear()
        self._last_rx = now
        self._buffer += chunk

        messages = []
        while len(self._buffer) >= 2:
            length = int.from_bytes(self._buffer[:2], "big")
            if length > MAX_BLE_MESSAGE_SIZE:
                self._buffer.clear()
                break
            end = 2 + length
            if len(self._buffer) < end:
                break
            message = bytes(self._buffer[2:end])
            del self._buffer[:end]
            log.debug("RX: %s", message.hex())
            messages.append(message)
        return messages