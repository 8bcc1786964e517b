"""A connector that delivers vehicle commands through the Fleet API over HTTP."""

from __future__ import annotations

import base64
import binascii
import http
import json
import queue
import re
import threading
import time
from typing import Any

import requests

from fleetcmd import log
from fleetcmd.connector import (
    BUFFER_SIZE,
    MAX_RESPONSE_LENGTH,
    AuthMethod,
    FleetAPIConnector,
)

MAX_LATENCY = 10.0
"""Default maximum latency in seconds when updating the vehicle clock estimate."""

REQUEST_TIMEOUT = 30.0
WAKEUP_INTERVAL = 10.0

# Extracts the suggested server from bodies such as
# {"error": "user out of region, use base URL: https://fleet-api.example.tesla.com, see ..."}
_BASE_DOMAIN_RE = re.compile(r"use base URL: https://([-a-z0-9.]*)")


class CommandError(Exception):
    """A failed command, telling whether it may have run and may be retried."""

    default_message = "command failed"

    def __init__(
        self,
        message: str | None = None,
        may_have_succeeded: bool = False,
        temporary: bool = False,
    ) -> None:
        super().__init__(message or self.default_message)
        self.may_have_succeeded = may_have_succeeded
        self.temporary = temporary


class NotConnectedError(CommandError):
    """Raised when the connection is closed."""

    default_message = "not connected"


class ProtocolNotSupportedError(CommandError):
    """Raised when the vehicle does not support signed commands."""

    default_message = "protocol not supported"


class VehicleNotAwakeError(CommandError):
    """Raised when the vehicle is offline or asleep."""

    default_message = "vehicle unavailable: vehicle is offline or asleep"


class HTTPError(CommandError):
    """An unexpected HTTP status returned by the server."""

    def __init__(self, code: int, message: str = "") -> None:
        try:
            phrase = http.HTTPStatus(code).phrase
        except ValueError:
            phrase = ""
        may_have_succeeded = not 400 <= code < 500 and code != 503
        temporary = code in (503, 504, 408, 421)
        super().__init__(message or phrase, may_have_succeeded, temporary)
        self.code = code
        self.message = message


def _is_temporary(err: BaseException) -> bool:
    return bool(getattr(err, "temporary", False))


def valid_tesla_domain_suffix(domain: str) -> bool:
    """Return whether ``domain`` belongs to a trusted Tesla domain."""
    return domain.endswith((".tesla.com", ".tesla.cn", ".teslamotors.com"))


def _read_body(response: requests.Response) -> bytes:
    body = bytearray()
    for chunk in response.iter_content(chunk_size=8192):
        body += chunk
        if len(body) > MAX_RESPONSE_LENGTH:
            break
    return bytes(body[: MAX_RESPONSE_LENGTH + 1])


def send_fleet_api_command(
    session: requests.Session,
    user_agent: str,
    auth_header: str,
    url: str,
    command: Any,
) -> bytes:
    """POST ``command`` to ``url`` and return the response body.

    Bytes are sent as they are; anything else is encoded as JSON.
    """
    if isinstance(command, (bytes, bytearray)):
        body = bytes(command)
    else:
        body = json.dumps(command).encode()
    log.debug("Sending request to %s: %s", url, body)
    headers = {
        "User-Agent": user_agent,
        "Content-type": "application/json",
        "Authorization": auth_header,
        "Accept": "*/*",
    }
    try:
        response = session.post(
            url, data=body, headers=headers, stream=True, timeout=REQUEST_TIMEOUT
        )
    except requests.RequestException as err:
        raise CommandError(str(err), False, True) from err

    with response:
        try:
            body = _read_body(response)
        except requests.RequestException as err:
            raise CommandError(str(err), True, False) from err
        status = response.status_code

    if len(body) > MAX_RESPONSE_LENGTH:
        raise CommandError("response exceeds maximum length", True, True)

    log.debug("Server returned %d: %s", status, body)
    if status == 200:
        return body
    if status == 422:
        raise ProtocolNotSupportedError()
    if status == 503:
        raise VehicleNotAwakeError()
    if status == 408 and b"vehicle is offline" in body:
        raise VehicleNotAwakeError()
    raise HTTPError(status, body.decode("utf-8", errors="replace"))


def _decode_response(body: bytes) -> Any:
    data = json.loads(body)
    if not isinstance(data, dict):
        raise ValueError("server response is not a JSON object")
    return data.get("response")


class Connection(FleetAPIConnector):
    """Delivers commands to a vehicle by POSTing them to a Fleet API server."""

    def __init__(
        self, vin: str, auth_header: str, server_url: str, user_agent: str = ""
    ) -> None:
        self.user_agent = user_agent
        self.server_url = server_url
        self.session = requests.Session()
        self.last_poke: float | None = None
        self._vin = vin
        self._auth_header = auth_header
        # One spare slot so closing can always post the end-of-stream marker.
        self._inbox: queue.Queue = queue.Queue(maxsize=BUFFER_SIZE + 1)
        self._closed = False
        self._lock = threading.Lock()

    @property
    def vin(self) -> str:
        return self._vin

    def preferred_auth_method(self) -> AuthMethod:
        return AuthMethod.HMAC

    def allowed_latency(self) -> float:
        return MAX_LATENCY

    def retry_interval(self) -> float:
        return 1.0

    def receive(self) -> queue.Queue:
        return self._inbox

    def close(self) -> None:
        with self._lock:
            if not self._closed:
                self._closed = True
                self._inbox.put_nowait(None)

    def send_fleet_api_command(self, endpoint: str, command: Any) -> bytes:
        """Send a command to a Fleet API endpoint on this connection's server.

        An HTTP 421 reply naming another trusted server redirects later requests there.
        """
        url = f"https://{self.server_url}/{endpoint}"
        try:
            return send_fleet_api_command(
                self.session, self.user_agent, self._auth_header, url, command
            )
        except HTTPError as err:
            if err.code == 421:
                match = _BASE_DOMAIN_RE.search(err.message)
                if match and valid_tesla_domain_suffix(match.group(1)):
                    log.debug("Received HTTP Status 421. Updating server URL.")
                    self.server_url = match.group(1)
            raise

    def wakeup(self, timeout: float | None = None) -> None:
        """Ask the vehicle to wake, retrying temporary failures until ``timeout``."""
        deadline = None if timeout is None else time.monotonic() + timeout
        endpoint = f"api/1/vehicles/{self._vin}/wake_up"
        while True:
            with self._lock:
                self.last_poke = time.time()
            try:
                body = self.send_fleet_api_command(endpoint, None)
                response = _decode_response(body)
                if response is not None and not isinstance(response, dict):
                    raise ValueError("wake response is not a JSON object")
                return
            except Exception as err:
                if not _is_temporary(err):
                    raise
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining < WAKEUP_INTERVAL:
                    time.sleep(max(remaining, 0.0))
                    raise TimeoutError("timed out waking vehicle")
            time.sleep(WAKEUP_INTERVAL)

    def send(self, buffer: bytes) -> None:
        endpoint = f"api/1/vehicles/{self._vin}/signed_command"
        command = {"routable_message": base64.b64encode(bytes(buffer)).decode("ascii")}
        body = self.send_fleet_api_command(endpoint, command)
        try:
            encoded = _decode_response(body)
            if encoded is None:
                payload = b""
            elif isinstance(encoded, str):
                payload = base64.b64decode(encoded, validate=True)
            else:
                raise ValueError("response payload is not a string")
        except (ValueError, binascii.Error) as err:
            log.debug("Invalid server response (%d bytes): %s", len(body), body)
            raise CommandError(f"unable to parse server response: {err}", True, False) from err

        with self._lock:
            if self._closed:
                raise NotConnectedError()
            if self._inbox.qsize() >= BUFFER_SIZE:
                raise CommandError("dropped response because inbox is full", True, False)
            self._inbox.put_nowait(payload)