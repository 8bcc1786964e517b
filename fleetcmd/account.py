"""Access to a Tesla account through the Fleet API."""

from __future__ import annotations

import base64
import binascii
import json
import re
import sys
from pathlib import Path
from typing import Any

import requests

from fleetcmd import inet, log
from fleetcmd.connector import MAX_RESPONSE_LENGTH

LIBRARY_VERSION = "0.1.0"
DEFAULT_DOMAIN = "fleet-api.prd.na.vn.cloud.tesla.com"

# Mainly stops paths; the HTTP layer rejects the rest.
_DOMAIN_RE = re.compile(r"[A-Za-z0-9-.]+")

remapped_domains: dict[str, str] = {}
"""Audience to server overrides, for development use."""


class MalformedTokenError(ValueError):
    """Raised when an OAuth token cannot be parsed."""


def build_user_agent(app: str = "") -> str:
    """Return the User-Agent string for ``app`` and this library."""
    library = f"tesla-sdk/{LIBRARY_VERSION}".strip()
    if not app:
        program = sys.argv[0] if sys.argv else ""
        app = Path(program).stem if program else ""
        if not app:
            return library
    return f"{app} {library}"


def _decode_segment(segment: str) -> bytes:
    if "=" in segment:
        raise MalformedTokenError(f"client provided malformed OAuth token: padding ({segment})")
    try:
        return base64.b64decode(segment + "=" * (-len(segment) % 4), validate=True)
    except (binascii.Error, ValueError) as err:
        raise MalformedTokenError(
            f"client provided malformed OAuth token: {err} ({segment})"
        ) from err


def _string_field(payload: dict[str, Any], name: str) -> str:
    value = payload.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedTokenError(f"client provided malformed OAuth token: bad {name}")
    return value


def _parse_payload(raw: bytes) -> tuple[list[str], str, str]:
    try:
        payload = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as err:
        raise MalformedTokenError(f"client provided malformed OAuth token: {err}") from err
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise MalformedTokenError("client provided malformed OAuth token: not an object")
    audiences = payload.get("aud")
    if audiences is None:
        audiences = []
    if not isinstance(audiences, list) or not all(isinstance(a, str) for a in audiences):
        raise MalformedTokenError("client provided malformed OAuth token: bad aud")
    return audiences, _string_field(payload, "ou_code"), _string_field(payload, "sub")


def _select_domain(audiences: list[str], ou_code: str) -> str:
    for audience in audiences:
        if audience in remapped_domains:
            return remapped_domains[audience]
    domain = DEFAULT_DOMAIN
    region = f".{ou_code.lower()}."
    for audience in audiences:
        if audience.startswith("https://auth.tesla."):
            continue
        candidate = audience.removeprefix("https://").removesuffix("/")
        if not _DOMAIN_RE.fullmatch(candidate):
            continue
        if inet.valid_tesla_domain_suffix(candidate) and candidate.startswith("fleet-api."):
            domain = candidate
            # Prefer the server for the account's region.
            if region in domain:
                return domain
    return domain


class Account:
    """A Tesla account reached through the Fleet API."""

    def __init__(self, user_agent: str, auth_header: str, host: str, subject: str = "") -> None:
        self.user_agent = user_agent
        self.host = host
        self.subject = subject
        self.session = requests.Session()
        self._auth_header = auth_header

    @classmethod
    def from_token(cls, oauth_token: str, user_agent: str = "") -> "Account":
        """Create an account from an OAuth token, choosing the server it names."""
        parts = oauth_token.split(".")
        if len(parts) != 3:
            raise MalformedTokenError("client provided malformed OAuth token")
        audiences, ou_code, subject = _parse_payload(_decode_segment(parts[1]))
        domain = _select_domain(audiences, ou_code)
        if not domain:
            raise MalformedTokenError("client provided OAuth token with invalid audiences")
        return cls(
            user_agent=build_user_agent(user_agent),
            auth_header="Bearer " + oauth_token.strip(),
            host=domain,
            subject=subject,
        )

    def connection(self, vin: str) -> inet.Connection:
        """Return a Fleet API connection to the vehicle ``vin``."""
        return inet.Connection(vin, self._auth_header, self.host, self.user_agent)

    def get(self, endpoint: str) -> bytes:
        """Send a GET request to ``endpoint`` (a path on the account's server)."""
        url = f"https://{self.host}/{endpoint}"
        log.debug("Requesting %s...", url)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "Authorization": self._auth_header,
        }
        try:
            response = self.session.get(
                url, headers=headers, stream=True, timeout=inet.REQUEST_TIMEOUT
            )
        except requests.RequestException as err:
            raise inet.CommandError(f"error fetching {endpoint}: {err}", False, True) from err
        with response:
            if response.status_code != 200:
                raise inet.HTTPError(
                    response.status_code,
                    f"http error when sending command to {url}: "
                    f"{response.status_code} {response.reason}",
                )
            body = bytearray()
            for chunk in response.iter_content(chunk_size=8192):
                body += chunk
                if len(body) >= MAX_RESPONSE_LENGTH:
                    break
        body = bytes(body[:MAX_RESPONSE_LENGTH])
        log.debug("Received: %s", body)
        return body

    def _send_fleet_api_command(self, endpoint: str, command: Any) -> bytes:
        return inet.send_fleet_api_command(
            self.session,
            self.user_agent,
            self._auth_header,
            f"https://{self.host}/{endpoint}",
            command,
        )

    def post(self, endpoint: str, data: bytes) -> bytes:
        """Send a POST request to ``endpoint`` and return the response body."""
        return self._send_fleet_api_command(endpoint, bytes(data))

    def send_vehicle_fleet_api_command(self, vin: str, endpoint: str, command: Any) -> bytes:
        """Send a JSON-serialisable command to a vehicle through the REST API."""
        return self._send_fleet_api_command(f"api/1/vehicles/{vin}/{endpoint}", command)

    def update_key(self, public_key: bytes, name: str) -> None:
        """Register display metadata for an uncompressed public key."""
        params = {
            "public_key": bytes(public_key).hex(),
            "kind": "mobile_device",
            "model": "3rd Party Application",
            "name": name,
            "tag": self.user_agent,
        }
        self._send_fleet_api_command("api/1/users/keys", params)