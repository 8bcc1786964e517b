# fleetcmd

Client-side pieces for talking to vehicles: an HTTP connector for Fleet API,
framing helpers for the BLE link, Schnorr signatures over P-256, and a session
cache that lets a client keep authenticated session state between runs.

## Installation

```
pip install fleetcmd
```

To run the tests:

```
pip install "fleetcmd[test]"
pytest
```

## Modules

### `fleetcmd.account`

`Account.from_token(oauth_token, user_agent="")` decodes the payload of a
three-part OAuth token and picks the API host from its `aud` list: only
`fleet-api.*` hosts under `.tesla.com`, `.tesla.cn` or `.teslamotors.com` are
accepted, a host containing the token's `ou_code` region is preferred, and
`DEFAULT_DOMAIN` is used when none qualifies. A malformed token raises
`MalformedTokenError`. The `remapped_domains` dictionary maps audiences to
override hosts.

An `Account` has `host`, `subject` and `user_agent` attributes and offers:

- `get(endpoint)` – GET a path on the host; a non-200 status raises
  `inet.HTTPError`.
- `post(endpoint, data)` – POST raw bytes.
- `send_vehicle_fleet_api_command(vin, endpoint, command)` – POST a
  JSON-serialisable command to `api/1/vehicles/<vin>/<endpoint>`.
- `update_key(public_key, name)` – register display metadata for a public key.
- `connection(vin)` – an `inet.Connection` to that vehicle.

`build_user_agent(app="")` returns `"<app> tesla-sdk/<version>"`, taking the
program name when `app` is empty.

### `fleetcmd.inet`

`Connection(vin, auth_header, server_url, user_agent="")` implements
`FleetAPIConnector`. `send(buffer)` posts the buffer, base64-encoded, to the
vehicle's `signed_command` endpoint and places the decoded reply on the queue
returned by `receive()`; `close()` puts `None` on that queue and later sends
raise `NotConnectedError`. An HTTP 421 reply naming another trusted server
redirects later requests there. `wakeup(timeout=None)` calls the `wake_up`
endpoint, retrying temporary failures every 10 seconds, and raises
`TimeoutError` when the timeout runs out.

`send_fleet_api_command(session, user_agent, auth_header, url, command)` is
the underlying POST. Failures raise `CommandError` (with `may_have_succeeded`
and `temporary` attributes) or one of its subclasses: `HTTPError`,
`ProtocolNotSupportedError` (HTTP 422), `VehicleNotAwakeError` (HTTP 503, or
408 with "vehicle is offline") and `NotConnectedError`. Responses longer than
100,000 bytes are rejected.

### `fleetcmd.connector`

The abstract `Connector` and `FleetAPIConnector` classes, the `AuthMethod`
enumeration (`NONE`, `GCM`, `HMAC`), and the constants `BUFFER_SIZE` and
`MAX_RESPONSE_LENGTH`. Connectors can be used as context managers, closing on
exit.

### `fleetcmd.ble`

- `vehicle_local_name(vin)` – the name a vehicle advertises, `S<hex>C`.
- `parse_adapter_id(adapter_id)` – `"hciN"` to `N` (0–15); raises
  `AdapterIDError` otherwise, returns `None` for an empty ID.
- `encode_frame(buffer)` and `split_blocks(frame, block_length)` – build the
  two-byte length-prefixed frame and cut it into writes.
- `FrameAssembler(rx_timeout=1.0).feed(chunk, now=None)` – returns the
  messages completed by a chunk, dropping stale or oversize data.
- `ScanResult` – a dataclass describing an advertisement.

### `fleetcmd.schnorr`

`sign(scalar, message)` and `verify(public_key, message, signature)` for
Schnorr signatures over P-256 with SHA-256, `deterministic_nonce(scalar,
message_hash)` following RFC 6979, and `public_key_bytes(scalar)`. `verify`
raises `InvalidSignatureError` or `InvalidPublicKeyError`.

### `fleetcmd.cache`

`SessionCache(max_entries=0)` holds lists of `CacheEntry` per VIN.
`update(vin, sessions)` stores them and, when more than `max_entries` vehicles
are held, evicts the one whose newest session is oldest; `get_entry(vin)`
returns the stored list or `None`. `export(stream)` / `export_to_file(filename)`
write JSON, and `import_cache(stream)` / `import_from_file(filename)` read it
back.

### `fleetcmd.log`

A leveled logger writing to standard error. `set_level(Level.DEBUG)` turns it
on; the default level is `Level.NONE`.

## Example

```python
import os

from fleetcmd.account import Account
from fleetcmd.cache import SessionCache

account = Account.from_token(os.environ["FLEET_TOKEN"], "my-app/1.0")
with account.connection("EXAMPLEVIN0000000") as conn:
    conn.wakeup(timeout=60)

cache = SessionCache(max_entries=10)
cache.export_to_file("sessions.json")
```

A cache file holds session state and should be protected from other users.

## What this package does not do

- It has no command dispatcher: it does not perform the session handshake,
  encrypt or authenticate commands, or match replies to requests. Cache
  entries are stored and exported as opaque bytes.
- It does not build or parse vehicle command messages; `Connection.send`
  carries whatever bytes it is given.
- It does not open a Bluetooth connection; `fleetcmd.ble` only provides the
  naming and framing used on that link.
- It provides no command-line tool.