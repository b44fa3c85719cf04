# meshdevice

Device-side building blocks for nodes on a MeshCore mesh network. The
package uses only the standard library.

## Modules

- `meshdevice.ack`: `AckTracker` holds outbound messages that are waiting
  for an acknowledgement. Each one is described by a `PendingAck` with
  optional `on_ack`, `on_timeout` and `resend` callbacks. When an attempt
  times out (12 seconds by default), `check_timeouts` calls `resend` until
  `max_retries` is used up (0 by default). After that it drops the entry
  and calls `on_timeout`. `resolve(hash)` calls `on_ack` and returns
  whether the hash was pending. `cancel(hash)` drops an entry without
  calling any callback.
- `meshdevice.connection`: `ConnectionManager` records when each peer was
  last heard from, through `register`, `touch` and `remove`. `check_timeouts`
  drops every peer that has been silent for longer than
  `keep_alive_interval × timeout_multiplier` (30 s × 2.5 by default) and
  passes each one to the callback given to `set_on_disconnect`.
- `meshdevice.scheduler`: `AdvertScheduler` sends self-advertisements on two
  timers. Local (zero-hop) adverts go out every `interval × 2` minutes and
  flood adverts every `interval` hours. A flood advert also resets the local
  timer. An interval of 0 turns that timer off, and if both intervals are 0
  the defaults (1 and 12) apply. Packets come from a `build` callable and are
  sent through any object with `send_flood` and `send_zero_hop` methods (the
  `AdvertRouter` protocol). `send_now(flood)` sends an advert at once, and
  `update_intervals` changes both intervals while the scheduler runs.
- `meshdevice.contact`: `ContactInfo` describes a known peer. It holds the
  peer's public key, name, type, flags, direct path, timestamps and location
  (degrees × 1,000,000). It caches the shared secret for the peer, and
  `invalidate_shared_secret` clears that cache. The module also defines the
  errors `ContactError`, `ContactsFullError` and `ContactNotFoundError`.
- `meshdevice.contact_manager`: `ContactManager` is a thread-safe in-memory
  `ContactStore` that holds 32 contacts by default. With
  `overwrite_when_full=True`, a full store evicts the contact with the oldest
  `last_mod` that is not a favourite; otherwise `add_contact` raises
  `ContactsFullError`. `search_by_hash` returns at most 8 contacts whose key
  starts with the given byte. You can iterate over a manager or call
  `len()` on it.
- `meshdevice.advert_processing`: `process_advert` applies a received
  `AdvertPayload` to a store. It rejects adverts with no name, a bad
  signature, or a replayed timestamp, and returns an `AdvertResult`.
  `process_path` records the direct path from a `PathContent` for its
  sender. It returns the contact together with the piggybacked extra type
  and data.

## Example

```python
import threading

from meshdevice.ack import AckTracker, PendingAck

tracker = AckTracker(ack_timeout=12.0, max_retries=3)
tracker.track(0xDEADBEEF, PendingAck(on_ack=lambda: print("delivered")))

stop = threading.Event()
worker = threading.Thread(target=tracker.start, args=(stop,), daemon=True)
worker.start()

tracker.resolve(0xDEADBEEF)  # prints "delivered"
tracker.stop()
```

`ConnectionManager` and `AdvertScheduler` run the same way. Call
`start(stop_event)` in a background thread, and end the loop with `stop()`
or by setting the event. Every class takes a `clock` callable (by default
`time.monotonic`), so tests can control time.

## What the package does not do

- It has no cryptography of its own. You supply the shared-secret
  computation to `ContactManager` as `compute_secret`, and the ADVERT
  signature check to `process_advert` as `verify`.
- It does not build, serialise or parse packets, and it has no radio or
  network transport. The scheduler's `build` callable and router come from
  your code.
- Contacts are kept in memory only. Nothing is saved to disk.

## Tests

```
pip install -e .[test]
pytest
```