# mdnsengine

Building blocks for multicast DNS (mDNS) and DNS service discovery, with no
dependencies outside the standard library.

- `mdnsengine.records` holds the data types: `Query`, `Record`, `Message`,
  `Service` and the NSEC type `Bitmap` (at most 255 bytes).
- `mdnsengine.dns` converts between `Message` objects and wire-format
  packets (`to_packet`, `from_packet`), with the lower-level `parse_name`,
  `write_name`, `parse_record` and `write_record`, the record type
  constants `A`, `PTR`, `TXT`, `AAAA`, `SRV`, `NSEC`, `ANY`, and
  `type_name()` for readable type names. Malformed packets raise `DnsError`.
- `mdnsengine.cache` provides `Cache`, which holds records until their TTL
  runs out and reports when they are due for renewal.
- `mdnsengine.server` defines `AbstractServer`, the interface that sends
  messages and hands received messages to subscribers.
- `mdnsengine.browser` provides `Browser`, which discovers services of one
  type (or, with `MDNS_BROWSE_TYPE`, every service type) and reports them
  as they are added, updated and removed.
- `mdnsengine.servicemodel` provides `ServiceModel`, an ordered list of the
  services a `Browser` has found.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Encoding and decoding messages

```python
from mdnsengine.dns import PTR, from_packet, to_packet
from mdnsengine.records import Message, Query

message = Message()
message.add_query(Query(name=b"_http._tcp.local.", type=PTR))

packet = to_packet(message)      # bytes
decoded = from_packet(packet)    # Message
assert decoded.queries[0].name == b"_http._tcp.local."
```

`Message.add_query` and `Message.add_record` store copies. TXT attributes
are a dict of `bytes` keys to `bytes` values, with `None` for a key that
has no value; they are written in sorted key order. The `address` and
`port` of a `Message` describe the peer and are not part of the packet.

## The record cache

```python
from mdnsengine.cache import Cache

cache = Cache()                  # or Cache(clock) with a clock in seconds
cache.record_expired.append(lambda record: print("expired", record.name))
cache.should_query.append(lambda record: print("renew", record.name))
```

`add_record()` inserts a record, replacing an equal one (or, when the
record has `flush_cache` set, every record with the same name and type);
a record with a TTL of zero removes its match and reports it as expired.
`lookup_records(name, type)` and `lookup_record(name, type)` search the
cache; `None` as the name and `ANY` as the type match everything.

The cache runs no timer of its own. Call `check()` once the time returned
by `next_trigger()` has passed: records reaching 50, 85, 90 or 95 percent
of their TTL are passed to the `should_query` callbacks, and records
reaching their full TTL are removed and passed to `record_expired`.

## Browsing for services

A `Browser` works through any `AbstractServer`. A subclass implements
`send_message()` and `send_message_to_all()`, and hands every received
message to `emit_message()`, which passes it to the subscribers.

```python
from mdnsengine.browser import Browser
from mdnsengine.dns import PTR, SRV
from mdnsengine.records import Message, Record
from mdnsengine.server import AbstractServer
from mdnsengine.servicemodel import ServiceModel


class MemoryServer(AbstractServer):
    def __init__(self):
        super().__init__()
        self.sent = []

    def send_message(self, message):
        self.sent.append(message)

    def send_message_to_all(self, message):
        self.sent.append(message)


server = MemoryServer()
browser = Browser(server, b"_http._tcp.local.", None)   # sends a PTR query
model = ServiceModel(browser)

response = Message(is_response=True)
response.add_record(Record(name=b"_http._tcp.local.", type=PTR,
                           target=b"Web._http._tcp.local."))
response.add_record(Record(name=b"Web._http._tcp.local.", type=SRV,
                           target=b"host.local.", port=8080))
server.emit_message(response)

print(model.display(0))          # Web (_http._tcp.local.)
```

The `service_added`, `service_updated` and `service_removed` lists of a
`Browser` take callbacks that receive a `Service`. When a service's PTR is
known but its SRV record is not, the browser sends a query for its SRV and
TXT records. `Browser.services()` returns the known services keyed by
fully qualified name, and `Browser.close()` detaches the browser from its
server and cache.

Timers are driven by the caller: call `Browser.query_timeout()` every
`QUERY_INTERVAL` seconds to repeat the browse query, and, while
`Browser.service_timer_pending` is true, call `Browser.service_timeout()`
after `SERVICE_DELAY` seconds to query the service types learned when
browsing `MDNS_BROWSE_TYPE`. The browser's cache (`Browser.cache`) needs
its `check()` calls as described above.

`ServiceModel` keeps services in discovery order. `len(model)` is the
number of rows, `service_at(row)` returns a copy of a row's service
(`IndexError` when out of range), `display(row)` gives `"name (type)"`, and
`find_service(name)` returns a row or `None`. Its `rows_inserted`,
`rows_removed` and `data_changed` callbacks receive the affected row.

## What this package does not do

There is no network transport: no UDP sockets and no multicast group
membership. Messages go out and come in only through an `AbstractServer`
subclass that you write. There is also no event loop; the timed work
described above happens only when you call it. Publishing services,
claiming a host name, probing for name conflicts and resolving host names
to addresses are not provided, and there is no command-line tool.