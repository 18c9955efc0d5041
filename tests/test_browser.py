from typing import List

import pytest

from mdnsengine.browser import MDNS_BROWSE_TYPE, Browser
from mdnsengine.cache import Cache
from mdnsengine.dns import A, PTR, SRV, TXT
from mdnsengine.records import Message, Record
from mdnsengine.server import AbstractServer

NAME = b"Test"
TYPE = b"_test._tcp.local."
FQDN = NAME + b"." + TYPE
TARGET = b"Test.local."
PORT = 1234
KEY = b"key"
VALUE = b"value"


class FakeServer(AbstractServer):
    def __init__(self) -> None:
        super().__init__()
        self.messages: List[Message] = []

    def send_message(self, message: Message) -> None:
        self.messages.append(message)

    def send_message_to_all(self, message: Message) -> None:
        self.messages.append(message)

    def deliver(self, message: Message) -> None:
        self.emit_message(message)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def query_received(server: FakeServer, name: bytes, rtype: int) -> bool:
    return any(
        query.name == name and query.type == rtype
        for message in server.messages
        if not message.is_response
        for query in message.queries
    )


def response(*records: Record) -> Message:
    message = Message(is_response=True)
    for record in records:
        message.add_record(record)
    return message


def collect(callbacks):
    seen = []
    callbacks.append(seen.append)
    return seen


def test_browser_lifecycle():
    server = FakeServer()
    browser = Browser(server, TYPE)
    added = collect(browser.service_added)
    updated = collect(browser.service_updated)
    removed = collect(browser.service_removed)

    assert query_received(server, TYPE, PTR)
    server.messages.clear()

    server.deliver(response(Record(name=TYPE, type=PTR, target=FQDN)))
    assert query_received(server, FQDN, SRV)
    assert query_received(server, FQDN, TXT)
    server.messages.clear()
    assert len(added) == 0

    server.deliver(response(Record(name=FQDN, type=SRV, target=TARGET, port=PORT)))
    assert len(added) == 1
    assert added[0].name == NAME
    assert added[0].type == TYPE
    assert added[0].hostname == TARGET
    assert added[0].port == PORT

    server.deliver(response(Record(name=FQDN, type=TXT, attributes={KEY: VALUE})))
    assert len(added) == 1
    assert len(updated) == 1
    assert updated[0].attributes == {KEY: VALUE}

    server.deliver(response(Record(name=TYPE, type=PTR, ttl=0, target=FQDN)))
    assert len(removed) == 1
    assert removed[0].name == NAME
    assert browser.services() == {}


def test_browse_ptr():
    server = FakeServer()
    browser = Browser(server, MDNS_BROWSE_TYPE)
    assert query_received(server, MDNS_BROWSE_TYPE, PTR)

    server.deliver(response(Record(name=MDNS_BROWSE_TYPE, type=PTR, target=TYPE)))
    assert browser.service_timer_pending
    browser.service_timeout()
    assert query_received(server, TYPE, PTR)
    assert not browser.service_timer_pending


def test_service_timeout_without_targets_sends_nothing():
    server = FakeServer()
    browser = Browser(server, MDNS_BROWSE_TYPE)
    server.messages.clear()
    browser.service_timeout()
    assert server.messages == []


def test_queries_are_ignored():
    server = FakeServer()
    browser = Browser(server, TYPE)
    added = collect(browser.service_added)
    message = Message(is_response=False)
    message.add_record(Record(name=TYPE, type=PTR, target=FQDN))
    message.add_record(Record(name=FQDN, type=SRV, target=TARGET, port=PORT))
    server.deliver(message)
    assert added == []
    assert browser.cache.lookup_record(TYPE, PTR) is None


def test_unchanged_service_not_reported_again():
    server = FakeServer()
    browser = Browser(server, TYPE)
    added = collect(browser.service_added)
    updated = collect(browser.service_updated)
    message = response(
        Record(name=TYPE, type=PTR, target=FQDN),
        Record(name=FQDN, type=SRV, target=TARGET, port=PORT),
    )
    server.deliver(message)
    server.deliver(message)
    assert len(added) == 1
    assert updated == []
    assert list(browser.services()) == [FQDN]


def test_records_of_other_types_ignored():
    server = FakeServer()
    browser = Browser(server, TYPE)
    other = b"Other._other._tcp.local."
    server.deliver(response(Record(name=other, type=SRV, target=TARGET, port=PORT)))
    assert browser.cache.lookup_record(other, SRV) is None


def test_address_cached_only_for_known_hostnames():
    server = FakeServer()
    browser = Browser(server, TYPE)
    server.deliver(
        response(
            Record(name=TYPE, type=PTR, target=FQDN),
            Record(name=FQDN, type=SRV, target=TARGET, port=PORT),
            Record(name=TARGET, type=A),
            Record(name=b"Stranger.local.", type=A),
        )
    )
    assert browser.cache.lookup_record(TARGET, A) is not None
    assert browser.cache.lookup_record(b"Stranger.local.", A) is None


def test_query_timeout_includes_known_answers():
    server = FakeServer()
    browser = Browser(server, TYPE)
    server.deliver(response(Record(name=TYPE, type=PTR, target=FQDN)))
    server.messages.clear()
    browser.query_timeout()
    assert len(server.messages) == 1
    sent = server.messages[0]
    assert [(q.name, q.type) for q in sent.queries] == [(TYPE, PTR)]
    assert [r.target for r in sent.records] == [FQDN]


def test_srv_expiry_removes_service():
    clock = FakeClock()
    cache = Cache(clock)
    server = FakeServer()
    browser = Browser(server, TYPE, cache)
    removed = collect(browser.service_removed)
    server.deliver(
        response(
            Record(name=TYPE, type=PTR, target=FQDN, ttl=3600),
            Record(name=FQDN, type=SRV, target=TARGET, port=PORT, ttl=10),
        )
    )
    clock.now = 11.0
    cache.check()
    assert [s.name for s in removed] == [NAME]
    assert browser.services() == {}


def test_should_query_renews_record():
    clock = FakeClock()
    cache = Cache(clock)
    server = FakeServer()
    browser = Browser(server, TYPE, cache)
    removed = collect(browser.service_removed)
    server.deliver(
        response(
            Record(name=TYPE, type=PTR, target=FQDN, ttl=3600),
            Record(name=FQDN, type=SRV, target=TARGET, port=PORT, ttl=10),
        )
    )
    server.messages.clear()
    clock.now = 6.0
    cache.check()
    assert query_received(server, FQDN, SRV)
    assert removed == []
    assert list(browser.services()) == [FQDN]
    srv = cache.lookup_record(FQDN, SRV)
    assert srv.port == PORT
    assert srv.target == TARGET


def test_close_stops_processing():
    server = FakeServer()
    browser = Browser(server, TYPE)
    added = collect(browser.service_added)
    browser.close()
    server.deliver(
        response(
            Record(name=TYPE, type=PTR, target=FQDN),
            Record(name=FQDN, type=SRV, target=TARGET, port=PORT),
        )
    )
    assert added == []
    with pytest.raises(ValueError):
        server.unsubscribe(browser.handle_message)