"""Discovery of services of one type (or of all types) on the local network."""

from __future__ import annotations

import copy
from typing import Callable, Dict, List, Optional, Set

from .cache import Cache
from .dns import A, AAAA, PTR, SRV, TXT
from .records import Message, Query, Record, Service
from .server import AbstractServer

ServiceCallback = Callable[[Service], None]

MDNS_BROWSE_TYPE = b"_services._dns-sd._udp.local."
"""Service type that, when browsed, enumerates every service type."""

QUERY_INTERVAL = 60.0
"""Seconds between calls to :meth:`Browser.query_timeout` by the owner."""

SERVICE_DELAY = 0.1
"""Seconds the owner waits before :meth:`Browser.service_timeout` once pending."""


class Browser:
    """Track services of ``service_type`` advertised on the network.

    Callbacks in ``service_added``, ``service_updated`` and
    ``service_removed`` are called with a :class:`Service`. The browser sends
    its first query on construction; the owner then calls
    :meth:`query_timeout` every :data:`QUERY_INTERVAL` seconds and, while
    :attr:`service_timer_pending` is true, :meth:`service_timeout` after
    :data:`SERVICE_DELAY` seconds.
    """

    def __init__(
        self,
        server: AbstractServer,
        service_type: bytes,
        cache: Optional[Cache] = None,
    ) -> None:
        self._server = server
        self.service_type = bytes(service_type)
        self.cache = cache if cache is not None else Cache()
        self._services: Dict[bytes, Service] = {}
        self._hostnames: Set[bytes] = set()
        self._ptr_targets: Dict[bytes, None] = {}
        self.service_timer_pending = False
        self.service_added: List[ServiceCallback] = []
        self.service_updated: List[ServiceCallback] = []
        self.service_removed: List[ServiceCallback] = []

        server.subscribe(self.handle_message)
        self.cache.should_query.append(self._on_should_query)
        self.cache.record_expired.append(self._on_record_expired)

        self.query_timeout()

    def services(self) -> Dict[bytes, Service]:
        """Return the known services keyed by fully qualified name."""
        return copy.deepcopy(self._services)

    @staticmethod
    def _emit(callbacks: List[ServiceCallback], service: Service) -> None:
        for callback in list(callbacks):
            callback(copy.deepcopy(service))

    def _update_service(self, fq_name: bytes) -> bool:
        """Refresh one service from the cache; return True if its SRV is missing."""
        index = fq_name.find(b".")
        if index == -1:
            service_name = fq_name
            service_type = fq_name
        else:
            service_name = fq_name[:index]
            service_type = fq_name[index + 1:]

        if self.cache.lookup_record(service_type, PTR) is None:
            return False

        srv_record = self.cache.lookup_record(fq_name, SRV)
        if srv_record is None:
            return True

        service = Service(
            type=service_type,
            name=service_name,
            hostname=srv_record.target,
            port=srv_record.port,
        )

        txt_records = self.cache.lookup_records(fq_name, TXT)
        if txt_records:
            attributes: Dict[bytes, Optional[bytes]] = {}
            for record in txt_records:
                attributes.update(record.attributes)
            service.attributes = attributes

        if fq_name not in self._services:
            self._emit(self.service_added, service)
        elif self._services[fq_name] != service:
            self._emit(self.service_updated, service)

        self._services[fq_name] = service
        self._hostnames.add(service.hostname)
        return False

    def handle_message(self, message: Message) -> None:
        """Process a message received by the server."""
        if not message.is_response:
            return

        browse_any = self.service_type == MDNS_BROWSE_TYPE

        # Insertion-ordered set of services touched by this message.
        update_names: Dict[bytes, None] = {}
        for record in message.records:
            cache_record = False
            if record.type == PTR:
                if browse_any and record.name == MDNS_BROWSE_TYPE:
                    self._ptr_targets[record.target] = None
                    self.service_timer_pending = True
                    cache_record = True
                elif browse_any or record.name == self.service_type:
                    update_names[record.target] = None
                    cache_record = True
            elif record.type in (SRV, TXT):
                if browse_any or record.name.endswith(b"." + self.service_type):
                    update_names[record.name] = None
                    cache_record = True
            if cache_record:
                self.cache.add_record(record)

        query_names = [name for name in update_names if self._update_service(name)]

        # Addresses are cached only once the services above have named their hosts.
        for record in message.records:
            if record.type in (A, AAAA) and record.name in self._hostnames:
                self.cache.add_record(record)

        if query_names:
            query_message = Message()
            for name in query_names:
                query_message.add_query(Query(name=name, type=SRV))
                query_message.add_query(Query(name=name, type=TXT))
            self._server.send_message_to_all(query_message)

    def _on_should_query(self, record: Record) -> None:
        message = Message()
        message.add_query(Query(name=record.name, type=record.type))
        self._server.send_message_to_all(message)

    def _on_record_expired(self, record: Record) -> None:
        if record.type == PTR:
            service_name = record.target
        elif record.type == SRV:
            service_name = record.name
        elif record.type == TXT:
            self._update_service(record.name)
            return
        else:
            return
        service = self._services.pop(service_name, None)
        if service is not None:
            self._emit(self.service_removed, service)
            self._hostnames = {s.hostname for s in self._services.values()}

    def query_timeout(self) -> None:
        """Send the periodic PTR query for the browsed type, with known answers."""
        message = Message()
        message.add_query(Query(name=self.service_type, type=PTR))
        for record in self.cache.lookup_records(self.service_type, PTR):
            message.add_record(record)
        self._server.send_message_to_all(message)

    def service_timeout(self) -> None:
        """Query for instances of every service type learned since the last call."""
        self.service_timer_pending = False
        if not self._ptr_targets:
            return
        message = Message()
        for target in self._ptr_targets:
            message.add_query(Query(name=target, type=PTR))
            for record in self.cache.lookup_records(target, PTR):
                message.add_record(record)
        self._server.send_message_to_all(message)
        self._ptr_targets.clear()

    def close(self) -> None:
        """Stop receiving messages and cache notifications."""
        try:
            self._server.unsubscribe(self.handle_message)
        except ValueError:
            pass
        if self._on_should_query in self.cache.should_query:
            self.cache.should_query.remove(self._on_should_query)
        if self._on_record_expired in self.cache.record_expired:
            self.cache.record_expired.remove(self._on_record_expired)