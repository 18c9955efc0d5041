"""Value types shared by the DNS codec and the higher-level components."""

from __future__ import annotations

import copy
import ipaddress
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
Attributes = Dict[bytes, Optional[bytes]]

DEFAULT_TTL = 3600
_MAX_BITMAP_LENGTH = 255


@dataclass(frozen=True)
class Bitmap:
    """Type bitmap carried by an NSEC record (at most 255 bytes)."""

    data: bytes = b""

    def __post_init__(self) -> None:
        data = bytes(self.data)
        if len(data) > _MAX_BITMAP_LENGTH:
            raise ValueError(
                f"bitmap length {len(data)} exceeds {_MAX_BITMAP_LENGTH} bytes"
            )
        object.__setattr__(self, "data", data)

    def __len__(self) -> int:
        return len(self.data)


@dataclass
class Query:
    """A single question in a DNS message."""

    name: bytes = b""
    type: int = 0
    unicast_response: bool = False


@dataclass
class Record:
    """A DNS resource record; only the fields relevant to its type are used."""

    name: bytes = b""
    type: int = 0
    flush_cache: bool = False
    ttl: int = DEFAULT_TTL
    address: Optional[IPAddress] = None
    target: bytes = b""
    next_domain_name: bytes = b""
    priority: int = 0
    weight: int = 0
    port: int = 0
    attributes: Attributes = field(default_factory=dict)
    bitmap: Bitmap = field(default_factory=Bitmap)

    def add_attribute(self, key: bytes, value: Optional[bytes]) -> None:
        """Set a TXT attribute; a value of None means the key has no value."""
        self.attributes[key] = value


@dataclass
class Message:
    """A DNS message together with the peer it came from or goes to."""

    address: Optional[IPAddress] = None
    port: int = 0
    transaction_id: int = 0
    is_response: bool = False
    is_truncated: bool = False
    queries: List[Query] = field(default_factory=list)
    records: List[Record] = field(default_factory=list)

    def add_query(self, query: Query) -> None:
        """Append a copy of the query."""
        self.queries.append(copy.deepcopy(query))

    def add_record(self, record: Record) -> None:
        """Append a copy of the record."""
        self.records.append(copy.deepcopy(record))


@dataclass
class Service:
    """A service discovered on or offered to the local network."""

    type: bytes = b""
    name: bytes = b""
    hostname: bytes = b""
    port: int = 0
    attributes: Attributes = field(default_factory=dict)