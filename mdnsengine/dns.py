"""Encoding and decoding of DNS messages as used by multicast DNS."""

from __future__ import annotations

import ipaddress
import struct
from typing import Dict, Tuple

from .records import Bitmap, IPAddress, Message, Query, Record

A = 1
PTR = 12
TXT = 16
AAAA = 28
SRV = 33
NSEC = 47
ANY = 255

NameMap = Dict[bytes, int]

_U8 = struct.Struct(">B")
_U16 = struct.Struct(">H")
_U32 = struct.Struct(">I")
_HEADER = struct.Struct(">HHHHHH")
_RECORD_FIXED = struct.Struct(">HHIH")
_QUERY_FIXED = struct.Struct(">HH")
_SRV_FIXED = struct.Struct(">HHH")

_FLAG_RESPONSE = 0x8400
_FLAG_TRUNCATED = 0x0200
_CLASS_IN = 1
_CLASS_TOP_BIT = 0x8000
_POINTER_MASK = 0xC0
_MAX_LABEL = 63
_MAX_STRING = 255

_TYPE_NAMES = {
    A: "A",
    AAAA: "AAAA",
    ANY: "ANY",
    NSEC: "NSEC",
    PTR: "PTR",
    SRV: "SRV",
    TXT: "TXT",
}


class DnsError(ValueError):
    """Raised when a packet cannot be decoded or a value cannot be encoded."""


def _unpack(fmt: struct.Struct, packet: bytes, offset: int) -> Tuple[tuple, int]:
    if offset + fmt.size > len(packet):
        raise DnsError(f"unexpected end of packet at offset {offset}")
    return fmt.unpack_from(packet, offset), offset + fmt.size


def _take(packet: bytes, offset: int, length: int) -> Tuple[bytes, int]:
    if offset + length > len(packet):
        raise DnsError(f"length {length} at offset {offset} exceeds packet")
    return bytes(packet[offset:offset + length]), offset + length


def parse_name(packet: bytes, offset: int) -> Tuple[bytes, int]:
    """Decode a (possibly compressed) name; return it and the offset after it."""
    name = bytearray()
    resume_at = None
    pointer_limit = offset
    while True:
        (length,), offset = _unpack(_U8, packet, offset)
        if length == 0:
            break
        kind = length & _POINTER_MASK
        if kind == 0x00:
            label, offset = _take(packet, offset, length)
            name += label
            name.append(ord("."))
        elif kind == _POINTER_MASK:
            (low,), offset = _unpack(_U8, packet, offset)
            target = ((length & ~_POINTER_MASK) << 8) | low
            if target >= pointer_limit:
                raise DnsError("name pointer does not point backwards")
            pointer_limit = target
            if resume_at is None:
                resume_at = offset
            offset = target
        else:
            raise DnsError(f"unsupported label type 0x{kind:02x}")
    if resume_at is not None:
        offset = resume_at
    return bytes(name), offset


def write_name(packet: bytearray, offset: int, name: bytes, name_map: NameMap) -> int:
    """Append an encoded name, compressing against name_map; return the new offset."""
    fragment = name[:-1] if name.endswith(b".") else name
    while fragment:
        if fragment in name_map:
            packet += _U16.pack(name_map[fragment] | 0xC000)
            return offset + _U16.size
        name_map[fragment] = offset
        index = fragment.find(b".")
        if index == -1:
            index = len(fragment)
        if index > _MAX_LABEL:
            raise DnsError(f"label of {index} bytes is too long")
        packet += _U8.pack(index)
        packet += fragment[:index]
        offset += 1 + index
        fragment = fragment[index + 1:]
    packet += _U8.pack(0)
    return offset + 1


def _parse_txt(packet: bytes, offset: int, data_length: int, record: Record) -> int:
    end = offset + data_length
    while offset < end:
        (length,), offset = _unpack(_U8, packet, offset)
        if offset + length > len(packet):
            raise DnsError("TXT entry exceeds packet")
        if length == 0:
            break
        entry, offset = _take(packet, offset, length)
        key, sep, value = entry.partition(b"=")
        record.add_attribute(key, value if sep else None)
    return offset


def parse_record(packet: bytes, offset: int) -> Tuple[Record, int]:
    """Decode a resource record; return it and the offset after it."""
    name, offset = parse_name(packet, offset)
    (rtype, rclass, ttl, data_length), offset = _unpack(_RECORD_FIXED, packet, offset)
    record = Record(
        name=name,
        type=rtype,
        flush_cache=bool(rclass & _CLASS_TOP_BIT),
        ttl=ttl,
    )
    if rtype == A:
        raw, offset = _take(packet, offset, 4)
        record.address = ipaddress.IPv4Address(raw)
    elif rtype == AAAA:
        raw, offset = _take(packet, offset, 16)
        record.address = ipaddress.IPv6Address(raw)
    elif rtype == NSEC:
        next_name, offset = parse_name(packet, offset)
        (number,), offset = _unpack(_U8, packet, offset)
        (length,), offset = _unpack(_U8, packet, offset)
        if number != 0:
            raise DnsError("unsupported NSEC window block")
        raw, offset = _take(packet, offset, length)
        record.next_domain_name = next_name
        record.bitmap = Bitmap(raw)
    elif rtype == PTR:
        record.target, offset = parse_name(packet, offset)
    elif rtype == SRV:
        (record.priority, record.weight, record.port), offset = _unpack(
            _SRV_FIXED, packet, offset
        )
        record.target, offset = parse_name(packet, offset)
    elif rtype == TXT:
        offset = _parse_txt(packet, offset, data_length, record)
    else:
        offset += data_length
    return record, offset


def _ipv4_bytes(address: IPAddress | None) -> bytes:
    if isinstance(address, ipaddress.IPv4Address):
        return address.packed
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
        return address.ipv4_mapped.packed
    return bytes(4)


def _ipv6_bytes(address: IPAddress | None) -> bytes:
    if isinstance(address, ipaddress.IPv6Address):
        return address.packed
    if isinstance(address, ipaddress.IPv4Address):
        return ipaddress.IPv6Address(b"\x00" * 10 + b"\xff\xff" + address.packed).packed
    return bytes(16)


def _txt_entries(record: Record) -> bytes:
    if not record.attributes:
        return _U8.pack(0)
    out = bytearray()
    for key in sorted(record.attributes):
        value = record.attributes[key]
        entry = key if value is None else key + b"=" + value
        if len(entry) > _MAX_STRING:
            raise DnsError(f"TXT entry of {len(entry)} bytes is too long")
        out += _U8.pack(len(entry))
        out += entry
    return bytes(out)


def write_record(packet: bytearray, offset: int, record: Record, name_map: NameMap) -> int:
    """Append an encoded resource record; return the new offset."""
    offset = write_name(packet, offset, record.name, name_map)
    packet += struct.pack(
        ">HHI",
        record.type,
        _CLASS_TOP_BIT | _CLASS_IN if record.flush_cache else _CLASS_IN,
        record.ttl,
    )
    # Record data starts after the two-byte length field.
    data_start = offset + 8 + _U16.size
    data = bytearray()
    if record.type == A:
        data += _ipv4_bytes(record.address)
    elif record.type == AAAA:
        data += _ipv6_bytes(record.address)
    elif record.type == NSEC:
        write_name(data, data_start, record.next_domain_name, name_map)
        data += _U8.pack(0)
        data += _U8.pack(len(record.bitmap))
        data += record.bitmap.data
    elif record.type == PTR:
        write_name(data, data_start, record.target, name_map)
    elif record.type == SRV:
        data += _SRV_FIXED.pack(record.priority, record.weight, record.port)
        write_name(data, data_start + len(data), record.target, name_map)
    elif record.type == TXT:
        data += _txt_entries(record)
    packet += _U16.pack(len(data))
    packet += data
    return data_start + len(data)


def from_packet(packet: bytes) -> Message:
    """Decode a complete DNS message."""
    (transaction_id, flags, n_question, n_answer, n_authority, n_additional), offset = (
        _unpack(_HEADER, packet, 0)
    )
    message = Message(
        transaction_id=transaction_id,
        is_response=bool(flags & _FLAG_RESPONSE),
        is_truncated=bool(flags & _FLAG_TRUNCATED),
    )
    for _ in range(n_question):
        name, offset = parse_name(packet, offset)
        (qtype, qclass), offset = _unpack(_QUERY_FIXED, packet, offset)
        message.add_query(
            Query(name=name, type=qtype, unicast_response=bool(qclass & _CLASS_TOP_BIT))
        )
    for _ in range(n_answer + n_authority + n_additional):
        record, offset = parse_record(packet, offset)
        message.add_record(record)
    return message


def to_packet(message: Message) -> bytes:
    """Encode a complete DNS message."""
    flags = (_FLAG_RESPONSE if message.is_response else 0) | (
        _FLAG_TRUNCATED if message.is_truncated else 0
    )
    packet = bytearray(
        _HEADER.pack(
            message.transaction_id,
            flags,
            len(message.queries),
            len(message.records),
            0,
            0,
        )
    )
    offset = len(packet)
    name_map: NameMap = {}
    for query in message.queries:
        offset = write_name(packet, offset, query.name, name_map)
        packet += _QUERY_FIXED.pack(
            query.type,
            _CLASS_TOP_BIT | _CLASS_IN if query.unicast_response else _CLASS_IN,
        )
        offset += _QUERY_FIXED.size
    for record in message.records:
        offset = write_record(packet, offset, record, name_map)
    return bytes(packet)


def type_name(type: int) -> str:
    """Return a readable name for a record type, or "?" if unknown."""
    return _TYPE_NAMES.get(type, "?")