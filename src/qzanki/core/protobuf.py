"""Minimal protobuf wire-format reader for the blobs in modern Anki collections.

Anki stores note type, template, deck and deck option settings as protobuf
messages. Only a handful of scalar fields are needed, so the messages are
read field by field without their schemas.
"""

VARINT = 0
FIXED64 = 1
LENGTH_DELIMITED = 2
FIXED32 = 5


def read_varint(data: bytes, i: int) -> tuple[int, int]:
    """Read a base-128 varint at ``i``, returning ``(value, next_index)``."""
    value = 0
    shift = 0
    while True:
        if i >= len(data):
            raise ValueError("truncated varint")
        byte = data[i]
        i += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value, i
        shift += 7


def decode_message(data: bytes | None) -> dict[int, list[int | bytes]]:
    """Decode a message into field number -> values, in wire order.

    Varints come back as ints; length-delimited fields (strings, bytes and
    nested messages) as bytes.
    """
    fields: dict[int, list[int | bytes]] = {}
    if not data:
        return fields

    i = 0
    while i < len(data):
        key, i = read_varint(data, i)
        number, wire_type = key >> 3, key & 0x07

        if wire_type == VARINT:
            value, i = read_varint(data, i)
        elif wire_type == LENGTH_DELIMITED:
            length, i = read_varint(data, i)
            if i + length > len(data):
                raise ValueError(f"field {number} runs past the end of the message")
            value = bytes(data[i : i + length])
            i += length
        elif wire_type == FIXED64:
            value = int.from_bytes(data[i : i + 8], "little")
            i += 8
        elif wire_type == FIXED32:
            value = int.from_bytes(data[i : i + 4], "little")
            i += 4
        else:
            raise ValueError(f"unsupported wire type {wire_type} for field {number}")

        fields.setdefault(number, []).append(value)

    return fields


def get_int(fields: dict[int, list[int | bytes]], number: int, default: int = 0) -> int:
    values = [v for v in fields.get(number, []) if isinstance(v, int)]
    return values[-1] if values else default


def get_bytes(fields: dict[int, list[int | bytes]], number: int) -> bytes | None:
    values = [v for v in fields.get(number, []) if isinstance(v, bytes)]
    return values[-1] if values else None


def get_str(fields: dict[int, list[int | bytes]], number: int, default: str = "") -> str:
    value = get_bytes(fields, number)
    return value.decode("utf-8", errors="replace") if value is not None else default
