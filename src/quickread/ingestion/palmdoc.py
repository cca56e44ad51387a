"""PalmDOC (LZ77 variant) decompression used by MOBI text records."""

from __future__ import annotations

from quickread.ingestion.errors import PalmDocError


def decompress_palmdoc(data: bytes, *, strict: bool = False) -> bytes:
    """Decode one PalmDOC-compressed record.

    Control bytes: ``0x00`` literal null, ``0x01-0x08`` copy that many raw
    bytes, ``0x09-0x7F`` literal, ``0x80-0xBF`` back-reference with the next
    byte, ``0xC0-0xFF`` space plus ``byte ^ 0x80``.

    Back-reference positions before the start of the output decode as null bytes
    unless ``strict`` is set, in which case :class:`PalmDocError` is raised.
    Truncated input ends decoding with the partial output.
    """

    out = bytearray()
    size = len(data)
    i = 0

    while i < size:
        byte = data[i]
        i += 1

        if byte == 0x00:
            out.append(0x00)
        elif byte <= 0x08:
            chunk = data[i : i + byte]
            out.extend(chunk)
            i += len(chunk)
        elif byte <= 0x7F:
            out.append(byte)
        elif byte <= 0xBF:
            if i >= size:
                break
            following = data[i]
            i += 1
            pair = ((byte & 0x3F) << 8) | following
            distance = pair >> 3
            length = (pair & 0x07) + 3
            if strict and (distance == 0 or distance > len(out)):
                raise PalmDocError(
                    f"Back-reference distance {distance} exceeds decoded size {len(out)} at offset {i - 2}"
                )
            for _ in range(length):
                source = len(out) - distance
                out.append(out[source] if 0 <= source < len(out) else 0x00)
        else:
            out.append(0x20)
            out.append(byte ^ 0x80)

    return bytes(out)
