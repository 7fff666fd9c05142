"""
Persistence for code tables and encoded payloads

Code table: a JSON document
    {"format": "huffman-code-table", "version": 1,
     "symbols": "bytes" | "text", "codes": [[symbol, "0101"], ...]}

Payload: a binary container
    b"HUF1" | bit count (8 bytes, unsigned big-endian) | packed bits, zero padded
"""

import json
import logging
import struct
from pathlib import Path
from typing import Hashable, List, Mapping, Union

from bitarray import bitarray

from huffman import ENDIAN, CodeTable, CorruptPayloadError, CorruptTableError, rebuild_huffman_tree

logger = logging.getLogger(__name__)

TABLE_FORMAT = "huffman-code-table"
TABLE_VERSION = 1
BYTES = "bytes"
TEXT = "text"

PAYLOAD_MAGIC = b"HUF1"
PAYLOAD_HEADER = struct.Struct(">4sQ")

PathLike = Union[str, Path]


# Code table

def symbol_kind(table: Mapping) -> str:
    symbols = list(table)
    if symbols and all(isinstance(s, int) and not isinstance(s, bool) and 0 <= s <= 255 for s in symbols):
        return BYTES
    if symbols and all(isinstance(s, str) and len(s) == 1 for s in symbols):
        return TEXT
    raise ValueError("only byte values (0..255) or single characters can be stored in a code table file")


def dump_code_table(table: Mapping) -> str:
    kind = symbol_kind(table)
    document = {
        "format": TABLE_FORMAT,
        "version": TABLE_VERSION,
        "symbols": kind,
        "codes": [[symbol, table[symbol]] for symbol in sorted(table)],
    }
    return json.dumps(document, ensure_ascii=False)


def parse_code_table(text: str) -> CodeTable:
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptTableError(f"code table is not valid JSON: {exc}") from exc

    if not isinstance(document, dict) or document.get("format") != TABLE_FORMAT:
        raise CorruptTableError("not a Huffman code table")
    if document.get("version") != TABLE_VERSION:
        raise CorruptTableError(f"unsupported code table version {document.get('version')!r}")

    kind = document.get("symbols")
    entries = document.get("codes")
    if kind not in (BYTES, TEXT):
        raise CorruptTableError(f"unknown symbol kind {kind!r}")
    if not isinstance(entries, list):
        raise CorruptTableError("code table entries must be a list")

    codes = {}
    for entry in entries:
        if not isinstance(entry, list) or len(entry) != 2:
            raise CorruptTableError(f"malformed code table entry {entry!r}")
        symbol, code = entry
        if kind == BYTES:
            valid = isinstance(symbol, int) and not isinstance(symbol, bool) and 0 <= symbol <= 255
        else:
            valid = isinstance(symbol, str) and len(symbol) == 1
        if not valid:
            raise CorruptTableError(f"symbol {symbol!r} does not match kind {kind!r}")
        if symbol in codes:
            raise CorruptTableError(f"symbol {symbol!r} appears twice")
        codes[symbol] = code

    table = CodeTable(codes)
    rebuild_huffman_tree(table) # validates before anyone tries to decode with it
    return table


def save_code_table(table: Mapping, path: PathLike) -> None:
    Path(path).write_text(dump_code_table(table), encoding="utf-8")
    logger.debug("saved code table with %d entries to %s", len(table), path)


def load_code_table(path: PathLike) -> CodeTable:
    try:
        text = Path(path).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptTableError(f"code table {path} is not UTF-8 text") from exc
    table = parse_code_table(text)
    logger.debug("loaded code table with %d entries from %s", len(table), path)
    return table


def join_symbols(symbols: List[Hashable], kind: str) -> Union[bytes, str]:
    """Turn decoded symbols back into the bytes or text they came from."""
    if kind == BYTES:
        return bytes(symbols)
    if kind == TEXT:
        return "".join(symbols)
    raise ValueError(f"unknown symbol kind {kind!r}")


# Payload

def pack_payload(bits: bitarray) -> bytes:
    """
    Converts the payload into header + packed bytes
    The header records the exact bit count, so padding is never mistaken for data
    """
    packed = bitarray(bits, endian=ENDIAN).tobytes()
    return PAYLOAD_HEADER.pack(PAYLOAD_MAGIC, len(bits)) + packed


def unpack_payload(blob: bytes) -> bitarray:
    if len(blob) < PAYLOAD_HEADER.size:
        raise CorruptPayloadError("payload is shorter than its header")
    magic, nbits = PAYLOAD_HEADER.unpack_from(blob)
    if magic != PAYLOAD_MAGIC:
        raise CorruptPayloadError(f"bad payload magic {magic!r}")

    data = blob[PAYLOAD_HEADER.size:]
    expected = (nbits + 7) // 8
    if len(data) != expected:
        raise CorruptPayloadError(f"payload holds {len(data)} bytes, header says {expected} ({nbits} bits)")

    bits = bitarray(endian=ENDIAN)
    bits.frombytes(data)
    if bits[nbits:].any():
        raise CorruptPayloadError("payload padding bits are not zero")
    del bits[nbits:]
    return bits


def save_payload(bits: bitarray, path: PathLike) -> None:
    Path(path).write_bytes(pack_payload(bits))
    logger.debug("saved %d-bit payload to %s", len(bits), path)


def load_payload(path: PathLike) -> bitarray:
    bits = unpack_payload(Path(path).read_bytes())
    logger.debug("loaded %d-bit payload from %s", len(bits), path)
    return bits
