"""
glb_container.py
================

Reads and writes the GLB (glTF-Binary) container: a 12 byte header followed by
a stream of 4-byte aligned chunks. Only the JSON chunk and the first BIN chunk
are kept; other chunk types are skipped by advancing the offset.

    header: magic:u32 ("glTF") | version:u32 | total_length:u32
    chunk:  length:u32 | type:u32 | payload[length] | padding to 4 bytes
"""

from __future__ import annotations

import json
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

from glb_errors import AssetIOError, FormatError

GLTF_MAGIC = 0x46546C67
JSON_CHUNK_TYPE = 0x4E4F534A
BIN_CHUNK_TYPE = 0x004E4942

GLB_HEADER_SIZE = 12
CHUNK_HEADER_SIZE = 8
SUPPORTED_VERSION = 2


@dataclass
class GlbContainer:
    magic: int
    version: int
    json: Dict[str, Any]
    binary_chunk: Optional[bytes] = None


def align4(value: int) -> int:
    return (value + 3) & ~3


def iter_chunks(data: bytes) -> Iterator[Tuple[int, int, int]]:
    """Yield ``(chunk_type, payload_offset, payload_length)`` for every chunk."""
    offset = GLB_HEADER_SIZE
    while offset < len(data):
        if offset + CHUNK_HEADER_SIZE > len(data):
            raise FormatError(
                f"chunk exceeds file: truncated chunk header at offset {offset}"
            )
        chunk_len, chunk_type = struct.unpack_from("<II", data, offset)
        payload_offset = offset + CHUNK_HEADER_SIZE
        if payload_offset + chunk_len > len(data):
            raise FormatError(
                f"chunk exceeds file: chunk at offset {offset} declares {chunk_len} bytes, "
                f"{len(data) - payload_offset} available"
            )
        yield chunk_type, payload_offset, chunk_len
        offset = align4(payload_offset + chunk_len)


def _decode_json_chunk(chunk: bytes) -> Dict[str, Any]:
    try:
        payload = json.loads(chunk.decode("utf-8").rstrip(" \t\r\n\x00"))
    except (UnicodeDecodeError, ValueError) as exc:
        raise FormatError(f"invalid JSON chunk: {exc}") from exc
    if not isinstance(payload, dict):
        raise FormatError("invalid JSON chunk: root is not an object")
    return payload


def parse_glb(data: bytes) -> GlbContainer:
    if len(data) < GLB_HEADER_SIZE:
        raise FormatError(f"invalid size: {len(data)} bytes, GLB header needs {GLB_HEADER_SIZE}")

    magic, version, total_length = struct.unpack_from("<III", data, 0)
    if magic != GLTF_MAGIC:
        raise FormatError(f"invalid magic: 0x{magic:08X}")
    if version != SUPPORTED_VERSION:
        logging.warning("GLB version %d (expected %d), reading as version 2", version, SUPPORTED_VERSION)
    if total_length != len(data):
        logging.debug("GLB header declares %d bytes, file has %d", total_length, len(data))

    json_chunk: Optional[bytes] = None
    bin_chunk: Optional[bytes] = None

    for chunk_type, payload_offset, chunk_len in iter_chunks(data):
        chunk_data = data[payload_offset:payload_offset + chunk_len]
        if chunk_type == JSON_CHUNK_TYPE:
            if json_chunk is not None:
                raise FormatError("multiple JSON chunks")
            json_chunk = chunk_data
        elif chunk_type == BIN_CHUNK_TYPE:
            if bin_chunk is not None:
                logging.warning("Ignoring extra BIN chunk at offset %d", payload_offset)
                continue
            bin_chunk = chunk_data
        else:
            logging.debug("Skipping chunk type 0x%08X (%d bytes)", chunk_type, chunk_len)

    if json_chunk is None:
        raise FormatError("no JSON chunk")

    return GlbContainer(
        magic=magic,
        version=version,
        json=_decode_json_chunk(json_chunk),
        binary_chunk=bin_chunk,
    )


def load_glb(path: Path) -> GlbContainer:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise AssetIOError(f"cannot read GLB file {path}: {exc}") from exc
    return parse_glb(data)


def build_glb(payload: Dict[str, Any], binary_blob: Optional[bytes] = None) -> bytes:
    json_bytes = json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    json_pad = align4(len(json_bytes)) - len(json_bytes)
    if json_pad:
        json_bytes += b" " * json_pad

    chunks = bytearray()
    chunks += struct.pack("<II", len(json_bytes), JSON_CHUNK_TYPE)
    chunks += json_bytes

    if binary_blob is not None:
        bin_pad = align4(len(binary_blob)) - len(binary_blob)
        if bin_pad:
            binary_blob += b"\x00" * bin_pad
        chunks += struct.pack("<II", len(binary_blob), BIN_CHUNK_TYPE)
        chunks += binary_blob

    total_length = GLB_HEADER_SIZE + len(chunks)
    out = bytearray()
    out += struct.pack("<III", GLTF_MAGIC, SUPPORTED_VERSION, total_length)
    out += chunks
    return bytes(out)
