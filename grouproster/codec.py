from __future__ import annotations

import io
from collections.abc import Iterator

import cbor2


def encode(obj) -> bytes:
    return cbor2.dumps(obj)


def decode(b: bytes):
    return cbor2.loads(b)


def iter_decode(data: bytes) -> Iterator[object]:
    """Decode a concatenated sequence of CBOR items."""
    fp = io.BytesIO(data)
    end = len(data)
    while fp.tell() < end:
        yield cbor2.load(fp)


def encode_stream(items) -> bytes:
    return b"".join(encode(i) for i in items)
