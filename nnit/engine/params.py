"""Reader and writer for MXNet ``.params`` files (NDArray list format).

Layout (little-endian)::

    uint64 list magic (0x112), uint64 reserved
    uint64 n, n x NDArray record
    uint64 n, n x (uint64 length, utf-8 name)

Each record starts with a uint32 magic selecting the layout version. Records
written before the magic existed start directly with the shape.
"""

from __future__ import annotations

import io
import logging
import struct
from collections import OrderedDict
from pathlib import Path
from typing import BinaryIO, Mapping

import numpy as np

from nnit.engine.types import ModelFormatError

logger = logging.getLogger(__name__)

LIST_MAGIC = 0x112
NDARRAY_V1_MAGIC = 0xF993FAC8
NDARRAY_V2_MAGIC = 0xF993FAC9
NDARRAY_V3_MAGIC = 0xF993FACA

_DEFAULT_STORAGE = 0
_CPU_DEV_TYPE = 1

# type_flag -> numpy dtype
_DTYPES = {
    0: np.dtype("<f4"),
    1: np.dtype("<f8"),
    2: np.dtype("<f2"),
    3: np.dtype("u1"),
    4: np.dtype("<i4"),
    5: np.dtype("i1"),
    6: np.dtype("<i8"),
}
_TYPE_FLAGS = {dt: flag for flag, dt in _DTYPES.items()}


# ---------------------------------------------------------------------------
# Low-level readers
# ---------------------------------------------------------------------------

def _unpack(fh: BinaryIO, fmt: str) -> tuple:
    size = struct.calcsize(fmt)
    buf = fh.read(size)
    if len(buf) != size:
        raise ModelFormatError("Unexpected end of params file")
    return struct.unpack(fmt, buf)


def _read(fh: BinaryIO, fmt: str):
    return _unpack(fh, fmt)[0]


def _read_shape(fh: BinaryIO, dim_fmt: str, signed_ndim: bool = False) -> tuple[int, ...] | None:
    ndim = _read(fh, "<i" if signed_ndim else "<I")
    if ndim < 0:
        return None
    return _read_dims(fh, ndim, dim_fmt)


def _read_dims(fh: BinaryIO, ndim: int, dim_fmt: str) -> tuple[int, ...]:
    if ndim == 0:
        return ()
    return tuple(int(d) for d in _unpack(fh, f"<{ndim}{dim_fmt}"))


def _read_ndarray(fh: BinaryIO) -> np.ndarray | None:
    magic = _read(fh, "<I")

    if magic in (NDARRAY_V2_MAGIC, NDARRAY_V3_MAGIC):
        stype = _read(fh, "<i")
        if stype != _DEFAULT_STORAGE:
            raise ModelFormatError(f"Unsupported storage type: {stype}")
        shape = _read_shape(fh, "q", signed_ndim=magic == NDARRAY_V3_MAGIC)
        # v3 marks an unknown shape with ndim -1; v2 uses ndim 0
        if shape is None or (shape == () and magic == NDARRAY_V2_MAGIC):
            return None
    elif magic == NDARRAY_V1_MAGIC:
        shape = _read_shape(fh, "q")
        if not shape:
            return None
    else:
        # legacy record: the "magic" is the ndim, dims are uint32
        if magic == 0:
            return None
        shape = _read_dims(fh, magic, "I")

    _dev_type, _dev_id = _unpack(fh, "<ii")
    type_flag = _read(fh, "<i")
    if type_flag not in _DTYPES:
        raise ModelFormatError(f"Unsupported type flag: {type_flag}")
    dtype = _DTYPES[type_flag]

    count = int(np.prod(shape, dtype=np.int64))
    buf = fh.read(count * dtype.itemsize)
    if len(buf) != count * dtype.itemsize:
        raise ModelFormatError("Unexpected end of params file")
    return np.frombuffer(buf, dtype=dtype).reshape(shape).copy()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def load_params(path: str | Path) -> "OrderedDict[str, np.ndarray]":
    """Load a ``.params`` file.

    Args:
        path: Path to the params file.

    Returns:
        Arrays keyed by parameter name, in file order. The ``arg:`` and
        ``aux:`` prefixes are stripped.

    Raises:
        ModelFormatError: The file is not a valid NDArray list.
    """
    with open(path, "rb") as fh:
        return read_params(fh)


def read_params(fh: BinaryIO) -> "OrderedDict[str, np.ndarray]":
    """Decode an NDArray list from an open binary stream."""
    header = fh.read(16)
    if len(header) != 16:
        raise ModelFormatError("Params file is too short")
    magic, _reserved = struct.unpack("<QQ", header)
    if magic != LIST_MAGIC:
        raise ModelFormatError(f"Invalid params magic: {magic:#x}")

    count = _read(fh, "<Q")
    arrays = [_read_ndarray(fh) for _ in range(count)]

    name_count = _read(fh, "<Q")
    if name_count not in (0, count):
        raise ModelFormatError(
            f"Name count mismatch: {name_count} names for {count} arrays"
        )
    names = []
    for _ in range(name_count):
        length = _read(fh, "<Q")
        raw = fh.read(length)
        if len(raw) != length:
            raise ModelFormatError("Unexpected end of params file")
        names.append(raw.decode("utf-8"))
    if not names:
        names = [str(i) for i in range(count)]

    result: OrderedDict[str, np.ndarray] = OrderedDict()
    for name, arr in zip(names, arrays):
        key = name.split(":", 1)[1] if name.startswith(("arg:", "aux:")) else name
        if arr is None:
            logger.warning("Skipping parameter %s with empty shape", key)
            continue
        result[key] = arr
    logger.debug("Decoded %d arrays from params file", len(result))
    return result


def save_params(path: str | Path, params: Mapping[str, np.ndarray]) -> Path:
    """Write *params* as a v2 NDArray list, names prefixed with ``arg:``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "wb") as fh:
        fh.write(dumps_params(params))
    return path


def dumps_params(params: Mapping[str, np.ndarray]) -> bytes:
    """Encode *params* into the NDArray list binary layout."""
    buf = io.BytesIO()
    buf.write(struct.pack("<QQ", LIST_MAGIC, 0))
    buf.write(struct.pack("<Q", len(params)))
    for name, value in params.items():
        arr = np.ascontiguousarray(value)
        dtype = arr.dtype.newbyteorder("<")
        if dtype not in _TYPE_FLAGS:
            raise ModelFormatError(f"Unsupported dtype for {name}: {arr.dtype}")
        buf.write(struct.pack("<Ii", NDARRAY_V2_MAGIC, _DEFAULT_STORAGE))
        buf.write(struct.pack("<I", arr.ndim))
        buf.write(struct.pack(f"<{arr.ndim}q", *arr.shape))
        buf.write(struct.pack("<iii", _CPU_DEV_TYPE, 0, _TYPE_FLAGS[dtype]))
        buf.write(arr.astype(dtype, copy=False).tobytes())

    buf.write(struct.pack("<Q", len(params)))
    for name in params:
        raw = f"arg:{name}".encode("utf-8")
        buf.write(struct.pack("<Q", len(raw)))
        buf.write(raw)
    return buf.getvalue()
