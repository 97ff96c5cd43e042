""" beTx container: a fixed header followed by the blocks of every image of a texture view, optionally zlib compressed. """

import struct
import sys
import zlib
from typing import Tuple

import numpy as np

from backend.texture_format import (BlockPacking, Colorspace, FieldType, ImageFormat, Swizzle, TextureClass,
                                    block_word_count, block_word_size, is_compressed)
from backend.texture_storage import Texture, TextureAlignment, TextureStorage, TextureView, visit_texture_images


BETX_MAGIC: bytes = b"beTx"
BETX_VERSION: int = 1

BYTE_ORDERS: Tuple[str, str] = ("little", "big") # Index stored in the header.
COMPRESSION_NONE: int = 0
COMPRESSION_ZLIB: int = 1

_PREFIX = struct.Struct("<4sBBBB") # magic, version, byte order, compression, reserved
_BODY_LAYOUT: str = "8B4B4B2B5BH2B3I2Q"
# class, packing, components, block dim x/y/z, block size, block span | field types | swizzles | colorspace, premultiplied |
# alignment line/plane/level/face/layer | layers | faces, levels | dim x/y/z | payload size, stored size


def _body_struct(byte_order: str) -> struct.Struct:
    return struct.Struct(("<" if byte_order == "little" else ">") + _BODY_LAYOUT)


def header_size() -> int:
    return _PREFIX.size + _body_struct("little").size


def _swap_words(blocks: np.ndarray, image_format: ImageFormat) -> np.ndarray:
# Reverses the byte order of every field word of uncompressed blocks. Padding bytes are kept as they are.

    word_size: int = block_word_size(image_format.packing)
    if word_size == 1 or is_compressed(image_format.packing):
        return blocks
    word_count: int = block_word_count(image_format.packing)
    used: int = word_size * word_count

    swapped = np.array(blocks, copy=True)
    words = swapped[..., :used].reshape(blocks.shape[:3] + (word_count, word_size))
    swapped[..., :used] = words[..., ::-1].reshape(blocks.shape[:3] + (used,))
    return swapped




#                                           === Writing ===

def encode_betx(view: TextureView, byte_order: str = sys.byteorder, compress: bool = False) -> bytes:
# Serializes every image selected by the view in layer, face, level order.

    if byte_order not in BYTE_ORDERS:
        raise ValueError(f"Unknown byte order '{byte_order}'. Supported: little, big")
    if not view:
        raise ValueError("Cannot encode an empty texture view.")

    image_format: ImageFormat = view.format
    swap: bool = byte_order != sys.byteorder

    chunks = []
    for image in visit_texture_images(view):
        blocks = image.blocks()
        chunks.append((_swap_words(blocks, image_format) if swap else np.ascontiguousarray(blocks)).tobytes())
    payload: bytes = b"".join(chunks)
    stored: bytes = zlib.compress(payload) if compress else payload

    storage: TextureStorage = view.storage
    prefix: bytes = _PREFIX.pack(BETX_MAGIC, BETX_VERSION, BYTE_ORDERS.index(byte_order),
                                 COMPRESSION_ZLIB if compress else COMPRESSION_NONE, 0)
    body: bytes = _body_struct(byte_order).pack(
        int(view.texture_class), int(image_format.packing), image_format.components,
        *image_format.block_dim, image_format.block_size, storage.block_span,
        *(int(field_type) for field_type in image_format.field_types),
        *(int(swizzle) for swizzle in image_format.swizzles),
        int(image_format.colorspace), int(image_format.premultiplied),
        *storage.alignment.as_tuple(),
        view.layers, view.faces, view.levels,
        *view.dim,
        len(payload), len(stored),
    )
    return prefix + body + stored


def write_betx(view: TextureView, path: str, byte_order: str = sys.byteorder, compress: bool = False) -> None:
    data: bytes = encode_betx(view, byte_order, compress)
    with open(path, "wb") as file:
        file.write(data)




#                                           === Reading ===

def decode_betx(data: bytes) -> Texture:
# Rebuilds a texture from beTx bytes. Raises ValueError for malformed or unsupported content.

    if len(data) < _PREFIX.size:
        raise ValueError("File is too short to be a beTx container.")
    magic, version, byte_order_index, compression, _reserved = _PREFIX.unpack_from(data, 0)
    if magic != BETX_MAGIC:
        raise ValueError("Missing beTx signature.")
    if version != BETX_VERSION:
        raise ValueError(f"Unsupported beTx version {version}.")
    if byte_order_index >= len(BYTE_ORDERS):
        raise ValueError(f"Invalid byte order marker {byte_order_index}.")
    if compression not in (COMPRESSION_NONE, COMPRESSION_ZLIB):
        raise ValueError(f"Unsupported payload compression {compression}.")

    byte_order: str = BYTE_ORDERS[byte_order_index]
    body_struct = _body_struct(byte_order)
    if len(data) < _PREFIX.size + body_struct.size:
        raise ValueError("Truncated beTx header.")
    fields = body_struct.unpack_from(data, _PREFIX.size)

    texture_class, packing, components = fields[0:3]
    block_dim = tuple(fields[3:6])
    block_size, block_span = fields[6:8]
    field_types = tuple(FieldType(value) for value in fields[8:12])
    swizzles = tuple(Swizzle(value) for value in fields[12:16])
    colorspace, premultiplied = fields[16:18]
    alignment = TextureAlignment(*fields[18:23])
    layers, faces, levels = fields[23:26]
    dim = tuple(fields[26:29])
    payload_size, stored_size = fields[29:31]

    image_format = ImageFormat(
        block_size = block_size,
        block_dim = block_dim,
        packing = BlockPacking(packing),
        components = components,
        field_types = field_types,
        swizzles = swizzles,
        colorspace = Colorspace(colorspace),
        premultiplied = bool(premultiplied),
    )

    stored_start: int = _PREFIX.size + body_struct.size
    stored: bytes = data[stored_start:stored_start + stored_size]
    if len(stored) != stored_size:
        raise ValueError(f"Truncated payload: expected {stored_size} bytes, found {len(stored)}.")
    try:
        payload: bytes = zlib.decompress(stored) if compression == COMPRESSION_ZLIB else stored
    except zlib.error as error:
        raise ValueError(f"Corrupt compressed payload: {error}") from error
    if len(payload) != payload_size:
        raise ValueError(f"Payload size mismatch: expected {payload_size} bytes, found {len(payload)}.")

    storage = TextureStorage(layers, faces, levels, dim, block_dim, block_span, alignment)
    view = TextureView(image_format, TextureClass(texture_class), storage)
    swap: bool = byte_order != sys.byteorder

    offset: int = 0
    for image in visit_texture_images(view):
        target = image.blocks()
        count: int = target.size
        if offset + count > len(payload):
            raise ValueError("Payload is smaller than the images described by the header.")
        source = np.frombuffer(payload, dtype=np.uint8, count=count, offset=offset).reshape(target.shape)
        target[...] = _swap_words(source, image_format) if swap else source
        offset += count
    if offset != len(payload):
        raise ValueError("Payload holds more data than the images described by the header.")

    return Texture(storage, view)


def read_betx(path: str) -> Texture:
    with open(path, "rb") as file:
        return decode_betx(file.read())


