""" Texture storage backend: one contiguous numpy buffer per texture, with non-owning views into it. """

from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Optional, Tuple

import numpy as np

from backend.texture_format import MAX_BLOCK_SIZE, ImageFormat, TextureClass


MAX_LAYERS: int = 255
MAX_FACES: int = 6
MAX_LEVELS: int = 16
MAX_ALIGNMENT_BITS: int = 15

Dimensions = Tuple[int, int, int]




#                                           === Coordinate codec ===

LAYER_KEY_BITS: int = (MAX_LAYERS - 1).bit_length()
FACE_KEY_BITS: int = (MAX_FACES - 1).bit_length()
LEVEL_KEY_BITS: int = (MAX_LEVELS - 1).bit_length()


def image_key(layer: int, face: int, level: int) -> int:
# Packs a (layer, face, level) triple into one dense integer: layer in the most significant bits, then face, then level.
# Consecutive levels of the same layer/face get consecutive keys. Callers must range-check the indices first.
    return (layer << (FACE_KEY_BITS + LEVEL_KEY_BITS)) | (face << LEVEL_KEY_BITS) | level


def split_image_key(key: int) -> Tuple[int, int, int]:
# Inverse of image_key.
    level = key & ((1 << LEVEL_KEY_BITS) - 1)
    face = (key >> LEVEL_KEY_BITS) & ((1 << FACE_KEY_BITS) - 1)
    layer = key >> (FACE_KEY_BITS + LEVEL_KEY_BITS)
    return layer, face, level




#                                           === Mipmapping ===

def mipmap_levels(dim: Dimensions) -> int:
# Number of levels in a full mip chain, from dim down to 1x1x1.
    return max(max(dim), 1).bit_length()


def mipmap_dim(base_dim: Dimensions, level: int) -> Dimensions:
# Dimensions of a mip level, halving (rounding down) every axis greater than 1.
    return tuple(max(1, int(axis) >> level) for axis in base_dim)




#                                           === Alignment ===

@dataclass(frozen=True)
class TextureAlignment:
    line_bits: int = 0 # Minimum alignment of each line is (1 << line_bits) bytes.
    plane_bits: int = 0
    level_bits: int = 0
    face_bits: int = 0
    layer_bits: int = 0

    def __post_init__(self) -> None:
        for name in ("line_bits", "plane_bits", "level_bits", "face_bits", "layer_bits"):
            bits = getattr(self, name)
            if not 0 <= bits <= MAX_ALIGNMENT_BITS:
                raise ValueError(f"Alignment {name} must be in [0, {MAX_ALIGNMENT_BITS}], got {bits}")

    def as_tuple(self) -> Tuple[int, int, int, int, int]:
        return (self.line_bits, self.plane_bits, self.level_bits, self.face_bits, self.layer_bits)


def _align(value: int, bits: int) -> int:
    alignment = 1 << bits
    return (value + alignment - 1) & ~(alignment - 1)




#                                           === Storage ===

class _LevelLayout(NamedTuple):
    dim: Dimensions # Texel dimensions of the level.
    blocks: Dimensions # Block counts along x, y, z.
    line_span: int # Bytes between consecutive block rows.
    plane_span: int # Bytes between consecutive block planes.
    offset: int # Offset of the level within its face.
    size: int


class TextureStorage:
# Owns one contiguous, zero-initialized byte buffer holding every layer, face and level of a texture.
# The shape is fixed at construction; raises MemoryError if the buffer cannot be allocated.

    def __init__(self, layers: int, faces: int, levels: int, dim: Dimensions, block_dim: Dimensions, block_span: int,
                 alignment: Optional[TextureAlignment] = None) -> None:

        if not 1 <= layers <= MAX_LAYERS:
            raise ValueError(f"Layer count must be in [1, {MAX_LAYERS}], got {layers}")
        if not 1 <= faces <= MAX_FACES:
            raise ValueError(f"Face count must be in [1, {MAX_FACES}], got {faces}")
        if not 1 <= levels <= MAX_LEVELS:
            raise ValueError(f"Level count must be in [1, {MAX_LEVELS}], got {levels}")
        if not 1 <= block_span <= MAX_BLOCK_SIZE:
            raise ValueError(f"Block span must be in [1, {MAX_BLOCK_SIZE}], got {block_span}")
        if len(dim) != 3 or min(dim) < 1 or min(block_dim) < 1:
            raise ValueError(f"Invalid dimensions {dim} / block dimensions {block_dim}")

        self.layers: int = layers
        self.faces: int = faces
        self.levels: int = levels
        self.dim: Dimensions = tuple(int(axis) for axis in dim)
        self.block_dim: Dimensions = tuple(int(axis) for axis in block_dim)
        self.block_span: int = block_span
        self.alignment: TextureAlignment = alignment or TextureAlignment()

# Laying out the levels of a single face:
        self._level_layouts: List[_LevelLayout] = []
        face_size: int = 0
        for level in range(levels):
            level_dim = mipmap_dim(self.dim, level)
            blocks = tuple(-(-axis // block_axis) for axis, block_axis in zip(level_dim, self.block_dim)) # Rounds up; partial blocks are stored whole.
            line_span = _align(blocks[0] * block_span, self.alignment.line_bits)
            plane_span = _align(blocks[1] * line_span, self.alignment.plane_bits)
            offset = _align(face_size, self.alignment.level_bits)
            size = blocks[2] * plane_span
            self._level_layouts.append(_LevelLayout(level_dim, blocks, line_span, plane_span, offset, size))
            face_size = offset + size

        self.face_span: int = _align(face_size, self.alignment.face_bits)
        self.layer_span: int = _align(faces * self.face_span, self.alignment.layer_bits)
        self.size: int = layers * self.layer_span

        self.data: np.ndarray = np.zeros(self.size, dtype=np.uint8)


    def level_dim(self, level: int) -> Dimensions:
        return self._level_layouts[level].dim

    def level_layout(self, level: int) -> _LevelLayout:
        return self._level_layouts[level]

    def image_offset(self, layer: int, face: int, level: int) -> int:
        return layer * self.layer_span + face * self.face_span + self._level_layouts[level].offset




#                                           === Views ===

def _clamp_count(base: int, count: int, available: int) -> int:
    if base >= available or count <= 0:
        return 0
    return min(count, available - base)


class TextureView:
# Non-owning window onto a TextureStorage: a texel format, a texture class, and a {base, count} range per axis.
# Counts are clamped to what the storage holds; a view that selects nothing is falsy.

    def __init__(self, format: ImageFormat, texture_class: TextureClass, storage: Optional[TextureStorage],
                 base_layer: int = 0, layers: int = MAX_LAYERS,
                 base_face: int = 0, faces: int = MAX_FACES,
                 base_level: int = 0, levels: int = MAX_LEVELS) -> None:

        self.format: ImageFormat = format
        self.texture_class: TextureClass = texture_class
        self.storage: Optional[TextureStorage] = storage
        self.base_layer: int = base_layer
        self.base_face: int = base_face
        self.base_level: int = base_level

        if storage is None:
            self.layers = self.faces = self.levels = 0
        else:
            self.layers: int = _clamp_count(base_layer, layers, storage.layers)
            self.faces: int = _clamp_count(base_face, faces, storage.faces)
            self.levels: int = _clamp_count(base_level, levels, storage.levels)

    def __bool__(self) -> bool:
        return self.storage is not None and self.layers > 0 and self.faces > 0 and self.levels > 0

    @property
    def dim(self) -> Dimensions:
    # Dimensions of the first level selected by this view.
        return self.storage.level_dim(self.base_level)

    @property
    def block_span(self) -> int:
        return self.storage.block_span

    def with_format(self, format: ImageFormat) -> "TextureView":
    # Same images, reinterpreted through another texel format.
        return TextureView(format, self.texture_class, self.storage,
                           self.base_layer, self.layers, self.base_face, self.faces, self.base_level, self.levels)

    def select(self, layer: int = 0, layers: int = MAX_LAYERS, face: int = 0, faces: int = MAX_FACES,
               level: int = 0, levels: int = MAX_LEVELS) -> "TextureView":
    # Narrows the view; indices are relative to this view, counts are clamped to it.

        return TextureView(self.format, self.texture_class, self.storage,
                           self.base_layer + layer, _clamp_count(layer, layers, self.layers),
                           self.base_face + face, _clamp_count(face, faces, self.faces),
                           self.base_level + level, _clamp_count(level, levels, self.levels))


class ImageView:
# The pixel grid of one (layer, face, level) slot of a TextureView. Indices are relative to the view.

    def __init__(self, view: TextureView, layer: int, face: int, level: int) -> None:
        self.format: ImageFormat = view.format
        self.storage: TextureStorage = view.storage
        self.layer: int = layer
        self.face: int = face
        self.level: int = level
        self._layout: _LevelLayout = view.storage.level_layout(view.base_level + level)
        self._offset: int = view.storage.image_offset(view.base_layer + layer, view.base_face + face, view.base_level + level)

    @property
    def dim(self) -> Dimensions:
        return self._layout.dim

    def blocks(self) -> np.ndarray:
    # Writable strided numpy view of the image's blocks, shaped (planes, lines, blocks per line, block span).

        block_count_x, block_count_y, block_count_z = self._layout.blocks
        block_span: int = self.storage.block_span
        return np.ndarray(
            shape = (block_count_z, block_count_y, block_count_x, block_span),
            dtype = np.uint8,
            buffer = self.storage.data,
            offset = self._offset,
            strides = (self._layout.plane_span, self._layout.line_span, block_span, 1),
        )


def visit_texture_images(view: TextureView) -> Iterator[ImageView]:
# Enumerates every image of a view in layer, face, level order.

    if not view:
        return
    for layer in range(view.layers):
        for face in range(view.faces):
            for level in range(view.levels):
                yield ImageView(view, layer, face, level)




#                                           === Textures ===

@dataclass
class Texture:
    storage: Optional[TextureStorage] = None # Owning buffer.
    view: Optional[TextureView] = None # Default view spanning what the texture was created with.

    def __bool__(self) -> bool:
        return bool(self.view)


def duplicate_texture(view: TextureView) -> Texture:
# Copies the images selected by a view into a new storage of exactly that shape. Raises MemoryError if allocation fails.

    storage = TextureStorage(view.layers, view.faces, view.levels, view.dim, view.storage.block_dim, view.block_span, view.storage.alignment)
    duplicate_view = TextureView(view.format, view.texture_class, storage)
    for source_image, target_image in zip(visit_texture_images(view), visit_texture_images(duplicate_view)):
        target_image.blocks()[...] = source_image.blocks()
    return Texture(storage, duplicate_view)
