""" Texel format vocabulary: block packings, field types, swizzles, colorspaces and texture classes. """

from dataclasses import dataclass, replace
from enum import IntEnum
from typing import Dict, Optional, Tuple, Type, TypeVar




#                                           === Enumerations ===

class BlockPacking(IntEnum):
    S_8 = 0
    S_8_8 = 1
    S_8_8_8 = 2
    S_8_8_8_8 = 3
    S_16 = 4
    S_16_16 = 5
    S_16_16_16 = 6
    S_16_16_16_16 = 7
    S_32 = 8
    S_32_32 = 9
    S_32_32_32 = 10
    S_32_32_32_32 = 11
    C_BC1 = 32
    C_BC2 = 33
    C_BC3 = 34
    C_BC4 = 35
    C_BC5 = 36
    C_BC7 = 37

    def __str__(self) -> str:
        return self.name.lower()


class FieldType(IntEnum):
    NONE = 0
    UNORM = 1
    SNORM = 2
    UINT = 3
    SINT = 4
    SFLOAT = 5

    def __str__(self) -> str:
        return self.name.lower()


class Swizzle(IntEnum):
    FIELD_ZERO = 0
    FIELD_ONE = 1
    FIELD_TWO = 2
    FIELD_THREE = 3
    LITERAL_ZERO = 4
    LITERAL_ONE = 5

    def __str__(self) -> str:
        return self.name.lower()


class Colorspace(IntEnum):
    UNKNOWN = 0
    LINEAR_OTHER = 1
    SRGB = 2
    LINEAR_SRGB = 3
    BT709 = 4
    LINEAR_BT709 = 5

    def __str__(self) -> str:
        return self.name.lower()


class TextureClass(IntEnum):
    LINEAL = 0
    LINEAL_ARRAY = 1
    PLANAR = 2
    PLANAR_ARRAY = 3
    VOLUMETRIC = 4
    VOLUMETRIC_ARRAY = 5
    DIRECTIONAL = 6
    DIRECTIONAL_ARRAY = 7

    def __str__(self) -> str:
        return self.name.lower()


class TextureFileFormat(IntEnum):
    UNKNOWN = 0
    BETX = 1
    KTX = 2
    DDS = 3
    PNG = 4
    TGA = 5
    HDR = 6
    BMP = 7
    JPEG = 8
    GIF = 9
    PNM = 10
    EXR = 11

    def __str__(self) -> str:
        return self.name.lower()




#                                           === Block packing tables ===

MAX_COMPONENTS: int = 4
MAX_BLOCK_SIZE: int = 255 # Block size and block span are stored as single bytes.

# packing: (word size in bytes, word count, max components, default block dimensions)
_PACKING_INFO: Dict[BlockPacking, Tuple[int, int, int, Tuple[int, int, int]]] = {
    BlockPacking.S_8: (1, 1, 1, (1, 1, 1)),
    BlockPacking.S_8_8: (1, 2, 2, (1, 1, 1)),
    BlockPacking.S_8_8_8: (1, 3, 3, (1, 1, 1)),
    BlockPacking.S_8_8_8_8: (1, 4, 4, (1, 1, 1)),
    BlockPacking.S_16: (2, 1, 1, (1, 1, 1)),
    BlockPacking.S_16_16: (2, 2, 2, (1, 1, 1)),
    BlockPacking.S_16_16_16: (2, 3, 3, (1, 1, 1)),
    BlockPacking.S_16_16_16_16: (2, 4, 4, (1, 1, 1)),
    BlockPacking.S_32: (4, 1, 1, (1, 1, 1)),
    BlockPacking.S_32_32: (4, 2, 2, (1, 1, 1)),
    BlockPacking.S_32_32_32: (4, 3, 3, (1, 1, 1)),
    BlockPacking.S_32_32_32_32: (4, 4, 4, (1, 1, 1)),
    BlockPacking.C_BC1: (8, 1, 4, (4, 4, 1)),
    BlockPacking.C_BC2: (8, 2, 4, (4, 4, 1)),
    BlockPacking.C_BC3: (8, 2, 4, (4, 4, 1)),
    BlockPacking.C_BC4: (8, 1, 1, (4, 4, 1)),
    BlockPacking.C_BC5: (8, 2, 2, (4, 4, 1)),
    BlockPacking.C_BC7: (8, 2, 4, (4, 4, 1)),
}


def block_word_size(packing: BlockPacking) -> int:
    return _PACKING_INFO[packing][0]


def block_word_count(packing: BlockPacking) -> int:
    return _PACKING_INFO[packing][1]


def component_count(packing: BlockPacking) -> int:
# Maximum number of components a block packing can hold.
    return _PACKING_INFO[packing][2]


def default_block_dim(packing: BlockPacking) -> Tuple[int, int, int]:
# Texels per block along x, y, z, e.g. 4x4x1 for the BC packings.
    return _PACKING_INFO[packing][3]


def is_compressed(packing: BlockPacking) -> bool:
    return packing >= BlockPacking.C_BC1




#                                           === Texture classes ===

_ARRAY_COUNTERPARTS: Dict[TextureClass, TextureClass] = {
    TextureClass.LINEAL: TextureClass.LINEAL_ARRAY,
    TextureClass.PLANAR: TextureClass.PLANAR_ARRAY,
    TextureClass.VOLUMETRIC: TextureClass.VOLUMETRIC_ARRAY,
    TextureClass.DIRECTIONAL: TextureClass.DIRECTIONAL_ARRAY,
}


def is_array(texture_class: TextureClass) -> bool:
    return texture_class in (TextureClass.LINEAL_ARRAY, TextureClass.PLANAR_ARRAY, TextureClass.VOLUMETRIC_ARRAY, TextureClass.DIRECTIONAL_ARRAY)


def array_counterpart(texture_class: TextureClass) -> Optional[TextureClass]:
# Returns the array variant of the same dimensionality family, or None if there is none.
    if is_array(texture_class):
        return texture_class
    return _ARRAY_COUNTERPARTS.get(texture_class)


def class_faces(texture_class: TextureClass) -> int:
# Number of faces implied by a texture class (cubemaps have 6).
    return 6 if texture_class in (TextureClass.DIRECTIONAL, TextureClass.DIRECTIONAL_ARRAY) else 1


def dimensionality(texture_class: TextureClass) -> int:
    if texture_class in (TextureClass.LINEAL, TextureClass.LINEAL_ARRAY):
        return 1
    if texture_class in (TextureClass.VOLUMETRIC, TextureClass.VOLUMETRIC_ARRAY):
        return 3
    return 2




#                                           === Image format ===

FieldTypes = Tuple[FieldType, FieldType, FieldType, FieldType]
Swizzles = Tuple[Swizzle, Swizzle, Swizzle, Swizzle]


def swizzles_rgba() -> Swizzles:
    return (Swizzle.FIELD_ZERO, Swizzle.FIELD_ONE, Swizzle.FIELD_TWO, Swizzle.FIELD_THREE)


def field_types_none() -> FieldTypes:
    return (FieldType.NONE, FieldType.NONE, FieldType.NONE, FieldType.NONE)


@dataclass(frozen=True)
class ImageFormat:
    block_size: int # Bytes of meaningful data per block; the storage block span may reserve more.
    block_dim: Tuple[int, int, int] # Texels per block along x, y, z.
    packing: BlockPacking
    components: int # Number of meaningful fields per block.
    field_types: FieldTypes
    swizzles: Swizzles # Field feeding each of the R, G, B, A channels.
    colorspace: Colorspace = Colorspace.UNKNOWN
    premultiplied: bool = False

    def with_changes(self, **changes) -> "ImageFormat":
    # Returns a reinterpreted copy; the texel bytes it describes are untouched.
        return replace(self, **changes)


def uncompressed_format(packing: BlockPacking, components: int, field_type: FieldType, *,
                        swizzles: Optional[Swizzles] = None, colorspace: Colorspace = Colorspace.UNKNOWN, premultiplied: bool = False) -> ImageFormat:
# Builds a 1x1x1 block format where every used field has the same type.

    field_types = tuple(field_type if index < components else FieldType.NONE for index in range(MAX_COMPONENTS))
    return ImageFormat(
        block_size = block_word_size(packing) * block_word_count(packing),
        block_dim = (1, 1, 1),
        packing = packing,
        components = components,
        field_types = field_types,
        swizzles = swizzles or swizzles_rgba(),
        colorspace = colorspace,
        premultiplied = premultiplied,
    )


def required_block_size(image_format: ImageFormat) -> int:
# Bytes needed to hold one block. Compressed words already describe a whole block.

    words: int = block_word_size(image_format.packing) * block_word_count(image_format.packing)
    if is_compressed(image_format.packing):
        return words
    block_x, block_y, block_z = image_format.block_dim
    return block_x * block_y * block_z * words


def same_block_encoding(first: ImageFormat, second: ImageFormat) -> bool:
# True when blocks of both formats can be copied byte for byte.
    return (first.packing == second.packing and first.block_dim == second.block_dim and first.block_size == second.block_size
            and first.components == second.components and first.field_types == second.field_types and first.swizzles == second.swizzles)




#                                           === Name parsing ===

EnumType = TypeVar("EnumType", bound=IntEnum)

SWIZZLE_ALIASES: Dict[str, Swizzle] = {
    "r": Swizzle.FIELD_ZERO, "0": Swizzle.FIELD_ZERO, "x": Swizzle.FIELD_ZERO,
    "g": Swizzle.FIELD_ONE, "1": Swizzle.FIELD_ONE, "y": Swizzle.FIELD_ONE,
    "b": Swizzle.FIELD_TWO, "2": Swizzle.FIELD_TWO, "z": Swizzle.FIELD_TWO,
    "a": Swizzle.FIELD_THREE, "3": Swizzle.FIELD_THREE, "w": Swizzle.FIELD_THREE,
    "zero": Swizzle.LITERAL_ZERO, "one": Swizzle.LITERAL_ONE,
}


def parse_enum_name(enum_type: Type[EnumType], raw_name: str, aliases: Optional[Dict[str, EnumType]] = None) -> EnumType:
# Parses a case-insensitive enum member name as written in config.json, e.g. "s_8_8_8_8" or "planar_array".
# Raises ValueError for unknown names.

    name: str = str(raw_name).strip()
    if aliases and name.lower() in aliases:
        return aliases[name.lower()]
    try:
        return enum_type[name.upper()]
    except KeyError:
        valid_names = ", ".join(member.name.lower() for member in enum_type)
        raise ValueError(f"Unknown {enum_type.__name__} '{raw_name}'. Supported: {valid_names}") from None
