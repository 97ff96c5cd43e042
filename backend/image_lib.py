""" Image processing backend. Texel access and the blit primitive use numpy; image files go through Pillow (PIL) and OpenEXR. PIL exports 8bit images only."""

from typing import Dict, List, NamedTuple, Tuple, TypeAlias

import numpy as np
from PIL import Image as _PIL
from PIL.Image import Image as PILImage

from backend.texture_format import (BlockPacking, Colorspace, FieldType, ImageFormat, Swizzle, Swizzles, TextureClass, TextureFileFormat,
                                    block_word_count, block_word_size, is_compressed, same_block_encoding, swizzles_rgba, uncompressed_format)
from backend.texture_storage import Dimensions, ImageView, Texture, TextureAlignment, TextureStorage, TextureView

ImageObject: TypeAlias = PILImage

IMAGE_ALIGNMENT = TextureAlignment(line_bits=2) # Lines of decoded image files start on 4 byte boundaries.




#                                           === Regions ===

class ImageRegion(NamedTuple):
    offset: Dimensions # First texel along x, y, z.
    extent: Dimensions # Texel counts along x, y, z.


def pixel_region(image: ImageView) -> ImageRegion:
    return ImageRegion((0, 0, 0), image.dim)


def intersect_regions(first: ImageRegion, second: ImageRegion) -> ImageRegion:
# Overlap of two regions; empty regions have a zero extent.

    start = tuple(max(a, b) for a, b in zip(first.offset, second.offset))
    end = tuple(min(a + ea, b + eb) for a, b, ea, eb in zip(first.offset, second.offset, first.extent, second.extent))
    return ImageRegion(start, tuple(max(0, e - s) for s, e in zip(start, end)))




#                                           === Texel access ===

def _field_dtype(field_type: FieldType, word_size: int) -> np.dtype:
    if field_type == FieldType.SFLOAT and word_size in (2, 4):
        return np.dtype(f"=f{word_size}")
    if field_type in (FieldType.SNORM, FieldType.SINT):
        return np.dtype(f"=i{word_size}")
    return np.dtype(f"=u{word_size}")


def _check_uncompressed(image_format: ImageFormat) -> None:
    if is_compressed(image_format.packing) or image_format.block_dim != (1, 1, 1):
        raise ValueError(f"Cannot convert texels packed as '{image_format.packing}'; compressed formats can only be copied unchanged.")


def _region_blocks(image: ImageView, region: ImageRegion) -> np.ndarray:
    (x, y, z), (width, height, depth) = region
    return image.blocks()[z:z + depth, y:y + height, x:x + width]


def read_pixels(image: ImageView, region: ImageRegion) -> np.ndarray:
# Decodes a region into float64 RGBA values shaped (depth, height, width, 4).
# UNORM/SNORM fields are normalized to [0, 1] / [-1, 1]; integer and float fields keep their values.

    image_format: ImageFormat = image.format
    _check_uncompressed(image_format)
    word_size: int = block_word_size(image_format.packing)
    word_count: int = block_word_count(image_format.packing)

    raw = np.ascontiguousarray(_region_blocks(image, region)[..., :word_size * word_count])
    fields = np.zeros(raw.shape[:3] + (word_count,), dtype=np.float64)
    for index in range(word_count):
        field_type: FieldType = image_format.field_types[index]
        field_bytes = np.ascontiguousarray(raw[..., index * word_size:(index + 1) * word_size])
        values = field_bytes.view(_field_dtype(field_type, word_size))[..., 0].astype(np.float64)
        if field_type == FieldType.UNORM:
            values = values / float((1 << (8 * word_size)) - 1)
        elif field_type == FieldType.SNORM:
            values = np.maximum(values / float((1 << (8 * word_size - 1)) - 1), -1.0)
        fields[..., index] = values

    rgba = np.zeros(raw.shape[:3] + (4,), dtype=np.float64)
    for channel, swizzle in enumerate(image_format.swizzles):
        if swizzle == Swizzle.LITERAL_ONE:
            rgba[..., channel] = 1.0
        elif swizzle == Swizzle.LITERAL_ZERO:
            continue
        elif swizzle < image_format.components and swizzle < word_count:
            rgba[..., channel] = fields[..., int(swizzle)]
        elif channel == 3:
            rgba[..., channel] = 1.0
        # Channels fed by a missing field read as 0, alpha as 1.
    return rgba


def write_pixels(image: ImageView, region: ImageRegion, rgba: np.ndarray) -> None:
# Encodes float RGBA values (as returned by read_pixels) into a region. Padding bytes after the block data are untouched.

    image_format: ImageFormat = image.format
    _check_uncompressed(image_format)
    word_size: int = block_word_size(image_format.packing)
    word_count: int = block_word_count(image_format.packing)
    blocks = _region_blocks(image, region)

    for index in range(word_count):
        field_type: FieldType = image_format.field_types[index]
        dtype = _field_dtype(field_type, word_size)
        channel = next((c for c, swizzle in enumerate(image_format.swizzles) if swizzle == index), None)
        if channel is None or index >= image_format.components:
            values = np.zeros(blocks.shape[:3], dtype=np.float64)
        else:
            values = rgba[..., channel]

        if field_type == FieldType.UNORM:
            values = np.rint(np.clip(values, 0.0, 1.0) * float((1 << (8 * word_size)) - 1))
        elif field_type == FieldType.SNORM:
            values = np.rint(np.clip(values, -1.0, 1.0) * float((1 << (8 * word_size - 1)) - 1))
        elif field_type != FieldType.SFLOAT or dtype.kind != "f":
            limits = np.iinfo(dtype)
            values = np.clip(np.rint(values), limits.min, limits.max)

        encoded = np.ascontiguousarray(values.astype(dtype)).reshape(blocks.shape[:3] + (1,))
        blocks[..., index * word_size:(index + 1) * word_size] = encoded.view(np.uint8)


def blit_pixels(source: ImageView, source_region: ImageRegion, target: ImageView, target_region: ImageRegion) -> None:
# Copies a rectangular/volumetric texel region. Both regions must have identical extents.
# Identical block encodings are copied byte for byte; other uncompressed formats are converted field by field.

    if tuple(source_region.extent) != tuple(target_region.extent):
        raise ValueError(f"Blit regions differ in size: {source_region.extent} vs {target_region.extent}")
    if min(source_region.extent) == 0:
        return

    if same_block_encoding(source.format, target.format):
        block_dim = source.format.block_dim
        block_size = source.format.block_size
        source_blocks = _region_blocks(source, _block_region(source_region, block_dim))
        target_blocks = _region_blocks(target, _block_region(target_region, block_dim))
        target_blocks[..., :block_size] = source_blocks[..., :block_size]
        return

    write_pixels(target, target_region, read_pixels(source, source_region))


def _block_region(region: ImageRegion, block_dim: Dimensions) -> ImageRegion:
# Converts a texel region into the blocks covering it.
    offset = tuple(start // block_axis for start, block_axis in zip(region.offset, block_dim))
    end = tuple(-(-(start + extent) // block_axis) for start, extent, block_axis in zip(region.offset, region.extent, block_dim))
    return ImageRegion(offset, tuple(e - s for s, e in zip(offset, end)))




#                                           === Pillow bridge ===

_GRAY_SWIZZLES: Swizzles = (Swizzle.FIELD_ZERO, Swizzle.FIELD_ZERO, Swizzle.FIELD_ZERO, Swizzle.LITERAL_ONE)
_GRAY_ALPHA_SWIZZLES: Swizzles = (Swizzle.FIELD_ZERO, Swizzle.FIELD_ZERO, Swizzle.FIELD_ZERO, Swizzle.FIELD_ONE)

# Pillow mode: (packing, components, field type, swizzles, colorspace)
_MODE_FORMATS: Dict[str, Tuple[BlockPacking, int, FieldType, Swizzles, Colorspace]] = {
    "L": (BlockPacking.S_8, 1, FieldType.UNORM, _GRAY_SWIZZLES, Colorspace.SRGB),
    "LA": (BlockPacking.S_8_8, 2, FieldType.UNORM, _GRAY_ALPHA_SWIZZLES, Colorspace.SRGB),
    "RGB": (BlockPacking.S_8_8_8, 3, FieldType.UNORM, swizzles_rgba(), Colorspace.SRGB),
    "RGBA": (BlockPacking.S_8_8_8_8, 4, FieldType.UNORM, swizzles_rgba(), Colorspace.SRGB),
    "I;16": (BlockPacking.S_16, 1, FieldType.UNORM, _GRAY_SWIZZLES, Colorspace.LINEAR_OTHER),
    "I": (BlockPacking.S_32, 1, FieldType.SINT, _GRAY_SWIZZLES, Colorspace.LINEAR_OTHER),
    "F": (BlockPacking.S_32, 1, FieldType.SFLOAT, _GRAY_SWIZZLES, Colorspace.LINEAR_OTHER),
}

_PILLOW_SAVE_FORMATS: Dict[TextureFileFormat, str] = {
    TextureFileFormat.PNG: "PNG",
    TextureFileFormat.TGA: "TGA",
    TextureFileFormat.BMP: "BMP",
    TextureFileFormat.JPEG: "JPEG",
}


def close_image(image: object) -> None:
    close = getattr(image, "close", None)
    if callable(close):
        close()


def open_image(path: str) -> ImageObject:
    return _PIL.open(path)


def _normalize_mode(image: ImageObject) -> ImageObject:
# Converts Pillow modes without a direct texel format to the closest supported one.

    mode: str = image.mode
    if mode in _MODE_FORMATS:
        return image
    if mode.startswith("I;16"):
        return image.convert("I;16")
    if mode in ("1",):
        return image.convert("L")
    if mode in ("P", "PA") and ("transparency" in image.info or mode == "PA"):
        return image.convert("RGBA")
    return image.convert("RGB")


def texture_from_pixels(pixels: np.ndarray, image_format: ImageFormat, texture_class: TextureClass = TextureClass.PLANAR) -> Texture:
# Wraps an (height, width[, fields]) array of decoded pixels in a single image texture.

    height, width = pixels.shape[:2]
    storage = TextureStorage(1, 1, 1, (width, height, 1), (1, 1, 1), image_format.block_size, IMAGE_ALIGNMENT)
    view = TextureView(image_format, texture_class, storage)
    word_size = block_word_size(image_format.packing)
    dtype = _field_dtype(image_format.field_types[0], word_size)
    fields = np.ascontiguousarray(np.asarray(pixels).reshape(height, width, -1).astype(dtype))
    ImageView(view, 0, 0, 0).blocks()[0, :, :, :image_format.block_size] = fields.view(np.uint8)
    return Texture(storage, view)


def image_to_texture(image: ImageObject) -> Texture:
# Converts an open Pillow image into a single-image planar texture.

    image = _normalize_mode(image)
    packing, components, field_type, swizzles, colorspace = _MODE_FORMATS[image.mode]
    image_format = uncompressed_format(packing, components, field_type, swizzles=swizzles, colorspace=colorspace)
    return texture_from_pixels(np.asarray(image), image_format)


def image_view_to_image(image: ImageView) -> ImageObject:
# Converts one texture image into an 8bit Pillow image with as many channels as the format has components.

    if image.dim[2] > 1:
        raise ValueError(f"Volumetric image with depth {image.dim[2]} cannot be stored as a flat image.")

    rgba = read_pixels(image, pixel_region(image))[0]
    components: int = max(1, min(image.format.components, 4))
    channels: List[int] = {1: [0], 2: [0, 3], 3: [0, 1, 2], 4: [0, 1, 2, 3]}[components]
    if components == 2 and image.format.swizzles != _GRAY_ALPHA_SWIZZLES:
        channels = [0, 1, 2]
    # Two fields are gray and alpha only when swizzled that way; other pairs (e.g. RG) keep their colors.
    data = np.rint(np.clip(rgba[..., channels], 0.0, 1.0) * 255.0).astype(np.uint8)
    if components == 1:
        data = data[..., 0]
    return _PIL.fromarray(np.ascontiguousarray(data))


def save_image(image: ImageObject, path: str, file_format: TextureFileFormat) -> None:
    pillow_format: str = _PILLOW_SAVE_FORMATS[file_format]
    save_kwargs: Dict[str, object] = {}

    if file_format == TextureFileFormat.JPEG:
        if image.mode in ("LA", "RGBA"):
            image = image.convert("L" if image.mode == "LA" else "RGB")
        save_kwargs.setdefault("quality", 95)
        save_kwargs.setdefault("optimize", True)
    # JPEG has no alpha channel.

    image.save(path, format=pillow_format, **save_kwargs)


def is_pillow_writable(file_format: TextureFileFormat) -> bool:
    return file_format in _PILLOW_SAVE_FORMATS




#                                           === OpenEXR bridge ===

def read_exr_texture(path: str) -> Texture:
# Reads a 32bit float .exr image using OpenEXR and Numpy. RGB(A) images become 3/4 float fields, others keep only the first channel.

    import OpenEXR
    import Imath

    file = OpenEXR.InputFile(path)
    try:
        header = file.header()
        data_window = header["dataWindow"]
        width: int = data_window.max.x - data_window.min.x + 1
        height: int = data_window.max.y - data_window.min.y + 1
        float_pixel_data = Imath.PixelType(Imath.PixelType.FLOAT)

        channels_list: List[str] = list(header["channels"].keys())
        channel_names: Dict[str, str] = {channel.lower(): channel for channel in channels_list}

        def read_channel(channel_name: str) -> np.ndarray:
        # Reads a channel as 32b float and restructures its pixels into a 2D H*W array.
            return np.frombuffer(file.channel(channel_name, float_pixel_data), dtype=np.float32).reshape(height, width)

        if all(k in channel_names for k in ("r", "g", "b")):
            names = ["r", "g", "b"] + (["a"] if "a" in channel_names else [])
            pixels = np.stack([read_channel(channel_names[name]) for name in names], axis=-1)
            packing = BlockPacking.S_32_32_32_32 if len(names) == 4 else BlockPacking.S_32_32_32
            image_format = uncompressed_format(packing, len(names), FieldType.SFLOAT, colorspace=Colorspace.LINEAR_SRGB)
        else:
            pixels = read_channel(channels_list[0])
            image_format = uncompressed_format(BlockPacking.S_32, 1, FieldType.SFLOAT, swizzles=_GRAY_SWIZZLES, colorspace=Colorspace.LINEAR_OTHER)
        # In case the full RGB is missing, it extracts the first available channel.
    finally:
        file.close()

    return texture_from_pixels(pixels, image_format)
