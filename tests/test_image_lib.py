"""
Tests for texel conversion, the blit primitive and the Pillow bridge.
"""
import numpy as np
import pytest
from PIL import Image

from backend.image_lib import (ImageRegion, blit_pixels, image_to_texture, image_view_to_image, intersect_regions, pixel_region,
                               read_pixels, write_pixels)
from backend.texture_format import BlockPacking, Colorspace, FieldType, ImageFormat, TextureClass, swizzles_rgba, uncompressed_format
from backend.texture_storage import ImageView, TextureStorage, TextureView


def _single_image(image_format, dim=(2, 2, 1), texture_class=TextureClass.PLANAR):
    storage = TextureStorage(1, 1, 1, dim, image_format.block_dim, image_format.block_size)
    return ImageView(TextureView(image_format, texture_class, storage), 0, 0, 0)


def test_intersect_regions():
    first = ImageRegion((0, 0, 0), (8, 4, 1))
    second = ImageRegion((0, 0, 0), (2, 6, 1))
    assert intersect_regions(first, second) == ImageRegion((0, 0, 0), (2, 4, 1))


def test_blit_copies_identical_encodings_byte_for_byte(make_texture):
    source = ImageView(make_texture(dim=(4, 4, 1)).view, 0, 0, 0)
    target = _single_image(source.format, dim=(2, 2, 1))

    region = intersect_regions(pixel_region(source), pixel_region(target))
    blit_pixels(source, region, target, region)

    assert np.array_equal(target.blocks(), source.blocks()[:, :2, :2, :])


def test_blit_converts_between_uncompressed_formats():
    source = _single_image(uncompressed_format(BlockPacking.S_8_8_8, 3, FieldType.UNORM))
    source.blocks()[...] = 255
    source.blocks()[0, 0, 0, :] = [0, 51, 255]

    target = _single_image(uncompressed_format(BlockPacking.S_16_16_16_16, 4, FieldType.UNORM))
    region = pixel_region(source)
    blit_pixels(source, region, target, region)

    values = target.blocks()[0, 0, 0, :].copy().view(np.uint16)
    assert list(values) == [0, 13107, 65535, 65535] # Missing alpha reads as 1.


def test_blit_into_float_keeps_values():
    source = _single_image(uncompressed_format(BlockPacking.S_8, 1, FieldType.UINT))
    source.blocks()[...] = 200
    target = _single_image(uncompressed_format(BlockPacking.S_32, 1, FieldType.SFLOAT))

    blit_pixels(source, pixel_region(source), target, pixel_region(target))
    assert target.blocks()[0, 0, 0, :].copy().view(np.float32)[0] == pytest.approx(200.0)


def test_blit_refuses_conversion_into_compressed_formats():
    source = _single_image(uncompressed_format(BlockPacking.S_8_8_8_8, 4, FieldType.UNORM), dim=(4, 4, 1))
    bc1 = ImageFormat(block_size=8, block_dim=(4, 4, 1), packing=BlockPacking.C_BC1, components=4,
                      field_types=(FieldType.UNORM,) * 4, swizzles=swizzles_rgba())
    target = _single_image(bc1, dim=(4, 4, 1))

    with pytest.raises(ValueError):
        blit_pixels(source, pixel_region(source), target, pixel_region(target))


def test_blit_requires_matching_extents(make_texture):
    image = ImageView(make_texture(dim=(4, 4, 1)).view, 0, 0, 0)
    with pytest.raises(ValueError):
        blit_pixels(image, ImageRegion((0, 0, 0), (2, 2, 1)), image, ImageRegion((0, 0, 0), (1, 2, 1)))


def test_snorm_fields_round_trip_through_float():
    image = _single_image(uncompressed_format(BlockPacking.S_8_8, 2, FieldType.SNORM))
    rgba = np.zeros((1, 2, 2, 4))
    rgba[..., 0] = -1.0
    rgba[..., 1] = 0.5
    write_pixels(image, pixel_region(image), rgba)

    decoded = read_pixels(image, pixel_region(image))
    assert decoded[0, 0, 0, 0] == pytest.approx(-1.0)
    assert decoded[0, 0, 0, 1] == pytest.approx(64 / 127)


def test_pillow_images_become_planar_textures():
    image = Image.new("LA", (3, 2), (200, 100))
    texture = image_to_texture(image)

    view = texture.view
    assert view.texture_class == TextureClass.PLANAR
    assert view.format.packing == BlockPacking.S_8_8
    assert view.format.colorspace == Colorspace.SRGB
    assert view.dim == (3, 2, 1)
    assert texture.storage.level_layout(0).line_span == 8 # 6 bytes aligned to 4

    rgba = read_pixels(ImageView(view, 0, 0, 0), pixel_region(ImageView(view, 0, 0, 0)))
    assert rgba[0, 1, 2, 0] == pytest.approx(200 / 255)
    assert rgba[0, 1, 2, 3] == pytest.approx(100 / 255)


def test_texture_images_export_to_pillow():
    source = Image.new("RGB", (2, 3), (10, 20, 30))
    texture = image_to_texture(source)

    exported = image_view_to_image(ImageView(texture.view, 0, 0, 0))
    assert exported.mode == "RGB"
    assert exported.size == (2, 3)
    assert exported.getpixel((1, 2)) == (10, 20, 30)


def test_two_component_exports_keep_their_swizzle():
    rg = _single_image(uncompressed_format(BlockPacking.S_8_8, 2, FieldType.UNORM))
    rg.blocks()[...] = [10, 20]
    exported = image_view_to_image(rg)
    assert exported.mode == "RGB"
    assert exported.getpixel((1, 1)) == (10, 20, 0)

    gray_alpha = image_view_to_image(ImageView(image_to_texture(Image.new("LA", (2, 2), (200, 100))).view, 0, 0, 0))
    assert gray_alpha.mode == "LA"
    assert gray_alpha.getpixel((1, 1)) == (200, 100)


def test_volumetric_images_cannot_be_exported_flat():
    image = _single_image(uncompressed_format(BlockPacking.S_8, 1, FieldType.UNORM), dim=(2, 2, 2), texture_class=TextureClass.VOLUMETRIC)
    with pytest.raises(ValueError):
        image_view_to_image(image)
