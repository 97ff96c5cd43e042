"""
Tests for the coordinate codec, mipmap arithmetic, storage layout and views.
"""
import numpy as np
import pytest

from backend.texture_format import BlockPacking, FieldType, TextureClass, uncompressed_format
from backend.texture_storage import (MAX_FACES, MAX_LAYERS, MAX_LEVELS, TextureAlignment, TextureStorage, TextureView,
                                     duplicate_texture, image_key, mipmap_dim, mipmap_levels, split_image_key, visit_texture_images)


def test_image_key_round_trips_every_legal_triple():
    seen = set()
    for layer in range(MAX_LAYERS):
        for face in range(MAX_FACES):
            for level in range(MAX_LEVELS):
                key = image_key(layer, face, level)
                assert split_image_key(key) == (layer, face, level)
                seen.add(key)
    assert len(seen) == MAX_LAYERS * MAX_FACES * MAX_LEVELS


def test_image_key_is_consecutive_in_level():
    assert image_key(3, 2, 5) + 1 == image_key(3, 2, 6)
    assert image_key(0, 0, MAX_LEVELS - 1) < image_key(0, 1, 0) < image_key(1, 0, 0)


def test_mipmap_arithmetic():
    assert mipmap_levels((16, 16, 1)) == 5
    assert mipmap_levels((64, 16, 1)) == 7
    assert mipmap_levels((1, 1, 1)) == 1
    assert mipmap_dim((64, 16, 1), 3) == (8, 2, 1)
    assert mipmap_dim((64, 16, 1), 6) == (1, 1, 1)


def test_storage_layout_respects_alignment():
    alignment = TextureAlignment(line_bits=2, plane_bits=0, level_bits=4, face_bits=0, layer_bits=6)
    storage = TextureStorage(2, 1, 2, (3, 2, 1), (1, 1, 1), 3, alignment)

    level0 = storage.level_layout(0)
    assert level0.line_span == 12 # 3 blocks * 3 bytes, aligned to 4
    assert level0.size == 24

    level1 = storage.level_layout(1)
    assert level1.dim == (1, 1, 1)
    assert level1.offset == 32 # 24 aligned to 16
    assert storage.layer_span == 64
    assert storage.size == 128
    assert storage.image_offset(1, 0, 1) == 96


def test_storage_rejects_invalid_shapes():
    with pytest.raises(ValueError):
        TextureStorage(0, 1, 1, (4, 4, 1), (1, 1, 1), 4)
    with pytest.raises(ValueError):
        TextureStorage(1, MAX_FACES + 1, 1, (4, 4, 1), (1, 1, 1), 4)
    with pytest.raises(ValueError):
        TextureAlignment(line_bits=16)


def test_views_clamp_and_select(make_texture):
    texture = make_texture(layers=3, faces=1, levels=2, dim=(4, 4, 1))
    view = texture.view
    assert (view.layers, view.faces, view.levels) == (3, 1, 2)

    selected = view.select(1, 10, 0, 1, 1, 1)
    assert (selected.base_layer, selected.layers) == (1, 2)
    assert (selected.base_level, selected.levels) == (1, 1)
    assert selected.dim == (2, 2, 1)

    assert not view.select(5, 1)
    assert [(image.layer, image.level) for image in visit_texture_images(view)] == [(0, 0), (0, 1), (1, 0), (1, 1), (2, 0), (2, 1)]


def test_image_blocks_write_through_to_storage(make_texture):
    texture = make_texture(dim=(2, 2, 1), fill=0)
    image = next(visit_texture_images(texture.view))
    image.blocks()[0, 1, 1, :] = [1, 2, 3, 4]
    assert list(texture.storage.data[12:16]) == [1, 2, 3, 4]


def test_duplicate_texture_copies_only_the_selection(make_texture):
    texture = make_texture(layers=3, levels=2, dim=(4, 4, 1))
    selected = texture.view.select(1, 1)
    duplicate = duplicate_texture(selected)

    assert duplicate.storage is not texture.storage
    assert (duplicate.view.layers, duplicate.view.levels) == (1, 2)
    for source, copy in zip(visit_texture_images(selected), visit_texture_images(duplicate.view)):
        assert np.array_equal(source.blocks(), copy.blocks())


def test_with_format_reinterprets_without_copying(make_texture):
    texture = make_texture()
    new_format = uncompressed_format(BlockPacking.S_8_8_8_8, 4, FieldType.UINT)
    view = texture.view.with_format(new_format)
    assert view.storage is texture.storage
    assert view.format.field_types[0] == FieldType.UINT
    assert view.texture_class == TextureClass.PLANAR
