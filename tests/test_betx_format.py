"""
Tests for the beTx container reader and writer.
"""
import struct

import numpy as np
import pytest

from backend.betx_format import BETX_MAGIC, decode_betx, encode_betx, header_size, read_betx, write_betx
from backend.texture_format import BlockPacking, Colorspace, TextureClass
from backend.texture_storage import TextureAlignment, visit_texture_images


def test_written_file_reads_back_identically(tmp_path, make_texture):
    texture = make_texture(layers=2, levels=3, dim=(8, 4, 1), packing=BlockPacking.S_16_16, components=2,
                           texture_class=TextureClass.PLANAR_ARRAY, alignment=TextureAlignment(line_bits=3))
    path = str(tmp_path / "tex.betx")

    write_betx(texture.view, path, byte_order="big", compress=True)
    loaded = read_betx(path)

    assert loaded.view.texture_class == TextureClass.PLANAR_ARRAY
    assert loaded.view.format == texture.view.format
    assert (loaded.view.layers, loaded.view.faces, loaded.view.levels) == (2, 1, 3)
    assert loaded.storage.alignment == TextureAlignment(line_bits=3)
    for original, copy in zip(visit_texture_images(texture.view), visit_texture_images(loaded.view)):
        assert np.array_equal(original.blocks(), copy.blocks())


def test_byte_order_swaps_field_words(make_texture):
    texture = make_texture(dim=(1, 1, 1), packing=BlockPacking.S_16, components=1, fill=0)
    next(visit_texture_images(texture.view)).blocks()[...] = np.frombuffer(np.array([0x1234], dtype="=u2").tobytes(), dtype=np.uint8)

    little = encode_betx(texture.view, byte_order="little")
    big = encode_betx(texture.view, byte_order="big")

    assert little[5] == 0 and big[5] == 1
    assert little[header_size():] == b"\x34\x12"
    assert big[header_size():] == b"\x12\x34"


def test_sub_views_are_written_with_their_own_shape(make_texture):
    texture = make_texture(layers=3, levels=2, dim=(4, 4, 1))
    selected = texture.view.select(1, 1, 0, 1, 1, 1)

    loaded = decode_betx(encode_betx(selected))
    assert (loaded.view.layers, loaded.view.levels) == (1, 1)
    assert loaded.view.dim == (2, 2, 1)
    assert np.array_equal(next(visit_texture_images(loaded.view)).blocks(), next(visit_texture_images(selected)).blocks())


def test_header_records_colorspace(make_texture):
    texture = make_texture()
    view = texture.view.with_format(texture.view.format.with_changes(colorspace=Colorspace.SRGB, premultiplied=True))
    loaded = decode_betx(encode_betx(view))
    assert loaded.view.format.colorspace == Colorspace.SRGB
    assert loaded.view.format.premultiplied is True


def test_malformed_data_is_rejected(make_texture):
    data = encode_betx(make_texture().view)
    assert data.startswith(BETX_MAGIC)

    with pytest.raises(ValueError):
        decode_betx(b"PNG!" + data[4:])
    with pytest.raises(ValueError):
        decode_betx(data[:-3])
    with pytest.raises(ValueError):
        decode_betx(data[:4] + struct.pack("<B", 9) + data[5:]) # unsupported version
