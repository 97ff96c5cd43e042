"""
Tests for deriving the class, texel format, block span and alignment of the merged texture.
"""
from backend.texture_classes import FormatOverrides, MergePlan
from backend.texture_format import (BlockPacking, Colorspace, FieldType, ImageFormat, TextureClass, default_block_dim,
                                    swizzles_rgba)
from backend.texture_storage import Texture, TextureAlignment, TextureStorage, TextureView
from texture_assembler import parse_format_overrides, reconcile_format


def _plan(texture, make_input, layers=1, faces=1, base_dim=None):
    return MergePlan(images={}, layers=layers, faces=faces, levels=1, base_dim=base_dim or texture.view.dim,
                     base_input=make_input(texture))


def test_base_input_format_is_kept_without_overrides(make_texture, make_input, outcome):
    texture = make_texture()
    reconciled = reconcile_format(_plan(texture, make_input), FormatOverrides(), outcome)

    assert reconciled.texture_class == TextureClass.PLANAR
    assert reconciled.format == texture.view.format
    assert reconciled.block_span == 4
    assert reconciled.alignment == texture.storage.alignment
    assert outcome.diagnostics == []


def test_custom_format_raises_a_short_block_span(make_texture, make_input, outcome):
    overrides = FormatOverrides(packing=BlockPacking.S_32_32_32_32, components=4, field_types=(FieldType.SFLOAT,) * 4, block_span=8)
    reconciled = reconcile_format(_plan(make_texture(), make_input), overrides, outcome)

    assert reconciled.format.packing == BlockPacking.S_32_32_32_32
    assert reconciled.format.block_size == 16
    assert reconciled.block_span == 16
    assert outcome.messages("warn") == ["Block span increased to fit all block data"]


def test_wider_block_span_is_kept(make_texture, make_input, outcome):
    overrides = FormatOverrides(packing=BlockPacking.S_8_8_8, components=3, field_types=(FieldType.UNORM,) * 3 + (FieldType.NONE,), block_span=4)
    reconciled = reconcile_format(_plan(make_texture(), make_input), overrides, outcome)

    assert reconciled.format.block_size == 3
    assert reconciled.block_span == 4
    assert outcome.diagnostics == []


def test_multiple_layers_use_the_array_class(make_texture, make_input, outcome):
    reconciled = reconcile_format(_plan(make_texture(), make_input, layers=3), FormatOverrides(), outcome)
    assert reconciled.texture_class == TextureClass.PLANAR_ARRAY
    assert outcome.diagnostics == []

    overridden = reconcile_format(_plan(make_texture(), make_input, layers=3), FormatOverrides(texture_class=TextureClass.VOLUMETRIC), outcome)
    assert overridden.texture_class == TextureClass.VOLUMETRIC_ARRAY


def test_class_conflicts_only_warn(make_texture, make_input, outcome):
    reconciled = reconcile_format(_plan(make_texture(), make_input), FormatOverrides(texture_class=TextureClass.DIRECTIONAL), outcome)
    assert reconciled.texture_class == TextureClass.DIRECTIONAL
    assert outcome.messages("warn") == ["Face count conflict"]

    reconcile_format(_plan(make_texture(), make_input), FormatOverrides(texture_class=TextureClass.LINEAL), outcome)
    assert outcome.messages("warn")[-1] == "Texture class dimensionality conflict"


def test_too_many_components_for_the_packing(make_texture, make_input, outcome):
    overrides = FormatOverrides(packing=BlockPacking.S_8_8, components=4, field_types=(FieldType.UNORM,) * 4, block_span=2)
    reconcile_format(_plan(make_texture(), make_input), overrides, outcome)
    assert outcome.messages("warn") == ["Component count conflict"]


def test_compressed_block_size_is_enlarged(make_input, outcome):
    bc1 = ImageFormat(block_size=4, block_dim=(4, 4, 1), packing=BlockPacking.C_BC1, components=4,
                      field_types=(FieldType.UNORM,) * 4, swizzles=swizzles_rgba())
    storage = TextureStorage(1, 1, 1, (8, 8, 1), bc1.block_dim, 8)
    texture = Texture(storage, TextureView(bc1, TextureClass.PLANAR, storage))

    reconciled = reconcile_format(_plan(texture, make_input), FormatOverrides(), outcome)
    assert reconciled.format.block_size == 8
    assert reconciled.block_span == 8
    assert outcome.messages("warn") == ["Block size enlarged to fit all block data"]


def test_custom_format_replaces_the_compressed_block_extent(make_input, outcome):
    bc1 = ImageFormat(block_size=8, block_dim=(4, 4, 1), packing=BlockPacking.C_BC1, components=4,
                      field_types=(FieldType.UNORM,) * 4, swizzles=swizzles_rgba())
    storage = TextureStorage(1, 1, 1, (8, 8, 1), bc1.block_dim, 8)
    texture = Texture(storage, TextureView(bc1, TextureClass.PLANAR, storage))
    overrides = FormatOverrides(packing=BlockPacking.S_8_8_8_8, components=4, field_types=(FieldType.UNORM,) * 4)

    reconciled = reconcile_format(_plan(texture, make_input), overrides, outcome)
    assert reconciled.format.block_dim == (1, 1, 1)
    assert reconciled.block_span == 4
    assert default_block_dim(BlockPacking.C_BC1) == (4, 4, 1)


def test_tags_and_alignment_overrides(make_texture, make_input, outcome):
    alignment = TextureAlignment(line_bits=4, level_bits=8)
    overrides = FormatOverrides(colorspace=Colorspace.LINEAR_SRGB, premultiplied=True, alignment=alignment)
    reconciled = reconcile_format(_plan(make_texture(), make_input), overrides, outcome)

    assert reconciled.format.colorspace == Colorspace.LINEAR_SRGB
    assert reconciled.format.premultiplied is True
    assert reconciled.alignment == alignment


def test_merged_settings_parse_into_overrides():
    overrides = parse_format_overrides("planar_array", {"packing": "s_32_32", "components": 2, "swizzles": ["g", "r"]}, "srgb", None, {"level": 4})

    assert overrides.texture_class == TextureClass.PLANAR_ARRAY
    assert overrides.packing == BlockPacking.S_32_32
    assert overrides.field_types == (FieldType.SFLOAT, FieldType.SFLOAT, FieldType.NONE, FieldType.NONE)
    assert overrides.swizzles[:2] == swizzles_rgba()[1::-1]
    assert overrides.block_span == 0
    assert overrides.colorspace == Colorspace.SRGB
    assert overrides.premultiplied is None
    assert overrides.alignment == TextureAlignment(line_bits=2, level_bits=4)


def test_empty_settings_override_nothing():
    assert parse_format_overrides("", {"packing": "", "components": 4}, "", None, {}) == FormatOverrides()
