"""
Shared fixtures for the texture assembler tests.

Builds textures in memory with numpy and writes small images with Pillow into tmp_path.
"""
import numpy as np
import pytest
from PIL import Image

from backend.texture_classes import Outcome, PositionedInput
from backend.texture_format import BlockPacking, FieldType, TextureClass, uncompressed_format
from backend.texture_storage import Texture, TextureAlignment, TextureStorage, TextureView, visit_texture_images

import utils


@pytest.fixture(autouse=True)
def quiet_details():
    """Tests never depend on SHOW_DETAILS from config.json."""
    utils.set_show_details(False)
    yield
    utils.set_show_details(False)


@pytest.fixture
def outcome():
    return Outcome()


def build_texture(layers=1, faces=1, levels=1, dim=(4, 4, 1), packing=BlockPacking.S_8_8_8_8, components=4,
                  texture_class=TextureClass.PLANAR, fill=None, alignment=None):
    """Creates a texture whose bytes are a deterministic pattern (or a constant fill)."""
    image_format = uncompressed_format(packing, components, FieldType.UNORM)
    storage = TextureStorage(layers, faces, levels, dim, (1, 1, 1), image_format.block_size, alignment or TextureAlignment())
    view = TextureView(image_format, texture_class, storage)
    for index, image in enumerate(visit_texture_images(view)):
        blocks = image.blocks()
        if fill is None:
            blocks[...] = ((np.arange(blocks.size, dtype=np.uint32).reshape(blocks.shape) + 17 * index) % 251).astype(np.uint8)
        else:
            blocks[...] = fill
    return Texture(storage, view)


def positioned(texture, path="input.png", layer=0, face=0, level=0):
    return PositionedInput(path=path, texture=texture, dest_layer=layer, dest_face=face, dest_level=level)


@pytest.fixture
def make_texture():
    return build_texture


@pytest.fixture
def make_input():
    return positioned


@pytest.fixture
def write_png(tmp_path):
    """Writes a solid RGBA png into tmp_path and returns its path as a string."""

    def _write(name, size=(4, 4), color=(255, 0, 0, 255), mode="RGBA"):
        path = tmp_path / name
        Image.new(mode, size, color if mode != "L" else color[0]).save(path)
        return str(path)

    return _write
