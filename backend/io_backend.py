""" File I/O backend: detects texture file formats and routes decoding/encoding to the beTx, Pillow and OpenEXR backends, so the assembler logic stays format-agnostic. """

import os
import sys
from typing import Dict, Optional, Tuple

from PIL import UnidentifiedImageError

from backend.betx_format import read_betx, write_betx
from backend.image_lib import (ImageObject, close_image, image_to_texture, image_view_to_image, is_pillow_writable, open_image,
                               read_exr_texture, save_image)
from backend.texture_format import TextureFileFormat
from backend.texture_storage import ImageView, Texture, TextureView

from utils import check_exr_libraries


class TextureReadError(Exception):
# A file could be opened but not decoded into a texture.
    pass


class TextureWriteError(Exception):
# A texture view could not be encoded into the requested file format.
    pass




#                                           === Format detection ===

EXTENSION_FORMATS: Dict[str, TextureFileFormat] = {
    ".betx": TextureFileFormat.BETX,
    ".ktx": TextureFileFormat.KTX,
    ".dds": TextureFileFormat.DDS,
    ".png": TextureFileFormat.PNG,
    ".tga": TextureFileFormat.TGA,
    ".bmp": TextureFileFormat.BMP,
    ".dib": TextureFileFormat.BMP,
    ".hdr": TextureFileFormat.HDR,
    ".rgbe": TextureFileFormat.HDR,
    ".pic": TextureFileFormat.HDR,
    ".jpg": TextureFileFormat.JPEG,
    ".jpeg": TextureFileFormat.JPEG,
    ".gif": TextureFileFormat.GIF,
    ".ppm": TextureFileFormat.PNM,
    ".pgm": TextureFileFormat.PNM,
    ".pbm": TextureFileFormat.PNM,
    ".pnm": TextureFileFormat.PNM,
    ".exr": TextureFileFormat.EXR,
}

_SIGNATURES: Tuple[Tuple[bytes, TextureFileFormat], ...] = (
    (b"beTx", TextureFileFormat.BETX),
    (b"\xabKTX 11\xbb\r\n\x1a\n", TextureFileFormat.KTX),
    (b"\xabKTX 20\xbb\r\n\x1a\n", TextureFileFormat.KTX),
    (b"DDS ", TextureFileFormat.DDS),
    (b"\x89PNG\r\n\x1a\n", TextureFileFormat.PNG),
    (b"GIF87a", TextureFileFormat.GIF),
    (b"GIF89a", TextureFileFormat.GIF),
    (b"BM", TextureFileFormat.BMP),
    (b"\xff\xd8\xff", TextureFileFormat.JPEG),
    (b"#?RADIANCE", TextureFileFormat.HDR),
    (b"#?RGBE", TextureFileFormat.HDR),
    (b"\x76\x2f\x31\x01", TextureFileFormat.EXR),
)
# TGA has no signature and is only recognised by its extension.

NATIVE_FORMATS: Tuple[TextureFileFormat, ...] = (TextureFileFormat.BETX, TextureFileFormat.KTX, TextureFileFormat.DDS)


def format_from_extension(path: str) -> TextureFileFormat:
    return EXTENSION_FORMATS.get(os.path.splitext(path)[1].lower(), TextureFileFormat.UNKNOWN)


def format_from_signature(header: bytes) -> TextureFileFormat:
    for signature, file_format in _SIGNATURES:
        if header.startswith(signature):
            return file_format
    if len(header) >= 3 and header[:1] == b"P" and header[1:2] in b"123456" and header[2:3] in b" \t\r\n":
        return TextureFileFormat.PNM
    return TextureFileFormat.UNKNOWN


def detect_file_format(path: str) -> TextureFileFormat:
# Detects the format from the file's leading bytes, falling back to its extension. Raises OSError if the file cannot be read.

    with open(path, "rb") as file:
        header: bytes = file.read(16)
    file_format = format_from_signature(header)
    if file_format == TextureFileFormat.UNKNOWN:
        file_format = format_from_extension(path)
    return file_format


def is_native_format(file_format: TextureFileFormat) -> bool:
# Native formats hold any number of layers, faces and levels in one file.
    return file_format in NATIVE_FORMATS




#                                           === Decoding ===

def read_texture(path: str, file_format: TextureFileFormat = TextureFileFormat.UNKNOWN) -> Tuple[Texture, TextureFileFormat]:
# Decodes a file into a texture. Returns the texture and the format actually used.
# Raises TextureReadError for unsupported or malformed files, OSError for filesystem failures.

    if file_format == TextureFileFormat.UNKNOWN:
        file_format = detect_file_format(path)

    if file_format == TextureFileFormat.BETX:
        try:
            return read_betx(path), file_format
        except ValueError as error:
            raise TextureReadError(f"Invalid beTx file: {error}") from error

    if file_format in (TextureFileFormat.KTX, TextureFileFormat.DDS, TextureFileFormat.HDR):
        raise TextureReadError(f"Reading {str(file_format).upper()} files is not supported.")

    if file_format == TextureFileFormat.EXR:
        if not check_exr_libraries():
            raise TextureReadError("EXR runtime missing (OpenEXR/Imath).")
        try:
            return read_exr_texture(path), file_format
        except (KeyError, ValueError) as error:
            raise TextureReadError(f"Invalid EXR file: {error}") from error

    if file_format == TextureFileFormat.UNKNOWN:
        raise TextureReadError("Unrecognized file format.")

    image: Optional[ImageObject] = None
    try:
        image = open_image(path)
        image.load()
        return image_to_texture(image), file_format
    except (UnidentifiedImageError, ValueError, SyntaxError) as error:
        raise TextureReadError(f"Cannot decode image: {error}") from error
    finally:
        if image is not None:
            close_image(image)




#                                           === Encoding ===

def write_texture(view: TextureView, path: str, file_format: TextureFileFormat,
                  byte_order: str = sys.byteorder, compress: bool = False) -> None:
# Encodes a texture view. Single-image formats accept views holding exactly one image.
# Raises TextureWriteError for unsupported formats or content, OSError for filesystem failures.

    if file_format == TextureFileFormat.BETX:
        try:
            write_betx(view, path, byte_order, compress)
        except ValueError as error:
            raise TextureWriteError(str(error)) from error
        return

    if not is_pillow_writable(file_format):
        raise TextureWriteError(f"Writing {str(file_format).upper()} files is not supported.")

    if view.layers * view.faces * view.levels != 1:
        raise TextureWriteError(f"{str(file_format).upper()} files hold a single image; the view selects "
                                f"{view.layers} layers, {view.faces} faces and {view.levels} levels.")

    try:
        image = image_view_to_image(ImageView(view, 0, 0, 0))
    except ValueError as error:
        raise TextureWriteError(str(error)) from error

    try:
        save_image(image, path, file_format)
    except (KeyError, ValueError) as error:
        raise TextureWriteError(f"Cannot encode image: {error}") from error
    finally:
        close_image(image)
