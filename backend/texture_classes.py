import sys
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Dict, List, Optional, TypedDict

from backend.texture_format import (BlockPacking, Colorspace, FieldTypes, ImageFormat, Swizzles, TextureClass, TextureFileFormat,
                                    field_types_none, swizzles_rgba)
from backend.texture_storage import MAX_FACES, MAX_LAYERS, MAX_LEVELS, Dimensions, ImageView, Texture, TextureAlignment




#                                           === Run status ===

class StatusCode(IntEnum):
# Ordered by severity; the final value is the process exit code.
    OK = 0
    WARNING = 1
    EXCEPTION = 2
    CLI_ERROR = 3
    NO_OUTPUT = 4
    NO_INPUT = 5
    READ_ERROR = 6
    CONVERSION_ERROR = 7
    WRITE_ERROR = 8


@dataclass
class Diagnostic:
    message_kind: str # Log type the message was printed with, e.g. "warn".
    status: StatusCode # Status the message raised the run to (at least).
    message: str
    attributes: Dict[str, Any] = field(default_factory=dict) # Structured details, e.g. {"Path": ..., "Layer": 3}.


@dataclass
class Outcome:
# Highest status reached so far plus every recorded diagnostic. Status only ever goes up.
    status: StatusCode = StatusCode.OK
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def raise_status(self, status: StatusCode) -> None:
        if status > self.status:
            self.status = status

    def record(self, diagnostic: Diagnostic) -> None:
        self.diagnostics.append(diagnostic)
        self.raise_status(diagnostic.status)

    def messages(self, message_kind: Optional[str] = None) -> List[str]:
        return [d.message for d in self.diagnostics if message_kind is None or d.message_kind == message_kind]




#                                           === Inputs ===

@dataclass
class InputFileSpec:
    path: str # Path or glob pattern, resolved against the search paths.
    file_format: TextureFileFormat = TextureFileFormat.UNKNOWN # UNKNOWN means detect from the file contents.

    layer: int = MAX_LAYERS # Destination of the first selected layer; MAX_LAYERS means "infer from the filename".
    first_layer: int = 0
    last_layer: int = MAX_LAYERS - 1

    face: int = MAX_FACES
    first_face: int = 0
    last_face: int = MAX_FACES - 1

    level: int = MAX_LEVELS
    first_level: int = 0
    last_level: int = MAX_LEVELS - 1

    override_components: bool = False # Reinterprets field types and swizzles when set.
    field_types: FieldTypes = field(default_factory=field_types_none)
    swizzles: Swizzles = field(default_factory=swizzles_rgba)

    colorspace: Optional[Colorspace] = None # None keeps the decoded colorspace.
    premultiplied: Optional[bool] = None # None keeps the decoded premultiplication flag.


@dataclass
class PositionedInput:
    path: str # Concrete file path the texture was decoded from.
    file_format: TextureFileFormat = TextureFileFormat.UNKNOWN # Format actually used to decode.
    texture: Texture = field(default_factory=Texture)
    dest_layer: int = MAX_LAYERS # Destination offsets in the merged texture.
    dest_face: int = MAX_FACES
    dest_level: int = MAX_LEVELS




#                                           === Merging ===

@dataclass
class PlannedImage:
    source: PositionedInput # Input the image comes from.
    image: ImageView # Source pixels.


@dataclass
class MergePlan:
    images: Dict[int, PlannedImage] # Keyed by image_key(layer, face, level) of the destination slot.
    layers: int
    faces: int
    levels: int
    base_dim: Dimensions # Level 0 dimensions of the merged texture.
    base_input: PositionedInput # Input holding the lowest-level image; provides default class, format and alignment.


@dataclass
class FormatOverrides:
    texture_class: Optional[TextureClass] = None
    packing: Optional[BlockPacking] = None # Requests a custom uncompressed texel format when set.
    components: int = 4
    field_types: FieldTypes = field(default_factory=field_types_none)
    swizzles: Swizzles = field(default_factory=swizzles_rgba)
    block_span: int = 0 # 0 means the minimum required by the packing.
    colorspace: Optional[Colorspace] = None
    premultiplied: Optional[bool] = None
    alignment: Optional[TextureAlignment] = None


@dataclass
class ReconciledFormat:
    texture_class: TextureClass
    format: ImageFormat
    block_span: int
    alignment: TextureAlignment




#                                           === Outputs ===

@dataclass
class OutputFileSpec:
    path: str
    file_format: TextureFileFormat = TextureFileFormat.UNKNOWN # UNKNOWN means "from the extension".

    force_layers: bool = False # Set when the selection was given explicitly; disables filename inference.
    base_layer: int = 0
    layers: int = MAX_LAYERS

    force_faces: bool = False
    base_face: int = 0
    faces: int = MAX_FACES

    force_levels: bool = False
    base_level: int = 0
    levels: int = MAX_LEVELS

    byte_order: str = sys.byteorder # "little" or "big".
    payload_compression: bool = False




#                                           === Run context ===

@dataclass
class AssemblerContext:
    input_files: List[InputFileSpec] = field(default_factory=list)
    output_files: List[OutputFileSpec] = field(default_factory=list)
    search_paths: List[str] = field(default_factory=list) # Folders searched in order for relative input patterns.
    output_folder: str = "" # Base folder for relative output paths; empty means the working directory.
    overwrite: bool = False
    strict_mip_chain: bool = False # Leaves images with an unexpected size for their level out of the merged texture.
    overrides: FormatOverrides = field(default_factory=FormatOverrides)
    output_mode: bool = False # Set once "--" was given on the command line; no outputs then means a dry run.
    outcome: Outcome = field(default_factory=Outcome) # Highest status and diagnostics of the run.




#                                           === Config entries ===

class InputConfig(TypedDict, total=False):
    path: str
    type: str
    layer: int
    face: int
    level: int
    first_layer: int
    last_layer: int
    first_face: int
    last_face: int
    first_level: int
    last_level: int
    field_types: List[str]
    swizzles: List[str]
    colorspace: str
    premultiplied: bool


class OutputConfig(TypedDict, total=False):
    path: str
    type: str
    layer: int
    base_layer: int
    layers: int
    face: int
    base_face: int
    faces: int
    level: int
    base_level: int
    levels: int
    byte_order: str
    compress: bool


class CustomFormatConfig(TypedDict, total=False):
    packing: str # Empty keeps the base input's texel format.
    components: int
    field_types: List[str]
    swizzles: List[str]
    block_span: int


AlignmentConfig = Dict[str, int] # Any of "line", "plane", "level", "face", "layer" mapped to base-2 exponents.
