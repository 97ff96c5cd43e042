""" Texture Assembler settings. """

import json
import os
from typing import List, Optional

from backend.texture_classes import AlignmentConfig, CustomFormatConfig, InputConfig, OutputConfig


def _as_bool(v) -> bool:
# Converts .json input (bool/int/str/None) to a real bool;
# Avoids the case where a non-empty string like "False" is treated as True.

    if isinstance(v, bool): return v
    if isinstance(v, str):
        input_str = v.strip().lower()
        if input_str == "": return False
        return input_str in ("1","true","yes","on")
    return bool(v)


def _as_optional_bool(v) -> Optional[bool]:
# Same as _as_bool, but null (or an empty string) means "not set".

    if v is None: return None
    if isinstance(v, str) and v.strip() == "": return None
    return _as_bool(v)



#                                           === Loading JSON file ===

_config_path = os.path.join(os.path.dirname(__file__), "config.json")
if os.path.isfile(_config_path):
    with open(_config_path, "r", encoding="utf-8") as f:
        _config_data = json.load(f)
else:
    _config_data = {}


# Assigning config values:
INPUT_SEARCH_PATHS = _config_data.get("INPUT_SEARCH_PATHS", []) # Folders searched in order for relative input patterns, as a list or a ';' separated string. Empty uses the working directory.
OUTPUT_FOLDER: str = (_config_data.get("OUTPUT_FOLDER", "") or "").strip() # Base folder for relative output paths. Empty uses the working directory.
OVERWRITE: bool = _as_bool(_config_data.get("OVERWRITE", False)) # Allows replacing existing output files.
SHOW_DETAILS: bool = _as_bool(_config_data.get("SHOW_DETAILS", False)) # Shows details like paths, indices and every format override when printing logs.
STRICT_MIP_CHAIN: bool = _as_bool(_config_data.get("STRICT_MIP_CHAIN", False)) # Leaves images whose size does not match their mip level out of the merged texture instead of only warning.

INPUTS: List[InputConfig] = _config_data.get("INPUTS", []) # Input entries; a plain string is shorthand for {"path": ...}.
OUTPUTS: List[OutputConfig] = _config_data.get("OUTPUTS", []) # Output entries; a plain string is shorthand for {"path": ...}.

TEXTURE_CLASS: str = (_config_data.get("TEXTURE_CLASS", "") or "").strip() # Overrides the class of the merged texture, e.g. "planar_array". Empty keeps the base input's class.
CUSTOM_FORMAT: CustomFormatConfig = _config_data.get("CUSTOM_FORMAT", {}) or {} # Re-encodes the merged texture into an uncompressed texel format. Empty "packing" keeps the base input's format.
COLORSPACE: str = (_config_data.get("COLORSPACE", "") or "").strip() # Overrides the colorspace tag, e.g. "srgb". Empty keeps the base input's colorspace.
PREMULTIPLIED: Optional[bool] = _as_optional_bool(_config_data.get("PREMULTIPLIED", None)) # Overrides the premultiplied alpha flag; null keeps the base input's flag.
ALIGNMENT: AlignmentConfig = _config_data.get("ALIGNMENT", {}) or {} # Base-2 alignment exponents of "line", "plane", "level", "face", "layer". Empty inherits the base input's alignment.
