""" Assembles layered, cubemap and mipmapped textures from separately stored images and writes them to texture or image files. """

import argparse
import os
import sys
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from backend.image_lib import blit_pixels, intersect_regions, pixel_region

from backend.io_backend import (TextureReadError, TextureWriteError, format_from_extension, is_native_format, read_texture, write_texture)

from backend.texture_classes import (AssemblerContext, FormatOverrides, InputFileSpec, MergePlan, OutputFileSpec, Outcome, PlannedImage,
                                     PositionedInput, ReconciledFormat, StatusCode)

from backend.texture_format import (MAX_BLOCK_SIZE, MAX_COMPONENTS, SWIZZLE_ALIASES, BlockPacking, Colorspace, FieldType, Swizzle, TextureClass,
                                    TextureFileFormat, array_counterpart, block_word_count, block_word_size, class_faces, component_count,
                                    default_block_dim, dimensionality, is_array, is_compressed, parse_enum_name, required_block_size,
                                    swizzles_rgba)

from backend.texture_storage import (MAX_FACES, MAX_LAYERS, MAX_LEVELS, Texture, TextureAlignment, TextureStorage, TextureView,
                                     duplicate_texture, image_key, mipmap_dim, mipmap_levels, split_image_key, visit_texture_images)

from settings import (ALIGNMENT, COLORSPACE, CUSTOM_FORMAT, INPUT_SEARCH_PATHS, INPUTS, OUTPUT_FOLDER, OUTPUTS, OVERWRITE, PREMULTIPLIED,
                      SHOW_DETAILS, STRICT_MIP_CHAIN, TEXTURE_CLASS)

from utils import (details_enabled, format_dim, inject_filename_suffix, log, log_verbose, parse_filename_index, report,
                   resolve_input_paths, set_show_details, split_search_paths, strip_index_suffixes)


# Axis name: (largest count, plural used in messages)
AXES: Dict[str, Tuple[int, str]] = {
    "layer": (MAX_LAYERS, "layers"),
    "face": (MAX_FACES, "faces"),
    "level": (MAX_LEVELS, "levels"),
}
SPLIT_AXES: Tuple[str, ...] = ("layer", "face", "level") # Order in which single-image outputs are split.




#                                           === Pipeline ===

def assemble_texture(context: AssemblerContext) -> StatusCode:
# Runs one invocation: load inputs, merge them into one texture, write every requested output.
# Returns the highest status reached; every diagnostic is also kept on context.outcome.

    outcome: Outcome = context.outcome

    if not context.input_files:
        report(outcome, "Aborted: No input files specified (CLI/config).", "error", StatusCode.NO_INPUT)
        return outcome.status

    dry_run: bool = not context.output_files and context.output_mode

    try:
        inputs: List[PositionedInput] = load_inputs(context.input_files, context.search_paths, outcome)
        if not inputs:
            report(outcome, "Aborted: None of the input files could be loaded.", "error", StatusCode.NO_INPUT)
            return outcome.status

        if not context.output_files and not dry_run:
            context.output_files.append(default_output_spec(inputs[0].path))
        # Without "--", a single beTx file is written next to the first loaded input file.

        texture: Texture = make_texture(inputs, context.overrides, outcome, strict_mip_chain=context.strict_mip_chain)
        if not texture:
            outcome.raise_status(StatusCode.CONVERSION_ERROR)
            return outcome.status

        log_texture_info(texture.view, "Texture Info")

        if dry_run:
            report(outcome, "Dry run: no output files specified.", "warn", StatusCode.NO_OUTPUT)
        else:
            write_outputs(texture.view, context.output_files, context.output_folder, context.overwrite, outcome)

    except Exception as error:
        report(outcome, f"Unexpected error: {type(error).__name__}: {error}", "error", StatusCode.EXCEPTION)

    return outcome.status


def make_texture(inputs: List[PositionedInput], overrides: FormatOverrides, outcome: Outcome, strict_mip_chain: bool = False) -> Texture:
# Merges positioned inputs into one newly allocated texture. Returns an empty texture if nothing could be merged.

    plan: Optional[MergePlan] = plan_merge(inputs, outcome, strict_mip_chain=strict_mip_chain)
    if plan is None:
        return Texture()

    reconciled: ReconciledFormat = reconcile_format(plan, overrides, outcome)
    texture: Optional[Texture] = allocate_texture(plan, reconciled, outcome)
    if texture is None:
        return Texture()

    composite_images(plan, texture.view, outcome)
    return texture


def default_output_spec(input_path: str) -> OutputFileSpec:
# beTx file named after a resolved input file, without layer/face/level fragments.

    root, _ = os.path.splitext(strip_index_suffixes(input_path))
    return OutputFileSpec(path=f"{root}.betx", file_format=TextureFileFormat.BETX)




#                                           === Input Loading ===

def load_inputs(input_files: Sequence[InputFileSpec], search_paths: Sequence[str], outcome: Outcome) -> List[PositionedInput]:
# Expands every input pattern against the search paths and loads every matched file, in order.
# The same file may be matched by several entries, e.g. one image placed into several layers or faces.

    inputs: List[PositionedInput] = []

    for input_file in input_files:
        paths: List[str] = resolve_input_paths(input_file.path, search_paths)
        if not paths:
            report(outcome, f"No files matched input file pattern: {input_file.path}", "warn")
            continue

        for path in paths:
            positioned_input = load_input(input_file, path, outcome)
            if positioned_input.texture:
                inputs.append(positioned_input)
    return inputs


def load_input(input_file: InputFileSpec, path: str, outcome: Outcome) -> PositionedInput:
# Decodes one file and applies the entry's overrides and selection. The returned texture is empty if the file contributes nothing.

    result = PositionedInput(path=path, file_format=input_file.file_format,
                             dest_layer=input_file.layer, dest_face=input_file.face, dest_level=input_file.level)

    log(f"Loading {input_file.file_format} texture file: {path}", "info")

    for axis in SPLIT_AXES:
        first: int = getattr(input_file, f"first_{axis}")
        last: int = getattr(input_file, f"last_{axis}")
        if first > last:
            report(outcome, f"No {AXES[axis][1]} selected!", "warn",
                   details={"Path": path, f"First {axis.title()}": first, f"Last {axis.title()}": last})
            return result

    result.dest_layer = _infer_destination(path, "layer", input_file.layer, outcome)
    result.dest_face = _infer_destination(path, "face", input_file.face, outcome)
    result.dest_level = _infer_destination(path, "level", input_file.level, outcome)

# Decoding:
    try:
        texture, file_format = read_texture(path, input_file.file_format)
    except OSError as error:
        report(outcome, f"Failed to read texture file: {path} ({error})", "error", StatusCode.READ_ERROR)
        return result
    except TextureReadError as error:
        report(outcome, f"Failed to parse texture file: {path} ({error})", "error", StatusCode.READ_ERROR)
        return result

    if not texture:
        report(outcome, "Loading texture file resulted in an empty texture!", "error", StatusCode.READ_ERROR, details={"Path": path})
        return result

    result.file_format = file_format
    view: TextureView = texture.view
    log_texture_info(view, "Texture Loaded", path, file_format, verbose_only=True)

# Reinterpreting the texel format, in a fixed order:
    new_format = view.format
    if input_file.colorspace is not None:
        new_format = new_format.with_changes(colorspace=input_file.colorspace)
        log_verbose(f"Overriding colorspace: {input_file.colorspace}")

    if input_file.premultiplied is not None:
        new_format = new_format.with_changes(premultiplied=input_file.premultiplied)
        log_verbose(f"Overriding premultiplied: {'yes' if input_file.premultiplied else 'no'}")

    if input_file.override_components:
        new_format = new_format.with_changes(field_types=input_file.field_types, swizzles=input_file.swizzles)
        for index, field_type in enumerate(new_format.field_types):
            log_verbose(f"Overriding Component Type {index}: {field_type}")
        for channel, swizzle in zip("RGBA", new_format.swizzles):
            log_verbose(f"Overriding {channel} Swizzle: {swizzle}")

# Narrowing to the selected layers, faces and levels:
    narrowed_view: TextureView = view.with_format(new_format).select(
        input_file.first_layer, input_file.last_layer - input_file.first_layer + 1,
        input_file.first_face, input_file.last_face - input_file.first_face + 1,
        input_file.first_level, input_file.last_level - input_file.first_level + 1)

    if not narrowed_view:
        report(outcome, "Selection does not include any image of the texture file!", "warn",
               details={"Path": path, "Layers": view.layers, "Faces": view.faces, "Levels": view.levels})
        return result

    if (narrowed_view.layers, narrowed_view.faces, narrowed_view.levels) != (view.layers, view.faces, view.levels):
        for axis in SPLIT_AXES:
            _log_skipped_range(axis, getattr(input_file, f"first_{axis}"), getattr(input_file, f"last_{axis}"), getattr(view, AXES[axis][1]))
        try:
            result.texture = duplicate_texture(narrowed_view)
        except MemoryError:
            report(outcome, "Not enough memory to duplicate texture", "error", StatusCode.READ_ERROR, details={"Path": path})
            result.texture = Texture()
    else:
        result.texture = Texture(texture.storage, narrowed_view)

    return result


def _infer_destination(path: str, axis: str, requested: int, outcome: Outcome) -> int:
# Keeps an explicit destination; otherwise reads it from the filename, e.g. "sky-face2.png", or uses 0.

    maximum: int = AXES[axis][0]
    if requested != maximum:
        return requested

    index: Optional[int] = parse_filename_index(path, axis)
    if index is None:
        return 0
    if index >= maximum:
        report(outcome, f"{axis.title()} specified in filename is out of range; using {axis} 0 instead.", "warn", details={"Path": path})
        return 0
    return index


def _log_skipped_range(axis: str, first: int, last: int, available: int) -> None:
    plural: str = AXES[axis][1].title()
    if first > 0 and available > 0:
        log_verbose(f"Skipping {plural}: [0, {min(first, available) - 1}]")
    if last < available - 1:
        log_verbose(f"Skipping {plural}: [{last + 1}, {available - 1}]")




#                                           === Merge Planning ===

def plan_merge(inputs: Sequence[PositionedInput], outcome: Outcome, strict_mip_chain: bool = False) -> Optional[MergePlan]:
# Maps every input image to its destination slot and validates the resulting layers, faces and mip chain.
# Returns None if no image could be placed.

    log_verbose("Merging input textures")

    images: Dict[int, PlannedImage] = {}
    min_layer, max_layer = MAX_LAYERS, 0
    min_face, max_face = MAX_FACES, 0
    min_level, max_level = MAX_LEVELS, 0
    base_input: Optional[PositionedInput] = None
    base_dim: Tuple[int, int, int] = (1, 1, 1)

    for source in inputs:
        for image in visit_texture_images(source.texture.view):
            destination: Dict[str, int] = {
                "layer": source.dest_layer + image.layer,
                "face": source.dest_face + image.face,
                "level": source.dest_level + image.level,
            }

            overflow_axis: Optional[str] = next((axis for axis in SPLIT_AXES if destination[axis] >= AXES[axis][0]), None)
            if overflow_axis:
                report(outcome, f"Too many {AXES[overflow_axis][1]}; ignoring overflow!", "warn",
                       details={"Source": source.path,
                                f"Source {overflow_axis.title()}": getattr(image, overflow_axis),
                                f"Dest {overflow_axis.title()}": destination[overflow_axis]})
                continue
            # Drops only this image; the rest of the input is still merged.

            layer, face, level = destination["layer"], destination["face"], destination["level"]
            key: int = image_key(layer, face, level)
            if key in images:
                report(outcome, "Replacing an image that was already loaded!", "warn",
                       details={"Layer": layer, "Face": face, "Level": level,
                                "Old Source": images[key].source.path, "New Source": source.path})
            images[key] = PlannedImage(source, image)

            if level < min_level:
                base_input = source
                base_dim = image.dim

            min_layer, max_layer = min(min_layer, layer), max(max_layer, layer)
            min_face, max_face = min(min_face, face), max(max_face, face)
            min_level, max_level = min(min_level, level), max(max_level, level)

    if not images or base_input is None:
        report(outcome, "No images could be placed in the merged texture!", "error", StatusCode.CONVERSION_ERROR)
        return None

    if min_layer > 0:
        report(outcome, f"Missing layers: [0, {min_layer - 1}]", "warn")
    if min_face > 0:
        report(outcome, f"Missing faces: [0, {min_face - 1}]", "warn")

# Mip chain:
    chain_levels: int = mipmap_levels(base_dim)
    if min_level > 0:
        report(outcome, f"Missing levels: [0, {min_level - 1}]", "warn")
        base_dim = tuple(axis << min_level if axis > 1 else axis for axis in base_dim)
    # The base image sits at min_level; its size is scaled back up to what level 0 would have been.

    if min_level + chain_levels <= max_level:
        report(outcome, f"Unnecessary mipmap levels removed: [{min_level + chain_levels}, {max_level}]", "warn")
        max_level = min_level + chain_levels - 1
        images = {key: planned for key, planned in images.items() if split_image_key(key)[2] <= max_level}

# Checking every slot of the merged extents:
    mismatched_keys: List[int] = []
    for layer in range(min_layer, max_layer + 1):
        for face in range(min_face, max_face + 1):
            for level in range(min_level, max_level + 1):
                key = image_key(layer, face, level)
                planned: Optional[PlannedImage] = images.get(key)
                if planned is None:
                    report(outcome, f"Missing image for layer {layer} face {face} level {level}", "warn")
                    continue

                dim = planned.image.dim
                expected = mipmap_dim(base_dim, level)
                if dim != expected:
                    report(outcome, "Image size mismatch!", "warn",
                           details={"Source Path": planned.source.path,
                                    "Width": dim[0], "Expected Width": expected[0],
                                    "Height": dim[1], "Expected Height": expected[1],
                                    "Depth": dim[2], "Expected Depth": expected[2],
                                    "Destination Layer": layer, "Destination Face": face, "Destination Level": level})
                    mismatched_keys.append(key)

    if strict_mip_chain:
        for key in mismatched_keys:
            layer, face, level = split_image_key(key)
            log_verbose(f"Leaving out mismatched image for layer {layer} face {face} level {level}")
            images.pop(key, None)

    return MergePlan(images=images, layers=max_layer + 1, faces=max_face + 1, levels=max_level + 1,
                     base_dim=base_dim, base_input=base_input)




#                                           === Format Reconciliation ===

def reconcile_format(plan: MergePlan, overrides: FormatOverrides, outcome: Outcome) -> ReconciledFormat:
# Derives class, texel format, block span and alignment of the merged texture. Conflicts only warn and resolve to a usable value.

    base_view: TextureView = plan.base_input.texture.view

    texture_class: TextureClass = overrides.texture_class if overrides.texture_class is not None else base_view.texture_class
    if plan.layers > 1 and not is_array(texture_class):
        counterpart: Optional[TextureClass] = array_counterpart(texture_class)
        if counterpart is None:
            report(outcome, "Using non-array texture class for a texture with multiple layers", "warn",
                   details={"Texture Class": texture_class, "Layers": plan.layers})
        else:
            log_verbose(f"Using array texture class: {counterpart}")
            texture_class = counterpart

    expected_faces: int = class_faces(texture_class)
    if plan.faces != expected_faces:
        report(outcome, "Face count conflict", "warn",
               details={"Texture Class": texture_class, "Faces": plan.faces, "Expected Faces": expected_faces})

    class_dimensionality: int = dimensionality(texture_class)
    width, height, depth = plan.base_dim
    if (depth > 1 and class_dimensionality < 3) or (height > 1 and class_dimensionality < 2):
        report(outcome, "Texture class dimensionality conflict", "warn",
               details={"Texture Class": texture_class, "Dimensionality": class_dimensionality,
                        "Width": width, "Height": height, "Depth": depth})

# Texel format:
    image_format = base_view.format
    block_span: int = base_view.block_span
    if overrides.packing is not None:
        image_format = image_format.with_changes(
            packing = overrides.packing,
            block_dim = default_block_dim(overrides.packing),
            block_size = block_word_size(overrides.packing) * block_word_count(overrides.packing),
            components = overrides.components,
            field_types = overrides.field_types,
            swizzles = overrides.swizzles,
        )
        block_span = overrides.block_span or image_format.block_size

    max_components: int = component_count(image_format.packing)
    if image_format.components > max_components:
        report(outcome, "Component count conflict", "warn",
               details={"Block Packing": image_format.packing, "Components": image_format.components, "Expected Components": max_components})

    required_size: int = required_block_size(image_format)
    if required_size > image_format.block_size:
        block_x, block_y, block_z = image_format.block_dim
        report(outcome, "Block size enlarged to fit all block data", "warn",
               details={"Block Packing": image_format.packing, "Block Width": block_x, "Block Height": block_y, "Block Depth": block_z,
                        "Block Size": image_format.block_size, "Required Block Size": required_size})
        image_format = image_format.with_changes(block_size=required_size)

    if block_span < image_format.block_size:
        report(outcome, "Block span increased to fit all block data", "warn",
               details={"Block Span": block_span, "Required Block Span": image_format.block_size})
        block_span = image_format.block_size

    if overrides.colorspace is not None:
        image_format = image_format.with_changes(colorspace=overrides.colorspace)
    if overrides.premultiplied is not None:
        image_format = image_format.with_changes(premultiplied=overrides.premultiplied)

    alignment: TextureAlignment = overrides.alignment if overrides.alignment is not None else base_view.storage.alignment

    return ReconciledFormat(texture_class=texture_class, format=image_format, block_span=block_span, alignment=alignment)




#                                           === Allocation & Compositing ===

def allocate_texture(plan: MergePlan, reconciled: ReconciledFormat, outcome: Outcome) -> Optional[Texture]:
# Allocates the merged storage and a view spanning all of it. Returns None (conversion error) if that fails.

    try:
        storage = TextureStorage(plan.layers, plan.faces, plan.levels, plan.base_dim,
                                 reconciled.format.block_dim, reconciled.block_span, reconciled.alignment)
    except MemoryError:
        report(outcome, "Not enough memory to allocate merged texture", "error", StatusCode.CONVERSION_ERROR)
        return None
    except ValueError as error:
        report(outcome, f"Cannot allocate merged texture: {error}", "error", StatusCode.CONVERSION_ERROR)
        return None

    view = TextureView(reconciled.format, reconciled.texture_class, storage, 0, plan.layers, 0, plan.faces, 0, plan.levels)
    return Texture(storage, view)


def composite_images(plan: MergePlan, view: TextureView, outcome: Outcome) -> None:
# Copies the overlap of every planned source image into its slot. Slots without a source stay zeroed.

    for image in visit_texture_images(view):
        planned: Optional[PlannedImage] = plan.images.get(image_key(image.layer, image.face, image.level))
        if planned is None:
            continue

        region = intersect_regions(pixel_region(planned.image), pixel_region(image))
        try:
            blit_pixels(planned.image, region, image, region)
        except ValueError as error:
            report(outcome, f"Cannot convert image for layer {image.layer} face {image.face} level {image.level}: {error}",
                   "error", StatusCode.CONVERSION_ERROR, details={"Source Path": planned.source.path})




#                                           === Output Slicing ===

def write_outputs(view: TextureView, output_files: Sequence[OutputFileSpec], output_folder: str, overwrite: bool, outcome: Outcome) -> None:
# Writes every requested output. A failing output only affects itself.

    base_directory: str = os.path.abspath(output_folder or os.getcwd())

    for output_file in output_files:
        path: str = os.path.abspath(os.path.join(base_directory, output_file.path))

        selection: Optional[Dict[str, Tuple[int, int]]] = _resolve_output_selection(output_file, path, outcome)
        if selection is None:
            continue

        empty_axis: Optional[str] = next((axis for axis in SPLIT_AXES if selection[axis][0] >= getattr(view, AXES[axis][1])), None)
        if empty_axis:
            report(outcome, f"Skipping output file: no {AXES[empty_axis][1]} selected!", "error", StatusCode.WRITE_ERROR,
                   details={"Output Path": path})
            continue

        selected_view: TextureView = view.select(selection["layer"][0], selection["layer"][1],
                                                 selection["face"][0], selection["face"][1],
                                                 selection["level"][0], selection["level"][1])

        file_format: TextureFileFormat = output_file.file_format
        if file_format == TextureFileFormat.UNKNOWN:
            file_format = format_from_extension(path)
        if file_format == TextureFileFormat.UNKNOWN:
            report(outcome, "Could not determine output texture file format!", "error", StatusCode.WRITE_ERROR,
                   details={"Output Path": path})
            continue

        if is_native_format(file_format):
            _write_output(selected_view, path, file_format, output_file, overwrite, outcome)
        else:
            _write_split_images(selected_view, path, file_format, output_file, list(SPLIT_AXES), overwrite, outcome)
        # Image files hold a single layer, face and level.


def _resolve_output_selection(output_file: OutputFileSpec, path: str, outcome: Outcome) -> Optional[Dict[str, Tuple[int, int]]]:
# Returns (base, count) per axis. Axes that were not forced take a single index from the filename if it names one.

    selection: Dict[str, Tuple[int, int]] = {}
    for axis in SPLIT_AXES:
        maximum, plural = AXES[axis]
        base: int = getattr(output_file, f"base_{axis}")
        count: int = getattr(output_file, plural)

        if not getattr(output_file, f"force_{plural}"):
            index: Optional[int] = parse_filename_index(path, axis)
            if index is not None:
                if index >= maximum:
                    report(outcome, f"Invalid {axis} specified in output filename.", "error", StatusCode.WRITE_ERROR,
                           details={"Output Path": path, axis.title(): index})
                    return None
                base, count = index, 1

        selection[axis] = (base, count)
    return selection


def _write_split_images(view: TextureView, path: str, file_format: TextureFileFormat, output_file: OutputFileSpec,
                        axes: List[str], overwrite: bool, outcome: Outcome) -> None:
# Peels one axis per call: if the view spans several indices of it, writes one file per index, named "<stem>-<axis><N><ext>".

    if not axes:
        _write_output(view, path, file_format, output_file, overwrite, outcome)
        return

    axis, remaining_axes = axes[0], axes[1:]
    count: int = getattr(view, AXES[axis][1])
    if count <= 1:
        _write_split_images(view, path, file_format, output_file, remaining_axes, overwrite, outcome)
        return

    base: int = getattr(view, f"base_{axis}")
    for index in range(count):
        sub_view: TextureView = view.select(**{axis: index, AXES[axis][1]: 1})
        sub_path: str = inject_filename_suffix(path, f"-{axis}{base + index}")
        _write_split_images(sub_view, sub_path, file_format, output_file, remaining_axes, overwrite, outcome)


def _write_output(view: TextureView, path: str, file_format: TextureFileFormat, output_file: OutputFileSpec, overwrite: bool,
                  outcome: Outcome) -> None:
# Writes one file. Existing files, including ones derived by splitting, are only replaced with overwrite on.

    if os.path.exists(path) and not overwrite:
        report(outcome, "Skipping output file: file already exists; use --overwrite to ignore.", "error", StatusCode.WRITE_ERROR,
               details={"Output Path": path})
        return

    log(f"Writing {file_format} texture file: {path}", "info")
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        write_texture(view, path, file_format, output_file.byte_order, output_file.payload_compression)
    except (OSError, TextureWriteError) as error:
        report(outcome, f"Could not write output texture! ({error})", "error", StatusCode.WRITE_ERROR, details={"Output Path": path})
        return
    log(f"Created: {os.path.basename(path)}", "complete")




#                                           === Reporting ===

def log_texture_info(view: TextureView, title: str, path: Optional[str] = None, file_format: Optional[TextureFileFormat] = None,
                     verbose_only: bool = False) -> None:
# Prints the layout and texel format of a texture view.

    if verbose_only and not details_enabled():
        return

    image_format = view.format
    info: Dict[str, Any] = {}
    if path:
        info["Path"] = path
    if file_format is not None:
        info["File Format"] = file_format
    info.update({
        "Texture Class": view.texture_class,
        "Block Packing": image_format.packing,
        "Components": image_format.components,
        "Field Types": ", ".join(str(field_type) for field_type in image_format.field_types),
        "Swizzles": ", ".join(str(swizzle) for swizzle in image_format.swizzles),
        "Colorspace": image_format.colorspace,
        "Premultiplied": "yes" if image_format.premultiplied else "no",
        "Dimensions": format_dim(view.dim),
        "Layers": view.layers,
        "Faces": view.faces,
        "Levels": view.levels,
        "Block Size": image_format.block_size,
        "Block Span": view.block_span,
        "Alignment": ", ".join(str(bits) for bits in view.storage.alignment.as_tuple()),
        "Storage Size": f"{view.storage.size} bytes",
    })

    log(f"{title}:", "info")
    for key, value in info.items():
        log(f"    {key}: {value}", "info")




#                                       === Configuration ===

_FILE_TYPE_ALIASES: Dict[str, TextureFileFormat] = {
    "jpg": TextureFileFormat.JPEG,
    "dib": TextureFileFormat.BMP,
    "rgbe": TextureFileFormat.HDR,
    "ppm": TextureFileFormat.PNM,
    "pgm": TextureFileFormat.PNM,
    "pbm": TextureFileFormat.PNM,
}

_ALIGNMENT_KEYS: Tuple[str, ...] = ("line", "plane", "level", "face", "layer")


def _abort_config(message: str) -> None:
    log(f"Aborted: {message}", "error")
    raise SystemExit(int(StatusCode.CLI_ERROR))


def _parse_name(enum_type, raw_name: Any, setting: str, aliases=None):
    try:
        return parse_enum_name(enum_type, raw_name, aliases)
    except ValueError as error:
        _abort_config(f"Invalid {setting}: {error}")


def _parse_file_type(raw_type: Any, setting: str = "type") -> TextureFileFormat:
    if raw_type is None or str(raw_type).strip() == "":
        return TextureFileFormat.UNKNOWN
    return _parse_name(TextureFileFormat, str(raw_type).strip().lstrip("."), setting, _FILE_TYPE_ALIASES)


def _parse_int(value: Any, setting: str, minimum: int, maximum: int) -> int:
# Accepts JSON integers only (bools are rejected).

    if isinstance(value, bool) or not isinstance(value, int) or not minimum <= value <= maximum:
        _abort_config(f"Invalid {setting} '{value}'. Expected an integer in [{minimum}, {maximum}].")
    return value


def _parse_flag(value: Any, setting: str) -> bool:
    if not isinstance(value, bool):
        _abort_config(f"Invalid {setting} '{value}'. Expected true or false.")
    return value


def _parse_field_types(raw_names: Any, default_type: FieldType, components: int, setting: str) -> Tuple[FieldType, ...]:
# Up to 4 names; missing entries use default_type for used components and "none" after them.

    names: List[Any] = list(raw_names or [])
    if len(names) > MAX_COMPONENTS:
        _abort_config(f"Invalid {setting}: at most {MAX_COMPONENTS} field types can be given.")
    field_types = [_parse_name(FieldType, name, setting) for name in names]
    for index in range(len(field_types), MAX_COMPONENTS):
        field_types.append(default_type if index < components else FieldType.NONE)
    return tuple(field_types)


def _parse_swizzles(raw_names: Any, setting: str) -> Tuple[Swizzle, ...]:
# Up to 4 names; missing channels keep their identity swizzle.

    names: List[Any] = list(raw_names or [])
    if len(names) > MAX_COMPONENTS:
        _abort_config(f"Invalid {setting}: at most {MAX_COMPONENTS} swizzles can be given.")
    swizzles = [_parse_name(Swizzle, name, setting, SWIZZLE_ALIASES) for name in names]
    return tuple(swizzles) + swizzles_rgba()[len(swizzles):]


def parse_input_entry(entry: Any) -> InputFileSpec:
# Converts one INPUTS entry (a path string or an object) into an InputFileSpec. Aborts on invalid values.

    if isinstance(entry, str):
        entry = {"path": entry}
    if not isinstance(entry, dict) or not str(entry.get("path", "")).strip():
        _abort_config(f"Invalid input entry {entry!r}; 'path' is required.")

    input_file = InputFileSpec(path=str(entry["path"]).strip(), file_format=_parse_file_type(entry.get("type"), "input type"))

    for axis in SPLIT_AXES:
        maximum: int = AXES[axis][0]
        if entry.get(axis) is not None:
            setattr(input_file, axis, _parse_int(entry[axis], f"input {axis}", 0, maximum - 1))
        if entry.get(f"first_{axis}") is not None:
            setattr(input_file, f"first_{axis}", _parse_int(entry[f"first_{axis}"], f"input first_{axis}", 0, maximum - 1))
        if entry.get(f"last_{axis}") is not None:
            setattr(input_file, f"last_{axis}", _parse_int(entry[f"last_{axis}"], f"input last_{axis}", 0, maximum - 1))

    if entry.get("field_types") or entry.get("swizzles"):
        input_file.override_components = True
        input_file.field_types = _parse_field_types(entry.get("field_types"), FieldType.NONE, 0, "input field_types")
        input_file.swizzles = _parse_swizzles(entry.get("swizzles"), "input swizzles")

    if entry.get("colorspace"):
        input_file.colorspace = _parse_name(Colorspace, entry["colorspace"], "input colorspace")
    if entry.get("premultiplied") is not None:
        input_file.premultiplied = _parse_flag(entry["premultiplied"], "input premultiplied")

    return input_file


def parse_output_entry(entry: Any) -> OutputFileSpec:
# Converts one OUTPUTS entry (a path string or an object) into an OutputFileSpec. Any selection key forces its axis.

    if isinstance(entry, str):
        entry = {"path": entry}
    if not isinstance(entry, dict) or not str(entry.get("path", "")).strip():
        _abort_config(f"Invalid output entry {entry!r}; 'path' is required.")

    output_file = OutputFileSpec(path=str(entry["path"]).strip(), file_format=_parse_file_type(entry.get("type"), "output type"))

    for axis in SPLIT_AXES:
        maximum, plural = AXES[axis]
        if entry.get(axis) is not None:
            setattr(output_file, f"base_{axis}", _parse_int(entry[axis], f"output {axis}", 0, maximum - 1))
            setattr(output_file, plural, 1)
            setattr(output_file, f"force_{plural}", True)
        if entry.get(f"base_{axis}") is not None:
            setattr(output_file, f"base_{axis}", _parse_int(entry[f"base_{axis}"], f"output base_{axis}", 0, maximum - 1))
            setattr(output_file, f"force_{plural}", True)
        if entry.get(plural) is not None:
            setattr(output_file, plural, _parse_int(entry[plural], f"output {plural}", 1, maximum))
            setattr(output_file, f"force_{plural}", True)

    byte_order: str = str(entry.get("byte_order") or "host").strip().lower()
    if byte_order == "host":
        byte_order = sys.byteorder
    if byte_order not in ("little", "big"):
        _abort_config(f"Invalid output byte_order '{entry.get('byte_order')}'. Supported: little, big, host")
    output_file.byte_order = byte_order

    if entry.get("compress") is not None:
        output_file.payload_compression = _parse_flag(entry["compress"], "output compress")

    return output_file


def parse_format_overrides(texture_class: str, custom_format: Dict[str, Any], colorspace: str,
                           premultiplied: Optional[bool], alignment: Dict[str, Any]) -> FormatOverrides:
# Converts the merged-texture settings into FormatOverrides. Aborts on invalid values.

    overrides = FormatOverrides()

    if texture_class:
        overrides.texture_class = _parse_name(TextureClass, texture_class, "TEXTURE_CLASS")

    raw_packing: str = str((custom_format or {}).get("packing") or "").strip()
    if raw_packing:
        packing: BlockPacking = _parse_name(BlockPacking, raw_packing, "CUSTOM_FORMAT packing")
        if is_compressed(packing):
            _abort_config(f"Invalid CUSTOM_FORMAT packing '{raw_packing}'. Only uncompressed packings can be requested.")
        overrides.packing = packing
        overrides.components = _parse_int(custom_format.get("components", component_count(packing)), "CUSTOM_FORMAT components", 1, MAX_COMPONENTS)

        default_type: FieldType = FieldType.SFLOAT if block_word_size(packing) == 4 else FieldType.UNORM
        overrides.field_types = _parse_field_types(custom_format.get("field_types"), default_type, overrides.components, "CUSTOM_FORMAT field_types")
        overrides.swizzles = _parse_swizzles(custom_format.get("swizzles"), "CUSTOM_FORMAT swizzles")
        overrides.block_span = _parse_int(custom_format.get("block_span", 0) or 0, "CUSTOM_FORMAT block_span", 0, MAX_BLOCK_SIZE)
        # A block span of 0 uses the packing's block size.

    if colorspace:
        overrides.colorspace = _parse_name(Colorspace, colorspace, "COLORSPACE")
    overrides.premultiplied = premultiplied

    if alignment:
        unknown_keys = sorted(set(alignment) - set(_ALIGNMENT_KEYS))
        if unknown_keys:
            _abort_config(f"Invalid ALIGNMENT keys {unknown_keys}. Supported: {', '.join(_ALIGNMENT_KEYS)}")
        bits = {key: _parse_int(alignment.get(key, 2 if key == "line" else 0), f"ALIGNMENT {key}", 0, 15) for key in _ALIGNMENT_KEYS}
        overrides.alignment = TextureAlignment(bits["line"], bits["plane"], bits["level"], bits["face"], bits["layer"])

    return overrides




#                                         === CLI entry point ===

class _ArgumentParser(argparse.ArgumentParser):
# Reports argument errors through log() and exits with the CLI error status.

    def error(self, message: str) -> None:
        self.print_usage(sys.stderr)
        _abort_config(message)


def build_argument_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog = "texture_assembler",
        description = "Assembles layers, faces and mipmap levels from multiple images into one texture.",
        epilog = "Outputs follow '--'. Without '--', a beTx file is written next to the first input; '--' without outputs performs a dry run.",
    )
    parser.add_argument("inputs", nargs="*", metavar="INPUT", help="Input file path or glob pattern.")
    parser.add_argument("-D", "--input-dir", action="append", default=[], metavar="PATH", help="Folder searched for inputs; may be repeated or ';' separated.")
    parser.add_argument("-d", "--output-dir", default=None, metavar="PATH", help="Base folder for relative output paths.")
    parser.add_argument("-F", "--overwrite", action="store_true", help="Overwrites output files that already exist.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Shows details for every loaded file and diagnostic.")
    parser.add_argument("-t", "--type", default=None, metavar="TYPE", help="File type of the command line inputs; detected from the contents by default.")
    return parser


def build_context(argv: Sequence[str]) -> AssemblerContext:
# Combines config.json with the command line. Aborts with the CLI error status on invalid settings.

    arguments: List[str] = list(argv)
    output_mode: bool = "--" in arguments
    if output_mode:
        separator: int = arguments.index("--")
        arguments, output_arguments = arguments[:separator], arguments[separator + 1:]
    else:
        output_arguments = []

    parsed = build_argument_parser().parse_args(arguments)
    set_show_details(SHOW_DETAILS or parsed.verbose)

    cli_type: TextureFileFormat = _parse_file_type(parsed.type, "--type")

    return AssemblerContext(
        input_files = [parse_input_entry(entry) for entry in INPUTS] + [InputFileSpec(path=path, file_format=cli_type) for path in parsed.inputs],
        output_files = [parse_output_entry(entry) for entry in OUTPUTS] + [parse_output_entry(path) for path in output_arguments],
        search_paths = split_search_paths(split_search_paths(INPUT_SEARCH_PATHS) + list(parsed.input_dir)),
        output_folder = parsed.output_dir if parsed.output_dir is not None else OUTPUT_FOLDER,
        overwrite = OVERWRITE or parsed.overwrite,
        strict_mip_chain = STRICT_MIP_CHAIN,
        overrides = parse_format_overrides(TEXTURE_CLASS, CUSTOM_FORMAT, COLORSPACE, PREMULTIPLIED, ALIGNMENT),
        output_mode = output_mode,
    )


def run(argv: Sequence[str]) -> StatusCode:
    context: AssemblerContext = build_context(argv)
    start_time = time.time()

    status: StatusCode = assemble_texture(context)

    elapsed: float = time.time() - start_time
    if status == StatusCode.OK:
        log(f"Finished in {elapsed:.2f}s.", "complete")
    elif status == StatusCode.WARNING:
        log(f"Finished in {elapsed:.2f}s with warnings.", "warn")
    else:
        log(f"Finished in {elapsed:.2f}s with status {status.name.lower()} ({int(status)}).", "error")
    return status


def main() -> None:
    sys.exit(int(run(sys.argv[1:])))

if __name__ == "__main__":
    main()
