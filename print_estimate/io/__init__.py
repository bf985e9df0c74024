"""Model file decoding: STL, 3MF and format dispatch."""

from print_estimate.io.dispatcher import (
    ModelMetadata,
    ParsedModel,
    load_model_file,
    parse_model_bytes,
    validate_model_file,
)
from print_estimate.io.stl_loader import STLFormat, decode_stl, detect_stl_format
from print_estimate.io.threemf_loader import decode_3mf

__all__ = [
    "ModelMetadata",
    "ParsedModel",
    "STLFormat",
    "decode_3mf",
    "decode_stl",
    "detect_stl_format",
    "load_model_file",
    "parse_model_bytes",
    "validate_model_file",
]
