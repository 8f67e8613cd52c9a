from omnicam.api.model_io import (
    load_ocam,
    load_ocam_json,
    ocam_to_dict,
    parse_ocam_dict,
    parse_ocam_text,
    save_ocam,
    save_ocam_json,
)

__all__ = [
    "load_ocam",
    "save_ocam",
    "load_ocam_json",
    "save_ocam_json",
    "parse_ocam_text",
    "parse_ocam_dict",
    "ocam_to_dict",
]
