from omnicam.api import load_ocam, load_ocam_json, save_ocam, save_ocam_json
from omnicam.core.ocam import OmniCameraModel
from omnicam.errors import ParameterFileError, ParameterValidationError

__all__ = [
    "OmniCameraModel",
    "load_ocam",
    "save_ocam",
    "load_ocam_json",
    "save_ocam_json",
    "ParameterFileError",
    "ParameterValidationError",
]
