from __future__ import annotations


class ParameterValidationError(ValueError):
    pass


class ParameterFileError(ValueError):
    """Raised when a token of an OCam parameter file is missing or malformed."""


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise ParameterValidationError(msg)
