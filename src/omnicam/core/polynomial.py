from __future__ import annotations

import numpy as np


def power_sequence(x: np.ndarray, n: int) -> np.ndarray:
    """
    Powers x^0 .. x^(n-1) stacked on a trailing axis: shape x.shape + (n,).
    """
    x = np.asarray(x, dtype=np.float64)
    out = np.empty(x.shape + (int(n),), dtype=np.float64)
    out[..., 0] = 1.0
    for i in range(1, int(n)):
        out[..., i] = out[..., i - 1] * x
    return out


def horner(coeffs: np.ndarray, x: np.ndarray) -> np.ndarray:
    """Evaluate sum_i coeffs[i] x^i, highest degree first."""
    coeffs = np.asarray(coeffs, dtype=np.float64).reshape(-1)
    x = np.asarray(x, dtype=np.float64)
    acc = np.full_like(x, coeffs[-1])
    for c in coeffs[-2::-1]:
        acc = c + acc * x
    return acc


def derivative_from_powers(coeffs: np.ndarray, powers: np.ndarray) -> np.ndarray:
    """
    d/dx sum_i coeffs[i] x^i, reusing a precomputed `power_sequence`.
    """
    coeffs = np.asarray(coeffs, dtype=np.float64).reshape(-1)
    k = np.arange(1, coeffs.size, dtype=np.float64)
    return powers[..., :-1] @ (k * coeffs[1:])
