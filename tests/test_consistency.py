import numpy as np

from omnicam.core.ocam import OmniCameraModel
from omnicam.eval.consistency import check_model_consistency, numerical_jacobian

POL = [-69.6915, 0.0, 0.00054772, 2.1371e-05, -8.7523e-09]
INVPOL = [142.7468, 104.8486, 7.3973, 17.4581, 12.6308, -4.3751, 6.9093, 10.9703, -0.6053, -3.9119, -1.0675, 0.0]


def _model() -> OmniCameraModel:
    return OmniCameraModel((640, 480), POL, [320.0, 240.0], [1.00042, 0.001043, -0.00091], INVPOL)


def test_numerical_jacobian_of_linear_inverse_polynomial():
    # rho = a0 + a1 theta with identity affine: checks the helper on a model with a simple closed form.
    inv = np.zeros(12)
    inv[0] = 100.0
    inv[1] = 50.0
    model = OmniCameraModel((640, 480), [-100.0, 0.0, 0.0, 0.0, 0.0], [320.0, 240.0], [1.0, 0.0, 0.0], inv)
    p = np.array([0.4, 0.3, -0.7])
    _uv, J = model.project(p, with_jacobian=True)
    assert np.allclose(J, numerical_jacobian(model, p), rtol=1e-6, atol=1e-6)


def test_check_model_consistency_on_calibrated_model():
    stats = check_model_consistency(_model(), n_samples=300, seed=0)
    assert stats["n_samples"] == 300.0
    assert stats["roundtrip_max_px"] < 0.02
    assert stats["roundtrip_rms_px"] <= stats["roundtrip_max_px"]
    assert stats["bearing_norm_max_dev"] < 1e-12
    assert stats["jacobian_max_rel_err"] < 1e-5


def test_check_model_consistency_flags_mismatched_polynomials():
    inv = list(INVPOL)
    inv[0] += 5.0
    model = OmniCameraModel((640, 480), POL, [320.0, 240.0], [1.0, 0.0, 0.0], inv)
    stats = check_model_consistency(model, n_samples=100, seed=1)
    assert stats["roundtrip_max_px"] > 4.0
