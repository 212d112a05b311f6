import math

import numpy as np
import pytest

from slamtools.curve_fitting import (
    FitResult,
    curve_model,
    fit_gauss_newton,
    fit_least_squares,
    generate_curve_data,
    main,
)


def test_curve_model_at_zero_is_exp_c():
    assert curve_model([1.0, 2.0, 1.0], 0.0) == pytest.approx(math.exp(1.0))


def test_curve_model_vectorised():
    xs = np.array([0.0, 0.5, 0.9])
    values = curve_model([0.3, -0.2, 0.1], xs)
    for x, v in zip(xs, values):
        assert v == pytest.approx(float(curve_model([0.3, -0.2, 0.1], x)))


def test_generate_curve_data_layout():
    x, y = generate_curve_data(100, 1.0, (1.0, 2.0, 1.0), 5)
    assert x.shape == (100,) and y.shape == (100,)
    np.testing.assert_allclose(x, np.arange(100) / 100.0)


def test_generate_curve_data_is_seeded():
    _, y1 = generate_curve_data(50, 1.0, (1.0, 2.0, 1.0), 9)
    _, y2 = generate_curve_data(50, 1.0, (1.0, 2.0, 1.0), 9)
    np.testing.assert_array_equal(y1, y2)


def test_generate_without_noise_matches_model():
    x, y = generate_curve_data(30, 0.0, (1.0, 2.0, 1.0), 0)
    np.testing.assert_allclose(y, curve_model((1.0, 2.0, 1.0), x))


def test_gauss_newton_recovers_noise_free_parameters():
    x, y = generate_curve_data(100, 0.0, (1.0, 2.0, 1.0), 0)
    result = fit_gauss_newton(x, y, (2.0, -1.0, 5.0), 100, 1.0)
    assert isinstance(result, FitResult)
    np.testing.assert_allclose(result.params, [1.0, 2.0, 1.0], atol=1e-6)
    assert result.cost == pytest.approx(0.0, abs=1e-10)


def test_gauss_newton_history_strictly_decreases():
    x, y = generate_curve_data(100, 1.0, (1.0, 2.0, 1.0), 1)
    result = fit_gauss_newton(x, y, (2.0, -1.0, 5.0), 100, 1.0)
    assert result.iterations == len(result.history)
    assert all(b < a for a, b in zip(result.history, result.history[1:]))
    assert result.converged


def test_gauss_newton_iteration_limit():
    x, y = generate_curve_data(100, 1.0, (1.0, 2.0, 1.0), 1)
    result = fit_gauss_newton(x, y, (2.0, -1.0, 5.0), 2, 1.0)
    assert result.iterations <= 2


def test_least_squares_recovers_noise_free_parameters():
    x, y = generate_curve_data(100, 0.0, (1.0, 2.0, 1.0), 0)
    result = fit_least_squares(x, y, (2.0, -1.0, 5.0))
    np.testing.assert_allclose(result.params, [1.0, 2.0, 1.0], atol=1e-6)
    assert result.converged


def test_methods_agree_on_noisy_data():
    x, y = generate_curve_data(100, 1.0, (1.0, 2.0, 1.0), 0)
    gn = fit_gauss_newton(x, y, (2.0, -1.0, 5.0), 100, 1.0)
    lm = fit_least_squares(x, y, (2.0, -1.0, 5.0))
    np.testing.assert_allclose(gn.params, lm.params, atol=1e-4)
    assert gn.cost == pytest.approx(lm.cost, rel=1e-6)


def test_mismatched_lengths_raise():
    with pytest.raises(ValueError):
        fit_gauss_newton([0.0, 0.1], [1.0], (2.0, -1.0, 5.0), 10, 1.0)
    with pytest.raises(ValueError):
        fit_least_squares([0.0, 0.1], [1.0], (2.0, -1.0, 5.0))


def test_main_prints_estimate(capsys):
    assert main(["--method", "least-squares", "--seed", "3"]) == 0
    out = capsys.readouterr().out
    assert "estimated abc = " in out
    assert "solve time cost" in out