import numpy as np
import pytest

from clients.local_train import init_state
from metrics.convergence import (
    RoundMetrics,
    compute_convergence_summary,
    dual_residual,
    primal_residual,
    residual_tolerances,
)
from metrics.utility import binary_classification_metrics
from server.partitions import PartitionedData


def test_binary_metrics_on_signed_labels():
    y_true = np.array([1, 1, -1, -1, 1])
    y_pred = np.array([1, -1, -1, 1, 1])
    m = binary_classification_metrics(y_true, y_pred)
    assert m.accuracy == pytest.approx(3 / 5)
    assert m.precision == pytest.approx(2 / 3)
    assert m.recall == pytest.approx(2 / 3)
    assert m.f1 == pytest.approx(2 / 3)


def test_binary_metrics_no_positive_predictions():
    m = binary_classification_metrics(np.array([1, -1]), np.array([-1, -1]))
    assert m.precision == 0.0
    assert m.f1 == 0.0


def _states():
    feats = np.ones((1, 2))
    z = np.array([1.0, 1.0])
    return PartitionedData([
        init_state(feats, np.ones(1), x0=np.array([2.0, 1.0]), z0=z, u0=np.array([1.0, 0.0])),
        init_state(feats, np.ones(1), x0=np.array([1.0, 3.0]), z0=z, u0=np.array([0.0, 2.0])),
    ])


def test_residuals():
    states = _states()
    # ||(1, 0, 0, 2)|| = sqrt(5)
    assert primal_residual(states) == pytest.approx(np.sqrt(5.0))
    assert dual_residual(np.array([1.0, 1.0]), np.array([1.0, 0.0]), rho=2.0, n_partitions=4) == pytest.approx(4.0)


def test_residual_tolerances():
    eps_pri, eps_dual = residual_tolerances(_states(), rho=1.0, abs_tol=0.0, rel_tol=1.0)
    x_norm = np.sqrt(4.0 + 1.0 + 1.0 + 9.0)
    z_norm = np.sqrt(2.0) * np.sqrt(2.0)
    assert eps_pri == pytest.approx(max(x_norm, z_norm))
    assert eps_dual == pytest.approx(np.sqrt(5.0))


def test_summary():
    history = [
        RoundMetrics(1, 10.0, 1.0, 2.0, 3, 0.5),
        RoundMetrics(2, 8.0, 0.05, 0.2, 2, 0.25),
        RoundMetrics(3, 7.5, 0.01, 0.01, 2, 0.25),
    ]
    s = compute_convergence_summary(history, residual_tol=0.05)
    assert s.total_rounds == 3
    assert s.total_wall_time_s == pytest.approx(1.0)
    assert s.initial_objective == 10.0
    assert s.final_objective == 7.5
    assert s.final_nnz == 2
    assert s.rounds_to_tolerance == 3
    assert compute_convergence_summary(history).rounds_to_tolerance == -1


def test_summary_empty():
    s = compute_convergence_summary([])
    assert s.total_rounds == 0
    assert s.rounds_to_tolerance == -1
