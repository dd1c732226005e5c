import numpy as np
import pytest

from admm_train import ADMMConfig, ADMMOptimizer, fit, run_admm, train, validate_partitions
from clients.local_train import LBFGSConfig
from data.synthetic.generate import GenConfig, generate
from server.partitions import PartitionedData
from server.updater import SparseLogisticUpdater


def _separable_pair():
    return [
        (np.array([[2.0]]), np.array([1.0])),
        (np.array([[-2.0]]), np.array([-1.0])),
    ]


def _random_partitions(seed=0, n_parts=4, n=60, d=5):
    rng = np.random.default_rng(seed)
    w = np.array([1.5, 0.0, -1.0, 0.0, 0.5])[:d]
    parts = []
    for _ in range(n_parts):
        x = rng.normal(size=(n, d))
        y = np.where(rng.uniform(size=n) < 1.0 / (1.0 + np.exp(-(x @ w))), 1.0, -1.0)
        parts.append((x, y))
    return parts


# ---------------------------------------------------------------------------
# End-to-end scenarios
# ---------------------------------------------------------------------------

def test_separable_pair_converges_to_positive_weight():
    result = ADMMOptimizer(ADMMConfig(num_iterations=20, lam=0.0, rho=1.0)).optimize(_separable_pair())
    assert result.weights.shape == (1,)
    assert result.weights[0] > 0

    obj = [m.objective for m in result.history]
    assert len(obj) == 20
    assert all(b < a for a, b in zip(obj[:5], obj[1:6]))


def test_large_lambda_collapses_weights_to_zero():
    result = ADMMOptimizer(ADMMConfig(num_iterations=20, lam=10.0, rho=1.0)).optimize(_separable_pair())
    assert np.all(result.weights == 0.0)
    assert all(m.nnz == 0 for m in result.history)


def test_train_returns_weight_vector():
    w = train(_separable_pair(), num_iterations=5, lam=0.0, rho=1.0)
    assert isinstance(w, np.ndarray)
    assert w.shape == (1,)


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------

def test_deterministic():
    parts = _random_partitions()
    a = train(parts, num_iterations=10, lam=1.0, rho=1.0)
    b = train(parts, num_iterations=10, lam=1.0, rho=1.0)
    np.testing.assert_array_equal(a, b)


def test_thread_pool_matches_serial():
    parts = _random_partitions(seed=4)
    serial = train(parts, num_iterations=8, lam=0.5, rho=1.0, n_workers=1)
    threaded = train(parts, num_iterations=8, lam=0.5, rho=1.0, n_workers=4)
    np.testing.assert_allclose(serial, threaded, rtol=1e-12, atol=1e-12)


def test_dimensions_and_shared_consensus():
    result = ADMMOptimizer(ADMMConfig(num_iterations=6, lam=0.5)).optimize(_random_partitions())
    states = result.states.collect()
    z0 = states[0].z
    for s in states:
        assert s.x.shape == s.z.shape == s.u.shape == (5,)
        np.testing.assert_array_equal(s.z, z0)
    np.testing.assert_array_equal(result.weights, z0)


def test_points_unchanged_by_training():
    parts = _random_partitions()
    copies = [(x.copy(), y.copy()) for x, y in parts]
    result = ADMMOptimizer(ADMMConfig(num_iterations=3)).optimize(parts)
    for (x, y), s in zip(copies, result.states):
        np.testing.assert_array_equal(s.features, x)
        np.testing.assert_array_equal(s.labels, y)


def test_sparsity_increases_with_lambda():
    parts = _random_partitions(seed=5)
    nnz = [
        int(np.count_nonzero(train(parts, num_iterations=30, lam=lam, rho=1.0)))
        for lam in (0.0, 20.0, 1000.0)
    ]
    assert nnz[0] == 5
    assert nnz[0] >= nnz[1] >= nnz[2]
    assert nnz[2] == 0


def test_initial_vectors_are_used():
    cfg = ADMMConfig(num_iterations=1)
    opt = ADMMOptimizer(cfg)
    data = PartitionedData(_random_partitions())
    z0 = np.array([0.1, 0.2, 0.3, 0.4, 0.5])
    states = opt.init_states(data, z0=z0, u0=-z0)
    for s in states:
        np.testing.assert_array_equal(s.z, z0)
        np.testing.assert_array_equal(s.u, -z0)
        np.testing.assert_array_equal(s.x, np.zeros(5))


def test_early_stop_on_residual_tolerance():
    cfg = ADMMConfig(
        num_iterations=500,
        lam=1.0,
        rho=5.0,
        lbfgs=LBFGSConfig(max_iterations=50, tolerance=1e-10),
        abs_tol=1e-2,
        rel_tol=1e-2,
    )
    result = ADMMOptimizer(cfg).optimize(_random_partitions(seed=2))
    assert len(result.history) < 500


# ---------------------------------------------------------------------------
# Validation and failures
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "parts, match",
    [
        ([], "No partitions"),
        ([(np.zeros((0, 2)), np.zeros(0))], "empty"),
        ([(np.ones((2, 2)), np.array([1.0, 0.0]))], "labels must be -1 or \\+1"),
        ([(np.ones((2, 2)), np.array([1.0, -1.0])), (np.ones((2, 3)), np.array([1.0, -1.0]))], "expected 2 features"),
        ([(np.ones((2, 2)), np.array([1.0, -1.0, 1.0]))], "labels of shape"),
        ([(np.array([[1.0, np.nan]]), np.array([1.0]))], "NaN or Inf"),
        ([(np.ones(3), np.ones(3))], "2-D"),
        ([(np.zeros((2, 0)), np.array([1.0, -1.0]))], "zero columns"),
    ],
)
def test_invalid_input_rejected(parts, match):
    with pytest.raises(ValueError, match=match):
        train(parts, num_iterations=1, lam=0.0, rho=1.0)


@pytest.mark.parametrize(
    "parts, match",
    [
        ([(np.ones(3), np.ones(3))], "2-D"),
        ([(np.zeros((2, 0)), np.array([1.0, -1.0]))], "zero columns"),
        ([(np.ones((2, 2)), np.array([1.0, -1.0])), (np.ones((2, 3)), np.array([1.0, -1.0]))], "expected 2 features"),
    ],
)
def test_fit_intercept_validates_before_adding_column(parts, match):
    with pytest.raises(ValueError, match=match):
        fit(parts, ADMMConfig(num_iterations=1, fit_intercept=True))


def test_validate_partitions_returns_dimension():
    assert validate_partitions(PartitionedData(_random_partitions(d=3))) == 3


def test_wrong_initial_shape_rejected():
    with pytest.raises(ValueError, match="Initial z"):
        ADMMOptimizer(ADMMConfig()).optimize(_separable_pair(), z0=np.zeros(2))


@pytest.mark.parametrize(
    "kwargs",
    [
        {"num_iterations": 0},
        {"lam": -1.0},
        {"rho": 0.0},
        {"lam": float("nan")},
        {"lam": float("inf")},
        {"rho": float("nan")},
        {"rho": float("inf")},
        {"abs_tol": 1e-3},
    ],
)
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        ADMMConfig(**kwargs)


@pytest.mark.parametrize("lam, rho", [(float("nan"), 1.0), (0.0, float("inf"))])
def test_train_rejects_non_finite_hyperparameters(lam, rho):
    with pytest.raises(ValueError, match="finite"):
        train(_separable_pair(), num_iterations=3, lam=lam, rho=rho)


class _LosingUpdater(SparseLogisticUpdater):
    def x_update(self, state):
        if state.n_points == 3:
            raise RuntimeError("lost partition")
        return super().x_update(state)


def test_partition_failure_aborts_run():
    parts = _random_partitions(n=10) + [(np.ones((3, 5)), np.ones(3))]
    opt = ADMMOptimizer(ADMMConfig(num_iterations=3), updater=_LosingUpdater(lam=0.0, rho=1.0))
    with pytest.raises(RuntimeError, match="lost partition"):
        opt.optimize(parts)


def test_custom_updater_is_used():
    calls = []

    class _CountingUpdater(SparseLogisticUpdater):
        def z_update(self, states):
            calls.append(states.count())
            return super().z_update(states)

    ADMMOptimizer(ADMMConfig(num_iterations=4), updater=_CountingUpdater(lam=0.0, rho=1.0)).optimize(
        _random_partitions()
    )
    assert calls == [4, 4, 4, 4]


# ---------------------------------------------------------------------------
# Classifier wrapper and CSV pipeline
# ---------------------------------------------------------------------------

def test_fit_with_intercept():
    rng = np.random.default_rng(11)
    parts = []
    for _ in range(3):
        x = rng.normal(size=(80, 1))
        y = np.where(2.0 * x[:, 0] + 1.5 + rng.normal(scale=0.5, size=80) > 0, 1.0, -1.0)
        parts.append((x, y))

    cfg = ADMMConfig(num_iterations=40, lam=0.0, rho=1.0, fit_intercept=True)
    model, result = fit(parts, cfg)
    assert model.weights.shape == (1,)
    assert result.weights.shape == (2,)
    assert model.intercept == result.weights[0]
    assert model.intercept > 0
    assert model.weights[0] > 0

    x_all = np.vstack([p[0] for p in parts])
    y_all = np.concatenate([p[1] for p in parts])
    assert (model.predict(x_all) == y_all).mean() > 0.8


def test_run_admm_from_csv(tmp_path):
    df, _ = generate(GenConfig(n_partitions=3, points_per_partition=60, n_features=6, n_informative=2, seed=3))
    csv = tmp_path / "points.csv"
    df.to_csv(csv, index=False)

    res = run_admm(csv, test_ratio=0.25, cfg=ADMMConfig(num_iterations=5, lam=0.5), seed=0, verbose=False)
    assert res["config"]["n_partitions"] == 3
    assert len(res["per_round"]) == 5
    assert len(res["weights"]) == 6
    assert 0.0 <= res["final"]["accuracy"] <= 1.0
    assert res["_x_test"].shape[0] == len(res["_y_test"]) == 45
