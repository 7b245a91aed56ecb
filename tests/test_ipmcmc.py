import jax.numpy as jnp
import numpy as np
import pytest
from jax import random

from mcmc_jax.core import Latents, InvalidConfiguration, InvalidGradient, ResamplingDegenerate
from mcmc_jax.inference.particle import (
    CSMCCFG,
    IPMCMC,
    IPMCMCCFG,
    SMCCFG,
    select_conditional_nodes,
)


class _RecordingSweep:
    """Draws fresh latents and returns a fixed log-evidence."""

    def __init__(self, log_evidence=0.0):
        self.log_evidence = log_evidence
        self.calls = []

    def __call__(self, cfg, model, latents, *, key):
        self.calls.append(cfg)
        return latents.set(cfg.space, random.normal(key, (latents.dim(cfg.space),))), self.log_evidence


def _model(values):
    return -0.5 * jnp.sum(values["x"] ** 2)


def _latents():
    return Latents.from_dict({"x": jnp.zeros(1)})


def test_sample_count_and_weights():
    sweep = _RecordingSweep()
    out = IPMCMC(IPMCMCCFG.from_args(10, 5, 4, 2), sweep=sweep).run(_model, _latents(), key=random.PRNGKey(0))
    assert len(out.samples) == 10
    assert out.samples.values["x"].shape == (10, 1)
    assert jnp.allclose(out.samples.weights, 0.1)
    assert float(jnp.sum(out.samples.weights)) == pytest.approx(1.0)
    assert out.log_evidence_trace.shape == (5, 4)
    assert out.permutation_trace.shape == (5, 4)
    for row in out.permutation_trace:
        assert sorted(row.tolist()) == [0, 1, 2, 3]


def test_every_node_swept_each_iteration():
    sweep = _RecordingSweep()
    IPMCMC(IPMCMCCFG.from_args(10, 3, 4, 2), sweep=sweep).run(_model, _latents(), key=random.PRNGKey(0))
    assert len(sweep.calls) == 12
    for i in range(3):
        kinds = [cfg.conditional for cfg in sweep.calls[4 * i:4 * i + 4]]
        assert kinds == [True, True, False, False]


def test_child_configs():
    children = IPMCMCCFG(n_particles=20, n_nodes=4, n_csmc_nodes=1).child_configs()
    assert isinstance(children[0], CSMCCFG)
    assert children[0].n_retained == 1
    assert all(isinstance(c, SMCCFG) and c.resampler_threshold == 1.0 for c in children[1:])
    assert all(c.n_particles == 20 for c in children)


def test_all_nodes_conditional_never_swap():
    out = IPMCMC(IPMCMCCFG.from_args(10, 3, 3, 3), sweep=_RecordingSweep()).run(
        _model, _latents(), key=random.PRNGKey(1)
    )
    assert len(out.samples) == 9
    assert np.array_equal(out.permutation_trace, np.tile(np.arange(3), (3, 1)))
    assert np.array_equal(select_conditional_nodes(np.zeros(3), 3, key=random.PRNGKey(0)), [0, 1, 2])


def test_select_conditional_nodes_follows_log_evidence():
    # the unconditional slot dominates and takes over
    order = select_conditional_nodes(np.array([-1000.0, 0.0]), 1, key=random.PRNGKey(0))
    assert order.tolist() == [1, 0]
    # the conditional slot dominates and keeps its role
    order = select_conditional_nodes(np.array([0.0, -1000.0]), 1, key=random.PRNGKey(0))
    assert order.tolist() == [0, 1]


def test_select_conditional_nodes_updates_pool_sequentially():
    order = select_conditional_nodes(np.array([-1000.0, -1000.0, 0.0]), 2, key=random.PRNGKey(3))
    assert order[0] == 2
    assert sorted(order.tolist()) == [0, 1, 2]


def test_degenerate_weights_raise():
    with pytest.raises(ResamplingDegenerate):
        select_conditional_nodes(np.array([-np.inf, -np.inf]), 1, key=random.PRNGKey(0))
    sweep = _RecordingSweep(log_evidence=-np.inf)
    with pytest.raises(ResamplingDegenerate):
        IPMCMC(IPMCMCCFG.from_args(10, 2, 2, 1), sweep=sweep).run(_model, _latents(), key=random.PRNGKey(0))


def test_nan_log_evidence_raises():
    sweep = _RecordingSweep(log_evidence=float("nan"))
    with pytest.raises(InvalidGradient):
        IPMCMC(IPMCMCCFG.from_args(10, 2, 2, 1), sweep=sweep).run(_model, _latents(), key=random.PRNGKey(0))


def test_from_args_forms():
    cfg = IPMCMCCFG.from_args(100, 50)
    assert (cfg.n_nodes, cfg.n_csmc_nodes) == (32, 16)
    assert IPMCMCCFG.from_args(100, 50, 5).n_csmc_nodes == 3
    cfg = IPMCMCCFG.from_args(100, 50, 4, 2, "x")
    assert cfg.space == frozenset({"x"})
    assert cfg.n_samples == 100
    with pytest.raises(InvalidConfiguration):
        IPMCMCCFG.from_args(100, 50, 4, "x")
    with pytest.raises(InvalidConfiguration):
        IPMCMCCFG.from_args(100)


def test_invalid_node_counts():
    with pytest.raises(InvalidConfiguration):
        IPMCMCCFG(n_nodes=4, n_csmc_nodes=0)
    with pytest.raises(InvalidConfiguration):
        IPMCMCCFG(n_nodes=4, n_csmc_nodes=5)
    with pytest.raises(InvalidConfiguration):
        IPMCMCCFG(n_iters=0)
    with pytest.raises(InvalidConfiguration):
        IPMCMCCFG(resampler="residual")


class _TaggingSweep:
    """CSMC nodes keep their path with negligible evidence; SMC nodes draw the iteration number."""

    def __init__(self, n_nodes):
        self.n_nodes = n_nodes
        self.n_calls = 0

    def __call__(self, cfg, model, latents, *, key):
        iteration = self.n_calls // self.n_nodes
        self.n_calls += 1
        if cfg.conditional:
            return latents, -1000.0
        return latents.set(cfg.space, jnp.array([float(iteration)])), 0.0


def test_samples_come_from_post_swap_conditional_nodes():
    cfg = IPMCMCCFG.from_args(10, 5, 4, 2)
    out = IPMCMC(cfg, sweep=_TaggingSweep(cfg.n_nodes)).run(_model, _latents(), key=random.PRNGKey(2))
    tags = out.samples.values["x"][:, 0]
    assert np.array_equal(np.asarray(tags), np.repeat(np.arange(5.0), 2))
    # every iteration hands both conditional roles to the previous SMC nodes
    for prev, cur in zip(out.permutation_trace[:-1], out.permutation_trace[1:]):
        assert sorted(cur[:2].tolist()) == sorted(prev[2:].tolist())
