import jax.numpy as jnp
import pytest
from jax import random

from mcmc_jax.core import Latents, InvalidConfiguration, InvalidGradient
from mcmc_jax.inference import ChainState, Phase, SampleCollection, resolve_space, transition
from mcmc_jax.inference.sampling import SGHMC, SGHMCCFG, SGHMCState


def _normal(values):
    return -0.5 * jnp.sum(values["x"] ** 2)


def test_transition_state_machine():
    kernel = SGHMC(SGHMCCFG(learning_rate=0.1))
    chain = ChainState()
    lat = Latents.from_dict({"x": jnp.ones(2)})
    assert chain.phase is Phase.UNINITIALIZED

    lat, accepted = transition(kernel, _normal, lat, chain, key=random.PRNGKey(0))
    assert accepted
    assert chain.phase is Phase.RUNNING
    assert isinstance(chain.run_state, SGHMCState)
    assert chain.iteration == 1

    transition(kernel, _normal, lat, chain, key=random.PRNGKey(1))
    assert chain.phase is Phase.RUNNING
    assert chain.iteration == 2


def test_failed_step_leaves_chain_untouched():
    kernel = SGHMC(SGHMCCFG())
    chain = ChainState()
    lat = Latents.from_dict({"x": -jnp.ones(1)})
    transition(kernel, _normal, lat, chain, key=random.PRNGKey(0))
    run_state = chain.run_state
    with pytest.raises(InvalidGradient):
        transition(kernel, lambda v: jnp.sum(jnp.log(v["x"])), lat, chain, key=random.PRNGKey(1))
    assert chain.iteration == 1
    assert chain.run_state is run_state


def test_resolve_space():
    assert resolve_space("m") == frozenset({"m"})
    assert resolve_space(None) == frozenset()
    assert resolve_space(["m", "s", "m"]) == frozenset({"m", "s"})
    with pytest.raises(InvalidConfiguration):
        resolve_space([1])


def test_sample_collection():
    lat = Latents.from_dict({"x": jnp.zeros(2)})
    samples = SampleCollection(2, lat)
    samples.append(0.25, lat)
    samples.append(0.75, lat.set((), jnp.array([4.0, 8.0])))
    assert len(samples) == 2
    assert samples.values["x"].shape == (2, 2)
    assert jnp.allclose(samples.mean()["x"], jnp.array([3.0, 6.0]))
    with pytest.raises(IndexError):
        samples.append(0.0, lat)
