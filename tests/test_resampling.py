import jax.numpy as jnp
import pytest
from jax import random

from mcmc_jax.core import InvalidConfiguration, ResamplingDegenerate
from mcmc_jax.inference.particle import (
    categorical,
    effective_sample_size,
    get_resampler,
    multinomial_resample,
    systematic_resample,
)


def test_categorical_respects_zero_weights():
    for seed in range(5):
        assert categorical(random.PRNGKey(seed), [0.0, 0.0, 3.0]) == 2


@pytest.mark.parametrize("weights", [[], [0.0, 0.0], [1.0, float("nan")], [1.0, -0.5], [float("inf"), 1.0]])
def test_categorical_degenerate_weights(weights):
    with pytest.raises(ResamplingDegenerate):
        categorical(random.PRNGKey(0), weights)


def test_systematic_resample_skips_zero_weight_particles():
    logw = jnp.array([0.0, -jnp.inf, 0.0])
    idx = systematic_resample(random.PRNGKey(0), logw, 8)
    assert idx.shape == (8,)
    assert jnp.all(idx != 1)
    assert jnp.all(jnp.diff(idx) >= 0)
    assert jnp.all((idx >= 0) & (idx <= 2))


def test_multinomial_resample_shape():
    idx = multinomial_resample(random.PRNGKey(0), jnp.zeros(4), 10)
    assert idx.shape == (10,)
    assert jnp.all((idx >= 0) & (idx < 4))


def test_effective_sample_size():
    assert float(effective_sample_size(jnp.zeros(5))) == pytest.approx(5.0)
    assert float(effective_sample_size(jnp.array([0.0, -jnp.inf, -jnp.inf]))) == pytest.approx(1.0)


def test_get_resampler():
    assert get_resampler("systematic") is systematic_resample
    assert get_resampler(multinomial_resample) is multinomial_resample
    with pytest.raises(InvalidConfiguration):
        get_resampler("stratified")
