# mcmc_jax/inference/particle/resampling.py
"""
Resampling utilities for particle-based inference methods.

This module provides core resampling operations:
  - categorical: one draw proportional to unnormalised weights
  - multinomial_resample / systematic_resample: ancestor indices for SMC
  - effective_sample_size: ESS of a set of log weights

Resamplers share the signature (key, logw, n_particles) -> indices and are
looked up by name through `get_resampler`. Systematic resampling is the
default for IPMCMC's child nodes.
"""
from __future__ import annotations

from typing import Callable, Dict, Union

import jax
import jax.numpy as jnp
from jax import random
from jax.scipy.special import logsumexp

from ...core.errors import InvalidConfiguration, ResamplingDegenerate

Resampler = Callable[[jax.Array, jnp.ndarray, int], jnp.ndarray]


def categorical(key, weights) -> int:
    """
    Draw one index with probability proportional to `weights`.

    Weights need not be normalised, but must be finite, non-negative and
    not all zero. Anything else raises ResamplingDegenerate rather than
    silently falling back to a default index.
    """
    weights = jnp.asarray(weights, dtype=jnp.float32)
    if weights.ndim != 1 or weights.shape[0] == 0:
        raise ResamplingDegenerate(f"Expected a non-empty weight vector, got shape {weights.shape}")
    if not bool(jnp.all(jnp.isfinite(weights))):
        raise ResamplingDegenerate(f"Non-finite categorical weights: {weights.tolist()}")
    if bool(jnp.any(weights < 0)):
        raise ResamplingDegenerate(f"Negative categorical weights: {weights.tolist()}")
    total = jnp.sum(weights)
    if not bool(total > 0):
        raise ResamplingDegenerate("All categorical weights are zero")
    return int(random.choice(key, weights.shape[0], p=weights / total))


def multinomial_resample(key, logw, n_particles):
    """
    Multinomial resampling of particles based on log weights.

    Args:
        key: PRNG key
        logw: Log weights (P,)
        n_particles: Number of particles

    Returns:
        indices: Resampling indices (n_particles,)
    """
    w = jnp.exp(logw - logsumexp(logw))
    indices = random.choice(key, w.shape[0], shape=(n_particles,), p=w, replace=True)
    return indices


def systematic_resample(key, logw, n_particles):
    """
    Systematic resampling: one uniform offset shared by n_particles evenly
    spaced points on the weight CDF.

    Args:
        key: PRNG key
        logw: Log weights (P,)
        n_particles: Number of particles

    Returns:
        indices: Resampling indices (n_particles,), non-decreasing
    """
    w = jnp.exp(logw - logsumexp(logw))
    u = (random.uniform(key) + jnp.arange(n_particles)) / n_particles
    cdf = jnp.cumsum(w)
    indices = jnp.searchsorted(cdf, u, side="right")
    return jnp.clip(indices, 0, w.shape[0] - 1)


def effective_sample_size(logw):
    """
    Compute effective sample size (ESS) from log weights.

    ESS = 1 / sum(w^2), where w are normalized weights.

    Args:
        logw: Log weights (P,)

    Returns:
        ess: Effective sample size (scalar)
    """
    w = jnp.exp(logw - logsumexp(logw))
    return 1.0 / jnp.sum(w ** 2)


RESAMPLERS: Dict[str, Resampler] = {
    "systematic": systematic_resample,
    "multinomial": multinomial_resample,
}


def get_resampler(resampler: Union[str, Resampler]) -> Resampler:
    """Look up a resampler by name; callables are returned unchanged."""
    if callable(resampler):
        return resampler
    try:
        return RESAMPLERS[resampler]
    except KeyError:
        raise InvalidConfiguration(
            f"Unknown resampler: {resampler!r}. Use one of {sorted(RESAMPLERS)} or a callable"
        ) from None
