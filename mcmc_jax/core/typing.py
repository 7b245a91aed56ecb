# mcmc_jax/core/typing.py
from __future__ import annotations
from typing import Protocol, Tuple

from jax import Array

PRNGKey = Array


class GradientOracle(Protocol):
    """(latent_vector) -> (log_density, gradient_vector)."""

    def __call__(self, theta: Array) -> Tuple[Array, Array]:
        ...


class MomentumSampler(Protocol):
    """(key) -> momentum vector with the dimensionality of the latent vector."""

    def __call__(self, key: PRNGKey) -> Array:
        ...
