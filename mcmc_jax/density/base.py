# mcmc_jax/density/base.py
from __future__ import annotations

from typing import Dict, Protocol, runtime_checkable

import jax.numpy as jnp


@runtime_checkable
class LogDensity(Protocol):
    """
    Protocol for model log-densities.

    Design principles
    -----------------
    - A LogDensity represents the unnormalised log-density of a probabilistic
      model over its latent variables.
    - It MUST be callable on a dict of constrained latent values and return a
      scalar `jnp.ndarray` with shape ().
    - It MUST be differentiable with `jax.grad` in those values and
      traceable by `jax.jit`.
    - It MUST be hashable (plain functions are); compiled gradients are
      cached per model.
    - It MAY be stochastic (e.g. a minibatch estimate) for the stochastic
      gradient kernels, as long as randomness is closed over by the caller.

    Kernels MUST treat a LogDensity as a black box and MUST NOT inspect
    its internal structure.
    """

    def __call__(self, values: Dict[str, jnp.ndarray]) -> jnp.ndarray:
        """
        Compute the log-density.

        Returns
        -------
        jnp.ndarray
            Scalar log-density (shape ()).
        """
        ...
