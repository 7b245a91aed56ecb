# mcmc_jax/inference/sampling/sghmc.py
"""
Stochastic Gradient Hamiltonian Monte Carlo (SGHMC).

Implements the update equations (15) of Chen, Fox & Guestrin (2014):

    theta <- theta + v
    v     <- (1 - alpha) * v + eta * grad logp(theta) + N(0, 2 * eta * alpha)

with learning rate eta and momentum decay (friction) alpha. There is no
Metropolis correction: every step is accepted, and the chain is only
asymptotically exact in the small step-size limit.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import FrozenSet, Tuple

import jax
import jax.numpy as jnp
from jax import random

from ...core.latents import Latents
from ...core.typing import PRNGKey
from ...density.base import LogDensity
from ...density.gradient import gradient_logp
from ..base import InferenceMethod, require, resolve_space
from ..samples import ChainRun, drive

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SGHMCCFG:
    """Configuration for SGHMC."""
    n_iters: int = 1000
    learning_rate: float = 1e-2
    momentum_decay: float = 1e-1
    space: FrozenSet[str] = field(default_factory=frozenset)  # empty means all variables
    verbose: bool = False

    def __post_init__(self):
        object.__setattr__(self, "space", resolve_space(self.space))
        require(self.n_iters > 0, f"n_iters must be positive, got {self.n_iters}")
        require(
            math.isfinite(self.learning_rate) and self.learning_rate >= 0.0,
            f"learning_rate must be finite and non-negative, got {self.learning_rate}",
        )
        require(
            math.isfinite(self.momentum_decay) and 0.0 <= self.momentum_decay <= 1.0,
            f"momentum_decay must lie in [0, 1], got {self.momentum_decay}",
        )

    @classmethod
    def from_args(cls, n_iters: int, learning_rate: float, momentum_decay: float, *space: str) -> "SGHMCCFG":
        """SGHMC(n_iters, learning_rate, momentum_decay, space...)"""
        return cls(n_iters=n_iters, learning_rate=learning_rate, momentum_decay=momentum_decay, space=space)


@dataclass
class SGHMCState:
    """Per-chain SGHMC state."""
    velocity: jnp.ndarray  # same dimensionality as the updated latent vector


@jax.jit
def _sghmc_update(theta, v, grad, key, eta, alpha):
    theta = theta + v
    noise = jnp.sqrt(2.0 * eta * alpha) * random.normal(key, v.shape, dtype=v.dtype)
    v = (1.0 - alpha) * v + eta * grad + noise
    return theta, v


class SGHMC(InferenceMethod):
    """
    Stochastic Gradient Hamiltonian Monte Carlo.

    Velocity is carried across steps in the chain's SGHMCState, which gives
    the HMC-like persistence of the updates.
    """

    def __init__(self, cfg: SGHMCCFG = SGHMCCFG()):
        self.cfg = cfg

    def init_step(self, model: LogDensity, latents: Latents, *, key: PRNGKey) -> Tuple[Latents, SGHMCState, bool]:
        """Allocate a zero velocity; the latents are not moved."""
        dim = latents.dim(self.cfg.space)
        logger.debug("SGHMC: initialising velocity of dimension %d", dim)
        return latents, SGHMCState(velocity=jnp.zeros(dim)), True

    def run_step(
        self, model: LogDensity, latents: Latents, state: SGHMCState, *, key: PRNGKey
    ) -> Tuple[Latents, SGHMCState, bool]:
        cfg = self.cfg
        space = cfg.space

        logger.debug("SGHMC: X -> R...")
        latents = latents.link(space)

        theta, v = latents.get(space), state.velocity
        logp, grad = gradient_logp(theta, latents, model, space)

        logger.debug("SGHMC: update latent variables and velocity...")
        theta, v = _sghmc_update(theta, v, grad, key, cfg.learning_rate, cfg.momentum_decay)

        latents = latents.set(space, theta).with_logp(logp)
        logger.debug("SGHMC: R -> X...")
        latents = latents.invlink(space)
        return latents, SGHMCState(velocity=v), True

    def run(self, model: LogDensity, latents_init: Latents, *, key: PRNGKey) -> ChainRun:
        """
        Run SGHMC sampling.

        Args:
            model: Log-density to sample from
            latents_init: Initial latent state
            key: PRNG key

        Returns:
            ChainRun with cfg.n_iters samples (the first is the initial state)
        """
        return drive(
            self, model, latents_init, self.cfg.n_iters,
            key=key, name="SGHMC", verbose=self.cfg.verbose,
        )
