# mcmc_jax/inference/sampling/sgld.py
"""
Stochastic Gradient Langevin Dynamics (SGLD).

Welling, M., & Teh, Y. W. (2011). Bayesian learning via stochastic gradient
Langevin dynamics. ICML.

Update at iteration i (1-based):

    eps_i = eps / i ** 0.35
    theta <- theta + eps_i * grad logp(theta) / 2 - N(0, eps_i)

The decay exponent 0.35 is fixed (the paper suggests 0.55). Every step is
accepted.
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
from .adaptation import ManualStepSize

logger = logging.getLogger(__name__)

SGLD_DECAY = 0.35


def annealed_step_size(epsilon: float, i: int, gamma: float = SGLD_DECAY) -> float:
    """eps_i = epsilon / i ** gamma, for 1-based iteration i."""
    if i < 1:
        raise ValueError(f"iteration counter is 1-based, got {i}")
    return epsilon / i ** gamma


@dataclass(frozen=True)
class SGLDCFG:
    """Configuration for SGLD."""
    n_iters: int = 1000
    epsilon: float = 0.5  # constant scale factor of the step size
    space: FrozenSet[str] = field(default_factory=frozenset)  # empty means all variables
    verbose: bool = False

    def __post_init__(self):
        object.__setattr__(self, "space", resolve_space(self.space))
        require(self.n_iters > 0, f"n_iters must be positive, got {self.n_iters}")
        require(
            math.isfinite(self.epsilon) and self.epsilon > 0.0,
            f"epsilon must be finite and positive, got {self.epsilon}",
        )

    @classmethod
    def from_args(cls, n_iters: int, epsilon: float, *space: str) -> "SGLDCFG":
        """SGLD(n_iters, epsilon, space...)"""
        return cls(n_iters=n_iters, epsilon=epsilon, space=space)


@dataclass
class SGLDState:
    """Per-chain SGLD state."""
    adaptor: ManualStepSize
    iteration: int = 0


@jax.jit
def _sgld_update(theta, grad, key, step_size):
    noise = jnp.sqrt(step_size) * random.normal(key, theta.shape, dtype=theta.dtype)
    return theta + step_size * grad / 2.0 - noise


class SGLD(InferenceMethod):
    """Stochastic Gradient Langevin Dynamics with an annealed step size."""

    def __init__(self, cfg: SGLDCFG = SGLDCFG()):
        self.cfg = cfg

    def init_step(self, model: LogDensity, latents: Latents, *, key: PRNGKey) -> Tuple[Latents, SGLDState, bool]:
        return latents, SGLDState(adaptor=ManualStepSize(self.cfg.epsilon)), True

    def run_step(
        self, model: LogDensity, latents: Latents, state: SGLDState, *, key: PRNGKey
    ) -> Tuple[Latents, SGLDState, bool]:
        cfg = self.cfg
        space = cfg.space

        iteration = state.iteration + 1
        step_size = annealed_step_size(cfg.epsilon, iteration)
        logger.debug("SGLD: iteration %d, step size %.4g", iteration, step_size)

        latents = latents.link(space)
        theta = latents.get(space)
        logp, grad = gradient_logp(theta, latents, model, space)

        theta = _sgld_update(theta, grad, key, step_size)

        latents = latents.set(space, theta).with_logp(logp).invlink(space)
        state.iteration = iteration
        state.adaptor.set(step_size)
        return latents, state, True

    def run(self, model: LogDensity, latents_init: Latents, *, key: PRNGKey) -> ChainRun:
        """
        Run SGLD sampling.

        Returns:
            ChainRun; extras["step_size"] holds the step size after each iteration
        """
        return drive(
            self, model, latents_init, self.cfg.n_iters,
            key=key, name="SGLD", verbose=self.cfg.verbose,
            trace=lambda s: {"step_size": s.adaptor.step_size},
        )
