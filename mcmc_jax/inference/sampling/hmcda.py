# mcmc_jax/inference/sampling/hmcda.py
"""
Hamiltonian Monte Carlo with Dual Averaging (HMCDA).

Hoffman, M. D., & Gelman, A. (2014). The No-U-Turn sampler: adaptively
setting path lengths in Hamiltonian Monte Carlo. JMLR 15(1), 1593-1623.

The trajectory length is fixed to a target path length lambda (so the number
of leapfrog steps is round(lambda / eps)), while eps is tuned by dual
averaging towards the target acceptance rate delta during the first
n_adapts iterations and frozen afterwards.
"""
from __future__ import annotations

import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Callable, FrozenSet, Optional, Tuple

import jax.numpy as jnp

from ...core.errors import InvalidConfiguration, InvalidGradient
from ...core.latents import Latents
from ...core.typing import GradientOracle, MomentumSampler, PRNGKey
from ...density.base import LogDensity
from ...density.gradient import log_density_fn, value_and_grad_fn
from ..base import InferenceMethod, require, resolve_space
from ..samples import ChainRun, drive
from .adaptation import DualAveraging, find_good_step_size
from .leapfrog import hamiltonian, hmc_integrate, standard_momentum_sampler

logger = logging.getLogger(__name__)

MAX_DEFAULT_ADAPTS = 1000


def default_n_adapts(n_iters: int) -> int:
    """Half of the iterations, capped at 1000."""
    return min(int(round(n_iters / 2)), MAX_DEFAULT_ADAPTS)


@dataclass(frozen=True)
class HMCDACFG:
    """Configuration for HMCDA."""
    n_iters: int = 1000
    n_adapts: int = 500  # number of iterations with step-size adaptation
    delta: float = 0.65  # target acceptance rate
    lambda_: float = 0.3  # target leapfrog path length
    space: FrozenSet[str] = field(default_factory=frozenset)  # empty means all variables
    init_step_size: Optional[float] = None  # None: heuristic search on the first step
    verbose: bool = False

    def __post_init__(self):
        object.__setattr__(self, "space", resolve_space(self.space))
        require(self.n_iters > 0, f"n_iters must be positive, got {self.n_iters}")
        require(
            isinstance(self.n_adapts, numbers.Integral) and 0 <= self.n_adapts <= self.n_iters,
            f"n_adapts must be an integer in [0, n_iters={self.n_iters}], got {self.n_adapts}",
        )
        require(0.0 < self.delta < 1.0, f"delta must lie in (0, 1), got {self.delta}")
        require(
            math.isfinite(self.lambda_) and self.lambda_ > 0.0,
            f"lambda must be finite and positive, got {self.lambda_}",
        )
        if self.init_step_size is not None:
            require(
                math.isfinite(self.init_step_size) and self.init_step_size > 0.0,
                f"init_step_size must be finite and positive, got {self.init_step_size}",
            )

    @classmethod
    def from_args(cls, *args) -> "HMCDACFG":
        """
        Parse the positional constructor forms:

            HMCDA(n_iters, delta, lambda, space...)
            HMCDA(n_iters, n_adapts, delta, lambda, space...)

        The first form uses n_adapts = min(round(n_iters / 2), 1000).
        Trailing variable names form the restriction set.
        """
        split = next((i for i, a in enumerate(args) if isinstance(a, str)), len(args))
        numeric, space = args[:split], args[split:]
        if not all(isinstance(s, str) for s in space):
            raise InvalidConfiguration("Restriction-set names must follow all numeric arguments")
        if len(numeric) == 3:
            n_iters, delta, lambda_ = numeric
            n_adapts = default_n_adapts(n_iters)
        elif len(numeric) == 4:
            n_iters, n_adapts, delta, lambda_ = numeric
        else:
            raise InvalidConfiguration(
                f"HMCDA expects (n_iters, [n_adapts,] delta, lambda, space...), got {args!r}"
            )
        return cls(n_iters=n_iters, n_adapts=n_adapts, delta=delta, lambda_=lambda_, space=space)

    @property
    def n_adapt_steps(self) -> int:
        """
        Number of transitions that adapt the step size. The first of the
        n_iters iterations only initialises the chain, so at most
        n_iters - 1 transitions can adapt; the last of them finalizes.
        """
        return min(self.n_adapts, self.n_iters - 1)


@dataclass
class HMCDAState:
    """Per-chain HMCDA state."""
    adaptor: DualAveraging
    iteration: int = 0
    n_leapfrog: int = 0
    accept_prob: float = 0.0


def hmc_step(
    theta: jnp.ndarray,
    lj: jnp.ndarray,
    lj_func: Callable[[jnp.ndarray], jnp.ndarray],
    grad_func: GradientOracle,
    H_func: Callable[[jnp.ndarray, jnp.ndarray, jnp.ndarray], jnp.ndarray],
    step_size: float,
    cfg: HMCDACFG,
    momentum_sampler: MomentumSampler,
    *,
    key: PRNGKey,
):
    """
    One HMC transition with the configured target path length.

    Returns:
        (theta_new, lj_new, is_accept, tau_valid); the acceptance probability
        computed by the integrator is dropped.
    """
    theta_new, lj_new, is_accept, tau_valid, _ = hmc_integrate(
        theta, lj, lj_func, grad_func, H_func, step_size, cfg.lambda_, momentum_sampler, key=key
    )
    return theta_new, lj_new, is_accept, tau_valid


class HMCDA(InferenceMethod):
    """
    HMC whose step size is adapted by dual averaging.

    Unlike the stochastic-gradient kernels this one is Metropolis-corrected,
    so `accepted` reflects the outcome of the accept/reject test.
    """

    def __init__(self, cfg: HMCDACFG = HMCDACFG()):
        self.cfg = cfg

    def _oracles(self, model: LogDensity, latents: Latents):
        space = self.cfg.space
        return log_density_fn(latents, model, space), value_and_grad_fn(latents, model, space)

    @staticmethod
    def _check_logp(lj):
        if not bool(jnp.isfinite(lj)):
            raise InvalidGradient(f"Log-density is not finite at the current state: {lj}")

    def init_step(self, model: LogDensity, latents: Latents, *, key: PRNGKey) -> Tuple[Latents, HMCDAState, bool]:
        """Pick the initial step size and build the adaptor; the latents are not moved."""
        cfg = self.cfg
        step_size = cfg.init_step_size
        if step_size is None:
            linked = latents.link(cfg.space)
            theta = linked.get(cfg.space)
            lj_func, grad_func = self._oracles(model, linked)
            lj = lj_func(theta)
            self._check_logp(lj)
            step_size = find_good_step_size(
                theta, lj, lj_func, grad_func, hamiltonian,
                standard_momentum_sampler(theta.shape[0]), key=key,
            )
        logger.debug("HMCDA: initial step size %.4g", step_size)
        adaptor = DualAveraging(step_size, delta=cfg.delta)
        if cfg.n_adapt_steps == 0:
            adaptor.finalize()
        return latents, HMCDAState(adaptor=adaptor), True

    def run_step(
        self, model: LogDensity, latents: Latents, state: HMCDAState, *, key: PRNGKey
    ) -> Tuple[Latents, HMCDAState, bool]:
        cfg = self.cfg
        space = cfg.space

        latents = latents.link(space)
        theta = latents.get(space)
        lj_func, grad_func = self._oracles(model, latents)
        lj = lj_func(theta)
        self._check_logp(lj)

        theta_new, lj_new, is_accept, tau_valid, accept_prob = hmc_integrate(
            theta, lj, lj_func, grad_func, hamiltonian,
            state.adaptor.step_size, cfg.lambda_, standard_momentum_sampler(theta.shape[0]),
            key=key,
        )

        iteration = state.iteration + 1
        if iteration <= cfg.n_adapt_steps:
            state.adaptor.adapt(accept_prob)
            if iteration == cfg.n_adapt_steps:
                state.adaptor.finalize()
        state.iteration = iteration
        state.n_leapfrog = tau_valid
        state.accept_prob = accept_prob
        logger.debug(
            "HMCDA: iteration %d accept=%s alpha=%.3f tau=%d", iteration, is_accept, accept_prob, tau_valid
        )

        latents = latents.set(space, theta_new).with_logp(lj_new).invlink(space)
        return latents, state, is_accept

    def run(self, model: LogDensity, latents_init: Latents, *, key: PRNGKey) -> ChainRun:
        """
        Run HMCDA sampling.

        Returns:
            ChainRun; extras holds per-iteration "step_size", "n_leapfrog"
            and "accept_prob"
        """
        return drive(
            self, model, latents_init, self.cfg.n_iters,
            key=key, name="HMCDA", verbose=self.cfg.verbose,
            trace=lambda s: {
                "step_size": s.adaptor.step_size,
                "n_leapfrog": s.n_leapfrog,
                "accept_prob": s.accept_prob,
            },
        )
