# mcmc_jax/inference/sampling/adaptation.py
"""
Step-size adaptors.

  - ManualStepSize: a step size set from outside (SGLD's annealing schedule)
  - DualAveraging: Nesterov dual averaging towards a target acceptance rate
    (Hoffman & Gelman, 2014, Algorithm 5)
  - find_good_step_size: initial step-size heuristic (Algorithm 4)

Adaptors are small mutable host-side objects owned by one chain's run state.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable

import jax.numpy as jnp

from ...core.typing import GradientOracle, MomentumSampler, PRNGKey
from .leapfrog import leapfrog

logger = logging.getLogger(__name__)


@dataclass
class ManualStepSize:
    """Step size controlled entirely by the caller."""
    step_size: float

    def set(self, step_size: float) -> None:
        self.step_size = float(step_size)


@dataclass
class DualAveraging:
    """
    Dual-averaging step-size adaptation.

    After `adapt` has been called m times the exploring step size is
        log eps_m = mu - sqrt(m) / gamma * H_m,
    with H_m the running average of (delta - alpha_i) shrunk by t0, and the
    averaged iterate log eps_bar_m is a polynomially weighted (kappa) mean of
    log eps_1..m. `finalize` freezes the step size at eps_bar.
    """
    initial_step_size: float
    delta: float = 0.65
    gamma: float = 0.05
    t0: float = 10.0
    kappa: float = 0.75
    step_size: float = field(init=False)
    mu: float = field(init=False)
    m: int = field(init=False, default=0)
    h_bar: float = field(init=False, default=0.0)
    log_step_size_bar: float = field(init=False, default=0.0)
    finalized: bool = field(init=False, default=False)

    def __post_init__(self):
        self.step_size = float(self.initial_step_size)
        self.mu = math.log(10.0 * self.initial_step_size)

    def adapt(self, accept_prob: float) -> float:
        """Update from one acceptance probability; returns the new step size."""
        if self.finalized:
            return self.step_size
        alpha = min(1.0, float(accept_prob))
        self.m += 1
        eta = 1.0 / (self.m + self.t0)
        self.h_bar = (1.0 - eta) * self.h_bar + eta * (self.delta - alpha)
        log_step_size = self.mu - math.sqrt(self.m) / self.gamma * self.h_bar
        weight = self.m ** (-self.kappa)
        self.log_step_size_bar = weight * log_step_size + (1.0 - weight) * self.log_step_size_bar
        self.step_size = math.exp(log_step_size)
        logger.debug(
            "dual averaging: m=%d alpha=%.3f eps=%.4g eps_bar=%.4g",
            self.m, alpha, self.step_size, math.exp(self.log_step_size_bar),
        )
        return self.step_size

    def finalize(self) -> float:
        """Stop adapting and fix the step size at the averaged iterate."""
        if self.m > 0:
            self.step_size = math.exp(self.log_step_size_bar)
        self.finalized = True
        logger.debug("dual averaging finalized at eps=%.4g", self.step_size)
        return self.step_size


def find_good_step_size(
    theta: jnp.ndarray,
    lj: jnp.ndarray,
    lj_func: Callable[[jnp.ndarray], jnp.ndarray],
    grad_func: GradientOracle,
    H_func: Callable[[jnp.ndarray, jnp.ndarray, jnp.ndarray], jnp.ndarray],
    momentum_sampler: MomentumSampler,
    *,
    key: PRNGKey,
    step_size: float = 1.0,
    max_iters: int = 100,
) -> float:
    """
    Heuristic initial step size.

    Doubles (or halves) eps until the acceptance probability of a single
    leapfrog step crosses 0.5. One momentum draw is shared by every trial
    step size. Non-finite trial energies count as zero acceptance, so
    `grad_func` here should not raise on them.
    """
    p = momentum_sampler(key)
    H0 = H_func(theta, p, lj)
    _, grad = grad_func(theta)

    def log_accept(eps):
        theta_new, p_new, _ = leapfrog(theta, p, grad, eps, 1, grad_func)
        H_new = H_func(theta_new, p_new, lj_func(theta_new))
        log_a = H0 - H_new
        return float(log_a) if bool(jnp.isfinite(log_a)) else -math.inf

    eps = float(step_size)
    log_a = log_accept(eps)
    direction = 1.0 if log_a > math.log(0.5) else -1.0
    for _ in range(max_iters):
        # stop once the acceptance crosses 0.5 in the chosen direction
        if direction * log_a <= -direction * math.log(2.0):
            break
        eps = eps * 2.0 ** direction
        log_a = log_accept(eps)
    logger.debug("find_good_step_size: eps=%.4g", eps)
    return eps
