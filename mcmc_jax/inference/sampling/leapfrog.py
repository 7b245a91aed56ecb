# mcmc_jax/inference/sampling/leapfrog.py
"""
Leapfrog integration and a single Metropolis-corrected HMC transition.

All functions work on flat latent vectors and a log-density (not an energy):
the potential is U(theta) = -logp(theta) and the Hamiltonian is
    H(theta, p) = -logp(theta) + 0.5 * p^T p.
"""
from __future__ import annotations

import logging
import math
from typing import Callable

import jax
import jax.numpy as jnp
from jax import lax
from jax import random
from jax.tree_util import Partial

from ...core.errors import InvalidGradient
from ...core.typing import GradientOracle, MomentumSampler, PRNGKey

logger = logging.getLogger(__name__)


def kinetic_energy(p):
    """Compute kinetic energy: K(p) = 0.5 * ||p||^2"""
    return 0.5 * jnp.sum(p ** 2)


def hamiltonian(theta, p, lj):
    """H(theta, p) = -logp(theta) + K(p)."""
    return -lj + kinetic_energy(p)


def standard_momentum_sampler(dim: int) -> MomentumSampler:
    """Unit-metric momentum: p ~ N(0, I_dim)."""
    def sample(key):
        return random.normal(key, (dim,))
    return sample


@jax.jit
def _leapfrog(theta, p, grad, step_size, n_steps, grad_func):
    def body_fn(i, val):
        theta, p, grad = val
        p_half = p + 0.5 * step_size * grad
        theta = theta + step_size * p_half
        _, grad = grad_func(theta)
        p = p_half + 0.5 * step_size * grad
        return theta, p, grad
    theta, p, _ = lax.fori_loop(0, n_steps, body_fn, (theta, p, grad))
    return theta, p


def leapfrog(theta, p, grad, step_size, n_steps, grad_func):
    """
    Perform `n_steps` leapfrog steps.

    The trajectory runs in one compiled `lax.fori_loop`; `grad_func` must be
    traceable. Non-finite gradients propagate into the returned state rather
    than raising, so callers check the result once.

    Args:
        theta: Position (flat vector)
        p: Momentum
        grad: Gradient of the log-density at theta
        step_size: Step size (negative to integrate backwards)
        n_steps: Number of leapfrog steps
        grad_func: theta -> (logp, grad)

    Returns:
        (theta_new, p_new, n_completed)
    """
    if not isinstance(grad_func, Partial):
        grad_func = Partial(grad_func)
    theta, p = _leapfrog(theta, p, grad, step_size, n_steps, grad_func)
    return theta, p, n_steps


def hmc_integrate(
    theta: jnp.ndarray,
    lj: jnp.ndarray,
    lj_func: Callable[[jnp.ndarray], jnp.ndarray],
    grad_func: GradientOracle,
    H_func: Callable[[jnp.ndarray, jnp.ndarray, jnp.ndarray], jnp.ndarray],
    step_size: float,
    lambda_: float,
    momentum_sampler: MomentumSampler,
    *,
    key: PRNGKey,
):
    """
    One HMC transition with trajectory length lambda_.

    The number of leapfrog steps is tau = max(1, round(lambda_ / step_size)).

    Returns:
        (theta_new, lj_new, is_accept, tau_valid, accept_prob)

    Raises:
        InvalidGradient: if the proposal's Hamiltonian is not finite
    """
    key_p, key_u = random.split(key)
    tau = max(1, int(round(lambda_ / step_size)))

    p = momentum_sampler(key_p)
    H0 = H_func(theta, p, lj)
    _, grad = grad_func(theta)

    logger.debug("leapfrog: eps=%.4g tau=%d", step_size, tau)
    theta_new, p_new, tau_valid = leapfrog(theta, p, grad, step_size, tau, grad_func)

    lj_new = lj_func(theta_new)
    H_new = H_func(theta_new, p_new, lj_new)
    if not bool(jnp.isfinite(H_new)):
        raise InvalidGradient(f"Hamiltonian is not finite after {tau_valid} leapfrog steps: {H_new}")

    log_accept_ratio = float(H0 - H_new)
    accept_prob = 1.0 if log_accept_ratio >= 0.0 else math.exp(log_accept_ratio)
    is_accept = bool(random.uniform(key_u) < accept_prob)

    if not is_accept:
        theta_new, lj_new = theta, lj
    return theta_new, lj_new, is_accept, tau_valid, accept_prob
