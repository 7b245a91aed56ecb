# mcmc_jax/density/gradient.py
"""
Gradient oracle for latent vectors.

Kernels work on flat latent vectors; the oracle writes the vector back into
the Latents container, evaluates the model log-density (including the
log-Jacobian of any linked variables) and differentiates with JAX.

The compiled functions are cached per (model, selector) and take the Latents
container as a pytree argument, so repeated steps reuse one compilation. The
callables returned by `log_density_fn` / `value_and_grad_fn` are
`jax.tree_util.Partial`s and can be passed into jitted code.
"""
from __future__ import annotations

import functools
import logging
from typing import FrozenSet, Iterable, Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import Partial

from ..core.errors import InvalidGradient
from ..core.latents import Latents
from .base import LogDensity

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=128)
def _compiled(model: LogDensity, selector: FrozenSet[str]):
    def logp_fn(latents, theta):
        return latents.set(selector, theta).log_density(model)

    return jax.jit(logp_fn), jax.jit(jax.value_and_grad(logp_fn, argnums=1))


def verify_grad(grad: jnp.ndarray, logp: jnp.ndarray = None) -> None:
    """Raise InvalidGradient if the gradient (or log-density) has non-finite entries."""
    if logp is not None and not bool(jnp.isfinite(logp)):
        raise InvalidGradient(f"Log-density is not finite: {logp}")
    if not bool(jnp.all(jnp.isfinite(grad))):
        bad = jnp.flatnonzero(~jnp.isfinite(grad))
        raise InvalidGradient(f"Gradient has non-finite entries at indices {bad.tolist()}")


def log_density_fn(latents: Latents, model: LogDensity, selector: Iterable[str] = ()) -> Partial:
    """Return theta -> log-density with every other variable held at its current value."""
    logp_fn, _ = _compiled(model, frozenset(selector))
    return Partial(logp_fn, latents)


def value_and_grad_fn(latents: Latents, model: LogDensity, selector: Iterable[str] = ()) -> Partial:
    """Return theta -> (log-density, gradient); no finiteness check, safe to trace."""
    _, value_and_grad = _compiled(model, frozenset(selector))
    return Partial(value_and_grad, latents)


def gradient_logp(
    theta: jnp.ndarray,
    latents: Latents,
    model: LogDensity,
    selector: Iterable[str] = (),
) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """
    Log-density and its gradient at `theta`.

    Args:
        theta: Flat vector of the selected variables
        latents: Container supplying the remaining variables and transforms
        model: LogDensity of the model (must be hashable, as functions are)
        selector: Restriction set (empty means all variables)

    Returns:
        (logp, grad) with grad of the same shape as theta

    Raises:
        InvalidGradient: if evaluation raises an arithmetic or value error
            (e.g. a math domain error, or a NaN caught under jax_debug_nans),
            or yields non-finite values. Other exceptions (TypeError,
            KeyError, ...) are programming errors and propagate unchanged.
    """
    try:
        logp, grad = value_and_grad_fn(latents, model, selector)(theta)
    except (ArithmeticError, ValueError) as exc:
        raise InvalidGradient(f"Gradient evaluation failed: {exc}") from exc
    verify_grad(grad, logp)
    logger.debug("gradient_logp: logp=%s |grad|=%s", logp, jnp.linalg.norm(grad))
    return logp, grad
