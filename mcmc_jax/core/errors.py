# mcmc_jax/core/errors.py
"""
Error taxonomy for MCMC kernels.

  - InvalidConfiguration: raised at construction time, never retried.
  - InvalidGradient: non-finite gradient / log-density, fatal to the current step.
  - ResamplingDegenerate: a categorical draw has no usable weight.

Recovery (e.g. shrinking a step size after a failure) is caller-level policy.
"""
from __future__ import annotations


class MCMCError(Exception):
    """Base class for all errors raised by mcmc_jax."""


class InvalidConfiguration(MCMCError, ValueError):
    """Kernel configuration is malformed or internally inconsistent."""


class InvalidGradient(MCMCError, FloatingPointError):
    """Gradient or log-density evaluation produced a non-finite value."""


class ResamplingDegenerate(MCMCError, ValueError):
    """All candidate weights are zero, or some are non-finite."""
