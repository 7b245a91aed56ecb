"""
mcmc-jax: MCMC transition kernels in JAX.

Stochastic-gradient HMC and Langevin dynamics, HMC with dual averaging, and
interacting particle MCMC over SMC / conditional SMC nodes.
"""
import logging

from .core import Latents, InvalidConfiguration, InvalidGradient, ResamplingDegenerate
from .density import LogDensity
from .inference import (
    SGHMC, SGHMCCFG,
    SGLD, SGLDCFG,
    HMCDA, HMCDACFG,
    IPMCMC, IPMCMCCFG,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"

__all__ = [
    "Latents",
    "LogDensity",
    "InvalidConfiguration",
    "InvalidGradient",
    "ResamplingDegenerate",
    "SGHMC", "SGHMCCFG",
    "SGLD", "SGLDCFG",
    "HMCDA", "HMCDACFG",
    "IPMCMC", "IPMCMCCFG",
]
