# mcmc_jax/inference/particle/__init__.py
"""
Particle-based inference methods.

This module provides:
  - ipmcmc.py: interacting particle MCMC over SMC / CSMC nodes
  - smc.py: child-node configurations and the ParticleSweep contract
  - resampling.py: categorical draws and particle resamplers
"""
from .ipmcmc import IPMCMC, IPMCMCCFG, IPMCMCRun, IPMCMCState, Node, select_conditional_nodes
from .smc import SMCCFG, CSMCCFG, ParticleSweep
from .resampling import (
    categorical,
    multinomial_resample,
    systematic_resample,
    effective_sample_size,
    get_resampler,
    RESAMPLERS,
)

__all__ = [
    "IPMCMC", "IPMCMCCFG", "IPMCMCRun", "IPMCMCState", "Node", "select_conditional_nodes",
    "SMCCFG", "CSMCCFG", "ParticleSweep",
    "categorical",
    "multinomial_resample",
    "systematic_resample",
    "effective_sample_size",
    "get_resampler",
    "RESAMPLERS",
]
