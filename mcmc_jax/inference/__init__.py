# mcmc_jax/inference/__init__.py
from __future__ import annotations

"""
Inference layer (transition kernels).

Each kernel is an InferenceMethod with an immutable <Name>CFG and a typed
per-chain run state. Single-chain kernels are driven by `samples.drive`
through the two-phase `transition` state machine in `base`; IPMCMC drives a
population of particle-filter nodes through the same machine.
"""

from .base import InferenceMethod, TransitionKernel, Phase, ChainState, transition, resolve_space
from .samples import SampleCollection, ChainRun, drive
from .sampling import (
    SGHMC, SGHMCCFG,
    SGLD, SGLDCFG,
    HMCDA, HMCDACFG, hmc_step,
)
from .particle import (
    IPMCMC, IPMCMCCFG, IPMCMCRun,
    SMCCFG, CSMCCFG, ParticleSweep,
)

__all__ = [
    "InferenceMethod", "TransitionKernel", "Phase", "ChainState", "transition", "resolve_space",
    "SampleCollection", "ChainRun", "drive",
    "SGHMC", "SGHMCCFG",
    "SGLD", "SGLDCFG",
    "HMCDA", "HMCDACFG", "hmc_step",
    "IPMCMC", "IPMCMCCFG", "IPMCMCRun",
    "SMCCFG", "CSMCCFG", "ParticleSweep",
]
