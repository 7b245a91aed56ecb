# mcmc_jax/inference/particle/smc.py
"""
Child-node configurations and the particle-sweep contract used by IPMCMC.

The particle filter itself is supplied by the caller through `ParticleSweep`:
a full SMC (or conditional SMC) pass over the model that returns the node's
updated latents (the retained path, for CSMC) and the log marginal-likelihood
estimate of that pass.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import FrozenSet, Protocol, Tuple, Union, runtime_checkable

import jax.numpy as jnp

from ...core.latents import Latents
from ...core.typing import PRNGKey
from ...density.base import LogDensity
from ..base import require, resolve_space
from .resampling import Resampler, get_resampler


@dataclass(frozen=True)
class SMCCFG:
    """Configuration for an (unconditional) SMC node."""
    n_particles: int = 100
    resampler: Union[str, Resampler] = "systematic"
    resampler_threshold: float = 0.5  # resample when ESS < threshold * n_particles
    space: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "space", resolve_space(self.space))
        object.__setattr__(self, "resampler", get_resampler(self.resampler))
        require(self.n_particles > 0, f"n_particles must be positive, got {self.n_particles}")
        require(
            0.0 <= self.resampler_threshold <= 1.0,
            f"resampler_threshold must lie in [0, 1], got {self.resampler_threshold}",
        )

    @property
    def conditional(self) -> bool:
        return False


@dataclass(frozen=True)
class CSMCCFG:
    """Configuration for a conditional SMC node (retains n_retained particle paths)."""
    n_particles: int = 100
    n_retained: int = 1
    resampler: Union[str, Resampler] = "systematic"
    space: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "space", resolve_space(self.space))
        object.__setattr__(self, "resampler", get_resampler(self.resampler))
        require(self.n_particles > 0, f"n_particles must be positive, got {self.n_particles}")
        require(
            0 < self.n_retained <= self.n_particles,
            f"n_retained must lie in [1, n_particles], got {self.n_retained}",
        )

    @property
    def conditional(self) -> bool:
        return True


NodeCFG = Union[SMCCFG, CSMCCFG]


@runtime_checkable
class ParticleSweep(Protocol):
    """
    One full particle-filter pass of a node.

    Implementations MUST draw all randomness from `key`, so that sweeps of
    different nodes are independent and their order does not matter.
    """

    def __call__(
        self, cfg: NodeCFG, model: LogDensity, latents: Latents, *, key: PRNGKey
    ) -> Tuple[Latents, jnp.ndarray]:
        """
        Returns:
            (latents, log_evidence): updated node latents and the log
            marginal-likelihood estimate of this sweep
        """
        ...
