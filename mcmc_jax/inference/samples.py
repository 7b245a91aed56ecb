# mcmc_jax/inference/samples.py
"""
Sample collection and the shared outer sampling loop.

A SampleCollection is pre-allocated to its final size (like the stacked
arrays of a jitted sampling loop) and filled append-only. `drive` is the
loop used by the single-chain kernels (SGHMC, SGLD, HMCDA).
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import jax.numpy as jnp
from jax import random
from tqdm.auto import tqdm

from ..core.latents import Latents
from ..core.typing import PRNGKey
from ..density.base import LogDensity
from .base import ChainState, TransitionKernel, transition

logger = logging.getLogger(__name__)


class SampleCollection:
    """
    Append-only, pre-allocated sequence of weighted latent snapshots.

    Values are stored in constrained space, stacked on a leading axis of
    length `capacity`.
    """

    def __init__(self, capacity: int, template: Latents):
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        self.capacity = capacity
        self._size = 0
        constrained = template.constrained()
        self.names = template.names
        self._values = {
            n: jnp.zeros((capacity,) + v.shape, dtype=v.dtype) for n, v in constrained.items()
        }
        self._weights = jnp.zeros(capacity)
        self._logp = jnp.zeros(capacity)

    def __len__(self) -> int:
        return self._size

    def append(self, weight: float, latents: Latents) -> None:
        if self._size >= self.capacity:
            raise IndexError(f"SampleCollection is full (capacity={self.capacity})")
        i = self._size
        for n, v in latents.constrained().items():
            self._values[n] = self._values[n].at[i].set(v)
        self._weights = self._weights.at[i].set(weight)
        self._logp = self._logp.at[i].set(latents.logp)
        self._size += 1

    @property
    def values(self) -> dict:
        """Dict name -> array stacked [len, ...] of the samples appended so far."""
        return {n: v[:self._size] for n, v in self._values.items()}

    @property
    def weights(self) -> jnp.ndarray:
        return self._weights[:self._size]

    @property
    def logp(self) -> jnp.ndarray:
        return self._logp[:self._size]

    def mean(self) -> dict:
        """Weighted posterior mean of every variable."""
        w = self.weights / jnp.sum(self.weights)
        return {n: jnp.tensordot(w, v, axes=1) for n, v in self.values.items()}


@dataclass
class ChainRun:
    """
    Single-chain run results.

    logp_trace holds the log-density each kernel records, not a single
    parameterisation: entry 0 is the initial state's log-density in
    constrained space, later entries are in the space the kernel updated
    (linked variables contribute their log-Jacobian). SGHMC and SGLD record
    the value at the point where the gradient was taken, before the move;
    HMCDA records the value at the accepted point.
    """
    samples: SampleCollection
    accept_rate: float
    logp_trace: jnp.ndarray  # shape [n_iters]
    running_time: float
    final_state: Any = None
    extras: dict = field(default_factory=dict)


def iter_steps(n: int, desc: str, verbose: bool):
    if not verbose:
        return range(n)
    return tqdm(range(n), total=n, desc=desc)


def drive(
    kernel: TransitionKernel,
    model: LogDensity,
    latents_init: Latents,
    n_iters: int,
    *,
    key: PRNGKey,
    name: str,
    trace: Optional[Callable[[Any], Dict[str, Any]]] = None,
    verbose: bool = False,
) -> ChainRun:
    """
    Outer sampling loop for one chain.

    Calls `transition` once per iteration and appends every snapshot with
    uniform weight 1 / n_iters. The first iteration initialises the kernel.
    `trace`, if given, maps the run state after each step to scalars that
    are collected into `ChainRun.extras`.
    """
    samples = SampleCollection(n_iters, latents_init)
    weight = 1.0 / n_iters
    chain = ChainState()
    latents = latents_init.with_logp(latents_init.log_density(model))
    accepts: List[bool] = []
    logp_trace = jnp.zeros(n_iters)
    extras: Dict[str, list] = {}

    start = time.perf_counter()
    for i in iter_steps(n_iters, f"[{name}] Sampling...", verbose):
        logger.debug("%s stepping (iteration %d)...", name, i + 1)
        key, subkey = random.split(key)
        latents, accepted = transition(kernel, model, latents, chain, key=subkey)
        samples.append(weight, latents)
        accepts.append(bool(accepted))
        logp_trace = logp_trace.at[i].set(latents.logp)
        if trace is not None:
            for k, v in trace(chain.run_state).items():
                extras.setdefault(k, []).append(v)
    running_time = time.perf_counter() - start

    logger.info("[%s] Finished with running time = %.3fs", name, running_time)
    return ChainRun(
        samples=samples,
        accept_rate=float(jnp.mean(jnp.asarray(accepts, dtype=jnp.float32))) if accepts else 0.0,
        logp_trace=logp_trace,
        running_time=running_time,
        final_state=chain.run_state,
        extras={k: jnp.asarray(v) for k, v in extras.items()},
    )
