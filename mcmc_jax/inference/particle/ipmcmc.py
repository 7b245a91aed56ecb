# mcmc_jax/inference/particle/ipmcmc.py
"""
Interacting Particle Markov Chain Monte Carlo (IPMCMC).

Rainforth, T., Naesseth, C. A., Lindsten, F., Paige, B., van de Meent, J.-W.,
Doucet, A., & Wood, F. (2016). Interacting Particle Markov Chain Monte Carlo.
ICML. https://arxiv.org/abs/1602.05128

A population of n_nodes particle filters runs every iteration: the nodes in
the first n_csmc_nodes slots run conditional SMC (each retaining one path),
the others run plain SMC. After all sweeps, each conditional slot j in turn
draws, among the unconditional nodes and itself, which node becomes
conditional, with probability proportional to the sweeps' marginal-likelihood
estimates. The retained paths of the conditional slots are the samples.

Node data lives in an arena indexed by stable node IDs; only a slot -> node ID
permutation changes when roles are swapped.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import FrozenSet, List, Tuple, Union

import jax.numpy as jnp
import numpy as np
from jax import random

from ...core.errors import InvalidConfiguration, InvalidGradient
from ...core.latents import Latents
from ...core.typing import PRNGKey
from ...density.base import LogDensity
from ..base import ChainState, InferenceMethod, require, resolve_space, transition
from ..samples import SampleCollection, iter_steps
from .resampling import Resampler, categorical, get_resampler
from .smc import CSMCCFG, NodeCFG, ParticleSweep, SMCCFG

logger = logging.getLogger(__name__)

DEFAULT_N_NODES = 32
DEFAULT_N_CSMC_NODES = 16


@dataclass(frozen=True)
class IPMCMCCFG:
    """Configuration for IPMCMC."""
    n_particles: int = 100  # particles per node
    n_iters: int = 100
    n_nodes: int = DEFAULT_N_NODES  # nodes running SMC and CSMC
    n_csmc_nodes: int = DEFAULT_N_CSMC_NODES  # nodes running CSMC
    resampler: Union[str, Resampler] = "systematic"
    space: FrozenSet[str] = field(default_factory=frozenset)  # empty means all variables
    verbose: bool = False

    def __post_init__(self):
        object.__setattr__(self, "space", resolve_space(self.space))
        object.__setattr__(self, "resampler", get_resampler(self.resampler))
        require(self.n_particles > 0, f"n_particles must be positive, got {self.n_particles}")
        require(self.n_iters > 0, f"n_iters must be positive, got {self.n_iters}")
        require(self.n_nodes > 0, f"n_nodes must be positive, got {self.n_nodes}")
        require(
            0 < self.n_csmc_nodes <= self.n_nodes,
            f"n_csmc_nodes must lie in (0, n_nodes={self.n_nodes}], got {self.n_csmc_nodes}",
        )

    @classmethod
    def from_args(cls, *args) -> "IPMCMCCFG":
        """
        Parse the positional constructor forms:

            IPMCMC(n_particles, n_iters)                          # 32 nodes, 16 CSMC
            IPMCMC(n_particles, n_iters, n_nodes)                 # ceil(n_nodes / 2) CSMC
            IPMCMC(n_particles, n_iters, n_nodes, n_csmc_nodes, space...)
        """
        split = next((i for i, a in enumerate(args) if isinstance(a, str)), len(args))
        numeric, space = args[:split], args[split:]
        if not all(isinstance(s, str) for s in space):
            raise InvalidConfiguration("Restriction-set names must follow all numeric arguments")
        if space and len(numeric) != 4:
            raise InvalidConfiguration("A restriction set requires all four numeric arguments")
        if len(numeric) == 2:
            n_particles, n_iters = numeric
            n_nodes, n_csmc_nodes = DEFAULT_N_NODES, DEFAULT_N_CSMC_NODES
        elif len(numeric) == 3:
            n_particles, n_iters, n_nodes = numeric
            n_csmc_nodes = int(math.ceil(n_nodes / 2))
        elif len(numeric) == 4:
            n_particles, n_iters, n_nodes, n_csmc_nodes = numeric
        else:
            raise InvalidConfiguration(
                f"IPMCMC expects (n_particles, n_iters, [n_nodes, [n_csmc_nodes, space...]]), got {args!r}"
            )
        return cls(
            n_particles=n_particles,
            n_iters=n_iters,
            n_nodes=n_nodes,
            n_csmc_nodes=n_csmc_nodes,
            space=space,
        )

    @property
    def n_samples(self) -> int:
        return self.n_iters * self.n_csmc_nodes

    def child_configs(self) -> Tuple[NodeCFG, ...]:
        """
        Per-slot child configurations: CSMC for the first n_csmc_nodes slots,
        SMC with resampling at every step (threshold 1.0) for the rest.
        Adaptive resampling is not valid inside IPMCMC.
        """
        csmc = CSMCCFG(self.n_particles, 1, self.resampler, self.space)
        smc = SMCCFG(self.n_particles, self.resampler, 1.0, self.space)
        return tuple(csmc if s < self.n_csmc_nodes else smc for s in range(self.n_nodes))


@dataclass
class Node:
    """One particle filter's latents and its latest log-evidence."""
    node_id: int
    latents: Latents
    log_evidence: float = 0.0


@dataclass
class IPMCMCState:
    """
    Per-chain IPMCMC state.

    nodes: arena indexed by node_id
    permutation: slot -> node_id; slots [0, n_csmc_nodes) are conditional
    """
    nodes: List[Node]
    permutation: np.ndarray
    n_csmc_nodes: int
    iteration: int = 0
    log_z: np.ndarray = None  # last iteration's log-evidence by slot

    def conditional_nodes(self) -> List[Node]:
        return [self.nodes[i] for i in self.permutation[:self.n_csmc_nodes]]


@dataclass
class IPMCMCRun:
    """IPMCMC run results."""
    samples: SampleCollection  # n_iters * n_csmc_nodes samples, uniform weights
    log_evidence_trace: jnp.ndarray  # shape [n_iters, n_nodes], by slot before the role swap
    permutation_trace: np.ndarray  # shape [n_iters, n_nodes], slot -> node_id after the swap
    running_time: float
    final_state: IPMCMCState = None


def select_conditional_nodes(log_z, n_csmc_nodes: int, *, key: PRNGKey) -> np.ndarray:
    """
    Sequentially resample which slots become conditional.

    For each conditional slot j (in order), draw c_j over the currently
    unconditional slots plus j itself, with weights exp(log_z - max). If c_j
    picks an unconditional slot, the two swap roles; later draws see the
    updated unconditional pool.

    Args:
        log_z: Log marginal-likelihood estimates by slot (n_nodes,)
        n_csmc_nodes: Number of conditional slots
        key: PRNG key

    Returns:
        slot order (n_nodes,): conditional slots first, then unconditional ones

    Raises:
        ResamplingDegenerate: if a draw has no usable weight
    """
    log_z = np.asarray(log_z, dtype=np.float64)
    n_nodes = log_z.shape[0]
    conditional = list(range(n_csmc_nodes))
    unconditional = list(range(n_csmc_nodes, n_nodes))
    keys = random.split(key, n_csmc_nodes)

    for j in range(n_csmc_nodes):
        log_ksi = np.concatenate([log_z[unconditional], log_z[j:j + 1]])
        with np.errstate(invalid="ignore"):
            ksi = np.exp(log_ksi - np.max(log_ksi))
        c_j = categorical(keys[j], ksi)
        if c_j < len(log_ksi) - 1:
            logger.debug("IPMCMC: conditional slot %d takes slot %d", j, unconditional[c_j])
            conditional[j] = unconditional[c_j]
            unconditional[c_j] = j

    return np.asarray(conditional + unconditional, dtype=np.int64)


class IPMCMC(InferenceMethod):
    """
    Interacting Particle MCMC.

    Every transition (including the first) runs all node sweeps once and
    resamples the conditional roles; the first transition additionally
    allocates the node arena from the initial latents.

    Args:
        cfg: IPMCMCCFG configuration
        sweep: particle filter used by every node
    """

    def __init__(self, cfg: IPMCMCCFG = IPMCMCCFG(), *, sweep: ParticleSweep):
        self.cfg = cfg
        self.sweep = sweep
        self.children = cfg.child_configs()

    def init_step(self, model: LogDensity, latents: Latents, *, key: PRNGKey) -> Tuple[Latents, IPMCMCState, bool]:
        cfg = self.cfg
        state = IPMCMCState(
            nodes=[Node(node_id=i, latents=latents) for i in range(cfg.n_nodes)],
            permutation=np.arange(cfg.n_nodes),
            n_csmc_nodes=cfg.n_csmc_nodes,
        )
        return self.run_step(model, latents, state, key=key)

    def run_step(
        self, model: LogDensity, latents: Latents, state: IPMCMCState, *, key: PRNGKey
    ) -> Tuple[Latents, IPMCMCState, bool]:
        """
        One IPMCMC iteration. `latents` is unused once the arena exists; the
        returned latents are those of the node in conditional slot 0.
        """
        cfg = self.cfg
        key_sweep, key_select = random.split(key)
        sweep_keys = random.split(key_sweep, cfg.n_nodes)

        log_z = np.empty(cfg.n_nodes, dtype=np.float64)
        updates = []
        for slot in range(cfg.n_nodes):
            node = state.nodes[state.permutation[slot]]
            new_latents, log_evidence = self.sweep(self.children[slot], model, node.latents, key=sweep_keys[slot])
            log_evidence = float(log_evidence)
            if math.isnan(log_evidence) or log_evidence == math.inf:
                raise InvalidGradient(
                    f"Node {node.node_id} (slot {slot}) returned log-evidence {log_evidence}"
                )
            updates.append((node, new_latents, log_evidence))
            log_z[slot] = log_evidence

        slot_order = select_conditional_nodes(log_z, cfg.n_csmc_nodes, key=key_select)

        for node, new_latents, log_evidence in updates:
            node.latents = new_latents
            node.log_evidence = log_evidence
        state.permutation = state.permutation[slot_order]
        state.log_z = log_z
        state.iteration += 1
        logger.debug("IPMCMC: iteration %d permutation %s", state.iteration, state.permutation.tolist())

        return state.nodes[state.permutation[0]].latents, state, True

    def run(self, model: LogDensity, latents_init: Latents, *, key: PRNGKey) -> IPMCMCRun:
        """
        Run IPMCMC sampling.

        Args:
            model: Log-density of the model
            latents_init: Initial latents shared by every node
            key: PRNG key

        Returns:
            IPMCMCRun with n_iters * n_csmc_nodes samples of weight
            1 / (n_iters * n_csmc_nodes)
        """
        cfg = self.cfg
        sample_n = cfg.n_samples
        samples = SampleCollection(sample_n, latents_init)
        weight = 1.0 / sample_n

        chain = ChainState()
        log_z_trace = np.zeros((cfg.n_iters, cfg.n_nodes))
        permutation_trace = np.zeros((cfg.n_iters, cfg.n_nodes), dtype=np.int64)
        time_total = 0.0

        for i in iter_steps(cfg.n_iters, "[IPMCMC] Sampling...", cfg.verbose):
            logger.debug("IPMCMC stepping...")
            key, subkey = random.split(key)
            start = time.perf_counter()
            transition(self, model, latents_init, chain, key=subkey)
            time_total += time.perf_counter() - start

            state = chain.run_state
            # each conditional slot's retained path is a sample
            for node in state.conditional_nodes():
                samples.append(weight, node.latents)
            log_z_trace[i] = state.log_z
            permutation_trace[i] = state.permutation

        logger.info("[IPMCMC] Finished with running time = %.3fs", time_total)
        return IPMCMCRun(
            samples=samples,
            log_evidence_trace=jnp.asarray(log_z_trace),
            permutation_trace=permutation_trace,
            running_time=time_total,
            final_state=chain.run_state,
        )
