# mcmc_jax/inference/base.py
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, FrozenSet, Generic, Iterable, Optional, Protocol, Tuple, TypeVar, Union, runtime_checkable

from ..core.errors import InvalidConfiguration
from ..core.latents import Latents
from ..core.typing import PRNGKey
from ..density.base import LogDensity


RunState = TypeVar("RunState")


@runtime_checkable
class InferenceMethod(Protocol):
    """
    Protocol for inference methods.

    Design principles
    -----------------
    - An InferenceMethod consumes a LogDensity and draws samples from it.
    - It MUST treat the LogDensity as a black box.
    - Its configuration is an immutable <Name>CFG dataclass validated at
      construction time; nothing is validated lazily at first use.

    Canonical contract
    ------------------
    run(model, latents_init, *, key, ...) -> <Name>Run
    """

    def run(self, model: LogDensity, latents_init: Latents, *, key: PRNGKey, **kwargs) -> Any:
        ...


@runtime_checkable
class TransitionKernel(Protocol[RunState]):
    """
    Two-phase transition contract shared by all single-chain kernels.

    init_step allocates the kernel's private run state (and may leave the
    latents unchanged); run_step performs one transition using the state
    produced by the previous step. Both return (latents, run_state, accepted).
    """

    def init_step(
        self, model: LogDensity, latents: Latents, *, key: PRNGKey
    ) -> Tuple[Latents, RunState, bool]:
        ...

    def run_step(
        self, model: LogDensity, latents: Latents, state: RunState, *, key: PRNGKey
    ) -> Tuple[Latents, RunState, bool]:
        ...


class Phase(enum.Enum):
    UNINITIALIZED = "uninitialized"
    RUNNING = "running"


@dataclass
class ChainState(Generic[RunState]):
    """
    Mutable per-chain state. Exactly one exists per active chain and it is
    never shared across chains.
    """
    phase: Phase = Phase.UNINITIALIZED
    run_state: Optional[RunState] = None
    iteration: int = 0


def transition(
    kernel: TransitionKernel,
    model: LogDensity,
    latents: Latents,
    chain: ChainState,
    *,
    key: PRNGKey,
) -> Tuple[Latents, bool]:
    """
    Advance one chain by one step.

    UNINITIALIZED -> RUNNING on the first call (init_step); RUNNING loops on
    run_step afterwards. Errors from the kernel propagate unchanged and leave
    the chain state untouched.
    """
    if chain.phase is Phase.UNINITIALIZED:
        latents, run_state, accepted = kernel.init_step(model, latents, key=key)
        chain.phase = Phase.RUNNING
    else:
        latents, run_state, accepted = kernel.run_step(model, latents, chain.run_state, key=key)
    chain.run_state = run_state
    chain.iteration += 1
    return latents, accepted


def resolve_space(space: Union[str, Iterable[str], None] = ()) -> FrozenSet[str]:
    """
    Normalise a restriction set.

    Accepts a single variable name, an iterable of names, or None. The empty
    set means "update all variables".
    """
    if space is None:
        return frozenset()
    if isinstance(space, str):
        return frozenset([space])
    space = tuple(space)
    for name in space:
        if not isinstance(name, str):
            raise InvalidConfiguration(f"Restriction set entries must be variable names, got {name!r}")
    return frozenset(space)


def require(condition: bool, message: str) -> None:
    """Raise InvalidConfiguration unless `condition` holds."""
    if not condition:
        raise InvalidConfiguration(message)
