# mcmc_jax/core/latents.py
from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .errors import InvalidConfiguration


@dataclass(frozen=True)
class Bijector:
    """
    Invertible map between a constrained support and R^n.

    forward: constrained -> unconstrained
    inverse: unconstrained -> constrained
    inverse_log_det_jacobian: log |d inverse / dy| summed over elements, evaluated at y
    """
    name: str
    forward: Callable[[jnp.ndarray], jnp.ndarray]
    inverse: Callable[[jnp.ndarray], jnp.ndarray]
    inverse_log_det_jacobian: Callable[[jnp.ndarray], jnp.ndarray]


def _logit(x):
    return jnp.log(x) - jnp.log1p(-x)


BIJECTORS: Dict[str, Bijector] = {
    "identity": Bijector(
        name="identity",
        forward=lambda x: x,
        inverse=lambda y: y,
        inverse_log_det_jacobian=lambda y: jnp.zeros(()),
    ),
    # support (0, inf)
    "log": Bijector(
        name="log",
        forward=jnp.log,
        inverse=jnp.exp,
        inverse_log_det_jacobian=lambda y: jnp.sum(y),
    ),
    # support (0, 1)
    "logit": Bijector(
        name="logit",
        forward=_logit,
        inverse=jax.nn.sigmoid,
        inverse_log_det_jacobian=lambda y: jnp.sum(
            jax.nn.log_sigmoid(y) + jax.nn.log_sigmoid(-y)
        ),
    ),
}


def resolve_selector(names: Tuple[str, ...], selector: Iterable[str] = ()) -> Tuple[str, ...]:
    """
    Resolve a restriction set against the ordered variable names.

    Empty selector means all variables. The result preserves variable order,
    not selector order.
    """
    selector = frozenset(selector)
    if not selector:
        return names
    unknown = selector.difference(names)
    if unknown:
        raise InvalidConfiguration(f"Unknown latent variables in selector: {sorted(unknown)}")
    return tuple(n for n in names if n in selector)


@register_pytree_node_class
@dataclass(frozen=True)
class Latents:
    """
    Latent-variable snapshot of one chain.

    names: variable order (fixed for the lifetime of a chain)
    values: arrays, one per name; linked names hold unconstrained values
    bijectors: name -> key into BIJECTORS
    linked: names currently in unconstrained space
    logp: accumulated log-density of the last evaluation

    Latents is immutable: get/set/link/invlink all return new snapshots.
    """
    names: Tuple[str, ...]
    values: Tuple[jnp.ndarray, ...]
    bijectors: Tuple[str, ...]
    linked: FrozenSet[str] = frozenset()
    logp: jnp.ndarray = 0.0

    @classmethod
    def from_dict(
        cls,
        values: Mapping[str, jnp.ndarray],
        bijectors: Optional[Mapping[str, str]] = None,
    ) -> "Latents":
        bijectors = dict(bijectors or {})
        names = tuple(values.keys())
        for name, bij in bijectors.items():
            if name not in values:
                raise InvalidConfiguration(f"Bijector given for unknown variable '{name}'")
            if bij not in BIJECTORS:
                raise InvalidConfiguration(
                    f"Unknown bijector '{bij}'. Use one of {sorted(BIJECTORS)}"
                )
        return cls(
            names=names,
            values=tuple(jnp.asarray(values[n], dtype=jnp.float32) for n in names),
            bijectors=tuple(bijectors.get(n, "identity") for n in names),
            logp=jnp.zeros(()),
        )

    def tree_flatten(self):
        children = (self.values, self.logp)
        aux = (self.names, self.bijectors, self.linked)
        return children, aux

    @classmethod
    def tree_unflatten(cls, aux, children):
        names, bijectors, linked = aux
        values, logp = children
        return cls(names=names, values=tuple(values), bijectors=bijectors, linked=linked, logp=logp)

    # ------------------------------------------------------------------
    # indexed access
    # ------------------------------------------------------------------
    def _index(self, name: str) -> int:
        return self.names.index(name)

    def __getitem__(self, name: str) -> jnp.ndarray:
        return self.values[self._index(name)]

    def dim(self, selector: Iterable[str] = ()) -> int:
        return sum(int(self[n].size) for n in resolve_selector(self.names, selector))

    def get(self, selector: Iterable[str] = ()) -> jnp.ndarray:
        """Flattened vector of the selected variables, in variable order."""
        selected = resolve_selector(self.names, selector)
        if not selected:
            return jnp.zeros((0,), dtype=jnp.float32)
        return jnp.concatenate([jnp.ravel(self[n]) for n in selected])

    def set(self, selector: Iterable[str], vector: jnp.ndarray) -> "Latents":
        """Write a flattened vector back into the selected variables."""
        selected = resolve_selector(self.names, selector)
        vector = jnp.asarray(vector)
        expected = sum(int(self[n].size) for n in selected)
        if vector.shape != (expected,):
            raise ValueError(f"Expected vector of shape ({expected},), got {vector.shape}")
        values = list(self.values)
        offset = 0
        for n in selected:
            i = self._index(n)
            size = int(values[i].size)
            values[i] = vector[offset:offset + size].reshape(values[i].shape)
            offset += size
        return dataclasses.replace(self, values=tuple(values))

    def with_logp(self, logp) -> "Latents":
        return dataclasses.replace(self, logp=logp)

    # ------------------------------------------------------------------
    # constraint transforms
    # ------------------------------------------------------------------
    def link(self, selector: Iterable[str] = ()) -> "Latents":
        """Map selected variables to unconstrained space (no-op for already linked ones)."""
        selected = [n for n in resolve_selector(self.names, selector) if n not in self.linked]
        values = list(self.values)
        for n in selected:
            i = self._index(n)
            values[i] = BIJECTORS[self.bijectors[i]].forward(values[i])
        return dataclasses.replace(self, values=tuple(values), linked=self.linked | frozenset(selected))

    def invlink(self, selector: Iterable[str] = ()) -> "Latents":
        """Map selected variables back to their constrained support."""
        selected = [n for n in resolve_selector(self.names, selector) if n in self.linked]
        values = list(self.values)
        for n in selected:
            i = self._index(n)
            values[i] = BIJECTORS[self.bijectors[i]].inverse(values[i])
        return dataclasses.replace(self, values=tuple(values), linked=self.linked - frozenset(selected))

    def constrained(self) -> Dict[str, jnp.ndarray]:
        out = {}
        for n, v, b in zip(self.names, self.values, self.bijectors):
            out[n] = BIJECTORS[b].inverse(v) if n in self.linked else v
        return out

    def log_density(self, model: Callable[[Dict[str, jnp.ndarray]], jnp.ndarray]) -> jnp.ndarray:
        """
        Model log-density at the current values.

        Linked variables are mapped back to constrained space and the
        log-Jacobian of the inverse transform is added, so the result is a
        density over the current (partly unconstrained) parameterisation.
        """
        logp = model(self.constrained())
        for n, v, b in zip(self.names, self.values, self.bijectors):
            if n in self.linked:
                logp = logp + BIJECTORS[b].inverse_log_det_jacobian(v)
        return logp
