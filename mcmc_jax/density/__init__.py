from __future__ import annotations

from .base import LogDensity
from .gradient import gradient_logp, log_density_fn, value_and_grad_fn, verify_grad

__all__ = [
    "LogDensity",
    "gradient_logp",
    "log_density_fn",
    "value_and_grad_fn",
    "verify_grad",
]
