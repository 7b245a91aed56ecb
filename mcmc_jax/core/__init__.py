from .errors import MCMCError, InvalidConfiguration, InvalidGradient, ResamplingDegenerate
from .latents import Latents, Bijector, BIJECTORS, resolve_selector

__all__ = [
    "MCMCError",
    "InvalidConfiguration",
    "InvalidGradient",
    "ResamplingDegenerate",
    "Latents",
    "Bijector",
    "BIJECTORS",
    "resolve_selector",
]
