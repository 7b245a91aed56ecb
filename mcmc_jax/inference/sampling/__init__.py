# mcmc_jax/inference/sampling/__init__.py
"""
Gradient-based MCMC transition kernels.

All kernels follow the same two-phase interface:
    kernel.init_step(model, latents, *, key) -> latents, run_state, accepted
    kernel.run_step(model, latents, run_state, *, key) -> latents, run_state, accepted

  - sghmc.py: stochastic gradient HMC (friction + injected noise)
  - sgld.py: stochastic gradient Langevin dynamics (annealed step size)
  - hmcda.py: HMC with dual-averaging step-size adaptation
  - leapfrog.py / adaptation.py: integrator and step-size adaptors
"""
from .sghmc import SGHMC, SGHMCCFG, SGHMCState
from .sgld import SGLD, SGLDCFG, SGLDState, SGLD_DECAY, annealed_step_size
from .hmcda import HMCDA, HMCDACFG, HMCDAState, hmc_step, default_n_adapts
from .leapfrog import hmc_integrate, leapfrog, hamiltonian, kinetic_energy, standard_momentum_sampler
from .adaptation import DualAveraging, ManualStepSize, find_good_step_size

__all__ = [
    "SGHMC", "SGHMCCFG", "SGHMCState",
    "SGLD", "SGLDCFG", "SGLDState", "SGLD_DECAY", "annealed_step_size",
    "HMCDA", "HMCDACFG", "HMCDAState", "hmc_step", "default_n_adapts",
    "hmc_integrate", "leapfrog", "hamiltonian", "kinetic_energy", "standard_momentum_sampler",
    "DualAveraging", "ManualStepSize", "find_good_step_size",
]
