def test_imports():
    import mcmc_jax

    from mcmc_jax.core import Latents, InvalidConfiguration, InvalidGradient, ResamplingDegenerate
    from mcmc_jax.density import LogDensity, gradient_logp

    # kernels
    from mcmc_jax.inference.sampling import SGHMC, SGLD, HMCDA
    from mcmc_jax.inference.particle import IPMCMC, SMCCFG, CSMCCFG

    assert issubclass(InvalidConfiguration, ValueError)
    assert mcmc_jax.SGHMC is SGHMC
