import jax.numpy as jnp
import pytest

from mcmc_jax.core import Latents, InvalidConfiguration


def _latents():
    return Latents.from_dict(
        {"m": jnp.array([0.5, -1.0]), "s": jnp.array(2.0), "p": jnp.array(0.3)},
        bijectors={"s": "log", "p": "logit"},
    )


def test_get_set_follow_variable_order():
    lat = _latents()
    v = lat.get()
    assert v.shape == (4,)
    assert jnp.allclose(v, jnp.array([0.5, -1.0, 2.0, 0.3]))
    # selector order does not matter, variable order does
    assert jnp.allclose(lat.get(["p", "m"]), jnp.array([0.5, -1.0, 0.3]))

    lat2 = lat.set({"s"}, jnp.array([3.0]))
    assert lat2["s"].shape == ()
    assert float(lat2["s"]) == 3.0
    assert jnp.array_equal(lat2["m"], lat["m"])
    assert lat.dim() == 4
    assert lat.dim({"m"}) == 2


def test_set_rejects_wrong_size():
    with pytest.raises(ValueError):
        _latents().set({"m"}, jnp.zeros(3))


def test_link_invlink_round_trip():
    lat = _latents()
    linked = lat.link({"s", "p"})
    assert linked.linked == frozenset({"s", "p"})
    assert jnp.allclose(linked["s"], jnp.log(2.0))
    back = linked.invlink({"s", "p"})
    assert back.linked == frozenset()
    assert jnp.allclose(back.get(), lat.get(), atol=1e-6)


def test_restricted_link_leaves_other_variables():
    lat = _latents()
    linked = lat.link({"s"})
    assert "p" not in linked.linked
    assert float(linked["p"]) == pytest.approx(0.3)
    assert jnp.allclose(linked.constrained()["s"], 2.0, atol=1e-6)


def test_log_density_adds_inverse_jacobian():
    def model(values):
        return -0.5 * values["s"] ** 2

    lat = Latents.from_dict({"s": 2.0}, {"s": "log"})
    assert float(lat.log_density(model)) == pytest.approx(-2.0)
    linked = lat.link()
    assert float(linked.log_density(model)) == pytest.approx(-2.0 + jnp.log(2.0), abs=1e-5)


def test_unknown_variables_rejected():
    with pytest.raises(InvalidConfiguration):
        _latents().get({"x"})
    with pytest.raises(InvalidConfiguration):
        Latents.from_dict({"x": 1.0}, {"x": "softplus"})
    with pytest.raises(InvalidConfiguration):
        Latents.from_dict({"x": 1.0}, {"y": "log"})
