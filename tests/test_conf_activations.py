import dataclasses

import numpy as np
import pytest

from tinyconv.activations import ACTIVATIONS, get_activation
from tinyconv.conf import LayerConf


def test_kernel_size_int_is_expanded():
    conf = LayerConf(n_in=1, n_out=2, kernel_size=3, feature_map_size=[4, 5])
    assert conf.kernel_size == (3, 3)
    assert conf.feature_map_size == (4, 5)
    assert conf.variables == ("weights", "bias")


def test_numpy_integers_accepted():
    conf = LayerConf(n_in=1, n_out=2, kernel_size=np.int64(3), feature_map_size=np.int32(4))
    assert conf.kernel_size == (3, 3)
    assert conf.feature_map_size == (4, 4)
    assert all(type(v) is int for v in conf.kernel_size)


@pytest.mark.parametrize("kwargs", [
    dict(n_in=0, n_out=1),
    dict(n_in=1, n_out=0),
    dict(n_in=1, n_out=1, kernel_size=0),
    dict(n_in=1, n_out=1, kernel_size=(3, 3, 3)),
    dict(n_in=1, n_out=1, feature_map_size=(0, 2)),
    dict(n_in=1, n_out=1, activation="swish9000"),
    dict(n_in=1, n_out=1, weight_init="orthogonal"),
    dict(n_in=1, n_out=1, variables=("weights", "weights")),
])
def test_invalid_conf(kwargs):
    with pytest.raises(ValueError):
        LayerConf(**kwargs)


def test_conf_is_immutable():
    conf = LayerConf(n_in=1, n_out=1)
    with pytest.raises(dataclasses.FrozenInstanceError):
        conf.n_out = 4

    other = conf.replace(n_out=4)
    assert other.n_out == 4 and conf.n_out == 1
    with pytest.raises(ValueError):
        conf.replace(n_out=-1)


def test_activation_lookup():
    assert get_activation("linear") is ACTIVATIONS["identity"]
    assert get_activation("ReLU") is ACTIVATIONS["relu"]
    with pytest.raises(ValueError):
        get_activation("nope")


def test_activation_values():
    x = np.array([-2.0, -0.5, 0.5, 2.0])
    assert np.allclose(get_activation("relu")(x), [0, 0, 0.5, 2.0])
    assert np.allclose(get_activation("leakyrelu")(x), [-0.02, -0.005, 0.5, 2.0])
    assert np.allclose(get_activation("hardtanh")(x), [-1, -0.5, 0.5, 1])
    assert np.allclose(get_activation("tanh")(x), np.tanh(x))
    assert np.allclose(get_activation("softplus")(x), np.log1p(np.exp(x)))
    assert np.allclose(get_activation("identity")(x), x)


@pytest.mark.parametrize("name", sorted(ACTIVATIONS))
def test_derivatives_match_finite_differences(name):
    act = get_activation(name)
    # stay away from the kinks of relu-like functions
    x = np.array([-1.7, -0.6, 0.3, 0.8, 1.9])
    eps = 1e-6
    numeric = (act(x + eps) - act(x - eps)) / (2 * eps)
    assert np.allclose(act.derivative(x), numeric, atol=1e-5)
