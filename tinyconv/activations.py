from dataclasses import dataclass
from typing import Callable

from tinyconv.device import get_xp_from_array

LEAKY_SLOPE = 0.01


def identity(x):
    return x

def identity_derivative(x):
    xp = get_xp_from_array(x)
    return xp.ones_like(x)


def relu(x):
    xp = get_xp_from_array(x)
    return xp.maximum(0, x)

def relu_derivative(x):
    xp = get_xp_from_array(x)
    return xp.where(x > 0, 1.0, 0.0).astype(x.dtype)


def leakyrelu(x):
    xp = get_xp_from_array(x)
    return xp.where(x > 0, x, LEAKY_SLOPE * x)

def leakyrelu_derivative(x):
    xp = get_xp_from_array(x)
    return xp.where(x > 0, 1.0, LEAKY_SLOPE).astype(x.dtype)


def sigmoid(x):
    xp = get_xp_from_array(x)
    return 1 / (1 + xp.exp(-x))

def sigmoid_derivative(x):
    s = sigmoid(x)
    return s * (1 - s)


def tanh(x):
    xp = get_xp_from_array(x)
    return xp.tanh(x)

def tanh_derivative(x):
    xp = get_xp_from_array(x)
    return 1 - xp.tanh(x) ** 2


def hardtanh(x):
    xp = get_xp_from_array(x)
    return xp.clip(x, -1.0, 1.0)

def hardtanh_derivative(x):
    xp = get_xp_from_array(x)
    return xp.where((x > -1.0) & (x < 1.0), 1.0, 0.0).astype(x.dtype)


def softplus(x):
    xp = get_xp_from_array(x)
    # log(1 + e^x) without overflow for large x
    return xp.logaddexp(0, x)

def softplus_derivative(x):
    return sigmoid(x)


@dataclass(frozen=True)
class Activation:
    name: str
    fn: Callable
    derivative: Callable

    def __call__(self, x):
        return self.fn(x)


ACTIVATIONS = {
    "identity": Activation("identity", identity, identity_derivative),
    "relu": Activation("relu", relu, relu_derivative),
    "leakyrelu": Activation("leakyrelu", leakyrelu, leakyrelu_derivative),
    "sigmoid": Activation("sigmoid", sigmoid, sigmoid_derivative),
    "tanh": Activation("tanh", tanh, tanh_derivative),
    "hardtanh": Activation("hardtanh", hardtanh, hardtanh_derivative),
    "softplus": Activation("softplus", softplus, softplus_derivative),
}

ALIASES = {"linear": "identity"}


def get_activation(name: str) -> Activation:
    key = ALIASES.get(name.lower(), name.lower())
    if key not in ACTIVATIONS:
        raise ValueError(f"unknown activation function: {name!r} "
                         f"(expected one of {sorted(ACTIVATIONS)})")
    return ACTIVATIONS[key]
