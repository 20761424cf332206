import numbers
from dataclasses import dataclass, replace as _replace
from typing import Optional, Tuple

from tinyconv.activations import get_activation

WEIGHT_INITS = ("he", "xavier", "normal", "zero")
DEFAULT_VARIABLES = ("weights", "bias")


def _pair(v, name):
    # int -> (v, v); tuples/lists pass through
    if isinstance(v, numbers.Integral):
        return (int(v), int(v))
    v = tuple(int(s) for s in v)
    if len(v) != 2:
        raise ValueError(f"{name} must be an int or a pair, got {v}")
    return v


@dataclass(frozen=True)
class LayerConf:
    """
    Configuration of one convolution layer.

    n_in:             input channels
    n_out:            feature maps (one filter each)
    kernel_size:      (kh, kw) spatial size of every filter
    feature_map_size: (outH, outW) of each output map, or None to use the
                      valid-convolution size of the input
    activation:       name of the elementwise non-linearity
    variables:        canonical order of the trainable parameters
    """
    n_in: int
    n_out: int
    kernel_size: Tuple[int, int] = (3, 3)
    feature_map_size: Optional[Tuple[int, int]] = None
    activation: str = "identity"
    weight_init: str = "he"
    seed: Optional[int] = None
    dtype: str = "float64"
    variables: Tuple[str, ...] = DEFAULT_VARIABLES

    def __post_init__(self):
        if int(self.n_in) <= 0:
            raise ValueError(f"n_in must be positive, got {self.n_in}")
        if int(self.n_out) <= 0:
            raise ValueError(f"n_out must be positive, got {self.n_out}")

        kernel = _pair(self.kernel_size, "kernel_size")
        if min(kernel) <= 0:
            raise ValueError(f"kernel_size must be non-empty, got {kernel}")
        object.__setattr__(self, "kernel_size", kernel)

        if self.feature_map_size is not None:
            fm = _pair(self.feature_map_size, "feature_map_size")
            if min(fm) <= 0:
                raise ValueError(f"feature_map_size must be positive, got {fm}")
            object.__setattr__(self, "feature_map_size", fm)

        # raises on unknown names
        get_activation(self.activation)

        if self.weight_init not in WEIGHT_INITS:
            raise ValueError(f"unknown weight_init: {self.weight_init!r} (expected one of {WEIGHT_INITS})")

        variables = tuple(self.variables)
        if len(set(variables)) != len(variables):
            raise ValueError(f"duplicate variable names: {variables}")
        object.__setattr__(self, "variables", variables)

    @property
    def activation_fn(self):
        return get_activation(self.activation)

    def replace(self, **changes) -> "LayerConf":
        return _replace(self, **changes)
