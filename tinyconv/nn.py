import logging
from abc import ABC, abstractmethod
from enum import Enum

import numpy as np

from tinyconv.conf import LayerConf
from tinyconv.convolution import correlate_valid, num_channels, num_feature_maps, valid_output_size
from tinyconv.device import backend_name, get_xp, get_xp_from_array, to_device
from tinyconv.errors import (
    BackendMismatchError,
    ParamsNotInitializedError,
    ShapeMismatchError,
    UnsupportedOperationError,
)
from tinyconv.params import ConvolutionParamInitializer, flatten_params, split_params

logger = logging.getLogger(__name__)


class LayerType(Enum):
    FEED_FORWARD = "feed_forward"
    RECURRENT = "recurrent"
    CONVOLUTIONAL = "convolutional"
    RECURSIVE = "recursive"


class Layer:
    """
    Forward-only layer.

    Holds an immutable LayerConf, a table of named parameter arrays and a list
    of iteration listeners. Everything on the training side (gradients,
    backprop, updates, scoring, fitting) raises UnsupportedOperationError;
    subclass TrainableLayer for layers that can learn.
    """
    layer_type = None
    trainable = False

    def __init__(self, conf: LayerConf, param_initializer=None, device="cpu"):
        if not isinstance(conf, LayerConf):
            raise TypeError(f"conf must be a LayerConf, got {conf.__class__.__name__}")
        get_xp(device)

        self._conf = conf
        self._params = None
        self.param_initializer = param_initializer
        self.device = device
        self._listeners = []

    def type(self):
        return self.layer_type

    # ---- configuration ----

    @property
    def conf(self) -> LayerConf:
        return self._conf

    def set_conf(self, conf: LayerConf):
        # whole-record swap only, never call while activate() is running
        if not isinstance(conf, LayerConf):
            raise TypeError(f"conf must be a LayerConf, got {conf.__class__.__name__}")
        self._conf = conf

    def with_conf(self, conf: LayerConf):
        """Return a new layer bound to `conf`, with a copy of this layer's parameters."""
        new = self.__class__(conf, param_initializer=self.param_initializer, device=self.device)
        if self._params is not None:
            new.set_param_table({k: v.copy() for k, v in self._params.items()})
        new.iteration_listeners = self._listeners
        return new

    # ---- forward ----

    def activate(self, input=None):
        raise self._unsupported("activate")

    def __call__(self, x):
        return self.activate(x)

    def transform(self, data):
        return self.activate(data)

    def derivative_activation(self, input):
        # derivative of the activation evaluated at the layer's output
        return self.conf.activation_fn.derivative(self.activate(input))

    def clear(self):
        # no input or activations are cached between calls
        pass

    # ---- parameters ----

    def _table(self) -> dict:
        if self._params is None:
            raise ParamsNotInitializedError(
                f"{self.__class__.__name__} has no parameters yet; call init_params() first")
        return self._params

    def init_params(self):
        if self.param_initializer is None:
            raise ParamsNotInitializedError(f"{self.__class__.__name__} has no parameter initializer")
        self._params = {}
        self.param_initializer.init(self._params, self.conf, xp=get_xp(self.device))
        logger.debug("%s: %d parameters on %s", self.__class__.__name__, self.num_params(), self.device)

    def param_table(self) -> dict:
        return self._table()

    def set_param_table(self, param_table: dict):
        self._params = dict(param_table)

    def get_param(self, name: str):
        table = self._table()
        if name not in table:
            raise KeyError(f"no parameter named {name!r} (have {list(table)})")
        return table[name]

    def set_param(self, key: str, val):
        if self._params is None:
            self._params = {}
        self._params[key] = val

    def parameters(self):
        return [self.get_param(name) for name in self.conf.variables]

    def params(self):
        """All parameters raveled into one vector, in conf.variables order."""
        order = self.conf.variables
        for name in order:
            self.get_param(name)
        return flatten_params(self._table(), order)

    def num_params(self) -> int:
        # same set of names params()/set_params() walk
        return sum(int(self.get_param(name).size) for name in self.conf.variables)

    def set_params(self, params):
        """
        Overwrite every parameter in place from one flat vector laid out in
        conf.variables order (the same order params() produces).
        """
        order = self.conf.variables
        table = self._table()
        for name in order:
            self.get_param(name)
        if order and not hasattr(params, "shape"):
            params = get_xp_from_array(table[order[0]]).asarray(params)
        if order and get_xp_from_array(params) is not get_xp_from_array(table[order[0]]):
            raise BackendMismatchError(
                f"params vector is on {backend_name(params)}, layer is on {backend_name(table[order[0]])}")

        # validate every slice before touching any parameter
        chunks = list(split_params(params, table, order))
        for name, chunk in chunks:
            table[name][...] = chunk

    def to(self, device):
        """Move layer to device"""
        get_xp(device)
        if self._params is not None:
            self._params = {k: to_device(v, device) for k, v in self._params.items()}
        self.device = device
        return self

    # ---- listeners (stored, never invoked by a forward-only layer) ----

    @property
    def iteration_listeners(self):
        return self._listeners

    @iteration_listeners.setter
    def iteration_listeners(self, listeners):
        self._listeners = list(listeners)

    # ---- training side ----

    def _unsupported(self, op):
        return UnsupportedOperationError(op, self.__class__.__name__)

    def error(self, input):
        raise self._unsupported("error")

    def calc_gradient(self, layer_error, activation):
        raise self._unsupported("calc_gradient")

    def error_signal(self, error, input):
        raise self._unsupported("error_signal")

    def backward_gradient(self, z, next_layer, next_gradient, activation):
        raise self._unsupported("backward_gradient")

    def backward(self, errors, deltas, activation, previous_activation):
        raise self._unsupported("backward")

    def gradient(self):
        raise self._unsupported("gradient")

    def gradient_and_score(self):
        raise self._unsupported("gradient_and_score")

    def update(self, gradient):
        raise self._unsupported("update")

    def score(self):
        raise self._unsupported("score")

    def set_score(self):
        raise self._unsupported("set_score")

    def accumulate_score(self, accum):
        raise self._unsupported("accumulate_score")

    def merge(self, layer, batch_size):
        raise self._unsupported("merge")

    def clone(self):
        raise self._unsupported("clone")

    def transpose(self):
        raise self._unsupported("transpose")

    def activation_mean(self):
        raise self._unsupported("activation_mean")

    def pre_output(self, x):
        raise self._unsupported("pre_output")

    def fit(self, data=None):
        raise self._unsupported("fit")

    def iterate(self, input):
        raise self._unsupported("iterate")

    def batch_size(self):
        raise self._unsupported("batch_size")

    def input(self):
        raise self._unsupported("input")

    def validate_input(self):
        raise self._unsupported("validate_input")

    def get_optimizer(self):
        raise self._unsupported("get_optimizer")


class TrainableLayer(Layer, ABC):
    """A layer that implements the training side. Subclasses must provide
    gradients, backprop, parameter updates and scoring."""
    trainable = True

    @abstractmethod
    def gradient(self):
        ...

    @abstractmethod
    def backward_gradient(self, z, next_layer, next_gradient, activation):
        ...

    @abstractmethod
    def update(self, gradient):
        ...

    @abstractmethod
    def score(self):
        ...


class ConvolutionLayer(Layer):
    """
    Convolution layer (forward only).

    For every feature map f the output is
        act( sum_c correlate_valid(x[:, c], W[f, c]) + b[f] )
    written into out[:, f]. Parameters are "weights" (F, C, kH, kW) and
    "bias" (F,).
    """
    layer_type = LayerType.CONVOLUTIONAL

    def __init__(self, conf: LayerConf, param_initializer=None, device="cpu"):
        super().__init__(conf, param_initializer or ConvolutionParamInitializer(), device=device)

    def _check_inputs(self, x, filters, bias):
        xp = get_xp_from_array(x)
        for name, p in ((ConvolutionParamInitializer.WEIGHTS, filters), (ConvolutionParamInitializer.BIAS, bias)):
            if get_xp_from_array(p) is not xp:
                raise BackendMismatchError(
                    f"input is on {backend_name(x)} but {name} is on {backend_name(p)}; call layer.to(...)")

        F = num_feature_maps(self.conf)
        C = num_channels(x.shape)
        if filters.ndim != 4 or filters.shape[0] != F:
            raise ShapeMismatchError(f"weights must have shape ({F}, C, kH, kW), got {tuple(filters.shape)}")
        if filters.shape[1] != C:
            raise ShapeMismatchError(f"input has {C} channels but weights expect {filters.shape[1]}")
        if tuple(bias.shape) != (F,):
            raise ShapeMismatchError(f"bias must have shape ({F},), got {tuple(bias.shape)}")

    def _feature_map_size(self, input_hw, kernel_hw):
        valid = valid_output_size(input_hw, kernel_hw)
        configured = self.conf.feature_map_size
        if configured is None:
            return valid

        # the valid result is broadcast into the configured map
        for v, c in zip(valid, configured):
            if v != c and v != 1:
                raise ShapeMismatchError(
                    f"valid convolution of {tuple(input_hw)} by {tuple(kernel_hw)} gives {valid}, "
                    f"which does not fit the configured feature map size {configured}")
        return configured

    def activate(self, input=None):
        if input is None:
            raise self._unsupported("activate")

        x = input if hasattr(input, "shape") else np.asarray(input)
        xp = get_xp_from_array(x)
        filters = self.get_param(ConvolutionParamInitializer.WEIGHTS)
        bias = self.get_param(ConvolutionParamInitializer.BIAS)
        self._check_inputs(x, filters, bias)

        # number of feature maps for the weights / channels of the input
        current_feature_maps = num_feature_maps(self.conf)
        input_channels = num_channels(x.shape)
        N = x.shape[0]
        out_h, out_w = self._feature_map_size(x.shape[2:], filters.shape[2:])
        dtype = xp.result_type(x.dtype, filters.dtype)
        act = self.conf.activation_fn

        logger.debug("conv activate: input %s, weights %s -> (%d, %d, %d, %d)",
                     tuple(x.shape), tuple(filters.shape), N, current_feature_maps, out_h, out_w)

        ret = xp.zeros((N, current_feature_maps, out_h, out_w), dtype=dtype)
        for i in range(current_feature_maps):
            feature_map = xp.zeros((N, 1, out_h, out_w), dtype=dtype)
            for j in range(input_channels):
                convolved = correlate_valid(x[:, j], filters[i, j])  # (N, vh, vw)
                feature_map += xp.broadcast_to(convolved[:, None], feature_map.shape)

            feature_map += bias[i]
            ret[:, i:i + 1] = act(feature_map)

        return ret
