import logging

import numpy as np

from tinyconv.device import get_xp_from_array
from tinyconv.errors import InvalidParamsError, ParamStateError

logger = logging.getLogger(__name__)


class ConvolutionParamInitializer:
    WEIGHTS = "weights"
    BIAS = "bias"

    def shapes(self, conf):
        kH, kW = conf.kernel_size
        return {
            self.WEIGHTS: (conf.n_out, conf.n_in, kH, kW),
            self.BIAS: (conf.n_out,),
        }

    def _weights(self, conf, xp):
        n_out, n_in = conf.n_out, conf.n_in
        kH, kW = conf.kernel_size
        shape = (n_out, n_in, kH, kW)
        fan_in = n_in * kH * kW
        fan_out = n_out * kH * kW

        if conf.weight_init == "zero":
            return xp.zeros(shape, dtype=conf.dtype)

        # draw on host so the same seed gives the same filters on every backend
        rng = np.random.RandomState(conf.seed)
        w = rng.randn(*shape)
        if conf.weight_init == "he":
            w *= np.sqrt(2.0 / fan_in)
        elif conf.weight_init == "xavier":
            w *= np.sqrt(2.0 / (fan_in + fan_out))
        else:
            w *= 0.01
        return xp.asarray(w.astype(conf.dtype))

    def init(self, table: dict, conf, xp=np):
        """
        Fill `table` in place with freshly initialized weights and bias.
        Entries are inserted in conf.variables order.
        """
        built = {
            self.WEIGHTS: self._weights(conf, xp),
            self.BIAS: xp.zeros((conf.n_out,), dtype=conf.dtype),
        }
        unknown = [v for v in conf.variables if v not in built]
        if unknown:
            raise ValueError(f"convolution layer has no parameter(s) named {unknown}")

        table.clear()
        for name in conf.variables:
            table[name] = built[name]

        logger.debug("initialized conv params %s (%d values)",
                     {k: tuple(v.shape) for k, v in table.items()},
                     sum(int(v.size) for v in table.values()))
        return table


def flatten_params(table: dict, order):
    if not order:
        return np.zeros((0,))
    arrays = [table[name] for name in order]
    xp = get_xp_from_array(arrays[0])
    return xp.concatenate([a.ravel() for a in arrays])


def split_params(flat, table: dict, order):
    """
    Cut a flat vector into one slice per parameter, in `order`.

    Raises InvalidParamsError when the total length does not match, and
    ParamStateError if a slice comes out with the wrong length.
    """
    expected = sum(int(table[name].size) for name in order)
    if not hasattr(flat, "ndim"):
        flat = np.asarray(flat)
    if flat.ndim != 1:
        flat = flat.ravel()
    if flat.size != expected:
        raise InvalidParamsError(f"Unable to set parameters: must be of length {expected}, got {flat.size}")

    idx = 0
    for name in order:
        param = table[name]
        chunk = flat[idx: idx + param.size]
        if chunk.size != param.size:
            raise ParamStateError(f"Parameter {name} should have been of length {param.size} but was {chunk.size}")
        yield name, chunk.reshape(param.shape)
        idx += param.size
