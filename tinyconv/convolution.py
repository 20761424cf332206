"""
Valid-mode convolution primitive.

"Convolution" here follows the deep learning convention: the kernel is slid
over the signal without flipping (cross-correlation), and only positions where
the kernel fully overlaps the signal are kept, so each spatial axis shrinks by
kernel_size - 1.
"""
from tinyconv.device import get_xp_from_array
from tinyconv.errors import BackendMismatchError, ShapeMismatchError


def valid_output_size(input_hw, kernel_hw):
    H, W = input_hw
    kH, kW = kernel_hw
    out_h = H - kH + 1
    out_w = W - kW + 1
    if out_h <= 0 or out_w <= 0:
        raise ShapeMismatchError(f"kernel {tuple(kernel_hw)} larger than input {tuple(input_hw)}")
    return out_h, out_w


def num_channels(shape):
    # input layout is (N, C, H, W)
    if len(shape) != 4:
        raise ShapeMismatchError(f"expected input of shape (N, C, H, W), got {tuple(shape)}")
    return shape[1]


def num_feature_maps(conf):
    return conf.n_out


def sliding_windows(x, kH, kW):
    """
    Strided view of every kH x kW window of x.

    x: (..., H, W) -> (..., out_h, out_w, kH, kW), no copy
    """
    xp = get_xp_from_array(x)
    out_h, out_w = valid_output_size(x.shape[-2:], (kH, kW))

    # as_strided needs a contiguous base to reason about strides
    x = xp.ascontiguousarray(x)
    shape = x.shape[:-2] + (out_h, out_w, kH, kW)
    strides = x.strides + x.strides[-2:]

    return xp.lib.stride_tricks.as_strided(x, shape=shape, strides=strides)


def correlate_valid(x, kernel):
    """
    x:      (..., H, W)
    kernel: (kH, kW)
    returns (..., H-kH+1, W-kW+1)
    """
    xp = get_xp_from_array(x)
    if kernel.ndim != 2:
        raise ShapeMismatchError(f"kernel must be 2-D, got shape {kernel.shape}")
    if get_xp_from_array(kernel) is not xp:
        raise BackendMismatchError("signal and kernel live on different backends")

    kH, kW = kernel.shape
    cols = sliding_windows(x, kH, kW)
    return xp.tensordot(cols, kernel, axes=([-2, -1], [0, 1]))
