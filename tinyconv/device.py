import numpy as np

try:
    import cupy as cp
except Exception:
    cp = None

CPU_NAMES = ("cpu", "np", "numpy")
GPU_NAMES = ("gpu", "cuda", "cupy")

def get_xp_from_array(x):
    # works for numpy and cuda ndarrays
    mod = type(x).__module__.split(".")[0]
    if mod == "cupy":
        return cp
    return np

def get_xp(device: str):
    if device in CPU_NAMES:
        return np
    if device in GPU_NAMES:
        if cp is None:
            raise ImportError("cupy not installed")
        return cp
    raise ValueError(f"unknown device: {device}")

def backend_name(x) -> str:
    return "cupy" if get_xp_from_array(x) is not np else "numpy"

def to_device(x, device: str):
    xp = get_xp(device)
    if xp is np:
        return to_numpy(x)
    return cp.asarray(x)

def to_numpy(x):
    # converting for saving or printing
    if cp is not None and isinstance(x, cp.ndarray):
        return cp.asnumpy(x)
    return np.asarray(x)
