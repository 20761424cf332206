import logging

import numpy as np
from tinyconv.conf import LayerConf
from tinyconv.nn import ConvolutionLayer

def make_bar_images(n=8, H=8, W=8, seed=0):
    rng = np.random.RandomState(seed)
    X = rng.randn(n, 1, H, W).astype(float) * 0.2
    for i in range(n):
        if i % 2 == 0:
            X[i, 0, :, W // 2] += 2.0   # vertical bar
        else:
            X[i, 0, H // 2, :] += 2.0   # horizontal bar
    return X

def main():
    logging.basicConfig(level=logging.DEBUG)

    X = make_bar_images()

    conf = LayerConf(n_in=1, n_out=2, kernel_size=3, activation="relu", seed=0)
    layer = ConvolutionLayer(conf)
    layer.init_params()

    # hand-made edge detectors instead of random filters
    w = np.zeros((2, 1, 3, 3))
    w[0, 0, :, 1] = 1.0     # responds to vertical bars
    w[1, 0, 1, :] = 1.0     # responds to horizontal bars
    layer.set_params(np.concatenate([w.ravel(), [-1.0, -1.0]]))

    Y = layer.activate(X)
    print("input:", X.shape, " output:", Y.shape, " params:", layer.num_params())

    for i in range(len(X)):
        v, h = Y[i, 0].max(), Y[i, 1].max()
        kind = "vertical" if v > h else "horizontal"
        print(f"image {i}: vertical {v:.2f}  horizontal {h:.2f}  -> {kind}")

if __name__ == "__main__":
    main()
