import numpy as np
import pytest

from tinyconv.conf import LayerConf
from tinyconv.errors import InvalidParamsError, ParamsNotInitializedError
from tinyconv.nn import ConvolutionLayer
from tinyconv.params import ConvolutionParamInitializer, flatten_params, split_params


def make_layer(n_in=2, n_out=3, kernel=(2, 3), **kw):
    layer = ConvolutionLayer(LayerConf(n_in=n_in, n_out=n_out, kernel_size=kernel, seed=0, **kw))
    layer.init_params()
    return layer


def test_init_shapes_and_order():
    layer = make_layer()
    table = layer.param_table()
    assert list(table) == ["weights", "bias"]
    assert layer.get_param("weights").shape == (3, 2, 2, 3)
    assert layer.get_param("bias").shape == (3,)
    assert np.all(layer.get_param("bias") == 0)


def test_init_is_seeded():
    a = make_layer()
    b = make_layer()
    assert np.array_equal(a.get_param("weights"), b.get_param("weights"))


def test_he_scale():
    layer = make_layer(n_in=16, n_out=32, kernel=3)
    w = layer.get_param("weights")
    expected = np.sqrt(2.0 / (16 * 3 * 3))
    assert abs(w.std() - expected) / expected < 0.1


def test_num_params():
    layer = make_layer()
    assert layer.num_params() == 3 * 2 * 2 * 3 + 3

    # names outside conf.variables are not part of the flat vector
    layer.set_param("extra", np.zeros((4, 5)))
    assert layer.num_params() == 3 * 2 * 2 * 3 + 3
    assert layer.num_params() == layer.params().size


def test_set_params_with_extra_table_entry():
    layer = ConvolutionLayer(LayerConf(n_in=1, n_out=1, kernel_size=2))
    layer.init_params()
    layer.set_param("extra", np.zeros(3))

    layer.set_params(np.ones(layer.num_params()))
    assert np.all(layer.get_param("weights") == 1)
    assert np.all(layer.get_param("bias") == 1)
    assert np.all(layer.get_param("extra") == 0)


def test_set_params_accepts_a_list():
    layer = make_layer()
    values = [float(i) for i in range(layer.num_params())]

    layer.set_params(values)
    assert np.array_equal(layer.params(), np.array(values))
    with pytest.raises(InvalidParamsError):
        layer.set_params(values[:-1])


def test_parameters_in_declared_order():
    layer = make_layer()
    ps = layer.parameters()
    assert len(ps) == 2
    assert ps[0] is layer.get_param("weights")
    assert ps[1] is layer.get_param("bias")
    assert sum(p.size for p in ps) == layer.num_params()


def test_params_roundtrip():
    layer = make_layer()
    layer.set_param("bias", np.array([1.0, 2.0, 3.0]))
    w_before = layer.get_param("weights").copy()
    b_before = layer.get_param("bias").copy()

    flat = layer.params()
    assert flat.shape == (layer.num_params(),)

    layer.set_params(flat)
    assert layer.get_param("weights").shape == w_before.shape
    assert np.array_equal(layer.get_param("weights"), w_before)
    assert np.array_equal(layer.get_param("bias"), b_before)


def test_params_use_declared_order():
    layer = make_layer()
    w = layer.get_param("weights")
    b = np.array([7.0, 8.0, 9.0])

    # table insertion order differs from conf.variables
    layer.set_param_table({"bias": b, "weights": w})
    flat = layer.params()
    assert np.array_equal(flat[:w.size], w.ravel())
    assert np.array_equal(flat[w.size:], b)

    layer.set_params(flat)
    assert np.array_equal(layer.get_param("bias"), b)


def test_set_params_overwrites_in_place():
    layer = make_layer()
    w = layer.get_param("weights")
    new = np.arange(layer.num_params(), dtype=float)

    layer.set_params(new)
    assert layer.get_param("weights") is w
    assert np.array_equal(w.ravel(), new[:w.size])
    assert np.array_equal(layer.get_param("bias"), new[w.size:])


def test_set_params_wrong_length():
    layer = make_layer()
    before = layer.params().copy()
    n = layer.num_params()

    with pytest.raises(InvalidParamsError):
        layer.set_params(np.zeros(n - 1))
    with pytest.raises(InvalidParamsError):
        layer.set_params(np.zeros(n + 1))
    with pytest.raises(ValueError):
        layer.set_params(np.zeros(0))

    # failed calls leave the parameters untouched
    assert np.array_equal(layer.params(), before)


def test_get_param_missing():
    layer = make_layer()
    with pytest.raises(KeyError):
        layer.get_param("gamma")


def test_uninitialized_table():
    layer = ConvolutionLayer(LayerConf(n_in=1, n_out=1, kernel_size=1))
    with pytest.raises(ParamsNotInitializedError):
        layer.params()
    with pytest.raises(ParamsNotInitializedError):
        layer.num_params()


def test_unknown_variable_name_rejected_by_initializer():
    conf = LayerConf(n_in=1, n_out=1, kernel_size=1, variables=("weights", "bias", "gamma"))
    layer = ConvolutionLayer(conf)
    with pytest.raises(ValueError):
        layer.init_params()


def test_flatten_split_helpers():
    table = {}
    conf = LayerConf(n_in=2, n_out=2, kernel_size=2, seed=3)
    ConvolutionParamInitializer().init(table, conf)
    assert ConvolutionParamInitializer().shapes(conf) == {k: v.shape for k, v in table.items()}

    flat = flatten_params(table, conf.variables)
    parts = dict(split_params(flat, table, conf.variables))
    for name in conf.variables:
        assert np.array_equal(parts[name], table[name])


def test_with_conf_copies_params():
    layer = make_layer(activation="identity")
    other = layer.with_conf(layer.conf.replace(activation="relu"))

    assert other is not layer
    assert other.conf.activation == "relu"
    assert layer.conf.activation == "identity"
    assert np.array_equal(other.get_param("weights"), layer.get_param("weights"))
    assert other.get_param("weights") is not layer.get_param("weights")


def main():
    test_init_shapes_and_order()
    test_num_params()
    test_params_roundtrip()
    test_params_use_declared_order()
    test_set_params_overwrites_in_place()
    test_set_params_wrong_length()
    test_flatten_split_helpers()
    print("[OK] param table")

if __name__ == "__main__":
    main()
