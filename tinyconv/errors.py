class TinyConvError(Exception):
    """Base class for every error raised by tinyconv."""


class UnsupportedOperationError(TinyConvError, NotImplementedError):
    """The layer does not implement this capability (forward-only layers)."""

    def __init__(self, op: str, layer: str = None):
        self.op = op
        self.layer = layer
        where = f" on {layer}" if layer else ""
        super().__init__(f"{op}() is not supported{where}")


class ShapeMismatchError(TinyConvError, ValueError):
    pass


class BackendMismatchError(TinyConvError, ValueError):
    pass


class InvalidParamsError(TinyConvError, ValueError):
    # flattened vector does not fit the parameter table
    pass


class ParamStateError(TinyConvError, RuntimeError):
    pass


class ParamsNotInitializedError(ParamStateError):
    pass
