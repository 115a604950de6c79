from .module import Module
from .handle import Handle
from .autograd_graph import ShapeMismatchError, as_value


class SquaredError(Module):
    """(prediction - target)^2 for a 1x1 prediction, built from graph ops.

    The difference is prediction + leaf(-target) and the square is the
    1x1 matmul diff @ diff, so the loss node backpropagates like any other.
    """
    __slots__ = ('graph',)

    def __init__(self, *, graph):
        super().__init__()
        self.graph = graph

    def forward(self, prediction, target):
        if prediction.shape != (1, 1):
            raise ShapeMismatchError(f"SquaredError expects a 1x1 prediction, got {prediction.shape}.")
        target_value = target.value() if isinstance(target, Handle) else target
        negated = self.graph.leaf(-as_value(target_value))
        diff = prediction + negated
        return diff @ diff
