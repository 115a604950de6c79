import enum
import math
import torch
from collections import OrderedDict
from .handle import Handle
from .config import device, dtype


class Activation(enum.Enum):
    RELU = "relu"
    TANH = "tanh"
    NONE = "none"

    def apply(self, handle):
        if self is Activation.RELU:
            return handle.relu()
        if self is Activation.TANH:
            return handle.tanh()
        return handle


def _uniform(shape, scale, generator=None):
    return torch.empty(shape, device=device, dtype=dtype).uniform_(-scale, scale, generator=generator)


class Module:
    """
    Base class for all network modules.
    Handles assigned as attributes become parameters, modules become submodules.
    """
    __slots__ = ('_parameters', '_modules', 'training')
    def __init__(self):
        self._parameters = OrderedDict()
        self._modules = OrderedDict()
        self.training = True

    def __setattr__(self, name, value):
        if isinstance(value, Handle):
            self._parameters[name] = value
        elif isinstance(value, Module):
            self._modules[name] = value
        super().__setattr__(name, value)

    def register_parameter(self, name, handle):
        if not isinstance(handle, Handle):
            raise TypeError(f"Parameter {name!r} must be a Handle, got {type(handle).__name__}.")
        self._parameters[name] = handle

    def add_module(self, name, module):
        if not isinstance(module, Module):
            raise TypeError(f"Submodule {name!r} must be a Module, got {type(module).__name__}.")
        self._modules[name] = module

    def parameters(self):
        """Returns a list of all parameters in the module and its submodules."""
        params = list(self._parameters.values())
        for module in self._modules.values():
            params.extend(module.parameters())
        return params

    def modules(self):
        """Returns an iterator over all submodules and the module in the network."""
        yield self
        for module in self._modules.values():
            yield from module.modules()

    def zero_grad(self):
        """Sets gradients of all model parameters to zero."""
        for p in self.parameters():
            p.zero_grad()

    def train(self):
        self.training = True
        for module in self._modules.values():
            module.train()

    def eval(self):
        self.training = False
        for module in self._modules.values():
            module.eval()

    def __call__(self, *args, **kwargs):
        return self.forward(*args, **kwargs)

    def forward(self, *args, **kwargs):
        raise NotImplementedError("Subclasses of Module must implement a forward method.")


class Neuron(Module):
    """A single unit over 1x1 inputs: activation(bias + sum(w_i * x_i))."""
    __slots__ = ('nin', 'activation', 'graph', 'weights', 'bias')

    def __new__(cls, nin, activation=Activation.RELU, *, graph, generator=None):
        assert nin > 0
        return super().__new__(cls)

    def __init__(self, nin, activation=Activation.RELU, *, graph, generator=None):
        super().__init__()
        self.nin = nin
        self.activation = activation
        self.graph = graph

        # He-style range, the bias starts at zero
        scale = math.sqrt(2.0 / nin)
        self.weights = [graph.leaf(_uniform((1, 1), scale, generator)) for _ in range(nin)]
        for i, w in enumerate(self.weights):
            self.register_parameter(f"weight{i}", w)
        self.bias = graph.leaf(torch.zeros(1, 1, device=device, dtype=dtype))

    def forward(self, xs):
        if len(xs) != self.nin:
            raise ValueError(f"Neuron expects {self.nin} inputs, got {len(xs)}.")
        total = self.bias
        for w, x in zip(self.weights, xs):
            total = total + w @ x
        return self.activation.apply(total)


class Layer(Module):
    __slots__ = ('neurons', 'activation')

    def __init__(self, nin, nout, activation=Activation.RELU, *, graph, generator=None):
        super().__init__()
        self.activation = activation
        self.neurons = [Neuron(nin, activation, graph=graph, generator=generator) for _ in range(nout)]
        for i, neuron in enumerate(self.neurons):
            self.add_module(f"neuron{i}", neuron)

    def forward(self, xs):
        return [n(xs) for n in self.neurons]


class MLP(Module):
    """Stack of Layers, ReLU between them and no activation on the output layer."""
    __slots__ = ('layers',)

    def __init__(self, nin, nouts, *, graph, generator=None):
        super().__init__()
        sizes = [nin] + list(nouts)
        self.layers = []
        for i in range(len(nouts)):
            activation = Activation.RELU if i < len(nouts) - 1 else Activation.NONE
            layer = Layer(sizes[i], sizes[i + 1], activation, graph=graph, generator=generator)
            self.layers.append(layer)
            self.add_module(f"layer{i}", layer)

    def forward(self, xs):
        current = list(xs)
        for layer in self.layers:
            current = layer(current)
        return current


class Linear(Module):
    """Applies y = activation(x @ W + b) to a 1 x in_features row."""
    __slots__ = ('in_features', 'out_features', 'activation', 'graph', 'weight', 'bias')

    def __new__(cls, in_features, out_features, activation=Activation.NONE, *, graph, generator=None):
        assert in_features > 0 and out_features > 0
        return super().__new__(cls)

    def __init__(self, in_features, out_features, activation=Activation.NONE, *, graph, generator=None):
        super().__init__()
        self.in_features = in_features
        self.out_features = out_features
        self.activation = activation
        self.graph = graph

        scale = math.sqrt(2.0 / in_features)
        self.weight = graph.leaf(_uniform((in_features, out_features), scale, generator))
        self.bias = graph.leaf(torch.zeros(1, out_features, device=device, dtype=dtype))

    def forward(self, input_handle):
        return self.activation.apply(input_handle @ self.weight + self.bias)
