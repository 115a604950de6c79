import math

import pytest
import torch

from simple_mlp.autograd_graph import AutogradGraph, ShapeMismatchError
from simple_mlp.module import MLP, Activation, Layer, Linear, Module, Neuron


def test_neuron_parameters_and_init_range():
    graph = AutogradGraph()
    neuron = Neuron(3, graph=graph, generator=torch.Generator().manual_seed(0))
    params = neuron.parameters()
    assert len(params) == 4
    assert params[-1] is neuron.bias
    scale = math.sqrt(2.0 / 3)
    for w in neuron.weights:
        assert w.shape == (1, 1)
        assert abs(w.value().item()) <= scale
    assert neuron.bias.value().item() == 0.0


def test_neuron_forward_matches_manual_sum():
    graph = AutogradGraph()
    neuron = Neuron(2, Activation.TANH, graph=graph, generator=torch.Generator().manual_seed(1))
    neuron.bias.set_value(0.25)
    xs = [graph.leaf(0.5), graph.leaf(-2.0)]
    out = neuron(xs)
    w0, w1 = (w.value().item() for w in neuron.weights)
    expected = math.tanh(0.25 + w0 * 0.5 + w1 * -2.0)
    assert out.value().item() == pytest.approx(expected)


def test_neuron_rejects_wrong_input_count():
    graph = AutogradGraph()
    neuron = Neuron(2, graph=graph)
    with pytest.raises(ValueError):
        neuron([graph.leaf(1.0)])


def test_layer_and_mlp_structure():
    graph = AutogradGraph()
    layer = Layer(2, 3, graph=graph)
    assert len(layer.parameters()) == 3 * 3
    assert len(list(layer.modules())) == 4

    model = MLP(2, [4, 1], graph=graph)
    assert len(model.parameters()) == 4 * 3 + 5
    assert model.layers[0].activation is Activation.RELU
    assert model.layers[-1].activation is Activation.NONE
    out = model([graph.leaf(1.0), graph.leaf(0.0)])
    assert len(out) == 1 and out[0].shape == (1, 1)


def test_seeded_generator_is_reproducible():
    first = MLP(2, [3, 1], graph=AutogradGraph(), generator=torch.Generator().manual_seed(5))
    second = MLP(2, [3, 1], graph=AutogradGraph(), generator=torch.Generator().manual_seed(5))
    for a, b in zip(first.parameters(), second.parameters()):
        assert torch.equal(a.value(), b.value())


def test_module_zero_grad_resets_parameters():
    graph = AutogradGraph()
    model = MLP(2, [2, 1], graph=graph, generator=torch.Generator().manual_seed(3))
    for p in model.parameters():
        p.set_value(torch.full((1, 1), 0.5, dtype=torch.float64))
    out = model([graph.leaf(1.0), graph.leaf(1.0)])[0]
    out.set_grad(1.0)
    out.backward()
    assert any(p.grad().item() != 0 for p in model.parameters())
    model.zero_grad()
    assert all(p.grad().item() == 0 for p in model.parameters())


def test_train_eval_propagates():
    model = MLP(2, [2, 1], graph=AutogradGraph())
    model.eval()
    assert not any(m.training for m in model.modules())
    model.train()
    assert all(m.training for m in model.modules())


def test_linear_forward_and_shapes():
    graph = AutogradGraph()
    layer = Linear(3, 2, Activation.RELU, graph=graph)
    assert layer.weight.shape == (3, 2)
    assert layer.bias.shape == (1, 2)
    x = graph.leaf(torch.randn(1, 3))
    out = layer(x)
    expected = torch.relu(x.value() @ layer.weight.value() + layer.bias.value())
    assert torch.allclose(out.value(), expected)
    with pytest.raises(ShapeMismatchError):
        layer(graph.leaf(torch.randn(1, 2)))


def test_register_rejects_wrong_types():
    module = Module()
    with pytest.raises(TypeError):
        module.register_parameter("w", torch.zeros(1, 1))
    with pytest.raises(TypeError):
        module.add_module("m", object())
    with pytest.raises(NotImplementedError):
        module()
