import pytest
import torch

from simple_mlp.autograd_graph import AutogradGraph, Node, Op
from simple_mlp.gradients import register_gradient, rule_for


def test_every_op_has_a_rule():
    for op in Op:
        assert callable(rule_for(op))


def test_duplicate_registration_is_rejected():
    with pytest.raises(ValueError):
        register_gradient(Op.ADD)(lambda node, children: None)


def test_registration_requires_an_op():
    with pytest.raises(TypeError):
        register_gradient("add")


def test_tanh_rule_uses_the_output_value():
    x = Node(torch.tensor([[0.3]], dtype=torch.float64), (), Op.LEAF, 0)
    y = Node(torch.tanh(x.value), (0,), Op.TANH, 1)
    y.grad = torch.tensor([[2.0]], dtype=torch.float64)
    rule_for(Op.TANH)(y, [x])
    expected = 2.0 * (1 - torch.tanh(torch.tensor(0.3, dtype=torch.float64)) ** 2)
    assert torch.allclose(x.grad, expected.reshape(1, 1))


def test_relu_rule_zero_input_gets_no_gradient():
    graph = AutogradGraph()
    x = graph.leaf([[0.0, 1.0, -1.0]])
    y = x.relu()
    y.set_grad([[1.0, 1.0, 1.0]])
    y.backward()
    assert torch.equal(x.grad(), torch.tensor([[0.0, 1.0, 0.0]], dtype=torch.float64))


def test_matmul_rule_respects_operand_order():
    a = Node(torch.tensor([[1.0, 2.0]], dtype=torch.float64), (), Op.LEAF, 0)
    b = Node(torch.tensor([[3.0], [4.0]], dtype=torch.float64), (), Op.LEAF, 1)
    y = Node(a.value @ b.value, (0, 1), Op.MATMUL, 2)
    y.grad = torch.ones(1, 1, dtype=torch.float64)
    rule_for(Op.MATMUL)(y, [a, b])
    assert torch.equal(a.grad, torch.tensor([[3.0, 4.0]], dtype=torch.float64))
    assert torch.equal(b.grad, torch.tensor([[1.0], [2.0]], dtype=torch.float64))
