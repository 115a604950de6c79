"""Gradient rules for every graph operation.

Each rule receives the node being processed and its child nodes (in operand
order) and accumulates into the children's ``grad`` in place. A node that
appears twice among the children receives both contributions.
"""
import torch

from .autograd_graph import Op

_RULES = {}


def register_gradient(op):
    """Decorator registering ``fn(node, children)`` as the rule for ``op``."""
    if not isinstance(op, Op):
        raise TypeError(f"Expected an Op, got {op!r}.")

    def decorator(fn):
        if op in _RULES:
            raise ValueError(f"A gradient rule for {op.name} is already registered.")
        _RULES[op] = fn
        return fn
    return decorator


def rule_for(op):
    try:
        return _RULES[op]
    except KeyError:
        raise KeyError(f"No gradient rule registered for {op.name}.") from None


@register_gradient(Op.LEAF)
def _leaf_backward(node, children):
    return None


@register_gradient(Op.ADD)
def _add_backward(node, children):
    # y = a + b -> da = dy, db = dy
    a, b = children
    a.grad.add_(node.grad)
    b.grad.add_(node.grad)


@register_gradient(Op.MATMUL)
def _matmul_backward(node, children):
    # y = a @ b -> da = dy @ b^T, db = a^T @ dy
    a, b = children
    grad = node.grad
    a.grad.add_(torch.matmul(grad, b.value.transpose(-2, -1)))
    b.grad.add_(torch.matmul(a.value.transpose(-2, -1), grad))


@register_gradient(Op.TANH)
def _tanh_backward(node, children):
    # derivative taken from the output: 1 - tanh(x)^2
    (x,) = children
    x.grad.add_((1 - node.value * node.value) * node.grad)


@register_gradient(Op.RELU)
def _relu_backward(node, children):
    # mask from the output's sign, relu(x) > 0 exactly when x > 0
    (x,) = children
    mask = (node.value > 0).to(node.grad.dtype)
    x.grad.add_(mask * node.grad)
