import enum
import logging
from contextlib import contextmanager
from typing import List

import rustworkx as rx
import torch

from .config import device, dtype
from .handle import Handle

logger = logging.getLogger(__name__)


class ShapeMismatchError(ValueError):
    """Operand shapes are incompatible with the requested operation."""


class StaleHandleError(RuntimeError):
    """The handle refers to a node that has been released from its graph."""


class Op(enum.Enum):
    LEAF = "leaf"
    ADD = "add"
    MATMUL = "matmul"
    TANH = "tanh"
    RELU = "relu"

    @property
    def arity(self):
        return _ARITY[self]


_ARITY = {Op.LEAF: 0, Op.ADD: 2, Op.MATMUL: 2, Op.TANH: 1, Op.RELU: 1}


class Node:
    __slots__ = ('value', 'grad', 'children', 'op', 'serial')

    def __init__(self, value, children, op, serial):
        self.value = value
        self.grad = torch.zeros_like(value)
        self.children = tuple(children)
        self.op = op
        self.serial = serial
        assert len(self.children) == op.arity

    def __repr__(self):
        return f"Node(op={self.op.name}, shape={tuple(self.value.shape)}, children={self.children})"


def as_value(data):
    """Converts ``data`` into a private 2-D tensor of the configured dtype."""
    value = torch.as_tensor(data, dtype=dtype, device=device)
    if value.ndim == 0:
        value = value.reshape(1, 1)
    if value.ndim != 2:
        raise ValueError(f"Expected 2-D data, got a tensor with shape {tuple(value.shape)}.")
    # as_tensor may share memory with the caller's array
    return value.detach().clone()


class AutogradGraph:
    """
    Arena owning every node of a computation graph.

    Nodes are stored in a rustworkx directed graph and addressed by their
    integer index; an edge runs from each operand to the node built from it.
    Handles returned by the construction methods are the only way to refer
    to a node from outside the arena.
    """
    __slots__ = ('graph', '_serial', '_check_cycles', '_auto_cleanup')

    def __init__(self, check_for_cycles=True, auto_cleanup=True):
        self.graph = rx.PyDiGraph()
        self._serial = 0
        self._check_cycles = check_for_cycles
        self._auto_cleanup = auto_cleanup

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if self._check_cycles and self.check_cycle():
            raise RuntimeError("Cycle detected in autograd graph on context exit.")
        if self._auto_cleanup:
            self.clear()

    # --- Arena bookkeeping ---
    def _node(self, handle) -> Node:
        if not isinstance(handle, Handle):
            raise TypeError(f"Expected a Handle, got {type(handle).__name__}.")
        if handle.graph is not self:
            raise ValueError("Handle belongs to a different graph.")
        graph = self.graph
        if not graph.has_node(handle.index) or graph[handle.index].serial != handle.serial:
            raise StaleHandleError(f"Node {handle.index} (serial {handle.serial}) has been released.")
        return graph[handle.index]

    def _insert(self, value, operands, op) -> Handle:
        serial = self._serial
        self._serial += 1
        index = self.graph.add_node(Node(value, (h.index for h in operands), op, serial))
        for slot, operand in enumerate(operands):
            self.graph.add_edge(operand.index, index, slot)
        return Handle(self, index, serial)

    def num_nodes(self):
        return self.graph.num_nodes()

    def check_cycle(self):
        return not rx.is_directed_acyclic_graph(self.graph)

    def clear(self):
        self.graph.clear()

    @contextmanager
    def scope(self):
        """Releases every node created inside the ``with`` block on exit.

        Nodes that existed before the block (model parameters, typically)
        are kept. Handles to released nodes raise ``StaleHandleError``.
        """
        mark = self._serial
        try:
            yield self
        finally:
            graph = self.graph
            released = [i for i in graph.node_indices() if graph[i].serial >= mark]
            graph.remove_nodes_from(released)
            logger.debug("Scope released %d nodes, %d remain", len(released), graph.num_nodes())

    # --- Construction ---
    def leaf(self, data) -> Handle:
        return self._insert(as_value(data), (), Op.LEAF)

    def add(self, a, b) -> Handle:
        x, y = self._node(a), self._node(b)
        if x.value.shape != y.value.shape:
            raise ShapeMismatchError(
                f"add: shapes {tuple(x.value.shape)} and {tuple(y.value.shape)} differ.")
        return self._insert(torch.add(x.value, y.value), (a, b), Op.ADD)

    def matmul(self, a, b) -> Handle:
        x, y = self._node(a), self._node(b)
        if x.value.shape[1] != y.value.shape[0]:
            raise ShapeMismatchError(
                f"matmul: inner dimensions of {tuple(x.value.shape)} and {tuple(y.value.shape)} disagree.")
        return self._insert(torch.matmul(x.value, y.value), (a, b), Op.MATMUL)

    def tanh(self, a) -> Handle:
        return self._insert(torch.tanh(self._node(a).value), (a,), Op.TANH)

    def relu(self, a) -> Handle:
        return self._insert(torch.clamp(self._node(a).value, min=0), (a,), Op.RELU)

    # --- Traversal ---
    def _topological_indices(self, root_index) -> List[int]:
        graph = self.graph
        order = []
        visited = {root_index}
        stack = [(root_index, iter(graph[root_index].children))]
        while stack:
            index, pending = stack[-1]
            for child in pending:
                if child not in visited:
                    visited.add(child)
                    stack.append((child, iter(graph[child].children)))
                    break
            else:
                stack.pop()
                order.append(index)
        return order

    def topological_order(self, root) -> List[Handle]:
        """Every node reachable from ``root``, each once, children first."""
        self._node(root)
        graph = self.graph
        return [Handle(self, i, graph[i].serial) for i in self._topological_indices(root.index)]

    def backward(self, root):
        """Propagates the seeded gradient of ``root`` into all its ancestors.

        The root's ``grad`` must already hold d(loss)/d(root); it is not
        reset. Gradients accumulate, so call ``zero_grad`` on parameters
        between steps.
        """
        from .gradients import rule_for

        self._node(root)
        graph = self.graph
        order = self._topological_indices(root.index)
        for index in reversed(order):
            node = graph[index]
            rule_for(node.op)(node, [graph[c] for c in node.children])
        logger.debug("Backward pass through %d nodes", len(order))

    # --- Accessors ---
    def value(self, handle):
        return self._node(handle).value.clone()

    def grad(self, handle):
        return self._node(handle).grad.clone()

    def set_value(self, handle, data):
        node = self._node(handle)
        value = as_value(data)
        if value.shape != node.value.shape:
            raise ShapeMismatchError(
                f"set_value: shape {tuple(value.shape)} does not match {tuple(node.value.shape)}.")
        node.value = value

    def set_grad(self, handle, data):
        node = self._node(handle)
        grad = as_value(data)
        if grad.shape != node.value.shape:
            raise ShapeMismatchError(
                f"set_grad: shape {tuple(grad.shape)} does not match {tuple(node.value.shape)}.")
        node.grad = grad

    def zero_grad(self, handle):
        node = self._node(handle)
        node.grad = torch.zeros_like(node.value)

    def shape(self, handle):
        return tuple(self._node(handle).value.shape)

    def op(self, handle):
        return self._node(handle).op

    def children(self, handle) -> List[Handle]:
        graph = self.graph
        return [Handle(self, i, graph[i].serial) for i in self._node(handle).children]

    def __repr__(self):
        return f"AutogradGraph(nodes={self.graph.num_nodes()}, edges={self.graph.num_edges()})"
