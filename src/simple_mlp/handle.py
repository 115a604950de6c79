class Handle:
    """
    A reference to one node of an ``AutogradGraph``.

    Handles are cheap to copy and compare by node identity, never by value:
    two leaves holding equal numbers are different handles. All state lives
    in the graph, every method here forwards to it.
    """
    __slots__ = ('graph', 'index', 'serial')

    def __init__(self, graph, index, serial):
        self.graph = graph
        self.index = index
        self.serial = serial

    def __eq__(self, other):
        if not isinstance(other, Handle):
            return NotImplemented
        return self.graph is other.graph and self.index == other.index and self.serial == other.serial

    def __hash__(self):
        return hash((id(self.graph), self.index, self.serial))

    # --- Operations ---
    def add(self, other):
        return self.graph.add(self, other)

    def matmul(self, other):
        return self.graph.matmul(self, other)

    def tanh(self):
        return self.graph.tanh(self)

    def relu(self):
        return self.graph.relu(self)

    def __add__(self, other):
        if isinstance(other, Handle):
            return self.add(other)
        return NotImplemented

    def __matmul__(self, other):
        if isinstance(other, Handle):
            return self.matmul(other)
        return NotImplemented

    def backward(self):
        self.graph.backward(self)

    # --- State ---
    def value(self):
        return self.graph.value(self)

    def grad(self):
        return self.graph.grad(self)

    def set_value(self, data):
        self.graph.set_value(self, data)

    def set_grad(self, data):
        self.graph.set_grad(self, data)

    def zero_grad(self):
        self.graph.zero_grad(self)

    def children(self):
        return self.graph.children(self)

    @property
    def shape(self): return self.graph.shape(self)
    @property
    def op(self): return self.graph.op(self)
    @property
    def is_leaf(self): return not self.graph.children(self)

    def __repr__(self):
        return f"Handle(index={self.index}, serial={self.serial})"
