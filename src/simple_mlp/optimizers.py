import torch

class Optimizer:
    __slots__ = ('param_groups', 'state')
    def __init__(self, params, defaults):
        self.param_groups = []
        self.state = {}
        param_list = list(params)

        if not param_list:
            raise ValueError("Optimizer got an empty parameter list.")

        param_group = {'params': param_list, **defaults}
        self.param_groups.append(param_group)

    def step(self):
        raise NotImplementedError

    def clear(self):
        self.param_groups = []
        self.state.clear()

    def zero_grad(self):
        for group in self.param_groups:
            for p in group['params']:
                p.zero_grad()


class SGD(Optimizer):
    __slots__ = ()
    def __new__(cls, params, lr, weight_decay=None):
        assert lr > 0
        assert weight_decay is None or weight_decay > 0
        return super().__new__(cls)

    def __init__(self, params, lr, weight_decay=None):
        defaults = {'lr': lr, "weight_decay": weight_decay}
        super().__init__(params, defaults)

    def step(self):
        for group in self.param_groups:
            lr = group['lr']
            weight_decay = group['weight_decay']

            for p in group['params']:
                value = p.value()
                grad = p.grad()

                if weight_decay:
                    grad = grad + value * weight_decay

                p.set_value(value - lr * grad)


class Momentum(Optimizer):
    __slots__ = ()
    def __new__(cls, params, lr, momentum=0.9, weight_decay=None):
        assert lr > 0
        assert 0 < momentum < 1
        assert weight_decay is None or weight_decay > 0
        return super().__new__(cls)

    def __init__(self, params, lr, momentum=0.9, weight_decay=None):
        defaults = {'lr': lr, 'momentum': momentum, 'weight_decay': weight_decay}
        super().__init__(params, defaults)

    def step(self):
        state = self.state
        for group in self.param_groups:
            lr = group['lr']
            momentum = group['momentum']
            weight_decay = group['weight_decay']
            for p in group['params']:
                value = p.value()
                grad = p.grad()
                if weight_decay:
                    grad = grad + value * weight_decay

                if p not in state:
                    buf = torch.clone(grad)
                    state[p] = {'momentum_buffer': buf}
                else:
                    buf = state[p]['momentum_buffer']
                    buf.mul_(momentum).add_(grad)
                p.set_value(value - lr * buf)
