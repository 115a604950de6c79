import argparse
import logging

import torch

from .autograd_graph import AutogradGraph
from .config import DEFAULT_SEED, device, dtype
from .losses import SquaredError
from .module import MLP
from .optimizers import SGD

logger = logging.getLogger(__name__)

XOR_INPUTS = [(0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (1.0, 1.0)]
XOR_TARGETS = [0.0, 1.0, 1.0, 0.0]


def train_xor(epochs=500, lr=0.01, hidden=4, seed=DEFAULT_SEED, log_every=50):
    """Full-batch SGD on XOR with a 2 -> hidden -> 1 MLP.

    Every epoch builds its graph inside ``graph.scope()`` so only the model
    parameters outlive the step. Returns ``(model, graph, losses)`` where
    ``losses[i]`` is the summed squared error before the i-th update.
    """
    generator = torch.Generator().manual_seed(seed)
    graph = AutogradGraph()
    model = MLP(2, [hidden, 1], graph=graph, generator=generator)
    criterion = SquaredError(graph=graph)
    optimizer = SGD(model.parameters(), lr=lr)

    losses = []
    logger.info("Starting training: epochs=%d lr=%g hidden=%d seed=%d", epochs, lr, hidden, seed)
    for epoch in range(1, epochs + 1):
        with graph.scope():
            total_loss = graph.leaf(0.0)
            for x_data, y_target in zip(XOR_INPUTS, XOR_TARGETS):
                xs = [graph.leaf(v) for v in x_data]
                pred = model(xs)[0]
                total_loss = total_loss + criterion(pred, y_target)

            model.zero_grad()
            total_loss.set_grad(torch.ones(1, 1, device=device, dtype=dtype))
            total_loss.backward()
            optimizer.step()
            loss_value = total_loss.value().item()

        losses.append(loss_value)
        if epoch == 1 or (log_every and epoch % log_every == 0):
            logger.info("Epoch %3d | Loss: %.6f", epoch, loss_value)
    return model, graph, losses


def predict(model, graph, inputs=XOR_INPUTS):
    with graph.scope():
        return [model([graph.leaf(v) for v in x])[0].value().item() for x in inputs]


def main(argv=None):
    parser = argparse.ArgumentParser(description="Train a small MLP on XOR.")
    parser.add_argument("--epochs", type=int, default=500)
    parser.add_argument("--lr", type=float, default=0.01)
    parser.add_argument("--hidden", type=int, default=4)
    parser.add_argument("--seed", type=int, default=DEFAULT_SEED)
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)
    if args.epochs < 1:
        parser.error("--epochs must be at least 1")

    logging.basicConfig(
        level=args.log_level.upper(),
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    model, graph, losses = train_xor(args.epochs, args.lr, args.hidden, args.seed)
    logger.info("Final loss: %.6f", losses[-1])
    for x, pred in zip(XOR_INPUTS, predict(model, graph)):
        logger.info("Input: %s | Pred: %.4f", list(x), pred)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
