import torch
import logging

logger = logging.getLogger(__name__)

# datatype of every value and gradient held by the graph
dtype = torch.float64
# execution stays on the CPU, there is no accelerator path
device = torch.device("cpu")

DEFAULT_SEED = 0

logger.debug("Running on: CPU (%s)", dtype)
