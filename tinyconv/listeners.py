import logging

logger = logging.getLogger(__name__)


class IterationListener:
    # called by a training loop after each optimizer iteration
    def iteration_done(self, layer, iteration: int):
        raise NotImplementedError


class ScoreIterationListener(IterationListener):
    def __init__(self, print_every: int = 10):
        self.print_every = max(1, int(print_every))

    def iteration_done(self, layer, iteration: int):
        if iteration % self.print_every == 0:
            logger.info("score at iteration %d is %s", iteration, layer.score())
