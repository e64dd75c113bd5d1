import logging

ROOT_LOGGER = 'mae_uncertainty'


class SimulationFormatter(logging.Formatter):
    """One line per record; ``detailed`` adds the emitting module and line."""

    BRIEF = '%(asctime)s %(levelname)-7s %(message)s'
    DETAILED = '%(asctime)s %(levelname)-7s %(name)s:%(lineno)d  %(message)s'

    def __init__(self, detailed=False):
        super().__init__(
            fmt=self.DETAILED if detailed else self.BRIEF,
            datefmt='%H:%M:%S'
        )


def get_logger(name):
    """Module logger under the package root logger."""
    if not name.startswith(ROOT_LOGGER):
        name = f'{ROOT_LOGGER}.{name}'
    return logging.getLogger(name)


def setup_logging(level=logging.INFO, detailed=False):
    """Attach a single stream handler to the package root logger."""
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(SimulationFormatter(detailed))
    root.addHandler(handler)
    root.setLevel(level)
    return root
