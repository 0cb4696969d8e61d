import logging
import sys
import io


class _DummyStream(io.TextIOBase):
    """
    Sink for log output when the interpreter has no stderr, e.g. a Qt
    session started without a console.
    """

    def write(self, x: str) -> int:
        return len(x)

    def flush(self) -> None:
        pass


def init_streams() -> None:
    """
    Gives the log handler somewhere to write before it is attached.
    """
    if sys.stdout is None:
        sys.stdout = _DummyStream()
    if sys.stderr is None:
        sys.stderr = _DummyStream()


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configures the "scoresplit" logger tree.

    Records go to stderr because the CLI prints its JSON layout on stdout.
    Calling again only changes the level; no second handler is attached.
    """
    init_streams()

    logger = logging.getLogger("scoresplit")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Logger for a module. Names from __name__ already sit under "scoresplit";
    anything else is nested beneath it.
    """
    if not name:
        return logging.getLogger("scoresplit")
    if name == "scoresplit" or name.startswith("scoresplit."):
        return logging.getLogger(name)
    return logging.getLogger(f"scoresplit.{name}")
