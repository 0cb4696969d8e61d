class ScoreSplitError(Exception):
    """
    Base class for every error raised by the package.
    """


class BufferSizeError(ScoreSplitError, ValueError):
    """
    Raised when a pixel buffer does not hold exactly width * height * 4 bytes.
    """

    def __init__(self, actual: int, width: int, height: int):
        self.actual = actual
        self.expected = width * height * 4
        super().__init__(
            f"RGBA buffer holds {actual} bytes, expected {self.expected} "
            f"for a {width}x{height} page"
        )


class DetectionError(ScoreSplitError):
    """
    A detection task failed inside its execution unit.
    The message is the unit's string rendering of the original fault.
    """

    def __init__(self, message: str, task_id: str | None = None):
        self.task_id = task_id
        super().__init__(message)


class PoolTerminatedError(ScoreSplitError, RuntimeError):
    """
    Raised when a task is submitted to a pool that was already terminated.
    """
