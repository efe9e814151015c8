"""Error taxonomy for microsim.

Two families with different propagation rules:
- Engine interaction and construction failures are fatal and propagate
  to the caller with the original cause chained.
- Weight validation failures are recoverable and are turned into
  user-visible messages at the weighting strategy boundary.
"""


class MicrosimError(Exception):
    """Base class for all microsim errors."""

    pass


# =============================================================================
# Engine interaction (fatal)
# =============================================================================


class EngineError(MicrosimError):
    """Raised when an interaction with the statistics engine fails."""

    pass


class EngineEvaluationError(EngineError):
    """Raised when the engine fails to evaluate an expression or assignment."""

    def __init__(self, expression: str, message: str):
        self.expression = expression
        super().__init__(f"Error evaluating '{expression}': {message}")


class ResultShapeError(EngineError):
    """Raised when an engine result does not have the expected shape."""

    pass


class SnapshotError(RuntimeError):
    """Raised when the simulation state cannot be snapshotted into the engine.

    A malformed snapshot invalidates every statistic computed for the run,
    so this is never recovered locally.
    """

    def __init__(self, run_number: int, cause: BaseException):
        self.run_number = run_number
        super().__init__(f"Snapshot of run {run_number} failed: {cause}")


# =============================================================================
# Weighting
# =============================================================================


class InvalidWeightsError(MicrosimError):
    """Raised when a weight set fails validation."""

    def __init__(self, message: str, total: float | None = None):
        self.total = total
        super().__init__(message)


class WeightConstructionError(MicrosimError):
    """Raised when a weighting strategy cannot be built from its source."""

    pass


class UnknownFactorLevelError(KeyError):
    """Raised when a weight is requested for a level not in the source distribution."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""
