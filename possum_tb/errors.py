"""
# Exceptions

Errors raised by the possum_tb package.

## Classes

- `PossumTBError`: Base class for every error raised by this package
- `ConfigurationError`: Invalid parameter sets, scenarios or sampling spaces
- `DegenerateStateError`: A state with an empty age class
- `NumericalIntegrationError`: The ODE solver failed to reach the end time
- `SampleEvaluationError`: A single sample of a batch evaluation failed
"""


class PossumTBError(Exception):
    """Base class for possum_tb errors."""


class ConfigurationError(PossumTBError, ValueError):
    """Raised when a parameter set or configuration is invalid."""


class DegenerateStateError(PossumTBError, ValueError):
    """
    Raised when the juvenile or adult class of a state is empty.

    The force of infection divides by the class totals, so a state with
    Nj == 0 or Na == 0 has no defined derivative or R0.
    """


class NumericalIntegrationError(PossumTBError, RuntimeError):
    """
    Raised when the ODE solver does not reach the requested end time.

    Attributes:
        time (float): Last time reached by the solver.
        params (dict[str, float]): Parameter values of the failing run.
    """

    def __init__(self, message: str, time: float = None, params: dict = None):
        super().__init__(message)
        self.time = time
        self.params = params

    def __str__(self):
        msg = super().__str__()
        if self.time is not None:
            msg += f" (t={self.time:g})"
        if self.params is not None:
            msg += f" params={self.params}"
        return msg


class SampleEvaluationError(PossumTBError, RuntimeError):
    """
    Raised when one sample of a batch evaluation fails.

    Attributes:
        index (int): Index of the failing sample in the batch.
        params (dict[str, float]): Parameter values of the failing sample.
    """

    def __init__(self, index: int, params: dict = None, cause: Exception = None):
        super().__init__(f"Sample {index} failed: {cause}")
        self.index = index
        self.params = params
        self.cause = cause
