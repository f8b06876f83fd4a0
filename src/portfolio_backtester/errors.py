class BacktestError(Exception):
    pass


class InvalidConfiguration(BacktestError, ValueError):
    """Raised when a backtest request is malformed. `problems` lists every issue found."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class InsufficientHistoricalData(BacktestError):
    """Raised when a simulation is requested for a window the data does not cover."""

    def __init__(self, message: str, report=None):
        self.report = report
        super().__init__(message)
