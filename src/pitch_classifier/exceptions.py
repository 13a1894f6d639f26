from collections.abc import Iterable


class PitchClassifierError(Exception):
    """Base class for errors raised by the pitch classifier."""


class SchemaError(PitchClassifierError):
    def __init__(self, missing_columns: Iterable[str]) -> None:
        self.missing_columns: tuple[str, ...] = tuple(missing_columns)
        super().__init__(f"Input is missing required column(s): {', '.join(self.missing_columns)}")


class InsufficientDataError(PitchClassifierError):
    pass


class TrainingError(PitchClassifierError):
    pass


class UnsupportedOperationError(PitchClassifierError):
    pass


class NoValidModelError(PitchClassifierError):
    pass
