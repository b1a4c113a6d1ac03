"""Exception types raised by the speechhmm core."""


class SpeechHMMError(Exception):
    """Base class for all speechhmm errors."""


class PreconditionError(SpeechHMMError, ValueError):
    """An operation was called with inputs that violate its contract."""


class EmptyInputError(PreconditionError):
    """An input set that must be non-empty was empty."""


class DimensionMismatchError(PreconditionError):
    """Vectors (or a vector and a weight list) have different lengths."""


class WeightsError(PreconditionError):
    """Distance weights are malformed."""


class ObservationTooShortError(PreconditionError):
    """Observation sequence is shorter than the configured minimum duration."""

    def __init__(self, length: int, min_duration: int):
        self.length = length
        self.min_duration = min_duration
        super().__init__(
            f"Observation sequence incomplete: {length} symbols, "
            f"at least {min_duration} required"
        )


class IndexOutOfRangeError(SpeechHMMError, IndexError):
    """A state or symbol index is outside the model's range."""


class StateIndexError(IndexOutOfRangeError):
    """Illegal state number."""


class SymbolIndexError(IndexOutOfRangeError):
    """Illegal observation symbol."""


class ModelFormatError(SpeechHMMError, ValueError):
    """A persisted codebook or model could not be interpreted."""
