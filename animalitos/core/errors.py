class AnimalitosError(Exception):
    """Base class for every error raised by the package."""


class DataInsufficientError(AnimalitosError):
    """Not enough draw history to compute a real prediction."""


class SourceUnavailableError(AnimalitosError):
    """The results page or the store could not be read."""


class IdentityConflictError(AnimalitosError):
    """A draw or resolved prediction with the same identity already exists."""


class InvariantViolation(AnimalitosError):
    """A correctness bug: bad numeric code or a batch resolved twice."""
