"""
PSS Exceptions

Custom exception classes for the Partial Set Security core.
"""

from .constants import ERR_VALIDATOR_IN_TOP_N, ERR_VALIDATOR_NOT_OPTED_IN


class PSSException(Exception):
    """Base exception for PSS."""
    pass


class ConfigurationError(PSSException):
    """Configuration error."""
    pass


class PSSError(PSSException):
    """
    Base class for rejected validator requests.

    These are expected outcomes of user input (a failed transaction), not
    system faults. They are returned inside an `OptResult` rather than raised
    by the core.
    """
    kind = "PSSError"

    def __init__(self, validator: str, consumer: str, message: str):
        self.validator = validator
        self.consumer = consumer
        super().__init__(message)


class ValidatorInTopNError(PSSError):
    """Opt-out rejected: the validator is force-selected into the top N."""
    kind = ERR_VALIDATOR_IN_TOP_N

    def __init__(self, validator: str, consumer: str):
        super().__init__(
            validator, consumer,
            f"validator {validator} is in the top N of consumer {consumer} and cannot opt out",
        )


class ValidatorNotOptedInError(PSSError):
    """Opt-out rejected: the validator is not opted in."""
    kind = ERR_VALIDATOR_NOT_OPTED_IN

    def __init__(self, validator: str, consumer: str):
        super().__init__(
            validator, consumer,
            f"validator {validator} is not opted in to consumer {consumer}",
        )
