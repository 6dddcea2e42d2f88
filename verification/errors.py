class VerificationError(Exception):
    """Base class for verification failures"""


class ValidationError(VerificationError):
    """Bad input, rule violation or wrapped analyzer failure.

    The message is the user-visible reason and is also what gets written
    into the record's failure_reason.
    """


class AnalysisError(ValidationError):
    """The document analyzer found no identity document in the image"""


class NotFoundError(VerificationError):
    """Unknown verification id"""


class ConfigurationError(VerificationError):
    """Missing or invalid configuration, raised at startup only"""
