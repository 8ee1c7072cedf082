# common/errors.py
"""Error taxonomy. Every error is fatal for a generation run."""


class PKIError(Exception):
    pass


class KeyGenerationError(PKIError):
    """The RSA backend could not produce a key."""


class SigningError(PKIError):
    """Issuer key/certificate mismatch or a to-be-signed structure that cannot be signed."""


class PolicyError(SigningError):
    """Issuing the certificate would break a hierarchy constraint."""


class EncodingError(PKIError):
    """A descriptor field cannot be serialized (bad SAN, empty name, ...)."""


class PersistenceError(PKIError):
    """An artifact cannot be written or read back."""


class MissingArtifactError(PersistenceError):
    """A chain member is absent from the store or is not a readable certificate."""


class ConfigError(PKIError):
    pass


class HierarchyError(PKIError):
    """A step of the hierarchy run failed; ``__cause__`` holds the original error."""

    def __init__(self, step: str, artifact: str, reason: str):
        self.step = step
        self.artifact = artifact
        self.reason = reason
        super().__init__(f"step '{step}' failed on {artifact}: {reason}")


class RequestError(PKIError):
    """A demo request got no HTTP response (refused, TLS failure, timeout)."""
