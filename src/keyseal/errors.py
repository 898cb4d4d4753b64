"""Custom exceptions for KeySeal."""


class KeySealError(Exception):
    """Base exception for KeySeal."""


class ContainerFormatError(KeySealError):
    """Container does not match expected format."""


class AuthenticationFailure(KeySealError):
    """Container could not be authenticated.

    Raised for a wrong password, corrupted storage and tampering alike;
    the causes are deliberately not distinguished.
    """

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class EntropySourceFailure(KeySealError):
    """Operating system random generator could not provide bytes."""


class KeyDerivationFailure(KeySealError):
    """Password key derivation primitive failed."""


class ArmorError(KeySealError):
    """Recovered material cannot be exported as a PEM private key."""


class ConfigError(KeySealError):
    """Configuration file is unreadable or invalid."""
