# crypto/keys.py
"""RSA key pair generation."""
import logging

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa

from pkichain.common.errors import KeyGenerationError
from pkichain.common.models import KeyPair

log = logging.getLogger(__name__)

PUBLIC_EXPONENT = 65537


class KeyPairGenerator:
    def __init__(self, public_exponent: int = PUBLIC_EXPONENT):
        self.public_exponent = public_exponent

    def generate(self, bits: int) -> KeyPair:
        log.debug("generating %d-bit RSA key", bits)
        try:
            key = rsa.generate_private_key(public_exponent=self.public_exponent, key_size=bits)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise KeyGenerationError(f"cannot generate {bits}-bit RSA key: {e}") from e
        return KeyPair(private_key=key, bits=bits)


def keys_match(private_key, public_key) -> bool:
    """True when ``private_key`` is the private half of ``public_key``."""
    if not isinstance(public_key, rsa.RSAPublicKey):
        return False
    return private_key.public_key().public_numbers() == public_key.public_numbers()
