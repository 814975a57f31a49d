"""
Auxiliary Key Transport
=======================
RSA-OAEP (SHA-256) used only to move polynomial coordinates between
guardians during the key ceremony. Keys travel as PEM strings.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

logger = logging.getLogger(__name__)

DEFAULT_AUXILIARY_KEY_SIZE = 2048
PUBLIC_EXPONENT = 65537

AuxiliaryPublicKey = str
AuxiliarySecretKey = str

# Pluggable transport capability: (plaintext, recipient key) -> ciphertext
AuxiliaryEncrypt = Callable[[str, AuxiliaryPublicKey], Optional[bytes]]
AuxiliaryDecrypt = Callable[[bytes, AuxiliarySecretKey], Optional[str]]


@dataclass(frozen=True)
class AuxiliaryKeyPair:
    """A guardian's transport key pair, both halves PEM encoded"""
    secret_key: AuxiliarySecretKey
    public_key: AuxiliaryPublicKey


@dataclass(frozen=True)
class AuxiliaryPublicKeyRecord:
    """A guardian's transport public key as announced to the others"""
    owner_id: str
    sequence_order: int
    key: AuxiliaryPublicKey


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )


def generate_auxiliary_key_pair(key_size: int = DEFAULT_AUXILIARY_KEY_SIZE) -> AuxiliaryKeyPair:
    """Generate an RSA key pair for auxiliary transport"""
    private_key = rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)

    secret_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")

    logger.debug(f"Generated {key_size}-bit auxiliary key pair")
    return AuxiliaryKeyPair(secret_pem, public_pem)


def auxiliary_encrypt(message: str, public_key: AuxiliaryPublicKey) -> Optional[bytes]:
    """Encrypt a short string for the holder of public_key. Returns None on failure"""
    try:
        key = serialization.load_pem_public_key(public_key.encode("utf-8"))
        if not isinstance(key, rsa.RSAPublicKey):
            logger.warning("Auxiliary public key is not an RSA key")
            return None
        return key.encrypt(message.encode("utf-8"), _oaep())
    except (ValueError, TypeError) as e:
        logger.warning(f"Auxiliary encryption failed: {e}")
        return None


def auxiliary_decrypt(encrypted: bytes, secret_key: AuxiliarySecretKey) -> Optional[str]:
    """Decrypt a message with the PEM secret key. Returns None on failure"""
    try:
        key = serialization.load_pem_private_key(secret_key.encode("utf-8"), password=None)
        if not isinstance(key, rsa.RSAPrivateKey):
            logger.warning("Auxiliary secret key is not an RSA key")
            return None
        return key.decrypt(encrypted, _oaep()).decode("utf-8")
    except (ValueError, TypeError, InvalidKey, UnicodeDecodeError) as e:
        logger.warning(f"Auxiliary decryption failed: {e}")
        return None
