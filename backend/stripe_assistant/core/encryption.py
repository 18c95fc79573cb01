"""
Field-level encryption for secrets stored in the database.
Uses Fernet symmetric encryption with key rotation support.
"""

import base64
import logging
import os
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy import String, TypeDecorator

from stripe_assistant.core.config import settings

logger = logging.getLogger("stripe_assistant.encryption")


class EncryptionError(Exception):
    """Raised when encryption/decryption fails."""
    pass


class FieldEncryptor:
    """
    Encrypts and decrypts single field values.

    ENCRYPTION_KEY may hold several comma-separated Fernet keys; the first
    one encrypts, any of them decrypts. Outside production a key is derived
    from SECRET_KEY when ENCRYPTION_KEY is unset.
    """

    _instance: Optional["FieldEncryptor"] = None
    _fernet: Optional[Union[Fernet, MultiFernet]] = None

    def __new__(cls) -> "FieldEncryptor":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self) -> None:
        encryption_key = settings.ENCRYPTION_KEY or os.getenv("ENCRYPTION_KEY")

        if not encryption_key:
            if settings.ENVIRONMENT.lower() == "production":
                raise EncryptionError(
                    "ENCRYPTION_KEY must be set in production. "
                    "Generate one with: python -c \"from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())\""
                )
            logger.warning(
                "ENCRYPTION_KEY not set. Using derived key from SECRET_KEY. "
                "Set ENCRYPTION_KEY in production."
            )
            encryption_key = self._derive_key_from_secret(settings.SECRET_KEY)

        keys = [k.strip() for k in encryption_key.split(",") if k.strip()]

        if len(keys) == 1:
            self._fernet = Fernet(keys[0].encode())
        else:
            self._fernet = MultiFernet([Fernet(k.encode()) for k in keys])

        logger.info(f"Field encryption initialized with {len(keys)} key(s)")

    @staticmethod
    def _derive_key_from_secret(secret: str) -> str:
        """Derive a Fernet key from SECRET_KEY using PBKDF2."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=b"stripe_assistant_dev_salt_v1",
            iterations=100000,
        )
        return base64.urlsafe_b64encode(kdf.derive(secret.encode())).decode()

    def encrypt(self, plaintext: str) -> str:
        if not plaintext:
            return plaintext

        try:
            return self._fernet.encrypt(plaintext.encode()).decode()
        except Exception as e:
            logger.error(f"Encryption failed: {e}")
            raise EncryptionError(f"Failed to encrypt data: {e}") from e

    def decrypt(self, ciphertext: str) -> str:
        """
        Decrypt a value produced by `encrypt`.

        Raises:
            EncryptionError: wrong key or corrupted data
        """
        if not ciphertext:
            return ciphertext

        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken as e:
            logger.error("Decryption failed: invalid token (wrong key or corrupted data)")
            raise EncryptionError("Failed to decrypt data: invalid encryption key or corrupted data") from e

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()


def get_encryptor() -> FieldEncryptor:
    """Return the process-wide encryptor."""
    return FieldEncryptor()


def encrypt_field(value: str) -> str:
    return get_encryptor().encrypt(value)


def decrypt_field(value: str) -> str:
    return get_encryptor().decrypt(value)


class EncryptedString(TypeDecorator):
    """
    SQLAlchemy string type that is encrypted at rest.

    Usage:
        class Organization(Base):
            stripe_secret_key = Column(EncryptedString(500), nullable=True)
    """

    impl = String
    cache_ok = True

    def __init__(self, length: int = 500, *args, **kwargs):
        # Ciphertext is much longer than the plaintext
        super().__init__(length, *args, **kwargs)

    def process_bind_param(self, value, dialect):
        if value is not None:
            return get_encryptor().encrypt(str(value))
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return get_encryptor().decrypt(value)
        return value
