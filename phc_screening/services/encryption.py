"""
Field-level encryption for clinical free text at rest.

Doctor narratives, recommendations and prescriptions identify patients and
their conditions, so they are Fernet-encrypted before they reach the
database. The key comes from PHI_ENCRYPTION_KEY.
"""

from __future__ import annotations

import logging

from cryptography.fernet import Fernet, InvalidToken

from phc_screening.config import settings

logger = logging.getLogger(__name__)


class EncryptionService:
    """Wraps Fernet symmetric encryption for PHI text fields."""

    def __init__(self, key: str | bytes | None = None):
        raw_key = key or settings.PHI_ENCRYPTION_KEY
        if raw_key:
            self._fernet = Fernet(raw_key.encode() if isinstance(raw_key, str) else raw_key)
        else:
            # Ephemeral key: ciphertext will not survive a restart
            logger.warning("PHI_ENCRYPTION_KEY not set - using a generated development key")
            self._fernet = Fernet(Fernet.generate_key())

    def encrypt(self, plaintext: str | None) -> str | None:
        """Encrypt text; None and empty strings pass through unchanged."""
        if not plaintext:
            return plaintext
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, ciphertext: str | None) -> str | None:
        if not ciphertext:
            return ciphertext
        try:
            return self._fernet.decrypt(ciphertext.encode()).decode()
        except InvalidToken:
            logger.error("Could not decrypt a PHI field - wrong PHI_ENCRYPTION_KEY?")
            raise


encryption = EncryptionService()
