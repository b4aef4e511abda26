"""Encryption at rest for x-ui panel credentials."""

from cryptography.fernet import Fernet, InvalidToken
import logging

logger = logging.getLogger(__name__)


class SecretsManager:
    """
    Encrypt and decrypt panel passwords and 2FA secrets with Fernet.
    
    Encryption key stored in env var (never in code).
    Plaintext only exists in memory during a probe.
    """
    
    def __init__(self, encryption_key: str):
        """
        Args:
            encryption_key: Base64-encoded 32-byte Fernet key
        
        Raises:
            ValueError: If key is invalid
        """
        try:
            self.cipher = Fernet(encryption_key.encode())
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid encryption key format: {e}")
    
    @staticmethod
    def generate_key() -> str:
        """New random key for ENCRYPTION_KEY."""
        return Fernet.generate_key().decode("utf-8")
    
    def encrypt(self, plaintext: str) -> str:
        """
        Encrypt a credential.
        
        Returns:
            Fernet token, safe to store in DB
        """
        return self.cipher.encrypt(plaintext.encode("utf-8")).decode("utf-8")
    
    def decrypt(self, token: str) -> str:
        """
        Decrypt a stored credential.
        
        Raises:
            ValueError: If token is corrupted or key is wrong
        """
        try:
            return self.cipher.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken:
            logger.error("Cannot decrypt credential - key mismatch or corrupted data")
            raise ValueError("Cannot decrypt credential - key mismatch or corrupted")
