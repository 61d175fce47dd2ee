"""
Password digests keyed with per-user material (HMAC-SHA512).
"""

import hashlib
import hmac
import secrets

# Random keying material per identity, matching the HMAC-SHA512 block size
HASH_KEY_BYTES = 128


class PasswordHasher:
    """Password digest service."""

    @staticmethod
    def generate_key() -> bytes:
        """Fresh random keying material for a new digest."""
        return secrets.token_bytes(HASH_KEY_BYTES)

    @staticmethod
    def digest(password: str, key: bytes) -> bytes:
        """
        Digest a password with the given keying material.

        Args:
            password: Plain text password
            key: Per-identity keying material

        Returns:
            64-byte HMAC-SHA512 digest
        """
        return hmac.new(key, password.encode("utf-8"), hashlib.sha512).digest()

    @staticmethod
    def hash(password: str) -> tuple[bytes, bytes]:
        """
        Digest a password with newly generated keying material.

        Returns:
            Tuple of (digest, keying material)
        """
        key = PasswordHasher.generate_key()
        return PasswordHasher.digest(password, key), key

    @staticmethod
    def verify(plain_password: str, key: bytes, stored_digest: bytes) -> bool:
        """
        Recompute the digest and compare it to the stored one.

        Args:
            plain_password: Plain text password to verify
            key: Stored keying material
            stored_digest: Stored digest

        Returns:
            True if password matches, False otherwise
        """
        return constant_time_equals(PasswordHasher.digest(plain_password, key), stored_digest)


def constant_time_equals(computed: bytes, stored: bytes) -> bool:
    """
    Compare two digests without an early exit on the first differing byte.

    A length mismatch is always unequal.
    """
    return hmac.compare_digest(bytes(computed), bytes(stored))


# Convenience functions
def hash_password(password: str) -> tuple[bytes, bytes]:
    """Digest a password with fresh keying material."""
    return PasswordHasher.hash(password)


def verify_password(plain_password: str, key: bytes, stored_digest: bytes) -> bool:
    """Verify a password."""
    return PasswordHasher.verify(plain_password, key, stored_digest)
