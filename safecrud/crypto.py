"""
Field-level encryption overlay.

Selected columns are encrypted before they are written and decrypted after
they are read, while the rest of the row stays in plaintext. The key, IV and
cipher method are fixed for the lifetime of a FieldCipher; callers only choose
which fields get the treatment.

The cipher is deterministic (fixed IV), so equal plaintexts produce equal
ciphertexts. That is what makes equality lookups on encrypted columns work,
and it also means the overlay hides values, not their equality.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

try:
    # CFB and OFB live under hazmat.decrepit in current cryptography releases.
    from cryptography.hazmat.decrepit.ciphers.modes import CFB, OFB
except ImportError:  # cryptography releases that predate the move
    from cryptography.hazmat.primitives.ciphers.modes import CFB, OFB

from .config import CipherConfig
from .errors import DecryptionError, UnsupportedCipherError


@dataclass(frozen=True)
class CipherSpec:
    """Key length, IV length and mode of a supported cipher method."""

    key_length: int
    iv_length: int
    mode: str

    @property
    def padded(self) -> bool:
        return self.mode == "cbc"


_MODES = {
    "cbc": modes.CBC,
    "cfb": CFB,
    "ofb": OFB,
    "ctr": modes.CTR,
}

_KEY_BITS = (128, 192, 256)


def cipher_spec(method: str) -> CipherSpec:
    """
    Look up a cipher method by its OpenSSL-style name, e.g. ``aes-256-cbc``.

    Raises:
        UnsupportedCipherError: If the method is unknown
    """
    parts = method.lower().split("-")
    if len(parts) != 3 or parts[0] != "aes" or parts[2] not in _MODES:
        raise UnsupportedCipherError(f"Unsupported cipher method: {method!r}")
    try:
        bits = int(parts[1])
    except ValueError:
        raise UnsupportedCipherError(f"Unsupported cipher method: {method!r}") from None
    if bits not in _KEY_BITS:
        raise UnsupportedCipherError(f"Unsupported cipher method: {method!r}")
    return CipherSpec(key_length=bits // 8, iv_length=16, mode=parts[2])


def iv_length(method: str) -> int:
    return cipher_spec(method).iv_length


def field_list(field_names: Iterable[str] | str | None) -> list[str]:
    """
    Normalize a field selection to a list of names.

    A bare string names one field; it is never iterated character by character.
    """
    if field_names is None:
        return []
    if isinstance(field_names, str):
        return [field_names]
    return list(field_names)


def _as_bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


class FieldCipher:
    """
    Encrypts and decrypts a caller-selected subset of fields.

    Usage:
        cipher = FieldCipher(CipherConfig(secret_key="...", iv="...", method="aes-256-cbc"))
        row = cipher.encrypt_fields({"name": "Ann", "ssn": "123-45-6789"}, ["ssn"])
        rows = cipher.decrypt_fields(fetched_rows, ["ssn"])
    """

    def __init__(self, config: CipherConfig) -> None:
        """
        Initialize the field cipher.

        Args:
            config: Fixed key, IV material and method

        Raises:
            UnsupportedCipherError: If the method is not supported
            ValueError: If the IV material is shorter than the method's IV length
        """
        self.method = config.method.lower()
        self._spec = cipher_spec(self.method)

        iv = _as_bytes(config.iv)
        if len(iv) < self._spec.iv_length:
            raise ValueError(
                f"iv material is {len(iv)} bytes; {self.method} needs at least {self._spec.iv_length}"
            )
        self._iv = iv[: self._spec.iv_length]
        self._key = hashlib.sha256(_as_bytes(config.secret_key)).digest()[: self._spec.key_length]

    def _cipher(self) -> Cipher:
        mode = _MODES[self._spec.mode](self._iv)
        return Cipher(algorithms.AES(self._key), mode, backend=default_backend())

    def encrypt_value(self, value: Any) -> str | None:
        """
        Encrypt a single scalar and return base64 text.

        None is passed through so NULL columns stay NULL. Other non-string
        scalars are encrypted as their ``str()`` form.
        """
        if value is None:
            return None
        plaintext = str(value).encode("utf-8")

        if self._spec.padded:
            padder = padding.PKCS7(algorithms.AES.block_size).padder()
            plaintext = padder.update(plaintext) + padder.finalize()

        encryptor = self._cipher().encryptor()
        ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        return base64.b64encode(ciphertext).decode("ascii")

    def decrypt_value(self, value: str | bytes | None) -> str | None:
        """
        Decrypt base64 text produced by :meth:`encrypt_value`.

        Raises:
            DecryptionError: If the value is not valid ciphertext for this key/IV
        """
        if value is None:
            return None
        if not isinstance(value, (str, bytes)):
            raise DecryptionError(f"Expected ciphertext text, got {type(value).__name__}")
        try:
            ciphertext = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecryptionError(f"Value is not valid base64 ciphertext: {exc}") from exc

        try:
            decryptor = self._cipher().decryptor()
            plaintext = decryptor.update(ciphertext) + decryptor.finalize()
            if self._spec.padded:
                unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
                plaintext = unpadder.update(plaintext) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except ValueError as exc:
            # Covers bad block lengths, bad padding and invalid UTF-8.
            raise DecryptionError(f"Failed to decrypt value with {self.method}: {exc}") from exc

    def encrypt_fields(
        self,
        data: Mapping[str, Any],
        field_names: Iterable[str] | str | None,
    ) -> dict[str, Any]:
        """
        Return a copy of ``data`` with the named fields encrypted.

        Names that are not keys of ``data`` are skipped silently.
        """
        result = dict(data)
        for name in field_list(field_names):
            if name in result:
                result[name] = self.encrypt_value(result[name])
        return result

    def decrypt_fields(
        self,
        rows: Iterable[Mapping[str, Any]],
        field_names: Iterable[str] | str | None,
    ) -> list[dict[str, Any]]:
        """
        Return copies of ``rows`` with the named fields decrypted.

        Raises:
            DecryptionError: On the first value that fails to decrypt
        """
        names = field_list(field_names)
        decrypted = []
        for row in rows:
            row = dict(row)
            for name in names:
                if name in row:
                    row[name] = self.decrypt_value(row[name])
            decrypted.append(row)
        return decrypted
