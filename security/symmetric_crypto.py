"""
goal: passphrase-based symmetric encryption with a versioned, self-describing JSON envelope.
      Encrypt-then-MAC: the HMAC covers the finished ciphertext and its framing, and is checked before
      anything is decrypted.

envelope (v1), field names are part of the format and must not change:
    {"v": 1, "a": "AES", "s": "<salt hex>", "iv": "<iv hex>", "ct": "<ciphertext base64>", "mac": "<hmac hex>"}

key material:
- PBKDF2-HMAC-SHA256, 16-byte random salt, 100,000 iterations, 64 bytes from ONE derivation call
- bytes 0..31 are the cipher key, bytes 32..63 are the MAC key (same salt -> same two keys)
- DES takes the first 8 cipher-key bytes, TripleDES the first 24, AES all 32
- the IV is 16 random bytes; 64-bit block ciphers use its first 8

decryption fails fast, in this order, each with its own error code:
INVALID_PAYLOAD -> UNSUPPORTED_VERSION -> INTEGRITY_FAILED -> DECRYPTION_FAILED
a wrong passphrase and a tampered envelope both end in INTEGRITY_FAILED, the error does not say
which one happened.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any

from Crypto.Cipher import AES, DES, DES3
from Crypto.Hash import HMAC, SHA256
from Crypto.Protocol.KDF import PBKDF2
from Crypto.Random import get_random_bytes
from Crypto.Util.Padding import pad, unpad

from security.password_gen import secure_randint

crypto_logger = logging.getLogger("tooldeck.crypto")

VERSION = 1
PBKDF2_ITERATIONS = 100_000
KEY_SIZE_BYTES = 32  # cipher key and MAC key are 32 bytes each
SALT_SIZE_BYTES = 16
IV_SIZE_BYTES = 16

REQUIRED_FIELDS = ("v", "a", "s", "iv", "ct", "mac")


class CryptoErrorCode(str, Enum):
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    UNSUPPORTED_VERSION = "UNSUPPORTED_VERSION"
    INTEGRITY_FAILED = "INTEGRITY_FAILED"
    DECRYPTION_FAILED = "DECRYPTION_FAILED"
    MALFORMED_INPUT = "MALFORMED_INPUT"


class CryptoError(Exception):
    """the only exception type that leaves this module. .code says what went wrong."""

    def __init__(self, code: CryptoErrorCode, message: str | None = None) -> None:
        super().__init__(message or code.value)
        self.code = code


# algorithm name -> (cipher module, key length in bytes)
ALGORITHMS: dict[str, tuple[Any, int]] = {
    "AES": (AES, 32),
    "DES": (DES, 8),
    "TripleDES": (DES3, 24),
}


@dataclass(frozen=True)
class EncryptedPayload:
    v: int
    a: str
    s: str
    iv: str
    ct: str
    mac: str

    def mac_input(self) -> str:
        return _mac_input(self.v, self.a, self.s, self.iv, self.ct)

    def to_json(self) -> str:
        # compact separators and fixed key order, matching envelopes from earlier runs
        return json.dumps(
            {"v": self.v, "a": self.a, "s": self.s, "iv": self.iv, "ct": self.ct, "mac": self.mac},
            separators=(",", ":"),
        )


def _mac_input(v: Any, a: str, s: str, iv: str, ct: str) -> str:
    return "|".join([str(v), a, s, iv, ct])


def derive_keys(passphrase: str, salt: bytes) -> tuple[bytes, bytes]:
    """one PBKDF2 call, split by position into (cipher key, MAC key)."""
    derived = PBKDF2(
        passphrase.encode("utf-8"),
        salt,
        dkLen=KEY_SIZE_BYTES * 2,
        count=PBKDF2_ITERATIONS,
        hmac_hash_module=SHA256,
    )
    return derived[:KEY_SIZE_BYTES], derived[KEY_SIZE_BYTES:]


def calculate_mac(data: str, mac_key: bytes) -> str:
    return HMAC.new(mac_key, data.encode("utf-8"), digestmod=SHA256).hexdigest()


def _new_cipher(algorithm: str, enc_key: bytes, iv: bytes) -> Any:
    module, key_len = ALGORITHMS[algorithm]
    return module.new(enc_key[:key_len], module.MODE_CBC, iv=iv[: module.block_size])


def encrypt_text(plaintext: str, passphrase: str, algorithm: str = "AES") -> str:
    """encrypt plaintext and return the JSON envelope."""
    if algorithm not in ALGORITHMS:
        raise CryptoError(CryptoErrorCode.MALFORMED_INPUT, f"Unsupported algorithm: {algorithm}")
    if not plaintext:
        raise CryptoError(CryptoErrorCode.MALFORMED_INPUT, "Nothing to encrypt")
    if not passphrase:
        raise CryptoError(CryptoErrorCode.MALFORMED_INPUT, "Passphrase is required")

    salt = get_random_bytes(SALT_SIZE_BYTES)
    iv = get_random_bytes(IV_SIZE_BYTES)
    enc_key, mac_key = derive_keys(passphrase, salt)

    cipher = _new_cipher(algorithm, enc_key, iv)
    ciphertext = cipher.encrypt(pad(plaintext.encode("utf-8"), cipher.block_size))
    ct_b64 = base64.b64encode(ciphertext).decode("ascii")

    salt_hex = salt.hex()
    iv_hex = iv.hex()
    mac = calculate_mac(_mac_input(VERSION, algorithm, salt_hex, iv_hex, ct_b64), mac_key)

    payload = EncryptedPayload(v=VERSION, a=algorithm, s=salt_hex, iv=iv_hex, ct=ct_b64, mac=mac)
    crypto_logger.info(f"Encrypted {len(plaintext)} characters with {algorithm}")
    return payload.to_json()


_HEX_RE = re.compile(r"^(?:[0-9a-fA-F]{2})+$")


def parse_payload(packed: str) -> EncryptedPayload:
    """parse and shape-check an envelope. anything structurally wrong is INVALID_PAYLOAD."""
    try:
        obj = json.loads(packed)
    except (TypeError, ValueError):
        raise CryptoError(CryptoErrorCode.INVALID_PAYLOAD, "Payload is not valid JSON") from None

    if not isinstance(obj, dict):
        raise CryptoError(CryptoErrorCode.INVALID_PAYLOAD, "Payload must be a JSON object")

    missing = [k for k in REQUIRED_FIELDS if not obj.get(k)]
    if missing:
        raise CryptoError(
            CryptoErrorCode.INVALID_PAYLOAD, f"Missing payload fields: {', '.join(missing)}"
        )

    text_fields = ("a", "s", "iv", "ct", "mac")
    if any(not isinstance(obj[k], str) for k in text_fields) or isinstance(obj["v"], bool):
        raise CryptoError(CryptoErrorCode.INVALID_PAYLOAD, "Payload fields have the wrong type")

    # salt and IV feed key derivation and the cipher, they have to be real hex
    if not _HEX_RE.match(obj["s"]) or not _HEX_RE.match(obj["iv"]):
        raise CryptoError(CryptoErrorCode.INVALID_PAYLOAD, "Salt and IV must be hex encoded")

    return EncryptedPayload(
        v=obj["v"], a=obj["a"], s=obj["s"], iv=obj["iv"], ct=obj["ct"], mac=obj["mac"]
    )


def decrypt_text(packed: str, passphrase: str) -> str:
    """verify and decrypt an envelope produced by encrypt_text."""
    payload = parse_payload(packed)

    if payload.v != VERSION:
        crypto_logger.warning(f"Rejected payload with unsupported version {payload.v!r}")
        raise CryptoError(CryptoErrorCode.UNSUPPORTED_VERSION)

    salt = bytes.fromhex(payload.s)
    iv = bytes.fromhex(payload.iv)
    enc_key, mac_key = derive_keys(passphrase or "", salt)

    # integrity before decryption, never touch unauthenticated ciphertext
    verifier = HMAC.new(mac_key, payload.mac_input().encode("utf-8"), digestmod=SHA256)
    try:
        verifier.hexverify(payload.mac)
    except ValueError:
        crypto_logger.warning("Integrity check failed (wrong passphrase or tampered payload)")
        raise CryptoError(CryptoErrorCode.INTEGRITY_FAILED) from None

    try:
        if payload.a not in ALGORITHMS:
            raise ValueError(f"unknown algorithm {payload.a!r}")
        ciphertext = base64.b64decode(payload.ct, validate=True)
        cipher = _new_cipher(payload.a, enc_key, iv)
        data = unpad(cipher.decrypt(ciphertext), cipher.block_size)
        plaintext = data.decode("utf-8")
        if not plaintext:
            raise ValueError("empty plaintext")
    except (ValueError, KeyError, binascii.Error, UnicodeDecodeError):
        crypto_logger.warning(f"Decryption failed for authenticated {payload.a} payload")
        raise CryptoError(CryptoErrorCode.DECRYPTION_FAILED) from None

    crypto_logger.info(f"✓ Decrypted {payload.a} payload")
    return plaintext


_SPECIAL_RE = re.compile(r'[!@#$%^&*(),.?":{}|<>]')


def check_key_strength(key: str) -> str:
    """rough passphrase strength: 'weak', 'medium' or 'strong'."""
    if len(key) < 8:
        return "weak"
    has_mixed = bool(re.search(r"[a-z]", key)) and bool(re.search(r"[A-Z]", key))
    has_num = bool(re.search(r"[0-9]", key))
    has_special = bool(_SPECIAL_RE.search(key))

    score = sum([has_mixed, has_num, has_special, len(key) >= 12])
    if score >= 3:
        return "strong"
    if score >= 1:
        return "medium"
    return "weak"


RANDOM_KEY_CHARS = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789!@#$%^&*()-_=+"


def generate_random_key(length: int = 24) -> str:
    """random passphrase drawn with the same bias-free sampler as the password generator."""
    return "".join(
        RANDOM_KEY_CHARS[secure_randint(len(RANDOM_KEY_CHARS))] for _ in range(max(length, 0))
    )
