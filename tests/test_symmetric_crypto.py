"""
Tests for security.symmetric_crypto - envelope format, Encrypt-then-MAC ordering and error codes.
"""

from __future__ import annotations

import base64
import hashlib
import json
from unittest.mock import patch

import pytest
from Crypto.Cipher import AES
from Crypto.Util.Padding import pad

from security import symmetric_crypto
from security.symmetric_crypto import (
    RANDOM_KEY_CHARS,
    CryptoError,
    CryptoErrorCode,
    _mac_input,
    calculate_mac,
    check_key_strength,
    decrypt_text,
    derive_keys,
    encrypt_text,
    generate_random_key,
    parse_payload,
)

pytestmark = pytest.mark.usefixtures("fast_kdf")

SALT = bytes(range(16))
IV = bytes(range(16, 32))


def signed_envelope(passphrase: str, algorithm: str, ct_b64: str, v: int = 1) -> str:
    """an envelope with a correct MAC around arbitrary ciphertext."""
    _, mac_key = derive_keys(passphrase, SALT)
    mac = calculate_mac(_mac_input(v, algorithm, SALT.hex(), IV.hex(), ct_b64), mac_key)
    return json.dumps(
        {"v": v, "a": algorithm, "s": SALT.hex(), "iv": IV.hex(), "ct": ct_b64, "mac": mac}
    )


def error_code(packed: str, passphrase: str) -> CryptoErrorCode:
    with pytest.raises(CryptoError) as exc_info:
        decrypt_text(packed, passphrase)
    return exc_info.value.code


def with_field(packed: str, **changes) -> str:
    obj = json.loads(packed)
    obj.update(changes)
    return json.dumps(obj)


class TestRoundTrip:
    @pytest.mark.parametrize("algorithm", ["AES", "DES", "TripleDES"])
    def test_encrypt_then_decrypt(self, algorithm):
        plaintext = "héllo 世界 🔐 line\nbreak"
        packed = encrypt_text(plaintext, "correct horse", algorithm)
        assert decrypt_text(packed, "correct horse") == plaintext

    def test_each_encryption_uses_fresh_salt_and_iv(self):
        first = json.loads(encrypt_text("same", "pw"))
        second = json.loads(encrypt_text("same", "pw"))
        assert first["s"] != second["s"]
        assert first["iv"] != second["iv"]
        assert first["ct"] != second["ct"]


class TestEnvelope:
    """Tests for the v1 JSON envelope"""

    def test_field_order_and_encoding(self):
        packed = encrypt_text("secret", "pw", "TripleDES")
        obj = json.loads(packed)
        assert list(obj) == ["v", "a", "s", "iv", "ct", "mac"]
        assert obj["v"] == 1
        assert obj["a"] == "TripleDES"
        assert len(obj["s"]) == 32
        assert len(obj["iv"]) == 32
        assert len(obj["mac"]) == 64
        base64.b64decode(obj["ct"], validate=True)

    def test_compact_separators(self):
        packed = encrypt_text("secret", "pw")
        assert ", " not in packed
        assert '": ' not in packed

    def test_mac_covers_the_framing(self):
        packed = encrypt_text("secret", "pw")
        payload = parse_payload(packed)
        _, mac_key = derive_keys("pw", bytes.fromhex(payload.s))
        expected = f"1|AES|{payload.s}|{payload.iv}|{payload.ct}"
        assert payload.mac_input() == expected
        assert calculate_mac(expected, mac_key) == payload.mac


class TestKeyDerivation:
    def test_single_derivation_split_by_position(self, fast_kdf):
        enc_key, mac_key = derive_keys("pässword", SALT)
        derived = hashlib.pbkdf2_hmac("sha256", "pässword".encode("utf-8"), SALT, fast_kdf, 64)
        assert enc_key == derived[:32]
        assert mac_key == derived[32:]

    def test_same_salt_same_keys(self):
        assert derive_keys("pw", SALT) == derive_keys("pw", SALT)
        assert derive_keys("pw", SALT) != derive_keys("pw", bytes(16))

    def test_iteration_count_is_read_at_call_time(self):
        with patch.object(symmetric_crypto, "PBKDF2", wraps=symmetric_crypto.PBKDF2) as kdf:
            derive_keys("pw", SALT)
        assert kdf.call_args.kwargs["count"] == 1000
        assert kdf.call_args.kwargs["dkLen"] == 64


class TestIntegrity:
    """Tests for tamper and wrong-passphrase detection"""

    @pytest.mark.parametrize("position", [0, 5, -3])
    def test_flipped_ciphertext_character(self, position):
        packed = encrypt_text("attack at dawn", "pw")
        ct = json.loads(packed)["ct"]
        chars = list(ct)
        chars[position] = "A" if chars[position] != "A" else "B"
        tampered = with_field(packed, ct="".join(chars))
        assert error_code(tampered, "pw") == CryptoErrorCode.INTEGRITY_FAILED

    def test_wrong_passphrase(self):
        packed = encrypt_text("attack at dawn", "right")
        assert error_code(packed, "wrong") == CryptoErrorCode.INTEGRITY_FAILED

    def test_swapped_algorithm_label(self):
        packed = encrypt_text("attack at dawn", "pw", "AES")
        assert error_code(with_field(packed, a="DES"), "pw") == CryptoErrorCode.INTEGRITY_FAILED

    def test_no_decryption_after_failed_mac(self):
        packed = encrypt_text("attack at dawn", "right")
        with patch("security.symmetric_crypto._new_cipher") as mock_cipher:
            assert error_code(packed, "wrong") == CryptoErrorCode.INTEGRITY_FAILED
        mock_cipher.assert_not_called()


class TestPayloadErrors:
    @pytest.mark.parametrize(
        "packed",
        [
            "not json",
            "[]",
            "42",
            '{"v": 1}',
            '{"v": 1, "a": "AES", "s": "00ff", "iv": "00ff", "ct": "AAAA"}',
            '{"v": 1, "a": "AES", "s": "zz", "iv": "00ff", "ct": "AAAA", "mac": "ab"}',
            '{"v": 1, "a": 5, "s": "00ff", "iv": "00ff", "ct": "AAAA", "mac": "ab"}',
            '{"v": true, "a": "AES", "s": "00ff", "iv": "00ff", "ct": "AAAA", "mac": "ab"}',
        ],
    )
    def test_invalid_payload(self, packed):
        assert error_code(packed, "pw") == CryptoErrorCode.INVALID_PAYLOAD

    def test_unsupported_version_is_checked_before_the_mac(self):
        packed = with_field(encrypt_text("secret", "pw"), v=2)
        with patch("security.symmetric_crypto.derive_keys") as mock_derive:
            assert error_code(packed, "pw") == CryptoErrorCode.UNSUPPORTED_VERSION
        mock_derive.assert_not_called()


class TestDecryptionFailures:
    """authenticated envelopes whose contents still cannot be decrypted"""

    def test_ciphertext_not_a_block_multiple(self):
        ct = base64.b64encode(b"x" * 15).decode("ascii")
        assert error_code(signed_envelope("pw", "AES", ct), "pw") == CryptoErrorCode.DECRYPTION_FAILED

    def test_ciphertext_not_base64(self):
        assert (
            error_code(signed_envelope("pw", "AES", "@@@@"), "pw")
            == CryptoErrorCode.DECRYPTION_FAILED
        )

    def test_unknown_algorithm(self):
        ct = base64.b64encode(b"x" * 16).decode("ascii")
        assert error_code(signed_envelope("pw", "RC4", ct), "pw") == CryptoErrorCode.DECRYPTION_FAILED

    def test_empty_plaintext(self):
        enc_key, _ = derive_keys("pw", SALT)
        raw = AES.new(enc_key, AES.MODE_CBC, iv=IV).encrypt(pad(b"", 16))
        ct = base64.b64encode(raw).decode("ascii")
        assert error_code(signed_envelope("pw", "AES", ct), "pw") == CryptoErrorCode.DECRYPTION_FAILED

    def test_invalid_utf8(self):
        enc_key, _ = derive_keys("pw", SALT)
        raw = AES.new(enc_key, AES.MODE_CBC, iv=IV).encrypt(pad(b"\xff\xfe", 16))
        ct = base64.b64encode(raw).decode("ascii")
        assert error_code(signed_envelope("pw", "AES", ct), "pw") == CryptoErrorCode.DECRYPTION_FAILED

    def test_hand_built_envelope_decrypts(self):
        enc_key, _ = derive_keys("pw", SALT)
        raw = AES.new(enc_key, AES.MODE_CBC, iv=IV).encrypt(pad("ok ✓".encode("utf-8"), 16))
        ct = base64.b64encode(raw).decode("ascii")
        assert decrypt_text(signed_envelope("pw", "AES", ct), "pw") == "ok ✓"


class TestEncryptInput:
    @pytest.mark.parametrize(
        "plaintext,passphrase,algorithm",
        [("", "pw", "AES"), ("text", "", "AES"), ("text", "pw", "Blowfish")],
    )
    def test_malformed_input(self, plaintext, passphrase, algorithm):
        with pytest.raises(CryptoError) as exc_info:
            encrypt_text(plaintext, passphrase, algorithm)
        assert exc_info.value.code == CryptoErrorCode.MALFORMED_INPUT

    def test_error_code_is_a_plain_string(self):
        assert CryptoErrorCode.INTEGRITY_FAILED == "INTEGRITY_FAILED"


class TestKeyHelpers:
    @pytest.mark.parametrize(
        "key,strength",
        [
            ("Ab1!", "weak"),
            ("abcdefgh", "weak"),
            ("abcdefgh1", "medium"),
            ("abcdefghijkl", "medium"),
            ("Abcdefgh1!", "strong"),
            ("Abcdefghijk1", "strong"),
        ],
    )
    def test_check_key_strength(self, key, strength):
        assert check_key_strength(key) == strength

    def test_generate_random_key(self):
        key = generate_random_key()
        assert len(key) == 24
        assert set(key) <= set(RANDOM_KEY_CHARS)
        assert len(generate_random_key(40)) == 40
        assert generate_random_key(0) == ""
