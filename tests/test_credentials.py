import dataclasses

import pytest

from twostep.core import otp_core
from twostep.core.codec import decode_secret
from twostep.core.config import AuthenticatorConfig, KeyRepresentation
from twostep.core.credentials import AuthenticatorKey, KeyMaterialBuilder
from twostep.core.random_source import ReseedingRandomSource

from conftest import ScriptedRandomSource

KEY_BYTES = bytes(range(1, 11))
VALID = b"\x7f\xff\xff\xff"        # 47483647
VALID_2 = b"\x00\x98\x96\x80"      # 10000000
INVALID = b"\x00\x00\x00\x01"      # 1, fewer than 8 digits


def test_create_credentials_layout():
    source = ScriptedRandomSource(KEY_BYTES + VALID * 2 + VALID_2 * 3)
    key = KeyMaterialBuilder(AuthenticatorConfig(), source).create_credentials()

    assert source.requests == [30]
    assert decode_secret(key.key) == KEY_BYTES
    assert key.verification_code == otp_core.compute_code(KEY_BYTES, 0)
    assert key.scratch_codes == (47483647, 47483647, 10000000, 10000000, 10000000)


def test_invalid_scratch_slice_is_replaced_with_fresh_bytes():
    source = ScriptedRandomSource(
        KEY_BYTES + VALID + INVALID + VALID + VALID + INVALID,
        INVALID,     # first retry for slice 2, still invalid
        VALID_2,     # second retry for slice 2
        VALID_2,     # retry for slice 5
    )
    key = KeyMaterialBuilder(AuthenticatorConfig(), source).create_credentials()

    assert source.requests == [30, 4, 4, 4]
    assert key.scratch_codes == (47483647, 10000000, 47483647, 47483647, 10000000)


def test_base64_representation():
    config = AuthenticatorConfig(key_representation=KeyRepresentation.BASE64)
    source = ScriptedRandomSource(KEY_BYTES + VALID * 5)
    key = KeyMaterialBuilder(config, source).create_credentials()
    assert decode_secret(key.key, KeyRepresentation.BASE64) == KEY_BYTES
    assert key.config is config


def test_scratch_codes_always_have_eight_digits():
    builder = KeyMaterialBuilder(AuthenticatorConfig(), ReseedingRandomSource())
    for _ in range(500):
        key = builder.create_credentials()
        assert len(key.scratch_codes) == 5
        assert all(10 ** 7 <= code < 10 ** 8 for code in key.scratch_codes)
        assert 0 <= key.verification_code < 10 ** 6


def test_keys_are_independent_instances():
    builder = KeyMaterialBuilder(AuthenticatorConfig(), ReseedingRandomSource())
    first = builder.create_credentials()
    second = builder.create_credentials()
    assert first.key != second.key
    assert first.scratch_codes != second.scratch_codes


def test_authenticator_key_is_immutable():
    key = AuthenticatorKey("JBSWY3DPEHPK3PXP", 123456, [11111111, 22222222])
    assert key.scratch_codes == (11111111, 22222222)
    with pytest.raises(dataclasses.FrozenInstanceError):
        key.verification_code = 1
