"""
Ed25519 서명 유틸리티 테스트

@FEAT:ws-api @COMP:test @TYPE:unit
"""

import base64
import os
from decimal import Decimal

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.ec import SECP256R1, generate_private_key

from futures_gateway.exchanges.binance.signing import (
    build_signature_payload,
    generate_ed25519_key,
    resolve_private_key,
    sign_payload,
    truncate_timestamp_ms,
    verify_signature,
)
from futures_gateway.exchanges.exceptions import AuthenticationError, KeyMaterialError


def _raw_public(private_key):
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )


def _raw_seed(private_key):
    return private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )


class TestSignaturePayload:
    """서명 페이로드 정규화"""

    def test_keys_sorted_and_joined(self):
        """키를 사전순으로 정렬해 key=value&... 로 연결"""
        payload = build_signature_payload({'symbol': 'X', 'side': 'BUY', 'apiKey': 'abc'})

        assert payload == 'apiKey=abc&side=BUY&symbol=X'

    def test_insertion_order_does_not_matter(self):
        """같은 파라미터면 삽입 순서와 무관하게 같은 결과"""
        first = {'b': 2, 'a': 1, 'c': 'z'}
        second = {'c': 'z', 'a': 1, 'b': 2}

        assert build_signature_payload(first) == build_signature_payload(second)

    def test_signature_field_excluded(self):
        """signature 필드는 값과 관계없이 제외"""
        without = build_signature_payload({'symbol': 'X', 'side': 'BUY'})
        with_sig = build_signature_payload({'symbol': 'X', 'side': 'BUY', 'signature': 'anything'})

        assert with_sig == without

    def test_empty_params(self):
        assert build_signature_payload({}) == ''
        assert build_signature_payload(None) == ''

    def test_value_rendering(self):
        """bool은 true/false, float는 지수 표기 없이, Decimal은 그대로"""
        payload = build_signature_payload({
            'a': True,
            'b': False,
            'c': 5,
            'd': 0.0000001,
            'e': Decimal('0.0010'),
            'f': 1.5,
        })

        assert payload == 'a=true&b=false&c=5&d=0.0000001&e=0.0010&f=1.5'

    @pytest.mark.parametrize('value, expected', [
        (1.0, '1'),
        (100.0, '100'),
        (-3.0, '-3'),
        (1e21, '1000000000000000000000'),
        (0.1, '0.1'),
    ])
    def test_float_rendering(self, value, expected):
        """정수값 float는 소수점 없이 표기"""
        assert build_signature_payload({'v': value}) == f'v={expected}'

    @pytest.mark.parametrize('value', [float('nan'), float('inf'), float('-inf')])
    def test_non_finite_float_rejected(self, value):
        with pytest.raises(ValueError):
            build_signature_payload({'v': value})


class TestTimestampTruncation:

    @pytest.mark.parametrize('raw, expected', [
        (0, 0),
        (1000, 1000),
        (1999, 1000),
        (1700000000999, 1700000000000),
    ])
    def test_truncates_to_whole_seconds(self, raw, expected):
        assert truncate_timestamp_ms(raw) == expected


class TestSignAndVerify:

    def test_signature_is_deterministic_and_verifies(self):
        """Ed25519 서명은 결정적이며 공개키로 검증 가능"""
        # Arrange
        private_key = Ed25519PrivateKey.generate()
        payload = 'apiKey=abc&side=BUY&symbol=X&timestamp=1700000000000'

        # Act
        first = sign_payload(private_key, payload)
        second = sign_payload(private_key, payload)

        # Assert
        assert first == second
        assert len(base64.b64decode(first)) == 64
        assert verify_signature(private_key.public_key(), payload, first) is True

    def test_tampered_payload_fails_verification(self):
        private_key = Ed25519PrivateKey.generate()
        signature = sign_payload(private_key, 'side=BUY&symbol=X')

        assert verify_signature(private_key.public_key(), 'side=SELL&symbol=X', signature) is False


class TestResolvePrivateKey:
    """키 파일 형식별 로딩"""

    def test_loads_32_byte_seed(self, tmp_path):
        # Arrange
        original = Ed25519PrivateKey.generate()
        path = tmp_path / 'seed.key'
        path.write_bytes(_raw_seed(original))

        # Act
        loaded = resolve_private_key(str(path))

        # Assert
        assert _raw_public(loaded) == _raw_public(original)

    def test_loads_64_byte_key(self, tmp_path):
        original = Ed25519PrivateKey.generate()
        path = tmp_path / 'full.key'
        path.write_bytes(_raw_seed(original) + _raw_public(original))

        loaded = resolve_private_key(str(path))

        assert _raw_public(loaded) == _raw_public(original)

    def test_rejects_64_byte_key_with_mismatched_public_half(self, tmp_path):
        original = Ed25519PrivateKey.generate()
        other = Ed25519PrivateKey.generate()
        path = tmp_path / 'mismatch.key'
        path.write_bytes(_raw_seed(original) + _raw_public(other))

        with pytest.raises(KeyMaterialError, match='does not match'):
            resolve_private_key(str(path))

    def test_loads_pkcs8_pem(self, tmp_path):
        original = Ed25519PrivateKey.generate()
        pem = original.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        path = tmp_path / 'key.pem'
        path.write_bytes(pem + b'\n\n')

        loaded = resolve_private_key(str(path))

        assert _raw_public(loaded) == _raw_public(original)

    def test_rejects_non_ed25519_pem(self, tmp_path):
        ec_key = generate_private_key(SECP256R1())
        pem = ec_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        path = tmp_path / 'ec.pem'
        path.write_bytes(pem)

        with pytest.raises(KeyMaterialError, match='expected Ed25519'):
            resolve_private_key(str(path))

    def test_rejects_10_random_bytes(self, tmp_path):
        """형식에 맞지 않는 10바이트는 KeyMaterialError"""
        path = tmp_path / 'garbage.key'
        path.write_bytes(bytes((b % 94) + 33 for b in os.urandom(10)))

        with pytest.raises(KeyMaterialError, match='10 bytes'):
            resolve_private_key(str(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(KeyMaterialError, match='no Ed25519 key found'):
            resolve_private_key(str(tmp_path / 'missing.key'))

    def test_key_material_error_is_authentication_error(self, tmp_path):
        with pytest.raises(AuthenticationError):
            resolve_private_key(str(tmp_path / 'missing.key'))


class TestGenerateKey:

    def test_generated_key_round_trips_through_resolver(self, tmp_path):
        # Arrange
        path = tmp_path / 'keys' / 'ed25519.key'

        # Act
        info = generate_ed25519_key(str(path))
        loaded = resolve_private_key(str(path))

        # Assert
        assert info['path'] == str(path)
        assert _raw_public(loaded).hex() == info['public_key_hex']
        assert base64.b64decode(info['private_key_base64']).hex() == info['private_key_hex']
        assert os.stat(path).st_mode & 0o777 == 0o600

    def test_refuses_to_overwrite_without_flag(self, tmp_path):
        path = tmp_path / 'ed25519.key'
        first = generate_ed25519_key(str(path))

        with pytest.raises(FileExistsError):
            generate_ed25519_key(str(path))

        second = generate_ed25519_key(str(path), overwrite=True)
        assert second['public_key_hex'] != first['public_key_hex']
