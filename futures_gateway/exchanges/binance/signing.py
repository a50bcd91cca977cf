"""
Binance WebSocket API Ed25519 서명 유틸리티

- 서명 페이로드 정규화 (키 정렬, signature 제외, key=value&...)
- Ed25519 키 파일 해석 (PKCS#8 PEM / 32바이트 seed / 64바이트 키)
- 서명 생성 및 base64 인코딩

@FEAT:ws-api @COMP:exchange @TYPE:core
"""

import base64
import logging
import math
import os
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from futures_gateway.exchanges.exceptions import KeyMaterialError

logger = logging.getLogger(__name__)

DEFAULT_KEY_PATH = './ed25519.key'
SIGNATURE_FIELD = 'signature'

ED25519_SEED_SIZE = 32
ED25519_PRIVATE_KEY_SIZE = 64


def _render_value(value: Any) -> str:
    """파라미터 값을 서명 페이로드용 문자열로 변환

    bool은 int의 하위 클래스이므로 int보다 먼저 검사한다.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"cannot sign non-finite float value: {value}")
        # 지수 표기 없이 최단 표현 (1e-07 → 0.0000001, 100.0 → 100)
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), 'f')
    if isinstance(value, Decimal):
        return format(value, 'f')
    return str(value)


# @FEAT:ws-api @COMP:exchange @TYPE:core
def build_signature_payload(params: Optional[Mapping[str, Any]]) -> str:
    """서명 대상 문자열 생성

    Args:
        params: 요청 파라미터

    Returns:
        str: 키를 사전순 정렬한 ``k1=v1&k2=v2`` 형태 (signature 필드 제외)

    Examples:
        >>> build_signature_payload({'symbol': 'X', 'side': 'BUY', 'signature': 'zzz'})
        'side=BUY&symbol=X'
    """
    if not params:
        return ''

    keys = sorted(k for k in params if k != SIGNATURE_FIELD)
    return '&'.join(f"{key}={_render_value(params[key])}" for key in keys)


def truncate_timestamp_ms(timestamp_ms: int) -> int:
    """밀리초 타임스탬프를 초 단위로 내림 (1999 → 1000)"""
    return (timestamp_ms // 1000) * 1000


# @FEAT:ws-api @COMP:exchange @TYPE:core
def resolve_private_key(path: Optional[str] = None) -> Ed25519PrivateKey:
    """Ed25519 개인키 파일 로드

    지원 형식 (순서대로 시도):
    1. PKCS#8 PEM (Ed25519 키만 허용)
    2. 32바이트 raw seed
    3. 64바이트 raw 키 (seed + 공개키, 공개키가 seed에서 유도한 값과 일치해야 함)

    Args:
        path: 키 파일 경로 (비어 있으면 ./ed25519.key)

    Raises:
        KeyMaterialError: 파일이 없거나 형식이 올바르지 않은 경우.
            키를 생성하거나 대체하지 않는다.
    """
    if not path or not path.strip():
        path = DEFAULT_KEY_PATH

    try:
        with open(path, 'rb') as f:
            data = f.read()
    except OSError as e:
        raise KeyMaterialError(f"no Ed25519 key found at {path}: {e}")

    data = data.strip()

    if data.startswith(b'-----BEGIN'):
        try:
            key = serialization.load_pem_private_key(data, password=None)
        except (ValueError, TypeError) as e:
            raise KeyMaterialError(f"invalid PEM private key at {path}: {e}")
        if not isinstance(key, Ed25519PrivateKey):
            raise KeyMaterialError(
                f"PEM key at {path} is {type(key).__name__}, expected Ed25519 private key"
            )
        return key

    if len(data) == ED25519_SEED_SIZE:
        return Ed25519PrivateKey.from_private_bytes(data)

    if len(data) == ED25519_PRIVATE_KEY_SIZE:
        seed, embedded_public = data[:ED25519_SEED_SIZE], data[ED25519_SEED_SIZE:]
        key = Ed25519PrivateKey.from_private_bytes(seed)
        derived_public = key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        if derived_public != embedded_public:
            raise KeyMaterialError(
                f"64-byte Ed25519 key at {path} has a public half that does not match its seed"
            )
        return key

    raise KeyMaterialError(
        f"invalid Ed25519 key content at {path} ({len(data)} bytes; "
        "expect raw 32-byte seed, 64-byte key, or PKCS#8 PEM)"
    )


def sign_payload(private_key: Ed25519PrivateKey, payload: str) -> str:
    """페이로드 Ed25519 서명 → base64 (표준 알파벳, 패딩 포함)"""
    signature = private_key.sign(payload.encode('utf-8'))
    return base64.b64encode(signature).decode('ascii')


def verify_signature(public_key: Ed25519PublicKey, payload: str, signature_b64: str) -> bool:
    """base64 서명 검증 (테스트/진단용)"""
    try:
        public_key.verify(base64.b64decode(signature_b64), payload.encode('utf-8'))
        return True
    except InvalidSignature:
        return False


# @FEAT:ws-api @COMP:exchange @TYPE:helper
def generate_ed25519_key(path: str, overwrite: bool = False) -> Dict[str, str]:
    """새 Ed25519 키 쌍 생성 후 32바이트 seed를 파일에 저장 (권한 0600)

    Binance API 관리 화면에 등록할 공개키를 함께 반환합니다.

    Returns:
        dict: private_key_hex, private_key_base64, public_key_hex, public_key_base64, path

    Raises:
        FileExistsError: overwrite=False인데 같은 경로에 파일이 이미 있는 경우
    """
    private_key = Ed25519PrivateKey.generate()
    seed = private_key.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    flags = os.O_WRONLY | os.O_CREAT | (os.O_TRUNC if overwrite else os.O_EXCL)
    fd = os.open(path, flags, 0o600)
    with os.fdopen(fd, 'wb') as f:
        f.write(seed)
    # 기존 파일을 덮어쓴 경우 mode 인자가 적용되지 않음
    os.chmod(path, 0o600)

    logger.info(f"🔑 Ed25519 키 생성 완료: {path}")

    return {
        'path': path,
        'private_key_hex': seed.hex(),
        'private_key_base64': base64.b64encode(seed).decode('ascii'),
        'public_key_hex': public.hex(),
        'public_key_base64': base64.b64encode(public).decode('ascii'),
    }
