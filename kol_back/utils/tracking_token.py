import base64
import binascii
import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import Optional


class InvalidTrackingToken(ValueError):
    pass


@dataclass(frozen=True)
class TrackingPayload:
    kol_id: int
    product_id: int
    link_id: int
    timestamp_ms: int


def _sign(secret: str, data: str) -> str:
    return hmac.new(secret.encode('utf-8'), data.encode('utf-8'), hashlib.sha256).hexdigest()


def encode_token(secret: str, kol_id: int, product_id: int, link_id: int, timestamp_ms: Optional[int] = None) -> str:
    """生成跟踪令牌：base64(kol-product-link-时间戳毫秒).HMAC签名"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    data = f'{kol_id}-{product_id}-{link_id}-{timestamp_ms}'
    encoded = base64.b64encode(data.encode('utf-8')).decode('ascii')
    return f'{encoded}.{_sign(secret, data)}'


def decode_token(secret: str, token: str, max_age_days: int, now_ms: Optional[int] = None) -> TrackingPayload:
    """校验签名与有效期并解析令牌，失败抛出 InvalidTrackingToken"""
    encoded, sep, signature = token.rpartition('.')
    if not sep or not encoded or not signature:
        raise InvalidTrackingToken('Malformed token')

    try:
        data = base64.b64decode(encoded, validate=True).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        raise InvalidTrackingToken('Malformed token payload')

    if not hmac.compare_digest(_sign(secret, data), signature):
        raise InvalidTrackingToken('Invalid signature')

    parts = data.split('-')
    if len(parts) != 4:
        raise InvalidTrackingToken('Malformed token payload')
    try:
        kol_id, product_id, link_id, timestamp_ms = (int(p) for p in parts)
    except ValueError:
        raise InvalidTrackingToken('Malformed token payload')

    if now_ms is None:
        now_ms = int(time.time() * 1000)
    if now_ms - timestamp_ms > max_age_days * 24 * 60 * 60 * 1000:
        raise InvalidTrackingToken('Token expired')

    return TrackingPayload(kol_id, product_id, link_id, timestamp_ms)
