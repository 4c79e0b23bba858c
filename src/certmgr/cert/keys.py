"""
私钥的 PEM 序列化。

只支持 RSA 与 ECDSA 两种私钥；新增算法需要在 encode_key_to_pem 中显式增加分支。
"""

from __future__ import annotations

from typing import Union

from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)
from loguru import logger

from . import pem
from .errors import UnsupportedKeyType

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey]


def _traditional_der(key: PrivateKey) -> bytes:
    # TraditionalOpenSSL + DER: RSA 为 PKCS#1，EC 为 SEC1 (RFC 5915)
    return key.private_bytes(
        encoding=Encoding.DER,
        format=PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=NoEncryption(),
    )


def encode_key_to_pem(key: PrivateKey) -> bytes:
    """
    将私钥编码为 PEM。
    :param key: RSA 或 ECDSA 私钥。
    :return: "RSA PRIVATE KEY" 或 "EC PRIVATE KEY" 类型的 PEM 块。
    :raises UnsupportedKeyType: 私钥既不是 ECDSA 也不是 RSA。
    """
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return pem.encode(pem.EC_PRIVATE_KEY, _traditional_der(key))
    if isinstance(key, rsa.RSAPrivateKey):
        return pem.encode(pem.RSA_PRIVATE_KEY, _traditional_der(key))

    logger.debug(f"拒绝编码不支持的私钥类型: {type(key).__name__}")
    raise UnsupportedKeyType(
        "private key is neither ecdsa nor rsa thus cannot be encoded"
    )
