"""
证书管理核心使用的异常定义。

公开接口：
- CertError: 所有异常的基类
- MalformedPEM: PEM 结构非法（缺少 END、base64 无法解码）
- DecodeError: 输入无法解码为证书/目标文档
- UnknownField / MultipleDocuments: 严格解码失败
- UnsupportedKeyType: 私钥类型既不是 RSA 也不是 ECDSA
- VerificationError: 证书链校验失败，携带具体原因 VerificationFailure
"""

from __future__ import annotations

from enum import Enum


class CertError(Exception):
    """证书管理核心异常基类。"""


class MalformedPEM(CertError, ValueError):
    """PEM 结构非法。"""


class DecodeError(CertError, ValueError):
    """缓冲区无法解码为期望的对象。"""


class UnknownField(DecodeError):
    """文档中出现了目标结构未声明的字段。"""

    def __init__(self, field: str):
        super().__init__(f"unknown field {field!r}")
        self.field = field


class MultipleDocuments(DecodeError):
    """第一个文档之后仍有非空白内容。"""

    def __init__(self) -> None:
        super().__init__("multiple json objects found, only one is allowed")


class UnsupportedKeyType(CertError, TypeError):
    """私钥类型不在 {RSA, ECDSA} 范围内。"""


class VerificationFailure(str, Enum):
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    NOT_AUTHORIZED_TO_SIGN = "not_authorized_to_sign"
    INCOMPATIBLE_USAGE = "incompatible_usage"
    UNKNOWN_AUTHORITY = "unknown_authority"
    SIGNATURE_MISMATCH = "signature_mismatch"


class VerificationError(CertError):
    """证书链校验失败，reason 给出具体的 X.509 校验原因。"""

    def __init__(self, reason: VerificationFailure, message: str):
        super().__init__(message)
        self.reason = reason
