"""
PEM 编解码。

公开接口：
- PEMBlock: (类型, 原始字节) 二元组
- decode: 按文档顺序解析缓冲区中的全部 PEM 块
- decode_first: 只解析第一个 PEM 块
- encode: 将原始字节编码为单个 PEM 块
- encode_certificate_to_pem: 将 DER 证书包装为 CERTIFICATE 块
"""

from __future__ import annotations

import base64
import binascii
import re
from typing import Iterator, List, NamedTuple

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from .errors import MalformedPEM

CERTIFICATE = "CERTIFICATE"
EC_PRIVATE_KEY = "EC PRIVATE KEY"
RSA_PRIVATE_KEY = "RSA PRIVATE KEY"

# base64 每行 64 个字符
LINE_WIDTH = 64

_BEGIN_RE = re.compile(r"-----BEGIN ([^\r\n]*?)-----")
_WHITESPACE_RE = re.compile(r"\s+")


class PEMBlock(NamedTuple):
    type: str
    payload: bytes


def _to_text(buffer: bytes | str | None) -> str:
    if buffer is None:
        return ""
    if isinstance(buffer, str):
        return buffer
    # 块外的说明文字可以是任意字节，base64 正文在解码时再校验
    return bytes(buffer).decode("latin-1")


def iter_blocks(buffer: bytes | str | None) -> Iterator[PEMBlock]:
    """
    按文档顺序逐个解析 PEM 块，只在需要下一个块时才继续扫描。
    块外的文本（注释、说明、非 ASCII 字符）会被跳过。
    :raises MalformedPEM: BEGIN 没有匹配的 END，或正文不是合法 base64。
    """
    text = _to_text(buffer)
    pos = 0
    while True:
        begin = _BEGIN_RE.search(text, pos)
        if begin is None:
            return
        block_type = begin.group(1)
        end_marker = f"-----END {block_type}-----"
        end = text.find(end_marker, begin.end())
        if end < 0:
            raise MalformedPEM(f"PEM 块 {block_type!r} 缺少 END 标记")

        body = _WHITESPACE_RE.sub("", text[begin.end():end])
        try:
            payload = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedPEM(f"PEM 块 {block_type!r} 的 base64 内容无效") from e

        yield PEMBlock(block_type, payload)
        pos = end + len(end_marker)


def decode(buffer: bytes | str | None) -> List[PEMBlock]:
    """
    解析缓冲区中的全部 PEM 块，保持文档顺序。
    base64 正文中的换行、空行、缩进差异都会被忽略；未知类型的块同样保留。
    :param buffer: PEM 文本（bytes 或 str），None 或空视为没有任何块。
    :return: PEMBlock 列表。
    :raises MalformedPEM: 任意一个块的 BEGIN 没有匹配的 END，或正文不是合法 base64。
    """
    return list(iter_blocks(buffer))


def decode_first(buffer: bytes | str | None) -> PEMBlock | None:
    """只解析第一个 PEM 块，之后的内容不做检查。没有任何块时返回 None。"""
    return next(iter_blocks(buffer), None)


def encode(block_type: str, payload: bytes) -> bytes:
    """将原始字节编码为一个 PEM 块，以换行结尾。"""
    body = base64.b64encode(payload).decode("ascii")
    lines = [f"-----BEGIN {block_type}-----"]
    lines.extend(body[i:i + LINE_WIDTH] for i in range(0, len(body), LINE_WIDTH))
    lines.append(f"-----END {block_type}-----")
    return ("\n".join(lines) + "\n").encode("ascii")


def encode_certificate_to_pem(cert: bytes | x509.Certificate) -> bytes:
    """
    将证书序列化为 PEM。不校验 DER 内容。
    :param cert: DER 原始字节，或 x509.Certificate（取其 DER 编码）。
    """
    if isinstance(cert, x509.Certificate):
        cert = cert.public_bytes(Encoding.DER)
    return encode(CERTIFICATE, bytes(cert))
