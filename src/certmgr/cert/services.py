"""
证书管理的业务逻辑层。
此模块组合核心逻辑，供配置加载器、命令行等调用方使用。
"""

from typing import Sequence, Tuple

from cryptography import x509
from loguru import logger

from src.certmgr.config import config

from . import core, pem
from .decoding import strict_decode
from .errors import DecodeError, VerificationError
from .keys import PrivateKey, encode_key_to_pem
from .schemas import CA


def load_ca(data: bytes | str) -> CA:
    """
    从 JSON 文档加载 CA 配置。
    :param data: CA 配置文档。
    :return: CA 实例，profile 为空时使用配置中的 default_profile。
    :raises DecodeError: 文档包含未知字段、多个文档或格式错误。
    """
    try:
        ca = strict_decode(data, CA)
    except DecodeError as e:
        logger.warning(f"CA 配置解析失败: {e}")
        raise

    if not ca.profile and config.default_profile:
        ca.profile = config.default_profile
    logger.debug(f"已加载 CA 配置: {ca.name} ({ca.remote})")
    return ca


def ca_certificate_changed(ca: CA, candidate: bytes) -> bool:
    """
    判断新的证书材料是否与 CA 当前持有的证书不同。
    :param ca: CA 实例。
    :param candidate: 新的 PEM 证书。
    :return: CA 尚无可用证书或两者 DER 不同时返回 True。
    :raises DecodeError: candidate 无法解码为证书。
    """
    core.load_certificate(candidate)
    current = ca.get_pem()
    if not current:
        return True
    try:
        return not core.compare_certificates(current, candidate)
    except DecodeError as e:
        logger.warning(f"CA {ca.name} 当前持有的证书无法解析，视为已变更: {e}")
        return True


def certificate_matches_hosts(cert_pem: bytes, hosts: Sequence[str]) -> bool:
    """判断证书 SAN 是否与请求的主机名完全一致。"""
    cert = core.load_certificate(cert_pem)
    matched = core.hostnames_match_certificate(hosts, cert)
    if not matched:
        logger.info(
            f"证书 {core.display_name(cert.subject)} 的 SAN {core.certificate_hostnames(cert)} "
            f"与请求的主机名 {list(hosts)} 不一致"
        )
    return matched


def verify_against_ca(ca: CA, cert_pem: bytes) -> None:
    """
    使用 CA 持有的根证书校验证书。
    :raises DecodeError: CA 证书或待校验证书无法解析。
    :raises VerificationError: 校验失败。
    """
    root = core.load_certificate(ca.get_pem())
    cert = core.load_certificate(cert_pem)
    try:
        core.verify_cert_chain(root, cert)
    except VerificationError as e:
        logger.warning(f"证书未通过 CA {ca.name} 的校验 ({e.reason.value}): {e}")
        raise


def encode_key_pair(key: PrivateKey, cert: x509.Certificate) -> Tuple[bytes, bytes]:
    """返回 (私钥 PEM, 证书 PEM)，由调用方负责持久化。"""
    return encode_key_to_pem(key), pem.encode_certificate_to_pem(cert)
