"""
证书管理的核心逻辑实现。
包括证书比较、主机名与 SAN 匹配、证书链校验、主体显示名生成等。
"""

import ipaddress
from datetime import datetime, timedelta, timezone
from typing import List, Sequence

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from loguru import logger

from src.certmgr.config import config

from . import pem
from .errors import DecodeError, MalformedPEM, VerificationError, VerificationFailure
from .schemas import CertificateSubject

PEM_DECODE_FAILED = "Unable to pem decode certificate"


def _first_certificate_der(buffer: bytes | None) -> bytes:
    """取出缓冲区中第一个 PEM 块的 DER 内容，该块必须是 CERTIFICATE；之后的块不做解析。"""
    try:
        block = pem.decode_first(buffer)
    except MalformedPEM as e:
        logger.debug(f"PEM 解码失败: {e}")
        raise DecodeError(PEM_DECODE_FAILED) from e
    if block is None or block.type != pem.CERTIFICATE:
        raise DecodeError(PEM_DECODE_FAILED)
    return block.payload


def load_certificate(buffer: bytes | None) -> x509.Certificate:
    """
    解析缓冲区中的第一个证书。
    :param buffer: PEM 文本。
    :return: x509.Certificate 对象。
    :raises DecodeError: 缓冲区为空、不是 PEM，或首个块不是合法证书。
    """
    return _parse_der(_first_certificate_der(buffer))


def _parse_der(der: bytes) -> x509.Certificate:
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        logger.debug(f"DER 证书解析失败: {e}")
        raise DecodeError("Unable to parse certificate") from e


def compare_certificates(a: bytes | None, b: bytes | None) -> bool:
    """
    比较两份 PEM 证书是否相同。
    只比较首个证书块解码后的 DER 字节，换行、空行等格式差异不影响结果。
    :raises DecodeError: 任意一侧无法解码为证书。
    """
    der_a = _first_certificate_der(a)
    der_b = _first_certificate_der(b)
    _parse_der(der_a)
    _parse_der(der_b)
    return der_a == der_b


def _canonical_ip(value: str) -> str | None:
    """IP 字面量返回规范化字符串，否则返回 None。"""
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return None
    return _render_ip(ip)


def _render_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> str:
    # IPv4 映射地址按 IPv4 输出
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return str(ip.ipv4_mapped)
    return str(ip)


def _subject_alt_names(cert: x509.Certificate) -> x509.SubjectAlternativeName | None:
    try:
        return cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        return None


def certificate_hostnames(cert: x509.Certificate) -> List[str]:
    """证书的 DNS SAN 与规范化后的 IP SAN，DNS 在前。"""
    san = _subject_alt_names(cert)
    if san is None:
        return []
    names = list(san.get_values_for_type(x509.DNSName))
    names.extend(_render_ip(ip) for ip in san.get_values_for_type(x509.IPAddress))
    return names


def hostnames_match_certificate(hosts: Sequence[str], cert: x509.Certificate) -> bool:
    """
    判断请求的主机名集合与证书 SAN 集合是否完全一致。
    证书中多出未请求的 SAN 同样视为不匹配。
    """
    requested = []
    for host in hosts:
        canonical = _canonical_ip(host)
        requested.append(host if canonical is None else canonical)
    present = certificate_hostnames(cert)

    if len(requested) != len(present):
        return False
    return sorted(requested) == sorted(present)


def _attribute_values(name: x509.Name, oid: x509.ObjectIdentifier) -> List[str]:
    return [str(attr.value) for attr in name.get_attributes_for_oid(oid)]


def display_name(name: x509.Name) -> str:
    """
    生成主体的显示名，例如 "/example.com/C=US/O=Example/OU=Ops/L=Paris/ST=IDF"。
    主体为空时返回空字符串。
    """
    parts = []
    common_names = _attribute_values(name, NameOID.COMMON_NAME)
    if common_names and common_names[0]:
        parts.append(common_names[0])

    for prefix, oid in (
        ("C", NameOID.COUNTRY_NAME),
        ("O", NameOID.ORGANIZATION_NAME),
        ("OU", NameOID.ORGANIZATIONAL_UNIT_NAME),
        ("L", NameOID.LOCALITY_NAME),
        ("ST", NameOID.STATE_OR_PROVINCE_NAME),
    ):
        parts.extend(f"{prefix}={value}" for value in _attribute_values(name, oid))

    if parts:
        return "/" + "/".join(parts)
    return ""


def describe_certificate(cert: x509.Certificate) -> CertificateSubject:
    """提取证书主体字段与 SAN。"""
    subject = cert.subject
    san = _subject_alt_names(cert)
    return CertificateSubject(
        common_name=_attribute_values(subject, NameOID.COMMON_NAME),
        organization=_attribute_values(subject, NameOID.ORGANIZATION_NAME),
        organizational_unit=_attribute_values(subject, NameOID.ORGANIZATIONAL_UNIT_NAME),
        locality=_attribute_values(subject, NameOID.LOCALITY_NAME),
        province=_attribute_values(subject, NameOID.STATE_OR_PROVINCE_NAME),
        country=_attribute_values(subject, NameOID.COUNTRY_NAME),
        dns_names=list(san.get_values_for_type(x509.DNSName)) if san else [],
        ip_addresses=[_render_ip(ip) for ip in san.get_values_for_type(x509.IPAddress)] if san else [],
    )


def _check_validity(cert: x509.Certificate, now: datetime, role: str) -> None:
    skew = timedelta(seconds=config.verify_clock_skew_seconds)
    if now + skew < cert.not_valid_before_utc:
        raise VerificationError(
            VerificationFailure.NOT_YET_VALID,
            f"{role} 证书尚未生效: 生效时间 {cert.not_valid_before_utc.isoformat()}",
        )
    if now - skew > cert.not_valid_after_utc:
        raise VerificationError(
            VerificationFailure.EXPIRED,
            f"{role} 证书已过期: 过期时间 {cert.not_valid_after_utc.isoformat()}",
        )


def _check_can_sign(ca: x509.Certificate) -> None:
    try:
        constraints = ca.extensions.get_extension_for_class(x509.BasicConstraints).value
    except x509.ExtensionNotFound:
        constraints = None
    if constraints is None or not constraints.ca:
        raise VerificationError(
            VerificationFailure.NOT_AUTHORIZED_TO_SIGN,
            f"根证书 {display_name(ca.subject)} 不是 CA 证书",
        )

    try:
        key_usage = ca.extensions.get_extension_for_class(x509.KeyUsage).value
    except x509.ExtensionNotFound:
        return
    if not key_usage.key_cert_sign:
        raise VerificationError(
            VerificationFailure.NOT_AUTHORIZED_TO_SIGN,
            f"根证书 {display_name(ca.subject)} 的 KeyUsage 不允许签发证书",
        )


def _check_extended_key_usage(cert: x509.Certificate) -> None:
    try:
        usages = cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value
    except x509.ExtensionNotFound:
        return
    if ExtendedKeyUsageOID.SERVER_AUTH in usages or ExtendedKeyUsageOID.ANY_EXTENDED_KEY_USAGE in usages:
        return
    raise VerificationError(
        VerificationFailure.INCOMPATIBLE_USAGE,
        f"证书 {display_name(cert.subject)} 的 ExtendedKeyUsage 不包含 serverAuth",
    )


def verify_cert_chain(
    ca: x509.Certificate, cert: x509.Certificate, *, at: datetime | None = None
) -> None:
    """
    以 ca 作为唯一信任根校验 cert。
    依次检查：证书有效期、签发者名称、签名、根证书有效期与 CA 约束、ExtendedKeyUsage。
    :param ca: 根证书。
    :param cert: 待校验的证书。
    :param at: 校验时间点，默认为当前时间；不带时区时按 UTC 处理。
    :raises VerificationError: 校验失败，reason 给出具体原因。
    """
    now = at or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    _check_validity(cert, now, "待校验")

    # 证书本身就是信任根
    if cert == ca:
        return

    if cert.issuer != ca.subject:
        raise VerificationError(
            VerificationFailure.UNKNOWN_AUTHORITY,
            f"证书 {display_name(cert.subject)} 不是由 {display_name(ca.subject)} 签发的",
        )

    try:
        cert.verify_directly_issued_by(ca)
    except (InvalidSignature, ValueError, TypeError) as e:
        raise VerificationError(
            VerificationFailure.SIGNATURE_MISMATCH,
            f"证书 {display_name(cert.subject)} 的签名校验失败: {e!r}",
        ) from e

    _check_validity(ca, now, "根")
    _check_can_sign(ca)
    _check_extended_key_usage(cert)
