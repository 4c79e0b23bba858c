"""
测试用的证书与密钥构造工具。
"""

import ipaddress
from datetime import datetime, timedelta, timezone
from typing import Callable, Sequence, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def _key_usage(cert_sign: bool) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True,
        key_encipherment=not cert_sign,
        key_cert_sign=cert_sign,
        crl_sign=cert_sign,
        content_commitment=False,
        data_encipherment=False,
        key_agreement=False,
        encipher_only=False,
        decipher_only=False,
    )


def build_certificate(
    common_name: str,
    *,
    key=None,
    issuer: Tuple[object, x509.Certificate] | None = None,
    dns_names: Sequence[str] = (),
    ip_addresses: Sequence[str] = (),
    is_ca: bool = False,
    basic_constraints: bool = True,
    key_usage: x509.KeyUsage | None = None,
    extended_key_usage: Sequence[x509.ObjectIdentifier] | None = None,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
    extra_name: Sequence[x509.NameAttribute] = (),
):
    """
    构造一张证书；issuer 为 (私钥, 证书)，缺省时自签。
    :return: (私钥, 证书)
    """
    key = key or ec.generate_private_key(ec.SECP256R1())
    now = datetime.now(timezone.utc)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name), *extra_name])
    issuer_key, issuer_name = (key, subject) if issuer is None else (issuer[0], issuer[1].subject)

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(minutes=1))
        .not_valid_after(not_after or now + timedelta(days=30))
    )
    if basic_constraints:
        builder = builder.add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    if key_usage is None and basic_constraints:
        key_usage = _key_usage(cert_sign=is_ca)
    if key_usage is not None:
        builder = builder.add_extension(key_usage, critical=True)
    if extended_key_usage is not None:
        builder = builder.add_extension(x509.ExtendedKeyUsage(list(extended_key_usage)), critical=False)

    sans = [x509.DNSName(n) for n in dns_names]
    sans.extend(x509.IPAddress(ipaddress.ip_address(ip)) for ip in ip_addresses)
    if sans:
        builder = builder.add_extension(x509.SubjectAlternativeName(sans), critical=False)

    return key, builder.sign(private_key=issuer_key, algorithm=hashes.SHA256())


@pytest.fixture
def make_cert() -> Callable:
    return build_certificate


@pytest.fixture
def root_ca():
    """自签的测试根 CA，返回 (私钥, 证书)。"""
    return build_certificate("Test Root CA", is_ca=True)
