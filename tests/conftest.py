"""Shared test fixtures for the sigrange test suite."""

from __future__ import annotations

import datetime
import io
import re
from dataclasses import dataclass
from unittest.mock import patch

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

# Password protecting every generated key container.
SECRET = "correct horse"

_NOW = datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class Signer:
    """Throwaway signing identity in every container format the loader accepts."""

    private_key: rsa.RSAPrivateKey | ec.EllipticCurvePrivateKey
    certificate: x509.Certificate
    cert_pem: bytes
    cert_der: bytes
    p12: bytes
    pem_bundle: bytes
    plain_pem_bundle: bytes


def _name(cn: str, org: str | None = None, email: str | None = None) -> x509.Name:
    attrs = [x509.NameAttribute(NameOID.COMMON_NAME, cn)]
    if org:
        attrs.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, org))
    if email:
        attrs.append(x509.NameAttribute(NameOID.EMAIL_ADDRESS, email))
    return x509.Name(attrs)


def _build_cert(
    key,
    subject: x509.Name,
    *,
    issuer: x509.Name | None = None,
    issuer_key=None,
    not_before: datetime.datetime | None = None,
    not_after: datetime.datetime | None = None,
    is_ca: bool = False,
) -> x509.Certificate:
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer or subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or _NOW - datetime.timedelta(days=1))
        .not_valid_after(not_after or _NOW + datetime.timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
    )
    return builder.sign(issuer_key or key, hashes.SHA256())


def _make_signer(key, cert: x509.Certificate, cas: list[x509.Certificate] | None = None) -> Signer:
    encryption = serialization.BestAvailableEncryption(SECRET.encode())
    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    chain_pem = b"".join(c.public_bytes(serialization.Encoding.PEM) for c in cas or [])
    key_pem = key.private_bytes(
        serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption
    )
    plain_key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    p12 = pkcs12.serialize_key_and_certificates(b"signer", key, cert, cas, encryption)
    return Signer(
        private_key=key,
        certificate=cert,
        cert_pem=cert_pem,
        cert_der=cert.public_bytes(serialization.Encoding.DER),
        p12=p12,
        pem_bundle=cert_pem + chain_pem + key_pem,
        plain_pem_bundle=cert_pem + chain_pem + plain_key_pem,
    )


# ── Signing identities ──────────────────────────────────────────────


@pytest.fixture(scope="session")
def rsa_signer() -> Signer:
    """Self-signed RSA-2048 identity."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = _name("Alice Signer", org="Example Org", email="alice@example.com")
    return _make_signer(key, _build_cert(key, subject))


@pytest.fixture(scope="session")
def ec_signer() -> Signer:
    """Self-signed ECDSA P-256 identity."""
    key = ec.generate_private_key(ec.SECP256R1())
    return _make_signer(key, _build_cert(key, _name("Bob EC")))


@pytest.fixture(scope="session")
def expired_signer() -> Signer:
    """Self-signed RSA identity whose certificate expired a year ago."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = _build_cert(
        key,
        _name("Expired Signer"),
        not_before=_NOW - datetime.timedelta(days=730),
        not_after=_NOW - datetime.timedelta(days=365),
    )
    return _make_signer(key, cert)


@pytest.fixture(scope="session")
def ca_pair() -> tuple[Signer, Signer]:
    """(ca, leaf): a CA and a leaf it issued; the leaf's containers embed the CA."""
    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_subject = _name("Test Root CA", org="Test CA Org")
    ca_cert = _build_cert(ca_key, ca_subject, is_ca=True)

    leaf_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    leaf_cert = _build_cert(
        leaf_key, _name("Carol Leaf"), issuer=ca_subject, issuer_key=ca_key
    )
    return _make_signer(ca_key, ca_cert), _make_signer(leaf_key, leaf_cert, [ca_cert])


@pytest.fixture(scope="session")
def secret() -> str:
    return SECRET


@pytest.fixture(scope="session")
def rsa_key(rsa_signer):
    """Unlocked key material for the RSA identity."""
    from sigrange.core.keys import load_key_container

    return load_key_container(rsa_signer.p12, SECRET)


@pytest.fixture(scope="session")
def ec_key(ec_signer):
    from sigrange.core.keys import load_key_container

    return load_key_container(ec_signer.p12, SECRET)


# ── Documents ───────────────────────────────────────────────────────


def _blank_pdf(pages: int) -> bytes:
    import pikepdf

    pdf = pikepdf.Pdf.new()
    for _ in range(pages):
        pdf.add_blank_page(page_size=(612, 792))
    buf = io.BytesIO()
    pdf.save(buf)
    return buf.getvalue()


@pytest.fixture
def valid_pdf_bytes():
    """Create a minimal valid PDF using pikepdf."""
    return _blank_pdf(1)


@pytest.fixture
def three_page_pdf_bytes():
    return _blank_pdf(3)


def append_incremental_edit(pdf_bytes: bytes, producer: str = "editor") -> bytes:
    """Append an incremental update that replaces the /Info dictionary.

    Mimics an editor saving changes after a signature was applied.
    """
    import pikepdf

    with pikepdf.open(io.BytesIO(pdf_bytes)) as pdf:
        size = int(pdf.trailer["/Size"])
        root_num, root_gen = pdf.trailer["/Root"].objgen
    prev = int(re.findall(rb"startxref\s+(\d+)", pdf_bytes)[-1])

    base = pdf_bytes if pdf_bytes.endswith(b"\n") else pdf_bytes + b"\n"
    obj = f"{size} 0 obj\n<< /Producer ({producer}) >>\nendobj\n".encode()
    xref_offset = len(base) + len(obj)
    tail = (
        f"xref\n{size} 1\n{len(base):010d} 00000 n\r\n"
        f"trailer\n<< /Size {size + 1} /Prev {prev} /Root {root_num} {root_gen} R "
        f"/Info {size} 0 R >>\nstartxref\n{xref_offset}\n%%EOF\n"
    ).encode()
    return base + obj + tail


@pytest.fixture
def incremental_edit():
    return append_incremental_edit


# ── Config and keychain isolation ───────────────────────────────────


class FakeKeyring:
    """In-memory stand-in for the keyring module's password API."""

    def __init__(self) -> None:
        self.store: dict[tuple[str, str], str] = {}

    def get_password(self, service: str, username: str) -> str | None:
        return self.store.get((service, username))

    def set_password(self, service: str, username: str, password: str) -> None:
        self.store[(service, username)] = password

    def delete_password(self, service: str, username: str) -> None:
        from keyring.errors import PasswordDeleteError

        if (service, username) not in self.store:
            raise PasswordDeleteError("not found")
        del self.store[(service, username)]

    def get_keyring(self) -> object:
        return self


@pytest.fixture
def fake_keyring():
    """Replace the system keychain with an in-memory store."""
    fake = FakeKeyring()
    with patch("sigrange.config.credentials.keyring", fake):
        yield fake


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Redirect config to a temp directory and clear sigrange env vars."""
    for var in (
        "SIGRANGE_DIGEST",
        "SIGRANGE_PLACEHOLDER_SIZE",
        "SIGRANGE_TRUST_ANCHOR",
        "SIGRANGE_KEY_SECRET",
        "SIGRANGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    config_file = tmp_path / "config.json"
    with (
        patch("sigrange.config._storage.CONFIG_DIR", tmp_path),
        patch("sigrange.config._storage.CONFIG_FILE", config_file),
    ):
        yield tmp_path, config_file
