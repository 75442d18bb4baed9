"""TLS context for the HTTPS listener.

Certificates normally come from an external provisioner through
``cert_file``/``key_file``. Without them a self-signed localhost certificate is
generated once into ``cert_dir`` and reused while it is still valid.
"""

import datetime
import ipaddress
import ssl
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from .config import Settings
from .logging import get_logger

logger = get_logger(__name__)

CERT_FILENAME = "bridge-cert.pem"
KEY_FILENAME = "bridge-key.pem"
CERT_VALIDITY = datetime.timedelta(days=365)
# Regenerate when less than this much validity remains.
RENEW_BEFORE = datetime.timedelta(days=7)


def load_ssl_context(settings: Settings) -> ssl.SSLContext | None:
    """Build the server SSL context, or return None when TLS is disabled."""
    if not settings.tls_enabled:
        logger.warning("TLS disabled, serving plain HTTP")
        return None

    if settings.cert_file is not None and settings.key_file is not None:
        cert_path, key_path = Path(settings.cert_file), Path(settings.key_file)
        logger.info(f"Using provisioned certificate {cert_path}")
    else:
        cert_path, key_path = ensure_self_signed_cert(Path(settings.cert_dir))

    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    context.load_cert_chain(certfile=str(cert_path), keyfile=str(key_path))
    return context


def ensure_self_signed_cert(cert_dir: Path) -> tuple[Path, Path]:
    """Return paths to a usable self-signed pair in cert_dir, generating it if needed."""
    cert_path = cert_dir / CERT_FILENAME
    key_path = cert_dir / KEY_FILENAME

    if cert_path.exists() and key_path.exists() and _still_valid(cert_path):
        logger.debug(f"Reusing self-signed certificate {cert_path}")
        return cert_path, key_path

    cert_dir.mkdir(parents=True, exist_ok=True)
    cert_pem, key_pem = generate_self_signed_cert()

    key_path.write_bytes(key_pem)
    key_path.chmod(0o600)
    cert_path.write_bytes(cert_pem)
    logger.info(f"Generated self-signed certificate {cert_path}")

    return cert_path, key_path


def generate_self_signed_cert(common_name: str = "localhost") -> tuple[bytes, bytes]:
    """
    Generate a self-signed certificate for local use.

    Returns:
        (certificate PEM, private key PEM)
    """
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + CERT_VALIDITY)
        .add_extension(
            x509.SubjectAlternativeName(
                [
                    x509.DNSName(common_name),
                    x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                    x509.IPAddress(ipaddress.ip_address("::1")),
                ]
            ),
            critical=False,
        )
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )

    cert_pem = cert.public_bytes(serialization.Encoding.PEM)
    key_pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return cert_pem, key_pem


def _still_valid(cert_path: Path) -> bool:
    try:
        cert = x509.load_pem_x509_certificate(cert_path.read_bytes())
    except ValueError:
        logger.warning(f"Unreadable certificate at {cert_path}, regenerating")
        return False

    return cert.not_valid_after_utc - datetime.datetime.now(datetime.timezone.utc) > RENEW_BEFORE
