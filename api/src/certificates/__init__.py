"""Certificate issuance and verification."""

from src.certificates.models import CERTIFICATES_TABLES_CQL, Certificate, CertificateGrade


__all__ = [
    "CERTIFICATES_TABLES_CQL",
    "Certificate",
    "CertificateGrade",
]
