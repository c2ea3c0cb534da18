"""Device key pair generation.

Each registry identity gets a fresh P-256 key pair. The public half goes to
the registry once as an ES256 PEM credential; the private half is written once
to the device's config vars (base64 of the PKCS8 PEM) and never kept here.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


@dataclass(frozen=True, slots=True)
class KeyPair:
    private_key_pem: str
    public_key_pem: str

    @property
    def private_key_b64(self) -> str:
        return base64.b64encode(self.private_key_pem.encode('ascii')).decode('ascii')

    def __repr__(self) -> str:
        return 'KeyPair(private_key_pem=***, public_key_pem=...)'


def generate_key_pair() -> KeyPair:
    private_key = ec.generate_private_key(ec.SECP256R1())
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return KeyPair(
        private_key_pem=private_pem.decode('ascii'),
        public_key_pem=public_pem.decode('ascii'),
    )
