"""
Access Ledger - Audit Signatures

Ed25519 signing and verification of audit journal entries, with
ECDSA-P256 as a permitted alternative.

SPDX-License-Identifier: AGPL-3.0-or-later
"""

import base64
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519
from cryptography.hazmat.primitives.asymmetric.ec import (
    EllipticCurvePrivateKey,
    EllipticCurvePublicKey,
    SECP256R1,
)
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

from .hash_chain import canonical_serialize


PrivateKey = Union[Ed25519PrivateKey, EllipticCurvePrivateKey]
PublicKey = Union[Ed25519PublicKey, EllipticCurvePublicKey]


class SignatureAlgorithm(str, Enum):
    """Accepted signature algorithms."""
    ED25519 = "Ed25519"
    ECDSA_P256 = "ECDSA-P256"


@dataclass
class Signature:
    """Detached signature over an entry's canonical form."""
    signer_id: str
    public_key: str  # base64 DER
    algorithm: SignatureAlgorithm
    signature: str  # base64
    signed_at: datetime


def generate_keypair(
    algorithm: SignatureAlgorithm = SignatureAlgorithm.ED25519,
) -> tuple[PrivateKey, PublicKey]:
    """Generate a new key pair. Ed25519 is the default."""
    if algorithm == SignatureAlgorithm.ED25519:
        private_key = ed25519.Ed25519PrivateKey.generate()
        return private_key, private_key.public_key()

    elif algorithm == SignatureAlgorithm.ECDSA_P256:
        private_key = ec.generate_private_key(SECP256R1())
        return private_key, private_key.public_key()

    else:
        raise ValueError(f"Unsupported algorithm: {algorithm}")


def algorithm_for(private_key: PrivateKey) -> SignatureAlgorithm:
    if isinstance(private_key, Ed25519PrivateKey):
        return SignatureAlgorithm.ED25519
    if isinstance(private_key, EllipticCurvePrivateKey) and isinstance(private_key.curve, SECP256R1):
        return SignatureAlgorithm.ECDSA_P256
    raise ValueError(f"Unsupported key type: {type(private_key).__name__}")


def public_key_to_base64(public_key: PublicKey) -> str:
    """Serialize a public key to base64-encoded DER format."""
    der_bytes = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return base64.b64encode(der_bytes).decode("ascii")


def base64_to_public_key(b64_key: str) -> PublicKey:
    """Deserialize a base64-encoded DER public key."""
    return serialization.load_der_public_key(base64.b64decode(b64_key))


def private_key_to_pem(private_key: PrivateKey, password: Optional[bytes] = None) -> bytes:
    """Serialize a private key to PKCS#8 PEM, optionally encrypted."""
    if password:
        encryption = serialization.BestAvailableEncryption(password)
    else:
        encryption = serialization.NoEncryption()
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )


def load_private_key(path: Union[str, Path], password: Optional[bytes] = None) -> PrivateKey:
    """Load a PEM private key from disk."""
    private_key = serialization.load_pem_private_key(
        Path(path).read_bytes(),
        password=password,
    )
    algorithm_for(private_key)
    return private_key


def sign_data(private_key: PrivateKey, data: bytes, algorithm: SignatureAlgorithm) -> bytes:
    """Sign data with the private key using the specified algorithm."""
    if algorithm == SignatureAlgorithm.ED25519:
        return private_key.sign(data)

    elif algorithm == SignatureAlgorithm.ECDSA_P256:
        return private_key.sign(data, ec.ECDSA(hashes.SHA256()))

    else:
        raise ValueError(f"Unsupported algorithm: {algorithm}")


def verify_data(
    public_key: PublicKey,
    signature: bytes,
    data: bytes,
    algorithm: SignatureAlgorithm,
) -> bool:
    """Verify a signature against data. Returns True if valid."""
    try:
        if algorithm == SignatureAlgorithm.ED25519:
            public_key.verify(signature, data)

        elif algorithm == SignatureAlgorithm.ECDSA_P256:
            public_key.verify(signature, data, ec.ECDSA(hashes.SHA256()))

        else:
            return False

        return True

    except InvalidSignature:
        return False


def sign_entry(entry, signer_id: str, private_key: PrivateKey, signed_at: datetime) -> Signature:
    """
    Sign an entry and return a Signature object.

    The signature covers the canonical serialization of the entry without
    its own signature field.
    """
    algorithm = algorithm_for(private_key)
    sig_bytes = sign_data(private_key, canonical_serialize(entry), algorithm)

    return Signature(
        signer_id=signer_id,
        public_key=public_key_to_base64(private_key.public_key()),
        algorithm=algorithm,
        signature=base64.b64encode(sig_bytes).decode("ascii"),
        signed_at=signed_at,
    )


def verify_signature(entry, signature: Signature) -> bool:
    """Return True if ``signature`` is valid for the entry's canonical form."""
    try:
        public_key = base64_to_public_key(signature.public_key)
        sig_bytes = base64.b64decode(signature.signature)
    except ValueError:
        return False

    return verify_data(public_key, sig_bytes, canonical_serialize(entry), signature.algorithm)
