"""
multipart/signed bodies carrying a detached CMS (PKCS #7) signature,
as used by S/MIME (RFC 5751, RFC 1847).
"""

from __future__ import annotations

import datetime
import hmac
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Sequence, Tuple

from asn1crypto import cms, core
from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, padding, rsa

from .log import get_logger
from .multipart import require_boundary
from .parser import parse_children
from .types import Entity, LeafBody, MultipartBody

log = get_logger(__name__)

_DIGESTS = {
    "md5": hashes.MD5,
    "sha1": hashes.SHA1,
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}

_MAX_CHAIN = 10
_BARE_LF = re.compile(rb"(?<!\r)\n")


@dataclass(frozen=True)
class SignedBody:
    """
    A multipart/signed body: ``parts[0]`` is the signed content, ``parts[1]``
    the detached signature. The two-part shape is checked when the body is
    parsed; the query methods still tolerate any other part count.
    """
    multipart: MultipartBody
    protocol: Optional[str] = None
    micalg: Optional[str] = None

    @classmethod
    def parse(cls, owner: Entity, data: bytes, depth: int = 0) -> "SignedBody":
        """
        Build the body of ``owner`` from its raw body bytes.

        Raises ValueError if ``owner`` is not multipart/signed and FormatError
        if it has no boundary parameter.
        """
        if owner.mime_type != "multipart/signed":
            raise ValueError("Argument 'owner' content type must be 'multipart/signed'.")
        boundary = require_boundary(owner)
        parts = parse_children(owner, data, boundary, depth)
        if len(parts) != 2:
            log.warning("multipart/signed body has %d parts, expected 2", len(parts))
        ct = owner.content_type
        return cls(
            multipart=MultipartBody(subtype=ct.subtype, boundary=boundary, parts=parts),
            protocol=ct.param("protocol"),
            micalg=ct.param("micalg"),
        )

    @property
    def subtype(self) -> str:
        return self.multipart.subtype

    @property
    def boundary(self) -> str:
        return self.multipart.boundary

    @property
    def parts(self) -> Tuple[Entity, ...]:
        return self.multipart.parts

    def __len__(self) -> int:
        return len(self.multipart)

    def __getitem__(self, index: int) -> Entity:
        return self.multipart[index]

    def __iter__(self) -> Iterator[Entity]:
        return iter(self.multipart)

    def index_of(self, entity: Entity) -> int:
        return self.multipart.index_of(entity)

    def get_certificates(self) -> Optional[List[x509.Certificate]]:
        """
        Certificates embedded in the signature container, or None when the
        body is not a well-formed two-part body or the container can't be read.
        """
        signature = self._signature_bytes()
        if signature is None:
            return None
        try:
            signed_data = _load_signed_data(signature)
            return [x509.load_der_x509_certificate(c.dump()) for c in _embedded_certificates(signed_data)]
        except Exception as exc:
            log.debug("cannot read signature certificates: %s", exc)
            return None

    def verify_signature(self, trusted: Optional[Sequence[x509.Certificate]] = None) -> bool:
        """
        True if the detached signature matches the signed content.

        With ``trusted`` certificates, each signer certificate must also chain
        to one of them. Any failure, including malformed input, gives False.
        """
        signature = self._signature_bytes()
        if signature is None:
            return False
        content = self._signed_content()
        try:
            _verify_detached(signature, content, trusted)
        except Exception as exc:
            log.debug("signature verification failed: %s: %s", type(exc).__name__, exc)
            return False
        return True

    def _signed_content(self) -> bytes:
        content = self.parts[0]
        # Binary parts are signed byte for byte; text is signed in CRLF form.
        if content.content_transfer_encoding == "binary":
            return content.to_bytes()
        return canonicalize(content.to_bytes())

    def _signature_bytes(self) -> Optional[bytes]:
        # multipart/signed must have exactly 2 parts, anything else is invalid data.
        if len(self.parts) != 2:
            return None
        body = self.parts[1].body
        if not isinstance(body, LeafBody):
            return None
        return body.data


def canonicalize(data: bytes) -> bytes:
    """Convert bare LF line endings to CRLF (MIME canonical form)."""
    return _BARE_LF.sub(b"\r\n", data)

# ------------------ CMS ------------------

def _load_signed_data(signature: bytes) -> cms.SignedData:
    info = cms.ContentInfo.load(signature)
    if info["content_type"].native != "signed_data":
        raise ValueError(f"not a SignedData container: {info['content_type'].native}")
    return info["content"]

def _embedded_certificates(signed_data: cms.SignedData):
    certs = signed_data["certificates"]
    if isinstance(certs, core.Void):
        return []
    return [c.chosen for c in certs if c.name == "certificate"]

def _verify_detached(
    signature: bytes,
    content: bytes,
    trusted: Optional[Sequence[x509.Certificate]],
) -> None:
    signed_data = _load_signed_data(signature)
    embedded = _embedded_certificates(signed_data)
    signer_infos = signed_data["signer_infos"]
    if not len(signer_infos):
        raise ValueError("SignedData has no signer infos")

    content_type = signed_data["encap_content_info"]["content_type"].native
    pool = [x509.load_der_x509_certificate(c.dump()) for c in embedded]
    for signer_info in signer_infos:
        cert = _find_signer(signer_info, embedded)
        _verify_signer(signer_info, cert, content, content_type)
        if trusted is not None:
            _check_chain(cert, pool, list(trusted))

def _find_signer(signer_info: cms.SignerInfo, embedded) -> x509.Certificate:
    sid = signer_info["sid"]
    for cert in embedded:
        if sid.name == "issuer_and_serial_number":
            if (cert.serial_number == sid.chosen["serial_number"].native
                    and cert.issuer == sid.chosen["issuer"]):
                return x509.load_der_x509_certificate(cert.dump())
        elif sid.name == "subject_key_identifier":
            if cert.key_identifier == sid.chosen.native:
                return x509.load_der_x509_certificate(cert.dump())
    raise ValueError("signer certificate not found in SignedData")

def _hash_algorithm(name: str) -> hashes.HashAlgorithm:
    if name not in _DIGESTS:
        raise ValueError(f"unsupported digest algorithm: {name}")
    return _DIGESTS[name]()

def _signed_bytes(signer_info: cms.SignerInfo, content: bytes, content_type: str) -> bytes:
    """
    The bytes the signature is computed over: the content itself, or the
    signed attributes after checking their content type and digest.
    """
    attrs = signer_info["signed_attrs"]
    if isinstance(attrs, core.Void) or not len(attrs):
        return content

    values = {}
    for attr in attrs:
        name = attr["type"].native
        if name in ("content_type", "message_digest"):
            values.setdefault(name, attr["values"][0].native)
    if values.get("content_type") != content_type:
        raise ValueError(f"content-type attribute {values.get('content_type')!r} does not match {content_type!r}")

    h = hashes.Hash(_hash_algorithm(signer_info["digest_algorithm"]["algorithm"].native))
    h.update(content)
    message_digest = values.get("message_digest")
    if message_digest is None or not hmac.compare_digest(message_digest, h.finalize()):
        raise ValueError("message digest does not match signed content")
    # Signed attributes are signed as a DER SET, not as the [0] IMPLICIT field.
    return b"\x31" + attrs.dump()[1:]

def _pss_padding(params) -> Tuple[padding.PSS, hashes.HashAlgorithm]:
    algorithm = _hash_algorithm(params["hash_algorithm"]["algorithm"].native)
    mgf = params["mask_gen_algorithm"]
    if mgf["algorithm"].native != "mgf1":
        raise ValueError(f"unsupported mask generation function: {mgf['algorithm'].native}")
    mgf_algorithm = _hash_algorithm(mgf["parameters"]["algorithm"].native)
    pad = padding.PSS(mgf=padding.MGF1(mgf_algorithm), salt_length=params["salt_length"].native)
    return pad, algorithm

def _verify_signer(
    signer_info: cms.SignerInfo,
    cert: x509.Certificate,
    content: bytes,
    content_type: str,
) -> None:
    algorithm = _hash_algorithm(signer_info["digest_algorithm"]["algorithm"].native)
    signed_bytes = _signed_bytes(signer_info, content, content_type)

    sig = signer_info["signature"].native
    sig_algo = signer_info["signature_algorithm"]["algorithm"].native
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        if sig_algo == "rsassa_pss":
            pad, algorithm = _pss_padding(signer_info["signature_algorithm"]["parameters"])
        else:
            pad = padding.PKCS1v15()
        key.verify(sig, signed_bytes, pad, algorithm)
    elif isinstance(key, ec.EllipticCurvePublicKey):
        key.verify(sig, signed_bytes, ec.ECDSA(algorithm))
    elif isinstance(key, dsa.DSAPublicKey):
        key.verify(sig, signed_bytes, algorithm)
    elif isinstance(key, (ed25519.Ed25519PublicKey, ed448.Ed448PublicKey)):
        key.verify(sig, signed_bytes)
    else:
        raise ValueError(f"unsupported signer key type: {type(key).__name__}")

def _check_chain(
    cert: x509.Certificate,
    pool: List[x509.Certificate],
    trusted: List[x509.Certificate],
) -> None:
    now = datetime.datetime.now(datetime.timezone.utc)
    current = cert
    for _ in range(_MAX_CHAIN):
        _check_validity(current, now)
        if current in trusted:
            return
        for anchor in trusted:
            if _issued_by(current, anchor):
                _check_validity(anchor, now)
                return
        issuer = next((c for c in pool if c != current and _issued_by(current, c)), None)
        if issuer is None:
            raise ValueError("certificate does not chain to a trusted certificate")
        current = issuer
    raise ValueError("certificate chain is too long")

def _check_validity(cert: x509.Certificate, now: datetime.datetime) -> None:
    if not cert.not_valid_before_utc <= now <= cert.not_valid_after_utc:
        raise ValueError(f"certificate {cert.subject.rfc4514_string()} is outside its validity period")

def _issued_by(cert: x509.Certificate, issuer: x509.Certificate) -> bool:
    try:
        cert.verify_directly_issued_by(issuer)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


__all__ = ["SignedBody", "canonicalize"]
