"""Certificates, detached signatures and messages shared by the tests."""

from __future__ import annotations

import base64
import datetime
from functools import lru_cache

from asn1crypto import algos, cms
from asn1crypto import x509 as asn1_x509
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs7
from cryptography.x509.oid import NameOID

BOUNDARY = b"----=_Part_signed_0001"

CONTENT = (
    b"Content-Type: text/plain; charset=us-ascii\r\n"
    b"Content-Transfer-Encoding: 7bit\r\n"
    b"\r\n"
    b"Hello Bob,\r\n"
    b"the contract is attached.\r\n"
)


def _name(cn: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, cn),
        x509.NameAttribute(NameOID.EMAIL_ADDRESS, f"{cn.lower()}@example.com"),
    ])


def make_certificate(cn, key, issuer_cert=None, issuer_key=None, ca=False):
    now = datetime.datetime.now(datetime.timezone.utc)
    issuer_name = issuer_cert.subject if issuer_cert is not None else _name(cn)
    signing_key = issuer_key or key
    # EdDSA certificates are signed without a separate digest.
    algorithm = None if isinstance(signing_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)) else hashes.SHA256()
    return (
        x509.CertificateBuilder()
        .subject_name(_name(cn))
        .issuer_name(issuer_name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(signing_key, algorithm)
    )


@lru_cache(maxsize=None)
def rsa_signer(cn: str = "Alice"):
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return make_certificate(cn, key), key


@lru_cache(maxsize=None)
def ec_signer(cn: str = "Carol"):
    key = ec.generate_private_key(ec.SECP256R1())
    return make_certificate(cn, key), key


@lru_cache(maxsize=None)
def ca_issued_signer():
    ca_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    ca_cert = make_certificate("Example CA", ca_key, ca=True)
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = make_certificate("Dave", key, issuer_cert=ca_cert, issuer_key=ca_key)
    return ca_cert, cert, key


def sign_detached(content: bytes, cert, key) -> bytes:
    return (
        pkcs7.PKCS7SignatureBuilder()
        .set_data(content)
        .add_signer(cert, key, hashes.SHA256())
        .sign(serialization.Encoding.DER, [pkcs7.PKCS7Options.DetachedSignature, pkcs7.PKCS7Options.Binary])
    )


@lru_cache(maxsize=None)
def dsa_signer(cn: str = "Erin"):
    key = dsa.generate_private_key(key_size=2048)
    return make_certificate(cn, key), key


@lru_cache(maxsize=None)
def ed25519_signer(cn: str = "Frank"):
    key = ed25519.Ed25519PrivateKey.generate()
    return make_certificate(cn, key), key


@lru_cache(maxsize=None)
def ed448_signer(cn: str = "Grace"):
    key = ed448.Ed448PrivateKey.generate()
    return make_certificate(cn, key), key


_HASHES = {
    "sha1": hashes.SHA1,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def _pss_params(hash_name, mgf_hash_name, salt_length):
    return algos.RSASSAPSSParams({
        "hash_algorithm": algos.DigestAlgorithm({"algorithm": hash_name}),
        "mask_gen_algorithm": algos.MaskGenAlgorithm({
            "algorithm": "mgf1",
            "parameters": algos.DigestAlgorithm({"algorithm": mgf_hash_name}),
        }),
        "salt_length": salt_length,
    })


def _sign(key, data, digest, pss):
    hash_cls = _HASHES.get(digest, hashes.SHA256)
    if isinstance(key, rsa.RSAPrivateKey):
        if pss is not None:
            hash_name, mgf_hash_name, salt_length = pss
            pad = padding.PSS(mgf=padding.MGF1(_HASHES[mgf_hash_name]()), salt_length=salt_length)
            sig_algo = algos.SignedDigestAlgorithm({
                "algorithm": "rsassa_pss",
                "parameters": _pss_params(hash_name, mgf_hash_name, salt_length),
            })
            return key.sign(data, pad, _HASHES[hash_name]()), sig_algo
        sig = key.sign(data, padding.PKCS1v15(), hash_cls())
        return sig, algos.SignedDigestAlgorithm({"algorithm": "rsassa_pkcs1v15"})
    if isinstance(key, ec.EllipticCurvePrivateKey):
        return key.sign(data, ec.ECDSA(hash_cls())), algos.SignedDigestAlgorithm({"algorithm": f"{digest}_ecdsa"})
    if isinstance(key, dsa.DSAPrivateKey):
        return key.sign(data, hash_cls()), algos.SignedDigestAlgorithm({"algorithm": f"{digest}_dsa"})
    oid = "1.3.101.112" if isinstance(key, ed25519.Ed25519PrivateKey) else "1.3.101.113"
    return key.sign(data), algos.SignedDigestAlgorithm({"algorithm": oid})


def build_signed_data(
    content: bytes,
    cert,
    key,
    *,
    digest: str = "sha256",
    sid: str = "issuer_and_serial_number",
    attributes: bool = True,
    content_type: str | None = "data",
    pss=None,
) -> bytes:
    """
    Assemble a detached CMS SignedData by hand, covering the signer shapes
    PKCS7SignatureBuilder cannot produce (DSA/EdDSA keys, key-identifier
    signers, explicit PSS parameters, unsupported digests).
    """
    asn1_cert = asn1_x509.Certificate.load(cert.public_bytes(serialization.Encoding.DER))
    if sid == "subject_key_identifier":
        signer_id = cms.SignerIdentifier({"subject_key_identifier": asn1_cert.key_identifier})
    else:
        signer_id = cms.SignerIdentifier({
            "issuer_and_serial_number": cms.IssuerAndSerialNumber({
                "issuer": asn1_cert.issuer,
                "serial_number": asn1_cert.serial_number,
            }),
        })

    signer_info = {
        "version": "v3" if sid == "subject_key_identifier" else "v1",
        "sid": signer_id,
        "digest_algorithm": algos.DigestAlgorithm({"algorithm": digest}),
    }
    if attributes:
        h = hashes.Hash(_HASHES.get(digest, hashes.SHA256)())
        h.update(content)
        attrs = []
        if content_type is not None:
            attrs.append(cms.CMSAttribute({"type": "content_type", "values": [content_type]}))
        attrs.append(cms.CMSAttribute({"type": "message_digest", "values": [h.finalize()]}))
        signed_attrs = cms.CMSAttributes(attrs)
        signature, sig_algo = _sign(key, signed_attrs.dump(), digest, pss)
        signer_info["signed_attrs"] = signed_attrs
    else:
        signature, sig_algo = _sign(key, content, digest, pss)
    signer_info["signature_algorithm"] = sig_algo
    signer_info["signature"] = signature

    signed_data = cms.SignedData({
        "version": "v3" if sid == "subject_key_identifier" else "v1",
        "digest_algorithms": [algos.DigestAlgorithm({"algorithm": digest})],
        "encap_content_info": {"content_type": "data"},
        "certificates": [asn1_cert],
        "signer_infos": [cms.SignerInfo(signer_info)],
    })
    return cms.ContentInfo({"content_type": "signed_data", "content": signed_data}).dump()


def signature_part(signature: bytes) -> bytes:
    encoded = base64.encodebytes(signature).replace(b"\n", b"\r\n")
    return (
        b"Content-Type: application/pkcs7-signature; name=\"smime.p7s\"\r\n"
        b"Content-Transfer-Encoding: base64\r\n"
        b"Content-Disposition: attachment; filename=\"smime.p7s\"\r\n"
        b"\r\n" + encoded
    )


def signed_message(*parts: bytes, boundary: bytes = BOUNDARY) -> bytes:
    out = (
        b"From: Alice <alice@example.com>\r\n"
        b"To: Bob <bob@example.com>\r\n"
        b"Subject: Signed contract\r\n"
        b"MIME-Version: 1.0\r\n"
        b"Content-Type: multipart/signed; protocol=\"application/pkcs7-signature\"; "
        b"micalg=sha-256; boundary=\"" + boundary + b"\"\r\n"
        b"\r\n"
        b"This is an S/MIME signed message\r\n"
    )
    for part in parts:
        out += b"\r\n--" + boundary + b"\r\n" + part
    return out + b"\r\n--" + boundary + b"--\r\n"


def genuine_signed_message(content: bytes = CONTENT, signer=None) -> bytes:
    cert, key = signer or rsa_signer()
    return signed_message(content, signature_part(sign_detached(content, cert, key)))


NESTED = (
    b"From: a@example.com\r\n"
    b"Subject: nested\r\n"
    b"MIME-Version: 1.0\r\n"
    b"Content-Type: multipart/mixed; boundary=outer\r\n"
    b"\r\n"
    b"preamble text\r\n"
    b"--outer\r\n"
    b"Content-Type: text/plain\r\n"
    b"\r\n"
    b"first\r\n"
    b"--outer\r\n"
    b"Content-Type: text/plain\r\n"
    b"Content-Language: en\r\n"
    b"\r\n"
    b"second --outer is not a delimiter here\r\n"
    b"--outer\r\n"
    b"Content-Type: multipart/alternative; boundary=\"inner\"\r\n"
    b"\r\n"
    b"--inner\r\n"
    b"Content-Type: text/plain\r\n"
    b"\r\n"
    b"third, plain\r\n"
    b"--inner\r\n"
    b"Content-Type: text/html\r\n"
    b"Content-Location: http://example.com/third.html\r\n"
    b"\r\n"
    b"<p>third, html</p>\r\n"
    b"--inner--\r\n"
    b"--outer\r\n"
    b"Content-Type: application/octet-stream\r\n"
    b"Content-Transfer-Encoding: base64\r\n"
    b"Content-Disposition: attachment; filename=\"data.bin\"\r\n"
    b"\r\n"
    b"AAECAw==\r\n"
    b"--outer--\r\n"
    b"epilogue\r\n"
)
