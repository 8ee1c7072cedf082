# tls.py
"""Mutual-TLS contexts built from a generated certificate directory.

The server presents server-chain.crt and trusts only rootCA.crt; the client
presents client-chain.crt and trusts ca-chain.crt.
"""
import ssl
from pathlib import Path

from pkichain.common.errors import MissingArtifactError, PersistenceError


def _require(cert_dir: Path, name: str) -> str:
    p = cert_dir / name
    if not p.is_file():
        raise MissingArtifactError(f"{p} does not exist")
    return str(p)


def server_context(cert_dir, require_client_cert: bool = True) -> ssl.SSLContext:
    """With ``require_client_cert=False`` a client without a certificate still
    completes the handshake (the caller decides how to answer it); a client
    certificate that does not chain to rootCA.crt is refused either way."""
    d = Path(cert_dir)
    cafile = _require(d, "rootCA.crt")
    certfile = _require(d, "server-chain.crt")
    keyfile = _require(d, "server.key")
    try:
        ctx = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH, cafile=cafile)
        ctx.verify_mode = ssl.CERT_REQUIRED if require_client_cert else ssl.CERT_OPTIONAL
        ctx.load_cert_chain(certfile=certfile, keyfile=keyfile)
    except ssl.SSLError as e:
        raise PersistenceError(f"cannot load server TLS material from {d}: {e}") from e
    return ctx


def client_context(cert_dir, present_certificate: bool = True) -> ssl.SSLContext:
    d = Path(cert_dir)
    cafile = _require(d, "ca-chain.crt")
    try:
        ctx = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=cafile)
        if present_certificate:
            ctx.load_cert_chain(certfile=_require(d, "client-chain.crt"), keyfile=_require(d, "client.key"))
    except ssl.SSLError as e:
        raise PersistenceError(f"cannot load client TLS material from {d}: {e}") from e
    return ctx
