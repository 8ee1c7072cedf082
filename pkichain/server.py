# server.py
"""HTTPS demo server (mutual TLS) on top of a generated certificate directory.

Every connection is logged with protocol, cipher and the client's subject and
issuer; a client that presents no certificate gets a 401.
"""
import socket
import ssl
from typing import Optional

from rich import print
from rich.markup import escape

from pkichain.tls import server_context

HOST = "0.0.0.0"
PORT = 3000
GREETING = b"Hello, secure world with intermediate CA!"
MAX_REQUEST = 65536


def _cn(rdns) -> Optional[str]:
    # getpeercert() names are tuples of RDNs of (key, value) pairs
    for rdn in rdns or ():
        for key, value in rdn:
            if key == "commonName":
                return value
    return None


def read_request(conn) -> bytes:
    data = b""
    while b"\r\n\r\n" not in data and len(data) < MAX_REQUEST:
        chunk = conn.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def respond(conn, status: int, reason: str, body: bytes) -> None:
    head = (
        f"HTTP/1.1 {status} {reason}\r\n"
        "Content-Type: text/plain\r\n"
        f"Content-Length: {len(body)}\r\n"
        "Connection: close\r\n\r\n"
    )
    conn.sendall(head.encode() + body)


def handle_client(tls) -> int:
    """Answer one request on an established TLS connection; returns the HTTP status."""
    read_request(tls)
    cert = tls.getpeercert()
    print("[cyan]TLS Connection Details:[/]")
    print(f"- Authorized: {bool(cert)}")
    print(f"- Protocol: {tls.version()}")
    print(f"- Cipher: {tls.cipher()[0]}")
    if cert:
        print(f"- Client Subject: {escape(_cn(cert.get('subject')) or 'Unknown')}")
        print(f"- Client Issuer: {escape(_cn(cert.get('issuer')) or 'Unknown')}")
        respond(tls, 200, "OK", GREETING)
        return 200
    print("[red]Auth Error: no client certificate presented[/]")
    respond(tls, 401, "Unauthorized", b"Client certificate not authorized: no certificate presented")
    return 401


def serve(listener, ctx: ssl.SSLContext, max_connections: Optional[int] = None) -> None:
    handled = 0
    while max_connections is None or handled < max_connections:
        conn, addr = listener.accept()
        handled += 1
        conn.settimeout(10)
        try:
            with ctx.wrap_socket(conn, server_side=True) as tls:
                handle_client(tls)
        except (ssl.SSLError, OSError) as e:
            print(f"[red]TLS client error from {addr[0]}:{addr[1]}: {escape(str(e))}[/]")
        finally:
            conn.close()


def run(cert_dir, host: str = HOST, port: int = PORT) -> None:
    ctx = server_context(cert_dir, require_client_cert=False)
    with socket.create_server((host, port)) as listener:
        print(f"[bold green]HTTPS server running at https://localhost:{port}[/]")
        serve(listener, ctx)
