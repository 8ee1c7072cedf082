# cli.py
"""Command line entry: ``pkichain generate``, ``verify``, ``serve`` and ``request``."""
import argparse
import logging
import sys

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from pkichain.chain import CHAINS
from pkichain.common.config import load_settings
from pkichain.common.errors import PKIError
from pkichain.crypto.pki import (
    cert_fingerprint_sha256,
    common_name,
    verify_cert_against_ca,
    verify_chain,
)
from pkichain.crypto.policy import ISSUANCE_ORDER, ISSUER_OF, Role, cert_name
from pkichain import client, server
from pkichain.hierarchy import PKIHierarchyOrchestrator
from pkichain.storage.pem import read_certificate
from pkichain.storage.store import FileArtifactStore

console = Console()
log = logging.getLogger("pkichain")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="pkichain", description="Root/intermediate/leaf certificate generator")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="issue the hierarchy and write all artifacts")
    g.add_argument("--out", dest="out_dir", help="output directory (default certs)")
    g.add_argument("--ca-years", dest="ca_validity_years", type=int)
    g.add_argument("--intermediate-years", dest="intermediate_validity_years", type=int)
    g.add_argument("--leaf-years", dest="leaf_validity_years", type=int)
    g.add_argument("--ca-bits", dest="key_bits_ca", type=int)
    g.add_argument("--leaf-bits", dest="key_bits_leaf", type=int)
    g.add_argument("--san", dest="server_sans", action="append",
                   help="server SAN, DNS:<name> or IP:<addr>; repeatable, replaces the defaults")
    g.add_argument("--root-cn", dest="root_cn")
    g.add_argument("--intermediate-cn", dest="intermediate_cn")
    g.add_argument("--server-cn", dest="server_cn")
    g.add_argument("--client-cn", dest="client_cn")
    g.add_argument("--permissive-validity", action="store_true",
                   help="allow child validity to extend past the issuer's")

    v = sub.add_parser("verify", help="check a generated directory")
    v.add_argument("--out", dest="out_dir", help="directory to check (default certs)")
    v.add_argument("--host", default="localhost", help="name the server certificate must match")

    s = sub.add_parser("serve", help="run the mutual-TLS demo server on a generated directory")
    s.add_argument("--out", dest="out_dir", help="certificate directory (default certs)")
    s.add_argument("--host", default=server.HOST)
    s.add_argument("--port", type=int, default=server.PORT)

    r = sub.add_parser("request", help="GET from the demo server with the client certificate")
    r.add_argument("--out", dest="out_dir", help="certificate directory (default certs)")
    r.add_argument("--url", default=f"https://localhost:{server.PORT}/")
    r.add_argument("--no-cert", action="store_true", help="do not present the client certificate")
    return p


def cmd_generate(settings) -> int:
    hierarchy = PKIHierarchyOrchestrator(settings).generate()
    table = Table(title=f"certificates in {settings.out_dir}")
    for col in ("role", "serial", "subject", "issuer", "not after", "sha256"):
        table.add_column(col)
    for role in ISSUANCE_ORDER:
        cert = hierarchy.certs[role].certificate
        table.add_row(role.value, str(cert.serial_number), common_name(cert.subject),
                      common_name(cert.issuer), cert.not_valid_after_utc.date().isoformat(),
                      cert_fingerprint_sha256(cert)[:16])
    console.print(table)
    console.print(f"[bold green]wrote {len(ISSUANCE_ORDER) * 2 + len(CHAINS)} artifacts to {settings.out_dir}[/]")
    return 0


def cmd_verify(settings, host: str) -> int:
    store = FileArtifactStore(settings.out_dir)
    certs = {role: read_certificate(store, cert_name(role)) for role in ISSUANCE_ORDER}
    ca_chain = store.read("ca-chain.crt")
    results = []
    for role in ISSUANCE_ORDER:
        issuer = ISSUER_OF[role] or role
        results.append((f"{cert_name(role)} issued by {cert_name(issuer)}",
                        verify_cert_against_ca(certs[role], certs[issuer])))
    results.append((f"server path for {host}",
                    verify_chain(store.read(cert_name(Role.SERVER)), ca_chain, "server", host)))
    results.append(("client path",
                    verify_chain(store.read(cert_name(Role.CLIENT)), ca_chain, "client")))

    failed = 0
    for check, (ok, reason) in results:
        if ok:
            console.print(f"[green]ok[/]   {check}")
        else:
            failed += 1
            console.print(f"[red]FAIL[/] {check}: {escape(reason)}")
    return 1 if failed else 0


def cmd_request(settings, url: str, no_cert: bool) -> int:
    console.print("Starting mTLS client request...")
    status, body = client.request(settings.out_dir, url, present_certificate=not no_cert)
    colour = "green" if status == 200 else "red"
    console.print(f"[{colour}]Server response status: {status}[/]")
    console.print(f"[{colour}]Server response data:[/] {escape(body)}")
    return 0 if status == 200 else 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings()
        overrides = {k: getattr(args, k, None) for k in (
            "out_dir", "ca_validity_years", "intermediate_validity_years", "leaf_validity_years",
            "key_bits_ca", "key_bits_leaf", "server_sans", "root_cn", "intermediate_cn",
            "server_cn", "client_cn")}
        if getattr(args, "permissive_validity", False):
            overrides["enforce_validity_nesting"] = False
        if args.verbose:
            overrides["log_level"] = "DEBUG"
        settings = settings.with_overrides(**overrides)
        setup_logging(settings.log_level)
        if args.command == "generate":
            return cmd_generate(settings)
        if args.command == "serve":
            try:
                server.run(settings.out_dir, args.host, args.port)
            except KeyboardInterrupt:
                console.print("server stopped")
            return 0
        if args.command == "request":
            return cmd_request(settings, args.url, args.no_cert)
        return cmd_verify(settings, args.host)
    except PKIError as e:
        console.print(f"[red]error:[/] {escape(str(e))}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
