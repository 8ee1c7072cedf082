# scripts/gen_pki.py
"""Generate the full hierarchy into certs/ (same as `pkichain generate`).
Usage: python scripts/gen_pki.py [--out certs] [--san DNS:example.test ...]
"""
import sys

from pkichain.cli import main

if __name__ == "__main__":
    sys.exit(main(["generate"] + sys.argv[1:]))
