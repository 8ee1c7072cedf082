# client.py
"""HTTPS demo client: GET over mutual TLS with the generated client certificate."""
from typing import Tuple

import httpx

from pkichain.common.errors import RequestError
from pkichain.tls import client_context


def request(cert_dir, url: str = "https://localhost:3000/", timeout: float = 10.0,
            present_certificate: bool = True) -> Tuple[int, str]:
    ctx = client_context(cert_dir, present_certificate)
    try:
        with httpx.Client(verify=ctx, timeout=timeout, trust_env=False) as client:
            resp = client.get(url)
    except httpx.HTTPError as e:
        raise RequestError(f"GET {url} failed: {e}") from e
    return resp.status_code, resp.text
