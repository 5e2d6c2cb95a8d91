"""
PKCE (RFC 7636) challenge helpers.
"""

import base64
import hashlib
import hmac

S256 = "S256"
PLAIN = "plain"
SUPPORTED_METHODS = (S256, PLAIN)


def normalize_method(method: str | None) -> str:
    """
    Resolve the code_challenge_method sent by a client.

    A missing method defaults to S256. Raises ValueError for anything
    other than S256 or plain.
    """
    if not method:
        return S256
    if method not in SUPPORTED_METHODS:
        raise ValueError(f"Unsupported code challenge method: {method}")
    return method


def compute_code_challenge(code_verifier: str, method: str = S256) -> str:
    method = normalize_method(method)
    if method == PLAIN:
        return code_verifier
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def verify_code_challenge(code_verifier: str, code_challenge: str, method: str = S256) -> bool:
    """
    Check a verifier against the challenge stored at initiation.

    Returns False for non-ASCII verifiers; raises ValueError for an
    unsupported method.
    """
    try:
        expected = compute_code_challenge(code_verifier, method)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), code_challenge.encode("utf-8"))
