import base64
import hashlib
import pytest
from utils.pkce import compute_code_challenge, verify_code_challenge, normalize_method

VERIFIER = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
# Example from RFC 7636 appendix B
RFC_CHALLENGE = "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"


def test_s256_matches_rfc_example():
    assert compute_code_challenge(VERIFIER, "S256") == RFC_CHALLENGE


def test_s256_is_unpadded_base64url_of_sha256():
    verifier = "another-verifier-value-that-is-long-enough-1234"
    expected = base64.urlsafe_b64encode(hashlib.sha256(verifier.encode()).digest()).decode().rstrip("=")

    challenge = compute_code_challenge(verifier)
    assert challenge == expected
    assert "=" not in challenge


def test_verify_s256():
    assert verify_code_challenge(VERIFIER, RFC_CHALLENGE, "S256") is True
    assert verify_code_challenge(VERIFIER + "x", RFC_CHALLENGE, "S256") is False


def test_verify_plain_is_exact_comparison():
    assert verify_code_challenge(VERIFIER, VERIFIER, "plain") is True
    assert verify_code_challenge(VERIFIER.upper(), VERIFIER, "plain") is False
    # S256 challenge does not satisfy plain
    assert verify_code_challenge(VERIFIER, RFC_CHALLENGE, "plain") is False


def test_missing_method_defaults_to_s256():
    assert normalize_method(None) == "S256"
    assert normalize_method("") == "S256"
    assert verify_code_challenge(VERIFIER, RFC_CHALLENGE, None) is True


def test_unsupported_method_is_rejected():
    with pytest.raises(ValueError):
        normalize_method("S512")

    with pytest.raises(ValueError):
        verify_code_challenge(VERIFIER, RFC_CHALLENGE, "md5")


def test_non_ascii_verifier_never_matches():
    assert verify_code_challenge("vérifier", RFC_CHALLENGE, "S256") is False
