"""
Unit tests for TokenIssuer / decode_token: claims, expiry arithmetic, tampering.
"""
import base64
import json
import unittest
from datetime import datetime, timezone

import jwt

from paygate.delivery.errors import InvalidToken
from paygate.delivery.tokens import TokenIssuer, decode_token

SECRET = "unit-test-secret-unit-test-secret"
NOW = 1_700_000_000


def _flip(ch: str) -> str:
    return "A" if ch != "A" else "B"


def _b64url_json(data: dict) -> str:
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


class TestTokenIssuer(unittest.TestCase):
    def setUp(self):
        self.issuer = TokenIssuer(SECRET, ttl_seconds=3600, clock=lambda: NOW)

    def test_expiry_is_issue_time_plus_ttl(self):
        issued = self.issuer.issue("email_summarizer", "ORDER1")
        payload = jwt.decode(issued.token, SECRET, algorithms=["HS256"], options={"verify_exp": False})
        self.assertEqual(payload["iat"], NOW)
        self.assertEqual(payload["exp"], NOW + 3600)
        self.assertEqual(issued.expires_at, datetime.fromtimestamp(NOW + 3600, tz=timezone.utc))

    def test_explicit_ttl_overrides_default(self):
        issued = self.issuer.issue("email_summarizer", "ORDER1", ttl=60)
        claims = decode_token(issued.token, SECRET)
        self.assertEqual(claims.expires_at - claims.issued_at, 60)

    def test_claims_bound_to_subject_and_transaction(self):
        issued = self.issuer.issue("email_summarizer", "ORDER1")
        claims = decode_token(issued.token, SECRET)
        self.assertEqual(claims.subject, "email_summarizer")
        self.assertEqual(claims.transaction_id, "ORDER1")
        self.assertEqual(claims.token_id, issued.token_id)

    def test_each_issue_has_distinct_identity(self):
        a = self.issuer.issue("email_summarizer", "ORDER1")
        b = self.issuer.issue("email_summarizer", "ORDER1")
        self.assertNotEqual(a.token_id, b.token_id)
        self.assertNotEqual(a.token, b.token)


class TestDecodeToken(unittest.TestCase):
    def setUp(self):
        self.token = TokenIssuer(SECRET, clock=lambda: NOW).issue("email_summarizer", "ORDER1").token

    def test_single_altered_signature_character(self):
        header, payload, sig = self.token.split(".")
        i = len(sig) // 2
        tampered = ".".join([header, payload, sig[:i] + _flip(sig[i]) + sig[i + 1:]])
        with self.assertRaises(InvalidToken):
            decode_token(tampered, SECRET)

    def test_single_altered_payload_character(self):
        header, payload, sig = self.token.split(".")
        i = len(payload) // 2
        tampered = ".".join([header, payload[:i] + _flip(payload[i]) + payload[i + 1:], sig])
        with self.assertRaises(InvalidToken):
            decode_token(tampered, SECRET)

    def test_rewritten_subject_invalidates(self):
        header, payload, sig = self.token.split(".")
        data = jwt.decode(self.token, options={"verify_signature": False})
        data["sub"] = "other_product"
        forged = ".".join([header, _b64url_json(data), sig])
        with self.assertRaises(InvalidToken):
            decode_token(forged, SECRET)

    def test_wrong_secret(self):
        with self.assertRaises(InvalidToken):
            decode_token(self.token, "another-secret-another-secret-xx")

    def test_garbage(self):
        for value in ("", "not-a-token", "a.b.c", "%%%"):
            with self.assertRaises(InvalidToken):
                decode_token(value, SECRET)

    def test_missing_transaction_claim(self):
        token = jwt.encode(
            {"sub": "email_summarizer", "iat": NOW, "exp": NOW + 60, "jti": "x"},
            SECRET,
            algorithm="HS256",
        )
        with self.assertRaises(InvalidToken):
            decode_token(token, SECRET)

    def test_expired_token_still_decodes(self):
        """Expiry is the guard's decision, not the decoder's."""
        old = TokenIssuer(SECRET, ttl_seconds=10, clock=lambda: 1000).issue("email_summarizer", "ORDER1")
        claims = decode_token(old.token, SECRET)
        self.assertEqual(claims.expires_at, 1010)
