# User value: This test makes sure only a valid Google sign-in can read or change a user's OCR history.
import time
import unittest
from unittest.mock import patch

from services.auth import GoogleIdentityVerifier, Identity, bearer_token
from services.errors import Unauthorized

CLIENT_ID = "client-123.apps.googleusercontent.com"


def _claims(**overrides):
    now = int(time.time())
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "azp": CLIENT_ID,
        "sub": "google-sub-1",
        "email": "user@example.com",
        "iat": now,
        "exp": now + 3600,
    }
    claims.update(overrides)
    return claims


class BearerTokenUnitTests(unittest.TestCase):
    def test_extracts_token(self):
        self.assertEqual(bearer_token("Bearer abc.def"), "abc.def")
        self.assertEqual(bearer_token("  bearer   abc  "), "abc")

    def test_missing_header(self):
        for value in (None, "", "   "):
            with self.assertRaises(Unauthorized) as ctx:
                bearer_token(value)
            self.assertEqual(ctx.exception.error_code, "AUTH_MISSING_AUTH_HEADER")

    def test_wrong_scheme_or_empty_token(self):
        for value in ("Basic abc", "Bearer", "Token abc"):
            with self.assertRaises(Unauthorized) as ctx:
                bearer_token(value)
            self.assertEqual(ctx.exception.error_code, "AUTH_INVALID_AUTH_HEADER")


class GoogleIdentityVerifierUnitTests(unittest.TestCase):
    def setUp(self):
        self.verifier = GoogleIdentityVerifier(CLIENT_ID, clock_skew_sec=60, transport_request=object())

    def test_valid_token_yields_subject_as_owner(self):
        with patch("services.auth.id_token.verify_oauth2_token", return_value=_claims()) as verify:
            identity = self.verifier.verify("Bearer good-token")

        self.assertEqual(identity, Identity(owner_id="google-sub-1", email="user@example.com"))
        self.assertEqual(verify.call_args.args[0], "good-token")
        self.assertEqual(verify.call_args.args[2], CLIENT_ID)

    def test_library_rejection_is_invalid_token(self):
        with patch("services.auth.id_token.verify_oauth2_token", side_effect=ValueError("Wrong number of segments")):
            with self.assertRaises(Unauthorized) as ctx:
                self.verifier.verify("Bearer garbage")
        self.assertEqual(ctx.exception.error_code, "AUTH_INVALID_TOKEN")

    def test_claim_checks(self):
        cases = [
            (_claims(iss="https://evil.example.com"), "AUTH_INVALID_ISSUER"),
            (_claims(aud="someone-else"), "AUTH_INVALID_AUDIENCE"),
            (_claims(azp="someone-else"), "AUTH_INVALID_AUTHORIZED_PARTY"),
            (_claims(exp=int(time.time()) - 600), "AUTH_TOKEN_EXPIRED"),
            (_claims(nbf=int(time.time()) + 600), "AUTH_TOKEN_NOT_YET_VALID"),
            (_claims(sub=""), "AUTH_SUBJECT_MISSING"),
        ]
        for claims, expected in cases:
            with patch("services.auth.id_token.verify_oauth2_token", return_value=claims):
                with self.assertRaises(Unauthorized) as ctx:
                    self.verifier.verify("Bearer token")
            self.assertEqual(ctx.exception.error_code, expected)
            self.assertEqual(ctx.exception.status_code, 401)

    def test_expiry_within_clock_skew_is_accepted(self):
        with patch("services.auth.id_token.verify_oauth2_token", return_value=_claims(exp=int(time.time()) - 10)):
            identity = self.verifier.verify("Bearer token")
        self.assertEqual(identity.owner_id, "google-sub-1")

    def test_requires_client_id(self):
        with self.assertRaises(RuntimeError):
            GoogleIdentityVerifier("")


if __name__ == "__main__":
    unittest.main()
