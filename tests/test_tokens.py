"""Unit tests for bearer token decoding: format order, expiry rules and the dev fallback."""

import base64
import json
import time
import unittest
from datetime import UTC, datetime, timedelta

import jwt

from wms_tutorial.core.tokens import (
    EXPIRED_ERROR,
    INVALID_FORMAT_ERROR,
    AuthFailure,
    Identity,
    TokenValidator,
    decode_dev_fallback,
    decode_legacy_base64,
    decode_simplified,
)

SECRET = "unit-test-secret"


def legacy_token(payload: dict, strip_padding: bool = False) -> str:
    token = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return token.rstrip("=") if strip_padding else token


class TestSimplifiedTokens(unittest.TestCase):
    def test_three_segments(self) -> None:
        self.assertEqual(
            decode_simplified("42:alice:supervisor"),
            Identity(user_id="42", username="alice", role="supervisor"),
        )

    def test_extra_segments_are_ignored(self) -> None:
        identity = decode_simplified("42:alice:admin:whatever")
        self.assertEqual(identity.role, "admin")

    def test_two_segments_are_invalid_format(self) -> None:
        outcome = decode_simplified("42:alice")
        self.assertIsInstance(outcome, AuthFailure)
        self.assertEqual(outcome.error, INVALID_FORMAT_ERROR)

    def test_no_colon_does_not_match(self) -> None:
        self.assertIsNone(decode_simplified("abc.def.ghi"))


class TestLegacyBase64Tokens(unittest.TestCase):
    def test_expired_is_terminal(self) -> None:
        token = legacy_token({"userId": "u1", "username": "bob", "role": "user", "exp": 1000})
        outcome = decode_legacy_base64(token, now_ms=lambda: 2000)
        self.assertIsInstance(outcome, AuthFailure)
        self.assertEqual(outcome.error, EXPIRED_ERROR)

    def test_exp_is_milliseconds(self) -> None:
        # An exp in seconds would already be far in the past when read as milliseconds.
        future_ms = (time.time() + 3600) * 1000
        token = legacy_token({"userId": "u1", "username": "bob", "role": "user", "exp": future_ms})
        self.assertEqual(decode_legacy_base64(token), Identity("u1", "bob", "user"))

    def test_missing_padding_is_repaired(self) -> None:
        token = legacy_token({"userId": "u7", "username": "carol", "role": "admin"}, strip_padding=True)
        self.assertEqual(decode_legacy_base64(token), Identity("u7", "carol", "admin"))

    def test_non_object_json_does_not_match(self) -> None:
        token = base64.b64encode(b"[1, 2, 3]").decode("ascii")
        self.assertIsNone(decode_legacy_base64(token))

    def test_object_without_identity_fields_does_not_match(self) -> None:
        self.assertIsNone(decode_legacy_base64(legacy_token({"role": "admin"})))

    def test_garbage_does_not_match(self) -> None:
        self.assertIsNone(decode_legacy_base64("%%%not-base64%%%"))


class TestDevFallbackTokens(unittest.TestCase):
    def test_bare_fallback_is_admin(self) -> None:
        self.assertEqual(
            decode_dev_fallback("dev-fallback"),
            Identity(user_id="admin-dev-id", username="admin", role="admin"),
        )

    def test_named_fallback(self) -> None:
        self.assertEqual(
            decode_dev_fallback("dev-fallback-supervisor"),
            Identity(user_id="supervisor-dev-id", username="supervisor", role="supervisor"),
        )
        self.assertEqual(decode_dev_fallback("dev-fallback-dana").role, "user")

    def test_username_is_third_segment(self) -> None:
        self.assertEqual(decode_dev_fallback("dev-fallback-jane-doe").username, "jane")

    def test_other_tokens_do_not_match(self) -> None:
        self.assertIsNone(decode_dev_fallback("developer"))


class TestTokenValidator(unittest.TestCase):
    def setUp(self) -> None:
        self.dev = TokenValidator(SECRET, is_development=True)
        self.prod = TokenValidator(SECRET, is_development=False)

    def test_empty_token_is_invalid_format(self) -> None:
        outcome = self.prod.validate("")
        self.assertIsInstance(outcome, AuthFailure)
        self.assertEqual(outcome.error, INVALID_FORMAT_ERROR)

    def test_simplified_token_never_expires(self) -> None:
        self.assertEqual(self.prod.validate("1:alice:user"), Identity("1", "alice", "user"))

    def test_valid_jwt(self) -> None:
        token = jwt.encode(
            {"userId": "9", "username": "erin", "role": "admin",
             "exp": datetime.now(UTC) + timedelta(hours=1)},
            SECRET,
            algorithm="HS256",
        )
        self.assertEqual(self.prod.validate(token), Identity("9", "erin", "admin"))

    def test_jwt_sub_and_name_claims(self) -> None:
        token = jwt.encode({"sub": "9", "name": "erin", "role": "user"}, SECRET, algorithm="HS256")
        self.assertEqual(self.prod.validate(token), Identity("9", "erin", "user"))

    def test_jwt_with_wrong_secret_is_invalid_format(self) -> None:
        token = jwt.encode({"userId": "9", "username": "erin", "role": "admin"}, "other", algorithm="HS256")
        outcome = self.prod.validate(token)
        self.assertIsInstance(outcome, AuthFailure)
        self.assertEqual(outcome.error, INVALID_FORMAT_ERROR)

    def test_expired_jwt_falls_through_to_invalid_format(self) -> None:
        token = jwt.encode(
            {"userId": "9", "username": "erin", "role": "admin",
             "exp": datetime.now(UTC) - timedelta(minutes=5)},
            SECRET,
            algorithm="HS256",
        )
        self.assertEqual(self.prod.validate(token).error, INVALID_FORMAT_ERROR)

    def test_jwt_shaped_base64_falls_through_to_legacy_path(self) -> None:
        encoded = legacy_token({"userId": "u3", "username": "fay", "role": "user"}, strip_padding=True)
        token = f"{encoded[:10]}.{encoded[10:20]}.{encoded[20:]}"
        self.assertEqual(token.count("."), 2)
        self.assertEqual(self.prod.validate(token), Identity("u3", "fay", "user"))

    def test_short_colon_token_never_reaches_base64_path(self) -> None:
        encoded = legacy_token({"userId": "u9", "username": "mallory", "role": "admin"}, strip_padding=True)
        token = f"{encoded[:12]}:{encoded[12:]}"
        # Without the colon the same text is a valid legacy token.
        self.assertEqual(self.prod.validate(encoded), Identity("u9", "mallory", "admin"))
        outcome = self.prod.validate(token)
        self.assertIsInstance(outcome, AuthFailure)
        self.assertEqual(outcome.error, INVALID_FORMAT_ERROR)

    def test_expired_legacy_token(self) -> None:
        token = legacy_token({"userId": "u1", "username": "bob", "role": "user", "exp": 1})
        self.assertEqual(self.prod.validate(token).error, EXPIRED_ERROR)

    def test_dev_fallback_only_in_development(self) -> None:
        self.assertEqual(self.dev.validate("dev-fallback").role, "admin")
        self.assertEqual(self.prod.validate("dev-fallback").error, INVALID_FORMAT_ERROR)
        self.assertEqual(self.prod.validate("dev-fallback-admin").error, INVALID_FORMAT_ERROR)

    def test_simplified_wins_over_later_decoders(self) -> None:
        # Colon-separated tokens never reach the JWT or base64 decoders.
        self.assertEqual(self.dev.validate("dev-fallback:x:user"), Identity("dev-fallback", "x", "user"))


if __name__ == "__main__":
    unittest.main()
