import jwt
from django.test import SimpleTestCase, override_settings

from backoffice.tokens import generate_test_token, get_user_id_from_token, verify_token
from conversations.exceptions import AuthenticationError


@override_settings(JWT_SECRET='unit-test-secret', JWT_ALGORITHM='HS256')
class TokenTest(SimpleTestCase):
    def test_round_trip_user_id(self):
        token = generate_test_token(42)
        self.assertEqual(get_user_id_from_token(token), 42)
        self.assertEqual(verify_token(token)['sub'], '42')

    def test_expired_token(self):
        token = generate_test_token(42, expires_in_hours=-1)
        with self.assertRaises(AuthenticationError) as ctx:
            verify_token(token)
        self.assertEqual(ctx.exception.message, "Token has expired")

    def test_wrong_signature(self):
        token = jwt.encode({'sub': '42'}, 'another-secret', algorithm='HS256')
        with self.assertRaises(AuthenticationError) as ctx:
            get_user_id_from_token(token)
        self.assertEqual(ctx.exception.message, "Invalid token")

    def test_garbage_token(self):
        with self.assertRaises(AuthenticationError):
            get_user_id_from_token("not-a-jwt")

    def test_missing_token(self):
        with self.assertRaises(AuthenticationError) as ctx:
            verify_token("")
        self.assertEqual(ctx.exception.message, "No token")

    def test_legacy_id_claim(self):
        token = jwt.encode({'id': 7}, 'unit-test-secret', algorithm='HS256')
        self.assertEqual(get_user_id_from_token(token), 7)

    def test_token_without_user(self):
        token = jwt.encode({'scope': 'none'}, 'unit-test-secret', algorithm='HS256')
        with self.assertRaises(AuthenticationError):
            get_user_id_from_token(token)
