from django.test import TestCase

from backoffice.permissions import Capability
from conversations.exceptions import AuthenticationError
from users.services import load_identity, load_user

from .fixtures import create_role, create_user


class LoadIdentityTest(TestCase):
    def test_identity_carries_role_and_permissions(self):
        role = create_role('staff', ['message:read', 'message:create', 'coffee:brew'])
        user = create_user("Ada", "Lovelace", role=role)

        identity = load_identity(user.id)

        self.assertEqual(identity.id, user.id)
        self.assertEqual(identity.name, "Ada Lovelace")
        self.assertEqual(identity.role, 'staff')
        self.assertEqual(identity.permissions, {Capability.MESSAGE_READ, Capability.MESSAGE_CREATE})
        self.assertEqual(identity.as_summary(), {'id': user.id, 'name': "Ada Lovelace"})

    def test_user_without_role(self):
        user = create_user("Grace")
        identity = load_identity(user.id)
        self.assertIsNone(identity.role)
        self.assertEqual(identity.permissions, frozenset())

    def test_load_user_returns_model_and_identity(self):
        user = create_user("Grace")
        loaded, identity = load_user(user.id)
        self.assertEqual(loaded, user)
        self.assertEqual(identity.email, user.email)

    def test_unknown_user(self):
        with self.assertRaises(AuthenticationError) as ctx:
            load_identity(999999)
        self.assertEqual(ctx.exception.message, "User not found")


class UserModelTest(TestCase):
    def test_full_name_falls_back_to_email(self):
        user = create_user("", "", email="anon@example.com")
        self.assertEqual(user.full_name, "anon@example.com")
