from django.test import RequestFactory, SimpleTestCase

from backoffice.permissions import (
    Capability,
    SUPERADMIN_ROLE,
    allowed,
    capability_set,
    require_capability,
)
from users.services import Identity


class CapabilitySetTest(SimpleTestCase):
    def test_known_names_become_capabilities(self):
        capabilities = capability_set(['message:read', 'message:create'])
        self.assertEqual(capabilities, {Capability.MESSAGE_READ, Capability.MESSAGE_CREATE})

    def test_unknown_names_are_dropped_with_warning(self):
        with self.assertLogs('backoffice.permissions', level='WARNING') as logs:
            capabilities = capability_set(['message:read', 'coffee:brew', 'hr:view'])

        self.assertEqual(capabilities, {Capability.MESSAGE_READ})
        self.assertEqual(len(logs.records), 1)
        self.assertIn('coffee:brew', logs.output[0])
        self.assertIn('hr:view', logs.output[0])

    def test_known_names_log_nothing(self):
        with self.assertNoLogs('backoffice.permissions', level='WARNING'):
            capability_set(['message:read', 'user:read'])

    def test_empty(self):
        self.assertEqual(capability_set(None), frozenset())


class AllowedTest(SimpleTestCase):
    def test_granted_permission(self):
        self.assertTrue(allowed('staff', {Capability.MESSAGE_CREATE}, Capability.MESSAGE_CREATE))

    def test_accepts_permission_name(self):
        self.assertTrue(allowed('staff', {Capability.MESSAGE_CREATE}, 'message:create'))

    def test_missing_permission(self):
        self.assertFalse(allowed('staff', {Capability.MESSAGE_READ}, Capability.MESSAGE_CREATE))

    def test_superadmin_bypasses_checks(self):
        self.assertTrue(allowed(SUPERADMIN_ROLE, frozenset(), Capability.MESSAGE_MANAGE))

    def test_no_role(self):
        self.assertFalse(allowed(None, frozenset(), Capability.MESSAGE_READ))

    def test_unknown_capability(self):
        self.assertFalse(allowed('staff', {Capability.MESSAGE_READ}, 'coffee:brew'))


class RequireCapabilityTest(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.permission = require_capability(Capability.MESSAGE_CREATE)()

    def _request(self, identity):
        request = self.factory.get('/')
        request.user = type('AuthenticatedUser', (), {'is_authenticated': True})()
        request.auth = identity
        return request

    def test_allows_identity_with_capability(self):
        identity = Identity(id=1, name="Ada", email="ada@example.com", role='staff',
                            permissions=frozenset({Capability.MESSAGE_CREATE}))
        self.assertTrue(self.permission.has_permission(self._request(identity), None))

    def test_rejects_identity_without_capability(self):
        identity = Identity(id=1, name="Ada", email="ada@example.com", role='staff',
                            permissions=frozenset({Capability.MESSAGE_READ}))
        self.assertFalse(self.permission.has_permission(self._request(identity), None))

    def test_rejects_missing_identity(self):
        self.assertFalse(self.permission.has_permission(self._request(None), None))

    def test_class_name(self):
        self.assertEqual(require_capability(Capability.MESSAGE_READ).__name__, 'HasMessageRead')
