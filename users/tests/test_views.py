from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from backoffice.tokens import generate_test_token

from .fixtures import create_role, create_user


class CurrentUserViewTest(APITestCase):
    def setUp(self):
        self.user = create_user("Ada", "Lovelace", role=create_role('staff', ['message:read', 'message:create']))
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {generate_test_token(self.user.id)}")

    def test_returns_role_and_permissions(self):
        response = self.client.get(reverse('users:current-user'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['email'], "ada@example.com")
        self.assertEqual(response.data['fullName'], "Ada Lovelace")
        self.assertEqual(response.data['role'], 'staff')
        self.assertEqual(response.data['permissions'], ['message:create', 'message:read'])


class UserSearchViewTest(APITestCase):
    def setUp(self):
        self.user = create_user("Ada", "Lovelace")
        self.other = create_user("Adam", "Smith")
        create_user("Grace", "Hopper")
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {generate_test_token(self.user.id)}")
        self.url = reverse('users:user-search')

    def test_search_excludes_caller(self):
        response = self.client.get(self.url, {'q': 'ada'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        ids = [user['id'] for user in response.data['results']]
        self.assertEqual(ids, [self.other.id])

    def test_short_query_returns_nothing(self):
        response = self.client.get(self.url, {'q': 'a'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 0)

    def test_search_by_last_name(self):
        response = self.client.get(self.url, {'q': 'hop'})
        self.assertEqual([user['firstName'] for user in response.data['results']], ["Grace"])
