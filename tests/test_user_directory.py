import unittest

import httpx

from campuskb.errors import AccessDenied, BackendRequestFailed, ValidationFailed
from campuskb.kb_client import KnowledgeBaseClient
from campuskb.models import Role
from campuskb.storage_provider import USERS_KEY, InMemoryKeyValueStore
from campuskb.user_management import UserDirectory


class TestUserDirectory(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryKeyValueStore()
        self.status = 200
        self.body = ""
        self.fail = False
        self.calls = []
        self.directory = UserDirectory(
            self.store,
            KnowledgeBaseClient("http://backend.test", transport=httpx.MockTransport(self._handle)),
            admin_email="admin@uol.edu.pk",
            min_password_length=6,
        )

    def _handle(self, request):
        self.calls.append(request.url.path)
        if self.fail:
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(self.status, text=self.body)

    def test_seeded_with_main_admin(self):
        users = self.directory.list_users()
        self.assertEqual(len(users), 1)
        self.assertEqual(users[0].email, "admin@uol.edu.pk")
        self.assertEqual(users[0].role, Role.ADMIN)
        self.assertEqual(users[0].created_at, "2024-01-01")

    def test_add_user_calls_signup_and_persists(self):
        created = self.directory.add_user("teacher@uol.edu.pk", "secret1", Role.ADMIN)
        self.assertEqual(self.calls, ["/signup"])
        self.assertEqual(created.role, Role.ADMIN)
        reloaded = UserDirectory(self.store, self.directory.client, admin_email="admin@uol.edu.pk")
        self.assertEqual([u.email for u in reloaded.list_users()], ["admin@uol.edu.pk", "teacher@uol.edu.pk"])

    def test_validation_happens_before_network(self):
        cases = [
            ("", "secret1", "Please enter an email address"),
            ("a@uol.edu.pk", "", "Please enter a password"),
            ("a@uol.edu.pk", "12345", "Password must be at least 6 characters long"),
            ("admin@uol.edu.pk", "secret1", "User with this email already exists"),
        ]
        for email, password, message in cases:
            with self.assertRaises(ValidationFailed) as ctx:
                self.directory.add_user(email, password)
            self.assertEqual(ctx.exception.message, message)
        self.assertEqual(self.calls, [])

    def test_backend_rejection_surfaces_response_text(self):
        self.status = 409
        self.body = "email taken"
        with self.assertRaises(BackendRequestFailed) as ctx:
            self.directory.add_user("a@uol.edu.pk", "secret1")
        self.assertEqual(ctx.exception.message, "Failed to create user: email taken")
        self.assertEqual(len(self.directory.list_users()), 1)

    def test_connection_failure(self):
        self.fail = True
        with self.assertRaises(BackendRequestFailed) as ctx:
            self.directory.add_user("a@uol.edu.pk", "secret1")
        self.assertEqual(ctx.exception.message, "Failed to create user. Please check your connection.")

    def test_delete_user(self):
        created = self.directory.add_user("a@uol.edu.pk", "secret1")
        self.assertTrue(self.directory.delete_user(created.id))
        self.assertFalse(self.directory.delete_user(created.id))
        with self.assertRaises(AccessDenied):
            self.directory.delete_user("1")
        self.assertEqual(len(self.directory.list_users()), 1)

    def test_corrupt_directory_falls_back_to_seed(self):
        self.store.set(USERS_KEY, "[{]")
        self.assertEqual([u.email for u in self.directory.list_users()], ["admin@uol.edu.pk"])


if __name__ == "__main__":
    unittest.main()
