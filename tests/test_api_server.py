import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx
from fastapi.testclient import TestClient

from campuskb import api_server
from campuskb.config import ADMIN_EMAIL, ADMIN_PASSWORD
from campuskb.metrics import MetricsCollector
from campuskb.portal import Portal
from campuskb.storage_provider import InMemoryKeyValueStore


class _Backend:
    def __init__(self):
        self.paths: list[str] = []
        self.statuses: dict[str, int] = {}
        self.retrieve_body = '{"response":"Answer text","source":"doc1.pdf"}'
        self.reachable = True

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.paths.append(path)
        if not self.reachable:
            raise httpx.ConnectError("backend down", request=request)
        body = self.retrieve_body if path == "/retrieve" else '{"ok": true}'
        return httpx.Response(self.statuses.get(path, 200), text=body)


class TestApiServer(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.backend = _Backend()
        self.store = InMemoryKeyValueStore()

        def factory():
            return Portal.build(
                self.store,
                base_url="http://backend.test",
                transport=httpx.MockTransport(self.backend.handle),
                metrics=MetricsCollector(Path(self.tmp.name)),
            )

        self.patcher = patch.object(api_server, "_portal_factory", factory)
        self.patcher.start()
        self.client = TestClient(api_server.app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        self.patcher.stop()
        self.tmp.cleanup()

    def _sign_in_admin(self):
        response = self.client.post("/auth/signin", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        self.assertEqual(response.status_code, 200)
        return response.json()

    def _sign_in_student(self):
        response = self.client.post("/auth/signin", data={"email": "student@uol.edu.pk", "password": "pw1234"})
        self.assertEqual(response.status_code, 200)
        return response.json()

    def _upload(self, name="handbook.pdf", category="Student Services", description=""):
        return self.client.post(
            "/documents",
            files={"file": (name, b"%PDF-1.4 content", "application/pdf")},
            data={"category": category, "description": description},
        )

    def test_admin_sign_in_skips_backend(self):
        session = self._sign_in_admin()
        self.assertEqual(session["role"], "admin")
        self.assertEqual(self.backend.paths, [])
        self.assertEqual(self.client.get("/auth/me").json()["email"], ADMIN_EMAIL)

    def test_student_sign_in_and_failure(self):
        self.assertEqual(self._sign_in_student()["role"], "user")
        self.assertEqual(self.backend.paths, ["/signin"])
        self.backend.statuses["/signin"] = 401
        response = self.client.post("/auth/signin", data={"email": "x@uol.edu.pk", "password": "bad"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["detail"], "Invalid credentials")

    def test_sign_in_network_failure_is_bad_gateway(self):
        self.backend.reachable = False
        response = self.client.post("/auth/signin", data={"email": "x@uol.edu.pk", "password": "pw1234"})
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"], "Network error. Please try again.")

    def test_missing_credentials_are_validation_errors(self):
        response = self.client.post("/auth/signin", data={"email": "", "password": ""})
        self.assertEqual(response.status_code, 422)

    def test_upload_list_stats_and_delete(self):
        self._sign_in_admin()
        created = self._upload(description="Rules for students")
        self.assertEqual(created.status_code, 201)
        doc = created.json()
        self.assertEqual(doc["name"], "handbook.pdf")
        self.assertEqual(doc["size"], len(b"%PDF-1.4 content"))
        self.assertEqual(doc["uploaded_by"], ADMIN_EMAIL)
        self.assertIn("/upload", self.backend.paths)

        self.assertEqual(len(self.client.get("/documents").json()), 1)
        self.assertEqual(len(self.client.get("/documents", params={"q": "RULES"}).json()), 1)
        self.assertEqual(self.client.get("/documents", params={"category": "Research"}).json(), [])

        stats = self.client.get("/documents/stats").json()
        self.assertEqual(stats["total_documents"], 1)
        self.assertEqual(stats["recent_uploads"], 1)
        self.assertEqual(stats["category_breakdown"], [{"name": "Student Services", "count": 1}])

        self.assertEqual(self.client.delete(f"/documents/{doc['id']}").status_code, 204)
        missing = self.client.delete(f"/documents/{doc['id']}")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["detail"], "Could not delete the document.")

    def test_failed_remote_upload_adds_nothing(self):
        self._sign_in_admin()
        self.backend.statuses["/upload"] = 500
        response = self._upload()
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"], "Failed to upload document")
        self.assertEqual(self.client.get("/documents").json(), [])

    def test_upload_requires_category(self):
        self._sign_in_admin()
        response = self._upload(category="")
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["detail"], "Please select a file and category")
        self.assertNotIn("/upload", self.backend.paths)

    def test_standard_user_cannot_delete(self):
        self._sign_in_admin()
        doc_id = self._upload().json()["id"]
        self.client.post("/auth/signout")
        self._sign_in_student()

        response = self.client.delete(f"/documents/{doc_id}")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["detail"], "Only administrators can delete documents.")
        self.assertEqual([d["id"] for d in self.client.get("/documents").json()], [doc_id])

    def test_standard_user_cannot_upload(self):
        self._sign_in_student()
        response = self._upload()
        self.assertEqual(response.status_code, 403)
        self.assertNotIn("/upload", self.backend.paths)

    def test_query_conversation_and_clear(self):
        self.assertEqual(self.client.post("/query", json={"query": "Fees?"}).status_code, 401)
        self._sign_in_student()

        reply = self.client.post("/query", json={"query": "Fees?"}).json()
        self.assertEqual(reply["type"], "assistant")
        self.assertEqual(reply["content"], "Answer text")
        self.assertEqual(reply["sources"], ["doc1.pdf"])

        history = self.client.get("/conversation").json()
        self.assertEqual([m["type"] for m in history], ["user", "assistant"])

        self.assertEqual(self.client.delete("/conversation").status_code, 204)
        self.assertEqual(self.client.get("/conversation").json(), [])

    def test_retry_after_backend_error(self):
        self._sign_in_student()
        self.backend.statuses["/retrieve"] = 500
        failed = self.client.post("/query", json={"query": "Deadline?"}).json()
        self.assertEqual(failed["type"], "error")
        self.assertEqual(failed["query"], "Deadline?")

        self.backend.statuses["/retrieve"] = 200
        self.backend.retrieve_body = "June 30.\nSource: calendar.pdf"
        retried = self.client.post(f"/conversation/{failed['id']}/retry").json()
        self.assertEqual(retried["content"], "June 30.")
        self.assertEqual(retried["sources"], ["calendar.pdf"])

    def test_user_directory_endpoints(self):
        self._sign_in_admin()
        created = self.client.post("/users", data={"email": "t@uol.edu.pk", "password": "secret1", "role": "admin"})
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["role"], "admin")
        self.assertEqual(len(self.client.get("/users").json()), 2)

        self.assertEqual(self.client.post("/users", data={"email": "x@uol.edu.pk", "password": "1"}).status_code, 422)
        self.assertEqual(self.client.post("/users", data={"email": "x@uol.edu.pk", "password": "secret1", "role": "root"}).status_code, 422)
        self.assertEqual(self.client.delete("/users/1").status_code, 403)
        self.assertEqual(self.client.delete(f"/users/{created.json()['id']}").status_code, 204)

    def test_suggestions_categories_and_metrics(self):
        self.assertIn("Admissions", self.client.get("/suggestions").json())
        self.assertIn("Campus Life", self.client.get("/categories").json())
        self.assertEqual(self.client.get("/metrics").status_code, 401)
        self._sign_in_admin()
        self._upload()
        summary = self.client.get("/metrics").json()
        self.assertEqual(summary["endpoints"]["/upload"]["requests"], 1)

    def test_catalog_persists_across_restart(self):
        self._sign_in_admin()
        doc_id = self._upload().json()["id"]
        self.client.__exit__(None, None, None)

        self.client = TestClient(api_server.app)
        self.client.__enter__()
        self.assertEqual([d["id"] for d in self.client.get("/documents").json()], [doc_id])


if __name__ == "__main__":
    unittest.main()
