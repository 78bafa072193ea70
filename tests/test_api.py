"""End-to-end tests for the HTTP API."""

from __future__ import annotations

import sqlite3
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from contactdesk.api import create_app
from contactdesk.database import Database
from contactdesk.models import Role
from contactdesk.security import TokenIssuer

ADMIN_EMAIL = "admin@mail.com"
ADMIN_PASSWORD = "admin123"


class ContactDeskAPITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        db_path = Path(self._tempdir.name) / "contactdesk.sqlite3"
        self.database = Database(db_path)
        self.database.initialize()
        self.database.ensure_admin("Admin User", ADMIN_EMAIL, ADMIN_PASSWORD)
        self.tokens = TokenIssuer("api-tests-secret")
        self.app = create_app(database=self.database, tokens=self.tokens)
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()
        self._tempdir.cleanup()

    def _login(self, email: str, password: str) -> dict:
        response = self.client.post("/api/login", json={"email": email, "password": password})
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()

    def _admin_headers(self) -> dict:
        token = self._login(ADMIN_EMAIL, ADMIN_PASSWORD)["token"]
        return {"Authorization": f"Bearer {token}"}

    def _user_headers(self) -> dict:
        registered = self.client.post(
            "/api/register",
            json={"full_name": "Visitor", "email": "visitor@example.com", "password": "visitor-pw"},
        )
        self.assertEqual(registered.status_code, 201, registered.text)
        return {"Authorization": f"Bearer {registered.json()['token']}"}

    def _submit(self, **overrides) -> int:
        payload = {"full_name": "A", "email": "a@b.com", "message": "hi"}
        payload.update(overrides)
        response = self.client.post("/api/contact", json=payload)
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["contactId"]

    # ------------------------------------------------------------------
    # Static page
    # ------------------------------------------------------------------
    def test_root_serves_static_document(self) -> None:
        response = self.client.get("/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers["content-type"].startswith("text/html"))
        self.assertIn("contact-form", response.text)

    def test_healthcheck(self) -> None:
        self.assertEqual(self.client.get("/healthz").json(), {"status": "ok"})

    # ------------------------------------------------------------------
    # Registration and login
    # ------------------------------------------------------------------
    def test_register_twice_with_same_email(self) -> None:
        body = {"full_name": "Ada", "email": "ada@example.com", "password": "analytical"}

        first = self.client.post("/api/register", json=body)
        self.assertEqual(first.status_code, 201, first.text)
        payload = first.json()
        self.assertEqual(payload["message"], "User registered successfully.")
        self.assertEqual(payload["user"]["role"], "user")
        self.assertEqual(set(payload["user"]), {"id", "full_name", "email", "role"})

        second = self.client.post("/api/register", json=body)
        self.assertEqual(second.status_code, 409)
        self.assertEqual(second.json(), {"message": "Email already registered."})
        self.assertEqual(self.database.count_users_with_email("ada@example.com"), 1)

    def test_register_ignores_requested_role(self) -> None:
        response = self.client.post(
            "/api/register",
            json={"full_name": "Eve", "email": "eve@example.com", "password": "pw", "role": "admin"},
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["user"]["role"], "user")

    def test_register_validation(self) -> None:
        missing = self.client.post("/api/register", json={"email": "ada@example.com"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json(), {"message": "All fields are required."})

        bad_email = self.client.post(
            "/api/register",
            json={"full_name": "Ada", "email": "bad-email", "password": "pw"},
        )
        self.assertEqual(bad_email.status_code, 400)
        self.assertEqual(bad_email.json(), {"message": "Invalid email format."})

    def test_login_returns_user_without_password(self) -> None:
        payload = self._login(ADMIN_EMAIL, ADMIN_PASSWORD)
        self.assertEqual(payload["message"], "Login successful.")
        self.assertEqual(payload["user"]["role"], "admin")
        self.assertNotIn("password", payload["user"])
        self.assertTrue(payload["token"])

    def test_login_failures_are_identical(self) -> None:
        wrong_password = self.client.post("/api/login", json={"email": ADMIN_EMAIL, "password": "nope"})
        unknown_email = self.client.post("/api/login", json={"email": "ghost@example.com", "password": "nope"})

        self.assertEqual(wrong_password.status_code, 401)
        self.assertEqual(unknown_email.status_code, 401)
        self.assertEqual(wrong_password.json(), unknown_email.json())
        self.assertEqual(wrong_password.json(), {"message": "Invalid credentials."})

    def test_login_requires_both_fields(self) -> None:
        response = self.client.post("/api/login", json={"email": ADMIN_EMAIL})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"message": "Email and password are required."})

    def test_malformed_body_is_a_validation_error(self) -> None:
        response = self.client.post(
            "/api/login",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"message": "Invalid request body."})

        typed = self.client.post("/api/contact", json={"full_name": ["A"], "email": "a@b.com", "message": "hi"})
        self.assertEqual(typed.status_code, 400)

        not_an_object = self.client.post("/api/contact", json=["A", "a@b.com", "hi"])
        self.assertEqual(not_an_object.status_code, 400)
        self.assertEqual(not_an_object.json(), {"message": "Invalid request body."})

    def test_empty_body_reports_missing_fields(self) -> None:
        response = self.client.post("/api/contact")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"message": "Full Name, Email, and Message are required."})

    # ------------------------------------------------------------------
    # Contact submission
    # ------------------------------------------------------------------
    def test_contact_submission_validation(self) -> None:
        bad = self.client.post("/api/contact", json={"full_name": "A", "email": "bad-email", "message": "hi"})
        self.assertEqual(bad.status_code, 400)
        self.assertEqual(bad.json(), {"message": "Invalid email format."})

        missing = self.client.post("/api/contact", json={"full_name": "A", "email": "a@b.com"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json(), {"message": "Full Name, Email, and Message are required."})

    def test_contact_submission_round_trip(self) -> None:
        response = self.client.post(
            "/api/contact",
            json={
                "full_name": "Grace Hopper",
                "email": "grace@example.com",
                "service_interest": "seo",
                "message": "Please call me back.",
            },
        )
        self.assertEqual(response.status_code, 201, response.text)
        self.assertEqual(response.json()["message"], "Message sent successfully.")
        contact_id = response.json()["contactId"]

        listed = self.client.get("/api/admin/contacts", headers=self._admin_headers())
        self.assertEqual(listed.status_code, 200, listed.text)
        self.assertEqual([row["id"] for row in listed.json()], [contact_id])

        fetched = self.client.get(f"/api/admin/contacts/{contact_id}", headers=self._admin_headers())
        self.assertEqual(fetched.status_code, 200, fetched.text)
        row = fetched.json()
        self.assertEqual(row["full_name"], "Grace Hopper")
        self.assertEqual(row["email"], "grace@example.com")
        self.assertEqual(row["service_interest"], "seo")
        self.assertEqual(row["message"], "Please call me back.")
        self.assertIn("created_at", row)

    def test_empty_service_interest_round_trips(self) -> None:
        contact_id = self._submit(service_interest="")

        fetched = self.client.get(f"/api/admin/contacts/{contact_id}", headers=self._admin_headers())
        self.assertEqual(fetched.json()["service_interest"], "")

    def test_contact_submission_accepts_form_post(self) -> None:
        response = self.client.post(
            "/api/contact",
            data={"full_name": "A", "email": "a@b.com", "service_interest": "seo", "message": "hi"},
        )
        self.assertEqual(response.status_code, 201, response.text)
        contact_id = response.json()["contactId"]

        fetched = self.client.get(f"/api/admin/contacts/{contact_id}", headers=self._admin_headers())
        row = fetched.json()
        self.assertEqual((row["full_name"], row["email"], row["message"]), ("A", "a@b.com", "hi"))
        self.assertEqual(row["service_interest"], "seo")

        invalid = self.client.post("/api/contact", data={"full_name": "A", "email": "bad-email", "message": "hi"})
        self.assertEqual(invalid.status_code, 400)
        self.assertEqual(invalid.json(), {"message": "Invalid email format."})

    def test_register_and_login_accept_form_posts(self) -> None:
        registered = self.client.post(
            "/api/register",
            data={"full_name": "Ada", "email": "ada@example.com", "password": "analytical"},
        )
        self.assertEqual(registered.status_code, 201, registered.text)

        login = self.client.post("/api/login", data={"email": "ada@example.com", "password": "analytical"})
        self.assertEqual(login.status_code, 200, login.text)
        self.assertEqual(login.json()["user"]["email"], "ada@example.com")

        missing = self.client.post("/api/login", data={"email": "ada@example.com"})
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json(), {"message": "Email and password are required."})

    def test_contacts_listed_in_creation_order(self) -> None:
        ids = [self._submit(full_name=name) for name in ("C1", "C2", "C3")]

        listed = self.client.get("/api/admin/contacts", headers=self._admin_headers())
        self.assertEqual([row["id"] for row in listed.json()], ids)
        self.assertEqual([row["full_name"] for row in listed.json()], ["C1", "C2", "C3"])

    # ------------------------------------------------------------------
    # Admin CRUD
    # ------------------------------------------------------------------
    def test_rename_contact(self) -> None:
        contact_id = self._submit(full_name="Original")
        headers = self._admin_headers()

        empty = self.client.put(f"/api/contacts/{contact_id}", json={"full_name": ""}, headers=headers)
        self.assertEqual(empty.status_code, 400)
        self.assertEqual(empty.json(), {"message": "Full Name is required for update."})
        unchanged = self.client.get(f"/api/admin/contacts/{contact_id}", headers=headers)
        self.assertEqual(unchanged.json()["full_name"], "Original")

        renamed = self.client.put(f"/api/contacts/{contact_id}", json={"full_name": "Renamed"}, headers=headers)
        self.assertEqual(renamed.status_code, 200, renamed.text)
        self.assertEqual(renamed.json()["message"], "Contact name updated successfully.")
        self.assertEqual(renamed.json()["contact"]["full_name"], "Renamed")

        unknown = self.client.put("/api/contacts/9999", json={"full_name": "X"}, headers=headers)
        self.assertEqual(unknown.status_code, 404)
        self.assertEqual(unknown.json(), {"message": "Contact message not found."})

    def test_rename_without_body(self) -> None:
        contact_id = self._submit()
        response = self.client.put(f"/api/contacts/{contact_id}", headers=self._admin_headers())
        self.assertEqual(response.status_code, 400)

    def test_delete_contact(self) -> None:
        contact_id = self._submit()
        headers = self._admin_headers()

        deleted = self.client.delete(f"/api/contacts/{contact_id}", headers=headers)
        self.assertEqual(deleted.status_code, 200, deleted.text)
        self.assertEqual(
            deleted.json(),
            {"message": "Contact message deleted successfully.", "deletedId": contact_id},
        )

        fetched = self.client.get(f"/api/admin/contacts/{contact_id}", headers=headers)
        self.assertEqual(fetched.status_code, 404)

        again = self.client.delete(f"/api/contacts/{contact_id}", headers=headers)
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json(), {"message": "Contact message not found."})

    def test_non_numeric_id_is_not_found(self) -> None:
        response = self.client.get("/api/admin/contacts/not-a-number", headers=self._admin_headers())
        self.assertEqual(response.status_code, 404)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------
    def test_admin_routes_require_token(self) -> None:
        contact_id = self._submit()
        requests = [
            ("GET", "/api/admin/contacts", None),
            ("GET", f"/api/admin/contacts/{contact_id}", None),
            ("PUT", f"/api/contacts/{contact_id}", {"full_name": "X"}),
            ("DELETE", f"/api/contacts/{contact_id}", None),
        ]
        for method, path, body in requests:
            with self.subTest(method=method, path=path):
                response = self.client.request(method, path, json=body)
                self.assertEqual(response.status_code, 401)
                self.assertEqual(response.json(), {"message": "Authentication required."})

                forged = self.client.request(method, path, json=body, headers={"Authorization": "Bearer forged"})
                self.assertEqual(forged.status_code, 401)
                self.assertEqual(forged.json(), {"message": "Invalid or expired token."})

        self.assertIsNotNone(self.database.get_contact(contact_id))

    def test_admin_routes_reject_regular_users(self) -> None:
        contact_id = self._submit(full_name="Original")
        headers = self._user_headers()

        listed = self.client.get("/api/admin/contacts", headers=headers)
        self.assertEqual(listed.status_code, 403)
        self.assertEqual(listed.json(), {"message": "Admin access required."})

        renamed = self.client.put(f"/api/contacts/{contact_id}", json={"full_name": "Hijacked"}, headers=headers)
        self.assertEqual(renamed.status_code, 403)
        deleted = self.client.delete(f"/api/contacts/{contact_id}", headers=headers)
        self.assertEqual(deleted.status_code, 403)

        stored = self.database.get_contact(contact_id)
        self.assertIsNotNone(stored)
        self.assertEqual(stored.full_name, "Original")

    def test_token_from_other_secret_is_rejected(self) -> None:
        admin = self.database.get_user_by_email(ADMIN_EMAIL)
        self.assertIsNotNone(admin)
        self.assertIs(admin.role, Role.ADMIN)
        foreign = TokenIssuer("some-other-secret").issue(admin)

        response = self.client.get("/api/admin/contacts", headers={"Authorization": f"Bearer {foreign}"})
        self.assertEqual(response.status_code, 401)

    # ------------------------------------------------------------------
    # Internal errors
    # ------------------------------------------------------------------
    def test_store_failure_is_reported_generically(self) -> None:
        def broken(**kwargs):
            raise sqlite3.OperationalError("no such table: contacts")

        self.database.create_contact = broken  # type: ignore[method-assign]

        response = self.client.post("/api/contact", json={"full_name": "A", "email": "a@b.com", "message": "hi"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"message": "Internal server error."})
        self.assertNotIn("no such table", response.text)

    def test_unexpected_failure_is_reported_generically(self) -> None:
        def broken(**kwargs):
            raise RuntimeError("boom")

        self.database.create_contact = broken  # type: ignore[method-assign]

        with TestClient(self.app, raise_server_exceptions=False) as client:
            response = client.post("/api/contact", json={"full_name": "A", "email": "a@b.com", "message": "hi"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"message": "Internal server error."})


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
