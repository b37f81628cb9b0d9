"""Tests for the add/delete form handling."""

from __future__ import annotations

import unittest
from pathlib import Path
import tempfile

from sqlalchemy.exc import OperationalError

from lamp_demo import users as users_module
from lamp_demo.config import DatabaseConfig
from lamp_demo.database import Database, count_users, list_users
from lamp_demo.users import (
    InvalidUserIdError,
    Message,
    UserValidationError,
    handle_action,
    normalise_user_input,
    parse_user_id,
)


class NormaliseUserInputTests(unittest.TestCase):
    def test_values_are_trimmed(self) -> None:
        self.assertEqual(
            normalise_user_input("  Ada  ", "\tada@example.com\n"),
            ("Ada", "ada@example.com"),
        )

    def test_blank_values_are_rejected(self) -> None:
        for name, email in (("", "a@example.com"), ("Ada", "   "), (None, None)):
            with self.subTest(name=name, email=email):
                with self.assertRaises(UserValidationError):
                    normalise_user_input(name, email)

    def test_overlong_name_is_rejected(self) -> None:
        with self.assertRaisesRegex(UserValidationError, "at most 100"):
            normalise_user_input("x" * 101, "a@example.com")


class ParseUserIdTests(unittest.TestCase):
    def test_accepts_positive_integers(self) -> None:
        self.assertEqual(parse_user_id("42"), 42)
        self.assertEqual(parse_user_id(" 7 "), 7)
        self.assertEqual(parse_user_id("2147483647"), 2147483647)

    def test_rejects_non_numeric_input(self) -> None:
        for raw in (None, "", "abc", "1.5", "-3", "0", "12abc", "²", "9" * 20, "2147483648"):
            with self.subTest(raw=raw):
                with self.assertRaises(InvalidUserIdError):
                    parse_user_id(raw)


class HandleActionTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        config = DatabaseConfig(driver="sqlite", name=str(Path(self._tempdir.name) / "lamp.sqlite3"))
        self.database = Database(config)
        self.database.initialize()

    def tearDown(self) -> None:
        self.database.dispose()
        self._tempdir.cleanup()

    def test_missing_or_unknown_action_renders_only(self) -> None:
        with self.database.connect() as conn:
            self.assertIsNone(handle_action(conn, {}))
            self.assertIsNone(handle_action(conn, {"action": "update", "id": "1"}))
            self.assertEqual(count_users(conn), 0)

    def test_add_reports_success_with_name(self) -> None:
        with self.database.connect() as conn:
            message = handle_action(conn, {"action": "add", "name": " Ada ", "email": "ada@example.com"})
            self.assertEqual(message, Message("User 'Ada' added successfully!", "success"))
            self.assertEqual([u.name for u in list_users(conn)], ["Ada"])

    def test_add_with_empty_email_leaves_listing_unchanged(self) -> None:
        with self.database.connect() as conn:
            message = handle_action(conn, {"action": "add", "name": "Ada", "email": "  "})
            self.assertEqual(message.category, "error")
            self.assertEqual(message.text, "Please fill in both name and email fields.")
            self.assertEqual(count_users(conn), 0)

    def test_delete_missing_user_is_reported_as_no_op(self) -> None:
        with self.database.connect() as conn:
            message = handle_action(conn, {"action": "delete", "id": "404"})
            self.assertEqual(message.category, "info")
            self.assertIn("nothing was deleted", message.text)

    def test_delete_with_invalid_id_is_an_error(self) -> None:
        with self.database.connect() as conn:
            handle_action(conn, {"action": "add", "name": "Ada", "email": "ada@example.com"})
            message = handle_action(conn, {"action": "delete", "id": "abc"})
            self.assertEqual(message, Message("Invalid user id.", "error"))
            self.assertEqual(count_users(conn), 1)

    def test_delete_existing_user(self) -> None:
        with self.database.connect() as conn:
            handle_action(conn, {"action": "add", "name": "Ada", "email": "ada@example.com"})
            user = list_users(conn)[0]
            message = handle_action(conn, {"action": "delete", "id": str(user.id)})
            self.assertEqual(message, Message(f"User #{user.id} deleted successfully!", "success"))
            self.assertEqual(count_users(conn), 0)

    def test_store_errors_are_not_disclosed(self) -> None:
        original = users_module.add_user

        def failing_add_user(conn, name, email):
            raise OperationalError("INSERT INTO users", {}, Exception("disk full at /var/lib/mysql"))

        users_module.add_user = failing_add_user
        try:
            with self.database.connect() as conn:
                with self.assertLogs("lamp_demo.users", level="ERROR"):
                    message = handle_action(conn, {"action": "add", "name": "Ada", "email": "ada@example.com"})
        finally:
            users_module.add_user = original

        self.assertEqual(message.category, "error")
        self.assertNotIn("/var/lib/mysql", message.text)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
