"""Form handling for the add/delete user actions."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from .database import EMAIL_MAX_LENGTH, NAME_MAX_LENGTH, USER_ID_MAX, add_user, delete_user

logger = logging.getLogger("lamp_demo.users")

ACTION_ADD = "add"
ACTION_DELETE = "delete"


class UserValidationError(ValueError):
    """Raised when submitted form data cannot be accepted."""


class InvalidUserIdError(UserValidationError):
    """Raised when a delete request carries an id that is not a valid primary key."""


@dataclass(frozen=True)
class Message:
    """Feedback shown above the listing after a mutation."""

    text: str
    category: str = "info"


def normalise_user_input(name: Optional[str], email: Optional[str]) -> Tuple[str, str]:
    cleaned_name = (name or "").strip()
    cleaned_email = (email or "").strip()
    if not cleaned_name or not cleaned_email:
        raise UserValidationError("Please fill in both name and email fields.")
    if len(cleaned_name) > NAME_MAX_LENGTH:
        raise UserValidationError(f"Name must be at most {NAME_MAX_LENGTH} characters.")
    if len(cleaned_email) > EMAIL_MAX_LENGTH:
        raise UserValidationError(f"Email must be at most {EMAIL_MAX_LENGTH} characters.")
    return cleaned_name, cleaned_email


def parse_user_id(raw: object) -> int:
    """Parse the ``id`` form field without silently coercing bad input."""

    if raw is None:
        raise InvalidUserIdError("Invalid user id.")
    candidate = str(raw).strip()
    if not (candidate.isascii() and candidate.isdigit()):
        raise InvalidUserIdError("Invalid user id.")
    user_id = int(candidate)
    if user_id < 1 or user_id > USER_ID_MAX:
        raise InvalidUserIdError("Invalid user id.")
    return user_id


def handle_action(conn: Connection, form: Mapping[str, object]) -> Optional[Message]:
    """Apply the mutation selected by the ``action`` field.

    Returns ``None`` when the request carries no recognised action so that
    the caller simply renders the listing.
    """

    action = form.get("action")
    if action == ACTION_ADD:
        return _handle_add(conn, form)
    if action == ACTION_DELETE:
        return _handle_delete(conn, form)
    if action is not None:
        logger.info("Ignoring unsupported action %r", action)
    return None


def _form_text(form: Mapping[str, object], key: str) -> Optional[str]:
    value = form.get(key)
    if value is None or not isinstance(value, str):
        return None
    return value


def _handle_add(conn: Connection, form: Mapping[str, object]) -> Message:
    try:
        name, email = normalise_user_input(_form_text(form, "name"), _form_text(form, "email"))
    except UserValidationError as exc:
        logger.info("Rejected add-user submission: %s", exc)
        return Message(str(exc), "error")

    try:
        user = add_user(conn, name, email)
    except SQLAlchemyError:
        logger.exception("Failed to add user %r", name)
        return Message("Error adding user. Please try again later.", "error")

    logger.info("Added user %s", user.id)
    return Message(f"User '{user.name}' added successfully!", "success")


def _handle_delete(conn: Connection, form: Mapping[str, object]) -> Message:
    try:
        user_id = parse_user_id(_form_text(form, "id"))
    except InvalidUserIdError as exc:
        logger.info("Rejected delete-user submission: %s", exc)
        return Message(str(exc), "error")

    try:
        removed = delete_user(conn, user_id)
    except SQLAlchemyError:
        logger.exception("Failed to delete user %s", user_id)
        return Message("Error deleting user. Please try again later.", "error")

    if not removed:
        logger.info("Delete requested for missing user %s", user_id)
        return Message(f"No user with id {user_id} exists; nothing was deleted.", "info")

    logger.info("Deleted user %s", user_id)
    return Message(f"User #{user_id} deleted successfully!", "success")


__all__ = [
    "ACTION_ADD",
    "ACTION_DELETE",
    "InvalidUserIdError",
    "Message",
    "UserValidationError",
    "handle_action",
    "normalise_user_input",
    "parse_user_id",
]
