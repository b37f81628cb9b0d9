"""Server-rendered users page for the LAMP demo."""

from __future__ import annotations

import html
import logging
import platform
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

from .database import Database, list_users, ping, server_version
from .models import User
from .users import ACTION_ADD, ACTION_DELETE, Message, handle_action

logger = logging.getLogger("lamp_demo.web")

STATIC_DIR = Path(__file__).resolve().parent / "static"

SERVER_SOFTWARE = f"uvicorn {uvicorn.__version__}"

_FLOW_STEPS = (
    ("Browser Request", "You visit this page in your browser"),
    ("uvicorn Receives", "The ASGI server receives the HTTP request and hands it to FastAPI"),
    ("Python Processes", "The request handler runs and queries the database through SQLAlchemy"),
    ("Database Returns Data", "The database returns the requested rows"),
    ("HTML Response", "Python builds the HTML page and uvicorn sends it to the browser"),
)


@dataclass(frozen=True)
class StackInfo:
    """Read-only environment facts shown in the information panel."""

    operating_system: str
    web_server: str
    database_server: str
    python_version: str


def _format_datetime(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S")


def _stack_info(conn: Connection) -> StackInfo:
    return StackInfo(
        operating_system=f"{platform.system()} {platform.release()}".strip(),
        web_server=SERVER_SOFTWARE,
        database_server=server_version(conn),
        python_version=platform.python_version(),
    )


def _render_messages(messages: Sequence[Message]) -> str:
    return "".join(
        f'<div class="message {html.escape(message.category)}">'
        f"{html.escape(message.text)}"
        "</div>"
        for message in messages
    )


def _render_info_panel(info: StackInfo) -> str:
    items = (
        ("Linux", info.operating_system),
        ("Web server", info.web_server),
        ("Database", info.database_server),
        ("Python", info.python_version),
    )
    rendered = "".join(
        """
                <div class="info-item">
                    <span class="label">{label}</span>
                    <span class="value">{value}</span>
                </div>""".format(label=html.escape(label), value=html.escape(value))
        for label, value in items
    )
    return f"""
        <section class="info-panel">
            <h2>Stack Information</h2>
            <div class="info-grid">{rendered}
            </div>
            <div class="connection-status success">
                &#10003; Database Connected Successfully
            </div>
        </section>"""


def _render_user_row(user: User, action_url: str) -> str:
    return """
                    <tr>
                        <td>{id}</td>
                        <td>{name}</td>
                        <td>{email}</td>
                        <td>{created}</td>
                        <td>
                            <form method="post" action="{action}" class="inline-form">
                                <input type="hidden" name="action" value="{delete}">
                                <input type="hidden" name="id" value="{id}">
                                <button type="submit" class="btn btn-danger btn-small">Delete</button>
                            </form>
                        </td>
                    </tr>""".format(
        id=user.id,
        name=html.escape(user.name),
        email=html.escape(user.email),
        created=html.escape(_format_datetime(user.created_at)),
        action=html.escape(action_url),
        delete=ACTION_DELETE,
    )


def _render_users_table(users: Sequence[User], action_url: str) -> str:
    if not users:
        return '<p class="no-data">No users found. Add one using the form above!</p>'

    rows = "".join(_render_user_row(user, action_url) for user in users)
    return f"""
            <table>
                <thead>
                    <tr>
                        <th>ID</th>
                        <th>Name</th>
                        <th>Email</th>
                        <th>Created At</th>
                        <th>Action</th>
                    </tr>
                </thead>
                <tbody>{rows}
                </tbody>
            </table>"""


def _render_explanation() -> str:
    steps = '\n                <div class="flow-arrow">&rarr;</div>'.join(
        """
                <div class="flow-step">
                    <div class="step-number">{number}</div>
                    <div class="step-content">
                        <strong>{title}</strong>
                        <p>{detail}</p>
                    </div>
                </div>""".format(number=number, title=html.escape(title), detail=html.escape(detail))
        for number, (title, detail) in enumerate(_FLOW_STEPS, start=1)
    )
    return f"""
        <section class="explanation">
            <h2>How This Works</h2>
            <div class="flow-diagram">{steps}
            </div>
        </section>"""


def render_page(
    *,
    users: Sequence[User],
    total: int,
    info: StackInfo,
    messages: Sequence[Message],
    action_url: str,
    stylesheet_url: str,
    elapsed_ms: float,
) -> str:
    """Build the complete HTML document for the users page."""

    action = html.escape(action_url)
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>LAMP Stack Demo</title>
    <link rel="stylesheet" href="{html.escape(stylesheet_url)}">
</head>
<body>
    <div class="container">
        <header>
            <h1>LAMP Stack Demo</h1>
            <p class="subtitle">Linux + web server + relational database + Python working together</p>
        </header>
{_render_info_panel(info)}

        {_render_messages(messages)}

        <section class="form-section">
            <h2>Add New User</h2>
            <p class="description">
                This form demonstrates the <strong>INSERT</strong> operation: adding data to the database.
            </p>
            <form method="post" action="{action}">
                <input type="hidden" name="action" value="{ACTION_ADD}">
                <div class="form-group">
                    <label for="name">Name:</label>
                    <input type="text" id="name" name="name" required placeholder="Enter user name">
                </div>
                <div class="form-group">
                    <label for="email">Email:</label>
                    <input type="email" id="email" name="email" required placeholder="Enter email address">
                </div>
                <button type="submit" class="btn btn-primary">Add User</button>
            </form>
        </section>

        <section class="users-section">
            <h2>Users in Database</h2>
            <p class="description">
                This table demonstrates the <strong>SELECT</strong> operation: retrieving data from the database.
            </p>
            {_render_users_table(users, action_url)}
        </section>
{_render_explanation()}

        <footer>
            <p class="user-count">Total users: {total}</p>
            <p class="timing">Page generated in {elapsed_ms:.2f} ms</p>
        </footer>
    </div>
</body>
</html>"""


async def _parse_form(request: Request) -> Dict[str, str]:
    if request.method != "POST":
        return {}
    body_bytes = await request.body()
    content_type = request.headers.get("content-type", "")
    charset = "utf-8"
    if "charset=" in content_type:
        charset = content_type.split("charset=", 1)[1].split(";", 1)[0].strip() or "utf-8"
    try:
        decoded = body_bytes.decode(charset)
    except (LookupError, UnicodeDecodeError):
        decoded = body_bytes.decode("utf-8", errors="ignore")
    data = parse_qs(decoded, keep_blank_values=True)
    return {key: values[0] for key, values in data.items() if values}


def _request_clock() -> float:
    return time.perf_counter()


def register_ui_routes(app: FastAPI, database: Database) -> None:
    """Expose the users page on the provided FastAPI app."""

    if STATIC_DIR.exists():
        app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    router = APIRouter(include_in_schema=False)

    def get_connection() -> Iterator[Connection]:
        with database.connect() as conn:
            yield conn

    def _render(
        request: Request,
        conn: Connection,
        *,
        started: float,
        message: Optional[Message] = None,
    ) -> HTMLResponse:
        messages: List[Message] = [message] if message is not None else []
        try:
            users: List[User] = list_users(conn)
        except SQLAlchemyError:
            logger.exception("Failed to load the users listing")
            conn.rollback()
            users = []
            messages.append(Message("Error loading users. Please try again later.", "error"))
        info = _stack_info(conn)
        if STATIC_DIR.exists():
            stylesheet = str(request.url_for("static", path="styles.css"))
        else:
            stylesheet = ""
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.debug("Rendered %d users in %.2f ms", len(users), elapsed_ms)
        markup = render_page(
            users=users,
            total=len(users),
            info=info,
            messages=messages,
            action_url=str(request.url_for("ui_users")),
            stylesheet_url=stylesheet,
            elapsed_ms=elapsed_ms,
        )
        return HTMLResponse(markup)

    @router.get("/", response_class=HTMLResponse, name="ui_users")
    def users_page(
        request: Request,
        started: float = Depends(_request_clock),
        conn: Connection = Depends(get_connection),
    ):
        return _render(request, conn, started=started)

    @router.post("/", response_class=HTMLResponse, name="ui_users_submit")
    def users_submit(
        request: Request,
        started: float = Depends(_request_clock),
        form: Dict[str, str] = Depends(_parse_form),
        conn: Connection = Depends(get_connection),
    ):
        message = handle_action(conn, form)
        return _render(request, conn, started=started, message=message)

    @router.get("/healthz", response_class=PlainTextResponse, name="healthz")
    def healthz(conn: Connection = Depends(get_connection)):
        ping(conn)
        return PlainTextResponse("ok")

    app.include_router(router)


__all__ = ["StackInfo", "register_ui_routes", "render_page"]
