"""Command-line interface for the LAMP stack demo."""

from __future__ import annotations
import argparse
import logging
import sys
from typing import Sequence

from lamp_demo.config import DatabaseConfig, load_config
from lamp_demo.database import Database, DatabaseUnavailableError, count_users, list_users

logger = logging.getLogger("lamp_demo.main")


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="LAMP stack demo utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Create the users table if it is missing")
    subparsers.add_parser("list-users", help="Print every stored user")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP users page")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address for the web server")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the web server (default: 8000)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_database(database: Database) -> None:
    database.initialize()
    logger.info("Users table ready in %s", database.config.describe())


def _list_users(database: Database) -> None:
    with database.connect() as conn:
        total = count_users(conn)
        users = list_users(conn)

    if not users:
        print("No users are currently stored.")
        return

    print(f"{total} user(s) found:")
    print(f"{'ID':>4}  {'Name':<24}  {'Email':<32}  Created")
    print("-" * 80)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S")
        print(f"{user.id:>4}  {user.name:<24}  {user.email:<32}  {created}")


def _serve(*, config: DatabaseConfig, database: Database, host: str, port: int) -> None:
    from lamp_demo.service import create_app
    import uvicorn

    logger.info("Starting users page on http://%s:%s", host, port)
    app = create_app(database=database, config=config)
    uvicorn.run(app, host=host, port=port, log_level="info")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        config = load_config()
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc
    database = Database(config)

    try:
        if args.command == "serve":
            _serve(config=config, database=database, host=args.host, port=args.port)
        elif args.command == "init-db":
            _initialise_database(database)
            print("Database initialisation complete.")
        elif args.command == "list-users":
            _list_users(database)
    except DatabaseUnavailableError as exc:
        raise SystemExit(f"Connection failed: {exc}") from exc
    finally:
        database.dispose()


if __name__ == "__main__":
    main()
