"""Command-line interface for the club site backend."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from typing import Sequence

import httpx

from clubsite.config import Settings
from clubsite.errors import ClubError
from clubsite.models import Role, User, UserDirectory
from clubsite.passwords import hash_password
from clubsite.store import FlatFileStore

logger = logging.getLogger("clubsite.main")

_MIN_PASSWORD_LENGTH = 8


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Club site backend utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: CLUB_HOST or 0.0.0.0)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: CLUB_PORT or 3000)",
    )

    subparsers.add_parser("init-data", help="Create the data directory and seed collections")
    subparsers.add_parser("list-users", help="Print every registered member and bearer")

    add_parser = subparsers.add_parser("add-user", help="Register a member or bearer")
    add_parser.add_argument("email", help="Login address for the new user")
    add_parser.add_argument("--name", default="", help="Display name")
    add_parser.add_argument(
        "--role",
        choices=[role.value for role in Role],
        default=Role.MEMBER.value,
        help="Access level (default: member)",
    )
    add_parser.add_argument(
        "--password",
        default=None,
        help="Password to store; prompted for when omitted",
    )

    tail_parser = subparsers.add_parser("tail", help="Print live notifications from a running service")
    tail_parser.add_argument(
        "--service-url",
        default=None,
        help="Base URL of a running service (default: CLUB_BASE_URL)",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-data", "list-users", "add-user", "tail"}

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


def _initialise_store(settings: Settings) -> FlatFileStore:
    store = FlatFileStore(settings.data_dir)
    store.initialize(settings.seed_users())
    store.verify()
    settings.uploads_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Collections ready in %s", settings.data_dir)
    return store


def _serve(settings: Settings, *, host: str | None, port: int | None) -> None:
    from clubsite.service import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting club site API on http://%s:%s", bind_host, bind_port)

    app = create_app(settings)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")


def _list_users(store: FlatFileStore) -> None:
    directory = UserDirectory.from_document(store.load("users"))
    users = list(directory.all())
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'Role':<8}  {'Email':<36}  {'Name':<24}  Password")
    print("-" * 80)
    for user in users:
        password_state = "set" if user.password_hash else "<any>"
        print(f"{user.role.value:<8}  {user.email:<36}  {user.name or '-':<24}  {password_state}")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {_MIN_PASSWORD_LENGTH} characters): ")
        if len(password) < _MIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _add_user(store: FlatFileStore, *, email: str, name: str, role: str, password: str | None) -> int:
    if password is None:
        password = _prompt_for_password()
        if password is None:
            print("Aborted creating user.")
            return 1

    directory = UserDirectory.from_document(store.load("users"))
    user = User(
        email=email.strip(),
        role=Role.normalise(role),
        password_hash=hash_password(password),
        name=name.strip(),
    )
    try:
        directory.add(user)
    except ClubError as exc:
        print(f"Failed to create user: {exc}")
        return 1

    store.save("users", directory.to_document())
    print(f"Registered {user.email} as {user.role.value}")
    return 0


def _tail(base_url: str) -> int:
    endpoint = base_url.rstrip("/") + "/api/notifications"
    print(f"Listening for notifications on {endpoint} (Ctrl+C to stop)")

    event_name = "message"
    try:
        with httpx.stream("GET", endpoint, timeout=None) as response:
            if response.status_code != 200:
                print(f"Service responded with {response.status_code}.")
                return 1
            for line in response.iter_lines():
                if line.startswith("event:"):
                    event_name = line.split(":", 1)[1].strip()
                elif line.startswith("data:"):
                    print(f"[{event_name}] {line.split(':', 1)[1].strip()}")
                elif not line:
                    event_name = "message"
    except httpx.HTTPError as exc:
        print(f"Failed to contact club site service: {exc}")
        return 1
    except KeyboardInterrupt:
        print("\nStopped listening.")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = Settings.from_env()

    if args.command == "serve":
        _serve(settings, host=args.host, port=args.port)
        return 0
    if args.command == "tail":
        return _tail(args.service_url or settings.base_url)

    store = _initialise_store(settings)
    if args.command == "init-data":
        print("Data initialisation complete.")
    elif args.command == "list-users":
        _list_users(store)
    elif args.command == "add-user":
        return _add_user(
            store,
            email=args.email,
            name=args.name,
            role=args.role,
            password=args.password,
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
