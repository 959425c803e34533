from main import _parse_args


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_add_user_subcommand_parses_role() -> None:
    args = _parse_args(["add-user", "new@example.org", "--role", "bearer", "--password", "longenough"])
    assert args.command == "add-user"
    assert args.email == "new@example.org"
    assert args.role == "bearer"
    assert args.password == "longenough"


def test_tail_subcommand_still_available() -> None:
    args = _parse_args(["tail", "--service-url", "http://localhost:3000"])
    assert args.command == "tail"
    assert args.service_url == "http://localhost:3000"
