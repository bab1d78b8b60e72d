#!/usr/bin/env python3
"""Epicor token extractor.

Runs the HTTP token service, performs a single login locally, or requests a
token from a running service.

Usage:
    python main.py serve [--port 3000]
    python main.py login --url URL --username NAME
    python main.py fetch --service http://localhost:3000 --url URL --username NAME

The password is read from TOKEN_PASSWORD or prompted for; it is never
accepted on the command line.
"""

import sys
import json
import asyncio
import argparse
import getpass
import os

from token_extractor import SERVICE_NAME, __version__
from token_extractor.utils.config import get_config
from token_extractor.utils.logger import setup_logging


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description=f"{SERVICE_NAME} - capture bearer tokens through a headless browser login"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides LOG_LEVEL env var)"
    )

    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP token service (default)")
    serve.add_argument("--host", type=str, help="Bind address (overrides HOST env var)")
    serve.add_argument("--port", type=int, help="Listening port (overrides PORT env var)")

    for name, help_text in (
        ("login", "Run one login flow locally and print the result"),
        ("fetch", "Request a token from a running token service"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--url", required=True, help="Target application URL")
        sub.add_argument("--username", required=True, help="Login username/email")
        if name == "fetch":
            sub.add_argument(
                "--service",
                type=str,
                default="http://localhost:3000",
                help="Token service base URL (default: http://localhost:3000)"
            )
        else:
            sub.add_argument(
                "--headed",
                action="store_true",
                help="Show the browser window (overrides HEADLESS_MODE)"
            )

    return parser.parse_args()


def read_password() -> str:
    """Password from TOKEN_PASSWORD, or an interactive prompt."""
    password = os.getenv("TOKEN_PASSWORD")
    if password:
        return password
    return getpass.getpass("Password: ")


def run_server(config, host=None, port=None) -> int:
    """Serve the FastAPI app with uvicorn until interrupted."""
    import uvicorn
    from token_extractor.api.app import create_app

    host = host or config.host
    port = port or config.port

    app = create_app(config)
    print(f"✓ {SERVICE_NAME} {__version__} running on {host}:{port}")
    print(f"  Browser: {config.browser_executable_path or 'auto-detect'} (headless: {config.headless_mode})")
    print("  Cookies and storage are cleared after each request")

    uvicorn.run(app, host=host, port=port, log_config=None)
    return 0


def run_local_login(config, args) -> int:
    """Run the login flow in this process and print the JSON result."""
    from token_extractor.auth.authenticator import build_authenticator
    from token_extractor.exceptions import TokenExtractorError
    from token_extractor.models import LoginRequest, LoginResult
    from token_extractor.utils.logger import scrub_secrets

    if args.headed:
        os.environ["HEADLESS_MODE"] = "false"

    password = read_password()
    try:
        request = LoginRequest.from_payload({"username": args.username, "password": password, "url": args.url})
    except TokenExtractorError as e:
        print(f"✗ {e}")
        return 1

    authenticator = build_authenticator(config)
    try:
        result = asyncio.run(authenticator.run_login(request))
    except TokenExtractorError as e:
        result = LoginResult.failed(scrub_secrets(str(e), password, [args.username]))
    except Exception as e:
        message = scrub_secrets(str(e), password, [args.username]) or type(e).__name__
        result = LoginResult.failed(message)

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


def run_fetch(args) -> int:
    """Request a token from a running service."""
    from token_extractor.api.client import TokenServiceClient, TokenServiceError

    client = TokenServiceClient(base_url=args.service)
    password = read_password()
    try:
        data = client.get_token(args.username, password, args.url)
    except TokenServiceError as e:
        print(f"✗ Token request failed: {e}")
        return 1

    print(json.dumps(data, indent=2))
    return 0


def main():
    """Main entry point."""
    args = parse_args()

    # Load configuration
    try:
        config = get_config()
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}")
        print("\nPlease check your .env file against .env.example")
        return 1

    # Setup logging
    log_level = args.log_level or config.log_level
    setup_logging(
        log_level=log_level,
        log_to_console=True,
        log_dir=config.log_dir,
        log_to_files=config.log_to_files
    )

    command = args.command or "serve"
    if command == "serve":
        return run_server(config, getattr(args, "host", None), getattr(args, "port", None))
    elif command == "login":
        return run_local_login(config, args)
    else:
        return run_fetch(args)


if __name__ == "__main__":
    sys.exit(main())
