"""grantgate entry point.

  grantgate serve                                   Start the token endpoint
  grantgate create-client NAME --redirect-uri URI   Register a confidential client
  grantgate create-client NAME --native             Register a native (PKCE) client
"""

import argparse
import logging
import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version

from grantgate.config import get_settings
from grantgate.logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _version() -> str:
    try:
        return get_version("grantgate")
    except PackageNotFoundError:
        from grantgate import __version__

        return __version__


def _create_client(args: argparse.Namespace) -> int:
    from grantgate.oauth2.errors import FormatError
    from grantgate.oauth2.models import ClientType
    from grantgate.oauth2.server import get_oauth_server

    settings = get_settings()
    if settings.storage_path is None:
        logger.warning("GRANTGATE_STORAGE_PATH is not set; this client dies with the process")

    try:
        client, secret = get_oauth_server().create_client(
            args.name,
            args.redirect_uri,
            client_type=ClientType.NATIVE if args.native else ClientType.CONFIDENTIAL,
            owner=args.owner,
        )
    except FormatError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    print(f"client_id:     {client.client_id}")
    if secret is not None:
        print(f"client_secret: {secret}")
        print("Store the secret now; it cannot be shown again.")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="grantgate - OAuth2 token exchange server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--version",
        "-v",
        action="version",
        version=f"%(prog)s {_version()}",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the token endpoint")
    serve.add_argument("--host", type=str, default=None, help="Bind address (default: settings)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Port (default: settings)")
    serve.add_argument("--dev", action="store_true", help="Development mode with auto-reload")

    create = sub.add_parser("create-client", help="Register an OAuth2 client")
    create.add_argument("name")
    create.add_argument("--redirect-uri", default=None)
    create.add_argument("--native", action="store_true", help="Public client using PKCE")
    create.add_argument("--owner", default=None, help="Id of the registering principal")

    args = parser.parse_args()
    settings = get_settings()
    setup_logging(level=settings.log_level)

    if args.command == "create-client":
        sys.exit(_create_client(args))

    from grantgate.api.serve import run_api_server

    run_api_server(
        host=args.host or settings.host,
        port=args.port or settings.port,
        dev=args.dev,
    )


if __name__ == "__main__":
    main()
