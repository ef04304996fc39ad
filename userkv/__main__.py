"""Main entry point for the userkv service."""

import argparse
import asyncio
import sys

from userkv.config import configure_logging, load_config_from_env
from userkv.lifecycle import serve


def main() -> None:
    """Run the service until it receives SIGINT or SIGTERM."""
    parser = argparse.ArgumentParser(
        description="Serve the userkv demo users over HTTP.",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to the environment configuration file.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to listen on, overrides the PORT variable.",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to listen on, overrides the HOST variable.",
    )
    args = parser.parse_args()

    try:
        config = load_config_from_env(args.env_file)
    except ValueError as e:
        parser.error(str(e))

    if args.port is not None:
        config.port = args.port
    if args.host is not None:
        config.host = args.host

    configure_logging(config)
    sys.exit(asyncio.run(serve(config)))


if __name__ == "__main__":
    main()
