"""Command line entry point for the Modbus web service."""

import argparse
import sys

import uvicorn

from modbus_web.app.config import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Modbus Web - browser gateway to Modbus TCP and RTU devices'
    )
    parser.add_argument(
        '--listen-port',
        type=int,
        default=settings.listen_port,
        help=f'HTTP port to listen on (default: {settings.listen_port})'
    )
    parser.add_argument(
        '--host',
        default=settings.listen_host,
        help=f'Interface to bind (default: {settings.listen_host})'
    )
    parser.add_argument(
        '--log-level',
        choices=['debug', 'info', 'warning', 'error', 'critical'],
        type=str.lower,
        default=settings.log_level.lower(),
        help='Service log level'
    )
    parser.add_argument(
        '-v', '--version',
        action='store_true',
        help='Print build information and exit'
    )
    return parser


def print_version() -> None:
    print(f"Build Time: {settings.build_time}")
    print(f"Git Commit: {settings.git_commit}")


def main(argv=None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    if args.version:
        print_version()
        return 0

    settings.log_level = args.log_level.upper()

    from modbus_web.app.main import create_app

    config = uvicorn.Config(
        create_app(),
        host=args.host,
        port=args.listen_port,
        log_level="warning",  # Service logs go through our own logger
        access_log=False
    )
    server = uvicorn.Server(config)
    server.run()
    return 0


if __name__ == '__main__':
    sys.exit(main())
