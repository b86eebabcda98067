#!/usr/bin/env python3
"""Container-image Lambda deploy tool: CLI entrypoint."""

import argparse

from lambdadock.commands.deploy import register_deploy_command
from lambdadock.commands.teardown import register_teardown_command
from lambdadock.commands.verify import register_verify_command
from lambdadock.logging_setup import setup_cli_logging


def main():
    parser = argparse.ArgumentParser(description="Deploy a container-image Lambda function behind a public Function URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    register_deploy_command(subparsers)
    register_teardown_command(subparsers)
    register_verify_command(subparsers)

    args = parser.parse_args()
    setup_cli_logging(verbose=args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
