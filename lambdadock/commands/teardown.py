"""Teardown command: delete the Function URL, its permission and the function."""

import logging
import sys

from botocore.exceptions import BotoCoreError, ClientError

from lambdadock.config import load_config, resolve_region
from lambdadock.deploy import run_teardown
from lambdadock.provisioning import (
    DeployError,
    DeploymentTarget,
    make_clients,
    resolve_account_id,
)

logger = logging.getLogger(__name__)


def handle_teardown(args):
    """Handle the teardown command."""
    try:
        config = load_config(args.config)
        name = args.function_name or config.function.name
        region = resolve_region(args.region, config.region)
        clients = make_clients(region)
        account_id = resolve_account_id(clients, dry_run=args.dry_run)
        deleted = run_teardown(clients, DeploymentTarget(name, region, account_id), dry_run=args.dry_run)
    except (DeployError, BotoCoreError, ClientError, ValueError, FileNotFoundError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    if not deleted:
        logger.info(f"Function '{name}' did not exist.")


def register_teardown_command(subparsers):
    """Register the teardown subcommand."""
    parser = subparsers.add_parser(
        "teardown",
        help="Delete a deployed function and its Function URL",
    )
    parser.add_argument("function_name", nargs="?", default=None, help="Function name (default: screenshotapi)")
    parser.add_argument("region", nargs="?", default=None, help="AWS region (default: $AWS_DEFAULT_REGION or us-east-1)")
    parser.add_argument("--config", default=None, help="YAML deploy config file")
    parser.add_argument("--dry-run", action="store_true", help="Print AWS calls without executing")
    parser.set_defaults(func=handle_teardown)
