"""Deploy command: publish the image, converge the function and its URL, smoke-test."""

import dataclasses
import logging
import sys

from botocore.exceptions import BotoCoreError, ClientError

from lambdadock.config import load_config, resolve_region, validate_config
from lambdadock.deploy import build_context, run_deploy
from lambdadock.provisioning import (
    CHROME_LAYER_CANDIDATES,
    DeployError,
    make_clients,
    resolve_account_id,
)

logger = logging.getLogger(__name__)


def apply_overrides(config, args):
    """Return *config* with every CLI value that was actually given applied on top."""
    fn_overrides = {
        "name": args.function_name,
        "memory_size": args.memory,
        "timeout": args.timeout,
        "role_arn": args.role_arn,
        "role_name": args.role_name,
    }
    image_overrides = {
        "repository": args.repository,
        "tag": args.tag,
        "dockerfile": args.dockerfile,
        "context": args.context,
    }
    fn = dataclasses.replace(config.function, **{k: v for k, v in fn_overrides.items() if v is not None})
    image = dataclasses.replace(config.image, **{k: v for k, v in image_overrides.items() if v is not None})
    return dataclasses.replace(config, function=fn, image=image)


# ── CLI handler ────────────────────────────────────────────────────


def handle_deploy(args):
    """CLI handler for 'deploy'."""
    try:
        config = apply_overrides(load_config(args.config), args)
        validate_config(config)
        region = resolve_region(args.region, config.region)

        extra_layers = list(args.layer or [])
        if args.chrome_layers:
            extra_layers += CHROME_LAYER_CANDIDATES

        clients = make_clients(region)
        account_id = resolve_account_id(clients, dry_run=args.dry_run)
        ctx = build_context(
            config,
            account_id,
            region,
            extra_layers=extra_layers,
            skip_build=args.skip_build,
            replace=args.replace,
            run_verify=not args.no_verify,
            strict=args.strict,
            dry_run=args.dry_run,
        )
        report = run_deploy(clients, ctx)
    except (DeployError, BotoCoreError, ClientError, ValueError, FileNotFoundError) as e:
        logger.error(f"Error: {e}")
        sys.exit(1)

    if ctx.strict:
        problems = report.advisory_failures(ctx.layer_candidates)
        if problems:
            for problem in problems:
                logger.error(f"Strict mode: {problem}")
            sys.exit(1)


def register_deploy_command(subparsers):
    """Register the deploy subcommand."""
    parser = subparsers.add_parser(
        "deploy",
        help="Build, publish and deploy the function behind a public Function URL",
    )
    parser.add_argument("function_name", nargs="?", default=None, help="Function name (default: screenshotapi)")
    parser.add_argument("memory", nargs="?", type=int, default=None, help="Memory in MB, 128-10240 (default: 2048)")
    parser.add_argument("timeout", nargs="?", type=int, default=None, help="Timeout in seconds, 1-900 (default: 90)")
    parser.add_argument("region", nargs="?", default=None, help="AWS region (default: $AWS_DEFAULT_REGION or us-east-1)")
    parser.add_argument("--config", default=None, help="YAML deploy config file")
    parser.add_argument("--role-arn", default=None, help="Existing execution role ARN (skips role bootstrap)")
    parser.add_argument("--role-name", default=None, help="Execution role to look up or create")
    parser.add_argument("--repository", default=None, help="ECR repository name")
    parser.add_argument("--tag", default=None, help="Image tag (default: latest)")
    parser.add_argument("--dockerfile", default=None, help="Dockerfile path (default: Dockerfile)")
    parser.add_argument("--context", default=None, help="Docker build context (default: .)")
    parser.add_argument("--skip-build", action="store_true", help="Deploy the already pushed image")
    parser.add_argument(
        "--layer",
        action="append",
        default=None,
        metavar="ARN",
        help="Layer ARN to try, in order (repeatable)",
    )
    parser.add_argument(
        "--chrome-layers",
        action="store_true",
        help="Also try the public headless-Chrome layers",
    )
    parser.add_argument("--replace", action="store_true", help="Delete and recreate the function")
    parser.add_argument("--no-verify", action="store_true", help="Skip the post-deploy smoke test")
    parser.add_argument("--strict", action="store_true", help="Exit 1 on layer or smoke test problems")
    parser.add_argument("--dry-run", action="store_true", help="Print AWS calls and commands without executing")
    parser.set_defaults(func=handle_deploy)
