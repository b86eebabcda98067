"""Verify command: smoke-test an already deployed Function URL."""

import os
import sys

from lambdadock.config import VERIFY_VARIANTS, VerifyConfig
from lambdadock.deploy import verify


def handle_verify(args):
    outcome = verify(
        args.url,
        probe_target=args.probe_target,
        variant=args.variant,
        warmup=args.warmup,
        attempts=args.attempts,
        interval=args.interval,
        api_key=os.environ.get("API_KEY") or None,
    )
    if not outcome.ok:
        sys.exit(1)


def register_verify_command(subparsers):
    """Register the verify subcommand."""
    defaults = VerifyConfig()
    parser = subparsers.add_parser("verify", help="Smoke-test a deployed Function URL")
    parser.add_argument("url", help="Function URL")
    parser.add_argument(
        "--probe-target",
        default=defaults.probe_target,
        help=f"Page the function is asked to capture (default: {defaults.probe_target})",
    )
    parser.add_argument("--variant", choices=VERIFY_VARIANTS, default=defaults.variant, help="Response check")
    parser.add_argument("--warmup", type=float, default=0, help="Seconds to wait before the first probe (default: 0)")
    parser.add_argument("--attempts", type=int, default=3, help="Number of probes (default: 3)")
    parser.add_argument("--interval", type=float, default=defaults.interval, help="Seconds between probes")
    parser.set_defaults(func=handle_verify)
