"""CLI entry point for the OSS client."""

import argparse
import json
import logging
import os
import sys
import time
from dataclasses import asdict
from pathlib import Path

from ossclient.client import OssClient
from ossclient.config import OssClientConfig, load_config, load_config_from_env
from ossclient.errors import OssError
from ossclient.factory import create_client
from ossclient.logging_config import configure_logging

DEFAULT_EXPIRES_IN = 3600


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].

    Returns:
        Parsed argument namespace.
    """
    parser = argparse.ArgumentParser(
        prog="ossclient",
        description="ossclient - signed requests against OSS object storage",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("ossclient.yaml"),
        help="Path to YAML configuration file; OSS_* environment variables "
        "are used when it does not exist (default: ossclient.yaml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config, default: INFO)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        default=None,
        choices=["text", "json"],
        help="Log format: 'text' (human-readable) or 'json' (structured)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="List objects in a bucket")
    ls.add_argument("bucket")
    ls.add_argument("--prefix", default="", help="Only keys under this prefix")
    ls.add_argument(
        "--recursive", action="store_true", help="List all keys instead of one level"
    )

    head = commands.add_parser("head", help="Show an object's metadata")
    head.add_argument("bucket")
    head.add_argument("key")

    presign = commands.add_parser("presign", help="Print a presigned URL")
    presign.add_argument("bucket")
    presign.add_argument("key")
    presign.add_argument("--method", default="GET", help="HTTP method (default: GET)")
    presign.add_argument(
        "--expires-in",
        type=int,
        default=DEFAULT_EXPIRES_IN,
        help="Seconds until the URL expires (default: 3600)",
    )

    policy = commands.add_parser("post-policy", help="Print signed POST form fields")
    policy.add_argument("bucket")
    policy.add_argument("prefix", help="Required key prefix for uploads")
    policy.add_argument(
        "--expires-in",
        type=int,
        default=DEFAULT_EXPIRES_IN,
        help="Seconds until the policy expires (default: 3600)",
    )
    return parser.parse_args(argv)


def _load(args: argparse.Namespace) -> OssClientConfig:
    if args.config.exists():
        return load_config(args.config)
    return load_config_from_env(os.environ)


def run_command(client: OssClient, args: argparse.Namespace) -> None:
    """Execute one subcommand, printing its result to stdout."""
    if args.command == "ls":
        delimiter = "" if args.recursive else "/"
        paginator = client.paginate(args.bucket, args.prefix, delimiter)
        for page in paginator:
            for prefix in page.common_prefixes:
                print(f"{'PRE':>12}  {prefix}")
            for summary in page.objects:
                print(f"{summary.size:>12}  {summary.last_modified}  {summary.key}")
    elif args.command == "head":
        metadata = client.head_object(args.bucket, args.key)
        print(json.dumps(asdict(metadata), indent=2))
    elif args.command == "presign":
        expires = int(time.time()) + args.expires_in
        print(client.generate_presigned_url(args.method, args.bucket, args.key, expires))
    elif args.command == "post-policy":
        expires = int(time.time()) + args.expires_in
        policy = client.generate_post_policy(args.bucket, args.prefix, expires)
        print(json.dumps(asdict(policy), indent=2))


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the ossclient CLI.

    Loads configuration, applies CLI overrides, builds a client and runs
    the requested command. Exits with status 1 when credentials are
    missing or the service call fails.

    Args:
        argv: Argument list to parse. Defaults to sys.argv[1:].
    """
    args = parse_args(argv)

    # Use a basic stderr logger for config-loading errors
    logging.basicConfig(level=logging.INFO, stream=sys.stderr)
    logger = logging.getLogger("ossclient")

    try:
        config = _load(args)
    except Exception as exc:
        logger.error("Failed to load config: %s", exc)
        sys.exit(1)

    if args.log_level is not None:
        config.logging.level = args.log_level
    if args.log_format is not None:
        config.logging.format = args.log_format

    configure_logging(level=config.logging.level, fmt=config.logging.format)

    client = create_client(config)
    if client is None:
        logger.error("Missing OSS credentials (OSS_ACCESS_KEY_ID / OSS_ACCESS_KEY_SECRET)")
        sys.exit(1)

    try:
        run_command(client, args)
    except OssError as exc:
        logger.error("%s: %s", args.command, exc.message)
        sys.exit(1)
    finally:
        close = getattr(client.transport, "close", None)
        if close is not None:
            close()


if __name__ == "__main__":
    main()
