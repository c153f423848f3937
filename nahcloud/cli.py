"""Command line entrypoint: CRUD against the NahCloud API.

Usage:
    nahcloud project create --name web
    nahcloud instance create --project-id p1 --name vm1 --image ubuntu:22.04 --cpu 2
    nahcloud instance update i1 --status stopped
    nahcloud object create b1 --path /a.txt --content-file ./a.txt
    nahcloud object get b1 o1
    nahcloud --endpoint http://localhost:8080 bucket delete b1

Endpoint and token fall back to NAH_ENDPOINT / NAH_TOKEN (a .env file is
honored). Entities are printed as JSON on stdout.

Exit codes: 0 success, 1 API error, 2 usage or validation error,
3 transport error, 4 undecodable response.
"""

import argparse
import base64
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from nahcloud.clients import (
    APIError,
    DecodingError,
    EncodingError,
    NahCloudClient,
    TransportError,
)
from nahcloud.config import ClientConfig
from nahcloud.models import InstanceStatus
from nahcloud.resources import resource_for
from nahcloud.utils import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_API_ERROR = 1
EXIT_USAGE = 2
EXIT_TRANSPORT = 3
EXIT_DECODING = 4

VERBS = ("create", "get", "update", "delete")

# kind -> (identity args, {field: (flag, type, required on create)})
KINDS = {
    "project": (("id",), {"name": ("--name", str, True)}),
    "instance": (
        ("id",),
        {
            "project_id": ("--project-id", str, True),
            "name": ("--name", str, True),
            "image": ("--image", str, True),
            "cpu": ("--cpu", int, False),
            "memory_mb": ("--memory-mb", int, False),
            "status": ("--status", str, False),
        },
    ),
    "metadata": (
        ("id",),
        {"path": ("--path", str, True), "value": ("--value", str, True)},
    ),
    "bucket": (("id",), {"name": ("--name", str, True)}),
    "object": (
        ("bucket_id", "id"),
        {"path": ("--path", str, True), "content": ("--content", str, False)},
    ),
}


def _add_fields(parser: argparse.ArgumentParser, kind: str, verb: str) -> None:
    _, fields = KINDS[kind]
    for name, (flag, type_, required) in fields.items():
        if verb == "update" and name == "project_id":
            continue
        kwargs = {"dest": name, "type": type_, "default": None}
        if name == "status":
            kwargs["choices"] = [s.value for s in InstanceStatus]
        if verb == "create" and required and not (kind == "object" and name == "content"):
            kwargs["required"] = True
        parser.add_argument(flag, **kwargs)
    if kind == "object":
        parser.add_argument(
            "--content-file",
            default=None,
            help="Read content from a file and base64-encode it",
        )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nahcloud",
        description="Manage NahCloud projects, instances, metadata, buckets and objects",
    )
    parser.add_argument(
        "--endpoint",
        default=None,
        help="API base URL (default: NAH_ENDPOINT or https://nahcloud.com)",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Bearer token (default: NAH_TOKEN)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Request timeout in seconds (default: NAH_TIMEOUT or 30)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Log level (default: WARNING)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    kinds = parser.add_subparsers(dest="kind", required=True)
    for kind, (identity, _) in KINDS.items():
        kind_parser = kinds.add_parser(kind, help=f"Manage {kind} resources")
        verbs = kind_parser.add_subparsers(dest="verb", required=True)
        for verb in VERBS:
            verb_parser = verbs.add_parser(verb, help=f"{verb.capitalize()} a {kind}")
            # Objects are addressed through their bucket even on create
            positional = identity if verb != "create" else identity[:-1]
            for name in positional:
                verb_parser.add_argument(name, metavar=name.upper())
            if verb in ("create", "update"):
                _add_fields(verb_parser, kind, verb)
    return parser


def _plan_from_args(args: argparse.Namespace) -> dict:
    _, fields = KINDS[args.kind]
    plan = {name: getattr(args, name, None) for name in fields}
    content_file = getattr(args, "content_file", None)
    if content_file:
        if plan.get("content") is not None:
            raise EncodingError("use either --content or --content-file, not both")
        with open(content_file, "rb") as f:
            plan["content"] = base64.b64encode(f.read()).decode("ascii")
    return {k: v for k, v in plan.items() if v is not None}


def run_command(client: NahCloudClient, args: argparse.Namespace) -> Optional[dict]:
    """Execute one parsed command.

    Returns:
        Resulting entity state, or None for delete
    """
    resource = resource_for(args.kind, client)
    identity_names, _ = KINDS[args.kind]
    identity = {name: getattr(args, name) for name in identity_names if hasattr(args, name)}

    if args.verb == "create":
        return resource.create({**identity, **_plan_from_args(args)})
    if args.verb == "get":
        return resource.lookup(**identity)
    if args.verb == "update":
        state = resource.lookup(**identity)
        return resource.update(state, _plan_from_args(args))
    resource.delete(identity)
    return None


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    setup_logging(level=args.log_level, json_format=args.log_json)

    try:
        config = ClientConfig.resolve(
            endpoint=args.endpoint, token=args.token, timeout=args.timeout
        )
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_USAGE

    with NahCloudClient.from_config(config) as client:
        try:
            result = run_command(client, args)
        except APIError as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_API_ERROR
        except TransportError as e:
            print(f"error: could not reach {config.endpoint}: {e}", file=sys.stderr)
            return EXIT_TRANSPORT
        except DecodingError as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_DECODING
        except (EncodingError, ValueError, OSError) as e:
            print(f"error: {e}", file=sys.stderr)
            return EXIT_USAGE

    if result is not None:
        print(json.dumps(result, indent=2, sort_keys=True))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
