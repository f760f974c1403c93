"""CLI app entrypoint and error mapping."""

from __future__ import annotations

import sys

from tasklink import (
    AuthenticationError,
    ConfigError,
    MetadataStoreError,
    ProviderError,
    SyncError,
    WorkItemStoreError,
)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 3
EXIT_PROVIDER = 4
EXIT_SYNC = 5
EXIT_INCOMPLETE = 6


def main(argv: list[str] | None = None) -> int:
    import tasklink.cli as cli

    parser = cli.build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        cli.logging.basicConfig(level=cli.logging.DEBUG, format="%(name)s %(message)s", stream=sys.stderr)

    try:
        if args.command == "reconcile":
            report = cli.asyncio.run(cli._run_reconcile(args))
            return EXIT_INCOMPLETE if report.failed or report.cancelled else EXIT_OK
        if args.command == "status":
            cli.asyncio.run(cli._run_status(args))
            return EXIT_OK
        if args.command == "validate":
            validation = cli.asyncio.run(cli._run_validate(args))
            return EXIT_OK if validation.ok else EXIT_INCOMPLETE
        print(f"error: unsupported command: {args.command}", file=sys.stderr)
        return 2
    except (ConfigError, WorkItemStoreError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except (AuthenticationError, ProviderError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_PROVIDER
    except (SyncError, MetadataStoreError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_SYNC
    except Exception as exc:  # pragma: no cover
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FAILURE


__all__ = ["main"]
