"""Command-line entry point: ``voxcord [--config PATH]``."""

import argparse
import asyncio
import contextlib
import os
from collections.abc import Sequence

import voxcord.entrypoint
from voxcord.core.config.manager import CONFIG_ENV_VAR
from voxcord.core.error_handling import (
    install_global_exception_hooks,
    register_asyncio_exception_handler,
)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line options."""
    parser = argparse.ArgumentParser(
        prog="voxcord",
        description="Voice-first Discord assistant.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        help=(
            f"config file to load (default: ${CONFIG_ENV_VAR}, ./config.yaml, "
            "then /etc/secrets/config.yaml)"
        ),
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Run the bot until it is stopped."""
    args = parse_args(argv)
    # Config is read when voxcord.globals is first imported, inside entrypoint.main().
    if args.config:
        os.environ[CONFIG_ENV_VAR] = args.config

    install_global_exception_hooks()
    with asyncio.Runner() as runner:
        register_asyncio_exception_handler(runner.get_loop())
        try:
            runner.run(voxcord.entrypoint.main())
        except KeyboardInterrupt:
            # Close Discord and flush the media cache before the loop is torn down.
            with contextlib.suppress(KeyboardInterrupt):
                runner.run(voxcord.entrypoint.shutdown())


if __name__ == "__main__":
    main()
