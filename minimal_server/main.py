"""Process entry point."""

import asyncio
import os
import sys

from minimal_server.config import get_settings
from minimal_server.context import LifecycleContext
from minimal_server.lifecycle import run
from minimal_server.logging_config import setup_logging

ERROR_EXIT_CODE = 1
# 128 + SIGINT, as a shell reports it
INTERRUPTED_EXIT_CODE = 130


def main() -> None:
    """Run the server; report any failure on stderr and exit non-zero."""
    try:
        settings = get_settings()
        setup_logging(settings.log_level, settings.log_json)
        asyncio.run(run(LifecycleContext(), os.getenv))
    except KeyboardInterrupt:
        # SIGINT before the lifecycle installed its handlers
        sys.stderr.write("interrupted before the server started\n")
        sys.exit(INTERRUPTED_EXIT_CODE)
    except Exception as exc:
        sys.stderr.write(f"{exc}\n")
        sys.exit(ERROR_EXIT_CODE)
