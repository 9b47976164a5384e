"""
Shared plumbing for the resource commands.

Reads the request from stdin, configures logging, runs the command and
writes its JSON response to stdout. Any failure is logged, printed to stderr
and turned into exit status 1; no partial response is ever written.
"""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TextIO, TypeVar

from pydantic import BaseModel, ValidationError

from tfstate_resource.config import settings
from tfstate_resource.errors import ResourceError
from tfstate_resource.logging_config import bind_command, configure_logging, get_logger

logger = get_logger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)


def read_request(model: type[RequestT], stream: TextIO) -> RequestT:
    return model.model_validate_json(stream.read() or "{}")


def run_command(
    name: str,
    model: type[RequestT],
    command: Callable[[RequestT], Awaitable[Any]],
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Run one resource command end to end and return the exit status."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    configure_logging(json_logs=settings.json_logs, log_level=settings.log_level)
    bind_command(name)

    try:
        request = read_request(model, stdin)
        response = asyncio.run(command(request))
    except ValidationError as e:
        logger.error("Invalid request", errors=e.error_count())
        print(f"Invalid request: {e}", file=sys.stderr)
        return 1
    except ResourceError as e:
        logger.error("Command failed", error_type=type(e).__name__)
        print(str(e), file=sys.stderr)
        return 1

    json.dump(response, stdout)
    stdout.write("\n")
    stdout.flush()
    return 0
