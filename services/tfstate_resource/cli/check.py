"""
`check` command: list new state versions.

Run via: python -m tfstate_resource.cli.check < request.json
"""

import sys

from tfstate_resource.cli.runner import run_command
from tfstate_resource.models import CheckRequest
from tfstate_resource.services.check_service import run_check


async def check(request: CheckRequest) -> list[dict[str, str]]:
    versions = await run_check(request)
    return [version.to_wire() for version in versions]


def main() -> None:
    sys.exit(run_command("check", CheckRequest, check))


if __name__ == "__main__":
    main()
