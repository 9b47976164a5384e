"""
`in` command: fetch one state version into an output directory.

Run via: python -m tfstate_resource.cli.in_ <output-dir> < request.json
"""

import sys
from pathlib import Path

from tfstate_resource.cli.runner import run_command
from tfstate_resource.models import InRequest
from tfstate_resource.services.fetch_service import run_fetch


def main() -> None:
    if len(sys.argv) < 2:
        print(f"usage: {sys.argv[0]} <output directory>", file=sys.stderr)
        sys.exit(1)
    output_dir = Path(sys.argv[1])

    async def fetch(request: InRequest) -> dict:
        response = await run_fetch(request, output_dir)
        return response.to_wire()

    sys.exit(run_command("in", InRequest, fetch))


if __name__ == "__main__":
    main()
