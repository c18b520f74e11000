"""Entry point for groveui CLI."""

import argparse
import os
import sys
from importlib.metadata import version

from groveui.app import GroveApp
from groveui.errors import setup_logging

# Set up file logging to ~/groveui.log
setup_logging()


def main():
    parser = argparse.ArgumentParser(description="Grove task workspace")
    parser.add_argument(
        "--version",
        "-V",
        action="version",
        version=f"groveui {version('groveui')}",
    )
    parser.add_argument(
        "--project",
        "-p",
        type=str,
        default=os.environ.get("GROVEUI_PROJECT") or None,
        help="Show a single project (default: tasks across all projects)",
    )
    parser.add_argument(
        "--server", type=str, default=None, help="Grove server URL (overrides config)"
    )
    parser.add_argument(
        "--list-layouts",
        action="store_true",
        help="Print the saved workspace layouts and exit",
    )
    args = parser.parse_args()

    if args.list_layouts:
        from rich.console import Console

        from groveui.layout import load_layouts, render

        console = Console()
        for layout in load_layouts():
            console.print(render(layout))
        sys.exit(0)

    from pathlib import Path

    try:
        app = GroveApp(project_id=args.project, server_url=args.server)
        app.run()
    except (KeyboardInterrupt, SystemExit):
        pass
    except Exception:
        import tempfile
        import traceback

        crash_log = Path(tempfile.gettempdir()) / "groveui-crash.log"
        with open(crash_log, "w", encoding="utf-8") as f:
            traceback.print_exc(file=f)
        # Print standard traceback (not rich's fancy one) and exit
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
