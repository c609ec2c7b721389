"""CLI entrypoint for serving the taleweaver web application."""

from __future__ import annotations

import argparse
import os

import uvicorn

from taleweaver.adapters.observability import configure_runtime_logging


def build_arg_parser() -> argparse.ArgumentParser:
    """Create CLI args for the web server process."""
    parser = argparse.ArgumentParser(description="Serve the taleweaver reader and admin UI.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=3000)
    parser.add_argument("--reload", action="store_true")
    parser.add_argument(
        "--db-path",
        default="",
        help="SQLite path for story persistence (default: work/local/taleweaver.db).",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Parse CLI flags and start uvicorn with the app module path."""
    configure_runtime_logging()
    parsed = build_arg_parser().parse_args(argv)
    db_path = str(parsed.db_path).strip()
    if db_path:
        os.environ["TALEWEAVER_DB_PATH"] = db_path
    uvicorn.run(
        "taleweaver.api.app:app",
        host=str(parsed.host),
        port=int(parsed.port),
        reload=bool(parsed.reload),
    )


if __name__ == "__main__":
    main()
