"""MCP Server: quiz-master and team tools over a pub quiz data directory."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from mcp.server.fastmcp import FastMCP

from pubquiz.quiz_engine import QuizEngine
from pubquiz.storage import DATA_DIR, QuizStore
from pubquiz.tools import master, team

logger = logging.getLogger(__name__)


def build_server(store: QuizStore) -> FastMCP:
    mcp = FastMCP("pubquiz")
    engine = QuizEngine(store)
    master.register(mcp, engine)
    team.register(mcp, engine)
    return mcp


def main():
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Pub quiz MCP server")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DATA_DIR,
        help="Data directory (default: PUBQUIZ_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--http",
        type=int,
        metavar="PORT",
        help="Run with Streamable HTTP transport on specified port",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = QuizStore(args.data_dir)
    store.ensure_directories()
    mcp = build_server(store)

    if args.http:
        logger.info("Starting pub quiz MCP server on port %d", args.http)
        mcp.settings.host = "0.0.0.0"
        mcp.settings.port = args.http
        mcp.run(transport="streamable-http")
    else:
        logger.info("Starting pub quiz MCP server (stdio)")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
