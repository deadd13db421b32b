# =============================================================================
# MCP-VL Image Analysis - Server Entry Point
# =============================================================================
# CLI entry point.  Loads .env, builds the Config once, and starts either the
# MCP stdio server (default) or the FastAPI HTTP mirror.  ``--cleanup``
# purges the temp directory and exits.
# =============================================================================

import argparse
import logging
import sys

import uvicorn
from dotenv import load_dotenv

from analysis.pipeline import ImageAnalysisPipeline
from config import Config
from imaging.artifacts import TempArtifactManager
from server.app import create_app
from server.mcp_server import build_mcp_server
from shared.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    # stderr only: stdout carries the MCP protocol
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="MCP-VL: image analysis tool server (MCP stdio or HTTP)",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--transport", choices=("stdio", "http"), default="stdio",
        help="Serve the MCP tool over stdio, or the HTTP mirror",
    )
    parser.add_argument("--host", type=str, default=None, help="HTTP bind address")
    parser.add_argument("--port", type=int, default=None, help="HTTP bind port")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level")
    parser.add_argument(
        "--cleanup", action="store_true",
        help="Delete the temp directory and exit",
    )
    return parser


def main(argv=None) -> int:
    """Parse CLI arguments, apply overrides, and start the selected server."""
    args = build_parser().parse_args(argv)
    load_dotenv()

    try:
        config = Config.from_env().with_overrides(
            http_host=args.host,
            http_port=args.port,
            log_level=args.log_level,
        )
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    _configure_logging(config.log_level)

    if args.cleanup:
        removed = TempArtifactManager(config.temp_dir).purge()
        logger.info("Temp directory %s removed=%s", config.temp_dir, removed)
        return 0 if removed else 1

    if not config.has_api_key:
        logger.warning(
            "No model API key configured; tool calls will fail until VL_API_KEY is set"
        )

    pipeline = ImageAnalysisPipeline.from_config(config)

    if args.transport == "http":
        print("\n" + "=" * 60)
        print("  MCP-VL: HTTP mirror")
        print("=" * 60)
        print(f"  Model      : {config.model}")
        print(f"  API base   : {config.api_base_url}")
        print(f"  Temp dir   : {config.temp_dir}")
        print(f"  Listening  : {config.http_host}:{config.http_port}")
        print("=" * 60 + "\n")
        uvicorn.run(
            create_app(config, pipeline),
            host=config.http_host,
            port=config.http_port,
            log_level=config.log_level.lower(),
        )
        return 0

    mcp = build_mcp_server(config, pipeline)
    logger.info("MCP image analysis server started (stdio, name=%s)", config.server_name)
    mcp.run(transport="stdio")
    return 0


if __name__ == "__main__":
    sys.exit(main())
