from __future__ import annotations

import argparse
import asyncio
import logging

from orbit.config import get_settings
from orbit.web.server import create_app

logger = logging.getLogger("main")


def parse_args():
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Orbit MCP server manager")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument(
        "--servers-file",
        default=settings.servers_file,
        help="YAML file with server declarations to register at start-up",
    )
    return parser.parse_args()


async def main_async():
    args = parse_args()
    settings = get_settings().model_copy(update={"servers_file": args.servers_file})

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logger.info(f"Starting Orbit API on http://{args.host}:{args.port}")

    import uvicorn

    app = create_app(settings=settings)
    config = uvicorn.Config(app, host=args.host, port=args.port, log_level=settings.log_level.lower())
    server = uvicorn.Server(config)
    await server.serve()


def main():
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        logger.info("Server stopped by user")


if __name__ == "__main__":
    main()
