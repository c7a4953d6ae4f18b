"""
Command line entry point: ``fabproxy``.
"""
import argparse
import logging
import sys
from typing import List, Optional

import uvicorn
from pydantic import ValidationError

from .config import load_config
from .ledger import get_channel_provider
from .server import create_app
from .service import EthService
from .version import __version__

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fabproxy",
        description="Serve the Ethereum JSON-RPC API on top of a Fabric EVM chaincode",
    )
    parser.add_argument("-c", "--config", help="TOML configuration file")
    parser.add_argument("--channel", dest="channel_id", help="Fabric channel id")
    parser.add_argument("--user", help="Ledger identity used for every call")
    parser.add_argument("--gateway-url", help="URL of the ledger REST bridge")
    parser.add_argument("--host", help="Interface to listen on")
    parser.add_argument("-p", "--port", type=int, help="Port to listen on")
    parser.add_argument("--stub", action="store_true", help="Use an in-memory ledger (development only)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(
            args.config,
            channel_id=args.channel_id,
            user=args.user,
            gateway_url=args.gateway_url,
            host=args.host,
            port=args.port,
        )
        provider = get_channel_provider(config, stub=args.stub)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    service = EthService(provider, config)
    app = create_app(service, cors_origins=config.cors_origins)

    logger.info(f"Starting fabproxy {__version__} on {config.host}:{config.port} (channel {config.channel_id})")
    uvicorn.run(app, host=config.host, port=config.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
