"""
Ledger module for fabproxy.

This module holds the gateway seam the proxy calls through, its REST and
in-memory implementations, and the Fabric record definitions.
"""
import logging

from .gateway import ChannelProvider, LedgerGateway
from .rest_gateway import RestChannelProvider
from .stub_gateway import StubChannelProvider

__all__ = ['ChannelProvider', 'LedgerGateway', 'RestChannelProvider',
           'StubChannelProvider', 'get_channel_provider']

logger = logging.getLogger(__name__)


def get_channel_provider(config, stub: bool = False) -> ChannelProvider:
    """
    Get the channel provider for a configuration.

    Args:
        config: ProxyConfig with the bridge URL and timeout
        stub: Use the in-memory ledger instead of the REST bridge

    Returns:
        ChannelProvider implementation
    """
    if stub:
        logger.info("Using in-memory stub ledger")
        return StubChannelProvider()

    logger.info(f"Using ledger bridge at {config.gateway_url}")
    return RestChannelProvider(config.gateway_url, timeout=config.request_timeout)
