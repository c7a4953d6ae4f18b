"""
Ledger gateway abstraction.

This module defines the two primitives the proxy needs from the ledger
(a read-only query and a fire-and-forget invoke) and the provider that
hands out channel contexts exposing them. Concrete implementations live
in ``rest_gateway`` and ``stub_gateway``.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Iterator, Sequence

from ..exceptions import LedgerConnectionError

logger = logging.getLogger(__name__)


class LedgerGateway(ABC):
    """
    A channel context bound to one channel and one user identity.

    Implementations perform no retries and no caching.
    """

    @abstractmethod
    def query(self, chaincode_id: str, function: str, args: Sequence[bytes]) -> bytes:
        """
        Run a read-only chaincode query.

        Args:
            chaincode_id: Name of the chaincode to query
            function: Chaincode function name
            args: Function arguments as raw bytes

        Returns:
            The raw bytes returned by the chaincode

        Raises:
            QueryError: If the ledger rejects or fails the query
        """
        pass

    @abstractmethod
    def invoke(self, chaincode_id: str, function: str, args: Sequence[bytes]) -> str:
        """
        Submit a chaincode transaction without waiting for it to commit.

        Args:
            chaincode_id: Name of the chaincode to invoke
            function: Chaincode function name
            args: Function arguments as raw bytes

        Returns:
            The transaction identifier

        Raises:
            InvokeError: If the ledger rejects or fails the submission
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the channel context."""
        pass


class ChannelProvider(ABC):
    """Hands out LedgerGateway instances for a channel and user."""

    @abstractmethod
    def open_channel(self, channel_id: str, user: str) -> LedgerGateway:
        """
        Create a channel context.

        Raises:
            LedgerConnectionError: If the context cannot be obtained
        """
        pass

    @contextmanager
    def channel(self, channel_id: str, user: str) -> Iterator[LedgerGateway]:
        """
        Acquire a channel context for the duration of a ``with`` block.

        The context is closed on every exit path. Any failure while
        acquiring it is reported as LedgerConnectionError.
        """
        try:
            gateway = self.open_channel(channel_id, user)
        except LedgerConnectionError:
            raise
        except Exception as e:
            logger.error(f"Failed to open channel {channel_id} for {user}: {e}")
            raise LedgerConnectionError(f"Failed to open channel {channel_id}: {e}") from e

        try:
            yield gateway
        finally:
            try:
                gateway.close()
            except Exception as e:
                # Closing must not mask the result or error of the call
                logger.warning(f"Error closing channel {channel_id}: {e}")
