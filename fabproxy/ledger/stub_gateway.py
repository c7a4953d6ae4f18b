"""
In-memory implementation of the ledger gateway.

This module provides a ledger that never leaves the process. Replies are
registered per (chaincode, function) and recent calls are recorded, which
makes it useful for development and for tests.
"""
import hashlib
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Sequence, Tuple, Union

from ..exceptions import InvokeError, LedgerConnectionError, QueryError
from .gateway import ChannelProvider, LedgerGateway

logger = logging.getLogger(__name__)

# A canned reply, or a function of the call arguments producing one
Reply = Union[bytes, Exception, Callable[[Sequence[bytes]], bytes]]

# Calls and channel contexts kept for inspection; older entries are dropped
DEFAULT_HISTORY = 1000


@dataclass
class LedgerCall:
    """A query or invoke seen by the stub ledger"""
    kind: str
    chaincode_id: str
    function: str
    args: List[bytes]
    channel_id: str = ""
    user: str = ""


@dataclass
class StubLedger:
    """Shared state behind every StubLedgerGateway of a provider"""
    replies: Dict[Tuple[str, str], Reply] = field(default_factory=dict)
    calls: Deque[LedgerCall] = field(default_factory=lambda: deque(maxlen=DEFAULT_HISTORY))
    lock: threading.RLock = field(default_factory=threading.RLock)
    tx_counter: int = 0


class StubLedgerGateway(LedgerGateway):
    """Channel context over a StubLedger"""

    def __init__(self, ledger: StubLedger, channel_id: str, user: str):
        self.ledger = ledger
        self.channel_id = channel_id
        self.user = user
        self.closed = False

    def _record(self, kind: str, chaincode_id: str, function: str, args: Sequence[bytes]) -> Optional[Reply]:
        if self.closed:
            raise LedgerConnectionError("channel context is closed")
        with self.ledger.lock:
            self.ledger.calls.append(
                LedgerCall(kind, chaincode_id, function, list(args), self.channel_id, self.user)
            )
            return self.ledger.replies.get((chaincode_id, function))

    def query(self, chaincode_id: str, function: str, args: Sequence[bytes]) -> bytes:
        reply = self._record("query", chaincode_id, function, args)
        if reply is None:
            raise QueryError(f"no reply registered for {chaincode_id}.{function}", chaincode_id, function)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(args)
        return reply

    def invoke(self, chaincode_id: str, function: str, args: Sequence[bytes]) -> str:
        reply = self._record("invoke", chaincode_id, function, args)
        if isinstance(reply, Exception):
            raise reply
        if reply is not None:
            raise InvokeError("invoke replies must be exceptions", chaincode_id, function)

        with self.ledger.lock:
            self.ledger.tx_counter += 1
            seed = f"{self.channel_id}:{chaincode_id}:{function}:{self.ledger.tx_counter}"
        tx_id = hashlib.sha256(seed.encode()).hexdigest()
        logger.debug(f"Stub ledger accepted transaction {tx_id}")
        return tx_id

    def close(self) -> None:
        self.closed = True


class StubChannelProvider(ChannelProvider):
    """
    Provider over a single in-memory ledger.

    Attributes:
        opened: The most recent channel contexts handed out
    """

    def __init__(
        self,
        ledger: Optional[StubLedger] = None,
        fail_with: Optional[Exception] = None,
        history: int = DEFAULT_HISTORY
    ):
        """
        Args:
            ledger: Ledger state to share (a fresh one by default)
            fail_with: If set, every open_channel call raises this
            history: How many calls and channel contexts to keep
        """
        if history < 1:
            raise ValueError(f"history must be positive, got {history}")
        self.ledger = ledger or StubLedger(calls=deque(maxlen=history))
        self.fail_with = fail_with
        self.opened: Deque[StubLedgerGateway] = deque(maxlen=history)

    def reply(self, chaincode_id: str, function: str, value: Reply) -> None:
        """Register the reply for calls to ``chaincode_id.function``"""
        with self.ledger.lock:
            self.ledger.replies[(chaincode_id, function)] = value

    @property
    def calls(self) -> Deque[LedgerCall]:
        return self.ledger.calls

    def open_channel(self, channel_id: str, user: str) -> LedgerGateway:
        if self.fail_with is not None:
            raise self.fail_with
        gateway = StubLedgerGateway(self.ledger, channel_id, user)
        with self.ledger.lock:
            self.opened.append(gateway)
        return gateway
