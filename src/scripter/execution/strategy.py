from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from scripter.domain.descriptor import CommandDescriptor
from scripter.domain.errors import UnsupportedMode
from scripter.domain.result import Failure, Result
from scripter.events.stream import StreamBroadcaster, StreamSubscription

logger = logging.getLogger(__name__)


class ExecutionStrategy:
    """One link of the execution chain.

    ``execute`` runs the descriptor when ``can_handle`` accepts it and forwards
    it unchanged otherwise. ``interrupt`` and ``kill`` always travel the whole
    chain because several links may have work in flight at once.
    """

    def __init__(self, next_strategy: Optional["ExecutionStrategy"] = None) -> None:
        self.next = next_strategy

    def can_handle(self, descriptor: CommandDescriptor) -> bool:
        return False

    def run(self, descriptor: CommandDescriptor) -> Result:
        raise NotImplementedError

    def execute(self, descriptor: CommandDescriptor) -> Result:
        if not self.can_handle(descriptor):
            return self.forward(descriptor)
        return self.run(descriptor)

    def forward(self, descriptor: CommandDescriptor) -> Result:
        if self.next is None:
            return Failure(UnsupportedMode(descriptor.mode))
        return self.next.execute(descriptor)

    def on_interrupt(self) -> None:
        pass

    def on_kill(self) -> None:
        pass

    def interrupt(self) -> None:
        self.on_interrupt()
        if self.next is not None:
            self.next.interrupt()

    def kill(self) -> None:
        self.on_kill()
        if self.next is not None:
            self.next.kill()


class UnsupportedStrategy(ExecutionStrategy):
    """Chain terminal: every descriptor that reaches it fails."""

    def execute(self, descriptor: CommandDescriptor) -> Result:
        logger.warning("No execution strategy for mode %s", descriptor.mode.description)
        return Failure(UnsupportedMode(descriptor.mode))


class Dispatcher:
    """Entry point of the engine: routes each descriptor down a fixed chain.

    Build one per process (see ``scripter.engine.build_engine``) and share it;
    the chain composition is fixed at construction.
    """

    def __init__(self, strategies: Sequence[ExecutionStrategy], broadcaster: StreamBroadcaster) -> None:
        if not strategies:
            raise ValueError("Dispatcher needs at least one strategy.")
        chain: List[ExecutionStrategy] = list(strategies)
        if not isinstance(chain[-1], UnsupportedStrategy):
            chain.append(UnsupportedStrategy())
        for current, following in zip(chain, chain[1:]):
            current.next = following
        self._chain: Tuple[ExecutionStrategy, ...] = tuple(chain)
        self._broadcaster = broadcaster

    @property
    def strategies(self) -> Tuple[ExecutionStrategy, ...]:
        return self._chain

    @property
    def broadcaster(self) -> StreamBroadcaster:
        return self._broadcaster

    def strategy(self, kind: type) -> Optional[ExecutionStrategy]:
        for item in self._chain:
            if isinstance(item, kind):
                return item
        return None

    def execute(self, descriptor: CommandDescriptor) -> Result:
        return self._chain[0].execute(descriptor)

    def interrupt(self) -> None:
        self._chain[0].interrupt()

    def kill(self) -> None:
        self._chain[0].kill()

    def stream(self, maxsize: Optional[int] = None) -> StreamSubscription:
        return self._broadcaster.subscribe(maxsize=maxsize)
