"""
Conversation state owned by a console session.

History is an explicit object passed to the single-shot service and the
planner, never module-level state.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List

from .base_enums import PromptMode


@dataclass(frozen=True)
class ExchangeSummary:
    """Compact record of one earlier question and what answered it."""

    question: str
    digest: str

    def render(self) -> str:
        return f"Q: {self.question}\n{self.digest}"


class ConversationContext:
    """
    Bounded FIFO of exchange summaries.

    Oldest entries drop off once max_exchanges is reached.
    """

    def __init__(self, max_exchanges: int = 4):
        self.max_exchanges = max_exchanges
        self._exchanges: Deque[ExchangeSummary] = deque(maxlen=max_exchanges)

    def add(self, question: str, digest: str) -> None:
        self._exchanges.append(ExchangeSummary(question=question, digest=digest))


    def entries(self) -> List[ExchangeSummary]:
        return list(self._exchanges)

    def render(self) -> List[str]:
        return [exchange.render() for exchange in self._exchanges]

    def __len__(self) -> int:
        return len(self._exchanges)


@dataclass
class QuerySession:
    """
    Per-console session state.

    Conversational and single-step questions always see the bounded
    exchange history. A multi-step plan sees it only when persist_history
    is set; otherwise each plan starts from an empty context.
    """

    context: ConversationContext = field(default_factory=ConversationContext)
    persist_history: bool = False
    questions_asked: int = 0

    @classmethod
    def create(cls, history_size: int, persist_history: bool) -> "QuerySession":
        return cls(context=ConversationContext(max_exchanges=history_size), persist_history=persist_history)

    def begin_question(self) -> None:
        self.questions_asked += 1

    def history_for(self, mode: PromptMode) -> List[str]:
        if mode == PromptMode.MULTI_STEP and not self.persist_history:
            return []
        return self.context.render()

    def record_exchange(self, question: str, digest: str, mode: PromptMode) -> None:
        if mode == PromptMode.MULTI_STEP and not self.persist_history:
            return
        self.context.add(question, digest)
