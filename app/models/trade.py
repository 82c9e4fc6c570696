"""Journal data models — trades, risk plans, and their lifecycle."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional

from app.risk.periods import align_tz


class Direction(str, Enum):
    """Side of a trade."""

    LONG = "long"
    SHORT = "short"


class TradeStatus(str, Enum):
    """Lifecycle state of a journal trade."""

    OPEN = "open"
    CLOSED = "closed"


EXIT_REASONS: list[str] = [
    "Target hit (TP)",
    "Stopped out (SL)",
    "Discretionary close",
    "Time-based close",
    "Analysis error",
]


@dataclass(frozen=True)
class RiskPlan:
    """Sizing decision attached to a trade when it is opened.

    Every field is nullable: a plan built from an incomplete form simply
    carries ``None`` where a number could not be computed.
    """

    risk_percentage: Optional[float] = None
    entry_price: Optional[float] = None
    stop_loss_price: Optional[float] = None
    take_profit_price: Optional[float] = None
    risk_reward_ratio: Optional[float] = None
    position_size_lots: Optional[float] = None


@dataclass(frozen=True)
class OptionSelection:
    """Pattern recorded for an options item of the entry checklist."""

    question_id: str
    question_text: str
    selected_option: str


@dataclass(frozen=True)
class Trade:
    """A single journal entry.

    Created ``OPEN`` when a risk plan is committed and closed exactly once
    via :meth:`close`.
    """

    id: Optional[int]
    symbol: str
    direction: Direction
    opened_at: datetime
    risk_plan: RiskPlan
    status: TradeStatus = TradeStatus.OPEN
    closed_at: Optional[datetime] = None
    exit_price: Optional[float] = None
    exit_reason: Optional[str] = None
    notes: tuple[str, ...] = field(default_factory=tuple)
    option_selections: tuple[OptionSelection, ...] = field(default_factory=tuple)

    @property
    def is_closed(self) -> bool:
        return self.status is TradeStatus.CLOSED

    def close(
        self,
        exit_price: float,
        exit_reason: Optional[str],
        closed_at: datetime,
    ) -> "Trade":
        """Return the closed copy of this trade.

        Raises:
            ValueError: If the trade is already closed, the exit price is
                not positive, or *closed_at* precedes the open time.
        """
        if self.is_closed:
            raise ValueError(f"trade {self.id} is already closed")
        if exit_price is None or exit_price <= 0:
            raise ValueError(f"exit_price must be positive, got {exit_price}")
        if align_tz(closed_at, self.opened_at) < self.opened_at:
            raise ValueError("closed_at must not precede opened_at")
        return replace(
            self,
            status=TradeStatus.CLOSED,
            exit_price=exit_price,
            exit_reason=exit_reason,
            closed_at=closed_at,
        )

    def with_note(self, note: str) -> "Trade":
        return replace(self, notes=(*self.notes, note))
