"""Drawdown tracking — pure math, no I/O.

Walks an equity curve and records the high-water mark together with the
largest peak-to-trough decline seen so far, both as an amount and as a
percentage of the peak.
"""


class DrawdownTracker:
    """Tracks equity peaks and the worst drawdown observed.

    Args:
        initial_equity: Starting account equity (also the first peak).
    """

    def __init__(self, initial_equity: float) -> None:
        self._peak_equity: float = initial_equity
        self._current_equity: float = initial_equity
        self._max_drawdown: float = 0.0
        self._max_drawdown_pct: float = 0.0

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> None:
        """Record the next equity value.

        If *equity* exceeds the current peak, the peak is raised.
        """
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        if self.drawdown > self._max_drawdown:
            self._max_drawdown = self.drawdown
        if self.drawdown_pct > self._max_drawdown_pct:
            self._max_drawdown_pct = self.drawdown_pct

    def apply_pnl(self, pnl: float) -> None:
        """Shift equity by a realized trade result."""
        self.update(self._current_equity + pnl)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def current_equity(self) -> float:
        """Most recently recorded equity."""
        return self._current_equity

    @property
    def drawdown(self) -> float:
        """Current distance below the peak, in account currency."""
        return self._peak_equity - self._current_equity

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown as a percentage of peak equity."""
        if self._peak_equity <= 0:
            return 0.0
        return (self.drawdown / self._peak_equity) * 100.0

    @property
    def max_drawdown(self) -> float:
        """Largest peak-to-trough decline seen, in account currency."""
        return self._max_drawdown

    @property
    def max_drawdown_pct(self) -> float:
        """Largest drawdown seen, as a percentage of the peak at the time."""
        return self._max_drawdown_pct
