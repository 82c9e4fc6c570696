"""TradeCoach — journal service (single state owner).

Every mutation of trades, discipline state and settings goes through one
``TradingCoach`` instance, which reads and writes the repositories and
delegates all numbers to the pure functions in ``app.risk`` and
``app.analytics``.
"""

import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from app.analytics.stats import (
    calculate_stats,
    current_streak,
    derive_account_balance,
    pair_performance,
    starting_balance,
)
from app.journal.checklist import (
    ChecklistError,
    ChecklistProgress,
    PairState,
    answer_item,
    checklist_progress,
    choose_direction,
    new_pair_state,
    option_selections_for_trade,
    select_option,
)
from app.models.checklist import DEFAULT_CHECKLISTS, Checklist
from app.models.settings import AccountSettings, ChallengeSettings
from app.models.trade import Direction, Trade, TradeStatus
from app.repos.state_repo import StateRepo
from app.repos.trade_repo import TradeRepo
from app.risk.challenge import ChallengeMetrics, compute_challenge_metrics
from app.risk.currency import ExchangeRateTable, normalize_symbol
from app.risk.discipline import (
    DisciplineState,
    LockStatus,
    PairSelection,
    apply_trade_closed,
    check_pair_selection,
    compute_lock_status,
    cooldown_remaining,
    expire_cooldown,
)
from app.risk.periods import local_now
from app.risk.position_sizer import (
    MIN_RISK_REWARD,
    RiskCalculation,
    RiskInputs,
    compute_risk_plan,
)

logger = logging.getLogger("tradecoach")


class TradeRejected(ValueError):
    """A request broke a trading rule; nothing was written."""


class TradeNotFound(LookupError):
    """No trade with the requested id exists."""


class AnalysisNotFound(LookupError):
    """No checklist analysis is in progress for the requested symbol."""


class TradingCoach:
    """Orchestrates the journal, the discipline guardrails and the challenge.

    Args:
        trade_repo: A ``TradeRepo`` (or duck-type for tests).
        state_repo: A ``StateRepo`` holding discipline and settings.
        default_settings: Account settings used until some are saved.
        rates_provider: Optional ``ExchangeRateProvider``; its last
            snapshot is used when a call does not pass ``rates``.
    """

    def __init__(
        self,
        trade_repo: TradeRepo,
        state_repo: StateRepo,
        default_settings: Optional[AccountSettings] = None,
        rates_provider=None,
    ) -> None:
        self._trades = trade_repo
        self._state = state_repo
        self._rates_provider = rates_provider
        self._settings = state_repo.load_account_settings(
            default_settings or AccountSettings()
        )
        self._discipline = state_repo.load_discipline()
        self._challenge = state_repo.load_challenge()
        self._checklists = state_repo.load_checklists(DEFAULT_CHECKLISTS)
        self._pairs = state_repo.load_pairs()

    # ── Accessors ────────────────────────────────────────────────────────

    @property
    def discipline(self) -> DisciplineState:
        return self._discipline

    @property
    def settings(self) -> AccountSettings:
        return self._settings

    @property
    def challenge_settings(self) -> Optional[ChallengeSettings]:
        return self._challenge

    def _rates(self, rates: Optional[ExchangeRateTable]) -> Optional[ExchangeRateTable]:
        if rates is not None:
            return rates
        if self._rates_provider is not None:
            return self._rates_provider.latest
        return None

    def trades(self, status: Optional[TradeStatus] = None, limit: Optional[int] = None) -> list[Trade]:
        return self._trades.list_trades(status_filter=status, limit=limit)

    def account_balance(self, rates: Optional[ExchangeRateTable] = None) -> float:
        return derive_account_balance(self._settings, self.trades(), self._rates(rates))

    # ── Guardrails ───────────────────────────────────────────────────────

    def lock_status(
        self,
        now: Optional[datetime] = None,
        rates: Optional[ExchangeRateTable] = None,
    ) -> LockStatus:
        now = now or local_now()
        rates = self._rates(rates)
        trades = self.trades()
        balance = derive_account_balance(self._settings, trades, rates)
        return compute_lock_status(trades, self._settings, balance, now, rates)

    def cooldown_remaining(self, now: Optional[datetime] = None) -> timedelta:
        return cooldown_remaining(self._discipline, now or local_now())

    def select_pair(self, symbol: str, now: Optional[datetime] = None) -> PairSelection:
        """Gate for starting a new trade analysis on *symbol*."""
        try:
            normalize_symbol(symbol)
        except ValueError as exc:
            return PairSelection(False, str(exc))
        now = now or local_now()
        selection = check_pair_selection(self._discipline, self.lock_status(now), now)
        if not selection.allowed:
            logger.info("Pair %s rejected: %s", symbol, selection.reason)
        return selection

    def tick(self, now: Optional[datetime] = None) -> Optional[str]:
        """Periodic check; returns a one-time message when a cooldown ends."""
        state, message = expire_cooldown(self._discipline, now or local_now())
        if message is not None:
            self._discipline = state
            self._state.save_discipline(state)
        return message

    # ── Entry checklist ──────────────────────────────────────────────────

    def checklist_for(self, direction: Direction) -> Checklist:
        return self._checklists[direction]

    def set_checklist(self, direction: Direction, checklist: Checklist) -> Checklist:
        """Make *checklist* the active template for *direction*."""
        self._checklists = {**self._checklists, direction: checklist}
        self._state.save_checklists(self._checklists)
        logger.info("Active %s checklist set to %s", direction.value, checklist.id)
        return checklist

    def pairs(self) -> list[PairState]:
        return list(self._pairs.values())

    def pair_state(self, symbol: str) -> PairState:
        """Analysis in progress for *symbol*.

        Raises:
            AnalysisNotFound: No analysis was started for the symbol.
        """
        try:
            key = normalize_symbol(symbol)
        except ValueError:
            key = symbol
        state = self._pairs.get(key)
        if state is None:
            raise AnalysisNotFound(f"no analysis in progress for {symbol}")
        return state

    def _save_pair(self, state: PairState) -> PairState:
        self._pairs = {**self._pairs, state.symbol: state}
        self._state.save_pairs(self._pairs)
        return state

    def start_analysis(
        self,
        symbol: str,
        direction: Direction,
        now: Optional[datetime] = None,
    ) -> PairState:
        """Start (or resume) the entry checklist for *symbol*.

        Choosing a different direction than before clears the answers.

        Raises:
            TradeRejected: Pair selection is blocked by the cooldown or a
                loss-limit lock, or the symbol is invalid.
        """
        selection = self.select_pair(symbol, now)
        if not selection.allowed:
            raise TradeRejected(selection.reason)
        key = normalize_symbol(symbol)
        state = self._pairs.get(key) or new_pair_state(key)
        state = choose_direction(state, direction, self._checklists[direction])
        logger.info("Analysis %s %s started", direction.value, key)
        return self._save_pair(state)

    def answer_checklist(
        self,
        symbol: str,
        item_id: str,
        answer,
        option: Optional[str] = None,
    ) -> PairState:
        """Answer one checklist question, recording *option* first if given.

        Raises:
            AnalysisNotFound: No analysis for *symbol*.
            ChecklistError: The answer does not fit the item.
        """
        state = self.pair_state(symbol)
        if state.direction is None:
            raise ChecklistError("choose a direction before answering")
        checklist = self._checklists[state.direction]
        if option is not None:
            state = select_option(state, checklist, item_id, option)
        state = answer_item(state, checklist, item_id, answer)
        if answer is False:
            logger.info("Analysis %s stopped at %s", state.symbol, item_id)
        return self._save_pair(state)

    def checklist_progress(self, symbol: str) -> ChecklistProgress:
        state = self.pair_state(symbol)
        if state.direction is None:
            return checklist_progress(state, self._checklists[Direction.LONG])
        return checklist_progress(state, self._checklists[state.direction])

    def remove_pair(self, symbol: str) -> bool:
        try:
            state = self.pair_state(symbol)
        except AnalysisNotFound:
            return False
        self._pairs = {k: v for k, v in self._pairs.items() if k != state.symbol}
        self._state.save_pairs(self._pairs)
        return True

    # ── Trades ───────────────────────────────────────────────────────────

    def plan_trade(
        self,
        symbol: str,
        direction: Direction,
        entry_price: Optional[float],
        stop_loss_price: Optional[float],
        take_profit_price: Optional[float],
        rates: Optional[ExchangeRateTable] = None,
    ) -> RiskCalculation:
        """Size a trade with the derived balance and the current risk %."""
        rates = self._rates(rates)
        inputs = RiskInputs(
            symbol=symbol,
            direction=direction,
            account_balance=self.account_balance(rates),
            risk_percentage=self._discipline.dynamic_risk_percentage,
            entry_price=entry_price,
            stop_loss_price=stop_loss_price,
            take_profit_price=take_profit_price,
        )
        return compute_risk_plan(inputs, rates)

    def open_trade(
        self,
        symbol: str,
        direction: Direction,
        entry_price: Optional[float],
        stop_loss_price: Optional[float],
        take_profit_price: Optional[float],
        now: Optional[datetime] = None,
        rates: Optional[ExchangeRateTable] = None,
    ) -> Trade:
        """Commit a risk plan as a new open trade.

        Raises:
            TradeRejected: When trading is locked or cooling down, the entry
                checklist for this symbol and direction is not complete, the
                form is incomplete, the prices are on the wrong side, or the
                risk/reward ratio is below 2.  Nothing is written.
        """
        now = now or local_now()
        selection = self.select_pair(symbol, now)
        if not selection.allowed:
            raise TradeRejected(selection.reason)

        key = normalize_symbol(symbol)
        pair = self._pairs.get(key)
        checklist = self._checklists[direction]
        if (
            pair is None
            or pair.direction is not direction
            or not checklist_progress(pair, checklist).complete
        ):
            raise TradeRejected(
                f"Complete the {direction.value} entry checklist for {key} before saving the plan."
            )

        calculation = self.plan_trade(
            symbol, direction, entry_price, stop_loss_price, take_profit_price, rates,
        )
        if calculation.error is not None:
            raise TradeRejected(str(calculation.error))
        if calculation.plan is None:
            raise TradeRejected("Risk plan is incomplete.")
        if not calculation.can_commit:
            raise TradeRejected(
                f"Risk/reward must be at least 1:{MIN_RISK_REWARD:g} to save the plan."
            )

        trade = Trade(
            id=None,
            symbol=key,
            direction=direction,
            opened_at=now,
            risk_plan=calculation.plan,
            option_selections=option_selections_for_trade(pair, checklist),
        )
        trade = replace(trade, id=self._trades.insert_trade(trade))
        self._pairs = {k: v for k, v in self._pairs.items() if k != key}
        self._state.save_pairs(self._pairs)
        logger.info(
            "Opened %s %s #%d: %.2f lots at %s",
            trade.direction.value, trade.symbol, trade.id,
            calculation.plan.position_size_lots or 0.0, calculation.plan.entry_price,
        )
        return trade

    def close_trade(
        self,
        trade_id: int,
        exit_price: float,
        exit_reason: Optional[str] = None,
        now: Optional[datetime] = None,
        rates: Optional[ExchangeRateTable] = None,
    ) -> Trade:
        """Close an open trade and apply the discipline transition once.

        Raises:
            TradeNotFound: Unknown *trade_id*.
            TradeRejected: The trade is already closed or the exit is invalid.
        """
        trade = self._trades.get_trade(trade_id)
        if trade is None:
            raise TradeNotFound(f"trade {trade_id} not found")
        now = now or local_now()
        try:
            closed = trade.close(exit_price, exit_reason, now)
        except ValueError as exc:
            raise TradeRejected(str(exc)) from exc
        if not self._trades.close_trade(closed):
            raise TradeRejected(f"trade {trade_id} is already closed")

        self._discipline = apply_trade_closed(closed, self._discipline, now, self._rates(rates))
        self._state.save_discipline(self._discipline)
        logger.info("Closed %s #%d at %s (%s)", closed.symbol, closed.id, exit_price, exit_reason)
        return closed

    def add_note(self, trade_id: int, note: str) -> Trade:
        if not self._trades.add_note(trade_id, note):
            raise TradeNotFound(f"trade {trade_id} not found")
        return self._trades.get_trade(trade_id)

    # ── Settings ─────────────────────────────────────────────────────────

    def update_settings(self, **fields) -> AccountSettings:
        """Replace individual account-settings fields and persist them."""
        self._settings = replace(self._settings, **fields)
        self._state.save_account_settings(self._settings)
        logger.info("Account settings updated: %s", self._settings)
        return self._settings

    # ── Challenge ────────────────────────────────────────────────────────

    def start_challenge(
        self,
        account_size: float,
        now: Optional[datetime] = None,
        **rules,
    ) -> ChallengeSettings:
        self._challenge = ChallengeSettings(
            is_active=True,
            start_date=now or local_now(),
            account_size=account_size,
            **rules,
        )
        self._state.save_challenge(self._challenge)
        logger.info("Challenge started: %s", self._challenge)
        return self._challenge

    def stop_challenge(self) -> Optional[ChallengeSettings]:
        if self._challenge is None:
            return None
        self._challenge = replace(self._challenge, is_active=False)
        self._state.save_challenge(self._challenge)
        logger.info("Challenge stopped")
        return self._challenge

    def challenge_metrics(
        self,
        now: Optional[datetime] = None,
        rates: Optional[ExchangeRateTable] = None,
    ) -> Optional[ChallengeMetrics]:
        return compute_challenge_metrics(
            self.trades(TradeStatus.CLOSED), self._challenge, now or local_now(), self._rates(rates),
        )

    # ── Analytics ────────────────────────────────────────────────────────

    def stats(self, rates: Optional[ExchangeRateTable] = None) -> dict:
        rates = self._rates(rates)
        trades = self.trades()
        report = calculate_stats(trades, starting_balance(self._settings, trades, rates), rates)
        report["current_streak"] = current_streak(trades, rates)
        report["pair_performance"] = {
            k: round(v, 2) for k, v in pair_performance(trades, rates=rates).items()
        }
        report["account_balance"] = round(derive_account_balance(self._settings, trades, rates), 2)
        return report
