"""Entry-checklist workflow — pure functions over a pair's analysis state.

A pair under analysis carries the chosen direction, the answers given so
far and the pattern picked for each options item.  Questions are
answered in order; a "no" stops the analysis until it is answered again.
The plan may be saved only once every question has a positive answer.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Union

from app.models.checklist import Checklist, ItemType, Phase
from app.models.trade import Direction, OptionSelection

Answer = Union[bool, str, None]

NOT_OPTIMAL_MESSAGE = "Conditions not optimal. Analysis stopped."


class ChecklistError(ValueError):
    """An answer does not fit the checklist item it was given for."""


@dataclass(frozen=True)
class PairState:
    """Analysis in progress for one symbol."""

    symbol: str
    direction: Optional[Direction] = None
    answers: dict[str, Answer] = field(default_factory=dict)
    option_selections: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ChecklistProgress:
    """Where an analysis stands.

    ``next_item_id`` is the first question still to be answered, or the
    first one answered "no" (``failed`` is then ``True``).  Both are
    ``None`` once the checklist is complete.
    """

    total: int
    answered: int
    next_item_id: Optional[str]
    phase: Optional[Phase]
    failed: bool
    complete: bool

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "answered": self.answered,
            "next_item_id": self.next_item_id,
            "phase": self.phase.value if self.phase else None,
            "failed": self.failed,
            "complete": self.complete,
            "message": NOT_OPTIMAL_MESSAGE if self.failed else None,
        }


def _is_positive(item_type: ItemType, answer: Answer) -> bool:
    if item_type is ItemType.VALUE:
        return isinstance(answer, str) and answer.strip() != ""
    return answer is True


def new_pair_state(symbol: str) -> PairState:
    return PairState(symbol=symbol)


def choose_direction(state: PairState, direction: Direction, checklist: Checklist) -> PairState:
    """Set the analysis direction.

    Switching direction clears every answer and pattern selection;
    choosing the same direction again keeps the progress.
    """
    if state.direction is direction:
        return state
    return replace(
        state,
        direction=direction,
        answers={item.id: None for item in checklist.items()},
        option_selections={},
    )


def _first_open_index(state: PairState, checklist: Checklist) -> int:
    items = checklist.items()
    for index, item in enumerate(items):
        if not _is_positive(item.type, state.answers.get(item.id)):
            return index
    return len(items)


def select_option(state: PairState, checklist: Checklist, item_id: str, option: str) -> PairState:
    """Record which pattern was seen for an options item.

    Raises:
        ChecklistError: Unknown item, not an options item, or an option
            the item does not offer.
    """
    item = checklist.item(item_id)
    if item is None:
        raise ChecklistError(f"unknown checklist item: {item_id}")
    if item.type is not ItemType.OPTIONS:
        raise ChecklistError(f"item {item_id} has no options")
    if option not in item.options:
        raise ChecklistError(f"option must be one of {list(item.options)}")
    return replace(state, option_selections={**state.option_selections, item_id: option})


def answer_item(state: PairState, checklist: Checklist, item_id: str, answer: Answer) -> PairState:
    """Answer one question and return the new state.

    Raises:
        ChecklistError: No direction chosen yet, unknown item, a question
            skipped ahead of an unanswered or failed one, a non-boolean
            answer to a yes/no item, "yes" on an options item without a
            selected pattern, or a blank value.
    """
    if state.direction is None:
        raise ChecklistError("choose a direction before answering")
    items = checklist.items()
    index = next((i for i, item in enumerate(items) if item.id == item_id), None)
    if index is None:
        raise ChecklistError(f"unknown checklist item: {item_id}")
    if index > _first_open_index(state, checklist):
        raise ChecklistError("answer the questions in order")

    item = items[index]
    if item.type is ItemType.VALUE:
        if not isinstance(answer, str) or not answer.strip():
            raise ChecklistError(f"item {item_id} needs a value")
        answer = answer.strip()
    else:
        if not isinstance(answer, bool):
            raise ChecklistError(f"item {item_id} needs a yes/no answer")
        if answer and item.type is ItemType.OPTIONS and item_id not in state.option_selections:
            raise ChecklistError(f"select one of {list(item.options)} first")

    return replace(state, answers={**state.answers, item_id: answer})


def checklist_progress(state: PairState, checklist: Checklist) -> ChecklistProgress:
    items = checklist.items()
    answered = sum(1 for item in items if state.answers.get(item.id) is not None)
    index = _first_open_index(state, checklist)
    if state.direction is None or not items:
        return ChecklistProgress(len(items), answered, None, None, False, False)
    if index == len(items):
        return ChecklistProgress(len(items), answered, None, None, False, True)
    item = items[index]
    return ChecklistProgress(
        total=len(items),
        answered=answered,
        next_item_id=item.id,
        phase=checklist.phase_of(item.id),
        failed=state.answers.get(item.id) is False,
        complete=False,
    )


def option_selections_for_trade(state: PairState, checklist: Checklist) -> tuple[OptionSelection, ...]:
    """Pattern selections in checklist order, ready to attach to a trade."""
    return tuple(
        OptionSelection(item.id, item.text, state.option_selections[item.id])
        for item in checklist.items()
        if item.id in state.option_selections
    )
