"""Entry checklists — phased questions answered before a plan is saved.

A checklist walks the trader through three phases (hint, test,
confirmation) on descending timeframes.  Each item is a yes/no question,
a yes/no question that also records which pattern was seen, or a free
value to note down.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.models.trade import Direction


class Phase(str, Enum):
    """Stage of the entry analysis an item belongs to."""

    HINT = "hint"
    TEST = "test"
    CONFIRMATION = "confirmation"


class ItemType(str, Enum):
    """How a checklist item is answered."""

    BOOLEAN = "boolean"
    OPTIONS = "options"
    VALUE = "value"


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    text: str
    timeframe: str = ""
    type: ItemType = ItemType.BOOLEAN
    options: tuple[str, ...] = ()
    tooltip: Optional[str] = None


@dataclass(frozen=True)
class ChecklistPhase:
    phase: Phase
    items: tuple[ChecklistItem, ...]


@dataclass(frozen=True)
class Checklist:
    """A named, versioned checklist template."""

    id: str
    name: str
    phases: tuple[ChecklistPhase, ...]
    description: str = ""
    version: str = "1.0"
    tags: tuple[str, ...] = ()

    def items(self) -> list[ChecklistItem]:
        """Every item in answering order.  Items with blank text are skipped."""
        return [
            item
            for phase in self.phases
            for item in phase.items
            if item.text.strip()
        ]

    def item(self, item_id: str) -> Optional[ChecklistItem]:
        for item in self.items():
            if item.id == item_id:
                return item
        return None

    def phase_of(self, item_id: str) -> Optional[Phase]:
        for phase in self.phases:
            if any(item.id == item_id for item in phase.items):
                return phase.phase
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "tags": list(self.tags),
            "phases": [
                {
                    "phase": phase.phase.value,
                    "items": [
                        {
                            "id": item.id,
                            "text": item.text,
                            "timeframe": item.timeframe,
                            "type": item.type.value,
                            "options": list(item.options),
                            "tooltip": item.tooltip,
                        }
                        for item in phase.items
                    ],
                }
                for phase in self.phases
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Checklist":
        """Build a checklist from its JSON form.

        Raises:
            ValueError: A required field is missing, a phase or item type
                is unknown, an item id repeats, an options item has no
                options, or the checklist has no questions.
        """
        if not isinstance(data, dict):
            raise ValueError("checklist must be an object")
        checklist_id = str(data.get("id") or "").strip()
        name = str(data.get("name") or "").strip()
        if not checklist_id or not name:
            raise ValueError("checklist id and name are required")

        phases = []
        seen: set[str] = set()
        for raw_phase in data.get("phases") or []:
            try:
                phase = Phase(raw_phase.get("phase"))
            except (AttributeError, ValueError):
                raise ValueError(f"unknown phase: {raw_phase!r}") from None
            items = []
            for raw in raw_phase.get("items") or []:
                if not isinstance(raw, dict):
                    raise ValueError("checklist items must be objects")
                item_id = str(raw.get("id") or "").strip()
                if not item_id:
                    raise ValueError("every item needs an id")
                if item_id in seen:
                    raise ValueError(f"duplicate item id: {item_id}")
                seen.add(item_id)
                try:
                    item_type = ItemType(raw.get("type", ItemType.BOOLEAN.value))
                except ValueError:
                    raise ValueError(f"unknown item type for {item_id}: {raw.get('type')!r}") from None
                options = tuple(str(o) for o in raw.get("options") or [] if str(o).strip())
                if item_type is ItemType.OPTIONS and not options:
                    raise ValueError(f"item {item_id} needs at least one option")
                items.append(ChecklistItem(
                    id=item_id,
                    text=str(raw.get("text") or ""),
                    timeframe=str(raw.get("timeframe") or ""),
                    type=item_type,
                    options=options,
                    tooltip=raw.get("tooltip") or None,
                ))
            phases.append(ChecklistPhase(phase=phase, items=tuple(items)))

        checklist = cls(
            id=checklist_id,
            name=name,
            phases=tuple(phases),
            description=str(data.get("description") or ""),
            version=str(data.get("version") or "1.0"),
            tags=tuple(str(t) for t in data.get("tags") or []),
        )
        if not checklist.items():
            raise ValueError("checklist has no questions")
        return checklist


# ── Default templates ────────────────────────────────────────────────────

_CLOSE_TOOLTIP = "Wait for the candle to close before confirming."

DEFAULT_LONG_CHECKLIST = Checklist(
    id="default-long",
    name="Wyckoff Scalping (Long)",
    description="Bullish scalping entries on tests of accumulation.",
    version="1.1",
    tags=("Wyckoff", "Scalping", "Long"),
    phases=(
        ChecklistPhase(Phase.HINT, (
            ChecklistItem("dl-h-1", "Price reacting at a pivot point or major support?", "30m"),
            ChecklistItem("dl-h-2", "Bullish divergence on the stochastic?", "30m"),
            ChecklistItem(
                "dl-h-3", "Bullish reversal candle closed?", "30m", ItemType.OPTIONS,
                ("Engulfing", "Hammer", "Morning Star"), _CLOSE_TOOLTIP,
            ),
            ChecklistItem("dl-h-4", "Stopping candle (PS/SC) identified?", "5m"),
            ChecklistItem("dl-h-5", "SC volume above the 20 MA?", "5m"),
            ChecklistItem("dl-h-6", "Stochastic oversold (<= 20)?", "5m"),
        )),
        ChecklistPhase(Phase.TEST, (
            ChecklistItem("dl-t-1", "Secondary test (ST) forming?", "5m"),
            ChecklistItem("dl-t-2", "ST volume below the 20 MA and the SC?", "5m"),
            ChecklistItem("dl-t-3", "Stochastic turning up or bullish divergence?", "5m"),
        )),
        ChecklistPhase(Phase.CONFIRMATION, (
            ChecklistItem("dl-c-1", "Bullish SOS candle breaks nearby resistance or the down trendline?", "1m"),
            ChecklistItem("dl-c-2", "SOS volume above the 20 MA?", "1m"),
            ChecklistItem("dl-c-3", "Stochastic crosses above 20?", "1m"),
        )),
    ),
)

DEFAULT_SHORT_CHECKLIST = Checklist(
    id="default-short",
    name="Wyckoff Scalping (Short)",
    description="Bearish scalping entries on tests of distribution.",
    version="1.1",
    tags=("Wyckoff", "Scalping", "Short"),
    phases=(
        ChecklistPhase(Phase.HINT, (
            ChecklistItem("ds-h-1", "Price reacting at a pivot point or major resistance?", "30m"),
            ChecklistItem("ds-h-2", "Bearish divergence on the stochastic?", "30m"),
            ChecklistItem(
                "ds-h-3", "Bearish reversal candle closed?", "30m", ItemType.OPTIONS,
                ("Bearish Engulfing", "Shooting Star", "Evening Star"), _CLOSE_TOOLTIP,
            ),
            ChecklistItem("ds-h-4", "Stopping candle (PSY/BC) identified?", "5m"),
            ChecklistItem("ds-h-5", "BC volume above the 20 MA?", "5m"),
            ChecklistItem("ds-h-6", "Stochastic overbought (>= 80)?", "5m"),
        )),
        ChecklistPhase(Phase.TEST, (
            ChecklistItem("ds-t-1", "Upthrust (UT/UTAD) forming?", "5m"),
            ChecklistItem("ds-t-2", "UT volume below the 20 MA and the BC?", "5m"),
            ChecklistItem("ds-t-3", "Stochastic turning down or bearish divergence?", "5m"),
        )),
        ChecklistPhase(Phase.CONFIRMATION, (
            ChecklistItem("ds-c-1", "Bearish SOW candle breaks nearby support or the up trendline?", "1m"),
            ChecklistItem("ds-c-2", "SOW volume above the 20 MA?", "1m"),
            ChecklistItem("ds-c-3", "Stochastic crosses below 80?", "1m"),
        )),
    ),
)

DEFAULT_CHECKLISTS: dict[Direction, Checklist] = {
    Direction.LONG: DEFAULT_LONG_CHECKLIST,
    Direction.SHORT: DEFAULT_SHORT_CHECKLIST,
}
