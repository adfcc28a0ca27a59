"""Quick card: console recap helpers for each resource tick (formatters + step summary)."""

from __future__ import annotations

from typing import Any, Dict, List

import config
from src.model.upgrades import TIER_NAMES
from src.model.world_state import RESOURCES, WorldState


def fmt_res(value: Any) -> str:
    """Formatter note: keep resource numbers tidy using configured precision."""
    try:
        return f"{float(value):.{config.RESOURCE_DISPLAY_DECIMALS}f}"
    except (TypeError, ValueError):
        return "n/a"


def fmt_pop(value: Any) -> str:
    """Formatter note: round population counts with the configured precision."""
    try:
        decimals = max(0, int(config.POP_DISPLAY_DECIMALS))
        return f"{float(value):.{decimals}f}"
    except (TypeError, ValueError):
        return "n/a"


def fmt_delta(value: Any) -> str:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "n/a"
    return f"+{fmt_res(number)}" if number >= 0 else fmt_res(number)


def _event_line(entry: Dict[str, Any]) -> str:
    kind = entry.get("event_type", "event")
    details = ", ".join(f"{key}={value}" for key, value in entry.items() if key not in ("event_type", "tick"))
    return f"    * {kind}: {details}" if details else f"    * {kind}"


def print_step_summary(world: WorldState, since_tick: int = 0) -> None:
    """Showtime card: print the recap for the resource tick that just ran."""
    print(f"Tick {world.tick}:")
    for faction in world.factions.values():
        settlements = world.settlements_of(faction.id)
        if not settlements:
            print(f"  {faction.name}: no settlements (gold {fmt_res(faction.gold)})")
            continue
        stances = faction.blackboard.stances
        jobs = len(faction.job_pool) if faction.job_pool is not None else 0
        print(
            f"  {faction.name}: gold {fmt_res(faction.gold)} | expand {stances.get('expand', 0.0):.2f} "
            f"exploit {stances.get('exploit', 0.0):.2f} | jobs {jobs} | "
            f"shortages [{', '.join(faction.blackboard.critical_shortages) or 'none'}]"
        )
        for settlement in settlements:
            flags = " SURVIVE" if settlement.ai_state.survive_mode else ""
            print(
                f"    - {settlement.name} ({TIER_NAMES[settlement.tier]}, {settlement.role}{flags}) "
                f"pop {fmt_pop(settlement.population)} | integrity {fmt_res(settlement.integrity)}"
            )
            stock = " | ".join(
                f"{resource.lower()} {fmt_res(settlement.stockpile.get(resource, 0.0))}"
                f" ({fmt_delta(settlement.resource_change.get(resource, 0.0))})"
                for resource in RESOURCES
            )
            print(f"      {stock}")
            decisions = settlement.ai_state.last_decisions
            if decisions.get("governor") or decisions.get("controller"):
                print(
                    f"      wants [{', '.join(decisions.get('governor', [])) or '-'}]"
                    f" did [{', '.join(decisions.get('controller', [])) or '-'}]"
                )

    # Quick table: whatever the chronicle picked up since the last recap.
    recent = [entry for entry in world.chronicle if entry.get("tick", 0) > since_tick]
    if recent:
        print("  Events:")
        for entry in recent:
            print(_event_line(entry))
