"""Quick card: Mesa wiring for the settlement simulation (tick order, faction agents, data collection)."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import mesa
from mesa.datacollection import DataCollector

from src.agents.faction_agent import FactionAgent
from src.agents.mobile import Caravan
from src.model.ai_controller import AIController
from src.model.caravans import force_trade, process_trade, update_caravans
from src.model.economy import extraction_step, industry_step, maintenance_step, metabolism_step, settlement_step
from src.model.game_config import GameConfig, config_to_dict, resolve_config
from src.model.log_utils import print_step_summary
from src.model.map_generator import build_world
from src.model.movement import update_movement
from src.model.upgrades import upgrade_step
from src.model.villagers import assign_villagers, update_villagers
from src.model.world_state import RESOURCES, WorldState


class SettlementModel(mesa.Model):
    """Model card: own the world state, run the fixed system order, and collect per-faction series."""

    def __init__(
        self,
        random_seed: int | None = None,
        config: Union[GameConfig, Mapping[str, Any], None] = None,
        world: Optional[WorldState] = None,
        silent: bool = True,
        controller: Optional[AIController] = None,
    ) -> None:
        """Init cue: accept a seed, config overrides or a prepared world so runs stay reproducible."""
        super().__init__(seed=random_seed)
        self.random_seed = random_seed
        self.config: GameConfig = config if isinstance(config, GameConfig) else resolve_config(config)
        # Setup note: a prepared world (tests, replays) skips map generation entirely.
        self.world: WorldState = world if world is not None else build_world(self.config, self.random)
        self.silent = silent
        self.controller = controller or AIController()
        self._last_summary_tick = self.world.tick
        for faction in self.world.factions.values():
            FactionAgent(model=self, faction=faction)

        self.datacollector = DataCollector(
            model_reporters={
                "tick": lambda m: m.world.tick,
                "settlements": lambda m: len(m.world.settlements),
                "agents": lambda m: len(m.world.agents),
                "caravans": lambda m: len(m.world.agents_of_type(Caravan)),
                "population": lambda m: sum(s.population for s in m.world.settlements.values()),
                "faction_gold": lambda m: sum(f.gold for f in m.world.factions.values()),
            },
            agent_reporters={
                "faction": "faction_id",
                "gold": "gold",
                "population": "population",
                "settlements": "settlement_count",
                "caravans": "caravan_count",
                "open_jobs": "open_jobs",
            },
        )
        self.datacollector.collect(self)

    def tick(self) -> bool:
        """Loop card: advance exactly one tick; returns True when the economic batch ran."""
        world = self.world
        config = self.config
        world.tick += 1
        update_movement(world, config)
        update_caravans(world, config)
        update_villagers(world, config)
        if world.tick % config.simulation.resource_tick_interval != 0:
            return False

        before = {sid: dict(s.stockpile) for sid, s in world.settlements.items()}
        extraction_step(world, config, self.random)
        assign_villagers(world, config)
        industry_step(world, config)
        maintenance_step(world, config)
        settlement_step(world, config)
        metabolism_step(world, config)
        upgrade_step(world, config)
        process_trade(world, config)
        self.controller.update(self)
        for sid, settlement in world.settlements.items():
            start = before.get(sid, {})
            settlement.resource_change = {
                resource: settlement.stockpile.get(resource, 0.0) - start.get(resource, 0.0) for resource in RESOURCES
            }
        return True

    def step(self) -> None:
        """Loop card: one tick, then the console recap and data collection on resource ticks."""
        super().step()
        if not self.tick():
            return
        if not self.silent:
            print_step_summary(self.world, self._last_summary_tick)
        self._last_summary_tick = self.world.tick
        self.datacollector.collect(self)
        if self.all_settlements_dead():
            self.running = False

    def force_trade(self) -> int:
        """Debug hook: push a trade caravan out of every settlement right now."""
        return force_trade(self.world, self.config, self.random)

    def all_settlements_dead(self) -> bool:
        """End check: report whether every settlement has died out."""
        return not self.world.settlements

    def save_chronicle(self, path: Path) -> None:
        """Export cue: save the chronicle as JSON so it can be analysed later."""
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(self.world.chronicle, f, indent=2)

    def get_config_summary(self) -> Dict[str, Any]:
        """Config card: snapshot the resolved knobs plus the run identity."""
        return {
            "seed": self.random_seed,
            "world": {"width": self.world.width, "height": self.world.height, "hexes": len(self.world.hexes)},
            "factions": {f.id: {"name": f.name, "ai": f.is_ai} for f in self.world.factions.values()},
            "config": config_to_dict(self.config),
        }

    def save_config_summary(self, path: str) -> None:
        """Export cue: write a human-readable config summary to a given path."""
        summary = self.get_config_summary()
        lines: List[str] = []
        lines.append("Simulation configuration summary")
        lines.append("================================")
        lines.append("")
        lines.append(f"Seed: {summary['seed']}")
        world = summary["world"]
        lines.append(f"Map: {world['width']}x{world['height']} ({world['hexes']} hexes)")
        lines.append("Factions:")
        for faction_id, info in summary["factions"].items():
            lines.append(f"  {faction_id}: {info['name']} ({'AI' if info['ai'] else 'manual'})")
        lines.append("")

        def _walk(prefix: str, value: Any) -> None:
            if isinstance(value, dict):
                for key, inner in value.items():
                    _walk(f"{prefix}.{key}" if prefix else str(key), inner)
            else:
                lines.append(f"  {prefix}: {value}")

        lines.append("Settings:")
        _walk("", summary["config"])
        lines.append("")
        with open(path, "w", encoding="utf-8") as f:
            f.write("\n".join(lines))
