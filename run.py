"""Custom Solara dashboard for the caravan SettlementModel."""

from __future__ import annotations

import contextlib
import io
import json
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, TextIO

import altair as alt
import pandas as pd
import solara
from solara.server import app as solara_app
from solara.server.app import AppScript
from solara.server.starlette import ServerStarlette

import config
from src.model.upgrades import TIER_NAMES
from src.model.world_model import SettlementModel

FACTION_SERIES = ["gold", "population", "settlements", "caravans", "open_jobs"]
TERRAIN_COLORS = {
    "Plains": "#c9d98b",
    "Forest": "#4f7942",
    "Hills": "#b08d57",
    "Mountains": "#8a8a8a",
    "Water": "#5b8fd1",
}


class RunArtifactManager:
    """Create the same log artifacts as the CLI version for each dashboard run."""

    def __init__(self, root: str = "logs") -> None:
        self.root = Path(root)
        self.current_dir: Path | None = None
        self.chronicle_path: Path | None = None
        self.sim_log_handle: TextIO | None = None
        self.chart_data_path: Path | None = None
        self.pending_params: Dict[str, Any] | None = None

    def _allocate_run_dir(self) -> Path:
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        candidate = self.root / f"webui_{timestamp}"
        suffix = 1
        while candidate.exists():
            suffix += 1
            candidate = self.root / f"webui_{timestamp}_v{suffix}"
        candidate.mkdir(parents=True, exist_ok=True)
        return candidate

    def prepare_for_model(self, params: Dict[str, Any], previous_model: SettlementModel | None) -> None:
        """Finalize any open run and stage params for the next run."""
        if self.current_dir is not None:
            self.finalize(previous_model)
        self.pending_params = dict(params)

    def ensure_run_started(self, model: SettlementModel) -> None:
        if self.current_dir is not None:
            return
        self._start_run(model, self.pending_params or {})

    def _start_run(self, new_model: SettlementModel, params: Dict[str, Any]) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        run_dir = self._allocate_run_dir()
        self.current_dir = run_dir
        self.chronicle_path = run_dir / "chronicle.json"
        (run_dir / "params.json").write_text(json.dumps(params, indent=2), encoding="utf-8")
        new_model.save_config_summary(str(run_dir / "config_summary.txt"))
        new_model.save_chronicle(self.chronicle_path)
        self._close_log()
        self.sim_log_handle = (run_dir / "simulation_output.log").open("w", encoding="utf-8")
        self.chart_data_path = run_dir / "faction_history.csv"
        self.pending_params = dict(params)
        self.export_chart_data(new_model)

    def _close_log(self) -> None:
        if self.sim_log_handle is not None:
            self.sim_log_handle.close()
            self.sim_log_handle = None

    def record_progress(self, model: SettlementModel | None) -> None:
        if model is None or self.chronicle_path is None or self.current_dir is None:
            return
        model.save_chronicle(self.chronicle_path)

    def finalize(self, model: SettlementModel | None) -> None:
        if self.current_dir is not None and model is not None:
            self.record_progress(model)
            self.export_chart_data(model)
        self._close_log()
        self.current_dir = None
        self.chronicle_path = None
        self.chart_data_path = None

    def append_sim_output(self, text: str) -> None:
        if not text or self.sim_log_handle is None:
            return
        self.sim_log_handle.write(text.rstrip() + "\n\n")
        self.sim_log_handle.flush()

    def export_chart_data(self, model: SettlementModel | None) -> None:
        if model is None or self.chart_data_path is None or self.current_dir is None:
            return
        df = model.datacollector.get_agent_vars_dataframe()
        df.to_csv(self.chart_data_path, index=True)


def default_params() -> Dict[str, Any]:
    """Return a fresh defaults dict each time."""
    return {
        "faction_count": int(config.FACTION_COUNT),
        "map_size": int(config.MAP_WIDTH),
        "starting_population": float(config.STARTING_POPULATION),
        "resource_tick_interval": int(config.RESOURCE_TICK_INTERVAL),
        "ai_check_interval": int(config.AI_CHECK_INTERVAL),
        "seed": 42,
    }


@dataclass(frozen=True)
class SliderSpec:
    """Describe a numeric slider."""

    name: str
    label: str
    min_value: float
    max_value: float
    step: float
    is_int: bool = False

    def format_value(self, value: float | int) -> str:
        return f"{int(value)}" if self.is_int else f"{value:.2f}"

    def coerce(self, value: float) -> float | int:
        return int(round(value)) if self.is_int else float(value)


SLIDER_SPECS: List[SliderSpec] = [
    SliderSpec("faction_count", "Factions", 1, 6, 1, True),
    SliderSpec("map_size", "Map Size", 10, 40, 1, True),
    SliderSpec("starting_population", "Starting Population", 50.0, 200.0, 10.0),
    SliderSpec("resource_tick_interval", "Resource Tick Interval", 1, 20, 1, True),
    SliderSpec("ai_check_interval", "AI Check Interval", 1, 50, 1, True),
]


def build_model(params: Dict[str, Any]) -> SettlementModel:
    """Instantiate the SettlementModel with the chosen knobs as config overrides."""
    try:
        random_seed = int(params.get("seed"))
    except (TypeError, ValueError):
        random_seed = None
    overrides = {
        "world": {
            "faction_count": int(params["faction_count"]),
            "width": int(params["map_size"]),
            "height": int(params["map_size"]),
            "starting_population": float(params["starting_population"]),
        },
        "simulation": {"resource_tick_interval": int(params["resource_tick_interval"])},
        "ai": {"check_interval": int(params["ai_check_interval"])},
    }
    return SettlementModel(random_seed=random_seed, config=overrides, silent=False)


def capture_step_output(model: SettlementModel, ticks: int = 1) -> str:
    """Run ``ticks`` ticks and return whatever stdout the model produced."""
    buffer = io.StringIO()
    with contextlib.redirect_stdout(buffer):
        for _ in range(ticks):
            model.step()
    return buffer.getvalue().strip()


@solara.component
def ParameterControls(params: Dict[str, Any], on_change) -> None:
    """Render all numeric sliders plus the seed."""
    with solara.Card("Starting Conditions", margin=0):
        for spec in SLIDER_SPECS:
            value = params[spec.name]
            with solara.Column(gap="0.25rem"):
                solara.Text(f"{spec.label}: {spec.format_value(value)}")
                slider_cls = solara.SliderInt if spec.is_int else solara.SliderFloat

                def handle(new_value, spec_name=spec.name, convert=spec.coerce):
                    on_change(spec_name, convert(new_value))

                slider_cls(
                    label="",
                    value=value,
                    min=spec.min_value,
                    max=spec.max_value,
                    step=spec.step,
                    on_value=handle,
                )

        def _update_seed(value: int) -> None:
            try:
                parsed = int(value)
            except (TypeError, ValueError):
                parsed = 0
            on_change("seed", parsed)

        solara.InputInt(label="Random Seed", value=params.get("seed", 0), on_value=_update_seed)


@solara.component
def FactionCharts(model: SettlementModel | None, refresh_token: int) -> None:  # noqa: ARG001
    """Render one chart per tracked series with a line per faction."""
    if model is None:
        solara.Text("Chart unavailable until the model is initialised.")
        return
    df = model.datacollector.get_agent_vars_dataframe()
    if df.empty:
        solara.Text("Collect a few ticks to populate the chart.")
        return

    tidy = df.reset_index().melt(
        id_vars=["Step", "faction"],
        value_vars=[col for col in FACTION_SERIES if col in df.columns],
        var_name="Series",
        value_name="Value",
    )
    colors = {f.id: f.color for f in model.world.factions.values()}
    scale = alt.Scale(domain=list(colors), range=list(colors.values()))

    with solara.Column(gap="1rem"):
        for series in FACTION_SERIES:
            subset = tidy[tidy["Series"] == series]
            if subset.empty:
                continue
            chart = (
                alt.Chart(subset)
                .mark_line()
                .encode(
                    x=alt.X("Step:Q", title="Sample"),
                    y=alt.Y("Value:Q", title=series.replace("_", " ").title()),
                    color=alt.Color("faction:N", title="Faction", scale=scale),
                )
                .properties(width=320, height=180)
            )
            with solara.Card(series.replace("_", " ").title(), margin=0):
                solara.FigureAltair(chart)


@solara.component
def HexMap(model: SettlementModel | None, refresh_token: int) -> None:  # noqa: ARG001
    """Plot the map as points in axial space: terrain fill, owner outline, settlements on top."""
    if model is None:
        return
    world = model.world
    rows = []
    for cell in world.hexes.values():
        owner = world.factions.get(cell.owner_id) if cell.owner_id else None
        rows.append(
            {
                "x": cell.hex.q + cell.hex.r / 2.0,
                "y": -cell.hex.r,
                "terrain": cell.terrain,
                "owner": owner.name if owner else "-",
                "stroke": owner.color if owner else "#ffffff",
                "hex": cell.id,
            }
        )
    if not rows:
        solara.Text("Empty map.")
        return
    hexes = pd.DataFrame(rows)
    town_rows = [
        {
            "x": world.hexes[s.hex_id].hex.q + world.hexes[s.hex_id].hex.r / 2.0,
            "y": -world.hexes[s.hex_id].hex.r,
            "name": s.name,
            "color": world.factions[s.owner_id].color if s.owner_id in world.factions else "#000000",
        }
        for s in world.settlements.values()
    ]
    terrain_scale = alt.Scale(domain=list(TERRAIN_COLORS), range=list(TERRAIN_COLORS.values()))
    base = (
        alt.Chart(hexes)
        .mark_square(size=140)
        .encode(
            x=alt.X("x:Q", axis=None),
            y=alt.Y("y:Q", axis=None),
            color=alt.Color("terrain:N", scale=terrain_scale, legend=None),
            stroke=alt.Stroke("stroke:N", scale=None),
            tooltip=["hex", "terrain", "owner"],
        )
    )
    layers = [base]
    if town_rows:
        towns = (
            alt.Chart(pd.DataFrame(town_rows))
            .mark_point(shape="triangle-up", size=120, filled=True)
            .encode(x="x:Q", y="y:Q", color=alt.Color("color:N", scale=None), tooltip=["name"])
        )
        layers.append(towns)
    with solara.Card("Map", margin=0):
        solara.FigureAltair(alt.layer(*layers).properties(width=420, height=360))


@solara.component
def SettlementSnapshot(model: SettlementModel | None) -> None:
    """Display quick stats for every live settlement."""
    if model is None:
        solara.Text("No model active.")
        return
    if not model.world.settlements:
        solara.Text("No settlements remain.")
        return
    lines = []
    for settlement in model.world.settlements.values():
        stock = settlement.stockpile
        survive = " (survival)" if settlement.ai_state.survive_mode else ""
        lines.append(
            f"**{settlement.name}** {TIER_NAMES[settlement.tier]}{survive}  \n"
            f"Pop: {settlement.population:.1f}  |  Food: {stock['Food']:.1f}  |  Timber: {stock['Timber']:.1f}"
            f"  |  Stone: {stock['Stone']:.1f}  |  Gold: {stock['Gold']:.1f}"
        )
    solara.Markdown("\n\n".join(lines))


@solara.component
def LogPanel(logs: List[str]) -> None:
    """Show captured stdout chunks."""
    with solara.Card(
        "Simulation Output",
        margin=0,
        style={"height": "100%", "overflow": "auto"},
    ):
        if not logs:
            solara.Text("No output yet. Run some ticks to see the simulation log.")
            return
        for idx, entry in enumerate(logs, start=1):
            solara.Markdown(f"#### Log {idx}\n```\n{entry}\n```")


@solara.component
def Dashboard() -> None:
    """Primary Solara component."""
    params, set_params = solara.use_state(default_params())
    logs, set_logs = solara.use_state([])  # list[str]
    ticks_per_batch, set_ticks_per_batch = solara.use_state(config.RESOURCE_TICK_INTERVAL)
    refresh_token, set_refresh_token = solara.use_state(0)
    batch_queue, set_batch_queue = solara.use_state(0)
    is_running, set_is_running = solara.use_state(False)
    stop_requested, set_stop_requested = solara.use_state(False)
    artifact_manager = solara.use_memo(lambda: RunArtifactManager(), [])
    model_ref = solara.use_ref(None)
    if model_ref.current is None:
        artifact_manager.prepare_for_model(params, None)
        model_ref.current = build_model(params)

    solara.use_effect(lambda: (lambda: artifact_manager.finalize(model_ref.current)), [])

    def replace_model(new_params: Dict[str, Any]) -> None:
        artifact_manager.prepare_for_model(new_params, model_ref.current)
        model_ref.current = build_model(new_params)
        set_batch_queue(0)
        set_is_running(False)
        set_stop_requested(False)

    def trigger_refresh() -> None:
        set_refresh_token(lambda value: value + 1)

    def update_params(name: str, value: Any) -> None:
        new_params = {**params, name: value}
        set_params(new_params)
        replace_model(new_params)
        set_logs([])
        trigger_refresh()

    def reset_model() -> None:
        replace_model(params)
        set_logs([])
        trigger_refresh()

    def append_log_entry(entry: str) -> None:
        if not entry:
            return
        set_logs(lambda prev: (prev + [entry])[-200:])

    def run_batch() -> None:
        if model_ref.current is None:
            return
        artifact_manager.ensure_run_started(model_ref.current)
        output = capture_step_output(model_ref.current, ticks_per_batch)
        if output:
            append_log_entry(output)
            artifact_manager.append_sim_output(output)
        artifact_manager.record_progress(model_ref.current)
        artifact_manager.export_chart_data(model_ref.current)
        trigger_refresh()

    def queue_batches(count: int) -> None:
        if model_ref.current is None or count <= 0 or is_running:
            return
        set_stop_requested(False)
        set_batch_queue(count)
        set_is_running(True)

    def trigger_trade() -> None:
        if model_ref.current is None:
            return
        sent = model_ref.current.force_trade()
        append_log_entry(f"Forced trade: {sent} caravan(s) dispatched")
        trigger_refresh()

    def close_program() -> None:
        artifact_manager.finalize(model_ref.current)
        os._exit(0)

    def process_queue() -> None:
        if model_ref.current is None:
            return
        if batch_queue <= 0:
            if is_running:
                set_is_running(False)
            return
        if stop_requested:
            artifact_manager.record_progress(model_ref.current)
            set_batch_queue(0)
            return
        run_batch()
        if model_ref.current.all_settlements_dead():
            set_batch_queue(0)
            return
        set_batch_queue(batch_queue - 1)

    solara.use_effect(process_queue, [batch_queue, stop_requested])

    with solara.Column(gap="1rem", style={"padding": "0 1rem"}):
        solara.Markdown("## Caravan Settlement Dashboard")
        current_tick = model_ref.current.world.tick if model_ref.current else 0
        solara.Text(f"Current Tick: {current_tick}")

        content_style = {
            "display": "flex",
            "flex-direction": "row",
            "align-items": "flex-start",
            "gap": "1rem",
            "flex-wrap": "nowrap",
        }

        with solara.Row(style=content_style):
            with solara.Column(gap="1rem", style={"flex": "0.65 1 0", "min-width": "300px"}):
                ParameterControls(params, update_params)
                with solara.Card("Simulation Controls", margin=0):
                    def update_ticks(value: int) -> None:
                        try:
                            parsed = int(value)
                        except (TypeError, ValueError):
                            parsed = 1
                        set_ticks_per_batch(max(1, min(500, parsed)))

                    solara.InputInt(
                        label="Ticks per batch (1-500)",
                        value=ticks_per_batch,
                        on_value=update_ticks,
                        disabled=is_running,
                    )
                    solara.Button("Run 10 Batches", on_click=lambda: queue_batches(10), color="primary", disabled=is_running)
                    solara.Button("Run Once", on_click=lambda: queue_batches(1), disabled=is_running)
                    solara.Button("Force Trade", on_click=trigger_trade, disabled=is_running)
                    solara.Button("Stop", on_click=lambda: set_stop_requested(True), color="warning", disabled=not is_running)
                    solara.Button("Reset Model", on_click=reset_model, color="secondary", disabled=is_running)
                    solara.Button("Close Server", on_click=close_program, color="danger")
                    if model_ref.current and model_ref.current.all_settlements_dead():
                        solara.Text("Every settlement has died out. Reset to start over.", style="color: #b22222;")
                    solara.Text(f"Status: {'Running' if is_running and batch_queue > 0 else 'Idle'}")
                    solara.Text(f"{batch_queue} batch(es) remaining" if batch_queue > 0 else "No pending batches")
                    if artifact_manager.current_dir:
                        solara.Text(
                            f"Logging to {artifact_manager.current_dir}",
                            style="font-size: 0.85em; color: #555;",
                        )
                SettlementSnapshot(model_ref.current)
            with solara.Column(gap="1rem", style={"flex": "0.35 1 0", "min-width": "260px"}):
                HexMap(model_ref.current, refresh_token)
                solara.Markdown("### Faction Trends")
                FactionCharts(model_ref.current, refresh_token)
            with solara.Column(
                gap="0",
                style={
                    "flex": "1 1 0",
                    "min-width": "320px",
                    "max-height": "calc(100vh - 80px)",
                    "display": "flex",
                },
            ):
                LogPanel(logs)


Page = Dashboard


def ensure_solara_app_registered() -> None:
    """Register the Page component with Solara's server loader."""
    if "__default__" not in solara_app.apps:
        solara_app.apps["__default__"] = AppScript("run:Page")


def launch(port: int = 8521, host: str = "127.0.0.1", open_browser: bool = True) -> None:
    """Start the Solara server on the requested host/port."""
    ensure_solara_app_registered()
    server = ServerStarlette(port=port, host=host)
    url = f"http://{host}:{port}"
    print(f"Solara UI available at {url}")
    if open_browser:
        import webbrowser

        webbrowser.open(url)
    server.serve()


if __name__ == "__main__":
    launch()
