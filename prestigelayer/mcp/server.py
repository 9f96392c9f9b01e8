"""MCP server wrapping LayerRuntime for interactive playtesting."""

from __future__ import annotations

import argparse
import contextlib
import sys
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from mcp.server.fastmcp import FastMCP

from prestigelayer.cli import add_layer_argument, load_layer
from prestigelayer.definition import LayerDefinition
from prestigelayer.events import EventRecord, LayerEvent
from prestigelayer.runtime import LayerRuntime


@dataclass
class _LayerHolder:
    """Holds the active layer definition, runtime and recent events."""

    definition: LayerDefinition
    runtime: LayerRuntime
    _events: list[EventRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        self._subscribe()

    def _subscribe(self) -> None:
        for event in LayerEvent:
            self.runtime.events.on(event, self._events.append)

    def drain_events(self) -> list[dict[str, Any]]:
        drained = [
            {"event": r.event.name, "source": r.source, "detail": _jsonable(r.detail)}
            for r in self._events
        ]
        self._events.clear()
        return drained


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _parse_id(raw: str) -> int | str:
    return int(raw) if raw.isdigit() else raw


# ── Tool logic functions (testable without MCP protocol) ────────────


def _tool_get_layer_info(holder: _LayerHolder) -> dict[str, Any]:
    defn = holder.definition
    return {
        "name": defn.config.name,
        "currencies": [
            {"id": c.id, "display_name": c.display_name} for c in defn.currencies
        ],
        "unlock_groups": [
            {
                "id": g.id,
                "currency": g.currency,
                "unlocks": [{"id": u.id, "key": u.key} for u in g.unlocks],
            }
            for g in defn.unlock_groups
        ],
        "rebuyable_groups": [
            {
                "id": g.id,
                "currency": g.currency,
                "rebuyables": [
                    {"id": r.id, "key": r.key, "purchase_cap": r.purchase_cap}
                    for r in g.rebuyables
                ],
            }
            for g in defn.rebuyable_groups
        ],
        "stages": [{"id": s.id, "names": list(s.names)} for s in defn.stages],
        "runs": [r.id for r in defn.runs],
        "resets": [r.id for r in defn.resets],
        "formulas": [f.id for f in defn.formulas],
    }


def _tool_get_layer_state(holder: _LayerHolder) -> dict[str, Any]:
    rt = holder.runtime
    defn = holder.definition
    return {
        "currencies": {c.id: str(rt.balance(c.id)) for c in defn.currencies},
        "unlocks": {
            g.id: rt.unlock_group(g.id).unlocked_ids() for g in defn.unlock_groups
        },
        "rebuyables": {
            g.id: {
                str(r.id): {
                    "count": rt.rebuyable_count(g.id, r.id),
                    "cost": str(rt.current_cost(g.id, r.id)),
                    "reached_cap": rt.reached_cap(g.id, r.id),
                }
                for r in g.rebuyables
            }
            for g in defn.rebuyable_groups
        },
        "stages": {s.id: rt.current_stage(s.id) for s in defn.stages},
        "runs": dict(rt.progress.runs),
    }


def _tool_purchase_unlock(holder: _LayerHolder, group_id: str, unlock_id: str) -> dict[str, Any]:
    try:
        success = holder.runtime.purchase_unlock(group_id, _parse_id(unlock_id))
    except KeyError as e:
        return {"error": str(e)}
    result: dict[str, Any] = {"success": success}
    if not success:
        result["reason"] = "Already unlocked, requirements not met, or cannot afford"
    result["events"] = holder.drain_events()
    return result


def _tool_purchase_rebuyable(
    holder: _LayerHolder, group_id: str, rebuyable_id: str, count: int = 1
) -> dict[str, Any]:
    if count < 1:
        return {"error": "Count must be at least 1"}
    try:
        bought = holder.runtime.purchase_max_rebuyable(group_id, _parse_id(rebuyable_id), count)
        new_count = holder.runtime.rebuyable_count(group_id, _parse_id(rebuyable_id))
    except KeyError as e:
        return {"error": str(e)}
    return {
        "success": bought > 0,
        "bought": bought,
        "new_count": new_count,
        "events": holder.drain_events(),
    }


def _tool_grant_currency(holder: _LayerHolder, currency_id: str, amount: str) -> dict[str, Any]:
    try:
        holder.runtime.credit(currency_id, Decimal(amount))
    except KeyError as e:
        return {"error": str(e)}
    except InvalidOperation:
        return {"error": f"Not a number: {amount!r}"}
    return {"currency": currency_id, "new_balance": str(holder.runtime.balance(currency_id))}


def _tool_set_external(holder: _LayerHolder, key: str, value: str) -> dict[str, Any]:
    try:
        parsed = Decimal(value)
    except InvalidOperation:
        return {"error": f"Not a number: {value!r}"}
    holder.runtime.set_external(key, parsed)
    return {"key": key, "value": value}


def _tool_start_run(holder: _LayerHolder, run_id: str) -> dict[str, Any]:
    try:
        holder.runtime.start_run(run_id)
    except KeyError as e:
        return {"error": str(e)}
    return {"success": True, "events": holder.drain_events()}


def _tool_stop_run(holder: _LayerHolder, run_id: str) -> dict[str, Any]:
    try:
        stopped = holder.runtime.stop_run(run_id)
    except KeyError as e:
        return {"error": str(e)}
    return {"success": stopped, "events": holder.drain_events()}


def _tool_reset(holder: _LayerHolder, reset_id: str) -> dict[str, Any]:
    try:
        result = holder.runtime.trigger_reset(reset_id)
    except KeyError as e:
        return {"error": str(e)}
    return {
        "success": True,
        "rebuyable_groups": result.rebuyable_groups,
        "unlock_groups": result.unlock_groups,
        "currencies": result.currencies,
        "runs_stopped": result.runs_stopped,
        "events": holder.drain_events(),
    }


def _tool_get_effect(holder: _LayerHolder, kind: str, group_id: str, item_id: str) -> dict[str, Any]:
    rt = holder.runtime
    try:
        if kind == "unlock":
            value = rt.unlock_effect(group_id, _parse_id(item_id))
        elif kind == "rebuyable":
            value = rt.rebuyable_effect(group_id, _parse_id(item_id))
        elif kind == "formula":
            value = rt.formula(item_id)
        else:
            return {"error": f"Unknown effect kind: {kind!r}"}
    except KeyError as e:
        return {"error": str(e)}
    return {"kind": kind, "id": item_id, "value": _jsonable(value)}


def _tool_new_game(holder: _LayerHolder) -> dict[str, Any]:
    holder.runtime = LayerRuntime(holder.definition)
    holder._events = []
    holder._subscribe()
    return {"success": True, "message": "Layer reset to initial state"}


# ── Server factory ──────────────────────────────────────────────────


def create_server(definition: LayerDefinition) -> FastMCP:
    """Create an MCP server wrapping a LayerRuntime for the given definition."""
    holder = _LayerHolder(
        definition=definition,
        runtime=LayerRuntime(definition),
    )

    mcp = FastMCP(
        name=f"prestigelayer: {definition.config.name}",
    )

    @mcp.tool()
    def get_layer_info() -> dict[str, Any]:
        """Get static layer overview: currencies, unlock and rebuyable groups, stages, runs, resets, formulas."""
        return _tool_get_layer_info(holder)

    @mcp.tool()
    def get_layer_state() -> dict[str, Any]:
        """Get current balances, unlocked bits, rebuyable counts and costs, stages and run flags."""
        return _tool_get_layer_state(holder)

    @mcp.tool()
    def purchase_unlock(group_id: str, unlock_id: str) -> dict[str, Any]:
        """Buy a one-time unlock by id or key. Repeat purchases are no-ops."""
        return _tool_purchase_unlock(holder, group_id, unlock_id)

    @mcp.tool()
    def purchase_rebuyable(group_id: str, rebuyable_id: str, count: int = 1) -> dict[str, Any]:
        """Buy up to *count* levels of a rebuyable. Returns levels actually bought."""
        return _tool_purchase_rebuyable(holder, group_id, rebuyable_id, count)

    @mcp.tool()
    def grant_currency(currency_id: str, amount: str) -> dict[str, Any]:
        """Add currency (decimal string, e.g. "1e50") to the ledger."""
        return _tool_grant_currency(holder, currency_id, amount)

    @mcp.tool()
    def set_external(key: str, value: str) -> dict[str, Any]:
        """Set a value owned by another system, read by effect formulas."""
        return _tool_set_external(holder, key, value)

    @mcp.tool()
    def start_run(run_id: str) -> dict[str, Any]:
        """Enter a run (special mode)."""
        return _tool_start_run(holder, run_id)

    @mcp.tool()
    def stop_run(run_id: str) -> dict[str, Any]:
        """Leave a run."""
        return _tool_stop_run(holder, run_id)

    @mcp.tool()
    def reset(reset_id: str) -> dict[str, Any]:
        """Apply a defined reset."""
        return _tool_reset(holder, reset_id)

    @mcp.tool()
    def get_effect(kind: str, group_id: str, item_id: str) -> dict[str, Any]:
        """Evaluate an effect live. kind is unlock, rebuyable or formula (group_id ignored)."""
        return _tool_get_effect(holder, kind, group_id, item_id)

    @mcp.tool()
    def new_game() -> dict[str, Any]:
        """Reset the layer to initial state."""
        return _tool_new_game(holder)

    return mcp


def main(argv: list[str] | None = None) -> None:
    """Serve a layer over stdio: prestigelayer-mcp <layer_module>"""
    parser = argparse.ArgumentParser(
        prog="prestigelayer-mcp",
        description="Serve a prestige layer to MCP clients over stdio",
        epilog="Example: prestigelayer-mcp examples.effarig_layer",
    )
    add_layer_argument(parser)
    args = parser.parse_args(argv)

    # stdout carries the protocol; anything define_layer() prints goes to stderr
    with contextlib.redirect_stdout(sys.stderr):
        definition = load_layer(args.layer_module)

    create_server(definition).run(transport="stdio")
