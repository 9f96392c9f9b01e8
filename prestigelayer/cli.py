from __future__ import annotations

import argparse
import importlib
import logging
import sys

from prestigelayer.definition import LayerDefinition
from prestigelayer.runtime import LayerRuntime


def add_layer_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("layer_module", help="Python module with define_layer()")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prestigelayer",
        description="prestigelayer: unlock, rebuyable and stage inspection CLI",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    info = sub.add_parser("info", help="List everything a layer defines")
    add_layer_argument(info)

    costs = sub.add_parser("costs", help="Print a rebuyable's cost and effect schedule")
    add_layer_argument(costs)
    costs.add_argument("group", help="Rebuyable group id")
    costs.add_argument("rebuyable", help="Rebuyable id or key")
    costs.add_argument("--levels", type=int, default=10, help="Levels to list (default: 10)")

    stage = sub.add_parser("stage", help="Resolve a stage after granting unlocks")
    add_layer_argument(stage)
    stage.add_argument("stage_id", help="Stage chain id")
    stage.add_argument(
        "--grant",
        action="append",
        default=[],
        metavar="GROUP:UNLOCK",
        help="Grant an unlock before resolving (repeatable)",
    )

    plot = sub.add_parser("plot", help="Plot a rebuyable's cost and effect schedule")
    add_layer_argument(plot)
    plot.add_argument("group", help="Rebuyable group id")
    plot.add_argument("rebuyable", help="Rebuyable id or key")
    plot.add_argument("--levels", type=int, default=40, help="Levels to plot (default: 40)")
    plot.add_argument("--output", default=None, help="Plot output path (PNG)")

    nerf = sub.add_parser("nerf", help="Plot nerf curves for several constants")
    nerf.add_argument("constants", type=float, nargs="+", help="Half-saturation constants")
    nerf.add_argument("--ceiling", type=float, default=3.0, help="Curve ceiling (default: 3)")
    nerf.add_argument("--x-max", type=float, default=1e6, help="Largest input (default: 1e6)")
    nerf.add_argument("--output", default=None, help="Plot output path (PNG)")

    return parser


def load_layer(module_path: str) -> LayerDefinition:
    """Import module and call define_layer()."""
    mod = importlib.import_module(module_path)
    if not hasattr(mod, "define_layer"):
        print(f"Error: module {module_path!r} has no define_layer() function")
        sys.exit(1)
    return mod.define_layer()


def _rebuyable_id(raw: str) -> int | str:
    return int(raw) if raw.isdigit() else raw


def _print_info(definition: LayerDefinition) -> None:
    print(f"Layer: {definition.config.name}")
    print("Currencies:")
    for c in definition.currencies:
        print(f"  {c.id} ({c.display_name})")
    for g in definition.unlock_groups:
        print(f"Unlock group {g.id} [{g.currency}]:")
        for u in sorted(g.unlocks, key=lambda u: u.id):
            print(f"  bit {u.id:>2}  {u.key or '-':<24} {u.description}")
    for g in definition.rebuyable_groups:
        print(f"Rebuyable group {g.id} [{g.currency}]:")
        for r in g.rebuyables:
            cap = "uncapped" if r.purchase_cap is None else f"cap {r.purchase_cap}"
            print(f"  id {r.id:>2}  {r.key or '-':<24} {cap}")
    for s in definition.stages:
        print(f"Stage chain {s.id}: {', '.join(s.names) or f'{s.completed} stages'}")
    if definition.runs:
        print("Runs: " + ", ".join(r.id for r in definition.runs))
    if definition.resets:
        print("Resets: " + ", ".join(r.id for r in definition.resets))
    if definition.formulas:
        print("Formulas: " + ", ".join(f.id for f in definition.formulas))


def _print_costs(runtime: LayerRuntime, group_id: str, rebuyable: int | str, levels: int) -> None:
    group = runtime.rebuyable_group(group_id)
    rdef = group.definition.get(rebuyable)
    live = runtime.live()
    print(f"{group_id}/{rdef.key or rdef.id}")
    print(f"{'level':>6}  {'cost':>14}  effect")
    top = levels if rdef.purchase_cap is None else min(levels, rdef.purchase_cap)
    for count in range(top + 1):
        effect = rdef.effect(count, live) if rdef.effect is not None else None
        marker = " (cap)" if rdef.purchase_cap is not None and count == rdef.purchase_cap else ""
        print(f"{count:>6}  {rdef.cost_at(count):>14.4e}  {effect}{marker}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "nerf":
        from prestigelayer.visualization import plot_nerf_curves

        plot_nerf_curves(args.constants, args.ceiling, args.x_max, args.output)
        if args.output:
            print(f"Plot saved to {args.output}")
        return

    definition = load_layer(args.layer_module)

    if args.command == "info":
        _print_info(definition)
        return

    runtime = LayerRuntime(definition)

    if args.command == "costs":
        _print_costs(runtime, args.group, _rebuyable_id(args.rebuyable), args.levels)

    elif args.command == "stage":
        for grant in args.grant:
            group_id, _, unlock = grant.partition(":")
            runtime.grant_unlock(group_id, _rebuyable_id(unlock))
        stage = runtime.current_stage(args.stage_id)
        sdef = definition.stage(args.stage_id)
        name = sdef.name(stage) if sdef.names else str(stage)
        print(f"{args.stage_id}: stage {stage} ({name})")

    elif args.command == "plot":
        from prestigelayer.visualization import plot_rebuyable_schedule

        plot_rebuyable_schedule(
            runtime, args.group, _rebuyable_id(args.rebuyable), args.levels, args.output
        )
        if args.output:
            print(f"Plot saved to {args.output}")


if __name__ == "__main__":
    main()
