from __future__ import annotations

from typing import TYPE_CHECKING

from prestigelayer._types import plog10
from prestigelayer.effect import nerf_curve

if TYPE_CHECKING:
    from prestigelayer.runtime import LayerRuntime


def _pyplot():
    try:
        import matplotlib.pyplot as plt
    except ImportError:
        raise ImportError(
            "matplotlib is required for visualization. "
            "Install with: pip install prestigelayer[viz]"
        )
    return plt


def _finish(plt, output_path: str | None) -> None:
    plt.tight_layout()
    if output_path:
        plt.savefig(output_path, dpi=150)
    else:
        plt.show()


def plot_rebuyable_schedule(
    runtime: LayerRuntime,
    group_id: str,
    rebuyable_id: int | str,
    levels: int = 40,
    output_path: str | None = None,
) -> None:
    """Two panels: log10 cost per level, and effect per level where numeric.

    Requires matplotlib (optional dependency).
    """
    plt = _pyplot()
    rdef = runtime.rebuyable_group(group_id).definition.get(rebuyable_id)
    live = runtime.live()
    top = levels if rdef.purchase_cap is None else min(levels, rdef.purchase_cap)
    counts = list(range(top + 1))

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(12, 5))
    fig.suptitle(f"{group_id}/{rdef.key or rdef.id}", fontsize=14)

    ax1.plot(counts, [plog10(rdef.cost_at(n)) for n in counts], marker=".")
    ax1.set_xlabel("Purchases")
    ax1.set_ylabel("log10(cost)")
    ax1.set_title("Cost")
    ax1.grid(True, alpha=0.3)

    if rdef.effect is not None:
        effects = [rdef.effect(n, live) for n in counts]
        if all(not isinstance(e, dict) for e in effects):
            ax2.plot(counts, [float(e) for e in effects], marker=".")
    ax2.set_xlabel("Purchases")
    ax2.set_ylabel("Effect")
    ax2.set_title("Effect")
    ax2.grid(True, alpha=0.3)

    _finish(plt, output_path)


def plot_nerf_curves(
    constants: list[float],
    ceiling: float = 3.0,
    x_max: float = 1e6,
    output_path: str | None = None,
) -> None:
    """One nerf curve per half-saturation constant, on a log x axis."""
    plt = _pyplot()
    xs = [10 ** (i / 50) for i in range(int(50 * max(plog10(x_max), 1)) + 1)]

    fig, ax = plt.subplots(figsize=(8, 5))
    for c in constants:
        ax.plot(xs, [nerf_curve(x, c, ceiling) for x in xs], label=f"c={c:g}")
    ax.axhline(ceiling, color="red", linestyle="--", label=f"ceiling {ceiling:g}")
    ax.set_xscale("log")
    ax.set_xlabel("x")
    ax.set_ylabel("f(x)")
    ax.set_title("Nerf curves")
    ax.legend()
    ax.grid(True, alpha=0.3)

    _finish(plt, output_path)
