"""Connection path geometry — structured polylines and the S-curve builder.

A ConnectionPath keeps the route as data: the polyline it follows plus the
drawing commands (move, line, quadratic curve, arc). SVG path text is one
serialization of it; the ASCII renderer reads the points directly.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

Point = tuple[float, float]

CURVE = "curve"
ORTHOGONAL = "orthogonal"


def fmt(value: float) -> str:
    """Format a coordinate for path text: at most two decimals, no trailing zeros."""
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _fmt_point(p: Point) -> str:
    return f"{fmt(p[0])},{fmt(p[1])}"


@dataclass(frozen=True)
class PathCommand:
    """One drawing command.

    op is "M" (move), "L" (line), "Q" (quadratic curve: control, end) or
    "A" (circular arc ending at points[0] with the given radius and sweep).
    """

    op: str
    points: tuple[Point, ...]
    radius: float = 0.0
    sweep: int = 0

    def translated(self, dx: float, dy: float) -> PathCommand:
        return PathCommand(
            op=self.op,
            points=tuple((x + dx, y + dy) for x, y in self.points),
            radius=self.radius,
            sweep=self.sweep,
        )

    def to_svg(self) -> str:
        if self.op == "A":
            r = fmt(self.radius)
            return f"A {r} {r} 0 0 {self.sweep} {_fmt_point(self.points[0])}"
        return " ".join([self.op, *(_fmt_point(p) for p in self.points)])


@dataclass(frozen=True)
class ConnectionPath:
    """A routed connection: its style, the polyline it follows and its drawing commands."""

    style: str
    points: tuple[Point, ...]
    commands: tuple[PathCommand, ...]

    @property
    def is_curve(self) -> bool:
        return self.style == CURVE

    def to_svg(self) -> str:
        return " ".join(cmd.to_svg() for cmd in self.commands)

    def extent(self) -> tuple[float, float, float, float]:
        """Return (min_x, min_y, max_x, max_y) over every coordinate the path references."""
        xs: list[float] = []
        ys: list[float] = []
        for cmd in self.commands:
            for x, y in cmd.points:
                xs.append(x)
                ys.append(y)
        for x, y in self.points:
            xs.append(x)
            ys.append(y)
        if not xs:
            return (0.0, 0.0, 0.0, 0.0)
        return (min(xs), min(ys), max(xs), max(ys))

    def translated(self, dx: float, dy: float) -> ConnectionPath:
        return ConnectionPath(
            style=self.style,
            points=tuple((x + dx, y + dy) for x, y in self.points),
            commands=tuple(cmd.translated(dx, dy) for cmd in self.commands),
        )


# ─── Straight / Rounded Polylines ─────────────────────────────────────────────


def _distance(a: Point, b: Point) -> float:
    return math.hypot(a[0] - b[0], a[1] - b[1])


def rounded_polyline(waypoints: list[Point], corner_radius: float) -> ConnectionPath:
    """Build an orthogonal path through waypoints with rounded corners.

    Each corner radius is capped at half of both adjacent segments, then two
    corners sharing a segment are scaled down together so they never overlap.
    Radii below 2 px are drawn as plain corners.
    """
    pts = list(waypoints)
    if len(pts) < 2:
        return ConnectionPath(style=ORTHOGONAL, points=tuple(pts), commands=())
    if len(pts) == 2:
        return ConnectionPath(
            style=ORTHOGONAL,
            points=tuple(pts),
            commands=(PathCommand("M", (pts[0],)), PathCommand("L", (pts[1],))),
        )

    radii = [0.0] * len(pts)
    for i in range(1, len(pts) - 1):
        len_prev = _distance(pts[i - 1], pts[i])
        len_next = _distance(pts[i + 1], pts[i])
        if len_prev < 0.01 or len_next < 0.01:
            continue
        radii[i] = min(corner_radius, len_prev / 2, len_next / 2)

    for i in range(1, len(pts) - 2):
        seg_len = _distance(pts[i], pts[i + 1])
        total = radii[i] + radii[i + 1]
        if total > seg_len and total > 0:
            scale = seg_len / total
            radii[i] *= scale
            radii[i + 1] *= scale

    commands: list[PathCommand] = [PathCommand("M", (pts[0],))]
    for i in range(1, len(pts) - 1):
        prev, curr, nxt = pts[i - 1], pts[i], pts[i + 1]
        r = radii[i]
        if r < 2:
            commands.append(PathCommand("L", (curr,)))
            continue

        d_prev = (prev[0] - curr[0], prev[1] - curr[1])
        d_next = (nxt[0] - curr[0], nxt[1] - curr[1])
        len_prev = math.hypot(*d_prev)
        len_next = math.hypot(*d_next)
        arc_start = (curr[0] + d_prev[0] / len_prev * r, curr[1] + d_prev[1] / len_prev * r)
        arc_end = (curr[0] + d_next[0] / len_next * r, curr[1] + d_next[1] / len_next * r)

        cross = d_prev[0] * d_next[1] - d_prev[1] * d_next[0]
        sweep = 0 if cross > 0 else 1
        commands.append(PathCommand("L", (arc_start,)))
        commands.append(PathCommand("A", (arc_end,), radius=r, sweep=sweep))

    commands.append(PathCommand("L", (pts[-1],)))
    return ConnectionPath(style=ORTHOGONAL, points=tuple(pts), commands=tuple(commands))


# ─── S-Curve ──────────────────────────────────────────────────────────────────


def _quad_control(ax: float, ay: float, bx: float, ux: float, uy: float, dn: float) -> Point:
    """Control point for a quad curve leaving horizontally at height ay towards B along U."""
    if abs(uy) < 1e-12:
        return (bx, ay)
    return (bx + ux * dn / abs(uy), ay)


def curved_path(sx: float, sy: float, tx: float, ty: float) -> ConnectionPath:
    """Build the S-curve used for short connections.

    The curve leaves the source horizontally through a short ramp, bends with
    a quadratic curve into a straight diagonal, and bends back to enter the
    target horizontally. Bend sizes are capped at 60 px per axis.
    """
    e = 0.0001  # keeps tangents non-degenerate for perfectly aligned ports
    ax, ay = sx + e, sy + e
    hx, hy = tx - e, ty - e

    ramp = min(20.0, (hx - ax) / 10)
    bx, by = ax + ramp, ay + e
    gx, gy = hx - ramp, hy - e

    curve_x = min(60.0, abs(ax - hx) / 4)
    curve_y = min(60.0, abs(ay - hy) / 4)
    curve_mag = math.hypot(curve_x, curve_y)

    bg_x, bg_y = gx - bx, gy - by
    bg_len = math.hypot(bg_x, bg_y) or 1.0
    bg_ux, bg_uy = bg_x / bg_len, bg_y / bg_len

    dx, dy = bx + bg_ux * curve_mag, by + bg_uy * curve_mag / 2
    ex, ey = gx - bg_ux * curve_mag, gy - bg_uy * curve_mag / 2

    de_x, de_y = ex - dx, ey - dy
    de_len = math.hypot(de_x, de_y) or 1.0
    de_ux, de_uy = de_x / de_len, de_y / de_len

    c = _quad_control(bx, by, dx, -de_ux, -de_uy, abs(by - dy))
    f = _quad_control(gx, gy, ex, de_ux, de_uy, abs(gy - ey))

    commands = (
        PathCommand("M", ((ax, ay),)),
        PathCommand("L", ((bx, by),)),
        PathCommand("Q", (c, (dx, dy))),
        PathCommand("L", ((ex, ey),)),
        PathCommand("Q", (f, (gx, gy))),
        PathCommand("L", ((hx, hy),)),
    )
    points = ((ax, ay), (bx, by), (dx, dy), (ex, ey), (gx, gy), (hx, hy))
    return ConnectionPath(style=CURVE, points=points, commands=commands)
