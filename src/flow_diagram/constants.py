"""Geometry constants and reserved port names shared by layout, routing and renderers."""

from __future__ import annotations

# ─── Node & Port Geometry ─────────────────────────────────────────────────────

PORT_RADIUS: float = 7
PORT_SIZE: float = PORT_RADIUS * 2
PORT_GAP: float = 8
PORT_PADDING_Y: float = 18  # above the first port and below the last
NODE_MIN_WIDTH: float = 90
NODE_MIN_HEIGHT: float = 90
BORDER_RADIUS: float = 6

# ─── Layer Spacing ────────────────────────────────────────────────────────────

LAYER_GAP_X: float = 300  # target distance between layer columns
LABEL_CLEARANCE: float = 42  # between opposing port label badges
MIN_EDGE_GAP: float = 112  # edge-to-edge between node boxes
NODE_GAP_Y: float = 60
MIN_NODE_GAP_Y: float = 24
LABEL_HEIGHT: float = 20
LABEL_GAP: float = 12
LABEL_BAND: float = LABEL_HEIGHT + LABEL_GAP  # node label badge sits above the box

# ─── Scopes ───────────────────────────────────────────────────────────────────

SCOPE_PADDING_X: float = 140
SCOPE_PADDING_Y: float = 40
SCOPE_PORT_COLUMN: float = 50
SCOPE_INNER_GAP_X: float = 240

# ─── Routing ──────────────────────────────────────────────────────────────────

# Connections longer than this are routed orthogonally, shorter ones curve.
ORTHOGONAL_DISTANCE_THRESHOLD: float = 300

# ─── Reserved Names ───────────────────────────────────────────────────────────

START_NODE = "Start"
EXIT_NODE = "Exit"

STEP = "STEP"
ANY = "ANY"

EXECUTE = "execute"
ON_SUCCESS = "onSuccess"
ON_FAILURE = "onFailure"

SCOPED_START = "start"
SCOPED_SUCCESS = "success"
SCOPED_FAILURE = "failure"

MANDATORY_PORTS: tuple[str, ...] = (EXECUTE, ON_SUCCESS, ON_FAILURE)
MANDATORY_SCOPED_PORTS: tuple[str, ...] = (SCOPED_START, SCOPED_SUCCESS, SCOPED_FAILURE)

DEFAULT_NODE_COLOR = "#334155"
