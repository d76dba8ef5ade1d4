"""Layout engine — camera-region compositing geometry.

plan_reframe() is a pure function of (template, camera region, source size).
It returns a ReframePlan holding the filter graph plus the placement of each
layer on the target canvas.

Three families:

  overlay (corner / edge / center positions)
    ┌───────────┐   main: source cover-scaled to the canvas
    │ ┌───┐     │   camera: region cropped, cover-scaled to 30% x 30%
    │ │cam│     │   of the canvas, bordered, overlaid with edge padding
    │ └───┘     │
    │   main    │
    └───────────┘

  stack (top full / bottom full)
    ┌───────────┐
    │ gameplay  │   70% of canvas height, centered cover crop
    │           │
    ├───────────┤
    │  camera   │   30% of canvas height, region cover-scaled to fill
    └───────────┘

  fallback (no camera region)
    Source contain-scaled into half the canvas height on a solid
    background. The only layout that letterboxes.
"""

from dataclasses import dataclass, field

from . import graph as g
from .errors import LayoutError
from .models import CameraPosition, CameraRegion, LayoutTemplate


CAMERA_FRACTION = 0.3
EDGE_PADDING = 20
BORDER_THICKNESS = 2
BORDER_COLOR = "white@0.8"
STACK_CAMERA_FRACTION = 0.3
FALLBACK_BAND_FRACTION = 0.5
BACKGROUND_COLOR = "black"

OUTPUT_LABEL = "vout"


@dataclass(frozen=True)
class Rect:
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def inside(self, width: int, height: int) -> bool:
        return self.x >= 0 and self.y >= 0 and self.right <= width and self.bottom <= height


@dataclass(frozen=True)
class ReframePlan:
    family: str
    canvas: tuple[int, int]
    source_size: tuple[int, int]
    graph: g.FilterGraph
    video_label: str = OUTPUT_LABEL
    layers: dict[str, Rect] = field(default_factory=dict)

    def filter_complex(self) -> str:
        return self.graph.render()


def _even(value: float) -> int:
    """Floor to an even pixel count (yuv420p needs even dimensions)."""
    return max(2, int(value) // 2 * 2)


def plan_reframe(
    template: LayoutTemplate,
    camera_region: CameraRegion | None,
    source_size: tuple[int, int],
) -> ReframePlan:
    """Map (template, camera region, source size) to a reframe plan.

    Raises:
        LayoutError: Non-positive source size or a camera region outside
            the source frame.
    """
    source_w, source_h = source_size
    if source_w <= 0 or source_h <= 0:
        raise LayoutError(f"Source size must be positive, got {source_w}x{source_h}")

    if camera_region is None:
        return _plan_fallback(template, source_size)

    camera_region.validate_within(source_w, source_h)
    if template.camera_position.is_stack:
        return _plan_stack(template, camera_region, source_size)
    return _plan_overlay(template, camera_region, source_size)


# ── Overlay family ────────────────────────────────────────────────


def camera_box_origin(
    position: CameraPosition,
    canvas: tuple[int, int],
    box: tuple[int, int],
    padding: int = EDGE_PADDING,
) -> tuple[int, int]:
    """Top-left corner of the camera box for an overlay position."""
    cw, ch = canvas
    bw, bh = box
    center_x = (cw - bw) // 2
    center_y = (ch - bh) // 2
    left, right = padding, cw - bw - padding
    top, bottom = padding, ch - bh - padding

    origins = {
        CameraPosition.TOP_LEFT: (left, top),
        CameraPosition.TOP_RIGHT: (right, top),
        CameraPosition.BOTTOM_LEFT: (left, bottom),
        CameraPosition.BOTTOM_RIGHT: (right, bottom),
        CameraPosition.TOP: (center_x, top),
        CameraPosition.BOTTOM: (center_x, bottom),
        CameraPosition.LEFT: (left, center_y),
        CameraPosition.RIGHT: (right, center_y),
        CameraPosition.CENTER: (center_x, center_y),
    }
    if position not in origins:
        raise LayoutError(f"'{position.value}' is not an overlay position")
    return origins[position]


def _plan_overlay(template, region, source_size) -> ReframePlan:
    canvas_w, canvas_h = template.canvas
    box_w = _even(canvas_w * CAMERA_FRACTION)
    box_h = _even(canvas_h * CAMERA_FRACTION)
    x, y = camera_box_origin(template.camera_position, (canvas_w, canvas_h), (box_w, box_h))

    graph = (
        g.FilterGraph()
        .then(["0:v"], [g.split(2)], ["src_main", "src_cam"])
        .then(["src_main"], [*g.cover(canvas_w, canvas_h), g.setsar()], ["main"])
        .then(
            ["src_cam"],
            [
                g.crop(region.width, region.height, region.x, region.y),
                *g.cover(box_w, box_h),
                g.setsar(),
                g.drawbox(BORDER_THICKNESS, BORDER_COLOR),
            ],
            ["cam"],
        )
        .then(["main", "cam"], [g.overlay(x, y)], [OUTPUT_LABEL])
    )
    return ReframePlan(
        family="overlay",
        canvas=(canvas_w, canvas_h),
        source_size=tuple(source_size),
        graph=graph,
        layers={
            "main": Rect(0, 0, canvas_w, canvas_h),
            "camera": Rect(x, y, box_w, box_h),
        },
    )


# ── Stack family ──────────────────────────────────────────────────


def _plan_stack(template, region, source_size) -> ReframePlan:
    canvas_w, canvas_h = template.canvas
    camera_h = _even(canvas_h * STACK_CAMERA_FRACTION)
    gameplay_h = canvas_h - camera_h
    camera_first = template.camera_position is CameraPosition.TOP_FULL

    graph = (
        g.FilterGraph()
        .then(["0:v"], [g.split(2)], ["src_game", "src_cam"])
        .then(["src_game"], [*g.cover(canvas_w, gameplay_h), g.setsar()], ["gameplay"])
        .then(
            ["src_cam"],
            [
                g.crop(region.width, region.height, region.x, region.y),
                *g.cover(canvas_w, camera_h),
                g.setsar(),
            ],
            ["cam"],
        )
    )
    order = ["cam", "gameplay"] if camera_first else ["gameplay", "cam"]
    graph = graph.then(order, [g.vstack(2)], [OUTPUT_LABEL])

    if camera_first:
        layers = {
            "camera": Rect(0, 0, canvas_w, camera_h),
            "gameplay": Rect(0, camera_h, canvas_w, gameplay_h),
        }
    else:
        layers = {
            "gameplay": Rect(0, 0, canvas_w, gameplay_h),
            "camera": Rect(0, gameplay_h, canvas_w, camera_h),
        }
    return ReframePlan(
        family="stack",
        canvas=(canvas_w, canvas_h),
        source_size=tuple(source_size),
        graph=graph,
        layers=layers,
    )


# ── Fallback (no camera region) ───────────────────────────────────


def contain_size(source_size: tuple[int, int], box: tuple[int, int]) -> tuple[int, int]:
    """Largest even size with the source aspect ratio that fits in box."""
    sw, sh = source_size
    bw, bh = box
    factor = min(bw / sw, bh / sh)
    return _even(min(bw, sw * factor)), _even(min(bh, sh * factor))


def _plan_fallback(template, source_size) -> ReframePlan:
    canvas_w, canvas_h = template.canvas
    band_h = _even(canvas_h * FALLBACK_BAND_FRACTION)
    w, h = contain_size(source_size, (canvas_w, band_h))

    # Gameplay goes opposite the camera side named by the template.
    band_y = canvas_h - band_h if template.camera_position.is_top else 0
    x = (canvas_w - w) // 2
    y = band_y + (band_h - h) // 2

    graph = (
        g.FilterGraph()
        .then([], [g.color_source(canvas_w, canvas_h, BACKGROUND_COLOR)], ["bg"])
        .then(["0:v"], [g.scale(w, h), g.setsar()], ["fg"])
        .then(["bg", "fg"], [g.overlay(x, y, shortest=True)], [OUTPUT_LABEL])
    )
    return ReframePlan(
        family="fallback",
        canvas=(canvas_w, canvas_h),
        source_size=tuple(source_size),
        graph=graph,
        layers={"gameplay": Rect(x, y, w, h)},
    )
