"""CLI for inspecting reframe plans without rendering anything.

Usage:
    clipreel layout --source 1920x1080 --aspect 9:16 --position "top full" \
        --camera 1440,0,480,270
"""

import argparse

from .cli import parse_region, parse_size
from .errors import LayoutError
from .layout import plan_reframe
from .models import AspectRatio, CameraPosition, LayoutTemplate


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Print the reframe filter graph for a layout template.",
    )
    parser.add_argument(
        "--source", type=parse_size, required=True,
        help="Source frame size, e.g. 1920x1080",
    )
    parser.add_argument(
        "--aspect", default="9:16",
        choices=[a.value for a in AspectRatio],
        help="Output aspect ratio",
    )
    parser.add_argument(
        "--position", default="bottom",
        choices=[p.value for p in CameraPosition],
        help="Camera placement",
    )
    parser.add_argument(
        "--camera", type=parse_region, default=None,
        help="Camera region in source pixels: x,y,width,height",
    )
    parsed = parser.parse_args(args)

    template = LayoutTemplate.from_payload({
        "aspect_ratio": parsed.aspect,
        "camera_position": parsed.position,
    })
    try:
        plan = plan_reframe(template, parsed.camera, parsed.source)
    except LayoutError as exc:
        parser.error(str(exc))

    w, h = plan.canvas
    print(f"Layout: {plan.family}  canvas {w}x{h}")
    for name, rect in plan.layers.items():
        print(f"  {name:<10} {rect.width}x{rect.height} at ({rect.x}, {rect.y})")
    print(plan.filter_complex())


if __name__ == "__main__":
    main()
