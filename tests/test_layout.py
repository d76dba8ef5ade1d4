"""Tests for the layout engine (pure geometry, no rendering)."""

import pytest

from clipreel.errors import LayoutError
from clipreel.layout import (
    BORDER_COLOR,
    EDGE_PADDING,
    camera_box_origin,
    contain_size,
    plan_reframe,
)
from clipreel.models import AspectRatio, CameraPosition, CameraRegion, LayoutTemplate

SOURCE = (1920, 1080)
REGION = CameraRegion(1440, 0, 480, 270)


def _template(aspect="9:16", position="bottom"):
    return LayoutTemplate(AspectRatio(aspect), CameraPosition(position))


class TestAllLayouts:
    @pytest.mark.parametrize("aspect", [a for a in AspectRatio])
    @pytest.mark.parametrize("position", [p for p in CameraPosition])
    @pytest.mark.parametrize("region", [REGION, None])
    def test_layers_inside_canvas(self, aspect, position, region):
        plan = plan_reframe(LayoutTemplate(aspect, position), region, SOURCE)
        w, h = plan.canvas
        assert (w, h) == aspect.canvas
        for name, rect in plan.layers.items():
            assert rect.inside(w, h), f"{name} {rect} outside {w}x{h}"
            assert rect.width % 2 == 0 and rect.height % 2 == 0

    @pytest.mark.parametrize("position", [p for p in CameraPosition])
    def test_graph_ends_in_single_video_label(self, position):
        plan = plan_reframe(_template(position=position.value), REGION, SOURCE)
        assert plan.graph.outputs()[-1] == plan.video_label
        assert f"[{plan.video_label}]" in plan.filter_complex()

    def test_every_scale_names_both_dimensions(self):
        plan = plan_reframe(_template(position="top left"), REGION, SOURCE)
        for f in plan.graph.find("scale"):
            assert all(int(a) > 0 for a in f.args)


class TestOverlay:
    def test_camera_box_is_30_percent(self):
        plan = plan_reframe(_template(), REGION, SOURCE)
        cam = plan.layers["camera"]
        assert plan.family == "overlay"
        assert (cam.width, cam.height) == (324, 576)

    def test_main_fills_canvas(self):
        plan = plan_reframe(_template(), REGION, SOURCE)
        main = plan.layers["main"]
        assert (main.x, main.y, main.width, main.height) == (0, 0, 1080, 1920)

    def test_camera_crop_uses_region(self):
        plan = plan_reframe(_template(), REGION, SOURCE)
        cam_crops = [f for f in plan.graph.find("crop") if f.args[2:] == (1440, 0)]
        assert cam_crops and cam_crops[0].args[:2] == (480, 270)

    def test_camera_is_bordered(self):
        plan = plan_reframe(_template(), REGION, SOURCE)
        box = plan.graph.find("drawbox")[0]
        assert box.option("color") == BORDER_COLOR
        assert box.option("t") == 2

    def test_source_split_not_reused(self):
        plan = plan_reframe(_template(), REGION, SOURCE)
        rendered = plan.filter_complex()
        assert rendered.count("[0:v]") == 1
        assert plan.graph.find("split")

    @pytest.mark.parametrize(
        "position, expected",
        [
            ("top left", (EDGE_PADDING, EDGE_PADDING)),
            ("top right", (1080 - 324 - EDGE_PADDING, EDGE_PADDING)),
            ("bottom left", (EDGE_PADDING, 1920 - 576 - EDGE_PADDING)),
            ("bottom right", (1080 - 324 - EDGE_PADDING, 1920 - 576 - EDGE_PADDING)),
            ("top", ((1080 - 324) // 2, EDGE_PADDING)),
            ("bottom", ((1080 - 324) // 2, 1920 - 576 - EDGE_PADDING)),
            ("left", (EDGE_PADDING, (1920 - 576) // 2)),
            ("right", (1080 - 324 - EDGE_PADDING, (1920 - 576) // 2)),
            ("center", ((1080 - 324) // 2, (1920 - 576) // 2)),
        ],
    )
    def test_box_origin(self, position, expected):
        assert camera_box_origin(CameraPosition(position), (1080, 1920), (324, 576)) == expected

    def test_stack_position_is_not_an_overlay_origin(self):
        with pytest.raises(LayoutError):
            camera_box_origin(CameraPosition.TOP_FULL, (1080, 1920), (324, 576))


class TestStack:
    def test_top_full_puts_camera_first(self):
        plan = plan_reframe(_template(position="top full"), REGION, SOURCE)
        assert plan.family == "stack"
        cam, game = plan.layers["camera"], plan.layers["gameplay"]
        assert cam.y == 0 and game.y == cam.height
        assert plan.graph.chain_for("vout").inputs == ("cam", "gameplay")

    def test_bottom_full_puts_camera_last(self):
        plan = plan_reframe(_template(position="bottom full"), REGION, SOURCE)
        cam, game = plan.layers["camera"], plan.layers["gameplay"]
        assert game.y == 0 and cam.y == game.height
        assert plan.graph.chain_for("vout").inputs == ("gameplay", "cam")

    def test_bands_fill_canvas_height(self):
        plan = plan_reframe(_template(position="bottom full"), REGION, SOURCE)
        cam, game = plan.layers["camera"], plan.layers["gameplay"]
        assert cam.height == 576
        assert cam.height + game.height == 1920
        assert cam.width == game.width == 1080

    def test_no_letterbox_in_stack(self):
        plan = plan_reframe(_template(position="top full"), REGION, SOURCE)
        assert not plan.graph.find("pad")


class TestFallback:
    def test_no_region_letterboxes_into_half_height(self):
        plan = plan_reframe(_template(position="bottom"), None, SOURCE)
        game = plan.layers["gameplay"]
        assert plan.family == "fallback"
        assert game.width == 1080
        assert game.height == 606  # 1080 * 1080/1920, floored to even
        assert game.y + game.height <= 960

    def test_top_camera_pushes_gameplay_down(self):
        plan = plan_reframe(_template(position="top left"), None, SOURCE)
        assert plan.layers["gameplay"].y >= 960

    def test_background_source_and_shortest_overlay(self):
        plan = plan_reframe(_template(), None, SOURCE)
        assert plan.graph.find("color")
        assert plan.graph.find("overlay")[0].option("shortest") == 1

    def test_contain_size_fits_box(self):
        assert contain_size((1920, 1080), (1080, 960)) == (1080, 606)
        assert contain_size((640, 480), (1080, 1080)) == (1080, 810)


class TestValidation:
    def test_region_outside_source(self):
        with pytest.raises(LayoutError, match="exceeds"):
            plan_reframe(_template(), CameraRegion(1800, 0, 480, 270), SOURCE)

    def test_negative_origin(self):
        with pytest.raises(LayoutError, match="non-negative"):
            plan_reframe(_template(), CameraRegion(-1, 0, 10, 10), SOURCE)

    def test_zero_sized_region(self):
        with pytest.raises(LayoutError, match="positive"):
            plan_reframe(_template(), CameraRegion(0, 0, 0, 10), SOURCE)

    def test_zero_source(self):
        with pytest.raises(LayoutError, match="Source size"):
            plan_reframe(_template(), None, (0, 1080))

    def test_layout_error_is_value_error(self):
        with pytest.raises(ValueError):
            plan_reframe(_template(), CameraRegion(0, 0, 5000, 10), SOURCE)
