"""Tests for the typed filter-graph representation."""

import pytest

from clipreel import graph as g


class TestFilterRender:
    def test_positional_args(self):
        assert g.crop(400, 280, 10, 20).render() == "crop=400:280:10:20"

    def test_options_after_args(self):
        f = g.scale(1080, 1920, "increase")
        assert f.render() == "scale=1080:1920:force_original_aspect_ratio=increase"

    def test_bare_filter_name(self):
        assert g.Filter("null").render() == "null"

    def test_float_formatting(self):
        assert g.atrim(2.5).render() == "atrim=duration=2.5"
        assert g.atrim(3.0).render() == "atrim=duration=3"

    def test_option_lookup(self):
        f = g.overlay(20, 40, shortest=True)
        assert f.option("shortest") == 1
        assert f.option("missing", "x") == "x"

    def test_unknown_fit_mode_rejected(self):
        with pytest.raises(ValueError, match="fit mode"):
            g.scale(10, 10, "stretch")


class TestCompositeFilters:
    def test_cover_scales_up_then_crops_centered(self):
        scale, crop = g.cover(1080, 1920)
        assert scale.option("force_original_aspect_ratio") == "increase"
        assert crop.render() == "crop=1080:1920:(iw-ow)/2:(ih-oh)/2"

    def test_contain_scales_down_then_pads(self):
        scale, pad = g.contain(1280, 720)
        assert scale.option("force_original_aspect_ratio") == "decrease"
        assert pad.render() == "pad=1280:720:(ow-iw)/2:(oh-ih)/2:color=black"

    def test_silence_is_bounded(self):
        chain = ",".join(f.render() for f in g.silence(1.5))
        assert chain.startswith("anullsrc=r=44100:cl=stereo")
        assert "atrim=duration=1.5" in chain
        assert chain.endswith("aformat=sample_fmts=fltp:sample_rates=44100:channel_layouts=stereo")


class TestFilterGraph:
    def test_then_returns_new_graph(self):
        base = g.FilterGraph()
        extended = base.then(["0:v"], [g.setsar()], ["out"])
        assert base.chains == ()
        assert len(extended.chains) == 1

    def test_render_joins_chains(self):
        graph = (
            g.FilterGraph()
            .then(["0:v"], [g.split(2)], ["a", "b"])
            .then(["a", "b"], [g.vstack(2)], ["out"])
        )
        assert graph.render() == "[0:v]split=2[a][b];[a][b]vstack=inputs=2[out]"

    def test_source_chain_has_no_inputs(self):
        graph = g.FilterGraph().then([], [g.color_source(100, 50)], ["bg"])
        assert graph.render() == "color=c=black:s=100x50:r=30[bg]"

    def test_outputs_and_find(self):
        graph = (
            g.FilterGraph()
            .then(["0:v"], [g.crop(10, 10), g.setsar()], ["x"])
            .then(["x"], [g.setsar()], ["y"])
        )
        assert graph.outputs() == ["x", "y"]
        assert len(graph.find("setsar")) == 2

    def test_chain_for_unknown_output(self):
        with pytest.raises(KeyError, match="nope"):
            g.FilterGraph().chain_for("nope")
