"""Typed filter-graph representation.

Layout and composition code builds graphs out of Filter and Chain values;
only FilterGraph.render() produces ffmpeg's -filter_complex text. This keeps
the geometry testable without running the transcoder.

A Chain reads from named input ports ("0:v", "cam"), applies its filters in
order and writes to named output ports:

    [0:v]crop=400:280:1500:780,scale=1080:576:force_original_aspect_ratio=increase[cam]
"""

from dataclasses import dataclass


def _fmt(value) -> str:
    if isinstance(value, float):
        text = f"{value:.3f}".rstrip("0").rstrip(".")
        return text or "0"
    return str(value)


@dataclass(frozen=True)
class Filter:
    """One ffmpeg filter: positional args first, then key=value options."""

    name: str
    args: tuple = ()
    options: tuple[tuple[str, object], ...] = ()

    def render(self) -> str:
        parts = [_fmt(a) for a in self.args]
        parts += [f"{k}={_fmt(v)}" for k, v in self.options]
        if not parts:
            return self.name
        return f"{self.name}={':'.join(parts)}"

    def option(self, key: str, default=None):
        for k, v in self.options:
            if k == key:
                return v
        return default


@dataclass(frozen=True)
class Chain:
    inputs: tuple[str, ...]
    filters: tuple[Filter, ...]
    outputs: tuple[str, ...]

    def render(self) -> str:
        ins = "".join(f"[{p}]" for p in self.inputs)
        outs = "".join(f"[{p}]" for p in self.outputs)
        body = ",".join(f.render() for f in self.filters)
        return f"{ins}{body}{outs}"


@dataclass(frozen=True)
class FilterGraph:
    chains: tuple[Chain, ...] = ()

    def then(self, inputs, filters, outputs) -> "FilterGraph":
        """Return a new graph with one more chain appended."""
        chain = Chain(tuple(inputs), tuple(filters), tuple(outputs))
        return FilterGraph(self.chains + (chain,))

    def render(self) -> str:
        return ";".join(c.render() for c in self.chains)

    def outputs(self) -> list[str]:
        return [p for c in self.chains for p in c.outputs]

    def find(self, name: str) -> list[Filter]:
        """All filters with the given name, in graph order."""
        return [f for c in self.chains for f in c.filters if f.name == name]

    def chain_for(self, output: str) -> Chain:
        for c in self.chains:
            if output in c.outputs:
                return c
        raise KeyError(f"No chain produces [{output}]")


# ── Filter constructors ────────────────────────────────────────────
# Every scale states explicit width and height; `fit` selects ffmpeg's
# aspect-aware mode ("increase" = cover, "decrease" = contain).


def crop(width: int, height: int, x: int | str = 0, y: int | str = 0) -> Filter:
    return Filter("crop", (width, height, x, y))


def scale(width: int, height: int, fit: str | None = None) -> Filter:
    if fit not in (None, "increase", "decrease"):
        raise ValueError(f"Unknown scale fit mode: {fit!r}")
    options = (("force_original_aspect_ratio", fit),) if fit else ()
    return Filter("scale", (width, height), options)


def cover(width: int, height: int) -> tuple[Filter, Filter]:
    """Scale up to fill the box, then crop the overflow (centered)."""
    return (scale(width, height, "increase"), crop(width, height, "(iw-ow)/2", "(ih-oh)/2"))


def contain(width: int, height: int, color: str = "black") -> tuple[Filter, ...]:
    """Scale down to fit the box, then pad to it (centered)."""
    return (
        scale(width, height, "decrease"),
        Filter("pad", (width, height, "(ow-iw)/2", "(oh-ih)/2"), (("color", color),)),
    )


def split(outputs: int = 2) -> Filter:
    return Filter("split", (outputs,))


def overlay(x: int, y: int, shortest: bool = False) -> Filter:
    options = (("shortest", 1),) if shortest else ()
    return Filter("overlay", (x, y), options)


def vstack(inputs: int = 2) -> Filter:
    return Filter("vstack", (), (("inputs", inputs),))


def concat(segments: int, video: int = 1, audio: int = 0) -> Filter:
    return Filter("concat", (), (("n", segments), ("v", video), ("a", audio)))


def drawbox(thickness: int, color: str) -> Filter:
    return Filter(
        "drawbox", (),
        (("x", 0), ("y", 0), ("w", "iw"), ("h", "ih"), ("color", color), ("t", thickness)),
    )


def color_source(width: int, height: int, color: str = "black", rate: int = 30) -> Filter:
    return Filter("color", (), (("c", color), ("s", f"{width}x{height}"), ("r", rate)))


def setsar() -> Filter:
    return Filter("setsar", (1,))


def fps(rate: float) -> Filter:
    return Filter("fps", (rate,))


def anullsrc(sample_rate: int = 44100, layout: str = "stereo") -> Filter:
    return Filter("anullsrc", (), (("r", sample_rate), ("cl", layout)))


def atrim(duration: float) -> Filter:
    return Filter("atrim", (), (("duration", duration),))


def aformat(sample_rate: int = 44100, layout: str = "stereo") -> Filter:
    return Filter(
        "aformat", (),
        (("sample_fmts", "fltp"), ("sample_rates", sample_rate), ("channel_layouts", layout)),
    )


def silence(duration: float, sample_rate: int = 44100) -> tuple[Filter, ...]:
    """Silent stereo track of exactly `duration` seconds."""
    return (anullsrc(sample_rate), atrim(duration), aformat(sample_rate))
