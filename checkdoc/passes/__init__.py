"""Passes — Pipeline stages for a check run."""

from checkdoc.passes.p00_normalize import normalize
from checkdoc.passes.p10_parse import parse
from checkdoc.passes.p50_evaluate import evaluate
from checkdoc.passes.p60_score import score
from checkdoc.passes.p70_render import render

__all__ = [
    "normalize",
    "parse",
    "evaluate",
    "score",
    "render",
]
