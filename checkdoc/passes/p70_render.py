"""
Pass 70 — Report Rendering

Renders the report in the requested format. Purely presentational.
"""

from checkdoc.core.context import CheckContext
from checkdoc.core.logging import get_pass_logger
from checkdoc.render import render as render_report

PASS_NAME = "p70_render"
log = get_pass_logger(PASS_NAME)


def render(ctx: CheckContext) -> CheckContext:
    """Render ctx.report into ctx.rendered."""
    fmt = ctx.request.format
    ctx.rendered = render_report(ctx.report, fmt)

    log.verbose("rendered", format=fmt.value, chars=len(ctx.rendered))

    ctx.add_trace(
        pass_name=PASS_NAME,
        action="rendered_report",
        after=f"{fmt.value}, {len(ctx.rendered)} chars",
    )

    return ctx
