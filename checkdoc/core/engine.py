"""
Engine — Pipeline orchestration.

The engine runs passes in order over a fresh CheckContext, records
fatal pass errors as diagnostics, and packages the result.

The engine is NOT where rule logic lives.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from checkdoc.core.context import CheckContext, CheckRequest
from checkdoc.core.errors import CheckdocError
from checkdoc.core.logging import RunLogger
from checkdoc.ir.enums import CheckStatus, ReportFormat
from checkdoc.ir.schema import CheckResult
from checkdoc.policy.models import CheckSettings, RuleSet


# Type alias for a pass function
PassFn = Callable[[CheckContext], CheckContext]


@dataclass
class Pipeline:
    """A named sequence of passes."""

    id: str
    name: str
    passes: list[PassFn]


def default_pipeline() -> Pipeline:
    """Load -> Parse -> Evaluate -> Score -> Render."""
    from checkdoc.passes import evaluate, normalize, parse, render, score

    return Pipeline(
        id="default",
        name="Default checkdoc pipeline",
        passes=[
            normalize,
            parse,
            evaluate,
            score,
            render,
        ],
    )


@dataclass
class Engine:
    """
    Pipeline orchestrator.

    Holds no state between runs beyond its registered pipelines.
    """

    pipelines: dict[str, Pipeline] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if "default" not in self.pipelines:
            self.register_pipeline(default_pipeline())

    def register_pipeline(self, pipeline: Pipeline) -> None:
        """Register a pipeline by ID."""
        self.pipelines[pipeline.id] = pipeline

    def list_pipelines(self) -> list[str]:
        """List registered pipeline IDs."""
        return list(self.pipelines.keys())

    def run(
        self,
        request: CheckRequest,
        pipeline_id: Optional[str] = None,
    ) -> CheckResult:
        """
        Run a check.

        Fatal errors (e.g. DocumentParseError) stop the pipeline and
        yield a result with status ERROR and an error diagnostic.

        Args:
            request: The check request
            pipeline_id: Which pipeline to use (default: 'default')

        Returns:
            CheckResult with report, rendered output, trace and diagnostics
        """
        pipeline_id = pipeline_id or "default"
        ctx = CheckContext.from_request(request)

        if pipeline_id not in self.pipelines:
            ctx.status = CheckStatus.ERROR
            ctx.add_diagnostic(
                level="error",
                code="PIPELINE_NOT_FOUND",
                message=f"Pipeline '{pipeline_id}' not registered",
                source="engine",
            )
            return ctx.to_result()

        pipeline = self.pipelines[pipeline_id]
        rlog = RunLogger(request.run_id)

        for pass_fn in pipeline.passes:
            pass_name = pass_fn.__module__.rsplit(".", 1)[-1]
            try:
                rlog.pass_start(pass_name)
                ctx = pass_fn(ctx)
                rlog.pass_end(pass_name)
            except CheckdocError as e:
                rlog.pass_error(pass_name, e)
                ctx.status = CheckStatus.ERROR
                ctx.add_diagnostic(
                    level="error",
                    code=type(e).__name__,
                    message=str(e),
                    source=pass_name,
                )
                ctx.add_trace(pass_name=pass_name, action="error")
                break

        rlog.run_complete(
            status=ctx.status.value,
            units=len(ctx.document.units) if ctx.document else 0,
            violations=len(ctx.violations),
            diagnostics=len(ctx.diagnostics),
        )

        return ctx.to_result()


def check(
    text: Union[str, bytes],
    ruleset: RuleSet,
    format: Union[ReportFormat, str] = ReportFormat.CHECKLIST,
    source: str = "<document>",
    settings: Optional[CheckSettings] = None,
) -> CheckResult:
    """
    Convenience function: check one document against one rule set.

    Args:
        text: Document text or UTF-8 bytes
        ruleset: A loaded RuleSet
        format: Output format for result.rendered
        source: Document label used in the report
        settings: Overrides the rule set's settings

    Returns:
        CheckResult
    """
    request = CheckRequest(
        text=text,
        ruleset=ruleset,
        source=source,
        format=ReportFormat(format),
        settings=settings,
    )
    return Engine().run(request)
