"""Canonical REST resource URLs for pipelines, runs, branches, nodes, steps and logs.

Every URL built here doubles as a cache key, so the same navigation context
must always produce the same string.
"""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel

# encodeURIComponent leaves these unescaped in addition to alphanumerics and "-_.~"
_SEGMENT_SAFE = "!*'()"


class NavigationContext(BaseModel):
    """Where the dashboard is looking: pipeline, run, optional branch and node."""

    name: str
    run_id: str
    base_url: str
    branch: str | None = None
    is_multi_branch: bool = False
    node: str | None = None
    organization: str = "jenkins"


class LogAddress(BaseModel):
    url: str
    file_name: str


def escape_segment(value: str) -> str:
    """Percent-encode a path segment, re-escaping encoded slashes.

    The server decodes the path once before routing, so ``feature/x`` has to
    travel as ``feature%252Fx`` to arrive as the single segment ``feature%2Fx``.
    """
    return quote(value, safe=_SEGMENT_SAFE).replace("%2F", "%252F")


def _organization_url(base_url: str, organization: str) -> str:
    return f"{base_url.rstrip('/')}/rest/organizations/{escape_segment(organization)}"


def pipeline_url(base_url: str, pipeline: str, organization: str = "jenkins") -> str:
    return f"{_organization_url(base_url, organization)}/pipelines/{escape_segment(pipeline)}"


def pipelines_url(base_url: str, organization: str | None = None) -> str:
    """Pipeline listing for one organization, or a search across all of them."""
    if organization:
        return f"{_organization_url(base_url, organization)}/pipelines/"
    return f"{base_url.rstrip('/')}/rest/search/?q=type:pipeline"


def runs_url(base_url: str, pipeline: str, organization: str = "jenkins") -> str:
    return f"{pipeline_url(base_url, pipeline, organization)}/runs/"


def branches_url(base_url: str, pipeline: str, organization: str = "jenkins") -> str:
    return f"{pipeline_url(base_url, pipeline, organization)}/branches/"


def branch_url(base_url: str, organization: str, pipeline: str, branch: str) -> str:
    return f"{pipeline_url(base_url, pipeline, organization)}/branches/{escape_segment(branch)}"


def run_url(
    base_url: str,
    pipeline: str,
    run_id: str,
    branch: str | None = None,
    organization: str = "jenkins",
) -> str:
    """Single run resource, scoped through the branch for multi-branch pipelines."""
    if branch is not None:
        return f"{branch_url(base_url, organization, pipeline, branch)}/runs/{run_id}"
    return f"{pipeline_url(base_url, pipeline, organization)}/runs/{run_id}"


def _run_base_url(ctx: NavigationContext) -> str:
    base = pipeline_url(ctx.base_url, ctx.name, ctx.organization)
    if ctx.is_multi_branch:
        base = f"{base}/branches/{escape_segment(ctx.branch or '')}"
    return f"{base}/runs/{ctx.run_id}"


def node_base_url(ctx: NavigationContext) -> str:
    """Node collection of a run; also the cache key for its nodes information."""
    return f"{_run_base_url(ctx)}/nodes/"


def steps_base_url(ctx: NavigationContext) -> str:
    """Step collection of one node, or of the whole run when no node is selected."""
    if ctx.node is not None:
        return f"{_run_base_url(ctx)}/nodes/{ctx.node}/steps"
    return f"{_run_base_url(ctx)}/steps/"


def run_log_address(ctx: NavigationContext) -> LogAddress:
    """Full run log URL plus the file name offered for download."""
    if ctx.is_multi_branch:
        file_name = f"{ctx.branch}-{ctx.run_id}.txt"
    else:
        file_name = f"{ctx.run_id}.txt"
    return LogAddress(url=f"{_run_base_url(ctx)}/log/", file_name=file_name)


def log_url(ctx: NavigationContext) -> str:
    if ctx.node is not None:
        return f"{node_base_url(ctx)}{ctx.node}/log/"
    return run_log_address(ctx).url
