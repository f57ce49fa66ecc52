"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- post-run summary for one configuration.
- ``format_sync_all`` -- summaries of a multi-configuration run.
- ``format_conflict_diff`` -- unified diff for a ``manual`` conflict.
- ``report_to_json`` -- structured dict for CLI ``--json`` and MCP output.
"""

from __future__ import annotations

import difflib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ConflictInfo, SyncAllResult, SyncReport

from .models import SyncAction

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _of(report: SyncReport, action: SyncAction) -> list:
    return [r for r in report.results if r.success and r.action == action]


def format_sync_report(report: SyncReport) -> str:
    """Format one run report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped pairs are summarised by count only.
    """
    summary = report.summary()
    lines: list[str] = [
        f"Sync report for '{report.config_name}' ({report.direction.value})",
        f"Started: {report.started_at}",
    ]
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")
    lines.append(
        f"{summary.created} created, {summary.updated} updated, "
        f"{summary.failed} failed, {summary.conflicts} conflicts"
    )
    lines.append("")

    sections = [
        ("Pulled from Notion:", SyncAction.PULL, "{remote_id} -> {local_path}"),
        ("Created in vault:", SyncAction.CREATE_LOCAL, "{remote_id} -> {local_path}"),
        ("Pushed to Notion:", SyncAction.PUSH, "{local_path} -> {remote_id}"),
        ("Created in Notion:", SyncAction.CREATE_REMOTE, "{local_path} -> {remote_id}"),
    ]
    for title, action, template in sections:
        results = _of(report, action)
        if results:
            lines.append(title)
            for r in results:
                lines.append(
                    "  " + template.format(local_path=r.local_path, remote_id=r.remote_id)
                )
            lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        for r in report.conflicts:
            desc = r.error or "both sides changed"
            lines.append(f"  {r.local_path} <-> {r.remote_id}: {desc}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.local_path or r.remote_id}: {r.error}")
        lines.append("")

    skipped = _of(report, SyncAction.SKIP)
    if skipped:
        lines.append(f"Unchanged: {len(skipped)}")
        lines.append("")

    return "\n".join(lines).rstrip()


def format_sync_all(result: SyncAllResult) -> str:
    """Format every report of a ``sync_all`` run, then its failures."""
    blocks = [format_sync_report(report) for report in result.reports]
    if result.failures:
        lines = ["Failed configurations:"]
        for failure in result.failures:
            lines.append(f"  {failure.config_name}: {failure.error}")
        blocks.append("\n".join(lines))
    if not blocks:
        return "No enabled sync configurations."
    return "\n\n".join(blocks)


# ------------------------------------------------------------------
# Conflict diff
# ------------------------------------------------------------------


def format_conflict_diff(conflict: ConflictInfo) -> str:
    """Format a single conflict for review.

    Shows which sides changed and a unified diff between the vault body
    and the Notion body.
    """
    lines: list[str] = [
        f"Conflict: {conflict.local_path} <-> {conflict.remote_id}",
        f"  Notion modified: {conflict.remote_modified or 'unknown'}",
        f"  Vault modified:  {conflict.local_modified}",
        f"  Properties changed: {conflict.changes.property_changes}",
        f"  Content changed:    {conflict.changes.content_changes}",
        "",
    ]

    diff = difflib.unified_diff(
        conflict.local_content.splitlines(keepends=True),
        conflict.remote_content.splitlines(keepends=True),
        fromfile=f"vault: {conflict.local_path}",
        tofile=f"notion: {conflict.remote_id}",
    )
    diff_text = "".join(diff)
    lines.append(diff_text.rstrip() if diff_text else "(no textual differences)")
    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a run report to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "local_path": r.local_path,
            "remote_id": r.remote_id,
            "action": r.action.value,
            "success": r.success,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "config_name": report.config_name,
        "direction": report.direction.value,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "last_sync": report.config.last_sync if report.config else None,
        "counts": report.summary().model_dump(),
        "results": results_list,
    }
