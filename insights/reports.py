"""
Analysis reports - compile a finished analysis into a shareable summary.

A report gathers the assistant answers of one analysis session: the
categorized recommendations and metrics of the latest answer, plus every
suggestion given, and can be rendered as Markdown for download.
"""

from __future__ import annotations

from types import ModuleType
from typing import Any

from . import db


def build_report(analysis_id: str, store: ModuleType | Any = db) -> str | None:
    """
    Create an analysis_reports row for an analysis session.

    Args:
        analysis_id: Analysis session to summarize
        store: Persistence module (insights.db)

    Returns:
        New report ID, or None when the session has no assistant answer yet
    """
    session = store.get_analysis_session(analysis_id)
    if session is None:
        return None

    answers = [m for m in store.get_conversation_history(analysis_id) if m["role"] == "assistant"]
    if not answers:
        return None

    latest = answers[-1]
    metadata = latest.get("metadata") or {}
    website = store.get_website(session["website_id"]) if session.get("website_id") else None

    page = session.get("current_page") or "Homepage"
    url = website["url"] if website else ""
    title = f"{page} page analysis" + (f": {url}" if url else "")

    all_suggestions: list[str] = []
    for m in answers:
        for s in m.get("suggestions") or []:
            if s not in all_suggestions:
                all_suggestions.append(s)

    summary = latest["content"].split("\n\n", 1)[0].replace("**", "")

    return store.create_analysis_report(
        analysis_id,
        title=title,
        summary=summary,
        recommendations=metadata.get("recommendations", []),
        metrics=metadata.get("metrics", {}),
        export_data={
            "websiteUrl": url,
            "currentPage": page,
            "suggestions": all_suggestions,
            "answers": [m["content"] for m in answers],
        },
        user_id=session.get("user_id"),
        demo_session_id=session.get("demo_session_id"),
    )


def report_to_markdown(report: dict[str, Any]) -> str:
    """Render a report dict (as returned by db.get_analysis_report) as Markdown."""
    export = report.get("export_data") or {}
    lines = [f"# {report['title']}", ""]

    if report.get("summary"):
        lines += [report["summary"], ""]

    recommendations = report.get("recommendations") or []
    if recommendations:
        lines += ["## Recommendations", ""]
        for r in recommendations:
            lines.append(f"- **{r['category']}** ({r['priority']}): {r['recommendation']}")
        lines.append("")

    suggestions = export.get("suggestions") or []
    if suggestions:
        lines += ["## Next steps", ""]
        lines += [f"{i}. {s}" for i, s in enumerate(suggestions, start=1)]
        lines.append("")

    metrics = report.get("metrics") or {}
    if metrics:
        lines += ["## Metrics", ""]
        lines += [f"- {k}: {v}" for k, v in metrics.items()]
        lines.append("")

    return "\n".join(lines)
