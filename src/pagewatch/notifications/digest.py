"""HTML rendering of the new-items digest and of the job preview page."""

from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Iterable, Optional

from pagewatch.jobs.job import Item, ItemStatus, Job, JobStatus, utcnow

DIGEST_CONTENT_CHARS = 2000
PREVIEW_CONTENT_CHARS = 800

STATUS_COLORS = {
    JobStatus.COMPLETE: "#28a745",
    JobStatus.FAILED: "#dc3545",
    JobStatus.DISCOVERING: "#007bff",
    JobStatus.FETCHING: "#007bff",
    JobStatus.FINALIZING: "#17a2b8",
}


def group_items(items: Iterable[Item], source_order: Iterable[str] = ()) -> dict[str, list[Item]]:
    """Group items by source.

    Groups follow ``source_order``; sources not in it come after, in order of
    first appearance. Items within a group are sorted by ``scrape_order``.
    """
    groups: dict[str, list[Item]] = {name: [] for name in source_order}
    for item in sorted(items, key=lambda item: item.scrape_order):
        groups.setdefault(item.group_key, []).append(item)
    return {name: group for name, group in groups.items() if group}


def _truncate(text: str, limit: int) -> str:
    return escape(text[:limit]) + ("..." if len(text) > limit else "")


def _total(groups: dict[str, list[Item]]) -> int:
    return sum(len(items) for items in groups.values())


def digest_subject(prefix: str, total: int) -> str:
    return f"{prefix} - {total} new"


def render_digest_html(groups: dict[str, list[Item]], generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or utcnow()
    sections = []

    for name, items in groups.items():
        entries = []
        for item in items:
            if item.content:
                body = (
                    '<div style="background: #f9f9f9; padding: 12px; margin: 8px 0; '
                    'border-left: 3px solid #ddd; white-space: pre-wrap;">'
                    f"{_truncate(item.content, DIGEST_CONTENT_CHARS)}</div>"
                )
            elif item.fetch_error:
                body = f'<p style="color: #999; font-style: italic;">Failed to fetch: {escape(item.fetch_error)}</p>'
            else:
                body = '<p style="color: #999; font-style: italic;">(No content)</p>'

            entries.append(
                '<div style="margin-bottom: 20px; padding-bottom: 16px; border-bottom: 1px solid #eee;">'
                f'<h4 style="margin: 0 0 8px 0;"><a href="{escape(item.source_url)}" '
                f'style="color: #0066cc; text-decoration: none;">{escape(item.title)}</a></h4>'
                f'<p style="color: #666; font-size: 12px; margin: 0 0 8px 0;">'
                f"{escape(item.author)} - {escape(item.published_date)} - {item.size_hint} bytes</p>"
                f"{body}</div>"
            )

        sections.append(
            f'<h3 style="margin-top: 24px; color: #333;">{escape(name)} ({len(items)} new)</h3>'
            + "".join(entries)
        )

    return (
        "<!DOCTYPE html><html><head>"
        '<meta charset="utf-8">'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">'
        "</head>"
        '<body style="font-family: -apple-system, BlinkMacSystemFont, \'Segoe UI\', Roboto, sans-serif; '
        'max-width: 800px; margin: 0 auto; padding: 20px;">'
        '<h2 style="color: #333; border-bottom: 2px solid #0066cc; padding-bottom: 8px;">'
        f"Daily Digest: {_total(groups)} New Posts Found</h2>"
        + "".join(sections)
        + '<hr style="margin-top: 32px; border: none; border-top: 1px solid #eee;">'
        f'<p style="color: #999; font-size: 11px; text-align: center;">'
        f"Sent by pagewatch at {generated_at.isoformat()}</p>"
        "</body></html>"
    )


def render_preview_html(
    groups: dict[str, list[Item]],
    job: Optional[Job] = None,
    generated_at: Optional[datetime] = None,
) -> str:
    """Browser preview of what a job's digest contains, including unfinished items."""
    generated_at = generated_at or utcnow()

    badge = ""
    if job is not None:
        color = STATUS_COLORS.get(job.status, "#6c757d")
        badge = (
            f'<span style="background: {color}; color: white; padding: 2px 8px; '
            f'border-radius: 4px; font-size: 12px;">{job.status.value}</span>'
        )

    total = _total(groups)
    if total == 0:
        job_line = f"Job: {escape(job.id)}" if job else "No job has run yet. Trigger /api/cron first."
        return (
            '<!DOCTYPE html><html><head><meta charset="utf-8"></head>'
            '<body style="font-family: sans-serif; padding: 20px;">'
            f"<h2>No Posts Found {badge}</h2>"
            f"<p>{job_line}</p>"
            f'<p style="color: #666;">Checked at {generated_at.isoformat()}</p>'
            "</body></html>"
        )

    sections = []
    for name, items in groups.items():
        entries = []
        for item in items:
            if item.content:
                detail = (
                    '<div style="margin: 8px 0 16px 20px; padding: 10px; background: #f8f9fa; '
                    "border-left: 3px solid #dee2e6; font-size: 14px; line-height: 1.6; "
                    'white-space: pre-wrap; color: #333;">'
                    f"{_truncate(item.content, PREVIEW_CONTENT_CHARS)}</div>"
                )
            elif item.fetch_error:
                detail = (
                    '<div style="margin: 8px 0 16px 20px; color: #dc3545; font-size: 12px;">'
                    f"Error: {escape(item.fetch_error)}</div>"
                )
            elif item.status == ItemStatus.PENDING:
                detail = (
                    '<div style="margin: 8px 0 16px 20px; color: #6c757d; font-size: 12px;">'
                    "Content pending...</div>"
                )
            else:
                detail = ""

            entries.append(
                '<div style="margin-bottom: 4px;"><strong>&bull;</strong> '
                f'<a href="{escape(item.source_url)}" style="color: #0066cc; text-decoration: none;">'
                f'{escape(item.title or "(no title)")}</a>'
                f'<span style="color: #666;"> [{escape(item.forum or item.group_key)}]</span>'
                f'<span style="color: #999; font-size: 12px;"> ({escape(item.published_date)})</span>'
                f"</div>{detail}"
            )

        sections.append(
            '<h3 style="margin-top: 24px; border-bottom: 1px solid #eee; padding-bottom: 8px;">'
            f"{escape(name)} ({len(items)} new)</h3>"
            f'<div style="margin-left: 8px;">{"".join(entries)}</div>'
        )

    return (
        '<!DOCTYPE html><html><head><meta charset="utf-8"></head>'
        '<body style="font-family: sans-serif; padding: 20px;">'
        f"<h2>Daily Digest: {total} New Posts {badge}</h2>"
        f'<p style="color: #666; font-size: 12px;">Job: {escape(job.id) if job else ""}</p>'
        + "".join(sections)
        + f'<hr><p style="color: #666; font-size: 12px;">Preview generated at {generated_at.isoformat()}</p>'
        "</body></html>"
    )
