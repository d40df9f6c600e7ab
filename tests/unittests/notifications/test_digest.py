from datetime import datetime, timezone

from pagewatch.jobs.job import Item, ItemStatus, Job, JobStatus
from pagewatch.notifications.digest import (
    digest_subject,
    group_items,
    render_digest_html,
    render_preview_html,
)

GENERATED_AT = datetime(2026, 3, 8, 12, 0, tzinfo=timezone.utc)


def make_item(item_id, group_key="alpha", scrape_order=0, **overrides):
    return Item(
        id=item_id,
        title=overrides.pop("title", f"Post {item_id}"),
        source_url=f"https://bbs.example.com/forum/{item_id}.html",
        group_key=group_key,
        scrape_order=scrape_order,
        published_date="2026-03-07",
        **overrides,
    )


def make_job(status=JobStatus.COMPLETE):
    return Job(id="0000000000000001-abcdef", status=status, started_at=GENERATED_AT, updated_at=GENERATED_AT)


def test_group_items_follows_source_order_then_first_appearance():
    items = [
        make_item("1", "zeta"),
        make_item("2", "beta", scrape_order=2),
        make_item("3", "beta", scrape_order=1),
        make_item("4", "eta"),
    ]

    groups = group_items(items, ["alpha", "beta"])

    assert list(groups) == ["beta", "zeta", "eta"]
    assert [item.id for item in groups["beta"]] == ["3", "2"]


def test_digest_subject():
    assert digest_subject("文学城论坛更新", 3) == "文学城论坛更新 - 3 new"


def test_digest_html_escapes_and_truncates():
    items = [
        make_item("1", title="<script>alert(1)</script>", status=ItemStatus.FETCHED, content="x" * 2500),
        make_item("2", status=ItemStatus.SKIPPED, fetch_error="Failed to fetch: 404"),
        make_item("3", status=ItemStatus.SKIPPED),
    ]

    html = render_digest_html({"alpha & co": items}, generated_at=GENERATED_AT)

    assert "Daily Digest: 3 New Posts Found" in html
    assert "alpha &amp; co (3 new)" in html
    assert "<script>" not in html
    assert "&lt;script&gt;" in html
    assert "x" * 2000 + "..." in html
    assert "x" * 2001 not in html
    assert "Failed to fetch: Failed to fetch: 404" in html
    assert "(No content)" in html
    assert GENERATED_AT.isoformat() in html


def test_preview_without_job():
    html = render_preview_html({}, job=None, generated_at=GENERATED_AT)

    assert "No Posts Found" in html
    assert "No job has run yet. Trigger /api/cron first." in html


def test_preview_of_empty_job_shows_status():
    html = render_preview_html({}, job=make_job(JobStatus.FAILED), generated_at=GENERATED_AT)

    assert "0000000000000001-abcdef" in html
    assert ">failed</span>" in html


def test_preview_shows_pending_and_errors():
    groups = {
        "alpha": [
            make_item("1", status=ItemStatus.PENDING),
            make_item("2", status=ItemStatus.SKIPPED, fetch_error="timeout"),
            make_item("3", status=ItemStatus.FETCHED, content="y" * 900),
        ]
    }

    html = render_preview_html(groups, job=make_job(JobStatus.FETCHING), generated_at=GENERATED_AT)

    assert "Daily Digest: 3 New Posts" in html
    assert "Content pending..." in html
    assert "Error: timeout" in html
    assert "y" * 800 + "..." in html
    assert ">fetching</span>" in html
