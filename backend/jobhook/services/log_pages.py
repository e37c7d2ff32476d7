"""
HTML pages for the audit log browser.

Public API:
  render_list_page(entries) -> str
  render_detail_page(entry) -> str
  render_not_found_page(entry_id) -> str
  render_no_raw_html(entry_id) -> str

Every stored value is escaped before it reaches the page.
"""

from datetime import datetime
from html import escape
from typing import Optional

from jobhook.models.audit_log import AuditEntry, AuditEntryType

_STYLE = """
    *, *::before, *::after { box-sizing: border-box; }
    body {
      font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
      margin: 0; padding: 24px;
      background: #0f1117; color: #e1e4e8;
      line-height: 1.6;
    }
    a { color: #58a6ff; text-decoration: none; }
    a:hover { text-decoration: underline; }
    h1 { font-size: 1.5rem; margin: 0 0 24px; color: #fff; }
    .badge {
      display: inline-block; padding: 2px 8px; border-radius: 12px;
      font-size: 0.75rem; font-weight: 600;
    }
    .badge-error { background: #da3633; color: #fff; }
    .badge-success { background: #238636; color: #fff; }
    .badge-count { background: #30363d; color: #8b949e; }
    .card {
      background: #161b22; border: 1px solid #30363d; border-radius: 8px;
      padding: 16px; margin-bottom: 12px;
    }
    .card:hover { border-color: #58a6ff; }
    .card-title { font-weight: 600; color: #fff; margin-bottom: 4px; }
    .card-meta { font-size: 0.85rem; color: #8b949e; }
    .card-meta span { margin-right: 16px; }
    .empty {
      text-align: center; padding: 48px; color: #8b949e;
      background: #161b22; border-radius: 8px; border: 1px solid #30363d;
    }
    .detail-row { margin-bottom: 12px; }
    .detail-label { font-size: 0.8rem; text-transform: uppercase; color: #8b949e; }
    .detail-value { color: #e1e4e8; word-break: break-all; }
    .btn {
      display: inline-block; padding: 8px 16px; border-radius: 6px;
      font-size: 0.85rem; font-weight: 600;
      border: 1px solid #30363d; background: #21262d; color: #c9d1d9;
      margin-right: 8px;
    }
    .btn-primary { background: #1f6feb; border-color: #1f6feb; color: #fff; }
    iframe {
      width: 100%; height: 600px; border: 1px solid #30363d;
      border-radius: 8px; background: #fff; margin-top: 12px;
    }
    .top-bar {
      display: flex; align-items: center; justify-content: space-between;
      margin-bottom: 24px; flex-wrap: wrap; gap: 12px;
    }
"""


def _page(title: str, body: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{escape(title)} | jobhook</title>
  <style>{_STYLE}</style>
</head>
<body>{body}</body>
</html>"""


def _truncate(value: str, max_chars: int) -> str:
    return value[:max_chars] + "..." if len(value) > max_chars else value


def _format_timestamp(value: str, fmt: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime(fmt)
    except ValueError:
        return value


def _kb(length: int) -> str:
    return f"{length / 1024:.1f} KB"


def _badge(entry: AuditEntry) -> tuple[str, str]:
    """(badge html, headline) for an entry."""
    if entry.type == AuditEntryType.SUCCESS:
        return '<span class="badge badge-success">Success</span>', "Job accepted"
    return '<span class="badge badge-error">Error</span>', entry.reason or "Unknown error"


def _detail_row(label: str, value_html: Optional[str]) -> str:
    if not value_html:
        return ""
    return f"""
    <div class="detail-row">
      <div class="detail-label">{label}</div>
      <div class="detail-value">{value_html}</div>
    </div>"""


def render_list_page(entries: list[AuditEntry]) -> str:
    if not entries:
        return _page("Job Logs", """
      <div class="top-bar">
        <h1>Job Logs</h1>
        <span class="badge badge-count">0 entries</span>
      </div>
      <div class="empty">
        <p>No job logs yet.</p>
        <p>Successes and failures (with job address) are logged when the webhook processes job-offer emails.</p>
      </div>
    """)

    cards = []
    for entry in entries:
        badge, headline = _badge(entry)
        entry_id = escape(entry.id or "")
        address = (
            f"<span>{escape(_truncate(entry.job_address, 50))}</span>"
            if entry.job_address else ""
        )
        size = f"<span>{_kb(entry.html_length)}</span>" if entry.html_length else ""
        cards.append(f"""
      <a href="/api/logs?id={entry_id}" style="text-decoration:none;color:inherit;">
        <div class="card">
          <div class="card-title">{badge} {escape(headline)}</div>
          <div class="card-meta">
            <span>{escape(_format_timestamp(entry.timestamp, "%b %d, %Y, %I:%M %p"))}</span>
            {address}
            <span>{escape(entry.page_title or "No title")}</span>
            {size}
          </div>
          <div class="card-meta" style="margin-top:4px;">
            <span>{escape(_truncate(entry.url or "", 80))}</span>
          </div>
        </div>
      </a>""")

    noun = "entry" if len(entries) == 1 else "entries"
    return _page("Job Logs", f"""
    <div class="top-bar">
      <h1>Job Logs</h1>
      <span class="badge badge-count">{len(entries)} {noun}</span>
    </div>
    {"".join(cards)}
  """)


def render_detail_page(entry: AuditEntry) -> str:
    badge, headline = _badge(entry)
    entry_id = escape(entry.id or "")
    html_length = entry.html_length

    rows = "".join([
        _detail_row("Timestamp", escape(_format_timestamp(entry.timestamp, "%A, %B %d, %Y %I:%M:%S %p"))),
        _detail_row("Job Address", escape(entry.job_address) if entry.job_address else None),
        _detail_row("Page Title", escape(entry.page_title or "(none)")),
        _detail_row(
            "URL",
            f'<a href="{escape(entry.url or "#")}" target="_blank" rel="noopener">'
            f'{escape(entry.url or "(none)")}</a>',
        ),
        _detail_row("Body Preview", escape(entry.body_preview[:500]) if entry.body_preview else None),
        _detail_row(
            "Raw HTML Size",
            f"{_kb(html_length)} ({html_length:,} chars)" if html_length else None,
        ),
    ])

    raw_button = (
        f'<a class="btn btn-primary" href="/api/logs?id={entry_id}&raw=1" target="_blank">Open Raw HTML</a>'
        if html_length else ""
    )
    preview = (
        f"""
    <div class="detail-row" style="margin-top:20px;">
      <div class="detail-label">HTML Preview</div>
      <iframe src="/api/logs?id={entry_id}&raw=1" sandbox="allow-same-origin"></iframe>
    </div>"""
        if html_length else ""
    )

    return _page(f"Log {entry.id}", f"""
    <div style="margin-bottom:20px;">
      <a href="/api/logs">&larr; Back to list</a>
    </div>
    <h1>{badge} {escape(headline)}</h1>
    {rows}
    <div style="margin-top:20px;">
      {raw_button}
      <a class="btn" href="/api/logs?id={entry_id}&json=1" target="_blank">View JSON</a>
    </div>
    {preview}
  """)


def render_not_found_page(entry_id: str) -> str:
    return _page(
        "Log Not Found",
        f'<p>No log entry with id <code>{escape(entry_id)}</code></p>'
        f'<a href="/api/logs">&larr; Back to list</a>',
    )


def render_no_raw_html(entry_id: str) -> str:
    return (
        "<p>No raw HTML for this log (success entries do not store page HTML).</p>"
        f'<p><a href="/api/logs?id={escape(entry_id)}">Back to log</a></p>'
    )
