"""Timeline visualization of a workflow run as a standalone HTML page.

This module generates a timeline view with:
- One horizontal bar per lane, positioned by the timeline layout engine
- Color-coding by unit status
- Candlestick cursor for the selected lane
- Zoom controls and a details panel
- Dark mode toggle
"""
from __future__ import annotations

import html
import json
from typing import Any

from wflens.diagrams.timeline_layout import (
    Bar,
    Candlestick,
    TimelineLayout,
    Tick,
    format_relative_duration,
)
from wflens.tree.status import format_unit_duration
from wflens.tree.unit_model import FAILURE_STATUSES, LogicalUnit, UnitStatus


# Timeline layout constants
ROW_HEIGHT = 28
ROW_GAP = 8
LABEL_WIDTH = 220
PADDING = 40
AXIS_HEIGHT = 40
MIN_BAR_PX = 4  # Minimum visible width for zero-length units

STATUS_COLORS: dict[str, dict[str, str]] = {
    UnitStatus.RUNNING.value: {"bg": "#f59e0b", "text": "#000", "stroke": "#d97706"},
    UnitStatus.COMPLETED.value: {"bg": "#10b981", "text": "#fff", "stroke": "#0d9668"},
    UnitStatus.FIRED.value: {"bg": "#10b981", "text": "#fff", "stroke": "#0d9668"},
    UnitStatus.SIGNALED.value: {"bg": "#3b82f6", "text": "#fff", "stroke": "#2563eb"},
    UnitStatus.FAILED.value: {"bg": "#ef4444", "text": "#fff", "stroke": "#dc2626"},
    UnitStatus.TIMED_OUT.value: {"bg": "#ef4444", "text": "#fff", "stroke": "#dc2626"},
    UnitStatus.CANCELED.value: {"bg": "#a78bfa", "text": "#000", "stroke": "#8b5cf6"},
    UnitStatus.TERMINATED.value: {"bg": "#a78bfa", "text": "#000", "stroke": "#8b5cf6"},
    "default": {"bg": "#6b7280", "text": "#fff", "stroke": "#4b5563"},
}


def _lane_data(lane: LogicalUnit, layout: TimelineLayout) -> dict[str, Any]:
    """JSON payload shown in the details panel."""
    start_offset = layout.window.offset_of(lane.start_time) if layout.window else None
    return {
        "unit_id": lane.unit_id,
        "name": lane.display_name,
        "kind": lane.kind.value,
        "status": lane.status.value,
        "start": format_relative_duration(start_offset) if start_offset is not None else "",
        "duration": format_unit_duration(lane),
        "attempts": lane.attempts,
        "events": [
            {
                "id": e.event_id,
                "type": e.event_type,
                "time": e.timestamp.isoformat(),
                "failure": e.failure,
                "result": e.result,
            }
            for e in lane.member_events
        ],
    }


def _row_y(row: int) -> int:
    return PADDING + AXIS_HEIGHT + row * (ROW_HEIGHT + ROW_GAP)


def _render_lane(row: int, lane: LogicalUnit, bar: Bar, layout: TimelineLayout, selected: bool) -> str:
    """Render a single lane (label plus bar) as SVG."""
    colors = STATUS_COLORS.get(lane.status.value, STATUS_COLORS["default"])
    y = _row_y(row)

    x_start = LABEL_WIDTH + bar.start
    bar_width = max(bar.end - bar.start, MIN_BAR_PX) if bar.visible else 0

    classes = ["timeline-row"]
    if selected:
        classes.append("selected")
    if lane.status in FAILURE_STATUSES:
        classes.append("error")
    if lane.is_running:
        classes.append("running")

    name = html.escape(lane.display_name)
    data = html.escape(json.dumps(_lane_data(lane, layout)))
    attempts = f" ×{lane.attempts}" if lane.attempts > 1 else ""

    bar_svg = ""
    if bar_width:
        bar_svg = f'''
        <rect x="{x_start}" y="{y}" width="{bar_width}" height="{ROW_HEIGHT}"
              rx="4" ry="4"
              fill="{colors['bg']}" stroke="{colors['stroke']}" stroke-width="1"
              class="timeline-bar" />'''

    return f'''
    <g class="{' '.join(classes)}" data-unit-id="{html.escape(lane.unit_id)}" data-unit='{data}'>
        <text x="{PADDING}" y="{y + ROW_HEIGHT // 2 + 4}" class="row-label" text-anchor="start">
            {name}{attempts}
        </text>{bar_svg}
    </g>'''


def _render_axis(ticks: tuple[Tick, ...], chart_width: int) -> str:
    """Render the time axis with tick marks above the lanes."""
    axis_y = PADDING + AXIS_HEIGHT - 10
    parts = [
        f'<line x1="{LABEL_WIDTH}" y1="{axis_y}" x2="{LABEL_WIDTH + chart_width}" y2="{axis_y}" '
        f'stroke="var(--border-color)" stroke-width="2" />'
    ]
    for tick in ticks:
        x = LABEL_WIDTH + tick.position
        parts.append(
            f'<line x1="{x}" y1="{axis_y - 5}" x2="{x}" y2="{axis_y + 5}" stroke="var(--border-color)" />'
            f'<text x="{x}" y="{axis_y - 10}" class="axis-label" text-anchor="middle">{html.escape(tick.label)}</text>'
        )
    return f'<g class="time-axis">{"".join(parts)}</g>'


def _render_cursor(cursor: Candlestick, rows: int, selected_row: int, chart_width: int) -> str:
    """Candlestick marks: start/end lines, gap wick and duration label."""
    top = PADDING + AXIS_HEIGHT - 10
    bottom = _row_y(rows)
    parts: list[str] = []

    if cursor.wick is not None:
        wick_start, wick_end = cursor.wick
        y = _row_y(selected_row) + ROW_HEIGHT // 2
        parts.append(
            f'<line x1="{LABEL_WIDTH + wick_start}" y1="{y}" x2="{LABEL_WIDTH + wick_end}" y2="{y}" '
            f'class="cursor-wick" />'
        )

    if 0 <= cursor.start_pos < chart_width:
        x = LABEL_WIDTH + cursor.start_pos
        parts.append(f'<line x1="{x}" y1="{top}" x2="{x}" y2="{bottom}" class="cursor-start" />')
        parts.append(
            f'<text x="{LABEL_WIDTH + cursor.start_label_pos}" y="{PADDING}" class="cursor-label">'
            f'{html.escape(cursor.start_label)}</text>'
        )

    if cursor.end_pos is not None and cursor.start_pos < cursor.end_pos < chart_width:
        x = LABEL_WIDTH + cursor.end_pos
        parts.append(f'<line x1="{x}" y1="{top}" x2="{x}" y2="{bottom}" class="cursor-end" />')

    if cursor.duration_label is not None and cursor.duration_label_pos is not None:
        parts.append(
            f'<text x="{LABEL_WIDTH + cursor.duration_label_pos}" y="{PADDING + 14}" class="cursor-duration">'
            f'{html.escape(cursor.duration_label)}</text>'
        )

    return f'<g class="cursor">{"".join(parts)}</g>'


def render_timeline_viewer(layout: TimelineLayout, title: str = "Workflow Timeline") -> str:
    """Render a timeline visualization as interactive HTML.

    Args:
        layout: Layout computed with one cell per pixel of chart width.
        title: Page title.

    Returns:
        Complete HTML document string.
    """
    chart_width = layout.bar_width
    num_rows = max(len(layout.lanes), 1)
    svg_width = LABEL_WIDTH + chart_width + PADDING * 2
    svg_height = _row_y(num_rows) + PADDING

    cursor = layout.cursor
    selected_row = -1
    if cursor is not None:
        for row, lane in enumerate(layout.lanes):
            if lane.unit_id == cursor.unit_id:
                selected_row = row
                break

    if layout.is_empty:
        body_svg = (
            f'<text x="{svg_width // 2}" y="{PADDING + AXIS_HEIGHT}" class="empty-state" '
            f'text-anchor="middle">No timeline data</text>'
        )
    else:
        lanes_svg = "\n".join(
            _render_lane(row, lane, bar, layout, row == selected_row)
            for row, (lane, bar) in enumerate(zip(layout.lanes, layout.bars))
        )
        cursor_svg = _render_cursor(cursor, num_rows, selected_row, chart_width) if cursor else ""
        body_svg = _render_axis(layout.ticks, chart_width) + lanes_svg + cursor_svg

    # Stats
    running_count = sum(1 for lane in layout.lanes if lane.is_running)
    failed_count = sum(1 for lane in layout.lanes if lane.status in FAILURE_STATUSES)
    retried_count = sum(1 for lane in layout.lanes if lane.attempts > 1)
    window_label = format_relative_duration(layout.window.duration) if layout.window else "0s"
    status_line = html.escape(cursor.status_line()) if cursor else ""

    return f'''<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)}</title>
    <style>
        :root {{
            --bg-color: #ffffff;
            --text-color: #1f2937;
            --border-color: #e5e7eb;
            --panel-bg: #f9fafb;
            --accent-color: #3b82f6;
            --error-color: #ef4444;
            --success-color: #10b981;
            --warning-color: #f59e0b;
            --muted-color: #6b7280;
        }}

        [data-theme="dark"] {{
            --bg-color: #1f2937;
            --text-color: #f9fafb;
            --border-color: #374151;
            --panel-bg: #111827;
            --accent-color: #60a5fa;
            --error-color: #f87171;
            --success-color: #34d399;
            --warning-color: #fbbf24;
            --muted-color: #9ca3af;
        }}

        * {{ margin: 0; padding: 0; box-sizing: border-box; }}

        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            background: var(--bg-color);
            color: var(--text-color);
            min-height: 100vh;
            display: flex;
            flex-direction: column;
        }}

        header {{
            background: var(--panel-bg);
            border-bottom: 1px solid var(--border-color);
            padding: 1rem 1.5rem;
            display: flex;
            justify-content: space-between;
            align-items: center;
        }}

        .title {{ font-size: 1.25rem; font-weight: 600; }}
        .controls {{ display: flex; gap: 0.75rem; align-items: center; }}

        .theme-btn {{
            background: transparent;
            border: 1px solid var(--border-color);
            color: var(--text-color);
            padding: 0.5rem;
            border-radius: 0.375rem;
            cursor: pointer;
            font-size: 1rem;
        }}

        main {{ flex: 1; display: flex; overflow: hidden; }}
        .svg-container {{ flex: 1; overflow: auto; position: relative; }}
        #timeline {{ transform-origin: 0 0; }}

        .row-label {{ font-size: 0.75rem; fill: var(--text-color); font-weight: 500; }}
        .axis-label {{ font-size: 0.625rem; fill: var(--muted-color); }}
        .empty-state {{ font-size: 0.875rem; fill: var(--muted-color); }}
        .timeline-row {{ cursor: pointer; }}
        .timeline-row:hover .timeline-bar {{ filter: brightness(1.1); }}
        .timeline-row.selected .timeline-bar {{ stroke-width: 3; stroke: var(--accent-color); }}
        .timeline-row.error .timeline-bar {{ stroke: var(--error-color); }}
        .timeline-row.running .timeline-bar {{ stroke-dasharray: 4 2; }}

        .cursor-start {{ stroke: var(--accent-color); stroke-width: 1; }}
        .cursor-end {{ stroke: var(--success-color); stroke-width: 1; }}
        .cursor-wick {{ stroke: var(--muted-color); stroke-width: 1; stroke-dasharray: 2 2; }}
        .cursor-label {{ font-size: 0.625rem; fill: var(--accent-color); font-weight: 600; }}
        .cursor-duration {{ font-size: 0.625rem; fill: var(--success-color); font-weight: 600; }}

        .zoom-controls {{
            position: fixed;
            bottom: 4rem;
            right: 1rem;
            display: flex;
            gap: 0.25rem;
            background: var(--panel-bg);
            padding: 0.25rem;
            border-radius: 0.375rem;
            border: 1px solid var(--border-color);
        }}

        .zoom-btn {{
            background: transparent;
            border: none;
            color: var(--text-color);
            width: 2rem;
            height: 2rem;
            cursor: pointer;
            font-size: 1rem;
            border-radius: 0.25rem;
        }}

        .zoom-btn:hover {{ background: var(--border-color); }}

        /* Details panel */
        .details-panel {{
            width: 380px;
            background: var(--panel-bg);
            border-left: 1px solid var(--border-color);
            display: flex;
            flex-direction: column;
        }}

        .details-panel.collapsed {{ display: none; }}

        .details-header {{
            padding: 1rem;
            border-bottom: 1px solid var(--border-color);
            display: flex;
            justify-content: space-between;
            align-items: center;
        }}

        .details-title {{ font-weight: 600; }}

        .details-close {{
            background: transparent;
            border: none;
            font-size: 1.25rem;
            cursor: pointer;
            color: var(--muted-color);
        }}

        .details-content {{ flex: 1; overflow-y: auto; padding: 1rem; }}
        .detail-section {{ margin-bottom: 1rem; }}

        .detail-label {{
            font-size: 0.75rem;
            color: var(--muted-color);
            text-transform: uppercase;
            margin-bottom: 0.25rem;
        }}

        .detail-value {{ font-size: 0.875rem; }}

        .json-viewer {{
            background: var(--bg-color);
            border: 1px solid var(--border-color);
            border-radius: 0.375rem;
            padding: 0.75rem;
            font-family: 'Monaco', 'Menlo', monospace;
            font-size: 0.75rem;
            white-space: pre-wrap;
            word-break: break-word;
            max-height: 300px;
            overflow-y: auto;
        }}

        /* Stats bar */
        .stats-bar {{
            background: var(--panel-bg);
            border-top: 1px solid var(--border-color);
            padding: 0.75rem 1.5rem;
            display: flex;
            gap: 2rem;
        }}

        .stat {{ display: flex; gap: 0.5rem; align-items: center; }}
        .stat-label {{ font-size: 0.75rem; color: var(--muted-color); }}
        .stat-value {{ font-size: 0.875rem; font-weight: 600; }}
    </style>
</head>
<body>
    <header>
        <span class="title">{html.escape(title)}</span>
        <div class="controls">
            <span class="stat-value" id="status-line">{status_line}</span>
            <button class="theme-btn" onclick="toggleTheme()" title="Toggle dark mode">🌙</button>
        </div>
    </header>

    <main>
        <div class="svg-container">
            <svg id="timeline" width="{svg_width}" height="{svg_height}" viewBox="0 0 {svg_width} {svg_height}">
                <g class="timeline-content">
                    {body_svg}
                </g>
            </svg>
            <div class="zoom-controls">
                <button class="zoom-btn" onclick="zoomBy(1.2)" title="Zoom in">+</button>
                <button class="zoom-btn" onclick="zoomBy(0.8)" title="Zoom out">−</button>
                <button class="zoom-btn" onclick="resetZoom()" title="Reset">↺</button>
            </div>
        </div>

        <aside class="details-panel collapsed" id="details-panel">
            <div class="details-header">
                <span class="details-title">Unit Details</span>
                <button class="details-close" onclick="closeDetails()">×</button>
            </div>
            <div class="details-content" id="details-content"></div>
        </aside>
    </main>

    <footer class="stats-bar">
        <div class="stat">
            <span class="stat-label">Lanes:</span>
            <span class="stat-value">{len(layout.lanes)}</span>
        </div>
        <div class="stat">
            <span class="stat-label">Window:</span>
            <span class="stat-value">{window_label}</span>
        </div>
        <div class="stat">
            <span class="stat-label">Running:</span>
            <span class="stat-value" style="color: var(--warning-color)">{running_count}</span>
        </div>
        <div class="stat">
            <span class="stat-label">Failed:</span>
            <span class="stat-value" style="color: var(--error-color)">{failed_count}</span>
        </div>
        <div class="stat">
            <span class="stat-label">Retried:</span>
            <span class="stat-value">{retried_count}</span>
        </div>
    </footer>

    <script>
    const ZOOM_MIN = 0.5, ZOOM_MAX = 5.0;
    let zoom = 1.0;

    document.addEventListener('DOMContentLoaded', function() {{
        document.querySelectorAll('.timeline-row').forEach(el => {{
            el.addEventListener('click', function(e) {{
                e.stopPropagation();
                selectUnit(this.dataset.unitId);
            }});
        }});
    }});

    function zoomBy(factor) {{
        zoom = Math.min(Math.max(zoom * factor, ZOOM_MIN), ZOOM_MAX);
        document.getElementById('timeline').style.transform = `scale(${{zoom}})`;
    }}

    function resetZoom() {{
        zoom = 1.0;
        document.getElementById('timeline').style.transform = '';
    }}

    function selectUnit(unitId) {{
        document.querySelectorAll('.timeline-row.selected').forEach(el => {{
            el.classList.remove('selected');
        }});
        const row = document.querySelector(`.timeline-row[data-unit-id="${{unitId}}"]`);
        if (row) {{
            row.classList.add('selected');
            showDetails(row.dataset.unit);
        }}
    }}

    function showDetails(unitJson) {{
        const unit = JSON.parse(unitJson);
        let html = `
            <div class="detail-section">
                <div class="detail-label">Name</div>
                <div class="detail-value">${{escapeHtml(unit.name)}} (${{escapeHtml(unit.kind)}})</div>
            </div>
            <div class="detail-section">
                <div class="detail-label">Status</div>
                <div class="detail-value">${{escapeHtml(unit.status)}}</div>
            </div>
            <div class="detail-section">
                <div class="detail-label">Start / Duration</div>
                <div class="detail-value">${{escapeHtml(unit.start)}} / ${{escapeHtml(unit.duration)}}</div>
            </div>
            <div class="detail-section">
                <div class="detail-label">Attempts</div>
                <div class="detail-value">${{unit.attempts}}</div>
            </div>
            <div class="detail-section">
                <div class="detail-label">Events</div>
                <pre class="json-viewer">${{escapeHtml(JSON.stringify(unit.events, null, 2))}}</pre>
            </div>
        `;
        document.getElementById('details-content').innerHTML = html;
        document.getElementById('details-panel').classList.remove('collapsed');
    }}

    function closeDetails() {{
        document.getElementById('details-panel').classList.add('collapsed');
    }}

    function toggleTheme() {{
        const body = document.body;
        const btn = document.querySelector('.theme-btn');
        if (body.getAttribute('data-theme') === 'dark') {{
            body.removeAttribute('data-theme');
            btn.textContent = '🌙';
        }} else {{
            body.setAttribute('data-theme', 'dark');
            btn.textContent = '☀️';
        }}
    }}

    function escapeHtml(str) {{
        if (typeof str !== 'string') return str;
        return str.replace(/&/g, '&amp;')
                  .replace(/</g, '&lt;')
                  .replace(/>/g, '&gt;')
                  .replace(/"/g, '&quot;');
    }}
    </script>
</body>
</html>'''
