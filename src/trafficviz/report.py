"""Static HTML index tying the three figures together."""

from __future__ import annotations

import os
from html import escape
from pathlib import Path
from typing import Mapping, Sequence

from .models import LegendBucket, RankEntry


_FIGURES = (
    ("choropleth", "Passenger load per capita"),
    ("network", "Passenger load on the network"),
    ("bar_chart", "Highest per-capita load"),
)


def write_report_index(
    *,
    title: str,
    outputs: Mapping[str, Path],
    legend: Sequence[LegendBucket],
    legend_title: str,
    ranking: Sequence[RankEntry],
    output_html: Path,
) -> Path:
    """Write an HTML page with the rendered figures, legend and ranking table."""
    sections: list[str] = []
    for key, caption in _FIGURES:
        path = outputs.get(key)
        if path is not None and path.exists():
            src = os.path.relpath(path, output_html.parent)
            body = f"  <img src='{escape(src)}' alt='{escape(caption)}'>"
        else:
            body = "  <div class='placeholder'>Figure not rendered</div>"
        sections.append(
            "\n".join(["<section class='figure'>", f"  <h2>{escape(caption)}</h2>", body, "</section>"])
        )

    legend_rows = [
        f"    <li><span class='swatch' style='background:{escape(bucket.color)}'></span>"
        f"{escape(bucket.label)}</li>"
        for bucket in legend
    ]
    ranking_rows = [
        f"    <tr><td>{rank}</td><td>{escape(entry.name)}</td><td>{entry.metric:.0f}</td></tr>"
        for rank, entry in enumerate(ranking, start=1)
    ]

    html = "\n".join(
        [
            "<!doctype html>",
            "<html lang='en'>",
            "<head>",
            "  <meta charset='utf-8'>",
            "  <meta name='viewport' content='width=device-width, initial-scale=1'>",
            f"  <title>{escape(title)}</title>",
            "  <style>",
            "    body { font-family: Arial, sans-serif; margin: 16px; }",
            "    .figure { margin-bottom: 24px; }",
            "    img { display: block; max-width: 100%; }",
            "    .swatch { display: inline-block; width: 18px; height: 18px; margin-right: 8px; }",
            "    ul.legend { list-style: none; padding: 0; }",
            "    table { border-collapse: collapse; }",
            "    td { border-bottom: 1px solid #ddd; padding: 4px 12px; }",
            "    .placeholder {",
            "      border: 1px dashed #bbb;",
            "      color: #666;",
            "      padding: 12px;",
            "      background: #fafafa;",
            "    }",
            "  </style>",
            "</head>",
            "<body>",
            f"  <h1>{escape(title)}</h1>",
            *sections,
            f"  <h2>{escape(legend_title)}</h2>",
            "  <ul class='legend'>",
            *legend_rows,
            "  </ul>",
            "  <h2>Ranking</h2>",
            "  <table>",
            *ranking_rows,
            "  </table>",
            "</body>",
            "</html>",
            "",
        ]
    )
    output_html.parent.mkdir(parents=True, exist_ok=True)
    output_html.write_text(html, encoding="utf-8")
    return output_html
