from __future__ import annotations

import datetime as _dt
import logging
from pathlib import Path
from typing import Any, Dict

from jinja2 import Template

logger = logging.getLogger(__name__)


_REPORT_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>mutcounter report: {{ prefix }}</title>
  <style>
    body { font-family: Arial, Helvetica, sans-serif; margin: 24px; }
    code, pre { background: #f6f8fa; padding: 2px 4px; border-radius: 4px; }
    h1, h2, h3 { margin-top: 1.2em; }
    table { border-collapse: collapse; margin-top: 0.6em; }
    th, td { border: 1px solid #ddd; padding: 8px; }
    th { background: #f2f2f2; text-align: left; }
    .grid { display: grid; grid-template-columns: 1fr 1fr; gap: 16px; }
    .card { border: 1px solid #ddd; border-radius: 8px; padding: 12px; }
    .small { color: #666; font-size: 0.9em; }
    img { max-width: 100%; height: auto; border: 1px solid #eee; border-radius: 6px; }
  </style>
</head>
<body>

<h1>mutcounter report</h1>
<p class="small">Generated: {{ generated_at }}</p>

<h2>Run summary</h2>
<div class="grid">
  <div class="card">
    <h3>Input</h3>
    <table>
      <tr><th>BAM</th><td><code>{{ run.bam_path }}</code></td></tr>
      <tr><th>Output prefix</th><td><code>{{ prefix }}</code></td></tr>
      <tr><th>Chromosomes</th><td>{{ run.chromosomes }} (lengths from {{ run.lengths_from }})</td></tr>
    </table>
  </div>
  <div class="card">
    <h3>Settings</h3>
    <table>
      <tr><th>Edge margin</th><td>{{ run.edge_margin }}</td></tr>
      <tr><th>Coverage threshold</th><td>{{ run.coverage_threshold }}</td></tr>
      <tr><th>Paired</th><td>{{ run.paired }}</td></tr>
      <tr><th>Skip duplicates</th><td>{{ run.skip_duplicates }}</td></tr>
    </table>
  </div>
</div>

<h2>Reads</h2>
<table>
  <tr><th>Total records seen</th><td>{{ read_counts.reads_total }}</td></tr>
  <tr><th>Unmapped skipped</th><td>{{ read_counts.reads_unmapped }}</td></tr>
  <tr><th>Duplicates skipped</th><td>{{ read_counts.reads_skipped_duplicates }}</td></tr>
  <tr><th>Secondary skipped</th><td>{{ read_counts.reads_skipped_secondary }}</td></tr>
  <tr><th>Supplementary skipped</th><td>{{ read_counts.reads_skipped_supplementary }}</td></tr>
  <tr><th>Mate pairs</th><td>{{ read_counts.pairs }}</td></tr>
  <tr><th>Orphan mates</th><td>{{ read_counts.orphan_mates }}</td></tr>
  <tr><th>Fragments counted</th><td>{{ walk.fragments_counted }}</td></tr>
  <tr><th>Fragments skipped (errors)</th><td>{{ walk.fragments_failed }}</td></tr>
</table>

{% if walk.errors_by_kind %}
<h2>Alignment errors</h2>
<table>
  {% for kind, n in walk.errors_by_kind|dictsort %}
  <tr><th>{{ kind }}</th><td>{{ n }}</td></tr>
  {% endfor %}
</table>
{% if walk.diagnostics %}
<h3>First messages</h3>
<pre>{% for msg in walk.diagnostics[:20] %}{{ msg }}
{% endfor %}</pre>
{% endif %}
{% endif %}

<h2>Counts</h2>
<table>
  <tr><th>Matches</th><td>{{ totals.match }}</td></tr>
  <tr><th>Substitutions</th><td>{{ totals.substitution }}</td></tr>
  <tr><th>Deletions</th><td>{{ totals.deletion }}</td></tr>
  <tr><th>Insertions</th><td>{{ totals.insertion }}</td></tr>
  <tr><th>Positions reported</th><td>{{ run.positions_reported }}</td></tr>
</table>

<h2>Plots</h2>
<div class="grid">
  <div class="card">
    <h3>Mutation rates</h3>
    <img src="{{ plots.mutation_rate_hist }}" alt="mutation rate histogram">
  </div>
  <div class="card">
    <h3>Events</h3>
    <img src="{{ plots.event_totals }}" alt="event counts">
  </div>
</div>
{% if plots.fragment_outcomes %}
<div class="grid" style="margin-top:16px;">
  <div class="card">
    <h3>Fragments</h3>
    <img src="{{ plots.fragment_outcomes }}" alt="fragment outcomes">
  </div>
</div>
{% endif %}

<h2>Outputs</h2>
<ul>
  {% for name, path in outputs|dictsort %}
  <li><code>{{ path }}</code> ({{ name }})</li>
  {% endfor %}
  <li><code>summary.json</code> (machine-readable summary)</li>
</ul>

<h2>Interpretation notes</h2>
<ul>
  <li>Rates use matches + deletions + substitutions as the denominator; insertions are listed but not included.</li>
  <li>Bases within the edge margin of each read and soft-clipped bases are not counted.</li>
  <li>Where mates overlap, each position is counted once per fragment.</li>
</ul>

<hr>
<p class="small">mutcounter {{ version }}</p>
</body>
</html>"""
)


def render_report(
    *,
    outdir: str | Path,
    version: str,
    run: Dict[str, Any],
    plots: Dict[str, str],
) -> Path:
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)

    prefix = run.get("prefix") or "mutcounter"
    html = _REPORT_TEMPLATE.render(
        generated_at=_dt.datetime.now().isoformat(timespec="seconds"),
        version=version,
        prefix=prefix,
        run=run,
        read_counts=run.get("read_counts", {}),
        walk=run.get("walk", {}),
        totals=run.get("event_totals", {}),
        outputs=run.get("outputs", {}),
        plots=plots,
    )

    out_path = outdir / "report.html"
    out_path.write_text(html, encoding="utf-8")
    logger.info("Wrote report to %s", out_path)
    return out_path
