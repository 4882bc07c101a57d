"""
Weekly report: sales for the current Sunday-Saturday week and the low-stock list,
written as Markdown and HTML to REPORTS_DIR/<year>-W<nn>.{md,html}.

Both files are rendered from Jinja2 templates over the same context; the HTML
template autoescapes every value.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from jinja2 import Template
from sqlalchemy.orm import Session

from retail_hub import config
from retail_hub.errors import UpstreamError
from retail_hub.services.inventory import low_stock_items
from retail_hub.services.notifications import notify
from retail_hub.services.sales import orders_between, total
from retail_hub.utils import utcnow, isoformat, week_bounds, iso_week_label, to_float

logger = logging.getLogger(__name__)

CURRENCY = "DKK"
RECENT_ORDERS = 10

MARKDOWN_TEMPLATE = """\
# Weekly Retail Report
## Week {{ week_number }}, {{ year }}
**Period:** {{ week_start.strftime('%a %b %d %Y') }} - {{ week_end.strftime('%a %b %d %Y') }}

## Sales Summary
- **Total Sales:** {{ money(shopify_total + spy_total) }}
- **Shopify Orders:** {{ shopify_orders|length }} orders ({{ money(shopify_total) }})
- **SpySystem Orders:** {{ spy_orders|length }} orders ({{ money(spy_total) }})

## Inventory Alerts
{% if not low_stock %}
No low stock items this week.
{% else %}
**{{ low_stock|length }} items below minimum stock:**
{% for item in low_stock %}
- {{ item.name }} ({{ item.sku }}): {{ item.stock_level }}/{{ item.min_stock }}
{% endfor %}
{% endif %}

## Recent Orders
{% for order in recent_orders %}
{{ loop.index }}. {{ money(order.total_amount) }} - {{ order.created_at.strftime('%Y-%m-%d') }}
{% endfor %}

---
*Generated on {{ generated_at.strftime('%Y-%m-%d %H:%M') }} UTC*
"""

HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
<title>Weekly Retail Report</title>
<style>body { font-family: Arial, sans-serif; margin: 40px; } h1 { border-bottom: 2px solid #007acc; } h2 { margin-top: 30px; }</style>
</head>
<body>
<h1>Weekly Retail Report</h1>
<h2>Week {{ week_number }}, {{ year }}</h2>
<p><strong>Period:</strong> {{ week_start.strftime('%a %b %d %Y') }} - {{ week_end.strftime('%a %b %d %Y') }}</p>
<h2>Sales Summary</h2>
<ul>
<li><strong>Total Sales:</strong> {{ money(shopify_total + spy_total) }}</li>
<li><strong>Shopify Orders:</strong> {{ shopify_orders|length }} orders ({{ money(shopify_total) }})</li>
<li><strong>SpySystem Orders:</strong> {{ spy_orders|length }} orders ({{ money(spy_total) }})</li>
</ul>
<h2>Inventory Alerts</h2>
{% if not low_stock %}
<p>No low stock items this week.</p>
{% else %}
<p><strong>{{ low_stock|length }} items below minimum stock:</strong></p>
<ul>
{% for item in low_stock %}
<li>{{ item.name }} ({{ item.sku }}): {{ item.stock_level }}/{{ item.min_stock }}</li>
{% endfor %}
</ul>
{% endif %}
<h2>Recent Orders</h2>
<ol>
{% for order in recent_orders %}
<li>{{ money(order.total_amount) }} - {{ order.created_at.strftime('%Y-%m-%d') }}</li>
{% endfor %}
</ol>
<hr>
<p><em>Generated on {{ generated_at.strftime('%Y-%m-%d %H:%M') }} UTC</em></p>
</body>
</html>
"""

_markdown = Template(MARKDOWN_TEMPLATE, trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True)
_html = Template(HTML_TEMPLATE, trim_blocks=True, lstrip_blocks=True, keep_trailing_newline=True, autoescape=True)


def _money(value: Any) -> str:
    return f"{to_float(value):.2f} {CURRENCY}"


def _context(data: dict[str, Any]) -> dict[str, Any]:
    return dict(data, money=_money, recent_orders=data["shopify_orders"][:RECENT_ORDERS])


def render_markdown(data: dict[str, Any]) -> str:
    return _markdown.render(**_context(data))


def render_html(data: dict[str, Any]) -> str:
    return _html.render(**_context(data))


def weekly_report(db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    """Build, write and announce the current week's report."""
    now = now or utcnow()
    week_start, week_end = week_bounds(now)
    year, week_number = iso_week_label(week_start)
    shopify, spy = orders_between(db, week_start, week_end)
    data = {
        "week_start": week_start,
        "week_end": week_end,
        "week_number": week_number,
        "year": year,
        "shopify_orders": shopify,
        "spy_orders": spy,
        "shopify_total": total(shopify),
        "spy_total": total(spy),
        "low_stock": low_stock_items(db),
        "generated_at": now,
    }
    markdown = render_markdown(data)

    stem = f"{year}-W{week_number:02d}"
    filename = f"{stem}.md"
    html_filename = f"{stem}.html"
    out_dir = config.reports_dir()
    try:
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / filename).write_text(markdown, encoding="utf-8")
        (out_dir / html_filename).write_text(render_html(data), encoding="utf-8")
    except OSError as e:
        logger.error("report_write_failed", extra={"path": str(out_dir), "error": str(e)})
        raise UpstreamError(f"Failed to write report: {e}") from e

    notify(
        db,
        "Weekly Report Generated",
        f"Week {week_number} report for {year} has been generated and is available in {out_dir}.",
        "success",
    )
    logger.info("weekly_report_generated", extra={"report_week": stem})
    return {
        "success": True,
        "report_week": f"{year}-W{week_number}",
        "filename": filename,
        "html_filename": html_filename,
        "generated_at": isoformat(now),
        "summary": {
            "total_sales": round(data["shopify_total"] + data["spy_total"], 2),
            "shopify_orders": len(shopify),
            "spy_orders": len(spy),
            "low_stock_items": len(data["low_stock"]),
        },
    }
