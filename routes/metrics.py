"""
Derived metrics for the dashboard cards.

Every function here is pure: series come straight from the backend's
``/dashboard`` payload, are never mutated, and missing or unparsable numbers
count as zero.
"""
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from routes.utils import to_decimal

TREND_UP = 'up'
TREND_DOWN = 'down'
TREND_NEUTRAL = 'neutral'

TOP_N = 5

ZERO = Decimal('0.00')
_PCT = Decimal('0.1')


def metric_value(point, field_name):
    if not isinstance(point, Mapping):
        return ZERO
    return to_decimal(point.get(field_name))


def exchange_net(point):
    return metric_value(point, 'totalPaid') - metric_value(point, 'totalPayback')


def _value_fn(field_name):
    return lambda point: metric_value(point, field_name)


def total(points, field_name=None, value_fn=None):
    value_fn = value_fn or _value_fn(field_name)
    return sum((value_fn(p) for p in points or ()), ZERO)


def last_point(points):
    if not points:
        return None
    return points[-1]


def trend_of(point, field_name=None, value_fn=None):
    if point is None:
        return None
    value_fn = value_fn or _value_fn(field_name)
    return TREND_UP if value_fn(point) >= 0 else TREND_DOWN


def safe_divide(numerator, denominator):
    denominator = to_decimal(denominator) if not isinstance(denominator, Decimal) else denominator
    if denominator == 0:
        return None
    return Decimal(numerator) / denominator


def percent_change(current, previous):
    ratio = safe_divide(current, previous)
    if ratio is None:
        return None
    return ((ratio - 1) * 100).quantize(_PCT, rounding=ROUND_HALF_UP)


def top_n(records, key, n=TOP_N):
    """Largest ``n`` records by ``key``, descending. The input is left as is."""
    rows = [r for r in (records or ()) if isinstance(r, Mapping)]
    return sorted(rows, key=lambda r: metric_value(r, key), reverse=True)[:n]


@dataclass
class SeriesSummary:
    total: Decimal = ZERO
    count: int = 0
    average: Decimal = ZERO
    last_point: Optional[Mapping] = None
    last_value: Optional[Decimal] = None
    trend: Optional[str] = None
    # last value as a percentage of the series average
    share_of_average: Optional[Decimal] = None
    # last value vs. the one before it
    change: Optional[Decimal] = None

    def as_dict(self):
        return {
            'total': float(self.total),
            'count': self.count,
            'average': float(self.average),
            'last_value': None if self.last_value is None else float(self.last_value),
            'trend': self.trend,
            'share_of_average': None if self.share_of_average is None else float(self.share_of_average),
            'change': None if self.change is None else float(self.change),
        }


def summarize_series(points: Sequence[Mapping], field_name: Optional[str] = None,
                     value_fn: Optional[Callable[[Any], Decimal]] = None) -> SeriesSummary:
    points = list(points or ())
    value_fn = value_fn or _value_fn(field_name)
    series_total = total(points, value_fn=value_fn)
    count = len(points)
    last = last_point(points)

    summary = SeriesSummary(total=series_total, count=count, last_point=last)
    if count:
        summary.average = (series_total / count).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
        summary.last_value = value_fn(last)
        summary.trend = trend_of(last, value_fn=value_fn)
        share = safe_divide(summary.last_value * 100, summary.average)
        if share is not None:
            summary.share_of_average = share.quantize(_PCT, rounding=ROUND_HALF_UP)
    if count > 1:
        summary.change = percent_change(summary.last_value, value_fn(points[-2]))
    return summary


@dataclass
class StatCard:
    title: str
    value: Decimal
    change: Optional[Decimal]
    trend: Optional[str]

    def as_dict(self):
        return {
            'title': self.title,
            'value': float(self.value),
            'change': None if self.change is None else float(self.change),
            'trend': self.trend,
        }


@dataclass
class DashboardSummary:
    sales: SeriesSummary
    purchases: SeriesSummary
    exchanges: SeriesSummary
    exchange_gross_paid: Decimal
    services: SeriesSummary
    stats: List[StatCard]
    popular_products: List[Mapping]
    product_count: int
    recent_services: List[Mapping]
    service_count: int
    sales_chart: List[Dict[str, Any]] = field(default_factory=list)

    def as_dict(self):
        return {
            'sales': self.sales.as_dict(),
            'purchases': self.purchases.as_dict(),
            'exchanges': dict(self.exchanges.as_dict(), gross_paid=float(self.exchange_gross_paid)),
            'services': self.services.as_dict(),
            'stats': [s.as_dict() for s in self.stats],
            'popular_products': [dict(p) for p in self.popular_products],
            'product_count': self.product_count,
            'recent_services': [dict(s) for s in self.recent_services],
            'service_count': self.service_count,
            'sales_chart': self.sales_chart,
        }


def _series(payload, key):
    value = payload.get(key) if isinstance(payload, Mapping) else None
    if not isinstance(value, (list, tuple)):
        return []
    return [p for p in value if isinstance(p, Mapping)]


def _positive_trend(value):
    return TREND_UP if value > 0 else TREND_NEUTRAL


def build_dashboard(payload) -> DashboardSummary:
    """Aggregate the ``/dashboard`` payload into everything the cards display."""
    sales = _series(payload, 'saleSummary')
    purchases = _series(payload, 'purchaseSummary')
    exchanges = _series(payload, 'exchangeSummary')
    services = _series(payload, 'serviceSummary')
    products = _series(payload, 'popularProducts')

    sales_summary = summarize_series(sales, 'totalAmount')
    purchase_summary = summarize_series(purchases, 'totalAmount')
    exchange_summary = summarize_series(exchanges, value_fn=exchange_net)
    # Exchange card trend follows the sign of the last amount paid
    exchange_summary.trend = trend_of(exchange_summary.last_point, 'totalPaid')
    service_summary = summarize_series(services, 'serviceCost')

    stats = [
        StatCard('Total Sales', sales_summary.total, sales_summary.change,
                 sales_summary.trend),
        StatCard('Total Purchases', purchase_summary.total, purchase_summary.change,
                 purchase_summary.trend),
        StatCard('Net Exchanges', exchange_summary.total, exchange_summary.change,
                 _positive_trend(exchange_summary.total)),
        StatCard('Services Revenue', service_summary.total, service_summary.change,
                 _positive_trend(service_summary.total)),
    ]

    return DashboardSummary(
        sales=sales_summary,
        purchases=purchase_summary,
        exchanges=exchange_summary,
        exchange_gross_paid=total(exchanges, value_fn=lambda p: abs(metric_value(p, 'totalPaid'))),
        services=service_summary,
        stats=stats,
        popular_products=top_n(products, 'quantity'),
        product_count=len(products),
        recent_services=services[:TOP_N],
        service_count=len(services),
        sales_chart=[
            {'date': p.get('dueDate') or p.get('created_at'), 'value': float(metric_value(p, 'totalAmount'))}
            for p in sales
        ],
    )
