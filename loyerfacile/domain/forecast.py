from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from .dates import add_months, month_bounds, month_key
from .financials import MonthlyPoint

MIN_HISTORY_MONTHS = 3
TREND_WINDOW = 6
ALERT_WINDOW = 3


@dataclass(frozen=True)
class ForecastPoint:
    month: str
    projected_revenue: float
    projected_charges: float
    projected_profit: float
    projected_cash_flow: float
    confidence: int


@dataclass(frozen=True)
class ForecastResult:
    status: str  # ok | insufficient_data
    points: list[ForecastPoint] = field(default_factory=list)
    history_months: int = 0


@dataclass(frozen=True)
class FinancialAlert:
    type: str  # danger | warning | info
    title: str
    message: str
    metric: str
    trend: float


def linear_trend(values: list[float]) -> float:
    """Least-squares slope of values against their index."""
    n = len(values)
    if n < 2:
        return 0.0
    xs = range(n)
    sum_x = float(sum(xs))
    sum_y = float(sum(values))
    sum_xy = float(sum(x * y for x, y in zip(xs, values)))
    sum_x2 = float(sum(x * x for x in xs))
    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denom


def confidence_for(step: int) -> int:
    return max(50, 95 - 7 * int(step))


def _avg(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def forecast(history: list[MonthlyPoint], horizon_months: int) -> ForecastResult:
    if len(history) < MIN_HISTORY_MONTHS:
        return ForecastResult(status="insufficient_data", points=[], history_months=len(history))

    window = history[-TREND_WINDOW:]
    revenues = [p.revenue for p in window]
    charges = [p.charges for p in window]

    avg_revenue = _avg(revenues)
    avg_charges = _avg(charges)
    revenue_slope = linear_trend(revenues)
    charges_slope = linear_trend(charges)

    last = history[-1]
    last_month, _ = month_bounds(last.month)
    cumulative = last.cumulative_cash_flow

    points: list[ForecastPoint] = []
    for i in range(1, int(horizon_months) + 1):
        rev = max(0.0, avg_revenue + revenue_slope * i)
        chg = max(0.0, avg_charges + charges_slope * i)
        profit = rev - chg
        cumulative += profit
        points.append(
            ForecastPoint(
                month=month_key(add_months(last_month, i)),
                projected_revenue=float(rev),
                projected_charges=float(chg),
                projected_profit=float(profit),
                projected_cash_flow=float(cumulative),
                confidence=confidence_for(i),
            )
        )
    return ForecastResult(status="ok", points=points, history_months=len(history))


def _pct_change(new: float, old: float) -> Optional[float]:
    if old == 0:
        return None
    return (new - old) / old * 100.0


def detect_alerts(history: list[MonthlyPoint], points: list[ForecastPoint]) -> list[FinancialAlert]:
    alerts: list[FinancialAlert] = []
    if len(history) < MIN_HISTORY_MONTHS:
        return alerts

    recent = history[-ALERT_WINDOW:]
    older = history[-2 * ALERT_WINDOW:-ALERT_WINDOW]

    avg_revenue = _avg([p.revenue for p in recent])
    avg_charges = _avg([p.charges for p in recent])
    avg_profit = _avg([p.net_profit for p in recent])

    revenue_change: Optional[float] = None
    if len(older) >= ALERT_WINDOW:
        revenue_change = _pct_change(avg_revenue, _avg([p.revenue for p in older]))
        charges_change = _pct_change(avg_charges, _avg([p.charges for p in older]))

        if revenue_change is not None:
            if revenue_change < -10:
                alerts.append(FinancialAlert(
                    "danger", "Baisse significative des revenus",
                    f"Les revenus ont diminué de {abs(revenue_change):.1f}% sur les 3 derniers mois",
                    "revenue", revenue_change,
                ))
            elif revenue_change < -5:
                alerts.append(FinancialAlert(
                    "warning", "Légère baisse des revenus",
                    f"Les revenus ont diminué de {abs(revenue_change):.1f}% sur les 3 derniers mois",
                    "revenue", revenue_change,
                ))

        if charges_change is not None:
            if charges_change > 15:
                alerts.append(FinancialAlert(
                    "danger", "Augmentation importante des charges",
                    f"Les charges ont augmenté de {charges_change:.1f}% sur les 3 derniers mois",
                    "charges", charges_change,
                ))
            elif charges_change > 10:
                alerts.append(FinancialAlert(
                    "warning", "Hausse des charges",
                    f"Les charges ont augmenté de {charges_change:.1f}% sur les 3 derniers mois",
                    "charges", charges_change,
                ))

        profit_margin = avg_profit / avg_revenue * 100.0 if avg_revenue > 0 else 0.0
        if 0 < profit_margin < 20:
            alerts.append(FinancialAlert(
                "warning", "Marge bénéficiaire faible",
                f"La marge actuelle est de {profit_margin:.1f}%, en dessous du seuil recommandé de 20%",
                "profit", profit_margin,
            ))
        elif profit_margin <= 0:
            alerts.append(FinancialAlert(
                "danger", "Déficit financier",
                "Les charges dépassent les revenus. Action immédiate requise.",
                "profit", profit_margin,
            ))

    negative = [p for p in points if p.projected_cash_flow < 0]
    if negative:
        y, m = negative[0].month.split("-")
        alerts.append(FinancialAlert(
            "danger", "Cash-flow négatif prévu",
            f"Le cash-flow devrait devenir négatif en {m}/{y}",
            "cashflow", -100.0,
        ))

    if revenue_change is not None and revenue_change > 10:
        alerts.append(FinancialAlert(
            "info", "Croissance positive",
            f"Les revenus ont progressé de {revenue_change:.1f}% sur les 3 derniers mois",
            "revenue", revenue_change,
        ))

    return alerts
