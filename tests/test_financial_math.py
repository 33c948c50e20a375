from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

import pytest

from loyerfacile.domain.dates import period_start
from loyerfacile.domain.financials import (
    aggregate_metrics,
    amortization_schedule,
    build_monthly_history,
    monthly_series,
    report_metrics,
    years_since,
)
from loyerfacile.domain.forecast import detect_alerts, forecast, linear_trend


@dataclass
class P:
    montant: float
    statut: str
    mois_paiement: date
    lease_id: int = 1


@dataclass
class C:
    montant: float
    date_charge: date
    type_charge: str = "entretien"
    property_id: int = 1


@dataclass
class A:
    valeur_acquisition: float
    valeur_residuelle: Optional[float]
    duree_amortissement: int


@dataclass
class Prop:
    id: int
    titre: str
    statut: str


@dataclass
class L:
    id: int
    property_id: int
    statut: str


def test_metrics_are_zero_without_data():
    m = aggregate_metrics([], [], today=date(2026, 5, 1))
    assert m.total_revenue == 0
    assert m.total_charges == 0
    assert m.net_profit == 0
    assert m.profit_margin == 0
    assert m.overdue_payments == 0
    assert m.overdue_amount == 0


def test_metrics_and_overdue():
    payments = [
        P(100_000, "succeeded", date(2026, 1, 1)),
        P(100_000, "succeeded", date(2026, 2, 1)),
        P(100_000, "pending", date(2026, 3, 1)),
        P(100_000, "pending", date(2026, 5, 1)),
        P(50_000, "failed", date(2026, 2, 1)),
    ]
    charges = [C(40_000, date(2026, 2, 10))]
    m = aggregate_metrics(payments, charges, today=date(2026, 4, 15))

    assert m.total_revenue == 200_000
    assert m.total_charges == 40_000
    assert m.net_profit == 160_000
    assert m.profit_margin == pytest.approx(80.0)
    assert m.overdue_payments == 1
    assert m.overdue_amount == 100_000


def test_report_metrics_extension():
    props = [Prop(1, "Villa", "rented"), Prop(2, "Studio", "available")]
    leases = [L(10, 1, "actif"), L(11, 2, "terminated")]
    payments = [P(100_000, "succeeded", date(2026, 1, 1), lease_id=10), P(30_000, "succeeded", date(2026, 1, 1), lease_id=11)]
    charges = [C(20_000, date(2026, 1, 5), "assurance", 1), C(40_000, date(2026, 1, 5), "travaux", 2)]

    m = report_metrics(properties=props, leases=leases, payments=payments, charges=charges, today=date(2026, 2, 1))
    assert m.occupancy_rate == 50.0
    assert m.active_leases == 1
    assert m.charges_by_type == {"assurance": 20_000, "travaux": 40_000}
    assert [pp.property_id for pp in m.property_performance] == [1, 2]
    assert m.property_performance[0].rentability == pytest.approx(80.0)
    assert m.property_performance[1].profit == -10_000


def test_monthly_history_is_sorted_and_cumulative():
    payments = [P(100, "succeeded", date(2026, 3, 1)), P(100, "succeeded", date(2026, 1, 1)), P(999, "pending", date(2026, 2, 1))]
    charges = [C(30, date(2026, 2, 14))]
    h = build_monthly_history(payments, charges)

    assert [p.month for p in h] == ["2026-01", "2026-02", "2026-03"]
    assert [p.net_profit for p in h] == [100, -30, 100]
    assert [p.cumulative_cash_flow for p in h] == [100, 70, 170]


def test_monthly_series_zero_fills():
    s = monthly_series([P(100, "succeeded", date(2026, 4, 1))], [], months=3, today=date(2026, 5, 20))
    assert [(p.month, p.revenue) for p in s] == [("2026-03", 0), ("2026-04", 100), ("2026-05", 0)]


def test_forecast_needs_three_months():
    h = build_monthly_history([P(100, "succeeded", date(2026, 1, 1)), P(100, "succeeded", date(2026, 2, 1))], [])
    r = forecast(h, 6)
    assert r.status == "insufficient_data"
    assert r.points == []
    assert detect_alerts(h, r.points) == []


def test_forecast_is_deterministic_with_decreasing_confidence():
    payments = [P(100 + 10 * i, "succeeded", date(2026, i, 1)) for i in range(1, 7)]
    charges = [C(40, date(2026, i, 15)) for i in range(1, 7)]
    h = build_monthly_history(payments, charges)

    a = forecast(h, 12)
    b = forecast(h, 12)
    assert a == b
    assert a.status == "ok"
    assert [p.month for p in a.points][:2] == ["2026-07", "2026-08"]

    conf = [p.confidence for p in a.points]
    assert conf[0] == 88
    assert conf[-1] == 50
    assert all(x >= y for x, y in zip(conf, conf[1:]))

    # average 135, slope 10
    assert a.points[0].projected_revenue == pytest.approx(145)
    assert a.points[0].projected_charges == pytest.approx(40)
    assert a.points[0].projected_cash_flow == pytest.approx(h[-1].cumulative_cash_flow + 105)


def test_forecast_never_projects_negative_amounts():
    payments = [P(v, "succeeded", date(2026, i, 1)) for i, v in enumerate([300, 200, 100], start=1)]
    r = forecast(build_monthly_history(payments, []), 6)
    assert all(p.projected_revenue >= 0 for p in r.points)


def test_linear_trend():
    assert linear_trend([1, 2, 3, 4]) == pytest.approx(1.0)
    assert linear_trend([5]) == 0.0


def test_alerts_on_revenue_drop_and_charge_rise():
    revenue = [1000, 1000, 1000, 800, 800, 800]
    charges = [100, 100, 100, 200, 200, 200]
    payments = [P(v, "succeeded", date(2026, i, 1)) for i, v in enumerate(revenue, start=1)]
    chg = [C(v, date(2026, i, 10)) for i, v in enumerate(charges, start=1)]
    h = build_monthly_history(payments, chg)

    alerts = detect_alerts(h, forecast(h, 6).points)
    by_metric = {(a.metric, a.type) for a in alerts}
    assert ("revenue", "danger") in by_metric
    assert ("charges", "danger") in by_metric


def test_alerts_on_growth_and_projected_deficit():
    grow = [P(v, "succeeded", date(2026, i, 1)) for i, v in enumerate([100, 100, 100, 150, 150, 150], start=1)]
    h = build_monthly_history(grow, [])
    assert ("revenue", "info") in {(a.metric, a.type) for a in detect_alerts(h, forecast(h, 3).points)}

    deficit = build_monthly_history(
        [P(100, "succeeded", date(2026, i, 1)) for i in range(1, 4)],
        [C(500, date(2026, i, 2)) for i in range(1, 4)],
    )
    kinds = {(a.metric, a.type) for a in detect_alerts(deficit, forecast(deficit, 3).points)}
    assert ("cashflow", "danger") in kinds


def test_amortization_floors_at_residual():
    row = A(valeur_acquisition=10_000_000, valeur_residuelle=1_000_000, duree_amortissement=10)
    line = amortization_schedule(row, 3)
    assert line.annual_amount == 900_000
    assert line.cumulated_amount == 2_700_000
    assert line.remaining_value == 7_300_000

    assert amortization_schedule(row, 15).remaining_value == 1_000_000

    with pytest.raises(ValueError):
        amortization_schedule(A(1, 0, 0), 1)


def test_years_since():
    assert years_since(date(2020, 6, 15), date(2026, 6, 14)) == 5
    assert years_since(date(2020, 6, 15), date(2026, 6, 15)) == 6
    assert years_since(date(2027, 1, 1), date(2026, 1, 1)) == 0


def test_period_start():
    today = date(2026, 5, 20)
    assert period_start("1month", today) == date(2026, 5, 1)
    assert period_start("12months", today) == date(2025, 6, 1)
    assert period_start("all", today) is None
    with pytest.raises(ValueError):
        period_start("2weeks", today)
