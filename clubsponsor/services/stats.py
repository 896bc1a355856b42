"""Campaign statistics, dashboards, revenue forecast and saved scenarios."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import case, func

from clubsponsor.extensions import db
from clubsponsor.models import Campaign, Pledge, Scenario, Tenant
from clubsponsor.models.mixins import cents_to_euros
from clubsponsor.services.errors import NotFound, ValidationFailed

log = logging.getLogger(__name__)


def _pct(part: float, whole: float) -> int:
    return int(round(part / whole * 100)) if whole else 0


def _rate(part: float, whole: float) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _pledge_aggregates(campaign_ids: List[int]) -> Dict[int, Dict[str, int]]:
    if not campaign_ids:
        return {}
    rows = (
        db.session.query(
            Pledge.campaign_id,
            func.coalesce(func.sum(case((Pledge.status == "yes", Pledge.amount_cents), else_=0)), 0),
            func.sum(case((Pledge.status == "yes", 1), else_=0)),
            func.sum(case((Pledge.status == "maybe", 1), else_=0)),
            func.sum(case((Pledge.status == "no", 1), else_=0)),
            func.count(Pledge.id),
        )
        .filter(Pledge.campaign_id.in_(campaign_ids))
        .group_by(Pledge.campaign_id)
        .all()
    )
    return {
        cid: {
            "total_cents": int(total or 0),
            "yes": int(yes or 0),
            "maybe": int(maybe or 0),
            "no": int(no or 0),
            "count": int(count or 0),
        }
        for cid, total, yes, maybe, no, count in rows
    }


def campaign_totals(campaign: Campaign) -> Dict[str, Any]:
    agg = _pledge_aggregates([campaign.id]).get(campaign.id, {})
    total = cents_to_euros(agg.get("total_cents", 0))
    return {
        "total_pledged": total,
        "objective": campaign.objective_euros,
        "progress_percentage": _pct(total, campaign.objective_euros),
        "yes_count": agg.get("yes", 0),
        "maybe_count": agg.get("maybe", 0),
        "no_count": agg.get("no", 0),
        "pledges_count": agg.get("count", 0),
    }


def campaign_stats(campaign: Campaign, *, recent_limit: Optional[int] = None) -> Dict[str, Any]:
    limit = recent_limit or int(current_app.config.get("RECENT_PLEDGES_LIMIT", 20))
    recent = (
        campaign.pledges.order_by(Pledge.created_at.desc(), Pledge.id.desc()).limit(limit).all()
    )
    data = campaign_totals(campaign)
    data["campaign_id"] = campaign.id
    data["recent_pledges"] = [p.to_dict() for p in recent]
    return data


def tenant_dashboard(tenant_id: int) -> Dict[str, Any]:
    campaigns = Campaign.query.filter_by(tenant_id=tenant_id).order_by(Campaign.created_at.desc()).all()
    aggs = _pledge_aggregates([c.id for c in campaigns])

    rows = []
    totals = {"campaigns": len(campaigns), "total_pledged": 0.0, "objective": 0.0, "pledges_count": 0, "yes_count": 0}
    for c in campaigns:
        agg = aggs.get(c.id, {})
        total = cents_to_euros(agg.get("total_cents", 0))
        rows.append(
            {
                "id": c.id,
                "title": c.title,
                "deadline": c.deadline.isoformat() if c.deadline else None,
                "objective": c.objective_euros,
                "total_pledged": total,
                "progress_percentage": _pct(total, c.objective_euros),
                "pledges_count": agg.get("count", 0),
                "yes_count": agg.get("yes", 0),
            }
        )
        totals["total_pledged"] += total
        totals["objective"] += c.objective_euros
        totals["pledges_count"] += agg.get("count", 0)
        totals["yes_count"] += agg.get("yes", 0)

    totals["total_pledged"] = round(totals["total_pledged"], 2)
    totals["objective"] = round(totals["objective"], 2)
    totals["progress_percentage"] = _pct(totals["total_pledged"], totals["objective"])
    return {"campaigns": rows, "totals": totals}


def platform_dashboard() -> Dict[str, Any]:
    total_cents = (
        db.session.query(func.coalesce(func.sum(Pledge.amount_cents), 0)).filter(Pledge.status == "yes").scalar()
    )
    return {
        "tenants": Tenant.query.count(),
        "active_tenants": Tenant.query.filter_by(status="active").count(),
        "campaigns": Campaign.query.count(),
        "pledges": Pledge.query.count(),
        "total_pledged": cents_to_euros(int(total_cents or 0)),
    }


# ─────────────────────────────────────────────────────────────
# Forecast
# ─────────────────────────────────────────────────────────────
def forecast(campaign: Campaign, price_per_sponsor: int, expected_sponsors: int) -> Dict[str, Any]:
    objective = campaign.objective_euros
    current = campaign_totals(campaign)["total_pledged"]
    revenue = float(price_per_sponsor) * int(expected_sponsors)
    total_with_current = current + revenue
    return {
        "price_per_sponsor": price_per_sponsor,
        "expected_sponsors_count": expected_sponsors,
        "objective": objective,
        "current_pledged": current,
        "estimated_revenue": round(revenue, 2),
        "achievement_rate": _rate(revenue, objective),
        "total_with_current": round(total_with_current, 2),
        "total_achievement_rate": _rate(total_with_current, objective),
        "remaining": round(max(0.0, objective - total_with_current), 2),
    }


def save_scenario(campaign: Campaign, name: Optional[str], price_per_sponsor: int, expected_sponsors: int) -> Scenario:
    name = (name or "").strip()
    if not name:
        raise ValidationFailed("Scenario name is required.", errors={"name": "Required."})
    results = forecast(campaign, price_per_sponsor, expected_sponsors)
    results["name"] = name
    scenario = Scenario(
        campaign_id=campaign.id,
        params_json={"price_per_sponsor": price_per_sponsor, "expected_sponsors_count": expected_sponsors},
        results_json=results,
    )
    db.session.add(scenario)
    db.session.commit()
    return scenario


def list_scenarios(campaign: Campaign) -> List[Scenario]:
    return campaign.scenarios.order_by(Scenario.created_at.desc(), Scenario.id.desc()).all()


def delete_scenario(campaign: Campaign, scenario_id: int) -> None:
    scenario = Scenario.query.filter_by(id=scenario_id, campaign_id=campaign.id).first()
    if scenario is None:
        raise NotFound("Scenario not found.")
    db.session.delete(scenario)
    db.session.commit()
