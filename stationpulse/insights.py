"""
Insight formatting: human-readable findings and tiered groupings built on
aggregation and classification outputs.
"""
import math
from collections import Counter
from typing import Dict, List, Sequence

import numpy as np

from .models import (
    ClassificationResult,
    DemandRecord,
    PatternType,
    StationProfile,
    Summary,
)
from .records import split_valid

# Presentation metadata only; classification never reads it
PATTERN_META = {
    PatternType.COMMUTE: {"label": "Commuter", "icon": "🚇", "color": "#1890ff",
                          "summary": "Distinct morning and evening peaks"},
    PatternType.LEISURE: {"label": "Leisure", "icon": "🎡", "color": "#52c41a",
                          "summary": "Single afternoon peak"},
    PatternType.BALANCED: {"label": "All-day balanced", "icon": "⚖️", "color": "#faad14",
                           "summary": "Even demand through the day"},
    PatternType.NIGHT: {"label": "Night active", "icon": "🌙", "color": "#722ed1",
                        "summary": "Active late in the evening"},
    PatternType.LOW_FREQUENCY: {"label": "Low frequency", "icon": "📉", "color": "#8c8c8c",
                                "summary": "Low overall demand"},
}

TIER_IDS = ["very_high", "high", "medium", "low", "very_low"]
TIER_NAMES = {
    "very_high": "Very high demand",
    "high": "High demand",
    "medium": "Medium demand",
    "low": "Lower demand",
    "very_low": "Low demand",
}


def format_number(num: float) -> str:
    """12,345 -> '12.3k'; smaller values get thousands separators."""
    if num >= 10000:
        return f"{num / 1000:.1f}k"
    if float(num).is_integer():
        return f"{int(num):,}"
    return f"{num:,.1f}"


def time_insights(summary: Summary) -> Dict:
    hourly = summary.hourly_totals
    day_total = sum(hourly)

    peak_hour = int(np.argmax(hourly))
    valley_hour = int(np.argmin(hourly))

    if summary.weekend_average > 0:
        weekday_diff = (summary.weekday_average - summary.weekend_average) / summary.weekend_average * 100
    else:
        weekday_diff = 0.0

    commute_demand = sum(hourly[7:10]) + sum(hourly[17:20])
    commute_share = commute_demand / day_total * 100 if day_total > 0 else 0.0

    direction = "higher" if weekday_diff > 0 else "lower"
    messages = [
        f"City-wide demand peaks at {peak_hour}:00 with {format_number(round(hourly[peak_hour]))} trips",
        f"The quietest hour is {valley_hour}:00 with about {format_number(round(hourly[valley_hour]))} trips",
        f"Weekday average demand is {abs(weekday_diff):.1f}% {direction} than at weekends",
        f"Morning (7-9) and evening (17-19) peaks carry {commute_share:.1f}% of daily demand",
    ]

    return {
        "peak_hour": peak_hour,
        "valley_hour": valley_hour,
        "weekday_vs_weekend_pct": weekday_diff,
        "commute_share_pct": commute_share,
        "messages": messages,
    }


def _positive_totals(stations) -> List[float]:
    return [float(s.total_demand) for s in stations if (s.total_demand or 0) > 0]


def space_insights(stations: Sequence) -> Dict:
    """
    Spread of station totals. Stations without positive demand are left out
    of the statistics but count towards the population size.
    """
    demands = _positive_totals(stations)
    if not demands:
        return {
            "top_station": None,
            "mean_demand": 0.0,
            "high_demand_count": 0,
            "low_demand_count": 0,
            "messages": [],
        }

    mean_demand = sum(demands) / len(demands)
    max_demand = max(demands)
    top = next(s for s in stations if s.total_demand == max_demand)

    high = sum(1 for d in demands if d > mean_demand * 1.5)
    low = sum(1 for d in demands if d < mean_demand * 0.5)

    messages = [
        f"The busiest station is {top.name or top.station_id} with {format_number(max_demand)} trips",
        f"The average station sees {format_number(round(mean_demand))} trips",
        f"{high} stations ({high / len(stations) * 100:.1f}%) exceed 1.5x the average",
        f"{low} stations fall below half the average",
    ]

    return {
        "top_station": top.station_id,
        "mean_demand": mean_demand,
        "high_demand_count": high,
        "low_demand_count": low,
        "messages": messages,
    }


def demand_tiers(stations: Sequence) -> List[Dict]:
    """
    Five equal-width tiers between the lowest and highest positive totals,
    highest tier first.
    """
    demands = _positive_totals(stations)
    tiers = [
        {"id": tier_id, "name": TIER_NAMES[tier_id], "range": "", "count": 0, "avg_demand": 0.0}
        for tier_id in TIER_IDS
    ]
    if not demands:
        return tiers

    low, high = min(demands), max(demands)
    step = (high - low) / 5

    members = {tier_id: [] for tier_id in TIER_IDS}
    for demand in demands:
        # Equal totals collapse into the bottom tier
        index = min(math.floor((demand - low) / step), 4) if step > 0 else 0
        members[TIER_IDS[4 - index]].append(demand)

    for position, tier in enumerate(tiers):
        bottom = low + step * (4 - position)
        if position == 0:
            tier["range"] = f"{format_number(round(bottom))}+"
        else:
            tier["range"] = f"{format_number(round(bottom))}-{format_number(round(bottom + step))}"
        values = members[tier["id"]]
        tier["count"] = len(values)
        tier["avg_demand"] = sum(values) / len(values) if values else 0.0
    return tiers


def overview(stations: Sequence, records: Sequence[DemandRecord], observed_day_count: int = 31) -> Dict:
    """
    Headline figures for the landing screen. Daily demand is averaged over
    the distinct dates present; with no records the configured day count
    stands in.
    """
    valid, _ = split_valid(records)
    dates = sorted({r.date for r in valid})
    data_days = len(dates) or observed_day_count
    total_demand = sum(r.demand for r in valid)

    peak_station = None
    if stations:
        top = max(stations, key=lambda s: s.total_demand or 0)
        peak_station = {
            "station_id": top.station_id,
            "name": top.name,
            "total_demand": top.total_demand or 0.0,
        }

    return {
        "total_stations": len(stations),
        "data_days": data_days,
        "date_range": {"start": dates[0].isoformat(), "end": dates[-1].isoformat()} if dates else None,
        "total_demand": total_demand,
        "avg_daily_demand": round(total_demand / data_days),
        "peak_station": peak_station,
    }


def peak_hour_insight(stations: Sequence) -> Dict:
    """
    Hour of day at which the most stations peak. Ties go to the later hour.
    """
    counts = Counter(s.peak_hour for s in stations if s.peak_hour is not None)
    if not counts:
        return {"peak_hour": None, "station_count": 0, "share_pct": 0.0, "message": ""}

    hours = sorted(counts)
    best = hours[0]
    for hour in hours[1:]:
        if counts[hour] >= counts[best]:
            best = hour

    count = counts[best]
    return {
        "peak_hour": best,
        "station_count": count,
        "share_pct": count / len(stations) * 100,
        "message": f"{best}:00 is the most common peak hour, reached by {count} stations",
    }


def recommended_stations(stations: Sequence) -> List[Dict]:
    """
    The three busiest stations, then up to two mid-demand stations
    (total between 0.7x and 1.2x the mean) with the highest average demand.
    """
    if not stations:
        return []

    mean_total = sum(s.total_demand or 0 for s in stations) / len(stations)

    top = sorted(stations, key=lambda s: s.total_demand or 0, reverse=True)[:3]
    potential = sorted(
        (s for s in stations if mean_total * 0.7 < (s.total_demand or 0) < mean_total * 1.2),
        key=lambda s: s.avg_demand or 0,
        reverse=True,
    )[:2]

    def entry(station, kind, reason):
        return {
            "station_id": station.station_id,
            "name": station.name,
            "kind": kind,
            "reason": reason,
            "total_demand": station.total_demand or 0.0,
            "demand_display": format_number(station.total_demand or 0),
            "peak_hour": station.peak_hour,
        }

    return (
        [entry(s, "high_demand", "among the busiest stations") for s in top]
        + [entry(s, "potential", "steady mid-range demand") for s in potential]
    )


class PatternNarrative:
    @staticmethod
    def describe(pattern: PatternType, profiles: Sequence[StationProfile]) -> str:
        """
        Short description from the members' average features.
        """
        if not profiles:
            return ""

        n = len(profiles)
        morning = sum(p.features.morning_ratio for p in profiles) / n
        evening = sum(p.features.evening_ratio for p in profiles) / n
        afternoon = sum(p.features.afternoon_ratio for p in profiles) / n
        night = sum(p.features.night_ratio for p in profiles) / n

        parts = []
        if pattern == PatternType.COMMUTE:
            if morning > 1.0:
                parts.append("morning peak")
            if evening > 1.0:
                parts.append("evening peak")
        elif pattern == PatternType.LEISURE:
            if afternoon > 1.0:
                parts.append("afternoon peak")
        elif pattern == PatternType.NIGHT:
            parts.append(f"night peak {night:.2f}x daily mean")
        elif pattern == PatternType.LOW_FREQUENCY:
            parts.extend(["low demand", "stable"])
        elif pattern == PatternType.BALANCED:
            parts.append("balanced all day")

        return ", ".join(parts) or "no distinctive feature"


def pattern_descriptions(
    result: ClassificationResult,
    profiles: Sequence[StationProfile],
) -> Dict[PatternType, str]:
    by_id = {p.station_id: p for p in profiles}
    descriptions = {}
    for cluster in result.clusters:
        members = [by_id[sid] for sid in cluster.member_station_ids if sid in by_id]
        descriptions[cluster.pattern_type] = PatternNarrative.describe(cluster.pattern_type, members)
    return descriptions

