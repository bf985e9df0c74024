"""
Human-readable formatting of estimates.

Display only: nothing here feeds back into the calculations.
"""

import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Union

from print_estimate import config as cfg
from print_estimate.geometry.mesh_stats import ModelStats


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_print_time(hours: float) -> str:
    """'45 minutes', '2h 30m', '1d 3h'."""
    if hours < 1:
        return f"{_round_half_up(hours * 60)} minutes"
    if hours < 24:
        whole = int(hours)
        minutes = _round_half_up((hours - whole) * 60)
        if minutes == 60:
            whole, minutes = whole + 1, 0
        return f"{whole}h {minutes}m" if minutes > 0 else f"{whole}h"
    days = int(hours // 24)
    return f"{days}d {_round_half_up(hours % 24)}h"


def format_cost(amount: float, currency: str = cfg.CURRENCY) -> str:
    """'$1,234.50 AUD'; negative amounts keep their sign in front."""
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f} {currency}"


def format_weight(grams: float) -> str:
    """Grams below 1 kg, kilograms above."""
    if grams < 1000:
        return f"{grams:.1f}g"
    return f"{grams / 1000:.2f}kg"


def format_file_size(n_bytes: int) -> str:
    """Binary-prefixed size: '512 B', '1.5 KB', '20.0 MB'."""
    size = float(n_bytes)
    for unit in ("B", "KB", "MB"):
        if size < 1024:
            return f"{int(size)} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def format_duration(days: float) -> str:
    """Hours under a day, days (+ hours) under a week, weeks (+ days) beyond."""
    if days < 1:
        return _plural(_round_half_up(days * 24), "hour")
    if days < 7:
        whole = int(days)
        hours = _round_half_up((days - whole) * 24)
        if hours == 24:
            whole, hours = whole + 1, 0
        text = _plural(whole, "day")
        return f"{text} {hours}h" if hours else text
    weeks = int(days // 7)
    remaining = _round_half_up(days % 7)
    text = _plural(weeks, "week")
    return f"{text} {_plural(remaining, 'day')}" if remaining else text


def format_delivery_date(when: Union[date, datetime], today: Optional[date] = None) -> str:
    """'Today', 'Tomorrow' or e.g. 'Tuesday, 20 October 2026'."""
    if isinstance(when, datetime):
        when = when.date()
    today = today or date.today()
    if when == today:
        return "Today"
    if when == today + timedelta(days=1):
        return "Tomorrow"
    return f"{when:%A}, {when.day} {when:%B %Y}"


@dataclass(frozen=True)
class DeliveryUrgency:
    level: str
    description: str


EXPRESS = DeliveryUrgency("express", "Express delivery")
STANDARD = DeliveryUrgency("standard", "Standard delivery")
EXTENDED = DeliveryUrgency("extended", "Extended delivery")


def get_delivery_urgency(total_days: float) -> DeliveryUrgency:
    """Express up to 3 days, standard up to 7, extended beyond."""
    if total_days <= 3:
        return EXPRESS
    if total_days <= 7:
        return STANDARD
    return EXTENDED


def format_model_stats(stats: ModelStats, materials_shown: int = 4) -> str:
    """Multi-line description of a model for console output."""
    lines = [
        f"Dimensions:   {stats.width:.1f} x {stats.height:.1f} x {stats.depth:.1f} mm",
        f"Volume:       {stats.volume:.2f} cm3",
        f"Surface area: {stats.surface_area:.1f} cm2",
        f"Triangles:    {stats.triangle_count}",
    ]
    weights = list(stats.estimated_weight.items())[:materials_shown]
    if weights:
        lines.append("Weight:       " + ", ".join(
            f"{name} {format_weight(grams)}" for name, grams in weights
        ))
    return "\n".join(lines)
