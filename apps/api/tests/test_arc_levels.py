"""
Tests for ARC level helpers and the drill bank.
"""
from services import arc_levels
from services.drill_bank import DRILLS, drills_for_roster


def test_scales_are_complete():
    assert sorted(arc_levels.ADVANCEMENT_LEVELS) == list(range(1, 10))
    assert sorted(arc_levels.RESPONSIBILITY_TIERS) == list(range(1, 7))
    assert sorted(arc_levels.COLLECTIVE_GROWTH_PHASES) == list(range(1, 7))


def test_describe():
    assert arc_levels.describe(arc_levels.RESPONSIBILITY_TIERS, 5).startswith("5 - Team Leader:")
    assert arc_levels.describe(arc_levels.RESPONSIBILITY_TIERS, 7) == "unknown"
    assert arc_levels.describe(arc_levels.ADVANCEMENT_LEVELS, None) == "unknown"


def test_clamp():
    scale = arc_levels.COLLECTIVE_GROWTH_PHASES
    assert arc_levels.clamp(scale, None, 3) == 3
    assert arc_levels.clamp(scale, 12, 3) == 6
    assert arc_levels.clamp(scale, -1, 3) == 1
    assert arc_levels.clamp(scale, 4, 3) == 4


def test_drills_for_roster():
    assert drills_for_roster(0) == []
    # A large group can run every drill on several baskets
    assert drills_for_roster(20) == DRILLS
    small = drills_for_roster(3)
    assert all(d.min_players <= 3 for d in small)
