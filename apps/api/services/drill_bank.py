"""
Constraints-led drill bank.

Curated games used as building blocks for practice plans. Each drill has a
base rule set plus optional constraints that raise or lower the challenge.
"""
from typing import Any, Dict, List, NamedTuple, Tuple


class Drill(NamedTuple):
    drill_name: str
    theme: str
    format: str
    min_players: int
    max_players: int
    core_idea: str
    base_constraints: Tuple[str, ...]
    add_constraints: Tuple[str, ...]
    coaching_cues: Tuple[str, ...]
    scoring: str
    tags: Tuple[str, ...]

    def as_prompt_dict(self) -> Dict[str, Any]:
        return {
            "drill_name": self.drill_name,
            "theme": self.theme,
            "format": self.format,
            "players": f"{self.min_players}-{self.max_players}",
            "core_idea": self.core_idea,
            "base_constraints": list(self.base_constraints),
            "add_constraints": list(self.add_constraints),
            "coaching_cues": list(self.coaching_cues),
            "scoring": self.scoring,
        }


DRILLS: List[Drill] = [
    Drill(
        drill_name="Basketball Rondo",
        theme="Passing, Decision Making, Defensive Pressure",
        format="4-on-2 Rondo (adaptable)",
        min_players=6,
        max_players=8,
        core_idea="Maintain possession under pressure with quick, accurate passing and off-ball movement.",
        base_constraints=(
            "Offensive players stay outside the perimeter; defenders operate inside it.",
            "A deflection, interception or tag on the ball handler swaps the defender with the player who erred.",
        ),
        add_constraints=(
            "Passer must call the receiver's name.",
            "Exactly one dribble before every pass.",
            "No-look passes only.",
            "Adjust numbers (5-on-3, 5-on-2, 3-on-1).",
        ),
        coaching_cues=("Find the open man", "Pass to space", "Move after you pass", "Open body to the ball", "Communicate"),
        scoring="15 consecutive passes wins the round for the offense.",
        tags=("passing", "decision making", "pressure", "awareness", "communication"),
    ),
    Drill(
        drill_name="FIBA 3-on-3 HC (Constraints Model)",
        theme="Shot Selection, 1-on-1 Creation, Offensive Triggers",
        format="3-on-3 Half Court",
        min_players=6,
        max_players=6,
        core_idea="Score in 3-on-3 half court while constraints steer shot selection and creation.",
        base_constraints=(
            "FIBA 3x3 rules with check-ball.",
            "Only gold (layup, dunk) and silver (close jumper, floater) shots count.",
            "Shooter must call 'Gold!' or 'Silver!' or the basket does not count.",
        ),
        add_constraints=(
            "Floor is lava: no stationary catches inside the arc.",
            "Pass-and-cut actions without an immediate advantage are turnovers.",
            "Advantages may only be created through 1-on-1 isolation.",
        ),
        coaching_cues=("Gold medals only!", "Create dominoes", "Attack closeouts", "Value the possession"),
        scoring="First to 12. Uncalled shots do not count.",
        tags=("3-on-3", "shot selection", "1-on-1", "decision making"),
    ),
    Drill(
        drill_name="4-on-2 Transition Offense",
        theme="Transition Offense, Exploiting Advantage, Spacing",
        format="4-on-2 Full Court",
        min_players=6,
        max_players=6,
        core_idea="Exploit a numerical advantage in transition with a two-sided break and quick decisions.",
        base_constraints=(
            "Attack with players on both sides of the floor.",
            "Do not pass to the single-player side until the two-player side is used or denied.",
            "Offense starts in a 'jelly' start in the paint.",
        ),
        add_constraints=(
            "8 seconds to score after gaining possession.",
            "Only gold shots or corner threes count.",
            "Turnover if two or more players lag on the change of possession.",
        ),
        coaching_cues=("Land like a QB", "Push the pace!", "Two sides of the ball!", "Skip pass for advantage"),
        scoring="1 point per make; first to 15 or highest after 3 minutes.",
        tags=("transition offense", "spacing", "advantage situation", "full court"),
    ),
    Drill(
        drill_name="2-on-1 Decision Making (Pass or Shoot)",
        theme="Advantage Situations, Decision Making, Shooting vs Passing",
        format="2-on-1 (Half Court or from transition)",
        min_players=3,
        max_players=9,
        core_idea="Read a 2-on-1 advantage and either pass for the easy score or take the open shot.",
        base_constraints=(
            "Offense may only pass or shoot; no drives or cuts.",
            "Offense stays for 3 repetitions regardless of outcome.",
            "Defender starts play by passing in.",
        ),
        add_constraints=(
            "Allow cuts but not drives.",
            "Allow pass, shoot, drive and cut.",
            "Add a +1 help defender who can only contest in the paint.",
        ),
        coaching_cues=("Zero seconds", "1 can't guard 2", "Read the defender's commitment", "Make the simple play"),
        scoring="Offense 1 per make; defense 2 per stop.",
        tags=("2-on-1", "decision making", "shooting", "passing", "finishing"),
    ),
    Drill(
        drill_name="3-on-3 Read & React (Dominoes or Get)",
        theme="Reading Advantage, Offensive Triggers, Neutral Situations",
        format="3-on-3 Half Court",
        min_players=6,
        max_players=6,
        core_idea="Recognize whether an advantage exists to attack or a neutral start needs a trigger.",
        base_constraints=(
            "Attack an existing advantage immediately; otherwise run a 'Get' action (ball screen, DHO).",
            "Three offensive repetitions, then switch.",
        ),
        add_constraints=(
            "Shooter must call 'Score!' or the make is a turnover.",
            "Ghost cuts score double.",
            "Floor is lava.",
        ),
        coaching_cues=("Neutral or Advantage?", "Dominoes!", "Trigger needed?", "Attack gaps"),
        scoring="Gold shot 2, silver shot 1, defensive block or steal 2.",
        tags=("3-on-3", "read and react", "advantage creation", "game intelligence"),
    ),
]


def drills_for_roster(player_count: int) -> List[Drill]:
    """Drills runnable with the given number of players (whole-group or split into stations)."""
    if player_count <= 0:
        return []
    fits = []
    for drill in DRILLS:
        if drill.min_players <= player_count <= drill.max_players:
            fits.append(drill)
        elif player_count > drill.max_players:
            # Larger groups run the drill on multiple baskets
            fits.append(drill)
    return fits
