"""
2026 World Cup reference data: 12 groups and the knockout bracket.

Round of 32 = matches 73-88. From the Round of 16 on, every side is the
winner of an earlier match. The third-place play-off (match 103) is not
predicted and is not seeded.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from predictor.models.group import Group
from predictor.models.match import PHASE_GROUP, Match
from predictor.models.team import Team
from predictor.services.bracket_resolver import FixtureTemplate
from predictor.services.group_standings import GROUP_LETTERS, TEAMS_PER_GROUP
from predictor.services.knockout_phase import KnockoutPhase

# (match_number, home placeholder, away placeholder)
ROUND_OF_32_FIXTURES: Tuple[Tuple[int, str, str], ...] = (
    (73, "Group A runners-up", "Group B runners-up"),
    (74, "Group E winners", "Group A/B/C/D/F third place"),
    (75, "Group F winners", "Group C runners-up"),
    (76, "Group C winners", "Group F runners-up"),
    (77, "Group I winners", "Group C/D/F/G/H third place"),
    (78, "Group E runners-up", "Group I runners-up"),
    (79, "Group A winners", "Group C/E/F/H/I third place"),
    (80, "Group L winners", "Group E/H/I/J/K third place"),
    (81, "Group D winners", "Group B/E/F/I/J third place"),
    (82, "Group G winners", "Group A/E/H/I/J third place"),
    (83, "Group K runners-up", "Group L runners-up"),
    (84, "Group H winners", "Group J runners-up"),
    (85, "Group B winners", "Group E/F/G/I/J third place"),
    (86, "Group J winners", "Group H runners-up"),
    (87, "Group K winners", "Group D/E/I/J/L third place"),
    (88, "Group D runners-up", "Group G runners-up"),
)

# (match_number, phase, home fed by winner of, away fed by winner of)
KNOCKOUT_TREE: Tuple[Tuple[int, KnockoutPhase, int, int], ...] = (
    (89, KnockoutPhase.ROUND_OF_16, 74, 77),
    (90, KnockoutPhase.ROUND_OF_16, 73, 75),
    (91, KnockoutPhase.ROUND_OF_16, 76, 78),
    (92, KnockoutPhase.ROUND_OF_16, 79, 80),
    (93, KnockoutPhase.ROUND_OF_16, 83, 84),
    (94, KnockoutPhase.ROUND_OF_16, 81, 82),
    (95, KnockoutPhase.ROUND_OF_16, 86, 88),
    (96, KnockoutPhase.ROUND_OF_16, 85, 87),
    (97, KnockoutPhase.QUARTER_FINALS, 89, 90),
    (98, KnockoutPhase.QUARTER_FINALS, 93, 94),
    (99, KnockoutPhase.QUARTER_FINALS, 91, 92),
    (100, KnockoutPhase.QUARTER_FINALS, 95, 96),
    (101, KnockoutPhase.SEMI_FINALS, 97, 98),
    (102, KnockoutPhase.SEMI_FINALS, 99, 100),
    (104, KnockoutPhase.FINAL, 101, 102),
)

# Group stage pairings as positions in the draw (1-based), in play order
GROUP_MATCH_PAIRINGS: Tuple[Tuple[int, int], ...] = ((1, 2), (3, 4), (1, 3), (4, 2), (4, 1), (2, 3))


def round_of_32_templates() -> List[FixtureTemplate]:
    """The 16 R32 templates keyed by match number (no database needed)."""
    return [
        FixtureTemplate(match_id=number, match_number=number, home_placeholder=home, away_placeholder=away)
        for number, home, away in ROUND_OF_32_FIXTURES
    ]


def seed_reference_data(session: Session) -> Dict[str, int]:
    """Insert groups A-L and the knockout matches. Idempotent.

    Returns counts of rows created this call.
    """
    groups_created = 0
    existing_groups = {g.name for g in session.exec(select(Group)).all()}
    for letter in GROUP_LETTERS:
        if letter not in existing_groups:
            session.add(Group(name=letter))
            groups_created += 1

    existing_numbers = set(session.exec(select(Match.match_number)).all())
    matches_created = 0

    for number, home, away in ROUND_OF_32_FIXTURES:
        if number in existing_numbers:
            continue
        session.add(
            Match(
                match_number=number,
                phase=KnockoutPhase.ROUND_OF_32.value,
                home_placeholder=home,
                away_placeholder=away,
            )
        )
        matches_created += 1

    for number, phase, home_src, away_src in KNOCKOUT_TREE:
        if number in existing_numbers:
            continue
        session.add(
            Match(
                match_number=number,
                phase=phase.value,
                home_placeholder=f"Match {home_src} winner",
                away_placeholder=f"Match {away_src} winner",
                home_source_match_number=home_src,
                away_source_match_number=away_src,
            )
        )
        matches_created += 1

    session.commit()
    return {"groups_created": groups_created, "matches_created": matches_created}


def seed_group_teams(
    session: Session, group_letter: str, teams: Sequence[Tuple[str, Optional[str]]]
) -> Dict[str, int]:
    """Attach 4 teams (name, fifa_code) to a group and create its 6 matches.

    Group match numbers are 1-72: six consecutive numbers per group, A first.
    Raises ValueError when the group already has teams or the draw is not 4 teams.
    """
    if group_letter not in GROUP_LETTERS:
        raise ValueError(f"Unknown group {group_letter}")
    if len(teams) != TEAMS_PER_GROUP:
        raise ValueError(f"Group {group_letter} needs exactly {TEAMS_PER_GROUP} teams, got {len(teams)}")

    group = session.exec(select(Group).where(Group.name == group_letter)).first()
    if group is None:
        group = Group(name=group_letter)
        session.add(group)
        session.flush()

    if session.exec(select(Team).where(Team.group_id == group.id)).first() is not None:
        raise ValueError(f"Group {group_letter} already has teams")

    created = []
    for name, fifa_code in teams:
        team = Team(name=name, fifa_code=fifa_code, group_id=group.id)
        session.add(team)
        created.append(team)
    session.flush()

    first_number = GROUP_LETTERS.index(group_letter) * len(GROUP_MATCH_PAIRINGS) + 1
    for offset, (home, away) in enumerate(GROUP_MATCH_PAIRINGS):
        session.add(
            Match(
                match_number=first_number + offset,
                phase=PHASE_GROUP,
                group_id=group.id,
                home_team_id=created[home - 1].id,
                away_team_id=created[away - 1].id,
            )
        )

    session.commit()
    return {"teams_created": len(created), "matches_created": len(GROUP_MATCH_PAIRINGS)}
