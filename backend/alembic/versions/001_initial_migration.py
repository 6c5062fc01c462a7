"""Initial migration: groups, teams, matches and prediction tables

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tournament_group",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tournament_group_name", "tournament_group", ["name"], unique=True)

    op.create_table(
        "team",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("fifa_code", sa.String(), nullable=True),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["tournament_group.id"]),
    )
    op.create_index("ix_team_fifa_code", "team", ["fifa_code"])
    op.create_index("ix_team_group_id", "team", ["group_id"])

    op.create_table(
        "match",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("phase", sa.String(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=True),
        sa.Column("kickoff_at", sa.DateTime(), nullable=True),
        sa.Column("home_team_id", sa.Integer(), nullable=True),
        sa.Column("away_team_id", sa.Integer(), nullable=True),
        sa.Column("home_placeholder", sa.String(), nullable=True),
        sa.Column("away_placeholder", sa.String(), nullable=True),
        sa.Column("home_source_match_number", sa.Integer(), nullable=True),
        sa.Column("away_source_match_number", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["group_id"], ["tournament_group.id"]),
        sa.ForeignKeyConstraint(["home_team_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["away_team_id"], ["team.id"]),
    )
    op.create_index("ix_match_match_number", "match", ["match_number"], unique=True)
    op.create_index("ix_match_phase", "match", ["phase"])
    op.create_index("ix_match_group_id", "match", ["group_id"])

    op.create_table(
        "prediction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("league_id", sa.String(), nullable=False),
        sa.Column("groups_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bracket_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("knockouts_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "league_id", name="uq_prediction_user_league"),
    )
    op.create_index("ix_prediction_user_id", "prediction", ["user_id"])
    op.create_index("ix_prediction_league_id", "prediction", ["league_id"])

    op.create_table(
        "match_prediction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("prediction_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("home_score", sa.Integer(), nullable=True),
        sa.Column("away_score", sa.Integer(), nullable=True),
        sa.Column("home_score_et", sa.Integer(), nullable=True),
        sa.Column("away_score_et", sa.Integer(), nullable=True),
        sa.Column("penalties_winner", sa.String(), nullable=True),
        sa.Column("home_team_id", sa.Integer(), nullable=True),
        sa.Column("away_team_id", sa.Integer(), nullable=True),
        sa.Column("winner_team_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["prediction_id"], ["prediction.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
        sa.ForeignKeyConstraint(["home_team_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["away_team_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["winner_team_id"], ["team.id"]),
        sa.UniqueConstraint("prediction_id", "match_id", name="uq_match_prediction"),
    )
    op.create_index("ix_match_prediction_prediction_id", "match_prediction", ["prediction_id"])
    op.create_index("ix_match_prediction_match_id", "match_prediction", ["match_id"])

    op.create_table(
        "group_standing_prediction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("prediction_id", sa.Integer(), nullable=False),
        sa.Column("group_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("played", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("draws", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("goals_for", sa.Integer(), nullable=False),
        sa.Column("goals_against", sa.Integer(), nullable=False),
        sa.Column("goal_difference", sa.Integer(), nullable=False),
        sa.Column("has_tiebreak_conflict", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tiebreak_group", sa.Integer(), nullable=True),
        sa.Column("manual_tiebreak_order", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["prediction_id"], ["prediction.id"]),
        sa.ForeignKeyConstraint(["group_id"], ["tournament_group.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
        sa.UniqueConstraint("prediction_id", "group_id", "team_id", name="uq_standing_team"),
        sa.UniqueConstraint("prediction_id", "group_id", "position", name="uq_standing_position"),
    )
    op.create_index("ix_group_standing_prediction_prediction_id", "group_standing_prediction", ["prediction_id"])
    op.create_index("ix_group_standing_prediction_group_id", "group_standing_prediction", ["group_id"])

    op.create_table(
        "best_third_place_prediction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("prediction_id", sa.Integer(), nullable=False),
        sa.Column("team_id", sa.Integer(), nullable=False),
        sa.Column("from_group_id", sa.Integer(), nullable=False),
        sa.Column("ranking_position", sa.Integer(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("goal_difference", sa.Integer(), nullable=False),
        sa.Column("goals_for", sa.Integer(), nullable=False),
        sa.Column("has_tiebreak_conflict", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("tiebreak_group", sa.Integer(), nullable=True),
        sa.Column("manual_tiebreak_order", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["prediction_id"], ["prediction.id"]),
        sa.ForeignKeyConstraint(["team_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["from_group_id"], ["tournament_group.id"]),
        sa.UniqueConstraint("prediction_id", "ranking_position", name="uq_best_third_rank"),
    )
    op.create_index("ix_best_third_place_prediction_prediction_id", "best_third_place_prediction", ["prediction_id"])


def downgrade() -> None:
    op.drop_table("best_third_place_prediction")
    op.drop_table("group_standing_prediction")
    op.drop_table("match_prediction")
    op.drop_table("prediction")
    op.drop_table("match")
    op.drop_table("team")
    op.drop_table("tournament_group")
