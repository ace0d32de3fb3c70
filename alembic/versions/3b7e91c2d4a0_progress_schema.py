"""progress schema: content graph, learner progress, attempts, XP ledger

Revision ID: 3b7e91c2d4a0
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7e91c2d4a0"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ID = 64


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", sa.String(_ID), primary_key=True),
        sa.Column("title", sa.String(500), nullable=False),
    )
    op.create_table(
        "trainings",
        sa.Column("id", sa.String(_ID), primary_key=True),
        sa.Column(
            "course_id", sa.String(_ID), sa.ForeignKey("courses.id"), nullable=False
        ),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("video_duration", sa.Integer(), nullable=True),
        sa.Column("minimum_watch_time", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "is_published", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
    )
    op.create_index("ix_trainings_course_id", "trainings", ["course_id"])

    op.create_table(
        "sub_units",
        sa.Column("id", sa.String(_ID), primary_key=True),
        sa.Column(
            "training_id",
            sa.String(_ID),
            sa.ForeignKey("trainings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("video_duration", sa.Integer(), nullable=True),
    )
    op.create_index("ix_sub_units_training_id", "sub_units", ["training_id"])

    op.create_table(
        "quizzes",
        sa.Column("id", sa.String(_ID), primary_key=True),
        sa.Column(
            "training_id",
            sa.String(_ID),
            sa.ForeignKey("trainings.id", ondelete="CASCADE"),
            nullable=True,
            unique=True,
        ),
        sa.Column(
            "sub_unit_id",
            sa.String(_ID),
            sa.ForeignKey("sub_units.id", ondelete="CASCADE"),
            nullable=True,
            unique=True,
        ),
        sa.Column("title", sa.String(500), nullable=False, server_default=""),
        sa.Column("passing_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column(
            "allow_retake", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("max_attempts", sa.Integer(), nullable=True),
        sa.Column("questions_to_show", sa.Integer(), nullable=True),
        sa.Column("time_limit", sa.Integer(), nullable=True),
        sa.Column("questions_json", sa.Text(), nullable=False, server_default="[]"),
    )

    op.create_table(
        "training_progress",
        sa.Column("learner_id", sa.String(_ID), primary_key=True),
        sa.Column(
            "training_id",
            sa.String(_ID),
            sa.ForeignKey("trainings.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("video_progress_pct", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "video_watched_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column(
            "quiz_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("quiz_score", sa.Integer(), nullable=True),
        sa.Column(
            "quiz_postponed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "sub_units_completed_count",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column(
            "sub_units_total_count", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("progress_pct", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "is_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("completed_at", sa.Integer(), nullable=True),
    )
    op.create_index(
        "ix_training_progress_training_id", "training_progress", ["training_id"]
    )

    op.create_table(
        "sub_unit_progress",
        sa.Column("learner_id", sa.String(_ID), primary_key=True),
        sa.Column(
            "sub_unit_id",
            sa.String(_ID),
            sa.ForeignKey("sub_units.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("video_progress_pct", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "quiz_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("quiz_score", sa.Integer(), nullable=True),
        sa.Column(
            "is_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("completed_at", sa.Integer(), nullable=True),
    )

    op.create_table(
        "course_progress",
        sa.Column("learner_id", sa.String(_ID), primary_key=True),
        sa.Column(
            "course_id", sa.String(_ID), sa.ForeignKey("courses.id"), primary_key=True
        ),
        sa.Column("progress_pct", sa.Float(), nullable=False, server_default="0"),
        sa.Column(
            "is_completed", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "completed_trainings", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("total_trainings", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_course_progress_course_id", "course_progress", ["course_id"])

    op.create_table(
        "quiz_attempts",
        sa.Column("id", sa.String(_ID), primary_key=True),
        sa.Column("learner_id", sa.String(_ID), nullable=False),
        sa.Column("quiz_id", sa.String(_ID), nullable=False),
        sa.Column("attempt_no", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("passed", sa.Boolean(), nullable=False),
        sa.Column("answers_json", sa.Text(), nullable=False),
        sa.Column("started_at", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.Integer(), nullable=False),
        sa.Column("time_spent_seconds", sa.Integer(), nullable=True),
    )
    op.create_index("ix_quiz_attempts_quiz_id", "quiz_attempts", ["quiz_id"])

    op.create_table(
        "learner_stats",
        sa.Column("learner_id", sa.String(_ID), primary_key=True),
        sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("diamonds", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_table(
        "learner_rewards",
        sa.Column("learner_id", sa.String(_ID), primary_key=True),
        sa.Column("training_id", sa.String(_ID), primary_key=True),
        sa.Column("completed_at", sa.Integer(), primary_key=True),
        sa.Column("xp", sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("learner_rewards")
    op.drop_table("learner_stats")
    op.drop_index("ix_quiz_attempts_quiz_id", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_index("ix_course_progress_course_id", table_name="course_progress")
    op.drop_table("course_progress")
    op.drop_table("sub_unit_progress")
    op.drop_index("ix_training_progress_training_id", table_name="training_progress")
    op.drop_table("training_progress")
    op.drop_table("quizzes")
    op.drop_index("ix_sub_units_training_id", table_name="sub_units")
    op.drop_table("sub_units")
    op.drop_index("ix_trainings_course_id", table_name="trainings")
    op.drop_table("trainings")
    op.drop_table("courses")
