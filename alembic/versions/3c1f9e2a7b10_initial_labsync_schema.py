"""initial labsync schema

Revision ID: 3c1f9e2a7b10
Revises:
Create Date: 2026-10-18 10:12:31.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1f9e2a7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("student_id", sa.String(50), nullable=True, unique=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _timestamp("created_at"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "classes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("class_code", sa.String(50), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("instructor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _timestamp("created_at"),
    )
    op.create_index("ix_classes_id", "classes", ["id"])
    op.create_index("ix_classes_instructor_id", "classes", ["instructor_id"])

    op.create_table(
        "class_students",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _timestamp("created_at"),
        sa.UniqueConstraint("class_id", "user_id", name="uq_class_students_class_user"),
    )
    op.create_index("ix_class_students_id", "class_students", ["id"])
    op.create_index("ix_class_students_class_id", "class_students", ["class_id"])
    op.create_index("ix_class_students_user_id", "class_students", ["user_id"])

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("leader_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _timestamp("created_at"),
        sa.UniqueConstraint("class_id", "name", name="uq_groups_class_name"),
    )
    op.create_index("ix_groups_id", "groups", ["id"])
    op.create_index("ix_groups_class_id", "groups", ["class_id"])

    op.create_table(
        "group_members",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _timestamp("joined_at"),
        sa.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )
    op.create_index("ix_group_members_id", "group_members", ["id"])
    op.create_index("ix_group_members_group_id", "group_members", ["group_id"])
    op.create_index("ix_group_members_user_id", "group_members", ["user_id"])

    op.create_table(
        "created_assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("pdf_filename", sa.String(255), nullable=True),
        sa.Column("pdf_file_size", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_created_assignments_id", "created_assignments", ["id"])
    op.create_index("ix_created_assignments_status", "created_assignments", ["status"])
    op.create_index("ix_created_assignments_created_by", "created_assignments", ["created_by"])

    op.create_table(
        "assignment_distributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "assignment_id",
            sa.Integer(),
            sa.ForeignKey("created_assignments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("class_id", sa.Integer(), sa.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("assignment_type", sa.String(20), nullable=False),
        sa.Column("scheduled_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        _timestamp("assigned_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("deadline > scheduled_date", name="ck_distribution_deadline_after_schedule"),
    )
    op.create_index("ix_assignment_distributions_id", "assignment_distributions", ["id"])
    for col in ("assignment_id", "class_id", "group_id", "user_id"):
        op.create_index(f"ix_assignment_distributions_{col}", "assignment_distributions", [col])

    op.create_table(
        "assignment_submissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "assignment_distribution_id",
            sa.Integer(),
            sa.ForeignKey("assignment_distributions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("assignment_response_filename", sa.String(255), nullable=True),
        sa.Column("assignment_response_size", sa.Integer(), nullable=True),
        sa.Column("output_test_filename", sa.String(255), nullable=True),
        sa.Column("output_test_size", sa.Integer(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("updated_at"),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "assignment_distribution_id", "user_id", name="uq_submission_distribution_user"
        ),
    )
    op.create_index("ix_assignment_submissions_id", "assignment_submissions", ["id"])
    op.create_index(
        "ix_assignment_submissions_assignment_distribution_id",
        "assignment_submissions",
        ["assignment_distribution_id"],
    )
    op.create_index("ix_assignment_submissions_user_id", "assignment_submissions", ["user_id"])

    op.create_table(
        "assignment_grades",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "assignment_submission_id",
            sa.Integer(),
            sa.ForeignKey("assignment_submissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("instructor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("max_score", sa.Float(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.Column("grade_letter", sa.String(5), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        _timestamp("graded_at"),
        sa.CheckConstraint("max_score > 0", name="ck_grade_max_score_positive"),
        sa.CheckConstraint("score >= 0 AND score <= max_score", name="ck_grade_score_in_range"),
    )
    op.create_index("ix_assignment_grades_id", "assignment_grades", ["id"])
    op.create_index(
        "ix_assignment_grades_assignment_submission_id",
        "assignment_grades",
        ["assignment_submission_id"],
        unique=True,
    )
    op.create_index("ix_assignment_grades_instructor_id", "assignment_grades", ["instructor_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("assignment_grades")
    op.drop_table("assignment_submissions")
    op.drop_table("assignment_distributions")
    op.drop_table("created_assignments")
    op.drop_table("group_members")
    op.drop_table("groups")
    op.drop_table("class_students")
    op.drop_table("classes")
    op.drop_table("users")
