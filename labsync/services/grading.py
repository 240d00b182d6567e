"""Score -> percentage -> letter, and the one-grade-per-submission upsert."""
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from labsync.core.errors import InvalidScoreError, NotFoundError, ValidationError
from labsync.core.timeutils import as_utc, utcnow
from labsync.db.writes import commit, insert_or_ignore
from labsync.models.distribution import AssignmentDistribution
from labsync.models.grade import AssignmentGrade
from labsync.models.submission import AssignmentSubmission
from labsync.services.grade_scale import GRADE_SCALE, GradeScale
from labsync.services.submissions import get_submission

logger = logging.getLogger(__name__)

MAX_LETTER_LENGTH = 5


@dataclass
class GradeResult:
    grade: AssignmentGrade
    created: bool


def validate_score(score: float, max_score: float) -> None:
    for name, value in (("score", score), ("max_score", max_score)):
        if value is None or not math.isfinite(value):
            raise InvalidScoreError(f"{name} must be a finite number", field=name)
    if max_score <= 0:
        raise InvalidScoreError("max_score must be greater than 0", field="max_score")
    if score < 0:
        raise InvalidScoreError("score must be at least 0", field="score")
    if score > max_score:
        raise InvalidScoreError(
            f"score cannot exceed max_score ({score:g} > {max_score:g})", field="score"
        )


def compute_percentage(score: float, max_score: float) -> float:
    """100 * score / max_score rounded half-up to 0.01."""
    value = Decimal(str(score)) * 100 / Decimal(str(max_score))
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _letter(percentage: float, override: str | None, scale: GradeScale) -> str:
    if override is not None and override.strip():
        override = override.strip()
        if len(override) > MAX_LETTER_LENGTH:
            raise ValidationError(
                f"grade_letter must be at most {MAX_LETTER_LENGTH} characters",
                field="grade_letter",
            )
        return override
    return scale.lookup(percentage).letter


def submit_grade(
    db: Session,
    submission_id: int,
    score: float,
    max_score: float,
    grader_id: int,
    feedback: str | None = None,
    grade_letter_override: str | None = None,
    scale: GradeScale = GRADE_SCALE,
    now: datetime | None = None,
) -> GradeResult:
    """Create the submission's grade, or replace it if one exists.

    The first grade locks the submission. Re-grades leave the lock alone,
    so an instructor who unlocked a submission keeps it unlocked.
    """
    validate_score(score, max_score)
    percentage = compute_percentage(score, max_score)
    letter = _letter(percentage, grade_letter_override, scale)
    now = as_utc(now) if now else utcnow()

    submission = get_submission(db, submission_id, for_update=True)

    values = {
        "score": float(score),
        "max_score": float(max_score),
        "percentage": percentage,
        "grade_letter": letter,
        "feedback": feedback,
        "instructor_id": grader_id,
        "graded_at": now,
    }

    created = insert_or_ignore(
        db,
        AssignmentGrade,
        {"assignment_submission_id": submission.id, **values},
        ["assignment_submission_id"],
    )

    if created:
        submission.is_locked = True
        submission.updated_at = now
    else:
        db.execute(
            update(AssignmentGrade)
            .where(AssignmentGrade.assignment_submission_id == submission.id)
            .values(**values)
        )

    commit(db)

    grade = (
        db.query(AssignmentGrade)
        .filter(AssignmentGrade.assignment_submission_id == submission.id)
        .populate_existing()
        .one()
    )
    logger.info(
        "Grade %s %s for submission %s: %s/%s (%.2f%%, %s)",
        grade.id,
        "created" if created else "updated",
        submission.id,
        score,
        max_score,
        percentage,
        letter,
    )
    return GradeResult(grade=grade, created=created)


def update_grade(
    db: Session,
    grade: AssignmentGrade,
    grader_id: int,
    score: float | None = None,
    max_score: float | None = None,
    feedback: str | None = None,
    grade_letter: str | None = None,
    scale: GradeScale = GRADE_SCALE,
    now: datetime | None = None,
) -> AssignmentGrade:
    """Partial update of an existing grade; recomputes the letter unless given."""
    if score is None and max_score is None and feedback is None and grade_letter is None:
        raise ValidationError("No fields to update")

    new_score = grade.score if score is None else score
    new_max = grade.max_score if max_score is None else max_score
    validate_score(new_score, new_max)

    percentage = compute_percentage(new_score, new_max)
    if grade_letter is not None:
        grade.grade_letter = _letter(percentage, grade_letter, scale)
    elif score is not None or max_score is not None:
        grade.grade_letter = scale.lookup(percentage).letter

    grade.score = float(new_score)
    grade.max_score = float(new_max)
    grade.percentage = percentage
    if feedback is not None:
        grade.feedback = feedback
    grade.instructor_id = grader_id
    grade.graded_at = as_utc(now) if now else utcnow()

    commit(db)
    db.refresh(grade)
    logger.info("Grade %s updated to %.2f%% (%s)", grade.id, grade.percentage, grade.grade_letter)
    return grade


def get_grade(db: Session, grade_id: int) -> AssignmentGrade:
    grade = db.query(AssignmentGrade).filter(AssignmentGrade.id == grade_id).first()
    if not grade:
        raise NotFoundError("Grade not found")
    return grade


def find_grade(db: Session, submission_id: int) -> AssignmentGrade | None:
    return (
        db.query(AssignmentGrade)
        .filter(AssignmentGrade.assignment_submission_id == submission_id)
        .first()
    )


def get_grade_for_submission(db: Session, submission_id: int) -> AssignmentGrade:
    grade = find_grade(db, submission_id)
    if not grade:
        raise NotFoundError("Grade not found")
    return grade


def grade_analytics(
    db: Session,
    assignment_id: int | None = None,
    class_id: int | None = None,
    scale: GradeScale = GRADE_SCALE,
) -> dict:
    q = (
        db.query(AssignmentGrade)
        .join(AssignmentSubmission, AssignmentSubmission.id == AssignmentGrade.assignment_submission_id)
        .join(
            AssignmentDistribution,
            AssignmentDistribution.id == AssignmentSubmission.assignment_distribution_id,
        )
    )
    if assignment_id is not None:
        q = q.filter(AssignmentDistribution.assignment_id == assignment_id)
    if class_id is not None:
        q = q.filter(AssignmentDistribution.class_id == class_id)

    stats = q.with_entities(
        func.count(AssignmentGrade.id),
        func.avg(AssignmentGrade.percentage),
        func.min(AssignmentGrade.percentage),
        func.max(AssignmentGrade.percentage),
        func.count(func.distinct(AssignmentSubmission.user_id)),
    ).one()
    total, avg, low, high, students = stats

    by_letter = dict(
        q.with_entities(AssignmentGrade.grade_letter, func.count(AssignmentGrade.id))
        .group_by(AssignmentGrade.grade_letter)
        .all()
    )

    distribution = []
    for letter in scale.letters():
        count = int(by_letter.pop(letter, 0))
        distribution.append(
            {
                "grade_letter": letter,
                "count": count,
                "percentage": round(count * 100 / total, 2) if total else 0.0,
            }
        )
    # manual overrides outside the scale
    for letter, count in sorted(by_letter.items()):
        distribution.append(
            {
                "grade_letter": letter,
                "count": int(count),
                "percentage": round(count * 100 / total, 2) if total else 0.0,
            }
        )

    gpa_points = [
        (scale.gpa_for_letter(row["grade_letter"]), row["count"])
        for row in distribution
        if row["count"] and scale.gpa_for_letter(row["grade_letter"]) is not None
    ]
    gpa_count = sum(c for _g, c in gpa_points)
    average_gpa = round(sum(g * c for g, c in gpa_points) / gpa_count, 2) if gpa_count else None

    return {
        "total_grades": int(total or 0),
        "total_students": int(students or 0),
        "average_percentage": round(float(avg), 2) if avg is not None else None,
        "min_percentage": float(low) if low is not None else None,
        "max_percentage": float(high) if high is not None else None,
        "average_gpa": average_gpa,
        "grade_distribution": distribution,
    }
