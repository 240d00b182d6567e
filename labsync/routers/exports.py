import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from labsync.core.deps import get_db
from labsync.core.permissions import require_instructor
from labsync.core.timeutils import utcnow
from labsync.models.distribution import DistributionStatus
from labsync.models.user import User
from labsync.services import exports, reports
from labsync.services.status import Audience, statuses_for_label

logger = logging.getLogger(__name__)

router = APIRouter()


def _csv_response(kind: str, body: str) -> Response:
    filename = f"{kind}_export_{utcnow().date().isoformat()}.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/assignments")
def export_assignments(
    class_id: Optional[int] = None,
    status: Optional[DistributionStatus] = None,
    scheduled_from: Optional[datetime] = None,
    scheduled_to: Optional[datetime] = None,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    rows = exports.assignment_rows(
        db,
        class_id=class_id,
        status=status.value if status else None,
        scheduled_from=scheduled_from,
        scheduled_to=scheduled_to,
    )
    logger.info("User %s exported %s distribution rows", instructor.id, len(rows))
    return _csv_response("assignments", exports.to_csv(rows, exports.ASSIGNMENT_COLUMNS))


@router.get("/submissions")
def export_submissions(
    distribution_id: Optional[int] = None,
    assignment_id: Optional[int] = None,
    class_id: Optional[int] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    rows = reports.instructor_rows(
        db, utcnow(), distribution_id=distribution_id, assignment_id=assignment_id, class_id=class_id
    )
    if status:
        wanted = statuses_for_label(status, Audience.ADMIN)
        if not wanted:
            raise HTTPException(status_code=400, detail=f"Unknown status filter '{status}'")
        rows = [r for r in rows if r.status in wanted]

    logger.info("User %s exported %s submission rows", instructor.id, len(rows))
    body = exports.to_csv(exports.submission_rows(rows), exports.SUBMISSION_COLUMNS)
    return _csv_response("submissions", body)


@router.get("/grades")
def export_grades(
    assignment_id: Optional[int] = None,
    class_id: Optional[int] = None,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    rows = reports.instructor_rows(db, utcnow(), assignment_id=assignment_id, class_id=class_id)
    graded = exports.grade_rows(rows)
    logger.info("User %s exported %s grade rows", instructor.id, len(graded))
    return _csv_response("grades", exports.to_csv(graded, exports.GRADE_COLUMNS))
