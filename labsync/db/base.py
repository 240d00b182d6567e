# Import every model so Base.metadata is complete for create_all and Alembic.
from labsync.db.base_class import Base  # noqa: F401
from labsync.models.assignment import Assignment  # noqa: F401
from labsync.models.distribution import AssignmentDistribution  # noqa: F401
from labsync.models.grade import AssignmentGrade  # noqa: F401
from labsync.models.group import Group, GroupMember  # noqa: F401
from labsync.models.school_class import ClassStudent, SchoolClass  # noqa: F401
from labsync.models.submission import AssignmentSubmission  # noqa: F401
from labsync.models.user import User  # noqa: F401
