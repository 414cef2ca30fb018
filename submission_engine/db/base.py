# Import all models here so Base.metadata knows every table
# (used by init_db, alembic and the test suite).
from submission_engine.db.base_class import Base  # noqa: F401
from submission_engine.models.assignment import Assignment  # noqa: F401
from submission_engine.models.course import Course  # noqa: F401
from submission_engine.models.enrollment import Enrollment  # noqa: F401
from submission_engine.models.peer_review import PeerReview  # noqa: F401
from submission_engine.models.submission import Submission  # noqa: F401
from submission_engine.models.user import User  # noqa: F401
