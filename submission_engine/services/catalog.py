from sqlalchemy.orm import Session

from submission_engine.core.errors import AuthorizationError, NotFoundError
from submission_engine.core.permissions import Actor
from submission_engine.models.assignment import Assignment
from submission_engine.models.course import Course
from submission_engine.models.enrollment import ENROLLMENT_ACTIVE, Enrollment


def get_assignment(db: Session, assignment_id: int) -> Assignment:
    a = db.query(Assignment).filter(Assignment.id == assignment_id).first()
    if not a:
        raise NotFoundError("Assignment", assignment_id)
    return a


def get_course(db: Session, course_id: int) -> Course:
    course = db.query(Course).filter(Course.id == course_id).first()
    if not course:
        raise NotFoundError("Course", course_id)
    return course


def is_enrolled(db: Session, course_id: int, user_id: int) -> bool:
    return (
        db.query(Enrollment)
        .filter(
            Enrollment.course_id == course_id,
            Enrollment.student_id == user_id,
            Enrollment.status == ENROLLMENT_ACTIVE,
        )
        .first()
        is not None
    )


def is_course_instructor(db: Session, course_id: int, actor: Actor) -> bool:
    if actor.is_admin:
        return True
    if not actor.can_grade:
        return False
    return (
        db.query(Course)
        .filter(Course.id == course_id, Course.instructor_id == actor.user_id)
        .first()
        is not None
    )


def ensure_enrolled(db: Session, course_id: int, actor: Actor) -> None:
    # course staff may act as a student (previewing their own assignment)
    if is_enrolled(db, course_id, actor.user_id):
        return
    if not is_course_instructor(db, course_id, actor):
        raise AuthorizationError("Not enrolled in this course")


def ensure_course_instructor(db: Session, course_id: int, actor: Actor) -> None:
    if not actor.can_grade:
        raise AuthorizationError("Instructor role required")
    if not is_course_instructor(db, course_id, actor):
        raise AuthorizationError("Only the course instructor can perform this action")
