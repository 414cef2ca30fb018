from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from submission_engine.core.deps import get_db
from submission_engine.core.permissions import Actor, get_actor, require_instructor
from submission_engine.models.assignment import Assignment, PublicationStatus
from submission_engine.models.user import User
from submission_engine.schemas.assignment import AssignmentCreate, AssignmentRead
from submission_engine.services.catalog import (
    ensure_enrolled,
    get_assignment,
    get_course,
    is_course_instructor,
)

router = APIRouter()


@router.get("/courses/{course_id}/assignments", response_model=list[AssignmentRead])
def list_assignments(
    course_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    get_course(db, course_id)

    q = db.query(Assignment).filter(Assignment.course_id == course_id)
    # students only see what has been published
    if not is_course_instructor(db, course_id, actor):
        ensure_enrolled(db, course_id, actor)
        q = q.filter(Assignment.publication_status == PublicationStatus.PUBLISHED)

    return q.order_by(Assignment.due_at.is_(None), Assignment.due_at.asc(), Assignment.id.asc()).all()


@router.get("/assignments/{assignment_id}", response_model=AssignmentRead)
def read_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    a = get_assignment(db, assignment_id)
    if not is_course_instructor(db, a.course_id, actor):
        ensure_enrolled(db, a.course_id, actor)
    return a


@router.post(
    "/courses/{course_id}/assignments",
    response_model=AssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def create_assignment(
    course_id: int,
    payload: AssignmentCreate,
    db: Session = Depends(get_db),
    instructor: User = Depends(require_instructor),
):
    course = get_course(db, course_id)

    if course.instructor_id != instructor.id and instructor.role != "admin":
        raise HTTPException(status_code=403, detail="Only the course instructor can create assignments")

    a = Assignment(course_id=course_id, **payload.model_dump())
    db.add(a)
    db.commit()
    db.refresh(a)
    return a
