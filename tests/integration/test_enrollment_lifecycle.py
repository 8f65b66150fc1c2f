import pytest
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import EnrollmentStatusFilterEnum, ProgressSourceEnum
from app.core.exceptions import BadRequestError, ConflictError, NotFoundError
from app.models.lesson_progress import LessonProgress
from app.models.roadmap import Roadmap
from app.services.enrollment import enrollment_service
from app.services.lesson_progress import lesson_progress_service


def _enrolled_users(db_session: Session, roadmap_id: int) -> int:
    return db_session.query(Roadmap.enrolled_users).filter(Roadmap.id == roadmap_id).scalar()


def test_enroll_creates_fresh_enrollment(db_session: Session, user_factory, roadmap_factory):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=2)

    enrollment = enrollment_service.enroll_user(db_session, learner.id, roadmap.id)

    assert enrollment.user_id == learner.id
    assert enrollment.roadmap_id == roadmap.id
    assert enrollment.progress == 0
    assert enrollment.average_score == 0
    assert enrollment.is_completed is False
    assert enrollment.enrolled_at is not None
    assert enrollment_service.is_user_enrolled(db_session, learner.id, roadmap.id) is True
    assert _enrolled_users(db_session, roadmap.id) == 1


def test_double_enroll_is_rejected(db_session: Session, user_factory, roadmap_factory):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=2)
    enrollment_service.enroll_user(db_session, learner.id, roadmap.id)

    with pytest.raises(ConflictError) as exc_info:
        enrollment_service.enroll_user(db_session, learner.id, roadmap.id)

    assert exc_info.value.code == "CONFLICT"
    assert _enrolled_users(db_session, roadmap.id) == 1


def test_enroll_unknown_user_or_roadmap(db_session: Session, user_factory, roadmap_factory):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)

    with pytest.raises(NotFoundError):
        enrollment_service.enroll_user(db_session, 9999, roadmap.id)
    with pytest.raises(NotFoundError):
        enrollment_service.enroll_user(db_session, learner.id, 9999)


def test_enroll_in_inactive_roadmap_is_not_found(db_session: Session, user_factory, roadmap_factory):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1, is_active=False)

    with pytest.raises(NotFoundError):
        enrollment_service.enroll_user(db_session, learner.id, roadmap.id)
    assert _enrolled_users(db_session, roadmap.id) == 0


def test_unenroll_removes_progress_and_decrements_counter(db_session: Session, user_factory, roadmap_factory, lessons_of):
    learner = user_factory()
    other = user_factory()
    roadmap = roadmap_factory(lesson_count=3)
    lessons = lessons_of(roadmap)
    enrollment_service.enroll_user(db_session, learner.id, roadmap.id)
    enrollment_service.enroll_user(db_session, other.id, roadmap.id)
    lesson_progress_service.mark_lesson_completed(db_session, learner.id, lessons[0].id)
    lesson_progress_service.mark_lesson_completed(db_session, learner.id, lessons[1].id)
    lesson_progress_service.mark_lesson_completed(db_session, other.id, lessons[0].id)
    assert _enrolled_users(db_session, roadmap.id) == 2

    assert enrollment_service.unenroll_user(db_session, learner.id, roadmap.id) is True

    assert enrollment_service.is_user_enrolled(db_session, learner.id, roadmap.id) is False
    assert _enrolled_users(db_session, roadmap.id) == 1
    remaining = db_session.query(LessonProgress).filter(LessonProgress.user_id == learner.id).count()
    assert remaining == 0
    others = db_session.query(LessonProgress).filter(LessonProgress.user_id == other.id).count()
    assert others == 1


def test_unenroll_keeps_progress_in_other_roadmaps(db_session: Session, user_factory, roadmap_factory, lessons_of):
    learner = user_factory()
    first = roadmap_factory(lesson_count=1)
    second = roadmap_factory(lesson_count=1)
    enrollment_service.enroll_user(db_session, learner.id, first.id)
    enrollment_service.enroll_user(db_session, learner.id, second.id)
    lesson_progress_service.mark_lesson_completed(db_session, learner.id, lessons_of(first)[0].id)
    lesson_progress_service.mark_lesson_completed(db_session, learner.id, lessons_of(second)[0].id)

    enrollment_service.unenroll_user(db_session, learner.id, first.id)

    remaining = db_session.query(LessonProgress).filter(LessonProgress.user_id == learner.id).all()
    assert [record.lesson_id for record in remaining] == [lessons_of(second)[0].id]


def test_unenroll_when_not_enrolled_returns_false(db_session: Session, user_factory, roadmap_factory):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)

    assert enrollment_service.unenroll_user(db_session, learner.id, roadmap.id) is False
    assert _enrolled_users(db_session, roadmap.id) == 0


def test_reenroll_after_unenroll_starts_from_zero(db_session: Session, user_factory, roadmap_factory, lessons_of):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=2)
    enrollment_service.enroll_user(db_session, learner.id, roadmap.id)
    lesson_progress_service.mark_lesson_completed(db_session, learner.id, lessons_of(roadmap)[0].id)
    enrollment_service.unenroll_user(db_session, learner.id, roadmap.id)

    enrollment = enrollment_service.enroll_user(db_session, learner.id, roadmap.id)

    assert enrollment.progress == 0
    assert _enrolled_users(db_session, roadmap.id) == 1


def test_manual_progress_override_stands_until_next_recalculation(db_session: Session, user_factory, roadmap_factory, lessons_of):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=4)
    lessons = lessons_of(roadmap)
    enrollment_service.enroll_user(db_session, learner.id, roadmap.id)

    enrollment = enrollment_service.update_enrollment_progress(db_session, learner.id, roadmap.id, progress=57)
    assert enrollment.progress == 57
    assert enrollment.progress_source == ProgressSourceEnum.MANUAL

    enrollment = enrollment_service.get_enrollment_details(db_session, learner.id, roadmap.id)
    assert enrollment.progress == 57

    lesson_progress_service.mark_lesson_completed(db_session, learner.id, lessons[0].id)

    enrollment = enrollment_service.get_enrollment_details(db_session, learner.id, roadmap.id)
    assert enrollment.progress == 25.0
    assert enrollment.progress_source == ProgressSourceEnum.CALCULATED


def test_manual_progress_of_hundred_completes_enrollment(db_session: Session, user_factory, roadmap_factory):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=2)
    enrollment_service.enroll_user(db_session, learner.id, roadmap.id)

    enrollment = enrollment_service.update_enrollment_progress(
        db_session, learner.id, roadmap.id, progress=100, average_score=88
    )

    assert enrollment.is_completed is True
    assert enrollment.completed_at is not None
    assert enrollment.average_score == 88


@pytest.mark.parametrize("progress,average_score", [(-1, None), (101, None), (50, 120)])
def test_manual_progress_out_of_range_is_rejected(db_session: Session, user_factory, roadmap_factory,
                                                  progress, average_score):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)
    enrollment_service.enroll_user(db_session, learner.id, roadmap.id)

    with pytest.raises(BadRequestError):
        enrollment_service.update_enrollment_progress(
            db_session, learner.id, roadmap.id, progress=progress, average_score=average_score
        )


def test_manual_progress_requires_enrollment(db_session: Session, user_factory, roadmap_factory):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)

    with pytest.raises(NotFoundError):
        enrollment_service.update_enrollment_progress(db_session, learner.id, roadmap.id, progress=10)


def test_user_enrollments_filtered_by_status(db_session: Session, user_factory, roadmap_factory, lessons_of):
    learner = user_factory()
    finished = roadmap_factory(lesson_count=1)
    ongoing = roadmap_factory(lesson_count=2)
    hidden = roadmap_factory(lesson_count=1)
    enrollment_service.enroll_user(db_session, learner.id, finished.id)
    enrollment_service.enroll_user(db_session, learner.id, ongoing.id)
    enrollment_service.enroll_user(db_session, learner.id, hidden.id)
    lesson_progress_service.mark_lesson_completed(db_session, learner.id, lessons_of(finished)[0].id)

    hidden.is_active = False
    db_session.commit()

    all_ids = {e.roadmap_id for e in enrollment_service.get_user_enrollments(db_session, learner.id)}
    completed = enrollment_service.get_user_enrollments(db_session, learner.id, EnrollmentStatusFilterEnum.COMPLETED)
    enrolled = enrollment_service.get_user_enrollments(db_session, learner.id, "enrolled")

    assert all_ids == {finished.id, ongoing.id}
    assert [e.roadmap_id for e in completed] == [finished.id]
    assert [e.roadmap_id for e in enrolled] == [ongoing.id]

    with pytest.raises(BadRequestError):
        enrollment_service.get_user_enrollments(db_session, learner.id, "paused")


def test_bulk_enroll_reports_each_user(db_session: Session, user_factory, roadmap_factory):
    roadmap = roadmap_factory(lesson_count=2)
    learners = [user_factory() for _ in range(4)]
    already = learners[0]
    enrollment_service.enroll_user(db_session, already.id, roadmap.id)
    newcomers = learners[1:] + [user_factory()]

    result = enrollment_service.bulk_enroll_users(
        db_session, [u.id for u in newcomers] + [already.id], roadmap.id
    )

    assert sorted(result.successful) == sorted(u.id for u in newcomers)
    assert len(result.failed) == 1
    assert result.failed[0].user_id == already.id
    assert result.failed[0].code == "CONFLICT"
    assert _enrolled_users(db_session, roadmap.id) == 5


def test_bulk_enroll_unknown_user_does_not_undo_others(db_session: Session, user_factory, roadmap_factory):
    roadmap = roadmap_factory(lesson_count=1)
    learner = user_factory()

    result = enrollment_service.bulk_enroll_users(db_session, [learner.id, 424242], roadmap.id)

    assert result.successful == [learner.id]
    assert result.failed[0].user_id == 424242
    assert result.failed[0].code == "NOT_FOUND"
    assert enrollment_service.is_user_enrolled(db_session, learner.id, roadmap.id) is True


def test_bulk_enroll_validates_input(db_session: Session, roadmap_factory, monkeypatch):
    roadmap = roadmap_factory(lesson_count=1)

    with pytest.raises(BadRequestError):
        enrollment_service.bulk_enroll_users(db_session, [], roadmap.id)

    monkeypatch.setattr(settings, "BULK_ENROLL_LIMIT", 2)
    with pytest.raises(BadRequestError):
        enrollment_service.bulk_enroll_users(db_session, [1, 2, 3], roadmap.id)

    with pytest.raises(NotFoundError):
        enrollment_service.bulk_enroll_users(db_session, [1], 9999)


def test_recent_enrollments_limit_bounds(db_session: Session, user_factory, roadmap_factory):
    roadmap = roadmap_factory(lesson_count=1)
    for _ in range(3):
        enrollment_service.enroll_user(db_session, user_factory().id, roadmap.id)

    assert len(enrollment_service.get_recent_enrollments(db_session, limit=2)) == 2
    assert len(enrollment_service.get_recent_enrollments(db_session, limit=100)) == 3

    with pytest.raises(BadRequestError):
        enrollment_service.get_recent_enrollments(db_session, limit=0)
    with pytest.raises(BadRequestError):
        enrollment_service.get_recent_enrollments(db_session, limit=101)
