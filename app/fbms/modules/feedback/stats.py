"""
Rating statistics.

`aggregate()` reduces a flat list of ratings; `combine()` sums partitions so
that grouped totals always equal the ungrouped ones. The `*_stats` functions
issue one bulk query per scope and reduce in memory.
"""
from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import select

from app.fbms.constants import RATING_VALUES
from app.fbms.errors import NotFound, ValidationError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _empty_distribution() -> dict[int, int]:
    return {r: 0 for r in RATING_VALUES}


@dataclass(frozen=True)
class RatingStats:
    count: int = 0
    total: int = 0
    distribution: dict[int, int] = field(default_factory=_empty_distribution)

    @property
    def average(self) -> float:
        if self.count == 0:
            return 0
        return round(self.total / self.count, 2)

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "average": self.average,
            "distribution": {str(k): v for k, v in self.distribution.items()},
        }


def aggregate(ratings: Iterable[int]) -> RatingStats:
    dist = _empty_distribution()
    count = 0
    total = 0
    for rating in ratings:
        if rating not in dist:
            raise ValidationError(f"Rating out of range: {rating!r}")
        dist[rating] += 1
        count += 1
        total += rating
    return RatingStats(count=count, total=total, distribution=dist)


def combine(parts: Iterable[RatingStats]) -> RatingStats:
    dist = _empty_distribution()
    count = 0
    total = 0
    for p in parts:
        count += p.count
        total += p.total
        for r, n in p.distribution.items():
            dist[r] += n
    return RatingStats(count=count, total=total, distribution=dist)


def group_ratings(rows: Iterable[tuple[int, int]]) -> dict[int, RatingStats]:
    """(key, rating) pairs -> per-key stats."""
    buckets: dict[int, list[int]] = defaultdict(list)
    for key, rating in rows:
        buckets[key].append(rating)
    return {k: aggregate(v) for k, v in buckets.items()}


def _scope_payload(stats: RatingStats) -> dict:
    return {
        "totalResponses": stats.count,
        "averageRating": stats.average,
        "ratingDistribution": {str(k): v for k, v in stats.distribution.items()},
    }


def question_stats(s: "Session", question_id: int) -> dict:
    from app.fbms.modules.feedback.models import Feedback
    from app.fbms.modules.questions.models import Question

    question = s.get(Question, question_id)
    if question is None:
        raise NotFound("Question not found")

    feedback = (
        s.query(Feedback)
        .filter(Feedback.question_id == question_id)
        .order_by(Feedback.submitted_at.desc())
        .all()
    )
    stats = aggregate(f.rating for f in feedback)
    out = {"questionId": question.id, "questionText": question.text}
    out.update(_scope_payload(stats))
    out["feedback"] = feedback
    return out


def department_stats(s: "Session", department_id: int) -> dict:
    from app.fbms.modules.departments.models import Department
    from app.fbms.modules.feedback.models import Feedback
    from app.fbms.modules.questions.models import Question

    department = s.get(Department, department_id)
    if department is None:
        raise NotFound(f"Department with id={department_id} not found")

    questions = (
        s.query(Question).filter(Question.department_id == department_id).order_by(Question.id.asc()).all()
    )
    rows = s.execute(
        select(Feedback.question_id, Feedback.rating)
        .join(Question, Question.id == Feedback.question_id)
        .where(Question.department_id == department_id)
    ).all()
    per_question = group_ratings((qid, rating) for qid, rating in rows)

    question_stats_out = []
    for q in questions:
        qs = per_question.get(q.id, RatingStats())
        question_stats_out.append(
            {
                "questionId": q.id,
                "questionText": q.text,
                "responses": qs.count,
                "averageRating": qs.average,
                "ratingDistribution": {str(k): v for k, v in qs.distribution.items()},
            }
        )

    totals = combine(per_question.values())
    out = {"departmentId": department.id, "departmentName": department.name}
    out.update(_scope_payload(totals))
    out["questionStats"] = question_stats_out
    return out


def overall_stats(s: "Session") -> dict:
    from app.fbms.modules.departments.models import Department
    from app.fbms.modules.feedback.models import Feedback
    from app.fbms.modules.questions.models import Question

    departments = s.query(Department).filter(Department.active).order_by(Department.name.asc()).all()
    rows = s.execute(
        select(Question.department_id, Feedback.rating)
        .join(Question, Question.id == Feedback.question_id)
        .join(Department, Department.id == Question.department_id)
        .where(Department.active)
    ).all()
    per_department = group_ratings((did, rating) for did, rating in rows)

    department_stats_out = []
    for d in departments:
        ds = per_department.get(d.id, RatingStats())
        department_stats_out.append(
            {
                "departmentId": d.id,
                "departmentName": d.name,
                "responses": ds.count,
                "averageRating": ds.average,
                "ratingDistribution": {str(k): v for k, v in ds.distribution.items()},
            }
        )

    totals = combine(per_department.values())
    return {
        "totalResponses": totals.count,
        "overallAverageRating": totals.average,
        "overallRatingDistribution": {str(k): v for k, v in totals.distribution.items()},
        "departmentStats": department_stats_out,
    }
