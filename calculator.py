import logging
import math
from typing import Dict, List, Optional, Union

from config import TOTAL_PLANNED_TERMS
from course_parser import parse_number
from schemas import (
    AggregateResult,
    Course,
    Grade,
    MAX_GRADE_POINT,
    TargetResult,
    TermBreakdown,
    grade_point,
    is_valid_grade,
)

logger = logging.getLogger(__name__)

UNCATEGORIZED = "Uncategorized"

# ---------- Aggregation ----------


def _counts(course: Course) -> bool:
    # Zero or negative credit courses stay listed but never enter the averages
    return course.credit > 0 and is_valid_grade(course.grade)


def aggregate(courses: List[Course]) -> AggregateResult:
    total_credits = 0.0
    total_points = 0.0
    for c in courses:
        if not _counts(c):
            continue
        total_credits += c.credit
        total_points += c.credit * grade_point(c.grade)
    cgpa = total_points / total_credits if total_credits > 0 else 0.0
    return AggregateResult(total_credits=total_credits, total_grade_points=total_points, cgpa=cgpa)


def term_key(course: Course) -> str:
    return course.level_term or UNCATEGORIZED


def group_by_term(courses: List[Course]) -> Dict[str, List[Course]]:
    """Courses grouped by level-term label, labels in sorted order."""
    groups: Dict[str, List[Course]] = {}
    for c in courses:
        groups.setdefault(term_key(c), []).append(c)
    return {term: groups[term] for term in sorted(groups)}


def term_breakdown(courses: List[Course]) -> List[TermBreakdown]:
    breakdown: List[TermBreakdown] = []
    for term, term_courses in group_by_term(courses).items():
        result = aggregate(term_courses)
        counted = [c.grade for c in term_courses if _counts(c)]
        # Grade counts follow grade table order, not order of appearance
        grade_counts = {g.value: counted.count(g) for g in Grade if g in counted}
        breakdown.append(TermBreakdown(
            term=term,
            sgpa=result.cgpa,
            total_credits=result.total_credits,
            total_grade_points=result.total_grade_points,
            grade_counts=grade_counts,
        ))
    return breakdown


def cgpa_progress(cgpa: float) -> float:
    """CGPA as a percentage of the best possible grade point, clamped to 0-100."""
    return min(100.0, max(0.0, cgpa / MAX_GRADE_POINT * 100))


# ---------- Grade simulation ----------


def set_grade(courses: List[Course], course_id: str, new_grade: Union[Grade, str]) -> List[Course]:
    """Return a copy of ``courses`` with one course's grade replaced.

    ``original_grade`` is left alone so the change can be undone. Unknown
    ids leave the list as it is.
    """
    if not any(c.id == course_id for c in courses):
        logger.debug("set_grade: no course with id %s", course_id)
        return courses
    grade = Grade(new_grade)
    return [c.model_copy(update={"grade": grade}) if c.id == course_id else c for c in courses]


def reset_grade(courses: List[Course], course_id: str) -> List[Course]:
    if not any(c.id == course_id for c in courses):
        logger.debug("reset_grade: no course with id %s", course_id)
        return courses
    return [c.model_copy(update={"grade": c.original_grade}) if c.id == course_id else c for c in courses]


def reset_all_grades(courses: List[Course]) -> List[Course]:
    return [c.model_copy(update={"grade": c.original_grade}) if c.is_modified else c for c in courses]


def has_changes(courses: List[Course]) -> bool:
    return any(c.grade != c.original_grade for c in courses)


# ---------- Target CGPA ----------


def completed_terms(courses: List[Course]) -> int:
    return len({term_key(c) for c in courses})


def _parse_target(target_cgpa: Union[float, str, None]) -> Optional[float]:
    if target_cgpa is None or isinstance(target_cgpa, bool):
        return None
    if isinstance(target_cgpa, str):
        return parse_number(target_cgpa)
    target = float(target_cgpa)
    return target if math.isfinite(target) else None


def required_gpa(
    current_cgpa: float,
    completed_credits: float,
    completed_terms: int,
    target_cgpa: Union[float, str, None],
    total_planned_terms: int = TOTAL_PLANNED_TERMS,
) -> TargetResult:
    """Average GPA needed over the remaining terms to finish on ``target_cgpa``.

    Remaining credits are estimated from the average load of the terms
    completed so far. The result is not clamped: above the best grade point
    means the target cannot be reached, below zero means it already is.
    """
    remaining_terms = max(0, total_planned_terms - completed_terms)
    if completed_terms == 0 or remaining_terms == 0:
        remaining_credits = 0.0
    else:
        remaining_credits = completed_credits / completed_terms * remaining_terms

    target = _parse_target(target_cgpa)
    if target is None or target <= 0 or remaining_credits <= 0:
        return TargetResult(
            required_gpa=0.0,
            is_valid=False,
            remaining_terms=remaining_terms,
            estimated_remaining_credits=remaining_credits,
        )

    required_total_points = target * (completed_credits + remaining_credits)
    current_total_points = current_cgpa * completed_credits
    needed = (required_total_points - current_total_points) / remaining_credits
    return TargetResult(
        required_gpa=needed,
        is_valid=True,
        remaining_terms=remaining_terms,
        estimated_remaining_credits=remaining_credits,
    )


def target_from_courses(
    courses: List[Course],
    target_cgpa: Union[float, str, None],
    total_planned_terms: int = TOTAL_PLANNED_TERMS,
) -> TargetResult:
    current = aggregate(courses)
    return required_gpa(
        current_cgpa=current.cgpa,
        completed_credits=current.total_credits,
        completed_terms=completed_terms(courses),
        target_cgpa=target_cgpa,
        total_planned_terms=total_planned_terms,
    )


def classify_required_gpa(value: float) -> str:
    if value > MAX_GRADE_POINT:
        return "unachievable"
    if value < 0:
        return "invalid"
    return "achievable"
