import uuid
from enum import Enum
from typing import Dict, List, Optional, Union
from pydantic import BaseModel, Field, computed_field, field_validator

# Course and result models shared by the parser, the calculator and the API.
# TranscriptRecord maps to the "transcript" MongoDB collection.


class Grade(str, Enum):
    """Letter grades in display order, best first."""

    A_PLUS = "A+"
    A = "A"
    A_MINUS = "A-"
    B_PLUS = "B+"
    B = "B"
    B_MINUS = "B-"
    C_PLUS = "C+"
    C = "C"
    D = "D"
    F = "F"


GRADE_POINTS: Dict[Grade, float] = {
    Grade.A_PLUS: 4.0,
    Grade.A: 3.75,
    Grade.A_MINUS: 3.5,
    Grade.B_PLUS: 3.25,
    Grade.B: 3.0,
    Grade.B_MINUS: 2.75,
    Grade.C_PLUS: 2.5,
    Grade.C: 2.25,
    Grade.D: 2.0,
    Grade.F: 0.0,
}

MAX_GRADE_POINT = max(GRADE_POINTS.values())

_GRADE_VALUES = frozenset(g.value for g in Grade)


def is_valid_grade(value: Union[Grade, str, None]) -> bool:
    if isinstance(value, Grade):
        return True
    return value in _GRADE_VALUES


def grade_point(grade: Union[Grade, str]) -> float:
    if not is_valid_grade(grade):
        raise KeyError(grade)
    return GRADE_POINTS[Grade(grade)]


class GradeOption(BaseModel):
    grade: Grade
    point: float


def grade_options() -> List[GradeOption]:
    return [GradeOption(grade=g, point=GRADE_POINTS[g]) for g in Grade]


class Course(BaseModel):
    """One course result as pasted from the university portal.

    ``grade`` is the simulated grade, ``original_grade`` is what the portal
    reported and never changes after parsing.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    code: str = "N/A"
    credit: float
    level_term: str = "N/A"
    sessional: bool = False
    grade: Grade
    original_grade: Grade
    course_type: str = "N/A"

    @computed_field
    @property
    def is_modified(self) -> bool:
        return self.grade != self.original_grade


class AggregateResult(BaseModel):
    total_credits: float
    total_grade_points: float
    cgpa: float


class TermBreakdown(BaseModel):
    term: str
    sgpa: float
    total_credits: float
    total_grade_points: float
    grade_counts: Dict[str, int]


class TargetResult(BaseModel):
    required_gpa: float
    is_valid: bool
    remaining_terms: int
    estimated_remaining_credits: float


class ParseRequest(BaseModel):
    raw_text: str


class CalculateRequest(BaseModel):
    courses: List[Course]


class SimulateRequest(BaseModel):
    courses: List[Course]
    course_id: str
    grade: Grade


class ResetRequest(BaseModel):
    courses: List[Course]
    course_id: Optional[str] = None  # omitted means reset every course


class TargetRequest(BaseModel):
    current_cgpa: float = Field(..., ge=0)
    completed_credits: float = Field(..., ge=0)
    completed_terms: int = Field(..., ge=0)
    target_cgpa: Union[float, str, None] = None
    total_planned_terms: Optional[int] = Field(None, ge=1)


class CourseTargetRequest(BaseModel):
    courses: List[Course]
    target_cgpa: Union[float, str, None] = None
    total_planned_terms: Optional[int] = Field(None, ge=1)


class TranscriptRecord(BaseModel):
    user_id: str
    courses: List[Course]

    @field_validator('user_id')
    def normalize_user_id(cls, v: str) -> str:
        return v.strip()


class CalculationResponse(BaseModel):
    courses: List[Course]
    summary: AggregateResult
    terms: List[TermBreakdown]
    has_changes: bool
    progress: float


class ParseResponse(CalculationResponse):
    message: Optional[str] = None


class TargetResponse(TargetResult):
    status: Optional[str] = None  # achievable | unachievable | invalid
    message: str
