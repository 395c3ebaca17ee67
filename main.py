import csv
import logging
import os
from io import StringIO
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware

from calculator import (
    aggregate,
    cgpa_progress,
    classify_required_gpa,
    has_changes,
    required_gpa,
    reset_all_grades,
    reset_grade,
    set_grade,
    target_from_courses,
    term_breakdown,
)
from config import CORS_ORIGINS, LOG_LEVEL, PORT, TOTAL_PLANNED_TERMS
from course_parser import ParseError, parse_course_data
from database import TRANSCRIPT_COLLECTION, db, get_documents, upsert_document
from schemas import (
    CalculateRequest,
    CalculationResponse,
    Course,
    CourseTargetRequest,
    GradeOption,
    MAX_GRADE_POINT,
    ParseRequest,
    ParseResponse,
    ResetRequest,
    SimulateRequest,
    TargetRequest,
    TargetResponse,
    TargetResult,
    TranscriptRecord,
    grade_options,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

NO_DATA_MESSAGE = "No valid course data found. Please check the format."

app = FastAPI(title="CGPA Calculator API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "CGPA Calculator API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }

    if db is None:
        return response

    response["database"] = "✅ Available"
    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = getattr(db, "name", "unknown")
    try:
        collections = db.list_collection_names()
        response["collections"] = collections[:10]
        response["connection_status"] = "Connected"
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("Database status check failed: %s", e)
        response["database"] = f"⚠️ Connected but Error: {str(e)[:80]}"
    return response


# ---------- Helpers ----------

def build_calculation(courses: List[Course]) -> Dict[str, Any]:
    summary = aggregate(courses)
    return {
        "courses": courses,
        "summary": summary,
        "terms": term_breakdown(courses),
        "has_changes": has_changes(courses),
        "progress": cgpa_progress(summary.cgpa),
    }


def build_target_response(result: TargetResult) -> TargetResponse:
    if not result.is_valid:
        if result.remaining_terms == 0:
            msg = "No remaining terms to plan for. Your CGPA is already determined."
        elif result.estimated_remaining_credits <= 0:
            msg = "No completed credits to estimate the remaining load from."
        else:
            msg = "Enter a positive target CGPA."
        return TargetResponse(**result.model_dump(), message=msg)

    status = classify_required_gpa(result.required_gpa)
    needed = round(result.required_gpa, 2)
    if status == "unachievable":
        msg = f"Target is unachievable: it needs {needed}, above the maximum of {MAX_GRADE_POINT}."
    elif status == "invalid":
        msg = "Target is invalid: your current CGPA already exceeds it."
    else:
        msg = f"You need an average GPA of {needed} over the remaining {result.remaining_terms} terms."
    return TargetResponse(**result.model_dump(), status=status, message=msg)


# ---------- API Endpoints ----------

@app.get("/api/grades", response_model=List[GradeOption])
def api_grades():
    return grade_options()


@app.post("/api/parse", response_model=ParseResponse)
def api_parse(req: ParseRequest):
    try:
        courses = parse_course_data(req.raw_text)
    except ParseError as e:
        logger.info("Rejected pasted data: %s", e)
        raise HTTPException(status_code=400, detail=str(e))
    message = None if courses else NO_DATA_MESSAGE
    return {**build_calculation(courses), "message": message}


@app.post("/api/calculate", response_model=CalculationResponse)
def api_calculate(req: CalculateRequest):
    return build_calculation(req.courses)


@app.post("/api/simulate", response_model=CalculationResponse)
def api_simulate(req: SimulateRequest):
    return build_calculation(set_grade(req.courses, req.course_id, req.grade))


@app.post("/api/reset", response_model=CalculationResponse)
def api_reset(req: ResetRequest):
    if req.course_id is None:
        return build_calculation(reset_all_grades(req.courses))
    return build_calculation(reset_grade(req.courses, req.course_id))


@app.post("/api/target", response_model=TargetResponse)
def api_target(req: TargetRequest):
    result = required_gpa(
        current_cgpa=req.current_cgpa,
        completed_credits=req.completed_credits,
        completed_terms=req.completed_terms,
        target_cgpa=req.target_cgpa,
        total_planned_terms=req.total_planned_terms or TOTAL_PLANNED_TERMS,
    )
    return build_target_response(result)


@app.post("/api/target/from-courses", response_model=TargetResponse)
def api_target_from_courses(req: CourseTargetRequest):
    result = target_from_courses(req.courses, req.target_cgpa, req.total_planned_terms or TOTAL_PLANNED_TERMS)
    return build_target_response(result)


# ---------- Export Endpoints ----------

@app.post("/api/export/csv")
def export_csv(req: CalculateRequest):
    output = StringIO()
    writer = csv.writer(output)
    writer.writerow(["Course Code", "Course Credit", "Level-Term", "Sessional", "Result", "Original Result", "Course Type"])
    for c in req.courses:
        writer.writerow([
            c.code,
            c.credit,
            c.level_term,
            "Yes" if c.sessional else "No",
            c.grade.value,
            c.original_grade.value,
            c.course_type,
        ])
    return Response(
        content=output.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=courses.csv"},
    )


# ---------- Persistence ----------

@app.post("/api/transcripts", response_model=Dict[str, Any])
def save_transcript(record: TranscriptRecord):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not connected")
    payload = {"user_id": record.user_id, "courses": [c.model_dump(mode="json") for c in record.courses]}
    return upsert_document(TRANSCRIPT_COLLECTION, {"user_id": record.user_id}, payload)


@app.get("/api/transcripts/{user_id}", response_model=Dict[str, Any])
def load_transcript(user_id: str):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not connected")
    items = get_documents(TRANSCRIPT_COLLECTION, {"user_id": user_id}, limit=1)
    if not items:
        return {"user_id": user_id, "courses": []}
    return items[0]


# ---------- Self-test endpoint ----------

SELFTEST_DATA = (
    "Course Code\tCourse Credit\tLevel-Term\tSessional\tResult\tCourse Type\n"
    "CSE101\t3.0\tL-1/T-1\tNo\tA+\tCore\n"
    "CSE102\t1.5\tL-1/T-1\tYes\tA\tCore\n"
    "MATH141\t3.0\tL-1/T-2\tNo\tB+\tMath\n"
)


@app.get("/api/selftest")
def selftest():
    try:
        courses = parse_course_data(SELFTEST_DATA)
        summary = aggregate(courses)
        simulated = set_grade(courses, courses[-1].id, "A+")
        target = target_from_courses(courses, 3.9)
        return {
            "ok": True,
            "database": db is not None,
            "courses": len(courses),
            "summary": summary.model_dump(),
            "simulated_cgpa": aggregate(simulated).cgpa,
            "terms": [t.model_dump() for t in term_breakdown(courses)],
            "target": target.model_dump(),
        }
    except Exception as e:
        logger.exception("Self-test failed")
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
