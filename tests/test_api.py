import pytest
from fastapi.testclient import TestClient

import main
from main import app

client = TestClient(app)

RAW = (
    "Course Code\tCourse Credit\tLevel-Term\tSessional\tResult\tCourse Type\n"
    "CSE101\t3.0\tL-1/T-1\tNo\tA+\tCore\n"
    "CSE102\t2.0\tL-1/T-1\tYes\tB\tCore\n"
    "MATH141\t3.0\tL-1/T-2\tNo\tA\tMath\n"
)


def parsed_courses():
    r = client.post('/api/parse', json={"raw_text": RAW})
    assert r.status_code == 200
    return r.json()['courses']


def test_root():
    r = client.get('/')
    assert r.status_code == 200
    assert 'CGPA' in r.json()['message']


def test_grades():
    r = client.get('/api/grades')
    assert r.status_code == 200
    data = r.json()
    assert data[0] == {"grade": "A+", "point": 4.0}
    assert data[-1] == {"grade": "F", "point": 0.0}
    assert len(data) == 10


def test_parse():
    r = client.post('/api/parse', json={"raw_text": RAW})
    assert r.status_code == 200
    data = r.json()
    assert [c['code'] for c in data['courses']] == ["CSE101", "CSE102", "MATH141"]
    assert data['courses'][1]['sessional'] is True
    assert data['summary']['total_credits'] == 8.0
    assert data['summary']['cgpa'] == pytest.approx((12 + 6 + 11.25) / 8)
    assert [t['term'] for t in data['terms']] == ["L-1/T-1", "L-1/T-2"]
    assert data['has_changes'] is False
    assert data['message'] is None


def test_parse_missing_required_column():
    r = client.post('/api/parse', json={"raw_text": "Course Code\tCourse Credit\nCSE101\t3.0"})
    assert r.status_code == 400
    assert 'Result' in r.json()['detail']


def test_parse_no_valid_rows():
    r = client.post('/api/parse', json={"raw_text": "nothing useful here"})
    assert r.status_code == 200
    data = r.json()
    assert data['courses'] == []
    assert data['summary']['cgpa'] == 0
    assert 'No valid course data' in data['message']


def test_calculate():
    courses = parsed_courses()
    r = client.post('/api/calculate', json={"courses": courses})
    assert r.status_code == 200
    data = r.json()
    assert data['summary']['total_credits'] == 8.0
    assert 0 < data['progress'] <= 100


def test_calculate_rejects_unknown_grade():
    course = {"code": "X", "credit": 3, "grade": "Z", "original_grade": "A"}
    r = client.post('/api/calculate', json={"courses": [course]})
    assert r.status_code == 422


def test_simulate_and_reset():
    courses = parsed_courses()
    target = courses[1]
    r = client.post('/api/simulate', json={"courses": courses, "course_id": target['id'], "grade": "A+"})
    assert r.status_code == 200
    simulated = r.json()
    assert simulated['has_changes'] is True
    changed = simulated['courses'][1]
    assert changed['grade'] == "A+"
    assert changed['original_grade'] == "B"
    assert changed['is_modified'] is True
    assert simulated['summary']['cgpa'] > 3.5

    r = client.post('/api/reset', json={"courses": simulated['courses'], "course_id": target['id']})
    assert r.status_code == 200
    restored = r.json()
    assert restored['has_changes'] is False
    assert restored['courses'][1]['grade'] == "B"


def test_reset_all():
    courses = parsed_courses()
    for c in courses:
        c['grade'] = "F"
    r = client.post('/api/reset', json={"courses": courses})
    assert r.status_code == 200
    assert [c['grade'] for c in r.json()['courses']] == ["A+", "B", "A"]


def test_simulate_unknown_course():
    courses = parsed_courses()
    r = client.post('/api/simulate', json={"courses": courses, "course_id": "nope", "grade": "F"})
    assert r.status_code == 200
    assert r.json()['has_changes'] is False


def test_target():
    payload = {
        "current_cgpa": 3.5,
        "completed_credits": 60,
        "completed_terms": 4,
        "target_cgpa": 3.8,
        "total_planned_terms": 8,
    }
    r = client.post('/api/target', json=payload)
    assert r.status_code == 200
    data = r.json()
    assert data['is_valid'] is True
    assert data['required_gpa'] == pytest.approx(4.1)
    assert data['status'] == "unachievable"


def test_target_no_terms_left():
    payload = {"current_cgpa": 3.5, "completed_credits": 120, "completed_terms": 8, "target_cgpa": "3.8"}
    r = client.post('/api/target', json=payload)
    assert r.status_code == 200
    data = r.json()
    assert data['is_valid'] is False
    assert data['status'] is None
    assert 'No remaining terms' in data['message']


def test_target_from_courses():
    courses = parsed_courses()
    r = client.post('/api/target/from-courses', json={"courses": courses, "target_cgpa": "3.7"})
    assert r.status_code == 200
    data = r.json()
    assert data['is_valid'] is True
    assert data['remaining_terms'] == 6
    assert data['estimated_remaining_credits'] == pytest.approx(24)
    assert data['status'] == "achievable"


def test_export_csv():
    courses = parsed_courses()
    r = client.post('/api/export/csv', json={"courses": courses})
    assert r.status_code == 200
    assert r.headers['content-type'].startswith('text/csv')
    lines = r.text.strip().splitlines()
    assert lines[0].startswith("Course Code,Course Credit")
    assert lines[1].startswith("CSE101,3.0,L-1/T-1,No,A+,A+")
    assert len(lines) == 4


def test_transcripts_without_database(monkeypatch):
    monkeypatch.setattr(main, "db", None)
    r = client.post('/api/transcripts', json={"user_id": "u1", "courses": []})
    assert r.status_code == 500
    r = client.get('/api/transcripts/u1')
    assert r.status_code == 500


def test_transcripts_round_trip(monkeypatch):
    store = {}

    def fake_upsert(collection_name, filter_dict, data):
        store[(collection_name, filter_dict["user_id"])] = dict(data, _id="1")
        return store[(collection_name, filter_dict["user_id"])]

    def fake_get(collection_name, filter_dict=None, limit=100):
        doc = store.get((collection_name, filter_dict["user_id"]))
        return [doc] if doc else []

    monkeypatch.setattr(main, "db", object())
    monkeypatch.setattr(main, "upsert_document", fake_upsert)
    monkeypatch.setattr(main, "get_documents", fake_get)

    courses = parsed_courses()
    r = client.post('/api/transcripts', json={"user_id": " u1 ", "courses": courses})
    assert r.status_code == 200
    assert r.json()['user_id'] == "u1"

    r = client.get('/api/transcripts/u1')
    assert r.status_code == 200
    assert [c['code'] for c in r.json()['courses']] == ["CSE101", "CSE102", "MATH141"]

    r = client.get('/api/transcripts/someone-else')
    assert r.status_code == 200
    assert r.json()['courses'] == []


def test_selftest():
    r = client.get('/api/selftest')
    assert r.status_code == 200
    data = r.json()
    assert data['ok'] is True
    assert data['courses'] == 3
    assert data['simulated_cgpa'] > data['summary']['cgpa']
    assert data['target']['is_valid'] is True
