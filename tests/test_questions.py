from app.fbms.constants import RoleName


def _ids(resp):
    return [q["id"] for q in resp.json["questions"]]


def test_director_creates_question_student_cannot(client, factory):
    dept = factory.department("Economics")
    director = factory.headers(factory.user("ad", RoleName.ACADEMIC_DIRECTOR))
    student = factory.headers(factory.user("stu", RoleName.STUDENT, department_id=dept, year=1))

    payload = {"text": "Was the pace right?", "year": 1, "departmentId": dept}
    r = client.post("/api/questions/", json=payload, headers=student)
    assert r.status_code == 403
    assert r.json["reason"] == "role-mismatch"

    r = client.post("/api/questions/", json=payload, headers=director)
    assert r.status_code == 201
    assert r.json["role"] == "both"
    assert r.json["status"] == "active"
    assert r.json["department"]["name"] == "Economics"


def test_create_question_validation(client, factory):
    dept = factory.department("Economics")
    director = factory.headers(factory.user("ad", RoleName.ACADEMIC_DIRECTOR))

    r = client.post("/api/questions/", json={"text": "", "year": 1, "departmentId": dept}, headers=director)
    assert r.status_code == 400

    r = client.post("/api/questions/", json={"text": "Q", "year": 9, "departmentId": dept}, headers=director)
    assert r.status_code == 400

    r = client.post("/api/questions/", json={"text": "Q", "year": 1, "departmentId": dept, "role": "alumni"}, headers=director)
    assert r.status_code == 400

    r = client.post("/api/questions/", json={"text": "Q", "year": 1, "departmentId": 9999}, headers=director)
    assert r.status_code == 404


def test_listing_respects_audience_scope_and_status(client, factory):
    dept = factory.department("Law")
    other = factory.department("Art")
    q_student = factory.question(dept, 2, role="student")
    q_staff = factory.question(dept, 2, role="staff")
    q_both = factory.question(dept, 2, role="both")
    factory.question(dept, 3, role="both")
    factory.question(other, 2, role="both")
    q_retired = factory.question(dept, 2, role="both", status="retired")

    student = factory.headers(factory.user("stu", RoleName.STUDENT, department_id=dept, year=2))
    staff = factory.headers(factory.user("stf", RoleName.STAFF, department_id=dept, year=2))
    nobody = factory.headers(factory.user("none", department_id=dept, year=2))
    director = factory.headers(factory.user("ad", RoleName.ACADEMIC_DIRECTOR))

    assert _ids(client.get("/api/questions/", headers=student)) == [q_student, q_both]
    assert _ids(client.get("/api/questions/", headers=staff)) == [q_staff, q_both]
    assert _ids(client.get("/api/questions/", headers=nobody)) == []

    r = client.get(f"/api/questions/department/{dept}/year/2", headers=director)
    assert _ids(r) == [q_student, q_staff, q_both]
    r = client.get(f"/api/questions/department/{dept}/year/2?include_inactive=1", headers=director)
    assert q_retired in _ids(r)

    r = client.get(f"/api/questions/{q_staff}", headers=student)
    assert r.status_code == 404
    r = client.get(f"/api/questions/{q_staff}", headers=staff)
    assert r.status_code == 200


def test_update_lifecycle_and_delete(client, factory):
    dept = factory.department("Music")
    creator = factory.user("ad", RoleName.ACADEMIC_DIRECTOR)
    director = factory.headers(creator)
    qid = factory.question(dept, 1, creator_id=creator)

    r = client.put(f"/api/questions/{qid}", json={"active": False}, headers=director)
    assert r.status_code == 200
    assert r.json["question"]["status"] == "retired"
    assert r.json["question"]["active"] is False

    r = client.put(f"/api/questions/{qid}", json={"status": "draft"}, headers=director)
    assert r.status_code == 400

    r = client.put(f"/api/questions/{qid}", json={"status": "active", "role": "staff"}, headers=director)
    assert r.status_code == 200
    assert r.json["question"]["role"] == "staff"

    r = client.get(f"/api/questions/creator/{creator}", headers=director)
    assert _ids(r) == [qid]

    r = client.delete(f"/api/questions/{qid}", headers=director)
    assert r.status_code == 200
    r = client.get(f"/api/questions/{qid}", headers=director)
    assert r.status_code == 404
