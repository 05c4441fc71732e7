from app.fbms.constants import RoleName


def _signup(client, **overrides):
    payload = {
        "username": "newbie",
        "email": "newbie@example.com",
        "password": "secret-pw",
        "fullName": "New Bie",
        "year": 1,
    }
    payload.update(overrides)
    return client.post("/api/auth/signup", json=payload)


def test_signup_always_grants_a_role(client):
    r = _signup(client)
    assert r.status_code == 201
    assert r.json["user"]["authorities"] == ["ROLE_STUDENT"]
    assert r.json["user"]["primaryRole"] == "student"

    r = _signup(client, username="staffer", email="staffer@example.com", roles=["staff"])
    assert r.status_code == 201
    assert r.json["user"]["authorities"] == ["ROLE_STAFF"]


def test_signup_rejections(client):
    assert _signup(client).status_code == 201

    r = _signup(client, email="other@example.com")
    assert r.status_code == 409
    assert r.json["message"] == "Failed! Username is already in use!"

    r = _signup(client, username="other")
    assert r.status_code == 409

    r = _signup(client, username="boss", email="boss@example.com", roles=["academic_director"])
    assert r.status_code == 403

    r = _signup(client, username="ghost", email="ghost@example.com", roles=["wizard"])
    assert r.status_code == 400

    r = _signup(client, username="old", email="old@example.com", year=9)
    assert r.status_code == 400

    r = _signup(client, username="nomail", email="")
    assert r.status_code == 400
    assert r.json["message"] == "Required fields missing"


def test_self_update_allowed_other_user_forbidden(client, factory):
    me = factory.user("me", RoleName.STUDENT)
    you = factory.user("you", RoleName.STUDENT)

    r = client.put(f"/api/users/{me}", json={"fullName": "Me Myself"}, headers=factory.headers(me))
    assert r.status_code == 200
    assert r.json["user"]["fullName"] == "Me Myself"

    r = client.put(f"/api/users/{you}", json={"fullName": "Hacked"}, headers=factory.headers(me))
    assert r.status_code == 403
    assert r.json["reason"] == "self-only"

    r = client.get(f"/api/users/{you}", headers=factory.headers(me))
    assert r.status_code == 403

    director = factory.user("ad", RoleName.ACADEMIC_DIRECTOR)
    r = client.get(f"/api/users/{you}", headers=factory.headers(director))
    assert r.status_code == 200


def test_change_password(client, factory):
    me = factory.user("me", RoleName.STAFF)
    h = factory.headers(me)

    r = client.put(f"/api/users/{me}/password", json={"oldPassword": "wrong", "newPassword": "new-secret"}, headers=h)
    assert r.status_code == 401

    r = client.put(
        f"/api/users/{me}/password",
        json={"oldPassword": factory.password, "newPassword": "new-secret"},
        headers=h,
    )
    assert r.status_code == 200

    r = client.post("/api/auth/signin", json={"username": "me", "password": "new-secret"})
    assert r.status_code == 200


def test_director_resets_password_without_old_one(client, factory):
    target = factory.user("forgetful", RoleName.STUDENT)
    peer = factory.headers(factory.user("peer", RoleName.STUDENT))
    director = factory.headers(factory.user("ad", RoleName.ACADEMIC_DIRECTOR))

    r = client.put(f"/api/users/{target}/password", json={"newPassword": "reset-secret"}, headers=peer)
    assert r.status_code == 403
    assert r.json["reason"] == "self-only"

    r = client.put(f"/api/users/{target}/password", json={"newPassword": "short"}, headers=director)
    assert r.status_code == 400

    r = client.put(f"/api/users/{target}/password", json={"newPassword": "reset-secret"}, headers=director)
    assert r.status_code == 200

    r = client.post("/api/auth/signin", json={"username": "forgetful", "password": "reset-secret"})
    assert r.status_code == 200

    # The account owner still has to prove the current password.
    r = client.put(f"/api/users/{target}/password", json={"newPassword": "another-one"}, headers=factory.headers(target))
    assert r.status_code == 400


def test_role_reassignment_is_executive_only(client, factory):
    target = factory.user("target", RoleName.STUDENT)
    academic = factory.headers(factory.user("ad", RoleName.ACADEMIC_DIRECTOR))
    executive = factory.headers(factory.user("ed", RoleName.EXECUTIVE_DIRECTOR))

    r = client.put(f"/api/users/{target}/roles", json={"roles": ["staff"]}, headers=academic)
    assert r.status_code == 403

    r = client.put(f"/api/users/{target}/roles", json={"roles": []}, headers=executive)
    assert r.status_code == 400

    r = client.put(f"/api/users/{target}/roles", json={"roles": ["staff", "student"]}, headers=executive)
    assert r.status_code == 200
    assert r.json["user"]["primaryRole"] == "staff"
    assert r.json["user"]["authorities"] == ["ROLE_STAFF", "ROLE_STUDENT"]


def test_directory_listings(client, factory):
    dept = factory.department("Geology")
    factory.user("g1", RoleName.STUDENT, department_id=dept, year=3)
    factory.user("g2", RoleName.STAFF, department_id=dept)
    director = factory.headers(factory.user("ad", RoleName.ACADEMIC_DIRECTOR))

    r = client.get(f"/api/users/department/{dept}", headers=director)
    assert [u["username"] for u in r.json["users"]] == ["g1", "g2"]

    r = client.get("/api/users/year/3", headers=director)
    assert [u["username"] for u in r.json["users"]] == ["g1"]

    r = client.get("/api/users/year/7", headers=director)
    assert r.status_code == 400

    r = client.get("/api/users/all", headers=factory.headers(factory.user("s", RoleName.STUDENT)))
    assert r.status_code == 403
