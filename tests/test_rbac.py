import pytest

from app.fbms.constants import QuestionAudience, RoleName
from app.fbms.errors import DenyReason, Forbidden
from app.fbms.identity import AuthorityContext, build_authorities
from app.fbms.models import Role, User
from app.fbms.rbac import Action, authorize, is_director, question_visibility


def ctx(user_id, *roles):
    return AuthorityContext(user_id=user_id, authorities=frozenset(r.authority for r in roles))


def test_self_access_allows_own_profile_only():
    student = ctx(7, RoleName.STUDENT)
    assert authorize(student, Action.READ_USER, owner_id=7).allowed
    assert authorize(student, Action.UPDATE_USER, owner_id=7).allowed
    assert authorize(student, Action.READ_FEEDBACK, owner_id=7).allowed

    d = authorize(student, Action.READ_USER, owner_id=8)
    assert not d.allowed
    assert d.reason is DenyReason.SELF_ONLY


def test_self_access_does_not_cover_role_reassignment():
    staff = ctx(3, RoleName.STAFF)
    d = authorize(staff, Action.REASSIGN_ROLES, owner_id=3)
    assert not d.allowed
    assert d.reason is DenyReason.ROLE_MISMATCH


def test_executive_passes_everything_academic_passes():
    academic = ctx(1, RoleName.ACADEMIC_DIRECTOR)
    executive = ctx(2, RoleName.EXECUTIVE_DIRECTOR)
    for action in Action:
        if authorize(academic, action, owner_id=99).allowed:
            assert authorize(executive, action, owner_id=99).allowed, action


@pytest.mark.parametrize("action", [Action.REASSIGN_ROLES, Action.VIEW_GLOBAL_STATS])
def test_executive_only_actions(action):
    assert not authorize(ctx(1, RoleName.ACADEMIC_DIRECTOR), action).allowed
    assert authorize(ctx(2, RoleName.EXECUTIVE_DIRECTOR), action).allowed


def test_academic_director_manages_questions_and_departments():
    academic = ctx(1, RoleName.ACADEMIC_DIRECTOR)
    for action in (Action.CREATE_QUESTION, Action.DELETE_QUESTION, Action.MANAGE_DEPARTMENTS, Action.LIST_USERS):
        assert authorize(academic, action).allowed


def test_submitter_gate():
    assert authorize(ctx(1, RoleName.STUDENT), Action.SUBMIT_FEEDBACK).allowed
    assert authorize(ctx(1, RoleName.STAFF), Action.SUBMIT_FEEDBACK).allowed
    d = authorize(ctx(1), Action.SUBMIT_FEEDBACK)
    assert not d.allowed
    assert d.reason is DenyReason.ROLE_MISMATCH


def test_student_cannot_create_questions():
    d = authorize(ctx(1, RoleName.STUDENT), Action.CREATE_QUESTION)
    assert not d.allowed
    with pytest.raises(Forbidden) as exc:
        d.raise_for_denial()
    assert exc.value.reason is DenyReason.ROLE_MISMATCH


def test_question_visibility():
    student = question_visibility(ctx(1, RoleName.STUDENT))
    assert student.matches("student") and student.matches("both")
    assert not student.matches("staff")

    staff = question_visibility(ctx(1, RoleName.STAFF))
    assert staff.matches("staff") and not staff.matches("student")

    both = question_visibility(ctx(1, RoleName.STUDENT, RoleName.STAFF))
    assert all(both.matches(a.value) for a in QuestionAudience)

    nobody = question_visibility(ctx(1))
    assert nobody.empty
    assert not any(nobody.matches(a.value) for a in QuestionAudience)

    director = question_visibility(ctx(1, RoleName.STUDENT, RoleName.ACADEMIC_DIRECTOR))
    assert director.unrestricted
    assert is_director(ctx(1, RoleName.ACADEMIC_DIRECTOR))
    assert not is_director(ctx(1, RoleName.STAFF))


def test_build_authorities_unions_primary_and_assigned():
    student = Role(name="student")
    staff = Role(name="staff")
    u = User(username="x", email="x@example.com", password_hash="-", full_name="X")
    u.roles = [staff]
    u.primary_role = student
    assert build_authorities(u) == frozenset({"ROLE_STUDENT", "ROLE_STAFF"})

    bare = User(username="y", email="y@example.com", password_hash="-", full_name="Y")
    bare.roles = []
    assert build_authorities(bare) == frozenset()
