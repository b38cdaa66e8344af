from app.models.organizations import OrganizationMember
from app.models.users import User
from app.schemas.organizations import MemberList, MemberStatus
from app.services import invitation_service, organization_service
from app.tests.factories import create_organization, create_test_user, login_as


def test_create_organization_processes_administrators(
    admin_client, db_session, sent_emails
):
    client, _ = admin_client
    existing = create_test_user(db_session, "existing@example.com")
    create_test_user(db_session, "trainee-x@example.com", ["TRAINEE"])

    response = client.post(
        "/training-organizations",
        json={
            "name": "  Harbor Academy ",
            "administrators": [
                "existing@example.com",
                "EXISTING@example.com",
                "new@example.com",
                "trainee-x@example.com",
            ],
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["name"] == "Harbor Academy"
    statuses = {m["email"]: m["status"] for m in data["administrators"]}
    assert statuses == {"existing@example.com": "active", "new@example.com": "invited"}
    db_session.refresh(existing)
    assert existing.roles == ["ORGADMIN"]
    kinds = sorted(mail["kind"] for mail in sent_emails)
    assert kinds == ["granted", "org_admin"]


def test_create_organization_rejects_blank_name(admin_client):
    client, _ = admin_client

    response = client.post("/training-organizations", json={"name": "   "})

    assert response.status_code == 400


def test_create_organization_requires_admin(org_admin_client):
    client, _ = org_admin_client

    response = client.post("/training-organizations", json={"name": "Mine"})

    assert response.status_code == 403


def test_list_organizations_scoped_to_active_admin(
    org_admin_client, organization, db_session
):
    client, _ = org_admin_client
    create_organization(db_session, "Someone else's")

    response = client.get("/training-organizations")

    assert [org["id"] for org in response.json()] == [organization.id]


def test_admin_lists_every_organization(admin_client, organization, db_session):
    client, _ = admin_client
    create_organization(db_session, "Another")

    response = client.get("/training-organizations")

    assert len(response.json()) == 2


def test_org_gate_rejects_non_member(client, organization, db_session):
    outsider = create_test_user(db_session, "outsider@example.com", ["ORGADMIN"])
    login_as(client, outsider)

    response = client.get(f"/training-organizations/{organization.id}")

    assert response.status_code == 403


def test_org_gate_reports_missing_organization(org_admin_client):
    client, _ = org_admin_client

    response = client.get("/training-organizations/9999")

    assert response.status_code == 404


def test_org_gate_rejects_invited_administrator(client, organization, db_session):
    user = create_test_user(db_session, "pending@example.com", ["ORGADMIN"])
    organization.members.append(
        OrganizationMember(
            organization_id=organization.id,
            member_list=MemberList.administrators,
            email=user.email,
            status=MemberStatus.invited,
            user_id=user.id,
        )
    )
    db_session.commit()
    login_as(client, user)

    response = client.get(f"/training-organizations/{organization.id}")

    assert response.status_code == 403


def test_add_existing_user_as_trainer_activates_immediately(
    org_admin_client, organization, db_session, sent_emails
):
    client, _ = org_admin_client
    coach = create_test_user(db_session, "coach@example.com")

    response = client.post(
        f"/training-organizations/{organization.id}/trainers",
        json={"email": "coach@example.com"},
    )

    assert response.status_code == 201
    assert response.json()["status"] == "active"
    assert response.json()["user_id"] == coach.id
    db_session.refresh(coach)
    assert coach.roles == ["TRAINER"]
    assert invitation_service.find_by_email(db_session, "coach@example.com") is None


def test_duplicate_administrator_conflicts(org_admin_client, organization, sent_emails):
    client, _ = org_admin_client
    url = f"/training-organizations/{organization.id}/administrators"

    first = client.post(url, json={"email": "a@example.com"})
    second = client.post(url, json={"email": "a@example.com"})

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json() == {
        "detail": "Administrator already exists in this organization"
    }


def test_trainee_cannot_be_added_as_administrator(
    org_admin_client, organization, db_session
):
    client, _ = org_admin_client
    create_test_user(db_session, "learner@example.com", ["TRAINEE"])

    response = client.post(
        f"/training-organizations/{organization.id}/administrators",
        json={"email": "learner@example.com"},
    )

    assert response.status_code == 400


def test_remove_active_trainer_strips_role_when_last(
    org_admin_client, organization, db_session
):
    client, _ = org_admin_client
    coach = create_test_user(db_session, "coach@example.com", ["TRAINER"])
    other = create_organization(db_session, "Other", trainers=[coach])
    organization_service.add_member(
        db_session, organization.id, MemberList.trainers, coach
    )
    db_session.commit()

    response = client.delete(
        f"/training-organizations/{organization.id}/trainers/coach@example.com"
    )
    assert response.status_code == 200
    db_session.refresh(coach)
    assert coach.roles == ["TRAINER"]

    login_as(client, create_test_user(db_session, "root@example.com", ["ADMIN"]))
    response = client.delete(
        f"/training-organizations/{other.id}/trainers/coach@example.com"
    )
    assert response.status_code == 200
    db_session.refresh(coach)
    assert coach.roles == ["USER"]


def test_remove_invited_member_revokes_only_that_grant(
    org_admin_client, organization, db_session, sent_emails
):
    client, _ = org_admin_client
    other = create_organization(db_session, "Other")
    client.post(
        f"/training-organizations/{organization.id}/administrators",
        json={"email": "maybe@example.com"},
    )
    invitation_service.add_grant(
        db_session,
        "maybe@example.com",
        token_hash="other-hash",
        member_list=MemberList.trainers,
        organization_id=other.id,
    )
    db_session.commit()

    response = client.delete(
        f"/training-organizations/{organization.id}/administrators/maybe@example.com"
    )

    assert response.status_code == 200
    invitation = invitation_service.find_by_email(db_session, "maybe@example.com")
    assert invitation.org_admin == []
    assert invitation.org_trainer == [other.id]
    db_session.refresh(organization)
    assert (
        organization_service.find_member(
            organization, MemberList.administrators, "maybe@example.com"
        )
        is None
    )


def test_remove_unknown_member_is_not_found(org_admin_client, organization):
    client, _ = org_admin_client

    response = client.delete(
        f"/training-organizations/{organization.id}/trainers/ghost@example.com"
    )

    assert response.status_code == 404


def test_active_members(org_admin_client, organization, org_admin_user, sent_emails):
    client, _ = org_admin_client
    client.post(
        f"/training-organizations/{organization.id}/trainers",
        json={"email": "invited@example.com"},
    )

    response = client.get(f"/training-organizations/{organization.id}/active-members")

    assert response.status_code == 200
    data = response.json()
    assert [m["email"] for m in data["administrators"]] == [org_admin_user.email]
    assert data["trainers"] == []


def test_delete_organization_strips_orphaned_roles(
    admin_client, organization, org_admin_user, db_session
):
    client, _ = admin_client

    response = client.delete(f"/training-organizations/{organization.id}")

    assert response.status_code == 200
    refreshed = db_session.get(User, org_admin_user.id)
    db_session.refresh(refreshed)
    assert refreshed.roles == ["USER"]
