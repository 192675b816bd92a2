"""
Integration tests for organizations, membership and invitations.
"""

from datetime import datetime, timedelta, timezone

import pytest

from infrastructure.database.models import OrganizationInvitation

pytestmark = pytest.mark.asyncio


@pytest.fixture
async def organization(async_client, auth_headers) -> dict:
    response = await async_client.post(
        "/api/v1/organizations",
        json={"name": "Quiz Club", "slug": "quiz-club", "description": "Daily puzzles"},
        headers=auth_headers,
    )
    assert response.status_code == 201
    return response.json()


class TestOrganizations:

    async def test_creator_is_owner(self, async_client, auth_headers, organization):
        assert organization["role"] == "OWNER"
        assert organization["member_count"] == 1

        listed = await async_client.get("/api/v1/organizations", headers=auth_headers)
        assert [o["slug"] for o in listed.json()] == ["quiz-club"]

    async def test_slug_must_be_unique(self, async_client, other_headers, organization):
        response = await async_client.post(
            "/api/v1/organizations", json={"name": "Copycat", "slug": "quiz-club"}, headers=other_headers
        )
        assert response.status_code == 400

    async def test_invalid_slug(self, async_client, auth_headers):
        response = await async_client.post(
            "/api/v1/organizations", json={"name": "Bad slug", "slug": "Not A Slug"}, headers=auth_headers
        )
        assert response.status_code == 400

    async def test_non_member_cannot_see(self, async_client, other_headers, organization):
        response = await async_client.get(f"/api/v1/organizations/{organization['id']}", headers=other_headers)
        assert response.status_code == 404

    async def test_update_by_owner(self, async_client, auth_headers, organization):
        response = await async_client.patch(
            f"/api/v1/organizations/{organization['id']}", json={"name": "Quiz Society"}, headers=auth_headers
        )
        assert response.json()["name"] == "Quiz Society"

    async def test_delete_requires_owner(self, async_client, auth_headers, other_headers, other_user, organization):
        await async_client.post(
            f"/api/v1/organizations/{organization['id']}/members",
            json={"user_id": other_user.id, "role": "ADMIN"},
            headers=auth_headers,
        )

        by_admin = await async_client.delete(f"/api/v1/organizations/{organization['id']}", headers=other_headers)
        by_owner = await async_client.delete(f"/api/v1/organizations/{organization['id']}", headers=auth_headers)

        assert by_admin.status_code == 403
        assert by_owner.status_code == 204


class TestMembers:

    async def test_add_member_by_email(self, async_client, auth_headers, other_user, organization):
        response = await async_client.post(
            f"/api/v1/organizations/{organization['id']}/members",
            json={"email": "OTHER@example.com"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["user_id"] == other_user.id
        assert response.json()["role"] == "MEMBER"
        assert response.json()["email"] == other_user.email

    async def test_add_member_validation(self, async_client, auth_headers, organization):
        url = f"/api/v1/organizations/{organization['id']}/members"
        assert (await async_client.post(url, json={}, headers=auth_headers)).status_code == 400
        assert (await async_client.post(url, json={"email": "nobody@example.com"}, headers=auth_headers)).status_code == 404

    async def test_member_limit(self, async_client, auth_headers, user_factory, organization):
        url = f"/api/v1/organizations/{organization['id']}/members"
        for i in range(4):
            user = await user_factory(f"member{i}@example.com")
            response = await async_client.post(url, json={"user_id": user.id}, headers=auth_headers)
            assert response.status_code == 201

        extra = await user_factory("extra@example.com")
        response = await async_client.post(url, json={"user_id": extra.id}, headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Organization member limit reached (5)"

    async def test_role_changes(self, async_client, auth_headers, other_user, organization):
        member = (await async_client.post(
            f"/api/v1/organizations/{organization['id']}/members",
            json={"user_id": other_user.id},
            headers=auth_headers,
        )).json()
        url = f"/api/v1/organizations/{organization['id']}/members/{member['id']}"

        promoted = await async_client.patch(url, json={"role": "admin"}, headers=auth_headers)
        to_owner = await async_client.patch(url, json={"role": "OWNER"}, headers=auth_headers)

        assert promoted.json()["role"] == "ADMIN"
        assert to_owner.status_code == 400

    async def test_member_can_leave_but_not_remove_others(
        self, async_client, auth_headers, other_headers, other_user, user_factory, organization
    ):
        members_url = f"/api/v1/organizations/{organization['id']}/members"
        mine = (await async_client.post(members_url, json={"user_id": other_user.id}, headers=auth_headers)).json()
        third_user = await user_factory("third@example.com")
        third = (await async_client.post(members_url, json={"user_id": third_user.id}, headers=auth_headers)).json()

        forbidden = await async_client.delete(f"{members_url}/{third['id']}", headers=other_headers)
        leave = await async_client.delete(f"{members_url}/{mine['id']}", headers=other_headers)

        assert forbidden.status_code == 403
        assert leave.json() == {"success": True}

    async def test_owner_cannot_be_removed(self, async_client, auth_headers, organization):
        members = await async_client.get(f"/api/v1/organizations/{organization['id']}/members", headers=auth_headers)
        owner = members.json()[0]

        response = await async_client.delete(
            f"/api/v1/organizations/{organization['id']}/members/{owner['id']}", headers=auth_headers
        )
        assert response.status_code == 400


class TestInvitations:

    async def test_invite_and_accept(self, async_client, auth_headers, other_headers, organization):
        invite = await async_client.post(
            f"/api/v1/organizations/{organization['id']}/invitations",
            json={"email": "other@example.com", "role": "ADMIN"},
            headers=auth_headers,
        )
        assert invite.status_code == 201
        token = invite.json()["token"]

        public = await async_client.get(f"/api/v1/invitations/{token}")
        assert public.json()["organization_name"] == "Quiz Club"

        accepted = await async_client.post(f"/api/v1/invitations/{token}/accept", headers=other_headers)
        assert accepted.json() == {"success": True, "organization_id": organization["id"], "role": "ADMIN"}

        again = await async_client.post(f"/api/v1/invitations/{token}/accept", headers=other_headers)
        assert again.status_code == 400
        assert again.json()["detail"] == "Invitation is accepted"

    async def test_wrong_recipient(self, async_client, auth_headers, other_headers, organization):
        invite = await async_client.post(
            f"/api/v1/organizations/{organization['id']}/invitations",
            json={"email": "someone@example.com"},
            headers=auth_headers,
        )

        response = await async_client.post(
            f"/api/v1/invitations/{invite.json()['token']}/accept", headers=other_headers
        )
        assert response.status_code == 403

    async def test_duplicates_rejected(self, async_client, auth_headers, organization):
        url = f"/api/v1/organizations/{organization['id']}/invitations"
        await async_client.post(url, json={"email": "someone@example.com"}, headers=auth_headers)

        pending = await async_client.post(url, json={"email": "someone@example.com"}, headers=auth_headers)
        member = await async_client.post(url, json={"email": "test@example.com"}, headers=auth_headers)

        assert pending.status_code == 400
        assert member.status_code == 400

    async def test_pending_invitations_count_towards_limit(self, async_client, auth_headers, organization):
        url = f"/api/v1/organizations/{organization['id']}/invitations"
        for i in range(4):
            response = await async_client.post(url, json={"email": f"p{i}@example.com"}, headers=auth_headers)
            assert response.status_code == 201

        response = await async_client.post(url, json={"email": "p5@example.com"}, headers=auth_headers)
        assert response.status_code == 403

    async def test_expired_invitation(self, async_client, db_session, auth_headers, organization):
        invite = (await async_client.post(
            f"/api/v1/organizations/{organization['id']}/invitations",
            json={"email": "late@example.com"},
            headers=auth_headers,
        )).json()
        stored = await db_session.get(OrganizationInvitation, invite["id"])
        stored.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        await db_session.commit()

        response = await async_client.get(f"/api/v1/invitations/{invite['token']}")

        assert response.status_code == 400
        assert response.json()["detail"] == "Invitation has expired"

    async def test_revoke_and_list(self, async_client, auth_headers, organization):
        url = f"/api/v1/organizations/{organization['id']}/invitations"
        first = (await async_client.post(url, json={"email": "a@example.com"}, headers=auth_headers)).json()
        await async_client.post(url, json={"email": "b@example.com"}, headers=auth_headers)

        revoked = await async_client.delete(f"{url}/{first['id']}", headers=auth_headers)
        listed = await async_client.get(url, headers=auth_headers)

        assert revoked.json() == {"success": True}
        assert [i["email"] for i in listed.json()["invitations"]] == ["b@example.com"]

    async def test_unknown_token(self, async_client):
        response = await async_client.get("/api/v1/invitations/does-not-exist")
        assert response.status_code == 404
