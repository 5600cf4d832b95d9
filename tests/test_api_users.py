"""
Linkup Backend - Users API Tests
==================================

Member profiles, the directory and profile edits.
"""

import uuid

import pytest


class TestProfile:
    @pytest.mark.asyncio
    async def test_profile_with_posts_and_stats(self, client, register, bearer):
        alice, alice_token = await register(name="Alice Smith", email="alice@example.com")
        _, bob_token = await register(name="Bob Jones", email="bob@example.com")

        post_ids = []
        for content in ("one", "two"):
            response = await client.post("/api/posts", json={"content": content}, headers=bearer(alice_token))
            post_ids.append(response.json()["data"]["post"]["id"])
        for post_id in post_ids:
            await client.post(f"/api/posts/{post_id}/like", headers=bearer(bob_token))
        await client.post(
            f"/api/posts/{post_ids[0]}/comment", json={"content": "Great"}, headers=bearer(bob_token)
        )

        response = await client.get(f"/api/users/{alice['id']}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["user"]["id"] == alice["id"]
        assert "passwordHash" not in data["user"]
        assert [p["content"] for p in data["posts"]] == ["two", "one"]
        assert data["stats"] == {"postsCount": 2, "totalLikes": 2, "totalComments": 1}

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        for user_id in (uuid.uuid4(), "nope"):
            response = await client.get(f"/api/users/{user_id}")
            assert response.status_code == 404
            assert response.json()["error"] == "User not found"


class TestDirectory:
    @pytest.mark.asyncio
    async def test_lists_members(self, client, register):
        await register(name="Alice Smith", email="alice@example.com")
        await register(name="Bob Jones", email="bob@example.com")

        response = await client.get("/api/users")
        assert response.status_code == 200
        names = {u["name"] for u in response.json()["data"]["users"]}
        assert names == {"Alice Smith", "Bob Jones"}

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, client, register):
        await register(name="Alice Smith", email="alice@example.com", bio="Kernel hacker")
        await register(name="Bob Jones", email="bob@example.com", bio="Designer")

        by_name = await client.get("/api/users?q=SMITH")
        assert [u["name"] for u in by_name.json()["data"]["users"]] == ["Alice Smith"]

        by_bio = await client.get("/api/users?q=design")
        assert [u["name"] for u in by_bio.json()["data"]["users"]] == ["Bob Jones"]

    @pytest.mark.asyncio
    async def test_limit(self, client, register):
        await register(name="Alice Smith", email="alice@example.com")
        await register(name="Bob Jones", email="bob@example.com")

        response = await client.get("/api/users?limit=1")
        assert len(response.json()["data"]["users"]) == 1

        response = await client.get("/api/users?limit=many")
        assert response.status_code == 400


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_update_fields(self, client, register, bearer):
        _, token = await register()
        response = await client.patch(
            "/api/users/me",
            json={
                "name": "Augusta Ada King",
                "bio": "<em>Poetical</em> science",
                "profileImage": "https://res.cloudinary.com/demo/ada.png",
            },
            headers=bearer(token),
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Profile updated successfully"
        user = response.json()["data"]["user"]
        assert user["name"] == "Augusta Ada King"
        assert user["bio"] == "Poetical science"
        assert user["profileImage"] == "https://res.cloudinary.com/demo/ada.png"

    @pytest.mark.asyncio
    async def test_clear_profile_image(self, client, register, bearer):
        _, token = await register()
        await client.patch(
            "/api/users/me",
            json={"profileImage": "https://i.imgur.com/ada.gif"},
            headers=bearer(token),
        )
        response = await client.patch("/api/users/me", json={"profileImage": ""}, headers=bearer(token))
        assert response.json()["data"]["user"]["profileImage"] == ""

    @pytest.mark.asyncio
    async def test_rejects_bad_image(self, client, register, bearer):
        _, token = await register()
        response = await client.patch(
            "/api/users/me", json={"profileImage": "https://evil.com/a.png"}, headers=bearer(token)
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_IMAGE_URL"

    @pytest.mark.asyncio
    async def test_rejects_bad_name(self, client, register, bearer):
        _, token = await register()
        response = await client.patch("/api/users/me", json={"name": "R2D2"}, headers=bearer(token))
        assert response.status_code == 400
        assert response.json()["details"]["errors"] == ["name format is invalid"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("blank", ["   ", ""])
    async def test_blank_name_rejected(self, client, register, bearer, blank):
        _, token = await register()
        response = await client.patch("/api/users/me", json={"name": blank}, headers=bearer(token))
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["details"]["errors"] == ["name must be at least 2 characters long"]

        me = await client.get("/api/auth/me", headers=bearer(token))
        assert me.json()["data"]["user"]["name"] == "Ada Lovelace"

    @pytest.mark.asyncio
    async def test_requires_session(self, client):
        response = await client.patch("/api/users/me", json={"bio": "hi"})
        assert response.status_code == 401
