"""HTTP tests for the auth, profile, tarot and history routes."""

from uuid import uuid4

import pytest
from httpx import AsyncClient

from tests.fakes import PASSWORD, text_response


async def login(client: AsyncClient, username: str = "alice", password: str = PASSWORD):
    return await client.post("/api/auth/login", json={"username": username, "password": password})


async def select_all(client: AsyncClient, spread: str) -> dict:
    snapshot = (await client.get(f"/api/tarot/{spread}")).json()
    capacity = {"full": 7, "question": 3, "daily": 1}[spread]
    body = None
    for card in snapshot["deck"][:capacity]:
        response = await client.post(f"/api/tarot/{spread}/select", json={"card_id": card["id"]})
        assert response.status_code == 200
        body = response.json()
    return body


class TestRoot:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/")

        assert response.status_code == 200
        assert response.json() == {"message": "Tarot API is running"}


class TestAuthRoutes:
    @pytest.mark.asyncio
    async def test_login_sets_cookie(self, client, alice):
        response = await login(client)

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Logged in successfully", "needs_profile": False}
        assert "access_token" in response.cookies

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_user_look_the_same(self, client, alice):
        wrong = await login(client, password="nope")
        unknown = await login(client, username="ghost")

        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json() == {"detail": "Invalid username or password"}

    @pytest.mark.asyncio
    async def test_empty_credentials(self, client):
        response = await login(client, username="", password="")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_register_then_profile_is_placeholder(self, client):
        response = await client.post("/api/auth/register", json={"username": "carol", "password": "pw-123"})

        assert response.status_code == 200
        assert response.json()["needs_profile"] is True

        profile = (await client.get("/api/profile/")).json()
        assert profile["name"] == "New User"
        assert profile["needs_profile"] is True

    @pytest.mark.asyncio
    async def test_register_taken_username(self, client, alice):
        response = await client.post("/api/auth/register", json={"username": "alice", "password": "pw-123"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_logout_drops_the_session(self, client, registry, alice):
        await login(client)

        response = await client.post("/api/auth/logout")

        assert response.status_code == 200
        assert registry.sessions == {}

    @pytest.mark.asyncio
    async def test_routes_require_a_cookie(self, client):
        assert (await client.get("/api/profile/")).status_code == 401
        assert (await client.get("/api/tarot/full")).status_code == 401
        assert (await client.get("/api/history/readings")).status_code == 401


class TestProfileRoutes:
    @pytest.mark.asyncio
    async def test_profile_hides_password(self, client, alice):
        await login(client)

        body = (await client.get("/api/profile/")).json()

        assert "password" not in body
        assert body["username"] == "alice"
        assert body["zodiac_sign"] == "Leo"

    @pytest.mark.asyncio
    async def test_update_profile(self, client, store, alice):
        await login(client)

        response = await client.put(
            "/api/profile/",
            json={
                "name": "Alice B",
                "birth_date": "1990-01-25T00:00:00Z",
                "favorite_category": "Career",
                "relationship_status": "Married",
                "work_status": "Student",
            },
        )

        assert response.status_code == 200
        assert response.json()["zodiac_sign"] == "Aquarius"
        assert store.documents[("users", "alice")]["name"] == "Alice B"

    @pytest.mark.asyncio
    async def test_update_profile_requires_name(self, client, alice):
        await login(client)

        response = await client.put("/api/profile/", json={"name": " ", "birth_date": "1990-01-25T00:00:00Z"})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_update_failure_is_reported(self, client, store, alice):
        await login(client)
        store.fail_writes = True

        response = await client.put("/api/profile/", json={"name": "Alice B", "birth_date": "1990-01-25T00:00:00Z"})

        assert response.status_code == 502
        assert response.json()["detail"] == "The profile could not be updated."

    @pytest.mark.asyncio
    async def test_refresh_picks_up_remote_changes(self, client, store, alice):
        await login(client)
        store.documents[("users", "alice")]["name"] = "Remote Alice"

        response = await client.post("/api/profile/refresh")

        assert response.json()["name"] == "Remote Alice"


class TestTarotRoutes:
    @pytest.mark.asyncio
    async def test_full_reading_flow(self, client, completion, alice):
        await login(client)
        completion.queue(text_response("A turning point."))
        await client.put("/api/tarot/category", json={"category": "Love"})

        body = await select_all(client, "full")

        assert body["outcome"] == "threshold_reached"
        assert body["session"]["phase"] == "complete"
        assert body["session"]["reading_text"] == "A turning point."
        assert len(body["session"]["selected"]) == 7
        assert "category: Love" in completion.requests[0].messages[1].content

        saved = await client.post("/api/tarot/full/save")
        assert saved.status_code == 200
        assert saved.json()["category"] == "Love"

        history = (await client.get("/api/history/readings")).json()
        assert [entry["id"] for entry in history] == [saved.json()["id"]]

    @pytest.mark.asyncio
    async def test_duplicate_selection_is_ignored(self, client, alice):
        await login(client)
        card = (await client.get("/api/tarot/full")).json()["deck"][0]

        await client.post("/api/tarot/full/select", json={"card_id": card["id"]})
        response = await client.post("/api/tarot/full/select", json={"card_id": card["id"]})

        assert response.json()["outcome"] == "ignored"
        assert len(response.json()["session"]["selected"]) == 1

    @pytest.mark.asyncio
    async def test_question_flow(self, client, alice):
        await login(client)

        early = await client.post("/api/tarot/question/ask", json={"question": "Will I move?"})
        assert early.json()["reading_text"] == "Please select 3 cards first."

        await select_all(client, "question")
        answered = await client.post("/api/tarot/question/ask", json={"question": "Will I move?"})
        assert answered.json()["phase"] == "complete"

        saved = await client.post("/api/tarot/question/save")
        assert saved.status_code == 200
        assert saved.json()["question"] == "Will I move?"

    @pytest.mark.asyncio
    async def test_asking_again_saves_the_new_answer(self, client, completion, alice):
        await login(client)
        await select_all(client, "question")
        completion.queue(text_response("A new offer is near."), text_response("Paris suits you."))

        await client.post("/api/tarot/question/ask", json={"question": "Will I get the job?"})
        second = await client.post("/api/tarot/question/ask", json={"question": "Should I move to Paris?"})
        assert second.json()["reading_text"] == "Paris suits you."

        saved = (await client.post("/api/tarot/question/save")).json()

        assert (saved["question"], saved["reading"]) == ("Should I move to Paris?", "Paris suits you.")

    @pytest.mark.asyncio
    async def test_empty_question_is_rejected(self, client, alice):
        await login(client)

        response = await client.post("/api/tarot/question/ask", json={"question": ""})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_save_without_reading(self, client, alice):
        await login(client)

        response = await client.post("/api/tarot/full/save")

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_reset(self, client, alice):
        await login(client)
        await select_all(client, "daily")

        body = (await client.post("/api/tarot/daily/reset")).json()

        assert body["phase"] == "no_cards_selected"
        assert body["selected"] == []
        assert body["reading_text"] == ""

    @pytest.mark.asyncio
    async def test_unknown_spread(self, client, alice):
        await login(client)

        assert (await client.get("/api/tarot/celtic")).status_code == 422


class TestHistoryRoutes:
    @pytest.mark.asyncio
    async def test_delete_reading(self, client, alice):
        await login(client)
        await select_all(client, "full")
        saved = (await client.post("/api/tarot/full/save")).json()

        response = await client.delete(f"/api/history/readings/{saved['id']}")

        assert response.status_code == 200
        assert (await client.get("/api/history/readings")).json() == []

    @pytest.mark.asyncio
    async def test_delete_unknown_reading(self, client, alice):
        await login(client)

        response = await client.delete(f"/api/history/readings/{uuid4()}")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_question(self, client, alice):
        await login(client)
        await select_all(client, "question")
        await client.post("/api/tarot/question/ask", json={"question": "Why?"})
        saved = (await client.post("/api/tarot/question/save")).json()

        response = await client.delete(f"/api/history/questions/{saved['id']}")

        assert response.status_code == 200
        assert (await client.get("/api/history/questions")).json() == []

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_the_entry(self, client, store, alice):
        await login(client)
        await select_all(client, "full")
        saved = (await client.post("/api/tarot/full/save")).json()
        store.fail_writes = True

        response = await client.delete(f"/api/history/readings/{saved['id']}")

        assert response.status_code == 502
        assert len((await client.get("/api/history/readings")).json()) == 1
