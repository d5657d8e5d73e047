"""个人记录测试：浏览历史、标签、批注、分类配置。"""
from httpx import AsyncClient

from studynotes.core.storage import DEFAULT_TAGS, TAGS
from studynotes.services.history import HISTORY_LIMIT, normalize_history, push_history


def _entry(question_id: str, access_time: str = "2024-01-01T00:00:00.000Z") -> dict:
    return {"id": question_id, "title": question_id.upper(), "category": "", "subcategory": "",
            "accessTime": access_time}


class TestHistoryHelpers:
    def test_push_moves_to_front(self):
        history = [_entry("q1"), _entry("q2")]
        result = push_history(history, {"id": "q2", "title": "Q2"})
        assert [h["id"] for h in result] == ["q2", "q1"]
        assert result[0]["title"] == "Q2"

    def test_push_caps_length(self):
        history = [_entry(f"q{i}") for i in range(HISTORY_LIMIT)]
        result = push_history(history, {"id": "new"}, access_time="2024-02-01T00:00:00.000Z")
        assert len(result) == HISTORY_LIMIT
        assert result[0] == {"id": "new", "title": "", "category": "", "subcategory": "",
                             "accessTime": "2024-02-01T00:00:00.000Z"}
        assert result[-1]["id"] == f"q{HISTORY_LIMIT - 2}"

    def test_push_does_not_mutate_input(self):
        history = [_entry("q1")]
        push_history(history, {"id": "q2"})
        assert history == [_entry("q1")]

    def test_normalize_dedupes_first_wins(self):
        result = normalize_history([_entry("q1", "t2"), _entry("q2"), _entry("q1", "t1")])
        assert [h["id"] for h in result] == ["q1", "q2"]
        assert result[0]["accessTime"] == "t2"


class TestHistoryApi:
    async def test_default_empty(self, client: AsyncClient, alice_headers):
        resp = await client.get("/api/data/history", headers=alice_headers)
        assert resp.status_code == 200
        assert resp.json() == []

    async def test_save_normalizes(self, client: AsyncClient, alice_headers):
        history = [_entry(f"q{i}") for i in range(12)] + [_entry("q0")]
        resp = await client.post("/api/data/history", json={"history": history}, headers=alice_headers)
        assert resp.status_code == 200

        saved = (await client.get("/api/data/history", headers=alice_headers)).json()
        assert len(saved) == HISTORY_LIMIT
        assert [h["id"] for h in saved][:2] == ["q0", "q1"]
        assert "accessTime" in saved[0]

    async def test_record_visit(self, client: AsyncClient, alice_headers):
        await client.post("/api/data/history/entries", json={"id": "q1", "title": "A"}, headers=alice_headers)
        resp = await client.post(
            "/api/data/history/entries", json={"id": "q2", "title": "B"}, headers=alice_headers
        )
        assert resp.status_code == 200
        assert [h["id"] for h in resp.json()] == ["q2", "q1"]

        again = await client.post(
            "/api/data/history/entries", json={"id": "q1", "title": "A"}, headers=alice_headers
        )
        assert [h["id"] for h in again.json()] == ["q1", "q2"]


class TestTags:
    async def test_default_tags(self, client: AsyncClient, alice_headers):
        resp = await client.get("/api/data/tags", headers=alice_headers)
        assert resp.json() == DEFAULT_TAGS

    async def test_save_dedupes(self, client: AsyncClient, alice, alice_headers, store):
        resp = await client.post("/api/data/tags", json={"tags": ["a", "b", "a"]}, headers=alice_headers)
        assert resp.status_code == 200
        assert await store.read(alice.id, TAGS) == ["a", "b"]

    async def test_tags_are_per_user(self, client: AsyncClient, alice_headers, bob_headers):
        await client.post("/api/data/tags", json={"tags": ["mine"]}, headers=alice_headers)
        resp = await client.get("/api/data/tags", headers=bob_headers)
        assert resp.json() == DEFAULT_TAGS


class TestAnnotations:
    async def test_round_trip(self, client: AsyncClient, alice_headers):
        notes = {"0-12": "核心观点", "20-31": "易错"}
        resp = await client.post("/api/data/annotations/q1", json={"annotations": notes}, headers=alice_headers)
        assert resp.status_code == 200

        resp = await client.get("/api/data/annotations/q1", headers=alice_headers)
        assert resp.json() == notes

    async def test_missing_annotations(self, client: AsyncClient, alice_headers):
        resp = await client.get("/api/data/annotations/q9", headers=alice_headers)
        assert resp.status_code == 200
        assert resp.json() == {}

    async def test_invalid_question_id(self, client: AsyncClient, alice_headers):
        resp = await client.post(
            "/api/data/annotations/bad.id", json={"annotations": {}}, headers=alice_headers
        )
        assert resp.status_code == 400

    async def test_annotations_are_per_user(self, client: AsyncClient, alice_headers, bob_headers):
        await client.post("/api/data/annotations/q1", json={"annotations": {"a": "b"}}, headers=alice_headers)
        resp = await client.get("/api/data/annotations/q1", headers=bob_headers)
        assert resp.json() == {}


class TestCategories:
    async def test_defaults(self, client: AsyncClient, auth_headers):
        resp = await client.get("/api/data/categories", headers=auth_headers)
        assert resp.status_code == 200
        assert set(resp.json()) == {"申论", "行测"}

    async def test_save_and_read(self, client: AsyncClient, admin_user, auth_headers, store):
        categories = {"面试": {"name": "面试", "icon": "fas fa-user", "subcategories": ["结构化"]}}
        resp = await client.post("/api/data/categories", json={"categories": categories}, headers=auth_headers)
        assert resp.status_code == 200

        assert (await client.get("/api/data/categories", headers=auth_headers)).json() == categories
        config = await store.read_config()
        assert config["updatedBy"] == admin_user.id

    async def test_free_form_entries(self, client: AsyncClient, auth_headers):
        categories = {"面试": {"subcategories": ["结构化"], "order": 3}}
        resp = await client.post("/api/data/categories", json={"categories": categories}, headers=auth_headers)
        assert resp.status_code == 200
        assert (await client.get("/api/data/categories", headers=auth_headers)).json() == categories

    async def test_non_admin_forbidden(self, client: AsyncClient, alice_headers):
        resp = await client.get("/api/data/categories", headers=alice_headers)
        assert resp.status_code == 403
