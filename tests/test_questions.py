"""题目接口测试：保存、批量保存、删除、管理员汇总与统计。"""
from httpx import AsyncClient

from studynotes.core.storage import HISTORY, QUESTIONS


def _question(**fields) -> dict:
    base = {"title": "行程问题", "category": "行测", "subcategory": "数量", "content": "甲乙相向而行"}
    base.update(fields)
    return base


class TestSaveQuestion:
    async def test_create_assigns_id_and_owner(self, client: AsyncClient, alice, alice_headers, store):
        resp = await client.post("/api/data/questions", json={"question": _question()}, headers=alice_headers)
        assert resp.status_code == 200
        saved = resp.json()["question"]
        assert saved["id"].startswith("q_")
        assert saved["createdBy"] == alice.id
        assert saved["createdAt"] and saved["updatedAt"]

        stored = await store.read(alice.id, QUESTIONS)
        assert [q["id"] for q in stored] == [saved["id"]]

    async def test_unknown_fields_preserved(self, client: AsyncClient, alice, alice_headers, store):
        await client.post(
            "/api/data/questions", json={"question": _question(id="q1", difficulty=3)}, headers=alice_headers
        )
        stored = await store.read(alice.id, QUESTIONS)
        assert stored[0]["difficulty"] == 3

    async def test_update_keeps_creator(self, client: AsyncClient, alice, alice_headers, store):
        await store.write(alice.id, QUESTIONS, [
            {"id": "q1", "title": "旧标题", "createdBy": alice.id, "createdAt": "2024-01-01T00:00:00.000Z"}
        ])
        resp = await client.post(
            "/api/data/questions",
            json={"question": _question(id="q1", title="新标题", createdBy="someone_else")},
            headers=alice_headers,
        )
        assert resp.status_code == 200
        stored = (await store.read(alice.id, QUESTIONS))[0]
        assert stored["title"] == "新标题"
        assert stored["createdBy"] == alice.id
        assert stored["createdAt"] == "2024-01-01T00:00:00.000Z"
        assert stored["updatedAt"] != stored["createdAt"]

    async def test_missing_title(self, client: AsyncClient, alice_headers):
        resp = await client.post("/api/data/questions", json={"question": {"content": "x"}}, headers=alice_headers)
        assert resp.status_code == 400

    async def test_invalid_id(self, client: AsyncClient, alice_headers):
        resp = await client.post(
            "/api/data/questions", json={"question": _question(id="../etc")}, headers=alice_headers
        )
        assert resp.status_code == 400

    async def test_edit_foreign_record_forbidden(self, client: AsyncClient, alice, bob, bob_headers, store):
        await store.write(bob.id, QUESTIONS, [{"id": "q1", "title": "T", "createdBy": alice.id}])
        resp = await client.post(
            "/api/data/questions", json={"question": _question(id="q1")}, headers=bob_headers
        )
        assert resp.status_code == 403
        assert resp.json()["questionId"] == "q1"
        assert (await store.read(bob.id, QUESTIONS))[0]["title"] == "T"

    async def test_edit_legacy_record_allowed(self, client: AsyncClient, bob, bob_headers, store):
        await store.write(bob.id, QUESTIONS, [{"id": "q1", "title": "T"}])
        resp = await client.post(
            "/api/data/questions", json={"question": _question(id="q1")}, headers=bob_headers
        )
        assert resp.status_code == 200

    async def test_admin_edits_any_record(self, client: AsyncClient, admin_user, alice, auth_headers, store):
        await store.write(admin_user.id, QUESTIONS, [{"id": "q1", "title": "T", "createdBy": alice.id}])
        resp = await client.post(
            "/api/data/questions", json={"question": _question(id="q1")}, headers=auth_headers
        )
        assert resp.status_code == 200
        assert resp.json()["question"]["createdBy"] == alice.id

    async def test_requires_token(self, client: AsyncClient):
        resp = await client.post("/api/data/questions", json={"question": _question()})
        assert resp.status_code == 401


class TestListQuestions:
    async def test_list_own_partition(self, client: AsyncClient, alice, bob, alice_headers, store):
        await store.write(alice.id, QUESTIONS, [{"id": "q1", "title": "A", "createdBy": alice.id}])
        await store.write(bob.id, QUESTIONS, [{"id": "q2", "title": "B", "createdBy": bob.id}])
        resp = await client.get("/api/data/questions", headers=alice_headers)
        assert resp.status_code == 200
        assert [q["id"] for q in resp.json()] == ["q1"]

    async def test_empty_partition(self, client: AsyncClient, alice_headers):
        resp = await client.get("/api/data/questions", headers=alice_headers)
        assert resp.json() == []


class TestBatchSave:
    async def test_batch_replaces_partition(self, client: AsyncClient, alice, alice_headers, store):
        await store.write(alice.id, QUESTIONS, [{"id": "q1", "title": "A", "createdBy": alice.id}])
        resp = await client.post(
            "/api/data/questions/batch",
            json={"questions": [_question(id="q2"), _question(title="无 ID")]},
            headers=alice_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["count"] == 2

        stored = await store.read(alice.id, QUESTIONS)
        ids = [q["id"] for q in stored]
        assert "q1" not in ids
        assert ids[0] == "q2"
        assert ids[1].startswith("q_")
        assert all(q["createdBy"] == alice.id for q in stored)

    async def test_batch_rejected_when_one_record_forbidden(self, client: AsyncClient, alice, bob, bob_headers, store):
        original = [
            {"id": "q1", "title": "A", "createdBy": alice.id},
            {"id": "q2", "title": "B", "createdBy": bob.id},
        ]
        await store.write(bob.id, QUESTIONS, original)
        revision = await store.revision(bob.id)

        resp = await client.post(
            "/api/data/questions/batch",
            json={"questions": [_question(id="q1", title="改"), _question(id="q2", title="改")]},
            headers=bob_headers,
        )
        assert resp.status_code == 403
        assert resp.json()["questionId"] == "q1"
        assert await store.read(bob.id, QUESTIONS) == original
        assert await store.revision(bob.id) == revision

    async def test_batch_omitting_foreign_record_is_a_delete(self, client: AsyncClient, alice, bob, bob_headers, store):
        original = [
            {"id": "q1", "title": "A", "createdBy": alice.id},
            {"id": "q2", "title": "B", "createdBy": bob.id},
        ]
        await store.write(bob.id, QUESTIONS, original)

        resp = await client.post(
            "/api/data/questions/batch",
            json={"questions": [_question(id="q2", title="改")]},
            headers=bob_headers,
        )
        assert resp.status_code == 403
        assert await store.read(bob.id, QUESTIONS) == original

    async def test_batch_duplicate_ids(self, client: AsyncClient, alice_headers):
        resp = await client.post(
            "/api/data/questions/batch",
            json={"questions": [_question(id="q1"), _question(id="q1")]},
            headers=alice_headers,
        )
        assert resp.status_code == 400

    async def test_batch_not_a_list(self, client: AsyncClient, alice_headers):
        resp = await client.post("/api/data/questions/batch", json={"questions": "nope"}, headers=alice_headers)
        assert resp.status_code == 400


class TestDeleteQuestion:
    async def test_owner_deletes(self, client: AsyncClient, alice, alice_headers, store):
        await store.write(alice.id, QUESTIONS, [
            {"id": "q1", "title": "A", "createdBy": alice.id},
            {"id": "q2", "title": "B", "createdBy": alice.id},
        ])
        await store.write_annotations(alice.id, "q1", {"span-1": "重点"})

        resp = await client.delete("/api/data/questions/q1", headers=alice_headers)
        assert resp.status_code == 200
        assert [q["id"] for q in await store.read(alice.id, QUESTIONS)] == ["q2"]
        assert await store.read_annotations(alice.id, "q1") == {}

    async def test_non_owner_forbidden(self, client: AsyncClient, alice, bob, bob_headers, store):
        await store.write(bob.id, QUESTIONS, [{"id": "q1", "title": "A", "createdBy": alice.id}])
        resp = await client.delete("/api/data/questions/q1", headers=bob_headers)
        assert resp.status_code == 403
        body = resp.json()
        assert body["questionId"] == "q1"
        assert body["error"] == "permission_denied"
        assert len(await store.read(bob.id, QUESTIONS)) == 1

    async def test_missing_question(self, client: AsyncClient, alice_headers):
        resp = await client.delete("/api/data/questions/q404", headers=alice_headers)
        assert resp.status_code == 404

    async def test_record_in_other_partition_forbidden(self, client: AsyncClient, alice, alice_headers, bob_headers, store):
        resp = await client.post("/api/data/questions", json={"question": {"id": "Q1", "title": "T"}}, headers=alice_headers)
        assert resp.status_code == 200

        resp = await client.delete("/api/data/questions/Q1", headers=bob_headers)
        assert resp.status_code == 403
        body = resp.json()
        assert body["error"] == "permission_denied"
        assert body["questionId"] == "Q1"
        assert [q["id"] for q in await store.read(alice.id, QUESTIONS)] == ["Q1"]

    async def test_legacy_record_in_other_partition_untouched(self, client: AsyncClient, alice, bob, bob_headers, store):
        # 无创建者的旧记录可被任何人删除，但普通用户不会写入他人分区
        await store.write(alice.id, QUESTIONS, [{"id": "q1", "title": "A"}])
        resp = await client.delete("/api/data/questions/q1", headers=bob_headers)
        assert resp.status_code == 404
        assert len(await store.read(alice.id, QUESTIONS)) == 1
        assert await store.revision(bob.id) == 0

    async def test_admin_delete_tolerates_malformed_entries(self, client: AsyncClient, alice, bob, auth_headers, store):
        await store.write(alice.id, QUESTIONS, ["junk", {"id": "q1"}])
        await store.write(bob.id, QUESTIONS, [{"id": "q1"}])
        await store.write(bob.id, HISTORY, [42, {"id": "q1", "title": "A"}])

        resp = await client.delete("/api/data/questions/q1", headers=auth_headers)
        assert resp.status_code == 200
        assert await store.read(alice.id, QUESTIONS) == ["junk"]
        assert await store.read(bob.id, QUESTIONS) == []
        assert await store.read(bob.id, HISTORY) == []

    async def test_owner_delete_keeps_malformed_entries(self, client: AsyncClient, alice, alice_headers, store):
        await store.write(alice.id, QUESTIONS, ["junk", {"id": "q1", "createdBy": alice.id}])
        resp = await client.delete("/api/data/questions/q1", headers=alice_headers)
        assert resp.status_code == 200
        assert await store.read(alice.id, QUESTIONS) == ["junk"]

    async def test_admin_deletes_everywhere(self, client: AsyncClient, alice, bob, auth_headers, store):
        for user in (alice, bob):
            await store.write(user.id, QUESTIONS, [
                {"id": "q1", "title": "A", "createdBy": alice.id},
                {"id": "q2", "title": "B", "createdBy": user.id},
            ])
            await store.write(user.id, HISTORY, [
                {"id": "q1", "title": "A", "accessTime": "2024-01-01T00:00:00.000Z"},
                {"id": "q2", "title": "B", "accessTime": "2024-01-01T00:00:00.000Z"},
            ])
            await store.write_annotations(user.id, "q1", {"span": "x"})

        resp = await client.delete("/api/data/questions/q1", headers=auth_headers)
        assert resp.status_code == 200

        for user in (alice, bob):
            assert [q["id"] for q in await store.read(user.id, QUESTIONS)] == ["q2"]
            assert [h["id"] for h in await store.read(user.id, HISTORY)] == ["q2"]
            assert await store.list_annotations(user.id) == {}


class TestAdminQuestions:
    async def test_aggregate_tags_owner(self, client: AsyncClient, alice, bob, auth_headers, store):
        await store.write(alice.id, QUESTIONS, [{"id": "q1", "title": "A", "createdBy": alice.id}])
        await store.write(bob.id, QUESTIONS, [{"id": "q2", "title": "B", "createdBy": bob.id}])

        resp = await client.get("/api/data/admin/questions", headers=auth_headers)
        assert resp.status_code == 200
        owners = {q["id"]: q["ownerId"] for q in resp.json()}
        assert owners == {"q1": alice.id, "q2": bob.id}

    async def test_corrupt_partition_skipped(self, client: AsyncClient, alice, bob, auth_headers, store):
        await store.write(alice.id, QUESTIONS, [{"id": "q1", "title": "A", "createdBy": alice.id}])
        store.partition_path(bob.id, QUESTIONS).write_text("{not json", encoding="utf-8")

        resp = await client.get("/api/data/admin/questions", headers=auth_headers)
        assert resp.status_code == 200
        assert [q["id"] for q in resp.json()] == ["q1"]

    async def test_non_admin_forbidden(self, client: AsyncClient, alice_headers):
        resp = await client.get("/api/data/admin/questions", headers=alice_headers)
        assert resp.status_code == 403


class TestStats:
    async def test_counts(self, client: AsyncClient, alice, alice_headers, store):
        await store.write(alice.id, QUESTIONS, [
            {"id": "q1", "title": "A", "category": "行测", "subcategory": "数量",
             "updatedAt": "2024-01-02T00:00:00.000Z"},
            {"id": "q2", "title": "B", "category": "行测", "subcategory": "数量",
             "updatedAt": "2024-01-01T00:00:00.000Z"},
            {"id": "q3", "title": "C", "category": "申论", "subcategory": "大作文"},
        ])
        resp = await client.get("/api/data/stats", headers=alice_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalQuestions"] == 3
        assert data["totalHistory"] == 0
        assert data["totalTags"] == 4
        assert data["categoryStats"] == {"行测": {"数量": 2}, "申论": {"大作文": 1}}
        assert data["lastUpdated"] == 1704153600000

    async def test_empty_stats(self, client: AsyncClient, alice_headers):
        data = (await client.get("/api/data/stats", headers=alice_headers)).json()
        assert data["totalQuestions"] == 0
        assert data["lastUpdated"] is None

    async def test_malformed_entries_not_counted(self, client: AsyncClient, alice, alice_headers, store):
        await store.write(alice.id, QUESTIONS, ["junk", {"id": "q1", "title": "A", "category": "行测"}])
        data = (await client.get("/api/data/stats", headers=alice_headers)).json()
        assert data["totalQuestions"] == 1
        assert data["categoryStats"] == {"行测": {"": 1}}
