# tests/test_board_api.py — Board router tests
import pytest
from httpx import AsyncClient

from schemas import BoardUser

BOARD = "/api/v1/board"


def counts(board: dict) -> list:
    return [column["count"] for column in board["columns"]]


def column(board: dict, column_id: str) -> dict:
    return next(c for c in board["columns"] if c["id"] == column_id)


@pytest.mark.asyncio
class TestBoardView:
    async def test_demo_board(self, client: AsyncClient, alice_headers):
        res = await client.get(BOARD, headers=alice_headers)
        assert res.status_code == 200
        data = res.json()
        assert data["mode"] == "demo"
        assert data["status"] == "disconnected"
        assert [c["id"] for c in data["columns"]] == ["todo", "in-progress", "done"]
        assert [c["title"] for c in data["columns"]] == ["To Do", "In Progress", "Done"]
        assert counts(data) == [4, 1, 1]
        assert data["completion_percentage"] == 17
        assert data["total_tasks"] == 6

    async def test_requires_auth(self, client: AsyncClient):
        res = await client.get(BOARD)
        assert res.status_code in (401, 403)

    async def test_search(self, client: AsyncClient, alice_headers):
        res = await client.get(BOARD, params={"q": "profile"}, headers=alice_headers)
        data = res.json()
        assert data["query"] == "profile"
        titles = [t["title"] for c in data["columns"] for t in c["tasks"]]
        assert titles == ["Complete Profile Verification"]
        assert data["completion_percentage"] == 17

    async def test_boards_are_per_user(self, client: AsyncClient, alice_headers, auth_headers):
        bob_headers = auth_headers(BoardUser(id=2, name="Bob Smith", email="bob@example.com"))
        await client.post(f"{BOARD}/tasks/1/status", json={"status": "done"}, headers=alice_headers)
        alice_board = (await client.get(BOARD, headers=alice_headers)).json()
        bob_board = (await client.get(BOARD, headers=bob_headers)).json()
        assert counts(alice_board) == [3, 1, 2]
        assert counts(bob_board) == [4, 1, 1]
        assert column(bob_board, "todo")["tasks"][0]["assignee"]["name"] == "Bob Smith"

    async def test_demo_visitors_get_separate_boards(self, client: AsyncClient):
        first = (await client.post("/api/v1/auth/demo")).json()
        second = (await client.post("/api/v1/auth/demo")).json()
        first_headers = {"Authorization": f"Bearer {first['access_token']}"}
        second_headers = {"Authorization": f"Bearer {second['access_token']}"}

        res = await client.post(f"{BOARD}/tasks", json={"title": "Visitor A private"}, headers=first_headers)
        assert res.status_code == 201

        board = (await client.get(BOARD, headers=second_headers)).json()
        titles = [t["title"] for c in board["columns"] for t in c["tasks"]]
        assert "Visitor A private" not in titles
        assert board["total_tasks"] == 6

        await client.post("/api/v1/auth/logout", headers=second_headers)
        board = (await client.get(BOARD, headers=first_headers)).json()
        assert board["total_tasks"] == 7

    async def test_stats(self, client: AsyncClient, alice_headers):
        res = await client.get(f"{BOARD}/stats", headers=alice_headers)
        assert res.status_code == 200
        assert res.json()["by_status"] == {"todo": 4, "in-progress": 1, "done": 1}

    async def test_reload(self, client: AsyncClient, alice_headers):
        await client.delete(f"{BOARD}/tasks/1", headers=alice_headers)
        res = await client.post(f"{BOARD}/reload", headers=alice_headers)
        assert res.status_code == 200
        assert res.json()["total_tasks"] == 6


@pytest.mark.asyncio
class TestTasks:
    async def test_create_task(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks", json={
            "title": "Prepare demo",
            "description": "Slides and script",
            "priority": "high",
            "due_date": "2030-05-01",
        }, headers=alice_headers)
        assert res.status_code == 201
        task = res.json()
        assert task["status"] == "todo"
        assert task["priority"] == "high"
        assert task["assignee"]["email"] == "alice@example.com"
        assert task["due_date"] == "2030-05-01"

        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert column(board, "todo")["tasks"][-1]["id"] == task["id"]

    async def test_create_unassigned(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks", json={"title": "Anyone", "assignee_id": None},
                                headers=alice_headers)
        assert res.status_code == 201
        assert res.json()["assignee"] is None

    async def test_create_blank_title(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks", json={"title": "   "}, headers=alice_headers)
        assert res.status_code == 400
        res = await client.post(f"{BOARD}/tasks", json={"title": ""}, headers=alice_headers)
        assert res.status_code == 422
        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert board["total_tasks"] == 6

    async def test_create_invalid_status(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks", json={"title": "Odd", "status": "blocked"},
                                headers=alice_headers)
        assert res.status_code == 422
        assert "request_id" in res.json()

    async def test_get_task_opens_detail(self, client: AsyncClient, alice_headers):
        res = await client.get(f"{BOARD}/tasks/5", headers=alice_headers)
        assert res.status_code == 200
        assert len(res.json()["comments"]) == 1
        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert board["detail_task_id"] == 5

        await client.delete(f"{BOARD}/detail", headers=alice_headers)
        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert board["detail_task_id"] is None

    async def test_get_unknown_task(self, client: AsyncClient, alice_headers):
        res = await client.get(f"{BOARD}/tasks/999", headers=alice_headers)
        assert res.status_code == 404
        assert res.json()["detail"] == "Task not found"

    async def test_update_task(self, client: AsyncClient, alice_headers):
        res = await client.patch(f"{BOARD}/tasks/3", json={
            "title": "Tune notifications",
            "priority": "low",
            "due_date": None,
        }, headers=alice_headers)
        assert res.status_code == 200
        task = res.json()
        assert task["title"] == "Tune notifications"
        assert task["priority"] == "low"
        assert task["due_date"] is None
        assert task["status"] == "todo"

    async def test_update_blank_title(self, client: AsyncClient, alice_headers):
        res = await client.patch(f"{BOARD}/tasks/3", json={"title": "  "}, headers=alice_headers)
        assert res.status_code == 400

    async def test_update_unknown_task(self, client: AsyncClient, alice_headers):
        res = await client.patch(f"{BOARD}/tasks/999", json={"title": "Ghost"}, headers=alice_headers)
        assert res.status_code == 404

    async def test_change_status(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks/2/status", json={"status": "in-progress"},
                                headers=alice_headers)
        assert res.status_code == 200
        assert res.json()["status"] == "in-progress"
        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert counts(board) == [3, 2, 1]

    async def test_change_status_invalid(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks/2/status", json={"status": "archived"},
                                headers=alice_headers)
        assert res.status_code == 422

    async def test_change_status_unknown_task(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks/999/status", json={"status": "done"},
                                headers=alice_headers)
        assert res.status_code == 404

    async def test_delete_task(self, client: AsyncClient, alice_headers):
        res = await client.delete(f"{BOARD}/tasks/4", headers=alice_headers)
        assert res.status_code == 200
        res = await client.get(f"{BOARD}/tasks/4", headers=alice_headers)
        assert res.status_code == 404
        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert board["total_tasks"] == 5
        assert board["completion_percentage"] == 20


@pytest.mark.asyncio
class TestComments:
    async def test_add_and_list(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks/1/comments", json={"content": "Uploading a photo now"},
                                headers=alice_headers)
        assert res.status_code == 201
        assert res.json()["author"]["name"] == "Alice Johnson"

        res = await client.get(f"{BOARD}/tasks/1/comments", headers=alice_headers)
        assert res.status_code == 200
        assert [c["content"] for c in res.json()] == ["Uploading a photo now"]

    async def test_blank_comment(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks/1/comments", json={"content": "   "}, headers=alice_headers)
        assert res.status_code == 400
        res = await client.get(f"{BOARD}/tasks/1/comments", headers=alice_headers)
        assert res.json() == []

    async def test_comment_on_unknown_task(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/tasks/999/comments", json={"content": "Hi"}, headers=alice_headers)
        assert res.status_code == 404
        res = await client.get(f"{BOARD}/tasks/999/comments", headers=alice_headers)
        assert res.status_code == 404


@pytest.mark.asyncio
class TestDrag:
    async def test_drag_to_column(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/drag/press", json={"task_id": 1, "x": 0, "y": 0},
                                headers=alice_headers)
        assert res.json()["state"] == "idle"

        res = await client.post(f"{BOARD}/drag/move", json={"x": 30, "y": 4}, headers=alice_headers)
        assert res.json()["state"] == "dragging"
        assert res.json()["overlay"]["id"] == 1

        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert board["dragging_task_id"] == 1
        assert 1 not in [t["id"] for t in column(board, "todo")["tasks"]]

        res = await client.post(f"{BOARD}/drag/release", json={"column": "done"}, headers=alice_headers)
        data = res.json()
        assert data["outcome"] == "moved"
        assert data["target"] == "done"
        assert data["state"] == "idle"

        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert board["dragging_task_id"] is None
        assert 1 in [t["id"] for t in column(board, "done")["tasks"]]

    async def test_drop_outside_columns(self, client: AsyncClient, alice_headers):
        await client.post(f"{BOARD}/drag/press", json={"task_id": 2, "x": 0, "y": 0}, headers=alice_headers)
        await client.post(f"{BOARD}/drag/move", json={"x": 0, "y": 50}, headers=alice_headers)
        res = await client.post(f"{BOARD}/drag/release", json={}, headers=alice_headers)
        assert res.json()["outcome"] == "discarded"
        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert counts(board) == [4, 1, 1]

    async def test_click_opens_detail(self, client: AsyncClient, alice_headers):
        await client.post(f"{BOARD}/drag/press", json={"task_id": 3, "x": 5, "y": 5}, headers=alice_headers)
        res = await client.post(f"{BOARD}/drag/release", json={"column": "done"}, headers=alice_headers)
        assert res.json()["outcome"] == "click"
        board = (await client.get(BOARD, headers=alice_headers)).json()
        assert board["detail_task_id"] == 3
        assert counts(board) == [4, 1, 1]

    async def test_press_unknown_task(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/drag/press", json={"task_id": 999, "x": 0, "y": 0},
                                headers=alice_headers)
        assert res.status_code == 404

    async def test_release_without_press(self, client: AsyncClient, alice_headers):
        res = await client.post(f"{BOARD}/drag/release", json={"column": "done"}, headers=alice_headers)
        assert res.status_code == 200
        assert res.json()["outcome"] is None

    async def test_cancel(self, client: AsyncClient, alice_headers):
        await client.post(f"{BOARD}/drag/press", json={"task_id": 1, "x": 0, "y": 0}, headers=alice_headers)
        await client.post(f"{BOARD}/drag/move", json={"x": 40, "y": 0}, headers=alice_headers)
        res = await client.post(f"{BOARD}/drag/cancel", headers=alice_headers)
        assert res.json()["state"] == "idle"
        res = await client.get(f"{BOARD}/drag", headers=alice_headers)
        assert res.json()["task_id"] is None


@pytest.mark.asyncio
class TestPersistedBoardApi:
    async def test_connected_board(self, persisted_client: AsyncClient, alice_headers):
        res = await persisted_client.get(BOARD, headers=alice_headers)
        data = res.json()
        assert data["mode"] == "connected"
        assert data["total_tasks"] == 5
        assert data["completion_percentage"] == 20

    async def test_created_task_survives_reload(self, persisted_client: AsyncClient, alice_headers):
        res = await persisted_client.post(f"{BOARD}/tasks", json={"title": "Stored task"}, headers=alice_headers)
        assert res.status_code == 201

        res = await persisted_client.post(f"{BOARD}/reload", headers=alice_headers)
        board = res.json()
        assert board["mode"] == "connected"
        assert board["total_tasks"] == 6
        stored = next(t for t in column(board, "todo")["tasks"] if t["title"] == "Stored task")
        assert stored["assignee"]["email"] == "alice@example.com"

        res = await persisted_client.get(f"{BOARD}/tasks/{stored['id']}", headers=alice_headers)
        assert res.status_code == 200

    async def test_comment_is_stored(self, persisted_client: AsyncClient, alice_headers):
        board = (await persisted_client.get(BOARD, headers=alice_headers)).json()
        task_id = column(board, "done")["tasks"][0]["id"]
        await persisted_client.post(f"{BOARD}/tasks/{task_id}/comments", json={"content": "Verified"},
                                    headers=alice_headers)
        await persisted_client.post(f"{BOARD}/reload", headers=alice_headers)
        res = await persisted_client.get(f"{BOARD}/tasks/{task_id}/comments", headers=alice_headers)
        assert [c["content"] for c in res.json()] == [
            "Authentication system is complete and tested",
            "Verified",
        ]
