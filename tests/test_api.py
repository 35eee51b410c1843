"""
API tests through httpx + ASGITransport

Each test runs against a fresh in-memory database.
"""
import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from readtrack.ai_client import get_quiz_generator
from readtrack.core.config import Settings, get_settings
from readtrack.logic import badge_service
from readtrack.main import app
from tests.conftest import FakeQuizGenerator, auth


async def create_book(client, user_id="user-1", **fields):
    payload = {"title": "Dune", "author": "Frank Herbert"}
    payload.update(fields)
    response = await client.post("/api/books", json=payload, headers=auth(user_id))
    assert response.status_code == 201
    return response.json()


async def create_quiz(client, book_id, user_id="user-1", difficulty="medium"):
    response = await client.post(
        f"/api/books/{book_id}/quiz", json={"difficulty": difficulty}, headers=auth(user_id)
    )
    assert response.status_code == 201
    return response.json()


# ============================================================================
# Health & auth
# ============================================================================

async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "Reading Tracker"


async def test_request_id_echoed(client):
    response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
    assert response.headers["X-Request-ID"] == "abc-123"

    generated = await client.get("/health")
    assert generated.headers["X-Request-ID"]


@pytest.mark.parametrize("path", [
    "/api/books",
    "/api/user/stats",
    "/api/badges",
    "/api/notifications",
    "/api/book-clubs",
    "/api/stats/quizzes",
    "/api/feed",
])
async def test_missing_user_header_is_401(client, path):
    response = await client.get(path)
    assert response.status_code == 401


async def test_blank_user_header_is_401(client):
    response = await client.get("/api/books", headers={"X-User-ID": "  "})
    assert response.status_code == 401


# ============================================================================
# Books
# ============================================================================

async def test_create_book_counts_and_awards_badge(client):
    book = await create_book(client)

    assert book["title"] == "Dune"
    assert book["userId"] == "user-1"
    assert book["status"] == "want_to_read"
    assert book["isFavorite"] is False

    stats = (await client.get("/api/user/stats", headers=auth())).json()
    assert stats["totalBooksAdded"] == 1
    assert stats["totalBooksRead"] == 0

    badges = (await client.get("/api/badges", headers=auth())).json()
    assert [(b["type"], b["tier"]) for b in badges] == [("books_added", "bronze")]

    notifications = (await client.get("/api/notifications", headers=auth())).json()
    assert len(notifications) == 1
    assert notifications[0]["type"] == "badge_earned"
    assert notifications[0]["metadata"]["badgeType"] == "books_added"


async def test_create_read_book_counts_as_read(client):
    await create_book(client, status="read")

    stats = (await client.get("/api/user/stats", headers=auth())).json()
    assert stats["totalBooksAdded"] == 1
    assert stats["totalBooksRead"] == 1


async def test_list_books_filters(client):
    await create_book(client, title="Dune", author="Frank Herbert")
    await create_book(client, title="Emma", author="Jane Austen", status="reading")
    await create_book(client, user_id="user-2", title="Dune Messiah")

    books = (await client.get("/api/books", headers=auth())).json()
    assert [b["title"] for b in books] == ["Emma", "Dune"]

    reading = (await client.get("/api/books", params={"status": "reading"}, headers=auth())).json()
    assert [b["title"] for b in reading] == ["Emma"]

    search = (await client.get("/api/books", params={"search": "austen"}, headers=auth())).json()
    assert [b["title"] for b in search] == ["Emma"]


async def test_book_of_another_user_is_404(client):
    book = await create_book(client, user_id="user-2")

    assert (await client.get(f"/api/books/{book['id']}", headers=auth())).status_code == 404
    assert (await client.delete(f"/api/books/{book['id']}", headers=auth())).status_code == 404
    assert (await client.get("/api/books/9999", headers=auth())).status_code == 404


async def test_invalid_book_is_422(client):
    response = await client.post("/api/books", json={"title": "", "author": "x"}, headers=auth())
    assert response.status_code == 422

    response = await client.post("/api/books", json={"title": "Dune", "author": "x", "rating": 9}, headers=auth())
    assert response.status_code == 422


async def test_mark_read_once(client):
    book = await create_book(client)

    response = await client.patch(f"/api/books/{book['id']}", json={"status": "read"}, headers=auth())
    assert response.status_code == 200
    updated = response.json()
    assert updated["status"] == "read"
    assert updated["dateRead"] is not None

    # Already read: no second count
    await client.patch(f"/api/books/{book['id']}", json={"status": "read", "rating": 5}, headers=auth())

    stats = (await client.get("/api/user/stats", headers=auth())).json()
    assert stats["totalBooksRead"] == 1

    badges = (await client.get("/api/badges", headers=auth())).json()
    assert {(b["type"], b["tier"]) for b in badges} == {("books_added", "bronze"), ("books_read", "bronze")}


async def test_partial_update_keeps_other_fields(client):
    book = await create_book(client, genre="Science Fiction")

    response = await client.patch(f"/api/books/{book['id']}", json={"isFavorite": True}, headers=auth())
    updated = response.json()
    assert updated["isFavorite"] is True
    assert updated["genre"] == "Science Fiction"
    assert updated["status"] == "want_to_read"


@pytest.mark.parametrize("field", ["status", "title", "author", "isFavorite"])
async def test_null_for_required_field_is_422(client, field):
    book = await create_book(client)

    response = await client.patch(f"/api/books/{book['id']}", json={field: None}, headers=auth())
    assert response.status_code == 422

    unchanged = (await client.get(f"/api/books/{book['id']}", headers=auth())).json()
    assert unchanged == book


async def test_null_clears_optional_field(client):
    book = await create_book(client, rating=4, genre="Science Fiction")

    response = await client.patch(f"/api/books/{book['id']}", json={"rating": None}, headers=auth())
    assert response.status_code == 200
    assert response.json()["rating"] is None
    assert response.json()["genre"] == "Science Fiction"


async def test_delete_book_removes_quizzes(client):
    book = await create_book(client)
    quiz = await create_quiz(client, book["id"])

    response = await client.delete(f"/api/books/{book['id']}", headers=auth())
    assert response.status_code == 204

    assert (await client.get(f"/api/books/{book['id']}", headers=auth())).status_code == 404
    assert (await client.get(f"/api/quizzes/{quiz['id']}", headers=auth())).status_code == 404


# ============================================================================
# Quizzes
# ============================================================================

async def test_generate_quiz(client, quiz_generator):
    book = await create_book(client)
    quiz = await create_quiz(client, book["id"], difficulty="hard")

    assert quiz["bookId"] == book["id"]
    assert quiz["difficulty"] == "hard"
    assert quiz["score"] is None
    assert quiz["userAnswers"] is None
    assert len(quiz["questions"]) == 3
    assert quiz["questions"][2]["correctAnswers"] == [0, 2]

    assert quiz_generator.calls == [{
        "title": "Dune", "author": "Frank Herbert", "difficulty": "hard", "question_count": 10,
    }]

    latest = (await client.get(f"/api/books/{book['id']}/quiz", headers=auth())).json()
    assert latest["id"] == quiz["id"]


async def test_generate_quiz_default_difficulty(client, quiz_generator):
    book = await create_book(client)
    response = await client.post(f"/api/books/{book['id']}/quiz", headers=auth())

    assert response.status_code == 201
    assert response.json()["difficulty"] == "medium"


async def test_generate_quiz_invalid_difficulty(client):
    book = await create_book(client)
    response = await client.post(f"/api/books/{book['id']}/quiz", json={"difficulty": "brutal"}, headers=auth())
    assert response.status_code == 422


async def test_generate_quiz_unknown_book(client):
    response = await client.post("/api/books/9999/quiz", json={}, headers=auth())
    assert response.status_code == 404


async def test_generate_quiz_generator_failure_is_502(client):
    book = await create_book(client)
    app.dependency_overrides[get_quiz_generator] = lambda: FakeQuizGenerator(fail=True)

    response = await client.post(f"/api/books/{book['id']}/quiz", json={}, headers=auth())
    assert response.status_code == 502

    assert (await client.get(f"/api/books/{book['id']}/quiz", headers=auth())).status_code == 404


async def test_submit_quiz(client):
    book = await create_book(client)
    quiz = await create_quiz(client, book["id"])

    response = await client.post(
        f"/api/quizzes/{quiz['id']}/submit", json={"answers": [0, 2, [2, 0]]}, headers=auth()
    )
    assert response.status_code == 200
    graded = response.json()
    assert graded["score"] == 3
    assert graded["userAnswers"] == [0, 2, [2, 0]]

    stats = (await client.get("/api/user/stats", headers=auth())).json()
    assert stats["totalQuizzesCompleted"] == 1

    badges = (await client.get("/api/badges", headers=auth())).json()
    assert ("quizzes", "bronze") in {(b["type"], b["tier"]) for b in badges}


async def test_submit_partial_answers(client):
    book = await create_book(client)
    quiz = await create_quiz(client, book["id"])

    response = await client.post(f"/api/quizzes/{quiz['id']}/submit", json={"answers": [0, None]}, headers=auth())
    assert response.json()["score"] == 1


async def test_resubmission_rejected(client):
    book = await create_book(client)
    quiz = await create_quiz(client, book["id"])
    url = f"/api/quizzes/{quiz['id']}/submit"

    assert (await client.post(url, json={"answers": [0, 2, [0, 2]]}, headers=auth())).status_code == 200
    response = await client.post(url, json={"answers": [1, 1, [1]]}, headers=auth())
    assert response.status_code == 409

    stored = (await client.get(f"/api/quizzes/{quiz['id']}", headers=auth())).json()
    assert stored["score"] == 3
    stats = (await client.get("/api/user/stats", headers=auth())).json()
    assert stats["totalQuizzesCompleted"] == 1


async def test_resubmission_allowed_by_config(client):
    app.dependency_overrides[get_settings] = lambda: Settings(ALLOW_QUIZ_RESUBMISSION=True)
    book = await create_book(client)
    quiz = await create_quiz(client, book["id"])
    url = f"/api/quizzes/{quiz['id']}/submit"

    await client.post(url, json={"answers": [0, 2, [0, 2]]}, headers=auth())
    response = await client.post(url, json={"answers": [0, 0, [0]]}, headers=auth())

    assert response.status_code == 200
    assert response.json()["score"] == 1
    stats = (await client.get("/api/user/stats", headers=auth())).json()
    assert stats["totalQuizzesCompleted"] == 2


async def test_quiz_of_another_user_is_404(client):
    book = await create_book(client, user_id="user-2")
    quiz = await create_quiz(client, book["id"], user_id="user-2")

    assert (await client.get(f"/api/quizzes/{quiz['id']}", headers=auth())).status_code == 404
    response = await client.post(f"/api/quizzes/{quiz['id']}/submit", json={"answers": []}, headers=auth())
    assert response.status_code == 404


async def test_quiz_stats(client):
    book = await create_book(client)
    graded = await create_quiz(client, book["id"], difficulty="easy")
    await create_quiz(client, book["id"], difficulty="hard")
    await client.post(f"/api/quizzes/{graded['id']}/submit", json={"answers": [0, 2, [0]]}, headers=auth())

    data = (await client.get("/api/stats/quizzes", headers=auth())).json()

    assert data["stats"]["total"] == 2
    assert data["stats"]["averageScore"] == 67
    assert data["stats"]["difficultyBreakdown"] == {"easy": 1, "medium": 0, "hard": 1}

    history = {item["id"]: item for item in data["history"]}
    assert history[graded["id"]]["score"] == 2
    assert history[graded["id"]]["percentage"] == 67
    assert history[graded["id"]]["bookTitle"] == "Dune"


async def test_quiz_stats_empty(client):
    data = (await client.get("/api/stats/quizzes", headers=auth())).json()
    assert data["history"] == []
    assert data["stats"]["total"] == 0
    assert data["stats"]["averageScore"] == 0


# ============================================================================
# Stats, badges, notifications
# ============================================================================

async def test_first_request_starts_streak(client):
    stats = (await client.get("/api/user/stats", headers=auth("new-user"))).json()

    assert stats["userId"] == "new-user"
    assert stats["dailyStreak"] == 1
    assert stats["longestStreak"] == 1
    assert stats["lastActiveDate"] is not None
    assert stats["totalBooksAdded"] == 0


async def test_request_log_names_user_and_streak(client, caplog):
    caplog.set_level(logging.INFO, logger="readtrack.middleware")

    await client.get("/api/books", headers=auth("logged-user"))

    messages = [r.getMessage() for r in caplog.records if r.name == "readtrack.middleware"]
    assert any(m.startswith("GET /api/books 200 ") and m.endswith("user=logged-user streak=1") for m in messages)


async def test_failed_badge_pass_still_logs_request(client, caplog, monkeypatch):
    monkeypatch.setattr(
        badge_service, "check_and_award_badges", AsyncMock(side_effect=RuntimeError("badges down"))
    )
    caplog.set_level(logging.INFO, logger="readtrack.middleware")

    response = await client.get("/api/user/stats", headers=auth("unlucky"))
    assert response.status_code == 200
    assert response.json()["dailyStreak"] == 1

    messages = [r.getMessage() for r in caplog.records if r.name == "readtrack.middleware"]
    assert any(m.startswith("GET /api/user/stats 200 ") and "user=unlucky" in m for m in messages)


async def test_badge_tiers(client):
    tiers = (await client.get("/api/badges/tiers", headers=auth())).json()

    assert [c["type"] for c in tiers] == ["quizzes", "books_added", "books_read", "daily_streak"]
    assert tiers[3]["statField"] == "daily_streak"
    assert [t["threshold"] for t in tiers[3]["tiers"]] == [3, 7, 14, 30, 100]


async def test_badge_progress(client):
    await create_book(client)

    progress = {p["type"]: p for p in (await client.get("/api/badges/progress", headers=auth())).json()}

    assert progress["books_added"]["earnedTiers"] == ["bronze"]
    assert progress["books_added"]["nextTier"] == "silver"
    assert progress["books_added"]["nextThreshold"] == 5
    assert progress["books_added"]["progress"] == 0.0
    assert progress["quizzes"]["nextTier"] == "bronze"


async def test_notifications_read_flow(client):
    await create_book(client)
    await create_book(client, user_id="user-2")

    count = (await client.get("/api/notifications/unread-count", headers=auth())).json()
    assert count == {"count": 1}

    notification = (await client.get("/api/notifications", headers=auth())).json()[0]
    assert notification["isRead"] is False

    # Another user cannot mark it
    await client.post(f"/api/notifications/{notification['id']}/read", headers=auth("user-2"))
    assert (await client.get("/api/notifications/unread-count", headers=auth())).json()["count"] == 1

    response = await client.post(f"/api/notifications/{notification['id']}/read", headers=auth())
    assert response.json() == {"success": True}
    assert (await client.get("/api/notifications/unread-count", headers=auth())).json()["count"] == 0

    response = await client.post("/api/notifications/read-all", headers=auth("user-2"))
    assert response.json() == {"success": True}
    assert (await client.get("/api/notifications/unread-count", headers=auth("user-2"))).json()["count"] == 0


# ============================================================================
# Book clubs
# ============================================================================

async def create_club(client, user_id="owner", name="Sci-Fi Club"):
    response = await client.post("/api/book-clubs", json={"name": name}, headers=auth(user_id))
    assert response.status_code == 201
    return response.json()


async def test_create_club(client):
    club = await create_club(client)

    assert club["ownerId"] == "owner"
    assert len(club["inviteCode"]) == 8
    assert club["inviteCode"].isalnum()
    assert club["inviteCode"] == club["inviteCode"].upper()

    detail = (await client.get(f"/api/book-clubs/{club['id']}", headers=auth("owner"))).json()
    assert [(m["userId"], m["role"]) for m in detail["members"]] == [("owner", "owner")]
    assert detail["messages"] == []


async def test_join_club(client):
    club = await create_club(client)

    response = await client.post(
        "/api/book-clubs/join", json={"inviteCode": club["inviteCode"].lower()}, headers=auth("member")
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Joined successfully"
    assert response.json()["club"]["id"] == club["id"]

    again = await client.post("/api/book-clubs/join", json={"inviteCode": club["inviteCode"]}, headers=auth("member"))
    assert again.status_code == 400

    unknown = await client.post("/api/book-clubs/join", json={"inviteCode": "NOPE0000"}, headers=auth("member"))
    assert unknown.status_code == 404

    clubs = (await client.get("/api/book-clubs", headers=auth("member"))).json()
    assert [c["id"] for c in clubs] == [club["id"]]
    owner_clubs = (await client.get("/api/book-clubs", headers=auth("owner"))).json()
    assert [c["id"] for c in owner_clubs] == [club["id"]]


async def test_club_access_is_members_only(client):
    club = await create_club(client)

    assert (await client.get(f"/api/book-clubs/{club['id']}", headers=auth("stranger"))).status_code == 403
    assert (await client.get(f"/api/book-clubs/{club['id']}/members", headers=auth("stranger"))).status_code == 403
    assert (await client.get(f"/api/book-clubs/{club['id']}/messages", headers=auth("stranger"))).status_code == 403
    response = await client.post(
        f"/api/book-clubs/{club['id']}/messages", json={"content": "hi"}, headers=auth("stranger")
    )
    assert response.status_code == 403
    assert (await client.get("/api/book-clubs/9999", headers=auth("stranger"))).status_code == 404


async def test_club_messages_notify_other_members(client):
    club = await create_club(client)
    await client.post("/api/book-clubs/join", json={"inviteCode": club["inviteCode"]}, headers=auth("member"))

    response = await client.post(
        f"/api/book-clubs/{club['id']}/messages", json={"content": "Chapter 3 thoughts?"}, headers=auth("member")
    )
    assert response.status_code == 201
    assert response.json()["content"] == "Chapter 3 thoughts?"

    owner_notifications = (await client.get("/api/notifications", headers=auth("owner"))).json()
    assert [n["type"] for n in owner_notifications] == ["book_club_activity"]
    assert owner_notifications[0]["relatedClubId"] == club["id"]

    member_notifications = (await client.get("/api/notifications", headers=auth("member"))).json()
    assert member_notifications == []

    messages = (await client.get(f"/api/book-clubs/{club['id']}/messages", headers=auth("owner"))).json()
    assert [m["content"] for m in messages] == ["Chapter 3 thoughts?"]


async def test_current_book_owner_only(client):
    club = await create_club(client)
    await client.post("/api/book-clubs/join", json={"inviteCode": club["inviteCode"]}, headers=auth("member"))
    book = await create_book(client, user_id="owner")

    url = f"/api/book-clubs/{club['id']}/current-book"
    assert (await client.post(url, json={"bookId": book["id"]}, headers=auth("member"))).status_code == 403

    response = await client.post(url, json={"bookId": book["id"]}, headers=auth("owner"))
    assert response.status_code == 200
    assert response.json()["currentBookId"] == book["id"]

    assert (await client.post("/api/book-clubs/9999/current-book", json={"bookId": None}, headers=auth("owner"))).status_code == 404


async def test_leave_club(client):
    club = await create_club(client)
    await client.post("/api/book-clubs/join", json={"inviteCode": club["inviteCode"]}, headers=auth("member"))

    response = await client.post(f"/api/book-clubs/{club['id']}/leave", headers=auth("member"))
    assert response.json() == {"success": True}

    assert (await client.get(f"/api/book-clubs/{club['id']}", headers=auth("member"))).status_code == 403
    assert (await client.get("/api/book-clubs", headers=auth("member"))).json() == []


async def test_owner_cannot_leave_club(client):
    club = await create_club(client)
    await client.post("/api/book-clubs/join", json={"inviteCode": club["inviteCode"]}, headers=auth("member"))

    response = await client.post(f"/api/book-clubs/{club['id']}/leave", headers=auth("owner"))
    assert response.status_code == 400

    detail = await client.get(f"/api/book-clubs/{club['id']}", headers=auth("owner"))
    assert detail.status_code == 200
    assert {(m["userId"], m["role"]) for m in detail.json()["members"]} == {("owner", "owner"), ("member", "member")}
    assert [c["id"] for c in (await client.get("/api/book-clubs", headers=auth("owner"))).json()] == [club["id"]]

    url = f"/api/book-clubs/{club['id']}/current-book"
    assert (await client.post(url, json={"bookId": None}, headers=auth("owner"))).status_code == 200


async def test_leave_unknown_club_is_404(client):
    response = await client.post("/api/book-clubs/9999/leave", headers=auth("member"))
    assert response.status_code == 404


# ============================================================================
# Feed
# ============================================================================

def days_ago(days):
    return (datetime.utcnow() - timedelta(days=days)).isoformat()


async def test_feed_lists_refreshers_for_books_read_long_ago(client):
    old_read = days_ago(40)
    dune = await create_book(client, title="Dune", status="read", dateRead=old_read)
    await create_book(client, title="Emma", status="read", dateRead=days_ago(5))
    await create_book(client, title="Ulysses", status="reading", dateRead=days_ago(90))
    await create_book(client, user_id="user-2", title="Beloved", status="read", dateRead=days_ago(60))

    response = await client.get("/api/feed", headers=auth())
    assert response.status_code == 200
    feed = response.json()

    assert [r["bookId"] for r in feed["refresherQuizzes"]] == [dune["id"]]
    assert feed["refresherQuizzes"][0]["bookTitle"] == "Dune"
    assert feed["refresherQuizzes"][0]["lastQuizDate"][:10] == old_read[:10]
    assert feed["suggestedBooks"] == []
    assert feed["newAuthorBooks"] == []

    notifications = (await client.get("/api/notifications", headers=auth())).json()
    assert [n["id"] for n in feed["notifications"]] == [n["id"] for n in notifications]
    assert {n["metadata"]["badgeType"] for n in feed["notifications"]} == {"books_added", "books_read"}


async def test_feed_limits(client):
    for i in range(7):
        await create_book(client, title=f"Old {i}", status="read", dateRead=days_ago(45))
    for i in range(8):
        await client.post("/api/book-clubs", json={"name": f"Club {i}"}, headers=auth("other"))
    clubs = (await client.get("/api/book-clubs", headers=auth("other"))).json()
    for club in clubs:
        await client.post("/api/book-clubs/join", json={"inviteCode": club["inviteCode"]}, headers=auth())
        await client.post(f"/api/book-clubs/{club['id']}/messages", json={"content": "hi"}, headers=auth("other"))

    feed = (await client.get("/api/feed", headers=auth())).json()

    assert len(feed["refresherQuizzes"]) == 5
    assert [r["bookTitle"] for r in feed["refresherQuizzes"]] == ["Old 6", "Old 5", "Old 4", "Old 3", "Old 2"]
    assert len(feed["notifications"]) == 10
    assert (await client.get("/api/notifications/unread-count", headers=auth())).json()["count"] > 10


async def test_feed_empty(client):
    feed = (await client.get("/api/feed", headers=auth())).json()
    assert feed == {"notifications": [], "suggestedBooks": [], "refresherQuizzes": [], "newAuthorBooks": []}
