"""
Comment endpoint tests: adding, listing, fetching and deleting comments
under an article, including ownership on delete.
"""
import pytest
from httpx import AsyncClient


async def _setup_article(client: AsyncClient, headers: dict, title: str = "Commented") -> str:
    resp = await client.post("/api/articles", headers=headers, json={"article": {
        "title": title, "description": "d", "body": "b",
    }})
    assert resp.status_code == 201
    return resp.json()["article"]["slug"]


async def _comment(client: AsyncClient, headers: dict, slug: str, body: str) -> dict:
    resp = await client.post(f"/api/articles/{slug}/comments", headers=headers,
                             json={"comment": {"body": body}})
    assert resp.status_code == 201, resp.text
    return resp.json()["comment"]


# ---------------------------------------------------------------------------
# Add comments
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_add_comment(async_client: AsyncClient, register):
    """Adding a comment returns it with its author profile."""
    _, alice = await register("alice")
    slug = await _setup_article(async_client, alice)

    comment = await _comment(async_client, alice, slug, "Thank you so much!")
    assert comment["body"] == "Thank you so much!"
    assert isinstance(comment["id"], int)
    assert comment["author"]["username"] == "alice"
    assert comment["author"]["following"] is False
    assert "createdAt" in comment and "updatedAt" in comment


@pytest.mark.asyncio
async def test_add_comment_to_missing_article(async_client: AsyncClient, register):
    """Commenting on an unknown slug returns 404."""
    _, alice = await register("alice")
    resp = await async_client.post("/api/articles/missing/comments", headers=alice,
                                   json={"comment": {"body": "hello?"}})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_add_comment_requires_auth(async_client: AsyncClient, register):
    """Commenting without a token returns 401."""
    _, alice = await register("alice")
    slug = await _setup_article(async_client, alice)
    resp = await async_client.post(f"/api/articles/{slug}/comments",
                                   json={"comment": {"body": "anon"}})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_add_empty_comment_rejected(async_client: AsyncClient, register):
    """An empty comment body is rejected with 422."""
    _, alice = await register("alice")
    slug = await _setup_article(async_client, alice)
    resp = await async_client.post(f"/api/articles/{slug}/comments", headers=alice,
                                   json={"comment": {"body": ""}})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# List / get
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_comments_newest_first(async_client: AsyncClient, register):
    """Comments are listed newest first."""
    _, alice = await register("alice")
    _, bob = await register("bob")
    slug = await _setup_article(async_client, alice)
    await _comment(async_client, alice, slug, "first")
    await _comment(async_client, bob, slug, "second")

    resp = await async_client.get(f"/api/articles/{slug}/comments")
    assert resp.status_code == 200
    bodies = [c["body"] for c in resp.json()["comments"]]
    assert bodies == ["second", "first"]


@pytest.mark.asyncio
async def test_list_comments_scoped_to_article(async_client: AsyncClient, register):
    """Comments on other articles are not listed."""
    _, alice = await register("alice")
    one = await _setup_article(async_client, alice, "One")
    two = await _setup_article(async_client, alice, "Two")
    await _comment(async_client, alice, one, "on one")

    comments = (await async_client.get(f"/api/articles/{two}/comments")).json()["comments"]
    assert comments == []


@pytest.mark.asyncio
async def test_comment_author_following_is_viewer_relative(async_client: AsyncClient, register):
    """The author's following flag reflects the viewer."""
    _, alice = await register("alice")
    _, bob = await register("bob")
    slug = await _setup_article(async_client, alice)
    await _comment(async_client, alice, slug, "by alice")
    await async_client.post("/api/profiles/alice/follow", headers=bob)

    as_bob = (await async_client.get(f"/api/articles/{slug}/comments", headers=bob)).json()
    assert as_bob["comments"][0]["author"]["following"] is True
    anon = (await async_client.get(f"/api/articles/{slug}/comments")).json()
    assert anon["comments"][0]["author"]["following"] is False


@pytest.mark.asyncio
async def test_get_single_comment(async_client: AsyncClient, register):
    """A comment can be fetched by id."""
    _, alice = await register("alice")
    slug = await _setup_article(async_client, alice)
    created = await _comment(async_client, alice, slug, "just one")

    resp = await async_client.get(f"/api/articles/{slug}/comments/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["comment"]["body"] == "just one"


@pytest.mark.asyncio
async def test_get_comment_under_wrong_article(async_client: AsyncClient, register):
    """A comment id under another article's slug returns 404."""
    _, alice = await register("alice")
    one = await _setup_article(async_client, alice, "One")
    two = await _setup_article(async_client, alice, "Two")
    created = await _comment(async_client, alice, one, "on one")

    resp = await async_client.get(f"/api/articles/{two}/comments/{created['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_list_comments_missing_article(async_client: AsyncClient):
    """Listing comments of an unknown slug returns 404."""
    resp = await async_client.get("/api/articles/missing/comments")
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_own_comment(async_client: AsyncClient, register):
    """The author can delete a comment, after which it is gone."""
    _, alice = await register("alice")
    slug = await _setup_article(async_client, alice)
    created = await _comment(async_client, alice, slug, "regret")

    resp = await async_client.delete(f"/api/articles/{slug}/comments/{created['id']}", headers=alice)
    assert resp.status_code == 204

    comments = (await async_client.get(f"/api/articles/{slug}/comments")).json()["comments"]
    assert comments == []


@pytest.mark.asyncio
async def test_delete_comment_by_non_author_is_forbidden(async_client: AsyncClient, register):
    """Only the comment's author may delete it."""
    _, alice = await register("alice")
    _, mallory = await register("mallory")
    slug = await _setup_article(async_client, alice)
    created = await _comment(async_client, alice, slug, "mine")

    resp = await async_client.delete(f"/api/articles/{slug}/comments/{created['id']}", headers=mallory)
    assert resp.status_code == 403

    comments = (await async_client.get(f"/api/articles/{slug}/comments")).json()["comments"]
    assert len(comments) == 1


@pytest.mark.asyncio
async def test_delete_comment_missing_article(async_client: AsyncClient, register):
    """Deleting under an unknown slug returns 404."""
    _, alice = await register("alice")
    resp = await async_client.delete("/api/articles/missing/comments/1", headers=alice)
    assert resp.status_code == 404
