import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from urlshort.config import Settings
from urlshort.core.codec import generate_short_code
from urlshort.core.exceptions import StorageError
from urlshort.main import create_app
from urlshort.models import Click, Url


def shorten(client, url):
    response = client.post("/s", json={"url": url})
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "version": "test",
        "buildTime": "unknown",
        "commit": "none"
    }


class TestShorten:
    def test_post(self, client):
        data = shorten(client, "https://example.com/some/long/path")

        assert data["original_url"] == "https://example.com/some/long/path"
        assert data["short_url"] == f"http://sho.rt/{data['short_code']}"
        assert data["created_at"]

    def test_post_is_idempotent(self, client):
        first = shorten(client, "https://example.com/x")
        second = shorten(client, "https://example.com/x")

        assert first == second

    def test_get_with_query_parameter(self, client):
        response = client.get("/s", params={"u": "https://example.com/from-query"})

        assert response.status_code == 201
        assert response.json()["original_url"] == "https://example.com/from-query"

    def test_get_and_post_share_records(self, client):
        posted = shorten(client, "https://example.com/both")
        queried = client.get("/s", params={"u": "https://example.com/both"}).json()

        assert queried["short_code"] == posted["short_code"]

    def test_get_missing_parameter(self, client):
        response = client.get("/s")

        assert response.status_code == 400
        assert response.json()["detail"] == "Missing 'u' query parameter"

    def test_invalid_url(self, client):
        for url in ["", "not-a-url", "ftp://example.com", "https://"]:
            response = client.post("/s", json={"url": url})
            assert response.status_code == 400, url

    def test_code_collision_returns_conflict(self, client):
        with Session(client.app.state.store.engine) as db:
            db.add(Url(id=1, short_code=generate_short_code(2), original_url="https://a.example"))
            db.commit()

        response = client.post("/s", json={"url": "https://b.example"})

        assert response.status_code == 409
        assert response.json()["detail"] == "Conflicting request, please retry"

    def test_invalid_body(self, client):
        response = client.post("/s", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid request body"


class TestRedirect:
    def test_redirects_to_original(self, client, click_waiter):
        code = shorten(client, "https://example.com/target")["short_code"]

        response = client.get(f"/{code}", follow_redirects=False)

        assert response.status_code == 301
        assert response.headers["location"] == "https://example.com/target"
        assert "no-cache" in response.headers["cache-control"]
        assert click_waiter.wait(1)

    def test_clicks_are_counted_eventually(self, client, click_waiter):
        code = shorten(client, "https://example.com/counted")["short_code"]

        for _ in range(5):
            client.get(f"/{code}", follow_redirects=False)

        assert click_waiter.wait(5)
        stats = client.get(f"/{code}/stats").json()
        assert stats["total_clicks"] == 5
        assert stats["last_clicked_at"] is not None

    def test_click_metadata_is_recorded(self, client, click_waiter):
        code = shorten(client, "https://example.com/meta")["short_code"]

        client.get(
            f"/{code}",
            follow_redirects=False,
            headers={
                "User-Agent": "pytest-agent",
                "Referer": "https://news.example/",
                "X-Forwarded-For": "203.0.113.9"
            }
        )
        assert click_waiter.wait(1)

        with Session(client.app.state.store.engine) as db:
            click = db.query(Click).one()
        assert click.user_agent == "pytest-agent"
        assert click.referer == "https://news.example/"
        assert click.ip_address == "203.0.113.9"

    def test_tracking_failure_does_not_break_redirect(self, client, click_waiter, monkeypatch):
        code = shorten(client, "https://example.com/fragile")["short_code"]

        def broken(*args, **kwargs):
            raise StorageError("disk full")

        monkeypatch.setattr(client.app.state.store, "track_click", broken)

        response = client.get(f"/{code}", follow_redirects=False)

        assert response.status_code == 301
        assert click_waiter.wait(1)
        assert isinstance(click_waiter.errors[0], StorageError)

    def test_unknown_code(self, client):
        response = client.get("/nonexistent", follow_redirects=False)

        assert response.status_code == 404
        assert response.json()["detail"] == "Short code not found"


class TestStats:
    def test_no_clicks(self, client):
        created = shorten(client, "https://example.com/quiet")

        response = client.get(f"/{created['short_code']}/stats")

        assert response.status_code == 200
        stats = response.json()
        assert stats["short_code"] == created["short_code"]
        assert stats["original_url"] == "https://example.com/quiet"
        assert stats["created_at"] == created["created_at"]
        assert stats["total_clicks"] == 0
        assert stats["last_clicked_at"] is None

    def test_unknown_code(self, client):
        assert client.get("/nonexistent/stats").status_code == 404

    def test_analytics(self, client, click_waiter):
        code = shorten(client, "https://example.com/analytics")["short_code"]
        client.get(f"/{code}", follow_redirects=False, headers={"Referer": "https://ref.example/"})
        client.get(f"/{code}", follow_redirects=False)
        assert click_waiter.wait(2)

        response = client.get(f"/{code}/analytics", params={"period": "24h"})

        assert response.status_code == 200
        data = response.json()
        assert data["period"] == "24h"
        assert data["total_clicks"] == 2
        assert {row["referer"] for row in data["top_referers"]} == {"https://ref.example/", "Direct"}

    def test_analytics_unknown_code(self, client):
        assert client.get("/nonexistent/analytics").status_code == 404


class TestQR:
    def test_png(self, client):
        code = shorten(client, "https://example.com/qr")["short_code"]

        response = client.get(f"/{code}/qr")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/png"
        assert response.headers["cache-control"] == "public, max-age=86400"
        assert response.content.startswith(b"\x89PNG")

    def test_unknown_code(self, client):
        assert client.get("/nonexistent/qr").status_code == 404


def test_startup_fails_when_database_is_unusable(tmp_path):
    settings = Settings(DATABASE_URL=f"sqlite:///{tmp_path / 'missing' / 'dir' / 'db.sqlite'}")

    with pytest.raises(StorageError):
        with TestClient(create_app(settings)):
            pass
