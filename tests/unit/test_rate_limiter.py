"""Unit tests for the Redis rate limiter middleware."""

from unittest.mock import Mock

import pytest
import redis
from fastapi import FastAPI, HTTPException
from fastapi.testclient import TestClient

from helpers import USER_TOKEN, auth_headers
from redis_rate_limiter import RedisRateLimiter


def build_client(redis_client, ip_limit=100, user_limit=10) -> TestClient:
    app = FastAPI()
    app.add_middleware(
        RedisRateLimiter,
        redis_client=redis_client,
        requests_per_minute_ip=ip_limit,
        requests_per_minute_user=user_limit
    )

    @app.get("/ping")
    async def ping():
        return {"ok": True}

    @app.get("/missing")
    async def missing():
        raise HTTPException(status_code=404)

    return TestClient(app)


def redis_with_window_count(count: int) -> Mock:
    redis_client = Mock()
    redis_client.pipeline.return_value.execute.return_value = [0, count, 1, True]
    redis_client.zcount.return_value = 0
    return redis_client


class TestRateLimits:
    def test_under_limit_is_served(self):
        client = build_client(redis_with_window_count(3))
        response = client.get("/ping")
        assert response.status_code == 200

    def test_ip_limit_returns_429(self):
        client = build_client(redis_with_window_count(100), ip_limit=100)

        response = client.get("/ping")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "60"
        assert "ip" in response.json()["detail"]

    def test_user_limit_applies_to_known_tokens(self):
        client = build_client(redis_with_window_count(10), ip_limit=100, user_limit=10)

        anonymous = client.get("/ping")
        authenticated = client.get("/ping", headers=auth_headers(USER_TOKEN))

        assert anonymous.status_code == 200
        assert authenticated.status_code == 429
        assert "user" in authenticated.json()["detail"]

    def test_unknown_token_only_counts_against_ip(self):
        redis_client = redis_with_window_count(10)
        client = build_client(redis_client, ip_limit=100, user_limit=10)

        response = client.get("/ping", headers=auth_headers("forged-token"))

        assert response.status_code == 200
        assert redis_client.pipeline.call_count == 1

    def test_forwarded_for_header_selects_client_ip(self):
        redis_client = redis_with_window_count(0)
        client = build_client(redis_client)

        client.get("/ping", headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"})

        pipe = redis_client.pipeline.return_value
        assert pipe.zcard.call_args.args[0] == "rate:ip:203.0.113.9"


class TestFailOpen:
    def test_redis_outage_does_not_block_requests(self):
        redis_client = Mock()
        redis_client.pipeline.return_value.execute.side_effect = redis.ConnectionError("down")
        redis_client.zadd.side_effect = redis.ConnectionError("down")
        client = build_client(redis_client)

        assert client.get("/ping").status_code == 200
        assert client.get("/missing").status_code == 404


class TestSuspiciousActivity:
    @pytest.mark.parametrize("path, pattern", [("/missing", "endpoint_scanning")])
    def test_error_responses_are_tracked_per_pattern(self, path, pattern):
        redis_client = redis_with_window_count(0)
        client = build_client(redis_client)

        client.get(path)

        keys = [c.args[0] for c in redis_client.zadd.call_args_list]
        assert f"suspicious:{pattern}:testclient" in keys
        assert "suspicious:abuse:testclient" in keys
        assert "suspicious:credential_stuffing:testclient" not in keys

    def test_success_is_not_tracked(self):
        redis_client = redis_with_window_count(0)
        client = build_client(redis_client)

        client.get("/ping")

        redis_client.zadd.assert_not_called()
