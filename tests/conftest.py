from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from config import Settings
from hosted_repo import HostedRepo
from identity import Caller
from local_repo import LocalRepo
from main import create_app
from tests.fake_supabase import FakeSupabase

TODAY = date(2024, 3, 15)

ALICE = Caller(id=111, username="alice", first_name="Alice")
BOB = Caller(id=222, username="bob", first_name="Bob")


def tg_headers(caller: Caller) -> dict[str, str]:
    return {"X-Telegram-User": json.dumps({"id": caller.id, "username": caller.username})}


@pytest.fixture
def local_repo(tmp_path: Path):
    repo = LocalRepo(str(tmp_path / "data.sqlite"), today=lambda: TODAY)
    yield repo
    repo.close()


@pytest.fixture
def fake_client() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def hosted_repo(fake_client: FakeSupabase) -> HostedRepo:
    return HostedRepo(fake_client, today=lambda: TODAY)


@pytest.fixture
def dist_dir(tmp_path: Path) -> Path:
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_text("<div id=root></div>")
    (dist / "assets" / "app.js").write_text("console.log('hi')")
    return dist


@pytest.fixture
def local_client(local_repo: LocalRepo, dist_dir: Path) -> TestClient:
    settings = Settings(env="development", frontend_dist=str(dist_dir))
    return TestClient(create_app(settings, repo=local_repo))


@pytest.fixture
def hosted_client(hosted_repo: HostedRepo, dist_dir: Path) -> TestClient:
    settings = Settings(env="production", frontend_dist=str(dist_dir))
    return TestClient(create_app(settings, repo=hosted_repo))
