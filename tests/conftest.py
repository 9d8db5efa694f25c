import pathlib
import sys
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
import jwt

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from event_requests.main import create_app
from event_requests.notification_service import NotificationService
from event_requests.permissions import Actor, AuthLevel
from event_requests.repositories.resources import (
    BracketRecord,
    EventRecord,
    SectionRecord,
    UserRecord,
)
from event_requests.request_service import RequestService
from event_requests.store import store

JWT_SECRET = "jwt_test_secret"

USERS = {
    "creator": ("u_creator", "Casey Creator", AuthLevel.CREATOR),
    "member": ("u_member", "Morgan Member", AuthLevel.CREATOR),
    "dancer": ("u_dancer", "Dana Dancer", AuthLevel.BASE_USER),
    "other": ("u_other", "Olly Other", AuthLevel.BASE_USER),
    "promoter": ("u_promoter", "Pat Promoter", AuthLevel.CREATOR),
    "moderator": ("u_moderator", "Mo Moderator", AuthLevel.MODERATOR),
    "admin": ("u_admin", "Ada Admin", AuthLevel.ADMIN),
    "super": ("u_super", "Sam Super", AuthLevel.SUPER_ADMIN),
}


def _issue_token(*, secret: str, user_id: str, auth_level: int, account_verified: bool) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "auth_level": int(auth_level),
        "account_verified": account_verified,
        "exp": int((now + timedelta(minutes=30)).timestamp()),
        "iat": int(now.timestamp()),
        "iss": "test-issuer",
        "aud": "test-audience",
    }
    return jwt.encode(payload, secret, algorithm="HS256")


class AuthenticatedClient:
    def __init__(
        self,
        client: TestClient,
        *,
        jwt_secret: str,
        user_id: str = "u_dancer",
        auth_level: int = AuthLevel.BASE_USER,
        account_verified: bool = True,
    ):
        self._client = client
        self._jwt_secret = jwt_secret
        self._user_id = user_id
        self._auth_level = auth_level
        self._account_verified = account_verified

    def as_user(
        self,
        user_id: str,
        *,
        auth_level: int = AuthLevel.BASE_USER,
        account_verified: bool = True,
    ) -> "AuthenticatedClient":
        return AuthenticatedClient(
            self._client,
            jwt_secret=self._jwt_secret,
            user_id=user_id,
            auth_level=auth_level,
            account_verified=account_verified,
        )

    def as_actor(self, actor: Actor) -> "AuthenticatedClient":
        return self.as_user(actor.id, auth_level=actor.auth_level, account_verified=actor.account_verified)

    def request(self, method: str, url: str, **kwargs):
        headers = dict(kwargs.pop("headers", {}) or {})
        if url.startswith("/api/v1/") and "Authorization" not in headers:
            token = _issue_token(
                secret=self._jwt_secret,
                user_id=self._user_id,
                auth_level=self._auth_level,
                account_verified=self._account_verified,
            )
            headers["Authorization"] = f"Bearer {token}"
        return self._client.request(method, url, headers=headers, **kwargs)

    def __getattr__(self, name: str):
        return getattr(self._client, name)

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs):
        return self.request("PUT", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)


@pytest.fixture(autouse=True)
def reset_store(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("JWT_SHARED_SECRET", JWT_SECRET)
    monkeypatch.setenv("JWT_ISSUER", "test-issuer")
    monkeypatch.setenv("JWT_AUDIENCE", "test-audience")
    monkeypatch.setenv("JWT_REQUIRED_CLAIMS", "sub,exp")
    store.reset()
    yield


@pytest.fixture
def actors() -> dict[str, Actor]:
    """Seed users, one event with a section, bracket and videos; return actors by nickname."""
    graph = store.resources
    out: dict[str, Actor] = {}
    for nickname, (user_id, display_name, level) in USERS.items():
        graph.upsert_user(
            UserRecord(user_id=user_id, display_name=display_name, auth_level=level, account_verified=True)
        )
        out[nickname] = Actor(id=user_id, auth_level=level, account_verified=True)
    graph.create_event(
        EventRecord(event_id="evt_1", title="Summer Jam", creator_id="u_creator", team_member_ids=("u_member",))
    )
    graph.add_section(SectionRecord(section_id="sec_1", event_id="evt_1", title="Top 8"))
    graph.add_bracket(BracketRecord(bracket_id="brk_1", section_id="sec_1", title="Quarter finals"))
    graph.add_video(video_id="vid_1", title="Battle 1", bracket_id="brk_1")
    graph.add_video(video_id="vid_2", title="Showcase", section_id="sec_1")
    graph.create_event(EventRecord(event_id="evt_2", title="Winter Battle", creator_id="u_promoter"))
    return out


@pytest.fixture
def notification_service() -> NotificationService:
    return NotificationService(store)


@pytest.fixture
def request_service(notification_service: NotificationService) -> RequestService:
    return RequestService(store, notification_service)


@pytest.fixture
def client() -> AuthenticatedClient:
    app = create_app()
    base = TestClient(app)
    return AuthenticatedClient(base, jwt_secret=JWT_SECRET)
