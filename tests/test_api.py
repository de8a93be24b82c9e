import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwk, jwt

from tempolink import auth as clerk_auth
from tempolink.models import Instrument, Language, User
from tempolink.seed import seed_instruments, seed_languages
from tempolink.services.bio_generator import BioGenerationError
from tempolink.services.clerk_service import ClerkAPIError

from .factories import make_instrument, make_language, make_student, make_teacher, make_user


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").status_code == 200


def test_timezone_description(client):
    response = client.get("/timezones/America/New_York")
    assert response.status_code == 200
    body = response.json()
    assert body["displayName"] == "Eastern Time"
    assert body["formatted"].startswith("Eastern Time (GMT-")
    assert client.get("/timezones/Not/AZone").status_code == 404


def test_catalog_is_public(client, db):
    make_instrument(db, "Violin")
    make_instrument(db, "Cello")
    make_language(db)
    assert [i["name"] for i in client.get("/instruments").json()] == ["Cello", "Violin"]
    assert client.get("/languages").json()[0]["code"] == "en"


class TestAccount:
    def test_requires_token(self, client):
        assert client.get("/users/me").status_code == 401

    def test_sync_creates_user_once(self, client, auth, db):
        auth.login("clerk_new", email="New@Example.com", first_name="Nia")
        first = client.post("/users/sync").json()
        second = client.post("/users/sync").json()

        assert first["existing"] is False
        assert second == {"userId": first["userId"], "existing": True}
        user = db.query(User).filter(User.clerk_id == "clerk_new").one()
        assert user.email == "new@example.com"

    def test_role_comes_from_token_metadata(self, client, auth):
        auth.login("clerk_meta", public_metadata={"role": "parent"})
        assert client.get("/users/me").json()["role"] == "PARENT"

    def test_role_required_for_app_routes(self, client, auth):
        auth.login("clerk_new")
        response = client.get("/lessons")
        assert response.status_code == 403
        assert response.json()["detail"] == "User role not set"

    def test_set_role(self, client, auth, db):
        auth.login("clerk_new")
        with patch(
            "tempolink.domain.users.service.clerk_service.update_public_metadata", new=AsyncMock()
        ) as update:
            response = client.put("/users/me/role", json={"role": "teacher"})
        assert response.status_code == 200
        assert response.json()["role"] == "TEACHER"
        update.assert_awaited_once()
        assert update.await_args.args[1] == {"role": "TEACHER"}

    def test_invalid_role(self, client, auth):
        auth.login("clerk_new")
        assert client.put("/users/me/role", json={"role": "ADMIN"}).status_code == 422

    def test_timezone_preference(self, client, auth):
        auth.login("clerk_new")
        assert client.put("/users/me/preferences/timezone", json={"timezone": "Mars/Base"}).status_code == 400
        response = client.put("/users/me/preferences/timezone", json={"timezone": "Europe/Paris"})
        assert response.json()["preferredTimezone"] == "Europe/Paris"

    def test_teacher_only_routes(self, client, auth, db):
        make_user(db, "clerk_student", "STUDENT")
        auth.login("clerk_student")
        response = client.get("/timeslots/me")
        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied"

    def test_deleted_account_is_forbidden(self, client, auth, db):
        user = make_user(db, "clerk_gone", "STUDENT")
        user.is_deleted = True
        db.commit()
        auth.login("clerk_gone")
        response = client.get("/users/me")
        assert response.status_code == 403
        assert response.json()["detail"] == "Account has been deleted"

    def test_update_name(self, client, auth, db):
        make_user(db, "clerk_student", "STUDENT")
        auth.login("clerk_student")
        with patch("tempolink.domain.users.service.clerk_service.update_user_name", new=AsyncMock()) as update:
            response = client.put("/users/me/name", json={"firstName": " Samuel ", "lastName": "Stone"})
        assert response.status_code == 200
        assert (response.json()["firstName"], response.json()["lastName"]) == ("Samuel", "Stone")
        update.assert_awaited_once_with("clerk_student", "Samuel", "Stone")

    def test_update_name_clerk_failure(self, client, auth, db):
        user = make_user(db, "clerk_student", "STUDENT", first_name="Sam")
        auth.login("clerk_student")
        with patch(
            "tempolink.domain.users.service.clerk_service.update_user_name",
            new=AsyncMock(side_effect=ClerkAPIError("down")),
        ):
            response = client.put("/users/me/name", json={"firstName": "Samuel"})
        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to update name in authentication system"
        db.refresh(user)
        assert user.first_name == "Sam"

    def test_delete_account(self, client, auth, db):
        user = make_user(db, "clerk_student", "STUDENT")
        auth.login("clerk_student")
        with patch("tempolink.domain.users.service.clerk_service.delete_user", new=AsyncMock()) as delete_user:
            response = client.delete("/users/me")
        assert response.json() == {"success": True}
        delete_user.assert_awaited_once_with("clerk_student")
        db.refresh(user)
        assert user.is_deleted is True
        assert client.get("/users/me").status_code == 403

    def test_delete_account_clerk_failure(self, client, auth, db):
        user = make_user(db, "clerk_student", "STUDENT")
        auth.login("clerk_student")
        with patch(
            "tempolink.domain.users.service.clerk_service.delete_user",
            new=AsyncMock(side_effect=ClerkAPIError("down")),
        ):
            response = client.delete("/users/me")
        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to delete account in authentication system"
        db.refresh(user)
        assert user.is_deleted is True

    def test_set_onboarded(self, client, auth, db):
        make_user(db, "clerk_parent", "PARENT")
        auth.login("clerk_parent")
        with patch(
            "tempolink.domain.users.service.clerk_service.update_public_metadata", new=AsyncMock()
        ) as update:
            response = client.put("/users/me/onboarded", json={"onboarded": True})
        assert response.json() == {"success": True, "onboarded": True}
        update.assert_awaited_once_with("clerk_parent", {"onboarded": True})

    def test_preferences_teacher_section(self, client, auth, db):
        make_teacher(db, clerk_id="clerk_teacher", teaching_format="ONLINE_ONLY")
        make_user(db, "clerk_student", "STUDENT", timezone="Europe/Paris")

        auth.login("clerk_teacher")
        teacher_prefs = client.get("/users/me/preferences").json()
        assert teacher_prefs["user"] == {"preferredTimezone": "America/New_York"}
        assert teacher_prefs["teacher"] == {
            "acceptingStudents": True,
            "teachingFormat": "ONLINE_ONLY",
            "agePreference": "ALL_AGES",
        }

        auth.login("clerk_student")
        student_prefs = client.get("/users/me/preferences").json()
        assert student_prefs == {"user": {"preferredTimezone": "Europe/Paris"}, "addresses": []}

    def test_children(self, client, auth, db):
        parent = make_user(db, "clerk_parent", "PARENT")
        first = make_student(db, parent=parent, first_name="Kid")
        second = make_student(db, parent=parent, first_name="Kiddo")
        student_user = make_user(db, "clerk_student", "STUDENT")
        own = make_student(db, user=student_user)

        auth.login("clerk_parent")
        assert {c["id"] for c in client.get("/users/me/children").json()} == {first.id, second.id}

        auth.login("clerk_student")
        [child] = client.get("/users/me/children").json()
        assert child["id"] == own.id
        assert child["userId"] == student_user.id


# ============================================================================
# Clerk session tokens
# ============================================================================

ISSUER = "https://clerk.tempo-link.xyz"


@pytest.fixture(scope="module")
def signing_key():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = "key-1"
    return private_pem, {"keys": [public_jwk]}


def sign(private_pem, kid="key-1", **overrides):
    now = int(time.time())
    claims = {"sub": "clerk_user", "iss": ISSUER, "iat": now, "exp": now + 300, **overrides}
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})


@pytest.fixture
def clerk_config():
    with patch.object(clerk_auth, "CLERK_ISSUER", ISSUER), patch.object(
        clerk_auth, "AUTHORIZED_PARTIES", ["https://tempo-link.xyz"]
    ):
        yield


class TestClerkJwks:
    @pytest.mark.asyncio
    async def test_fetched_once_then_cached(self, signing_key):
        _, jwks = signing_key
        response = MagicMock()
        response.status_code = 200
        response.json.return_value = jwks
        http = MagicMock()
        http.get = AsyncMock(return_value=response)
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = http
        factory.return_value.__aexit__.return_value = False

        with patch.object(clerk_auth, "_cached_jwks", None), patch.object(
            clerk_auth, "CLERK_JWKS_URL", f"{ISSUER}/.well-known/jwks.json"
        ), patch.object(clerk_auth.httpx, "AsyncClient", factory):
            assert await clerk_auth.get_clerk_jwks() == jwks
            assert await clerk_auth.get_clerk_jwks() == jwks
            assert http.get.await_count == 1

            await clerk_auth.get_clerk_jwks(force_refresh=True)
            assert http.get.await_count == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_returns_none(self):
        response = MagicMock()
        response.status_code = 503
        http = MagicMock()
        http.get = AsyncMock(return_value=response)
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = http
        factory.return_value.__aexit__.return_value = False

        with patch.object(clerk_auth, "_cached_jwks", None), patch.object(
            clerk_auth, "CLERK_JWKS_URL", f"{ISSUER}/.well-known/jwks.json"
        ), patch.object(clerk_auth.httpx, "AsyncClient", factory):
            assert await clerk_auth.get_clerk_jwks() is None


class TestVerifyClerkToken:
    @pytest.mark.asyncio
    async def test_valid_token(self, signing_key, clerk_config):
        private_pem, jwks = signing_key
        with patch.object(clerk_auth, "get_clerk_jwks", new=AsyncMock(return_value=jwks)):
            claims = await clerk_auth.verify_clerk_token(sign(private_pem, azp="https://tempo-link.xyz"))
        assert claims["sub"] == "clerk_user"

    @pytest.mark.asyncio
    async def test_unknown_kid_refreshes_keys(self, signing_key, clerk_config):
        private_pem, jwks = signing_key
        stale = {"keys": [{**jwks["keys"][0], "kid": "old-key"}]}
        with patch.object(clerk_auth, "get_clerk_jwks", new=AsyncMock(side_effect=[stale, jwks])) as fetch:
            claims = await clerk_auth.verify_clerk_token(sign(private_pem, azp="https://tempo-link.xyz"))
        assert claims["sub"] == "clerk_user"
        assert fetch.await_args_list[1].kwargs == {"force_refresh": True}

    @pytest.mark.asyncio
    async def test_no_matching_key(self, signing_key, clerk_config):
        private_pem, jwks = signing_key
        with patch.object(clerk_auth, "get_clerk_jwks", new=AsyncMock(return_value=jwks)):
            with pytest.raises(HTTPException) as exc:
                await clerk_auth.verify_clerk_token(sign(private_pem, kid="rotated-away"))
        assert exc.value.status_code == 401
        assert exc.value.detail == "Invalid token signature"

    @pytest.mark.asyncio
    async def test_issuer_mismatch(self, signing_key, clerk_config):
        private_pem, jwks = signing_key
        token = sign(private_pem, iss="https://clerk.example.com", azp="https://tempo-link.xyz")
        with patch.object(clerk_auth, "get_clerk_jwks", new=AsyncMock(return_value=jwks)):
            with pytest.raises(HTTPException) as exc:
                await clerk_auth.verify_clerk_token(token)
        assert exc.value.status_code == 401
        assert exc.value.detail == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_expired_token(self, signing_key, clerk_config):
        private_pem, jwks = signing_key
        token = sign(private_pem, exp=int(time.time()) - 60, azp="https://tempo-link.xyz")
        with patch.object(clerk_auth, "get_clerk_jwks", new=AsyncMock(return_value=jwks)):
            with pytest.raises(HTTPException) as exc:
                await clerk_auth.verify_clerk_token(token)
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unauthorized_party(self, signing_key, clerk_config):
        private_pem, jwks = signing_key
        with patch.object(clerk_auth, "get_clerk_jwks", new=AsyncMock(return_value=jwks)):
            with pytest.raises(HTTPException) as exc:
                await clerk_auth.verify_clerk_token(sign(private_pem, azp="https://evil.example.com"))
        assert exc.value.status_code == 401
        assert exc.value.detail == "Token not issued for this application"

    @pytest.mark.asyncio
    async def test_unreadable_header(self):
        with pytest.raises(HTTPException) as exc:
            await clerk_auth.verify_clerk_token("not.a.jwt")
        assert exc.value.detail == "Invalid token format"


class TestTokenClaims:
    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(HTTPException) as exc:
            await clerk_auth.get_token_claims(None)
        assert exc.value.status_code == 401

    @pytest.mark.asyncio
    async def test_malformed_token(self):
        with pytest.raises(HTTPException) as exc:
            await clerk_auth.get_token_claims(HTTPAuthorizationCredentials(scheme="Bearer", credentials="opaque"))
        assert exc.value.detail == "Invalid token format. Expected a valid JWT token."

    @pytest.mark.asyncio
    async def test_missing_subject(self, signing_key, clerk_config):
        private_pem, jwks = signing_key
        token = sign(private_pem, sub="", azp="https://tempo-link.xyz")
        with patch.object(clerk_auth, "get_clerk_jwks", new=AsyncMock(return_value=jwks)):
            with pytest.raises(HTTPException) as exc:
                await clerk_auth.get_token_claims(HTTPAuthorizationCredentials(scheme="Bearer", credentials=token))
        assert exc.value.detail == "Invalid token claims"


def test_booking_flow(client, auth, db):
    piano = make_instrument(db, "Piano")
    make_teacher(db, clerk_id="clerk_teacher", instruments=[piano])
    student_user = make_user(db, "clerk_student", "STUDENT", first_name="Sam", last_name="Student")
    make_student(db, user=student_user)

    auth.login("clerk_teacher")
    slot = client.post("/timeslots", json={"dayOfWeek": 3, "startTime": "17:00", "endTime": "17:30"}).json()
    assert slot["startTime"] == "17:00:00"

    auth.login("clerk_student")
    teacher_id = slot["teacherId"]
    available = client.get(f"/teachers/{teacher_id}/timeslots", params={"format": "ONLINE_ONLY"}).json()
    assert [s["id"] for s in available] == [slot["id"]]

    created = client.post(
        "/bookings",
        json={"timeslotId": slot["id"], "instrument": "Piano", "lessonFormat": "ONLINE", "proficiency": "BEGINNER"},
    )
    assert created.status_code == 200
    request_id = created.json()["bookingRequestId"]

    auth.login("clerk_teacher")
    accepted = client.post(f"/bookings/{request_id}/accept")
    assert accepted.status_code == 200
    lesson_id = accepted.json()["lessonId"]

    assert client.get(f"/teachers/{teacher_id}/timeslots").json() == []
    status = client.get(f"/calendar/lessons/{lesson_id}/event").json()
    assert status["exists"] is True
    assert status["event"]["rrule"] == "RRULE:FREQ=WEEKLY;BYDAY=WE"

    auth.login("clerk_student")
    lessons = client.get("/lessons").json()["lessons"]
    assert [lesson["id"] for lesson in lessons] == [lesson_id]
    events = client.get("/calendar/events").json()["events"]
    assert len(events) >= 52
    assert all(e["parentEventId"] == status["event"]["id"] for e in events)

    response = client.post(f"/lessons/{lesson_id}/notes", json={"noteTitle": "t", "notes": "n"})
    assert response.status_code == 403

    auth.login("clerk_teacher")
    note = client.post(f"/lessons/{lesson_id}/notes", json={"noteTitle": "Scales", "notes": "C major"}).json()
    fetched = client.get(f"/lessons/{lesson_id}/notes/{note['id']}")
    assert fetched.status_code == 200
    assert (fetched.json()["noteTitle"], fetched.json()["notes"]) == ("Scales", "C major")
    assert client.get(f"/lessons/{lesson_id}/notes/missing").status_code == 404


def test_booking_body_validation(client, auth, db):
    make_user(db, "clerk_student", "STUDENT")
    auth.login("clerk_student")
    response = client.post("/bookings", json={"timeslotId": "x", "instrument": "Piano", "lessonFormat": "BY_MAIL"})
    assert response.status_code == 422


def test_teacher_profile_and_search(client, auth, db):
    piano = make_instrument(db, "Piano")
    english = make_language(db)
    make_user(db, "clerk_teacher", "TEACHER", timezone="America/New_York")

    auth.login("clerk_teacher")
    saved = client.post(
        "/teachers/me/profile",
        json={
            "firstName": "Clara",
            "lastName": "Schumann",
            "teachingFormat": "ONLINE_ONLY",
            "instrumentIds": [piano.id],
            "languageIds": [english.id],
        },
    )
    assert saved.json() == {"success": True, "profileName": "clara-schumann"}
    client.put("/teachers/me/preferences", json={"acceptingStudents": True})
    client.post("/teachers/me/social-links", json={"externalUrl": "https://example.com/clara"})

    auth.logout()
    profile = client.get("/teachers/profile/clara-schumann").json()
    assert profile["socialLinks"][0]["externalUrl"] == "https://example.com/clara"
    assert client.get("/teachers/profile/nobody").status_code == 404

    results = client.get(
        "/teachers/search",
        params={
            "teachingType": "online",
            "instrumentId": piano.id,
            "timezone": "America/New_York",
            "maxTimeDifference": 0,
        },
    ).json()
    assert [r["profileName"] for r in results] == ["clara-schumann"]

    missing = client.get("/teachers/search", params={"teachingType": "in-person", "instrumentId": piano.id})
    assert missing.status_code == 400


def test_invites_endpoint(client, auth, db):
    make_teacher(db, clerk_id="clerk_teacher")
    auth.login("clerk_teacher")
    pool = MagicMock()
    pool.enqueue_job = AsyncMock()
    with patch("tempolink.domain.invites.service.create_pool", new=AsyncMock(return_value=pool)):
        created = client.post("/invites", json={"email": "kid@example.com", "fullName": "Kid", "role": "PARENT"})
    assert created.json()["userExists"] is False

    [invite] = client.get("/invites").json()
    assert invite["email"] == "kid@example.com"
    assert invite["emailSent"] is False


class TestBio:
    def test_generate(self, client, auth, db):
        make_teacher(db, clerk_id="clerk_teacher")
        auth.login("clerk_teacher")
        with patch("tempolink.routes.bio.generate_biography", new=AsyncMock(return_value="Ada teaches piano.")):
            response = client.post("/generate-bio", json={"credentials": "BM Juilliard", "teacherName": "Ada"})
        assert response.json() == {"biography": "Ada teaches piano."}

    def test_requires_credentials(self, client, auth, db):
        make_teacher(db, clerk_id="clerk_teacher")
        auth.login("clerk_teacher")
        response = client.post("/generate-bio", json={"credentials": " ", "teacherName": "Ada"})
        assert response.status_code == 400

    def test_provider_failure(self, client, auth, db):
        make_teacher(db, clerk_id="clerk_teacher")
        auth.login("clerk_teacher")
        with patch(
            "tempolink.routes.bio.generate_biography", new=AsyncMock(side_effect=BioGenerationError("quota"))
        ):
            response = client.post("/generate-bio", json={"credentials": "BM", "teacherName": "Ada"})
        assert response.status_code == 502


class TestUpload:
    def test_unknown_target(self, client, auth, db):
        make_user(db, "clerk_student", "STUDENT")
        auth.login("clerk_student")
        response = client.post("/upload/image/elsewhere", files={"file": ("me.png", b"x" * 2048, "image/png")})
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid upload target"

    def test_rejects_non_images(self, client, auth, db):
        make_user(db, "clerk_student", "STUDENT")
        auth.login("clerk_student")
        response = client.post("/upload/image/account", files={"file": ("me.txt", b"x" * 2048, "text/plain")})
        assert response.status_code == 400

    def test_upload_account_image(self, client, auth, db):
        make_user(db, "clerk_student", "STUDENT")
        auth.login("clerk_student")
        r2 = MagicMock()
        with patch("tempolink.routes.upload.get_r2_client", return_value=r2), patch(
            "tempolink.routes.upload.R2_PUBLIC_URL", "https://cdn.example.com"
        ):
            response = client.post("/upload/image/account", files={"file": ("me.png", b"x" * 2048, "image/png")})

        assert response.status_code == 200
        body = response.json()
        assert body["key"].startswith("profile-images/")
        assert body["url"] == f"https://cdn.example.com/{body['key']}"
        r2.put_object.assert_called_once()
        assert client.get("/users/me").json()["imageUrl"] == body["url"]

    def test_parent_cannot_upload_for_unrelated_student(self, client, auth, db):
        other_parent = make_user(db, "clerk_other", "PARENT")
        child = make_student(db, parent=other_parent)
        make_user(db, "clerk_parent", "PARENT")
        auth.login("clerk_parent")
        response = client.post(
            f"/upload/image/student/{child.id}", files={"file": ("me.png", b"x" * 2048, "image/png")}
        )
        assert response.status_code == 403


def test_seed_is_idempotent(db):
    assert seed_instruments(db) == 16
    assert seed_languages(db) == 11
    assert seed_instruments(db) == 0
    assert seed_languages(db) == 0
    assert db.query(Instrument).filter(Instrument.name == "Bassoon").one().image_path == (
        "/images/instruments/bassoon.png"
    )
    assert db.query(Language).count() == 11
