import io
import json
import uuid

import pytest

from tubely.app import Config, create_app, load_config, respond_with_error, respond_with_json
from tubely.database import Client

USER_A = uuid.uuid4()
USER_B = uuid.uuid4()
TOKENS = {"token": USER_A, "placeholder": USER_B}
AUTH_A = {"Authorization": "Bearer token"}
AUTH_B = {"Authorization": "Bearer placeholder"}


def fake_authenticate(headers):
    value = headers.get("Authorization")
    if value is None:
        raise LookupError("no authorization header")
    credential = value.partition(" ")[2]
    if credential not in TOKENS:
        raise ValueError("bad token")
    return TOKENS[credential]


def make_config(tmp_path, platform="dev"):
    app_dir = tmp_path / "app"
    assets_dir = tmp_path / "assets"
    app_dir.mkdir(exist_ok=True)
    assets_dir.mkdir(exist_ok=True)
    return Config(
        db_path=str(tmp_path / "db.sqlite"),
        jwt_secret="secret",
        platform=platform,
        filepath_root=str(app_dir),
        assets_root=str(assets_dir),
        s3_bucket="bucket",
        s3_region="us-east-2",
        s3_cf_distribution="distro",
        port="8091",
    )


@pytest.fixture
def db(tmp_path):
    client = Client(str(tmp_path / "db.sqlite"))
    yield client
    client.close()


@pytest.fixture
def config(tmp_path):
    return make_config(tmp_path)


@pytest.fixture
def client(config, db):
    app = create_app(config, db, fake_authenticate)
    return app.test_client()


def full_env():
    return {
        "DB_PATH": "db.sqlite",
        "JWT_SECRET": "secret",
        "PLATFORM": "dev",
        "FILEPATH_ROOT": "app",
        "ASSETS_ROOT": "assets",
        "S3_BUCKET": "bucket",
        "S3_REGION": "us-east-2",
        "S3_CF_DISTRO": "distro",
        "PORT": "8091",
    }


def test_load_config_reads_all_values():
    cfg = load_config(full_env())
    assert cfg.db_path == "db.sqlite"
    assert cfg.assets_root == "assets"
    assert cfg.port == "8091"
    assert cfg.s3_cf_distribution == "distro"


def test_load_config_missing_port():
    env = full_env()
    del env["PORT"]
    with pytest.raises(ValueError, match="PORT environment variable is not set"):
        load_config(env)


def test_load_config_missing_db_path():
    env = full_env()
    env["DB_PATH"] = ""
    with pytest.raises(ValueError, match="DB_URL must be set"):
        load_config(env)


def test_respond_with_json_round_trip():
    response = respond_with_json(201, {"a": [1, 2]})
    assert response.status_code == 201
    assert response.mimetype == "application/json"
    assert json.loads(response.get_data()) == {"a": [1, 2]}


def test_respond_with_json_unserialisable_gives_500():
    response = respond_with_json(200, object())
    assert response.status_code == 500
    assert response.get_data() == b""


def test_respond_with_error_body():
    response = respond_with_error(404, "Couldn't get video", None)
    assert response.status_code == 404
    assert json.loads(response.get_data()) == {"error": "Couldn't get video"}


def test_create_video(client, db):
    response = client.post("/api/videos", json={"title": "Boots", "description": "cat"}, headers=AUTH_A)
    assert response.status_code == 201
    body = response.get_json()
    assert body["title"] == "Boots"
    assert body["description"] == "cat"
    assert body["user_id"] == str(USER_A)
    stored = db.get_video(uuid.UUID(body["id"]))
    assert stored.title == "Boots"


def test_create_video_without_token(client):
    response = client.post("/api/videos", json={"title": "x"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Couldn't find JWT"}


def test_create_video_with_invalid_token(client):
    response = client.post("/api/videos", json={"title": "x"}, headers={"Authorization": "Bearer secret"})
    assert response.status_code == 401
    assert response.get_json() == {"error": "Couldn't validate JWT"}


def test_create_video_bad_body(client):
    response = client.post("/api/videos", data=b"not json", headers=AUTH_A)
    assert response.status_code == 500
    assert response.get_json() == {"error": "Couldn't decode parameters"}


def test_get_video_invalid_id(client):
    response = client.get("/api/videos/nope")
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid video ID"}


def test_get_video_missing(client):
    response = client.get(f"/api/videos/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Couldn't get video"}


def test_get_video_found(client, db):
    video = db.create_video("Title", "Desc", USER_A)
    response = client.get(f"/api/videos/{video.id}")
    assert response.status_code == 200
    assert response.get_json()["id"] == str(video.id)


def test_list_videos_only_own(client, db):
    mine = {db.create_video("a", "", USER_A).id, db.create_video("b", "", USER_A).id}
    db.create_video("c", "", USER_B)
    response = client.get("/api/videos", headers=AUTH_A)
    assert response.status_code == 200
    assert {uuid.UUID(v["id"]) for v in response.get_json()} == mine


def test_delete_by_other_user_forbidden(client, db):
    video = db.create_video("a", "", USER_A)
    response = client.delete(f"/api/videos/{video.id}", headers=AUTH_B)
    assert response.status_code == 403
    assert response.get_json() == {"error": "You can't delete this video"}
    assert db.get_video(video.id) is not None and db.get_video(video.id).title == "a"


def test_delete_by_owner(client, db):
    video = db.create_video("a", "", USER_A)
    response = client.delete(f"/api/videos/{video.id}", headers=AUTH_A)
    assert response.status_code == 204
    assert db.get_video(video.id) is None


def test_upload_thumbnail(client, db, config, tmp_path):
    video = db.create_video("a", "", USER_A)
    payload = b"\x89PNG\r\n\x1a\nimage-bytes"
    response = client.post(
        f"/api/thumbnail_upload/{video.id}",
        data={"thumbnail": (io.BytesIO(payload), "thumb.png", "image/png")},
        headers=AUTH_A,
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    url = response.get_json()["thumbnail_url"]
    assert url.startswith("http://localhost:" + config.port + "/assets/")
    assert url.endswith(".png")
    name = url.rsplit("/", 1)[1]
    assert (tmp_path / "assets" / name).read_bytes() == payload
    assert db.get_video(video.id).thumbnail_url == url

    served = client.get(f"/assets/{name}")
    assert served.status_code == 200
    assert served.get_data() == payload
    assert served.headers["Cache-Control"] == "no-store"


def test_upload_thumbnail_wrong_type(client, db):
    video = db.create_video("a", "", USER_A)
    response = client.post(
        f"/api/thumbnail_upload/{video.id}",
        data={"thumbnail": (io.BytesIO(b"data"), "doc.pdf", "application/pdf")},
        headers=AUTH_A,
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid file type"}


def test_upload_thumbnail_missing_file(client, db):
    video = db.create_video("a", "", USER_A)
    response = client.post(
        f"/api/thumbnail_upload/{video.id}",
        data={},
        headers=AUTH_A,
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert response.get_json() == {"error": "Unable to parse formfile code"}


def test_upload_thumbnail_unknown_video(client):
    response = client.post(
        f"/api/thumbnail_upload/{uuid.uuid4()}",
        data={"thumbnail": (io.BytesIO(b"jpg"), "t.jpg", "image/jpeg")},
        headers=AUTH_A,
        content_type="multipart/form-data",
    )
    assert response.status_code == 404
    assert response.get_json() == {"error": "Video does not exist"}


def test_upload_thumbnail_invalid_id(client):
    response = client.post("/api/thumbnail_upload/bad-id", headers=AUTH_A)
    assert response.status_code == 400
    assert response.get_json() == {"error": "Invalid ID"}


def test_reset_forbidden_outside_dev(tmp_path, db):
    app = create_app(make_config(tmp_path, platform="prod"), db, fake_authenticate)
    db.create_video("a", "", USER_A)
    response = app.test_client().post("/admin/reset")
    assert response.status_code == 403
    assert response.get_data(as_text=True) == "Reset is only allowed in dev environment."
    assert len(db.get_videos(USER_A)) == 1


def test_reset_in_dev(client, db):
    db.create_video("a", "", USER_A)
    response = client.post("/admin/reset")
    assert response.status_code == 200
    assert response.get_data(as_text=True) == "Database reset to initial state"
    assert db.get_videos(USER_A) == []


def test_app_serves_index(client, tmp_path):
    (tmp_path / "app" / "index.html").write_text("<h1>Tubely</h1>")
    response = client.get("/app/")
    assert response.status_code == 200
    assert response.get_data(as_text=True) == "<h1>Tubely</h1>"


def test_missing_asset_still_no_store(client):
    response = client.get("/assets/missing.png")
    assert response.status_code == 404
    assert response.headers["Cache-Control"] == "no-store"