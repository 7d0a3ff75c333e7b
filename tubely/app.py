"""HTTP server for video metadata, thumbnails and static assets."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sqlite3
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from flask import Flask, Response, request, send_from_directory

from tubely.assets import (
    ensure_assets_dir,
    get_asset_disk_path,
    get_asset_path,
    get_asset_url,
    is_image,
)
from tubely.database import Client

log = logging.getLogger(__name__)

Authenticator = Callable[[Mapping[str, str]], uuid.UUID]

_REQUIRED_ENV = (
    ("db_path", "DB_PATH", "DB_URL must be set"),
    ("jwt_secret", "JWT_SECRET", "JWT_SECRET environment variable is not set"),
    ("platform", "PLATFORM", "PLATFORM environment variable is not set"),
    ("filepath_root", "FILEPATH_ROOT", "FILEPATH_ROOT environment variable is not set"),
    ("assets_root", "ASSETS_ROOT", "ASSETS_ROOT environment variable is not set"),
    ("s3_bucket", "S3_BUCKET", "S3_BUCKET environment variable is not set"),
    ("s3_region", "S3_REGION", "S3_REGION environment variable is not set"),
    ("s3_cf_distribution", "S3_CF_DISTRO", "S3_CF_DISTRO environment variable is not set"),
    ("port", "PORT", "PORT environment variable is not set"),
)


@dataclass(frozen=True)
class Config:
    """Settings the server runs with."""

    db_path: str
    jwt_secret: str
    platform: str
    filepath_root: str
    assets_root: str
    s3_bucket: str
    s3_region: str
    s3_cf_distribution: str
    port: str


def load_config(environ: Mapping[str, str]) -> Config:
    """Build a Config from environment variables; raise ValueError if one is missing."""
    values: dict[str, str] = {}
    for attr, name, message in _REQUIRED_ENV:
        value = environ.get(name, "")
        if not value:
            raise ValueError(message)
        values[attr] = value
    return Config(**values)


def _encode(obj: Any) -> Any:
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def respond_with_json(code: int, payload: Any) -> Response:
    """Serialise payload as JSON; answer 500 with an empty body if that fails."""
    try:
        body = json.dumps(payload, default=_encode, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        log.error("Error marshalling JSON: %s", exc)
        return Response(b"", status=500, mimetype="application/json")
    return Response(body, status=code, mimetype="application/json")


def respond_with_error(code: int, msg: str, err: BaseException | None = None) -> Response:
    """Log the cause and answer with ``{"error": msg}``."""
    if err is not None:
        log.error("%s", err)
    if code > 499:
        log.error("Responding with 5XX error: %s", msg)
    return respond_with_json(code, {"error": msg})


class _ApiError(Exception):
    def __init__(self, code: int, msg: str, err: BaseException | None = None) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg
        self.err = err


def _parse_id(value: str, message: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError as exc:
        raise _ApiError(400, message, exc) from exc


def _decode_object() -> dict[str, Any]:
    try:
        data = json.loads(request.get_data())
    except (ValueError, UnicodeDecodeError) as exc:
        raise _ApiError(500, "Couldn't decode parameters", exc) from exc
    if not isinstance(data, dict):
        raise _ApiError(500, "Couldn't decode parameters", ValueError("expected a JSON object"))
    return data


def _string_field(params: Mapping[str, Any], name: str) -> str:
    value = params.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _ApiError(500, "Couldn't decode parameters", TypeError(f"{name} must be a string"))
    return value


def create_app(config: Config, db: Client, authenticate: Authenticator) -> Flask:
    """Build the application.

    ``authenticate`` receives the request headers and returns the caller's user id.
    It raises LookupError when no token is present and any other exception when the
    token is not valid.
    """
    app = Flask(__name__)
    app_root = os.path.abspath(config.filepath_root)
    assets_root = os.path.abspath(config.assets_root)

    def current_user() -> uuid.UUID:
        try:
            return authenticate(request.headers)
        except LookupError as exc:
            raise _ApiError(401, "Couldn't find JWT", exc) from exc
        except Exception as exc:
            raise _ApiError(401, "Couldn't validate JWT", exc) from exc

    @app.errorhandler(_ApiError)
    def handle_api_error(error: _ApiError) -> Response:
        return respond_with_error(error.code, error.msg, error.err)

    @app.after_request
    def no_cache_assets(response: Response) -> Response:
        if request.path.startswith("/assets/"):
            response.headers["Cache-Control"] = "no-store"
        return response

    @app.route("/app/", defaults={"filename": ""})
    @app.route("/app/<path:filename>")
    def serve_app(filename: str) -> Response:
        if os.path.isdir(os.path.join(app_root, filename)):
            filename = os.path.join(filename, "index.html")
        return send_from_directory(app_root, filename)

    @app.route("/assets/<path:filename>")
    def serve_asset(filename: str) -> Response:
        return send_from_directory(assets_root, filename)

    @app.post("/api/videos")
    def video_meta_create() -> Response:
        user_id = current_user()
        params = _decode_object()
        title = _string_field(params, "title")
        description = _string_field(params, "description")
        try:
            video = db.create_video(title, description, user_id)
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't create video", exc) from exc
        return respond_with_json(201, video)

    @app.post("/api/thumbnail_upload/<video_id>")
    def upload_thumbnail(video_id: str) -> Response:
        parsed_id = _parse_id(video_id, "Invalid ID")
        user_id = current_user()
        log.info("uploading thumbnail for video %s by user %s", parsed_id, user_id)

        upload = request.files.get("thumbnail")
        if upload is None:
            raise _ApiError(400, "Unable to parse formfile code")
        if not upload.content_type:
            raise _ApiError(400, "Invalid Content-Type")
        media_type = upload.mimetype
        if not is_image(media_type):
            raise _ApiError(400, "Invalid file type")

        asset_path = get_asset_path(media_type)
        disk_path = get_asset_disk_path(assets_root, asset_path)
        try:
            upload.save(disk_path)
        except OSError as exc:
            raise _ApiError(500, "Error saving file", exc) from exc

        try:
            video = db.get_video(parsed_id)
        except sqlite3.Error as exc:
            raise _ApiError(404, "Video does not exist", exc) from exc
        if video is None:
            raise _ApiError(404, "Video does not exist")
        if video.user_id != user_id:
            raise _ApiError(401, "Invalid operation")

        video.thumbnail_url = get_asset_url(config.port, asset_path)
        try:
            db.update_video(video)
        except sqlite3.Error as exc:
            raise _ApiError(500, "Could not update video", exc) from exc
        return respond_with_json(200, video)

    @app.get("/api/videos")
    def videos_retrieve() -> Response:
        user_id = current_user()
        try:
            videos = db.get_videos(user_id)
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't retrieve videos", exc) from exc
        return respond_with_json(200, videos)

    @app.get("/api/videos/<video_id>")
    def video_get(video_id: str) -> Response:
        parsed_id = _parse_id(video_id, "Invalid video ID")
        try:
            video = db.get_video(parsed_id)
        except sqlite3.Error as exc:
            raise _ApiError(404, "Couldn't get video", exc) from exc
        if video is None:
            raise _ApiError(404, "Couldn't get video")
        return respond_with_json(200, video)

    @app.delete("/api/videos/<video_id>")
    def video_meta_delete(video_id: str) -> Response:
        parsed_id = _parse_id(video_id, "Invalid ID")
        user_id = current_user()
        try:
            video = db.get_video(parsed_id)
        except sqlite3.Error as exc:
            raise _ApiError(404, "Couldn't get video", exc) from exc
        if video is None:
            raise _ApiError(404, "Couldn't get video")
        if video.user_id != user_id:
            raise _ApiError(403, "You can't delete this video")
        try:
            db.delete_video(parsed_id)
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't delete video", exc) from exc
        return Response(status=204)

    @app.post("/admin/reset")
    def reset() -> Response:
        if config.platform != "dev":
            return Response(
                "Reset is only allowed in dev environment.",
                status=403,
                mimetype="text/plain",
            )
        try:
            db.reset()
        except sqlite3.Error as exc:
            raise _ApiError(500, "Couldn't reset database", exc) from exc
        return Response("Database reset to initial state", status=200, mimetype="text/plain")

    return app


def _reject_unverifiable_tokens(headers: Mapping[str, str]) -> uuid.UUID:
    """Tell a missing bearer token from one that cannot be verified here."""
    value = headers.get("Authorization", "")
    scheme, _, credential = value.strip().partition(" ")
    if scheme != "Bearer" or not credential.strip():
        raise LookupError("no bearer token in the Authorization header")
    raise PermissionError("no access token validator is configured")


def main(argv: list[str] | None = None) -> None:
    """Read settings from the environment and a .env file and serve."""
    from dotenv import load_dotenv

    argparse.ArgumentParser(description="Serve the video sharing API.").parse_args(argv)
    logging.basicConfig(level=logging.INFO)
    load_dotenv(".env")

    try:
        config = load_config(os.environ)
    except ValueError as exc:
        log.error("%s", exc)
        raise SystemExit(1) from exc

    try:
        db = Client(config.db_path)
    except sqlite3.Error as exc:
        log.error("Couldn't connect to database: %s", exc)
        raise SystemExit(1) from exc

    try:
        ensure_assets_dir(config.assets_root)
    except OSError as exc:
        log.error("Couldn't create assets directory: %s", exc)
        raise SystemExit(1) from exc

    app = create_app(config, db, _reject_unverifiable_tokens)
    log.info("Serving on: http://localhost:%s/app/", config.port)
    with db:
        app.run(host="0.0.0.0", port=int(config.port))