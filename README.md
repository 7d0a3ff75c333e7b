# tubely

tubely is a small HTTP API for sharing video metadata. It keeps users, refresh
tokens and video records in a SQLite database. It stores uploaded thumbnails on
local disk and serves them back. It also has helpers that use `ffprobe` and
`ffmpeg` to sort videos by aspect ratio and to prepare them for fast-start
streaming.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

The helpers in `tubely.video` call the `ffprobe` and `ffmpeg` programs. They
must be on your `PATH` if you use those helpers.

## Configuration

`tubely.app.load_config` reads the settings from a mapping of environment
variables and returns a `Config`. Every variable below is required. If one is
missing or empty, it raises `ValueError`.

| Variable        | `Config` field       | Used for                                          |
|-----------------|----------------------|---------------------------------------------------|
| `DB_PATH`       | `db_path`            | Path to the SQLite database file                  |
| `JWT_SECRET`    | `jwt_secret`         | Read and kept; the server does not use it itself  |
| `PLATFORM`      | `platform`           | `dev` enables `/admin/reset`                      |
| `FILEPATH_ROOT` | `filepath_root`      | Directory of static files served under `/app/`    |
| `ASSETS_ROOT`   | `assets_root`        | Directory for uploaded assets, served at `/assets/` |
| `S3_BUCKET`     | `s3_bucket`          | Read and kept; not used by the server             |
| `S3_REGION`     | `s3_region`          | Read and kept; not used by the server             |
| `S3_CF_DISTRO`  | `s3_cf_distribution` | Read and kept; not used by the server             |
| `PORT`          | `port`               | Port to listen on, and used in asset URLs         |

Example `.env`:

```
DB_PATH=./tubely.db
JWT_SECRET=secret
PLATFORM=dev
FILEPATH_ROOT=./app
ASSETS_ROOT=./assets
S3_BUCKET=tubely-example
S3_REGION=us-east-1
S3_CF_DISTRO=example
PORT=8091
```

## Running

```
tubely
```

The command first loads a `.env` file from the working directory, if there is
one, and then reads the environment. It exits with status 1 if a setting is
missing, if the database cannot be opened, or if the assets directory cannot be
created. Otherwise it creates the assets directory if needed and serves on all
interfaces at the configured port. The front end is at
`http://localhost:<PORT>/app/`. The command takes no options other than `--help`.

## Endpoints

| Method | Path                              | Auth | Purpose                                              |
|--------|-----------------------------------|------|------------------------------------------------------|
| GET    | `/app/...`                        | no   | Static files from `FILEPATH_ROOT`; a directory serves its `index.html` |
| GET    | `/assets/...`                     | no   | Uploaded assets, sent with `Cache-Control: no-store` |
| POST   | `/api/videos`                     | yes  | Create a video record from JSON `title` and `description`; answers 201 |
| GET    | `/api/videos`                     | yes  | List the caller's videos, newest first               |
| GET    | `/api/videos/{videoID}`           | no   | Fetch one video                                      |
| DELETE | `/api/videos/{videoID}`           | yes  | Delete a video the caller owns; answers 204          |
| POST   | `/api/thumbnail_upload/{videoID}` | yes  | Upload a JPEG or PNG thumbnail in form field `thumbnail` |
| POST   | `/admin/reset`                    | no   | Empty every table; only when `PLATFORM` is `dev`, else 403 |

A thumbnail is saved under `ASSETS_ROOT` with a random name and the extension
of its media type. The video's `thumbnail_url` is then set to
`http://localhost:<PORT>/assets/<name>`. Only the owner of a video may set its
thumbnail.

Authenticated requests carry the access token in a header:

```
Authorization: Bearer token
```

Errors come back as JSON in the form `{"error": "<message>"}`. A missing token
gives `401 Couldn't find JWT`. A token that is rejected gives
`401 Couldn't validate JWT`.

## What the server does not do

- The `tubely` command does not verify access tokens. A request to an endpoint
  that needs authentication fails with 401. Without a token the message is
  `Couldn't find JWT`; with one it is `Couldn't validate JWT`. To accept callers,
  build the application yourself with `create_app` and pass a function that
  checks tokens.
- There are no endpoints to sign up, log in, refresh or revoke tokens. Users and
  refresh tokens can only be managed through `tubely.database.Client`.
- There is no endpoint to upload video files, and nothing is sent to a storage
  bucket. The bucket settings are only read into `Config`. The `tubely.video`
  helpers are available as a library, but the server does not call them.

## Library use

- `tubely.database.Client(path)` opens a SQLite file and creates any missing
  tables. It works as a context manager that closes the connection on exit.
  - Methods cover users (`create_user`, `get_user`, `get_user_by_email`,
    `get_user_by_refresh_token`, `get_users`, `delete_user`), refresh tokens
    (`create_refresh_token`, `get_refresh_token`, `revoke_refresh_token`,
    `delete_refresh_token`) and videos (`create_video`, `get_video`,
    `get_videos`, `update_video`, `delete_video`), plus `reset`.
  - Lookups return `None` when nothing matches.
  - `create_user` raises `sqlite3.IntegrityError` if the e-mail address is
    already taken.
  - Records are the dataclasses `User`, `Video` and `RefreshToken`. Each has a
    `to_dict()` method, and their timestamps are UTC.
- `tubely.assets`:
  - `get_asset_path(media_type)` makes a random URL-safe file name carrying the
    extension from `media_type_to_ext`. That function gives `.bin` unless the
    type has the form `type/subtype`.
  - `is_image` accepts `image/jpeg` and `image/png`.
  - `get_asset_disk_path`, `get_asset_url` and `ensure_assets_dir` complete the
    module.
- `tubely.video`:
  - `get_video_aspect_ratio(path)` runs `ffprobe` and returns `"16:9"`, `"9:16"`
    or `"other"`. `aspect_ratio_from_probe` classifies ffprobe JSON output that
    you already have.
  - `process_video_for_fast_start(path)` runs `ffmpeg` and writes
    `<path>.processing`, then returns that path.
  - Failures raise `VideoProcessingError`.
- `tubely.app`:
  - `load_config(environ)` builds a `Config`.
  - `create_app(config, db, authenticate)` returns the Flask application. Its
    `authenticate` argument receives the request headers and returns the
    caller's user id as a `uuid.UUID`. It should raise `LookupError` when there
    is no token, and any other exception when the token is not valid.
  - `respond_with_json` and `respond_with_error` build the JSON responses the
    endpoints use.

Example:

```python
import uuid
from tubely.app import create_app, load_config
from tubely.database import Client

config = load_config({...})
db = Client(config.db_path)
owner = db.create_user("user@example.com", "password")

def authenticate(headers):
    if headers.get("Authorization") != "Bearer token":
        raise LookupError("no token")
    return owner.id

app = create_app(config, db, authenticate)
```