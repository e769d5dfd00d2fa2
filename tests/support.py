import mongomock
from cloudinary.exceptions import Error as CloudinaryError

from auth import COOKIE_NAME
from config import Settings
from database import Database
from main import create_app
from uploads import MB, ImageStore

TEST_SETTINGS = Settings(
    jwt_secret="test-secret",
    firebase_project_id="curavet-test",
    environment="test",
)

JPEG = b"\xff\xd8\xff\xe0" + b"0" * 1024


class FakeUploader:
    """Stands in for cloudinary.uploader and records what it was asked to do."""

    def __init__(self):
        self.uploads = []
        self.destroyed = []
        self.fail_upload = False
        self.fail_destroy = False

    def upload(self, file, **options):
        if self.fail_upload:
            raise CloudinaryError("upstream exploded")
        file.read()
        self.uploads.append(options)
        n = len(self.uploads)
        public_id = f"{options['folder']}/img{n}"
        return {
            "secure_url": f"https://res.cloudinary.com/demo/image/upload/{public_id}.jpg",
            "public_id": public_id,
            "width": 800,
            "height": 600,
        }

    def destroy(self, public_id):
        self.destroyed.append(public_id)
        if self.fail_destroy:
            raise CloudinaryError("Resource not found")
        return {"result": "ok"}


def make_database() -> Database:
    return Database(mongomock.MongoClient(), "curavet_test")


def make_app(database=None):
    database = database or make_database()
    uploader = FakeUploader()
    app = create_app(TEST_SETTINGS, database=database, images=ImageStore(TEST_SETTINGS, uploader=uploader))
    return app, database, uploader


def login_as_admin(client, app) -> None:
    client.cookies.set(COOKIE_NAME, app.state.tokens.issue_session_token())


def big_file(mb: int) -> bytes:
    return b"0" * (mb * MB)
