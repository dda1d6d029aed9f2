import io
import logging
import os
import time
import uuid
from urllib.parse import unquote, urlparse

from firebase_admin import storage
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from skinportal.errors import NotFound, StorageError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXT = {"png", "jpg", "jpeg", "webp"}
LOCAL_URL_PREFIX = "/media/"


# =========================
# HELPERS
# =========================
def allowed_file(filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_IMAGE_EXT


def sniff_image(data: bytes) -> str:
    """Return the MIME type of an uploaded image, rejecting anything Pillow cannot read."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            fmt = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError("File is not a valid image") from e
    return Image.MIME.get(fmt, "image/jpeg")


def object_name(owner_id, filename: str) -> str:
    """<owner>/<millis>_<token>_<name>; unique per upload even for identical filenames."""
    safe = secure_filename(filename or "") or "image"
    return f"{owner_id}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{safe}"


# =========================
# BACKENDS
# =========================
class LocalMediaStore:
    """Images under UPLOAD_FOLDER, served back through GET /media/<name>."""

    def __init__(self, upload_folder: str):
        self.upload_folder = upload_folder

    def put(self, data: bytes, content_type: str, owner_id, filename: str) -> str:
        name = object_name(owner_id, filename)
        path = os.path.join(self.upload_folder, name)
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.exception("Saving %s failed", name)
            raise StorageError("Image upload failed, please try again") from e
        return LOCAL_URL_PREFIX + name

    def path_for(self, url: str) -> str:
        name = unquote(urlparse(url).path)
        if not name.startswith(LOCAL_URL_PREFIX):
            raise NotFound("Image not found")
        name = name[len(LOCAL_URL_PREFIX):]
        root = os.path.abspath(self.upload_folder)
        path = os.path.abspath(os.path.join(root, name))
        if not path.startswith(root + os.sep):
            raise NotFound("Image not found")
        return path

    def get(self, url: str) -> bytes:
        path = self.path_for(url)
        if not os.path.isfile(path):
            raise NotFound("Image not found")
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            logger.exception("Reading %s failed", path)
            raise StorageError("Could not read the image") from e


class FirebaseMediaStore:
    """Images in the Firebase Cloud Storage bucket, referenced by public URL."""

    def __init__(self, bucket):
        self.bucket = bucket

    def put(self, data: bytes, content_type: str, owner_id, filename: str) -> str:
        blob = self.bucket.blob(f"diagnosis-images/{object_name(owner_id, filename)}")
        try:
            blob.upload_from_string(data, content_type=content_type)
            blob.make_public()
        except Exception as e:
            logger.exception("Uploading %s to Cloud Storage failed", blob.name)
            raise StorageError("Image upload failed, please try again") from e
        return blob.public_url

    def _blob_name(self, url: str) -> str:
        path = unquote(urlparse(url).path).lstrip("/")
        prefix = f"{self.bucket.name}/"
        if not path.startswith(prefix):
            raise NotFound("Image not found")
        return path[len(prefix):]

    def get(self, url: str) -> bytes:
        blob = self.bucket.blob(self._blob_name(url))
        try:
            found = blob.exists()
            data = blob.download_as_bytes() if found else None
        except Exception as e:
            logger.exception("Reading %s from Cloud Storage failed", blob.name)
            raise StorageError("Could not read the image") from e
        if not found:
            raise NotFound("Image not found")
        return data


def build_media_store(config):
    if config.get("MEDIA_BACKEND") == "firebase":
        return FirebaseMediaStore(storage.bucket(config.get("FIREBASE_STORAGE_BUCKET")))
    return LocalMediaStore(config["UPLOAD_FOLDER"])
