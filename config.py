import os
from datetime import timedelta
from dotenv import load_dotenv

load_dotenv()

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-change-me')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///skinportal.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    JWT_SECRET_KEY = os.environ.get('JWT_SECRET_KEY', SECRET_KEY)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    # Upload
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', os.path.join(BASE_DIR, 'skinportal/static/uploads'))
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16MB per request

    # 'local' (UPLOAD_FOLDER) or 'firebase' (Cloud Storage bucket)
    MEDIA_BACKEND = os.environ.get('MEDIA_BACKEND', 'local')

    # Firebase Admin SDK (Firebase Console -> Service accounts)
    FIREBASE_SERVICE_ACCOUNT = os.environ.get("FIREBASE_SERVICE_ACCOUNT", "serviceAccountKey.json")
    FIREBASE_STORAGE_BUCKET = os.environ.get("FIREBASE_STORAGE_BUCKET")

    # === Analysis gateway (Gemini) ===
    GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
    GEMINI_API_BASE = os.environ.get("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-2.0-flash")
    ANALYSIS_TIMEOUT = float(os.environ.get("ANALYSIS_TIMEOUT", "30"))
    ANALYSIS_INLINE = os.environ.get("ANALYSIS_INLINE", "0") == "1"
    TEMPERATURE = 0.3
    MAX_OUTPUT_TOKENS = 1024

    # === Health assistant ===
    CHAT_RESPONDER = os.environ.get("CHAT_RESPONDER", "rules")  # 'rules' / 'model'

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
