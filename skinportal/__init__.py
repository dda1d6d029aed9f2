import logging

from flask import Flask
from config import Config
from skinportal.errors import PortalError
from skinportal.extensions import db, migrate, cors, socketio, jwt, bcrypt
from skinportal.extensions_firebase import init_firebase
from skinportal.utils.response import error, portal_error

logger = logging.getLogger(__name__)


def _configure_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("skinportal").setLevel(level)


def _register_jwt_callbacks():
    from skinportal.models.token import TokenBlocklist

    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return TokenBlocklist.query.filter_by(jti=jwt_payload["jti"]).first() is not None

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error(reason, 401)

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error(reason, 401)

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return error("Session expired, please sign in again", 401)

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return error("Session has been signed out", 401)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    _configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(app)
    socketio.init_app(app)
    jwt.init_app(app)
    bcrypt.init_app(app)
    _register_jwt_callbacks()

    # Init Firebase Admin (identity tokens + Cloud Storage)
    if not init_firebase(app.config.get("FIREBASE_SERVICE_ACCOUNT"), app.config.get("FIREBASE_STORAGE_BUCKET")):
        logger.warning("Firebase service account not found, Firebase sign-in is unavailable")

    # ==== EXTERNAL COLLABORATORS ====
    from skinportal.services.analysis_gateway import AnalysisGateway
    from skinportal.services.chat_log import ChatLog, build_responder
    from skinportal.services.media_store import build_media_store

    gateway = AnalysisGateway.from_config(app.config)
    app.extensions["analysis_gateway"] = gateway
    app.extensions["media_store"] = build_media_store(app.config)
    app.extensions["chat_log"] = ChatLog(build_responder(app.config, gateway))

    # Register blueprints
    from skinportal.routes.auth_routes import auth_bp
    from skinportal.routes.diagnosis_routes import diagnosis_bp
    from skinportal.routes.chat_routes import chat_bp
    from skinportal.routes.analysis_routes import analysis_bp
    from skinportal.routes.media_routes import media_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(diagnosis_bp)
    app.register_blueprint(chat_bp)
    app.register_blueprint(analysis_bp)
    app.register_blueprint(media_bp)

    app.register_error_handler(PortalError, portal_error)

    @app.errorhandler(413)
    def too_large(e):
        return error("Upload too large (max 16MB)", 413)

    from skinportal import socket_events  # noqa: F401

    with app.app_context():
        from skinportal.models import chat, diagnosis, profile, token  # noqa: F401
        db.create_all()

    @app.route("/")
    def index():
        return "Skin diagnosis portal backend is running!"

    return app
