import logging
from typing import Callable, Optional
from datetime import datetime

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, DEV_ACCESS_SECRET, DEV_REFRESH_SECRET
from .errors import register_error_handlers
from models.db_storage import DBStorage
from models.session_store import SessionStore
from models.user import User
from utils.cookies import CookiePolicy
from utils.security import utcnow
from utils.sessions import SessionEngine
from utils.tokens import TokenCodec

logger = logging.getLogger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Session Auth API",
        "version": "1.0.0",
        "description": "Issues, rotates and revokes access/refresh token pairs carried in cookies.",
    },
    "basePath": "/",  # blueprints are mounted under /api/v1
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Access token with the `Bearer ` prefix, if not sent as the accessToken cookie."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def configure_logging(app: Flask) -> None:
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger().setLevel(level)


def check_secrets(app: Flask) -> None:
    access = app.config["JWT_ACCESS_SECRET"]
    refresh = app.config["JWT_REFRESH_SECRET"]
    if access == refresh:
        raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ")
    if access == DEV_ACCESS_SECRET or refresh == DEV_REFRESH_SECRET:
        if app.config.get("PRODUCTION"):
            raise RuntimeError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must be set in production")
        logger.warning("JWT_ACCESS_SECRET / JWT_REFRESH_SECRET not set, using development secrets")


def create_app(config_name: str | None = None, clock: Optional[Callable[[], datetime]] = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    `clock` replaces the UTC clock used for token timestamps and expiry checks.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    configure_logging(app)
    check_secrets(app)

    # Cookies are credentials, so CORS must allow them for the configured origins only
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}}, supports_credentials=True)

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    # Register global error handlers that return the uniform error envelope
    register_error_handlers(app)

    storage = DBStorage(app.config["DATABASE_URL"], echo=app.config.get("DATABASE_ECHO", False))
    storage.reload()

    clock = clock or utcnow
    codec = TokenCodec(
        access_secret=app.config["JWT_ACCESS_SECRET"],
        refresh_secret=app.config["JWT_REFRESH_SECRET"],
        access_ttl=app.config["ACCESS_TOKEN_EXPIRES"],
        refresh_ttl=app.config["REFRESH_TOKEN_EXPIRES"],
        clock=clock,
        leeway=app.config.get("JWT_LEEWAY_SECONDS", 0),
    )
    session_store = SessionStore(storage)
    engine = SessionEngine(
        codec,
        session_store,
        find_principal=lambda principal_id: storage.get(User, principal_id),
        clock=clock,
        revoke_family_on_reuse=app.config.get("REFRESH_REUSE_REVOKES_ALL", False),
    )

    app.extensions["storage"] = storage
    app.extensions["session_store"] = session_store
    app.extensions["session_engine"] = engine
    app.extensions["cookie_policy"] = CookiePolicy.from_config(app.config)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1" + auth_bp.url_prefix)
    app.register_blueprint(users_bp, url_prefix="/api/v1")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Session Auth API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
