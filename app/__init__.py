import threading

from flask import Flask, current_app
from supabase import create_client

from config.settings import Settings, load_settings

from .admin.routes import admin_bp
from .auth.routes import auth_bp
from .errors import register_error_handlers
from .guards import current_user
from .main.routes import main_bp
from .sessions import ServerSideSessionInterface, SessionStore


def create_app(settings: Settings | None = None):
    settings = settings or load_settings()

    app = Flask(
        __name__,
        template_folder="../templates",
    )
    app.secret_key = settings.secret_key
    app.config["SETTINGS"] = settings
    app.config["LOCAL_TIMEZONE"] = settings.local_timezone
    app.config["SESSION_COOKIE_NAME"] = settings.session_cookie_name
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.logger.setLevel(settings.log_level)

    supabase = create_client(
        settings.supabase_url,
        settings.supabase_service_key,
    )
    app.config["SUPABASE"] = supabase
    app.config["SUPABASE_URL"] = settings.supabase_url
    app.config["STORE_SLOTS"] = threading.BoundedSemaphore(settings.store_pool_size)

    session_store = SessionStore()
    app.config["SESSION_STORE"] = session_store
    app.session_interface = ServerSideSessionInterface(session_store)

    app.register_blueprint(auth_bp)
    app.register_blueprint(main_bp)
    app.register_blueprint(admin_bp)
    register_error_handlers(app)

    @app.context_processor
    def inject_user_context():
        user = current_user() or {}
        return {
            "username": user.get("username"),
            "user_role": user.get("role"),
            "user_id": user.get("id"),
        }

    return app


def get_session_store() -> SessionStore:
    return current_app.config["SESSION_STORE"]
