import logging

from flask import Flask, g, request
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException

from app.fbms.config import load_config
from app.fbms.db import init_db, teardown_db_session
from app.fbms.errors import AppError
from app.fbms.routes import bp as routes_bp
from app.fbms.auth import bp as auth_bp, load_current_user
from app.fbms.modules.users.routes import bp as users_bp
from app.fbms.modules.departments.routes import bp as departments_bp
from app.fbms.modules.questions.routes import bp as questions_bp
from app.fbms.modules.feedback.routes import bp as feedback_bp


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.json.sort_keys = False
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        import os
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(departments_bp, url_prefix="/api/departments")
    app.register_blueprint(questions_bp, url_prefix="/api/questions")
    app.register_blueprint(feedback_bp, url_prefix="/api/feedback")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(AppError)
    def _err_app(e: AppError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.error("AppError %s (request_id=%s): %s", e.code, getattr(g, "request_id", None), e.message)
        else:
            app.logger.info(
                "%s %s -> %s %s (request_id=%s)",
                request.method,
                request.path,
                e.status_code,
                e.code,
                getattr(g, "request_id", None),
            )
        return e.to_dict(), e.status_code

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return {"message": e.description, "code": (e.name or "error").lower().replace(" ", "_")}, e.code or 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in logs.
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid, exc_info=getattr(e, "original_exception", e))
        return {"message": "Internal server error", "code": "internal_error", "requestId": rid}, 500

    logging.getLogger(__name__).info("create_app() complete; app ready to serve")

    return app
