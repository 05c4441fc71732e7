from flask import Blueprint

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    return {"ok": True, "service": "fbms"}


# Plain-text liveness for the gunicorn container; never touches the database.
@bp.get("/healthz")
def healthz():
    return "ok", 200
