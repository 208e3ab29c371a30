import logging
import os

import click
from flask import Blueprint, Flask, jsonify, request, send_from_directory
from flask_bcrypt import Bcrypt
from flask_jwt_extended import (JWTManager, create_access_token, set_access_cookies,
                                unset_jwt_cookies)
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError
from werkzeug.exceptions import HTTPException

from config import Config
from credentials import CredentialStore
from errors import Internal, PlantKeeperError, Unauthorized, ValidationError
from guard import current_session_token, login_required, services
from ledger import EventLedger
from logging_setup import setup_logging
from models import db, to_iso
from plants import PlantRegistry
from sessions import SessionManager

BASE_DIR = os.path.abspath(os.path.dirname(__file__))
FRONTEND_FOLDER = os.path.join(BASE_DIR, 'frontend')

log = logging.getLogger(__name__)

jwt = JWTManager()
api = Blueprint("api", __name__)


class Services:
    """Per-app wiring of the data access layer around one database session."""

    def __init__(self, session, bcrypt, session_ttl):
        self.credentials = CredentialStore(session, bcrypt)
        self.sessions = SessionManager(session, session_ttl)
        self.plants = PlantRegistry(session)
        self.ledger = EventLedger(session, self.plants)


def create_app(overrides=None):
    app = Flask(__name__, static_folder=FRONTEND_FOLDER)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    setup_logging(app.config["LOG_LEVEL"], app.config["LOG_FILE"])

    db.init_app(app)
    # One Bcrypt per app: it keeps BCRYPT_LOG_ROUNDS on the instance.
    bcrypt = Bcrypt(app)
    jwt.init_app(app)
    app.extensions["plantkeeper"] = Services(db.session, bcrypt, app.config["SESSION_TTL"])

    app.register_blueprint(api, url_prefix="/api")
    register_error_handlers(app)
    register_commands(app)
    register_frontend(app)

    with app.app_context():
        db.create_all()
    log.info("WEB_STARTUP")
    return app


# --- Errors ---------------------------------------------------------

def _unauthorized_response(*_):
    return jsonify(Unauthorized().to_dict()), Unauthorized.status_code


jwt.unauthorized_loader(_unauthorized_response)
jwt.invalid_token_loader(_unauthorized_response)
jwt.expired_token_loader(_unauthorized_response)


def register_error_handlers(app):
    @app.errorhandler(PlantKeeperError)
    def handle_plantkeeper_error(err):
        db.session.rollback()
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(Exception)
    def handle_unexpected(err):
        if isinstance(err, HTTPException):
            return err
        db.session.rollback()
        log.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify(Internal().to_dict()), Internal.status_code


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("expected a JSON object")
    return data


# --- Auth Endpoints -------------------------------------------------

def _start_session(user_id, status=200):
    token = services().sessions.create(user_id)
    access_token = create_access_token(identity=token)
    response = jsonify(ok=True, token=access_token)
    set_access_cookies(response, access_token)
    return response, status


@api.route("/register", methods=["POST"])
def register():
    data = _json_body()
    user_id = services().credentials.register(data.get("email"), data.get("password"))
    return _start_session(user_id, 201)


@api.route("/login", methods=["POST"])
def login():
    data = _json_body()
    email, password = data.get("email"), data.get("password")
    if not email or not password:
        raise ValidationError("email and password required")
    user_id = services().credentials.verify(email, password)
    log.info("User %s logged in", user_id)
    return _start_session(user_id)


@api.route("/logout", methods=["POST"])
def logout():
    try:
        token = current_session_token(optional=True)
    except (JWTExtendedException, PyJWTError):
        # Nothing valid to revoke; the cookie is still cleared below.
        token = None
    services().sessions.revoke(token)
    response = jsonify(ok=True)
    unset_jwt_cookies(response)
    return response


@api.route("/me", methods=["GET"])
@login_required
def who_am_i(identity):
    return jsonify(identity.to_dict())


@api.route("/health", methods=["GET"])
def health():
    return jsonify(status="ok")


# --- Plant API ------------------------------------------------------

@api.route("/plants", methods=["GET"])
@login_required
def list_plants(identity):
    return jsonify([p.to_dict() for p in services().plants.list(identity.id)])


@api.route("/plants", methods=["POST"])
@login_required
def create_plant(identity):
    plant = services().plants.create(identity.id, _json_body())
    return jsonify(id=plant.id), 201


@api.route("/plants/<int:plant_id>", methods=["PUT"])
@login_required
def update_plant(plant_id, identity):
    services().plants.update(plant_id, identity.id, _json_body())
    return jsonify(ok=True)


@api.route("/plants/<int:plant_id>", methods=["DELETE"])
@login_required
def delete_plant(plant_id, identity):
    services().plants.delete(plant_id, identity.id)
    return jsonify(ok=True)


# --- Care events ----------------------------------------------------

def _log_event(plant_id, identity, kind):
    date = _json_body().get("date")
    event = services().ledger.append(plant_id, identity.id, kind, date)
    return jsonify(ok=True, at=to_iso(event.at))


@api.route("/water/<int:plant_id>", methods=["POST"])
@login_required
def water(plant_id, identity):
    return _log_event(plant_id, identity, "watered")


@api.route("/repot/<int:plant_id>", methods=["POST"])
@login_required
def repot(plant_id, identity):
    return _log_event(plant_id, identity, "repotted")


@api.route("/history/<int:plant_id>", methods=["GET"])
@login_required
def history(plant_id, identity):
    events = services().ledger.history(plant_id, identity.id)
    return jsonify([e.to_dict() for e in events])


# --- CLI ------------------------------------------------------------

def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        db.create_all()
        click.echo("Database tables created (if they didn't exist).")

    @app.cli.command("purge-sessions")
    def purge_sessions():
        count = services().sessions.purge_expired()
        click.echo(f"Removed {count} expired sessions.")

    @app.cli.command("rebuild-care-cache")
    @click.option("--plant-id", type=int, default=None)
    def rebuild_care_cache(plant_id):
        count = services().ledger.rebuild(plant_id)
        click.echo(f"Rebuilt last-care fields for {count} plants.")


# --- Frontend Serving Routes ----------------------------------------

def register_frontend(app):
    @app.route('/', defaults={'path': ''})
    @app.route('/<path:path>')
    def serve_frontend(path):
        if path.startswith('api/'):
            return jsonify(error="not found"), 404
        if path != "" and os.path.exists(os.path.join(app.static_folder, path)):
            return send_from_directory(app.static_folder, path)
        if os.path.exists(os.path.join(app.static_folder, 'index.html')):
            return send_from_directory(app.static_folder, 'index.html')
        return jsonify(message="Plant Keeper backend running", api_base="/api")


# -------------------------------------------------------------------

if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "8000")),
            debug=os.getenv("FLASK_DEBUG", "False").lower() == "true")
