import logging

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from config import load_config
from errors import PlanError, PlanValidationError
from mailer import PlanMailer
from orchestrator import PlanOrchestrator
from plan_generator import PlanGenerator
from plan_models import PlanForm
from plan_store import build_store
from subscriber import ListSubscriber

logger = logging.getLogger(__name__)

plans = Blueprint("plans", __name__)


def _orchestrator() -> PlanOrchestrator:
    return current_app.extensions["plan_orchestrator"]


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise PlanValidationError("Request body must be a JSON object")
    return data


@plans.route("/health")
def health():
    return jsonify(status="ok")


@plans.route("/plan", methods=["POST"])
def create_plan():
    """Validate the form and create a new plan request."""
    form = PlanForm.from_json(_json_body())
    return jsonify(_orchestrator().initialize(form))


@plans.route("/plan", methods=["PUT"])
def advance_plan():
    """Generate the next week of an existing plan."""
    data = _json_body()
    request_id = data.get("requestId")
    week_number = data.get("weekNumber")
    if not isinstance(request_id, str) or not request_id.strip():
        raise PlanValidationError("No requestId provided")
    if isinstance(week_number, bool) or not isinstance(week_number, int):
        if isinstance(week_number, str) and week_number.strip().isdecimal():
            week_number = int(week_number)
        else:
            raise PlanValidationError("weekNumber must be an integer", {"weekNumber": week_number})
    return jsonify(_orchestrator().advance_week(request_id.strip(), week_number))


@plans.route("/plan", methods=["GET"])
def plan_status():
    request_id = (request.args.get("requestId") or "").strip()
    if not request_id:
        raise PlanValidationError("No requestId provided")
    return jsonify(_orchestrator().get_status(request_id))


@plans.route("/subscribe", methods=["POST"])
def subscribe():
    email = (_json_body().get("email") or "").strip()
    if not email:
        raise PlanValidationError("Email is required")
    current_app.extensions["list_subscriber"].subscribe(email)
    return jsonify(success=True, message="Successfully subscribed")


def handle_plan_error(error: PlanError):
    return jsonify(error.to_dict()), error.status_code


def handle_unexpected_error(error: Exception):
    if isinstance(error, HTTPException):
        return jsonify(success=False, error=error.description), error.code
    # Keep responses JSON; never leak internals to the client
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify(success=False, error="Internal server error"), 500


def create_app(config=None, store=None, generator=None, mailer=None, subscriber=None, clock=None):
    """Build the Flask app. Collaborators are created once here and injected."""
    app = Flask(__name__)
    app.config.update(load_config())
    if config:
        app.config.update(config)
    # Week maps are keyed "1".."N"; keep them in plan order, not text order
    app.json.sort_keys = False

    store = store if store is not None else build_store(app.config["REDIS_URL"])
    generator = generator if generator is not None else PlanGenerator.from_config(app.config)
    mailer = mailer if mailer is not None else PlanMailer.from_config(app.config)

    orchestrator_kwargs = {}
    if clock is not None:
        orchestrator_kwargs["clock"] = clock
    app.extensions["plan_orchestrator"] = PlanOrchestrator(
        store,
        generator,
        mailer,
        ttl_seconds=app.config["PLAN_TTL_SECONDS"],
        lock_timeout=app.config["ADVANCE_LOCK_TIMEOUT_SECONDS"],
        **orchestrator_kwargs,
    )
    app.extensions["list_subscriber"] = (
        subscriber if subscriber is not None else ListSubscriber.from_config(app.config)
    )

    app.register_blueprint(plans)
    app.register_error_handler(PlanError, handle_plan_error)
    app.register_error_handler(Exception, handle_unexpected_error)
    return app
