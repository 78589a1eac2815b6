"""
Web application module for the live match tracker.

This module contains the Flask server exposing the live match command surface
as JSON endpoints. Every command endpoint answers with
``{"success": bool, ...}``; failures carry a human-readable ``error``.
"""
import logging
import uuid
from typing import Optional, Tuple

from flask import Flask, Response, jsonify, request

from ..models import BenchEntry, MatchRecord, Participant, ParticipantKind
from ..services import CommandResult, NotFoundError, ServiceFactory, StoreError
from ..utils import APP_TITLE, DEFAULT_HOST, DEFAULT_PORT, LiveMatchConfig, configure_logging

logger = logging.getLogger(__name__)

STATUS_BY_ERROR_KIND = {
    "validation": 400,
    "not_found": 404,
    "backend": 503,
}


class WebAppState:
    """State holder for the web application, built from an explicit configuration."""

    def __init__(self, config: Optional[LiveMatchConfig] = None, factory: Optional[ServiceFactory] = None):
        self.config = config or LiveMatchConfig()
        self.factory = factory or ServiceFactory(self.config)

    @property
    def store(self):
        return self.factory.store


def _result_response(result: CommandResult) -> Tuple[Response, int]:
    if result.success:
        return jsonify(result.to_dict()), 200
    return jsonify(result.to_dict()), STATUS_BY_ERROR_KIND.get(result.error_kind, 400)


def _json_body() -> dict:
    """Request body as a dict; empty or non-JSON bodies become ``{}``."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(
    config: Optional[LiveMatchConfig] = None,
    factory: Optional[ServiceFactory] = None,
) -> Flask:
    """
    Create and configure the Flask application with API endpoints.

    Args:
        config: Runtime configuration (defaults to ``LiveMatchConfig()``)
        factory: Pre-built service factory, mainly for tests

    Returns:
        Configured Flask application instance
    """
    app = Flask(__name__)
    app_state = WebAppState(config, factory)
    app.extensions["matchlive"] = app_state

    def _session(match_id: str):
        return app_state.factory.get_session(match_id)

    @app.errorhandler(NotFoundError)
    def handle_not_found(exc):
        return jsonify({"success": False, "error": str(exc), "error_kind": "not_found"}), 404

    @app.errorhandler(StoreError)
    def handle_store_error(exc):
        logger.error("Store failure while serving %s: %s", request.path, exc)
        return jsonify({"success": False, "error": str(exc), "error_kind": "backend"}), 503

    # ==================== Directory Endpoints ==================== #

    @app.route("/api/formations", methods=["GET"])
    def get_formations():
        """List the formations lineups can use."""
        formations = app_state.factory.formations.list_formations()
        return jsonify({"success": True, "formations": [f.to_dict() for f in formations]})

    @app.route("/api/formations", methods=["POST"])
    def add_formation():
        """Register a custom formation for later lineups."""
        try:
            formation = app_state.factory.formations.add_custom(_json_body())
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        logger.info("Registered custom formation %s", formation.name)
        return jsonify({"success": True, "formation": formation.to_dict()}), 201

    @app.route("/api/participants", methods=["GET"])
    def list_participants():
        participants = app_state.store.list_participants()
        return jsonify({"success": True, "participants": [p.to_dict() for p in participants]})

    @app.route("/api/participants", methods=["POST"])
    def save_participant():
        """Register or update a directory entry."""
        data = _json_body()
        if not data.get("id") or not str(data.get("name", "")).strip():
            return jsonify({"success": False, "error": "Participant id and name are required"}), 400
        try:
            participant = Participant.from_dict(data)
        except ValueError as e:
            return jsonify({"success": False, "error": str(e)}), 400
        app_state.store.save_participant(participant)
        return jsonify({"success": True, "participant": participant.to_dict()})

    # ==================== Match Endpoints ==================== #

    @app.route("/api/matches", methods=["GET"])
    def list_matches():
        matches = app_state.store.list_matches()
        return jsonify({"success": True, "matches": [m.to_json() for m in matches]})

    @app.route("/api/matches", methods=["POST"])
    def create_match():
        data = _json_body()
        opponent = str(data.get("opponent_name", "")).strip()
        if not opponent:
            return jsonify({"success": False, "error": "Opponent name is required"}), 400

        match_id = str(data.get("id") or uuid.uuid4().hex)
        try:
            app_state.store.get_match(match_id)
        except NotFoundError:
            match = MatchRecord(id=match_id, opponent_name=opponent)
            app_state.store.save_match(match)
            logger.info("Created match %s against %s", match_id, opponent)
            return jsonify({"success": True, "match": match.to_json()}), 201
        return jsonify({"success": False, "error": f"Match {match_id} already exists"}), 409

    @app.route("/api/matches/<match_id>/state", methods=["GET"])
    def get_state(match_id: str):
        """Live snapshot: phase, clock, score, field, bench and pending substitutions."""
        session = _session(match_id)
        snapshot = session.snapshot()
        snapshot["history"] = [entry.to_dict() for entry in session.journal.history()]
        return jsonify({"success": True, "state": snapshot})

    @app.route("/api/matches/<match_id>/events", methods=["GET"])
    def get_events(match_id: str):
        return jsonify({"success": True, "events": _session(match_id).timeline()})

    @app.route("/api/matches/<match_id>/events", methods=["POST"])
    def post_event(match_id: str):
        data = _json_body()
        if not data.get("type"):
            return jsonify({"success": False, "error": "Event type is required"}), 400
        result = _session(match_id).post_event(
            data["type"],
            team=data.get("team") or "us",
            participant_ref=data.get("participant_ref"),
            assist_ref=data.get("assist_ref"),
            comment=data.get("comment"),
            metadata=data.get("metadata") or {},
        )
        return _result_response(result)

    @app.route("/api/matches/<match_id>/events/<event_id>", methods=["DELETE"])
    def delete_event(match_id: str, event_id: str):
        return _result_response(_session(match_id).delete_event(event_id))

    @app.route("/api/matches/<match_id>/clock/<action>", methods=["POST"])
    def clock_action(match_id: str, action: str):
        session = _session(match_id)
        handlers = {
            "start": session.start_clock,
            "pause": session.pause_clock,
            "reset": session.reset_clock,
        }
        handler = handlers.get(action)
        if handler is None:
            return jsonify({"success": False, "error": f"Unknown clock action '{action}'"}), 404
        return _result_response(handler())

    @app.route("/api/matches/<match_id>/phase", methods=["POST"])
    def set_phase(match_id: str):
        data = _json_body()
        if not data.get("phase"):
            return jsonify({"success": False, "error": "Phase is required"}), 400
        return _result_response(_session(match_id).set_phase(data["phase"]))

    @app.route("/api/matches/<match_id>/substitutions", methods=["POST"])
    def make_substitution(match_id: str):
        """Make a substitution: ``{"out_id": ..., "in_id": ...}``."""
        data = _json_body()
        return _result_response(_session(match_id).substitute(data.get("out_id"), data.get("in_id")))

    @app.route("/api/matches/<match_id>/finalize", methods=["POST"])
    def finalize_match(match_id: str):
        return _result_response(_session(match_id).finalize_match())

    @app.route("/api/matches/<match_id>/lineup", methods=["PUT"])
    def set_lineup(match_id: str):
        data = _json_body()
        slots = data.get("slots")
        if not isinstance(slots, dict):
            return jsonify({"success": False, "error": "slots must map slot ids to participant ids"}), 400
        return _result_response(_session(match_id).set_lineup(data.get("formation", ""), slots))

    @app.route("/api/matches/<match_id>/bench", methods=["PUT"])
    def save_bench(match_id: str):
        data = _json_body()
        try:
            entries = [
                BenchEntry(
                    participant_id=str(item["participant_id"]),
                    kind=ParticipantKind(item.get("kind", ParticipantKind.PLAYER.value)),
                )
                for item in data.get("entries", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"success": False, "error": f"Invalid bench entry: {e}"}), 400
        return _result_response(_session(match_id).save_bench(entries))

    @app.route("/api/matches/<match_id>/bench/<participant_id>", methods=["DELETE"])
    def remove_from_bench(match_id: str, participant_id: str):
        return _result_response(_session(match_id).remove_from_bench(participant_id))

    @app.route("/api/matches/<match_id>/stats", methods=["GET"])
    def get_stats(match_id: str):
        app_state.store.get_match(match_id)
        rows = app_state.store.list_participant_stats(match_id)
        return jsonify({"success": True, "stats": [row.to_dict() for row in rows]})

    @app.route("/api/matches/<match_id>/stats/export", methods=["GET"])
    def export_stats(match_id: str):
        """Export finalized statistics as CSV."""
        app_state.store.get_match(match_id)
        rows = app_state.store.list_participant_stats(match_id)
        directory = {p.id: p for p in app_state.store.list_participants()}
        csv_content = app_state.factory.exporter.export_to_csv(rows, directory)
        return Response(
            csv_content,
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename=match_{match_id}_stats.csv"},
        )

    return app


def run_web_app(
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    config: Optional[LiveMatchConfig] = None,
) -> None:
    """
    Run the web application.

    Args:
        host: Host address to bind to (default: localhost only)
        port: Port number to listen on
        config: Runtime configuration; read from the environment when omitted
    """
    config = config or LiveMatchConfig.from_env()
    configure_logging(config.log_level)
    app = create_app(config)
    logger.info("Serving %s API on %s:%d", APP_TITLE, host, port)
    app.run(host=host, port=port, debug=False)


if __name__ == "__main__":
    run_web_app()
