"""Flask JSON API and iCal feeds for the dashboard and calendar."""

from __future__ import annotations

import logging
from datetime import date

from flask import Flask, Response, jsonify, request
from pydantic import ValidationError

from contractflow.calendar import build_ics, google_calendar_url
from contractflow.config import Settings, get_settings
from contractflow.engine.lifecycle import completion_target, mark_signed, set_milestone_completed
from contractflow.engine.milestones import (
    classify,
    closing_this_month,
    emailable_contracts,
    open_contracts,
    project_all,
    project_milestones,
    upcoming_dates,
)
from contractflow.engine.resolver import resolve_active_contracts, transaction_key, validate_lineage
from contractflow.errors import ContractIntegrityError, ContractNotFoundError, LifecycleError
from contractflow.logging_config import configure_logging
from contractflow.models import ActiveContract, MilestoneEvent, MilestoneType, ReminderPreferences
from contractflow.store import ContractStore

logger = logging.getLogger(__name__)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _event_dict(e: MilestoneEvent, today: date, start_hour: int) -> dict:
    d = e.model_dump(mode="json")
    d["label"] = e.label
    d["status"] = classify(e, today).value
    d["google_calendar_url"] = google_calendar_url(e, start_hour)
    return d


def _active_dict(c: ActiveContract) -> dict:
    d = c.model_dump(mode="json")
    d["provenance"] = c.provenance.value
    return d


def create_app(settings: Settings | None = None, store: ContractStore | None = None) -> Flask:
    settings = settings or get_settings()
    store = store or ContractStore(settings.data_path)

    app = Flask(__name__)

    def contracts():
        return store.list_contracts(request.args.get("owner") or settings.owner_id or None)

    def active() -> list[ActiveContract]:
        return resolve_active_contracts(contracts())

    @app.errorhandler(ContractIntegrityError)
    def _integrity(e):
        logger.error("Contract data problem: %s", e)
        return jsonify({"error": str(e), "issues": [
            i.model_dump() for i in validate_lineage(contracts())
        ]}), 409

    @app.errorhandler(ContractNotFoundError)
    def _not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(LifecycleError)
    def _lifecycle(e):
        return jsonify({"error": str(e)}), 400

    # ── Contracts ────────────────────────────────────────────────────────

    @app.route("/api/contracts")
    def list_contracts():
        return jsonify([c.model_dump(mode="json") for c in contracts()])

    @app.route("/api/contracts/<cid>")
    def get_contract(cid):
        return jsonify(store.get(cid).model_dump(mode="json"))

    @app.route("/api/contracts/<cid>/milestones/<milestone>", methods=["POST"])
    def complete_milestone(cid, milestone):
        try:
            m = MilestoneType(milestone)
        except ValueError:
            return jsonify({"error": f"unknown milestone {milestone}"}), 400
        body = request.get_json(silent=True) or {}
        contract = completion_target(contracts(), cid)
        set_milestone_completed(contract, m, completed=bool(body.get("completed", True)))
        store.save(contract)
        return jsonify(contract.model_dump(mode="json"))

    @app.route("/api/contracts/<cid>/sign", methods=["POST"])
    def sign_contract(cid):
        body = request.get_json(silent=True) or {}
        try:
            signed_on = date.fromisoformat(body["signature_date"]) if body.get("signature_date") else None
        except (TypeError, ValueError):
            return jsonify({"error": f"signature_date must be YYYY-MM-DD, got {body['signature_date']!r}"}), 400
        changed = mark_signed(contracts(), cid, signed_on)
        store.save_many(changed)
        return jsonify({"signed": cid, "superseded": [c.id for c in changed[1:]]})

    # ── Dashboard views ──────────────────────────────────────────────────

    @app.route("/api/active")
    def list_active():
        return jsonify([_active_dict(c) for c in active()])

    @app.route("/api/upcoming")
    def upcoming():
        today = date.today()
        limit = request.args.get("limit", default=settings.upcoming_limit, type=int)
        records = open_contracts(active())
        events = upcoming_dates(project_all(records), limit)
        return jsonify({
            "events": [_event_dict(e, today, settings.calendar_event_hour) for e in events],
            "active_count": len(records),
            "closing_this_month": closing_this_month(records, today),
        })

    @app.route("/api/emailable")
    def emailable():
        return jsonify([
            {"id": c.id, "property_address": c.property_address, "email": c.client_email()}
            for c in emailable_contracts(active())
        ])

    # ── Reminder settings ────────────────────────────────────────────────

    @app.route("/api/reminder-preferences")
    def get_reminder_preferences():
        return jsonify(store.load_reminder_preferences().model_dump())

    @app.route("/api/reminder-preferences", methods=["PUT"])
    def put_reminder_preferences():
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            return jsonify({"error": "expected a JSON object"}), 400
        current = store.load_reminder_preferences().model_dump()
        unknown = sorted(set(body) - set(current))
        if unknown:
            return jsonify({"error": f"unknown fields: {', '.join(unknown)}"}), 400
        try:
            prefs = ReminderPreferences.model_validate({**current, **body})
        except ValidationError as e:
            return jsonify({"error": str(e)}), 400
        return jsonify(store.save_reminder_preferences(prefs).model_dump())

    # ── iCal feeds ───────────────────────────────────────────────────────

    def _ics(events: list[MilestoneEvent], cal_name: str, filename: str) -> Response:
        body = build_ics([e for e in events if not e.completed], cal_name=cal_name,
                         start_hour=settings.calendar_event_hour, tzid=settings.timezone)
        return Response(body, mimetype="text/calendar",
                        headers={"Content-Disposition": f"inline; filename={filename}"})

    @app.route("/api/calendar.ics")
    def calendar_all():
        """iCal feed of every open transaction's milestones."""
        return _ics(project_all(open_contracts(active())), "ContractFlow Deadlines",
                    "contractflow-deadlines.ics")

    @app.route("/api/contracts/<cid>/calendar.ics")
    def calendar_contract(cid):
        """iCal feed for the transaction containing ``cid``."""
        key = transaction_key(store.get(cid))
        record = next((c for c in active() if transaction_key(c) == key), None)
        if record is None:
            return jsonify({"error": "no active contract for this transaction"}), 404
        addr = record.property_address
        short_addr = addr.split(",")[0] if "," in addr else addr
        return _ics(project_milestones(record), f"ContractFlow: {short_addr or cid}",
                    f"contractflow-{cid[:8]}.ics")

    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    create_app(settings).run(port=5001)


if __name__ == "__main__":
    main()
