import logging
import os

from flask import Flask, jsonify, request

from credit_schedule.engine import build_schedule_response, recalculate_schedule_from, summarize_schedule
from credit_schedule.serialization import (
    adjustments_from_list,
    credit_from_dict,
    payments_from_list,
    rates_from_list,
    response_to_dict,
    schedule_item_to_dict,
    summary_to_dict,
)
from credit_schedule.utils import parse_date
from credit_schedule_web.jobs import DuePaymentsJob, checkpoint_recalculate, store_schedule
from credit_schedule_web.payment_store import PaymentStore, create_store_from_env

logger = logging.getLogger(__name__)


def configure_logging(level=None):
    """Send log records to stderr at ``LOG_LEVEL`` (default INFO)."""
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _payload():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _engine_inputs(data, credit_id=None):
    credit_data = dict(data.get("credit") or {})
    if credit_id is not None:
        credit_data["credit_id"] = credit_id
    credit = credit_from_dict(credit_data)
    rates = rates_from_list(data.get("rates") or [])
    adjustments = adjustments_from_list(data.get("adjustments") or [])
    return credit, rates, adjustments


def create_app(store: PaymentStore = None) -> Flask:
    """Build the web app around ``store`` (or one from ``CREDIT_DATABASE_URL``)."""
    app = Flask(__name__)
    payment_store = store or create_store_from_env(os.environ.get("CREDIT_DATABASE_URL"))
    due_payments_job = DuePaymentsJob(payment_store)
    app.extensions["payment_store"] = payment_store
    app.extensions["due_payments_job"] = due_payments_job

    @app.errorhandler(ValueError)
    def handle_invalid_input(exc):
        # engine errors subclass ValueError
        logger.info("Rejected request to %s: %s", request.path, exc)
        return jsonify({"error": str(exc), "type": type(exc).__name__}), 400

    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    @app.post("/api/schedule")
    def schedule():
        credit, rates, adjustments = _engine_inputs(_payload())
        response = build_schedule_response(credit, rates, adjustments)
        return jsonify(response_to_dict(response))

    @app.post("/api/schedule/recalculate")
    def recalculate():
        data = _payload()
        credit, rates, adjustments = _engine_inputs(data)
        if not data.get("from_date"):
            raise ValueError("Missing required field: from_date")
        items = recalculate_schedule_from(
            credit,
            rates,
            adjustments,
            parse_date(str(data["from_date"])),
            payments_from_list(data.get("payments") or []),
        )
        return jsonify(
            {
                "schedule": [schedule_item_to_dict(item) for item in items],
                "summary": summary_to_dict(summarize_schedule(items)),
            }
        )

    @app.get("/api/credits/<credit_id>/payments")
    def list_payments(credit_id):
        version = request.args.get("version", type=int)
        payments = payment_store.list_payments(credit_id, version)
        return jsonify([summary_to_dict(p) for p in payments])

    @app.post("/api/credits/<credit_id>/payments/generate")
    def generate_payments(credit_id):
        credit, rates, adjustments = _engine_inputs(_payload(), credit_id)
        items, created = store_schedule(payment_store, credit, rates, adjustments)
        return jsonify({"message": "Payments generated", "createdCount": created, "totalCount": len(items)})

    @app.post("/api/credits/<credit_id>/recalculate")
    def recalculate_credit(credit_id):
        data = _payload()
        credit, rates, adjustments = _engine_inputs(data, credit_id)
        if not data.get("from_date"):
            raise ValueError("Missing required field: from_date")
        items, version = checkpoint_recalculate(
            payment_store, credit, rates, adjustments, parse_date(str(data["from_date"]))
        )
        return jsonify(
            {
                "recalculated_version": version,
                "schedule": [schedule_item_to_dict(item) for item in items],
            }
        )

    @app.post("/api/admin/payments/process-due-job")
    def process_due_job():
        data = request.get_json(silent=True) or {}
        today = parse_date(str(data["today"])) if data.get("today") else None
        result = due_payments_job.execute(today)
        status = 200 if result.success else 409 if due_payments_job.is_running else 500
        return (
            jsonify(
                {
                    "success": result.success,
                    "processedCount": result.processed_count,
                    "totalDuePayments": result.total_due_payments,
                    "errors": result.errors,
                }
            ),
            status,
        )

    @app.get("/api/admin/payments/process-due-job/status")
    def process_due_job_status():
        return jsonify(due_payments_job.status())

    return app


if __name__ == "__main__":
    configure_logging()
    port = int(os.environ.get("CREDIT_SCHEDULE_PORT", "8710"))
    logger.info("Starting credit schedule web app on port %d", port)
    create_app().run(host="0.0.0.0", port=port, debug=False)
