from __future__ import annotations

from flask import Flask, request

from ..common.auth import admin_required, can_view_technician, current_role, current_user_id, login_required
from ..common.datetime_utils import parse_iso_date
from ..common.http import fail, ok
from ..common.validators import parse_optional_int, parse_settlement_method
from ..container import Container
from ..core.enums import PayoutPreset, Role, SettlementContext
from ..core.exceptions import ValidationError
from ..weeks.payout_week import resolve_week
from .model import PaymentSplit


def register(app: Flask, container: Container) -> None:
    def _parse_date(value):
        if not value:
            return None
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError("Dates must be YYYY-MM-DD")

    @app.route("/api/technicians/<int:technician_id>/weekly-totals", methods=["GET"], endpoint="weekly_totals")
    @login_required
    def weekly_totals(technician_id: int):
        if not can_view_technician(technician_id):
            return fail("You can only see your own totals", status=403, code="FORBIDDEN")
        week = resolve_week(request.args.get("week"), request.args.get("year"))
        totals = container.settlement_service.get_weekly_totals(technician_id=technician_id, week=week)
        return ok(totals.to_dict())

    @app.route(
        "/api/technicians/<int:technician_id>/settlement-preview", methods=["GET"], endpoint="settlement_preview"
    )
    @admin_required
    def settlement_preview(technician_id: int):
        week = resolve_week(request.args.get("week"), request.args.get("year"))
        try:
            preset = PayoutPreset((request.args.get("preset") or PayoutPreset.NET.value).lower())
        except ValueError:
            raise ValidationError("Preset must be net or full")
        quote, distribution = container.settlement_service.preview_settlement(
            technician_id=technician_id,
            week=week,
            preset=preset,
            target=parse_optional_int(request.args.get("target"), "Target"),
        )
        data = quote.to_dict()
        data["adjustments"] = quote.ledger.to_dict()
        data["distribution"] = distribution.to_dict()
        return ok(data)

    @app.route("/api/technicians/<int:technician_id>/settlements", methods=["POST"], endpoint="record_settlement")
    @admin_required
    def record_settlement(technician_id: int):
        body = request.get_json(silent=True) or {}
        split = None
        if isinstance(body.get("split"), dict):
            split = PaymentSplit(
                cash=parse_optional_int(body["split"].get("cash"), "Cash amount") or 0,
                transfer=parse_optional_int(body["split"].get("transfer"), "Transfer amount") or 0,
            )
        try:
            context = SettlementContext((body.get("context") or SettlementContext.ADMIN.value).lower())
        except ValueError:
            raise ValidationError("Context must be technician or admin")

        settlement = container.settlement_service.record_settlement(
            current_role=current_role(),
            technician_id=technician_id,
            amount=body.get("amount"),
            payment_method=parse_settlement_method(body.get("payment_method")),
            week=resolve_week(body.get("week"), body.get("year")),
            created_by=current_user_id(),
            loan_repayment=body.get("loan_repayment") or 0,
            split=split,
            context=context,
            note=body.get("note"),
        )
        return ok(settlement.to_dict(), status=201)

    @app.route("/api/settlements", methods=["GET"], endpoint="settlement_history")
    @login_required
    def settlement_history():
        technician_id = parse_optional_int(request.args.get("technician_id"), "Technician")
        if current_role() != Role.ADMIN:
            technician_id = current_user_id()
        method = request.args.get("payment_method")
        history = container.settlement_service.get_settlement_history(
            technician_id=technician_id,
            payment_method=parse_settlement_method(method) if method else None,
            start=_parse_date(request.args.get("start")),
            end=_parse_date(request.args.get("end")),
        )
        return ok(history.to_dict())
