from __future__ import annotations

from flask import Flask, request

from ..common.auth import admin_required, can_view_technician, current_role, login_required
from ..common.datetime_utils import parse_iso_date
from ..common.http import fail, ok
from ..common.validators import parse_adjustment_type, parse_optional_int
from ..container import Container
from ..core.exceptions import ValidationError
from ..weeks.payout_week import get_current_payout_week, resolve_week


def register(app: Flask, container: Container) -> None:
    @app.route("/api/technicians/<int:technician_id>/adjustments", methods=["GET"], endpoint="pending_adjustments")
    @login_required
    def pending_adjustments(technician_id: int):
        if not can_view_technician(technician_id):
            return fail("You can only see your own adjustments", status=403, code="FORBIDDEN")
        week = resolve_week(request.args.get("week"), request.args.get("year"))
        view = container.adjustment_service.get_pending_adjustments(technician_id=technician_id, week=week)
        return ok(view.to_dict(), week=week.week, year=week.year)

    @app.route("/api/technicians/<int:technician_id>/loans", methods=["GET"], endpoint="technician_loans")
    @login_required
    def technician_loans(technician_id: int):
        if not can_view_technician(technician_id):
            return fail("You can only see your own loans", status=403, code="FORBIDDEN")
        return ok(container.adjustment_service.get_loans(technician_id=technician_id).to_dict())

    @app.route("/api/adjustments", methods=["POST"], endpoint="create_adjustment")
    @admin_required
    def create_adjustment():
        body = request.get_json(silent=True) or {}
        available_from = None
        if body.get("available_from"):
            try:
                available_from = parse_iso_date(str(body["available_from"]))
            except ValueError:
                raise ValidationError("available_from must be YYYY-MM-DD")

        adjustment_id = container.adjustment_service.create_adjustment(
            current_role=current_role(),
            technician_id=parse_optional_int(body.get("technician_id"), "Technician"),
            type=parse_adjustment_type(body.get("type")),
            amount=body.get("amount"),
            note=body.get("note"),
            available_from=available_from,
        )
        return ok({"id": adjustment_id}, status=201)

    @app.route("/api/adjustments/<int:adjustment_id>", methods=["DELETE"], endpoint="delete_adjustment")
    @admin_required
    def delete_adjustment(adjustment_id: int):
        adj = container.adjustment_service.delete_adjustment(current_role=current_role(), adjustment_id=adjustment_id)
        totals = container.settlement_service.get_weekly_totals(
            technician_id=adj.technician_id,
            week=get_current_payout_week(),
        )
        return ok({"deleted": adj.adjustment_id, "weekly_totals": totals.to_dict()})
