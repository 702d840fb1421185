# Overview: Clinic dashboard summary.

from flask import Blueprint, g

from ..decorators import require_auth, require_clinic_context
from ..services import reporting_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_clinic_context
def stats_route():
    return reporting_service.dashboard_stats(g.clinic_id)
