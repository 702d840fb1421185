# Overview: Patient routes; gated by the "patients" feature.

from flask import Blueprint, g, request

from ..constants import Feature
from ..decorators import require_auth, require_clinic_context, require_feature
from ..services import patient_service
from ..validation import NotFoundError, ValidationError


patients_bp = Blueprint("patients", __name__, url_prefix="/api/patients")


@patients_bp.get("")
@require_auth
@require_clinic_context
@require_feature(Feature.PATIENTS)
def list_patients_route():
    patients = patient_service.list_patients(g.clinic_id, request.args.get("search"))
    return {"patients": [p.to_dict() for p in patients]}


@patients_bp.post("")
@require_auth
@require_clinic_context
@require_feature(Feature.PATIENTS)
def create_patient_route():
    payload = request.get_json(silent=True) or {}
    try:
        patient = patient_service.create_patient(g.clinic_id, payload, actor_id=g.claims.principal_id)
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"patient": patient.to_dict()}, 201


@patients_bp.get("/<int:patient_id>")
@require_auth
@require_clinic_context
@require_feature(Feature.PATIENTS)
def get_patient_route(patient_id: int):
    try:
        patient = patient_service.patient_detail(g.clinic_id, patient_id, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    return {"patient": patient}


@patients_bp.route("/<int:patient_id>", methods=["PUT", "PATCH"])
@require_auth
@require_clinic_context
@require_feature(Feature.PATIENTS)
def update_patient_route(patient_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patient = patient_service.update_patient(g.clinic_id, patient_id, payload, actor_id=g.claims.principal_id)
    except NotFoundError as e:
        return {"error": str(e)}, 404
    except ValidationError as e:
        return {"error": str(e)}, 400
    return {"patient": patient.to_dict()}
