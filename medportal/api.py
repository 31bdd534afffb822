"""
API Blueprint - AI-assisted endpoints

- /analyze: medical image -> AnalysisRecord (stored)
- /diagnose: symptom text -> DiagnosisRecord (not stored)
- /recommendations: past analyses -> RecommendationSet (not stored)

Every model response goes through medportal.normalizer before it is stored
or returned. Model calls are made once; failures come back as 500s.
"""
import base64
import io

from flask import Blueprint, jsonify, request, send_file, current_app
from flask_login import login_required, current_user

from medportal import store
from medportal.auth import log_audit_event
from medportal.normalizer import normalize_analysis, normalize_diagnosis, normalize_recommendations
from medportal.services import ai_service, pdf_service

api_bp = Blueprint('api', __name__)

MAX_SYMPTOMS_CHARS = 4000


# ============ API Routes ============

@api_bp.route("/analyze", methods=["POST"])
@login_required
def analyze():
    file = request.files.get("file")
    if not file:
        return jsonify({"error": "No file provided"}), 400

    mime_type = (file.mimetype or "").lower()
    if not mime_type.startswith("image/"):
        current_app.logger.info(f"Rejected upload {file.filename!r} with type {mime_type!r}")
        return jsonify({"error": "File must be an image"}), 400

    data = file.read()
    if not data:
        return jsonify({"error": "No file provided"}), 400

    current_app.logger.info(f"Analyzing image {file.filename!r} ({mime_type}, {len(data)} bytes) for {current_user.email}")
    try:
        text = ai_service.generate_text(ai_service.analysis_prompt(), image_bytes=data, mime_type=mime_type)
        analysis = normalize_analysis(text)
        saved = store.insert_analysis(
            analysis,
            owner_email=current_user.email,
            image_data=base64.b64encode(data).decode("ascii"),
            mime_type=mime_type,
        )
    except Exception as e:
        current_app.logger.error(f"Failed to process the image: {type(e).__name__}: {e}")
        return jsonify({"error": "Failed to process the image", "details": str(e)}), 500

    log_audit_event("analysis_created", f"Image analysis {saved.id} stored")
    return jsonify({"status": "success", "analysis": analysis, "analysis_id": saved.id}), 200


@api_bp.route("/diagnose", methods=["POST"])
def diagnose():
    payload = request.get_json(silent=True) or {}
    symptoms = payload.get("symptoms")
    if isinstance(symptoms, list):
        symptoms = ", ".join(str(s).strip() for s in symptoms if str(s).strip())
    symptoms = (symptoms or "").strip() if isinstance(symptoms, str) else ""
    if not symptoms:
        return jsonify({"error": "Please describe your symptoms"}), 400
    if len(symptoms) > MAX_SYMPTOMS_CHARS:
        return jsonify({"error": f"Symptoms must be under {MAX_SYMPTOMS_CHARS} characters"}), 400

    try:
        text = ai_service.generate_text(ai_service.diagnosis_prompt(symptoms))
    except Exception as e:
        current_app.logger.error(f"Diagnosis generation failed: {type(e).__name__}: {e}")
        return jsonify({"error": "An error occurred while generating the diagnosis.", "details": str(e)}), 500

    return jsonify({"status": "success", "diagnosis": normalize_diagnosis(text)}), 200


@api_bp.route("/recommendations", methods=["GET"])
@login_required
def recommendations():
    email = (request.args.get("email") or "").strip().lower() or current_user.email
    if email != current_user.email and not current_user.is_doctor:
        return jsonify({"error": "You can only view your own recommendations"}), 403

    analyses = store.find_analyses(email)
    if not analyses:
        return jsonify({"error": "No past analyses found"}), 404

    history = [a.to_record() for a in analyses]
    try:
        text = ai_service.generate_text(ai_service.recommendation_prompt(history))
    except Exception as e:
        current_app.logger.error(f"Recommendation generation failed: {type(e).__name__}: {e}")
        return jsonify({"error": "Failed to generate recommendations", "details": str(e)}), 500

    return jsonify({
        "status": "success",
        "recommendations": normalize_recommendations(text),
        "analysis_count": len(history),
    }), 200


@api_bp.route("/analyses", methods=["GET"])
@login_required
def list_analyses():
    analyses = store.find_analyses(current_user.email)
    return jsonify({"status": "success", "analyses": [a.to_dict() for a in analyses]}), 200


@api_bp.route("/analyses/<int:analysis_id>", methods=["GET"])
@login_required
def get_analysis(analysis_id):
    analysis = store.get_analysis(analysis_id, current_user.email)
    if analysis is None:
        return jsonify({"error": "Analysis not found"}), 404
    return jsonify({"status": "success", "analysis": analysis.to_dict(include_image=True)}), 200


@api_bp.route("/analyses/<int:analysis_id>/pdf", methods=["GET"])
@login_required
def export_analysis_pdf(analysis_id):
    analysis = store.get_analysis(analysis_id, current_user.email)
    if analysis is None:
        return jsonify({"error": "Analysis not found"}), 404

    data = analysis.to_dict(include_image=True)
    include_image = (request.args.get("image") or "1").strip().lower() not in {"0", "false", "no"}
    try:
        pdf_bytes = pdf_service.export_analysis_pdf(data, include_image=include_image)
    except Exception as e:
        current_app.logger.error(f"PDF export failed for analysis {analysis_id}: {type(e).__name__}: {e}")
        return jsonify({"error": "PDF export failed", "details": str(e)}), 500

    return send_file(
        io.BytesIO(pdf_bytes),
        as_attachment=True,
        download_name=pdf_service.report_filename(data),
        mimetype="application/pdf",
    )
