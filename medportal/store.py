"""
Analysis document store.

Insert-one and find-many-by-email over the analyses table. The database
handle is the Flask-SQLAlchemy extension bound in create_app(); Flask
removes the session at the end of each app context.
"""
from typing import Any, Dict, List, Optional

from medportal import db
from medportal.models import Analysis


def insert_analysis(record: Dict[str, Any], owner_email: str, image_data: str = "",
                    mime_type: Optional[str] = None) -> Analysis:
    """Persist a normalized AnalysisRecord. Rolls back and re-raises on failure."""
    analysis = Analysis(
        owner_email=owner_email,
        diagnosis=record.get("diagnosis", ""),
        observations=list(record.get("observations") or []),
        potential_conditions=list(record.get("potential_conditions") or []),
        areas_of_concern=list(record.get("areas_of_concern") or []),
        image_data=image_data,
        mime_type=mime_type,
    )
    try:
        db.session.add(analysis)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return analysis


def find_analyses(email: Optional[str] = None) -> List[Analysis]:
    """All analyses owned by email, newest first. email=None returns every analysis."""
    query = Analysis.query
    if email is not None:
        query = query.filter_by(owner_email=email)
    return query.order_by(Analysis.created_at.desc(), Analysis.id.desc()).all()


def get_analysis(analysis_id: int, email: str) -> Optional[Analysis]:
    return Analysis.query.filter_by(id=analysis_id, owner_email=email).first()
