"""Doctor directory search.

Works on plain profile dicts (DoctorProfile.to_dict()) so it can be used
on query results or cached lists alike.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


def _text(doc: Dict[str, Any], key: str) -> str:
    return str(doc.get(key) or "").lower()


def matches_query(doc: Dict[str, Any], query: str) -> bool:
    q = (query or "").strip().lower()
    if not q:
        return True
    return (
        q in _text(doc, "name")
        or q in _text(doc, "specialization")
        or q in _text(doc, "hospital_affiliation")
    )


def search_doctors(
    doctors: Iterable[Dict[str, Any]],
    query: str = "",
    location: str = "",
    max_fees: Optional[float] = None,
    specialization: Optional[str] = None,
    recommend: bool = False,
) -> List[Dict[str, Any]]:
    """
    Filter doctor profiles.

    query matches name, specialization or hospital; location matches the
    clinic location; both are case-insensitive substring matches.
    specialization must match exactly ("all" disables it). With recommend,
    the most experienced doctors come first.
    """
    loc = (location or "").strip().lower()
    spec = (specialization or "").strip()
    if spec.lower() == "all":
        spec = ""

    results = []
    for doc in doctors:
        if not matches_query(doc, query):
            continue
        if loc and loc not in _text(doc, "clinic_location"):
            continue
        if max_fees is not None and float(doc.get("fees") or 0) > max_fees:
            continue
        if spec and doc.get("specialization") != spec:
            continue
        results.append(doc)

    if recommend:
        results.sort(key=lambda d: int(d.get("experience") or 0), reverse=True)
    return results


def list_specializations(doctors: Iterable[Dict[str, Any]]) -> List[str]:
    return sorted({d.get("specialization") for d in doctors if d.get("specialization")})
