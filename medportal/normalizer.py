"""
Model response normalization.

The generative model answers in free text that only sometimes follows the
requested format: a fenced ```json block, bare JSON, markdown sections, or
plain prose. normalize_response() turns any of those into one of three fixed
record shapes:

- image-analysis    -> AnalysisRecord
- symptom-diagnosis -> DiagnosisRecord
- recommendation    -> RecommendationSet

Each strategy is tried in order (fenced JSON, whole-text JSON, markdown
sections) and a strategy that fails simply yields nothing. When every
strategy comes up empty the raw text is kept as the free-text field, so
callers always get a record back.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

MODE_IMAGE_ANALYSIS = "image-analysis"
MODE_SYMPTOM_DIAGNOSIS = "symptom-diagnosis"
MODE_RECOMMENDATION = "recommendation"
MODES = (MODE_IMAGE_ANALYSIS, MODE_SYMPTOM_DIAGNOSIS, MODE_RECOMMENDATION)

DISEASE_ALLOWLIST: Tuple[str, ...] = (
    "tuberculosis",
    "pneumonia",
    "heart diseases",
    "Alzheimer's",
    "malaria",
    "breast cancer",
    "brain tumor",
)

ANALYSIS_SCHEMA: Dict[str, Any] = {
    "diagnosis": "",
    "observations": [],
    "potential_conditions": [],
    "areas_of_concern": [],
}

DIAGNOSIS_SCHEMA: Dict[str, Any] = {
    "possible_diagnosis": "",
    "potential_disease": "",
    "symptoms": [],
    "recommended_treatment": [],
    "prevention_tips": [],
}

RECOMMENDATION_SCHEMA: Dict[str, Any] = {
    "possible_future_conditions": [],
    "preventive_measures": [],
}

SCHEMAS = {
    MODE_IMAGE_ANALYSIS: ANALYSIS_SCHEMA,
    MODE_SYMPTOM_DIAGNOSIS: DIAGNOSIS_SCHEMA,
    MODE_RECOMMENDATION: RECOMMENDATION_SCHEMA,
}

# Field that receives the raw text when nothing else could be parsed;
# recommendation records only carry "summary" on this path
FALLBACK_FIELD = {
    MODE_IMAGE_ANALYSIS: "diagnosis",
    MODE_SYMPTOM_DIAGNOSIS: "possible_diagnosis",
    MODE_RECOMMENDATION: "summary",
}

KEY_ALIASES = {
    MODE_RECOMMENDATION: {"recommendations": "preventive_measures"},
}

RECOMMENDATION_SECTIONS = (
    ("Possible Future Conditions", "possible_future_conditions"),
    ("Preventive Measures", "preventive_measures"),
)

DIAGNOSIS_INLINE_FIELDS = (
    ("Possible Diagnosis", "possible_diagnosis"),
    ("Potential Disease", "potential_disease"),
)

DIAGNOSIS_SECTIONS = (
    ("Symptoms", "symptoms"),
    ("Recommended Treatment", "recommended_treatment"),
    ("Prevention Tips", "prevention_tips"),
)

BOILERPLATE_PHRASES = (
    "disclaimer",
    "this information is for",
    "suggestions above are",
)

# Headings that end whatever section precedes them
STOP_HEADINGS = ("Disclaimer",)

_FENCE_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_BULLET_RE = re.compile(r"^(?:[-*•\s]+|\d+[.)]\s+)+")


class UnknownModeError(ValueError):
    pass


def normalize_key(key: Any) -> str:
    """'Possible Diagnosis' / 'possible-diagnosis' -> 'possible_diagnosis'"""
    return re.sub(r"[\s\-]+", "_", str(key).strip()).lower()


def as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        items = value
    else:
        items = [value]
    out = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, (dict, list)):
            s = json.dumps(item)
        else:
            s = str(item).strip()
        if s:
            out.append(s)
    return out


def as_str(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "; ".join(as_str_list(value))
    return str(value).strip()


# ============ Structured extraction ============

def extract_json(text: str) -> Optional[Any]:
    """
    Fenced ```json block if present, otherwise the whole text.

    Returns None when the chosen candidate is not valid JSON.
    """
    match = _FENCE_RE.search(text or "")
    candidate = match.group(1) if match else (text or "").strip()
    if not candidate:
        return None
    try:
        return json.loads(candidate)
    except (ValueError, TypeError, RecursionError) as e:
        logger.debug("Structured parse failed (%s): %s", "fenced" if match else "whole text", e)
        return None


def coerce_record(obj: Any, mode: str) -> Optional[Dict[str, Any]]:
    """Map a parsed JSON object onto the mode's schema, None if it has none of its keys."""
    if not isinstance(obj, dict):
        return None
    schema = SCHEMAS[mode]
    aliases = KEY_ALIASES.get(mode, {})
    found: Dict[str, Any] = {}
    for raw_key, value in obj.items():
        key = normalize_key(raw_key)
        key = aliases.get(key, key)
        if key in schema and key not in found:
            found[key] = value
    if not found:
        return None
    return repair_record(found, mode)


def repair_record(obj: Dict[str, Any], mode: str) -> Dict[str, Any]:
    """Fill missing fields and coerce types so the record always has its fixed shape."""
    result: Dict[str, Any] = {}
    for key, default in SCHEMAS[mode].items():
        value = obj.get(key)
        if isinstance(default, list):
            result[key] = as_str_list(value)
        else:
            result[key] = as_str(value)
    return result


def filter_conditions(conditions: List[str]) -> List[str]:
    return [c for c in conditions if c in DISEASE_ALLOWLIST]


# ============ Markdown section extraction ============

def clean_line(line: str) -> str:
    cleaned = _BULLET_RE.sub("", line or "").replace("**", "")
    return cleaned.strip()


def is_boilerplate(line: str) -> bool:
    low = line.lower()
    return any(phrase in low for phrase in BOILERPLATE_PHRASES)


def heading_text(line: str) -> str:
    """Bare text of a markdown heading line: '## **Symptoms:**' -> 'symptoms'"""
    s = (line or "").strip().lstrip("#").replace("*", "").replace("_", "").strip()
    return s.rstrip(":").strip().lower()


def is_section_heading(line: str, title: str) -> bool:
    low = (line or "").lower()
    title_low = title.lower()
    if heading_text(line) == title_low:
        return True
    return "**" in line and title_low in low


def collect_section(lines: List[str], title: str, others: List[str], heading_only: bool = False) -> List[str]:
    """
    Lines under the section start, up to the next line for any title in
    others (or the end of text).

    The start is the first heading line for title; unless heading_only is
    set, any line mentioning title will do when there is no such heading.
    With heading_only, only heading lines for others end the section;
    otherwise any line mentioning one of them does.
    """
    title_low = title.lower()
    start = next((i for i, line in enumerate(lines) if is_section_heading(line, title)), -1)
    if start == -1 and not heading_only:
        start = next((i for i, line in enumerate(lines) if title_low in line.lower()), -1)
    if start == -1:
        return []

    others_low = [other.lower() for other in others]
    items = []
    for line in lines[start + 1:]:
        if heading_only:
            if any(is_section_heading(line, other) for other in others):
                break
        elif any(other in line.lower() for other in others_low):
            break
        if any(is_section_heading(line, stop) for stop in STOP_HEADINGS):
            break
        if is_section_heading(line, title):
            continue
        cleaned = clean_line(line)
        if cleaned and not is_boilerplate(cleaned):
            items.append(cleaned)
    return items


def regex_section(text: str, title: str, next_title: Optional[str]) -> List[str]:
    """'Title: ... Next Title:' fallback for sections squeezed onto one line."""
    if next_title:
        pattern = re.escape(title) + r":(.*?)" + re.escape(next_title) + r":"
    else:
        pattern = re.escape(title) + r":(.*)"
    m = re.search(pattern, text, flags=re.IGNORECASE | re.DOTALL)
    if not m:
        return []
    items = []
    for line in m.group(1).split("\n"):
        cleaned = clean_line(line)
        if cleaned and not is_boilerplate(cleaned):
            items.append(cleaned)
    return items


def parse_recommendation_sections(text: str) -> Optional[Dict[str, Any]]:
    lines = (text or "").split("\n")
    titles = [title for title, _ in RECOMMENDATION_SECTIONS]
    found: Dict[str, Any] = {}
    for i, (title, key) in enumerate(RECOMMENDATION_SECTIONS):
        others = [t for t in titles if t != title]
        items = collect_section(lines, title, others)
        if not items:
            next_title = titles[i + 1] if i + 1 < len(titles) else None
            items = regex_section(text, title, next_title)
        found[key] = items
    if not any(found.values()):
        return None
    return repair_record(found, MODE_RECOMMENDATION)


def parse_diagnosis_sections(text: str) -> Optional[Dict[str, Any]]:
    lines = (text or "").split("\n")
    found: Dict[str, Any] = {}

    for title, key in DIAGNOSIS_INLINE_FIELDS:
        pattern = r"^[\s*#_\-]*" + re.escape(title) + r"[\s*_]*:[\s*_]*(.*)$"
        for line in lines:
            m = re.match(pattern, line, flags=re.IGNORECASE)
            if m and m.group(1).strip():
                found[key] = m.group(1).replace("**", "").strip()
                break

    headings = [title for title, _ in DIAGNOSIS_SECTIONS] + [title for title, _ in DIAGNOSIS_INLINE_FIELDS]
    for title, key in DIAGNOSIS_SECTIONS:
        others = [t for t in headings if t != title]
        found[key] = collect_section(lines, title, others, heading_only=True)

    if not any(found.values()):
        return None
    return repair_record(found, MODE_SYMPTOM_DIAGNOSIS)


SECTION_PARSERS = {
    MODE_RECOMMENDATION: parse_recommendation_sections,
    MODE_SYMPTOM_DIAGNOSIS: parse_diagnosis_sections,
}


# ============ Entry point ============

def fallback_record(text: str, mode: str) -> Dict[str, Any]:
    record = repair_record({}, mode)
    record[FALLBACK_FIELD[mode]] = text or ""
    return record


def normalize_response(text: str, mode: str) -> Dict[str, Any]:
    """
    Convert one raw model response into the record shape for mode.

    Never raises for malformed text; an unknown mode is a programming error
    and raises UnknownModeError.
    """
    if mode not in SCHEMAS:
        raise UnknownModeError(f"Unknown normalization mode: {mode}")

    record = coerce_record(extract_json(text), mode)

    if record is None and mode in SECTION_PARSERS:
        try:
            record = SECTION_PARSERS[mode](text)
        except Exception as e:
            logger.warning("Section parse failed for %s response: %s", mode, e)
            record = None

    if record is None:
        logger.info("No structure found in %s response, using raw text", mode)
        record = fallback_record(text, mode)

    if mode == MODE_IMAGE_ANALYSIS:
        record["potential_conditions"] = filter_conditions(record["potential_conditions"])

    return record


def normalize_analysis(text: str) -> Dict[str, Any]:
    return normalize_response(text, MODE_IMAGE_ANALYSIS)


def normalize_diagnosis(text: str) -> Dict[str, Any]:
    return normalize_response(text, MODE_SYMPTOM_DIAGNOSIS)


def normalize_recommendations(text: str) -> Dict[str, Any]:
    return normalize_response(text, MODE_RECOMMENDATION)
