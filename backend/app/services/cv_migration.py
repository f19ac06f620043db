"""
cv_migration.py — Upgrade of employee CV documents to the sectioned layout.

Early CV documents were flat (contactNo, email, educationalQualifications,
workExperience, fatherName ...).  ``upgrade`` turns one of those into the
sectioned shape once, at load/import time; documents that already have a
``sections`` list pass through untouched.
"""

import copy
from typing import Any, Dict, List, Tuple


PLACEHOLDER_ABOUT_ME: str = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit. Nullam pharetra in "
    "lorem at laoreet. Donec hendrerit libero eget est tempor, quis tempus arcu "
    "elementum. In elementum elit at dui tristique feugiat. Mauris convallis, mi at "
    "mattis malesuada, neque nulla volutpat dolor, hendrerit faucibus eros nibh ut nunc."
)
PLACEHOLDER_JOB_DESCRIPTION: str = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit. Nullam pharetra in lorem at laoreet."
)

# (section id, title, layout, side) in display order
DEFAULT_SECTIONS: List[Tuple[str, str, str, str]] = [
    ("work",       "WORK EXPERIENCE", "list",  "right"),
    ("references", "REFERENCES",      "grid",  "right"),
    ("education",  "EDUCATION",       "list",  "left"),
    ("expertise",  "EXPERTISE",       "tags",  "left"),
    ("language",   "LANGUAGE",        "tags",  "left"),
]
DEFAULT_LANGUAGES: List[str] = ["English", "French"]

# (field id, label, flat-document key)
CONTACT_FIELDS: List[Tuple[str, str, str]] = [
    ("phone",   "Phone",   "contactNo"),
    ("email",   "Email",   "email"),
    ("address", "Address", "presentAddress"),
]
PERSONAL_FIELDS: List[Tuple[str, str, str]] = [
    ("father",      "Father's Name",     "fatherName"),
    ("mother",      "Mother's Name",     "motherName"),
    ("dob",         "Date of Birth",     "dateOfBirth"),
    ("gender",      "Gender",            "gender"),
    ("marital",     "Marital Status",    "maritalStatus"),
    ("nationality", "Nationality",       "nationality"),
    ("nid",         "NID",               "nid"),
    ("religion",    "Religion",          "religion"),
    ("perm-addr",   "Permanent Address", "permanentAddress"),
]


def _section(section_id: str, title: str, layout: str, side: str, items=None) -> Dict[str, Any]:
    return {"id": section_id, "title": title, "layout": layout, "side": side, "items": items or []}


def _fields(doc: Dict[str, Any], field_map: List[Tuple[str, str, str]]) -> List[Dict[str, str]]:
    # Empty values are dropped
    fields = [
        {"id": field_id, "label": label, "value": doc.get(key) or ""}
        for field_id, label, key in field_map
    ]
    return [f for f in fields if f["value"]]


def _entries(doc: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    value = doc.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def default_cv(employee_id: str) -> Dict[str, Any]:
    """Blank sectioned CV for an employee, in camelCase wire form."""
    sections = [_section(*row) for row in DEFAULT_SECTIONS]
    language = next(s for s in sections if s["id"] == "language")
    language["items"] = [
        {"id": f"lang-{employee_id}-{i}", "label": name, "value": ""}
        for i, name in enumerate(DEFAULT_LANGUAGES, start=1)
    ]
    return {"employeeId": employee_id, "aboutMe": PLACEHOLDER_ABOUT_ME, "sections": sections}


def upgrade(old: Any) -> Any:
    """
    Convert a flat CV document to the sectioned layout.

    Non-dict or empty input and documents already holding a ``sections`` list are
    returned as-is.  Otherwise the result is the default CV with:
      - a CONTACT section first (phone / email / address, empty values dropped)
      - EDUCATION items from ``educationalQualifications``
      - WORK EXPERIENCE items from ``workExperience``
      - a trailing PERSONAL DETAILS section when any personal field is set
    """
    if not isinstance(old, dict) or not old or isinstance(old.get("sections"), list):
        return old

    cv = default_cv(old.get("employeeId", ""))
    sections = cv["sections"]
    by_id = {s["id"]: s for s in sections}

    sections.insert(0, _section("contact", "CONTACT", "grid", "left", _fields(old, CONTACT_FIELDS)))

    education = _entries(old, "educationalQualifications")
    if education:
        by_id["education"]["items"] = [
            {
                "id": edu.get("id") or f"edu-{i}",
                "title": edu.get("degree") or "",
                "subtitle": edu.get("institution") or "",
                "dateRange": edu.get("year") or "",
                "description": "",
            }
            for i, edu in enumerate(education, start=1)
        ]

    experience = _entries(old, "workExperience")
    if experience:
        by_id["work"]["items"] = [
            {
                "id": exp.get("id") or f"work-{i}",
                "title": exp.get("position") or "",
                "subtitle": exp.get("company") or "",
                "dateRange": exp.get("duration") or "",
                "description": PLACEHOLDER_JOB_DESCRIPTION,
            }
            for i, exp in enumerate(experience, start=1)
        ]

    personal = _fields(old, PERSONAL_FIELDS)
    if personal:
        sections.append(_section("personal", "PERSONAL DETAILS", "grid", "right", personal))

    return cv


def upgrade_all(documents: Any) -> Any:
    """Upgrade every document of a list; anything but a list is left for validation to reject."""
    if not isinstance(documents, list):
        return documents
    return [upgrade(copy.deepcopy(doc)) for doc in documents]
