import csv
import io
import logging

from jobboard.services.validation import (
    NATURE_CATEGORIES,
    OTHER_CATEGORIES,
    VALID_CATEGORIES,
    MAX_OTHER_CATEGORIES,
    ValidationError,
    match_education_requirement,
    match_graduation_years,
)
from jobboard.utils.timeutil import format_ts, parse_datetime

logger = logging.getLogger(__name__)

SUPPORTED_ENCODINGS = ("GBK", "UTF-8")

REQUIRED_COLUMNS = [
    "job_title", "company", "job_location", "job_position",
    "category_id", "post_time", "deadline",
    "job_graduation_year", "job_education_requirement",
]

# Column order of the downloadable template
TEMPLATE_COLUMNS = [
    "job_title", "company", "description", "category_id",
    "post_time", "deadline", "job_location", "job_position",
    "job_major", "job_graduation_year", "job_education_requirement", "application_link",
    "is_pregraduation",
]

_TRUE_VALUES = {"1", "true", "yes", "y", "是"}


def decode_upload(raw: bytes, encoding: str = "GBK") -> str:
    if encoding.upper() not in SUPPORTED_ENCODINGS:
        raise ValidationError([f"Unsupported encoding {encoding}. Use one of: {', '.join(SUPPORTED_ENCODINGS)}"])
    try:
        text = raw.decode(encoding)
    except UnicodeDecodeError as exc:
        raise ValidationError([f"Could not read the file as {encoding.upper()}, try another encoding"]) from exc
    return text.lstrip("\ufeff")


def template_csv() -> str:
    output = io.StringIO()
    csv.writer(output).writerow(TEMPLATE_COLUMNS)
    return output.getvalue()


def _parse_categories(row_no: int, value: str, errors: list[str]) -> list[int] | None:
    category_ids = []
    for part in value.split():
        try:
            category_ids.append(int(part))
        except ValueError:
            errors.append(f"Row {row_no}: invalid category id: {part}")
            return None

    for cid in category_ids:
        if cid not in VALID_CATEGORIES:
            errors.append(f"Row {row_no}: invalid category id: {cid}")
            return None

    ok = True
    if len([cid for cid in category_ids if cid in NATURE_CATEGORIES]) > 1:
        errors.append(f"Row {row_no}: at most one company nature category (1-3) may be selected")
        ok = False
    if len([cid for cid in category_ids if cid in OTHER_CATEGORIES]) > MAX_OTHER_CATEGORIES:
        errors.append(f"Row {row_no}: at most {MAX_OTHER_CATEGORIES} other categories may be selected")
        ok = False
    return category_ids if ok else None


def parse_jobs_csv(text: str) -> tuple[list[dict], list[str]]:
    """Parse and validate a bulk job upload.

    Returns the accepted rows, ready to insert, and a list of row-numbered
    error messages. Rows with errors are left out of the result.
    """
    rows = list(csv.reader(io.StringIO(text.lstrip("\ufeff"))))
    if len(rows) < 2 or not any(any(cell.strip() for cell in row) for row in rows[1:]):
        return [], ["The CSV file contains no data rows"]

    headers = [h.strip() for h in rows[0]]
    missing = [field for field in REQUIRED_COLUMNS if field not in headers]
    if missing:
        return [], [f"The CSV file is missing the required column: {field}" for field in missing]

    accepted: list[dict] = []
    errors: list[str] = []

    for row_no, row in enumerate(rows[1:], start=1):
        values = [v.strip() for v in row]
        if not any(values):
            continue
        if len(values) != len(headers):
            errors.append(
                f"Row {row_no}: has {len(values)} columns but the header has {len(headers)}"
            )
            continue

        record = dict(zip(headers, values))

        absent = next((field for field in REQUIRED_COLUMNS if not record[field]), None)
        if absent:
            errors.append(f"Row {row_no}: missing required field: {absent}")
            continue

        row_ok = True
        category_ids = _parse_categories(row_no, record["category_id"], errors)
        if category_ids is None:
            row_ok = False

        post_time = parse_datetime(record["post_time"])
        if post_time is None:
            errors.append(f"Row {row_no}: invalid post_time date")
            row_ok = False
        deadline = parse_datetime(record["deadline"])
        if deadline is None:
            errors.append(f"Row {row_no}: invalid deadline date")
            row_ok = False
        if post_time and deadline and deadline < post_time:
            errors.append(f"Row {row_no}: deadline is earlier than post_time")
            row_ok = False

        years = match_graduation_years(record["job_graduation_year"])
        if not years:
            errors.append(f"Row {row_no}: unrecognised graduation year: {record['job_graduation_year']}")
            row_ok = False

        education = match_education_requirement(record["job_education_requirement"])
        if education is None:
            errors.append(
                f"Row {row_no}: unrecognised education requirement: {record['job_education_requirement']}"
            )
            row_ok = False

        if not row_ok:
            continue

        accepted.append({
            "job_title": record["job_title"],
            "company": record["company"],
            "description": record.get("description") or None,
            "category_id": category_ids,
            "post_time": format_ts(post_time),
            "deadline": format_ts(deadline),
            "job_location": record["job_location"],
            "job_position": record["job_position"],
            "job_major": record.get("job_major") or None,
            "job_graduation_year": ",".join(years),
            "job_education_requirement": education,
            "application_link": record.get("application_link") or None,
            "is_pregraduation": (record.get("is_pregraduation") or "").lower() in _TRUE_VALUES,
            "is_active": True,
            "views_count": 0,
            "favorites_count": 0,
            "applications_count": 0,
        })

    logger.info("Parsed job CSV: %d rows accepted, %d errors", len(accepted), len(errors))
    return accepted, errors
