"""Rules shared by the admin job form and the bulk CSV import."""
import re

from jobboard.utils.timeutil import parse_datetime

NATURE_CATEGORIES = (1, 2, 3)
OTHER_CATEGORIES = tuple(range(4, 19))
VALID_CATEGORIES = NATURE_CATEGORIES + OTHER_CATEGORIES
MAX_OTHER_CATEGORIES = 2

# Listing-only categories, not stored on jobs
NEW_IN_24H_CATEGORY = 19
PREGRADUATION_CATEGORY = 20

# Canonical values, stored verbatim
GRADUATION_YEARS = ["22届", "23届", "24届", "25届", "26届", "27届", "28届", "海外往届"]
OVERSEAS_GRADUATES = "海外往届"
EDUCATION_REQUIREMENTS = ["本科", "研究生", "本科及研究生以上", "研究生及以上"]

_WHITESPACE = re.compile(r"\s+")


class ValidationError(ValueError):
    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors))
        self.errors = errors


def _normalise(value: str) -> str:
    return _WHITESPACE.sub("", value.lower())


def match_graduation_years(value: str) -> list[str]:
    """Map free text such as "24、25届毕业生" onto canonical graduation years."""
    text = _normalise(value)
    result = []
    for year in GRADUATION_YEARS:
        if year.lower() in text:
            result.append(year)
        elif year != OVERSEAS_GRADUATES:
            if year.replace("届", "") in text and ("届" in text or "毕业生" in text):
                result.append(year)
        elif "海外" in text and ("往届" in text or "毕业生" in text):
            result.append(year)
    return result


def match_education_requirement(value: str) -> str | None:
    text = _normalise(value)
    for edu in EDUCATION_REQUIREMENTS:
        if text == edu.lower():
            return edu

    if "研究生" in text and "以上" in text:
        return "研究生及以上"
    if "本科" in text and "研究生" in text and ("以上" in text or "及" in text):
        return "本科及研究生以上"
    if "本科" in text and "研究生" not in text:
        return "本科"
    if "研究生" in text and "本科" not in text:
        return "研究生"
    return None


def category_errors(category_ids: list[int], require_nature: bool = True) -> list[str]:
    errors = []
    invalid = [cid for cid in category_ids if cid not in VALID_CATEGORIES]
    if invalid:
        errors.append(f"Invalid category id: {invalid[0]}")
        return errors

    nature = [cid for cid in category_ids if cid in NATURE_CATEGORIES]
    other = [cid for cid in category_ids if cid in OTHER_CATEGORIES]
    if len(nature) > 1:
        errors.append("At most one company nature category (1-3) may be selected")
    elif require_nature and not nature:
        errors.append("Select one company nature category (1-3)")
    if len(other) > MAX_OTHER_CATEGORIES:
        errors.append(f"At most {MAX_OTHER_CATEGORIES} other categories may be selected")
    return errors


def job_form_errors(data: dict) -> list[str]:
    errors = []
    for field, label in [
        ("job_title", "job title"),
        ("company", "company"),
        ("job_location", "job location"),
        ("job_position", "job position"),
    ]:
        if not (data.get(field) or "").strip():
            errors.append(f"Enter the {label}")

    category_ids = data.get("category_id") or []
    if not category_ids:
        errors.append("Select at least one category")
    else:
        errors.extend(category_errors(category_ids))

    post_time = parse_datetime(data.get("post_time"))
    deadline = parse_datetime(data.get("deadline"))
    if not data.get("post_time"):
        errors.append("Choose a post time")
    elif post_time is None:
        errors.append("Post time is not a valid date")
    if not data.get("deadline"):
        errors.append("Choose a deadline")
    elif deadline is None:
        errors.append("Deadline is not a valid date")
    if post_time and deadline and deadline < post_time:
        errors.append("Deadline cannot be earlier than the post time")

    years = data.get("job_graduation_year") or []
    if not years:
        errors.append("Select at least one graduation year")
    else:
        unknown = [y for y in years if y not in GRADUATION_YEARS]
        if unknown:
            errors.append(f"Unknown graduation year: {unknown[0]}")

    if data.get("job_education_requirement") not in EDUCATION_REQUIREMENTS:
        errors.append("Choose an education requirement")
    return errors
