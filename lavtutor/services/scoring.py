"""
Assessment Scoring

Improvement percentage from pre/post test scores, satisfaction survey
validation, and rating averages used by the report screens.

Improvement formula:
    pre_total > 0      -> (post - pre) / pre_total * 100
    pre == 0           -> 100 if post > 0 else 0
    otherwise          -> (post - pre) / pre * 100

Missing or non-numeric scores yield None (no data), never 0.
"""
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from lavtutor.errors import ValidationFailed
from lavtutor.models.evaluation import TUTOR_RATING_FIELDS, LAV_RATING_FIELDS

RATING_VALUES = ("1", "2", "3", "4", "5", "N/A")

RATING_LABELS = {
    "5": "Outstanding",
    "4": "Very Satisfactory",
    "3": "Satisfactory",
    "2": "Needs Improvement",
    "1": "Poor",
    "N/A": "Not Applicable",
}


def _to_number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


def compute_improvement(pre_score: Any, post_score: Any, pre_total: Any = None) -> Optional[float]:
    """
    Percentage improvement from pre-test to post-test.

    Args:
        pre_score: Pre-test score
        post_score: Post-test score
        pre_total: Pre-test item count; when positive, improvement is
            measured against it instead of the pre-test score

    Returns:
        Improvement percentage, or None if either score is missing
    """
    pre = _to_number(pre_score)
    post = _to_number(post_score)
    if pre is None or post is None:
        return None

    total = _to_number(pre_total)
    if total is not None and math.isfinite(total) and total > 0:
        return (post - pre) / total * 100

    if pre == 0:
        return 100.0 if post > 0 else 0.0

    return (post - pre) / pre * 100


def format_improvement(value: Optional[float]) -> str:
    """Display form: '↑ 30.0%', '↓ 12.5%' or '-'"""
    if value is None:
        return "-"
    arrow = "↑" if value >= 0 else "↓"
    return f"{arrow} {abs(value):.1f}%"


def average_improvement(rows: Iterable[Mapping[str, Any]]) -> Optional[float]:
    """Mean improvement across evaluation rows, skipping rows without scores"""
    values = [
        compute_improvement(row.get("pre_test_score"), row.get("post_test_score"), row.get("pre_test_total"))
        for row in rows
    ]
    values = [value for value in values if value is not None]
    if not values:
        return None
    return round(sum(values) / len(values), 2)


def validate_scores(
    pre_score: Any,
    post_score: Any,
    pre_total: Any = None,
    post_total: Any = None,
) -> Dict[str, Optional[float]]:
    """
    Validate tutor-entered test scores.

    Scores are required and non-negative; totals are optional but a score
    may not exceed its total.
    """
    pre = _to_number(pre_score)
    post = _to_number(post_score)
    if pre is None or post is None:
        raise ValidationFailed("Pre-test and post-test scores are required.", details={"field": "scores"})
    if pre < 0 or post < 0:
        raise ValidationFailed("Scores cannot be negative.", details={"field": "scores"})

    totals = {"pre_test_total": _to_number(pre_total), "post_test_total": _to_number(post_total)}
    for field, score, total in (
        ("pre_test_total", pre, totals["pre_test_total"]),
        ("post_test_total", post, totals["post_test_total"]),
    ):
        if total is None:
            continue
        if total <= 0:
            raise ValidationFailed("Score totals must be positive.", details={"field": field})
        if score > total:
            raise ValidationFailed("A score cannot be higher than its total.", details={"field": field})

    return {
        "pre_test_score": pre,
        "post_test_score": post,
        "pre_test_total": totals["pre_test_total"],
        "post_test_total": totals["post_test_total"],
    }


def normalize_rating(value: Any) -> Optional[str]:
    """Map 5, '5', 'n/a' to the stored rating text; None when invalid/missing"""
    if value is None:
        return None
    text = str(value).strip()
    if text.upper() == "N/A":
        return "N/A"
    if text in RATING_VALUES:
        return text
    number = _to_number(text)
    if number is not None and number.is_integer() and 1 <= number <= 5:
        return str(int(number))
    return None


def validate_survey(answers: Mapping[str, Any]) -> Dict[str, str]:
    """
    Completion gate: all five tutor ratings and all five organization
    ratings must be answered (1-5 or N/A).

    Returns:
        Normalized ratings keyed by field name

    Raises:
        ValidationFailed: listing every missing or invalid field
    """
    normalized = {}
    missing = []
    for field in TUTOR_RATING_FIELDS + LAV_RATING_FIELDS:
        rating = normalize_rating(answers.get(field))
        if rating is None:
            missing.append(field)
        else:
            normalized[field] = rating

    if missing:
        raise ValidationFailed(
            "Please answer all evaluation questions before submitting.",
            details={"missing": missing},
        )
    return normalized


def _field_value(evaluation: Any, field: str) -> Any:
    if isinstance(evaluation, Mapping):
        return evaluation.get(field)
    return getattr(evaluation, field, None)


def rating_averages(evaluations: Iterable[Any], fields: Sequence[str]) -> Dict[str, Any]:
    """
    Average each rating field over evaluations, skipping N/A and blanks.

    Returns:
        {"averages": {field: float | None}, "overall_average": float | None,
         "responses": int}
    """
    totals = {field: [0.0, 0] for field in fields}
    responses = 0
    for evaluation in evaluations:
        answered = False
        for field in fields:
            value = _to_number(_field_value(evaluation, field))
            if value is None:
                continue
            totals[field][0] += value
            totals[field][1] += 1
            answered = True
        if answered:
            responses += 1

    averages = {
        field: round(total / count, 2) if count else None
        for field, (total, count) in totals.items()
    }
    overall_sum = sum(total for total, _ in totals.values())
    overall_count = sum(count for _, count in totals.values())
    return {
        "averages": averages,
        "overall_average": round(overall_sum / overall_count, 2) if overall_count else None,
        "responses": responses,
    }


def tutor_rating_averages(evaluations: List[Any]) -> Dict[str, Any]:
    return rating_averages(evaluations, TUTOR_RATING_FIELDS)


def lav_rating_averages(evaluations: List[Any]) -> Dict[str, Any]:
    return rating_averages(evaluations, LAV_RATING_FIELDS)
