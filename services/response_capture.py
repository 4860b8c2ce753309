"""
Response capture: validation and normalization of intake answers.

Pure functions, no persistence. `template` is anything with a `questions`
sequence whose items expose `id`, `kind`, `options` and `required`: an
`IntakeMeetingTemplate` row or a session's `TemplateSnapshot`.

Answers are a tagged union discriminated on the question kind and are stored
on the session as `{"kind": ..., "value": ...}` JSON.
"""

import math
import re
from datetime import date, datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from models.intake_meeting_question import QuestionKind
from utils.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class TextAnswer(BaseModel):
    kind: Literal["text", "textarea"]
    value: str


class NumberAnswer(BaseModel):
    kind: Literal["number"] = "number"
    value: Union[int, float]


class DateAnswer(BaseModel):
    kind: Literal["date"] = "date"
    value: date


class SingleSelectAnswer(BaseModel):
    kind: Literal["select"] = "select"
    value: str


class MultiSelectAnswer(BaseModel):
    kind: Literal["multiselect"] = "multiselect"
    value: List[str]


Answer = Annotated[
    Union[TextAnswer, NumberAnswer, DateAnswer, SingleSelectAnswer, MultiSelectAnswer],
    Field(discriminator="kind"),
]

_answer_adapter = TypeAdapter(Answer)


class CaptureResult(BaseModel):
    """Outcome of a batch capture; each field is validated independently"""
    # question id -> answer (None means the answer was cleared)
    accepted: Dict[str, Optional[Answer]] = Field(default_factory=dict)
    # question id -> error message
    errors: Dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def answer_to_json(answer: Answer) -> Dict[str, Any]:
    """Serialize an answer for the session's JSON response map."""
    return answer.model_dump(mode="json")


def answer_from_json(data: Dict[str, Any]) -> Answer:
    return _answer_adapter.validate_python(data)


# ============ CAPTURE ============

def _is_blank(raw_value: Any) -> bool:
    if raw_value is None:
        return True
    if isinstance(raw_value, str) and not raw_value.strip():
        return True
    if isinstance(raw_value, (list, tuple)) and len(raw_value) == 0:
        return True
    return False


def _find_question(template, question_id: str):
    for question in template.questions:
        if str(question.id) == str(question_id):
            return question
    return None


def _invalid(question_id: str, message: str) -> ValidationError:
    return ValidationError(message, details={str(question_id): message})


def _parse_number(question_id: str, raw_value: Any) -> Union[int, float]:
    # bool is an int subclass; "true" is not a number answer
    if isinstance(raw_value, bool):
        raise _invalid(question_id, "Expected a number")

    if isinstance(raw_value, int):
        return raw_value

    if isinstance(raw_value, float):
        number = raw_value
    elif isinstance(raw_value, str):
        text = raw_value.strip().replace(",", "")
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            raise _invalid(question_id, f"'{raw_value}' is not a number")
    else:
        raise _invalid(question_id, "Expected a number")

    if not math.isfinite(number):
        raise _invalid(question_id, "Number must be finite")
    return number


def _parse_date(question_id: str, raw_value: Any) -> date:
    if isinstance(raw_value, datetime):
        return raw_value.date()
    if isinstance(raw_value, date):
        return raw_value
    if not isinstance(raw_value, str):
        raise _invalid(question_id, "Expected a date (YYYY-MM-DD)")

    text = raw_value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        # Accept full ISO datetimes and keep their calendar date
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise _invalid(question_id, f"'{raw_value}' is not a valid calendar date")


def _option_list(question) -> List[str]:
    return list(question.options or [])


def capture_response(template, question_id: str, raw_value: Any) -> Optional[Answer]:
    """
    Validate and normalize one answer.

    Args:
        template: Template or snapshot that defines the question
        question_id: Question identifier
        raw_value: Value as entered

    Returns:
        Normalized answer, or None when the value is blank (clears the answer)

    Raises:
        ValidationError: Unknown question or a value that does not fit its kind
    """
    question = _find_question(template, question_id)
    if question is None:
        raise _invalid(question_id, f"Unknown question: {question_id}")

    if _is_blank(raw_value):
        return None

    kind = QuestionKind(question.kind)

    if kind in (QuestionKind.SHORT_TEXT, QuestionKind.LONG_TEXT):
        if not isinstance(raw_value, str):
            raise _invalid(question_id, "Expected text")
        return TextAnswer(kind=kind.value, value=raw_value.strip())

    if kind == QuestionKind.NUMERIC:
        return NumberAnswer(value=_parse_number(question_id, raw_value))

    if kind == QuestionKind.DATE:
        return DateAnswer(value=_parse_date(question_id, raw_value))

    options = _option_list(question)

    if kind == QuestionKind.SINGLE_SELECT:
        if not isinstance(raw_value, str):
            raise _invalid(question_id, "Expected one of the listed options")
        value = raw_value.strip()
        if value not in options:
            raise _invalid(question_id, f"'{value}' is not one of the listed options")
        return SingleSelectAnswer(value=value)

    # MULTI_SELECT
    if not isinstance(raw_value, (list, tuple)):
        raise _invalid(question_id, "Expected a list of options")
    selected: List[str] = []
    for item in raw_value:
        if not isinstance(item, str) or item.strip() not in options:
            raise _invalid(question_id, f"'{item}' is not one of the listed options")
        if item.strip() not in selected:
            selected.append(item.strip())
    return MultiSelectAnswer(value=selected)


def capture_responses(template, raw_values: Dict[str, Any]) -> CaptureResult:
    """Capture many answers; one invalid field never aborts the rest."""
    result = CaptureResult()
    for question_id, raw_value in raw_values.items():
        try:
            result.accepted[str(question_id)] = capture_response(template, question_id, raw_value)
        except ValidationError as e:
            result.errors[str(question_id)] = e.message
    return result


# ============ COMPLETENESS ============

def _stored_value(entry: Any) -> Any:
    if isinstance(entry, dict) and "value" in entry:
        return entry["value"]
    return entry


def _has_valid_answer(template, question, responses: Dict[str, Any]) -> bool:
    entry = responses.get(str(question.id))
    if entry is None:
        return False
    try:
        return capture_response(template, str(question.id), _stored_value(entry)) is not None
    except ValidationError:
        return False


def missing_required_questions(template, responses: Dict[str, Any]) -> List[str]:
    """Ids of required questions without a usable answer, in question order."""
    return [
        str(question.id)
        for question in template.questions
        if question.required and not _has_valid_answer(template, question, responses)
    ]


def is_session_complete(template, responses: Dict[str, Any]) -> bool:
    return not missing_required_questions(template, responses)


# ============ EMAIL ============

def capture_email(raw: Any) -> str:
    """
    Normalize an email address.

    Raises:
        ValidationError: Value is not an address-shaped string
    """
    if not isinstance(raw, str):
        raise ValidationError("Email address must be a string", details={"email": "invalid"})
    email = raw.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError(f"Invalid email address: {raw}", details={"email": raw})
    return email
