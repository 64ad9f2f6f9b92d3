"""
Per-question-type strategies.

Every supported question type registers one provider that knows how to
validate and normalize a learner's raw answer, score a normalized answer,
validate a question definition, and strip answer keys before a question is
shown to learners. Normalized answers are always lists of strings.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from lms_quiz.models import QuestionType


DEFAULT_POINTS = 1
MAX_SHORT_ANSWER_LENGTH = 1000


class ValidationResult(BaseModel):
    is_valid: bool
    errors: List[str] = []


class AnswerValidationResult(ValidationResult):
    normalized_answer: Optional[List[str]] = None


class AnswerScoringResult(BaseModel):
    is_correct: bool
    score: float
    feedback: str


# ---------------------------
# Question definition schemas
# ---------------------------
class BaseQuestionSchema(BaseModel):
    text: str = Field(min_length=1, max_length=2000)
    points: int = Field(default=DEFAULT_POINTS, ge=1, le=100)
    explanation: Optional[str] = Field(default=None, max_length=2000)


class OptionSchema(BaseModel):
    uid: str = Field(min_length=1)
    text: str = Field(min_length=1)
    is_correct: bool = False
    order: Optional[int] = None


class MultipleChoiceQuestionSchema(BaseQuestionSchema):
    options: List[OptionSchema] = Field(min_length=2)
    correct_answers: List[str] = []

    @model_validator(mode="after")
    def check_options(self):
        uids = [opt.uid for opt in self.options]
        if len(set(uids)) != len(uids):
            raise ValueError("Option ids must be unique")
        correct = set(self.correct_answers) or {opt.uid for opt in self.options if opt.is_correct}
        if not correct:
            raise ValueError("At least one option must be correct")
        unknown = correct - set(uids)
        if unknown:
            raise ValueError(f"Correct answer refers to unknown option: {sorted(unknown)[0]}")
        return self


class ShortAnswerQuestionSchema(BaseQuestionSchema):
    correct_answers: List[str] = Field(min_length=1)


def _field(question: Any, name: str, default=None):
    if isinstance(question, dict):
        value = question.get(name, default)
    else:
        value = getattr(question, name, default)
    return default if value is None else value


def question_points(question: Any) -> int:
    points = _field(question, "points")
    return DEFAULT_POINTS if points is None else points


def question_to_dict(question: Any) -> Dict[str, Any]:
    """Plain dict view of a question row, safe to hand to response models."""
    question_id = _field(question, "id")
    question_type = _field(question, "type")
    return {
        "id": str(question_id) if question_id is not None else None,
        "text": _field(question, "text", ""),
        "type": getattr(question_type, "value", question_type),
        "points": question_points(question),
        "explanation": _field(question, "explanation"),
        "options": [dict(opt) for opt in _field(question, "options", [])],
        "correct_answers": list(_field(question, "correct_answers", [])),
        "settings": dict(_field(question, "settings", {})),
    }


class BaseQuestionProvider(ABC):
    type: QuestionType
    display_name: str
    description: str
    specific_schema = BaseQuestionSchema

    @abstractmethod
    def validate_answer_specific(self, answer: Any, question: Any) -> List[str]:
        ...

    @abstractmethod
    def normalize_answer(self, answer: List[str], question: Any) -> List[str]:
        ...

    @abstractmethod
    def is_answer_correct(self, answer: Any, question: Any) -> bool:
        ...

    def coerce_answer(self, answer: Any) -> Any:
        if isinstance(answer, str):
            return [answer]
        if isinstance(answer, tuple):
            return list(answer)
        return answer

    def validate_question(self, question: Dict[str, Any]) -> ValidationResult:
        try:
            self.specific_schema.model_validate(question)
        except ValidationError as exc:
            return ValidationResult(
                is_valid=False,
                errors=[_clean_message(err["msg"]) for err in exc.errors()],
            )
        return ValidationResult(is_valid=True)

    def validate_answer(self, answer: Any, question: Any) -> AnswerValidationResult:
        if answer is None:
            return AnswerValidationResult(is_valid=False, errors=["Answer is required"])

        answer = self.coerce_answer(answer)
        errors = self.validate_answer_specific(answer, question)
        if errors:
            return AnswerValidationResult(is_valid=False, errors=errors)

        return AnswerValidationResult(
            is_valid=True,
            normalized_answer=self.normalize_answer(answer, question),
        )

    def calculate_score(self, answer: Any, question: Any) -> float:
        if not answer or question is None:
            return 0
        return question_points(question) if self.is_answer_correct(answer, question) else 0

    def get_scoring_result(self, answer: Any, question: Any) -> AnswerScoringResult:
        is_correct = bool(answer) and self.is_answer_correct(answer, question)
        return AnswerScoringResult(
            is_correct=is_correct,
            score=self.calculate_score(answer, question),
            feedback="Correct!" if is_correct else "Incorrect",
        )

    def process_question_for_display(self, question: Any, hide_answers: bool = True) -> Dict[str, Any]:
        processed = question_to_dict(question)
        if hide_answers:
            processed.pop("correct_answers", None)
            processed.pop("explanation", None)
        return processed

    def get_default_settings(self) -> Dict[str, Any]:
        return {"points": DEFAULT_POINTS, "shuffle_options": True}


def _clean_message(message: str) -> str:
    # pydantic prefixes errors raised inside validators
    prefix = "Value error, "
    return message[len(prefix):] if message.startswith(prefix) else message


class MultipleChoiceProvider(BaseQuestionProvider):
    type = QuestionType.MULTIPLE_CHOICE
    display_name = "Multiple Choice"
    description = "Pick one or more options from a list"
    specific_schema = MultipleChoiceQuestionSchema

    def _options(self, question: Any) -> List[Dict[str, Any]]:
        options = list(_field(question, "options", []))
        return sorted(
            options,
            key=lambda opt: opt.get("order") if opt.get("order") is not None else options.index(opt),
        )

    def correct_option_ids(self, question: Any) -> List[str]:
        correct = list(_field(question, "correct_answers", []))
        if correct:
            return [str(uid) for uid in correct]
        return [opt["uid"] for opt in self._options(question) if opt.get("is_correct")]

    def validate_answer_specific(self, answer: Any, question: Any) -> List[str]:
        if not isinstance(answer, list) or not all(isinstance(uid, str) for uid in answer):
            return ["Answer must be a list of option ids"]
        if not answer:
            return ["At least one option must be selected"]

        known = {opt["uid"] for opt in self._options(question)}
        errors = [f"Invalid option: {uid}" for uid in dict.fromkeys(answer) if uid not in known]

        settings = _field(question, "settings", {})
        if (
            len(set(answer)) > 1
            and len(self.correct_option_ids(question)) == 1
            and not settings.get("allow_multiple")
        ):
            errors.append("Only one option can be selected")
        return errors

    def normalize_answer(self, answer: List[str], question: Any) -> List[str]:
        selected = set(answer)
        return [opt["uid"] for opt in self._options(question) if opt["uid"] in selected]

    def is_answer_correct(self, answer: Any, question: Any) -> bool:
        answer = self.coerce_answer(answer)
        if not isinstance(answer, list) or not answer:
            return False
        return set(answer) == set(self.correct_option_ids(question))

    def process_question_for_display(self, question: Any, hide_answers: bool = True) -> Dict[str, Any]:
        processed = super().process_question_for_display(question, hide_answers)
        options = [dict(opt) for opt in self._options(question)]
        if hide_answers:
            for opt in options:
                opt.pop("is_correct", None)
        processed["options"] = options
        return processed

    def get_default_settings(self) -> Dict[str, Any]:
        settings = super().get_default_settings()
        settings["allow_multiple"] = False
        return settings


class ShortAnswerProvider(BaseQuestionProvider):
    type = QuestionType.SHORT_ANSWER
    display_name = "Short Answer"
    description = "Type a short free-text answer"
    specific_schema = ShortAnswerQuestionSchema

    def validate_answer_specific(self, answer: Any, question: Any) -> List[str]:
        if not isinstance(answer, list) or len(answer) != 1 or not isinstance(answer[0], str):
            return ["Answer must be text"]
        text = answer[0].strip()
        if not text:
            return ["Answer cannot be empty"]
        if len(text) > MAX_SHORT_ANSWER_LENGTH:
            return ["Answer is too long"]
        return []

    def normalize_answer(self, answer: List[str], question: Any) -> List[str]:
        return [answer[0].strip()]

    def _comparable(self, text: str, case_sensitive: bool) -> str:
        text = text.strip()
        return text if case_sensitive else text.lower()

    def is_answer_correct(self, answer: Any, question: Any) -> bool:
        answer = self.coerce_answer(answer)
        if not isinstance(answer, list) or not answer or not isinstance(answer[0], str):
            return False
        case_sensitive = bool(_field(question, "settings", {}).get("case_sensitive"))
        given = self._comparable(answer[0], case_sensitive)
        accepted = {
            self._comparable(str(candidate), case_sensitive)
            for candidate in _field(question, "correct_answers", [])
        }
        return bool(given) and given in accepted

    def process_question_for_display(self, question: Any, hide_answers: bool = True) -> Dict[str, Any]:
        processed = super().process_question_for_display(question, hide_answers)
        processed["options"] = []
        return processed

    def get_default_settings(self) -> Dict[str, Any]:
        settings = super().get_default_settings()
        settings["case_sensitive"] = False
        settings.pop("shuffle_options", None)
        return settings


class QuestionProviderFactory:
    providers: Dict[str, BaseQuestionProvider] = {
        QuestionType.MULTIPLE_CHOICE.value: MultipleChoiceProvider(),
        QuestionType.SHORT_ANSWER.value: ShortAnswerProvider(),
    }

    @classmethod
    def get_provider(cls, question_type) -> Optional[BaseQuestionProvider]:
        if question_type is None:
            return None
        return cls.providers.get(getattr(question_type, "value", question_type))

    @classmethod
    def supported_types(cls) -> List[str]:
        return list(cls.providers)

    @classmethod
    def validate_question(cls, question: Dict[str, Any]) -> ValidationResult:
        question_type = question.get("type")
        if not question_type:
            return ValidationResult(is_valid=False, errors=["Question type is required"])

        provider = cls.get_provider(question_type)
        if not provider:
            return ValidationResult(
                is_valid=False,
                errors=[f"Unsupported question type: {getattr(question_type, 'value', question_type)}"],
            )
        return provider.validate_question(question)

    @classmethod
    def calculate_score(cls, question_type, answer: Any, question: Any) -> float:
        provider = cls.get_provider(question_type)
        if not provider:
            return 0
        return provider.calculate_score(answer, question)

    @classmethod
    def process_question_for_display(cls, question_type, question: Any, hide_answers: bool = True) -> Dict[str, Any]:
        provider = cls.get_provider(question_type)
        if not provider:
            return question_to_dict(question)
        return provider.process_question_for_display(question, hide_answers)

    @classmethod
    def get_default_settings(cls, question_type) -> Dict[str, Any]:
        provider = cls.get_provider(question_type)
        return provider.get_default_settings() if provider else {}

    @classmethod
    def get_question_metadata(cls, question_type) -> Optional[Dict[str, str]]:
        provider = cls.get_provider(question_type)
        if not provider:
            return None
        return {
            "type": provider.type.value,
            "display_name": provider.display_name,
            "description": provider.description,
        }


def get_provider(question_type) -> Optional[BaseQuestionProvider]:
    return QuestionProviderFactory.get_provider(question_type)
