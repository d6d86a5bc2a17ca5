from typing import List

from pydantic import BaseModel, Field, ValidationError, field_validator

from quiz.exceptions import QuizValidationError


class AnswerPayload(BaseModel):
    answer_text: str
    is_correct: bool = False


class QuestionPayload(BaseModel):
    question_text: str = Field(min_length=1)
    answers: List[AnswerPayload] = []


class QuizPayload(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ''
    questions: List[QuestionPayload] = []

    @field_validator('title')
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Title must not be blank')
        return value

    @field_validator('description', mode='before')
    @classmethod
    def none_description_is_empty(cls, value):
        return '' if value is None else value


def format_errors(error: ValidationError) -> List[str]:
    details = []
    for err in error.errors():
        location = '.'.join(str(part) for part in err['loc'])
        details.append(f"{location}: {err['msg']}")
    return details


def parse_quiz_payload(data) -> QuizPayload:
    if isinstance(data, QuizPayload):
        return data

    try:
        return QuizPayload.model_validate(data)
    except ValidationError as e:
        raise QuizValidationError('Invalid quiz payload', details=format_errors(e)) from e
