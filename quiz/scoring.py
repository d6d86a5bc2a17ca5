import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction

from quiz.exceptions import PersistenceError, QuizNotFound, QuizValidationError
from quiz.models import Quiz, QuizAttempt
from quiz.repository import QuizRepository, coerce_quiz_id

logger = logging.getLogger("django_quiz")

ANSWERS_FORMAT_VERSION = 1

TWO_PLACES = Decimal('0.01')


def find_correct_answer(question: dict):
    # first answer flagged correct wins when a question has several
    for answer in question.get('answers', []):
        if answer.get('is_correct'):
            return answer
    return None


def count_correct(quiz: dict, selections: dict) -> int:
    selections = {str(k): str(v) for k, v in (selections or {}).items() if v is not None}

    correct = 0

    for question in quiz.get('questions', []):
        selected_answer_id = selections.get(str(question['id']))

        if not selected_answer_id:
            continue

        correct_answer = find_correct_answer(question)

        if correct_answer and str(correct_answer['id']) == selected_answer_id:
            correct += 1

    return correct


def calculate_score(quiz: dict, selections: dict) -> Decimal:
    """
    Percentage of the quiz's questions whose selected answer is the correct one.

    ``quiz`` is the nested structure returned by ``QuizRepository.get`` and ``selections`` maps
    question id to selected answer id. Unanswered questions, questions without a correct answer
    and selections pointing at an answer of another question all score nothing.
    A quiz with no questions scores 0.
    """
    total = len(quiz.get('questions', []))

    if total == 0:
        return Decimal('0.00')

    correct = count_correct(quiz, selections)

    return (Decimal(correct) * 100 / Decimal(total)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def validate_score(score) -> Decimal:
    """Percentage score as a 2dp ``Decimal`` in [0, 100], or ``QuizValidationError``."""
    if score is None or isinstance(score, bool):
        raise QuizValidationError("Invalid score", details=[f"score must be a number, got {score!r}"])

    try:
        value = Decimal(str(score))
    except (InvalidOperation, TypeError, ValueError):
        raise QuizValidationError("Invalid score", details=[f"score must be a number, got {score!r}"])

    if not value.is_finite() or not Decimal(0) <= value <= Decimal(100):
        raise QuizValidationError("Invalid score", details=[f"score must be between 0 and 100, got {score!r}"])

    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def record_attempt(quiz_id, user, score, selections, using=DEFAULT_DB_ALIAS):
    quiz_id = coerce_quiz_id(quiz_id)
    score = validate_score(score)

    if user is not None and not user.is_authenticated:
        user = None

    attempt = QuizAttempt(
        quiz_id=quiz_id,
        user=user,
        score=score,
        answers={'version': ANSWERS_FORMAT_VERSION,
                 'selections': {str(k): v if v is None else str(v) for k, v in (selections or {}).items()}},
    )

    try:
        with transaction.atomic(using=using):
            if not Quiz.objects.using(using).filter(pk=quiz_id).exists():
                raise QuizNotFound(quiz_id)

            attempt.save(using=using)
    except DatabaseError as e:
        logger.error(e)
        raise PersistenceError("Error saving quiz attempt") from e

    logger.info(f"Recorded attempt {attempt.id} on quiz {quiz_id} with score {attempt.score}")
    return attempt.id


def submit_attempt(quiz_id, user, selections, client_score=None, using=DEFAULT_DB_ALIAS) -> dict:
    quiz = QuizRepository(using=using).get(quiz_id)

    score = calculate_score(quiz, selections)

    if client_score is not None and str(client_score) != str(score):
        logger.debug(f"Ignoring client score {client_score} for quiz {quiz_id}, recomputed {score}")

    attempt_id = record_attempt(quiz_id, user, score, selections, using=using)

    return {
        'id': str(attempt_id),
        'quiz_id': quiz['id'],
        'score': float(score),
        'correct': count_correct(quiz, selections),
        'total': len(quiz['questions']),
    }
