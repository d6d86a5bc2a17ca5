import logging
import uuid

from django.db import DEFAULT_DB_ALIAS, DatabaseError, transaction
from django.db.models import Count

from quiz.exceptions import PersistenceError, QuizNotFound
from quiz.models import Quiz, Question, Answer
from quiz.schemas import parse_quiz_payload

logger = logging.getLogger("django_quiz")


def coerce_quiz_id(quiz_id) -> uuid.UUID:
    if isinstance(quiz_id, uuid.UUID):
        return quiz_id
    try:
        return uuid.UUID(str(quiz_id))
    except ValueError:
        raise QuizNotFound(quiz_id)


def serialize_quiz(quiz: Quiz, question_count=None, include_creator=True) -> dict:
    data = {
        'id': str(quiz.id),
        'title': quiz.title,
        'description': quiz.description,
        'user_id': quiz.user_id,
        'created_at': quiz.created_at.isoformat() if quiz.created_at else None,
    }
    if include_creator:
        data['creator_email'] = quiz.user.email if quiz.user_id else None
    if question_count is not None:
        data['question_count'] = question_count
    return data


class QuizRepository:
    """
    Create, read, replace and delete a quiz together with its questions and answers.

    Every write runs inside a single transaction on the database alias given as ``using``,
    so a failure at any row leaves no partial quiz behind.
    """

    def __init__(self, using=DEFAULT_DB_ALIAS):
        self.using = using

    def create(self, payload, owner) -> uuid.UUID:
        quiz_payload = parse_quiz_payload(payload)

        logger.debug(quiz_payload)

        try:
            with transaction.atomic(using=self.using):
                quiz = Quiz(title=quiz_payload.title, description=quiz_payload.description, user=owner)
                quiz.save(using=self.using)
                self._insert_questions(quiz, quiz_payload.questions)
        except DatabaseError as e:
            logger.error(e)
            raise PersistenceError("Error creating quiz") from e

        logger.info(f"Created quiz {quiz.id} with {len(quiz_payload.questions)} questions")
        return quiz.id

    def update(self, quiz_id, owner, payload) -> None:
        """
        Replace title, description and the whole question/answer tree of an owned quiz.

        Existing questions and answers are deleted and the new ones inserted with fresh ids.
        The quiz row is locked for the duration so concurrent updates of one quiz run one after another.
        """
        quiz_id = coerce_quiz_id(quiz_id)
        quiz_payload = parse_quiz_payload(payload)

        try:
            with transaction.atomic(using=self.using):
                quiz = (Quiz.objects.using(self.using).select_for_update()
                        .filter(pk=quiz_id, user=owner).first())

                if quiz is None:
                    raise QuizNotFound(quiz_id)

                quiz.title = quiz_payload.title
                quiz.description = quiz_payload.description
                quiz.save(using=self.using, update_fields=['title', 'description'])

                Answer.objects.using(self.using).filter(question__quiz=quiz).delete()
                Question.objects.using(self.using).filter(quiz=quiz).delete()

                self._insert_questions(quiz, quiz_payload.questions)
        except DatabaseError as e:
            logger.error(e)
            raise PersistenceError("Error updating quiz") from e

        logger.info(f"Updated quiz {quiz_id}")

    def get(self, quiz_id) -> dict:
        quiz_id = coerce_quiz_id(quiz_id)

        try:
            with transaction.atomic(using=self.using):
                quiz = Quiz.objects.using(self.using).select_related('user').filter(pk=quiz_id).first()

                if quiz is None:
                    raise QuizNotFound(quiz_id)

                quiz_data = serialize_quiz(quiz)
                quiz_data['questions'] = []

                questions = Question.objects.using(self.using).filter(quiz=quiz).order_by('question_number')

                for question in questions:
                    answers = Answer.objects.using(self.using).filter(question=question).order_by('answer_number')
                    quiz_data['questions'].append({
                        'id': str(question.id),
                        'quiz_id': str(quiz.id),
                        'question_text': question.question_text,
                        'answers': [
                            {
                                'id': str(answer.id),
                                'question_id': str(question.id),
                                'answer_text': answer.answer_text,
                                'is_correct': answer.is_correct,
                            }
                            for answer in answers
                        ],
                    })
        except DatabaseError as e:
            logger.error(e)
            raise PersistenceError("Error fetching quiz") from e

        return quiz_data

    def delete(self, quiz_id, owner) -> None:
        # questions and answers go with the quiz through their CASCADE foreign keys
        quiz_id = coerce_quiz_id(quiz_id)

        try:
            with transaction.atomic(using=self.using):
                deleted, _ = Quiz.objects.using(self.using).filter(pk=quiz_id, user=owner).delete()
        except DatabaseError as e:
            logger.error(e)
            raise PersistenceError("Error deleting quiz") from e

        if deleted == 0:
            raise QuizNotFound(quiz_id)

        logger.info(f"Deleted quiz {quiz_id}")

    def list(self, owner) -> dict:
        """
        All quizzes, the owner's quizzes and global counts.

        The three reads are independent, a write landing between them may show up in one and not the others.
        """
        try:
            quizzes = (Quiz.objects.using(self.using).select_related('user')
                       .annotate(question_count=Count('question', distinct=True))
                       .order_by('-created_at'))

            all_quizzes = [serialize_quiz(quiz, question_count=quiz.question_count) for quiz in quizzes]

            user_quizzes = [
                serialize_quiz(quiz, question_count=quiz.question_count, include_creator=False)
                for quiz in quizzes.filter(user=owner)
            ]

            stats = {
                'total_quizzes': Quiz.objects.using(self.using).count(),
                'total_questions': Question.objects.using(self.using).count(),
            }
        except DatabaseError as e:
            logger.error(e)
            raise PersistenceError("Error fetching quizzes") from e

        return {'all_quizzes': all_quizzes, 'user_quizzes': user_quizzes, 'stats': stats}

    def create_generated(self, questions, topic: str, difficulty: str, owner) -> dict:
        title = f"{topic} Quiz (AI Generated)"
        description = f"A {difficulty} difficulty quiz about {topic}"

        quiz_id = self.create({'title': title, 'description': description, 'questions': questions}, owner)

        return {'id': str(quiz_id), 'title': title, 'description': description, 'questions': questions}

    def _insert_questions(self, quiz: Quiz, questions) -> None:
        for question_number, question_payload in enumerate(questions, start=1):
            question = Question(quiz=quiz, question_text=question_payload.question_text,
                                question_number=question_number)
            question.save(using=self.using)

            for answer_number, answer_payload in enumerate(question_payload.answers, start=1):
                answer = Answer(question=question, answer_text=answer_payload.answer_text,
                                is_correct=answer_payload.is_correct, answer_number=answer_number)
                answer.save(using=self.using)
