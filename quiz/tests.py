import json
import uuid
from decimal import Decimal
from unittest import TestCase as unittestTestCase
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase, Client
from django.contrib.auth.models import User
from django.urls import reverse
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from accounts.tokens import make_access_token
from quiz.exceptions import PersistenceError, QuizNotFound, QuizValidationError
from quiz.leaderboard import get_leaderboard
from quiz.llm_integration import execute_llm_prompt_topic, validate_generated_questions
from quiz.models import Quiz, Question, Answer, QuizAttempt
from quiz.repository import QuizRepository
from quiz.scoring import calculate_score, count_correct, record_attempt, submit_attempt, validate_score


new_quiz_payload = {
    "title": "Capitals and currencies",
    "description": "A short geography quiz",
    "questions": [
        {
            "question_text": "What is the capital of England?",
            "answers": [
                {"answer_text": "London", "is_correct": True},
                {"answer_text": "Paris", "is_correct": False},
                {"answer_text": "New York", "is_correct": False},
                {"answer_text": "Toulouse", "is_correct": False},
            ],
        },
        {
            "question_text": "What is the official currency of the United States?",
            "answers": [
                {"answer_text": "Euro", "is_correct": False},
                {"answer_text": "Dollar", "is_correct": True},
                {"answer_text": "Deutschmark", "is_correct": False},
                {"answer_text": "Pound", "is_correct": False},
            ],
        },
    ],
}

generated_questions = [
    {
        "question_text": "Which planet is known as the red planet?",
        "answers": [
            {"answer_text": "Mars", "is_correct": True},
            {"answer_text": "Venus", "is_correct": False},
            {"answer_text": "Jupiter", "is_correct": False},
            {"answer_text": "Saturn", "is_correct": False},
        ],
    },
    {
        "question_text": "What is the largest planet in the solar system?",
        "answers": [
            {"answer_text": "Earth", "is_correct": False},
            {"answer_text": "Jupiter", "is_correct": True},
            {"answer_text": "Mercury", "is_correct": False},
            {"answer_text": "Neptune", "is_correct": False},
        ],
    },
]


def question_content(quiz_data):
    return [
        (question["question_text"], [(a["answer_text"], a["is_correct"]) for a in question["answers"]])
        for question in quiz_data["questions"]
    ]


def build_quiz(number_of_questions, correct_index=0):
    return {
        "id": "quiz",
        "questions": [
            {
                "id": f"q{i}",
                "answers": [{"id": f"q{i}a{j}", "is_correct": j == correct_index} for j in range(4)],
            }
            for i in range(number_of_questions)
        ],
    }


class ScoringTestCase(unittestTestCase):

    def test_three_of_four_correct_scores_seventy_five(self):
        quiz = build_quiz(4)
        selections = {"q0": "q0a0", "q1": "q1a0", "q2": "q2a0", "q3": "q3a2"}
        self.assertEqual(calculate_score(quiz, selections), Decimal("75.00"))

    def test_all_correct_scores_hundred(self):
        quiz = build_quiz(3)
        selections = {f"q{i}": f"q{i}a0" for i in range(3)}
        self.assertEqual(calculate_score(quiz, selections), Decimal("100.00"))

    def test_score_rounded_to_two_places(self):
        quiz = build_quiz(3)
        self.assertEqual(calculate_score(quiz, {"q0": "q0a0"}), Decimal("33.33"))
        self.assertEqual(calculate_score(quiz, {"q0": "q0a0", "q1": "q1a0"}), Decimal("66.67"))

    def test_quiz_without_questions_scores_zero(self):
        self.assertEqual(calculate_score({"id": "quiz", "questions": []}, {"q0": "a"}), Decimal("0.00"))

    def test_missing_selection_scores_nothing(self):
        quiz = build_quiz(2)
        self.assertEqual(calculate_score(quiz, {}), Decimal("0.00"))
        self.assertEqual(calculate_score(quiz, None), Decimal("0.00"))
        self.assertEqual(calculate_score(quiz, {"q0": None}), Decimal("0.00"))

    def test_answer_from_another_question_scores_nothing(self):
        quiz = build_quiz(2)
        # q1a0 is correct, but for question q1
        self.assertEqual(count_correct(quiz, {"q0": "q1a0"}), 0)

    def test_unknown_answer_id_scores_nothing(self):
        quiz = build_quiz(2)
        self.assertEqual(count_correct(quiz, {"q0": "not-an-answer", "q1": "q1a0"}), 1)

    def test_question_without_correct_answer_scores_nothing(self):
        quiz = build_quiz(2, correct_index=None)
        self.assertEqual(calculate_score(quiz, {"q0": "q0a0", "q1": "q1a1"}), Decimal("0.00"))

    def test_first_correct_answer_wins_when_several_are_flagged(self):
        quiz = build_quiz(1)
        quiz["questions"][0]["answers"][2]["is_correct"] = True

        self.assertEqual(calculate_score(quiz, {"q0": "q0a0"}), Decimal("100.00"))
        self.assertEqual(calculate_score(quiz, {"q0": "q0a2"}), Decimal("0.00"))

    def test_uuid_selections_match_string_ids(self):
        question_id = uuid.uuid4()
        answer_id = uuid.uuid4()
        quiz = {"questions": [{"id": str(question_id),
                               "answers": [{"id": str(answer_id), "is_correct": True}]}]}

        self.assertEqual(calculate_score(quiz, {question_id: answer_id}), Decimal("100.00"))


class GeneratedQuestionsValidationTestCase(unittestTestCase):

    def test_valid_questions_pass(self):
        self.assertEqual(validate_generated_questions(generated_questions, 2), generated_questions)

    def test_wrong_number_of_questions(self):
        with self.assertRaises(QuizValidationError) as cm:
            validate_generated_questions(generated_questions, 3)
        self.assertEqual(cm.exception.message, "Expected 3 questions but got 2")

    def test_not_a_list(self):
        with self.assertRaises(QuizValidationError):
            validate_generated_questions({"questions": generated_questions}, 2)

    def test_three_answers_rejected(self):
        bad_questions = json.loads(json.dumps(generated_questions))
        bad_questions[1]["answers"] = bad_questions[1]["answers"][:3]

        with self.assertRaises(QuizValidationError) as cm:
            validate_generated_questions(bad_questions, 2)
        self.assertEqual(cm.exception.message, "Invalid question format at index 1")

    def test_missing_question_text_rejected(self):
        bad_questions = json.loads(json.dumps(generated_questions))
        bad_questions[0]["question_text"] = ""

        with self.assertRaises(QuizValidationError):
            validate_generated_questions(bad_questions, 2)

    def test_two_correct_answers_rejected(self):
        bad_questions = json.loads(json.dumps(generated_questions))
        bad_questions[0]["answers"][1]["is_correct"] = True

        with self.assertRaises(QuizValidationError) as cm:
            validate_generated_questions(bad_questions, 2)
        self.assertEqual(cm.exception.message, "Question 1 must have exactly one correct answer")


class LLMIntegrationTestCase(unittestTestCase):

    @patch("quiz.llm_integration.ChatOpenAI")
    def test_execute_llm_prompt_topic_parses_response(self, chat_open_ai):
        chat_open_ai.return_value = FakeListChatModel(responses=[json.dumps({"questions": generated_questions})])

        questions = execute_llm_prompt_topic(topic="Space", number_of_questions=2, difficulty="easy")

        self.assertEqual(questions, generated_questions)
        self.assertTrue(chat_open_ai.called)


class QuizRepositoryTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.test_user = User.objects.create_user(username='test@example.com', email='test@example.com',
                                                 password='password')
        cls.random_user = User.objects.create_user(username='random@example.com', email='random@example.com',
                                                   password='random')

        cls.test_quiz = Quiz.objects.create(title='test title', description='test description', user=cls.test_user)

        for i in range(1, 4):
            q = Question.objects.create(question_text=f'test_question_{i}', question_number=i, quiz=cls.test_quiz)
            setattr(cls, f'question_{i}', q)

            for j in range(1, 5):
                a = Answer.objects.create(answer_text=f'test_answer_{j}', answer_number=j, question=q,
                                          is_correct=i == j)
                setattr(cls, f'question_{i}_answer_{j}', a)

    def setUp(self):
        self.repository = QuizRepository()

    def test_create_persists_whole_tree_in_order(self):
        quiz_id = self.repository.create(new_quiz_payload, self.test_user)

        quiz = Quiz.objects.get(pk=quiz_id)
        self.assertEqual(quiz.title, new_quiz_payload["title"])
        self.assertEqual(quiz.description, new_quiz_payload["description"])
        self.assertEqual(quiz.user, self.test_user)

        questions = Question.objects.filter(quiz=quiz).order_by('question_number')
        self.assertEqual(questions.count(), 2)
        self.assertEqual(questions[0].question_text, "What is the capital of England?")
        self.assertEqual(questions[1].question_text, "What is the official currency of the United States?")

        answers = Answer.objects.filter(question=questions[1]).order_by('answer_number')
        self.assertEqual([a.answer_text for a in answers], ["Euro", "Dollar", "Deutschmark", "Pound"])
        self.assertEqual([a.is_correct for a in answers], [False, True, False, False])

    def test_create_with_no_questions(self):
        quiz_id = self.repository.create({"title": "Empty", "questions": []}, self.test_user)
        self.assertEqual(self.repository.get(quiz_id)["questions"], [])

    def test_create_rejects_blank_title(self):
        quiz_count = Quiz.objects.count()

        with self.assertRaises(QuizValidationError):
            self.repository.create({"title": "   ", "questions": []}, self.test_user)

        self.assertEqual(Quiz.objects.count(), quiz_count)

    def test_create_rejects_missing_question_text(self):
        payload = {"title": "Broken", "questions": [{"answers": [{"answer_text": "x", "is_correct": True}]}]}

        with self.assertRaises(QuizValidationError) as cm:
            self.repository.create(payload, self.test_user)

        self.assertTrue(cm.exception.details)
        self.assertFalse(Quiz.objects.filter(title="Broken").exists())

    def test_create_rolls_back_when_an_answer_insert_fails(self):
        quiz_count = Quiz.objects.count()
        question_count = Question.objects.count()
        answer_count = Answer.objects.count()

        original_save = Answer.save
        saved = []

        def failing_save(answer, *args, **kwargs):
            saved.append(answer)
            if len(saved) == 6:
                raise DatabaseError("forced answer failure")
            return original_save(answer, *args, **kwargs)

        with patch.object(Answer, 'save', autospec=True, side_effect=failing_save):
            with self.assertRaises(PersistenceError):
                self.repository.create(new_quiz_payload, self.test_user)

        self.assertEqual(len(saved), 6)
        self.assertFalse(Quiz.objects.filter(title=new_quiz_payload["title"]).exists())
        self.assertEqual(Quiz.objects.count(), quiz_count)
        self.assertEqual(Question.objects.count(), question_count)
        self.assertEqual(Answer.objects.count(), answer_count)

    def test_get_returns_nested_structure(self):
        quiz_data = self.repository.get(self.test_quiz.pk)

        self.assertEqual(quiz_data["id"], str(self.test_quiz.pk))
        self.assertEqual(quiz_data["title"], "test title")
        self.assertEqual(quiz_data["creator_email"], "test@example.com")
        self.assertEqual([q["question_text"] for q in quiz_data["questions"]],
                         ["test_question_1", "test_question_2", "test_question_3"])

        second_question = quiz_data["questions"][1]
        self.assertEqual(second_question["id"], str(self.question_2.pk))
        self.assertEqual([a["answer_text"] for a in second_question["answers"]],
                         [f"test_answer_{j}" for j in range(1, 5)])
        self.assertEqual(second_question["answers"][1]["id"], str(self.question_2_answer_2.pk))
        self.assertTrue(second_question["answers"][1]["is_correct"])

    def test_get_missing_quiz(self):
        with self.assertRaises(QuizNotFound):
            self.repository.get(uuid.uuid4())

    def test_get_malformed_id(self):
        with self.assertRaises(QuizNotFound):
            self.repository.get("not-a-uuid")

    def test_update_replaces_content_and_regenerates_ids(self):
        old_question_ids = set(Question.objects.filter(quiz=self.test_quiz).values_list('id', flat=True))

        self.repository.update(self.test_quiz.pk, self.test_user, new_quiz_payload)
        first = self.repository.get(self.test_quiz.pk)

        self.repository.update(self.test_quiz.pk, self.test_user, new_quiz_payload)
        second = self.repository.get(self.test_quiz.pk)

        self.assertEqual(first["title"], new_quiz_payload["title"])
        self.assertEqual(first["description"], new_quiz_payload["description"])
        self.assertEqual(question_content(first), question_content(second))
        self.assertEqual(question_content(first), [
            (q["question_text"], [(a["answer_text"], a["is_correct"]) for a in q["answers"]])
            for q in new_quiz_payload["questions"]
        ])

        first_ids = {q["id"] for q in first["questions"]} | {a["id"] for q in first["questions"] for a in q["answers"]}
        second_ids = {q["id"] for q in second["questions"]} | {a["id"] for q in second["questions"]
                                                                for a in q["answers"]}
        self.assertFalse(first_ids & second_ids)
        self.assertFalse({str(i) for i in old_question_ids} & first_ids)

        self.assertEqual(Question.objects.filter(quiz=self.test_quiz).count(), 2)
        self.assertEqual(Answer.objects.filter(question__quiz=self.test_quiz).count(), 8)
        self.assertEqual(first["id"], second["id"])

    def test_update_by_non_owner_is_not_found_and_writes_nothing(self):
        before = self.repository.get(self.test_quiz.pk)

        with self.assertRaises(QuizNotFound):
            self.repository.update(self.test_quiz.pk, self.random_user, new_quiz_payload)

        self.assertEqual(self.repository.get(self.test_quiz.pk), before)

    def test_update_missing_quiz(self):
        with self.assertRaises(QuizNotFound):
            self.repository.update(uuid.uuid4(), self.test_user, new_quiz_payload)

    def test_update_rolls_back_when_an_insert_fails(self):
        before = self.repository.get(self.test_quiz.pk)

        with patch.object(Answer, 'save', side_effect=DatabaseError("forced answer failure")):
            with self.assertRaises(PersistenceError):
                self.repository.update(self.test_quiz.pk, self.test_user, new_quiz_payload)

        self.assertEqual(self.repository.get(self.test_quiz.pk), before)

    def test_delete_cascades(self):
        pk = self.test_quiz.pk
        questions = list(Question.objects.filter(quiz_id=pk).values_list('id', flat=True))
        self.assertEqual(len(questions), 3)
        self.assertEqual(Answer.objects.filter(question__in=questions).count(), 12)

        self.repository.delete(pk, self.test_user)

        self.assertFalse(Quiz.objects.filter(pk=pk).exists())
        self.assertEqual(Question.objects.filter(quiz_id=pk).count(), 0)
        self.assertEqual(Answer.objects.filter(question__in=questions).count(), 0)

    def test_delete_by_non_owner_is_not_found_and_writes_nothing(self):
        before = self.repository.get(self.test_quiz.pk)

        with self.assertRaises(QuizNotFound):
            self.repository.delete(self.test_quiz.pk, self.random_user)

        self.assertEqual(self.repository.get(self.test_quiz.pk), before)

    def test_list(self):
        other_quiz_id = self.repository.create(new_quiz_payload, self.random_user)

        quiz_lists = self.repository.list(self.test_user)

        self.assertEqual(len(quiz_lists["all_quizzes"]), 2)
        # newest first
        self.assertEqual(quiz_lists["all_quizzes"][0]["id"], str(other_quiz_id))
        self.assertEqual(quiz_lists["all_quizzes"][0]["question_count"], 2)
        self.assertEqual(quiz_lists["all_quizzes"][0]["creator_email"], "random@example.com")

        self.assertEqual(len(quiz_lists["user_quizzes"]), 1)
        self.assertEqual(quiz_lists["user_quizzes"][0]["id"], str(self.test_quiz.pk))
        self.assertEqual(quiz_lists["user_quizzes"][0]["question_count"], 3)

        self.assertEqual(quiz_lists["stats"], {"total_quizzes": 2, "total_questions": 5})

    def test_create_generated(self):
        generated = self.repository.create_generated(generated_questions, "Space", "easy", self.test_user)

        self.assertEqual(generated["title"], "Space Quiz (AI Generated)")
        self.assertEqual(generated["description"], "A easy difficulty quiz about Space")
        self.assertEqual(question_content(self.repository.get(generated["id"])),
                         question_content({"questions": generated_questions}))


class AttemptTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.test_user = User.objects.create_user(username='test@example.com', email='test@example.com',
                                                 password='password')
        cls.quiz_id = QuizRepository().create(new_quiz_payload, cls.test_user)

    def setUp(self):
        self.quiz_data = QuizRepository().get(self.quiz_id)
        self.first_question = self.quiz_data["questions"][0]
        self.second_question = self.quiz_data["questions"][1]

    def test_record_attempt_for_user(self):
        selections = {self.first_question["id"]: self.first_question["answers"][0]["id"]}

        attempt_id = record_attempt(self.quiz_id, self.test_user, Decimal("50"), selections)

        attempt = QuizAttempt.objects.get(pk=attempt_id)
        self.assertEqual(attempt.user, self.test_user)
        self.assertEqual(attempt.score, Decimal("50.00"))
        self.assertEqual(attempt.answers, {"version": 1, "selections": selections})

    def test_record_anonymous_attempt(self):
        attempt_id = record_attempt(self.quiz_id, None, Decimal("0"), {})

        attempt = QuizAttempt.objects.get(pk=attempt_id)
        self.assertIsNone(attempt.user)
        self.assertEqual(attempt.quiz_id, self.quiz_id)

    def test_record_attempt_for_missing_quiz_writes_nothing(self):
        with self.assertRaises(QuizNotFound):
            record_attempt(uuid.uuid4(), None, Decimal("100"), {})

        self.assertEqual(QuizAttempt.objects.count(), 0)

    def test_record_attempt_storage_error_on_lookup(self):
        with patch("django.db.models.query.QuerySet.exists", side_effect=DatabaseError("connection lost")):
            with self.assertRaises(PersistenceError):
                record_attempt(self.quiz_id, None, Decimal("10"), {})

        self.assertEqual(QuizAttempt.objects.count(), 0)

    def test_record_attempt_rejects_invalid_score(self):
        for score in (250, -1, None, "nan", "ten"):
            with self.subTest(score=score):
                with self.assertRaises(QuizValidationError):
                    record_attempt(self.quiz_id, self.test_user, score, {})

        self.assertEqual(QuizAttempt.objects.count(), 0)

    def test_validate_score_bounds_and_rounding(self):
        self.assertEqual(validate_score(0), Decimal("0.00"))
        self.assertEqual(validate_score(100), Decimal("100.00"))
        self.assertEqual(validate_score("66.665"), Decimal("66.67"))
        self.assertEqual(validate_score(33.3), Decimal("33.30"))

        with self.assertRaises(QuizValidationError):
            validate_score(100.01)
        with self.assertRaises(QuizValidationError):
            validate_score(float("inf"))
        with self.assertRaises(QuizValidationError):
            validate_score(True)

    def test_submit_attempt_recomputes_score(self):
        selections = {
            self.first_question["id"]: self.first_question["answers"][0]["id"],
            self.second_question["id"]: self.second_question["answers"][0]["id"],
        }

        result = submit_attempt(self.quiz_id, self.test_user, selections, client_score=100)

        self.assertEqual(result["score"], 50.0)
        self.assertEqual(result["correct"], 1)
        self.assertEqual(result["total"], 2)
        self.assertEqual(QuizAttempt.objects.get(pk=result["id"]).score, Decimal("50.00"))


class QuizAPITestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.test_user = User.objects.create_user(username='test@example.com', email='test@example.com',
                                                 password='password')
        cls.random_user = User.objects.create_user(username='random@example.com', email='random@example.com',
                                                   password='random')
        cls.quiz_id = QuizRepository().create(new_quiz_payload, cls.test_user)

    def setUp(self):
        # Every test needs a client.
        self.client = Client()
        self.auth_header = {"HTTP_AUTHORIZATION": f"Bearer {make_access_token(self.test_user)}"}
        self.random_auth_header = {"HTTP_AUTHORIZATION": f"Bearer {make_access_token(self.random_user)}"}

    def post_json(self, url, data, **extra):
        return self.client.post(url, data=json.dumps(data), content_type='application/json', **extra)

    def test_list_requires_token(self):
        response = self.client.get(reverse("quizzes"))
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Authentication required")

    def test_list_rejects_bad_token(self):
        response = self.client.get(reverse("quizzes"), HTTP_AUTHORIZATION="Bearer not-a-token")
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "Invalid token")

    def test_list(self):
        response = self.client.get(reverse("quizzes"), **self.random_auth_header)

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["allQuizzes"]), 1)
        self.assertEqual(body["allQuizzes"][0]["creator_email"], "test@example.com")
        self.assertEqual(body["userQuizzes"], [])
        self.assertEqual(body["stats"], {"totalQuizzes": 1, "totalQuestions": 2})

    def test_create(self):
        payload = dict(new_quiz_payload, title="Created over HTTP")
        response = self.post_json(reverse("quizzes"), payload, **self.auth_header)

        self.assertEqual(response.status_code, 201)
        quiz = Quiz.objects.get(pk=response.json()["id"])
        self.assertEqual(quiz.title, "Created over HTTP")
        self.assertEqual(quiz.user, self.test_user)

    def test_create_invalid_json(self):
        response = self.client.post(reverse("quizzes"), data="{not json", content_type='application/json',
                                    **self.auth_header)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid JSON")

    def test_create_invalid_payload(self):
        response = self.post_json(reverse("quizzes"), {"title": "", "questions": []}, **self.auth_header)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Invalid quiz payload")
        self.assertTrue(response.json()["details"])

    @patch("quiz.repository.QuizRepository._insert_questions", side_effect=DatabaseError("forced"))
    def test_create_persistence_error(self, insert_questions):
        response = self.post_json(reverse("quizzes"), new_quiz_payload, **self.auth_header)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Error creating quiz")
        self.assertEqual(Quiz.objects.count(), 1)

    def test_get(self):
        response = self.client.get(reverse("quiz_detail", args=[self.quiz_id]), **self.random_auth_header)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), QuizRepository().get(self.quiz_id))

    def test_get_missing(self):
        response = self.client.get(reverse("quiz_detail", args=[uuid.uuid4()]), **self.auth_header)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "Quiz not found")

    def test_update(self):
        payload = dict(new_quiz_payload, title="Renamed")
        response = self.client.put(reverse("quiz_detail", args=[self.quiz_id]), data=json.dumps(payload),
                                   content_type='application/json', **self.auth_header)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(Quiz.objects.get(pk=self.quiz_id).title, "Renamed")

    def test_update_by_non_owner(self):
        payload = dict(new_quiz_payload, title="Hijacked")
        response = self.client.put(reverse("quiz_detail", args=[self.quiz_id]), data=json.dumps(payload),
                                   content_type='application/json', **self.random_auth_header)

        self.assertEqual(response.status_code, 404)
        self.assertEqual(Quiz.objects.get(pk=self.quiz_id).title, new_quiz_payload["title"])

    def test_delete(self):
        response = self.client.delete(reverse("quiz_detail", args=[self.quiz_id]), **self.auth_header)

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Quiz.objects.filter(pk=self.quiz_id).exists())
        self.assertFalse(Question.objects.filter(quiz_id=self.quiz_id).exists())

    def test_delete_by_non_owner(self):
        response = self.client.delete(reverse("quiz_detail", args=[self.quiz_id]), **self.random_auth_header)

        self.assertEqual(response.status_code, 404)
        self.assertTrue(Quiz.objects.filter(pk=self.quiz_id).exists())

    def test_detail_method_not_allowed(self):
        response = self.client.post(reverse("quiz_detail", args=[self.quiz_id]), **self.auth_header)
        self.assertEqual(response.status_code, 405)

    def test_anonymous_attempt(self):
        quiz_data = QuizRepository().get(self.quiz_id)
        selections = {q["id"]: q["answers"][0]["id"] for q in quiz_data["questions"]}

        response = self.post_json(reverse("create_attempt", args=[self.quiz_id]),
                                  {"score": 100, "answers": selections})

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["score"], 50.0)
        attempt = QuizAttempt.objects.get(pk=response.json()["id"])
        self.assertIsNone(attempt.user)

    def test_authenticated_attempt(self):
        quiz_data = QuizRepository().get(self.quiz_id)
        selections = {
            quiz_data["questions"][0]["id"]: quiz_data["questions"][0]["answers"][0]["id"],
            quiz_data["questions"][1]["id"]: quiz_data["questions"][1]["answers"][1]["id"],
        }

        response = self.post_json(reverse("create_attempt", args=[self.quiz_id]), {"answers": selections},
                                  **self.random_auth_header)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["score"], 100.0)
        self.assertEqual(QuizAttempt.objects.get(pk=response.json()["id"]).user, self.random_user)

    def test_attempt_missing_quiz(self):
        response = self.post_json(reverse("create_attempt", args=[uuid.uuid4()]), {"answers": {}})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(QuizAttempt.objects.count(), 0)

    def test_attempt_answers_must_be_object(self):
        response = self.post_json(reverse("create_attempt", args=[self.quiz_id]), {"answers": ["a"]})
        self.assertEqual(response.status_code, 400)

    @patch("quiz.views.execute_llm_prompt_topic")
    def test_generate_quiz_success(self, llm_prompt):
        llm_prompt.return_value = generated_questions

        response = self.post_json(reverse("generate_quiz"),
                                  {"topic": "Space", "num_questions": 2, "difficulty": "hard"},
                                  **self.auth_header)

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["title"], "Space Quiz (AI Generated)")
        self.assertEqual(body["description"], "A hard difficulty quiz about Space")
        self.assertEqual(body["questions"], generated_questions)

        llm_kwargs = llm_prompt.call_args[1]
        self.assertEqual(llm_kwargs["topic"], "Space")
        self.assertEqual(llm_kwargs["number_of_questions"], 2)
        self.assertEqual(llm_kwargs["difficulty"], "hard")

        quiz = Quiz.objects.get(pk=body["id"])
        self.assertEqual(quiz.user, self.test_user)
        self.assertEqual(Question.objects.filter(quiz=quiz).count(), 2)

    @patch("quiz.views.execute_llm_prompt_topic")
    def test_generate_quiz_defaults(self, llm_prompt):
        llm_prompt.return_value = (generated_questions * 3)[:5]

        response = self.post_json(reverse("generate_quiz"), {"topic": "Space"}, **self.auth_header)

        self.assertEqual(response.status_code, 201)
        llm_kwargs = llm_prompt.call_args[1]
        self.assertEqual(llm_kwargs["number_of_questions"], 5)
        self.assertEqual(llm_kwargs["difficulty"], "medium")

    @patch("quiz.views.execute_llm_prompt_topic")
    def test_generate_quiz_invalid_llm_output_saves_nothing(self, llm_prompt):
        bad_questions = json.loads(json.dumps(generated_questions))
        bad_questions[0]["answers"] = bad_questions[0]["answers"][:3]
        llm_prompt.return_value = bad_questions

        response = self.post_json(reverse("generate_quiz"), {"topic": "Space", "num_questions": 2},
                                  **self.auth_header)

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["error"], "Error generating quiz")
        self.assertEqual(Quiz.objects.count(), 1)

    @patch("quiz.views.execute_llm_prompt_topic", side_effect=Exception)
    def test_generate_quiz_llm_raises(self, llm_prompt):
        response = self.post_json(reverse("generate_quiz"), {"topic": "Space", "num_questions": 2},
                                  **self.auth_header)

        self.assertEqual(response.status_code, 500)
        self.assertTrue(llm_prompt.called)
        self.assertEqual(response.json()["error"], "Error generating quiz")

    @patch("quiz.views.execute_llm_prompt_topic")
    def test_generate_quiz_form_not_valid(self, llm_prompt):
        response = self.post_json(reverse("generate_quiz"), {"num_questions": 50, "difficulty": "impossible"},
                                  **self.auth_header)

        form_errors_dict = response.json()['form_errors']

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], "Validation error")
        self.assertIn("topic", form_errors_dict)
        self.assertIn("num_questions", form_errors_dict)
        self.assertIn("difficulty", form_errors_dict)
        self.assertFalse(llm_prompt.called)

    def test_generate_requires_token(self):
        response = self.post_json(reverse("generate_quiz"), {"topic": "Space"})
        self.assertEqual(response.status_code, 401)


class LeaderboardTestCase(TestCase):

    @classmethod
    def setUpTestData(cls):
        cls.test_user = User.objects.create_user(username='test@example.com', email='test@example.com',
                                                 password='password')
        cls.random_user = User.objects.create_user(username='random@example.com', email='random@example.com',
                                                   password='random')
        cls.quiz_one = Quiz.objects.create(title='quiz one', user=cls.test_user)
        cls.quiz_two = Quiz.objects.create(title='quiz two', user=cls.test_user)

        QuizAttempt.objects.create(quiz=cls.quiz_one, user=cls.test_user, score=Decimal("100"), answers={})
        QuizAttempt.objects.create(quiz=cls.quiz_two, user=cls.test_user, score=Decimal("50"), answers={})
        QuizAttempt.objects.create(quiz=cls.quiz_one, user=cls.random_user, score=Decimal("90"), answers={})
        QuizAttempt.objects.create(quiz=cls.quiz_one, user=None, score=Decimal("20"), answers={})
        QuizAttempt.objects.create(quiz=cls.quiz_one, user=None, score=Decimal("40"), answers={})

    def test_get_leaderboard(self):
        rows = get_leaderboard()

        self.assertEqual([row["user"] for row in rows], ["random@example.com", "test@example.com", "Anonymous"])
        self.assertEqual(rows[0]["average_score"], 90.0)
        self.assertEqual(rows[1]["quizzes_completed"], 2)
        self.assertEqual(rows[1]["average_score"], 75.0)
        self.assertEqual(rows[2]["quizzes_completed"], 1)
        self.assertEqual(rows[2]["average_score"], 30.0)

    def test_leaderboard_limit(self):
        self.assertEqual(len(get_leaderboard(limit=1)), 1)

    def test_leaderboard_endpoint_is_public(self):
        response = Client().get(reverse("leaderboard"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()), 3)
