import logging

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST, require_http_methods

from accounts.decorators import token_required, optional_token
from accounts.utils import InvalidJSONBody, load_json_body
from .exceptions import PersistenceError, QuizNotFound, QuizValidationError
from .forms import GenerateQuizForm
from .leaderboard import get_leaderboard
from .llm_integration import execute_llm_prompt_topic, validate_generated_questions
from .repository import QuizRepository
from .scoring import submit_attempt

logger = logging.getLogger("django_quiz")


def quiz_not_found_response():
    return JsonResponse({"error": "Quiz not found"}, status=404)


def validation_error_response(error: QuizValidationError):
    return JsonResponse({"error": error.message, "details": error.details}, status=400)


@csrf_exempt
@require_http_methods(["GET", "POST"])
@token_required
def quizzes(request):
    if request.method == 'POST':
        return create_quiz(request)

    try:
        quiz_lists = QuizRepository().list(request.user)
    except PersistenceError:
        return JsonResponse({"error": "Error fetching quizzes"}, status=500)

    return JsonResponse({
        "allQuizzes": quiz_lists['all_quizzes'],
        "userQuizzes": quiz_lists['user_quizzes'],
        "stats": {
            "totalQuizzes": quiz_lists['stats']['total_quizzes'],
            "totalQuestions": quiz_lists['stats']['total_questions'],
        },
    })


def create_quiz(request):
    try:
        post_data = load_json_body(request)
    except InvalidJSONBody:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    logger.debug(post_data)

    try:
        quiz_id = QuizRepository().create(post_data, request.user)
    except QuizValidationError as e:
        return validation_error_response(e)
    except PersistenceError:
        return JsonResponse({"error": "Error creating quiz"}, status=500)

    return JsonResponse({"id": str(quiz_id)}, status=201)


@csrf_exempt
@require_http_methods(["GET", "PUT", "DELETE"])
@token_required
def quiz_detail(request, pk):
    repository = QuizRepository()

    if request.method == 'GET':
        try:
            quiz = repository.get(pk)
        except QuizNotFound:
            return quiz_not_found_response()
        except PersistenceError:
            return JsonResponse({"error": "Error fetching quiz"}, status=500)

        return JsonResponse(quiz)

    if request.method == 'DELETE':
        try:
            repository.delete(pk, request.user)
        except QuizNotFound:
            return quiz_not_found_response()
        except PersistenceError:
            return JsonResponse({"error": "Error deleting quiz"}, status=500)

        return JsonResponse({"message": "Quiz deleted successfully"})

    try:
        put_data = load_json_body(request)
    except InvalidJSONBody:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    try:
        repository.update(pk, request.user, put_data)
    except QuizValidationError as e:
        return validation_error_response(e)
    except QuizNotFound:
        return quiz_not_found_response()
    except PersistenceError:
        return JsonResponse({"error": "Error updating quiz"}, status=500)

    return JsonResponse({"message": "Quiz updated successfully"})


@csrf_exempt
@require_POST
@token_required
def generate_quiz(request):
    try:
        post_data = load_json_body(request)
    except InvalidJSONBody:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    form = GenerateQuizForm(post_data)

    if not form.is_valid():
        form_errors_dict = dict(form.errors)
        return JsonResponse({"error": "Validation error", "form_errors": form_errors_dict}, status=400)

    topic = form.cleaned_data['topic']
    number_of_questions = form.cleaned_data['num_questions']
    difficulty = form.cleaned_data['difficulty']

    try:
        llm_questions = execute_llm_prompt_topic(topic=topic, number_of_questions=number_of_questions,
                                                 difficulty=difficulty)
    except Exception as e:
        logger.error(e)
        return JsonResponse({"error": "Error generating quiz", "details": "Error from llm integration"}, status=500)

    try:
        questions = validate_generated_questions(llm_questions, number_of_questions)
        generated_quiz = QuizRepository().create_generated(questions, topic, difficulty, request.user)
    except QuizValidationError as e:
        logger.error(e)
        return JsonResponse({"error": "Error generating quiz", "details": e.message}, status=500)
    except PersistenceError:
        return JsonResponse({"error": "Error generating quiz", "details": "Error when saving quiz"}, status=500)

    return JsonResponse(generated_quiz, status=201)


@csrf_exempt
@require_POST
@optional_token
def create_attempt(request, pk):
    try:
        post_data = load_json_body(request)
    except InvalidJSONBody:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    selections = post_data.get('answers') or {}

    if not isinstance(selections, dict):
        return JsonResponse({"error": "Validation error", "details": ["answers: must be an object"]}, status=400)

    user = request.user if request.user.is_authenticated else None

    try:
        attempt = submit_attempt(pk, user, selections, client_score=post_data.get('score'))
    except QuizNotFound:
        return quiz_not_found_response()
    except QuizValidationError as e:
        return validation_error_response(e)
    except PersistenceError:
        return JsonResponse({"error": "Error saving quiz attempt"}, status=500)

    return JsonResponse(attempt, status=201)


@require_GET
def leaderboard(request):
    try:
        rows = get_leaderboard()
    except Exception as e:
        logger.error(f"Error fetching leaderboard: {e}")
        return JsonResponse({"error": "Error fetching leaderboard"}, status=500)

    return JsonResponse(rows, safe=False)
