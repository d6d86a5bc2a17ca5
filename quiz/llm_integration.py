import logging
from typing import List

from django.conf import settings
from pydantic import BaseModel

from langchain_openai import ChatOpenAI
from langchain_core.output_parsers import PydanticOutputParser
from langchain_core.prompts import PromptTemplate

from quiz.exceptions import QuizValidationError


logger = logging.getLogger("django_quiz")

ANSWERS_PER_QUESTION = 4


class GeneratedAnswer(BaseModel):
    answer_text: str
    is_correct: bool


class GeneratedQuestion(BaseModel):
    question_text: str
    answers: List[GeneratedAnswer]


class GeneratedQuizFormat(BaseModel):
    questions: List[GeneratedQuestion]


example_response_json = """{
  "questions":
[
{"question_text": "What is the capital of France?",
  "answers": [
    {"answer_text": "Paris", "is_correct": true},
    {"answer_text": "London", "is_correct": false},
    {"answer_text": "Berlin", "is_correct": false},
    {"answer_text": "Madrid", "is_correct": false}
  ]
}
]
}"""


generate_template = """
        You are an expert Multiple Choice Quiz Generator. It is your job to create a quiz about
        {topic} with exactly {number_of_questions} questions at {difficulty} difficulty level.

        Each question should have exactly four answer choices with exactly one correct answer.
        Make sure the questions are not repeated and that all of them are factually accurate
        and appropriate for the difficulty level.
        Format the response like the RESPONSE JSON below and return only the JSON.
        RESPONSE JSON = {response_json}

        {format_instructions}
    """


def execute_llm_prompt_topic(topic: str, number_of_questions: int, difficulty: str) -> List[dict]:
    model = ChatOpenAI(model=settings.LLM_MODEL, api_key=settings.OPEN_API_KEY)

    # Set up a parser + inject instructions into the prompt template.
    parser = PydanticOutputParser(pydantic_object=GeneratedQuizFormat)

    prompt = PromptTemplate(
        template=generate_template,
        input_variables=["topic", "number_of_questions", "difficulty", "response_json"],
        partial_variables={"format_instructions": parser.get_format_instructions()},
    )

    logger.info(f"Generating quiz about {topic} with {number_of_questions} {difficulty} questions")

    chain = prompt | model | parser
    output = chain.invoke({"topic": topic, "number_of_questions": number_of_questions,
                           "difficulty": difficulty, "response_json": example_response_json})

    return output.model_dump()["questions"]


def validate_generated_questions(questions, number_of_questions: int) -> List[dict]:
    """
    Check an LLM response has the requested number of questions, each with four answers and one correct answer.
    """
    if not isinstance(questions, list):
        raise QuizValidationError("Response is not an array")

    if len(questions) != number_of_questions:
        raise QuizValidationError(f"Expected {number_of_questions} questions but got {len(questions)}")

    for index, question in enumerate(questions):
        if not isinstance(question, dict):
            raise QuizValidationError(f"Invalid question format at index {index}")

        answers = question.get('answers')

        if not question.get('question_text') or not isinstance(answers, list) \
                or len(answers) != ANSWERS_PER_QUESTION \
                or not all(isinstance(answer, dict) for answer in answers):
            raise QuizValidationError(f"Invalid question format at index {index}")

        correct_answers = [answer for answer in answers if answer.get('is_correct')]

        if len(correct_answers) != 1:
            raise QuizValidationError(f"Question {index + 1} must have exactly one correct answer")

    return questions
