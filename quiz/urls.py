from django.urls import path

from . import views

urlpatterns = [
    path("quizzes", views.quizzes, name="quizzes"),
    path("quizzes/generate", views.generate_quiz, name="generate_quiz"),
    path("quizzes/<uuid:pk>", views.quiz_detail, name="quiz_detail"),
    path("quizzes/<uuid:pk>/attempts", views.create_attempt, name="create_attempt"),
    path("leaderboard", views.leaderboard, name="leaderboard"),
]
