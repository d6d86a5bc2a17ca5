from django.db import DEFAULT_DB_ALIAS
from django.db.models import Avg, Count, Value
from django.db.models.functions import Coalesce

from quiz.models import QuizAttempt

LEADERBOARD_SIZE = 10


def get_leaderboard(limit=LEADERBOARD_SIZE, using=DEFAULT_DB_ALIAS):
    # anonymous attempts are pooled under a single "Anonymous" row
    rows = (
        QuizAttempt.objects.using(using)
        .annotate(player=Coalesce('user__email', Value('Anonymous')))
        .values('player')
        .annotate(quizzes_completed=Count('quiz', distinct=True), average_score=Avg('score'))
        .order_by('-average_score', 'player')[:limit]
    )

    return [
        {
            'user': row['player'],
            'quizzes_completed': row['quizzes_completed'],
            'average_score': round(float(row['average_score']), 2) if row['average_score'] is not None else 0,
        }
        for row in rows
    ]
