from django.contrib import admin
from django.db.models import Count
from quiz.models import Quiz, Question, Answer, QuizAttempt


class QuizAdmin(admin.ModelAdmin):
    list_display = ('title', 'user', 'created_at')
    list_filter = ('user',)
    search_fields = ('title', 'user__email')

    change_list_template = "admin/quiz_changelist.html"

    def changelist_view(self, request, extra_context=None):
        total_quizzes = Quiz.objects.count()
        quizzes_per_user = (
            Quiz.objects.values('user__email')
            .annotate(count=Count('id'))
            .order_by('-count')
        )

        extra_context = extra_context or {}
        extra_context['total_quizzes'] = total_quizzes
        extra_context['quizzes_per_user'] = quizzes_per_user

        return super().changelist_view(request, extra_context=extra_context)


class QuizAttemptAdmin(admin.ModelAdmin):
    list_display = ('quiz', 'user', 'score', 'created_at')
    readonly_fields = ('quiz', 'user', 'score', 'answers', 'created_at')

    def has_change_permission(self, request, obj=None):
        return False


admin.site.register(Quiz, QuizAdmin)
admin.site.register(Question)
admin.site.register(Answer)
admin.site.register(QuizAttempt, QuizAttemptAdmin)
