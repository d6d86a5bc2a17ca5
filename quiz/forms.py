from django import forms
from django.conf import settings

DIFFICULTY_CHOICES = [
    ('easy', 'Easy'),
    ('medium', 'Medium'),
    ('hard', 'Hard'),
]


class GenerateQuizForm(forms.Form):
    topic = forms.CharField(label="Topic", max_length=200)
    num_questions = forms.IntegerField(label="Number of Questions", min_value=1,
                                       max_value=settings.MAX_GENERATED_QUESTIONS, required=False)
    difficulty = forms.ChoiceField(choices=DIFFICULTY_CHOICES, required=False)

    def clean_num_questions(self):
        return self.cleaned_data.get('num_questions') or 5

    def clean_difficulty(self):
        return self.cleaned_data.get('difficulty') or 'medium'
