"""Quiz grading."""

import math
from typing import Dict

from models.curriculum import Quiz, QuizResult, GradedAnswer


def normalize_answer(answer: str) -> str:
    return (answer or "").strip().lower()


def grade_quiz(quiz: Quiz, answers: Dict[int, str]) -> QuizResult:
    """Grade answers keyed by question index against a quiz.

    An answer is correct when it matches the expected answer ignoring case
    and surrounding whitespace. Unanswered questions count as wrong.
    """
    graded: Dict[int, GradedAnswer] = {}
    score = 0

    for index, question in enumerate(quiz.questions):
        user_answer = answers.get(index, "") or ""
        is_correct = normalize_answer(user_answer) == normalize_answer(question.answer)
        if is_correct:
            score += 1
        graded[index] = GradedAnswer(user_answer=user_answer, is_correct=is_correct)

    total = len(quiz.questions)
    percentage = int(math.floor(score / total * 100 + 0.5)) if total else 0
    return QuizResult(score=score, total=total, percentage=percentage, answers=graded)
