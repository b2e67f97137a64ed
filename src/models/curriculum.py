"""Curriculum, quiz and learner progress models."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from models.video import VideoCandidate

QUESTION_TYPES = ("multiple-choice", "true-false", "short-answer")
FINAL_TEST_ID = "final-test"


def module_quiz_id(module_number: int) -> str:
    """Return the quiz id used for a module's quiz."""
    return f"module-{module_number}"


@dataclass
class QuizQuestion:
    """A single quiz question with its expected answer."""

    question: str
    type: str  # multiple-choice, true-false, short-answer
    answer: str
    options: Optional[List[str]] = None

    def to_dict(self) -> dict:
        data = {"question": self.question, "type": self.type, "answer": self.answer}
        if self.options is not None:
            data["options"] = list(self.options)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "QuizQuestion":
        return cls(
            question=data["question"],
            type=data.get("type", "short-answer"),
            answer=str(data.get("answer", "")),
            options=data.get("options"),
        )


@dataclass
class Quiz:
    """An ordered list of questions."""

    questions: List[QuizQuestion] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"questions": [q.to_dict() for q in self.questions]}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Quiz":
        if not data:
            return cls()
        return cls(questions=[QuizQuestion.from_dict(q) for q in data.get("questions", [])])


@dataclass
class CurriculumVideo:
    """A recommended video attached to a module."""

    title: str
    platform: str
    relevance_description: str
    video_data: Optional[VideoCandidate] = None

    @classmethod
    def from_candidate(cls, candidate: VideoCandidate) -> "CurriculumVideo":
        """Build a module video entry from a selected candidate."""
        minutes = candidate.duration_seconds // 60
        seconds = candidate.duration_seconds % 60
        description = (
            f"{candidate.channel or 'Unknown channel'} · {minutes}:{seconds:02d} · "
            f"relevance {candidate.relevance_score}/100"
        )
        return cls(
            title=candidate.title,
            platform=candidate.platform,
            relevance_description=description,
            video_data=candidate,
        )

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "platform": self.platform,
            "relevanceDescription": self.relevance_description,
            "videoData": self.video_data.to_dict() if self.video_data else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurriculumVideo":
        video_data = data.get("videoData")
        return cls(
            title=data["title"],
            platform=data.get("platform", "youtube"),
            relevance_description=data.get("relevanceDescription", ""),
            video_data=VideoCandidate.from_dict(video_data) if video_data else None,
        )


@dataclass
class Module:
    """One unit of a generated curriculum."""

    module_number: int
    title: str
    learning_objectives: List[str]
    content: str  # Markdown
    quiz: Quiz
    videos: List[CurriculumVideo] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "moduleNumber": self.module_number,
            "title": self.title,
            "learningObjectives": list(self.learning_objectives),
            "content": self.content,
            "videos": [v.to_dict() for v in self.videos],
            "quiz": self.quiz.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Module":
        return cls(
            module_number=int(data["moduleNumber"]),
            title=data["title"],
            learning_objectives=list(data.get("learningObjectives", [])),
            content=data.get("content", ""),
            quiz=Quiz.from_dict(data.get("quiz")),
            videos=[CurriculumVideo.from_dict(v) for v in data.get("videos", [])],
        )


@dataclass
class Curriculum:
    """A complete generated lesson program."""

    subject: str
    program_overview: str  # Markdown
    modules: List[Module]
    final_test: Quiz

    def get_module(self, module_number: int) -> Optional[Module]:
        for module in self.modules:
            if module.module_number == module_number:
                return module
        return None

    def get_quiz(self, quiz_id: str) -> Optional[Quiz]:
        """Look up a module quiz (module-N) or the final test by id."""
        if quiz_id == FINAL_TEST_ID:
            return self.final_test
        for module in self.modules:
            if module_quiz_id(module.module_number) == quiz_id:
                return module.quiz
        return None

    def to_dict(self) -> dict:
        return {
            "subject": self.subject,
            "programOverview": self.program_overview,
            "modules": [m.to_dict() for m in self.modules],
            "finalTest": self.final_test.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Curriculum":
        return cls(
            subject=data["subject"],
            program_overview=data.get("programOverview", ""),
            modules=[Module.from_dict(m) for m in data.get("modules", [])],
            final_test=Quiz.from_dict(data.get("finalTest")),
        )


@dataclass
class GradedAnswer:
    user_answer: str
    is_correct: bool


@dataclass
class QuizResult:
    """Outcome of grading one quiz attempt."""

    score: int
    total: int
    percentage: int
    answers: Dict[int, GradedAnswer] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "score": self.score,
            "total": self.total,
            "percentage": self.percentage,
            "answers": {
                str(index): {"userAnswer": a.user_answer, "isCorrect": a.is_correct}
                for index, a in self.answers.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> "QuizResult":
        return cls(
            score=int(data["score"]),
            total=int(data["total"]),
            percentage=int(data["percentage"]),
            answers={
                int(index): GradedAnswer(a.get("userAnswer", ""), bool(a.get("isCorrect")))
                for index, a in data.get("answers", {}).items()
            },
        )


@dataclass
class LearningProgress:
    """A learner's saved session: the curriculum plus quiz outcomes."""

    curriculum: Curriculum
    quiz_results: Dict[str, QuizResult] = field(default_factory=dict)
    completed_modules: Set[str] = field(default_factory=set)

    def record_quiz_result(self, quiz_id: str, result: QuizResult) -> None:
        """Store a graded attempt; module quizzes mark their module completed."""
        self.quiz_results[quiz_id] = result
        if quiz_id.startswith("module-"):
            self.completed_modules.add(quiz_id)

    def overall_completion(self) -> float:
        if not self.curriculum.modules:
            return 0.0
        return len(self.completed_modules) / len(self.curriculum.modules)

    def to_dict(self) -> dict:
        return {
            "curriculum": self.curriculum.to_dict(),
            "quizResults": {qid: r.to_dict() for qid, r in self.quiz_results.items()},
            "completedModules": sorted(self.completed_modules),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "LearningProgress":
        return cls(
            curriculum=Curriculum.from_dict(data["curriculum"]),
            quiz_results={
                qid: QuizResult.from_dict(r) for qid, r in (data.get("quizResults") or {}).items()
            },
            completed_modules=set(data.get("completedModules") or []),
        )
