"""Main application entry point for Opal."""

import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

from rich.console import Console
from rich.markdown import Markdown
from rich.prompt import Prompt
from rich.table import Table

from curriculum_processor import CurriculumProcessor
from models.curriculum import FINAL_TEST_ID, LearningProgress, Module, QuizQuestion, module_quiz_id
from services.ai_service import CurriculumGenerationError
from utils.config import setup_logging, load_config

logger = logging.getLogger(__name__)


class OpalApp:
    """Command-line application wrapping the curriculum processor."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.processor: Optional[CurriculumProcessor] = None

    def start(self) -> None:
        config = load_config()
        setup_logging(config.get("log_level", "INFO"))
        self.processor = CurriculumProcessor(config)

    async def generate(self, subject: str, include_videos: bool) -> None:
        if not subject.strip():
            raise ValueError("Please enter a subject.")
        progress = await self.processor.generate(subject, include_videos=include_videos)
        self.print_outline(progress)

    def _require_progress(self) -> Optional[LearningProgress]:
        progress = self.processor.load_progress()
        if progress is None:
            self.console.print("No saved curriculum. Run [bold]generate SUBJECT[/bold] first.")
        return progress

    def print_outline(self, progress: LearningProgress) -> None:
        curriculum = progress.curriculum
        table = Table(title=f"{curriculum.subject}")
        table.add_column("#", justify="right")
        table.add_column("Module")
        table.add_column("Videos", justify="right")
        table.add_column("Quiz")
        for module in curriculum.modules:
            quiz_id = module_quiz_id(module.module_number)
            result = progress.quiz_results.get(quiz_id)
            table.add_row(
                str(module.module_number),
                module.title,
                str(len(module.videos)),
                f"{result.percentage}%" if result else "-",
            )
        self.console.print(table)

    def show(self, module_number: Optional[int]) -> None:
        progress = self._require_progress()
        if progress is None:
            return

        if module_number is None:
            self.console.print(Markdown(progress.curriculum.program_overview))
            self.print_outline(progress)
            return

        module = progress.curriculum.get_module(module_number)
        if module is None:
            self.console.print(f"Module {module_number} not found.")
            return
        self.print_module(module)

    def print_module(self, module: Module) -> None:
        self.console.rule(module.title)
        if module.learning_objectives:
            self.console.print("[bold]Learning objectives[/bold]")
            for objective in module.learning_objectives:
                self.console.print(f"  • {objective}")
        self.console.print(Markdown(module.content))
        if module.videos:
            self.console.print("[bold]Recommended videos[/bold]")
            for video in module.videos:
                url = video.video_data.url if video.video_data else ""
                self.console.print(f"  ▶ {video.title} ({video.platform}) {video.relevance_description} {url}")

    def _ask(self, index: int, question: QuizQuestion) -> str:
        self.console.print(f"\n[bold]{index + 1}.[/bold] {question.question}")
        if question.type == "multiple-choice" and question.options:
            for number, option in enumerate(question.options, start=1):
                self.console.print(f"   {number}) {option}")
            reply = Prompt.ask("Your answer (number or text)", console=self.console, default="")
            if reply.isdigit() and 1 <= int(reply) <= len(question.options):
                return question.options[int(reply) - 1]
            return reply
        if question.type == "true-false":
            return Prompt.ask("True or false", choices=["true", "false"], console=self.console)
        return Prompt.ask("Your answer", console=self.console, default="")

    def quiz(self, quiz_id: str) -> None:
        progress = self._require_progress()
        if progress is None:
            return
        quiz = progress.curriculum.get_quiz(quiz_id)
        if quiz is None:
            self.console.print(f"Unknown quiz '{quiz_id}'. Use module-N or {FINAL_TEST_ID}.")
            return

        answers: Dict[int, str] = {}
        for index, question in enumerate(quiz.questions):
            answers[index] = self._ask(index, question)

        result = self.processor.submit_quiz(progress, quiz_id, answers)
        self.console.print(f"\nScore: {result.score}/{result.total} ({result.percentage}%)")
        for index, graded in result.answers.items():
            if not graded.is_correct:
                self.console.print(f"  {index + 1}. expected: {quiz.questions[index].answer}")

    def job_detail(self, job_id: str) -> None:
        job = self.processor.get_job(job_id)
        if job is None:
            self.console.print(f"No generation with id '{job_id}'.")
            return
        self.console.print(f"[bold]{job.subject}[/bold] ({job.job_id})")
        self.console.print(f"Status: {job.status.value}, updated {job.updated_at:%Y-%m-%d %H:%M}")
        for module_number, count in sorted((job.videos_per_module or {}).items()):
            self.console.print(f"  Module {module_number}: {count} videos")
        if job.error_message:
            self.console.print(f"[red]Error: {job.error_message}[/red]")

    def status(self, job_id: Optional[str] = None) -> None:
        if job_id:
            self.job_detail(job_id)
            return

        progress = self.processor.load_progress()
        if progress is not None:
            self.print_outline(progress)
            self.console.print(f"Completion: {progress.overall_completion():.0%}")
            final = progress.quiz_results.get(FINAL_TEST_ID)
            if final:
                self.console.print(f"Final test: {final.percentage}%")

        table = Table(title="Recent generations")
        for column in ("Id", "Subject", "Status", "Modules", "Videos", "Updated"):
            table.add_column(column)
        for job in self.processor.recent_jobs():
            table.add_row(
                job.job_id,
                job.subject,
                job.status.value,
                str(job.module_count or "-"),
                str(job.total_videos),
                job.updated_at.strftime("%Y-%m-%d %H:%M"),
            )
        self.console.print(table)

        stats = self.processor.job_statistics()
        if stats.get("total"):
            counts = ", ".join(f"{status} {count}" for status, count in sorted(stats.items()) if status != "total")
            self.console.print(f"Generations: {stats['total']} ({counts})")

    def reset(self) -> None:
        self.processor.reset()
        self.console.print("Saved session cleared.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="opal", description="Generate and study AI-built curricula.")
    commands = parser.add_subparsers(dest="command", required=True)

    generate = commands.add_parser("generate", help="generate a new curriculum")
    generate.add_argument("subject", nargs="+")
    generate.add_argument("--no-videos", action="store_true", help="skip video recommendations")

    show = commands.add_parser("show", help="show the saved curriculum")
    show.add_argument("--module", type=int, default=None)

    quiz = commands.add_parser("quiz", help="take a quiz (module-N or final-test)")
    quiz.add_argument("quiz_id")

    status = commands.add_parser("status", help="show progress and recent generations")
    status.add_argument("--job", default=None, help="show one generation by id")
    commands.add_parser("reset", help="clear the saved session")
    return parser


def run(argv: Optional[List[str]] = None, app: Optional[OpalApp] = None) -> int:
    """Parse arguments and dispatch to the app; returns the exit code."""
    args = build_parser().parse_args(argv)
    app = app or OpalApp()

    try:
        if app.processor is None:
            app.start()
        if args.command == "generate":
            asyncio.run(app.generate(" ".join(args.subject), include_videos=not args.no_videos))
        elif args.command == "show":
            app.show(args.module)
        elif args.command == "quiz":
            app.quiz(args.quiz_id)
        elif args.command == "status":
            app.status(args.job)
        elif args.command == "reset":
            app.reset()
    except (ValueError, CurriculumGenerationError) as e:
        logger.error(str(e))
        app.console.print(f"[red]{e}[/red]")
        return 1
    return 0


def main():
    """Main entry point."""
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
