"""AI service for curriculum generation using Google GenAI."""

import json
import logging
from google.genai import Client
from google.genai import types

from models.curriculum import Curriculum, QUESTION_TYPES
from utils.retry import retry_api_call, classify_api_error

logger = logging.getLogger(__name__)


class CurriculumGenerationError(Exception):
    """Raised when Gemini does not return a usable curriculum."""
    pass


def strip_markdown_code_blocks(text: str) -> str:
    """Strip markdown code blocks from AI response text.

    Args:
        text: Raw text that may contain markdown code blocks

    Returns:
        Cleaned text with markdown code blocks removed
    """
    text = text.strip()
    if text.startswith('```json'):
        text = text[7:]
    elif text.startswith('```'):
        text = text[3:]
    if text.endswith('```'):
        text = text[:-3]
    return text.strip()


def _quiz_schema(description: str) -> types.Schema:
    question = types.Schema(
        type=types.Type.OBJECT,
        properties={
            'question': types.Schema(type=types.Type.STRING),
            'type': types.Schema(type=types.Type.STRING, enum=list(QUESTION_TYPES)),
            'options': types.Schema(
                type=types.Type.ARRAY,
                items=types.Schema(type=types.Type.STRING),
                nullable=True,
            ),
            'answer': types.Schema(type=types.Type.STRING),
        },
        required=['question', 'type', 'answer'],
    )
    return types.Schema(
        type=types.Type.OBJECT,
        description=description,
        properties={'questions': types.Schema(type=types.Type.ARRAY, items=question)},
        required=['questions'],
    )


CURRICULUM_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        'subject': types.Schema(type=types.Type.STRING),
        'programOverview': types.Schema(
            type=types.Type.STRING,
            description="A summary of the entire course, formatted in GitHub-flavored Markdown.",
        ),
        'modules': types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    'moduleNumber': types.Schema(type=types.Type.INTEGER),
                    'title': types.Schema(type=types.Type.STRING),
                    'learningObjectives': types.Schema(
                        type=types.Type.ARRAY,
                        items=types.Schema(type=types.Type.STRING),
                    ),
                    'content': types.Schema(
                        type=types.Type.STRING,
                        description=(
                            "The lesson content, formatted in GitHub-flavored Markdown. "
                            "Use LaTeX for math/formulas ($inline$ or $$display$$)."
                        ),
                    ),
                    'quiz': _quiz_schema("5-10 questions on this module."),
                },
                required=['moduleNumber', 'title', 'learningObjectives', 'content', 'quiz'],
            ),
        ),
        'finalTest': _quiz_schema("20-30 questions covering the whole program."),
    },
    required=['subject', 'programOverview', 'modules', 'finalTest'],
)


def build_curriculum_prompt(subject: str) -> str:
    return f"""You are Opal, an AI-powered Master Educator and Expert Technical Trainer.
Your primary function is to transform a user-specified subject, especially complex hardware or software, into an exceptionally detailed, practical, multi-stage lesson program.
Your goal is to guide a learner from a complete novice to a professional-level user, capable of utilizing all functions fluidly and expertly.
The subject is: "{subject}".

Generate a complete lesson program based on this subject. The output MUST be a valid JSON object that adheres to the provided schema.

CORE INSTRUCTIONS
1. Deep deconstruction: break the subject down feature by feature, from physical or conceptual basics to advanced workflows.
2. Scaffolded, practical modules: choose the number of modules needed to take a learner from novice to expert. Number modules from 1 and title them "Module N: <topic>".
3. Hyper-detailed module content: use headings and subheadings, step-by-step instructions, and explain why and when each technique is used. Include "Pro-Tip" or "Workflow Example" blockquotes.
4. Action-oriented learning objectives, e.g. "The learner will be able to ...".
5. Practical assessments: 5-10 questions per module quiz and 20-30 questions in the final test. Question types are multiple-choice (with options), true-false or short-answer. Provide concise, accurate answers; for multiple-choice the answer must match one option exactly.
"""


class AIService:
    """Service for AI-powered curriculum generation using Gemini."""

    def __init__(self, api_key: str, model_name: str = "gemini-2.5-flash"):
        """Initialize Google GenAI client.

        Args:
            api_key: Google GenAI API key
            model_name: Gemini model to use
        """
        self.api_key = api_key
        self.model_name = model_name
        self.client = Client(api_key=api_key)

        logger.info(f"Initialized AI service with model: {model_name}")

    @retry_api_call(max_retries=3, base_delay=2.0)
    def generate_curriculum(self, subject: str) -> Curriculum:
        """Generate a structured lesson program for a subject.

        Args:
            subject: What the learner wants to study

        Returns:
            The parsed curriculum, with modules sorted by module number

        Raises:
            ValueError: subject is blank
            CurriculumGenerationError: the response could not be parsed
        """
        if not subject or not subject.strip():
            raise ValueError("Subject is required")

        subject = subject.strip()
        logger.info(f"Generating curriculum for: '{subject}'")

        try:
            response = self.client.models.generate_content(
                model=self.model_name,
                contents=build_curriculum_prompt(subject),
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=CURRICULUM_SCHEMA,
                    temperature=0.7,
                )
            )
        except Exception as e:
            logger.error(f"Curriculum generation failed for '{subject}': {e}")
            # Convert specific errors to retryable errors
            retryable = classify_api_error(e)
            if retryable is e:
                raise
            raise retryable from e

        if not response.text:
            logger.error("AI response is empty")
            raise CurriculumGenerationError("Failed to parse curriculum from AI response.")

        try:
            data = json.loads(strip_markdown_code_blocks(response.text))
            curriculum = Curriculum.from_dict(data)
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Failed to parse curriculum response: {e}")
            logger.debug(f"Raw response: {response.text}")
            raise CurriculumGenerationError("Failed to parse curriculum from AI response.") from e

        if not curriculum.modules:
            raise CurriculumGenerationError("AI response contained no modules.")

        curriculum.modules.sort(key=lambda m: m.module_number)
        logger.info(
            f"Generated curriculum for '{subject}': {len(curriculum.modules)} modules, "
            f"{len(curriculum.final_test.questions)} final test questions"
        )
        return curriculum
