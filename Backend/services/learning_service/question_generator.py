# services/learning_service/question_generator.py
from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional

from .ai_gateway import AIGateway, GatewayError, GatewayNotConfigured
from .errors import GenerationError

logger = logging.getLogger(__name__)

# ============================================================================
# Config
# ============================================================================
TOOL_NAME = "generate_quiz_questions"
MODES = ("add", "edit")

QUESTIONS_TOOL = {
    "type": "function",
    "function": {
        "name": TOOL_NAME,
        "description": "Generate educational quiz questions with options and context",
        "parameters": {
            "type": "object",
            "properties": {
                "questions": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "question": {"type": "string", "description": "The question text"},
                            "options": {
                                "type": "array",
                                "items": {"type": "string"},
                                "description": "Array of 4 answer options",
                            },
                            "correctAnswer": {
                                "type": "number",
                                "description": "Index of the correct answer (0-3)",
                            },
                            "context_for_ai": {
                                "type": "string",
                                "description": "Additional context to help AI understand this question",
                            },
                        },
                        "required": ["question", "options", "correctAnswer", "context_for_ai"],
                    },
                }
            },
            "required": ["questions"],
        },
    },
}

# ============================================================================
# Prompts
# ============================================================================

def _optional_line(label: str, value: str) -> str:
    return f"{label}: {value}\n" if value else ""


def _prompts(
    title: str,
    description: str,
    number_of_questions: int,
    additional_context: str,
    theme: str,
    mode: str,
    existing_questions: List[Dict[str, Any]],
) -> List[Dict[str, str]]:
    system = ("You are an expert quiz creator specializing in educational content. "
              "Generate engaging, educational quiz questions based on the provided topic.")

    if mode == "edit":
        system += ("\n\nYour task is to improve and refine existing quiz questions. Make them clearer, "
                   "more educational, and ensure they have good distractors.")
        user = (
            "Improve these existing quiz questions for the topic:\n\n"
            f"Title: {title}\n"
            f"Description: {description}\n"
            + _optional_line("Theme", theme)
            + _optional_line("Additional Context", additional_context)
            + "\nExisting Questions:\n"
            + json.dumps(existing_questions, indent=2)
            + "\n\nEnhance each question by:\n"
              "1. Making the question clearer and more precise\n"
              "2. Improving the quality of answer options\n"
              "3. Ensuring distractors are plausible but clearly wrong\n"
              "4. Adding educational context"
        )
    else:
        system += (
            "\n\nRules:\n"
            f"1. Create exactly {number_of_questions} questions\n"
            "2. Each question should have 4 options\n"
            "3. Each question should have clear educational value\n"
            "4. Include diverse question types (factual, conceptual, application-based)\n"
            "5. Provide helpful context for AI to understand the question's educational purpose\n"
            "6. Mark the correct answer clearly"
        )
        user = (
            f"Create {number_of_questions} quiz questions for the following topic:\n\n"
            f"Title: {title}\n"
            f"Description: {description}\n"
            + _optional_line("Theme/Focus", theme)
            + _optional_line("Additional Requirements", additional_context)
            + "\nReturn the questions in the specified JSON format."
        )

    return [{"role": "system", "content": system}, {"role": "user", "content": user}]

# ============================================================================
# Public API
# ============================================================================

def generate_questions(
    gateway: AIGateway,
    title: str,
    description: str,
    number_of_questions: int = 3,
    points_per_question: int = 10,
    additional_context: str = "",
    theme: str = "",
    mode: str = "add",
    existing_questions: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """
    Generate new questions ("add") or improve existing ones ("edit").

    Returns:
        [{"question": ..., "options": [4 strings], "correctAnswer": 0, "context_for_ai": ...}, ...]

    Raises GenerationError with 400 (bad input), 402 (credits exhausted),
    429 (rate limited) or 500 (anything else).
    """
    if not title or not description:
        raise GenerationError("Title and description are required", 400)
    if mode not in MODES:
        raise GenerationError(f"mode must be one of {', '.join(MODES)}", 400)

    # points_per_question is accepted for parity with the authoring form; scoring does not
    # depend on the generated content
    logger.info("[ai/generate] mode=%s questions=%s points=%s", mode, number_of_questions, points_per_question)

    messages = _prompts(title, description, number_of_questions, additional_context, theme,
                        mode, existing_questions or [])
    try:
        data = gateway.chat(
            messages,
            tools=[QUESTIONS_TOOL],
            tool_choice={"type": "function", "function": {"name": TOOL_NAME}},
        )
    except GatewayNotConfigured as e:
        logger.error("[ai/generate] %s", e)
        raise GenerationError("AI service not configured", 500) from e
    except GatewayError as e:
        if e.status_code == 429:
            raise GenerationError("Rate limit exceeded. Please try again in a moment.", 429) from e
        if e.status_code == 402:
            raise GenerationError("AI credits exhausted. Please add credits to your workspace.", 402) from e
        raise GenerationError("Failed to generate questions with AI", 500) from e

    try:
        tool_call = data["choices"][0]["message"]["tool_calls"][0]
        if tool_call["function"]["name"] != TOOL_NAME:
            raise ValueError(f"unexpected tool {tool_call['function']['name']}")
        generated = json.loads(tool_call["function"]["arguments"])
        questions = generated["questions"]
    except (KeyError, IndexError, TypeError, ValueError) as e:
        logger.error("[ai/generate] unexpected AI response format: %s", e)
        raise GenerationError("Unexpected AI response format", 500) from e

    if not isinstance(questions, list):
        raise GenerationError("Unexpected AI response format", 500)

    logger.info("[ai/generate] generated %d questions", len(questions))
    return questions
