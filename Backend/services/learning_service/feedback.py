# services/learning_service/feedback.py
"""
Short AI feedback for a single quiz answer.

The quiz never waits on this: every failure (no key, rate limit, upstream
error, timeout, odd response) degrades to a canned encouragement.
"""

from __future__ import annotations
import logging

from .ai_gateway import AIGateway, GatewayError, GatewayNotConfigured

logger = logging.getLogger(__name__)

RATE_LIMITED_CORRECT = "Great job! Try to reduce your carbon footprint by making small daily changes."
RATE_LIMITED_INCORRECT = "Keep learning! Every small action counts towards a sustainable future."
FALLBACK_FEEDBACK = "Great effort! Keep learning about sustainability and taking action in your daily life."


def _system_prompt(correct: bool) -> str:
    verdict = "correct" if correct else "incorrect"
    return (
        "You are an eco-friendly sustainability educator. Provide concise, actionable feedback for quiz answers.\n"
        "Your response should:\n"
        f"1. Explain why the answer is {verdict}\n"
        "2. Provide ONE specific, actionable tip the user can implement immediately\n"
        "Keep it brief (2-3 sentences max) and encouraging."
    )


def _user_prompt(question: str, user_answer: str, correct: bool, context: str) -> str:
    return (
        f"Question: {question}\n"
        f"User's answer: {user_answer}\n"
        f"Status: {'Correct' if correct else 'Incorrect'}\n"
        f"Context: {context}\n\n"
        "Provide brief explanation and one actionable eco-tip."
    )


def get_feedback(gateway: AIGateway, question: str, user_answer: str, correct: bool, context: str = "") -> str:
    try:
        data = gateway.chat([
            {"role": "system", "content": _system_prompt(correct)},
            {"role": "user", "content": _user_prompt(question, user_answer, correct, context)},
        ])
        feedback = data["choices"][0]["message"]["content"]
    except GatewayError as e:
        if e.status_code == 429:
            return RATE_LIMITED_CORRECT if correct else RATE_LIMITED_INCORRECT
        logger.warning("[feedback] gateway failed: %s", e)
        return FALLBACK_FEEDBACK
    except GatewayNotConfigured as e:
        logger.warning("[feedback] %s", e)
        return FALLBACK_FEEDBACK
    except (KeyError, IndexError, TypeError, ValueError) as e:
        logger.warning("[feedback] unexpected gateway response: %s", e)
        return FALLBACK_FEEDBACK

    if not isinstance(feedback, str) or not feedback.strip():
        return FALLBACK_FEEDBACK
    return feedback.strip()
