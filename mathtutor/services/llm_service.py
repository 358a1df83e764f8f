"""LLM service for tutoring replies and quiz generation."""
import logging
from dataclasses import dataclass
from typing import List, Dict, Optional
from openai import OpenAI
from mathtutor.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


TUTOR_SYSTEM_PROMPT = """You are an educational assistant specialized in mathematics, dedicated to 8-year-old autistic children.
Explain mathematical concepts in a very simple way, using visual descriptions and concrete examples from everyday life.
Break down each problem into small, numbered steps that are easy to understand. Avoid complex metaphors. Be patient, encouraging, and reassuring.
After each explanation, ask a simple question to check the child's understanding. Structure your responses in a clear and predictable manner.

[IMPORTANT] Format your answers using the format below.
[IMPORTANT] If the user's message is a casual conversation that does not include a math problem, put your message in "quickrep", put a short reminder that you are here to help learn math in "explication".
[CRUCIAL] Reply with nothing but the JSON below, with no additional text outside:

```json
{
    "quickrep": "short answer (example: '4 * 9 = 36')",
    "explication": "detailed explanation of the reasoning, with numbered steps and visual descriptions"
}
```
"""


@dataclass
class Completion:
    """Raw text returned by the model."""

    content: str
    finish_reason: Optional[str] = None


class LLMService:
    """Service for interacting with an OpenAI-compatible chat API."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[OpenAI] = None):
        """Initialize the client from explicit settings."""
        self.settings = settings or get_settings()
        self.client = client or OpenAI(
            api_key=self.settings.LLM_API_KEY,
            base_url=self.settings.LLM_BASE_URL,
        )
        self.model = self.settings.LLM_MODEL

    def tutor_reply(self, messages: List[Dict[str, str]]) -> Completion:
        """
        Ask the tutor to answer the conversation so far.

        Args:
            messages: Conversation turns as ``{"role", "content"}`` dicts,
                roles already mapped to ``user``/``assistant``.

        Returns:
            Completion holding the raw model text; parsing is left to the caller.
        """
        history = [{"role": "system", "content": TUTOR_SYSTEM_PROMPT}, *messages]
        return self._complete(history, temperature=self.settings.CHAT_TEMPERATURE)

    def quiz_questions(self, history: List[Dict[str, str]], num_questions: Optional[int] = None) -> Completion:
        """
        Ask for new quiz questions similar to those in the chat history.

        Args:
            history: Previous chat turns used as inspiration
            num_questions: Number of questions to request

        Returns:
            Completion holding the raw model text
        """
        num_questions = num_questions or self.settings.QUIZ_QUESTION_COUNT
        messages = [
            {"role": "system", "content": self._build_quiz_system_prompt()},
            *history,
            {"role": "user", "content": self._build_quiz_user_prompt(num_questions)},
        ]
        return self._complete(messages, temperature=self.settings.QUIZ_TEMPERATURE)

    def _complete(self, messages: List[Dict[str, str]], temperature: float) -> Completion:
        logger.info("Calling %s with %d message(s)", self.model, len(messages))
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )

        if not response.choices or not isinstance(response.choices[0].message.content, str):
            raise ValueError("Invalid response from LLM provider")

        choice = response.choices[0]
        return Completion(content=choice.message.content, finish_reason=choice.finish_reason)

    def _build_quiz_system_prompt(self) -> str:
        """Build the system prompt for quiz generation."""
        language = self.settings.TUTOR_LANGUAGE
        return f"""You are a math quiz generator for 8-year-old children.
Based on the provided question history, generate new, similar but slightly different questions.
Make sure the questions are appropriate for the child's level.

[IMPORTANT] You MUST:
1. Respond ONLY in valid JSON
2. DO NOT add any text before or after the JSON
3. DO NOT include any explanations or comments
4. Include EXACTLY these fields for each question: "question", "answer", "explanation"
5. Use double quotes for all strings
6. DO NOT include duplicate questions in a quiz
7. Write the questions, answers and explanations in {language}
8. DO NOT add backslashes (\\) before symbols like * or ?
   Example - INCORRECT: "What is 14 \\* 2 ?"
             CORRECT: "What is 14 * 2 ?"
9. In the answer field, put the real answer to the question in the question field

Use EXACTLY this format:
{{
    "questions": [
        {{
            "question": "What is 5 + 3 ?",
            "answer": "8",
            "explanation": "To add 5 and 3, start at 5 and count 3 more: 6, 7, 8. So 5 + 3 = 8."
        }}
    ]
}}"""

    def _build_quiz_user_prompt(self, num_questions: int) -> str:
        return (
            f"Generate EXACTLY {num_questions} math questions based on these conversations. "
            "Follow the JSON format STRICTLY."
        )


def get_llm_service() -> LLMService:
    """FastAPI dependency providing the configured LLM service."""
    return LLMService(get_settings())
