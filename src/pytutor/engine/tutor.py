"""Chat tutor: keyword routing over tier-specific replies.

Free-text generation is delegated to a TextGenerator so the scripted
backend can be swapped for a real model without touching the engine.
"""

from __future__ import annotations

import random
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol

from loguru import logger

from pytutor.config.settings import GeneratorBackend, Settings
from pytutor.engine.adaptive import (
    ContentPolicy,
    DifficultyTier,
    InteractionContext,
    build_explanation_prompt,
    derive_policy,
)

# Score assumed when no learner profile could be loaded
FALLBACK_SCORE = 30

APOLOGY = "I'm sorry, I'm having trouble responding right now. Please try again in a moment."
GENERIC_WELCOME = "Hi! I'm your AI coding tutor. How can I help you today?"

WELCOME_MESSAGES = {
    DifficultyTier.BEGINNER: (
        "Hi! I'm here to help you learn Python step by step. Don't worry if things "
        "seem confusing at first - we'll take it slow and I'll explain everything clearly!"
    ),
    DifficultyTier.INTERMEDIATE: (
        "Hello! I'm your AI tutor. I can see you're making good progress with Python. "
        "I'm here to help you tackle more challenging concepts and improve your coding skills."
    ),
    DifficultyTier.ADVANCED: (
        "Greetings! I can see you're quite experienced with Python. I'm here to help you "
        "with advanced concepts, optimization techniques, and complex problem-solving."
    ),
}

HINTS = {
    DifficultyTier.BEGINNER: (
        "Here's a gentle hint: Look at your variable names and make sure they match what "
        "the problem is asking for. Try running your code step by step in your mind."
    ),
    DifficultyTier.INTERMEDIATE: (
        "Hint: Consider the logic flow of your code. Are you handling all the edge cases? "
        "Check your conditional statements and loops."
    ),
    DifficultyTier.ADVANCED: (
        "Hint: Think about the algorithm's efficiency and edge cases. Consider if there's "
        "a more elegant or optimized approach to solve this problem."
    ),
}

CODE_EXPLANATIONS = {
    DifficultyTier.BEGINNER: "Let me explain your code line by line in simple terms...",
    DifficultyTier.INTERMEDIATE: "Here's what your code is doing and how it could be improved...",
    DifficultyTier.ADVANCED: "Let's analyze your code's structure, efficiency, and potential optimizations...",
}

OPENERS = {
    DifficultyTier.BEGINNER: [
        "Great question! Let me break this down into simple steps for you...",
        "Don't worry, this is a common question for beginners. Here's how to think about it...",
        "Let's start with the basics and build up from there...",
    ],
    DifficultyTier.INTERMEDIATE: [
        "That's a good question that shows you're thinking deeper about Python...",
        "Here's a more detailed explanation that should help clarify things...",
        "Let me show you a practical example of how this works...",
    ],
    DifficultyTier.ADVANCED: [
        "Excellent question! This touches on some advanced Python concepts...",
        "Here's the technical explanation and some optimization considerations...",
        "Let's explore the underlying mechanisms and best practices...",
    ],
}

QUICK_ACTIONS = {
    "practice": [
        ("Give me a hint", "Can you give me a hint for this problem?"),
        ("Explain my code", "Can you explain what my code is doing?"),
        ("Why is this wrong?", "Why is my code not working?"),
    ],
    "lesson": [
        ("Explain this better", "Can you explain this concept in simpler terms?"),
        ("Give me an example", "Can you give me a practical example?"),
        ("What's next?", "What should I learn next?"),
    ],
}


class TextGenerator(Protocol):
    async def generate(self, prompt: str) -> str: ...


class ScriptedGenerator:
    """Offline stand-in: hands the formatted request back as the reply."""

    async def generate(self, prompt: str) -> str:
        return prompt


class ClaudeGenerator:
    """Text generation backed by the Claude API."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings.load()
        self._client = None

    def _get_client(self):
        if self._client is None:
            api_key = self.settings.claude.get_api_key()
            if api_key:
                import anthropic
                self._client = anthropic.AsyncAnthropic(api_key=api_key)
        return self._client

    async def generate(self, prompt: str) -> str:
        client = self._get_client()
        if client is None:
            return "Claude API not configured. Set ANTHROPIC_API_KEY to enable the tutor."

        try:
            response = await client.messages.create(
                model=self.settings.claude.get_model(),
                max_tokens=self.settings.claude.max_tokens,
                system="You are a patient Python tutor for learners of all levels.",
                messages=[{"role": "user", "content": prompt}],
            )
            return response.content[0].text
        except Exception as e:
            logger.error("Claude request failed: {}", e)
            return APOLOGY


def make_generator(settings: Settings) -> TextGenerator:
    if settings.generator == GeneratorBackend.CLAUDE:
        return ClaudeGenerator(settings)
    return ScriptedGenerator()


@dataclass
class TutorContext:
    type: str  # "lesson" or "practice"
    content: str = ""
    user_code: Optional[str] = None
    problem_id: Optional[str] = None
    lesson_id: Optional[str] = None


@dataclass
class Message:
    role: str  # "user" or "assistant"
    content: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        return cls(
            role=data["role"],
            content=data["content"],
            timestamp=data.get("timestamp", ""),
        )


def _mentions(message: str, *words: str) -> bool:
    text = re.sub(r"\s+", " ", message.strip().lower())
    return any(w in text for w in words)


class Tutor:
    def __init__(
        self,
        policy: Optional[ContentPolicy] = None,
        generator: Optional[TextGenerator] = None,
        rng: Optional[random.Random] = None,
    ):
        self.policy = policy
        self.generator = generator or ScriptedGenerator()
        self._rng = rng or random.Random()

    @property
    def effective_policy(self) -> ContentPolicy:
        return self.policy or derive_policy(FALLBACK_SCORE)

    def welcome_message(self) -> str:
        if self.policy is None:
            return GENERIC_WELCOME
        return WELCOME_MESSAGES[self.policy.difficulty_tier]

    def hint_text(self) -> str:
        return HINTS[self.effective_policy.difficulty_tier]

    def quick_actions(self, context_type: str) -> list[tuple[str, str]]:
        return list(QUICK_ACTIONS.get(context_type, []))

    async def respond(self, message: str, context: TutorContext) -> str:
        policy = self.effective_policy
        tier = policy.difficulty_tier

        if context.type == "practice" and context.user_code:
            if _mentions(message, "hint", "help"):
                return HINTS[tier]
            if _mentions(message, "explain", "why"):
                return CODE_EXPLANATIONS[tier]

        if context.type == "lesson" and _mentions(message, "explain", "understand"):
            prompt = build_explanation_prompt(context.content, policy, InteractionContext.LESSON)
            return await self.generator.generate(prompt)

        opener = self._rng.choice(OPENERS[tier])
        return (
            f"{opener}\n\nRegarding your question: \"{message}\"\n\n"
            "I'd be happy to help you understand this better. Could you be more "
            "specific about what part you'd like me to explain?"
        )

    async def reply(self, message: str, context: TutorContext) -> Message:
        """respond() wrapped so a failing generator never surfaces as an error."""
        try:
            content = await self.respond(message, context)
        except Exception as e:
            logger.error("Tutor response failed: {}", e)
            content = APOLOGY
        return Message(role="assistant", content=content)
