"""System prompt assembly.

``PromptComposer.compose`` joins fixed instruction blocks for the active
mode, lens and pacing state into one system prompt. It is pure: the same
arguments always produce the same text.
"""
from __future__ import annotations

from .models import MODE_PRESENTATION, Lens, Mode, QuizType

BLOCK_SEPARATOR = "\n\n"

BASE_IDENTITY = (
    "You are Claude, an AI tutor. Help the student learn by explaining "
    "concepts clearly, checking their understanding and guiding them toward "
    "answers rather than simply handing them over. Never complete graded "
    "work on the student's behalf."
)

_SUBJECT_PROMPTS: dict[str, str] = {
    "physics": (
        "Help students understand physical concepts, laws, and problem-solving "
        "techniques. Use real-world examples and clear explanations of formulas."
    ),
    "biology": (
        "Guide students through biological concepts from molecular to ecosystem "
        "levels. Emphasize connections between different biological systems."
    ),
    "literature": (
        "Analyze texts, themes, and literary devices. Help students develop "
        "critical reading and interpretation skills."
    ),
    "writing": (
        "Assist with composition, structure, and style. Focus on clarity, "
        "coherence, and effective communication."
    ),
    "mathematics": (
        "Explain mathematical concepts clearly, work through problems "
        "step-by-step, and help build problem-solving skills."
    ),
    "chemistry": (
        "Clarify chemical concepts, reactions, and calculations. Use visual "
        "descriptions when helpful."
    ),
    "history": (
        "Explore historical events, contexts, and their significance. Help "
        "students understand cause-and-effect relationships."
    ),
    "computer science": (
        "Explain programming concepts, algorithms, and best practices. Provide "
        "code examples when appropriate."
    ),
}

_DEFAULT_SUBJECT_PROMPT = (
    "Provide clear, helpful explanations and guide students toward "
    "understanding. Encourage critical thinking and active learning."
)

_MODE_BLOCKS: dict[Mode, str] = {
    Mode.STANDARD: (
        "Engage in regular tutoring mode. Answer questions clearly and thoroughly.\n"
        "Provide explanations, examples, and help students understand concepts deeply."
    ),
    Mode.WRITING: (
        "WRITING MODE ACTIVE:\n"
        "- Guide the writing process without writing for the student\n"
        "- Ask probing questions to develop their ideas\n"
        "- Provide feedback on structure, clarity, and style\n"
        "- Suggest improvements but let them do the actual writing\n"
        "- Focus on teaching writing skills, not producing content"
    ),
    Mode.DEBATE: (
        "DEBATE MODE ACTIVE:\n"
        "- Take positions that challenge the student's statements\n"
        "- Present counter-arguments and alternative perspectives\n"
        "- Use Socratic questioning to expose weak reasoning\n"
        "- Remain respectful but persistent in your challenges\n"
        "- Help them strengthen their arguments by testing them\n"
        "- If they make a strong point, acknowledge it before presenting counters"
    ),
}

_MIMIC_TEMPLATE = (
    "CUSTOM ENTITY MODE - Acting as {entity}:\n"
    "- Embody the personality and knowledge of {entity}\n"
    "- Maintain character while being educational\n"
    "- Use speech patterns and perspectives appropriate to {entity}\n"
    "- Reference relevant experiences or viewpoints of {entity}\n"
    "- Stay helpful and informative despite the roleplay"
)

_QUIZ_COMMON = (
    "QUIZ MODE ACTIVE:\n"
    "You are running a structured quiz. EVERY reply must be exactly one JSON "
    "object and nothing else: no prose before or after it, no markdown code "
    "fences. The application parses your reply as JSON and renders it itself.\n"
    "\n"
    "The first user message is the quiz topic. Ask one question at a time. "
    "After the student answers, reply with a feedback object. When asked for "
    "the next question, reply with the next question object. After the final "
    "question's feedback and a request to continue, reply with a quiz_complete "
    "object.\n"
    "\n"
    "Record types:"
)

_MC_QUESTION_SCHEMA = """\
{
  "type": "question",
  "number": 1,
  "total": 5,
  "preamble": "optional short lead-in",
  "questionText": "Which pigment gives carrots their orange color?",
  "hint": "optional hint",
  "questionType": "multiple_choice",
  "options": ["A) Carotene", "B) Chlorophyll", "C) Melanin", "D) Hemoglobin"],
  "correctAnswer": "A"
}"""

_ER_QUESTION_SCHEMA = """\
{
  "type": "question",
  "number": 1,
  "total": 3,
  "preamble": "optional short lead-in",
  "questionText": "Explain how natural selection leads to adaptation.",
  "hint": "optional hint",
  "questionType": "extended_response"
}"""

_FEEDBACK_SCHEMA = """\
{
  "type": "feedback",
  "isCorrect": true,
  "userAnswer": "the student's answer",
  "correctAnswer": "optional correct answer",
  "explanation": "why the answer is right or wrong",
  "encouragement": "optional short encouragement"
}"""

_COMPLETE_SCHEMA = """\
{
  "type": "quiz_complete",
  "score": "4/5",
  "percentage": 80,
  "summary": "optional overview of the quiz",
  "strengths": ["at least one strength"],
  "weaknesses": ["at least one area to improve"],
  "improvementPlan": "concrete next steps",
  "closingMessage": "optional sign-off"
}"""

_QUIZ_RULES: dict[QuizType, str] = {
    QuizType.MULTIPLE_CHOICE: (
        "Field rules:\n"
        "- questionType is always \"multiple_choice\"\n"
        "- options is a list of exactly four strings formatted \"A) ...\" to \"D) ...\"\n"
        "- correctAnswer is a single letter matching one of the options\n"
        "- isCorrect is a JSON boolean, percentage is an integer from 0 to 100\n"
        "- score is formatted \"correct/total\""
    ),
    QuizType.EXTENDED_RESPONSE: (
        "Field rules:\n"
        "- questionType is always \"extended_response\"\n"
        "- never include options or correctAnswer in a question\n"
        "- judge answers on understanding, not exact wording; explain what a "
        "complete answer would cover\n"
        "- isCorrect is a JSON boolean, percentage is an integer from 0 to 100\n"
        "- score is formatted \"correct/total\""
    ),
}

_LENS_PROMPTS: dict[str, str] = {
    "star wars": (
        "Frame concepts using Star Wars analogies and references.\n"
        "Compare ideas to Force powers, starship systems, galactic politics, or Jedi philosophy.\n"
        "Use familiar characters and situations to illustrate points."
    ),
    "minecraft": (
        "Frame concepts using Minecraft building, crafting, and survival.\n"
        "Compare ideas to recipes, redstone circuits, biomes, and mob behavior.\n"
        "Use familiar in-game situations to illustrate points."
    ),
    "pokemon": (
        "Frame concepts using Pokemon battles, types, and training.\n"
        "Compare ideas to type matchups, evolution, and team building.\n"
        "Use familiar Pokemon and trainers to illustrate points."
    ),
    "marvel avengers": (
        "Frame concepts using Marvel superheroes and their powers.\n"
        "Compare ideas to hero abilities, team strategy, and the science of the Marvel universe.\n"
        "Use familiar characters and battles to illustrate points."
    ),
    "sports": (
        "Use sports metaphors and athletic examples.\n"
        "Compare learning to training, practice, and competition.\n"
        "Reference famous athletes, games, and sporting strategies."
    ),
    "history": (
        "Connect concepts to historical events and figures.\n"
        "Draw parallels to historical situations and outcomes.\n"
        "Use historical context to enrich understanding."
    ),
    "nature": (
        "Use natural phenomena and ecosystems as examples.\n"
        "Draw parallels to animal behaviors and natural processes.\n"
        "Connect concepts to environmental observations."
    ),
}

CLOSING_GUIDELINES = (
    "Always be encouraging and supportive. Adapt your teaching style to the "
    "student's needs.\n"
    "Keep responses concise but thorough. Use examples to illustrate concepts "
    "when helpful."
)


def subject_prompt(subject: str) -> str:
    """Default instructions for a subject, matched by substring."""
    lowered = subject.lower()
    for key, prompt in _SUBJECT_PROMPTS.items():
        if key in lowered:
            return prompt
    return _DEFAULT_SUBJECT_PROMPT


def lens_prompt(lens: Lens) -> str:
    return _LENS_PROMPTS.get(lens.name.strip().lower(), lens.description)


def quiz_schema_example(quiz_type: QuizType) -> str:
    """Minimal valid question record for *quiz_type*."""
    if quiz_type == QuizType.MULTIPLE_CHOICE:
        return _MC_QUESTION_SCHEMA
    return _ER_QUESTION_SCHEMA


def mode_label(mode: Mode) -> str:
    return MODE_PRESENTATION[mode].label


class PromptComposer:
    """Builds the system prompt for one request."""

    def __init__(self, subject_prompt_override: str | None = None) -> None:
        self.subject_prompt_override = subject_prompt_override

    def compose(
        self,
        mode: Mode,
        lens: Lens | None,
        pacing_description: str | None = None,
        entity_name: str | None = None,
        quiz_type: QuizType | None = None,
        is_mode_switching: bool = False,
        previous_mode: Mode | None = None,
        subject: str | None = None,
    ) -> str:
        blocks: list[str] = [self._identity_block(subject)]
        subject_block = self._subject_block(subject)
        if subject_block:
            blocks.append(subject_block)
        blocks.append(self._mode_block(mode, entity_name, quiz_type))
        if is_mode_switching:
            blocks.append(self._mode_switch_block(mode, previous_mode))
        if lens is not None and not lens.is_none:
            blocks.append(self._lens_block(lens))
        if pacing_description:
            blocks.append(f"SESSION PACING:\n{pacing_description}")
        blocks.append(CLOSING_GUIDELINES)
        return BLOCK_SEPARATOR.join(blocks)

    @staticmethod
    def _identity_block(subject: str | None) -> str:
        if subject:
            return f"{BASE_IDENTITY}\nYou specialize in {subject}."
        return BASE_IDENTITY

    def _subject_block(self, subject: str | None) -> str | None:
        if self.subject_prompt_override:
            return self.subject_prompt_override.strip()
        if subject:
            return subject_prompt(subject)
        return None

    @staticmethod
    def _mode_block(
        mode: Mode,
        entity_name: str | None,
        quiz_type: QuizType | None,
    ) -> str:
        if mode == Mode.MIMIC:
            return _MIMIC_TEMPLATE.format(
                entity=entity_name or "the specified character",
            )
        if mode == Mode.QUIZ:
            return PromptComposer._quiz_block(quiz_type)
        return _MODE_BLOCKS[mode]

    @staticmethod
    def _quiz_block(quiz_type: QuizType | None) -> str:
        if quiz_type is None:
            return (
                "QUIZ MODE ACTIVE:\n"
                "The student is choosing a quiz format. Briefly confirm the "
                "topic and wait."
            )
        return BLOCK_SEPARATOR.join((
            _QUIZ_COMMON,
            "1. Question:\n" + quiz_schema_example(quiz_type),
            "2. Feedback:\n" + _FEEDBACK_SCHEMA,
            "3. Quiz complete:\n" + _COMPLETE_SCHEMA,
            _QUIZ_RULES[quiz_type],
        ))

    @staticmethod
    def _mode_switch_block(mode: Mode, previous_mode: Mode | None) -> str:
        if previous_mode is None:
            return (
                f"MODE SWITCH: The student just switched to {mode_label(mode)} "
                "mode. Acknowledge the change briefly and follow the new mode "
                "from this reply on."
            )
        return (
            f"MODE SWITCH: The student just switched from "
            f"{mode_label(previous_mode)} mode to {mode_label(mode)} mode. "
            "Acknowledge the change briefly and follow the new mode from this "
            "reply on, without continuing the previous mode's behavior."
        )

    @staticmethod
    def _lens_block(lens: Lens) -> str:
        return (
            f"LEARNING LENS ({lens.name}):\n"
            f"{lens_prompt(lens)}\n"
            "Make frequent connections to this theme to enhance engagement and "
            "understanding."
        )


# ── Hidden conversation instructions ──
#
# These are sent as hidden user turns, never rendered.

QUIZ_ENDED_MESSAGE = (
    "[Quiz mode has ended. Stop sending JSON quiz records and continue as a "
    "regular tutor in plain conversational text.]"
)

NEXT_QUESTION_PROMPT = (
    "[Continue the quiz: send the next question as a question record, or the "
    "quiz_complete record if that was the final question.]"
)

FRUSTRATION_PROMPT = (
    "[The student is feeling stuck and frustrated. Pause the current "
    "approach. Acknowledge that this part is tricky, then re-explain the most "
    "recent concept from a different angle using a simple everyday example. "
    "Break it into small steps and end with one easy check-in question so the "
    "student can rebuild confidence.]"
)


def lens_activation_message(lens: Lens) -> str:
    return (
        f"[Learning lens activated: {lens.name}. From now on, explain concepts "
        f"through this theme. {lens_prompt(lens)}]"
    )


def lens_transition_message(old: Lens | None, new: Lens | None) -> str:
    if new is None:
        return (
            f"[Learning lens removed (was {old.name if old else 'none'}). Return "
            "to standard explanations without the themed analogies.]"
        )
    if old is None:
        return lens_activation_message(new)
    return (
        f"[Learning lens changed from {old.name} to {new.name}. Stop using "
        f"{old.name} references and switch to the new theme. {lens_prompt(new)}]"
    )


_WELCOME_MESSAGES: dict[str, str] = {
    "physics - mech": (
        "Welcome to Physics! I'm here to help you understand mechanics. What "
        "would you like to explore today - forces, motion, energy, or "
        "something else?"
    ),
    "electrical eng": (
        "Hello! Ready to dive into electrical engineering? We can explore "
        "circuits, signals, power systems, or any other electrical concepts "
        "you're curious about."
    ),
    "literature": (
        "Welcome to your literature space! Whether you're analyzing a specific "
        "text or exploring literary themes, I'm here to guide your journey "
        "through the written word."
    ),
    "writing": (
        "Let's work on your writing together! Whether it's essays, creative "
        "writing, or improving your style, I'm here to help you express "
        "yourself clearly and effectively."
    ),
    "biology": (
        "Welcome to Biology! From molecules to ecosystems, let's explore the "
        "fascinating world of life sciences. What aspect of biology interests "
        "you today?"
    ),
}

DEFAULT_WELCOME = "What are we learning today?"


def welcome_message(subject: str | None) -> str:
    if not subject:
        return DEFAULT_WELCOME
    return _WELCOME_MESSAGES.get(subject.strip().lower(), DEFAULT_WELCOME)
