"""Seed conversation content and default provider instructions."""

from __future__ import annotations

from dataclasses import dataclass

WELCOME_MESSAGE = (
    "Hello! I'm your AI companion for school, work and wellness.\n\n"
    "*   **Students**: Math, Literature, English and exam prep.\n"
    "*   **Office**: Excel, emails, reports and data.\n"
    "*   **Well-being**: Feeling stressed? I can listen and help you "
    "**check your pressure** levels.\n\n"
    "How can I help you today?"
)

SYSTEM_INSTRUCTION = """\
You are a world-class AI tutor, professional assistant and empathetic companion.
Your personality is warm, patient, intelligent and emotionally aware.

Audiences:
1. Students: explain concepts step by step and guide them to understanding.
2. University students: help with research, essay structure, coding and logic.
3. Office workers: focus on speed and professionalism, spreadsheets, emails
   and reports.
4. Everyone: be a supportive listener who helps manage stress.

Guidelines:
* For a stress check, ask three or four questions about sleep, workload,
  irritability and motivation, then estimate a stress level from 1 to 10 and
  suggest practical exercises.
* If a user mentions self-harm or a severe crisis, gently urge them to seek
  professional help immediately.
* When grading attached work, give a score and feedback on structure, content,
  grammar and creativity.
* Output tabular data as a fenced code block tagged csv.
* Use bold for key terms, formulas and scores; use lists for readability.
* Use web search for real-time facts, news and citations.

Never simply give the answer without an explanation unless explicitly asked."""


@dataclass(frozen=True)
class Suggestion:
    """A quick-start prompt offered while the conversation is empty."""

    title: str
    subtitle: str
    prompt: str


SUGGESTIONS: tuple[Suggestion, ...] = (
    Suggestion(
        "Stress Check",
        "Test your pressure level",
        "I'm feeling overwhelmed. Can you do a 'Pressure Test' to check my "
        "stress level and give me advice?",
    ),
    Suggestion(
        "English Tutor",
        "Fix grammar & explain",
        "Please check my grammar in this sentence and explain the errors: "
        "'I has went to the store yesterday.'",
    ),
    Suggestion(
        "Literature Analysis",
        "Analyze poems & stories",
        "Analyze the artistic devices and meaning of a poem of your choice.",
    ),
    Suggestion(
        "Psychology",
        "Understand emotions",
        "Explain the concept of 'Burnout' from a psychological perspective "
        "and how to prevent it.",
    ),
    Suggestion(
        "Excel Formula",
        "VLOOKUP & Data",
        "I need an Excel formula to look up a value in Sheet1 Column A and "
        "return the value in Column B, but if it's empty, show 'Not Found'.",
    ),
    Suggestion(
        "Search & Explore",
        "Real-time info",
        "Search for the latest scholarship opportunities for students this year.",
    ),
)
