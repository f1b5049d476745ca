"""Arithmetic challenge helpers.

Small puzzles that are trivial for a person reading the page and cost a bot an
extra round trip per comment.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Literal

Operator = Literal["+", "-", "×"]
OPERATORS: tuple[Operator, ...] = ("+", "-", "×")

ADDITION_RANGE = (1, 10)
SUBTRACTION_MINUEND_RANGE = (5, 14)
MULTIPLICATION_RANGE = (2, 6)


@dataclass(frozen=True)
class MathProblem:
    """A generated question together with its expected answer."""

    left: int
    operator: Operator
    right: int
    answer: int

    @property
    def question(self) -> str:
        return f"{self.left} {self.operator} {self.right} = ?"


def generate_problem(rng: random.Random | None = None) -> MathProblem:
    """Return a random addition, subtraction or multiplication problem.

    Subtraction never produces a negative or zero result.
    """
    rng = rng or random.SystemRandom()
    operator = rng.choice(OPERATORS)

    if operator == "+":
        left = rng.randint(*ADDITION_RANGE)
        right = rng.randint(*ADDITION_RANGE)
        return MathProblem(left, operator, right, left + right)

    if operator == "-":
        left = rng.randint(*SUBTRACTION_MINUEND_RANGE)
        right = rng.randint(1, left - 1)
        return MathProblem(left, operator, right, left - right)

    left = rng.randint(*MULTIPLICATION_RANGE)
    right = rng.randint(*MULTIPLICATION_RANGE)
    return MathProblem(left, operator, right, left * right)


def normalize_answer(answer: int | str) -> str:
    """Canonicalise a submitted answer before hashing.

    ``"07"``, ``" 7 "`` and ``7`` all hash the same; non-numeric input is kept
    verbatim and will simply never match.
    """
    text = str(answer).strip()
    try:
        return str(int(text))
    except ValueError:
        return text
