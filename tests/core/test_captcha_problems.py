# tests/core/test_captcha_problems.py
"""Tests for arithmetic problem generation."""

import random

import pytest

from marginalia.core.captcha import (
    ADDITION_RANGE,
    MULTIPLICATION_RANGE,
    SUBTRACTION_MINUEND_RANGE,
    MathProblem,
    generate_problem,
    normalize_answer,
)


class TestGenerateProblem:
    """Problems stay inside their operand ranges and answer correctly."""

    def test_operands_and_answers_are_consistent(self):
        rng = random.Random(1234)
        seen_operators = set()
        for _ in range(500):
            problem = generate_problem(rng)
            seen_operators.add(problem.operator)
            if problem.operator == "+":
                assert ADDITION_RANGE[0] <= problem.left <= ADDITION_RANGE[1]
                assert ADDITION_RANGE[0] <= problem.right <= ADDITION_RANGE[1]
                assert problem.answer == problem.left + problem.right
            elif problem.operator == "-":
                assert SUBTRACTION_MINUEND_RANGE[0] <= problem.left <= SUBTRACTION_MINUEND_RANGE[1]
                assert 1 <= problem.right < problem.left
                assert problem.answer == problem.left - problem.right
            else:
                assert MULTIPLICATION_RANGE[0] <= problem.left <= MULTIPLICATION_RANGE[1]
                assert MULTIPLICATION_RANGE[0] <= problem.right <= MULTIPLICATION_RANGE[1]
                assert problem.answer == problem.left * problem.right

        assert seen_operators == {"+", "-", "×"}

    def test_subtraction_is_always_positive(self):
        rng = random.Random(99)
        answers = [
            problem.answer
            for problem in (generate_problem(rng) for _ in range(300))
            if problem.operator == "-"
        ]
        assert answers
        assert min(answers) >= 1

    def test_question_text(self):
        problem = MathProblem(left=6, operator="×", right=3, answer=18)
        assert problem.question == "6 × 3 = ?"

    def test_default_rng_is_used_when_none_given(self):
        problem = generate_problem()
        assert problem.question.endswith("= ?")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(7, "7"), ("7", "7"), (" 07 ", "7"), ("-3", "-3"), ("seven", "seven")],
)
def test_normalize_answer(raw, expected):
    assert normalize_answer(raw) == expected
