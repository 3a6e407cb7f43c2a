import logging
import re
from typing import Optional

import sympy as sp
from sympy.parsing.sympy_parser import (
    implicit_multiplication_application,
    parse_expr,
    standard_transformations,
)

logger = logging.getLogger(__name__)

TRAILING_PUNCTUATION = ".,;:!?"

# 2x -> 2*x
TRANSFORMATIONS = standard_transformations + (implicit_multiplication_application,)

MAX_EXPRESSION_LENGTH = 120
MAX_EXPONENT = 1000
_SAFE_CHARS = re.compile(r"[0-9a-z+\-*/^().\s]+")
_MULTI_LETTER = re.compile(r"[a-z]{2,}")
_LARGE_EXPONENT = re.compile(r"(\^|\*\*)\s*\(?\s*\d{3,}")


def normalize_answer(answer: str) -> str:
    """
    Lenient comparison form of a typed answer:
    trimmed, lower-cased, without any whitespace and without
    trailing punctuation.
    """
    s = re.sub(r"\s+", "", (answer or "").strip().lower())
    return s.rstrip(TRAILING_PUNCTUATION)


def answers_match(user_answer: str, expected_answer: str) -> bool:
    """
    Equality or containment of the normalized forms.

    Known to over-accept: "2" matches "12".
    """
    user = normalize_answer(user_answer)
    expected = normalize_answer(expected_answer)

    if user == expected:
        return True

    if user and expected and (user in expected or expected in user):
        return True

    return False


def normalize_math_expression(expr: str) -> str:
    if not expr:
        return expr

    expr = expr.strip().lower()

    # multiplication and division signs
    expr = expr.replace("×", "*").replace("·", "*").replace("÷", "/")
    expr = expr.replace("−", "-")

    expr = expr.replace("^", "**")
    expr = re.sub(r"\s+", " ", expr)

    return expr.strip().rstrip(TRAILING_PUNCTUATION)


def _is_safe_expression(expr: str) -> bool:
    if not expr or len(expr) > MAX_EXPRESSION_LENGTH:
        return False
    if not _SAFE_CHARS.fullmatch(expr):
        return False
    # single-letter variables only, so no function or attribute names get evaluated
    if _MULTI_LETTER.search(expr):
        return False
    if _LARGE_EXPONENT.search(expr) or expr.count("**") > 2:
        return False
    return True


def _small_powers(expr) -> bool:
    for power in expr.atoms(sp.Pow):
        # no towers such as 9^99^9
        if power.exp.has(sp.Pow):
            return False
        exponent = power.exp.doit()
        if exponent.is_number and abs(exponent) > MAX_EXPONENT:
            return False
    return True


def parse_answer_expression(answer: str) -> Optional[sp.Expr]:
    """
    Parse an answer such as "1/2", "0.5" or "x = 4" into a sympy expression.

    For "<variable> = <value>" only the value is kept. Anything that is not a
    plain arithmetic/algebraic expression returns None.
    """
    s = normalize_math_expression(answer or "")

    if "=" in s:
        left, right = s.split("=", 1)
        if not re.fullmatch(r"\s*[a-z]\s*", left) or "=" in right:
            return None
        s = right.strip()

    if not _is_safe_expression(s):
        return None

    try:
        # unevaluated first, so powers are checked before they are computed
        raw = parse_expr(s, transformations=TRANSFORMATIONS, evaluate=False)
        if not _small_powers(raw):
            return None
        return parse_expr(s, transformations=TRANSFORMATIONS)
    except Exception as e:
        logger.debug("Could not parse answer %r: %s", answer, e)
        return None


def symbolically_equivalent(user_answer: str, expected_answer: str) -> bool:
    user = parse_answer_expression(user_answer)
    expected = parse_answer_expression(expected_answer)

    if user is None or expected is None:
        return False

    try:
        return sp.simplify(user - expected) == 0
    except Exception as e:
        logger.debug("Could not compare %r and %r: %s", user_answer, expected_answer, e)
        return False
