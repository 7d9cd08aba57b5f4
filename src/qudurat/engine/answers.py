"""Answer equivalence for multiple-choice grading.

A correct answer may be stored as a bare option letter ("ج"), a letter
followed by the option text ("ج. 25 درجة"), or the option text alone.
These helpers decide whether a submitted answer denotes the same choice
and recover the full option text for display.
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

# Positional option identifiers, in presentation order.
OPTION_LETTERS: tuple[str, ...] = ("أ", "ب", "ج", "د")

_PREFIX_RE = re.compile(r"^[أبجد][.\s]+")


def extract_option_letter(text: Optional[str]) -> Optional[str]:
    """Return the leading option letter of ``text``, or None."""
    if not text or not isinstance(text, str):
        return None
    stripped = text.strip()
    if stripped and stripped[0] in OPTION_LETTERS:
        return stripped[0]
    return None


def _is_options(options) -> bool:
    return isinstance(options, (list, tuple))


def strip_option_prefix(text: str) -> str:
    """Drop a leading "<letter>." / "<letter> " marker."""
    return _PREFIX_RE.sub("", text, count=1).strip()


def is_answer_correct(user_answer: Optional[str], correct_answer: Optional[str]) -> bool:
    """Check whether a submitted answer matches the correct answer.

    Tries, in order: exact match, same option letter, one answer being the
    other followed by "." or " ", and equal text once the letter prefix is
    removed. Empty or non-string input never matches.
    """
    if not isinstance(user_answer, str) or not isinstance(correct_answer, str):
        return False
    if not user_answer or not correct_answer:
        return False

    user = user_answer.strip()
    correct = correct_answer.strip()

    if user == correct:
        return True

    user_letter = extract_option_letter(user)
    correct_letter = extract_option_letter(correct)
    if user_letter and correct_letter and user_letter == correct_letter:
        return True

    if (
        user.startswith(correct + ".")
        or user.startswith(correct + " ")
        or correct.startswith(user + ".")
        or correct.startswith(user + " ")
    ):
        return True

    clean_user = strip_option_prefix(user)
    clean_correct = strip_option_prefix(correct)
    if clean_user and clean_correct and clean_user == clean_correct:
        return True

    return False


def normalize_correct_answer(
    correct_answer: Optional[str], options: Optional[Sequence[str]]
) -> Optional[str]:
    """Expand a short (letter) correct answer into its full option text.

    Keys of up to two characters that start with an option letter are
    treated as letters. Falls back to the answer as given.
    """
    if not isinstance(correct_answer, str) or not _is_options(options):
        return correct_answer
    if not correct_answer or not options:
        return correct_answer
    if correct_answer in options:
        return correct_answer

    answer = correct_answer.strip()
    if answer in options:
        return answer

    letter = extract_option_letter(answer)
    if letter and len(answer) <= 2:
        for option in options:
            if not isinstance(option, str):
                continue
            opt = option.strip()
            if opt.startswith(letter + ".") or opt.startswith(letter + " ") or opt[:1] == letter:
                return option

    return correct_answer


def find_full_correct_answer(
    correct_answer_key: Optional[str], options: Optional[Sequence[str]]
) -> Optional[str]:
    """Find the option whose letter matches the first character of the key.

    Stricter than :func:`normalize_correct_answer`: only single extracted
    letters are compared. Returns the key unchanged when nothing matches.
    """
    if not isinstance(correct_answer_key, str) or not _is_options(options):
        return correct_answer_key
    if not correct_answer_key or not options:
        return correct_answer_key
    if correct_answer_key in options:
        return correct_answer_key

    key = correct_answer_key.strip()
    if key in options:
        return key

    for option in options:
        letter = extract_option_letter(option)
        if letter and letter == key[:1]:
            return option

    return correct_answer_key
