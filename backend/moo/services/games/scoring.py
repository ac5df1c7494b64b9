from typing import Tuple

from .codec import CODE_LENGTH


def score_guess(guess: str, secret: str) -> Tuple[int, int]:
    """Return ``(bulls, cows)`` for a guess against a secret.

    Bulls are exact position matches. Cows are the remaining guess symbols
    found among the remaining secret symbols, each secret occurrence used
    at most once. Codes of the wrong length score ``(0, 0)``.
    """
    if len(guess) != CODE_LENGTH or len(secret) != CODE_LENGTH:
        return 0, 0

    bulls = 0
    guess_remaining = []
    secret_remaining = []
    for g, s in zip(guess, secret):
        if g == s:
            bulls += 1
        else:
            guess_remaining.append(g)
            secret_remaining.append(s)

    cows = 0
    for g in guess_remaining:
        if g in secret_remaining:
            cows += 1
            secret_remaining.remove(g)

    return bulls, cows


def is_winning_guess(bulls: int) -> bool:
    return bulls == CODE_LENGTH
