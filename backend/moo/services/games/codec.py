"""Conversion between symbol sequences and stored codes.

A code is stored as a string of single digits, one per position, each digit
being the symbol's index in ``GAME_SYMBOLS``.
"""

import random
from typing import List, Sequence

GAME_SYMBOLS = ('🐮', '🥛', '🐄', '🌸', '🌿', '🧺')
CODE_LENGTH = 4
DIGITS = '0123456789'


def symbol_to_index(symbol: str) -> int:
    # Unknown symbols fall back to the first one
    try:
        return GAME_SYMBOLS.index(symbol)
    except ValueError:
        return 0


def index_to_symbol(index: int) -> str:
    if 0 <= index < len(GAME_SYMBOLS):
        return GAME_SYMBOLS[index]
    return GAME_SYMBOLS[0]


def encode(symbols: Sequence[str]) -> str:
    return ''.join(str(symbol_to_index(s)) for s in symbols)


def decode(code: str) -> List[str]:
    symbols = []
    for char in code:
        index = int(char) if char in DIGITS else -1
        symbols.append(index_to_symbol(index))
    return symbols


def is_valid_code(code) -> bool:
    if not isinstance(code, str) or len(code) != CODE_LENGTH:
        return False
    return all(c in DIGITS and int(c) < len(GAME_SYMBOLS) for c in code)


def generate_random_code() -> str:
    return ''.join(str(random.randrange(len(GAME_SYMBOLS))) for _ in range(CODE_LENGTH))
