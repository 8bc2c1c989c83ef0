"""
Candidate Alphabets

Provides the named character sets a render can pick its glyphs from:
- ASCII_STANDARD: 95 printable ASCII characters
- ASCII_DENSE: Subset sorted by visual density
- ANSI_BLOCKS: Block graphics (░▒▓█)
- ANSI_LINES: Box-drawing characters
- SHIFT_JIS: Japanese character subset for rich structure

Order matters: the matcher breaks ties in favour of the character that
appears first, so an alphabet is an ordered string, not a set.
"""

from typing import Dict, Iterable, List


# ============================================================================
# CHARACTER SET DEFINITIONS
# ============================================================================

# Standard 95 printable ASCII (0x20-0x7E)
ASCII_STANDARD = (
    " !\"#$%&'()*+,-./0123456789:;<=>?"
    "@ABCDEFGHIJKLMNOPQRSTUVWXYZ[\\]^_"
    "`abcdefghijklmnopqrstuvwxyz{|}~"
)

# Dense characters sorted by visual density
ASCII_DENSE = " .'`^\",:;Il!i><~+_-?][}{1)(|/tfjrxnuvczXYUJCLQ0OZmwqpdbkhao*#MW&8%B@$"

# Structural characters - good for edges and lines
ASCII_STRUCTURAL = " .-_=+|/\\<>()[]{}#@"

# Heavy/Bold characters for clearer boundaries and high contrast
ASCII_HEAVY = " @#%8&WM$B0OQZEX"

# ANSI block graphics (extended ASCII / Unicode)
ANSI_BLOCKS = " ░▒▓█▄▀▌▐"

# ANSI line drawing
ANSI_LINES = "╔╗╚╝║═┌┐└┘│─├┤┬┴┼"

# Combined ANSI set
ANSI_FULL = ANSI_BLOCKS + ANSI_LINES

# Japanese Shift-JIS subset (commonly used in AA)
SHIFT_JIS_SUBSET = (
    "　、。・ー「」"  # Punctuation
    "あいうえおかきくけこさしすせそたちつてとなにぬねの"  # Hiragana
    "はひふへほまみむめもやゆよらりるれろわをん"
    "アイウエオカキクケコサシスセソタチツテトナニヌネノ"  # Katakana
    "ハヒフヘホマミムメモヤユヨラリルレロワヲン"
    "人口大小中上下左右"  # Kanji subset
)

_CHARSETS: Dict[str, str] = {
    "ascii_standard": ASCII_STANDARD,
    "ascii_dense": ASCII_DENSE,
    "ascii_structural": ASCII_STRUCTURAL,
    "ascii_heavy": ASCII_HEAVY,
    "ansi_blocks": ANSI_BLOCKS,
    "ansi_lines": ANSI_LINES,
    "ansi_full": ANSI_FULL,
    "shift_jis": SHIFT_JIS_SUBSET,
}

# Line breaks separate rows of the output and are never glyphs
LINE_BREAKS = "\n\r"


def get_charset(name: str = "ascii_standard") -> str:
    """
    Get a character set by name.

    Available charsets:
        - ascii_standard: 95 printable ASCII characters
        - ascii_dense: Characters sorted by density
        - ascii_structural: Edge/line-friendly subset
        - ascii_heavy: Bold, high-contrast subset
        - ansi_blocks: Block graphics (░▒▓█)
        - ansi_lines: Box drawing characters
        - ansi_full: Combined ANSI blocks + lines
        - shift_jis: Japanese character subset

    Args:
        name: Name of the charset

    Returns:
        The ordered alphabet string
    """
    if name not in _CHARSETS:
        raise ValueError(f"Unknown charset: {name}. Available: {list(_CHARSETS.keys())}")
    return _CHARSETS[name]


def list_charsets() -> List[str]:
    """List all available charset names."""
    return list(_CHARSETS.keys())


def unique_characters(chars: Iterable[str]) -> List[str]:
    """
    Distinct characters of ``chars`` in first-seen order, without line breaks.

    Args:
        chars: Alphabet string (or any iterable of single characters)

    Returns:
        List of distinct glyph characters
    """
    seen = set()
    result = []
    for char in chars:
        if char in LINE_BREAKS or char in seen:
            continue
        seen.add(char)
        result.append(char)
    return result
