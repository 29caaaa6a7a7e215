"""Syllable-based script chunking used by the syllable chunker node."""

import re

DEFAULT_CHUNK_PREFIX = "Dialogue: "
DEFAULT_TARGET_SYLLABLES = 40

_SENTENCE = re.compile(r"[^.!?]+[.!?]+")
_VOWEL_GROUP = re.compile(r"[aeiouy]+")
_CONSONANT_LE = re.compile(r"[^aeiou]le$")
_NON_ALPHA = re.compile(r"[^a-z]")


def count_syllables(text: str) -> int:
    """Heuristic English syllable count; every word counts at least once."""
    total = 0
    for word in text.lower().split():
        clean = _NON_ALPHA.sub("", word)
        if not clean:
            continue
        count = len(_VOWEL_GROUP.findall(clean))
        if clean.endswith("e") and count > 1:
            count -= 1
        if _CONSONANT_LE.search(clean):
            count += 1
        total += max(1, count)
    return total


def chunk_by_syllables(
    text: str,
    target_syllables: int = DEFAULT_TARGET_SYLLABLES,
    prefix: str = DEFAULT_CHUNK_PREFIX,
) -> list[str]:
    """
    Split `text` into chunks of whole sentences.

    A sentence joins the current chunk only if the chunk stays within
    `target_syllables`; a single sentence longer than the target becomes its
    own chunk. `prefix` is prepended to every chunk.
    """
    sentences = _SENTENCE.findall(text) or [text]
    chunks: list[str] = []
    current = ""
    current_syllables = 0

    for sentence in sentences:
        sentence = sentence.strip()
        syllables = count_syllables(sentence)
        if current_syllables + syllables <= target_syllables:
            current = f"{current} {sentence}" if current else sentence
            current_syllables += syllables
        else:
            if current:
                chunks.append(current)
            current = sentence
            current_syllables = syllables

    if current:
        chunks.append(current)

    if prefix:
        return [prefix + chunk for chunk in chunks]
    return chunks
