"""Tests for syllable counting and sentence-aligned chunking."""

from mediagraph.graph.chunking import DEFAULT_CHUNK_PREFIX, chunk_by_syllables, count_syllables


def test_count_syllables_simple_words():
    assert count_syllables("cat") == 1
    assert count_syllables("water") == 2
    assert count_syllables("banana") == 3


def test_count_syllables_every_word_counts_once():
    assert count_syllables("rhythm") == 1
    assert count_syllables("") == 0
    assert count_syllables("!!! ...") == 0


def test_silent_e_and_consonant_le():
    assert count_syllables("make") == 1
    assert count_syllables("table") == 2


def test_short_script_is_one_chunk():
    chunks = chunk_by_syllables("Hello there. How are you?", target_syllables=40)

    assert chunks == [f"{DEFAULT_CHUNK_PREFIX}Hello there. How are you?"]


def test_sentences_split_when_over_target():
    text = "One two three. Four five six. Seven eight nine."

    chunks = chunk_by_syllables(text, target_syllables=4, prefix="")

    assert chunks == ["One two three.", "Four five six.", "Seven eight nine."]


def test_long_sentence_becomes_its_own_chunk():
    text = "Hi. This sentence is certainly longer than the target allows. Bye."

    chunks = chunk_by_syllables(text, target_syllables=3, prefix="")

    assert chunks[0] == "Hi."
    assert chunks[1].startswith("This sentence")
    assert chunks[-1] == "Bye."


def test_text_without_terminator_is_kept_whole():
    chunks = chunk_by_syllables("no punctuation here", prefix="> ")

    assert chunks == ["> no punctuation here"]


def test_empty_prefix_leaves_chunks_bare():
    assert chunk_by_syllables("Short.", prefix="") == ["Short."]
