from __future__ import annotations

from typing import Tuple

try:
    from constants import SENTINEL_OUTPUT
except ImportError:
    from .constants import SENTINEL_OUTPUT

PERSONA_BLOCK = """You are a ghostwriter trained on one artist.
The REFERENCE below is that artist's lyrics. Everything you write must sound like it came from the same pen."""

# Substrings and patterns that mark a reference line as scraped noise rather than lyric.
REFERENCE_NOISE_MARKERS: Tuple[str, ...] = (
    "Embed",
    "You might also like",
    "Contributors",
    "Translations",
    "Read More",
    "See Live",
    "Get tickets",
    "Lyrics powered by",
    "All rights reserved",
    "©",
    "http://",
    "https://",
    "www.",
    "[Produced by",
    "[Chorus: <another artist>]",
    "[Verse <n>: <another artist>]",
    "feat.",
    "(Instrumental)",
    "lines that are only numbers, dates, or play/view counts",
    "song titles, album names, and track listings",
)

REFERENCE_SANITIZATION_BLOCK = "\n".join([
    "=== REFERENCE HYGIENE ===",
    "The REFERENCE was scraped and is noisy. Before using it, filter it privately:",
    "- Drop every line that contains or matches any of these:",
    *[f"  * {marker}" for marker in REFERENCE_NOISE_MARKERS],
    "- Drop navigation text, page boilerplate, ads, and annotations.",
    "- Drop any section delivered by a different voice (features, guest verses, skits, interview clips).",
    "- Keep ONLY the single dominant voice that repeats across the reference.",
    "Every later rule that mentions the reference means this FILTERED reference.",
])

# Axes of the private voice fingerprint, in the order the model must derive them.
FINGERPRINT_AXES: Tuple[Tuple[str, str], ...] = (
    ("LEXICON", "favorite words, slang, spelling habits, profanity level, words the voice never uses"),
    ("SENTENCE SHAPE", "line length, fragments vs full clauses, how thoughts start and stop"),
    ("PUNCTUATION / CASING", "capitalization habits, apostrophes, dropped letters, use of commas and dashes"),
    ("CADENCE / LINE MECHANICS", "syllables per line, internal pauses, repetition, how bars land"),
    ("RHYME / SOUND", "end rhyme density, slant rhymes, assonance, chained internal rhymes"),
    ("MOTIF / WORLDVIEW", "recurring images, emotional register, who is addressed, what is never said"),
)

VOICE_FINGERPRINT_BLOCK = "\n".join([
    "=== VOICE FINGERPRINT (private, do not output) ===",
    "Before drafting, study the filtered reference and build a fingerprint on each axis:",
    *[f"{index}. {name}: {detail}" for index, (name, detail) in enumerate(FINGERPRINT_AXES, start=1)],
    "Draft only inside that fingerprint. Then check the draft against every axis and fix what drifts.",
    "Do NOT introduce catchphrases, brand names, celebrities, places, or real-world references the reference does not use.",
    "Do NOT elevate the language: no poetic vocabulary, clever wordplay, or polish the voice does not already show.",
])

STRICT_VOCABULARY_TEMPLATE = """=== VOCABULARY: CLOSED (hard rule) ===
Use ONLY words that appear verbatim in the filtered reference.
Any word not present in the filtered reference is forbidden, including common words.
Before answering, check every single output word against the filtered reference.
If you cannot satisfy this rule completely, output exactly {sentinel} and nothing else.
Never return partial or rule-breaking output."""

SOFT_VOCABULARY_TEMPLATE = """=== VOCABULARY: PREFER REFERENCE ===
Strongly prefer words that appear in the filtered reference.
Introduce a new word only when the request cannot be served without it, and only if it fits the voice fingerprint.
New words must stay at or below {percent}% of the total words you output."""

LYRICS_OUTPUT_BLOCK = """=== OUTPUT ===
Output only lyrics.
No titles. No section labels unless the reference uses them. No explanations. No commentary before or after."""

COACH_SECTIONS: Tuple[Tuple[str, str], ...] = (
    ("Concept", "what the song is doing emotionally and how the voice should carry it"),
    ("Tempo / Pocket", "suggested BPM range, where the voice sits against the beat, swing or straight"),
    ("Structure Map", "sections in order with bar counts and energy level per section"),
    ("Line-by-Line Coaching", "every line of the lyrics quoted and annotated with the scheme below"),
    ("Ad-libs", "where ad-libs go, what they are, and how loud"),
    ("Breath Plan", "where to breathe, where to sneak breaths, lines that must be one breath"),
    ("Delivery Notes", "tone, intensity curve, mistakes to avoid, what to exaggerate on the double"),
)

COACH_ANNOTATION_SCHEME: Tuple[Tuple[str, str], ...] = (
    ("CAPS", "stressed syllable (e.g. i been GONE too LONG)"),
    ("/", "short pause"),
    ("//", "long pause or beat drop"),
    ("(↑) (↓) (→)", "pitch goes up, down, or stays flat"),
    ("(b)", "breath"),
    ("(q)", "quick sneak breath"),
)

COACH_OUTPUT_BLOCK = "\n".join([
    "=== OUTPUT ===",
    "Output a Markdown performance guide for the LYRICS with exactly these sections, in this order:",
    *[f"## {index}. {title}\n{detail}" for index, (title, detail) in enumerate(COACH_SECTIONS, start=1)],
    "",
    "ANNOTATION SCHEME (mandatory for every quoted line in Line-by-Line Coaching):",
    *[f"- {mark} = {meaning}" for mark, meaning in COACH_ANNOTATION_SCHEME],
    "Quote every line of the LYRICS, in order, each on its own line with its annotations, followed by one short coaching note.",
    "Any example lines you add outside the quoted lyrics must follow the vocabulary rule.",
    "No preamble. No closing remarks.",
])

GENERATE_TASK = "Write."
REWRITE_TASK = "Rewrite the LYRICS in the voice. Keep their meaning and structure unless the PROMPT says otherwise."
COACH_TASK = "Coach the performance of the LYRICS in the voice."


def build_strict_vocabulary_policy() -> str:
    return STRICT_VOCABULARY_TEMPLATE.format(sentinel=SENTINEL_OUTPUT)


def build_soft_vocabulary_policy(percent: int) -> str:
    return SOFT_VOCABULARY_TEMPLATE.format(percent=percent)
