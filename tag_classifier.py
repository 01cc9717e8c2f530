"""
Tag Classifier
Assigns topical category labels to a thought using keyword and emoji matching.

Matching is plain substring containment on the lower-cased text, so a keyword
also matches inside longer words ("cat" in "catastrophe"). Each keyword is
tried bare, with a trailing "s" and with a trailing "ing".

Labels come back in category declaration order: keyword categories first in
TAG_KEYWORDS order, then any category matched only by emoji in TAG_EMOJIS order.
"""

from types import MappingProxyType
from typing import List

FALLBACK_TAG = "general"

TAG_KEYWORDS = MappingProxyType({
    "food": (
        "food", "eat", "cook", "recipe", "coffee", "tea", "pizza", "cake", "chocolate",
        "cookies", "restaurant", "dinner", "lunch", "breakfast", "hungry", "delicious",
        "taste", "flavor", "soup", "pasta",
    ),
    "programming": (
        "code", "coding", "debug", "function", "api", "javascript", "python", "html", "css", "react",
        "node", "server", "database", "compile", "syntax", "algorithm", "programming",
        "developer", "git", "github", "bug",
    ),
    "work": (
        "work", "job", "office", "meeting", "deadline", "project", "boss", "colleague",
        "salary", "career", "interview", "presentation", "team", "client", "business",
    ),
    "home": (
        "home", "house", "family", "room", "clean", "organize", "furniture", "garden",
        "plants", "pet", "cat", "dog", "parents", "siblings",
    ),
    "health": (
        "exercise", "workout", "gym", "run", "walk", "yoga", "sleep", "tired", "energy",
        "healthy", "medicine", "doctor", "hospital",
    ),
    "weather": (
        "sunny", "rain", "snow", "cold", "hot", "weather", "storm", "cloud", "wind",
        "sunshine", "temperature",
    ),
    "emotions": (
        "happy", "sad", "excited", "nervous", "angry", "love", "hate", "anxious", "calm",
        "stressed", "grateful", "proud", "disappointed",
    ),
    "travel": (
        "travel", "vacation", "trip", "flight", "hotel", "beach", "mountain", "city",
        "country", "airport", "passport",
    ),
    "entertainment": (
        "movie", "music", "book", "game", "tv", "show", "concert", "theater", "dance",
        "party", "festival",
    ),
    "learning": (
        "learn", "study", "school", "university", "course", "lesson", "teacher", "student",
        "education", "knowledge",
    ),
})

# Single code points only; variation selectors are deliberately left out
TAG_EMOJIS = MappingProxyType({
    "food": frozenset("🍕🍰🍪☕🍝🥘🍳🥗🍔🌮"),
    "emotions": frozenset("😄😊😢😍🥰😤😱"),
    "work": frozenset("💼📊📈💻📝"),
    "home": frozenset("🏠🏡\U0001F6CB🌱"),
})

TAG_CATEGORIES = tuple(TAG_KEYWORDS) + tuple(
    tag for tag in TAG_EMOJIS if tag not in TAG_KEYWORDS
)

KEYWORD_SUFFIXES = ("", "s", "ing")


def _has_keyword(text_lower: str, keywords) -> bool:
    return any(
        keyword + suffix in text_lower
        for keyword in keywords
        for suffix in KEYWORD_SUFFIXES
    )


def _has_emoji(text: str, emojis: frozenset) -> bool:
    return any(char in emojis for char in text)


def classify(text: str) -> List[str]:
    """Return the category labels for a piece of text, never empty"""
    text_lower = text.lower()
    tags: List[str] = []

    for tag, keywords in TAG_KEYWORDS.items():
        if _has_keyword(text_lower, keywords):
            tags.append(tag)

    # Emoji checks use the original text since case folding does not apply
    for tag, emojis in TAG_EMOJIS.items():
        if tag not in tags and _has_emoji(text, emojis):
            tags.append(tag)

    if not tags:
        tags.append(FALLBACK_TAG)

    return tags
