"""Coarse intent classification for user utterances."""

from __future__ import annotations

import re
from typing import Pattern, Sequence, Tuple

from dreamweaver.schemas import UserIntent


# Checked in order; first match wins.
INTENT_PATTERNS: Sequence[Tuple[UserIntent, Pattern[str]]] = (
    (UserIntent.DIRECT, re.compile(r"^(i want|change|make|let's|can we|stop|go)", re.IGNORECASE)),
    (UserIntent.ASK_QUESTION, re.compile(r"^(why|who|what|where|when|how|\?)", re.IGNORECASE)),
    (UserIntent.AFFIRM, re.compile(r"^(yes|yeah|sure|ok|good|cool|love|like)", re.IGNORECASE)),
    (UserIntent.DENY, re.compile(r"^(no|nah|hate|dislike|scary|bad|don't)", re.IGNORECASE)),
    (UserIntent.INTERRUPT, re.compile(r"^(wait|hold on|pause)", re.IGNORECASE)),
)


class IntentClassifier:
    def classify(self, text: str) -> UserIntent:
        normalized = (text or "").strip().lower()
        if not normalized:
            return UserIntent.UNKNOWN
        for intent, pattern in INTENT_PATTERNS:
            if pattern.search(normalized):
                return intent
        return UserIntent.UNKNOWN
