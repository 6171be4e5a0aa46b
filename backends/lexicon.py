"""
Built-in lexicon sentiment scorer.

Used when no trained sentiment model is available. Produces a continuous
score in [-1, +1] from word valences, with simple handling for negation,
intensifiers and exclamation emphasis.
"""

import math
import re
from typing import Dict, List, Optional

# valence on a -4..+4 scale
DEFAULT_LEXICON: Dict[str, float] = {
    # positive
    "love": 3.2, "loved": 2.9, "loves": 2.7, "lovely": 2.8, "like": 1.5, "liked": 1.5,
    "amazing": 2.8, "awesome": 3.1, "excellent": 3.2, "great": 3.1, "good": 1.9,
    "nice": 1.8, "wonderful": 2.7, "fantastic": 2.6, "best": 3.2, "better": 1.9,
    "happy": 2.7, "glad": 2.0, "perfect": 2.7, "outstanding": 3.0, "brilliant": 2.8,
    "superb": 3.1, "incredible": 2.6, "magnificent": 3.1, "enjoy": 2.2, "enjoyed": 2.3,
    "beautiful": 2.9, "fun": 2.3, "pleased": 1.9, "recommend": 1.5, "impressive": 2.3,
    "helpful": 1.8, "fast": 0.8, "easy": 1.9, "delightful": 2.8, "thanks": 1.9,
    "thank": 1.5, "win": 2.8, "cool": 1.3, "favorite": 2.0, "smooth": 1.1,
    # negative
    "hate": -2.7, "hated": -3.2, "terrible": -2.1, "awful": -2.0, "worst": -3.1,
    "bad": -2.5, "worse": -2.1, "horrible": -2.5, "disappointing": -2.2,
    "disappointed": -1.9, "useless": -1.8, "poor": -2.1, "disgusting": -2.4,
    "pathetic": -2.5, "unacceptable": -2.0, "garbage": -2.1, "waste": -1.8,
    "sad": -2.1, "angry": -2.3, "annoying": -1.7, "broken": -2.1, "slow": -0.8,
    "boring": -1.3, "ugly": -2.3, "fail": -2.3, "failed": -2.3, "crash": -1.7,
    "crashes": -1.7, "buggy": -1.6, "problem": -1.7, "wrong": -2.1, "sucks": -1.5,
    "mediocre": -1.0, "meh": -0.3,
    # mild
    "okay": 0.9, "ok": 0.9, "fine": 0.8, "fair": 1.3, "acceptable": 1.3,
    "average": 0.0, "standard": 0.0,
}

NEGATIONS = frozenset({
    "not", "no", "never", "none", "nobody", "nothing", "neither", "nor", "cannot",
    "dont", "don't", "doesnt", "doesn't", "didnt", "didn't", "isnt", "isn't",
    "wasnt", "wasn't", "wont", "won't", "cant", "can't", "aint", "ain't", "without",
})

BOOSTERS: Dict[str, float] = {
    "very": 0.293, "really": 0.293, "extremely": 0.293, "so": 0.293, "absolutely": 0.293,
    "totally": 0.293, "incredibly": 0.293, "super": 0.293, "most": 0.293,
    "slightly": -0.293, "somewhat": -0.293, "barely": -0.293, "kinda": -0.293,
    "little": -0.293,
}

NEGATION_SCALAR = -0.74
NORMALIZE_ALPHA = 15.0
EXCLAMATION_BOOST = 0.292

_TOKEN_RE = re.compile(r"[a-z]+(?:'[a-z]+)?")


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall(text.lower())


class LexiconSentimentScorer:
    def __init__(self, lexicon: Optional[Dict[str, float]] = None):
        self.lexicon = dict(DEFAULT_LEXICON if lexicon is None else lexicon)

    def _token_valence(self, tokens: List[str], i: int) -> float:
        valence = self.lexicon.get(tokens[i], 0.0)
        if valence == 0.0:
            return 0.0

        # intensifier directly before the word
        if i > 0 and tokens[i - 1] in BOOSTERS:
            boost = BOOSTERS[tokens[i - 1]]
            valence += boost if valence > 0 else -boost

        # negation within the three preceding tokens
        for j in range(max(0, i - 3), i):
            if tokens[j] in NEGATIONS:
                valence *= NEGATION_SCALAR
                break
        return valence

    def score(self, text: str) -> float:
        """Return a sentiment score in [-1, +1]. Text with no cues scores 0.0."""
        tokens = tokenize(text)
        total = sum(self._token_valence(tokens, i) for i in range(len(tokens)))
        if total == 0.0:
            return 0.0

        bangs = min(text.count("!"), 3)
        if bangs:
            total += bangs * EXCLAMATION_BOOST if total > 0 else -bangs * EXCLAMATION_BOOST

        normalized = total / math.sqrt(total * total + NORMALIZE_ALPHA)
        return max(-1.0, min(1.0, normalized))
