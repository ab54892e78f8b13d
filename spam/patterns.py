"""
Curated phrase sets used by the lexical detector.

Phrases are matched case-insensitively on word boundaries, so short
entries such as "irs" or "mlm" do not fire inside longer words.
"""

import re
from typing import Dict, Iterable, List, Tuple

FINANCIAL_SCAM_PHRASES = (
    "make money fast",
    "earn money online",
    "work from home",
    "get rich quick",
    "investment opportunity",
    "cryptocurrency investment",
    "bitcoin investment",
    "forex trading",
    "binary options",
    "pyramid scheme",
    "multi-level marketing",
    "mlm",
    "passive income",
    "financial freedom",
    "quit your job",
    "retire early",
    "double your money",
)

PHISHING_PHRASES = (
    "verify your account",
    "confirm your details",
    "update your information",
    "security check",
    "account suspended",
    "unusual activity",
    "login attempt",
    "password reset",
    "credit card verification",
    "bank account verification",
    "social security number",
    "ssn",
    "tax refund",
    "irs",
    "government grant",
    "free money",
    "claim your prize",
    "you've won",
    "congratulations you won",
)

CLICKBAIT_PHRASES = (
    "you won't believe",
    "shocking truth",
    "secret revealed",
    "doctors hate this",
    "one weird trick",
    "what happens next",
    "number 7 will shock you",
    "this will change everything",
    "amazing discovery",
    "incredible results",
    "miracle cure",
    "instant results",
    "overnight success",
    "guaranteed results",
)

URGENCY_PHRASES = (
    "limited time",
    "act now",
    "don't wait",
    "expires soon",
    "last chance",
    "final offer",
    "while supplies last",
    "only today",
    "urgent action required",
    "immediate attention",
    "time sensitive",
    "deadline approaching",
)

MISLEADING_PHRASES = (
    "100% guaranteed",
    "no risk",
    "free trial",
    "no obligation",
    "cancel anytime",
    "no hidden fees",
    "money back guarantee",
    "satisfaction guaranteed",
    "proven results",
    "scientifically proven",
    "doctor recommended",
    "expert approved",
)

ENGAGEMENT_BAIT_PHRASES = (
    "like and share",
    "like and comment",
    "like and follow",
    "share and follow",
    "tag someone",
    "tag a friend",
    "tag your friends",
    "follow for follow",
    "comment below",
    "smash that like",
)

MONEY_RX = re.compile(r"[$€£]\s?\d|\b\d+(?:\.\d+)?\s?(?:usd|btc|eth|usdt)\b", re.IGNORECASE)
LINK_RX = re.compile(r"https?://|www\.", re.IGNORECASE)


def normalize(text: str) -> str:
    # 둥근 따옴표를 ASCII로 통일해 "don’t" 같은 표기도 매칭
    return (text or "").lower().replace("’", "'").replace("‘", "'")


def compile_phrases(phrases: Iterable[str]) -> List[Tuple[str, re.Pattern]]:
    return [(p, re.compile(r"(?<!\w)" + re.escape(p.lower()) + r"(?!\w)")) for p in phrases]


PHRASE_SETS: Dict[str, List[Tuple[str, re.Pattern]]] = {
    "financial_scam": compile_phrases(FINANCIAL_SCAM_PHRASES),
    "phishing_attempt": compile_phrases(PHISHING_PHRASES),
    "clickbait": compile_phrases(CLICKBAIT_PHRASES),
    "fake_urgency": compile_phrases(URGENCY_PHRASES),
    "misleading_info": compile_phrases(MISLEADING_PHRASES),
    "engagement_farming": compile_phrases(ENGAGEMENT_BAIT_PHRASES),
}


def phrase_hits(text: str, compiled: List[Tuple[str, re.Pattern]]) -> List[str]:
    text_lc = normalize(text)
    return [phrase for phrase, rx in compiled if rx.search(text_lc)]
