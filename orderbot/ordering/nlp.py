# orderbot/ordering/nlp.py
from __future__ import annotations

import difflib
import re
import unicodedata
from typing import Dict, Iterable, List, Optional, Set, Tuple

# ----------------------------
# Spoken quantities (es)
# ----------------------------
NUMBER_WORDS: Dict[str, int] = {
    "cero": 0,
    "un": 1,
    "una": 1,
    "uno": 1,
    "dos": 2,
    "tres": 3,
    "cuatro": 4,
    "cinco": 5,
    "seis": 6,
    "siete": 7,
    "ocho": 8,
    "nueve": 9,
    "diez": 10,
}

# Words that carry no product meaning when comparing names:
# "limonada de coco" == "limonada coco"
STOPWORDS: Set[str] = {
    "de", "del", "con", "y", "e", "la", "el", "los", "las", "al", "a", "en", "para", "sin",
}

# ----------------------------
# Regex helpers
# ----------------------------
# Item separators: commas, semicolons, newlines, +, & and the words "y" / "e".
_SPLIT_RE = re.compile(r"\s*(?:[,;\n+&]|\by\b|\be\b)\s*", re.IGNORECASE)

# Punctuation to spaces (keep letters/numbers/spaces)
_PUNCT_RE = re.compile(r"[^\w\s]+")
_MESSAGE_PUNCT_RE = re.compile(r"[^\w\s,;+&]+")

# Quantity prefix: "2 cafes", "2x cafe", "2 x cafe", "2× cafe", "2xcafe"
# a spaced "x" needs a space after it so "2 xiaomi" keeps its leading x
_QTY_PREFIX_RE = re.compile(r"^\s*(\d+)(?:\s*[x×]\s+|[x×](?=\D)|\s+)(.+?)\s*$", re.IGNORECASE)

# Quantity suffix: "cafe x2", "cafe x 2"
_QTY_SUFFIX_RE = re.compile(r"^\s*(.+?)\s+[x×]\s*(\d+)\s*$", re.IGNORECASE)

# Leading filler: greetings + ordering phrases
_LEADING_FILLER_RE = re.compile(
    r"^\s*(?:"
    r"hola|holi|buenas|buenos dias|buenas tardes|buenas noches|hey|"
    r"por favor|porfa|porfavor|"
    r"quiero|quisiera|queria|quiero pedir|quisiera pedir|"
    r"me das|me da|me regalas|me regala|regalame|dame|deme|"
    r"me gustaria|me gustaria pedir|voy a querer|vamos a querer|"
    r"para mi|para llevar|tambien|ademas|"
    r"pedir|ordenar|pideme|traeme|agregame|agrega|anade|sumale"
    r")\b[,\s]*",
    re.IGNORECASE,
)

# Articles left at the start once filler and quantity are gone
_ARTICLES_RE = re.compile(r"^\s*(?:el|la|los|las|unos|unas)\b\s*", re.IGNORECASE)

# Trailing politeness
_TRAILING_POLITE_RE = re.compile(r"\b(?:por favor|porfa|porfavor|gracias)\s*$", re.IGNORECASE)

# token to protect " y " inside product names so the splitter doesn't break them
_AND_TOKEN = "__y__"


# ----------------------------
# Canonicalization pipeline
# ----------------------------
def strip_accents(s: str) -> str:
    decomposed = unicodedata.normalize("NFKD", s or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(s: str) -> str:
    """
    Basic cleanup used everywhere:
    - lower
    - strip accents ("Frappé de Café" -> "frappe de cafe")
    - punctuation to spaces
    - collapse whitespace
    """
    s = strip_accents((s or "").strip().lower())
    s = _PUNCT_RE.sub(" ", s)
    return re.sub(r"\s+", " ", s).strip()


def normalize_message(s: str) -> str:
    """Like normalize_text but keeps item separators (, ; + & newlines) for splitting."""
    s = strip_accents((s or "").strip().lower())
    s = _MESSAGE_PUNCT_RE.sub(" ", s)
    s = re.sub(r"[^\S\n]+", " ", s)
    return re.sub(r" ?\n ?", "\n", s).strip()


def strip_filler_prefix(raw: str) -> str:
    """
    Removes greetings + ordering filler + leading articles.
    Example:
      "hola quiero por favor el cafe" -> "cafe"
    """
    s = (raw or "").strip()

    # people chain fillers: "hola buenas, quiero pedir ..."
    while True:
        s2 = _LEADING_FILLER_RE.sub("", s).strip()
        if s2 == s:
            break
        s = s2

    s = _ARTICLES_RE.sub("", s).strip()
    s = _TRAILING_POLITE_RE.sub("", s).strip()
    return s


def tokens(s: str) -> List[str]:
    return [t for t in (s or "").split() if t]


def content_tokens(s: str) -> List[str]:
    return [t for t in tokens(s) if t not in STOPWORDS]


# ----------------------------
# Quantity + segment parsing
# ----------------------------
def parse_qty(segment: str) -> Tuple[int, str]:
    """
    Pull the quantity out of a normalized segment.
    Returns (qty, rest); qty defaults to 1. A qty of 0 means "skip this item".
    """
    s = (segment or "").strip()
    if not s:
        return 1, ""

    m = _QTY_PREFIX_RE.match(s)
    if m:
        return int(m.group(1)), m.group(2).strip()

    m = _QTY_SUFFIX_RE.match(s)
    if m:
        return int(m.group(2)), m.group(1).strip()

    head, _, rest = s.partition(" ")
    if head in NUMBER_WORDS and rest:
        return NUMBER_WORDS[head], rest.strip()

    return 1, s


def word_to_int(word: str) -> Optional[int]:
    w = normalize_text(word)
    if w.isdigit():
        return int(w)
    return NUMBER_WORDS.get(w)


def protect_phrases(s: str, phrases: Iterable[str]) -> str:
    """
    Replaces " y " inside known product names with a token so splitting on
    "y" doesn't break "croissant con jamon y queso" in two.
    """
    out = s
    for ph in sorted({p for p in phrases if " y " in p}, key=len, reverse=True):
        out = out.replace(ph, ph.replace(" y ", f" {_AND_TOKEN} "))
    return out


def split_items(msg_norm: str) -> List[str]:
    """Split by item separators; a message made only of separators gives []."""
    parts = [p.strip() for p in _SPLIT_RE.split(msg_norm or "") if p and p.strip()]
    return [p.replace(_AND_TOKEN, "y") for p in parts]


# ----------------------------
# Token repair
# ----------------------------
def singularize(token: str, vocabulary: Set[str]) -> str:
    """cappuccinos -> cappuccino, limones -> limon, only when the result is known."""
    if token in vocabulary or len(token) <= 3:
        return token
    if token.endswith("es") and token[:-2] in vocabulary:
        return token[:-2]
    if token.endswith("s") and token[:-1] in vocabulary:
        return token[:-1]
    return token


def correct_token(token: str, vocabulary: List[str], cutoff: float = 0.8) -> str:
    if token in vocabulary or len(token) < 4:
        return token
    matches = difflib.get_close_matches(token, vocabulary, n=1, cutoff=cutoff)
    return matches[0] if matches else token


# ----------------------------
# Fuzzy matching
# ----------------------------
def fuzzy_best_key(keys: List[str], query: str, cutoff: float = 0.8) -> Optional[str]:
    if not query or not keys:
        return None
    q = query.strip().lower()
    if q in keys:
        return q
    matches = difflib.get_close_matches(q, keys, n=1, cutoff=cutoff)
    return matches[0] if matches else None
