"""Deterministic rules for export and document intent.

Rules are evaluated in order and the first match wins, so more specific
patterns (``xlsx``, ``csv``) come before generic ones (``spreadsheet``).
The oracle is only consulted by the chains when these rules are silent.
"""

import re
from dataclasses import dataclass

from app.core.schemas_export import ExportScope


@dataclass(frozen=True)
class FormatRule:
    """Maps a phrase pattern to a registered format id."""

    format_id: str
    pattern: str

    @property
    def regex(self) -> re.Pattern:
        return _compiled(self.pattern)


_CACHE: dict[str, re.Pattern] = {}


def _compiled(pattern: str) -> re.Pattern:
    if pattern not in _CACHE:
        _CACHE[pattern] = re.compile(pattern, re.IGNORECASE)
    return _CACHE[pattern]


# =============================================================================
# Format rules (ordered, specific first)
# =============================================================================

FORMAT_RULES: list[FormatRule] = [
    FormatRule("tar.gz", r"\btar\.gz\b|\btgz\b|\btarball\b"),
    FormatRule("7z", r"\b7z\b|\b7-?zip\b"),
    FormatRule("rar", r"\brar\b"),
    FormatRule("zip", r"\bzip\b"),
    FormatRule("xlsx", r"\bxlsx\b"),
    FormatRule("xls", r"\bxls\b"),
    FormatRule("ods", r"\bods\b"),
    FormatRule("csv", r"\bcsv\b"),
    FormatRule("tsv", r"\btsv\b|\btab[- ]separated\b"),
    FormatRule("pptx", r"\bpptx\b"),
    FormatRule("ppt", r"\bppt\b"),
    FormatRule("odp", r"\bodp\b"),
    FormatRule("docx", r"\bdocx\b"),
    FormatRule("odt", r"\bodt\b"),
    FormatRule("pdf", r"\bpdf\b"),
    FormatRule("rtf", r"\brtf\b|\brich text\b"),
    FormatRule("md", r"\bmarkdown\b|\bmd\b"),
    FormatRule("html", r"\bhtml?\b|\bweb ?page\b"),
    FormatRule("xml", r"\bxml\b"),
    FormatRule("ics", r"\bics\b|\bical\b|\bcalendar (?:file|event|invite)\b"),
    FormatRule("vcf", r"\bvcf\b|\bv-?card\b|\bcontact card\b"),
    FormatRule("mbox", r"\bmbox\b"),
    FormatRule("msg", r"\bmsg\b|\boutlook message\b"),
    FormatRule("eml", r"\beml\b|\bemail file\b"),
    FormatRule("png", r"\bpng\b"),
    FormatRule("jpg", r"\bjpe?g\b"),
    FormatRule("bmp", r"\bbmp\b|\bbitmap\b"),
    FormatRule("tiff", r"\btiff?\b"),
    FormatRule("gif", r"\bgif\b"),
    FormatRule("txt", r"\btxt\b|\bplain text\b|\btext file\b"),
    # Generic words last
    FormatRule("doc", r"\.doc\b|(?<!word )\bdoc\b"),
    FormatRule("docx", r"\bword\b(?: (?:document|doc|file|format))?|\bms word\b"),
    FormatRule("xlsx", r"\bexcel\b|\bspreadsheet\b|\bworkbook\b"),
    FormatRule("pptx", r"\bpowerpoint\b|\bslide ?deck\b|\bslides\b|\bpresentation\b"),
    FormatRule("png", r"\bimage\b|\bpicture\b|\bscreenshot\b"),
]

# A format preceded by one of these names the export target
_TARGET_PREFIX = r"\b(?:as|to|into|in)\s+(?:an?\s+)?\.?(?:"

EXPORT_KEYWORDS = re.compile(
    r"\b(?:export|download|downloadable|save (?:it |this |that |them )?as|convert"
    r"|as an? (?:\w+ )?file|in (?:an? )?\w+ format|word file|doc file)\b",
    re.IGNORECASE,
)

CONTENT_VERBS = re.compile(
    r"\b(?:write|create|generate|draft|compose|make|prepare|produce|build"
    r"|explain|summari[sz]e|describe|compare|analy[sz]e|propose|tell me|give me)\b",
    re.IGNORECASE,
)

# Words that are usually nouns ("export the list") count only as a leading command
LEADING_CONTENT_VERBS = re.compile(
    r"^\s*(?:please\s+|can you\s+|could you\s+)?(?:list|plan|design|outline|research)\b",
    re.IGNORECASE,
)

_FORMAT_WORDS = (
    r"(?:pdf|docx?|word|excel|xlsx?|csv|tsv|pptx?|powerpoint|odt|ods|odp|rtf|txt|text"
    r"|markdown|md|html?|xml|ics|vcf|eml|msg|mbox|jpe?g|png|bmp|tiff?|gif|zip|rar|7z"
    r"|tar\.gz|spreadsheet|presentation|image)"
)
_FILE_NOUN = r"(?:file|document|doc|version|copy|export|download|attachment)"
_FILE_TARGET = rf"(?:{_FORMAT_WORDS}(?:\s+{_FILE_NOUN})?|{_FILE_NOUN})"

# Verb phrases that ask for a file ("make me a pdf of this", "send the document")
FILE_REQUEST_PHRASES = [
    re.compile(
        rf"\b(?:give|send|get)\s+(?:me\s+|us\s+)?(?:an?\s+|the\s+)?{_FILE_TARGET}\b",
        re.IGNORECASE,
    ),
    re.compile(
        rf"\b(?:create|generate|make|produce|prepare|build)\s+(?:me\s+|us\s+)?(?:an?\s+)?"
        rf"{_FILE_TARGET}\b",
        re.IGNORECASE,
    ),
]

# A file request followed by a topic asks for new content ("a pdf about tides")
_TOPIC_AFTER_FILE = re.compile(
    r"\s+(?:about|on|covering|explaining|describing|summari[sz]ing|outlining|listing|detailing)\b",
    re.IGNORECASE,
)

# How-to questions mention formats without asking for a file
_HOWTO_QUESTION = re.compile(
    r"^\s*(?:how|what|why|which|where|when|who|is|are|does|do|did|should|can i|could i)\b",
    re.IGNORECASE,
)


def match_format(message: str) -> str | None:
    """Return the target format id named in a message, or None.

    A format in target position ("as pdf", "to excel") beats one merely
    mentioned; within each pass the first rule in order wins.
    """
    if not message:
        return None
    for rule in FORMAT_RULES:
        if _compiled(_TARGET_PREFIX + rule.pattern + ")").search(message):
            return rule.format_id
    for rule in FORMAT_RULES:
        if rule.regex.search(message):
            return rule.format_id
    return None


def has_export_keyword(message: str) -> bool:
    return bool(EXPORT_KEYWORDS.search(message or ""))


def has_file_request(message: str) -> bool:
    """True for phrasings like "make me a pdf of this" that ask for a file without "export"."""
    return any(phrase.search(message or "") for phrase in FILE_REQUEST_PHRASES)


def is_howto_question(message: str) -> bool:
    return bool(_HOWTO_QUESTION.search(message or ""))


def has_content_request(message: str) -> bool:
    """True when the message asks for new content, not just a file."""
    text = message or ""
    if LEADING_CONTENT_VERBS.search(text):
        return True
    residual = text
    for phrase in FILE_REQUEST_PHRASES:
        for match in phrase.finditer(text):
            if _TOPIC_AFTER_FILE.match(text, match.end()):
                return True
        residual = phrase.sub(" ", residual)
    return bool(CONTENT_VERBS.search(residual))


_EXPORT_CLAUSE_RE = re.compile(
    r"(?:,?\s*(?:and|then)\s+)?\b(?:export|download|save|convert)\b[^.?!\n]*",
    re.IGNORECASE,
)
_FORMAT_PHRASE_RE = re.compile(
    rf"\s*\b(?:as|in|into|to)\s+(?:an?\s+)?\.?{_FORMAT_WORDS}(?:\s+(?:file|format|document))?\b",
    re.IGNORECASE,
)


def strip_export_instructions(message: str) -> str:
    """The content request of a combined message, without the export clause.

    "write a budget and export it as pdf" -> "write a budget"
    """
    text = _EXPORT_CLAUSE_RE.sub("", message or "")
    text = _FORMAT_PHRASE_RE.sub("", text)
    return re.sub(r"\s{2,}", " ", text).strip(" ,;:")


# =============================================================================
# Scope rules
# =============================================================================

_SCOPE_EXPORT_WORDS = re.compile(
    r"\b(?:export|word|pdf|docx?|excel|file|download|document|doc file|word file|save as)\b",
    re.IGNORECASE,
)
_SCOPE_ALL = re.compile(
    r"\b(?:all (?:the )?content|entire chat|entire conversation|whole chat|whole conversation"
    r"|all the above|full report|full conversation|entire history|all your answers"
    r"|entire discussion|complete report|everything together|all we discussed)\b",
    re.IGNORECASE,
)
_SCOPE_PREVIOUS = re.compile(
    r"\b(?:this|above|that answer|that response|last reply|previous reply|previous answer"
    r"|last message|last explanation)\b",
    re.IGNORECASE,
)


def detect_scope(message: str) -> ExportScope:
    """Classify which part of the conversation an export covers. Default CURRENT."""
    text = message or ""
    if not _SCOPE_EXPORT_WORDS.search(text):
        return ExportScope.CURRENT
    if _SCOPE_ALL.search(text):
        return ExportScope.ALL
    if _SCOPE_PREVIOUS.search(text):
        return ExportScope.PREVIOUS
    return ExportScope.CURRENT


# =============================================================================
# Document intent rules
# =============================================================================

_MODIFY_LEAD = re.compile(
    r"^\s*(?:please\s+|can you\s+|could you\s+)?(?:change|replace|update|edit|modify|fix|correct"
    r"|rewrite|rephrase|reword|add|remove|delete|insert|rename|shorten|expand|turn|swap"
    r"|make (?:it|this|the))\b",
    re.IGNORECASE,
)
_ANALYZE_LEAD = re.compile(
    r"^\s*(?:please\s+)?(?:what|why|how|who|when|where|which|is|are|does|do|summari[sz]e"
    r"|explain|analy[sz]e|describe|review|tell me|find|extract|compare|check)\b",
    re.IGNORECASE,
)


def match_document_intent(message: str) -> str | None:
    """Fast-path document intent: 'export', 'modify', 'analyze' or None."""
    text = (message or "").strip()
    if not text:
        return None
    if not is_howto_question(text) and has_export_keyword(text) and match_format(text):
        return "export"
    if _MODIFY_LEAD.search(text):
        return "modify"
    if _ANALYZE_LEAD.search(text) or text.endswith("?"):
        return "analyze"
    return None
