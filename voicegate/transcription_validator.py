"""
Transcription Validator - Domain Service for STT Output Quality

Scores a speech-to-text transcript for coherence before it is forwarded to
the LLM turn-taking logic. Speech engines misfire in recognizable ways on
short or noisy Spanish/English utterances:

- stray French/German/Portuguese/Italian function words ("pour", "ich")
- language-mixing artifacts ("pour fin, what's up")
- garbled short utterances and runs of uppercase letters
- odd capitalized tokens followed by a question mark ("O'Hala?")

The score is a lexicon/regex heuristic, not a classifier. Confidence starts
at 1.0 and every rule that fires subtracts a fixed penalty. The final score
maps to one of three actions: process, ask_repeat, ignore.

Architecture:
- validate_transcription() is a pure function, safe to call from any session
- TranscriptionValidationResult is an immutable value object
- TranscriptionValidator wraps the function with logging and event publishing
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Pattern, Tuple

import config
from .base_module import BaseModule
from .control_events import ControlEvent, EVENT_TRANSCRIPT_ACCEPTED, EVENT_TRANSCRIPT_REJECTED
from .logging_utils import log_debug, log_transcript

SUPPORTED_LANGUAGES = ("es", "en")

COMMON_SPANISH_WORDS: FrozenSet[str] = frozenset({
    'hola', 'que', 'como', 'bien', 'si', 'no', 'gracias', 'por', 'favor',
    'bueno', 'claro', 'ojalá', 'ojala', 'vale', 'ok', 'okay', 'entiendo',
    'quiero', 'necesito', 'puedo', 'tengo', 'hay', 'es', 'soy', 'estoy',
    'me', 'te', 'se', 'le', 'lo', 'la', 'los', 'las', 'un', 'una',
    'el', 'ella', 'nosotros', 'ustedes', 'ellos', 'mi', 'tu', 'su',
    'pero', 'porque', 'cuando', 'donde', 'cual', 'quien',
    'muy', 'mas', 'menos', 'mucho', 'poco', 'todo', 'nada', 'algo',
    'ahora', 'luego', 'despues', 'antes', 'siempre', 'nunca',
    'aqui', 'ahi', 'alli', 'cerca', 'lejos', 'arriba', 'abajo',
    'empresa', 'negocio', 'trabajo', 'proyecto', 'sistema', 'datos',
    'ayuda', 'información', 'informacion', 'servicio', 'consulta',
    'automatizar', 'inteligencia', 'artificial', 'chatbot', 'robot',
    'reunión', 'reunion', 'llamada', 'cita', 'agendar', 'contacto',
    'precio', 'costo', 'presupuesto', 'tiempo', 'semana', 'mes',
    'nombre', 'email', 'correo', 'teléfono', 'telefono', 'número', 'numero',
})

COMMON_ENGLISH_WORDS: FrozenSet[str] = frozenset({
    'hello', 'hi', 'hey', 'what', 'how', 'good', 'yes', 'no', 'thanks',
    'please', 'okay', 'ok', 'sure', 'understand', 'want', 'need', 'can',
    'have', 'there', 'is', 'am', 'are', 'me', 'you', 'he', 'she', 'we',
    'they', 'my', 'your', 'his', 'her', 'our', 'their', 'but', 'because',
    'when', 'where', 'which', 'who', 'very', 'more', 'less', 'much',
    'little', 'all', 'nothing', 'something', 'now', 'later', 'after', 'before',
    'always', 'never', 'here', 'near', 'far', 'up', 'down',
    'company', 'business', 'work', 'project', 'system', 'data', 'help',
    'information', 'service', 'consulting', 'automate', 'intelligence',
    'artificial', 'chatbot', 'robot', 'meeting', 'call', 'schedule',
    'contact', 'price', 'cost', 'budget', 'time', 'week', 'month',
    'name', 'email', 'phone', 'number',
})

LEXICONS = {
    'es': COMMON_SPANISH_WORDS,
    'en': COMMON_ENGLISH_WORDS,
}

_I = re.IGNORECASE
# ASCII word boundaries: an accented letter ends a word, so "está" never
# matches \bestá\b while "qué" matches \bqu\b
_W = re.IGNORECASE | re.ASCII

# Words from other languages that show up when STT mishears Spanish/English
SUSPICIOUS_PATTERNS: Tuple[Pattern[str], ...] = (
    # French
    re.compile(r"\bpour\b", _W), re.compile(r"\bfin\b", _W), re.compile(r"\bje\b", _W),
    re.compile(r"\btu\b", _W), re.compile(r"\bvous\b", _W), re.compile(r"\bmerci\b", _W),
    re.compile(r"\bau revoir\b", _W), re.compile(r"\bbonjour\b", _W), re.compile(r"\bc'est\b", _W),
    re.compile(r"\bqu['’]est", _W), re.compile(r"\bcomment\b", _W), re.compile(r"\bqu[oi]?\b", _W),
    # German
    re.compile(r"\bdas\b", _W), re.compile(r"\bist\b", _W), re.compile(r"\bich\b", _W),
    re.compile(r"\bdu\b", _W), re.compile(r"\bwir\b", _W), re.compile(r"\bdanke\b", _W),
    re.compile(r"\bbitte\b", _W), re.compile(r"\bauf wiedersehen\b", _W),
    # Portuguese (where it differs from Spanish)
    re.compile(r"\bobrigad[oa]\b", _W), re.compile(r"\bvocê\b", _W), re.compile(r"\bestá\b", _W),
    # Italian
    re.compile(r"\bciao\b", _W), re.compile(r"\bgrazie\b", _W), re.compile(r"\bprego\b", _W),
    re.compile(r"\bcome\b", _W),
    # Corrupted transcription shapes
    re.compile(r"\bO['’]?Hala\b", _W), re.compile(r"\bWhat['’]?s\s+up\b", _W),
    re.compile(r"[A-Z]{3,}"),  # case-sensitive: runs of capitals
    re.compile(r"\bO['’]?[A-Z][a-z]+\s*\?", _W),
)

_ENGLISH_MARKERS = re.compile(r"\b(what|how|yes|no|please|thanks|hello)\b", _W)

# (other-language markers, English markers): both present = mixing artifact
LANGUAGE_MIX_PATTERNS: Tuple[Tuple[Pattern[str], Pattern[str]], ...] = (
    (re.compile(r"\b(pour|merci|bonjour|au revoir|je|tu|vous)\b", _W), _ENGLISH_MARKERS),
    (re.compile(r"\b(danke|bitte|ich|du|wir)\b", _W), _ENGLISH_MARKERS),
    (re.compile(r"\b(ciao|grazie|prego)\b", _W), _ENGLISH_MARKERS),
)

_CAPITALIZED_QUESTION = re.compile(r"[A-Z][a-z]+\s*\?")
_QUESTION_WORD_START = re.compile(
    r"^(qué|que|cómo|como|cuándo|cuando|dónde|donde|quién|quien|what|how|when|where|who)", _I
)
_NON_LETTER = re.compile(r"[^a-záéíóúüñ\s]", _I)
_TOKEN_PUNCTUATION = re.compile(r"[.,!?;:'\"]")

# Penalties
PENALTY_VERY_SHORT = 0.3
PENALTY_SUSPICIOUS = 0.25
PENALTY_LANGUAGE_MIX = 0.4
PENALTY_LOW_RATIO = 0.3
PENALTY_MODERATE_RATIO = 0.15
PENALTY_SPECIAL_CHARS = 0.2
PENALTY_QUESTION_SHAPE = 0.2

MIN_LETTER_RATIO = 0.7

REPEAT_MESSAGES = {
    'es': 'Disculpa, no te entendí bien. ¿Podrías repetirlo por favor?',
    'en': "Sorry, I didn't quite catch that. Could you please repeat?",
}

REASONS = {
    'empty': 'Empty or too short transcript',
    'ask_repeat': 'Transcript looks garbled or mixes languages; ask the user to repeat',
    'ignore': 'Transcript is too unreliable to use',
}


class SuggestedAction(str, Enum):
    PROCESS = 'process'
    ASK_REPEAT = 'ask_repeat'
    IGNORE = 'ignore'


@dataclass(frozen=True)
class TranscriptionValidationResult:
    """
    Value Object representing a transcript quality verdict.

    detected_issues keeps the order in which rules fired.
    """
    is_valid: bool
    confidence: float
    suggested_action: SuggestedAction
    detected_issues: List[str] = field(default_factory=list)
    reason: Optional[str] = None

    @staticmethod
    def from_confidence(confidence: float, issues: List[str]) -> 'TranscriptionValidationResult':
        """Map a clamped confidence to the process / ask_repeat / ignore bands."""
        process_at = getattr(config, 'TRANSCRIPT_PROCESS_CONFIDENCE', 0.7)
        repeat_at = getattr(config, 'TRANSCRIPT_REPEAT_CONFIDENCE', 0.3)

        if confidence >= process_at:
            return TranscriptionValidationResult(
                is_valid=True,
                confidence=confidence,
                suggested_action=SuggestedAction.PROCESS,
                detected_issues=issues,
            )
        if confidence >= repeat_at:
            return TranscriptionValidationResult(
                is_valid=False,
                confidence=confidence,
                suggested_action=SuggestedAction.ASK_REPEAT,
                detected_issues=issues,
                reason=REASONS['ask_repeat'],
            )
        return TranscriptionValidationResult(
            is_valid=False,
            confidence=confidence,
            suggested_action=SuggestedAction.IGNORE,
            detected_issues=issues,
            reason=REASONS['ignore'],
        )

    @staticmethod
    def empty() -> 'TranscriptionValidationResult':
        return TranscriptionValidationResult(
            is_valid=False,
            confidence=0.0,
            suggested_action=SuggestedAction.IGNORE,
            detected_issues=['empty_or_too_short'],
            reason=REASONS['empty'],
        )


def _tokenize(clean_text: str) -> List[str]:
    return [word for word in clean_text.split() if len(word) > 1]


def count_valid_words(words: List[str], language: str) -> int:
    """
    Count words recognized in either supported lexicon.

    Bilingual utterances are fine, so the other language's lexicon counts too.
    Words of two characters or fewer are ambiguous and always count.
    """
    primary = LEXICONS['en'] if language == 'en' else LEXICONS['es']
    other = LEXICONS['es'] if language == 'en' else LEXICONS['en']

    valid = 0
    for word in words:
        clean_word = _TOKEN_PUNCTUATION.sub('', word).lower()
        if clean_word in primary or clean_word in other or len(clean_word) <= 2:
            valid += 1
    return valid


def _matching_suspicious_patterns(text: str) -> List[Pattern[str]]:
    return [pattern for pattern in SUSPICIOUS_PATTERNS if pattern.search(text)]


def _whole_percent(ratio: float) -> int:
    # Half rounds up: 1/8 -> 13
    return int(ratio * 100 + 0.5)


def _language_mix_count(text: str) -> int:
    return sum(1 for first, second in LANGUAGE_MIX_PATTERNS if first.search(text) and second.search(text))


def validate_transcription(text: str, expected_language: str = 'es') -> TranscriptionValidationResult:
    """
    Score a transcript and recommend what to do with it.

    Args:
        text: Raw STT transcript
        expected_language: 'es' or 'en' (anything else is scored as Spanish)

    Returns:
        TranscriptionValidationResult (never raises)
    """
    text = text or ''
    clean_text = text.strip().lower()
    if len(clean_text) < 2:
        return TranscriptionValidationResult.empty()

    issues: List[str] = []
    confidence = 1.0
    words = _tokenize(clean_text)

    if len(words) <= 2 and len(clean_text) < 8:
        if count_valid_words(words, expected_language) < len(words):
            confidence -= PENALTY_VERY_SHORT
            issues.append('very_short_unclear')

    for pattern in _matching_suspicious_patterns(text):
        confidence -= PENALTY_SUSPICIOUS
        issues.append(f'suspicious_pattern: {pattern.pattern}')

    for _ in range(_language_mix_count(text)):
        confidence -= PENALTY_LANGUAGE_MIX
        issues.append('problematic_language_mix')

    if len(words) >= 3:
        valid_ratio = count_valid_words(words, expected_language) / len(words)
        if valid_ratio < 0.3:
            confidence -= PENALTY_LOW_RATIO
            issues.append(f'low_valid_word_ratio: {_whole_percent(valid_ratio)}%')
        elif valid_ratio < 0.5:
            confidence -= PENALTY_MODERATE_RATIO
            issues.append(f'moderate_valid_word_ratio: {_whole_percent(valid_ratio)}%')

    letter_ratio = len(_NON_LETTER.sub('', text)) / len(text)
    if letter_ratio < MIN_LETTER_RATIO:
        confidence -= PENALTY_SPECIAL_CHARS
        issues.append('excessive_special_characters')

    # Capitalized token right before "?" ("O'Hala?") outside a real question
    if '?' in text and _CAPITALIZED_QUESTION.search(text) and not _QUESTION_WORD_START.match(text):
        confidence -= PENALTY_QUESTION_SHAPE
        issues.append('unusual_question_structure')

    confidence = max(0.0, min(1.0, confidence))
    return TranscriptionValidationResult.from_confidence(confidence, issues)


def needs_validation(text: str) -> bool:
    """Cheap pre-filter: False means the transcript is clearly fine as-is."""
    if not text or len(text) < 3:
        return True
    if _matching_suspicious_patterns(text):
        return True
    return _language_mix_count(text) > 0


def get_repeat_request_message(language: str = 'es') -> str:
    """Localized "please repeat" prompt (Spanish for unknown languages)."""
    return REPEAT_MESSAGES.get(language, REPEAT_MESSAGES['es'])


class TranscriptionValidator(BaseModule):
    """
    Session-facing wrapper around validate_transcription().

    Logs every verdict and, when an event bus is wired in, publishes
    transcript_accepted / transcript_rejected events.
    """

    def __init__(self, language: Optional[str] = None, debug: bool = False,
                 verbose: bool = True, event_bus=None):
        """
        Initialize transcription validator.

        Args:
            language: Expected transcript language ('es' or 'en', default: config.TRANSCRIPT_LANGUAGE)
            debug: Enable debug logging
            event_bus: Optional EventBus for verdict events
        """
        super().__init__(__name__, debug=debug, verbose=verbose, event_bus=event_bus)
        if language is None:
            language = getattr(config, 'TRANSCRIPT_LANGUAGE', 'es')
        self.language = (language or 'es').lower()

    def validate(self, text: str) -> TranscriptionValidationResult:
        result = validate_transcription(text, self.language)

        log_transcript(
            self.logger,
            f"{result.suggested_action.value} ({result.confidence:.2f}): {text!r}"
        )
        if result.detected_issues:
            log_debug(self.logger, f"Issues: {', '.join(result.detected_issues)}")

        event_name = EVENT_TRANSCRIPT_ACCEPTED if result.is_valid else EVENT_TRANSCRIPT_REJECTED
        self.publish(ControlEvent.now(
            event_name,
            payload={
                'text': text,
                'confidence': result.confidence,
                'action': result.suggested_action.value,
                'issues': list(result.detected_issues),
            },
            source='transcription_validator',
        ))
        return result

    def repeat_message(self) -> str:
        return get_repeat_request_message(self.language)
