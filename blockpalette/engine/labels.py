"""Label resolution - human-readable text for block types and categories.

Block labels are resolved through a priority chain; the first step
that yields a usable string wins:

    1. Known-operator table (curated strings for common operators)
    2. Exact message catalog keys derived from the type id
    3. Fuzzy scan of the whole catalog for keys mentioning the suffix
    4. Prettified type id (always succeeds for a non-empty type id)

Localized messages carry %1, %2 ... placeholders which are filled
from the field values of the block's serialized instance data.

Usage:
    from blockpalette.engine.labels import LabelResolver

    resolver = LabelResolver(catalog)
    resolver.resolve("looks_sayforsecs", '<block type="looks_sayforsecs">...</block>')
    resolver.resolve_category_name("%{BKY_CATEGORY_LOOKS}")  # "Looks"
"""

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Callable, Optional, Union

from blockpalette.core.exceptions import TemplateParseError
from blockpalette.core.logging import get_logger
from blockpalette.host.messages import MessageCatalog

logger = get_logger(__name__)

InstanceData = Union[ET.Element, str, None]

PLACEHOLDER_RE = re.compile(r"%(\d+)")
NUMERIC_RE = re.compile(r"[\d\s]+")
LETTER_RE = re.compile(r"[A-Za-z]")
WHITESPACE_RE = re.compile(r"\s+")
WORD_START_RE = re.compile(r"\b\w")

CATEGORY_REF_RE = re.compile(r"%\{(.+)\}")
CATEGORY_PREFIX_RE = re.compile(r"^(?:BKY_)?(?:CATEGORY_)?", re.IGNORECASE)
CATEGORY_MARKER_RE = re.compile(r"bky|category", re.IGNORECASE)
CATEGORY_SEPARATOR_RE = re.compile(r"[ _]")

# Operators have no single good localized phrase and are queried constantly
OPERATOR_LABELS: dict[str, str] = {
    "OPERATOR_GT": "> greater than",
    "OPERATOR_LT": "< less than",
    "OPERATOR_EQUALS": "= equals",
    "OPERATOR_AND": "and",
    "OPERATOR_OR": "or",
    "OPERATOR_NOT": "not",
    "OPERATOR_ADD": "+ add",
    "OPERATOR_SUBTRACT": "- subtract",
    "OPERATOR_MULTIPLY": "* multiply",
    "OPERATOR_DIVIDE": "/ divide",
    "OPERATOR_MOD": "mod",
    "OPERATOR_ROUND": "round",
    "OPERATOR_MATHOP": "math operation",
}

# Catalog strings that are messages about blocks, not block labels
REJECTED_PHRASES = ("already exists", "error", "warning")


@dataclass(frozen=True)
class FuzzyLabelWeights:
    """Weights for ranking fuzzy catalog matches.

    Favour longer, space-containing, placeholder-free strings.
    """

    space_bonus: float = 3.0
    length_divisor: float = 8.0
    length_cap: float = 5.0
    placeholder_penalty: float = 2.0
    min_message_length: int = 2
    min_result_length: int = 3


DEFAULT_FUZZY_WEIGHTS = FuzzyLabelWeights()


# =============================================================================
# PLACEHOLDER SUBSTITUTION
# =============================================================================


def local_name(tag: object) -> str:
    """Tag name without namespace, lowercased. Comments and PIs yield ""."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def _as_element(instance_data: InstanceData) -> Optional[ET.Element]:
    if instance_data is None:
        return None
    if isinstance(instance_data, ET.Element):
        return instance_data
    if isinstance(instance_data, str):
        try:
            return ET.fromstring(instance_data)
        except ET.ParseError as e:
            raise TemplateParseError(f"Malformed block XML: {e}") from e
    raise TemplateParseError(f"Unsupported instance data type: {type(instance_data).__name__}")


def field_values(instance_data: InstanceData) -> list[str]:
    """Field values of a serialized block, in document order.

    Shadow (default) fields nested inside value inputs are included
    where they occur.

    Raises:
        TemplateParseError: If the instance data cannot be parsed
    """
    root = _as_element(instance_data)
    if root is None:
        return []
    return ["".join(el.itertext()).strip() for el in root.iter() if local_name(el.tag) == "field"]


def substitute_placeholders(message: str, instance_data: InstanceData) -> str:
    """Fill %N placeholders in a message from block field values.

    Placeholders without a usable value (missing, empty, or purely
    numeric) are removed along with their surrounding whitespace.
    Malformed instance data leaves the message untouched.

    Args:
        message: Localized message, e.g. "say %1 for %2 seconds"
        instance_data: Serialized block (XML text or Element)

    Returns:
        The substituted, whitespace-normalized message
    """
    if not message or not PLACEHOLDER_RE.search(message):
        return message

    try:
        values = field_values(instance_data)
    except TemplateParseError as e:
        logger.debug(
            "Placeholder substitution skipped",
            extra={"context": {"message": message, "error": str(e)}},
        )
        return message

    result = message
    # Right to left so earlier offsets stay valid
    for match in reversed(list(PLACEHOLDER_RE.finditer(message))):
        index = int(match.group(1))
        value = values[index - 1] if 1 <= index <= len(values) else ""
        start, end = match.span()

        if value and not NUMERIC_RE.fullmatch(value):
            result = result[:start] + value + result[end:]
        else:
            before = result[:start].rstrip()
            after = result[end:].lstrip()
            result = before + (" " if before and after else "") + after

    return WHITESPACE_RE.sub(" ", result).strip()


# =============================================================================
# TEXT HELPERS
# =============================================================================


def capitalize_words(text: str) -> str:
    """Uppercase the first character of every word, leaving the rest alone."""
    return WORD_START_RE.sub(lambda m: m.group(0).upper(), text)


def _title(text: str) -> str:
    return capitalize_words(text.lower())


def fallback_label(type_id: str) -> str:
    """Prettified type id: namespace dropped, words capitalized.

    "motion_movesteps" -> "Movesteps"; an id without a suffix is
    returned unchanged.
    """
    label = capitalize_words(" ".join(type_id.split("_")[1:])).strip()
    return label or type_id


def _split_type(type_id: str) -> tuple[str, str]:
    """Uppercased (prefix, suffix) of a type id, split on the first underscore."""
    prefix, _, suffix = type_id.upper().partition("_")
    return prefix, suffix


def exact_message_keys(type_id: str) -> list[str]:
    """Catalog keys tried for a type id, in priority order."""
    type_up = type_id.upper()
    prefix, suffix = _split_type(type_id)
    keys = [f"BKY_{type_up}", type_up]
    if suffix:
        keys.extend([f"{prefix}_{suffix}", suffix])

    seen: set[str] = set()
    ordered: list[str] = []
    for key in keys:
        if key not in seen:
            seen.add(key)
            ordered.append(key)
    return ordered


# =============================================================================
# RESOLVER
# =============================================================================


class LabelResolver:
    """Resolves block labels and category names against a message catalog.

    Every step is isolated: a failing step is logged and the chain
    moves on, so resolve() always returns a label for a non-empty id.
    """

    def __init__(
        self,
        catalog: Optional[MessageCatalog] = None,
        weights: FuzzyLabelWeights = DEFAULT_FUZZY_WEIGHTS,
    ):
        self._catalog = catalog or MessageCatalog()
        self._weights = weights

    @property
    def catalog(self) -> MessageCatalog:
        return self._catalog

    def resolve(self, type_id: str, instance_data: InstanceData = None) -> str:
        """Resolve a human-readable label for a block type.

        Args:
            type_id: Block type identifier, e.g. "operator_gt"
            instance_data: Serialized block used to fill placeholders

        Returns:
            Display label; never empty for a non-empty type id
        """
        type_str = str(type_id or "")
        if not type_str:
            return ""

        steps: list[tuple[str, Callable[[str, InstanceData], Optional[str]]]] = [
            ("operator", self._from_operator_table),
            ("exact", self._from_exact_keys),
            ("fuzzy", self._from_fuzzy_scan),
        ]
        for step_name, step in steps:
            try:
                label = step(type_str, instance_data)
            except Exception as e:
                logger.warning(
                    "Label resolution step failed",
                    extra={"context": {"type_id": type_str, "step": step_name, "error": str(e)}},
                )
                continue
            if label:
                return label

        return fallback_label(type_str)

    def resolve_category_name(self, name: Optional[str]) -> Optional[str]:
        """Normalize a toolbox category name for display.

        Handles "%{BKY_CATEGORY_MOTION}" references, raw marker names
        like "CATEGORY_SOUND", and plain names.

        Returns:
            Title-cased category name, or None when there is no name
        """
        if not name:
            return None

        ref = CATEGORY_REF_RE.search(name)
        if ref:
            key = ref.group(1)
            value = self._catalog.lookup(key)
            if not value and key.upper().startswith("BKY_"):
                # Blockly references drop the BKY_ prefix in the catalog
                value = self._catalog.lookup(key[4:])
            if value:
                return _title(value)
            return _title(CATEGORY_PREFIX_RE.sub("", key).replace("_", " "))

        if CATEGORY_MARKER_RE.search(name):
            return _title(CATEGORY_SEPARATOR_RE.split(name)[-1])

        return _title(name)

    # ------------------------------------------------------------------
    # Resolution steps
    # ------------------------------------------------------------------

    def _from_operator_table(self, type_id: str, instance_data: InstanceData) -> Optional[str]:
        return OPERATOR_LABELS.get(type_id.upper())

    def _from_exact_keys(self, type_id: str, instance_data: InstanceData) -> Optional[str]:
        for key in exact_message_keys(type_id):
            value = self._catalog.lookup(key)
            if value and LETTER_RE.search(value):
                label = substitute_placeholders(value, instance_data)
                if label:
                    return label
        return None

    def _from_fuzzy_scan(self, type_id: str, instance_data: InstanceData) -> Optional[str]:
        _, suffix = _split_type(type_id)
        if not suffix:
            return None

        best_value: Optional[str] = None
        best_score = 0.0
        for key, value in self._catalog.entries():
            key_up = key.upper()
            if not (key_up.endswith(suffix) or f"_{suffix}" in key_up or suffix in key_up):
                continue
            if not self._is_usable_message(value):
                continue
            score = self._fuzzy_score(value)
            if best_value is None or score > best_score:
                best_value, best_score = value, score

        if best_value is None:
            return None

        label = substitute_placeholders(best_value, instance_data)
        if len(label) < self._weights.min_result_length:
            # Mostly placeholders that got removed
            return None
        return label

    def _is_usable_message(self, value: str) -> bool:
        if not LETTER_RE.search(value):
            return False
        if len(value.strip()) < self._weights.min_message_length:
            return False
        lowered = value.lower()
        return not any(phrase in lowered for phrase in REJECTED_PHRASES)

    def _fuzzy_score(self, value: str) -> float:
        w = self._weights
        score = w.space_bonus if " " in value else 0.0
        score += min(w.length_cap, len(value) / w.length_divisor)
        score -= w.placeholder_penalty * len(PLACEHOLDER_RE.findall(value))
        return score
