"""Field transformers applied to legacy column values."""

import logging
import secrets
import string
from datetime import datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

from dateutil import parser as date_parser
from dateutil import tz

from ..models.schema import ColumnMapping, TransformType

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.digits + string.ascii_uppercase
EPOCH = datetime(1970, 1, 1, tzinfo=tz.UTC)

# DATETIME values mysqldump writes for "no date"
ZERO_DATES = ("0000-00-00", "0000-00-00 00:00:00")


def format_iso(instant: datetime) -> str:
    """Format an aware datetime as a UTC instant with millisecond precision."""
    instant = instant.astimezone(tz.UTC)
    return instant.strftime("%Y-%m-%dT%H:%M:%S") + f".{instant.microsecond // 1000:03d}Z"


def now_iso() -> str:
    return format_iso(datetime.now(tz.UTC))


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def epoch_to_iso(value: Any) -> Optional[str]:
    """
    Convert Unix epoch seconds to an ISO-8601 UTC instant.

    Missing, empty, non-numeric and non-positive inputs all mean "no
    timestamp" in the legacy data and yield None.

        >>> epoch_to_iso(1700000000)
        '2023-11-14T22:13:20.000Z'
    """
    seconds = _to_decimal(value)
    if seconds is None or seconds <= 0:
        return None
    try:
        instant = EPOCH + timedelta(milliseconds=int(seconds * 1000))
    except OverflowError:
        return None
    return format_iso(instant)


def int_to_bool(value: Any) -> bool:
    """Legacy 0/1 flag to boolean; nonzero is true, zero and NULL are false."""
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return False
    number = _to_decimal(value)
    if number is not None:
        return number != 0
    return str(value).strip().lower() in ("true", "yes", "y", "on")


def generate_code(length: int = 8) -> str:
    """Random uppercase base-36 code, e.g. for invitation codes."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def passthrough(value: Any, as_text: bool = False) -> Any:
    if value is None or not as_text:
        return value
    return str(value)


def to_number(value: Any) -> Optional[Any]:
    """Numeric value as int or Decimal; None when not a number."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    number = _to_decimal(value)
    if number is None:
        return None
    if number == number.to_integral_value() and "." not in str(value) and "e" not in str(value).lower():
        return int(number)
    return number


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _same_value(value: Any, expected: Any) -> bool:
    left, right = _to_decimal(value), _to_decimal(expected)
    if left is not None and right is not None:
        return left == right
    return str(value) == str(expected)


def _enum_key(value: Any) -> str:
    number = _to_decimal(value)
    if number is not None and number == number.to_integral_value():
        return str(int(number))
    return str(value).strip()


class TransformEngine:
    """
    Engine applying column transformations to typed legacy rows.

    Each transform has the signature ``(value, config, data, ctx)`` where
    ``value`` is the source column's typed value, ``config`` the mapping's
    ``transform_config``, ``data`` the whole typed row and ``ctx`` the pass
    context. Recognised context keys:

    - ``registry``: identity map, used by ``lookup``
    - ``lookup``: callable ``(table, column, surrogate_id)`` reading a value
      from the target store
    - ``sequences``: counters backing ``placeholder`` values
    - ``synthesized``: set by a transform whose value was made up during
      this pass (current time, generated code, placeholder) rather than
      read from the row
    """

    def __init__(self):
        """Initialize the transform engine."""
        self._custom_transforms: Dict[str, Callable] = {}
        self._builtin_transforms = self._register_builtin_transforms()

    def _register_builtin_transforms(self) -> Dict[str, Callable]:
        """Register all built-in transformation functions."""
        return {
            TransformType.DIRECT.value: self._transform_direct,
            TransformType.TEXT.value: self._transform_text,
            TransformType.NUMBER.value: self._transform_number,
            TransformType.EPOCH_TO_ISO.value: self._transform_epoch_to_iso,
            TransformType.DATETIME_TO_ISO.value: self._transform_datetime_to_iso,
            TransformType.INT_TO_BOOL.value: self._transform_int_to_bool,
            TransformType.EQUALS.value: self._transform_equals,
            TransformType.ENUM_MAP.value: self._transform_enum_map,
            TransformType.COALESCE.value: self._transform_coalesce,
            TransformType.CLAMP.value: self._transform_clamp,
            TransformType.TRUNCATE.value: self._transform_truncate,
            TransformType.UPPERCASE.value: self._transform_uppercase,
            TransformType.GENERATE_CODE.value: self._transform_generate_code,
            TransformType.PLACEHOLDER.value: self._transform_placeholder,
            TransformType.CONSTANT.value: self._transform_constant,
            TransformType.NOW.value: self._transform_now,
            TransformType.LOOKUP.value: self._transform_lookup,
        }

    @property
    def transform_names(self) -> List[str]:
        return sorted(set(self._builtin_transforms) | set(self._custom_transforms))

    def register_transform(self, name: str, func: Callable) -> None:
        """Register a custom transformation function."""
        self._custom_transforms[name] = func

    def get_transform(self, mapping: ColumnMapping) -> Optional[Callable]:
        transform_name = (
            mapping.transform.value
            if isinstance(mapping.transform, TransformType)
            else mapping.transform
        )
        transform_func = (
            self._custom_transforms.get(transform_name) or
            self._builtin_transforms.get(transform_name)
        )
        if not transform_func and transform_name == TransformType.CUSTOM.value:
            # Custom transform requires a registered function
            transform_func = self._custom_transforms.get(mapping.transform_config.get("function"))
        return transform_func

    def apply(
        self,
        mapping: ColumnMapping,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Compute one target column from a typed row.

        The mapping's default applies when the transform yields None or an
        empty string.

        Raises:
            ValueError: If the mapping names an unknown transform
        """
        result, _ = self.evaluate(mapping, data, context)
        return result

    def evaluate(
        self,
        mapping: ColumnMapping,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None
    ) -> Tuple[Any, bool]:
        """
        Compute one target column and tell whether the value was synthesized.

        A synthesized value (the migration time standing in for a missing
        timestamp, a generated code, a placeholder) differs between passes
        over the same row, so it cannot identify that row in the target.

        Returns:
            Tuple of (value, synthesized)
        """
        context = context if context is not None else {}
        value = data.get(mapping.source_column) if mapping.source_column else None

        transform_func = self.get_transform(mapping)
        if not transform_func:
            raise ValueError(f"Unknown transform for {mapping.target_column}: {mapping.transform}")

        context["synthesized"] = False
        try:
            result = transform_func(value, mapping.transform_config, data, context)
        finally:
            synthesized = bool(context.pop("synthesized", False))

        if result is None and mapping.transform_config.get("default_now"):
            result = now_iso()
            synthesized = True
        if _is_empty(result) and mapping.default_value is not None:
            result = mapping.default_value
        return result, synthesized

    # Built-in transform functions

    def _transform_direct(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Direct copy without transformation."""
        return value

    def _transform_text(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        return passthrough(value, as_text=True)

    def _transform_number(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        return to_number(value)

    def _transform_epoch_to_iso(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        return epoch_to_iso(value)

    def _transform_datetime_to_iso(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Convert a DATETIME string (or epoch number) to an ISO instant."""
        result = None
        if isinstance(value, (int, Decimal)):
            result = epoch_to_iso(value)
        elif not _is_empty(value) and str(value).strip() not in ZERO_DATES:
            try:
                parsed = date_parser.parse(str(value))
                if parsed.tzinfo is None:
                    zone = tz.gettz(config["timezone"]) if config.get("timezone") else None
                    parsed = parsed.replace(tzinfo=zone or tz.UTC)
                result = format_iso(parsed)
            except (ValueError, OverflowError) as e:
                logger.debug(f"Unparseable datetime {value!r}: {e}")
        return result

    def _transform_int_to_bool(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        return int_to_bool(value)

    def _transform_equals(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Compare against ``value`` (or any of ``values``)."""
        expected = config.get("values", [config.get("value")])
        matched = value is not None and any(_same_value(value, e) for e in expected)
        if config.get("negate"):
            matched = not matched
        return config.get("true", True) if matched else config.get("false", False)

    def _transform_enum_map(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Map value using a lookup table."""
        if value is None:
            return config.get("default")

        mapping = config.get("mapping", {})
        return mapping.get(_enum_key(value), config.get("default"))

    def _transform_coalesce(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """First non-empty value among the source column and ``columns``."""
        if not _is_empty(value):
            return value
        for column in config.get("columns", []):
            candidate = data.get(column)
            if not _is_empty(candidate):
                return candidate
        return None

    def _transform_clamp(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        number = to_number(value)
        if number is None:
            return None
        if config.get("max") is not None and number > config["max"]:
            return config["max"]
        if config.get("min") is not None and number < config["min"]:
            return config["min"]
        return number

    def _transform_truncate(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Truncate to max length."""
        if value is None:
            return None
        max_length = config.get("max_length", 255)
        return str(value)[:max_length]

    def _transform_uppercase(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Convert to uppercase."""
        if value is None:
            return None
        return str(value).upper()

    def _transform_generate_code(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Keep an existing code, otherwise generate one."""
        if not _is_empty(value):
            return str(value)
        ctx["synthesized"] = True
        return generate_code(config.get("length", 8))

    def _transform_placeholder(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Replace blank values with a unique sequential token like TEMP00000001."""
        blanks = config.get("blank_values", ["0", "null"])
        if not _is_empty(value) and str(value).strip().lower() not in blanks:
            return str(value)

        prefix = config.get("prefix", "TEMP")
        sequences = ctx.setdefault("sequences", {})
        sequences[prefix] = sequences.get(prefix, 0) + 1
        ctx["synthesized"] = True
        return f"{prefix}{sequences[prefix]:0{config.get('width', 8)}d}"

    def _transform_constant(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        return config.get("value")

    def _transform_now(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        ctx["synthesized"] = True
        return now_iso()

    def _transform_lookup(self, value: Any, config: Dict, data: Dict, ctx: Dict) -> Any:
        """Read a column of an already migrated row, found via its legacy id."""
        if _is_empty(value) or value == 0:
            return None

        registry = ctx.get("registry")
        fetch = ctx.get("lookup")
        if registry is None:
            return None

        surrogate = registry.resolve(config["kind"], value)
        if surrogate is None or fetch is None:
            return None

        cache = ctx.setdefault("lookup_cache", {})
        key = (config["table"], config["column"], surrogate)
        if key not in cache:
            cache[key] = fetch(config["table"], config["column"], surrogate)
        return cache[key]
