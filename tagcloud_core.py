"""Core utilities for rendering frequency-weighted tag clouds."""
from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping as MappingABC, Sized
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

logger = logging.getLogger(__name__)

DIRECTIVE_KEYS = ("font-size", "threshold", "limit", "sort", "style")

LIST_TAG_BEFORE = "<li>"
LIST_TAG_AFTER = "</li>"
PARA_SEPARATOR = ", "

# Uniform weight assigned when every qualifying label shares one count.
DEGENERATE_WEIGHT = 0.5

# A brace group may hold commas; an unclosed brace runs to the end.
FRAGMENT_REGEX = re.compile(r"(?:[^,{]|\{[^}]*\}?)+")
NUMBER_PATTERN = r"(?<![\d.])(\d+(?:\.\d+)?|\.\d+)"
FONT_SIZE_REGEX = re.compile(rf"{NUMBER_PATTERN}\s*-\s*{NUMBER_PATTERN}\s*(%|em|px)")
INTEGER_REGEX = re.compile(r"\d+")
SORT_REGEX = re.compile(r"(freq|rand|alpha)\b\s*(?:(asc|desc)\b)?")
STYLE_REGEX = re.compile(r"(list|para)\b\s*(?:\{(.*)\})?", re.DOTALL)


@dataclass(frozen=True)
class CloudConfig:
    """Settings for one tag cloud render, parsed from a directive string."""

    size_min: float = 70
    size_max: float = 170
    precision: int = 0
    unit: str = "%"
    threshold: int = 1
    limit: int = 0
    sort: str = "alpha"
    order: str = "asc"
    style: str = "list"
    tag_before: str = LIST_TAG_BEFORE
    tag_after: str = LIST_TAG_AFTER
    separator: str = ""

    def __post_init__(self) -> None:
        for name in ("precision", "threshold", "limit"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")


@dataclass(frozen=True)
class LabelCount:
    name: str
    count: int


@dataclass(frozen=True)
class WeightedLabel:
    name: str
    weight: float


def split_directive(directive: str) -> Dict[str, str]:
    """Split ``key: value, key: value`` into a mapping of raw value strings.

    Fragments without a colon are dropped. A later fragment with the same key
    replaces an earlier one.
    """
    params: Dict[str, str] = {}
    for match in FRAGMENT_REGEX.finditer(directive or ""):
        fragment = match.group(0).strip()
        if not fragment:
            continue
        key, colon, value = fragment.partition(":")
        if not colon:
            logger.debug("Ignoring directive fragment without a key: %r", fragment)
            continue
        params[key.strip()] = value.strip()
    return params


def parse_font_size(value: Optional[str]) -> Dict[str, object]:
    if value is None:
        return {}
    match = FONT_SIZE_REGEX.search(value)
    if match is None:
        logger.debug("Ignoring malformed font-size value: %r", value)
        return {}
    size_min, size_max, unit = match.groups()
    return {
        "size_min": float(size_min),
        "size_max": float(size_max),
        "precision": max(len(size_min.partition(".")[2]), len(size_max.partition(".")[2])),
        "unit": unit,
    }


def parse_count(value: Optional[str], *, key: str) -> Dict[str, object]:
    if value is None:
        return {}
    match = INTEGER_REGEX.match(value)
    if match is None:
        logger.debug("Ignoring malformed %s value: %r", key, value)
        return {}
    return {key: int(match.group(0))}


def parse_sort(value: Optional[str]) -> Dict[str, object]:
    if value is None:
        return {}
    match = SORT_REGEX.match(value)
    if match is None:
        logger.debug("Ignoring malformed sort value: %r", value)
        return {}
    mode, order = match.groups()
    update: Dict[str, object] = {"sort": mode}
    if order:
        update["order"] = order
    return update


def parse_style(value: Optional[str]) -> Dict[str, object]:
    if value is None:
        return {}
    match = STYLE_REGEX.match(value)
    if match is None:
        logger.debug("Ignoring malformed style value: %r", value)
        return {}
    kind, separator = match.groups()
    update: Dict[str, object] = {"style": kind}
    if separator is not None:
        update["separator"] = separator
    return update


def parse_directive(directive: str) -> CloudConfig:
    """Build a :class:`CloudConfig` from a raw directive string.

    Parsing never fails: unknown keys and values that do not match their
    grammar leave the corresponding settings at their defaults.

    When no order is given, ``sort: freq`` defaults to ``desc`` and every
    other mode to ``asc``. Style is applied last: ``para`` drops the list
    item wrappers and ``list`` drops any separator, including one supplied
    in braces.
    """
    params = split_directive(directive)
    unknown = set(params).difference(DIRECTIVE_KEYS)
    if unknown:
        logger.debug("Ignoring unknown directive keys: %s", ", ".join(sorted(unknown)))

    values: Dict[str, Any] = {}
    values.update(parse_font_size(params.get("font-size")))
    values.update(parse_count(params.get("threshold"), key="threshold"))
    values.update(parse_count(params.get("limit"), key="limit"))
    values.update(parse_sort(params.get("sort")))
    values.update(parse_style(params.get("style")))

    sort = values.get("sort", "alpha")
    values.setdefault("order", "desc" if sort == "freq" else "asc")

    style = values.get("style", "list")
    if style == "para":
        values["tag_before"] = values["tag_after"] = ""
        values.setdefault("separator", PARA_SEPARATOR)
    else:
        values["tag_before"], values["tag_after"] = LIST_TAG_BEFORE, LIST_TAG_AFTER
        values["separator"] = ""

    return CloudConfig(**values)


def counts_from_tags(tags: Mapping[str, object]) -> List[LabelCount]:
    """Turn a mapping of tag name to items (or to a plain count) into counts."""
    counts: List[LabelCount] = []
    for name, value in tags.items():
        if isinstance(value, bool):
            raise TypeError(f"Unsupported value for tag {name!r}: {value!r}")
        if isinstance(value, int):
            count = value
        elif isinstance(value, Sized) and not isinstance(value, (str, bytes)):
            count = len(value)
        else:
            raise TypeError(f"Unsupported value for tag {name!r}: {type(value).__name__}")
        counts.append(LabelCount(name=str(name), count=count))
    return counts


def load_tags_from_json_path(json_path: Path | str) -> Dict[str, object]:
    path = Path(json_path)
    with path.open("r", encoding="utf-8") as infile:
        payload = json.load(infile)
    if not isinstance(payload, MappingABC):
        raise ValueError(f"Expected a JSON object of tags in {path}")
    return dict(payload)


def compute_weights(label_counts: Iterable[LabelCount], *, threshold: int) -> List[WeightedLabel]:
    qualifying = [item for item in label_counts if item.count >= threshold]
    if not qualifying:
        return []

    # log(0) is undefined; a zero count can only get here with threshold 0.
    logs = np.log(np.array([max(item.count, 1) for item in qualifying], dtype=float))
    low, high = logs.min(), logs.max()
    if high == low:
        logger.debug("All %d qualifying tags share one count; using weight %s", len(qualifying), DEGENERATE_WEIGHT)
        weights = np.full(len(qualifying), DEGENERATE_WEIGHT)
    else:
        weights = (logs - low) / (high - low)

    return [WeightedLabel(name=item.name, weight=float(weight)) for item, weight in zip(qualifying, weights)]


def _by_weight(label: WeightedLabel) -> float:
    return label.weight


def _by_name(label: WeightedLabel) -> str:
    return label.name


def sort_labels(
    weighted: Sequence[WeightedLabel],
    *,
    config: CloudConfig,
    rng: Optional[np.random.Generator] = None,
) -> List[WeightedLabel]:
    """Order and truncate weighted labels according to sort, order and limit.

    With a limit, ``alpha`` and ``freq`` first keep the ``limit`` heaviest
    labels. ``freq`` then sorts ascending on request, or descending when no
    limit is set (the truncated list is already descending). ``rand``
    shuffles and truncates afterwards; ``order`` has no effect on it.
    """
    items = list(weighted)
    if config.limit > 0 and config.sort != "rand":
        items = sorted(items, key=_by_weight, reverse=True)[: config.limit]

    if config.sort == "freq":
        if config.order == "asc":
            items.sort(key=_by_weight)
        elif config.limit == 0:
            items.sort(key=_by_weight, reverse=True)
    elif config.sort == "rand":
        generator = rng if rng is not None else np.random.default_rng()
        items = [items[index] for index in generator.permutation(len(items))]
        if config.limit > 0:
            items = items[: config.limit]
    else:
        items.sort(key=_by_name, reverse=config.order == "desc")
    return items


def format_size(weight: float, *, config: CloudConfig) -> str:
    size = config.size_min + (config.size_max - config.size_min) * weight
    return f"{size:.{config.precision}f}"


def tag_href(base_path: str, name: str) -> str:
    return f"{base_path.rstrip('/')}/{name.lower()}/"


def render_items(labels: Sequence[WeightedLabel], *, config: CloudConfig, base_path: str = "") -> str:
    parts: List[str] = []
    last = len(labels) - 1
    for idx, label in enumerate(labels):
        size = format_size(label.weight, config=config)
        separator = "" if idx == last else config.separator
        parts.append(
            f'{config.tag_before}<a style="font-size: {size}{config.unit}" '
            f'href="{tag_href(base_path, label.name)}">{label.name}</a>'
            f"{config.tag_after}{separator}\n"
        )
    return "".join(parts)


def build_cloud(
    config: CloudConfig,
    label_counts: Iterable[LabelCount],
    *,
    rng: Optional[np.random.Generator] = None,
) -> List[WeightedLabel]:
    weighted = compute_weights(label_counts, threshold=config.threshold)
    return sort_labels(weighted, config=config, rng=rng)


def render_cloud(
    config: CloudConfig,
    label_counts: Iterable[LabelCount],
    base_path: str = "",
    rng: Optional[np.random.Generator] = None,
) -> str:
    labels = build_cloud(config, label_counts, rng=rng)
    logger.debug("Rendering %d tags (sort=%s, order=%s, limit=%d)", len(labels), config.sort, config.order, config.limit)
    return render_items(labels, config=config, base_path=base_path)


def render_directive(
    directive: str,
    tags: Mapping[str, object],
    *,
    base_path: str = "",
    rng: Optional[np.random.Generator] = None,
) -> str:
    config = parse_directive(directive)
    return render_cloud(config, counts_from_tags(tags), base_path, rng)


def make_rng(seed: Optional[object]) -> Optional[np.random.Generator]:
    if seed is None:
        return None
    if isinstance(seed, bool):
        raise TypeError("seed must be an integer")
    return np.random.default_rng(int(seed))


PAGE_CSS = """
  body { margin:0; font-family: ui-sans-serif, system-ui, -apple-system, "Segoe UI", Roboto, Helvetica, Arial; color:#111827; }
  header { padding:12px 16px; font-weight:700; }
  .cloud { max-width:960px; margin:0 auto; padding:10px; line-height:1.6; }
  ul.cloud { list-style:none; }
  ul.cloud li { display:inline; margin:0 .3em; }
  .cloud a { color:#334155; text-decoration:none; }
"""

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang=\"en\">
<head>
<meta charset=\"utf-8\"/>
<meta name=\"viewport\" content=\"width=device-width, initial-scale=1\"/>
<title>{title}</title>
<style>{css}</style>
</head>
<body>
  <header>{heading}</header>
  <{wrapper} class=\"cloud\">
{fragment}  </{wrapper}>
</body>
</html>
"""


def render_page(fragment: str, *, style: str = "list", title: str = "Tag Cloud", heading: str | None = None) -> str:
    wrapper = "ul" if style == "list" else "p"
    return HTML_TEMPLATE.format(
        title=title,
        heading=heading or title,
        css=PAGE_CSS,
        wrapper=wrapper,
        fragment=fragment,
    )
