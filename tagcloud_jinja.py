"""Jinja2 integration: the ``{% tag_cloud %}`` template tag.

Templates write the directive after the tag name, exactly as it would be
passed to :func:`tagcloud_core.parse_directive`::

    <ul class="cloud">
      {% tag_cloud font-size: 0.80 - 1.80em, sort: freq, limit: 20 %}
    </ul>

The tag reads the tag mapping and the link prefix from the template context
(``tags`` and ``tag_dir`` by default; see :class:`TagCloudExtension`).
Templates can also call the ``tag_cloud`` global with a directive
expression: ``{{ tag_cloud(directive) }}``.
"""
from __future__ import annotations

import json
import re

from jinja2 import Environment, pass_context
from jinja2.ext import Extension
from jinja2.runtime import Context
from markupsafe import Markup

from tagcloud_core import make_rng, render_directive

TAG_NAME = "tag_cloud"


@pass_context
def tag_cloud(context: Context, directive: str = "") -> Markup:
    environment = context.environment
    tags = context.get(environment.tag_cloud_tags_key) or {}
    base_path = context.get(environment.tag_cloud_dir_key) or ""
    rng = context.get(environment.tag_cloud_rng_key)
    if rng is None or isinstance(rng, int):
        rng = make_rng(rng)
    html = render_directive(str(directive), tags, base_path=str(base_path), rng=rng)
    return Markup(html)


class TagCloudExtension(Extension):
    """Rewrites ``{% tag_cloud ... %}`` into a call of the ``tag_cloud`` global.

    The directive is taken from the template source verbatim. Jinja's own
    lexer would turn ``0.80`` into ``0.8`` and lose the precision the
    directive asks for, so the tag is handled before lexing.
    """

    def __init__(self, environment: Environment) -> None:
        super().__init__(environment)
        environment.globals.setdefault(TAG_NAME, tag_cloud)
        environment.extend(
            tag_cloud_tags_key="tags",
            tag_cloud_dir_key="tag_dir",
            tag_cloud_rng_key="tag_cloud_rng",
        )

    def _tag_regex(self) -> re.Pattern:
        start = re.escape(self.environment.block_start_string)
        end = re.escape(self.environment.block_end_string)
        raw = rf"{start}-?\s*raw\s*-?{end}.*?{start}-?\s*endraw\s*-?{end}"
        tag = rf"{start}(-?)\s*{TAG_NAME}\b(.*?)(-?){end}"
        return re.compile(rf"(?P<raw>{raw})|{tag}", re.DOTALL)

    def _rewrite(self, match: re.Match) -> str:
        # raw blocks are template text, not tags
        if match.group("raw") is not None:
            return match.group("raw")
        strip_left, directive, strip_right = match.group(2, 3, 4)
        return "%s%s %s(%s) %s%s" % (
            self.environment.variable_start_string,
            strip_left,
            TAG_NAME,
            json.dumps(directive.strip(), ensure_ascii=False),
            strip_right,
            self.environment.variable_end_string,
        )

    def preprocess(self, source: str, name: str | None, filename: str | None = None) -> str:
        return self._tag_regex().sub(self._rewrite, source)
