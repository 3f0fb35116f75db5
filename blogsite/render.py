from __future__ import annotations

import html
import re
import shutil
from pathlib import Path

import markdown
import minify_html
from pygments.formatters import HtmlFormatter

IMG_SRC_RE = re.compile(r'<img([^>]*?)src="([^"]+)"', re.IGNORECASE)
TAG_RE = re.compile(r"<[^>]+>")
LINENOS_RE = re.compile(r'<td class="linenos">.*?</td>', re.DOTALL)
HIGHLIGHT_CLASS = "highlight"


def markdown_renderer(highlight: dict) -> markdown.Markdown:
    """Build a Markdown converter for post bodies.

    ``highlight`` is the ``markup.highlight`` section from the site
    settings: ``line_nos`` turns on table line numbers, ``no_classes``
    inlines Pygments styles instead of emitting CSS classes.
    """
    return markdown.Markdown(
        extensions=["fenced_code", "tables", "toc", "codehilite"],
        extension_configs={
            "toc": {"toc_depth": "2-4"},
            "codehilite": {
                "css_class": HIGHLIGHT_CLASS,
                "guess_lang": False,
                "linenums": bool(highlight.get("line_nos")),
                "noclasses": bool(highlight.get("no_classes")),
                "pygments_style": highlight.get("style", "monokai"),
            },
        },
    )


def render_markdown(md: markdown.Markdown, text: str) -> tuple[str, str]:
    html_content = md.convert(text)
    toc_html = getattr(md, "toc", "")
    md.reset()
    return html_content, toc_html


def highlight_css(highlight: dict) -> str:
    formatter = HtmlFormatter(style=highlight.get("style", "monokai"))
    return formatter.get_style_defs(f".{HIGHLIGHT_CLASS}")


def fix_relative_img_src(html_text: str, root: str) -> str:
    def repl(match: re.Match) -> str:
        attrs = match.group(1)
        src = match.group(2)
        if src.startswith(("http://", "https://", "data:", "#", "/", "./", "../")):
            return match.group(0)
        return f'<img{attrs}src="{root}/{src}"'

    return IMG_SRC_RE.sub(repl, html_text)


def strip_tags(html_text: str) -> str:
    return TAG_RE.sub("", html_text)


def plain_text(html_text: str) -> str:
    """Visible text of rendered HTML, without code line number gutters."""
    text = strip_tags(LINENOS_RE.sub("", html_text))
    return " ".join(html.unescape(text).split())


def summarize(html_text: str, limit: int = 200) -> str:
    text = plain_text(html_text)
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def render_template(template: str, **context: str) -> str:
    output = template
    # Rendered bodies may contain literal "{{...}}"; substitute them last.
    late_keys = {"content"}
    for key, value in context.items():
        if key in late_keys:
            continue
        output = output.replace(f"{{{{{key}}}}}", value)
    for key in late_keys:
        if key in context:
            output = output.replace(f"{{{{{key}}}}}", context[key])
    return output


def read_template(path: Path) -> str:
    return path.read_text(encoding="utf-8")


def minify(text: str) -> str:
    return minify_html.minify(text, minify_css=True, minify_js=True)


def write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def copy_static(static_dir: Path, output_dir: Path) -> None:
    if not static_dir.exists():
        return
    for item in static_dir.iterdir():
        dest = output_dir / item.name
        if item.is_dir():
            shutil.copytree(item, dest, dirs_exist_ok=True)
        else:
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, dest)
