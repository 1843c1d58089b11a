"""Prompt loading and rendering helpers for newsletter generation."""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache
from pathlib import Path

from ..core.types import Article, NewsletterSettings


_PROMPT_DIR = Path(__file__).resolve().parent.parent / "prompts"

NEWSLETTER_FIELDS = (
    "suggestedTitles",
    "suggestedSubjectLines",
    "body",
    "topAnnouncements",
    "additionalInfo",
)


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    path = _PROMPT_DIR / f"{name}.md"
    return path.read_text(encoding="utf-8").strip()


def _render_template(name: str, **values: str) -> str:
    template = _load_template(name)
    return template.format(**values)


def _format_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%d")


def build_article_summaries(articles: list[Article], summary_chars: int = 200) -> str:
    blocks = []
    for index, article in enumerate(articles, start=1):
        summary = (
            article.summary
            or (article.content[:summary_chars] if article.content else None)
            or "No summary available"
        )
        blocks.append(
            f'{index}. "{article.title}"\n'
            f"   Source: {article.feed_title or 'Unknown feed'}\n"
            f"   Published: {_format_date(article.pub_date)}\n"
            f"   Summary: {summary}\n"
            f"   Link: {article.link}\n"
        )
    return "\n".join(blocks)


def build_settings_context(settings: NewsletterSettings | None) -> str:
    if settings is None:
        return ""

    parts: list[str] = []
    labelled = (
        ("Newsletter Name", settings.newsletter_name),
        ("Newsletter Description", settings.description),
        ("Target Audience", settings.target_audience),
        ("Tone", settings.default_tone),
        ("Brand Voice", settings.brand_voice),
        ("Company", settings.company_name),
        ("Industry", settings.industry),
    )
    for label, value in labelled:
        if value:
            parts.append(f"{label}: {value}")
    if settings.default_tags:
        parts.append(f"Tags: {', '.join(settings.default_tags)}")
    if settings.sender_name:
        parts.append(f"Sender Name: {settings.sender_name}")
    if settings.sender_email:
        parts.append(f"Sender Email: {settings.sender_email}")
    if settings.disclaimer_text:
        parts.append(f'Required disclaimer text to include at the end: "{settings.disclaimer_text}"')
    if settings.custom_footer:
        parts.append(f'Required footer content to include at the very end: "{settings.custom_footer}"')

    if not parts:
        return ""
    return "NEWSLETTER SETTINGS:\n" + "\n".join(parts) + "\n\n"


def build_newsletter_prompt(
    articles: list[Article],
    start_date: datetime,
    end_date: datetime,
    user_input: str | None = None,
    settings: NewsletterSettings | None = None,
    summary_chars: int = 200,
) -> str:
    """Render the generation prompt for one request."""
    instructions = (user_input or "").strip()
    has_disclaimer = bool(settings and settings.disclaimer_text)
    has_footer = bool(settings and settings.custom_footer)

    body_extras = ""
    if has_disclaimer:
        body_extras += (
            "\n   - Near the end, naturally incorporate the required disclaimer text "
            'WITHOUT using labels like "Disclaimer:" or "Note:"'
        )
    if has_footer:
        body_extras += (
            "\n   - At the very end, include the required footer content WITHOUT labels "
            'like "Footer:"; add a horizontal rule "---" before it'
        )

    important_extras = ""
    if instructions:
        important_extras += (
            "\n- CRITICAL: The USER INSTRUCTIONS above are MANDATORY and take precedence"
        )
    if has_disclaimer:
        important_extras += "\n- Weave the required disclaimer in near the end, without a label"
    if has_footer:
        important_extras += "\n- Put the required footer content at the very end, without a label"

    return _render_template(
        "newsletter",
        start_date=_format_date(start_date),
        end_date=_format_date(end_date),
        settings_context=build_settings_context(settings),
        user_instructions=(
            f"CRITICAL USER INSTRUCTIONS (MUST FOLLOW):\n{instructions}\n\n" if instructions else ""
        ),
        article_count=str(len(articles)),
        article_summaries=build_article_summaries(articles, summary_chars),
        body_extras=body_extras,
        important_extras=important_extras,
    )
