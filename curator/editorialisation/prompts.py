"""Prompt templates for AI editorialisation.

Bump PROMPT_VERSION whenever the wording or the output contract changes;
every Editorialisation record stores the version it was produced with.
"""

PROMPT_VERSION = "v2.0.0"

SYSTEM_PROMPT = """\
You are an editor for a curated industry news site. You write short, \
factual editorial context for articles your readers might click on. \
You never invent facts that are not supported by the provided text. \
Always respond with a single JSON object and nothing else."""

EDITORIAL_PROMPT = """\
Write editorial context for the following article.

Title: {title}
URL: {url}
Description: {description}

Article text:
{text}

Respond with a JSON object with these keys:
- "summary": one or two sentences, at most 280 characters
- "why_it_matters": why a professional reader should care, at most 500 characters
- "suggested_tags": up to 5 short lowercase topic tags
- "key_takeaways": up to 5 short bullet-style takeaways
- "audience_tags": up to 3 audiences this is most relevant to
- "quality_score": a number from 0 to 10 rating depth and originality
"""


def truncate_text(text: str, max_length: int) -> str:
    """Cut article text at a word boundary near ``max_length``."""
    if len(text) <= max_length:
        return text
    cut = text[:max_length]
    last_space = cut.rfind(" ")
    if last_space > max_length - 100:
        cut = cut[:last_space]
    return f"{cut}..."


def build_prompt(
    title: str | None,
    url: str,
    description: str | None,
    text: str,
    max_text_length: int = 4000,
) -> str:
    return EDITORIAL_PROMPT.format(
        title=title or "",
        url=url,
        description=description or "",
        text=truncate_text(text, max_text_length),
    )
