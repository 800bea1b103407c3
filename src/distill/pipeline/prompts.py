"""Summary prompt templates: selection, resolution and interpolation.

Placeholder grammar (closed set, replaced globally):
  {{filename}}       ← original filename
  {{fileType}}       ← format tag (txt, md, vtt, srt, pdf)
  {{people}}         ← "" or "\\nPROJECT PEOPLE:\\n<roster lines>\\n"
  {{extractedText}}  ← extracted (possibly truncated) source text

Template resolution order:
  slugged template → default-flagged template → built-in general template
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

from distill.db.models import PromptTemplate, RosterEntry
from distill.db.repository import Repository
from distill.pipeline.intent import TRANSCRIPT

SLUG_MEETING_TRANSCRIPT = "meeting_transcript"
SLUG_GENERAL_CONTENT = "general_content"
SLUG_KB_COMPRESSION = "kb_compression"
SLUG_KB_COMPRESSION_SALES = "kb_compression_sales"

_PLACEHOLDER_RE = re.compile(r"\{\{(filename|fileType|people|extractedText)\}\}")

GENERAL_CONTENT_PROMPT = """\
You are a professional knowledge curator. Transform the following source content \
into well-structured markdown notes suitable for use as reference material in an \
AI assistant's project knowledge base.

SOURCE FILE: {{filename}}
FILE TYPE: {{fileType}}
{{people}}
INSTRUCTIONS:
- Create clear, scannable markdown with appropriate headings
- Summarize main themes, key data points, and conclusions
- Preserve important specifics (names, dates, numbers, technical details)
- Use bullet points for lists of items
- Use blockquotes for important quotes or callouts
- Omit filler, tangents, and redundant content
- Use the correct spelling of people's names as provided in the project people list above
- Target output length: roughly 20-30% of source length (concise but comprehensive)

SOURCE CONTENT:
{{extractedText}}"""

MEETING_TRANSCRIPT_PROMPT = """\
You are a professional meeting analyst. Turn the following meeting transcript into \
well-structured markdown notes for a project knowledge base.

SOURCE FILE: {{filename}}
FILE TYPE: {{fileType}}
{{people}}
INSTRUCTIONS:
- Start with a short "Participants" list using the speakers in the transcript
- Summarize the key discussion points by topic, not in speaking order
- List every decision that was made under a "Decisions" heading
- List action items with an owner and due date where stated under "Action Items"
- Capture open questions and next steps
- Preserve important specifics (names, dates, numbers, commitments)
- Use the correct spelling of people's names as provided in the project people list above
- Omit small talk, filler, and repeated content

TRANSCRIPT:
{{extractedText}}"""


@dataclass(frozen=True)
class ResolvedTemplate:
    content: str
    template_id: str | None  # None → built-in fallback
    name: str


def select_prompt_slug(fmt: str, intent: str | None = None) -> str:
    """Pick the summary template slug for a format tag (and txt intent)."""
    if fmt in ("vtt", "srt"):
        return SLUG_MEETING_TRANSCRIPT
    if fmt == "txt":
        return SLUG_MEETING_TRANSCRIPT if intent == TRANSCRIPT else SLUG_GENERAL_CONTENT
    return SLUG_GENERAL_CONTENT


def resolve_template(repo: Repository, slug: str) -> ResolvedTemplate:
    """Return the first available of: *slug* template, default template, built-in."""
    candidates = (
        lambda: repo.get_template_by_slug(slug),
        repo.get_default_template,
    )
    for lookup in candidates:
        template = lookup()
        if template is not None:
            return ResolvedTemplate(template.content, template.id, template.name)
    return ResolvedTemplate(GENERAL_CONTENT_PROMPT, None, "built-in general content")


def format_people(roster: list[RosterEntry]) -> str | None:
    """Render roster lines as ``- Name <email> (role) — organization``."""
    if not roster:
        return None
    lines = []
    for person in roster:
        line = f"- {person.name}"
        if person.email:
            line += f" <{person.email}>"
        if person.role:
            line += f" ({person.role})"
        if person.organization:
            line += f" — {person.organization}"
        lines.append(line)
    return "\n".join(lines)


def build_prompt(
    filename: str,
    fmt: str,
    extracted_text: str,
    template: str | None = None,
    people: str | None = None,
) -> str:
    """Interpolate the four placeholders into *template* (built-in general if None).

    One pass over the template; substituted values are never re-scanned, so
    a transcript that itself contains ``{{filename}}`` is left intact.
    """
    values = {
        "filename": filename,
        "fileType": fmt,
        "people": f"\nPROJECT PEOPLE:\n{people}\n" if people else "",
        "extractedText": extracted_text,
    }
    body = template if template is not None else GENERAL_CONTENT_PROMPT
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], body)


# ------------------------------------------------------------------
# System template seeding
# ------------------------------------------------------------------


def system_templates() -> list[PromptTemplate]:
    """The four slugged templates every workspace starts with."""
    from distill.pipeline.compressor import COMPRESSION_STYLES

    templates = [
        PromptTemplate(
            id=str(uuid.uuid4()),
            name="Meeting Transcript Summary",
            slug=SLUG_MEETING_TRANSCRIPT,
            content=MEETING_TRANSCRIPT_PROMPT,
        ),
        PromptTemplate(
            id=str(uuid.uuid4()),
            name="General Content Summary",
            slug=SLUG_GENERAL_CONTENT,
            content=GENERAL_CONTENT_PROMPT,
            is_default=True,
        ),
    ]
    for style in COMPRESSION_STYLES.values():
        templates.append(
            PromptTemplate(
                id=str(uuid.uuid4()),
                name=style.title,
                slug=style.slug,
                content=style.system_prompt,
            )
        )
    return templates


def seed_system_templates(repo: Repository) -> list[str]:
    """Insert missing system templates. Existing slugs are never touched.

    Returns:
        Slugs that were created.
    """
    created: list[str] = []
    has_default = repo.get_default_template() is not None
    for template in system_templates():
        if repo.get_template_by_slug(template.slug) is not None:
            continue
        if template.is_default and has_default:
            template.is_default = False
        repo.add_template(template)
        created.append(template.slug)
    return created
