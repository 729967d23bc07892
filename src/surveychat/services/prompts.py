from __future__ import annotations

"""Prompt text for the survey assistant.

All builders here are pure string functions: no store or model access.
"""

from typing import Any, Dict, List, Optional, Sequence

from ..domain.artifact_models import Artifact, NEW_GROUP_SENTINEL
from ..domain.chat_models import ChatMessage
from ..domain.models import ProjectContext


_ROLE_AND_GUIDELINES = """You are an expert research consultant specialising in concept testing, survey design and market research methodology. You help users create effective surveys, interpret results and strengthen their research approach.

How you work:
1. Survey design: craft clear, unbiased questions and a sensible survey flow.
2. Template generation: produce survey templates the application can render.
3. Results analysis: interpret survey data and turn it into actionable insight.
4. Methodology: advise on research best practice and statistical validity.
5. A page holds at most 2 content blocks. To show media and questions side by side, give the media block position 0 and the question block position 1 (or the reverse when it reads better).
6. When the user should upload their own image, set the media url to "new".
7. Questions about a set of media items belong on the same page as that media. Stand-alone questions can share a page unless they must come before a particular visual.
8. Make some questions both highly effective and fun: they should surface things the creator's own social circle would find interesting to answer.
9. Before generating or updating a survey, ask the user 2-4 questions about their project and make sure you understand the product's stage.
10. The survey also "presents the meme": it is the layer through which the project and its creator show up in their social and professional circles. Present questions so respondents come away excited and connected to the creator."""

_TEMPLATE_SCHEMA = """When you produce a survey template, emit exactly this structure and ALWAYS include both group_id and title:
{
  "group_id": "<existing group id>" | "%(sentinel)s",
  "title": "Descriptive Survey Title",
  "description": "Survey description",
  "pages": [
    {
      "position": 0,
      "title": "Page Title",
      "description": "Page description",
      "page_type": "WELCOME" | "STANDARD" | "THANK_YOU",
      "visual_layout": null,
      "options": null,
      "content_blocks": [
        {
          "type": "MEDIA_SET" | "QUESTION_SET",
          "position": 0,
          "items": [
            {
              "position": 0,
              "title": "Media Title",
              "description": "Media description",
              "media_type": "IMAGE" | "DESCRIPTION" | "VIDEO" | "URL",
              "media_data": {
                "text": "Text content (DESCRIPTION only)",
                "url": "https://example.com/image.jpg" | "new",
                "alt_text": "Alt text (IMAGE and VIDEO)"
              }
            },
            {
              "position": 0,
              "text": "Question text",
              "response_type": "NUMBER_SELECT" | "FREE_RESPONSE" | "MULTIPLE_CHOICE" | "SLIDER",
              "response_options": {
                "min_label": "Very Unsatisfied",
                "max_label": "Very Satisfied",
                "scale": 5,
                "placeholder": "Enter your response...",
                "options": ["Option 1", "Option 2", "Option 3"]
              }
            }
          ]
        }
      ]
    }
  ]
}

Items in a MEDIA_SET block use the media fields; items in a QUESTION_SET block use the question fields.
response_options by response_type: NUMBER_SELECT and SLIDER use min_label, max_label and scale; FREE_RESPONSE uses placeholder; MULTIPLE_CHOICE uses options.

CONTENT BLOCKS:
- MEDIA_SET shows one or more media items. Several items side by side suit A/B comparisons of concepts. Keep related media together.
- QUESTION_SET asks related questions, usually about the MEDIA_SET on the same page.

PAGE TYPES:
- WELCOME: introduction, typically a MEDIA_SET with DESCRIPTION text.
- STANDARD: the main pages, often a MEDIA_SET plus a QUESTION_SET about it.
- THANK_YOU: closing page, typically a MEDIA_SET with DESCRIPTION text.

REQUIRED FIELDS:
- "title" is mandatory: a descriptive, user-friendly name such as "Customer Satisfaction Survey" or "Product Feature Feedback".
- "group_id" is mandatory. To revise an existing template, copy its group_id from the list below. For a brand-new template use "%(sentinel)s".

FORMATTING:
- Call templates "survey templates", "surveys", "polls" or "questionnaires". Never mention JSON in your prose.
- Never wrap the template in code fences or backticks.
- Present the template structure as-is, without extra technical formatting."""


def _artifact_block(artifacts: Sequence[Artifact]) -> str:
    if not artifacts:
        return "No existing artifacts in this conversation yet."
    lines = [
        f'- group_id: {a.group_id}, title: "{a.title}", version: {a.version}'
        for a in artifacts
    ]
    return "Existing artifacts in this conversation:\n" + "\n".join(lines)


def _project_block(project: Optional[ProjectContext]) -> str:
    if project is None:
        return (
            "You are operating in standalone mode without specific project context. "
            "Give general guidance that applies across concept testing scenarios."
        )
    goals = ", ".join(project.research_goals) if project.research_goals else "Not specified"
    return (
        "Project Context:\n"
        f"- Name: {project.name}\n"
        f"- Description: {project.description or 'Not specified'}\n"
        f"- Target Audience: {project.target_audience or 'Not specified'}\n"
        f"- Research Goals: {goals}"
    )


def compose_system_prompt(project: Optional[ProjectContext], artifacts: Sequence[Artifact]) -> str:
    sections = [
        _ROLE_AND_GUIDELINES,
        _TEMPLATE_SCHEMA % {"sentinel": NEW_GROUP_SENTINEL},
        _artifact_block(artifacts),
        "Always give practical, actionable advice grounded in research best practice.",
        _project_block(project),
    ]
    return "\n\n".join(sections)


def title_prompt(user_message: str) -> str:
    return (
        "Write a short title (at most 6 words) for a conversation that starts with the message below. "
        "Reply with the title only: no quotes, no punctuation at the end, no explanation.\n\n"
        f"Message: {user_message}"
    )


_REWORD_TEMPLATE = """You are an expert survey methodologist specialising in question design and bias reduction. Analyse the survey question below and propose exactly 5 improved alternatives.

ORIGINAL QUESTION: {original_question}

SURVEY CONTEXT:
{survey_context}

CONVERSATION CONTEXT:
{chat_history}

Each alternative should:
1. Target a different improvement (bias_reduction, clarity, specificity, engagement, measurability)
2. Fit the survey's context and audience
3. Keep the original intent while improving the methodology

Respond with an object in exactly this format:
{{
  "suggestions": [
    {{
      "reworded": "The reworded question",
      "reasoning": "Why this is better",
      "improvement_type": "bias_reduction|clarity|specificity|engagement|measurability",
      "confidence": 0.85
    }}
  ]
}}

Provide exactly 5 suggestions with varied improvement types. confidence is a decimal between 0.0 and 1.0."""


def iter_question_texts(document: Dict[str, Any]) -> List[str]:
    """Question texts of a survey template in page/block/item order."""
    texts: List[str] = []
    for page in document.get("pages") or []:
        if not isinstance(page, dict):
            continue
        for block in page.get("content_blocks") or []:
            if not isinstance(block, dict) or block.get("type") != "QUESTION_SET":
                continue
            for item in block.get("items") or []:
                if isinstance(item, dict) and isinstance(item.get("text"), str):
                    texts.append(item["text"])
    return texts


def _survey_context(artifact: Optional[Artifact], original_question: str) -> str:
    if artifact is None or not artifact.document:
        return "No survey context available."
    survey = artifact.document
    questions = iter_question_texts(survey)
    lines = [
        f"Survey Title: {survey.get('title') or artifact.title or 'Untitled Survey'}",
        f"Survey Description: {survey.get('description') or 'No description'}",
        f"Total Questions: {len(questions)}",
    ]
    others = [q for q in questions[:5] if q != original_question]
    if others:
        lines.append("")
        lines.append("Other questions in this survey:")
        lines.extend(f"{i}. {q}" for i, q in enumerate(others, start=1))
    return "\n".join(lines)


def _chat_history(history: Sequence[ChatMessage]) -> str:
    recent = [m for m in list(history)[-10:] if (m.content or "").strip()]
    if not recent:
        return "No conversation history available."
    lines = ["Recent conversation context:"]
    for m in recent:
        content = m.content or ""
        clipped = content[:200] + ("..." if len(content) > 200 else "")
        lines.append(f"{m.role}: {clipped}")
    return "\n".join(lines)


def reword_prompt(original_question: str, artifact: Optional[Artifact], history: Sequence[ChatMessage]) -> str:
    return _REWORD_TEMPLATE.format(
        original_question=original_question,
        survey_context=_survey_context(artifact, original_question),
        chat_history=_chat_history(history),
    )
