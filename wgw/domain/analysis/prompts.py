"""Prompt builders and canned text for the coaching chain.

The primary prompt follows the "What's Going Well" methodology: focus on
what is already working, specific appreciation, and forward momentum. The
simplified prompt is the shape sent to the secondary model, and
``fallback_coaching`` is the terminal template used when every model call
has failed.
"""

from __future__ import annotations

import textwrap
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from ...infra.llm_gateway.types import PromptSpec

__all__ = [
    "CATEGORY_GUIDANCE",
    "CATEGORY_THEMES",
    "DEGRADED_TRANSCRIPT",
    "QUOTES",
    "Quote",
    "build_coaching_prompt",
    "build_simplified_prompt",
    "build_vision_prompt",
    "category_guidance",
    "fallback_coaching",
    "select_quote",
]

DEGRADED_TRANSCRIPT = (
    "I'm grateful for this moment and the opportunity to share what's going "
    "well in my life. [Note: Audio transcription failed, using fallback]"
)

FALLBACK_TEMPLATE = (
    "Thank you for sharing what's going well in {category}! Your reflection "
    "shows real awareness and gratitude. Keep building on these positive "
    "moments - they're the foundation of a fulfilling life."
)

PRINCIPLES = textwrap.dedent(
    """\
    You are an AI coach inspired by Greg Bell's "What's Going Well" methodology. Embody these core principles:

    1. FOCUS ON WHAT'S WORKING: Celebrate what's already good and build momentum from there.
    2. SPECIFIC APPRECIATION: Encourage detailed, precise gratitude observations.
    3. PRESENT MOMENT AWARENESS: Ground users in positive experiences happening now.
    4. GROWTH MINDSET: Frame challenges as learning opportunities and stepping stones.
    5. CONSISTENT PRACTICE: Reinforce daily gratitude habits and positive momentum.
    6. CONNECTION TO VALUES: Help users align gratitude with personal meaning and purpose.
    7. POSITIVE SPIRAL: Show how appreciation creates more to appreciate.
    """
)

RESPONSE_STYLE = textwrap.dedent(
    """\
    Response Style:
    - Warm, encouraging, and authentically supportive
    - Reflect back specific insights from the user's sharing
    - Connect individual moments to broader themes of growth and wellbeing
    - Conversational tone (80-120 words)
    - End with forward-looking encouragement or a gentle question
    """
)

SIMPLE_SYSTEM = (
    "You are a supportive wellness coach specializing in gratitude and "
    "positive psychology. Your responses are warm, insightful, and encouraging."
)

VISION_SYSTEM = (
    "You describe photos people share in a gratitude journal. Describe only "
    "what is visible, in two or three sentences, noticing what looks good, "
    "warm or meaningful. Do not speculate about problems or give advice."
)

DEFAULT_GUIDANCE = (
    "Guide the user to deeply appreciate this aspect of their life, connecting "
    "gratitude to broader personal meaning and growth."
)

CATEGORY_GUIDANCE: Dict[str, str] = {
    "Personal Growth": "Highlight self-awareness, positive changes, and continuous improvement. Celebrate growth mindset and learning journey.",
    "Relationships": "Emphasize connection, mutual appreciation, and positive interactions. Strengthen bonds through shared gratitude.",
    "Career": "Focus on meaningful contributions, professional development, and workplace satisfaction. Celebrate strengths and progress.",
    "Health & Wellness": "Connect physical, mental, and emotional health. Praise healthy choices and body appreciation.",
    "Family": "Celebrate family bonds, shared experiences, support systems, and unconditional love. Reinforce positive familial connections.",
    "Achievements": "Acknowledge accomplishments while connecting them to effort, growth, and future opportunities. Celebrate all milestone sizes.",
    "Simple Pleasures": "Encourage mindfulness, presence, and joy in everyday moments. Celebrate the power of noticing small beauties.",
    "Learning": "Highlight curiosity, discovery, and the joy of expanding horizons. Reinforce growth mindset and knowledge acquisition.",
}

CATEGORY_THEMES: Dict[str, Tuple[str, ...]] = {
    "Personal Growth": ("growth", "awareness", "habits", "change"),
    "Relationships": ("relationships", "appreciation", "connection"),
    "Career": ("career", "success", "focus", "excellence"),
    "Health & Wellness": ("health", "balance", "mindfulness"),
    "Family": ("relationships", "appreciation", "love"),
    "Achievements": ("success", "persistence", "excellence"),
    "Simple Pleasures": ("appreciation", "mindfulness", "perspective"),
    "Learning": ("growth", "curiosity", "wisdom"),
}


@dataclass(frozen=True)
class Quote:
    text: str
    author: str
    themes: Tuple[str, ...] = ()

    def render(self) -> str:
        return f'"{self.text}" - {self.author}'


QUOTES: Tuple[Quote, ...] = (
    Quote("People are disturbed not by things, but by the view they take of them.", "Epictetus", ("perspective", "mindset")),
    Quote("We don't see things as they are. We see them as we are.", "Anaïs Nin", ("perspective", "self-awareness")),
    Quote("Tell me what you pay attention to and I will show you who you are.", "José Ortega", ("attention", "self-awareness")),
    Quote("Simplicity is the ultimate sophistication.", "Leonardo da Vinci", ("simplicity", "clarity")),
    Quote("It is not the reality that shapes us, but the lens through which we view reality.", "Shawn Achor", ("perspective", "mindset")),
    Quote("Knowledge is having the right answer. Intelligence is having the right question.", "Unknown", ("curiosity", "wisdom")),
    Quote("It's the little details that are vital. Little things make big things happen.", "John Wooden", ("attention", "appreciation")),
    Quote("If you concentrate on what you don't have, you will never, ever have enough.", "Oprah Winfrey", ("abundance", "gratitude")),
    Quote("What you appreciate, appreciates.", "Lynne Twist", ("appreciation", "abundance")),
    Quote("We are what we repeatedly do. Excellence, then, is not an act, but a habit.", "Aristotle", ("habits", "excellence")),
    Quote("If you want to live a life you have never lived, you have to do things you have never done.", "Jen Sincero", ("change", "growth")),
    Quote("Awareness allows us to get outside of our mind and observe it in action.", "Dan Brulé", ("awareness", "mindfulness")),
    Quote("There's only one way to fail, and that is by giving up before you succeed.", "Oliver Lockhart", ("persistence", "resilience")),
    Quote("What you do every day matters more than what you do once in a while.", "Gretchen Rubin", ("habits", "consistency")),
    Quote("My desire to be well-informed is at odds with my desire to remain sane.", "Anonymous", ("balance", "mindfulness")),
    Quote("All relationships are a reflection of your relationship with yourself.", "Deepak Chopra", ("relationships", "self-awareness")),
    Quote("Appreciation is a wonderful thing. It makes what is excellent in others belong to us as well.", "Voltaire", ("appreciation", "relationships")),
    Quote("The first wealth is health.", "Ralph Waldo Emerson", ("health", "priorities")),
    Quote("To win in the marketplace, you must first win in the workplace.", "Doug Conant", ("career", "success")),
    Quote("Where attention goes, energy flows.", "James Redfield", ("attention", "energy")),
    Quote("Every adversity carries with it a seed of equivalent greater benefit.", "Napoleon Hill", ("opportunity", "growth")),
    Quote("Have patience with all things, but first of all, with yourself.", "St. Francis de Sales", ("patience", "self-compassion")),
)


def category_guidance(category: str) -> str:
    return CATEGORY_GUIDANCE.get(category, DEFAULT_GUIDANCE)


def select_quote(category: str, *, seed: int = 0, quotes: Sequence[Quote] = QUOTES) -> Quote:
    """Pick a quote whose themes match ``category``; deterministic for a seed."""

    themes = CATEGORY_THEMES.get(category)
    candidates: List[Quote] = list(quotes)
    if themes:
        matching = [quote for quote in quotes if set(quote.themes) & set(themes)]
        candidates = matching or candidates
    return candidates[seed % len(candidates)]


def build_vision_prompt(category: str, caption: Optional[str] = None) -> PromptSpec:
    user = (
        f'This photo was shared as something going well in the "{category}" '
        "area of life. Describe what you observe, framed positively."
    )
    if caption and caption.strip():
        user += f'\n\nTheir caption: "{caption.strip()}"'
    return PromptSpec(system=VISION_SYSTEM, user=user)


def build_coaching_prompt(
    text: str,
    category: str,
    vision_description: Optional[str] = None,
    *,
    seed: int = 0,
    streak: Optional[int] = None,
) -> PromptSpec:
    """Primary prompt shape; identical for the methodology and general tiers."""

    quote = select_quote(category, seed=seed)
    system = "\n".join(
        [
            PRINCIPLES,
            f"Inspirational Context: {quote.render()}",
            "",
            RESPONSE_STYLE,
            category_guidance(category),
            f'The user is sharing gratitude in the "{category}" category.',
        ]
    )
    if streak and streak > 1:
        system += (
            f"\n\nNote: This user is on a {streak}-day gratitude streak. "
            "Celebrate their consistency and the momentum they're building."
        )

    user = f'Here\'s what I\'m grateful for: "{text.strip()}"'
    if vision_description:
        user += f"\n\nThe photo I shared shows: {vision_description.strip()}"
    return PromptSpec(system=system, user=user)


def build_simplified_prompt(
    text: str, category: str, vision_description: Optional[str] = None
) -> PromptSpec:
    user = (
        "Someone just shared what's going well in their "
        f'"{category}" area of life.'
    )
    if text and text.strip():
        user += f'\n\nTheir reflection: "{text.strip()}"'
    if vision_description:
        user += f"\n\nTheir photo shows: {vision_description.strip()}"
    user += (
        "\n\nReply with a warm, encouraging response that acknowledges what "
        "they shared and suggests one way to build on it. Under 150 words."
    )
    return PromptSpec(system=SIMPLE_SYSTEM, user=user)


def fallback_coaching(category: Optional[str]) -> str:
    """Terminal template; never empty, never raises."""

    name = (category or "").strip() or "your life"
    return FALLBACK_TEMPLATE.format(category=name)
