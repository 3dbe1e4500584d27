"""Prompt templates for marketplace product image generation.

Clients pick a mode, never the prompt text. build_prompt() selects the mode's
template, strips marketplace-noncompliant language from the free-text inputs,
appends the general compliance rules plus the mode's mandatory constraints, and
returns the prompt together with an immutable audit payload that is stored on
the generated asset.

Sanitization never blocks generation: offending terms are removed and every
removal is recorded in compliance_overrides / compliance_warnings.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from commercepix.models.generation_job import GenerationMode

PROMPT_VERSION = "v1"

MARKETPLACE_COMPLIANCE_RULES = (
    "No visible logos or brand names from other companies",
    "No text or words on the product (except authentic product branding)",
    "No offensive, inappropriate, or misleading imagery",
    "Professional quality suitable for e-commerce",
    "Clear product visibility from front/primary angle",
    "Well-lit with proper exposure and color accuracy",
    "No watermarks, borders, or decorative frames",
    "High resolution and sharp focus on product",
)

TONE_DESCRIPTIONS = {
    "professional": "professional, clean, and business-appropriate",
    "luxury": "luxurious, premium, and high-end",
    "playful": "fun, energetic, and approachable",
    "minimal": "minimalist, simple, and elegant",
    "bold": "bold, striking, and attention-grabbing",
}

CATEGORY_CONTEXTS = {
    "electronics": "modern tech product",
    "clothing": "fashion item",
    "food": "food product",
    "beauty": "beauty or cosmetic product",
    "home": "home goods item",
    "toys": "toy or children's product",
    "sports": "sports or fitness equipment",
    "books": "book or publication",
}


class PromptInputs(BaseModel):
    """Free-text inputs a seller may supply alongside a mode."""

    model_config = ConfigDict(frozen=True)

    product_description: Optional[str] = Field(default=None, max_length=500)
    product_category: Optional[str] = Field(default=None, max_length=50)
    brand_tone: Optional[str] = Field(default=None, max_length=50)
    scene: Optional[str] = Field(default=None, max_length=500)
    constraints: tuple[str, ...] = Field(default=(), max_length=10)


class PromptPayload(BaseModel):
    """Audit record of exactly how a prompt was produced."""

    model_config = ConfigDict(frozen=True)

    mode: GenerationMode
    version: str
    template: str
    inputs: PromptInputs
    sanitized_inputs: PromptInputs
    constraints: tuple[str, ...]
    compliance_overrides: tuple[str, ...] = ()
    compliance_warnings: tuple[str, ...] = ()
    generated_at: datetime

    def to_json(self) -> dict[str, Any]:
        """JSON-serializable dict for the asset's prompt_payload column."""
        return self.model_dump(mode="json")


@dataclass(frozen=True)
class PromptResult:
    prompt: str
    payload: PromptPayload


@dataclass(frozen=True)
class ModeRules:
    """Per-mode guardrails.

    strip_constraints: remove offending terms from constraints instead of
    dropping the whole constraint (main_white only).
    allow_scene: whether a scene description may be rendered at all.
    """

    denylist: tuple[str, ...]
    mandatory: tuple[str, ...]
    summary: str
    strip_constraints: bool = False
    allow_scene: bool = True


MODE_RULES: dict[GenerationMode, ModeRules] = {
    GenerationMode.MAIN_WHITE: ModeRules(
        denylist=(
            "text", "words", "label", "typography", "caption",
            "props", "accessories", "objects", "items",
            "background scene", "environment", "context",
            "dramatic lighting", "colored background", "gradient",
            "shadow play", "artistic lighting", "moody",
        ),
        mandatory=(
            "MANDATORY: Pure white background (RGB: 255, 255, 255) - NO exceptions",
            "MANDATORY: Absolutely no text, words, or labels anywhere in image",
            "MANDATORY: No props, accessories, or context items - product ONLY",
            "MANDATORY: Product centered in frame, front-facing angle",
            "MANDATORY: Realistic studio lighting - no artistic or dramatic effects",
        ),
        summary=(
            "Applied main_white mandatory constraints: white background, no text, "
            "no props, centered product, realistic lighting"
        ),
        strip_constraints=True,
        allow_scene=False,
    ),
    GenerationMode.LIFESTYLE: ModeRules(
        denylist=(
            "fake", "mockup", "placeholder", "dummy",
            "includes", "comes with", "bonus", "free",
            "set of", "bundle", "package includes",
        ),
        mandatory=(
            "MANDATORY: All items shown must be realistic and appropriate for context",
            "MANDATORY: Props do NOT imply they are included with product",
            "MANDATORY: Product representation must be accurate - no exaggeration",
            "MANDATORY: Scene must be achievable in real life - no fantasy elements",
        ),
        summary=(
            "Applied lifestyle mandatory constraints: realistic props, no misrepresentation, "
            "accurate product"
        ),
    ),
    GenerationMode.FEATURE_CALLOUT: ModeRules(
        denylist=(
            "certified", "approved", "FDA", "medical grade",
            "guaranteed", "proven", "scientifically tested",
            "award-winning", "best seller", "#1",
            "patent", "trademarked", "copyrighted",
        ),
        mandatory=(
            "ALLOWED: Subtle text overlays for feature descriptions (only mode where text is permitted)",
            "MANDATORY: Text must be informative and factual - no promotional claims",
            "MANDATORY: No certifications, awards, or unverifiable claims",
            "MANDATORY: Visual callouts (arrows, circles) must be professional and minimal",
            "MANDATORY: Focus on actual product features, not marketing hype",
        ),
        summary=(
            "Applied feature_callout mandatory constraints: text allowed but must be factual, "
            "no fake claims"
        ),
    ),
    GenerationMode.PACKAGING: ModeRules(
        denylist=(
            "organic seal", "USDA organic", "certified organic",
            "FDA approved", "medical device", "prescription",
            "patent pending", "trademarked", "®", "™",
            "award seal", "badge", "certification mark",
            "certified", "certification", "seal", "USDA", "FDA", "approval",
        ),
        mandatory=(
            "MANDATORY: Show product with generic professional retail packaging",
            "MANDATORY: No certification seals, badges, or award marks on package",
            "MANDATORY: No specific ingredient claims or health statements",
            "MANDATORY: Package design must be realistic and achievable",
            "MANDATORY: No trademarked symbols (®, ™) or patent claims",
        ),
        summary=(
            "Applied packaging mandatory constraints: no fake certifications, "
            "no invented claims, generic design"
        ),
    ),
}


def _term_pattern(term: str) -> str:
    # Word boundaries only where the term starts/ends with a word character,
    # so "text" does not match "texture" and "#1" / "®" still match.
    pattern = re.escape(term)
    if term[0].isalnum():
        pattern = r"\b" + pattern
    if term[-1].isalnum():
        pattern = pattern + r"(?:s|es)?\b"
    return pattern


def _compile_denylist(terms: tuple[str, ...]) -> re.Pattern[str]:
    # Longest first so "USDA organic" wins over "USDA".
    ordered = sorted(terms, key=len, reverse=True)
    return re.compile("|".join(_term_pattern(t) for t in ordered), re.IGNORECASE)


_DENYLIST_PATTERNS = {mode: _compile_denylist(rules.denylist) for mode, rules in MODE_RULES.items()}


def _strip_terms(text: str, pattern: re.Pattern[str]) -> str:
    stripped = pattern.sub("", text)
    stripped = re.sub(r"\s+([,.;:!?])", r"\1", stripped)
    return re.sub(r"\s{2,}", " ", stripped).strip(" ,;:-")


def _describe_tone(tone: Optional[str]) -> str:
    if tone and tone.lower() in TONE_DESCRIPTIONS:
        return TONE_DESCRIPTIONS[tone.lower()]
    return "professional and appealing"


def _describe_category(category: Optional[str]) -> str:
    if category and category.lower() in CATEGORY_CONTEXTS:
        return CATEGORY_CONTEXTS[category.lower()]
    return "product"


def sanitize_inputs(
    mode: GenerationMode, inputs: PromptInputs
) -> tuple[PromptInputs, list[str], list[str]]:
    """Apply a mode's denylist and mandatory constraints to the inputs.

    Args:
        mode: Generation mode whose rules apply
        inputs: Raw seller inputs

    Returns:
        (sanitized inputs, compliance overrides, compliance warnings)
    """
    rules = MODE_RULES[mode]
    pattern = _DENYLIST_PATTERNS[mode]
    overrides: list[str] = []
    warnings: list[str] = []

    description = inputs.product_description
    if description and pattern.search(description):
        cleaned = _strip_terms(description, pattern)
        overrides.append(f"Removed disallowed terms from product description for {mode.value} mode")
        warnings.append(
            f'Description contained terms incompatible with {mode.value}: "{description}" -> "{cleaned}"'
        )
        description = cleaned or None

    scene = inputs.scene
    if scene and not rules.allow_scene:
        overrides.append(f"Ignored scene description: {mode.value} images have no scene")
        warnings.append(f'Scene removed for {mode.value} mode: "{scene}"')
        scene = None
    elif scene and pattern.search(scene):
        cleaned = _strip_terms(scene, pattern)
        overrides.append(f"Removed disallowed terms from scene for {mode.value} mode")
        warnings.append(f'Scene contained disallowed terms: "{scene}" -> "{cleaned}"')
        scene = cleaned or None

    constraints: list[str] = []
    removed = 0
    for constraint in inputs.constraints:
        if not pattern.search(constraint):
            constraints.append(constraint)
            continue
        if rules.strip_constraints:
            cleaned = _strip_terms(constraint, pattern)
            if cleaned:
                constraints.append(cleaned)
                continue
        removed += 1
        warnings.append(f'Constraint removed for {mode.value} mode: "{constraint}"')
    if removed:
        overrides.append(f"Removed {removed} constraints incompatible with {mode.value} mode")

    constraints.extend(rules.mandatory)
    overrides.append(rules.summary)

    # mandatory constraints may exceed the seller-facing constraint limit
    sanitized = PromptInputs.model_construct(
        product_description=description,
        product_category=inputs.product_category,
        brand_tone=inputs.brand_tone,
        scene=scene,
        constraints=tuple(constraints),
    )
    return sanitized, overrides, warnings


def _requirements_block(constraints: tuple[str, ...]) -> str:
    return "\n".join(f"- {c}" for c in (*MARKETPLACE_COMPLIANCE_RULES, *constraints))


def _render_main_white(product: str, category: str, tone: str, scene: Optional[str]) -> str:
    return f"""Create a professional product photography image of {product} ({category}).

COMPOSITION:
- Pure white background (RGB: 255, 255, 255)
- Product centered in frame
- Front-facing primary angle
- Product takes up 80-85% of frame
- Slight shadow under product for depth

LIGHTING:
- Bright, even lighting from multiple angles
- No harsh shadows
- Proper exposure with no overblown highlights
- Natural color representation

STYLE:
- {tone} aesthetic
- Commercial photography quality
- Professional studio setup
- Sharp focus throughout product"""


def _render_lifestyle(product: str, category: str, tone: str, scene: Optional[str]) -> str:
    setting = scene or "Natural, authentic environment where product would be used"
    return f"""Create a lifestyle product photography image showing {product} ({category}) in a real-world setting.

SCENE:
- {setting}
- Product in context but clearly visible as the focal point
- Realistic setting with complementary props or background
- Human element optional (hands using product, or lifestyle context)

COMPOSITION:
- Product prominent but naturally integrated into scene
- Rule of thirds or other compositionally pleasing arrangement
- Depth of field that keeps product in sharp focus
- Environmental elements support but don't distract from product

LIGHTING:
- Natural or natural-looking lighting
- Warm, inviting atmosphere
- Proper exposure across the scene
- Highlights product features

STYLE:
- {tone} aesthetic
- Authentic and relatable
- High-quality lifestyle photography
- Aspirational yet achievable scene"""


def _render_feature_callout(product: str, category: str, tone: str, scene: Optional[str]) -> str:
    background = scene or "Clean, uncluttered background (light gray or white)"
    return f"""Create a feature callout product photography image for {product} ({category}) that highlights key features and benefits.

COMPOSITION:
- {background}
- Product positioned to showcase important features
- Multiple angles or close-up details if beneficial
- Visual hierarchy emphasizing key selling points

VISUAL ELEMENTS:
- Subtle visual cues pointing to key features (arrows, circles, or lines)
- Close-up insets showing important details or textures
- Zoom-in sections highlighting specific areas
- Clean, minimal graphic elements that enhance rather than distract

LIGHTING:
- Bright, clear lighting
- Detail-revealing illumination
- Consistent lighting across all elements
- No harsh shadows that obscure features

STYLE:
- {tone} aesthetic
- Informative and clear
- Professional infographic-style presentation
- Marketing-focused but not cluttered"""


def _render_packaging(product: str, category: str, tone: str, scene: Optional[str]) -> str:
    background = scene or "Clean white or light gray background"
    return f"""Create a product packaging photography image showing {product} ({category}) in its retail package.

COMPOSITION:
- Product shown in complete retail packaging
- Angled view that shows front panel and side/top for dimension
- Package takes up 75-85% of frame
- {background}
- Package positioned at appealing 3/4 angle

PACKAGING PRESENTATION:
- Packaging appears professional and retail-ready
- Brand elements visible but not specific competitor logos
- Package design appears modern and shelf-worthy
- Sealed, new condition appearance

LIGHTING:
- Professional studio lighting
- Even illumination showing package details
- Minimal glare on any plastic/glossy surfaces
- Colors rendered accurately

STYLE:
- {tone} aesthetic
- Retail photography quality
- Professional and polished
- Suitable for online and offline retail"""


_TEMPLATES = {
    GenerationMode.MAIN_WHITE: (
        _render_main_white,
        "Create a high-quality e-commerce product image suitable for marketplace main image guidelines.",
    ),
    GenerationMode.LIFESTYLE: (
        _render_lifestyle,
        "Create a compelling lifestyle image that shows the product in context while "
        "maintaining e-commerce standards.",
    ),
    GenerationMode.FEATURE_CALLOUT: (
        _render_feature_callout,
        "Create an informative feature callout image that clearly communicates product "
        "benefits while maintaining professional quality.",
    ),
    GenerationMode.PACKAGING: (
        _render_packaging,
        "Create a high-quality packaging image suitable for e-commerce and retail display.",
    ),
}


def build_prompt(mode: GenerationMode | str, inputs: Optional[PromptInputs] = None) -> PromptResult:
    """Build the generation prompt and audit payload for a mode.

    Args:
        mode: One of the four generation modes (enum or its string value)
        inputs: Seller-supplied free text (all optional)

    Returns:
        PromptResult with the full prompt text and its frozen payload

    Raises:
        ValueError: If mode is not a known generation mode
    """
    try:
        mode = GenerationMode(mode)
    except ValueError:
        raise ValueError(f"Unknown mode: {mode}") from None

    inputs = inputs or PromptInputs()
    sanitized, overrides, warnings = sanitize_inputs(mode, inputs)

    render, closing = _TEMPLATES[mode]
    body = render(
        sanitized.product_description or "a product",
        _describe_category(sanitized.product_category),
        _describe_tone(sanitized.brand_tone),
        sanitized.scene,
    )
    prompt = f"{body}\n\nREQUIREMENTS:\n{_requirements_block(sanitized.constraints)}\n\n{closing}"

    payload = PromptPayload(
        mode=mode,
        version=PROMPT_VERSION,
        template=f"{mode.value}_{PROMPT_VERSION}",
        inputs=inputs,
        sanitized_inputs=sanitized,
        constraints=(*MARKETPLACE_COMPLIANCE_RULES, *sanitized.constraints),
        compliance_overrides=tuple(overrides),
        compliance_warnings=tuple(warnings),
        generated_at=datetime.now(timezone.utc),
    )
    return PromptResult(prompt=prompt, payload=payload)
