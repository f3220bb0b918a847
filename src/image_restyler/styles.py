from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class StyleOption:
    id: str
    name: str
    prompt: str
    humorous_description: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class UnknownStyleError(KeyError):
    """Raised when a style id is not part of the catalog."""


# The first entry is the default selection.
STYLES: tuple[StyleOption, ...] = (
    StyleOption(
        id="anime",
        name="Anime",
        prompt="Redraw this scene as a vibrant Japanese anime still with clean line art, cel shading and expressive eyes",
        humorous_description="Everyone gets giant sparkly eyes. Dramatic wind is free of charge.",
    ),
    StyleOption(
        id="oil-painting",
        name="Oil Painting",
        prompt="Repaint this scene as a classical oil painting with visible brush strokes, rich pigments and soft chiaroscuro lighting",
        humorous_description="Your selfie, now ready to hang in a museum nobody visits.",
    ),
    StyleOption(
        id="watercolor",
        name="Watercolor",
        prompt="Render this scene as a delicate watercolor painting with soft bleeding edges, paper texture and a light pastel palette",
        humorous_description="Like a painting, but it looks like it got caught in the rain.",
    ),
    StyleOption(
        id="pixel-art",
        name="Pixel Art",
        prompt="Recreate this scene as 16-bit pixel art with a limited retro color palette and crisp hard-edged pixels",
        humorous_description="Blow on the cartridge before use.",
    ),
    StyleOption(
        id="cyberpunk",
        name="Cyberpunk",
        prompt="Transform this scene into a neon-drenched cyberpunk night with glowing signs, rain-slick surfaces and holographic haze",
        humorous_description="Same picture, but it owes money to a megacorp.",
    ),
    StyleOption(
        id="claymation",
        name="Claymation",
        prompt="Rebuild this scene as a stop-motion claymation set with sculpted plasticine figures, fingerprint textures and miniature props",
        humorous_description="Handcrafted, one thumbprint at a time.",
    ),
    StyleOption(
        id="pop-art",
        name="Pop Art",
        prompt="Reinterpret this scene as bold 1960s pop art with Ben-Day dots, thick black outlines and flat saturated colors",
        humorous_description="Fifteen minutes of fame, rendered in halftone.",
    ),
    StyleOption(
        id="pencil-sketch",
        name="Pencil Sketch",
        prompt="Redraw this scene as a detailed graphite pencil sketch with cross-hatching, smudged shading and visible paper grain",
        humorous_description="For when color is simply too much commitment.",
    ),
)

DEFAULT_STYLE = STYLES[0]

_STYLES_BY_ID: dict[str, StyleOption] = {s.id: s for s in STYLES}


def get_style(style_id: str) -> StyleOption:
    try:
        return _STYLES_BY_ID[style_id]
    except KeyError:
        raise UnknownStyleError(style_id) from None
