"""
Instruction text for colorization and translation requests.
"""

from typing import Optional


def colorization_prompt(reference_count: int, aspect_ratio: Optional[str] = None) -> str:
    """
    Build the colorization instruction.

    Args:
        reference_count: Number of reference images placed before the page
        aspect_ratio: "W:H" ratio of the page being colorized

    Returns:
        Prompt string, meant to be the last part of the request
    """
    if reference_count > 0:
        references = f"the {reference_count} reference image(s) attached above"
    else:
        references = "no reference images"

    ratio = f" ({aspect_ratio})" if aspect_ratio else ""

    return (
        f"Colorize the manga page below. Refer to {references} to maintain consistency in "
        "character eye color, skin color, hair color, and clothing color. "
        f"Make image which has EXACTLY SAME ratio{ratio} and layout with original one. "
        "Maintain consistency for the same character, but if the character is wearing new "
        "clothing in the image below, draw them with appropriate different clothing. "
        "Color different characters with distinct colors, but the same character must be "
        "colored consistently. Preserve speech balloons, onomatopoeia, backgrounds, grids, and "
        "all structural elements. Do not modify or delete any text - keep all text exactly as is. "
        "Do not change character expressions or gestures - only apply colors. Color each panel's "
        "scene exactly as shown - do not add different scenes, modify scenes, or remove scenes. "
        "Colorize the following image:"
    )


def translation_prompt(from_language: str, to_language: str, aspect_ratio: Optional[str] = None) -> str:
    """
    Build the translation instruction for one page.
    """
    ratio = f" ({aspect_ratio})" if aspect_ratio else ""

    return (
        f"Translate this manga page from {from_language} to {to_language}. "
        "Maintain all other characters, backgrounds, speech balloon's shape, grids and manga "
        f"structure. Make image which has EXACTLY SAME ratio{ratio} and layout with original one. "
        "You have to translate speech balloon's text, onomatopoeia handwritten text, and all "
        f"other texts which are not {to_language}."
    )
