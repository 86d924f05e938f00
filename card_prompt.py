CATEGORY_LABELS = {
    "standard": "Mainline",
    "premium": "Premium",
}

# Category-conditional wording shared by the prompt and the fallback card.
PHRASING = {
    "standard": {
        "material": "Die-cast metal",
        "finish": "classic die-cast styling with bright colors",
        "packaging": "standard red and white packaging",
        "collector_value": "Standard",
    },
    "premium": {
        "material": "Die-cast metal with premium details",
        "finish": "premium finish with metallic paint and detailed chrome accents",
        "packaging": "gold premium packaging accents",
        "collector_value": "High",
    },
}

CARD_YEAR = "2024"
CARD_SERIES = "Custom Series"
CARD_SCALE = "1:64"
CARD_FEATURES = ("Realistic wheels", "Authentic paint job", "Detailed interior")

PRIMARY_IMAGE_PROMPT = (
    "A detailed 3D render of a {name} as a 1:64 die-cast collectible, {finish}, "
    "side view, die-cast toy car appearance"
)

PACKAGING_IMAGE_PROMPT = (
    "A die-cast collector blister package containing the {name}, clear plastic "
    "blister on a printed backing card, {packaging}, product photography style"
)

FALLBACK_DESCRIPTION = (
    "A stunning {name} reimagined as a 1:64 die-cast car. This {edition} edition "
    "features authentic styling and collector-quality details."
)

CARD_PROMPT = """\
Create a detailed die-cast collector {label} card design for a "{name}".

Please provide a JSON response with the following structure:
{{
    "name": "{name}",
    "category": "{category}",
    "year": "{year}",
    "series": "{series}",
    "identifier": "{identifier}",
    "description": "A detailed description of the car and its features",
    "specs": {{
        "scale": "{scale}",
        "material": "{material}",
        "features": {features},
        "collectorValue": "{collector_value}"
    }},
    "primaryImagePrompt": "{primary_image_prompt}",
    "packagingImagePrompt": "{packaging_image_prompt}"
}}

Make the description exciting and appealing to collectors. Include specific details about the car's design, performance, and what makes it special. The primary image prompt should describe a photorealistic 3D render suitable for a toy car. The packaging image prompt should describe professional product photography of the packaged toy.
Return ONLY valid JSON, nothing else.
"""

ENHANCE_IMAGE_PROMPT = """\
Generate a detailed image prompt for: {prompt}. Return only the enhanced prompt, no other text.
"""
