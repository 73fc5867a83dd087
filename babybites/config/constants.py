"""Domain constants shared by validation, prompting and quota logic."""

FEEDING_GOALS = {
    "balanced_nutrition": {
        "label": "Balanced Nutrition",
        "description": "Well-rounded meals with variety",
    },
    "weight_gain": {
        "label": "Healthy Weight Gain",
        "description": "Calorie-dense, nutritious meals",
    },
    "food_variety": {
        "label": "Food Variety & Introduction",
        "description": "Focus on trying new foods safely",
    },
    "picky_eater": {
        "label": "Picky Eater Support",
        "description": "Gentle food exposure strategies",
    },
}

SWAP_REASONS = {
    "missing_ingredient": "Missing some ingredients",
    "dont_like": "Baby didn't like similar meals",
    "want_variety": "Want more variety",
    "dietary": "Dietary restrictions",
    "other": "Other reason",
}

# keyed by age range label
AGE_TEXTURE_GUIDELINES = {
    "6-7": "Smooth purees, very soft mashed foods",
    "8-9": "Thicker purees, soft lumps, finger foods that dissolve",
    "10-12": "Soft, small pieces, more texture variety",
    "12-18": "Soft table foods, small pieces, wider variety",
    "18-24": "Modified family foods, small pieces, most textures",
}

FREE_PLAN = "free"

PLAN_STATUS_DRAFT = "draft"
PLAN_STATUS_READY = "ready"

MAX_PLAN_DAYS = 14
