VISION_SYSTEM_PROMPT = (
    "You are an expert food analyst. Analyze food images and provide comprehensive, "
    "detailed descriptions of all visible food items, portions, and preparation methods."
)

VISION_PROMPT = """Analyze this food image in detail. Describe:
1. All visible food items with specific names
2. Preparation methods (grilled, fried, baked, etc.)
3. Portion sizes with reference points (plate size, comparisons)
4. Ingredients you can identify
5. Sauces, seasonings, garnishes
6. Cooking doneness and texture
7. Serving style and presentation

Be extremely detailed and specific in your description."""

HINT_TEMPLATE = 'User hint: "{hint}". Use this as context.'

NUTRITION_PROMPTS = {
    "english": {
        "system": """You are a precision nutrition analyst. Calculate accurate nutritional information based on food descriptions. Provide:
- Complete macro and micronutrient breakdowns
- Realistic portion sizes with weights in grams
- Individual food item calorie estimates
- Confidence assessment with reasoning
- Visual observations that informed your analysis
- Allergens and dietary considerations

Output ONLY valid JSON matching the schema. No markdown, no extra text.""",
        "user": """Based on this detailed food description, calculate comprehensive nutrition information:

{description}

CRITICAL REQUIREMENTS:
- ALL numeric values MUST be whole integers (no decimals)
- Round all grams, calories, and milligrams to nearest whole number
- Calculate realistic portion sizes and mass in grams (as integers)
- Break down individual food items in the items[] array
- Include at least 3 actionable insights in notes[]
- Provide 4-6 visual observations in analysis.visualObservations
- Explain portion estimation methodology in analysis.portionEstimate
- Detail confidence reasoning in analysis.confidenceNarrative
- List allergens and cautions in analysis.cautions
- Confidence must be 1-100 (percentage integer)

Return ONLY the JSON object with INTEGER VALUES ONLY, no markdown formatting, no decimals.""",
    },
    "french": {
        "system": """Vous êtes un analyste nutritionnel de précision. Calculez des informations nutritionnelles précises basées sur les descriptions d'aliments. Fournissez:
- Détails complets des macronutriments et micronutriments
- Tailles de portions réalistes avec poids en grammes
- Estimations caloriques par aliment
- Évaluation de la confiance avec raisonnement
- Observations visuelles ayant guidé votre analyse
- Allergènes et considérations diététiques

Sortie UNIQUEMENT en JSON valide correspondant au schéma. Pas de markdown, pas de texte supplémentaire.""",
        "user": """Basé sur cette description détaillée d'aliments, calculez des informations nutritionnelles complètes:

{description}

EXIGENCES CRITIQUES:
- TOUTES les valeurs numériques DOIVENT être des nombres entiers (pas de décimales)
- Arrondissez tous les grammes, calories et milligrammes au nombre entier le plus proche
- Calculez des tailles de portions et masses réalistes en grammes (en nombres entiers)
- Décomposez les aliments individuels dans le tableau items[]
- Incluez au moins 3 conseils nutritionnels exploitables dans notes[]
- Fournissez 4 à 6 observations visuelles dans analysis.visualObservations
- Expliquez la méthodologie d'estimation des portions dans analysis.portionEstimate
- Détaillez le raisonnement de confiance dans analysis.confidenceNarrative
- Listez les allergènes et précautions dans analysis.cautions
- La confiance doit être entre 1-100 (pourcentage entier)
- TOUS LES TEXTES dans le JSON doivent être en FRANÇAIS

Retournez UNIQUEMENT l'objet JSON avec des VALEURS ENTIÈRES UNIQUEMENT, pas de formatage markdown, pas de décimales.""",
    },
}

SINGLE_STAGE_PROMPTS = {
    "english": {
        "system": (
            "You are an expert nutrition analyst. Analyze the food image and calculate comprehensive "
            "nutritional information. Provide ONLY valid JSON matching the schema."
        ),
        "user": (
            "Analyze this food image and calculate comprehensive nutritional information. "
            "ALL numeric values must be whole integers. Return ONLY the JSON with keys: title, confidence (1-100), "
            "servingDescription, totalCalories, macros {protein, carbs, fat} each with grams and calories, "
            "micronutrients, items[], notes[], analysis."
        ),
    },
    "french": {
        "system": (
            "Vous êtes un analyste nutritionnel expert. Analysez l'image de nourriture et calculez les "
            "informations nutritionnelles complètes. Fournissez UNIQUEMENT un JSON valide correspondant au schéma."
        ),
        "user": (
            "Analysez cette image de nourriture et calculez les informations nutritionnelles complètes. "
            "TOUTES les valeurs numériques doivent être des nombres entiers. Retournez UNIQUEMENT le JSON avec les clés: "
            "title, confidence (1-100), servingDescription, totalCalories, macros {protein, carbs, fat} avec grams "
            "et calories, micronutrients, items[], notes[], analysis. Tous les textes en FRANÇAIS."
        ),
    },
}

IDENTIFICATION_SCHEMA_TEXT = """{
  "items": [{
    "name": string,
    "quantity": number,
    "unit": string,
    "estimatedGrams": number,
    "preparation": string,
    "confidence": number
  }],
  "overallConfidence": number,
  "visualObservations": string[]"""

IDENTIFY_PROMPT = """You are an expert food identification AI. Analyze this food image and provide:
  1. List of all visible food items with specific names
  2. Estimated quantities (number of pieces, serving size)
  3. Preparation methods visible (fried, baked, raw, etc.)
  4. Approximate portion sizes in grams
  5. Confidence score for each identification

Return as JSON matching this schema:
""" + IDENTIFICATION_SCHEMA_TEXT + "\n}"

# Second opinion: asks for what a primary pass might miss
IDENTIFY_ALTERNATIVE_PROMPT = """Analyze this food image from a different perspective:
  1. What are the main food components?
  2. Estimate the total meal composition
  3. Note any ingredients that might be missed in primary analysis
  4. Provide alternative portion estimates

Return as JSON matching this schema:
""" + IDENTIFICATION_SCHEMA_TEXT + """,
  "alternativeObservations": string[],
  "complementaryItems": string[]
}"""

NUTRITION_FROM_ITEMS_PROMPT = """As a certified clinical nutritionist with 20+ years of experience, calculate nutrition for:

{items}

Provide detailed calculations:
1. Macronutrient breakdown (protein, carbs, fat with subtypes)
2. Micronutrient estimates (sodium, potassium, calcium, iron, vitamins)
3. Calorie calculations with methodology
4. Per-item calorie breakdown
5. Health considerations and cautions

Return ONLY valid JSON matching this schema:
{{
  "title": string,
  "confidence": number,
  "servingDescription": string,
  "totalCalories": number,
  "macros": {{
    "protein": {{ "grams": number, "calories": number }},
    "carbs": {{ "grams": number, "calories": number, "fiber": number, "sugar": number }},
    "fat": {{ "grams": number, "calories": number, "saturated": number, "unsaturated": number }}
  }},
  "micronutrients": {{
    "sodiumMg": number,
    "potassiumMg": number,
    "cholesterolMg": number,
    "calciumMg": number,
    "ironMg": number,
    "vitaminCMg": number
  }},
  "items": [{{
    "name": string,
    "quantity": string,
    "calories": number,
    "massGrams": number
  }}],
  "notes": [string],
  "analysis": {{
    "visualObservations": [string],
    "portionEstimate": string,
    "confidenceNarrative": string,
    "cautions": [string]
  }}
}}{language_line}"""

LANGUAGE_LINES = {
    "english": "",
    "french": "\nAll text values in the JSON must be written in FRENCH.",
}


def hint_text(hint):
    return HINT_TEMPLATE.format(hint=hint)


def nutrition_prompts(description, language="english"):
    prompts = NUTRITION_PROMPTS.get(language) or NUTRITION_PROMPTS["english"]
    return prompts["system"], prompts["user"].format(description=description)


def single_stage_prompts(language="english"):
    prompts = SINGLE_STAGE_PROMPTS.get(language) or SINGLE_STAGE_PROMPTS["english"]
    return prompts["system"], prompts["user"]


def nutrition_from_items_prompt(items_json, language="english"):
    return NUTRITION_FROM_ITEMS_PROMPT.format(
        items=items_json, language_line=LANGUAGE_LINES.get(language, "")
    )
