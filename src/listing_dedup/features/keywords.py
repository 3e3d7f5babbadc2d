"""
Keyword dictionaries for distinctive-feature extraction.

Tables are data: language -> category -> keyword -> feature name. Category
weights, combination bonuses and quantity rules are kept alongside so tuning
or adding a language never touches extraction logic.
"""

KEYWORD_TABLES = {
    'ru': {
        'amenity': {
            'сауна': 'sauna',
            'хамам': 'hamam',
            'джакузи': 'jacuzzi',
            'камин': 'fireplace',
            'терраса': 'terrace',
            'винный погреб': 'wine_cellar',
            'домашний кинотеатр': 'home_theater',
            'спортзал': 'gym',
            'мастерская': 'workshop',
            'кабинет': 'office',
        },
        'layout': {
            'объединена из': 'merged_apartments',
            'двухуровневая': 'duplex',
            'пентхаус': 'penthouse',
            'студия': 'studio',
            'свободная планировка': 'free_layout',
            'европланировка': 'euro_layout',
            'изолированные комнаты': 'isolated_rooms',
            'проходные комнаты': 'connected_rooms',
        },
        'legal': {
            'материнский капитал': 'maternity_capital',
            'ипотека': 'mortgage',
            'рассрочка': 'installment',
            'обременение': 'encumbrance',
            'доля': 'share',
            'альтернатива': 'alternative_sale',
            'более 5 лет': 'longterm_ownership',
            'менее 3 лет': 'shortterm_ownership',
        },
    },
    'en': {
        'amenity': {
            'sauna': 'sauna',
            'hammam': 'hamam',
            'jacuzzi': 'jacuzzi',
            'fireplace': 'fireplace',
            'terrace': 'terrace',
            'wine cellar': 'wine_cellar',
            'home theater': 'home_theater',
            'gym': 'gym',
            'workshop': 'workshop',
            'study room': 'office',
        },
        'layout': {
            'merged from': 'merged_apartments',
            'duplex': 'duplex',
            'penthouse': 'penthouse',
            'studio': 'studio',
            'open plan': 'free_layout',
            'euro layout': 'euro_layout',
            'isolated rooms': 'isolated_rooms',
            'walk-through rooms': 'connected_rooms',
        },
        'legal': {
            'maternity capital': 'maternity_capital',
            'mortgage': 'mortgage',
            'installment': 'installment',
            'encumbrance': 'encumbrance',
            'share': 'share',
            'chain sale': 'alternative_sale',
            'over 5 years': 'longterm_ownership',
            'under 3 years': 'shortterm_ownership',
        },
    },
}

CATEGORY_WEIGHTS = {
    'amenity': 0.8,
    'layout': 0.6,
    'legal': 0.4,
}

# Rare co-occurring amenities: (feature names that must all be present) -> (combo name, weight)
COMBINATION_BONUSES = [
    (('sauna', 'hamam'), 'sauna_hamam', 1.2),
]

# Counted attributes: regex prefixes per language, weighted when count >= threshold
QUANTITY_PATTERNS = {
    'ru': {
        'bathrooms': r'(\d+)\s*(?:санузл|туалет|ванн)',
        'balconies': r'(\d+)\s*(?:лоджи|балкон)',
        'bedrooms': r'(\d+)\s*(?:спальн|комнат)',
    },
    'en': {
        'bathrooms': r'(\d+)\s*(?:bathroom|toilet|bath)',
        'balconies': r'(\d+)\s*(?:balcon|loggia)',
        'bedrooms': r'(\d+)\s*(?:bedroom|room)',
    },
}

QUANTITY_RULES = {
    # count name: (feature name, keyword template, weight)
    'bathrooms': ('multiple_bathrooms', '{count} bathrooms', 0.7),
    'balconies': ('multiple_balconies', '{count} balconies', 0.6),
}

QUANTITY_THRESHOLD = 3
MAX_FEATURE_SCORE = 5.0
