"""
Reference tables for book classification.

These mappings define age tiers, storage bins and keyword taxonomies.
Update this file to adjust classification behavior without changing rule logic.
"""

ENGINE_VERSION = 'v1.0-rules'

# Ordered youngest to oldest; order is the tie-break for age scoring
AGE_TIER_RANGES = {
    'HATCH': (0, 2),
    'FLED': (3, 5),
    'SOAR': (6, 8),
    'SKY': (9, 12),
}

AGE_TIER_LABELS = {
    'HATCH': 'Hatchlings',
    'FLED': 'Fledglings',
    'SOAR': 'Soarers',
    'SKY': 'Sky Readers',
}

SKU_PREFIXES = {
    'HATCH': 'HATCH',
    'FLED': 'FLED',
    'SOAR': 'SOAR',
    'SKY': 'SKY',
}

# Age tier when a classic override forces a bin but no tier
OVERRIDE_FALLBACK_AGE_TIER = 'FLED'
DEFAULT_AGE_TIER = 'SOAR'

BIN_CODES = (
    'LIFE', 'NATURE', 'LEARN', 'ADVENTURE',
    'HUMOR', 'CLASSICS', 'IDENTITY', 'SEASONAL',
)
DEFAULT_BIN = 'LIFE'

SOURCE_MULTIPLIERS = {
    'title': 3,
    'subject': 2,
    'summary': 1,
}

EXACT_PHRASE_BONUS = 2
DEFAULT_MAX_POSSIBLE_BIN_SCORE = 40.0

# Format hint substring -> (tier, confidence, reason); checked in order
FORMAT_AGE_HINTS = (
    ('board', 'HATCH', 0.72, 'Format indicates board book.'),
    ('picture', 'FLED', 0.70, 'Format indicates picture book.'),
    ('chapter', 'SOAR', 0.72, 'Format indicates chapter book.'),
    ('graphic', 'SOAR', 0.66, 'Format indicates graphic format.'),
)

# Quick scan-time heuristic over title + summary; first match wins
SCAN_AGE_KEYWORDS = (
    ('SKY', ('chapter', 'middle grade')),
    ('SOAR', ('learn', 'science', 'history')),
    ('HATCH', ('board book', 'toddler', 'baby')),
)
SCAN_DEFAULT_AGE_TIER = 'FLED'

# Default keyword rule table: (bin, keyword, weight, source_priority)
DEFAULT_KEYWORD_RULES = (
    ('LIFE', 'family', 3, 'summary'),
    ('LIFE', 'friend', 3, 'summary'),
    ('LIFE', 'bedtime', 3, 'title'),
    ('LIFE', 'first day', 4, 'summary'),
    ('LIFE', 'family life', 4, 'subject'),
    ('NATURE', 'animal', 3, 'subject'),
    ('NATURE', 'zoo', 3, 'title'),
    ('NATURE', 'ocean', 3, 'summary'),
    ('NATURE', 'forest', 2, 'summary'),
    ('NATURE', 'animals', 4, 'subject'),
    ('NATURE', 'garden', 2, 'summary'),
    ('LEARN', 'science', 4, 'subject'),
    ('LEARN', 'counting', 3, 'title'),
    ('LEARN', 'alphabet', 3, 'title'),
    ('LEARN', 'history', 3, 'subject'),
    ('LEARN', 'learn', 2, 'summary'),
    ('ADVENTURE', 'adventure', 4, 'subject'),
    ('ADVENTURE', 'quest', 3, 'summary'),
    ('ADVENTURE', 'treasure', 3, 'summary'),
    ('ADVENTURE', 'pirate', 3, 'title'),
    ('HUMOR', 'funny', 3, 'summary'),
    ('HUMOR', 'silly', 3, 'summary'),
    ('HUMOR', 'humorous', 4, 'subject'),
    ('HUMOR', 'joke', 3, 'title'),
    ('CLASSICS', 'classic', 4, 'subject'),
    ('CLASSICS', 'anniversary edition', 3, 'title'),
    ('IDENTITY', 'identity', 4, 'subject'),
    ('IDENTITY', 'culture', 3, 'summary'),
    ('IDENTITY', 'belonging', 3, 'summary'),
    ('SEASONAL', 'christmas', 4, 'title'),
    ('SEASONAL', 'halloween', 4, 'title'),
    ('SEASONAL', 'holiday', 3, 'subject'),
    ('SEASONAL', 'winter', 2, 'summary'),
)

# Topic tagging taxonomy, independent of the bin keyword table
TOPIC_FIELD_WEIGHTS = {
    'title': 5,
    'subtitle': 3,
    'subjects': 4,
    'description': 1,
}

TOPIC_PRIMARY_POINTS = 3
TOPIC_SECONDARY_POINTS = 1
TOPIC_MULTIWORD_BONUS = 2

TOPIC_KEYWORDS = {
    'ANIMALS': {
        'primary': [
            'animal', 'animals', 'zoo', 'pet', 'pets', 'dog', 'cat', 'puppy',
            'kitten', 'bear', 'rabbit', 'bunny', 'mouse', 'elephant', 'lion',
            'tiger', 'monkey', 'giraffe', 'zebra', 'penguin', 'bird', 'fish',
            'farm', 'barn', 'wildlife', 'jungle', 'safari', 'ocean', 'horse',
            'cow', 'pig', 'chicken', 'duck', 'sheep', 'fox', 'wolf', 'owl',
            'frog', 'turtle', 'dolphin', 'whale', 'shark',
        ],
        'secondary': [
            'paw', 'tail', 'fur', 'feather', 'whiskers', 'habitat', 'wild',
            'creature', 'critter',
        ],
    },
    'DINO': {
        'primary': [
            'dinosaur', 'dinosaurs', 'dino', 'dinos', 't-rex', 'trex',
            'tyrannosaurus', 'triceratops', 'stegosaurus', 'brachiosaurus',
            'velociraptor', 'pterodactyl', 'prehistoric', 'jurassic',
            'fossil', 'extinction',
        ],
        'secondary': ['paleontology', 'ancient reptile'],
    },
    'VEHICLES': {
        'primary': [
            'car', 'cars', 'truck', 'trucks', 'train', 'trains', 'plane',
            'airplane', 'boat', 'ship', 'vehicle', 'vehicles', 'bus', 'tractor',
            'fire truck', 'firetruck', 'police car', 'ambulance', 'excavator',
            'bulldozer', 'construction', 'transportation', 'rocket', 'spaceship',
            'helicopter', 'motorcycle', 'bicycle',
        ],
        'secondary': ['wheel', 'wheels', 'engine', 'race', 'racing', 'garage'],
    },
    'PRINCESS': {
        'primary': [
            'princess', 'princesses', 'prince', 'queen', 'king', 'royal',
            'castle', 'crown', 'tiara', 'throne', 'kingdom', 'ballgown',
            'fairy tale', 'fairytale', 'enchanted',
        ],
        'secondary': ['palace', 'duke', 'duchess', 'ball', 'gown'],
    },
    'FANTASY': {
        'primary': [
            'magic', 'magical', 'wizard', 'witch', 'fairy', 'fairies', 'elf',
            'unicorn', 'dragon', 'mermaid', 'troll', 'goblin', 'ogre',
            'spell', 'potion', 'wand', 'enchantment', 'mythical', 'fantasy',
        ],
        'secondary': ['enchanted', 'mystical', 'supernatural', 'legendary'],
    },
    'ADVENTURE': {
        'primary': [
            'adventure', 'quest', 'journey', 'expedition', 'explore', 'explorer',
            'treasure', 'map', 'pirate', 'pirates', 'spy', 'detective',
            'mystery', 'secret', 'mission', 'hero', 'rescue', 'escape',
            'survival', 'island',
        ],
        'secondary': ['brave', 'courage', 'danger', 'clue', 'investigate'],
    },
    'EMOTIONS': {
        'primary': [
            'feelings', 'emotions', 'happy', 'happiness', 'sad', 'sadness',
            'angry', 'anger', 'scared', 'fear', 'worried', 'worry',
            'love', 'friendship', 'friend', 'friends', 'kind', 'kindness',
            'sharing', 'caring', 'empathy', 'jealousy', 'patience',
            'bravery', 'confidence', 'bullying', 'manners', 'behavior',
        ],
        'secondary': ['emotional', 'feeling', 'heart', 'cope', 'support'],
    },
    'NONFIC': {
        'primary': [
            'nonfiction', 'non-fiction', 'fact', 'facts', 'true story', 'real',
            'biography', 'history', 'science', 'nature', 'geography', 'space',
            'encyclopedia', 'guide', 'how to', 'learn', 'educational',
            'discover', 'all about',
        ],
        'secondary': ['information', 'knowledge', 'teach', 'explain', 'world'],
    },
    'HOLIDAYS': {
        'primary': [
            'christmas', 'halloween', 'thanksgiving', 'easter', 'hanukkah',
            'valentine', 'holiday', 'holidays', 'santa', 'reindeer', 'snowman',
            'pumpkin', 'costume', 'trick or treat', 'turkey', 'bunny',
            'egg hunt', 'menorah', 'birthday', 'celebration',
        ],
        'secondary': ['celebrate', 'tradition', 'gift', 'party', 'festival'],
    },
    'CHAPTER': {
        'primary': [
            'chapter book', 'chapter', 'chapters', 'early reader',
            'beginning reader', 'reading level', 'series', 'volume',
            'book 1', 'book 2',
        ],
        'secondary': ['sequel', 'part', 'novel', 'ages 6-8', 'ages 7-9'],
    },
}

# Topic review gate thresholds (confidence is on the 0-100 scale)
TOPIC_MIN_CONFIDENCE = 60
TOPIC_MIN_TOTAL_SCORE = 10
TOPIC_MIN_WINNER_SHARE = 0.30
TOPIC_MIN_GAP_PERCENT = 15
