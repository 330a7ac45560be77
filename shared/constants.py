"""Game constants shared between client and server."""

from enum import Enum

# Timing (seconds)
MORNING_BRIEF_DURATION = 45
ACTION_PHASE_DURATION = 120
BREAKING_NEWS_DURATION = 45

# Player and game limits
MIN_PLAYERS = 2
MAX_PLAYERS = 8
MAX_TURNS = 20
MAX_ACTIONS_PER_TURN = 3

# Resources
MAX_GENERATION_PER_TERRITORY = 50
STARTING_TERRITORIES_PER_PLAYER = 2

# Territory control
INFLUENCE_CAPTURE_THRESHOLD = 25
INVASION_DEFENSE_BONUS = 5

# Victory thresholds
TERRITORIAL_DOMINATION = 0.6
ECONOMIC_EMPIRE = 1000
CULTURAL_HEGEMONY = 0.75
INNOVATION_LEADER = 500
ATTENTION_MONOPOLY = 5  # consecutive turns trending

MATCH_VERSION = "1.0.0"
DEFAULT_GAME_MODE = "standard"

# Server
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 8765

TERRITORY_NAMES = [
    "Silicon Valley", "Wall Street", "Hollywood", "Washington DC",
    "London", "Tokyo", "Dubai", "Singapore",
    "Berlin", "Paris", "Sydney", "Toronto",
    "Sao Paulo", "Mumbai", "Seoul", "Shanghai",
    "Tel Aviv", "Stockholm", "Amsterdam", "Zurich",
    "Miami", "Austin", "Seattle", "Boston",
]


class Phase(str, Enum):
    LOBBY = "lobby"
    MORNING_BRIEF = "morning-brief"
    ACTION_PHASE = "action-phase"
    BREAKING_NEWS = "breaking-news"
    FINISHED = "finished"


class ActionType(str, Enum):
    INVEST = "invest"
    INFLUENCE = "influence"
    INVADE = "invade"
    GO_VIRAL = "go-viral"
    CANCEL_CAMPAIGN = "cancel-campaign"
    TREND_HIJACK = "trend-hijack"
    HACK = "hack"
    DEEPFAKE = "deepfake"
    HOSTILE_TAKEOVER = "hostile-takeover"


# Action types resolved by the engine itself; every other type is a faction ability.
GENERIC_ACTIONS = [ActionType.INVEST, ActionType.INFLUENCE, ActionType.INVADE]

ACTION_COSTS = {
    ActionType.INVEST.value: {"wealth": 30, "attention": 10, "technology": 0},
    ActionType.INFLUENCE.value: {"wealth": 10, "attention": 25, "technology": 5},
    ActionType.INVADE.value: {"wealth": 20, "attention": 15, "technology": 10},
    ActionType.GO_VIRAL.value: {"wealth": 5, "attention": 40, "technology": 0},
    ActionType.CANCEL_CAMPAIGN.value: {"wealth": 0, "attention": 30, "technology": 15},
    ActionType.TREND_HIJACK.value: {"wealth": 15, "attention": 35, "technology": 20},
    ActionType.HACK.value: {"wealth": 5, "attention": 5, "technology": 30},
    ActionType.DEEPFAKE.value: {"wealth": 0, "attention": 20, "technology": 25},
    ActionType.HOSTILE_TAKEOVER.value: {"wealth": 80, "attention": 10, "technology": 0},
}

# Effect magnitude before faction multipliers
ACTION_BASE_EFFECT = {
    ActionType.INVEST.value: 5,
    ActionType.INFLUENCE.value: 10,
    ActionType.INVADE.value: 12,
    ActionType.GO_VIRAL.value: 8,
    ActionType.CANCEL_CAMPAIGN.value: 6,
    ActionType.TREND_HIJACK.value: 6,
    ActionType.HACK.value: 8,
    ActionType.DEEPFAKE.value: 10,
    ActionType.HOSTILE_TAKEOVER.value: 10,
}

FACTION_MULTIPLIERS = {
    "influencer-cult": {
        "influence_bonus": 1.5,
        "attention_generation": 1.3,
        "viral_threshold": 0.8,
    },
    "rogue-ai": {
        "technology_bonus": 1.4,
        "automation_efficiency": 1.6,
        "hacking_success_rate": 0.9,
    },
    "hyper-capitalist": {
        "wealth_generation": 1.5,
        "investment_returns": 1.4,
        "market_manipulation": 1.2,
    },
}


class AbilityKind(str, Enum):
    PASSIVE = "passive"
    ACTIVE = "active"
    REACTION = "reaction"


class ConditionType(str, Enum):
    RESOURCE_THRESHOLD = "resource-threshold"
    TERRITORY_COUNT = "territory-count"
    TURN_NUMBER = "turn-number"
    PLAYER_ACTION = "player-action"


class Comparison(str, Enum):
    EQUALS = "equals"
    GREATER = "greater"
    LESS = "less"
    GREATER_EQUAL = "greater-equal"
    LESS_EQUAL = "less-equal"


class VictoryType(str, Enum):
    TERRITORIAL_DOMINATION = "territorial-domination"
    ECONOMIC_EMPIRE = "economic-empire"
    CULTURAL_HEGEMONY = "cultural-hegemony"
    INNOVATION_LEADER = "innovation-leader"
    ATTENTION_MONOPOLY = "attention-monopoly"
    TURN_LIMIT = "turn-limit"


class ConsequenceType(str, Enum):
    RESOURCE_CHANGE = "resource-change"
    TERRITORY_CHANGE = "territory-change"
    FACTION_BONUS = "faction-bonus"
    NARRATIVE_EVENT = "narrative-event"
    ABILITY_UNAVAILABLE = "ability-unavailable"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    ABILITY_UNAVAILABLE = "ability-unavailable"
    PRECONDITION = "precondition"


class ErrorCode(str, Enum):
    UNKNOWN_PLAYER = "unknown-player"
    WRONG_PHASE = "wrong-phase"
    QUOTA_EXCEEDED = "quota-exceeded"
    UNKNOWN_ACTION = "unknown-action"
    INSUFFICIENT_RESOURCES = "insufficient-resources"
    UNKNOWN_FACTION = "unknown-faction"
    DUPLICATE_PLAYER = "duplicate-player"
    MATCH_FULL = "match-full"
    NOT_ENOUGH_PLAYERS = "not-enough-players"
    UNKNOWN_TERRITORY = "unknown-territory"
    ACTION_NOT_PERMITTED = "action-not-permitted"
    ABILITY_UNAVAILABLE = "ability-unavailable"
    MATCH_NOT_FOUND = "match-not-found"
    MATCH_FINISHED = "match-finished"
    INTERNAL_ERROR = "internal-error"


class MessageType(str, Enum):
    # Client -> Server
    CREATE_MATCH = "create-match"
    JOIN_MATCH = "join-match"
    LEAVE_MATCH = "leave-match"
    START_MATCH = "start-match"
    SUBMIT_ACTION = "submit-action"
    ADVANCE_PHASE = "advance-phase"
    GET_STATE = "get-state"
    # Server -> Client
    MATCH_CREATED = "match-created"
    MATCH_STATE = "match-state"
    ACTION_RESULT = "action-result"
    PLAYER_JOINED = "player-joined"
    PLAYER_LEFT = "player-left"
    ACTION_QUEUED = "action-queued"
    PHASE_CHANGED = "phase-changed"
    BREAKING_NEWS = "breaking-news"
    TURN_STARTED = "turn-started"
    GAME_STARTED = "game-started"
    GAME_ENDED = "game-ended"
    ERROR = "error"
