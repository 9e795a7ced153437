"""Civic challenge models for the map and filter UI."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChallengeCategory(str, Enum):
    """Topic a civic challenge belongs to."""

    ENVIRONMENT = "environment"
    HOUSING = "housing"
    TRANSPORT = "transport"
    PUBLIC_SAFETY = "public_safety"
    GOVERNANCE = "governance"
    EDUCATION = "education"
    HEALTH = "health"
    CLIMATE = "climate"


class ChallengeSeverity(str, Enum):
    """How pressing a challenge is."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Lower rank = more severe
SEVERITY_ORDER: dict[ChallengeSeverity, int] = {
    ChallengeSeverity.CRITICAL: 1,
    ChallengeSeverity.HIGH: 2,
    ChallengeSeverity.MEDIUM: 3,
    ChallengeSeverity.LOW: 4,
}


def severities_at_least(severity: ChallengeSeverity) -> list[ChallengeSeverity]:
    """Return the given severity and every more severe one."""
    max_rank = SEVERITY_ORDER[severity]
    return [sev for sev, rank in SEVERITY_ORDER.items() if rank <= max_rank]


class BoundingBox(BaseModel):
    """Map viewport in degrees."""

    north: float
    south: float
    east: float
    west: float


class ChallengeForMap(BaseModel):
    """Lightweight challenge row for map display."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str
    summary: str = ""
    call_to_action: str | None = None
    category: ChallengeCategory
    subcategory: str | None = None
    severity: ChallengeSeverity
    skills_needed: list[str] = Field(default_factory=list)
    location_name: str = ""
    latitude: float
    longitude: float
    source_url: str | None = None
    source_title: str | None = None
    article_image: str | None = None
    published_at: str | None = None
    created_at: str | None = None


class Challenge(ChallengeForMap):
    """Full challenge row including source and location metadata."""

    source_uri: str | None = None
    article_title: str | None = None
    location_city: str | None = None
    location_country: str | None = None
    geocode_query: str | None = None
    sentiment: float | None = None
    language: str | None = None
    status: str = "active"
    updated_at: str | None = None
    expires_at: str | None = None


class ChallengeCategoryStats(BaseModel):
    """Aggregate counts per category from the stats view."""

    category: ChallengeCategory
    count: int = 0
    critical_count: int = 0
    high_count: int = 0
    new_24h: int = 0


class ChallengeCategoryInfo(BaseModel):
    """Display metadata for a category."""

    name: ChallengeCategory
    label: str
    icon: str
    color: str
    description: str


CHALLENGE_CATEGORIES: list[ChallengeCategoryInfo] = [
    ChallengeCategoryInfo(
        name=ChallengeCategory.ENVIRONMENT,
        label="Environment",
        icon="Leaf",
        color="#22c55e",
        description="Pollution, waste, deforestation, and environmental issues",
    ),
    ChallengeCategoryInfo(
        name=ChallengeCategory.HOUSING,
        label="Housing",
        icon="Home",
        color="#f97316",
        description="Housing crisis, homelessness, evictions, and gentrification",
    ),
    ChallengeCategoryInfo(
        name=ChallengeCategory.TRANSPORT,
        label="Transport",
        icon="Bus",
        color="#3b82f6",
        description="Transit, traffic, road safety, and public transport issues",
    ),
    ChallengeCategoryInfo(
        name=ChallengeCategory.PUBLIC_SAFETY,
        label="Public Safety",
        icon="Shield",
        color="#ef4444",
        description="Crime, emergency services, and community safety",
    ),
    ChallengeCategoryInfo(
        name=ChallengeCategory.GOVERNANCE,
        label="Governance",
        icon="Landmark",
        color="#a855f7",
        description="Corruption, transparency, and civic participation",
    ),
    ChallengeCategoryInfo(
        name=ChallengeCategory.EDUCATION,
        label="Education",
        icon="GraduationCap",
        color="#eab308",
        description="School funding, education access, and digital divide",
    ),
    ChallengeCategoryInfo(
        name=ChallengeCategory.HEALTH,
        label="Health",
        icon="Heart",
        color="#ec4899",
        description="Healthcare access, mental health, and public health",
    ),
    ChallengeCategoryInfo(
        name=ChallengeCategory.CLIMATE,
        label="Climate",
        icon="ThermometerSun",
        color="#14b8a6",
        description="Floods, droughts, wildfires, and extreme weather",
    ),
]
