"""Модели данных (dataclasses для типизации ответов API)."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Tier(str, Enum):
    FREE = "free"
    LITE = "lite"
    PREMIUM = "premium"

    @classmethod
    def parse(cls, value: str | None) -> "Tier":
        try:
            return cls(value or "free")
        except ValueError:
            return cls.FREE


class Role(str, Enum):
    GUEST = "guest"
    USER = "user"
    BUSINESS = "business"
    MODERATOR = "moderator"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: str | None) -> "Role":
        # в старых версиях фронта житель назывался resident, бизнес entrepreneur
        aliases = {"resident": "user", "entrepreneur": "business"}
        value = aliases.get(value or "", value)
        try:
            return cls(value or "user")
        except ValueError:
            return cls.USER


class ModerationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class CollabStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"


EVENT_CATEGORIES: dict[str, tuple[str, str]] = {
    "concerts": ("Концерты", "🎵"),
    "education": ("Обучение", "📚"),
    "seminars": ("Семинары", "🎤"),
    "leisure": ("Досуг", "🎉"),
    "sports": ("Спорт", "⚽"),
    "children": ("Для детей", "🧸"),
    "exhibitions": ("Выставки", "🖼️"),
    "other": ("Другое", "✨"),
}


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _now() -> datetime:
    return datetime.now(timezone.utc)


def format_amount(n: int) -> str:
    return f"{n:,}".replace(",", " ")


@dataclass
class City:
    id: str
    name: str
    slug: str
    name_local: str | None = None
    region: str | None = None
    population: int | None = None

    @classmethod
    def from_api(cls, data: dict) -> "City":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            slug=data["slug"],
            name_local=data.get("nameKz") or data.get("nameLocal"),
            region=data.get("region"),
            population=data.get("population"),
        )


@dataclass
class Organizer:
    id: str | None
    name: str
    logo: str | None = None

    @classmethod
    def from_api(cls, data: dict | None) -> "Organizer | None":
        if not data or not data.get("name"):
            return None
        return cls(id=data.get("id"), name=data["name"], logo=data.get("logo"))


@dataclass
class User:
    id: str
    email: str
    name: str | None = None
    role: Role = Role.USER

    @classmethod
    def from_api(cls, data: dict) -> "User":
        return cls(
            id=str(data["id"]),
            email=data["email"],
            name=data.get("name"),
            role=Role.parse(data.get("role")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role.value,
        }

    @property
    def display_name(self) -> str:
        return self.name or self.email

    @property
    def can_moderate(self) -> bool:
        return self.role in (Role.MODERATOR, Role.ADMIN)


@dataclass
class AuthResult:
    token: str
    user: User

    @classmethod
    def from_api(cls, data: dict) -> "AuthResult":
        token = data["token"]
        if not isinstance(token, str) or not token:
            raise ValueError("empty token")
        return cls(token=token, user=User.from_api(data["user"]))


@dataclass
class Event:
    """Событие афиши.

    price=None означает бесплатное событие (в том числе когда бэкенд
    присылает isFree=true), max_price задаёт диапазон цен. Статус
    модерации выводится из status или isApproved; одобренное событие,
    дата которого прошла, считается expired.
    """

    id: str
    title: str
    category: str
    date: datetime
    description: str | None = None
    image: str | None = None
    time: str | None = None
    location: str | None = None
    address: str | None = None
    price: int | None = None
    max_price: int | None = None
    organizer: Organizer | None = None
    business_id: str | None = None
    tags: list[str] = field(default_factory=list)
    view_count: int = 0
    save_count: int = 0
    is_featured: bool = False
    status: ModerationStatus = ModerationStatus.APPROVED

    @classmethod
    def from_api(cls, data: dict) -> "Event":
        date = parse_datetime(data["date"])
        if date is None:
            raise ValueError("event without date")

        price = data.get("price")
        if data.get("isFree"):
            price = None

        if data.get("status"):
            status = ModerationStatus(data["status"])
        elif data.get("isApproved") is False:
            status = ModerationStatus.PENDING
        else:
            status = ModerationStatus.APPROVED
        if status == ModerationStatus.APPROVED and date < _now():
            status = ModerationStatus.EXPIRED

        organizer = Organizer.from_api(data.get("business") or data.get("organizer"))
        business = data.get("business") or {}
        business_id = data.get("businessId") or business.get("id")
        if organizer is None and data.get("organizerName"):
            organizer = Organizer(
                id=data.get("organizerId"),
                name=data["organizerName"],
                logo=data.get("organizerLogo"),
            )

        return cls(
            id=str(data["id"]),
            title=data["title"],
            category=data.get("category") or "other",
            date=date,
            description=data.get("description"),
            image=data.get("image"),
            time=data.get("time") or date.strftime("%H:%M"),
            location=data.get("location"),
            address=data.get("address"),
            price=price,
            max_price=data.get("maxPrice") if price is not None else None,
            organizer=organizer,
            business_id=str(business_id) if business_id else None,
            tags=list(data.get("tags") or []),
            view_count=data.get("viewsCount", data.get("viewCount")) or 0,
            save_count=data.get("savesCount", data.get("saveCount")) or 0,
            is_featured=bool(data.get("isFeatured")),
            status=status,
        )

    @property
    def is_free(self) -> bool:
        return self.price is None

    def price_label(self) -> str:
        if self.price is None:
            return "Бесплатно"
        if self.max_price:
            return f"{format_amount(self.price)} - {format_amount(self.max_price)} ₸"
        return f"от {format_amount(self.price)} ₸"

    @property
    def category_label(self) -> str:
        label, icon = EVENT_CATEGORIES.get(self.category, EVENT_CATEGORIES["other"])
        return f"{icon} {label}"


@dataclass
class Business:
    id: str
    owner_id: str
    name: str
    category: str
    description: str | None = None
    address: str | None = None
    phone: str | None = None
    logo: str | None = None
    cover: str | None = None
    city_id: str | None = None
    tier: Tier = Tier.FREE
    is_verified: bool = False
    posts_this_month: int = 0
    owner_name: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "Business":
        city = data.get("city") or {}
        return cls(
            id=str(data["id"]),
            owner_id=str(data.get("ownerId") or ""),
            name=data["name"],
            category=data.get("category") or "other",
            description=data.get("description"),
            address=data.get("address"),
            phone=data.get("phone"),
            logo=data.get("logo"),
            cover=data.get("cover"),
            city_id=data.get("cityId") or city.get("id"),
            tier=Tier.parse(data.get("tier")),
            is_verified=bool(data.get("isVerified")),
            posts_this_month=data.get("postsThisMonth") or 0,
            owner_name=data.get("ownerName"),
        )


@dataclass
class Promotion:
    id: str
    business_id: str
    title: str
    valid_until: datetime
    description: str | None = None
    discount: str | None = None
    conditions: str | None = None
    image: str | None = None
    views_count: int = 0
    is_active: bool = True
    business_name: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "Promotion":
        valid_until = parse_datetime(data["validUntil"])
        if valid_until is None:
            raise ValueError("promotion without validUntil")
        business = data.get("business") or {}
        return cls(
            id=str(data["id"]),
            business_id=str(data.get("businessId") or business.get("id") or ""),
            title=data["title"],
            valid_until=valid_until,
            description=data.get("description"),
            discount=data.get("discount"),
            conditions=data.get("conditions"),
            image=data.get("image"),
            views_count=data.get("viewsCount", data.get("viewCount")) or 0,
            is_active=data.get("isActive", True),
            business_name=business.get("name") or data.get("businessName"),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _now()) >= self.valid_until


@dataclass
class Community:
    id: str
    name: str
    description: str | None = None
    image: str | None = None
    members_count: int = 0
    is_private: bool = False
    is_member: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Community":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            description=data.get("description"),
            image=data.get("image"),
            members_count=data.get("membersCount", data.get("memberCount")) or 0,
            is_private=bool(data.get("isPrivate")),
            is_member=bool(data.get("isMember")),
        )


@dataclass
class Collaboration:
    id: str
    title: str
    category: str
    status: CollabStatus = CollabStatus.OPEN
    description: str | None = None
    budget: str | None = None
    response_count: int = 0
    creator: Organizer | None = None
    has_responded: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Collaboration":
        creator = Organizer.from_api(data.get("creator") or data.get("business"))
        if creator is None and data.get("authorName"):
            creator = Organizer(id=data.get("authorId"), name=data["authorName"])
        budget = data.get("budget")
        return cls(
            id=str(data["id"]),
            title=data["title"],
            category=data.get("category") or "other",
            status=CollabStatus(data.get("status") or "open"),
            description=data.get("description"),
            budget=str(budget) if budget not in (None, "") else None,
            response_count=data.get("responseCount", data.get("responsesCount")) or 0,
            creator=creator,
            has_responded=bool(data.get("hasResponded")),
        )


@dataclass
class FavoriteStatus:
    is_favorite: bool
    favorite_id: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "FavoriteStatus":
        return cls(
            is_favorite=bool(data["isFavorite"]),
            favorite_id=data.get("favoriteId"),
        )


@dataclass
class UploadConfig:
    url: str
    cloud_name: str
    folder: str
    upload_preset: str | None = None
    timestamp: int | None = None
    signature: str | None = None
    api_key: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "UploadConfig":
        return cls(
            url=data["url"],
            cloud_name=data["cloudName"],
            folder=data.get("folder") or "afisha/general",
            upload_preset=data.get("uploadPreset"),
            timestamp=data.get("timestamp"),
            signature=data.get("signature"),
            api_key=data.get("apiKey"),
        )

    @property
    def is_signed(self) -> bool:
        return bool(self.signature and self.api_key)


@dataclass
class ImageIdea:
    id: int
    title: str
    prompt: str
    description: str | None = None
    style: str | None = None

    @classmethod
    def from_api(cls, data: dict) -> "ImageIdea":
        return cls(
            id=int(data["id"]),
            title=data["title"],
            prompt=data["prompt"],
            description=data.get("description"),
            style=data.get("style"),
        )
