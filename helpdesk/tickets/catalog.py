from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Protocol, Sequence

logger = logging.getLogger(__name__)

UNKNOWN_USER_NAME = "Unknown User"


@dataclass(frozen=True, slots=True)
class User:
    """Directory entry for a requester or an agent."""

    id: str
    first_name: str
    last_name: str
    email: str
    display_name: str | None = None
    phone_number: str = ""
    department: str = ""
    job_title: str = ""
    manager: str | None = None
    default_location: str = ""
    roles: tuple[str, ...] = ("user",)

    @property
    def full_name(self) -> str:
        if self.display_name:
            return self.display_name
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True, slots=True)
class SubCategory:
    id: str
    name: str
    category_id: str


@dataclass(frozen=True, slots=True)
class Category:
    id: str
    name: str
    description: str = ""
    sub_categories: tuple[SubCategory, ...] = field(default_factory=tuple)


class UserCatalog(Protocol):
    def find_user_by_id(self, user_id: str) -> User | None:
        ...

    def list_users(self) -> Sequence[User]:
        ...


class CategoryCatalog(Protocol):
    def find_sub_category(self, category_name: str | None, sub_category_id: str | None) -> SubCategory | None:
        ...


class InMemoryUserCatalog:
    """Read-only user lookups backed by a fixed list."""

    def __init__(self, users: Iterable[User] = ()) -> None:
        self._users = {user.id: user for user in users}

    def find_user_by_id(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def list_users(self) -> Sequence[User]:
        return tuple(self._users.values())


class InMemoryCategoryCatalog:
    """Read-only category lookups backed by a fixed list."""

    def __init__(self, categories: Iterable[Category] = ()) -> None:
        self._categories = tuple(categories)

    def categories(self) -> Sequence[Category]:
        return self._categories

    def find_sub_category(self, category_name: str | None, sub_category_id: str | None) -> SubCategory | None:
        if not sub_category_id:
            return None
        wanted = (category_name or "").casefold()
        for category in self._categories:
            if wanted and category.name.casefold() != wanted:
                continue
            for sub_category in category.sub_categories:
                if sub_category.id == sub_category_id:
                    return sub_category
        return None


def resolve_user_name(users: UserCatalog, user_id: str | None) -> str:
    """Display name for ``user_id``; dangling ids resolve to a placeholder."""

    if not user_id:
        return ""
    user = users.find_user_by_id(user_id)
    if user is None:
        logger.warning("User %s not found in catalog", user_id)
        return UNKNOWN_USER_NAME
    return user.full_name


def resolve_sub_category_name(categories: CategoryCatalog, category_name: str | None, sub_category_id: str | None) -> str:
    if not sub_category_id:
        return ""
    sub_category = categories.find_sub_category(category_name, sub_category_id)
    if sub_category is None:
        logger.warning("Sub-category %s not found under %r", sub_category_id, category_name)
        return ""
    return sub_category.name


def _user_from_mapping(data: Mapping[str, Any]) -> User:
    return User(
        id=str(data["id"]),
        first_name=str(data.get("firstName", "")),
        last_name=str(data.get("lastName", "")),
        email=str(data.get("email", "")),
        display_name=data.get("displayName") or None,
        phone_number=str(data.get("phoneNumber", "")),
        department=str(data.get("department", "")),
        job_title=str(data.get("jobTitle", "")),
        manager=data.get("manager"),
        default_location=str(data.get("defaultLocation", "")),
        roles=tuple(data.get("roles") or ("user",)),
    )


def _category_from_mapping(data: Mapping[str, Any]) -> Category:
    category_id = str(data["id"])
    sub_categories = tuple(
        SubCategory(id=str(item["id"]), name=str(item["name"]), category_id=category_id)
        for item in data.get("subCategories") or ()
    )
    return Category(
        id=category_id,
        name=str(data["name"]),
        description=str(data.get("description", "")),
        sub_categories=sub_categories,
    )


def load_catalogs(path: str | Path) -> tuple[InMemoryUserCatalog, InMemoryCategoryCatalog]:
    """Read ``{"users": [...], "categories": [...]}`` from a JSON seed file."""

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    users = [_user_from_mapping(item) for item in raw.get("users", [])]
    categories = [_category_from_mapping(item) for item in raw.get("categories", [])]
    logger.info("Loaded %d users and %d categories from %s", len(users), len(categories), path)
    return InMemoryUserCatalog(users), InMemoryCategoryCatalog(categories)
