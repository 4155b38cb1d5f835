from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    page: int
    page_size: int
    total: int
    total_pages: int


class DashboardCard(BaseModel):
    title: str
    value: int


class DashboardSummary(BaseModel):
    greeting: str = "Welcome to Trauma One!"
    cards: list[DashboardCard] = []


class ListView(BaseModel, Generic[T]):
    """A registry screen's current rows as held for the signed-in user."""
    items: list[T]
    page: int
    total: int
    total_pages: int
    error: str | None = None
    applied: bool = True
