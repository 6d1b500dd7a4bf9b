"""Data access layer for RoleDesk models."""
from __future__ import annotations

from .base import Page, Repository
from .roles import RoleRepository
from .users import UserRepository

__all__ = ["Page", "Repository", "RoleRepository", "UserRepository"]
