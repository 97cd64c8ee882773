"""
Embedding Content - Text that represents an entity in vector space.

The hash of this text decides whether a stored embedding is stale, so any
change to these builders invalidates existing embeddings on the next reindex.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

from scout.domains.search.models import Profile, Project

__all__ = ["build_profile_content", "build_project_content", "content_hash"]

# Owner projects folded into a profile's text
PROFILE_PROJECT_LIMIT = 3


def build_profile_content(profile: Profile, projects: Sequence[Project] = ()) -> str:
    """
    Build the embedding text for a profile.

    Args:
        profile: Profile to describe
        projects: The owner's projects; the first few are included

    Returns:
        Sentence-joined description
    """
    parts = [
        profile.display_name,
        profile.headline,
        f"Based in {profile.location}" if profile.location else "",
        f"Skills: {', '.join(profile.skills)}" if profile.skills else "",
        f"Interests: {', '.join(profile.interests)}" if profile.interests else "",
        profile.bio,
    ]

    availability = []
    if profile.availability.hire:
        availability.append("available for hire")
    if profile.availability.collab:
        availability.append("open to collaboration")
    if profile.availability.hiring:
        availability.append("hiring")
    if availability:
        parts.append(f"Currently {' and '.join(availability)}")

    described = [
        ": ".join(p for p in (project.name, project.oneliner) if p)
        for project in projects[:PROFILE_PROJECT_LIMIT]
    ]
    if described:
        parts.append(f"Projects: {'. '.join(described)}")

    return ". ".join(p.strip() for p in parts if p and p.strip())


def build_project_content(project: Project, owner: Profile | None = None) -> str:
    """Build the embedding text for a project, with owner context when known."""
    parts = [project.name, project.oneliner, project.description]

    if owner is not None:
        context = []
        if owner.display_name:
            context.append(f"Created by {owner.display_name}")
        if owner.location:
            context.append(f"based in {owner.location}")
        parts.append(" ".join(context))

    return ". ".join(p.strip() for p in parts if p and p.strip())


def content_hash(text: str) -> str:
    """sha256 hex digest of embedding text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
