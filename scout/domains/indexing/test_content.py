"""
Tests for embedding content builders.
"""

from __future__ import annotations

from scout.domains.search.models import Availability, Profile, Project

from .content import build_profile_content, build_project_content, content_hash


def _profile(**kwargs) -> Profile:
    return Profile(id="p1", handle="ada", **kwargs)


def test_profile_content_orders_sections() -> None:
    """Test profile text lists identity, location, skills and availability."""
    profile = _profile(
        display_name="Ada",
        headline="ML engineer",
        location="Berlin",
        skills=["Python", "PyTorch"],
        interests=["climate"],
        bio="Builds models",
        availability=Availability(hire=True, hiring=True),
    )

    assert build_profile_content(profile) == (
        "Ada. ML engineer. Based in Berlin. Skills: Python, PyTorch. "
        "Interests: climate. Builds models. Currently available for hire and hiring"
    )


def test_profile_content_includes_first_three_projects() -> None:
    """Test only the leading projects are folded in."""
    projects = [
        Project(id=f"x{i}", owner_id="p1", name=f"P{i}", slug=f"p{i}", oneliner="tool" if i else "")
        for i in range(4)
    ]
    text = build_profile_content(_profile(display_name="Ada"), projects)
    assert text == "Ada. Projects: P0. P1: tool. P2: tool"


def test_profile_content_skips_empty_fields() -> None:
    """Test blank fields leave no empty sentences."""
    assert build_profile_content(_profile(headline="  ")) == ""


def test_project_content_with_owner() -> None:
    """Test project text carries owner context."""
    project = Project(id="x", owner_id="p1", name="Engine", slug="engine", oneliner="Computes")
    owner = _profile(display_name="Ada", location="London")

    assert build_project_content(project, owner) == (
        "Engine. Computes. Created by Ada based in London"
    )
    assert build_project_content(project) == "Engine. Computes"


def test_content_hash_is_stable() -> None:
    """Test the hash changes only with the text."""
    assert content_hash("a") == content_hash("a")
    assert content_hash("a") != content_hash("b")
    assert len(content_hash("a")) == 64
