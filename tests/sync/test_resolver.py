"""Tests for IdentifierResolver."""

from __future__ import annotations

from pagesync.store.database import LocalStore
from pagesync.store.models import Category, Project, Tag
from pagesync.sync.resolver import (
    DEFAULT_CATEGORY_ICON,
    DEFAULT_PROJECT_COLORS,
    DEFAULT_TAG_COLORS,
    IdentifierResolver,
)


class TestResolveTags:
    """Tests for tag resolution."""

    def test_matches_case_insensitively(self, store: LocalStore) -> None:
        """Existing tags should be reused regardless of case."""
        store.add_tag(Tag(id="t1", name="Work", color="#000000"))
        resolver = IdentifierResolver.from_store(store)

        assert resolver.resolve_tags(["work", "WORK"]) == ["t1", "t1"]
        assert len(store.list_tags()) == 1

    def test_creates_missing_with_hint(self, store: LocalStore) -> None:
        resolver = IdentifierResolver.from_store(store)

        [tag_id] = resolver.resolve_tags(["home"], {"home": "#123456"})

        [tag] = store.list_tags()
        assert tag.id == tag_id
        assert tag.name == "home"
        assert tag.color == "#123456"

    def test_palette_by_position(self, store: LocalStore) -> None:
        """Without hints, colors should follow the default palette."""
        resolver = IdentifierResolver.from_store(store)
        resolver.resolve_tags(["a", "b"])

        colors = {t.name: t.color for t in store.list_tags()}
        assert colors == {"a": DEFAULT_TAG_COLORS[0], "b": DEFAULT_TAG_COLORS[1]}

    def test_reuses_tags_created_in_same_pass(self, store: LocalStore) -> None:
        """A name seen in two records should map to one new tag."""
        resolver = IdentifierResolver.from_store(store)

        first = resolver.resolve_tags(["Shared"])
        second = resolver.resolve_tags(["shared"])

        assert first == second
        assert len(store.list_tags()) == 1


class TestResolveCategory:
    """Tests for category resolution."""

    def test_none_for_empty_name(self, store: LocalStore) -> None:
        resolver = IdentifierResolver.from_store(store)
        assert resolver.resolve_category(None) is None
        assert resolver.resolve_category("") is None

    def test_existing_category(self, store: LocalStore) -> None:
        store.add_category(Category(id="c1", name="Reading", icon="book"))
        resolver = IdentifierResolver.from_store(store)
        assert resolver.resolve_category("reading") == "c1"

    def test_creates_root_category_at_end(self, store: LocalStore) -> None:
        """New categories should be appended after existing root siblings."""
        store.add_category(Category(id="c1", name="One", icon="folder", sort_order=0))
        resolver = IdentifierResolver.from_store(store)

        new_id = resolver.resolve_category("Two", icon_hint="star")
        default_id = resolver.resolve_category("Three")

        by_id = {c.id: c for c in store.list_categories()}
        assert by_id[new_id].icon == "star"
        assert by_id[new_id].sort_order == 1
        assert by_id[new_id].parent_id is None
        assert by_id[default_id].icon == DEFAULT_CATEGORY_ICON
        assert by_id[default_id].sort_order == 2


class TestResolveProject:
    """Tests for project resolution."""

    def test_existing_project(self, store: LocalStore) -> None:
        store.add_project(Project(id="p1", name="Launch", color="#000"))
        resolver = IdentifierResolver.from_store(store)
        assert resolver.resolve_project("LAUNCH") == "p1"

    def test_creates_with_hint_or_palette(self, store: LocalStore) -> None:
        resolver = IdentifierResolver.from_store(store)

        hinted = resolver.resolve_project("A", color_hint="#abcdef")
        plain = resolver.resolve_project("B")

        colors = {p.id: p.color for p in store.list_projects()}
        assert colors[hinted] == "#abcdef"
        assert colors[plain] == DEFAULT_PROJECT_COLORS[1]
        assert resolver.resolve_project("a") == hinted
