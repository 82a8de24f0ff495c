"""Tests for optional dependencies handling"""

import pytest

from pacdep.core.analyzer import AnalysisOptions, Analyzer
from pacdep.core.closure import Classification
from pacdep.core.database import PackageDatabase

OPTIONAL = Classification.OPTIONAL
OPTIONAL_EXPLICIT = Classification.OPTIONAL_EXPLICIT
EXCLUSIVE = Classification.EXCLUSIVE


@pytest.fixture
def db():
    """Root A with one optional dependency of each kind.

    - local: installed as a dependency, used by nothing else
    - shared: installed as a dependency, also required by X
    - manual: installed explicitly
    - remote: only available in a repository
    """
    database = PackageDatabase()
    database.add_package("A", isize=1000, optdepends=[
        "local: local feature",
        "shared: shared feature",
        "manual: manual feature",
        "remote: remote feature",
    ])
    database.add_package("local", reason="dependency", isize=10, depends=["helper"])
    database.add_package("helper", reason="dependency", isize=5)
    database.add_package("shared", reason="dependency", isize=20)
    database.add_package("X", depends=["shared"])
    database.add_package("manual", isize=30)
    database.add_package("remote", repo="extra", isize=40)
    yield database
    database.close()


def analyze(db, level, **kwargs):
    return Analyzer(db, AnalysisOptions(show_optional=level, **kwargs)).analyze(["A"])


class TestOptionalLevels:
    """Which optional dependencies each level pulls in."""

    def test_disabled(self, db):
        closure = analyze(db, 0)
        assert len(closure) == 1
        assert closure.optional_size == 0

    def test_level_one(self, db):
        closure = analyze(db, 1)
        assert "local" in closure
        assert "shared" not in closure
        assert "manual" not in closure
        assert "remote" not in closure

    def test_level_two(self, db):
        closure = analyze(db, 2)
        assert "local" in closure
        assert "shared" in closure
        assert "manual" not in closure
        assert "remote" not in closure

    def test_level_three(self, db):
        closure = analyze(db, 3)
        for name in ("local", "shared", "manual", "remote"):
            assert name in closure
        assert closure.get("remote").repo == "extra"

    def test_explicit_mode_keeps_explicit(self, db):
        closure = analyze(db, 1, explicit=True)
        assert "manual" in closure
        assert closure.get("manual").classification == OPTIONAL_EXPLICIT


class TestOptionalClassification:
    """The optional overlay on a settled closure."""

    def test_overlay(self, db):
        closure = analyze(db, 3)
        for name in ("local", "shared", "manual", "remote"):
            assert closure.get(name).classification == OPTIONAL
        assert closure.optional_size == 100

    def test_dependencies_of_optional(self, db):
        closure = analyze(db, 1)
        helper = closure.get("helper")
        assert helper is not None
        assert helper.classification == EXCLUSIVE

    def test_required_dependency_also_optional(self):
        db = PackageDatabase()
        db.add_package("A", depends=["lib"], optdepends=["lib: extra"], isize=1)
        db.add_package("lib", reason="dependency", isize=50)
        options = AnalysisOptions(show_optional=1, listed=frozenset({EXCLUSIVE, OPTIONAL}))

        closure = Analyzer(db, options).analyze(["A"])

        assert closure.get("lib").classification == OPTIONAL
        assert closure.exclusive_size == 0
        assert closure.record(EXCLUSIVE).members == []
        assert closure.optional_size == 50
        assert [n.name for n in closure.record(OPTIONAL).members] == ["lib"]

    def test_optional_through_capability(self):
        db = PackageDatabase()
        db.add_package("A", optdepends=["java-runtime: for the plugin"])
        db.add_package("jre-openjdk", reason="dependency", provides=["java-runtime=21"])
        closure = Analyzer(db, AnalysisOptions(show_optional=1)).analyze(["A"])
        assert closure.get("jre-openjdk").classification == OPTIONAL

    def test_root_not_reclassified(self):
        db = PackageDatabase()
        db.add_package("A", optdepends=["B"])
        db.add_package("B", reason="dependency")
        closure = Analyzer(db, AnalysisOptions(show_optional=1)).analyze(["A", "B"])
        assert closure.get("B").classification == EXCLUSIVE
        assert closure.optional_size == 0

    def test_removable_includes_optional(self, db):
        closure = analyze(db, 1)
        # A, local and its helper
        assert closure.removable_size == 1000 + 10 + 5
