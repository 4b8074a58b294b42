"""
FreezeRay - Freeze SwiftData schemas for safe production releases.

Freezing a schema version captures an immutable fixture (SQLite snapshot,
structural manifest, SQL export and SHA-256 fingerprint) by running the
schema's macro-generated freeze hook inside an iOS Simulator. Later runs
detect drift against the fingerprint, and scaffolded Swift tests exercise
the migration path between frozen versions.

Key Features:
- Structural discovery of @Freeze / @AutoTests declarations in Swift source
- Xcode project conventions resolved without configuration
- Simulator orchestration with a dead-drop extraction channel
- Content-addressed fixture store with explicit, forced overwrite only
- Idempotent scaffolding of user-owned drift and migration tests

Example usage:
    from freezeray import FixtureStore, preceding_version

    store = FixtureStore("FreezeRay/Fixtures")
    print(sorted(store.list_versions()))
    print(store.preceding_version("2.0.0"))
"""

__version__ = "0.4.0"
__all__ = [
    "FixtureStore",
    "DriftEngine",
    "ScaffoldingEngine",
    "discover",
    "preceding_version",
    "__version__",
]


# Lazy imports keep `freezeray --help` fast (lark grammar is compiled on demand)
def __getattr__(name: str):
    if name == "FixtureStore":
        from freezeray.store import FixtureStore
        return FixtureStore
    if name == "DriftEngine":
        from freezeray.drift import DriftEngine
        return DriftEngine
    if name == "ScaffoldingEngine":
        from freezeray.scaffold import ScaffoldingEngine
        return ScaffoldingEngine
    if name == "discover":
        from freezeray.discovery import discover
        return discover
    if name == "preceding_version":
        from freezeray.versioning import preceding_version
        return preceding_version
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
