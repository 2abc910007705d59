"""
Tests for ExtensionRegistry (the extension lifecycle state machine).

Covers: directory loading (idempotence, determinism, filtering, bad archives),
direct registration, enable/disable transitions and hooks, hook failure
isolation, sorted queries, and configuration folding.
"""

import logging

import pytest

from appext.core.properties import ConfigProperty
from appext.extensions.base import AppExtension
from appext.extensions.loader import extension_identity
from appext.extensions.manifest import ManifestInfo
from appext.extensions.registry import ExtensionRegistry


# ─────────────────────────────────────────────────────────────
# In-process extensions
# ─────────────────────────────────────────────────────────────

class RecordingExtension(AppExtension):
    """Records hook calls into a shared journal."""

    display_name = "Recording"

    def __init__(self, journal=None, props=None):
        self.journal = journal if journal is not None else []
        self.props = props or []

    def get_info(self):
        return ManifestInfo(name=self.display_name, target_app_name="TestApp")

    def get_config_properties(self):
        return self.props

    def on_activate(self):
        self.journal.append((self.display_name, "activate"))

    def on_deactivate(self):
        self.journal.append((self.display_name, "deactivate"))


class Zebra(RecordingExtension):
    display_name = "Zebra"


class Aardvark(RecordingExtension):
    display_name = "Aardvark"


class Mongoose(RecordingExtension):
    display_name = "Mongoose"


class FaultyHooks(RecordingExtension):
    display_name = "Faulty"

    def on_activate(self):
        self.journal.append((self.display_name, "activate"))
        raise RuntimeError("activation exploded")

    def on_deactivate(self):
        self.journal.append((self.display_name, "deactivate"))
        raise ValueError("deactivation exploded")


ZEBRA = extension_identity(Zebra)
AARDVARK = extension_identity(Aardvark)
MONGOOSE = extension_identity(Mongoose)
FAULTY = extension_identity(FaultyHooks)


@pytest.fixture
def registry():
    return ExtensionRegistry()


@pytest.fixture
def journal():
    return []


# ─────────────────────────────────────────────────────────────
# Loading from a directory
# ─────────────────────────────────────────────────────────────

class TestLoadExtensions:

    def test_loads_all_enabled(self, registry, simple_extension, extensions_dir):
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        simple_extension("b.zip", "beta_ext", "BetaExtension", "Beta")

        loaded = registry.load_extensions(extensions_dir)
        assert loaded == ["alpha_ext.AlphaExtension", "beta_ext.BetaExtension"]
        assert registry.loaded_count == 2
        assert registry.is_enabled("alpha_ext.AlphaExtension") is True
        assert registry.is_enabled("beta_ext.BetaExtension") is True

    def test_source_archive_recorded(self, registry, simple_extension, extensions_dir):
        path = simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        registry.load_extensions(extensions_dir)
        assert registry.source_archive_of("alpha_ext.AlphaExtension").name == path.name

    def test_second_load_is_noop(self, registry, simple_extension, extensions_dir):
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        simple_extension("b.zip", "beta_ext", "BetaExtension", "Beta")

        registry.load_extensions(extensions_dir)
        first = {i: registry.get(i) for i in registry.all_loaded_identities()}

        assert registry.load_extensions(extensions_dir) == []
        assert registry.loaded_count == 2
        for identity, ext in first.items():
            assert registry.get(identity) is ext

    def test_deterministic_across_registries(self, simple_extension, extensions_dir):
        simple_extension("c.zip", "gamma_ext", "GammaExtension", "Gamma")
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        simple_extension("sub/b.zip", "beta_ext", "BetaExtension", "Beta")

        first = ExtensionRegistry().load_extensions(extensions_dir)
        second = ExtensionRegistry().load_extensions(extensions_dir)
        assert first == second
        assert first == ["alpha_ext.AlphaExtension", "gamma_ext.GammaExtension", "beta_ext.BetaExtension"]

    def test_same_identity_first_archive_wins(self, registry, simple_extension, extensions_dir):
        first = simple_extension("a.zip", "dup_ext", "DupExtension", "First")
        simple_extension("b.zip", "dup_ext", "DupExtension", "Second")

        assert registry.load_extensions(extensions_dir) == ["dup_ext.DupExtension"]
        assert registry.get("dup_ext.DupExtension").get_info().name == "First"
        assert registry.source_archive_of("dup_ext.DupExtension").name == first.name

    def test_app_name_filter(self, registry, simple_extension, extensions_dir):
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        simple_extension("b.zip", "beta_ext", "BetaExtension", "Beta", target_app="OtherApp")

        assert registry.load_extensions(extensions_dir, app_name="TestApp") == ["alpha_ext.AlphaExtension"]

    def test_min_version_filter(self, registry, simple_extension, extensions_dir):
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha", target_version="0.9")
        simple_extension("b.zip", "beta_ext", "BetaExtension", "Beta", target_version="1.0")
        simple_extension("c.zip", "gamma_ext", "GammaExtension", "Gamma", target_version="one")

        assert registry.load_extensions(extensions_dir, min_version="1.0") == ["beta_ext.BetaExtension"]

    def test_bad_archives_do_not_abort(self, registry, simple_extension, make_archive, manifest, extensions_dir):
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        make_archive("b.zip", manifest=manifest("Plain"), modules={"plain_mod.py": "X = 1"})
        make_archive("c.zip", manifest=manifest("Broken"), modules={"broken_mod.py": "raise ImportError('x')"})
        make_archive("d.zip", manifest="not json")
        (extensions_dir / "e.zip").write_bytes(b"corrupt")
        simple_extension("f.zip", "zeta_ext", "ZetaExtension", "Zeta")

        loaded = registry.load_extensions(extensions_dir)
        assert loaded == ["alpha_ext.AlphaExtension", "zeta_ext.ZetaExtension"]

    def test_missing_directory_raises(self, registry, tmp_path):
        with pytest.raises(FileNotFoundError):
            registry.load_extensions(tmp_path / "missing")

    def test_find_candidates(self, registry, simple_extension, extensions_dir):
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        simple_extension("b.zip", "beta_ext", "BetaExtension", "Beta", target_app="OtherApp")

        candidates = registry.find_candidates(extensions_dir, app_name="TestApp")
        assert [(p.name, m.name) for p, m in candidates.items()] == [("a.zip", "Alpha")]


# ─────────────────────────────────────────────────────────────
# Direct registration
# ─────────────────────────────────────────────────────────────

class TestRegister:

    def test_register_enabled(self, registry):
        assert registry.register(Zebra()) is True
        assert registry.is_loaded(ZEBRA)
        assert registry.is_enabled(ZEBRA)
        assert registry.source_archive_of(ZEBRA) is None

    def test_register_disabled(self, registry):
        registry.register(Zebra(), enabled=False)
        assert registry.is_loaded(ZEBRA)
        assert registry.is_enabled(ZEBRA) is False

    def test_register_duplicate_ignored(self, registry):
        original = Zebra()
        registry.register(original)
        assert registry.register(Zebra(), enabled=False) is False
        assert registry.get(ZEBRA) is original
        assert registry.is_enabled(ZEBRA) is True

    def test_insertion_order_kept(self, registry):
        registry.register(Zebra())
        registry.register(Aardvark())
        assert registry.insertion_order() == [ZEBRA, AARDVARK]

    def test_unknown_identity_queries(self, registry):
        assert registry.is_loaded("nope") is False
        assert registry.is_enabled("nope") is False
        assert registry.get("nope") is None
        assert registry.get_handle("nope") is None
        assert registry.source_archive_of("nope") is None
        assert registry.configuration_entries_of("nope") == []


# ─────────────────────────────────────────────────────────────
# Enable / disable
# ─────────────────────────────────────────────────────────────

class TestSetEnabled:

    def test_disable_then_enable_fires_hooks_in_order(self, registry, journal):
        registry.register(Zebra(journal))

        assert registry.set_enabled(ZEBRA, False) is True
        assert registry.set_enabled(ZEBRA, True) is True

        assert journal == [("Zebra", "deactivate"), ("Zebra", "activate")]
        assert registry.is_enabled(ZEBRA) is True

    def test_same_state_is_noop(self, registry, journal):
        registry.register(Zebra(journal))
        assert registry.set_enabled(ZEBRA, True) is False
        assert journal == []

    def test_unknown_identity_is_noop(self, registry):
        assert registry.set_enabled("missing.Extension", False) is False

    def test_notify_false_skips_hooks(self, registry, journal):
        registry.register(Zebra(journal))
        registry.set_enabled(ZEBRA, False, notify=False)
        registry.set_enabled(ZEBRA, True, notify=False)
        assert journal == []
        assert registry.is_enabled(ZEBRA) is True

    def test_hook_failure_does_not_propagate(self, registry, journal, caplog):
        registry.register(FaultyHooks(journal))

        with caplog.at_level(logging.ERROR, logger="appext.extensions.registry"):
            assert registry.set_enabled(FAULTY, False) is True
        assert registry.is_enabled(FAULTY) is False
        assert "on_deactivate() failed" in caplog.text

        assert registry.set_enabled(FAULTY, True) is True
        assert registry.is_enabled(FAULTY) is True
        assert journal == [("Faulty", "deactivate"), ("Faulty", "activate")]


class TestActivateAll:

    def test_only_enabled_in_name_order(self, registry, journal):
        registry.register(Zebra(journal))
        registry.register(Mongoose(journal), enabled=False)
        registry.register(Aardvark(journal))

        results = registry.activate_all()
        assert journal == [("Aardvark", "activate"), ("Zebra", "activate")]
        assert results == {AARDVARK: True, ZEBRA: True}

    def test_deactivate_all(self, registry, journal):
        registry.register(Zebra(journal))
        registry.register(Aardvark(journal))
        registry.deactivate_all()
        assert journal == [("Aardvark", "deactivate"), ("Zebra", "deactivate")]
        # deactivate_all is a notification, not a state change
        assert registry.is_enabled(ZEBRA) is True

    def test_failing_hook_does_not_stop_others(self, registry, journal):
        registry.register(Zebra(journal))
        registry.register(FaultyHooks(journal))
        registry.register(Aardvark(journal))

        results = registry.activate_all()
        assert results == {AARDVARK: True, FAULTY: False, ZEBRA: True}
        assert [name for name, _ in journal] == ["Aardvark", "Faulty", "Zebra"]

    def test_hook_failures_recorded(self, registry, journal):
        registry.register(FaultyHooks(journal))
        registry.register(Zebra(journal))

        registry.activate_all()
        registry.deactivate_all()

        assert [(f.identity, f.hook) for f in registry.hook_failures] == [
            (FAULTY, "on_activate"),
            (FAULTY, "on_deactivate"),
        ]
        assert isinstance(registry.hook_failures[0].cause, RuntimeError)
        assert isinstance(registry.hook_failures[1].cause, ValueError)


# ─────────────────────────────────────────────────────────────
# Queries
# ─────────────────────────────────────────────────────────────

class TestQueries:

    def test_all_extensions_sorted_by_name(self, registry):
        registry.register(Zebra())
        registry.register(Mongoose())
        registry.register(Aardvark())
        names = [e.get_info().name for e in registry.all_extensions()]
        assert names == ["Aardvark", "Mongoose", "Zebra"]
        assert registry.all_loaded_identities() == [AARDVARK, MONGOOSE, ZEBRA]

    def test_enabled_only_reflects_live_state(self, registry):
        registry.register(Zebra())
        registry.register(Aardvark())
        assert len(registry.enabled_extensions()) == 2

        registry.set_enabled(AARDVARK, False)
        assert [e.get_info().name for e in registry.enabled_extensions()] == ["Zebra"]

        registry.set_enabled(AARDVARK, True)
        assert [e.get_info().name for e in registry.enabled_extensions()] == ["Aardvark", "Zebra"]

    def test_sorted_view_updates_after_insert(self, registry):
        registry.register(Zebra())
        assert registry.all_loaded_identities() == [ZEBRA]
        registry.register(Aardvark())
        assert registry.all_loaded_identities() == [AARDVARK, ZEBRA]

    def test_handle_info(self, registry):
        registry.register(Zebra())
        handle = registry.get_handle(ZEBRA)
        assert handle.identity == ZEBRA
        assert handle.info.name == "Zebra"


# ─────────────────────────────────────────────────────────────
# Configuration folding
# ─────────────────────────────────────────────────────────────

class TestCollectConfiguration:

    def test_disabled_contribute_nothing(self, registry):
        registry.register(Zebra(props=[ConfigProperty("zebra.stripes", 10)]))
        registry.register(Aardvark(props=[ConfigProperty("aardvark.nose", "long")]), enabled=False)

        names = [p.fully_qualified_name for p in registry.collect_configuration()]
        assert names == ["zebra.stripes"]

    def test_duplicate_keys_all_kept(self, registry):
        first = ConfigProperty("shared.key", "from aardvark")
        second = ConfigProperty("shared.key", "from zebra")
        registry.register(Zebra(props=[second]))
        registry.register(Aardvark(props=[first, ConfigProperty("aardvark.extra", 1)]))

        collected = registry.collect_configuration()
        assert collected == [first, ConfigProperty("aardvark.extra", 1), second]

    def test_configuration_entries_of(self, registry):
        props = [ConfigProperty("zebra.a", 1), ConfigProperty("zebra.b", 2)]
        registry.register(Zebra(props=props), enabled=False)
        assert registry.configuration_entries_of(ZEBRA) == props

    def test_loaded_extension_properties(self, registry, simple_extension, extensions_dir):
        simple_extension("a.zip", "alpha_ext", "AlphaExtension", "Alpha")
        registry.load_extensions(extensions_dir)
        names = [p.fully_qualified_name for p in registry.collect_configuration()]
        assert names == ["Alpha.color", "Alpha.size"]
