"""Tests for passphrase getter selection and execution."""

import pytest

from agecrypt.config import load_direct_passphrase, load_getter_override
from agecrypt.exceptions import CommandFailed, EmptyOutput, GetterNotFound
from agecrypt.passphrase import (
    GetterSelection,
    GetterSource,
    PassphraseResolver,
    run_getter,
    select_getter,
)


TABLE = {"sops": "echo from-sops", "linux": "echo from-linux", "macos": "echo from-macos"}


class TestSelectGetter:
    def test_explicit_wins(self):
        sel = select_getter("linux", "macos", TABLE)
        assert sel == GetterSelection("linux", GetterSource.ARG)

    def test_override_beats_implicit(self):
        sel = select_getter(None, "macos", TABLE)
        assert sel == GetterSelection("macos", GetterSource.ENV_VAR)

    def test_implicit_sops(self):
        sel = select_getter(None, None, TABLE)
        assert sel == GetterSelection("sops", GetterSource.IMPLICIT_SOPS)

    def test_empty_override_suppresses_sops(self):
        assert select_getter(None, "", TABLE) is None

    def test_explicit_still_wins_over_suppression(self):
        sel = select_getter("linux", "", TABLE)
        assert sel.key == "linux"

    def test_nothing_applies(self):
        assert select_getter(None, None, {"linux": "echo x"}) is None

    def test_explicit_key_not_checked_against_table(self):
        sel = select_getter("missing", None, {})
        assert sel == GetterSelection("missing", GetterSource.ARG)


class TestRunGetter:
    def test_output_is_stripped(self):
        sel = GetterSelection("k", GetterSource.ARG)
        assert run_getter(sel, {"k": "printf '  secret value \\n\\n'"}) == "secret value"

    def test_shell_pipes(self):
        sel = GetterSelection("k", GetterSource.ARG)
        assert run_getter(sel, {"k": "echo abc | tr a-z A-Z"}) == "ABC"

    def test_multi_command(self):
        sel = GetterSelection("k", GetterSource.ARG)
        assert run_getter(sel, {"k": "true && echo ok"}) == "ok"

    def test_non_zero_exit(self):
        sel = GetterSelection("k", GetterSource.ENV_VAR)
        with pytest.raises(CommandFailed) as exc:
            run_getter(sel, {"k": "echo oops >&2; exit 3"})
        msg = str(exc.value)
        assert "Exit code: 3" in msg
        assert "oops" in msg
        assert "AGE_PASSPHRASE_GETTER" in msg

    def test_empty_output(self):
        sel = GetterSelection("k", GetterSource.ARG)
        with pytest.raises(EmptyOutput):
            run_getter(sel, {"k": "printf '  \\n'"})

    def test_unknown_key(self):
        sel = GetterSelection("nope", GetterSource.ARG)
        with pytest.raises(GetterNotFound, match="nope"):
            run_getter(sel, TABLE)


class TestPassphraseResolver:
    def test_direct_only(self):
        assert PassphraseResolver(direct="pw").passphrase() == "pw"

    def test_nothing(self):
        assert PassphraseResolver().passphrase() is None

    def test_getter_runs_once(self):
        calls = []

        def runner(selection, table):
            calls.append(selection.key)
            return "from-getter"

        resolver = PassphraseResolver(
            selection=GetterSelection("sops", GetterSource.IMPLICIT_SOPS),
            table=TABLE,
            runner=runner,
        )
        assert resolver.passphrase() == "from-getter"
        assert resolver.passphrase() == "from-getter"
        assert calls == ["sops"]

    def test_getter_wins_over_direct(self):
        resolver = PassphraseResolver.from_sources(
            explicit="linux", override=None, direct="direct", table=TABLE,
        )
        assert resolver.passphrase() == "from-linux"

    def test_priority_end_to_end(self):
        resolver = PassphraseResolver.from_sources(
            explicit="linux", override="macos", direct=None, table=TABLE,
        )
        assert resolver.selection.key == "linux"
        assert resolver.passphrase() == "from-linux"

    def test_suppression_does_not_invoke_sops(self):
        resolver = PassphraseResolver.from_sources(
            explicit=None, override="", direct="direct",
            table={"sops": "exit 1"},
        )
        assert resolver.selection is None
        assert resolver.passphrase() == "direct"

    def test_not_resolved_until_asked(self):
        calls = []
        resolver = PassphraseResolver(
            selection=GetterSelection("sops", GetterSource.IMPLICIT_SOPS),
            table=TABLE,
            runner=lambda sel, table: calls.append(sel) or "x",
        )
        assert calls == []
        assert resolver.passphrase() == "x"
        assert len(calls) == 1


class TestEnvironment:
    def test_direct_passphrase(self):
        assert load_direct_passphrase({"AGE_PASSPHRASE": "pw"}) == "pw"
        assert load_direct_passphrase({"AGE_PASSPHRASE": ""}) is None
        assert load_direct_passphrase({}) is None

    def test_getter_override(self):
        assert load_getter_override({}) is None
        assert load_getter_override({"AGE_PASSPHRASE_GETTER": ""}) == ""
        assert load_getter_override({"AGE_PASSPHRASE_GETTER": "linux"}) == "linux"
        assert select_getter(None, load_getter_override({"AGE_PASSPHRASE_GETTER": ""}), TABLE) is None
