"""Tests for recipient resolution."""

import pytest

from agecrypt.exceptions import InvalidPattern, PathNotConfigured
from agecrypt.manifest import Policy
from agecrypt.rules import MatchTier, RuleEngine, compile_glob


BOB = "age1bobbobbobbobbobbobbobbobbobbobbobbobbobbobbobbobbobbobqqqq"
ALICE = "age1alicealicealicealicealicealicealicealicealicealicealiceqq"
CAROL = "age1carolcarolcarolcarolcarolcarolcarolcarolcarolcarolcarolq"


def engine(config, aliases=None):
    return RuleEngine(Policy.from_dict({"aliases": aliases or {}, "config": config}))


class TestPrecedence:
    def test_exact_beats_prefix_and_glob(self):
        e = engine({
            "**/*.txt": [CAROL],
            "a": [ALICE],
            "a/b.txt": [BOB],
        })
        decision = e.resolve("a/b.txt")
        assert decision.tier is MatchTier.EXACT
        assert decision.recipients == (BOB,)

    def test_prefix_beats_glob(self):
        e = engine({"**/*.txt": [CAROL], "a": [ALICE]})
        decision = e.resolve("a/c.txt")
        assert decision.tier is MatchTier.PREFIX
        assert decision.recipients == (ALICE,)

    def test_glob_when_nothing_else(self):
        e = engine({"**/*.txt": [CAROL], "a": [ALICE]})
        decision = e.resolve("z/c.txt")
        assert decision.tier is MatchTier.GLOB
        assert decision.recipients == (CAROL,)

    def test_not_configured(self):
        e = engine({"secrets/**": [BOB]})
        with pytest.raises(PathNotConfigured) as exc:
            e.resolve("public/readme.md")
        assert "public/readme.md" in str(exc.value)


class TestPrefix:
    def test_segment_prefix(self):
        e = engine({"protected": [BOB]})
        assert e.resolve("protected/secret.md").recipients == (BOB,)
        assert e.resolve("protected/deep/er/file").recipients == (BOB,)

    def test_partial_segment_does_not_match(self):
        e = engine({"protected": [BOB]})
        with pytest.raises(PathNotConfigured):
            e.resolve("protected-old/x")

    def test_trailing_slash(self):
        e = engine({"protected/": [BOB]})
        assert e.resolve("protected/secret.md").recipients == (BOB,)

    def test_multi_segment_prefix(self):
        e = engine({"config/prod": [BOB]})
        assert e.resolve("config/prod/db.yml").recipients == (BOB,)
        with pytest.raises(PathNotConfigured):
            e.resolve("config/production/db.yml")


class TestGlob:
    def test_star_is_single_segment(self):
        rx = compile_glob("secrets/*.env")
        assert rx.match("secrets/prod.env")
        assert not rx.match("secrets/nested/prod.env")

    def test_double_star_matches_zero_segments(self):
        rx = compile_glob("**/*.txt")
        assert rx.match("b.txt")
        assert rx.match("a/b.txt")
        assert rx.match("a/b/c.txt")

    def test_double_star_in_middle(self):
        rx = compile_glob("a/**/key")
        assert rx.match("a/key")
        assert rx.match("a/x/y/key")
        assert not rx.match("b/key")

    def test_trailing_double_star(self):
        rx = compile_glob("secrets/**")
        assert rx.match("secrets/x.txt")
        assert rx.match("secrets/a/b/c")
        assert not rx.match("other/x.txt")

    def test_question_mark_and_class(self):
        rx = compile_glob("key[0-9]?.pem")
        assert rx.match("key1a.pem")
        assert not rx.match("keyxa.pem")
        assert not rx.match("key1/.pem")

    def test_negated_class(self):
        rx = compile_glob("[!.]*")
        assert rx.match("visible")
        assert not rx.match(".hidden")

    def test_literal_dots_escaped(self):
        rx = compile_glob("*.txt")
        assert not rx.match("fileXtxt")

    def test_trailing_double_star_matches_zero_segments(self):
        assert compile_glob("secrets/**").match("secrets")

    def test_leading_bracket_is_literal(self):
        rx = compile_glob("[]]x")
        assert rx.match("]x")
        assert not rx.match("ax")

    def test_dotfiles_match_star(self):
        assert compile_glob("config/*").match("config/.env")

    def test_case_sensitive(self):
        assert not compile_glob("*.ENV").match("prod.env")


class TestMerging:
    def test_same_tier_merges_in_declaration_order(self):
        e = engine({
            "*.key": [ALICE, BOB],
            "prod.*": [CAROL, ALICE],
        })
        decision = e.resolve("prod.key")
        assert decision.recipients == (ALICE, BOB, CAROL)
        assert decision.patterns == ("*.key", "prod.*")

    def test_prefix_tier_merges(self):
        e = engine({"a": [ALICE], "a/b": [BOB]})
        assert e.resolve("a/b/c").recipients == (ALICE, BOB)


class TestAliases:
    def test_alias_equivalent_to_literal(self):
        e = engine(
            {"via-alias/**": ["bob"], "via-literal/**": [BOB]},
            aliases={"bob": BOB},
        )
        assert e.resolve("via-alias/x").recipients == e.resolve("via-literal/x").recipients

    def test_alias_and_literal_deduplicated(self):
        e = engine({"s/**": ["bob", BOB, "alice"]}, aliases={"bob": BOB, "alice": ALICE})
        assert e.resolve("s/x").recipients == (BOB, ALICE)

    def test_unknown_alias_passes_through(self):
        e = engine({"s/**": ["nobody"]}, aliases={"bob": BOB})
        assert e.resolve("s/x").recipients == ("nobody",)

    def test_all_recipients(self):
        e = engine({"a": ["bob"], "b/**": [BOB, ALICE]}, aliases={"bob": BOB})
        assert e.all_recipients() == [BOB, ALICE]


class TestInvalidPatterns:
    @pytest.mark.parametrize("pattern", [
        "",
        "/etc/passwd",
        "../outside",
        "a/**b/c",
        "a/[bc",
        "a/[!",
        "x[]",
    ])
    def test_rejected(self, pattern):
        with pytest.raises(InvalidPattern):
            engine({pattern: [BOB]})
