"""
Parser behavioral tests (token classes, option spellings, arity, outcomes).

Scope
- Validate long/short option syntax, value attachment and bundling.
- Validate subcommand descent and per-command option scope.
- Validate terminator, implicit help/version and arity faults.
- Validate finalizer outcomes (Proceed / RenderAndExit) and rule precedence.

Conventions
- Test method names follow CamelCase per project convention.
- Trees are rebuilt per test; parse() must never modify them.
"""

from __future__ import annotations

import unittest
from unittest import TestCase

from arbor import Arg, Command, Option, ValueType
from arbor.faults import (
    EmptyInvocationError,
    ExtraPositionalArgError,
    FaultCode,
    OptionMissingValueError,
    OptionNotDefinedError,
    TooFewPositionalArgsError,
    UnknownCommandError,
)
from arbor.parser import Dispatcher, OptionIndex, Proceed, RenderAndExit, _ordinal, parse


def build_tree():
    tool = Command(
        name="tool",
        version="1.4.0",
        summary="build things",
        options=[
            Option("verbose", "v", ValueType.BOOL, descr="print more"),
            Option("out", "o", require_value=True, descr="output file"),
            Option("level", "l", default="info", descr="log level"),
        ],
    )
    tool.command(
        lambda config: config,
        name="build",
        args=("target", Arg("mode", False)),
        options=[
            Option("jobs", "j", require_value=True, default="2"),
            Option("dry-run", "n", ValueType.BOOL),
        ],
    )
    tool.command(
        lambda config: config,
        name="test",
        options=[Option("out", "o", ValueType.BOOL, descr="write results")],
    )
    return tool


class TestLongOptions(TestCase):
    """Long option spellings and value attachment."""

    def setUp(self):
        self.tool = build_tree()

    def parse(self, *tokens):
        outcome = parse(self.tool, ["tool", *tokens])
        self.assertIsInstance(outcome, Proceed)
        return outcome.cli

    def testInlineValue(self):
        cli = self.parse("build", "--jobs=4", "app")
        self.assertIs(cli.command, self.tool.subcommands["build"])
        self.assertEqual(dict(cli.option_values), {"jobs": "4"})
        self.assertEqual(cli.arg_values, ("app",))

    def testSeparateValueForRequiredOption(self):
        cli = self.parse("build", "--jobs", "4", "app")
        self.assertEqual(cli.option_value("jobs"), "4")
        self.assertEqual(cli.arg_values, ("app",))

    def testInlineAndSeparateValuesMatch(self):
        inline = self.parse("build", "--out= a.txt ", "app")
        separate = self.parse("build", "--out", " a.txt ", "app")
        self.assertEqual(inline.option_value("out"), " a.txt ")
        self.assertEqual(inline.option_value("out"), separate.option_value("out"))

    def testEmptyInlineValueIsRecorded(self):
        cli = self.parse("build", "--out=", "app")
        self.assertTrue(cli.supplied("out"))
        self.assertEqual(cli.option_value("out"), "")

    def testOptionalValueOptionDoesNotConsumeNextToken(self):
        cli = self.parse("build", "--level", "app")
        self.assertEqual(cli.option_value("level"), "")
        self.assertEqual(cli.arg_values, ("app",))

    def testBooleanRecordsTrue(self):
        cli = self.parse("build", "--dry-run", "app")
        self.assertEqual(cli.option_value("dry-run"), "1")

    def testCaseAndUnderscoresAreNormalized(self):
        cli = self.parse("build", "--Dry_Run", "app")
        self.assertEqual(cli.option_value("dry-run"), "1")

    def testNegatedSpellings(self):
        cli = self.parse("build", "--skip-verbose", "--disable-dry-run", "app")
        self.assertEqual(cli.option_value("verbose"), "")
        self.assertEqual(cli.option_value("dry-run"), "")

    def testNegatedSpellingWithValueIsInverted(self):
        cli = self.parse("build", "--skip-dry-run=0", "app")
        self.assertEqual(cli.option_value("dry-run"), "1")

    def testEnablePrefixIsPlain(self):
        cli = self.parse("build", "--enable-verbose", "app")
        self.assertEqual(cli.option_value("verbose"), "1")

    def testLaterValueReplacesEarlierOne(self):
        cli = self.parse("build", "--jobs=1", "--jobs=8", "app")
        self.assertEqual(cli.option_value("jobs"), "8")

    def testLooseUnknownOptionIsIgnored(self):
        cli = self.parse("build", "--loose-color", "app")
        self.assertNotIn("color", cli.option_values)
        self.assertEqual(dict(cli.option_values), {})

    def testLooseKnownOptionResolvesNormally(self):
        cli = self.parse("build", "--loose-verbose", "app")
        self.assertEqual(cli.option_value("verbose"), "1")

    def testUnknownOptionRaises(self):
        with self.assertRaises(OptionNotDefinedError) as context:
            self.parse("build", "app", "--color")
        fault = context.exception
        self.assertEqual(fault.options["name"], "color")
        self.assertEqual(fault.options["source"], "CLI")
        self.assertEqual(fault.options["index"], 3)
        self.assertIs(fault.options["code"], FaultCode.OPTION_NOT_DEFINED)
        self.assertIn("third position", fault.message)

    def testUnknownOptionSuggestsCloseNames(self):
        with self.assertRaises(OptionNotDefinedError) as context:
            self.parse("build", "--jobz=3", "app")
        self.assertIn("jobs", context.exception.options["suggestions"])
        self.assertIn("--jobs", context.exception.options["hint"])

    def testRequiredValueMissingAtEnd(self):
        with self.assertRaises(OptionMissingValueError) as context:
            self.parse("build", "app", "--jobs")
        self.assertEqual(context.exception.options["name"], "jobs")

    def testRequiredValueDoesNotTakeOptionLikeToken(self):
        with self.assertRaises(OptionMissingValueError):
            self.parse("build", "--jobs", "--verbose", "app")


class TestShortOptions(TestCase):
    """Short option bundles and value attachment."""

    def setUp(self):
        self.tool = build_tree()

    def parse(self, *tokens):
        return parse(self.tool, ["tool", *tokens]).cli

    def testAttachedValue(self):
        cli = self.parse("build", "-j4", "app")
        self.assertEqual(cli.option_value("jobs"), "4")

    def testSeparateValue(self):
        cli = self.parse("build", "-j", "4", "app")
        self.assertEqual(cli.option_value("jobs"), "4")
        self.assertEqual(cli.arg_values, ("app",))

    def testBooleanBundle(self):
        cli = self.parse("build", "-vn", "app")
        self.assertEqual(cli.option_value("verbose"), "1")
        self.assertEqual(cli.option_value("dry-run"), "1")

    def testBundleEndingWithValue(self):
        cli = self.parse("build", "-vj4", "app")
        self.assertEqual(cli.option_value("verbose"), "1")
        self.assertEqual(cli.option_value("jobs"), "4")

    def testOptionalValueOptionTakesRemainder(self):
        cli = self.parse("build", "-ldebug", "app")
        self.assertEqual(cli.option_value("level"), "debug")

    def testOptionalValueOptionAloneRecordsEmpty(self):
        cli = self.parse("build", "-l", "app")
        self.assertEqual(cli.option_value("level"), "")
        self.assertEqual(cli.arg_values, ("app",))

    def testUnknownShorthandRaises(self):
        with self.assertRaises(OptionNotDefinedError) as context:
            self.parse("build", "-x", "app")
        self.assertEqual(context.exception.options["name"], "x")

    def testRequiredValueMissing(self):
        with self.assertRaises(OptionMissingValueError):
            self.parse("build", "app", "-j")

    def testRequiredValueDoesNotTakeOptionLikeToken(self):
        with self.assertRaises(OptionMissingValueError):
            self.parse("build", "-j", "-v", "app")

    def testLoneDashIsPositional(self):
        cli = self.parse("build", "-")
        self.assertEqual(cli.arg_values, ("-",))


class TestDispatch(TestCase):
    """Subcommands, scope, terminator and arity."""

    def setUp(self):
        self.tool = build_tree()

    def testParentOptionsBeforeSubcommand(self):
        cli = parse(self.tool, ["tool", "-v", "build", "app"]).cli
        self.assertEqual(cli.option_value("verbose"), "1")
        self.assertIs(cli.command, self.tool.subcommands["build"])

    def testChildOptionUnknownBeforeDescent(self):
        with self.assertRaises(OptionNotDefinedError):
            parse(self.tool, ["tool", "--jobs=4", "build", "app"])

    def testChildDefinitionOverridesParent(self):
        cli = parse(self.tool, ["tool", "test", "--out", "-o"]).cli
        self.assertEqual(cli.option_value("out"), "1")
        self.assertEqual(cli.arg_values, ())

    def testParentDefinitionStillAppliesElsewhere(self):
        with self.assertRaises(OptionMissingValueError):
            parse(self.tool, ["tool", "build", "app", "--out"])

    def testTerminatorMakesEverythingPositional(self):
        cli = parse(self.tool, ["tool", "build", "--", "-x", "--y"]).cli
        self.assertEqual(cli.arg_values, ("-x", "--y"))
        self.assertEqual(dict(cli.option_values), {})

    def testUnknownCommandRaises(self):
        with self.assertRaises(UnknownCommandError) as context:
            parse(self.tool, ["tool", "bild"])
        fault = context.exception
        self.assertEqual(fault.options["name"], "bild")
        self.assertEqual(fault.options["suggestions"], ["build"])
        self.assertIs(fault.options["command"], self.tool)

    def testExtraPositionalRaises(self):
        with self.assertRaises(ExtraPositionalArgError) as context:
            parse(self.tool, ["tool", "build", "a", "b", "c"])
        fault = context.exception
        self.assertEqual(fault.options["name"], "c")
        self.assertEqual(fault.options["maximum"], 2)
        self.assertEqual(fault.options["index"], 4)
        self.assertIn("fourth position", fault.message)

    def testTooFewPositionalsRaises(self):
        with self.assertRaises(TooFewPositionalArgsError) as context:
            parse(self.tool, ["tool", "build"])
        self.assertEqual(context.exception.options["minimum"], 1)

    def testOptionalArgMayBeOmitted(self):
        cli = parse(self.tool, ["tool", "build", "app", "release"]).cli
        self.assertEqual(cli.arg_values, ("app", "release"))

    def testEmptyArgvRaises(self):
        with self.assertRaises(EmptyInvocationError):
            parse(self.tool, [])

    def testInvalidArgvTypes(self):
        with self.assertRaises(TypeError):
            parse(self.tool, "tool build app")
        with self.assertRaises(TypeError):
            parse(self.tool, ["tool", 1])

    def testInvokedAsIsKept(self):
        cli = parse(self.tool, ["/usr/bin/tool", "build", "app"]).cli
        self.assertEqual(cli.invoked_as, "/usr/bin/tool")

    def testTreeIsNotModified(self):
        build = self.tool.subcommands["build"]
        before = (set(self.tool.options), set(build.options), set(self.tool.subcommands))
        parse(self.tool, ["tool", "-v", "build", "-j4", "app"])
        parse(self.tool, ["tool", "test", "--out"])
        after = (set(self.tool.options), set(build.options), set(self.tool.subcommands))
        self.assertEqual(before, after)
        self.assertEqual(self.tool.inherited_options()["out"].require_value, True)

    def testRepeatedParsesAreIndependent(self):
        first = parse(self.tool, ["tool", "build", "-j4", "app"]).cli
        second = parse(self.tool, ["tool", "build", "app"]).cli
        self.assertEqual(first.option_value("jobs"), "4")
        self.assertFalse(second.supplied("jobs"))

    def testResultViewsAreReadOnly(self):
        cli = parse(self.tool, ["tool", "build", "app"]).cli
        with self.assertRaises(TypeError):
            cli.option_values["jobs"] = "9"  # type: ignore[index]
        self.assertIsInstance(cli.arg_values, tuple)


class TestFinalizer(TestCase):
    """Help/version short-circuits and suite redirection."""

    def setUp(self):
        self.tool = build_tree()
        self.leaf = Command(name="leaf", version="0.1", args=[Arg("path", False)])

    def testBareSuiteRedirectsToHelp(self):
        outcome = parse(self.tool, ["tool"])
        self.assertIsInstance(outcome, Proceed)
        self.assertIs(outcome.cli.command, self.tool.subcommands["help"])

    def testHelpOption(self):
        outcome = parse(self.tool, ["tool", "--help"])
        self.assertIsInstance(outcome, RenderAndExit)
        self.assertEqual(outcome.kind, "help")
        self.assertIs(outcome.command, self.tool)
        self.assertEqual(outcome.status, 0)

    def testHelpShorthand(self):
        outcome = parse(self.tool, ["tool", "-?"])
        self.assertIsInstance(outcome, RenderAndExit)
        self.assertIs(outcome.command, self.tool)

    def testHelpOptionOnSubcommand(self):
        outcome = parse(self.tool, ["tool", "build", "app", "--help"])
        self.assertIs(outcome.command, self.tool.subcommands["build"])

    def testHelpOptionNamingSubcommand(self):
        outcome = parse(self.tool, ["tool", "--help=build"])
        self.assertIs(outcome.command, self.tool.subcommands["build"])

    def testHelpTopicFallsBackToRoot(self):
        outcome = parse(self.tool, ["tool", "build", "app", "--help=test"])
        self.assertIs(outcome.command, self.tool.subcommands["test"])

    def testHelpTopicUnknownRaises(self):
        with self.assertRaises(UnknownCommandError):
            parse(self.tool, ["tool", "--help=nope"])

    def testHelpSubcommandIsNotShortCircuited(self):
        outcome = parse(self.tool, ["tool", "help", "build"])
        self.assertIsInstance(outcome, Proceed)
        self.assertIs(outcome.cli.command, self.tool.subcommands["help"])
        self.assertEqual(outcome.cli.arg_values, ("build",))

    def testVersionOption(self):
        outcome = parse(self.tool, ["tool", "build", "app", "--version"])
        self.assertEqual(outcome.kind, "version")
        self.assertIs(outcome.command, self.tool)

    def testNegatedVersionProceeds(self):
        outcome = parse(self.tool, ["tool", "build", "app", "--skip-version"])
        self.assertIsInstance(outcome, Proceed)

    def testImplicitHelpWord(self):
        outcome = parse(self.leaf, ["leaf", "help"])
        self.assertIsInstance(outcome, RenderAndExit)
        self.assertEqual(outcome.kind, "help")
        self.assertIs(outcome.command, self.leaf)

    def testImplicitVersionWord(self):
        outcome = parse(self.leaf, ["leaf", "version"])
        self.assertEqual(outcome.kind, "version")

    def testReservedWordAfterPositionalIsPlain(self):
        outcome = parse(self.tool, ["tool", "build", "app", "help"])
        self.assertIsInstance(outcome, Proceed)
        self.assertEqual(outcome.cli.arg_values, ("app", "help"))


class TestRules(TestCase):
    """Rule precedence, checked without acting on tokens."""

    def setUp(self):
        self.tool = build_tree()
        self.leaf = Command(name="leaf", args=[Arg("path", False)])

    def testSuitePrecedence(self):
        dispatcher = Dispatcher(self.tool, ["tool"])
        self.assertEqual(dispatcher.classify("--").name, "terminator")
        self.assertEqual(dispatcher.classify("--verbose").name, "long")
        self.assertEqual(dispatcher.classify("-v").name, "short")
        self.assertEqual(dispatcher.classify("help").name, "subcommand")
        self.assertEqual(dispatcher.classify("anything").name, "subcommand")

    def testTerminatedTokensAreNotOptions(self):
        dispatcher = Dispatcher(self.tool, ["tool"])
        dispatcher.terminated = True
        self.assertEqual(dispatcher.classify("--verbose").name, "subcommand")
        self.assertEqual(dispatcher.classify("--").name, "terminator")

    def testLeafPrecedence(self):
        dispatcher = Dispatcher(self.leaf, ["leaf"])
        self.assertEqual(dispatcher.classify("help").name, "implicit")
        self.assertEqual(dispatcher.classify("path").name, "positional")
        self.assertEqual(dispatcher.classify("-").name, "positional")
        dispatcher.cli._arg_values.append("path")
        self.assertEqual(dispatcher.classify("help").name, "overflow")

    def testImplicitWordAfterTerminator(self):
        dispatcher = Dispatcher(self.leaf, ["leaf"])
        dispatcher.terminated = True
        self.assertEqual(dispatcher.classify("help").name, "implicit")
        outcome = parse(self.leaf, ["leaf", "--", "help"])
        self.assertIsInstance(outcome, RenderAndExit)
        self.assertEqual(outcome.kind, "help")

    def testRulesOrder(self):
        self.assertEqual(
            [rule.name for rule in Dispatcher.rules],
            ["terminator", "long", "short", "subcommand", "implicit", "overflow", "positional"],
        )


class TestOptionIndex(TestCase):
    """Index building and merging."""

    def testMergeReturnsNewIndex(self):
        tool = build_tree()
        index = OptionIndex.build(tool)
        merged = index.merge(tool.subcommands["test"])
        self.assertTrue(index.long["out"].require_value)
        self.assertTrue(merged.long["out"].is_boolean)
        self.assertTrue(merged.short["o"].is_boolean)
        self.assertIsNot(index.long, merged.long)

    def testBuildIncludesAncestors(self):
        tool = build_tree()
        index = OptionIndex.build(tool.subcommands["build"])
        self.assertIn("verbose", index.long)
        self.assertIn("jobs", index.long)
        self.assertIn("?", index.short)


class TestOrdinal(TestCase):

    def testOrdinals(self):
        self.assertEqual(_ordinal(1), "first")
        self.assertEqual(_ordinal(10), "tenth")
        self.assertEqual(_ordinal(11), "11th")
        self.assertEqual(_ordinal(13), "13th")
        self.assertEqual(_ordinal(22), "22nd")
        self.assertEqual(_ordinal(101), "101st")


if __name__ == "__main__":
    unittest.main()
