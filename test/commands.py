"""
Command tree behavioral tests (dispatch, propagation, policy, help/version).

Scope
- Validate the dispatch pass: flags, subcommand descent, params, handler.
- Validate propagated flags across several levels.
- Validate fault policies (raise, shell exit, fallback).
- Validate construction errors and auto help/version output.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (command, invoke, Command).
"""
import io
import unittest
from contextlib import redirect_stderr, redirect_stdout
from unittest import TestCase

from helmsman import (
    Command,
    command,
    invoke,
    DuplicateCommandError,
    UndefinedFlagError,
    MissingValueError,
    UnknownFlagError,
    UnknownAliasError,
    InvalidValueError,
    FaultCode,
)


class TestDispatch(TestCase):
    def setUp(self):
        self.calls = calls = []

        @command
        def tool(context):
            calls.append(("tool", context))
            return "tool"

        @tool.command(params=("target",))
        def sub(context):
            calls.append(("sub", context))
            return "sub"

        tool.define_bool("verbose", False, "chatty output")
        sub.define_bool("force", False, "overwrite files")

        self.tool, self.sub = tool, sub

    def testOnlyDeepestHandlerRuns(self):
        result = invoke(self.tool, ["--verbose", "sub", "--force", "x"])
        self.assertEqual(result, "sub")
        self.assertEqual([name for name, _ in self.calls], ["sub"])

        _, context = self.calls[0]
        self.assertIs(context.get("force"), True)
        self.assertEqual(context.param("target"), "x")
        self.assertIs(context.parent.get("verbose"), True)
        self.assertIs(context.parent.command, self.tool)
        self.assertEqual([step.name for step in context.path], ["tool", "sub"])

    def testRootHandlerWithoutSubcommand(self):
        self.assertEqual(invoke(self.tool, "--verbose"), "tool")
        _, context = self.calls[0]
        self.assertIsNone(context.parent)
        self.assertIs(context.get("verbose"), True)

    def testUnpropagatedFlagIsUnknownBelow(self):
        with self.assertRaises(UnknownFlagError):
            invoke(self.tool, "sub --verbose")

    def testTerminatorSkipsSubcommandMatch(self):
        self.tool.define_params("first")
        invoke(self.tool, "-- sub --force")
        name, context = self.calls[0]
        self.assertEqual(name, "tool")
        self.assertEqual(context.param("first"), "sub")
        self.assertEqual(context.unparsed, ("--force",))

    def testTerminatorInsideSubcommand(self):
        invoke(self.tool, "sub -- --force")
        _, context = self.calls[0]
        self.assertEqual(context.param("target"), "--force")
        self.assertIs(context.get("force"), False)

    def testOverflowKeptAsUnparsed(self):
        invoke(self.tool, "sub a b c")
        _, context = self.calls[0]
        self.assertEqual(context.params, {"target": "a"})
        self.assertEqual(context.unparsed, ("b", "c"))

    def testRepeatedRunsDoNotLeak(self):
        invoke(self.tool, "sub --force x")
        invoke(self.tool, "sub y")
        _, context = self.calls[1]
        self.assertIs(context.get("force"), False)
        self.assertEqual(context.param("target"), "y")

    def testAncestorParamsResetOnDescent(self):
        self.tool.define_params("first")
        invoke(self.tool, ["leftover"])
        invoke(self.tool, ["sub"])
        _, context = self.calls[1]
        self.assertEqual(context.parent.params, {})
        self.assertIsNone(context.parent.param("first"))
        self.assertFalse(self.tool.params.parsed)

    def testStartAlias(self):
        self.assertEqual(self.tool.start(["sub"]), "sub")

    def testPromptMustBeStrings(self):
        with self.assertRaises(TypeError):
            invoke(self.tool, [1, 2])
        with self.assertRaises(TypeError):
            invoke(self.tool, 3)


class TestPropagation(TestCase):
    def setUp(self):
        self.seen = seen = {}

        @command
        def root(context):
            seen["root"] = context

        @root.command
        def middle(context):
            seen["middle"] = context

        @middle.command
        def leaf(context):
            seen["leaf"] = context

        root.define_bool("verbose", False, "chatty output")
        root.alias("V", "verbose")
        root.propagate("verbose")
        self.root = root

    def testReachesGrandchildren(self):
        invoke(self.root, "--verbose middle leaf")
        self.assertIs(self.seen["leaf"].get("verbose"), True)

    def testSetBelowWithAlias(self):
        invoke(self.root, "middle leaf -V")
        self.assertIs(self.seen["leaf"].get("verbose"), True)
        self.assertIs(self.root.registry.get("verbose"), False)
        self.assertIs(self.root.children["middle"].registry.get("verbose"), False)

    def testUnknownPropagatedName(self):
        with self.assertRaises(UndefinedFlagError):
            self.root.propagate("quiet")


class TestConstruction(TestCase):
    def testDuplicateSubcommand(self):
        tool = Command(lambda context: None, "tool")
        tool.command(lambda context: None, "sub")
        with self.assertRaises(DuplicateCommandError):
            tool.command(lambda context: None, "sub")

    def testNameDefaultsToCallback(self):
        def deploy(context):
            """Ship the build."""

        tool = command(deploy)
        self.assertEqual(tool.name, "deploy")
        self.assertEqual(tool.descr, "Ship the build.")

    def testInvalidNames(self):
        for name in ("", "-x", "two words"):
            with self.assertRaises(ValueError, msg=name):
                Command(lambda context: None, name)

    def testCallbackMustBeCallable(self):
        with self.assertRaises(TypeError):
            Command("tool")

    def testParentIsWeak(self):
        tool = Command(lambda context: None, "tool")
        sub = tool.command(lambda context: None, "sub")
        self.assertIs(sub.parent, tool)
        self.assertIs(sub.root, tool)
        self.assertIsNone(tool.parent)

    def testRuntimeOptionsInherited(self):
        tool = Command(lambda context: None, "tool", shell=True, fancy=True)
        sub = tool.command(lambda context: None, "sub", fancy=False)
        self.assertTrue(sub.shell)
        self.assertFalse(sub.fancy)
        self.assertFalse(sub.colorful)

    def testInvokePlainCallable(self):
        def answer(context):
            return 42

        self.assertEqual(invoke(answer, []), 42)
        with self.assertRaises(TypeError):
            invoke(object())


class TestPolicy(TestCase):
    def testRaisesByDefault(self):
        tool = Command(lambda context: None, "tool")
        tool.define_int("count", 1)
        with self.assertRaises(MissingValueError) as context:
            invoke(tool, "--count")
        self.assertIs(context.exception.options["tool"], tool)

    def testInvalidValueKeepsCause(self):
        tool = Command(lambda context: None, "tool")
        tool.define_int("count", 1)
        with self.assertRaises(InvalidValueError) as context:
            invoke(tool, "--count=many")
        self.assertIsInstance(context.exception.__cause__, ValueError)

    def testShellModeExits(self):
        tool = Command(lambda context: None, "tool", shell=True)
        stderr = io.StringIO()
        with redirect_stderr(stderr), self.assertRaises(SystemExit) as context:
            invoke(tool, "--nope")
        self.assertEqual(context.exception.code, 1)
        output = stderr.getvalue()
        self.assertIn("unknown flag", output.lower())
        self.assertIn(FaultCode.UNKNOWN_FLAG.normalize(), output)
        self.assertIn("usage", output)

    def testFallbackReceivesFault(self):
        tool = Command(lambda context: "ran", "tool", shell=True)
        faults = []

        @tool.fallback
        def handle(fault):
            faults.append(fault)
            return "handled"

        self.assertEqual(invoke(tool, "-z"), "handled")
        self.assertIsInstance(faults[0], UnknownAliasError)
        self.assertTrue(faults[0].options["shell"])

    def testFallbackIsSetOnce(self):
        tool = Command(lambda context: None, "tool")
        tool.fallback(print)
        with self.assertRaises(TypeError):
            tool.fallback(print)

    def testFaultUsesDeepestCommandPolicy(self):
        tool = Command(lambda context: None, "tool")
        sub = tool.command(lambda context: None, "sub", shell=True)
        with redirect_stderr(io.StringIO()), self.assertRaises(SystemExit):
            invoke(tool, "sub --nope")
        with self.assertRaises(UnknownFlagError):
            invoke(tool, "--nope sub")
        self.assertTrue(sub.shell)


class TestHelpAndVersion(TestCase):
    def setUp(self):
        self.calls = calls = []

        @command(version="1.2.3")
        def tool(context):
            """Manage things."""
            calls.append("tool")

        @tool.command(params=("target",))
        def sub(context):
            """Do one thing."""
            calls.append("sub")

        tool.define_int("count", 1, "how many")
        self.tool = tool

    def testHelpShortCircuits(self):
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            self.assertIsNone(invoke(self.tool, "--help"))
        self.assertEqual(self.calls, [])
        output = stdout.getvalue()
        self.assertIn("usage: tool [options...] [command]", output)
        self.assertIn("Manage things.", output)
        self.assertIn('--count="1"', output)
        self.assertIn("--help, -h", output)
        self.assertIn("Do one thing.", output)

    def testSubcommandHelp(self):
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            invoke(self.tool, "sub -h")
        self.assertEqual(self.calls, [])
        self.assertIn("usage: tool sub [options...] <target>", stdout.getvalue())

    def testVersion(self):
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            invoke(self.tool, "-v")
        self.assertEqual(self.calls, [])
        self.assertIn("tool 1.2.3", stdout.getvalue())

    def testVersionNotInherited(self):
        with self.assertRaises(UnknownAliasError):
            invoke(self.tool, "sub -v")

    def testPlainUsage(self):
        usage = self.tool.usage()
        self.assertTrue(usage.startswith("Usage:\n  tool [options...] [command]"))
        self.assertIn("Subcommands:\n  sub  Do one thing.", usage)


class TestLogging(TestCase):
    def testDispatchIsLogged(self):
        tool = Command(lambda context: None, "tool")
        with self.assertLogs("helmsman", level="DEBUG") as logs:
            invoke(tool, [])
        self.assertTrue(any("dispatching" in line for line in logs.output))


if __name__ == "__main__":
    unittest.main()
