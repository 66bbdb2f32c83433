import unittest

from idec_agent.tool_parser import ToolInvocation, describes_pending_action, parse_tool_call, strip_directive


class ParseToolCallTests(unittest.TestCase):
    def test_extracts_name_and_params(self) -> None:
        text = 'Let me look.\n<tool>read_file</tool>\n<params>{"path": "a.txt"}</params>'
        call = parse_tool_call(text)
        self.assertEqual("read_file", call.name)
        self.assertEqual({"path": "a.txt"}, call.params)

    def test_directive_embedded_mid_text(self) -> None:
        text = 'I will look around first. <tool>list_files</tool><params>{"path":"src"}</params> then decide.'
        call = parse_tool_call(text)
        self.assertEqual(("list_files", {"path": "src"}), (call.name, call.params))

    def test_invalid_params_mean_no_tool_call(self) -> None:
        self.assertIsNone(parse_tool_call("<tool>x</tool><params>{invalid}</params>"))

    def test_non_object_params_mean_no_tool_call(self) -> None:
        self.assertIsNone(parse_tool_call('<tool>x</tool><params>["a"]</params>'))

    def test_plain_text_and_incomplete_directives(self) -> None:
        self.assertIsNone(parse_tool_call("Just an answer."))
        self.assertIsNone(parse_tool_call(""))
        self.assertIsNone(parse_tool_call('<tool>read_file</tool><params>{"path": "a'))

    def test_first_directive_wins(self) -> None:
        text = (
            '<tool>list_files</tool><params>{"path": "."}</params>\n'
            '<tool>read_file</tool><params>{"path": "b"}</params>'
        )
        self.assertEqual("list_files", parse_tool_call(text).name)

    def test_backtick_content_is_repaired(self) -> None:
        text = '<tool>write_file</tool><params>{"path": "x.md", "content": `# Title\nbody`}</params>'
        call = parse_tool_call(text)
        self.assertEqual("# Title\nbody", call.params["content"])

    def test_newlines_between_tokens_are_tolerated(self) -> None:
        text = '<tool>read_file</tool><params>{\n"path":\n"a.txt"\n}</params>'
        self.assertEqual({"path": "a.txt"}, parse_tool_call(text).params)


class DescribesPendingActionTests(unittest.TestCase):
    def test_announced_file_actions(self) -> None:
        self.assertTrue(describes_pending_action("Let me update the README.md with the new steps."))
        self.assertTrue(describes_pending_action("I'll go ahead and create the config.json file."))
        self.assertTrue(describes_pending_action("Now proceeding with writing index.js."))
        self.assertTrue(describes_pending_action("Next I will apply the fix to the code."))

    def test_finished_answers_are_left_alone(self) -> None:
        self.assertFalse(describes_pending_action("The README.md explains how to build the project."))
        self.assertFalse(describes_pending_action("Let me know if you need anything else."))
        self.assertFalse(describes_pending_action(""))

    def test_requires_a_file_reference(self) -> None:
        self.assertFalse(describes_pending_action("Let me write a short summary for you."))


class StripDirectiveTests(unittest.TestCase):
    def test_removes_only_the_directive(self) -> None:
        text = 'Reading it now.\n<tool>read_file</tool><params>{"path": "a"}</params>'
        call = parse_tool_call(text)
        self.assertEqual("Reading it now.", strip_directive(text, call))

    def test_empty_span_leaves_text(self) -> None:
        self.assertEqual("text", strip_directive("text", ToolInvocation(name="x")))


if __name__ == "__main__":
    unittest.main()
