import unittest

from mathtutor.services.response_parser import (
    ChatReply,
    JSONParseError,
    NoJSONFoundError,
    SchemaViolationError,
    _greedy_braces,
    _nested_braces,
    extract_json,
    locate_json,
    parse_chat_reply,
    parse_quiz,
    sanitize,
)


class TestLocateJson(unittest.TestCase):
    def test_prefers_fenced_block(self):
        text = 'Voici {pas ceci}\n```json\n{"a": 1}\n```\nfin'
        self.assertEqual(locate_json(text), '{"a": 1}')

    def test_falls_back_to_outer_braces(self):
        text = 'Sure! {"a": {"b": 2}} hope it helps'
        self.assertEqual(locate_json(text), '{"a": {"b": 2}}')

    def test_no_braces(self):
        with self.assertRaises(NoJSONFoundError) as ctx:
            locate_json("I can only talk about math.")
        self.assertEqual(ctx.exception.stage, "no_json")

    def test_fence_without_braces(self):
        with self.assertRaises(NoJSONFoundError) as ctx:
            locate_json("```json\nhello\n```")
        self.assertEqual(ctx.exception.stage, "no_json")

    def test_closing_brace_before_opening(self):
        with self.assertRaises(NoJSONFoundError):
            locate_json("} nothing here {")


class TestSanitize(unittest.TestCase):
    def test_removes_escapes_before_star_and_question_mark(self):
        self.assertEqual(sanitize(r"Combien font 14 \* 2 \?"), "Combien font 14 * 2 ?")

    def test_collapses_double_backslashes(self):
        self.assertEqual(sanitize("a \\\\ b"), "a \\ b")

    def test_leaves_other_text_alone(self):
        self.assertEqual(sanitize('{"q": "5 + 3"}'), '{"q": "5 + 3"}')


class TestStrategies(unittest.TestCase):
    def test_greedy_spans_first_to_last_brace(self):
        self.assertEqual(_greedy_braces("", "x {a} y {b} z"), "{a} y {b}")

    def test_greedy_without_braces(self):
        self.assertIsNone(_greedy_braces("", "no object"))

    def test_nested_matches_one_level_of_nesting(self):
        self.assertEqual(_nested_braces("", 'x {"a": {"b": 1}} y'), '{"a": {"b": 1}}')


class TestExtractJson(unittest.TestCase):
    def test_fenced_json_returns_exact_object(self):
        text = 'Here you go:\n```json\n{"a": [1, {"b": null}], "c": "x", "d": 2.5}\n```\nBye!'
        self.assertEqual(extract_json(text), {"a": [1, {"b": None}], "c": "x", "d": 2.5})

    def test_stray_escapes_are_ignored(self):
        escaped = r'```json' + '\n' + r'{"question": "Combien font 14 \* 2 \?", "answer": "28"}' + '\n```'
        clean = '```json\n{"question": "Combien font 14 * 2 ?", "answer": "28"}\n```'
        self.assertEqual(extract_json(escaped), extract_json(clean))

    def test_unfenced_object_with_commentary(self):
        text = 'Bien sur ! {"quickrep": "8", "explication": "5 + 3"} Bonne chance'
        self.assertEqual(extract_json(text), {"quickrep": "8", "explication": "5 + 3"})

    def test_greedy_fallback_when_fence_is_broken(self):
        text = 'Here: ```json\n"quickrep": "x"\n``` {"quickrep": "a", "explication": "b"}'
        self.assertEqual(extract_json(text), {"quickrep": "a", "explication": "b"})

    def test_nested_fallback_skips_broken_prefix(self):
        text = '```json\n{broken\n```\n{"quickrep": "a", "explication": "b"}'
        self.assertEqual(extract_json(text), {"quickrep": "a", "explication": "b"})

    def test_no_json_found(self):
        for text in ["", "Je ne sais pas.", "just [1, 2, 3]", "```json\nhello\n```", "```json\n```"]:
            with self.assertRaises(NoJSONFoundError):
                extract_json(text)

    def test_non_text_input(self):
        with self.assertRaises(NoJSONFoundError):
            extract_json(None)

    def test_invalid_json(self):
        with self.assertRaises(JSONParseError) as ctx:
            extract_json("{not json at all}")
        self.assertEqual(ctx.exception.stage, "parse")
        self.assertEqual(ctx.exception.raw, "{not json at all}")

    def test_array_is_not_an_object(self):
        with self.assertRaises(JSONParseError):
            extract_json("Note {draft}\n```json\n[1, 2]\n```")


class TestParseChatReply(unittest.TestCase):
    def test_valid_reply(self):
        reply = parse_chat_reply('```json\n{"quickrep": "4 * 9 = 36", "explication": "1. Count."}\n```')
        self.assertEqual(reply, ChatReply(quickrep="4 * 9 = 36", explication="1. Count."))

    def test_missing_field(self):
        with self.assertRaises(SchemaViolationError) as ctx:
            parse_chat_reply('{"quickrep": "36"}')
        self.assertEqual(ctx.exception.stage, "schema")
        self.assertTrue(ctx.exception.errors)

    def test_empty_field(self):
        with self.assertRaises(SchemaViolationError):
            parse_chat_reply('{"quickrep": "", "explication": "x"}')

    def test_wrong_type(self):
        with self.assertRaises(SchemaViolationError):
            parse_chat_reply('{"quickrep": 36, "explication": "x"}')


class TestParseQuiz(unittest.TestCase):
    def test_valid_quiz(self):
        quiz = parse_quiz(
            '{"questions": ['
            '{"question": "5 + 3 ?", "answer": "8", "explanation": "5, 6, 7, 8"},'
            '{"question": "10 - 4 ?", "answer": "6", "explanation": "10, 9, 8, 7, 6"}'
            ']}'
        )
        self.assertEqual(len(quiz.questions), 2)
        self.assertEqual(quiz.questions[1].answer, "6")

    def test_question_missing_answer(self):
        text = (
            '{"questions": ['
            '{"question": "5 + 3 ?", "answer": "8", "explanation": "ok"},'
            '{"question": "10 - 4 ?", "explanation": "ok"}'
            ']}'
        )
        with self.assertRaises(SchemaViolationError):
            parse_quiz(text)

    def test_numeric_answer_is_rejected(self):
        with self.assertRaises(SchemaViolationError):
            parse_quiz('{"questions": [{"question": "5 + 3 ?", "answer": 8, "explanation": "ok"}]}')

    def test_missing_questions_array(self):
        with self.assertRaises(SchemaViolationError):
            parse_quiz('{"quiz": []}')

    def test_empty_questions_array(self):
        with self.assertRaises(SchemaViolationError):
            parse_quiz('{"questions": []}')


if __name__ == "__main__":
    unittest.main()
