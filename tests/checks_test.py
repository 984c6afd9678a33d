# Copyright 2024 Google Inc. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import unittest

from pegc import checks
from pegc import compiler
from pegc import parser
from pegc.grammar_error import GrammarError


class _CheckTestCase(unittest.TestCase):
    maxDiff = None

    def run_check(self, check, text, start_rules=None):
        grammar = parser.parse(text)
        if check is checks.report_undefined_rules:
            options = compiler.CompilerOptions(
                allowed_start_rules=start_rules or [grammar.rules[0].name]
            )
            check(grammar, options)
        else:
            check(grammar)

    def check_ok(self, check, text, start_rules=None):
        self.run_check(check, text, start_rules)

    # pylint: disable=too-many-positional-arguments
    def check_error(
        self,
        check,
        text,
        message,
        line=None,
        column=None,
        start_rules=None,
    ):
        with self.assertRaises(GrammarError) as cm:
            self.run_check(check, text, start_rules)
        self.assertEqual(cm.exception.message, message)
        self.assertEqual(str(cm.exception), message)
        if line is None:
            self.assertIsNone(cm.exception.location)
        else:
            start = cm.exception.location.start
            self.assertEqual((start.line, start.column), (line, column))


class UndefinedRulesTest(_CheckTestCase):
    def test_defined(self):
        self.check_ok(checks.report_undefined_rules, 'start = a\na = "x"')

    def test_undefined(self):
        self.check_error(
            checks.report_undefined_rules,
            'start = "a" missing',
            'Rule "missing" is not defined.',
            1,
            13,
        )

    def test_undefined_start_rule(self):
        self.check_error(
            checks.report_undefined_rules,
            'start = "a"',
            'Start rule "other" is not defined.',
            start_rules=['start', 'other'],
        )


class DuplicateRulesTest(_CheckTestCase):
    def test_unique(self):
        self.check_ok(checks.report_duplicate_rules, 'a = "a"\nb = "b"')

    def test_duplicate(self):
        self.check_error(
            checks.report_duplicate_rules,
            'start = "a"\nother = "b"\nstart = "c"',
            'Rule "start" is already defined at line 1, column 1.',
            3,
            1,
        )


class DuplicateLabelsTest(_CheckTestCase):
    def test_unique_labels(self):
        self.check_ok(checks.report_duplicate_labels, 'start = a:"a" b:"b"')

    def test_same_label_in_different_scopes(self):
        self.check_ok(
            checks.report_duplicate_labels,
            'start = a:"a" / a:"b"\nother = a:"c"',
        )
        self.check_ok(
            checks.report_duplicate_labels,
            'start = (a:"a" { return a }) a:"b"',
        )
        self.check_ok(
            checks.report_duplicate_labels,
            'start = ("x" a:"a")* a:"b"',
        )

    def test_duplicate_in_sequence(self):
        self.check_error(
            checks.report_duplicate_labels,
            'start = a:"a" a:"b"',
            'Label "a" is already defined at line 1, column 9.',
            1,
            15,
        )

    def test_inner_label_shadows_outer(self):
        self.check_error(
            checks.report_duplicate_labels,
            'start = a:"a" ("b" a:"c")',
            'Label "a" is already defined at line 1, column 9.',
            1,
            20,
        )


class InfiniteRecursionTest(_CheckTestCase):
    def test_consumes_before_recursing(self):
        self.check_ok(checks.report_infinite_recursion, 'start = "a" start?')
        self.check_ok(
            checks.report_infinite_recursion,
            'start = a\na = "(" start ")" / "x"',
        )

    def test_direct(self):
        self.check_error(
            checks.report_infinite_recursion,
            'start = start',
            'Possible infinite loop when parsing (left recursion: '
            'start -> start).',
            1,
            9,
        )

    def test_indirect(self):
        self.check_error(
            checks.report_infinite_recursion,
            'a = b\nb = "" a',
            'Possible infinite loop when parsing (left recursion: '
            'a -> b -> a).',
            2,
            8,
        )

    def test_after_non_consuming_prefix(self):
        for body in ('"a"? start', '!"a" start', '&{ return True } start',
                     '"a"* start', '$"" start'):
            with self.subTest(body=body):
                self.check_error(
                    checks.report_infinite_recursion,
                    'start = ' + body,
                    'Possible infinite loop when parsing (left recursion: '
                    'start -> start).',
                    1,
                    9 + body.index('start'),
                )

    def test_later_alternative(self):
        self.check_error(
            checks.report_infinite_recursion,
            'start = "x" / start',
            'Possible infinite loop when parsing (left recursion: '
            'start -> start).',
            1,
            15,
        )


class InfiniteRepetitionTest(_CheckTestCase):
    def test_consuming(self):
        self.check_ok(
            checks.report_infinite_repetition, 'start = "a"* [b]+ (.)*'
        )

    def test_non_consuming(self):
        for body in ('""*', '("a"*)+', '(&"a")*', '(!"a")+', 'x*'):
            with self.subTest(body=body):
                self.check_error(
                    checks.report_infinite_repetition,
                    'start = ' + body + '\nx = "b"?',
                    'Possible infinite loop when parsing (repetition used '
                    'with an expression that may not consume any input).',
                    1,
                    9,
                )


if __name__ == '__main__':
    unittest.main()
