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

import pegc


class _Tracer:
    def __init__(self):
        self.events = []

    def trace(self, event):
        self.events.append((event['type'], event['rule']))


class _GeneratedParserMixin:
    # pylint: disable=no-member
    maxDiff = None
    optimize = 'speed'

    def build(self, grammar, **options):
        options['optimize'] = self.optimize
        return pegc.generate(grammar, options)

    def check(self, grammar, text, expected, **options):
        parser = self.build(grammar, **options)
        self.assertEqual(parser.parse(text), expected)

    def check_error(self, parser, text, message, offset):
        with self.assertRaises(parser.SyntaxError) as cm:
            parser.parse(text)
        self.assertEqual(cm.exception.message, message)
        self.assertEqual(cm.exception.location.start.offset, offset)
        return cm.exception

    def test_action(self):
        parser = self.build('start = "a"+ { return True }')
        self.assertIs(parser.parse('aaa'), True)
        err = self.check_error(
            parser, '', 'Expected "a" but end of input found.', 0
        )
        self.assertEqual(
            err.expected,
            [{'type': 'literal', 'text': 'a', 'ignore_case': False}],
        )
        self.assertIsNone(err.found)
        self.assertEqual(tuple(err.location.start), (0, 1, 1))

    def test_trailing_input(self):
        parser = self.build('start = "a"+')
        err = self.check_error(
            parser, 'aab', 'Expected "a" or end of input but "b" found.', 2
        )
        self.assertEqual(err.found, 'b')
        self.assertEqual(tuple(err.location.end), (3, 1, 4))

    def test_error_position_is_furthest_failure(self):
        parser = self.build('start = "a" "b" "c" / "a" "x"')
        self.check_error(
            parser, 'abd', 'Expected "c" but "d" found.', 2
        )
        parser = self.build('start = "ab\\n" [0-9]')
        err = self.check_error(
            parser, 'ab\nx', 'Expected [0-9] but "x" found.', 3
        )
        self.assertEqual(tuple(err.location.start), (3, 2, 1))

    def test_matchers(self):
        self.check('start = "abc"', 'abc', 'abc')
        self.check('start = "ab"i', 'aB', 'aB')
        self.check('start = ""', '', '')
        self.check('start = [a-c]+', 'cab', ['c', 'a', 'b'])
        self.check('start = [^a-c]', 'z', 'z')
        self.check('start = [a-c]i', 'B', 'B')
        self.check('start = [^]', '\n', '\n')
        self.check('start = .', 'x', 'x')

    def test_empty_class_never_matches(self):
        parser = self.build('start = [] / "a"')
        self.assertEqual(parser.parse('a'), 'a')
        self.check_error(
            parser, 'b', 'Expected "a" or [] but "b" found.', 0
        )

    def test_sequences_and_suffixes(self):
        self.check('start = "a" "b"', 'ab', ['a', 'b'])
        self.check('start = "a"? "b"', 'b', [None, 'b'])
        self.check('start = "a"*', '', [])
        self.check('start = ("a" "b")*', 'abab', [['a', 'b'], ['a', 'b']])
        self.check('start = x:"a"+', 'aa', ['a', 'a'])

    def test_prefixes(self):
        self.check('start = $("a" "b"+)', 'abb', 'abb')
        self.check('start = $[a-z]+', 'abc', 'abc')
        self.check('start = &"a" .', 'a', [None, 'a'])
        self.check('start = !"b" .', 'a', [None, 'a'])
        parser = self.build('start = !"b" .')
        self.check_error(parser, 'b', 'Expected nothing but "b" found.', 0)
        parser = self.build('start = &"b" .')
        self.check_error(parser, 'a', 'Expected nothing but "a" found.', 0)

    def test_choice(self):
        parser = self.build('start = "a" / "b" / "c"')
        self.assertEqual(parser.parse('b'), 'b')
        self.check_error(
            parser, 'd', 'Expected "a", "b", or "c" but "d" found.', 0
        )

    def test_labels(self):
        self.check(
            'start = a:[0-9]+ "+" b:[0-9]+ '
            "{ return int(''.join(a)) + int(''.join(b)) }",
            '12+30',
            42,
        )
        self.check(
            'start = a:"a" (b:"b" { return a + b })',
            'ab',
            ['a', 'ab'],
        )

    def test_multiline_action(self):
        self.check(
            'start = d:[0-9]+ {\n'
            '    total = 0\n'
            '    for digit in d:\n'
            '        total += int(digit)\n'
            '    return total\n'
            '}',
            '123',
            6,
        )

    def test_action_opening_a_block_on_its_first_line(self):
        parser = self.build(
            'start = c:("a" / "b") { if c == "a":\n'
            '    return 1\n'
            'return 2 }'
        )
        self.assertEqual(parser.parse('a'), 1)
        self.assertEqual(parser.parse('b'), 2)
        self.check(
            'start = "a" { if True:\n      return 1\n  }', 'a', 1
        )

    def test_action_helpers(self):
        self.check(
            'start = "a"+ "b" { '
            'return (text(), offset(), tuple(location().end)) }',
            'aab',
            ('aab', 0, (3, 1, 4)),
        )
        self.check(
            'start = "x" y:("a" { return (text(), offset()) })',
            'xa',
            ['x', ('a', 1)],
        )

    def test_expected_and_error(self):
        parser = self.build('start = "a" { expected("a number") }')
        err = self.check_error(
            parser, 'a', 'Expected a number but "a" found.', 0
        )
        self.assertEqual(
            err.expected, [{'type': 'other', 'description': 'a number'}]
        )
        parser = self.build('start = "x" ("a" { error("bad a") })')
        err = self.check_error(parser, 'xa', 'bad a', 1)
        self.assertIsNone(err.expected)

    def test_semantic_predicates(self):
        grammar = 'start = n:[0-9] &{ return n == "1" } .'
        parser = self.build(grammar)
        self.assertEqual(parser.parse('1x'), ['1', None, 'x'])
        self.check_error(parser, '2x', 'Expected nothing but "2" found.', 0)
        parser = self.build('start = n:[0-9] !{ return n == "1" }')
        self.assertEqual(parser.parse('2'), ['2', None])
        with self.assertRaises(parser.SyntaxError):
            parser.parse('1')

    def test_named_rule(self):
        parser = self.build('start = num\nnum "number" = [0-9]+')
        self.assertEqual(parser.parse('12'), ['1', '2'])
        self.check_error(parser, 'x', 'Expected number but "x" found.', 0)

    def test_initializer(self):
        self.check(
            '{\n  factor = 2\n}\nstart = n:[0-9] { return int(n) * factor }',
            '4',
            8,
        )

    def test_options_are_visible_to_actions(self):
        parser = self.build('start = "a" { return options.get("x") }')
        self.assertEqual(parser.parse('a', {'x': 3}), 3)

    def test_recursion(self):
        grammar = (
            'start = sum\n'
            'sum = l:num "+" r:sum { return l + r } / num\n'
            'num = d:[0-9] { return int(d) } / "(" s:sum ")" { return s }\n'
        )
        self.check(grammar, '1+(2+3)+4', 10)

    def test_start_rules(self):
        parser = self.build(
            'a = "x"\nb = "y"\nc = "z"', allowed_start_rules=['a', 'b']
        )
        self.assertEqual(parser.parse('x'), 'x')
        self.assertEqual(parser.parse('y', {'start_rule': 'b'}), 'y')
        with self.assertRaises(ValueError) as cm:
            parser.parse('z', {'start_rule': 'c'})
        self.assertEqual(
            str(cm.exception), 'Can\'t start parsing from rule "c".'
        )

    def test_cache(self):
        grammar = (
            '{ calls = [] }\n'
            'start = (a "x" / a "y") { return len(calls) }\n'
            'a = "a" { calls.append(1) }\n'
        )
        self.check(grammar, 'ay', 2)
        self.check(grammar, 'ay', 1, cache=True)

    def test_trace(self):
        parser = self.build('start = a "b"?\na = "a"', trace=True)
        tracer = _Tracer()
        self.assertEqual(parser.parse('a', {'tracer': tracer}), ['a', None])
        self.assertEqual(
            tracer.events,
            [
                ('rule.enter', 'start'),
                ('rule.enter', 'a'),
                ('rule.match', 'a'),
                ('rule.match', 'start'),
            ],
        )

        tracer = _Tracer()
        with self.assertRaises(parser.SyntaxError):
            parser.parse('b', {'tracer': tracer})
        self.assertEqual(
            tracer.events,
            [
                ('rule.enter', 'start'),
                ('rule.enter', 'a'),
                ('rule.fail', 'a'),
                ('rule.fail', 'start'),
            ],
        )

    def test_module_format(self):
        source = pegc.generate(
            'start = "a" { return json_mod.dumps([1]) }',
            {
                'optimize': self.optimize,
                'output': 'source',
                'format': 'module',
                'dependencies': {'json_mod': 'json'},
                'export_var': 'my_parser',
                'header': ['Header line one.', 'Header line two.'],
            },
        )
        self.assertTrue(
            source.startswith('# Header line one.\n# Header line two.\n')
        )
        self.assertIn('import json as json_mod\n', source)
        self.assertIn("__all__ = ['SyntaxError', 'parse']\n", source)
        scope = {}
        exec(source, scope)  # pylint: disable=exec-used
        self.assertEqual(scope['parse']('a'), '[1]')
        self.assertIs(scope['my_parser'].parse, scope['parse'])
        self.assertIs(scope['my_parser'].SyntaxError, scope['SyntaxError'])


class SpeedTest(_GeneratedParserMixin, unittest.TestCase):
    optimize = 'speed'


class SizeTest(_GeneratedParserMixin, unittest.TestCase):
    optimize = 'size'


if __name__ == '__main__':
    unittest.main()
