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

import argparse
import types
import unittest

from pegc import compiler
from pegc import parser
from pegc.grammar_error import GrammarError


class ConvertPassesTest(unittest.TestCase):
    def test_dicts_and_lists(self):
        def a(ast):
            del ast

        def b(ast, options):
            del ast, options

        self.assertEqual(
            compiler.convert_passes({'one': {'a': a, 'b': b}, 'two': [b]}),
            {'one': [a, b], 'two': [b]},
        )

    def test_default_passes(self):
        passes = compiler.convert_passes(compiler.PASSES)
        self.assertEqual(list(passes), ['check', 'transform', 'generate'])
        self.assertEqual(len(passes['check']), 5)
        self.assertEqual(
            [p.__name__ for p in passes['generate']],
            [
                'calc_report_failures',
                'inference_match_result',
                'generate_bytecode',
                'generate_python',
            ],
        )


class NormalizeOptionsTest(unittest.TestCase):
    def setUp(self):
        self.ast = parser.parse('start = "a"\nother = "b"')

    def check_error(self, options, message):
        with self.assertRaises(GrammarError) as cm:
            compiler.normalize_options(self.ast, options)
        self.assertEqual(str(cm.exception), message)

    def test_defaults(self):
        options = compiler.normalize_options(self.ast, None)
        self.assertEqual(options.allowed_start_rules, ['start'])
        self.assertFalse(options.cache)
        self.assertEqual(options.dependencies, {})
        self.assertIsNone(options.export_var)
        self.assertEqual(options.format, 'bare')
        self.assertIsNone(options.header)
        self.assertEqual(options.optimize, 'speed')
        self.assertEqual(options.output, 'parser')
        self.assertFalse(options.trace)

    def test_unknown_keys_are_kept(self):
        options = compiler.normalize_options(self.ast, {'my_plugin': 1})
        self.assertEqual(options.my_plugin, 1)

    def test_start_rules(self):
        options = compiler.normalize_options(
            self.ast, {'allowed_start_rules': 'other'}
        )
        self.assertEqual(options.allowed_start_rules, ['other'])
        self.check_error(
            {'allowed_start_rules': []},
            'At least one start rule must be allowed.',
        )
        self.check_error(
            {'allowed_start_rules': ['start', 'nope']},
            'Start rule "nope" is not defined.',
        )

    def test_empty_grammar(self):
        self.ast.rules = []
        self.check_error({}, 'The grammar must define at least one rule.')

    def test_bad_values(self):
        self.check_error(
            {'format': 'umd'},
            'The JavaScript module format "umd" is not supported; '
            'use "bare" or "module".',
        )
        self.check_error({'format': 'cjs'}, 'Invalid format: "cjs".')
        self.check_error({'optimize': 'fast'}, 'Invalid optimization: "fast".')
        self.check_error({'output': 'ast'}, 'Invalid output: "ast".')
        self.check_error(
            {'format': 'module', 'dependencies': {'x': 'not a module'}},
            'Invalid dependency: "x:not a module".',
        )
        self.check_error(
            {'format': 'module', 'export_var': '1x'},
            'Invalid export variable: "1x".',
        )
        self.check_error(
            {'header': 42}, 'The header must be a string or a list of strings.'
        )

    def test_bare_format_restrictions(self):
        self.check_error(
            {'dependencies': {'json': 'json'}},
            'Dependencies are not supported in format "bare".',
        )
        self.check_error(
            {'export_var': 'p'},
            'An export variable is not supported in format "bare".',
        )


class CompileTest(unittest.TestCase):
    maxDiff = None

    def test_output_parser(self):
        ast = parser.parse('start = "a"')
        module = compiler.compile(ast)
        self.assertIsInstance(module, types.ModuleType)
        self.assertEqual(module.parse('a'), 'a')
        self.assertTrue(issubclass(module.SyntaxError, Exception))

    def test_output_source(self):
        ast = parser.parse('start = "a"')
        source = compiler.compile(ast, compiler.PASSES, {'output': 'source'})
        self.assertIs(source, ast.code)
        self.assertTrue(source.startswith('# Generated by pegc '))
        self.assertNotIn('__all__', source)
        module = compiler.load_parser(source)
        self.assertEqual(module.parse('a'), 'a')

    def test_output_is_deterministic(self):
        text = 'start = a:[a-z]+ "=" b:[0-9]* { return (a, b) }\n'
        for optimize in compiler.OPTIMIZATIONS:
            first = compiler.compile(
                parser.parse(text),
                options={'output': 'source', 'optimize': optimize},
            )
            second = compiler.compile(
                parser.parse(text),
                options={'output': 'source', 'optimize': optimize},
            )
            self.assertEqual(first, second)

    def test_annotations(self):
        ast = parser.parse('start = other\nother = "a" proxy\nproxy = "b"')
        compiler.compile(ast, options={'output': 'source'})
        self.assertEqual(len(ast.rules), 3)
        for rule in ast.rules:
            self.assertTrue(rule.report_failures)
            self.assertIsNotNone(rule.match)
            self.assertTrue(rule.bytecode)
        self.assertEqual(ast.literals, ['a', 'b'])

    def test_errors_stop_the_pipeline(self):
        ast = parser.parse('start = missing')
        with self.assertRaises(GrammarError) as cm:
            compiler.compile(ast)
        self.assertEqual(str(cm.exception), 'Rule "missing" is not defined.')
        self.assertIsNone(ast.code)

    def test_custom_passes(self):
        calls = []

        def one(ast):
            calls.append(('one', len(ast.rules)))

        def two(ast, options):
            calls.append(('two', options.my_option))
            ast.code = 'SOURCE'

        ast = parser.parse('start = "a"')
        result = compiler.compile(
            ast,
            {'first': [one], 'second': {'two': two}},
            {'output': 'source', 'my_option': 'x'},
        )
        self.assertEqual(result, 'SOURCE')
        self.assertEqual(calls, [('one', 1), ('two', 'x')])

    def test_start_rules_are_checked_without_check_passes(self):
        passes = compiler.convert_passes(compiler.PASSES)
        del passes['check']
        for optimize in compiler.OPTIMIZATIONS:
            ast = parser.parse('start = "a"\nother = "b"')
            with self.assertRaises(GrammarError) as cm:
                compiler.compile(
                    ast,
                    passes,
                    {'allowed_start_rules': ['nope'], 'optimize': optimize},
                )
            self.assertEqual(
                str(cm.exception), 'Start rule "nope" is not defined.'
            )
            self.assertIsNone(ast.code)

    def test_undefined_rules_without_check_passes(self):
        passes = compiler.convert_passes(compiler.PASSES)
        del passes['check']
        ast = parser.parse('start = "a" missing')
        with self.assertRaises(GrammarError) as cm:
            compiler.compile(ast, passes)
        self.assertEqual(str(cm.exception), 'Rule "missing" is not defined.')
        self.assertIsNotNone(cm.exception.location)

    def test_code_that_does_not_compile(self):
        ast = parser.parse('start = "a" { return ) }')
        with self.assertRaises(GrammarError) as cm:
            compiler.compile(ast)
        self.assertTrue(
            str(cm.exception).startswith('Code block does not compile: ')
        )
        self.assertEqual(ast.rules[0].expression.type, 'action')
        self.assertEqual(
            cm.exception.location, ast.rules[0].expression.location
        )


class ArgumentsTest(unittest.TestCase):
    def parse_args(self, argv):
        ap = argparse.ArgumentParser()
        compiler.add_arguments(ap)
        return compiler.options_from_args(ap.parse_args(argv))

    def test_defaults(self):
        options = self.parse_args([])
        self.assertEqual(options.format, 'module')
        self.assertEqual(options.output, 'source')
        self.assertEqual(options.optimize, 'speed')
        self.assertIsNone(options.allowed_start_rules)
        self.assertFalse(options.cache)
        self.assertFalse(options.trace)

    def test_values(self):
        options = self.parse_args(
            [
                '--allowed-start-rules', 'a, b',
                '--allowed-start-rules', 'c',
                '--cache',
                '--trace',
                '-d', 'json_mod:json',
                '-e', 'my_parser',
                '-O', 'size',
                '--format', 'bare',
                '--extra-options', '{"header": "hi", "x": 1}',
            ]
        )
        self.assertEqual(options.allowed_start_rules, ['a', 'b', 'c'])
        self.assertTrue(options.cache)
        self.assertTrue(options.trace)
        self.assertEqual(options.dependencies, {'json_mod': 'json'})
        self.assertEqual(options.export_var, 'my_parser')
        self.assertEqual(options.optimize, 'size')
        self.assertEqual(options.format, 'bare')
        self.assertEqual(options.header, 'hi')
        self.assertEqual(options.x, 1)

    def test_bad_values(self):
        with self.assertRaises(ValueError):
            self.parse_args(['-d', 'json'])
        with self.assertRaises(ValueError):
            self.parse_args(['--extra-options', '[1]'])
        with self.assertRaises(ValueError):
            self.parse_args(['--extra-options', '{'])


if __name__ == '__main__':
    unittest.main()
