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

"""Generates the source of a Python parser from the compiled grammar.

With `optimize='speed'` each rule's bytecode is translated into a
straight-line method that keeps the machine's stack in local variables
(`s0`, `s1`, ...). With `optimize='size'` the bytecode itself is
embedded in the module along with a generic interpreter for it.
"""

import re
import textwrap
from typing import List

from pegc.grammar_error import GrammarError
from pegc.opcodes import Op
from pegc.version import __version__


def generate_python(ast, options) -> None:
    ast.code = PythonGenerator(ast, options).generate()


class _Stack:
    """Tracks which local variable holds each slot of the machine stack."""

    def __init__(self, rule_name: str):
        self.rule_name = rule_name
        self.sp = -1

    def name(self, i: int) -> str:
        if i < 0:
            raise IndexError(
                f'Rule "{self.rule_name}": the stack underflowed.'
            )
        return f's{i}'

    def push(self, value: str) -> str:
        self.sp += 1
        return f'{self.name(self.sp)} = {value}'

    def pop(self) -> str:
        name = self.name(self.sp)
        self.sp -= 1
        return name

    def pop_n(self, n: int) -> List[str]:
        names = [self.name(i) for i in range(self.sp - n + 1, self.sp + 1)]
        self.sp -= n
        return names

    def top(self) -> str:
        return self.name(self.sp)

    def index(self, i: int) -> str:
        return self.name(self.sp - i)


def _indent(lines: List[str], prefix: str = '    ') -> List[str]:
    return [(prefix + line) if line else line for line in lines]


def _code_lines(code: str) -> List[str]:
    """Splits a code block from the grammar into dedented lines.

    The first line may start right after the opening brace, so its
    indentation tells us nothing; the remaining lines are dedented
    together. If the first line opens a block and the line after it
    is not indented relative to the rest, the rest is nested under it.
    """
    code = code.rstrip()
    if not code.strip():
        return []
    if code.lstrip(' \t').startswith('\n'):
        lines = textwrap.dedent(code.lstrip(' \t')[1:]).split('\n')
    else:
        first, _, rest = code.strip().partition('\n')
        lines = [first]
        if rest:
            rest_lines = textwrap.dedent(rest).split('\n')
            body = next(
                (
                    line
                    for line in rest_lines
                    if line.strip() and not line.lstrip().startswith('#')
                ),
                '',
            )
            if first.endswith(':') and body == body.lstrip():
                rest_lines = _indent(rest_lines)
            lines.extend(rest_lines)
    lines = [line.rstrip() for line in lines]
    while lines and not lines[0]:
        lines.pop(0)
    if all(not line.strip() or line.strip().startswith('#') for line in lines):
        lines.append('pass')
    return lines


def class_pattern(parts, inverted: bool) -> str:
    """Returns the regexp source matching one character of a class."""
    if not parts:
        return '(?s:.)' if inverted else '(?!)'
    body = ''
    for part in parts:
        if isinstance(part, str):
            body += re.escape(part)
        else:
            body += re.escape(part[0]) + '-' + re.escape(part[1])
    return '[' + ('^' if inverted else '') + body + ']'


def _method_name(rule, index: int) -> str:
    if rule.name.isidentifier():
        return f'_r_{rule.name}'
    return f'_r{index}'


def _header_comments(header) -> List[str]:
    if header is None:
        return [f'# Generated by pegc {__version__}.']
    if isinstance(header, str):
        header = header.split('\n')
    return [f'# {line}'.rstrip() for line in header]


class PythonGenerator:
    def __init__(self, ast, options):
        self._ast = ast
        self._options = options
        self._method_names = [
            _method_name(rule, i) for i, rule in enumerate(ast.rules)
        ]

    def generate(self) -> str:
        lines = _header_comments(self._options.header)
        lines.append('')
        lines.extend(self._gen_imports())
        lines.append('')
        if self._options.format == 'module':
            lines.append("__all__ = ['SyntaxError', 'parse']")
            lines.append('')
            lines.append('')
        text = '\n'.join(lines) + '\n'
        text += _RUNTIME_TYPES
        if self._options.trace:
            text += _DEFAULT_TRACER
        text += self._gen_tables()
        text += '\n\n'
        text += '\n'.join(self._gen_parser_init()) + '\n'
        text += _PARSER_METHODS
        if self._options.optimize == 'size':
            text += '\n' + '\n'.join(self._gen_interpreter()) + '\n'
        else:
            for i, rule in enumerate(self._ast.rules):
                text += '\n' + '\n'.join(self._gen_rule(i, rule)) + '\n'
        text += '\n\n'
        text += '\n'.join(self._gen_parse()) + '\n'
        if self._options.format == 'module' and self._options.export_var:
            text += '\n\n'
            text += (
                f'{self._options.export_var} = types.SimpleNamespace(\n'
                '    SyntaxError=SyntaxError, parse=parse\n'
                ')\n'
            )
        return text

    def _gen_imports(self) -> List[str]:
        imports = []
        if self._ast.classes:
            imports.append('import re')
        if self._options.trace:
            imports.append('import sys')
        if self._options.format == 'module' and self._options.export_var:
            imports.append('import types')
        imports.append('from typing import Any, Dict, List, NamedTuple')
        if self._options.format == 'module':
            for name, path in self._options.dependencies.items():
                imports.append(f'import {path} as {name}')
        return imports

    def _gen_tables(self) -> str:
        ast = self._ast
        lines = []
        if ast.classes:
            lines.append('_CLASSES = [')
            for parts, inverted, ignore_case in ast.classes:
                pattern = class_pattern(parts, inverted)
                if ignore_case:
                    lines.append(f'    re.compile({pattern!r}, re.IGNORECASE),')
                else:
                    lines.append(f'    re.compile({pattern!r}),')
            lines.append(']')
            lines.append('')
        lines.append('_EXPECTATIONS: List[Dict[str, Any]] = [')
        for expectation in ast.expectations:
            lines.append(f'    {expectation!r},')
        lines.append(']')
        lines.append('')
        lines.append('_RULE_NAMES = [')
        for rule in ast.rules:
            lines.append(f'    {rule.name!r},')
        lines.append(']')
        lines.append('')
        lines.append('_START_RULES = {')
        for name in self._options.allowed_start_rules:
            index = ast.index_of_rule(name)
            if index == -1:
                raise GrammarError(f'Start rule "{name}" is not defined.')
            if self._options.optimize == 'size':
                lines.append(f'    {name!r}: {index},')
            else:
                lines.append(f'    {name!r}: {self._method_names[index]!r},')
        lines.append('}')

        if self._options.optimize == 'size':
            lines.append('')
            lines.append('_LITERALS = [')
            for literal in ast.literals:
                lines.append(f'    {literal!r},')
            lines.append(']')
            lines.append('')
            lines.append('_BYTECODE = [')
            for rule in ast.rules:
                codes = ', '.join(str(int(c)) for c in rule.bytecode)
                lines.append('    [')
                lines.extend(
                    _indent(textwrap.wrap(codes, 70), '        ')
                )
                lines.append('    ],')
            lines.append(']')
            lines.append('')
            for op in Op:
                lines.append(f'_{op.name} = {int(op)}')
        return '\n'.join(lines) + '\n'

    def _gen_parser_init(self) -> List[str]:
        lines = [
            'class _Parser:',
            '    # pylint: disable=redefined-builtin',
            '    def __init__(self, input, options):',
            '        self._input = input',
            '        self._end = len(input)',
            '        self._options = options',
            '        self._pos = 0',
            '        self._saved_pos = 0',
            '        self._pos_details_cache = {0: (1, 1)}',
            '        self._max_fail_pos = 0',
            '        self._max_fail_expected = []',
            '        self._silent_fails = 0',
            '        self._functions = []',
        ]
        if self._options.cache:
            lines.append('        self._results_cache = {}')
        if self._options.trace:
            lines.append(
                "        self._tracer = options.get('tracer') or DefaultTracer()"
            )
        return lines

    #
    # Rule prologue and epilogue shared by both optimization modes.
    #

    def _gen_rule_header(self, name_code: str, index_code: str) -> List[str]:
        lines = []
        if self._options.trace:
            lines.extend(
                [
                    'start_pos = self._pos',
                    'self._tracer.trace(',
                    '    {',
                    "        'type': 'rule.enter',",
                    f"        'rule': {name_code},",
                    "        'location': self._compute_location("
                    'start_pos, start_pos),',
                    '    }',
                    ')',
                    '',
                ]
            )
        if self._options.cache:
            lines.extend(
                [
                    f'key = self._pos * {len(self._ast.rules)} + {index_code}',
                    'cached = self._results_cache.get(key)',
                    'if cached is not None:',
                    '    self._pos = cached[1]',
                ]
            )
            if self._options.trace:
                lines.extend(
                    _indent(self._gen_trace_result(name_code, 'cached[0]'))
                )
            lines.extend(['    return cached[0]', ''])
        return lines

    def _gen_trace_result(self, name_code: str, result_code: str) -> List[str]:
        return [
            f'if {result_code} is not _FAILED:',
            '    self._tracer.trace(',
            '        {',
            "            'type': 'rule.match',",
            f"            'rule': {name_code},",
            f"            'result': {result_code},",
            "            'location': self._compute_location("
            'start_pos, self._pos),',
            '        }',
            '    )',
            'else:',
            '    self._tracer.trace(',
            '        {',
            "            'type': 'rule.fail',",
            f"            'rule': {name_code},",
            "            'location': self._compute_location("
            'start_pos, start_pos),',
            '        }',
            '    )',
        ]

    def _gen_rule_footer(self, name_code: str, result_code: str) -> List[str]:
        lines = []
        if self._options.cache:
            lines.extend(
                [
                    '',
                    f'self._results_cache[key] = ({result_code}, self._pos)',
                ]
            )
        if self._options.trace:
            lines.append('')
            lines.extend(self._gen_trace_result(name_code, result_code))
        lines.extend(['', f'return {result_code}'])
        return lines

    #
    # optimize='speed'
    #

    def _gen_rule(self, index: int, rule) -> List[str]:
        stack = _Stack(rule.name)
        body = self._compile(rule.bytecode, stack)
        assert stack.sp == 0, (
            f'Rule "{rule.name}" left {stack.sp + 1} values on the stack.'
        )
        lines = [f'def {self._method_names[index]}(self):']
        method = self._gen_rule_header(repr(rule.name), str(index))
        method += body
        method += self._gen_rule_footer(repr(rule.name), stack.top())
        lines.extend(_indent(method))
        return _indent(lines)

    # pylint: disable=too-many-branches,too-many-statements
    def _compile(self, bc: List[int], stack: _Stack) -> List[str]:
        ast = self._ast
        lines: List[str] = []
        ip = 0
        end = len(bc)

        def compile_condition(cond: str, arg_count: int):
            nonlocal ip
            base = arg_count + 3
            then_length = bc[ip + base - 2]
            else_length = bc[ip + base - 1]
            base_sp = stack.sp

            ip += base
            then_code = self._compile(bc[ip : ip + then_length], stack)
            then_sp = stack.sp
            ip += then_length

            else_code = []
            if else_length > 0:
                stack.sp = base_sp
                else_code = self._compile(bc[ip : ip + else_length], stack)
                ip += else_length
                assert then_sp == stack.sp, (
                    'Branches of a condition must move the stack pointer '
                    'in the same way.'
                )

            lines.append(f'if {cond}:')
            lines.extend(_indent(then_code or ['pass']))
            if else_code:
                lines.append('else:')
                lines.extend(_indent(else_code))

        def compile_loop(cond: str):
            nonlocal ip
            body_length = bc[ip + 1]
            base_sp = stack.sp

            ip += 2
            body_code = self._compile(bc[ip : ip + body_length], stack)
            ip += body_length
            assert stack.sp == base_sp, (
                "Body of a loop can't move the stack pointer."
            )

            lines.append(f'while {cond}:')
            lines.extend(_indent(body_code or ['pass']))

        def compile_call():
            nonlocal ip
            params_length = bc[ip + 3]
            params = [
                stack.index(p) for p in bc[ip + 4 : ip + 4 + params_length]
            ]
            value = f'self._functions[{bc[ip + 1]}]({", ".join(params)})'
            stack.pop_n(bc[ip + 2])
            lines.append(stack.push(value))
            ip += 4 + params_length

        def accept(length: int):
            if length > 1:
                lines.append(f'self._pos += {length}')
            else:
                lines.append('self._pos += 1')

        while ip < end:
            op = bc[ip]
            if op == Op.PUSH_EMPTY_STRING:
                lines.append(stack.push("''"))
                ip += 1
            elif op == Op.PUSH_CURR_POS:
                lines.append(stack.push('self._pos'))
                ip += 1
            elif op in (Op.PUSH_UNDEFINED, Op.PUSH_NULL):
                lines.append(stack.push('None'))
                ip += 1
            elif op == Op.PUSH_FAILED:
                lines.append(stack.push('_FAILED'))
                ip += 1
            elif op == Op.PUSH_EMPTY_ARRAY:
                lines.append(stack.push('[]'))
                ip += 1
            elif op == Op.POP:
                stack.pop()
                ip += 1
            elif op == Op.POP_CURR_POS:
                lines.append(f'self._pos = {stack.pop()}')
                ip += 1
            elif op == Op.POP_N:
                stack.pop_n(bc[ip + 1])
                ip += 2
            elif op == Op.NIP:
                value = stack.pop()
                stack.pop()
                lines.append(stack.push(value))
                ip += 1
            elif op == Op.APPEND:
                value = stack.pop()
                lines.append(f'{stack.top()}.append({value})')
                ip += 1
            elif op == Op.WRAP:
                values = stack.pop_n(bc[ip + 1])
                lines.append(stack.push('[' + ', '.join(values) + ']'))
                ip += 2
            elif op == Op.TEXT:
                start = stack.pop()
                lines.append(stack.push(f'self._input[{start} : self._pos]'))
                ip += 1
            elif op == Op.IF:
                compile_condition(stack.top(), 0)
            elif op == Op.IF_ERROR:
                compile_condition(f'{stack.top()} is _FAILED', 0)
            elif op == Op.IF_NOT_ERROR:
                compile_condition(f'{stack.top()} is not _FAILED', 0)
            elif op == Op.WHILE_NOT_ERROR:
                compile_loop(f'{stack.top()} is not _FAILED')
            elif op == Op.MATCH_ANY:
                compile_condition('self._pos < self._end', 0)
            elif op == Op.MATCH_STRING:
                literal = ast.literals[bc[ip + 1]]
                compile_condition(
                    f'self._input.startswith({literal!r}, self._pos)', 1
                )
            elif op == Op.MATCH_STRING_IC:
                literal = ast.literals[bc[ip + 1]]
                compile_condition(
                    f'self._input[self._pos : self._pos + {len(literal)}]'
                    f'.lower() == {literal!r}',
                    1,
                )
            elif op == Op.MATCH_CLASS:
                compile_condition(
                    f'_CLASSES[{bc[ip + 1]}].match(self._input, self._pos)', 1
                )
            elif op == Op.ACCEPT_N:
                length = bc[ip + 1]
                if length > 1:
                    lines.append(
                        stack.push(
                            f'self._input[self._pos : self._pos + {length}]'
                        )
                    )
                else:
                    lines.append(stack.push('self._input[self._pos]'))
                accept(length)
                ip += 2
            elif op == Op.ACCEPT_STRING:
                literal = ast.literals[bc[ip + 1]]
                lines.append(stack.push(repr(literal)))
                accept(len(literal))
                ip += 2
            elif op == Op.FAIL:
                lines.append(stack.push('_FAILED'))
                lines.append('if not self._silent_fails:')
                lines.append(f'    self._fail(_EXPECTATIONS[{bc[ip + 1]}])')
                ip += 2
            elif op == Op.LOAD_SAVED_POS:
                lines.append(f'self._saved_pos = {stack.index(bc[ip + 1])}')
                ip += 2
            elif op == Op.UPDATE_SAVED_POS:
                lines.append('self._saved_pos = self._pos')
                ip += 1
            elif op == Op.CALL:
                compile_call()
            elif op == Op.RULE:
                method = self._method_names[bc[ip + 1]]
                lines.append(stack.push(f'self.{method}()'))
                ip += 2
            elif op == Op.SILENT_FAILS_ON:
                lines.append('self._silent_fails += 1')
                ip += 1
            elif op == Op.SILENT_FAILS_OFF:
                lines.append('self._silent_fails -= 1')
                ip += 1
            else:
                raise ValueError(f'Invalid opcode: {op}.')
        return lines

    # pylint: enable=too-many-branches,too-many-statements

    #
    # optimize='size'
    #

    def _gen_interpreter(self) -> List[str]:
        lines = [
            'def _parse_rule(self, index):',
            '    bc = _BYTECODE[index]',
            '    ip = 0',
            '    ips = []',
            '    end = len(bc)',
            '    ends = []',
            '    stack = []',
            '',
        ]
        lines.extend(
            _indent(self._gen_rule_header('_RULE_NAMES[index]', 'index'))
        )
        lines.extend(_INTERPRETER_LOOP.rstrip('\n').split('\n'))
        lines.extend(
            _indent(self._gen_rule_footer('_RULE_NAMES[index]', 'stack[0]'))
        )
        return _indent(lines)

    #
    # The parse() entry point.
    #

    def _gen_parse(self) -> List[str]:
        ast = self._ast
        lines = [
            'def parse(input, options=None):  # pylint: disable=redefined-builtin',
            '    """Parses `input` and returns the value of the start rule.',
            '',
            '    Raises SyntaxError if `input` does not match the grammar.',
            '    """',
            '    options = options or {}',
            "    start_rule = options.get('start_rule', "
            f'{self._options.allowed_start_rules[0]!r})',
            '    if start_rule not in _START_RULES:',
            '        raise ValueError(',
            '            f"Can\'t start parsing from rule \\"{start_rule}\\"."',
            '        )',
            '',
            '    parser = _Parser(input, options)',
            '    text = parser.text',
            '    offset = parser.offset',
            '    location = parser.location',
            '    expected = parser.expected',
            '    error = parser.error',
            '',
        ]
        if ast.initializer:
            lines.extend(_indent(_code_lines(ast.initializer.code)))
            lines.append('')

        for i, (params, code) in enumerate(ast.functions):
            lines.append(f'    def _f{i}({", ".join(params)}):')
            lines.extend(_indent(_code_lines(code) or ['pass'], ' ' * 8))
            lines.append('')

        functions = ', '.join(f'_f{i}' for i in range(len(ast.functions)))
        lines.append(
            '    parser._functions = ['
            + functions
            + ']  # pylint: disable=protected-access'
        )
        if self._options.optimize == 'size':
            lines.append(
                '    return parser.finish(parser._parse_rule('
                '_START_RULES[start_rule]))'
            )
        else:
            lines.append(
                '    return parser.finish(getattr(parser, '
                '_START_RULES[start_rule])())'
            )
        return lines


_RUNTIME_TYPES = r'''_FAILED = object()


class Position(NamedTuple):
    offset: int
    line: int
    column: int


class Location(NamedTuple):
    start: Position
    end: Position


_ESCAPES = {'\0': '\\0', '\t': '\\t', '\n': '\\n', '\r': '\\r'}


def _escape(s, special):
    out = ''
    for ch in s:
        if ch == '\\' or ch in special:
            out += '\\' + ch
        elif ch in _ESCAPES:
            out += _ESCAPES[ch]
        elif ord(ch) < 0x20 or 0x7F <= ord(ch) <= 0x9F:
            out += f'\\x{ord(ch):02X}'
        else:
            out += ch
    return out


def _describe_expectation(expectation):
    if expectation['type'] == 'literal':
        return '"' + _escape(expectation['text'], '"') + '"'
    if expectation['type'] == 'class':
        parts = ''
        for part in expectation['parts']:
            if isinstance(part, str):
                parts += _escape(part, ']^-')
            else:
                parts += _escape(part[0], ']^-') + '-' + _escape(part[1], ']^-')
        return '[' + ('^' if expectation['inverted'] else '') + parts + ']'
    if expectation['type'] == 'any':
        return 'any character'
    if expectation['type'] == 'end':
        return 'end of input'
    return expectation['description']


class SyntaxError(Exception):  # pylint: disable=redefined-builtin
    """Raised when the input does not match the grammar."""

    def __init__(self, message, expected, found, location):
        super().__init__(message)
        self.message = message
        self.expected = expected
        self.found = found
        self.location = location

    @staticmethod
    def build_message(expected, found):
        descriptions = sorted(set(_describe_expectation(e) for e in expected))
        if not descriptions:
            expected_str = 'nothing'
        elif len(descriptions) == 1:
            expected_str = descriptions[0]
        elif len(descriptions) == 2:
            expected_str = descriptions[0] + ' or ' + descriptions[1]
        else:
            expected_str = (
                ', '.join(descriptions[:-1]) + ', or ' + descriptions[-1]
            )
        if found:
            found_str = '"' + _escape(found, '"') + '"'
        else:
            found_str = 'end of input'
        return f'Expected {expected_str} but {found_str} found.'


'''


_DEFAULT_TRACER = r'''class DefaultTracer:
    """Prints an indented line to stderr for every rule event."""

    def __init__(self):
        self.indent_level = 0

    def trace(self, event):
        if event['type'] == 'rule.enter':
            self._log(event)
            self.indent_level += 1
        elif event['type'] in ('rule.match', 'rule.fail'):
            self.indent_level -= 1
            self._log(event)
        else:
            raise ValueError(f'Invalid event type: {event["type"]}.')

    def _log(self, event):
        start, end = event['location']
        print(
            f'{start.line}:{start.column}-{end.line}:{end.column} '
            f'{event["type"]:<10} ' + '  ' * self.indent_level + event['rule'],
            file=sys.stderr,
        )


'''


_PARSER_METHODS = r'''
    def text(self):
        return self._input[self._saved_pos : self._pos]

    def offset(self):
        return self._saved_pos

    def location(self):
        return self._compute_location(self._saved_pos, self._pos)

    def expected(self, description, location=None):
        if location is None:
            location = self._compute_location(self._saved_pos, self._pos)
        expected = [{'type': 'other', 'description': description}]
        found = self._input[self._saved_pos : self._pos]
        raise SyntaxError(
            SyntaxError.build_message(expected, found),
            expected,
            found,
            location,
        )

    def error(self, message, location=None):
        if location is None:
            location = self._compute_location(self._saved_pos, self._pos)
        raise SyntaxError(message, None, None, location)

    def finish(self, result):
        if result is not _FAILED and self._pos == self._end:
            return result
        if result is not _FAILED and self._pos < self._end:
            self._fail({'type': 'end'})

        pos = self._max_fail_pos
        if pos < self._end:
            found = self._input[pos]
            location = self._compute_location(pos, pos + 1)
        else:
            found = None
            location = self._compute_location(pos, pos)
        raise SyntaxError(
            SyntaxError.build_message(self._max_fail_expected, found),
            self._max_fail_expected,
            found,
            location,
        )

    def _compute_pos_details(self, pos):
        details = self._pos_details_cache.get(pos)
        if details is not None:
            return details

        p = pos - 1
        while p not in self._pos_details_cache:
            p -= 1
        line, column = self._pos_details_cache[p]
        while p < pos:
            if self._input[p] == '\n':
                line += 1
                column = 1
            else:
                column += 1
            p += 1
        self._pos_details_cache[pos] = (line, column)
        return line, column

    def _compute_location(self, start, end):
        start_line, start_column = self._compute_pos_details(start)
        end_line, end_column = self._compute_pos_details(end)
        return Location(
            Position(start, start_line, start_column),
            Position(end, end_line, end_column),
        )

    def _fail(self, expected):
        if self._pos < self._max_fail_pos:
            return
        if self._pos > self._max_fail_pos:
            self._max_fail_pos = self._pos
            self._max_fail_expected = []
        self._max_fail_expected.append(expected)
'''


# The body of _Parser._parse_rule() for optimize='size', at the
# indentation of a function body.
_INTERPRETER_LOOP = r'''    def branch(cond, arg_count):
        nonlocal ip, end
        base = arg_count + 3
        then_end = ip + base + bc[ip + base - 2]
        else_end = then_end + bc[ip + base - 1]
        ends.append(end)
        ips.append(else_end)
        if cond:
            end = then_end
            ip += base
        else:
            end = else_end
            ip = then_end

    while True:
        while ip < end:
            op = bc[ip]
            if op == _PUSH_EMPTY_STRING:
                stack.append('')
                ip += 1
            elif op in (_PUSH_UNDEFINED, _PUSH_NULL):
                stack.append(None)
                ip += 1
            elif op == _PUSH_FAILED:
                stack.append(_FAILED)
                ip += 1
            elif op == _PUSH_EMPTY_ARRAY:
                stack.append([])
                ip += 1
            elif op == _PUSH_CURR_POS:
                stack.append(self._pos)
                ip += 1
            elif op == _POP:
                stack.pop()
                ip += 1
            elif op == _POP_CURR_POS:
                self._pos = stack.pop()
                ip += 1
            elif op == _POP_N:
                del stack[len(stack) - bc[ip + 1] :]
                ip += 2
            elif op == _NIP:
                value = stack.pop()
                stack[-1] = value
                ip += 1
            elif op == _APPEND:
                value = stack.pop()
                stack[-1].append(value)
                ip += 1
            elif op == _WRAP:
                n = len(stack) - bc[ip + 1]
                value = stack[n:]
                del stack[n:]
                stack.append(value)
                ip += 2
            elif op == _TEXT:
                stack.append(self._input[stack.pop() : self._pos])
                ip += 1
            elif op == _IF:
                branch(stack[-1], 0)
            elif op == _IF_ERROR:
                branch(stack[-1] is _FAILED, 0)
            elif op == _IF_NOT_ERROR:
                branch(stack[-1] is not _FAILED, 0)
            elif op == _WHILE_NOT_ERROR:
                if stack[-1] is not _FAILED:
                    ends.append(end)
                    ips.append(ip)
                    end = ip + 2 + bc[ip + 1]
                    ip += 2
                else:
                    ip += 2 + bc[ip + 1]
            elif op == _MATCH_ANY:
                branch(self._pos < self._end, 0)
            elif op == _MATCH_STRING:
                literal = _LITERALS[bc[ip + 1]]
                branch(self._input.startswith(literal, self._pos), 1)
            elif op == _MATCH_STRING_IC:
                literal = _LITERALS[bc[ip + 1]]
                branch(
                    self._input[self._pos : self._pos + len(literal)].lower()
                    == literal,
                    1,
                )
            elif op == _MATCH_CLASS:
                regexp = _CLASSES[bc[ip + 1]]
                branch(regexp.match(self._input, self._pos) is not None, 1)
            elif op == _ACCEPT_N:
                n = bc[ip + 1]
                stack.append(self._input[self._pos : self._pos + n])
                self._pos += n
                ip += 2
            elif op == _ACCEPT_STRING:
                literal = _LITERALS[bc[ip + 1]]
                stack.append(literal)
                self._pos += len(literal)
                ip += 2
            elif op == _FAIL:
                stack.append(_FAILED)
                if not self._silent_fails:
                    self._fail(_EXPECTATIONS[bc[ip + 1]])
                ip += 2
            elif op == _LOAD_SAVED_POS:
                self._saved_pos = stack[-1 - bc[ip + 1]]
                ip += 2
            elif op == _UPDATE_SAVED_POS:
                self._saved_pos = self._pos
                ip += 1
            elif op == _CALL:
                n = bc[ip + 3]
                params = [stack[-1 - p] for p in bc[ip + 4 : ip + 4 + n]]
                value = self._functions[bc[ip + 1]](*params)
                del stack[len(stack) - bc[ip + 2] :]
                stack.append(value)
                ip += 4 + n
            elif op == _RULE:
                stack.append(self._parse_rule(bc[ip + 1]))
                ip += 2
            elif op == _SILENT_FAILS_ON:
                self._silent_fails += 1
                ip += 1
            elif op == _SILENT_FAILS_OFF:
                self._silent_fails -= 1
                ip += 1
            else:
                raise ValueError(f'Invalid opcode: {op}.')

        if ends:
            end = ends.pop()
            ip = ips.pop()
        else:
            break
'''
