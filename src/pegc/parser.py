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

"""Parses grammar text into a pegc AST.

The syntax is that of PEG.js grammars:

    {
      initializer code
    }

    rule "display name" = "literal" [a-z]i . other_rule
                        / label:(a b)* { return label }
                        / $x &y !z &{ return True } !{ return False }

Code blocks hold Python code, which must balance its braces. The same
syntax is written as a pegc grammar in `pegc.pegc`; compiling that file
with pegc gives a parser that builds the same AST as this module.
"""

import keyword
from typing import Dict, List, Optional

from pegc import ast as m_ast


DEFAULT_RESERVED_WORDS = list(keyword.kwlist)

_LINE_TERMINATORS = '\n\r\u2028\u2029'

_SINGLE_ESCAPES = {
    'b': '\b',
    'f': '\f',
    'n': '\n',
    'r': '\r',
    't': '\t',
    'v': '\v',
}

_HEX_DIGITS = '0123456789abcdefABCDEF'


class SyntaxError(Exception):  # pylint: disable=redefined-builtin
    """Raised when grammar text can't be parsed."""

    def __init__(self, message, expected=None, found=None, location=None):
        super().__init__(message)
        self.message = message
        self.expected = expected
        self.found = found
        self.location = location


def parse(text: str, options: Optional[Dict] = None) -> m_ast.Grammar:
    """Returns the AST for the grammar in `text`.

    Recognized options are `extract_comments` (collect comments into
    `Grammar.comments`, keyed by offset) and `reserved_words` (names that
    may not be used as labels; the Python keywords by default).
    """
    return _Parser(text, options or {}).parse()


def _describe_found(text: str) -> str:
    return '"' + text.replace('\\', '\\\\').replace('"', '\\"') + '"'


def build_message(expected: List[str], found: Optional[str]) -> str:
    descriptions = sorted(set(expected))
    if not descriptions:
        expected_str = 'nothing'
    elif len(descriptions) == 1:
        expected_str = descriptions[0]
    elif len(descriptions) == 2:
        expected_str = descriptions[0] + ' or ' + descriptions[1]
    else:
        expected_str = ', '.join(descriptions[:-1]) + ', or ' + descriptions[-1]
    found_str = _describe_found(found) if found else 'end of input'
    return f'Expected {expected_str} but {found_str} found.'


def _is_whitespace(ch: str) -> bool:
    return ch.isspace() and ch not in _LINE_TERMINATORS


def _is_ident_start(ch: str) -> bool:
    return ch == '_' or ch.isalpha()


def _is_ident_part(ch: str) -> bool:
    return ch == '_' or ch.isalnum()


# pylint: disable=too-many-public-methods
class _Parser:
    def __init__(self, text: str, options: Dict):
        self._text = text
        self._end = len(text)
        self._pos = 0
        self._reserved_words = set(
            options.get('reserved_words', DEFAULT_RESERVED_WORDS)
        )
        self._comments: Optional[Dict[int, m_ast.Comment]] = None
        if options.get('extract_comments'):
            self._comments = {}
        self._pos_details_cache = {0: (1, 1)}
        self._max_fail_pos = 0
        self._max_fail_expected: List[str] = []

    def parse(self) -> m_ast.Grammar:
        self._skip()
        initializer = None
        start = self._pos
        code = self._code_block()
        if code is not None:
            location = self._location(start, self._pos)
            if self._eos():
                initializer = m_ast.Initializer(code, location)
                self._skip()
            else:
                self._pos = start

        rules = []
        while True:
            rule = self._rule()
            if rule is None:
                break
            rules.append(rule)
            self._skip()

        if not rules or self._pos < self._end:
            if rules:
                self._fail('end of input')
            raise self._syntax_error()
        return m_ast.Grammar(
            initializer, rules, self._comments, self._location(0, self._end)
        )

    #
    # Error reporting.
    #

    def _fail(self, description: str):
        if self._pos < self._max_fail_pos:
            return
        if self._pos > self._max_fail_pos:
            self._max_fail_pos = self._pos
            self._max_fail_expected = []
        self._max_fail_expected.append(description)

    def _syntax_error(self) -> SyntaxError:
        pos = self._max_fail_pos
        if pos < self._end:
            found = self._text[pos]
            location = self._location(pos, pos + 1)
        else:
            found = None
            location = self._location(pos, pos)
        return SyntaxError(
            build_message(self._max_fail_expected, found),
            self._max_fail_expected,
            found,
            location,
        )

    def _error(self, message: str, start: int, end: int) -> SyntaxError:
        return SyntaxError(message, None, None, self._location(start, end))

    def _pos_details(self, pos: int):
        details = self._pos_details_cache.get(pos)
        if details is not None:
            return details
        p = pos - 1
        while p not in self._pos_details_cache:
            p -= 1
        line, column = self._pos_details_cache[p]
        while p < pos:
            if self._text[p] == '\n':
                line += 1
                column = 1
            else:
                column += 1
            p += 1
        self._pos_details_cache[pos] = (line, column)
        return line, column

    def _location(self, start: int, end: int) -> m_ast.Location:
        start_line, start_column = self._pos_details(start)
        end_line, end_column = self._pos_details(end)
        return m_ast.Location(
            m_ast.Position(start, start_line, start_column),
            m_ast.Position(end, end_line, end_column),
        )

    #
    # Low-level helpers.
    #

    def _peek(self, s: str) -> bool:
        return self._text.startswith(s, self._pos)

    def _ch(self) -> str:
        return self._text[self._pos] if self._pos < self._end else ''

    def _lit(self, s: str) -> bool:
        if self._peek(s):
            self._pos += len(s)
            return True
        self._fail(f'"{s}"')
        return False

    def _skip(self):
        """Skips whitespace, line terminators and comments."""
        while self._pos < self._end:
            ch = self._text[self._pos]
            if _is_whitespace(ch) or ch in _LINE_TERMINATORS:
                self._pos += 1
            elif not self._comment(allow_newlines=True):
                break

    def _skip_inline(self):
        """Skips whitespace and comments that don't end the line."""
        while self._pos < self._end:
            ch = self._text[self._pos]
            if _is_whitespace(ch):
                self._pos += 1
            elif not self._peek('/*') or not self._comment(allow_newlines=False):
                break

    def _comment(self, allow_newlines: bool) -> bool:
        start = self._pos
        if self._peek('//'):
            if not allow_newlines:
                return False
            end = self._pos + 2
            while end < self._end and self._text[end] not in _LINE_TERMINATORS:
                end += 1
            self._add_comment(self._text[start + 2 : end], False, start, end)
            self._pos = end
            return True
        if self._peek('/*'):
            end = self._text.find('*/', start + 2)
            if end == -1:
                return False
            body = self._text[start + 2 : end]
            if not allow_newlines and any(c in body for c in _LINE_TERMINATORS):
                return False
            self._add_comment(body, True, start, end + 2)
            self._pos = end + 2
            return True
        return False

    def _add_comment(self, text: str, multiline: bool, start: int, end: int):
        if self._comments is not None:
            self._comments[start] = m_ast.Comment(
                text, multiline, self._location(start, end)
            )

    def _eos(self) -> bool:
        """Matches the end of a statement: `;`, a newline, or the end."""
        start = self._pos
        self._skip()
        if self._peek(';'):
            self._pos += 1
            return True
        self._pos = start
        self._skip_inline()
        self._comment(allow_newlines=True)
        if self._ch() and self._ch() in _LINE_TERMINATORS:
            self._pos += 1
            return True
        self._pos = start
        self._skip()
        if self._pos == self._end:
            return True
        self._fail('";"')
        self._fail('end of line')
        self._pos = start
        return False

    #
    # Grammar structure.
    #

    def _identifier(self) -> Optional[str]:
        start = self._pos
        if not _is_ident_start(self._ch()):
            self._fail('identifier')
            return None
        self._pos += 1
        while _is_ident_part(self._ch()):
            self._pos += 1
        name = self._text[start : self._pos]
        if not name.isidentifier():
            self._pos = start
            self._fail('identifier')
            return None
        return name

    def _rule(self) -> Optional[m_ast.Rule]:
        start = self._pos
        name = self._identifier()
        if name is None:
            return None
        self._skip()
        display_name = None
        if self._ch() in ('"', "'"):
            display_name = self._string_literal()
            if display_name is None:
                self._pos = start
                return None
            self._skip()
        if not self._lit('='):
            self._pos = start
            return None
        self._skip()
        expression = self._choice()
        if expression is None:
            self._pos = start
            return None
        location = self._location(start, self._pos)
        if not self._eos():
            self._pos = start
            return None
        if display_name is not None:
            expression = m_ast.Named(display_name, expression, location)
        return m_ast.Rule(name, expression, location)

    def _choice(self) -> Optional[m_ast.Node]:
        start = self._pos
        first = self._action()
        if first is None:
            return None
        alternatives = [first]
        while True:
            save = self._pos
            self._skip()
            if not self._lit('/'):
                self._pos = save
                break
            self._skip()
            alternative = self._action()
            if alternative is None:
                self._pos = save
                break
            alternatives.append(alternative)
        if len(alternatives) == 1:
            return first
        return m_ast.Choice(alternatives, self._location(start, self._pos))

    def _action(self) -> Optional[m_ast.Node]:
        start = self._pos
        expression = self._sequence()
        if expression is None:
            return None
        save = self._pos
        self._skip()
        code = self._code_block()
        if code is None:
            self._pos = save
            return expression
        return m_ast.Action(
            expression, code, self._location(start, self._pos)
        )

    def _sequence(self) -> Optional[m_ast.Node]:
        start = self._pos
        first = self._labeled()
        if first is None:
            return None
        elements = [first]
        while True:
            save = self._pos
            self._skip()
            element = self._labeled()
            if element is None:
                self._pos = save
                break
            elements.append(element)
        if len(elements) == 1:
            return first
        return m_ast.Sequence(elements, self._location(start, self._pos))

    def _labeled(self) -> Optional[m_ast.Node]:
        start = self._pos
        label = self._identifier()
        if label is not None:
            label_end = self._pos
            self._skip()
            if self._lit(':'):
                self._skip()
                expression = self._prefixed()
                if expression is not None:
                    if label in self._reserved_words:
                        raise self._error(
                            f'Label can\'t be a reserved word "{label}".',
                            start,
                            label_end,
                        )
                    return m_ast.Labeled(
                        label, expression, self._location(start, self._pos)
                    )
        self._pos = start
        return self._prefixed()

    def _prefixed(self) -> Optional[m_ast.Node]:
        start = self._pos
        ch = self._ch()
        types = {'$': 'text', '&': 'simple_and', '!': 'simple_not'}
        if ch not in types or self._at_semantic_predicate():
            if ch not in types:
                for op in types:
                    self._fail(f'"{op}"')
            return self._suffixed()
        self._pos += 1
        self._skip()
        expression = self._suffixed()
        if expression is None:
            self._pos = start
            return None
        return m_ast.Prefixed(
            types[ch], expression, self._location(start, self._pos)
        )

    def _suffixed(self) -> Optional[m_ast.Node]:
        start = self._pos
        expression = self._primary()
        if expression is None:
            return None
        save = self._pos
        self._skip()
        types = {'?': 'optional', '*': 'zero_or_more', '+': 'one_or_more'}
        ch = self._ch()
        if ch in types:
            self._pos += 1
            return m_ast.Suffixed(
                types[ch], expression, self._location(start, self._pos)
            )
        for op in types:
            self._fail(f'"{op}"')
        self._pos = save
        return expression

    def _at_semantic_predicate(self) -> bool:
        save = self._pos
        self._pos += 1
        self._skip()
        result = self._peek('{')
        self._pos = save
        return result

    # pylint: disable=too-many-return-statements
    def _primary(self) -> Optional[m_ast.Node]:
        start = self._pos
        ch = self._ch()
        if ch in ('"', "'"):
            value = self._string_literal()
            if value is None:
                return None
            ignore_case = self._peek('i')
            if ignore_case:
                self._pos += 1
            return m_ast.Literal(
                value, ignore_case, self._location(start, self._pos)
            )
        if ch == '[':
            return self._character_class()
        if ch == '.':
            self._pos += 1
            return m_ast.Any(self._location(start, self._pos))
        if ch in ('&', '!'):
            self._pos += 1
            self._skip()
            code = self._code_block()
            if code is None:
                self._pos = start
                return None
            t = 'semantic_and' if ch == '&' else 'semantic_not'
            return m_ast.SemanticPredicate(
                t, code, self._location(start, self._pos)
            )
        if ch == '(':
            self._pos += 1
            self._skip()
            expression = self._choice()
            if expression is None:
                self._pos = start
                return None
            self._skip()
            if not self._lit(')'):
                self._pos = start
                return None
            if expression.type in ('labeled', 'sequence'):
                return m_ast.Group(expression, self._location(start, self._pos))
            return expression

        for description in ('literal', 'character class', '"."', '"("'):
            self._fail(description)
        name = self._identifier()
        if name is None:
            return None
        end = self._pos
        # A name followed by `=` starts the next rule instead.
        self._skip()
        if self._ch() in ('"', "'") and self._string_literal() is not None:
            self._skip()
        if self._peek('='):
            self._pos = start
            return None
        self._pos = end
        return m_ast.RuleReference(name, self._location(start, end))

    # pylint: enable=too-many-return-statements

    #
    # Lexical structure.
    #

    def _code_block(self) -> Optional[str]:
        start = self._pos
        if not self._peek('{'):
            self._fail('code block')
            return None
        depth = 1
        pos = start + 1
        while pos < self._end:
            ch = self._text[pos]
            if ch == '{':
                depth += 1
            elif ch == '}':
                depth -= 1
                if depth == 0:
                    self._pos = pos + 1
                    return self._text[start + 1 : pos]
            pos += 1
        self._pos = self._end
        self._fail('"}"')
        self._pos = start
        return None

    def _escape_sequence(self) -> Optional[str]:
        """Parses what follows a backslash; returns None on failure."""
        ch = self._ch()
        if ch == '':
            self._fail('escape sequence')
            return None
        if ch in _LINE_TERMINATORS:
            self._pos += 2 if self._peek('\r\n') else 1
            return ''
        if ch in _SINGLE_ESCAPES:
            self._pos += 1
            return _SINGLE_ESCAPES[ch]
        if ch == '0' and not self._text[self._pos + 1 : self._pos + 2].isdigit():
            self._pos += 1
            return '\0'
        if ch in ('x', 'u'):
            n = 2 if ch == 'x' else 4
            digits = self._text[self._pos + 1 : self._pos + 1 + n]
            if len(digits) != n or not all(d in _HEX_DIGITS for d in digits):
                self._fail('hexadecimal digit')
                return None
            self._pos += 1 + n
            return chr(int(digits, 16))
        if ch.isdigit():
            self._fail('escape sequence')
            return None
        self._pos += 1
        return ch

    def _string_literal(self) -> Optional[str]:
        start = self._pos
        quote = self._ch()
        if quote not in ('"', "'"):
            self._fail('string')
            return None
        self._pos += 1
        chars = []
        while True:
            ch = self._ch()
            if ch == quote:
                self._pos += 1
                return ''.join(chars)
            if ch == '' or ch in _LINE_TERMINATORS:
                self._fail(f'"{quote}"' if quote == '"' else '"\'"')
                self._pos = start
                return None
            self._pos += 1
            if ch == '\\':
                value = self._escape_sequence()
                if value is None:
                    self._pos = start
                    return None
                chars.append(value)
            else:
                chars.append(ch)

    def _class_character(self) -> Optional[str]:
        ch = self._ch()
        if ch in ('', ']') or ch in _LINE_TERMINATORS:
            return None
        self._pos += 1
        if ch == '\\':
            return self._escape_sequence()
        return ch

    def _character_class(self) -> Optional[m_ast.Node]:
        start = self._pos
        self._pos += 1
        inverted = self._peek('^')
        if inverted:
            self._pos += 1
        parts: List[m_ast.ClassPart] = []
        while not self._peek(']'):
            part_start = self._pos
            first = self._class_character()
            if first is None:
                self._fail('"]"')
                self._pos = start
                return None
            if first == '':
                continue
            after_dash = self._text[self._pos + 1 : self._pos + 2]
            if self._peek('-') and after_dash not in (']', ''):
                self._pos += 1
                last = self._class_character()
                if last is None or last == '':
                    self._pos = start
                    return None
                if first > last:
                    raise self._error(
                        'Invalid character range: '
                        f'{self._text[part_start : self._pos]}.',
                        part_start,
                        self._pos,
                    )
                parts.append((first, last))
            else:
                parts.append(first)
        self._pos += 1
        ignore_case = self._peek('i')
        if ignore_case:
            self._pos += 1
        return m_ast.CharacterClass(
            parts, inverted, ignore_case, self._location(start, self._pos)
        )
