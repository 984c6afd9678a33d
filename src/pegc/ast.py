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

"""The grammar AST.

Every node has a `type` string and a `location` pointing back into the
grammar text. The compiler passes annotate nodes in place (`match`,
`report_failures`, `bytecode`) and fill in the tables hanging off of
the `Grammar` node; nothing a pass adds is ever removed by a later one.
"""

import typing
from typing import Callable, Dict, List, NamedTuple, Tuple, Union

from pegc import visitor


class Position(NamedTuple):
    offset: int
    line: int
    column: int


class Location(NamedTuple):
    start: Position
    end: Position


OptLocation = typing.Optional[Location]


class Node:
    fields: Tuple[str, ...] = ()
    derived_attrs: Tuple[str, ...] = ()

    def __init__(self, t: str, location: OptLocation = None):
        self.type = t
        self.location = location

    def __eq__(self, other) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.type == other.type and all(
            getattr(self, f) == getattr(other, f) for f in self.fields
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self):
        s = self.__class__.__name__ + '('
        s += ', '.join(f'{f}={getattr(self, f)!r}' for f in self.fields)
        s += ')'
        return s

    def children(self) -> List['Node']:
        return []

    def to_json(self, include_derived=False) -> Dict[str, typing.Any]:
        d: Dict[str, typing.Any] = {'type': self.type}
        for f in self.fields:
            v = getattr(self, f)
            if isinstance(v, list) and v and isinstance(v[0], Node):
                d[f] = [c.to_json(include_derived) for c in v]
            elif isinstance(v, Node):
                d[f] = v.to_json(include_derived)
            elif isinstance(v, tuple):
                d[f] = list(v)
            else:
                d[f] = v
        if include_derived:
            for a in self.derived_attrs:
                d[a] = getattr(self, a)
        return d


class Expression(Node):
    """Base class for everything that can appear in a rule body."""

    derived_attrs = ('match',)

    def __init__(self, t: str, location: OptLocation = None):
        super().__init__(t, location)
        self.match: typing.Optional[int] = None


class _Wrapper(Expression):
    fields = ('expression',)

    def __init__(self, t: str, expression: Node, location=None):
        super().__init__(t, location)
        self.expression = expression

    def children(self):
        return [self.expression]


class Grammar(Node):
    fields = ('initializer', 'rules')
    derived_attrs = ('literals', 'classes', 'expectations', 'functions')

    def __init__(
        self,
        initializer: typing.Optional['Initializer'],
        rules: List['Rule'],
        comments: typing.Optional[Dict[int, 'Comment']] = None,
        location: OptLocation = None,
    ):
        super().__init__('grammar', location)
        self.initializer = initializer
        self.rules = rules
        self.comments = comments

        # Interning tables filled in by generate_bytecode().
        self.literals: List[str] = []
        self.classes: List[Tuple[Tuple[Union[str, Tuple[str, str]], ...],
                                 bool, bool]] = []
        self.expectations: List[Dict[str, typing.Any]] = []
        self.functions: List[Tuple[Tuple[str, ...], str]] = []

        # Filled in by the code generator.
        self.code: typing.Optional[str] = None

        self._consumes_memo: Dict[str, bool] = {}
        self._consumes_stack: List[str] = []
        self._consumes_cycles: typing.Set[str] = set()
        self._consumes: typing.Optional[Callable[..., bool]] = None

    def children(self):
        if self.initializer:
            return [self.initializer] + self.rules
        return list(self.rules)

    def find_rule(self, name: str) -> typing.Optional['Rule']:
        for rule in self.rules:
            if rule.name == name:
                return rule
        return None

    def index_of_rule(self, name: str) -> int:
        for i, rule in enumerate(self.rules):
            if rule.name == name:
                return i
        return -1

    def always_consumes_on_success(self, node: Node) -> bool:
        """Returns whether `node` advances the input on every success.

        Results for rules are memoized. A rule reached again while it is
        still being evaluated is assumed not to consume anything, and
        results that depended on that assumption are not memoized until
        the rule that closes the cycle finishes.
        """
        if self._consumes is None:
            self._consumes = self._build_consumes()
        return self._consumes(node)

    def _build_consumes(self):
        def consumes_true(node):
            del node
            return True

        def consumes_false(node):
            del node
            return False

        def consumes_expression(node):
            return consumes(node.expression)

        def rule_ref(node):
            name = node.name
            if name in self._consumes_memo:
                return self._consumes_memo[name]
            if name in self._consumes_stack:
                self._consumes_cycles.add(name)
                return False
            rule = self.find_rule(name)
            if rule is None:
                return False

            outer_cycles = self._consumes_cycles
            self._consumes_cycles = set()
            self._consumes_stack.append(name)
            try:
                result = consumes(rule)
            finally:
                self._consumes_stack.pop()
            self._consumes_cycles.discard(name)
            if result or not self._consumes_cycles:
                self._consumes_memo[name] = result
            self._consumes_cycles |= outer_cycles
            return result

        consumes = visitor.build(
            {
                'rule': consumes_expression,
                'named': consumes_expression,
                'choice': lambda node: all(
                    consumes(a) for a in node.alternatives
                ),
                'action': consumes_expression,
                'sequence': lambda node: any(
                    consumes(e) for e in node.elements
                ),
                'labeled': consumes_expression,
                'text': consumes_expression,
                'simple_and': consumes_false,
                'simple_not': consumes_false,
                'optional': consumes_false,
                'zero_or_more': consumes_false,
                'one_or_more': consumes_expression,
                'group': consumes_expression,
                'semantic_and': consumes_false,
                'semantic_not': consumes_false,
                'rule_ref': rule_ref,
                'literal': lambda node: node.value != '',
                'class': consumes_true,
                'any': consumes_true,
            }
        )
        return consumes


class Initializer(Node):
    fields = ('code',)

    def __init__(self, code: str, location: OptLocation = None):
        super().__init__('initializer', location)
        self.code = code


class Rule(Node):
    fields = ('name', 'expression')
    derived_attrs = ('report_failures', 'match', 'bytecode')

    def __init__(self, name: str, expression: Node, location=None):
        super().__init__('rule', location)
        self.name = name
        self.expression = expression
        self.report_failures: typing.Optional[bool] = None
        self.match: typing.Optional[int] = None
        self.bytecode: typing.Optional[List[int]] = None

    def children(self):
        return [self.expression]


class Named(_Wrapper):
    fields = ('name', 'expression')

    def __init__(self, name: str, expression: Node, location=None):
        super().__init__('named', expression, location)
        self.name = name


class Choice(Expression):
    fields = ('alternatives',)

    def __init__(self, alternatives: List[Node], location=None):
        super().__init__('choice', location)
        self.alternatives = alternatives

    def children(self):
        return list(self.alternatives)


class Action(_Wrapper):
    fields = ('expression', 'code')

    def __init__(self, expression: Node, code: str, location=None):
        super().__init__('action', expression, location)
        self.code = code


class Sequence(Expression):
    fields = ('elements',)

    def __init__(self, elements: List[Node], location=None):
        super().__init__('sequence', location)
        self.elements = elements

    def children(self):
        return list(self.elements)


class Labeled(_Wrapper):
    fields = ('label', 'expression')

    def __init__(self, label: str, expression: Node, location=None):
        super().__init__('labeled', expression, location)
        self.label = label


PREFIXED_TYPES = ('text', 'simple_and', 'simple_not')


class Prefixed(_Wrapper):
    def __init__(self, t: str, expression: Node, location=None):
        assert t in PREFIXED_TYPES, t
        super().__init__(t, expression, location)


class Text(Prefixed):
    def __init__(self, expression, location=None):
        super().__init__('text', expression, location)


class SimpleAnd(Prefixed):
    def __init__(self, expression, location=None):
        super().__init__('simple_and', expression, location)


class SimpleNot(Prefixed):
    def __init__(self, expression, location=None):
        super().__init__('simple_not', expression, location)


SUFFIXED_TYPES = ('optional', 'zero_or_more', 'one_or_more')


class Suffixed(_Wrapper):
    def __init__(self, t: str, expression: Node, location=None):
        assert t in SUFFIXED_TYPES, t
        super().__init__(t, expression, location)


class Optional(Suffixed):
    def __init__(self, expression, location=None):
        super().__init__('optional', expression, location)


class ZeroOrMore(Suffixed):
    def __init__(self, expression, location=None):
        super().__init__('zero_or_more', expression, location)


class OneOrMore(Suffixed):
    def __init__(self, expression, location=None):
        super().__init__('one_or_more', expression, location)


class Group(_Wrapper):
    def __init__(self, expression: Node, location=None):
        super().__init__('group', expression, location)


class Literal(Expression):
    fields = ('value', 'ignore_case')

    def __init__(self, value: str, ignore_case: bool = False, location=None):
        super().__init__('literal', location)
        self.value = value
        self.ignore_case = ignore_case


ClassPart = Union[str, Tuple[str, str]]


class CharacterClass(Expression):
    fields = ('parts', 'inverted', 'ignore_case')

    def __init__(
        self,
        parts: List[ClassPart],
        inverted: bool = False,
        ignore_case: bool = False,
        location=None,
    ):
        super().__init__('class', location)
        self.parts = [tuple(p) if isinstance(p, list) else p for p in parts]
        self.inverted = inverted
        self.ignore_case = ignore_case


class Any(Expression):
    def __init__(self, location=None):
        super().__init__('any', location)


class RuleReference(Expression):
    fields = ('name',)

    def __init__(self, name: str, location=None):
        super().__init__('rule_ref', location)
        self.name = name


SEMANTIC_PREDICATE_TYPES = ('semantic_and', 'semantic_not')


class SemanticPredicate(Expression):
    fields = ('code',)

    def __init__(self, t: str, code: str, location=None):
        assert t in SEMANTIC_PREDICATE_TYPES, t
        super().__init__(t, location)
        self.code = code


class SemanticAnd(SemanticPredicate):
    def __init__(self, code, location=None):
        super().__init__('semantic_and', code, location)


class SemanticNot(SemanticPredicate):
    def __init__(self, code, location=None):
        super().__init__('semantic_not', code, location)


class Comment(NamedTuple):
    text: str
    multiline: bool
    location: OptLocation = None
