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

"""Passes that reject grammars the code generator can't handle.

Each check walks the AST and raises GrammarError at the first problem
it finds; none of them modify the tree.
"""

from pegc import visitor
from pegc.grammar_error import GrammarError


def _where(location) -> str:
    if location is None:
        return 'an unknown location'
    return f'line {location.start.line}, column {location.start.column}'


def report_undefined_rules(ast, options) -> None:
    """Checks that all referenced rules exist."""

    def check_rule_ref(node):
        if not ast.find_rule(node.name):
            raise GrammarError(
                f'Rule "{node.name}" is not defined.', node.location
            )

    check = visitor.build({'rule_ref': check_rule_ref})
    check(ast)

    for rule_name in options.allowed_start_rules:
        if not ast.find_rule(rule_name):
            raise GrammarError(f'Start rule "{rule_name}" is not defined.')


def report_duplicate_rules(ast) -> None:
    """Checks that each rule is defined only once."""
    rules = {}

    def check_rule(node):
        if node.name in rules:
            raise GrammarError(
                f'Rule "{node.name}" is already defined at '
                f'{_where(rules[node.name])}.',
                node.location,
            )
        rules[node.name] = node.location

    check = visitor.build({'rule': check_rule})
    check(ast)


def report_duplicate_labels(ast) -> None:
    """Checks that labels are unique within their scope.

    A sequence shares one set of labels across its elements. Every other
    compound expression opens a new scope seeded with the labels already
    visible, so alternatives may reuse a name but an inner label may not
    shadow an outer one.
    """

    def check_expression_with_clone(node, env):
        check(node.expression, dict(env))

    def check_choice(node, env):
        for alternative in node.alternatives:
            check(alternative, dict(env))

    def check_sequence(node, env):
        for element in node.elements:
            check(element, env)

    def check_labeled(node, env):
        label = node.label
        if label in env:
            raise GrammarError(
                f'Label "{label}" is already defined at {_where(env[label])}.',
                node.location,
            )
        check(node.expression, env)
        env[label] = node.location

    check = visitor.build(
        {
            'rule': lambda node: check(node.expression, {}),
            'choice': check_choice,
            'action': check_expression_with_clone,
            'sequence': check_sequence,
            'labeled': check_labeled,
            'text': check_expression_with_clone,
            'simple_and': check_expression_with_clone,
            'simple_not': check_expression_with_clone,
            'optional': check_expression_with_clone,
            'zero_or_more': check_expression_with_clone,
            'one_or_more': check_expression_with_clone,
            'group': check_expression_with_clone,
        }
    )
    check(ast)


def report_infinite_recursion(ast) -> None:
    """Reports left recursion in the grammar.

    A rule may re-enter itself only after something has consumed input;
    otherwise the generated parser would recurse forever at the same
    position.
    """
    visited_rules = []

    def check_rule(node):
        visited_rules.append(node.name)
        check(node.expression)
        visited_rules.pop()

    def check_sequence(node):
        for element in node.elements:
            check(element)
            if ast.always_consumes_on_success(element):
                break

    def check_rule_ref(node):
        if node.name in visited_rules:
            visited_rules.append(node.name)
            path = ' -> '.join(visited_rules)
            raise GrammarError(
                'Possible infinite loop when parsing '
                f'(left recursion: {path}).',
                node.location,
            )
        rule = ast.find_rule(node.name)
        if rule:
            check(rule)

    check = visitor.build(
        {
            'rule': check_rule,
            'sequence': check_sequence,
            'rule_ref': check_rule_ref,
        }
    )
    check(ast)


def report_infinite_repetition(ast) -> None:
    """Reports repetitions whose body may succeed without consuming."""

    def check_repetition(node):
        if not ast.always_consumes_on_success(node.expression):
            raise GrammarError(
                'Possible infinite loop when parsing (repetition used '
                'with an expression that may not consume any input).',
                node.location,
            )
        check(node.expression)

    check = visitor.build(
        {
            'zero_or_more': check_repetition,
            'one_or_more': check_repetition,
        }
    )
    check(ast)
