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

"""Passes that annotate the AST with facts the code generator needs."""

import enum

from pegc import visitor
from pegc.grammar_error import GrammarError


class MatchResult(enum.IntEnum):
    """What is statically known about whether a node will match."""

    ALWAYS = 1
    SOMETIMES = 0
    NEVER = -1


def calc_report_failures(ast, options) -> None:
    """Marks the rules whose failures must be recorded.

    Start rules report their failures, and so does every rule they
    reach without going through a named expression; a named expression
    reports its own name instead of what is inside it.
    """
    changed_rules = []

    for rule in ast.rules:
        rule.report_failures = False

    for rule_name in options.allowed_start_rules:
        rule = ast.find_rule(rule_name)
        if rule:
            rule.report_failures = True
            changed_rules.append(rule)

    def calc_rule_ref(node):
        rule = ast.find_rule(node.name)
        if rule and not rule.report_failures:
            rule.report_failures = True
            changed_rules.append(rule)

    calc = visitor.build(
        {
            'rule': lambda node: calc(node.expression),
            'named': lambda node: None,
            'rule_ref': calc_rule_ref,
        }
    )

    while changed_rules:
        calc(changed_rules.pop())


_MAX_RULE_ITERATIONS = 6


def inference_match_result(ast) -> None:
    """Sets `match` on every rule and expression to a MatchResult."""

    def sometimes_match(node):
        node.match = MatchResult.SOMETIMES
        return node.match

    def always_match(node):
        inference(node.expression)
        node.match = MatchResult.ALWAYS
        return node.match

    def inference_expression(node):
        node.match = inference(node.expression)
        return node.match

    def inference_elements(elements, for_choice):
        results = [inference(e) for e in elements]
        if all(r == MatchResult.ALWAYS for r in results):
            return MatchResult.ALWAYS
        if for_choice:
            if all(r == MatchResult.NEVER for r in results):
                return MatchResult.NEVER
        elif any(r == MatchResult.NEVER for r in results):
            return MatchResult.NEVER
        return MatchResult.SOMETIMES

    def inference_rule(node):
        if node.match is None:
            # Assume SOMETIMES while the rule is being solved so that
            # recursive references terminate, then iterate until the
            # result stops changing.
            node.match = MatchResult.SOMETIMES
            count = 0
            while True:
                previous = node.match
                node.match = inference(node.expression)
                count += 1
                if count > _MAX_RULE_ITERATIONS:
                    raise GrammarError(
                        'Infinity cycle detected when trying to evaluate '
                        'node match result',
                        node.location,
                    )
                if previous == node.match:
                    break
        return node.match

    def inference_choice(node):
        node.match = inference_elements(node.alternatives, True)
        return node.match

    def inference_sequence(node):
        node.match = inference_elements(node.elements, False)
        return node.match

    def inference_simple_not(node):
        node.match = MatchResult(-inference(node.expression))
        return node.match

    def inference_rule_ref(node):
        rule = ast.find_rule(node.name)
        if rule is None:
            raise GrammarError(
                f'Rule "{node.name}" is not defined.', node.location
            )
        node.match = inference(rule)
        return node.match

    def inference_literal(node):
        if node.value:
            node.match = MatchResult.SOMETIMES
        else:
            node.match = MatchResult.ALWAYS
        return node.match

    def inference_class(node):
        if not node.parts and not node.inverted:
            node.match = MatchResult.NEVER
        else:
            node.match = MatchResult.SOMETIMES
        return node.match

    inference = visitor.build(
        {
            'rule': inference_rule,
            'named': inference_expression,
            'choice': inference_choice,
            'action': inference_expression,
            'sequence': inference_sequence,
            'labeled': inference_expression,
            'text': inference_expression,
            'simple_and': inference_expression,
            'simple_not': inference_simple_not,
            'optional': always_match,
            'zero_or_more': always_match,
            'one_or_more': inference_expression,
            'group': inference_expression,
            'semantic_and': sometimes_match,
            'semantic_not': sometimes_match,
            'rule_ref': inference_rule_ref,
            'literal': inference_literal,
            'class': inference_class,
            'any': sometimes_match,
        }
    )
    for rule in ast.rules:
        inference(rule)
