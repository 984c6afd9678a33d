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

"""Lowers each rule of the grammar to bytecode for the parser machine.

The machine keeps a value stack. Every expression leaves exactly one
value on it: the match result, or the FAILED marker. Conditional
instructions consume the lengths of their then/else blocks inline, so
a block can be skipped without decoding it.

Besides `rule.bytecode`, this pass fills the grammar's interning
tables: `literals`, `classes`, `expectations` and `functions`.
Bytecode refers to their entries by index.
"""

from typing import Any, Dict, List, NamedTuple, Optional

from pegc import visitor
from pegc.analysis import MatchResult
from pegc.grammar_error import GrammarError
from pegc.opcodes import Op


class _Context(NamedTuple):
    # Index of the topmost stack slot before the node runs; the node's
    # result lands at sp + 1.
    sp: int
    # Label name -> stack index of the labeled value.
    env: Dict[str, int]
    # The action whose code a sequence should call instead of wrapping
    # its elements into a list.
    action: Any
    report_failures: bool


def _match(node) -> int:
    return node.match if node.match is not None else MatchResult.SOMETIMES


def _intern(table: List[Any], value: Any) -> int:
    if value in table:
        return table.index(value)
    table.append(value)
    return len(table) - 1


def build_condition(
    match: int, cond: List[int], then_code: List[int], else_code: List[int]
) -> List[int]:
    """Returns a condition, or just the branch that is statically known
    to be taken."""
    if match == MatchResult.ALWAYS:
        return then_code
    if match == MatchResult.NEVER:
        return else_code
    return cond + [len(then_code), len(else_code)] + then_code + else_code


def build_loop(cond: List[int], body: List[int]) -> List[int]:
    return cond + [len(body)] + body


def generate_bytecode(ast) -> None:
    def add_literal(value):
        return _intern(ast.literals, value)

    def add_class(node):
        return _intern(
            ast.classes,
            (tuple(node.parts), node.inverted, node.ignore_case),
        )

    def add_expectation(expectation):
        return _intern(ast.expectations, expectation)

    def add_function(params, code):
        return _intern(ast.functions, (tuple(params), code))

    def build_call(function_index, delta, env, sp):
        params = [sp - index for index in env.values()]
        return [Op.CALL, function_index, delta, len(params)] + params

    def build_simple_predicate(expression, negative, context):
        match = _match(expression)
        if negative:
            match = -match
        return (
            [Op.PUSH_CURR_POS, Op.SILENT_FAILS_ON]
            + generate(
                expression,
                context._replace(
                    sp=context.sp + 1, env=dict(context.env), action=None
                ),
            )
            + [Op.SILENT_FAILS_OFF]
            + build_condition(
                match,
                [Op.IF_ERROR if negative else Op.IF_NOT_ERROR],
                [
                    Op.POP,
                    Op.POP if negative else Op.POP_CURR_POS,
                    Op.PUSH_UNDEFINED,
                ],
                [
                    Op.POP,
                    Op.POP_CURR_POS if negative else Op.POP,
                    Op.PUSH_FAILED,
                ],
            )
        )

    def build_semantic_predicate(node, negative, context):
        function_index = add_function(context.env.keys(), node.code)
        return (
            [Op.UPDATE_SAVED_POS]
            + build_call(function_index, 0, context.env, context.sp)
            + build_condition(
                _match(node),
                [Op.IF],
                [Op.POP, Op.PUSH_FAILED if negative else Op.PUSH_UNDEFINED],
                [Op.POP, Op.PUSH_UNDEFINED if negative else Op.PUSH_FAILED],
            )
        )

    def build_append_loop(expression_code):
        return build_loop([Op.WHILE_NOT_ERROR], [Op.APPEND] + expression_code)

    def build_failure(expectation, context):
        if context.report_failures:
            return [Op.FAIL, add_expectation(expectation)]
        return [Op.PUSH_FAILED]

    def check_repetition(node):
        if not ast.always_consumes_on_success(node.expression):
            raise GrammarError(
                'Possible infinite loop when parsing (repetition used '
                'with an expression that may not consume any input).',
                node.location,
            )

    def gen_grammar(node):
        for rule in node.rules:
            generate(rule)

    def gen_rule(node):
        node.bytecode = generate(
            node.expression,
            _Context(
                sp=-1,
                env={},
                action=None,
                report_failures=bool(node.report_failures),
            ),
        )

    def gen_named(node, context):
        if not context.report_failures:
            return generate(node.expression, context)
        name_index = add_expectation(
            {'type': 'rule', 'description': node.name}
        )
        return (
            [Op.SILENT_FAILS_ON]
            + generate(node.expression, context._replace(report_failures=False))
            + [Op.SILENT_FAILS_OFF]
            + build_condition(
                -_match(node), [Op.IF_ERROR], [Op.POP, Op.FAIL, name_index], []
            )
        )

    def gen_choice(node, context):
        def build_alternatives(alternatives):
            first = alternatives[0]
            code = generate(
                first, context._replace(env=dict(context.env), action=None)
            )
            if len(alternatives) == 1:
                return code
            return code + build_condition(
                -_match(first),
                [Op.IF_ERROR],
                [Op.POP] + build_alternatives(alternatives[1:]),
                [],
            )

        return build_alternatives(node.alternatives)

    def gen_action(node, context):
        env = dict(context.env)
        expression = node.expression
        emit_call = expression.type != 'sequence' or not expression.elements
        expression_code = generate(
            expression,
            context._replace(
                sp=context.sp + (1 if emit_call else 0),
                env=env,
                action=None if emit_call else node,
            ),
        )
        if not emit_call:
            return expression_code

        match = _match(expression)
        if match != MatchResult.NEVER:
            function_index = add_function(env.keys(), node.code)
            call_code = [Op.LOAD_SAVED_POS, 1] + build_call(
                function_index, 1, env, context.sp + 2
            )
        else:
            call_code = []
        return (
            [Op.PUSH_CURR_POS]
            + expression_code
            + build_condition(match, [Op.IF_NOT_ERROR], call_code, [])
            + [Op.NIP]
        )

    def gen_sequence(node, context):
        total = len(node.elements)

        def build_elements(index, context):
            if index < total:
                element = node.elements[index]
                processed = index + 1
                return generate(
                    element, context._replace(action=None)
                ) + build_condition(
                    _match(element),
                    [Op.IF_NOT_ERROR],
                    build_elements(
                        index + 1, context._replace(sp=context.sp + 1)
                    ),
                    (
                        [Op.POP_N, processed] if processed > 1 else [Op.POP]
                    )
                    + [Op.POP_CURR_POS, Op.PUSH_FAILED],
                )
            if context.action:
                function_index = add_function(
                    context.env.keys(), context.action.code
                )
                return (
                    [Op.LOAD_SAVED_POS, total]
                    + build_call(
                        function_index, total, context.env, context.sp
                    )
                    + [Op.NIP]
                )
            return [Op.WRAP, total, Op.NIP]

        return [Op.PUSH_CURR_POS] + build_elements(
            0, context._replace(sp=context.sp + 1)
        )

    def gen_labeled(node, context):
        env = dict(context.env)
        context.env[node.label] = context.sp + 1
        return generate(
            node.expression, context._replace(env=env, action=None)
        )

    def gen_text(node, context):
        return (
            [Op.PUSH_CURR_POS]
            + generate(
                node.expression,
                context._replace(
                    sp=context.sp + 1, env=dict(context.env), action=None
                ),
            )
            + build_condition(
                _match(node.expression),
                [Op.IF_NOT_ERROR],
                [Op.POP, Op.TEXT],
                [Op.NIP],
            )
        )

    def gen_optional(node, context):
        return generate(
            node.expression,
            context._replace(env=dict(context.env), action=None),
        ) + build_condition(
            -_match(node.expression),
            [Op.IF_ERROR],
            [Op.POP, Op.PUSH_NULL],
            [],
        )

    def gen_zero_or_more(node, context):
        check_repetition(node)
        expression_code = generate(
            node.expression,
            context._replace(
                sp=context.sp + 1, env=dict(context.env), action=None
            ),
        )
        return (
            [Op.PUSH_EMPTY_ARRAY]
            + expression_code
            + build_append_loop(expression_code)
            + [Op.POP]
        )

    def gen_one_or_more(node, context):
        check_repetition(node)
        expression_code = generate(
            node.expression,
            context._replace(
                sp=context.sp + 1, env=dict(context.env), action=None
            ),
        )
        return (
            [Op.PUSH_EMPTY_ARRAY]
            + expression_code
            + build_condition(
                _match(node.expression),
                [Op.IF_NOT_ERROR],
                build_append_loop(expression_code) + [Op.POP],
                [Op.POP, Op.POP, Op.PUSH_FAILED],
            )
        )

    def gen_group(node, context):
        return generate(
            node.expression,
            context._replace(env=dict(context.env), action=None),
        )

    def gen_rule_ref(node, context):
        del context
        index = ast.index_of_rule(node.name)
        if index == -1:
            raise GrammarError(
                f'Rule "{node.name}" is not defined.', node.location
            )
        return [Op.RULE, index]

    def gen_literal(node, context):
        if not node.value:
            return [Op.PUSH_EMPTY_STRING]
        if node.ignore_case:
            string_index = add_literal(node.value.lower())
            cond = [Op.MATCH_STRING_IC, string_index]
            accept = [Op.ACCEPT_N, len(node.value)]
        else:
            string_index = add_literal(node.value)
            cond = [Op.MATCH_STRING, string_index]
            accept = [Op.ACCEPT_STRING, string_index]
        expectation = {
            'type': 'literal',
            'text': node.value,
            'ignore_case': node.ignore_case,
        }
        return build_condition(
            _match(node), cond, accept, build_failure(expectation, context)
        )

    def gen_class(node, context):
        match = _match(node)
        cond: List[int] = []
        if match == MatchResult.SOMETIMES:
            cond = [Op.MATCH_CLASS, add_class(node)]
        failure: Optional[List[int]] = None
        if match != MatchResult.ALWAYS:
            failure = build_failure(
                {
                    'type': 'class',
                    'parts': tuple(node.parts),
                    'inverted': node.inverted,
                    'ignore_case': node.ignore_case,
                },
                context,
            )
        return build_condition(match, cond, [Op.ACCEPT_N, 1], failure or [])

    def gen_any(node, context):
        return build_condition(
            _match(node),
            [Op.MATCH_ANY],
            [Op.ACCEPT_N, 1],
            build_failure({'type': 'any'}, context),
        )

    generate = visitor.build(
        {
            'grammar': gen_grammar,
            'rule': gen_rule,
            'named': gen_named,
            'choice': gen_choice,
            'action': gen_action,
            'sequence': gen_sequence,
            'labeled': gen_labeled,
            'text': gen_text,
            'simple_and': lambda node, context: build_simple_predicate(
                node.expression, False, context
            ),
            'simple_not': lambda node, context: build_simple_predicate(
                node.expression, True, context
            ),
            'optional': gen_optional,
            'zero_or_more': gen_zero_or_more,
            'one_or_more': gen_one_or_more,
            'group': gen_group,
            'semantic_and': lambda node, context: build_semantic_predicate(
                node, False, context
            ),
            'semantic_not': lambda node, context: build_semantic_predicate(
                node, True, context
            ),
            'rule_ref': gen_rule_ref,
            'literal': gen_literal,
            'class': gen_class,
            'any': gen_any,
        }
    )
    generate(ast)
