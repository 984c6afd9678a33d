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

"""Passes that rewrite the AST before code generation."""

import logging

from pegc import visitor


logger = logging.getLogger(__name__)


def remove_proxy_rules(ast, options) -> None:
    """Removes rules that only forward to another rule.

    A proxy rule is one whose whole expression is a reference to another
    rule (`A = B`). References to the proxy are redirected to its target
    and the proxy is dropped, unless it is an allowed start rule.
    """

    def replace_rule_refs(proxy, real_name):
        def rename(node):
            if node.name == proxy:
                node.name = real_name

        visitor.build({'rule_ref': rename})(ast)

    indices = []
    for i, rule in enumerate(ast.rules):
        if rule.expression.type != 'rule_ref':
            continue
        target = rule.expression.name
        replace_rule_refs(rule.name, target)
        if rule.name not in options.allowed_start_rules:
            logger.debug('removing proxy rule %s -> %s', rule.name, target)
            indices.append(i)

    for i in reversed(indices):
        del ast.rules[i]
