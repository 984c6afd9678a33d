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

"""Traversal helpers for the grammar AST.

A visitor maps node types (`'grammar'`, `'rule'`, `'choice'`, ...) to
handler functions. Node types without a handler fall back to a default
that just walks the node's children and returns None, so a pass only
has to spell out the handful of node types it actually cares about.
"""

from typing import Any, Callable, Dict


class ASTVisitor:
    """Dispatches each node to a `visit_<type>` method.

    Subclasses override the methods for the node types they care about;
    everything else goes through `generic_visit()`.
    """

    def visit(self, node, *args) -> Any:
        fn = getattr(self, f'visit_{node.type}', None)
        if fn is None:
            return self.generic_visit(node, *args)
        return fn(node, *args)

    def generic_visit(self, node, *args) -> None:
        for child in node.children():
            self.visit(child, *args)


class _FunctionVisitor(ASTVisitor):
    def __init__(self, functions: Dict[str, Callable[..., Any]]):
        self._functions = functions

    def visit(self, node, *args) -> Any:
        fn = self._functions.get(node.type)
        if fn is None:
            return self.generic_visit(node, *args)
        return fn(node, *args)


def build(functions: Dict[str, Callable[..., Any]]) -> Callable[..., Any]:
    """Returns a function that visits a node using `functions`.

    Handlers are called as `fn(node, *args)` and recurse by calling the
    returned function again on whatever children they want to visit.
    """
    return _FunctionVisitor(dict(functions)).visit
